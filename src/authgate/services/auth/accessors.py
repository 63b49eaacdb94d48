"""Ordered "first present value wins" lookup over already-fetched records."""

from collections.abc import Callable, Iterable
from typing import Any, TypeVar

K = TypeVar("K")
V = TypeVar("V")


def first_present(
    accessors: Iterable[tuple[K, Callable[..., V | None]]], *records: Any
) -> tuple[K, V] | None:
    """
    Evaluate accessors in priority order and return the first present value.

    Empty strings and None count as absent. No I/O happens here: callers pass
    records they already fetched.

    Args:
        accessors: (label, accessor) pairs, highest priority first
        *records: Positional arguments passed to every accessor

    Returns:
        (label, value) of the first accessor yielding a value, or None

    Example:
        >>> first_present(
        ...     [("profile", lambda p, u: p.phone), ("metadata", lambda p, u: u.phone)],
        ...     profile,
        ...     user,
        ... )
        ('metadata', '+14155550000')
    """
    for label, accessor in accessors:
        value = accessor(*records)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return label, value
    return None

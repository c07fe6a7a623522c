"""
Enum Utilities
==============
Helpers that keep lookup tables keyed by a closed enum complete.

Tables built at import time are passed through require_exhaustive() so a
new enum member without a table entry fails loudly instead of falling
through to a default branch somewhere downstream.
"""

from enum import Enum
from typing import Any, Dict, Iterable, Optional, Type, TypeVar

E = TypeVar('E', bound=Enum)
T = TypeVar('T')


def require_exhaustive(
    table: Dict[E, T],
    enum_cls: Type[E],
    name: str,
    exclude: Optional[Iterable[E]] = None,
) -> Dict[E, T]:
    """
    Check that a lookup table covers every member of an enum.

    Args:
        table: Mapping keyed by enum members
        enum_cls: Enum the table must cover
        name: Table name used in the error message
        exclude: Members deliberately absent from the table

    Returns:
        The table itself, so this can wrap a literal

    Raises:
        TypeError: If a member is missing or a foreign key is present
    """
    excluded = set(exclude or ())
    expected = {member for member in enum_cls if member not in excluded}
    keys = set(table)

    missing = expected - keys
    if missing:
        names = ", ".join(sorted(m.value for m in missing))
        raise TypeError(f"{name} is missing entries for {enum_cls.__name__}: {names}")

    extra = keys - expected
    if extra:
        names = ", ".join(sorted(str(k) for k in extra))
        raise TypeError(f"{name} has unexpected keys: {names}")

    return table


def assert_never(value: Any) -> None:
    """Mark a branch that an exhaustive match can never reach."""
    raise AssertionError(f"Unhandled value: {value!r}")

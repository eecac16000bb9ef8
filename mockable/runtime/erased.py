from __future__ import annotations

import typing
from typing import Any

from mockable.runtime.errors import fatal_error, owner_name


def _describe(expected: Any) -> str:
    if isinstance(expected, tuple):
        return " | ".join(_describe(e) for e in expected)
    return getattr(expected, "__name__", repr(expected))


class Erased:
    """
    A value whose static type was erased to Any in mock storage.

    Generic members keep their public signature, but their handlers are stored
    as ``Callable[..., Any]``. The typed call site recovers the value through
    :meth:`downcast`, the single place where a wrong dynamic type can surface.
    """

    __slots__ = ("value",)

    def __init__(self, value: Any) -> None:
        self.value = value

    def __repr__(self) -> str:
        return f"Erased({self.value!r})"

    def downcast(
        self,
        expected: Any = None,
        *,
        optional: bool = False,
        owner: Any = None,
        field: str = "handler",
    ) -> Any:
        """
        Return the wrapped value as ``expected``.

        ``expected`` is a witness class (for example the ``type[T]`` argument
        of the call). With no witness the cast is unchecked and the value is
        returned as-is.
        """
        value = self.value
        if expected is None:
            return value
        if value is None and optional:
            return None

        check = typing.get_origin(expected) or expected
        try:
            matches = isinstance(value, check)
        except TypeError:
            # non-runtime-checkable witnesses pass through unchecked
            return value
        if not matches:
            fatal_error(
                f"{owner_name(owner)}.{field} returned {type(value).__name__}, expected {_describe(check)}",
                owner=owner,
                field=field,
            )
        return value
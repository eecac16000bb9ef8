"""
Markers read by the mock generator.

None of these change runtime behaviour of the protocol itself: ``mockable``
records generator options on the class, ``throws`` records the declared error
types on a method, and ``ThreadSafe`` / ``Isolated`` are empty protocols used
as capability bases.
"""
from __future__ import annotations

from typing import Any, Callable, Optional, Protocol, Tuple, Type


class ThreadSafe(Protocol):
    """Capability marker: conforming values may be shared across threads."""


class Isolated(ThreadSafe, Protocol):
    """Capability marker: conforming types serialize their interface methods."""


def mockable(cls: Optional[type] = None, *, force_portable_lock: bool = False) -> Any:
    """
    Mark a protocol for mock generation.

    Usable bare (``@mockable``) or with options
    (``@mockable(force_portable_lock=True)``).
    """

    def mark(target: type) -> type:
        target.__mockable__ = {"force_portable_lock": bool(force_portable_lock)}  # type: ignore[attr-defined]
        return target

    if cls is None:
        return mark
    return mark(cls)


def throws(*errors: Any) -> Any:
    """Mark a protocol method as throwing: ``@throws`` or ``@throws(KeyError, ...)``."""
    if len(errors) == 1 and callable(errors[0]) and not isinstance(errors[0], type):
        fn = errors[0]
        fn.__mock_throws__ = ()
        return fn

    declared: Tuple[Type[BaseException], ...] = tuple(errors)

    def mark(fn: Callable[..., Any]) -> Callable[..., Any]:
        fn.__mock_throws__ = declared  # type: ignore[attr-defined]
        return fn

    return mark

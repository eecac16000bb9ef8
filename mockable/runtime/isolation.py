"""
Isolation units for mocks of ``Isolated`` protocols.

An isolation unit serializes its interface methods through one per-instance
reentrant lock. Synchronous methods hold it for the whole call. Coroutine
methods are stepped through it: every step between two suspension points runs
inside the unit, and the unit is released while the coroutine is suspended, so
other callers can interleave at await points.

State accessors marked ``nonisolated`` never join the unit; they only take the
storage lock.
"""
from __future__ import annotations

import functools
import inspect
import threading
import types
from typing import Any, Callable, Coroutine, TypeVar

F = TypeVar("F", bound=Callable[..., Any])


class IsolationUnit:
    """Mixin holding the serialized execution context of one mock instance."""

    _isolation: threading.RLock

    def __init__(self) -> None:
        self._isolation = threading.RLock()


def nonisolated(fn: F) -> F:
    """Mark an accessor as callable without joining the isolation unit."""
    fn.__mock_nonisolated__ = True  # type: ignore[attr-defined]
    return fn


def is_nonisolated(fn: Any) -> bool:
    target = fn.fget if isinstance(fn, property) else fn
    return bool(getattr(target, "__mock_nonisolated__", False))


@types.coroutine
def _step_isolated(lock: threading.RLock, coro: Coroutine[Any, Any, Any]):
    send_value: Any = None
    error: BaseException | None = None
    while True:
        with lock:
            try:
                if error is None:
                    suspended = coro.send(send_value)
                else:
                    suspended = coro.throw(error)
            except StopIteration as stop:
                return stop.value
        send_value, error = None, None
        try:
            send_value = yield suspended
        except BaseException as exc:
            # delivered into the coroutine on the next step
            error = exc


def isolated(fn: F) -> F:
    """Run an interface method inside the owning instance's isolation unit."""
    if inspect.iscoroutinefunction(fn):

        @functools.wraps(fn)
        async def run_isolated_async(self, *args, **kwargs):
            return await _step_isolated(self._isolation, fn(self, *args, **kwargs))

        run_isolated_async.__mock_isolated__ = True  # type: ignore[attr-defined]
        return run_isolated_async  # type: ignore[return-value]

    @functools.wraps(fn)
    def run_isolated(self, *args, **kwargs):
        with self._isolation:
            return fn(self, *args, **kwargs)

    run_isolated.__mock_isolated__ = True  # type: ignore[attr-defined]
    return run_isolated  # type: ignore[return-value]

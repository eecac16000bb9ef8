"""
Mutual-exclusion handles used by thread-safe mocks.

Both handles own a value and expose exactly one operation, ``with_lock``,
which runs ``body(value)`` inside an exclusive critical section and returns
its result. Generated code picks ``Mutex`` behind a minimum-version check and
``LegacyLock`` everywhere else; the two are interchangeable.
"""
from __future__ import annotations

import _thread
import sys
import threading
from typing import Callable, Generic, Tuple, TypeVar

T = TypeVar("T")
R = TypeVar("R")

MUTEX_MIN_VERSION: Tuple[int, int] = (3, 13)


def mutex_available(version: Tuple[int, ...] | None = None) -> bool:
    current = tuple(version) if version is not None else sys.version_info[:2]
    return current >= MUTEX_MIN_VERSION


class LegacyLock(Generic[T]):
    """Portable lock: a ``threading.Lock`` guarding the owned value."""

    __slots__ = ("_value", "_lock")

    def __init__(self, value: T) -> None:
        self._value = value
        self._lock = threading.Lock()

    def with_lock(self, body: Callable[[T], R]) -> R:
        with self._lock:
            return body(self._value)


class Mutex(Generic[T]):
    """Low-overhead lock built directly on the interpreter's lock primitive."""

    __slots__ = ("_value", "_acquire", "_release")

    def __init__(self, value: T) -> None:
        lock = _thread.allocate_lock()
        self._value = value
        self._acquire = lock.acquire
        self._release = lock.release

    def with_lock(self, body: Callable[[T], R]) -> R:
        self._acquire()
        try:
            return body(self._value)
        finally:
            self._release()


def available(min_version: Tuple[int, ...]):
    """
    Class decorator marking a generated variant as requiring ``min_version``.

    The variant is only defined behind a matching ``sys.version_info`` check,
    so reaching this on an older interpreter means the gate was edited by hand.
    """
    required = tuple(min_version)

    def decorate(cls):
        if sys.version_info[: len(required)] < required:
            raise RuntimeError(
                f"{cls.__name__} requires Python {'.'.join(str(p) for p in required)} or newer"
            )
        cls.__mock_available__ = required
        return cls

    return decorate

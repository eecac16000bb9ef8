"""Runtime support imported by generated mock modules (as ``_mockable``)."""

from mockable.runtime.erased import Erased
from mockable.runtime.errors import MockFatalError, fatal_error, require_handler, unwrap
from mockable.runtime.isolation import IsolationUnit, is_nonisolated, isolated, nonisolated
from mockable.runtime.locking import MUTEX_MIN_VERSION, LegacyLock, Mutex, available, mutex_available
from mockable.runtime.markers import Isolated, ThreadSafe, mockable, throws
from mockable.runtime.overloads import dispatch_overload, overload_impl

__all__ = [
    "Erased",
    "MockFatalError",
    "fatal_error",
    "require_handler",
    "unwrap",
    "IsolationUnit",
    "isolated",
    "nonisolated",
    "is_nonisolated",
    "MUTEX_MIN_VERSION",
    "LegacyLock",
    "Mutex",
    "available",
    "mutex_available",
    "Isolated",
    "ThreadSafe",
    "mockable",
    "throws",
    "dispatch_overload",
    "overload_impl",
]

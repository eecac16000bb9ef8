"""
Runtime support used by generated mocks.
"""
from __future__ import annotations

import asyncio
import logging
import sys
import threading
from typing import Optional

import pytest

from mockable.runtime import (
    Erased,
    IsolationUnit,
    LegacyLock,
    MockFatalError,
    Mutex,
    available,
    is_nonisolated,
    isolated,
    mockable,
    mutex_available,
    nonisolated,
    require_handler,
    throws,
    unwrap,
)
from mockable.runtime.overloads import conforms


# ---------------------------------------------------------------
# Fatal signals
# ---------------------------------------------------------------
class _Owner:
    pass


def test_require_handler_names_owner_and_field(caplog):
    caplog.set_level(logging.CRITICAL, logger="mockable.runtime")
    with pytest.raises(MockFatalError) as exc:
        require_handler(_Owner(), "ping_handler", None)
    assert str(exc.value) == "_Owner.ping_handler is not set"
    assert "ping_handler is not set" in caplog.text


def test_fatal_error_is_not_an_exception():
    assert not issubclass(MockFatalError, Exception)
    with pytest.raises(MockFatalError):
        try:
            unwrap(None, "Svc", "_token")
        except Exception:  # code under test cannot swallow it
            pytest.fail("MockFatalError was caught as Exception")


def test_unwrap_returns_set_value():
    assert unwrap("x", "Svc", "_token") == "x"
    assert require_handler("Svc", "h", len) is len


# ---------------------------------------------------------------
# Erased
# ---------------------------------------------------------------
def test_downcast_with_matching_witness():
    assert Erased(5).downcast(int) == 5
    assert Erased([1]).downcast(list[int]) == [1]


def test_downcast_without_witness_is_unchecked():
    assert Erased("anything").downcast() == "anything"


def test_downcast_optional_none():
    assert Erased(None).downcast(int, optional=True) is None
    with pytest.raises(MockFatalError, match="returned NoneType, expected int"):
        Erased(None).downcast(int, owner="Svc", field="get_handler")


def test_downcast_mismatch_is_fatal():
    with pytest.raises(MockFatalError, match=r"Svc\.get_handler returned str, expected int"):
        Erased("1").downcast(int, owner="Svc", field="get_handler")


def test_downcast_non_runtime_witness_passes_through():
    assert Erased(3).downcast(Optional[int]) == 3


# ---------------------------------------------------------------
# Locks
# ---------------------------------------------------------------
@pytest.mark.parametrize("lock_type", [LegacyLock, Mutex])
def test_with_lock_runs_body_on_owned_value(lock_type):
    handle = lock_type([])
    assert handle.with_lock(lambda items: items.append(1) or len(items)) == 1


@pytest.mark.parametrize("lock_type", [LegacyLock, Mutex])
def test_with_lock_releases_on_error(lock_type):
    handle = lock_type(0)

    def boom(_):
        raise KeyError("x")

    with pytest.raises(KeyError):
        handle.with_lock(boom)
    assert handle.with_lock(lambda v: v + 1) == 1


@pytest.mark.parametrize("lock_type", [LegacyLock, Mutex])
def test_with_lock_is_exclusive(lock_type):
    handle = lock_type({"n": 0})

    def bump(state):
        current = state["n"]
        state["n"] = current + 1

    threads = [threading.Thread(target=lambda: [handle.with_lock(bump) for _ in range(200)]) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert handle.with_lock(lambda s: s["n"]) == 1600


def test_mutex_availability():
    assert not mutex_available((3, 12))
    assert mutex_available((3, 13))
    assert mutex_available() is (sys.version_info[:2] >= (3, 13))


def test_available_decorator_gates_on_version():
    @available((3,))
    class Ok:
        pass

    assert Ok.__mock_available__ == (3,)

    with pytest.raises(RuntimeError, match="requires Python 99.0 or newer"):

        @available((99, 0))
        class TooNew:
            pass


# ---------------------------------------------------------------
# Overload annotation checks
# ---------------------------------------------------------------
@pytest.mark.parametrize(
    "value,annotation,ok",
    [
        (True, "bool", True),
        (1, "bool", False),
        (1, "int", True),
        (None, "int | None", True),
        (None, "Optional[int]", True),
        ("a", "Union[int, str]", True),
        ("b", "Literal['a']", False),
        ([1], "list[int]", True),
        ((1,), "list[int]", False),
        (int, "type[int]", True),
        (len, "Callable[[str], int]", True),
        (object(), "Unknown", True),
        (object(), "Any", True),
        ("x", "'str'", True),
    ],
)
def test_conforms(value, annotation, ok):
    namespace = {"Any": __import__("typing").Any}
    assert conforms(value, annotation, namespace) is ok


# ---------------------------------------------------------------
# Isolation
# ---------------------------------------------------------------
class _Unit(IsolationUnit):
    def __init__(self) -> None:
        super().__init__()
        self.inside = []

    @isolated
    def sync(self) -> bool:
        # reentrant: the unit is held by this thread
        return self._isolation._is_owned()

    @isolated
    async def step(self, tag: str) -> str:
        self.inside.append(tag)
        await asyncio.sleep(0)
        return tag

    @nonisolated
    def peek(self) -> int:
        return len(self.inside)


def test_isolated_sync_runs_inside_the_unit():
    unit = _Unit()
    assert unit.sync() is True
    assert not unit._isolation._is_owned()


def test_isolated_async_releases_between_steps():
    unit = _Unit()

    async def main():
        return await asyncio.gather(unit.step("a"), unit.step("b"))

    assert asyncio.run(main()) == ["a", "b"]
    assert not unit._isolation._is_owned()


def test_isolated_async_propagates_errors():
    class _Failing(IsolationUnit):
        @isolated
        async def run(self) -> None:
            await asyncio.sleep(0)
            raise ValueError("bad")

    with pytest.raises(ValueError, match="bad"):
        asyncio.run(_Failing().run())


def test_nonisolated_marker():
    assert is_nonisolated(_Unit.peek)
    assert not is_nonisolated(_Unit.sync)
    assert is_nonisolated(property(nonisolated(lambda self: 1)))


# ---------------------------------------------------------------
# Markers
# ---------------------------------------------------------------
def test_mockable_marker_bare_and_with_options():
    @mockable
    class A:
        pass

    @mockable(force_portable_lock=True)
    class B:
        pass

    assert A.__mockable__ == {"force_portable_lock": False}
    assert B.__mockable__ == {"force_portable_lock": True}


def test_throws_marker_bare_and_with_errors():
    @throws
    def a():
        pass

    @throws(KeyError, ValueError)
    def b():
        pass

    assert a.__mock_throws__ == ()
    assert b.__mock_throws__ == (KeyError, ValueError)

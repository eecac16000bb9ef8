"""
Generated mocks at runtime: counters, argument logs, handlers and reset.
"""
from __future__ import annotations

import asyncio
import sys
import threading

import pytest

from mockable import MockFatalError

_SERVICE = """
from typing import Protocol
from mockable import mockable

@mockable
class UserService(Protocol):
    def fetch_user(self, id: int) -> str: ...
    def log(self, message: str) -> None: ...
    async def refresh(self, id: int) -> bool: ...
"""


# ---------------------------------------------------------------
# Methods
# ---------------------------------------------------------------
def test_non_void_without_handler_is_fatal_then_returns_handler_result(build_mocks):
    ns = build_mocks(_SERVICE)
    mock = ns["UserServiceMock"]()

    with pytest.raises(MockFatalError) as exc:
        mock.fetch_user(7)
    assert str(exc.value) == "UserServiceMock.fetch_user_handler is not set"
    assert exc.value.owner == "UserServiceMock"
    assert exc.value.field == "fetch_user_handler"

    mock.reset_mock()
    mock.fetch_user_handler = lambda id: "X"
    assert mock.fetch_user(7) == "X"
    assert mock.fetch_user_call_count == 1
    assert mock.fetch_user_call_args == [7]


def test_void_without_handler_is_silent(build_mocks):
    ns = build_mocks(_SERVICE)
    mock = ns["UserServiceMock"]()

    assert mock.log("hello") is None
    assert mock.log_call_count == 1
    assert mock.log_call_args == ["hello"]

    seen = []
    mock.log_handler = seen.append
    mock.log("again")
    assert seen == ["again"]


def test_async_method_awaits_handler(build_mocks):
    ns = build_mocks(_SERVICE)
    mock = ns["UserServiceMock"]()

    async def handler(id: int) -> bool:
        await asyncio.sleep(0)
        return id > 0

    mock.refresh_handler = handler
    assert asyncio.run(mock.refresh(3)) is True
    assert mock.refresh_call_args == [3]


def test_mock_subclasses_the_protocol(build_mocks):
    ns = build_mocks(_SERVICE)
    assert ns["UserService"] in ns["UserServiceMock"].__mro__


def test_reset_restores_every_field(build_mocks):
    ns = build_mocks(_SERVICE)
    mock = ns["UserServiceMock"]()
    mock.fetch_user_handler = lambda id: "X"
    mock.fetch_user(1)
    mock.log("x")

    mock.reset_mock()

    assert mock.fetch_user_call_count == 0
    assert mock.fetch_user_call_args == []
    assert mock.fetch_user_handler is None
    assert mock.log_call_count == 0
    assert mock.refresh_handler is None


# ---------------------------------------------------------------
# Overloads
# ---------------------------------------------------------------
_DEFAULTS = """
from typing import Protocol, overload
from mockable import mockable

@mockable
class Defaults(Protocol):
    @overload
    def set(self, value: bool, /, for_key: str) -> None: ...
    @overload
    def set(self, value: int, /, for_key: str) -> None: ...
    @overload
    def get(self, key: str) -> int: ...
    @overload
    def get(self, key: str, default: int) -> int: ...
"""


def test_overloads_dispatch_to_their_own_storage(build_mocks):
    ns = build_mocks(_DEFAULTS)
    mock = ns["DefaultsMock"]()

    mock.set(True, for_key="dark_mode")
    mock.set(3, "retries")

    assert mock.set_bool_string_call_args == [(True, "dark_mode")]
    assert mock.set_int_string_call_args == [(3, "retries")]
    assert mock.set_int_string_call_count == 1


def test_overloads_dispatch_by_arity(build_mocks):
    ns = build_mocks(_DEFAULTS)
    mock = ns["DefaultsMock"]()
    mock.get_string_handler = lambda key: 1
    mock.get_string_int_handler = lambda key, default: default

    assert mock.get("a") == 1
    assert mock.get("b", 5) == 5
    assert mock.get_string_call_args == ["a"]
    assert mock.get_string_int_call_args == [("b", 5)]


def test_no_matching_overload_is_fatal(build_mocks):
    ns = build_mocks(_DEFAULTS)
    mock = ns["DefaultsMock"]()
    with pytest.raises(MockFatalError, match=r"DefaultsMock\.set: no overload accepts \(str, str\)"):
        mock.set("yes", "key")


def test_overload_and_plain_method_keep_separate_storage(build_mocks):
    ns = build_mocks(
        """
        from typing import Protocol, overload
        from mockable import mockable

        @mockable
        class Store(Protocol):
            @overload
            def get(self, key: str) -> int: ...
            @overload
            def get(self, key: str, default: int) -> int: ...
            def get_string(self) -> int: ...
        """
    )
    mock = ns["StoreMock"]()
    mock.get_string_handler = lambda key: 1
    mock.get_string2_handler = lambda: 2

    assert mock.get("k") == 1
    assert mock.get_string() == 2
    assert mock.get_string_call_count == 1
    assert mock.get_string_call_args == ["k"]
    assert mock.get_string2_call_count == 1
    assert mock.get_string2_call_args == [()]


# ---------------------------------------------------------------
# Properties and subscripts
# ---------------------------------------------------------------
_SESSION = """
from typing import Final, Protocol
from mockable import mockable

@mockable
class Session(Protocol):
    @property
    def token(self) -> str: ...
    name: str
    region: Final[str]
    current: str | None

    def __getitem__(self, key: str) -> int: ...
    def __setitem__(self, key: str, value: int) -> None: ...
"""


@pytest.mark.parametrize("portable", [False, True])
@pytest.mark.parametrize("marker", ["", "ThreadSafe, "])
def test_properties_force_read_and_optional(build_mocks, marker, portable):
    source = _SESSION.replace("class Session(", f"class Session({marker}")
    source = source.replace("from mockable import mockable", "from mockable import ThreadSafe, mockable")
    ns = build_mocks(source, force_portable_lock=portable)
    mock = ns["SessionMock"]()

    with pytest.raises(MockFatalError, match=r"SessionMock\._token is not set"):
        mock.token
    mock._token = "abc"
    assert mock.token == "abc"

    mock.name = "alice"
    assert mock.name == "alice"

    assert mock.current is None
    mock.current = "x"
    assert mock.current == "x"

    mock.reset_mock()
    assert mock.current is None
    with pytest.raises(MockFatalError):
        mock.name


def test_subscript_get_and_set(build_mocks):
    ns = build_mocks(_SESSION)
    mock = ns["SessionMock"]()

    with pytest.raises(MockFatalError, match=r"SessionMock\.subscript_string_handler is not set"):
        mock["a"]

    mock.subscript_string_handler = len
    assert mock["abc"] == 3
    assert mock.subscript_string_call_args == ["a", "abc"]

    stored = {}
    mock.subscript_string_set_handler = stored.__setitem__
    mock["k"] = 9
    assert stored == {"k": 9}


def test_optional_subscript_returns_none_without_handler(build_mocks):
    ns = build_mocks(
        """
        from typing import Protocol
        from mockable import mockable

        @mockable
        class Cache(Protocol):
            def __getitem__(self, key: str) -> bytes | None: ...
        """
    )
    mock = ns["CacheMock"]()
    assert mock["missing"] is None
    assert mock.subscript_string_call_count == 1


# ---------------------------------------------------------------
# Generic erasure
# ---------------------------------------------------------------
_DECODER = """
from typing import Protocol, TypeVar
from mockable import mockable

T = TypeVar("T")

@mockable
class Decoder(Protocol):
    def decode(self, raw: str, as_type: type[T]) -> T: ...
    def decode_all(self, raw: str, item: type[T]) -> list[T]: ...
"""


def test_erased_generic_round_trip(build_mocks):
    ns = build_mocks(_DECODER)
    mock = ns["DecoderMock"]()
    mock.decode_handler = lambda raw, as_type: as_type(raw)

    assert mock.decode("12", int) == 12
    assert mock.decode("ok", str) == "ok"
    assert mock.decode_call_args == [("12", int), ("ok", str)]


def test_erased_generic_mismatch_is_fatal(build_mocks):
    ns = build_mocks(_DECODER)
    mock = ns["DecoderMock"]()
    mock.decode_handler = lambda raw, as_type: raw

    with pytest.raises(MockFatalError, match=r"DecoderMock\.decode_handler returned str, expected int"):
        mock.decode("12", int)

    mock.decode_all_handler = lambda raw, item: (1, 2)
    with pytest.raises(MockFatalError, match="expected list"):
        mock.decode_all("1,2", int)


def test_erased_return_is_checked_against_the_bound(build_mocks):
    ns = build_mocks(
        """
        from typing import Protocol, TypeVar
        from mockable import mockable

        N = TypeVar("N", bound=int)

        @mockable
        class Counter(Protocol):
            def next(self) -> N: ...
        """
    )
    mock = ns["CounterMock"]()
    mock.next_handler = lambda: 3
    assert mock.next() == 3

    mock.next_handler = lambda: "3"
    with pytest.raises(MockFatalError, match=r"CounterMock\.next_handler returned str, expected int"):
        mock.next()


# ---------------------------------------------------------------
# Regions
# ---------------------------------------------------------------
def test_region_members_exist_only_in_the_active_branch(build_mocks):
    ns = build_mocks(
        """
        import sys
        from typing import Protocol
        from mockable import mockable

        @mockable
        class Platform(Protocol):
            def common(self) -> None: ...
            if sys.platform == "win32":
                def registry(self) -> str: ...
            else:
                def environ(self, key: str) -> str: ...
        """
    )
    mock = ns["PlatformMock"]()
    active, inactive = ("registry", "environ") if sys.platform == "win32" else ("environ", "registry")

    assert hasattr(mock, f"{active}_call_count")
    assert not hasattr(mock, f"{inactive}_call_count")

    getattr(mock, f"{active}_call_args").append("x")
    mock.reset_mock()
    assert getattr(mock, f"{active}_call_args") == []


# ---------------------------------------------------------------
# Thread-safe and isolated shapes
# ---------------------------------------------------------------
_COUNTER = """
from typing import Protocol
from mockable import ThreadSafe, mockable

@mockable
class Counter(ThreadSafe, Protocol):
    def tick(self, n: int) -> None: ...
    def read(self) -> int: ...
"""


@pytest.mark.parametrize("portable", [False, True])
def test_concurrent_calls_lose_no_updates(build_mocks, portable):
    ns = build_mocks(_COUNTER, force_portable_lock=portable)
    mock = ns["CounterMock"]()
    start = threading.Barrier(100)

    def worker(i: int) -> None:
        start.wait()
        mock.tick(i)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(100)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert mock.tick_call_count == 100
    assert len(mock.tick_call_args) == 100
    assert sorted(mock.tick_call_args) == list(range(100))


def test_locked_handler_runs_outside_the_critical_section(build_mocks):
    ns = build_mocks(_COUNTER, force_portable_lock=True)
    mock = ns["CounterMock"]()
    # a handler that reads mock state would deadlock if it ran under the lock
    mock.read_handler = lambda: mock.read_call_count
    assert mock.read() == 1


def test_locked_reset_restores_every_field(build_mocks):
    ns = build_mocks(_COUNTER)
    mock = ns["CounterMock"]()
    mock.tick_handler = lambda n: None
    mock.tick(1)
    mock.reset_mock()
    assert mock.tick_call_count == 0
    assert mock.tick_call_args == []
    assert mock.tick_handler is None


def test_dual_emission_picks_lock_for_running_interpreter(build_mocks):
    ns = build_mocks(_COUNTER)
    mock = ns["CounterMock"]()
    expected = "Mutex" if sys.version_info >= (3, 13) else "LegacyLock"
    assert type(mock._storage).__name__ == expected


_INBOX = """
from typing import Protocol
from mockable import Isolated, mockable

@mockable(force_portable_lock=True)
class Inbox(Isolated, Protocol):
    async def fetch(self, id: int) -> str: ...
    def size(self) -> int: ...
"""


def test_isolated_unit_interleaves_at_await_points(build_mocks):
    ns = build_mocks(_INBOX)
    mock = ns["InboxMock"]()
    order = []

    async def handler(id: int) -> str:
        order.append(("start", id))
        await asyncio.sleep(0)
        order.append(("end", id))
        return f"m{id}"

    mock.fetch_handler = handler

    async def main():
        return await asyncio.gather(*(mock.fetch(i) for i in range(5)))

    assert asyncio.run(main()) == [f"m{i}" for i in range(5)]
    assert mock.fetch_call_count == 5
    assert sorted(mock.fetch_call_args) == list(range(5))
    # every call started before the first one resumed
    assert [kind for kind, _ in order[:5]] == ["start"] * 5


def test_isolated_sync_methods_and_accessors(build_mocks):
    ns = build_mocks(_INBOX)
    mock = ns["InboxMock"]()
    mock.size_handler = lambda: mock.size_call_count * 10
    assert mock.size() == 10
    mock.reset_mock()
    assert mock.size_call_count == 0

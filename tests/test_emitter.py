"""
Code emitter: layout of the generated declaration for each shape.
"""
from __future__ import annotations

import ast
import textwrap

from mockable.core.compiler import generate_mock, scan_source
from mockable.core.config import GeneratorOptions

_HEADER = """
import sys
from typing import Protocol, overload
from mockable import Isolated, ThreadSafe, mockable
"""


def _make_text(body: str, **options) -> str:
    source = _HEADER + textwrap.dedent(body)
    scanned = scan_source(source, "proto")
    result = generate_mock(
        scanned.declarations[0].node,
        GeneratorOptions(**options),
        module_type_vars=scanned.type_vars,
    )
    assert result.ok
    return result.text


_SERVICE = """
@mockable
class UserService(Protocol):
    def fetch_user(self, id: int) -> str: ...
    def log(self, message: str) -> None: ...
"""

_COUNTER = """
@mockable
class Counter(ThreadSafe, Protocol):
    def tick(self) -> None: ...
"""

_PLATFORM = """
@mockable
class Platform(Protocol):
    if sys.platform == "win32":
        def registry(self) -> str: ...
    else:
        def environ(self) -> str: ...
"""


def test_output_parses_and_is_wrapped_for_test_builds():
    text = _make_text(_SERVICE)
    ast.parse(text)
    assert text.startswith("if __debug__:\n    class UserServiceMock(UserService):\n")


def test_generation_is_idempotent():
    assert _make_text(_SERVICE) == _make_text(_SERVICE)
    assert _make_text(_COUNTER) == _make_text(_COUNTER)


def test_plain_fields_and_reset():
    text = _make_text(_SERVICE)
    for line in (
        "fetch_user_call_count: int",
        "fetch_user_call_args: list[int]",
        "fetch_user_handler: Callable[[int], str] | None",
        "log_handler: Callable[[str], None] | None",
        "def reset_mock(self) -> None:",
        "self.fetch_user_call_count = 0",
        "self.fetch_user_call_args = []",
        "self.log_handler = None",
    ):
        assert line in text, line
    assert '_mockable.require_handler(self, "fetch_user_handler", _handler)' in text


def test_locked_shape_is_dual_with_shared_body():
    text = _make_text(_COUNTER)
    ast.parse(text)
    assert "    if sys.version_info >= (3, 13):\n        @_mockable.available((3, 13))\n" in text
    assert "    else:\n        class CounterMock(Counter):" in text
    assert "self._storage = _mockable.Mutex(self._Storage())" in text
    assert "self._storage = _mockable.LegacyLock(self._Storage())" in text
    assert "self._storage.with_lock(self._Storage.reset)" in text

    # both variants come from one descriptor list and differ only in the lock type
    mutex_part, legacy_part = text.split("    else:\n")
    mutex_lines = mutex_part.splitlines()[3:]
    legacy_lines = legacy_part.replace("LegacyLock", "Mutex").splitlines()
    assert mutex_lines == legacy_lines


def test_force_portable_lock_emits_single_variant():
    text = _make_text(_COUNTER, force_portable_lock=True)
    assert "sys.version_info" not in text
    assert "Mutex" not in text
    assert text.count("class CounterMock(Counter):") == 1


def test_isolated_shape_decorations():
    text = _make_text(
        """
        @mockable
        class Inbox(Isolated, Protocol):
            async def fetch(self, id: int) -> str: ...
        """,
        force_portable_lock=True,
    )
    assert "class InboxMock(Inbox, _mockable.IsolationUnit):" in text
    assert "_mockable.IsolationUnit.__init__(self)" in text
    assert "@_mockable.isolated\n" in text
    assert "@_mockable.nonisolated\n" in text
    assert "return await _handler(id)" in text


def test_regions_are_mirrored_in_fields_members_and_reset():
    text = _make_text(_PLATFORM)
    assert text.count("if sys.platform == 'win32':") == 3
    assert text.count("else:") == 3


def test_overloads_get_private_implementations_and_dispatcher():
    text = _make_text(
        """
        @mockable
        class Defaults(Protocol):
            @overload
            def set(self, value: bool, /, for_key: str) -> None: ...
            @overload
            def set(self, value: int, /, for_key: str) -> None: ...
        """
    )
    assert '@_mockable.overload_impl("set", 0)\n' in text
    assert "def _set_bool_string(self, value: bool, /, for_key: str) -> None:" in text
    assert "def _set_int_string(self, value: int, /, for_key: str) -> None:" in text
    assert "def set(self, *args: Any, **kwargs: Any) -> Any:" in text
    assert "set_bool_string_handler: Callable[[bool, str], None] | None" in text


def test_associated_aliases_open_the_class_body():
    text = _make_text(
        """
        from typing import TypeVar

        Item = TypeVar("Item", default=str)

        @mockable
        class Queue(Protocol[Item]):
            def put(self, item: Item) -> None: ...
        """
    )
    assert "class QueueMock(Queue[str]):" in text
    assert "\n        Item = str\n" in text
    assert "def put(self, item: str) -> None:" in text

"""
Fatal signals raised by generated mocks.

A generated mock fails loudly when a test forgot to configure it: a non-void
member called without a handler, a forced property read before assignment,
or an erased result that does not match the typed call site. These are setup
bugs, not runtime states, so the signal derives from BaseException and is
never meant to be caught by the code under test.
"""
from __future__ import annotations

import logging
from typing import Any, NoReturn, Optional, TypeVar

_log = logging.getLogger("mockable.runtime")

T = TypeVar("T")


class MockFatalError(BaseException):
    """Unrecoverable misuse of a generated mock."""

    def __init__(self, message: str, *, owner: Optional[str] = None, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.owner = owner
        self.field = field


def owner_name(owner: Any) -> str:
    if owner is None:
        return "<mock>"
    if isinstance(owner, str):
        return owner
    if isinstance(owner, type):
        return owner.__name__
    return type(owner).__name__


def fatal_error(message: str, *, owner: Any = None, field: Optional[str] = None) -> NoReturn:
    name = owner_name(owner) if owner is not None else None
    _log.critical("Mock fatal error: %s", message)
    raise MockFatalError(message, owner=name, field=field)


def require_handler(owner: Any, field: str, handler: Optional[T]) -> T:
    """Return the configured handler or fail naming ``<Mock>.<field>``."""
    if handler is None:
        name = owner_name(owner)
        fatal_error(f"{name}.{field} is not set", owner=name, field=field)
    return handler


def unwrap(value: Optional[T], owner: Any, field: str) -> T:
    """Force-read a backing field; an unset field is fatal."""
    if value is None:
        name = owner_name(owner)
        fatal_error(f"{name}.{field} is not set", owner=name, field=field)
    return value

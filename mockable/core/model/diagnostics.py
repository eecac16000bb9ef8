from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class MockableErrorKind(str, Enum):
    NOT_A_PROTOCOL = "not_a_protocol"
    UNSUPPORTED_MEMBER = "unsupported_member"


NOT_A_PROTOCOL_MESSAGE = "@mockable can only be applied to protocols"


class Diagnostic(BaseModel):
    kind: MockableErrorKind
    message: str
    line: int = 0
    column: int = 0
    severity: str = "error"

    def format(self, path: str = "<source>") -> str:
        return f"{path}:{self.line}:{self.column}: {self.severity}: {self.message}"


class MockableError(ValueError):
    """Generation-time misuse of ``@mockable``; becomes a Diagnostic at the boundary."""

    def __init__(self, kind: MockableErrorKind, message: str, *, line: int = 0, column: int = 0) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.line = line
        self.column = column

    def to_diagnostic(self) -> Diagnostic:
        return Diagnostic(kind=self.kind, message=self.message, line=self.line, column=self.column)


class GenerationResult(BaseModel):
    """Either the generated peer declaration or the diagnostics explaining why not."""

    protocol: str
    mock_name: Optional[str] = None
    text: Optional[str] = None
    diagnostics: List[Diagnostic] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.text is not None and not self.diagnostics

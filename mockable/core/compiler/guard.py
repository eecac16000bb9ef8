from __future__ import annotations

import ast
import logging

from mockable.core.model import NOT_A_PROTOCOL_MESSAGE, MockableError, MockableErrorKind

_log = logging.getLogger("mockable.generator")

PROTOCOL_BASES = {"Protocol", "typing.Protocol", "typing_extensions.Protocol", "t.Protocol"}


def _base_head(base: ast.expr) -> str:
    # Protocol[T] subscripts name the same base
    if isinstance(base, ast.Subscript):
        base = base.value
    return ast.unparse(base)


def is_protocol(node: ast.AST) -> bool:
    if not isinstance(node, ast.ClassDef):
        return False
    return any(_base_head(base) in PROTOCOL_BASES for base in node.bases)


def guard_interface(node: ast.AST) -> ast.ClassDef:
    """
    Allow expansion only for protocol classes.

    Returns the node unchanged; anything else raises a ``NOT_A_PROTOCOL``
    error located at the decorated declaration.
    """
    if is_protocol(node):
        return node  # type: ignore[return-value]

    line = getattr(node, "lineno", 0)
    column = getattr(node, "col_offset", 0)
    _log.info("Rejected %s at %s:%s: not a protocol", type(node).__name__, line, column)
    raise MockableError(MockableErrorKind.NOT_A_PROTOCOL, NOT_A_PROTOCOL_MESSAGE, line=line, column=column)

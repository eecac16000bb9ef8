"""
Type token sanitizer.

Turns a declared type expression into a short identifier fragment used to
suffix the generated members of overloaded methods and subscripts:

    int                 -> Int
    str                 -> String
    int | None          -> IntOptional
    list[str]           -> ListString
    dict[str, int]      -> DictStringInt
    Callable[[int], str] -> CallableIntString
    typing.Sequence[T]  -> SequenceT

The mapping is deliberately lossy (``List[int]`` and ``list[int]`` both give
``ListInt``); the disambiguator only relies on it for members that actually
collide and falls back to structural comparison when tokens still clash.
"""
from __future__ import annotations

import ast
import re
from typing import Dict, Union

from mockable.core.model import TypeExpr

TOKEN_ALIASES: Dict[str, str] = {
    "str": "String",
    "NoneType": "None",
}

_NON_ALNUM = re.compile(r"[^0-9A-Za-z]")
_OPTIONAL_HEADS = {"Optional"}
_UNION_HEADS = {"Union"}


def _capitalize(token: str) -> str:
    token = _NON_ALNUM.sub("", token)
    if not token:
        return ""
    return token[0].upper() + token[1:]


def _name_token(name: str) -> str:
    return _capitalize(TOKEN_ALIASES.get(name, name))


def _elements(node: ast.expr) -> list:
    if isinstance(node, (ast.Tuple, ast.List)):
        return list(node.elts)
    return [node]


def _is_none(node: ast.expr) -> bool:
    return isinstance(node, ast.Constant) and node.value is None


def _union_token(parts: list) -> str:
    has_none = any(_is_none(p) for p in parts)
    rest = [p for p in parts if not _is_none(p)]
    token = "Or".join(t for t in (_token(p) for p in rest) if t)
    return token + "Optional" if has_none else token


def _flatten_union(node: ast.expr) -> list:
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return _flatten_union(node.left) + _flatten_union(node.right)
    return [node]


def _token(node: ast.expr) -> str:
    if isinstance(node, ast.Name):
        return _name_token(node.id)

    if isinstance(node, ast.Attribute):
        return _name_token(node.attr)

    if isinstance(node, ast.Constant):
        if node.value is None:
            return "None"
        if node.value is Ellipsis:
            return ""
        if isinstance(node.value, str):
            try:
                inner = ast.parse(node.value, mode="eval").body
            except SyntaxError:
                return _capitalize(node.value)
            return _token(inner)
        return _capitalize(str(node.value))

    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return _union_token(_flatten_union(node))

    if isinstance(node, (ast.List, ast.Tuple)):
        return "".join(_token(e) for e in node.elts)

    if isinstance(node, ast.Subscript):
        head = node.value.attr if isinstance(node.value, ast.Attribute) else getattr(node.value, "id", "")
        args = _elements(node.slice)
        if head in _OPTIONAL_HEADS:
            return _token(args[0]) + "Optional"
        if head in _UNION_HEADS:
            return _union_token(args)
        return _token(node.value) + "".join(_token(a) for a in args)

    return _capitalize(ast.unparse(node))


def sanitize_type(expr: Union[TypeExpr, ast.expr, str, None]) -> str:
    """Short identifier fragment for ``expr``; an absent type sanitizes to ``Any``."""
    if expr is None:
        return "Any"
    if isinstance(expr, TypeExpr):
        node = expr.node
    elif isinstance(expr, str):
        node = ast.parse(expr, mode="eval").body
    else:
        node = expr
    return _token(node)


_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def snake_case(token: str) -> str:
    """``BoolString`` -> ``bool_string``; ``HTTPClient`` -> ``http_client``."""
    return _CAMEL_BOUNDARY.sub("_", token).lower()

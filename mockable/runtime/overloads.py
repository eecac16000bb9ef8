"""
Runtime dispatch for overloaded mock members.

A class can only hold one ``def`` per name, so each ``@overload`` of a
protocol member becomes a private implementation tagged with
``overload_impl(<public name>, <order>)`` and the public name becomes a thin
dispatcher. Dispatch binds the call against each implementation's signature
and checks the arguments against its annotations; the first match in
declaration order wins, which is how type checkers resolve overlapping
overloads too.

Annotations are checked shallowly: the origin class of a parameterized
generic, unions, ``Optional``, ``Literal``, ``Callable`` and ``type[...]``.
Names that cannot be resolved in the mock's module, type variables and
non-runtime-checkable types accept any value.
"""
from __future__ import annotations

import ast
import builtins
import inspect
import threading
import weakref
from typing import Any, Callable, Dict, Mapping, Tuple, TypeVar

from mockable.runtime.errors import fatal_error

F = TypeVar("F", bound=Callable[..., Any])

_UNKNOWN = object()

_TABLES: "weakref.WeakKeyDictionary[type, Dict[str, Tuple[Callable[..., Any], ...]]]" = weakref.WeakKeyDictionary()
_TABLES_LOCK = threading.Lock()


def overload_impl(name: str, order: int) -> Callable[[F], F]:
    def decorate(fn: F) -> F:
        fn.__mock_overload__ = (name, order)  # type: ignore[attr-defined]
        return fn

    return decorate


def implementations(cls: type, name: str) -> Tuple[Callable[..., Any], ...]:
    """Tagged implementations of ``name`` on ``cls``, in declaration order."""
    with _TABLES_LOCK:
        per_class = _TABLES.setdefault(cls, {})
        found = per_class.get(name)
        if found is None:
            entries: Dict[str, Tuple[int, Callable[..., Any]]] = {}
            for klass in reversed(cls.__mro__):
                for attr, value in vars(klass).items():
                    tag = getattr(value, "__mock_overload__", None)
                    if tag and tag[0] == name:
                        entries[attr] = (tag[1], value)
            found = tuple(fn for _, fn in sorted(entries.values(), key=lambda e: e[0]))
            per_class[name] = found
    return found


def dispatch_overload(instance: Any, name: str, args: tuple, kwargs: Mapping[str, Any]) -> Any:
    for fn in implementations(type(instance), name):
        if accepts(fn, instance, args, kwargs):
            return fn(instance, *args, **kwargs)
    owner = type(instance).__name__
    shown = ", ".join([type(a).__name__ for a in args] + [f"{k}={type(v).__name__}" for k, v in kwargs.items()])
    fatal_error(f"{owner}.{name}: no overload accepts ({shown})", owner=owner, field=name)


def accepts(fn: Callable[..., Any], instance: Any, args: tuple, kwargs: Mapping[str, Any]) -> bool:
    target = inspect.unwrap(fn)
    signature = inspect.signature(target)
    try:
        bound = signature.bind(instance, *args, **kwargs)
    except TypeError:
        return False

    hints = getattr(target, "__annotations__", {})
    namespace = getattr(target, "__globals__", {})
    for pname, value in bound.arguments.items():
        annotation = hints.get(pname)
        if annotation is None:
            continue
        kind = signature.parameters[pname].kind
        if kind is inspect.Parameter.VAR_POSITIONAL:
            values = list(value)
        elif kind is inspect.Parameter.VAR_KEYWORD:
            values = list(value.values())
        else:
            values = [value]
        if not all(conforms(v, annotation, namespace) for v in values):
            return False
    return True


# ---------------------------------------------------------------
# Shallow annotation checks
# ---------------------------------------------------------------
def conforms(value: Any, annotation: Any, namespace: Mapping[str, Any]) -> bool:
    if isinstance(annotation, str):
        try:
            node = ast.parse(annotation, mode="eval").body
        except SyntaxError:
            return True
        return _conforms_node(value, node, namespace)
    return _conforms_object(value, annotation)


def _subscript_args(node: ast.Subscript) -> list:
    inner = node.slice
    if isinstance(inner, ast.Tuple):
        return list(inner.elts)
    return [inner]


def _tail(node: ast.expr) -> str:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    return ""


def _conforms_node(value: Any, node: ast.expr, namespace: Mapping[str, Any]) -> bool:
    if isinstance(node, ast.Constant):
        if node.value is None:
            return value is None
        if isinstance(node.value, str):
            return conforms(value, node.value, namespace)
        return True

    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return _conforms_node(value, node.left, namespace) or _conforms_node(value, node.right, namespace)

    if isinstance(node, (ast.Name, ast.Attribute)):
        return _conforms_object(value, _resolve(node, namespace))

    if isinstance(node, ast.Subscript):
        origin = _tail(node.value)
        args = _subscript_args(node)
        if origin == "Optional":
            return value is None or _conforms_node(value, args[0], namespace)
        if origin == "Union":
            return any(_conforms_node(value, a, namespace) for a in args)
        if origin == "Literal":
            return any(_literal(a) == value and type(_literal(a)) is type(value) for a in args)
        if origin == "Annotated":
            return _conforms_node(value, args[0], namespace)
        if origin in ("type", "Type"):
            return isinstance(value, type)
        if origin == "Callable":
            return callable(value)
        return _conforms_object(value, _resolve(node.value, namespace))

    return True


def _literal(node: ast.expr) -> Any:
    try:
        return ast.literal_eval(node)
    except ValueError:
        return _UNKNOWN


def _resolve(node: ast.expr, namespace: Mapping[str, Any]) -> Any:
    if isinstance(node, ast.Name):
        if node.id in namespace:
            return namespace[node.id]
        return getattr(builtins, node.id, _UNKNOWN)
    if isinstance(node, ast.Attribute):
        base = _resolve(node.value, namespace)
        if base is _UNKNOWN:
            return _UNKNOWN
        return getattr(base, node.attr, _UNKNOWN)
    return _UNKNOWN


def _conforms_object(value: Any, target: Any) -> bool:
    if target is _UNKNOWN or target is object or isinstance(target, TypeVar):
        return True
    try:
        return isinstance(value, target)
    except TypeError:
        # Any, non-runtime-checkable protocols and similar forms accept everything
        return True

"""
Member model extractor.

Walks a protocol ``ClassDef`` in source order and produces the normalized
``InterfaceDeclaration`` the rest of the pipeline works on:

- methods (``def`` / ``async def``), with ``@overload`` declarations kept as
  separate members and their runtime implementation dropped;
- properties (``@property`` with an optional setter, bare annotations,
  ``Final`` annotations);
- subscripts (``__getitem__`` paired with a matching ``__setitem__``);
- ``if``/``elif``/``else`` regions, kept as ``ConditionalBlock`` nodes around
  the members they enclose;
- associated types (class type parameters) and capability markers.

Types that mention a method's own generic parameters are flagged as generic
references here; associated types are left alone and bound later.
"""
from __future__ import annotations

import ast
import logging
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from mockable.core.model import (
    ANY,
    AccessorSet,
    AccessTier,
    AssociatedTypeDeclaration,
    CapabilityMarker,
    ConditionalBlock,
    ConditionalClause,
    InterfaceDeclaration,
    MemberNode,
    MethodDeclaration,
    MockableError,
    MockableErrorKind,
    Parameter,
    ParameterKind,
    PropertyDeclaration,
    SubscriptDeclaration,
    TypeExpr,
)

_log = logging.getLogger("mockable.extractor")

MARKER_BASES: Dict[str, CapabilityMarker] = {
    "ThreadSafe": CapabilityMarker.THREAD_SAFE_VALUE,
    "Isolated": CapabilityMarker.ISOLATED_UNIT,
}

_SKIPPED_DUNDERS = {"__init__", "__new__", "__init_subclass__", "__class_getitem__", "__subclasshook__"}
_GENERIC_BASES = {"Protocol", "Generic"}


@dataclass(frozen=True)
class ModuleTypeVar:
    """A module-level ``X = TypeVar("X", bound=..., default=...)`` declaration."""

    name: str
    bound: Optional[TypeExpr] = None
    default: Optional[TypeExpr] = None


# ---------------------------------------------------------------
# Small AST helpers
# ---------------------------------------------------------------
def _tail(node: ast.expr) -> str:
    if isinstance(node, ast.Call):
        node = node.func
    if isinstance(node, ast.Subscript):
        node = node.value
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    return ""


def _decorator_names(fn: ast.AST) -> List[str]:
    names = []
    for dec in getattr(fn, "decorator_list", []):
        target = dec.func if isinstance(dec, ast.Call) else dec
        names.append(ast.unparse(target))
    return names


def _references(node: Optional[ast.AST], names: Iterable[str]) -> bool:
    wanted = set(names)
    if node is None or not wanted:
        return False
    for child in ast.walk(node):
        if isinstance(child, ast.Name) and child.id in wanted:
            return True
        if isinstance(child, ast.Constant) and isinstance(child.value, str):
            try:
                inner = ast.parse(child.value, mode="eval")
            except SyntaxError:
                continue
            if _references(inner, wanted):
                return True
    return False


def _referenced_in_order(nodes: Sequence[Optional[ast.AST]], candidates: Set[str]) -> List[str]:
    found: List[str] = []
    for node in nodes:
        if node is None:
            continue
        for child in ast.walk(node):
            if isinstance(child, ast.Name) and child.id in candidates and child.id not in found:
                found.append(child.id)
    return found


def _type_param_names(node: ast.AST) -> List[str]:
    return [tp.name for tp in getattr(node, "type_params", None) or []]


def _type_params_text(node: ast.AST) -> str:
    params = getattr(node, "type_params", None) or []
    if not params:
        return ""
    return "[" + ", ".join(ast.unparse(tp) for tp in params) + "]"


def _type_expr(node: Optional[ast.expr]) -> Optional[TypeExpr]:
    return TypeExpr.from_node(node) if node is not None else None


# ---------------------------------------------------------------
# Class-level facts
# ---------------------------------------------------------------
def extract_markers(node: ast.ClassDef) -> frozenset:
    found = {MARKER_BASES[_tail(base)] for base in node.bases if _tail(base) in MARKER_BASES}
    if len(found) > 1:
        # Isolated already implies ThreadSafe
        _log.debug("%s declares both capability markers; using Isolated", node.name)
        found = {CapabilityMarker.ISOLATED_UNIT}
    return frozenset(found)


def extract_associated_types(
    node: ast.ClassDef, module_type_vars: Mapping[str, ModuleTypeVar]
) -> Tuple[AssociatedTypeDeclaration, ...]:
    out: List[AssociatedTypeDeclaration] = []
    seen: Set[str] = set()

    for tp in getattr(node, "type_params", None) or []:
        out.append(
            AssociatedTypeDeclaration(
                name=tp.name,
                default=_type_expr(getattr(tp, "default_value", None)),
                bound=_type_expr(getattr(tp, "bound", None)),
            )
        )
        seen.add(tp.name)

    for base in node.bases:
        if not isinstance(base, ast.Subscript) or _tail(base.value) not in _GENERIC_BASES:
            continue
        args = base.slice.elts if isinstance(base.slice, ast.Tuple) else [base.slice]
        for arg in args:
            if isinstance(arg, ast.Name) and arg.id in module_type_vars and arg.id not in seen:
                tv = module_type_vars[arg.id]
                out.append(AssociatedTypeDeclaration(name=tv.name, default=tv.default, bound=tv.bound))
                seen.add(arg.id)

    return tuple(out)


def _access_tier(name: str) -> AccessTier:
    return AccessTier.MODULE_PRIVATE if name.startswith("_") else AccessTier.PUBLIC


def _overloaded_names(statements: Sequence[ast.stmt]) -> Set[str]:
    names: Set[str] = set()
    for stmt in statements:
        if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
            if any(n.rsplit(".", 1)[-1] == "overload" for n in _decorator_names(stmt)):
                names.add(stmt.name)
        elif isinstance(stmt, ast.If):
            names |= _overloaded_names(stmt.body)
            names |= _overloaded_names(stmt.orelse)
    return names


# ---------------------------------------------------------------
# Body walker
# ---------------------------------------------------------------
class _BodyWalker:
    def __init__(
        self,
        interface: str,
        free_type_vars: Set[str],
        overloaded: Set[str],
        bounds: Optional[Mapping[str, TypeExpr]] = None,
    ) -> None:
        self.interface = interface
        self.free_type_vars = free_type_vars
        self.overloaded = overloaded
        self.bounds = dict(bounds or {})

    def _unsupported(self, node: ast.AST, why: str) -> MockableError:
        return MockableError(
            MockableErrorKind.UNSUPPORTED_MEMBER,
            f"{self.interface}: unsupported member: {why}",
            line=getattr(node, "lineno", 0),
            column=getattr(node, "col_offset", 0),
        )

    def walk(self, statements: Sequence[ast.stmt]) -> Tuple[MemberNode, ...]:
        items: List[MemberNode] = []
        properties: Dict[str, int] = {}
        getters: List[int] = []

        for stmt in statements:
            if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
                self._function(stmt, items, properties, getters)
            elif isinstance(stmt, ast.AnnAssign):
                prop = self._annotated(stmt)
                if prop is not None:
                    items.append(prop)
            elif isinstance(stmt, ast.If):
                block = self._conditional(stmt)
                if block is not None:
                    items.append(block)
            elif isinstance(stmt, ast.Pass) or (isinstance(stmt, ast.Expr) and isinstance(stmt.value, ast.Constant)):
                continue
            else:
                _log.debug("%s: skipping %s at line %s", self.interface, type(stmt).__name__, stmt.lineno)
        return tuple(items)

    # -- functions ------------------------------------------------
    def _function(
        self,
        fn: ast.FunctionDef,
        items: List[MemberNode],
        properties: Dict[str, int],
        getters: List[int],
    ) -> None:
        decorators = _decorator_names(fn)
        tails = {d.rsplit(".", 1)[-1] for d in decorators}

        if tails & {"staticmethod", "classmethod"}:
            raise self._unsupported(fn, f"{fn.name} is a static or class method")
        if fn.name in _SKIPPED_DUNDERS:
            _log.debug("%s: skipping %s", self.interface, fn.name)
            return
        if f"{fn.name}.deleter" in decorators:
            return

        if f"{fn.name}.setter" in decorators:
            index = properties.get(fn.name)
            if index is None:
                raise self._unsupported(fn, f"setter for {fn.name} without a getter in the same block")
            items[index] = replace(items[index], accessors=AccessorSet.GET_AND_SET)  # type: ignore[type-var]
            return

        if tails & {"property", "cached_property"}:
            prop_type = TypeExpr.from_node(fn.returns) if fn.returns is not None else ANY
            properties[fn.name] = len(items)
            items.append(
                PropertyDeclaration(
                    name=fn.name,
                    type=prop_type,
                    accessors=AccessorSet.GET_ONLY,
                    optional=prop_type.is_optional,
                    line=fn.lineno,
                )
            )
            return

        if fn.name in self.overloaded and "overload" not in tails:
            _log.debug("%s: dropping implementation of overloaded %s", self.interface, fn.name)
            return

        if fn.name == "__getitem__":
            getters.append(len(items))
            items.append(self._subscript(fn))
            return

        if fn.name == "__setitem__":
            self._pair_setter(fn, items, getters)
            return

        items.append(self._method(fn, throws="throws" in tails))

    def _generic_names(self, fn: ast.FunctionDef) -> List[str]:
        own = _type_param_names(fn)
        a = fn.args
        annotations = [p.annotation for p in a.posonlyargs + a.args + a.kwonlyargs]
        annotations += [a.vararg.annotation if a.vararg else None, a.kwarg.annotation if a.kwarg else None, fn.returns]
        free = _referenced_in_order(annotations, self.free_type_vars - set(own))
        return own + free

    def _generic_bounds(self, fn: ast.FunctionDef, generic_names: Sequence[str]) -> Tuple[Tuple[str, TypeExpr], ...]:
        own = {tp.name: getattr(tp, "bound", None) for tp in getattr(fn, "type_params", None) or []}
        out: List[Tuple[str, TypeExpr]] = []
        for name in generic_names:
            if name in own:
                if own[name] is not None:
                    out.append((name, TypeExpr.from_node(own[name])))
            elif name in self.bounds:
                out.append((name, self.bounds[name]))
        return tuple(out)

    def _parameters(self, fn: ast.FunctionDef, generic_names: Sequence[str]) -> Tuple[Parameter, ...]:
        a = fn.args
        positional = list(a.posonlyargs) + list(a.args)
        defaults: List[Optional[ast.expr]] = [None] * (len(positional) - len(a.defaults)) + list(a.defaults)
        out: List[Parameter] = []

        def param(arg: ast.arg, kind: ParameterKind, default: Optional[ast.expr]) -> Parameter:
            return Parameter(
                name=arg.arg,
                kind=kind,
                annotation=_type_expr(arg.annotation),
                default=ast.unparse(default) if default is not None else None,
                generic_reference=_references(arg.annotation, generic_names),
            )

        for i, (arg, default) in enumerate(zip(positional, defaults)):
            if i == 0:
                continue  # self
            kind = ParameterKind.POSITIONAL_ONLY if i < len(a.posonlyargs) else ParameterKind.POSITIONAL_OR_KEYWORD
            out.append(param(arg, kind, default))
        if a.vararg is not None:
            out.append(param(a.vararg, ParameterKind.VAR_POSITIONAL, None))
        for arg, default in zip(a.kwonlyargs, a.kw_defaults):
            out.append(param(arg, ParameterKind.KEYWORD_ONLY, default))
        if a.kwarg is not None:
            out.append(param(a.kwarg, ParameterKind.VAR_KEYWORD, None))
        return tuple(out)

    def _method(self, fn: ast.FunctionDef, throws: bool) -> MethodDeclaration:
        generic_names = self._generic_names(fn)
        if fn.returns is None:
            return_type: Optional[TypeExpr] = ANY
        elif isinstance(fn.returns, ast.Constant) and fn.returns.value is None:
            return_type = None
        else:
            return_type = TypeExpr.from_node(fn.returns)
        return MethodDeclaration(
            name=fn.name,
            parameters=self._parameters(fn, generic_names),
            return_type=return_type,
            may_throw=throws,
            may_wait=isinstance(fn, ast.AsyncFunctionDef),
            generic_names=tuple(generic_names),
            type_params=_type_params_text(fn),
            return_generic=_references(fn.returns, generic_names),
            generic_bounds=self._generic_bounds(fn, generic_names),
            line=fn.lineno,
        )

    # -- subscripts -----------------------------------------------
    def _subscript(self, fn: ast.FunctionDef) -> SubscriptDeclaration:
        generic_names = self._generic_names(fn)
        index = self._parameters(fn, generic_names)
        if not index:
            raise self._unsupported(fn, "__getitem__ without an index parameter")
        element = TypeExpr.from_node(fn.returns) if fn.returns is not None else ANY
        return SubscriptDeclaration(
            parameters=index,
            element_type=element,
            accessors=AccessorSet.GET_ONLY,
            generic_names=tuple(generic_names),
            return_generic=_references(fn.returns, generic_names),
            generic_bounds=self._generic_bounds(fn, generic_names),
            line=fn.lineno,
        )

    def _pair_setter(
        self, fn: ast.FunctionDef, items: List[MemberNode], getters: List[int]
    ) -> None:
        params = self._parameters(fn, self._generic_names(fn))
        if len(params) < 2:
            raise self._unsupported(fn, "__setitem__ needs an index and a value parameter")
        key, value = params[:-1], params[-1]
        key_shape = [p.declared_type.canonical for p in key]
        for index in reversed(getters):
            current = items[index]
            if not isinstance(current, SubscriptDeclaration) or current.accessors is AccessorSet.GET_AND_SET:
                continue
            if [p.declared_type.canonical for p in current.parameters] == key_shape:
                items[index] = replace(current, accessors=AccessorSet.GET_AND_SET, value_name=value.name)
                return
        raise self._unsupported(fn, "__setitem__ without a matching __getitem__ in the same block")

    # -- annotations and regions ----------------------------------
    def _annotated(self, stmt: ast.AnnAssign) -> Optional[PropertyDeclaration]:
        if not isinstance(stmt.target, ast.Name):
            return None
        head = _tail(stmt.annotation)
        if head == "ClassVar":
            return None
        accessors = AccessorSet.GET_AND_SET
        annotation = stmt.annotation
        if head == "Final":
            if not isinstance(annotation, ast.Subscript):
                _log.debug("%s: skipping untyped Final %s", self.interface, stmt.target.id)
                return None
            annotation = annotation.slice
            accessors = AccessorSet.GET_ONLY
        prop_type = TypeExpr.from_node(annotation)
        return PropertyDeclaration(
            name=stmt.target.id,
            type=prop_type,
            accessors=accessors,
            optional=prop_type.is_optional,
            line=stmt.lineno,
        )

    def _conditional(self, stmt: ast.If) -> Optional[ConditionalBlock]:
        clauses: List[ConditionalClause] = []
        current = stmt
        while True:
            clauses.append(ConditionalClause(ast.unparse(current.test), self.walk(current.body)))
            orelse = current.orelse
            if len(orelse) == 1 and isinstance(orelse[0], ast.If):
                current = orelse[0]
                continue
            if orelse:
                clauses.append(ConditionalClause(None, self.walk(orelse)))
            break
        if not any(clause.body for clause in clauses):
            return None
        return ConditionalBlock(tuple(clauses))


# ---------------------------------------------------------------
# Public entrypoint
# ---------------------------------------------------------------
def extract_interface(
    node: ast.ClassDef,
    module_type_vars: Optional[Mapping[str, ModuleTypeVar]] = None,
) -> InterfaceDeclaration:
    type_vars = dict(module_type_vars or {})
    associated = extract_associated_types(node, type_vars)
    associated_names = {a.name for a in associated}

    walker = _BodyWalker(
        interface=node.name,
        free_type_vars={name for name in type_vars if name not in associated_names},
        overloaded=_overloaded_names(node.body),
        bounds={name: tv.bound for name, tv in type_vars.items() if tv.bound is not None},
    )
    body = walker.walk(node.body)

    interface = InterfaceDeclaration(
        name=node.name,
        body=body,
        access=_access_tier(node.name),
        markers=extract_markers(node),
        associated_types=associated,
        line=node.lineno,
        column=node.col_offset,
    )
    _log.debug(
        "Extracted %s: %d members, markers=%s, associated=%s",
        node.name,
        len(interface.members()),
        sorted(m.value for m in interface.markers),
        [a.name for a in associated],
    )
    return interface

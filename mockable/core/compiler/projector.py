"""
Type projector.

Computes, per member, the types the generated code uses for its argument log
and handler slots:

- a slot that mentions one of the member's own generic parameters is erased
  to ``Any`` in storage and handler positions (structurally, so ``list[T]``
  becomes ``list[Any]``), while the public signature keeps ``T``; the return
  value is recovered through ``Erased(...).downcast(witness)``;
- a slot that names an associated type is rewritten to its alias (the
  declared default, else ``Any``) everywhere, public signature included;
- everything else is used verbatim.
"""
from __future__ import annotations

import ast
import copy
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

from mockable.core.model import (
    InterfaceDeclaration,
    MemberDeclaration,
    MethodDeclaration,
    Parameter,
    ParameterKind,
    PropertyDeclaration,
    SubscriptDeclaration,
    TypeExpr,
)

ANY_NAME = "Any"

# generic containers erased argument-by-argument instead of as a whole
_STRUCTURAL = {
    "list", "List", "dict", "Dict", "set", "Set", "frozenset", "FrozenSet", "tuple", "Tuple",
    "Sequence", "MutableSequence", "Mapping", "MutableMapping", "Iterable", "Iterator",
    "Collection", "AbstractSet", "Awaitable", "Coroutine", "AsyncIterator", "AsyncIterable",
    "Optional", "Union", "Callable", "type", "Type",
}

# runtime-checkable witnesses for erased container returns
_BUILTIN_ORIGINS = {
    "list": "list", "List": "list",
    "dict": "dict", "Dict": "dict",
    "set": "set", "Set": "set",
    "frozenset": "frozenset", "FrozenSet": "frozenset",
    "tuple": "tuple", "Tuple": "tuple",
}


@dataclass(frozen=True)
class ProjectedParameter:
    name: str
    kind: ParameterKind
    public: Optional[str]
    storage: str
    default: Optional[str] = None


@dataclass(frozen=True)
class ProjectedMember:
    parameters: Tuple[ProjectedParameter, ...]
    public_return: Optional[str]
    storage_return: str
    args_entry_type: str
    args_entry_expr: str
    handler_args: str
    handler_type: str
    set_handler_type: Optional[str] = None
    erased_return: bool = False
    witness: Optional[str] = None
    witness_optional: bool = False


# ---------------------------------------------------------------
# AST rewriting
# ---------------------------------------------------------------
class _SubstituteAssociated(ast.NodeTransformer):
    def __init__(self, aliases: Dict[str, ast.expr]) -> None:
        self.aliases = aliases

    def visit_Name(self, node: ast.Name) -> ast.expr:
        alias = self.aliases.get(node.id)
        if alias is None:
            return node
        return copy.deepcopy(alias)


def _tail(node: ast.expr) -> str:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    return ""


def _mentions(node: ast.AST, names: Iterable[str]) -> bool:
    wanted = set(names)
    for child in ast.walk(node):
        if isinstance(child, ast.Name) and child.id in wanted:
            return True
        if isinstance(child, ast.Constant) and isinstance(child.value, str) and child.value.strip() in wanted:
            return True
    return False


def erase_generics(node: ast.expr, generic_names: Sequence[str]) -> ast.expr:
    """Replace generic references with ``Any``, keeping known container shapes."""
    if not generic_names or not _mentions(node, generic_names):
        return node
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return ast.BinOp(
            left=erase_generics(node.left, generic_names),
            op=ast.BitOr(),
            right=erase_generics(node.right, generic_names),
        )
    if isinstance(node, (ast.List, ast.Tuple)):
        return type(node)(elts=[erase_generics(e, generic_names) for e in node.elts], ctx=ast.Load())
    if isinstance(node, ast.Subscript) and _tail(node.value) in _STRUCTURAL:
        return ast.Subscript(
            value=copy.deepcopy(node.value),
            slice=erase_generics(node.slice, generic_names),
            ctx=ast.Load(),
        )
    return ast.Name(id=ANY_NAME, ctx=ast.Load())


# ---------------------------------------------------------------
# Projector
# ---------------------------------------------------------------
class TypeProjector:
    def __init__(self, interface: InterfaceDeclaration) -> None:
        self.aliases: Dict[str, ast.expr] = {a.name: a.alias.node for a in interface.associated_types}

    def bind(self, expr: Optional[TypeExpr], shadowed: Sequence[str] = ()) -> Optional[ast.expr]:
        """Associated-type substitution, shared by public and storage positions."""
        if expr is None:
            return None
        aliases = {k: v for k, v in self.aliases.items() if k not in shadowed}
        node = copy.deepcopy(expr.node)
        if not aliases:
            return node
        return ast.fix_missing_locations(_SubstituteAssociated(aliases).visit(node))

    def public_text(self, expr: Optional[TypeExpr], shadowed: Sequence[str] = ()) -> Optional[str]:
        node = self.bind(expr, shadowed)
        return ast.unparse(node) if node is not None else None

    def _storage_text(self, expr: Optional[TypeExpr], generics: Sequence[str], erase: bool) -> str:
        node = self.bind(expr, generics)
        if node is None:
            return ANY_NAME
        if erase:
            node = erase_generics(node, generics)
        return ast.unparse(node)

    def _parameter(self, param: Parameter, generics: Sequence[str]) -> ProjectedParameter:
        storage = self._storage_text(param.annotation, generics, param.generic_reference)
        if param.kind is ParameterKind.VAR_POSITIONAL:
            storage = f"tuple[{storage}, ...]"
        elif param.kind is ParameterKind.VAR_KEYWORD:
            storage = f"dict[str, {storage}]"
        return ProjectedParameter(
            name=param.name,
            kind=param.kind,
            public=self.public_text(param.annotation, generics),
            storage=storage,
            default=param.default,
        )

    def _witness(
        self,
        ret: Optional[ast.expr],
        params: Sequence[Parameter],
        generics: Sequence[str],
        bounds: Optional[Mapping[str, TypeExpr]] = None,
    ) -> Tuple[Optional[str], bool]:
        if ret is None:
            return None, False
        optional = False
        node = ret
        if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
            sides = [s for s in (node.left, node.right) if not (isinstance(s, ast.Constant) and s.value is None)]
            if len(sides) == 1:
                node, optional = sides[0], True
        elif isinstance(node, ast.Subscript) and _tail(node.value) == "Optional":
            node, optional = node.slice, True

        if isinstance(node, ast.Name) and node.id in generics:
            for p in params:
                ann = p.annotation.node if p.annotation is not None else None
                if (
                    isinstance(ann, ast.Subscript)
                    and _tail(ann.value) in ("type", "Type")
                    and isinstance(ann.slice, ast.Name)
                    and ann.slice.id == node.id
                ):
                    return p.name, optional
            bound = (bounds or {}).get(node.id)
            if bound is None:
                return None, optional
            # bound="Name" forward references are checked against the named class
            if isinstance(bound.node, ast.Constant) and isinstance(bound.node.value, str):
                return bound.node.value, optional
            return bound.text, optional
        if isinstance(node, ast.Subscript) and _tail(node.value) in _BUILTIN_ORIGINS:
            return _BUILTIN_ORIGINS[_tail(node.value)], optional
        return None, optional

    def project(self, member: MemberDeclaration) -> ProjectedMember:
        if isinstance(member, PropertyDeclaration):
            text = self.public_text(member.type) or ANY_NAME
            return ProjectedMember(
                parameters=(),
                public_return=text,
                storage_return=text,
                args_entry_type="tuple[()]",
                args_entry_expr="()",
                handler_args="",
                handler_type="None",
            )

        generics = tuple(member.generic_names)
        params = tuple(self._parameter(p, generics) for p in member.parameters)
        may_wait = isinstance(member, MethodDeclaration) and member.may_wait

        if isinstance(member, SubscriptDeclaration):
            ret_expr: Optional[TypeExpr] = member.element_type
        else:
            ret_expr = member.return_type

        public_return = self.public_text(ret_expr, generics)
        storage_return = (
            self._storage_text(ret_expr, generics, member.return_generic) if ret_expr is not None else "None"
        )

        if not params:
            entry_type, entry_expr = "tuple[()]", "()"
        elif len(params) == 1:
            entry_type, entry_expr = params[0].storage, params[0].name
        else:
            entry_type = "tuple[" + ", ".join(p.storage for p in params) + "]"
            entry_expr = "(" + ", ".join(p.name for p in params) + ")"

        arg_types = ", ".join(p.storage for p in params)
        result = f"Awaitable[{storage_return}]" if may_wait else storage_return
        handler_type = f"Callable[[{arg_types}], {result}] | None"

        set_handler_type = None
        if isinstance(member, SubscriptDeclaration):
            set_args = ", ".join([p.storage for p in params] + [storage_return])
            set_handler_type = f"Callable[[{set_args}], None] | None"

        witness, witness_optional = (None, False)
        if member.return_generic:
            witness, witness_optional = self._witness(
                self.bind(ret_expr, generics), member.parameters, generics, dict(member.generic_bounds)
            )

        return ProjectedMember(
            parameters=params,
            public_return=public_return,
            storage_return=storage_return,
            args_entry_type=entry_type,
            args_entry_expr=entry_expr,
            handler_args=", ".join(p.name for p in params),
            handler_type=handler_type,
            set_handler_type=set_handler_type,
            erased_return=member.return_generic,
            witness=witness,
            witness_optional=witness_optional,
        )


def project_member(member: MemberDeclaration, interface: InterfaceDeclaration) -> ProjectedMember:
    return TypeProjector(interface).project(member)


def project_all(interface: InterfaceDeclaration) -> Dict[int, ProjectedMember]:
    projector = TypeProjector(interface)
    return {id(m): projector.project(m) for m in interface.members()}
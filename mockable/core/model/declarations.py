"""
Structural model of a protocol declaration.

The extractor builds one ``InterfaceDeclaration`` per generator invocation
and everything downstream (disambiguation, projection, emission) reads it.
Type expressions keep their ``ast`` node so later passes can rewrite them
structurally instead of by string surgery.
"""
from __future__ import annotations

import ast
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, FrozenSet, Iterator, Optional, Tuple, Union


class MemberKind(str, Enum):
    METHOD = "method"
    PROPERTY = "property"
    SUBSCRIPT = "subscript"


class AccessorSet(str, Enum):
    GET_ONLY = "get"
    GET_AND_SET = "get_set"


class CapabilityMarker(str, Enum):
    THREAD_SAFE_VALUE = "ThreadSafe"
    ISOLATED_UNIT = "Isolated"


class AccessTier(str, Enum):
    PUBLIC = "public"
    MODULE_PRIVATE = "module_private"


class ParameterKind(str, Enum):
    POSITIONAL_ONLY = "positional_only"
    POSITIONAL_OR_KEYWORD = "positional_or_keyword"
    VAR_POSITIONAL = "var_positional"
    KEYWORD_ONLY = "keyword_only"
    VAR_KEYWORD = "var_keyword"


_OPTIONAL_HEADS = ("Optional", "typing.Optional", "t.Optional")
_UNION_HEADS = ("Union", "typing.Union", "t.Union")


def _is_none(node: ast.expr) -> bool:
    return isinstance(node, ast.Constant) and node.value is None


@dataclass(frozen=True)
class TypeExpr:
    """A declared type expression: canonical source text plus its node."""

    text: str
    node: ast.expr = field(compare=False, repr=False, hash=False)

    @classmethod
    def from_node(cls, node: ast.expr) -> "TypeExpr":
        return cls(ast.unparse(node), node)

    @classmethod
    def parse(cls, text: str) -> "TypeExpr":
        return cls.from_node(ast.parse(text, mode="eval").body)

    @property
    def canonical(self) -> str:
        """Structural identity used where token equality is too lossy."""
        return ast.dump(self.node, annotate_fields=False)

    @property
    def is_none(self) -> bool:
        return _is_none(self.node)

    @property
    def is_optional(self) -> bool:
        node = self.node
        if _is_none(node):
            return True
        if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
            return any(TypeExpr.from_node(side).is_optional for side in (node.left, node.right))
        if isinstance(node, ast.Subscript):
            head = ast.unparse(node.value)
            if head in _OPTIONAL_HEADS:
                return True
            if head in _UNION_HEADS:
                inner = node.slice.elts if isinstance(node.slice, ast.Tuple) else [node.slice]
                return any(_is_none(e) for e in inner)
        return False


ANY = TypeExpr.parse("Any")


@dataclass(frozen=True)
class Parameter:
    name: str
    kind: ParameterKind
    annotation: Optional[TypeExpr] = None
    default: Optional[str] = None
    generic_reference: bool = False

    @property
    def label_suppressed(self) -> bool:
        return self.kind is ParameterKind.POSITIONAL_ONLY

    @property
    def declared_type(self) -> TypeExpr:
        return self.annotation or ANY


@dataclass(frozen=True)
class MethodDeclaration:
    name: str
    parameters: Tuple[Parameter, ...] = ()
    return_type: Optional[TypeExpr] = None
    may_throw: bool = False
    may_wait: bool = False
    generic_names: Tuple[str, ...] = ()
    type_params: str = ""
    return_generic: bool = False
    # TypeVar name -> bound, for generics declared with one
    generic_bounds: Tuple[Tuple[str, TypeExpr], ...] = ()
    line: int = 0

    kind: ClassVar[MemberKind] = MemberKind.METHOD

    @property
    def returns_value(self) -> bool:
        return self.return_type is not None


@dataclass(frozen=True)
class PropertyDeclaration:
    name: str
    type: TypeExpr
    accessors: AccessorSet = AccessorSet.GET_AND_SET
    optional: bool = False
    line: int = 0

    kind: ClassVar[MemberKind] = MemberKind.PROPERTY


@dataclass(frozen=True)
class SubscriptDeclaration:
    parameters: Tuple[Parameter, ...]
    element_type: TypeExpr
    accessors: AccessorSet = AccessorSet.GET_ONLY
    value_name: str = "value"
    generic_names: Tuple[str, ...] = ()
    return_generic: bool = False
    generic_bounds: Tuple[Tuple[str, TypeExpr], ...] = ()
    line: int = 0

    kind: ClassVar[MemberKind] = MemberKind.SUBSCRIPT
    name: ClassVar[str] = "subscript"

    @property
    def optional(self) -> bool:
        return self.element_type.is_optional


MemberDeclaration = Union[MethodDeclaration, PropertyDeclaration, SubscriptDeclaration]


@dataclass(frozen=True)
class ConditionalClause:
    """One arm of an ``if``/``elif``/``else`` region; ``condition`` is None for ``else``."""

    condition: Optional[str]
    body: Tuple["MemberNode", ...] = ()


@dataclass(frozen=True)
class ConditionalBlock:
    clauses: Tuple[ConditionalClause, ...]


MemberNode = Union[MethodDeclaration, PropertyDeclaration, SubscriptDeclaration, ConditionalBlock]


@dataclass(frozen=True)
class AssociatedTypeDeclaration:
    name: str
    default: Optional[TypeExpr] = None
    bound: Optional[TypeExpr] = None

    @property
    def alias(self) -> TypeExpr:
        return self.default or ANY


@dataclass(frozen=True)
class InterfaceDeclaration:
    name: str
    body: Tuple[MemberNode, ...] = ()
    access: AccessTier = AccessTier.PUBLIC
    markers: FrozenSet[CapabilityMarker] = frozenset()
    associated_types: Tuple[AssociatedTypeDeclaration, ...] = ()
    line: int = 0
    column: int = 0

    def members(self) -> Tuple[MemberDeclaration, ...]:
        """All members in source order, regions flattened."""
        return tuple(iter_members(self.body))

    def associated(self, name: str) -> Optional[AssociatedTypeDeclaration]:
        for assoc in self.associated_types:
            if assoc.name == name:
                return assoc
        return None


def iter_members(body: Tuple[MemberNode, ...]) -> Iterator[MemberDeclaration]:
    for node in body:
        if isinstance(node, ConditionalBlock):
            for clause in node.clauses:
                yield from iter_members(clause.body)
        else:
            yield node

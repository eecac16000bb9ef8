"""
Code emitter.

Assembles the generated ``<Protocol>Mock`` declaration from the member tree,
resolved names, projected types and the strategy plan. Conditional regions of
the protocol are mirrored in every place a member contributes code: field
annotations, class members and reset statements.

Output layout (plain shape)::

    if __debug__:
        class FooMock(Foo):
            <associated type aliases>
            <field annotations>
            <members>
            <overload dispatchers>
            def __init__(self) -> None: ...
            def reset_mock(self) -> None: ...

Locked shapes move every field into a nested ``_Storage`` class behind one
lock handle and expose it through accessor properties. A dual plan emits the
class twice, under ``if <version check>:`` / ``else:``.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Mapping, Optional, Sequence, Tuple, Union

from mockable.core.compiler.code_tree import Block, Branch, Line, Node, blank, render
from mockable.core.compiler.disambiguator import NameTable
from mockable.core.compiler.projector import ProjectedMember
from mockable.core.compiler.strategy import StrategyPlan, Variant
from mockable.core.compiler.templates import (
    RUNTIME,
    EmitContext,
    MemberFragment,
    dispatcher,
    fragment_for,
)
from mockable.core.model import (
    AccessorSet,
    ConditionalBlock,
    InterfaceDeclaration,
    MemberKind,
    MemberNode,
    SubscriptDeclaration,
)

MOCK_SUFFIX = "Mock"
RESET_METHOD = "reset_mock"
TEST_BUILD_CONDITION = "__debug__"


def mock_name_for(protocol: str) -> str:
    return f"{protocol}{MOCK_SUFFIX}"


# ---------------------------------------------------------------
# Fragment tree
# ---------------------------------------------------------------
@dataclass
class _Region:
    clauses: List[Tuple[Optional[str], List["_Item"]]]


_Item = Union[MemberFragment, _Region]


def _fragment_tree(ctx: EmitContext, body: Sequence[MemberNode]) -> List[_Item]:
    out: List[_Item] = []
    for node in body:
        if isinstance(node, ConditionalBlock):
            out.append(_Region([(c.condition, _fragment_tree(ctx, c.body)) for c in node.clauses]))
        else:
            out.append(fragment_for(ctx, node))
    return out


def _mirror(tree: Sequence[_Item], fn: Callable[[MemberFragment], List[Node]]) -> List[Node]:
    """Map fragments to nodes, re-wrapping them in their original regions."""
    out: List[Node] = []
    for item in tree:
        if isinstance(item, _Region):
            clauses = [(condition, _mirror(sub, fn)) for condition, sub in item.clauses]
            if any(body for _, body in clauses):
                out.append(Branch(clauses))
        else:
            out.extend(fn(item))
    return out


# ---------------------------------------------------------------
# Field projections shared by both families
# ---------------------------------------------------------------
def _field_declarations(fragment: MemberFragment, class_defaults: bool) -> List[Node]:
    lines: List[Node] = []
    for f in fragment.fields:
        default = f" = {f.initial}" if class_defaults and f.class_default else ""
        lines.append(Line(f"{f.name}: {f.annotation}{default}"))
    return lines


def _reset_statements(fragment: MemberFragment) -> List[Node]:
    return [Line(f"self.{f.name} = {f.initial}") for f in fragment.fields]


def _accessors(ctx: EmitContext, fragment: MemberFragment) -> List[Node]:
    decorators = [f"{RUNTIME}.nonisolated"] if ctx.isolated else []
    out: List[Node] = []
    for f in fragment.fields:
        out += [
            blank(),
            Block(
                f"def {f.name}(self) -> {f.annotation}:",
                [Line(f"return self._storage.with_lock(lambda s: s.{f.name})")],
                ["property"] + decorators,
            ),
            blank(),
            Block(
                f"def {f.name}(self, value: {f.annotation}) -> None:",
                [Line(f'self._storage.with_lock(lambda s: setattr(s, "{f.name}", value))')],
                [f"{f.name}.setter"] + decorators,
            ),
        ]
    return out


def _members(fragment: MemberFragment) -> List[Node]:
    return list(fragment.members)


# ---------------------------------------------------------------
# Class assembly
# ---------------------------------------------------------------
def protocol_base(interface: InterfaceDeclaration) -> str:
    if not interface.associated_types:
        return interface.name
    args = ", ".join(a.alias.text for a in interface.associated_types)
    return f"{interface.name}[{args}]"


def _dispatchers(names: NameTable) -> List[Node]:
    out: List[Node] = []
    for (kind, name), members in names.overloaded_groups():
        if kind is MemberKind.PROPERTY:
            continue
        if kind is MemberKind.SUBSCRIPT:
            out += [blank(), dispatcher("__getitem__")]
            if any(isinstance(m, SubscriptDeclaration) and m.accessors is AccessorSet.GET_AND_SET for m in members):
                out += [blank(), dispatcher("__setitem__")]
        else:
            out += [blank(), dispatcher(name)]
    return out


def _class_block(interface: InterfaceDeclaration, ctx: EmitContext, variant: Variant) -> Block:
    tree = _fragment_tree(ctx, interface.body)

    bases = protocol_base(interface)
    if ctx.isolated:
        bases += f", {RUNTIME}.IsolationUnit"

    body: List[Node] = [Line(f'"""Mock of ``{interface.name}`` generated by mockable."""')]
    if interface.associated_types:
        body.append(blank())
        body += [Line(f"{a.name} = {a.alias.text}") for a in interface.associated_types]

    if not ctx.shape.locked:
        body.append(blank())
        body += _mirror(tree, lambda f: _field_declarations(f, class_defaults=True))
        body += _mirror(tree, _members)
        body += _dispatchers(ctx.names)
        body += [
            blank(),
            Block("def __init__(self) -> None:", [Line(f"self.{RESET_METHOD}()")]),
            blank(),
            Block(f"def {RESET_METHOD}(self) -> None:", _mirror(tree, _reset_statements)),
        ]
    else:
        storage = Block(
            "class _Storage:",
            _mirror(tree, lambda f: _field_declarations(f, class_defaults=False))
            + [
                blank(),
                Block("def __init__(self) -> None:", [Line("self.reset()")]),
                blank(),
                Block("def reset(self) -> None:", _mirror(tree, _reset_statements)),
            ],
        )
        init: List[Node] = []
        if ctx.isolated:
            init.append(Line(f"{RUNTIME}.IsolationUnit.__init__(self)"))
        init.append(Line(f"self._storage = {RUNTIME}.{variant.lock.value}(self._Storage())"))  # type: ignore[union-attr]

        body += [blank(), storage, blank(), Block("def __init__(self) -> None:", init)]
        body += _mirror(tree, lambda f: _accessors(ctx, f))
        body += _mirror(tree, _members)
        body += _dispatchers(ctx.names)
        body += [
            blank(),
            Block(
                f"def {RESET_METHOD}(self) -> None:",
                [Line("self._storage.with_lock(self._Storage.reset)")],
                [f"{RUNTIME}.nonisolated"] if ctx.isolated else [],
            ),
        ]

    decorators = []
    if variant.min_version is not None:
        decorators.append(f"{RUNTIME}.available({tuple(variant.min_version)!r})")
    return Block(f"class {ctx.mock_name}({bases}):", body, decorators)


def emit_mock(
    interface: InterfaceDeclaration,
    names: NameTable,
    projections: Mapping[int, ProjectedMember],
    plan: StrategyPlan,
) -> str:
    """Render the complete generated declaration, wrapped for test-enabled builds."""
    ctx = EmitContext(
        mock_name=mock_name_for(interface.name),
        shape=plan.shape,
        names=names,
        projections=projections,
    )
    classes = [_class_block(interface, ctx, variant) for variant in plan.variants]

    if plan.dual:
        inner: List[Node] = [Branch([(v.condition, [cls]) for v, cls in zip(plan.variants, classes)])]
    else:
        inner = list(classes)
    return render([Branch([(TEST_BUILD_CONDITION, inner)])])
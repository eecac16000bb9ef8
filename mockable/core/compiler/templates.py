"""
Per-member emission templates.

``TEMPLATES`` is a dispatch table keyed by (member kind, variant, family):

- variant: ``void`` / ``value`` for methods, ``get`` / ``get_set`` /
  ``optional`` for properties, ``get`` / ``get_set`` for subscripts;
- family: ``plain`` or ``locked`` (both locked shapes share templates; the
  isolated shape only adds decorators).

Each cell is a pure function ``(ctx, member) -> MemberFragment``. A fragment
lists the fields the member needs (counter, argument log, handler slots or a
backing field) and the class-body nodes implementing it. Fields are laid out
and reset by the emitter, which is what keeps every shape's reset complete.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Sequence, Tuple

from mockable.core.compiler.code_tree import Block, Line, Node, blank
from mockable.core.compiler.disambiguator import NameTable, ResolvedName
from mockable.core.compiler.projector import ProjectedMember, ProjectedParameter
from mockable.core.compiler.strategy import ConcurrencyShape
from mockable.core.model import (
    AccessorSet,
    MemberDeclaration,
    MemberKind,
    MethodDeclaration,
    ParameterKind,
    PropertyDeclaration,
    SubscriptDeclaration,
)

RUNTIME = "_mockable"


@dataclass(frozen=True)
class FieldSpec:
    name: str
    annotation: str
    initial: str
    # plain mocks need a class-level default to shadow a read-only protocol property
    class_default: bool = False


@dataclass
class MemberFragment:
    fields: List[FieldSpec] = field(default_factory=list)
    members: List[Node] = field(default_factory=list)


@dataclass(frozen=True)
class EmitContext:
    mock_name: str
    shape: ConcurrencyShape
    names: NameTable
    projections: Mapping[int, ProjectedMember]

    @property
    def family(self) -> str:
        return "locked" if self.shape.locked else "plain"

    @property
    def isolated(self) -> bool:
        return self.shape is ConcurrencyShape.ISOLATED_LOCKED_UNIT

    def name(self, member: MemberDeclaration) -> ResolvedName:
        return self.names[member]

    def projected(self, member: MemberDeclaration) -> ProjectedMember:
        return self.projections[id(member)]


# ---------------------------------------------------------------
# Shared pieces
# ---------------------------------------------------------------
def render_parameters(params: Sequence[ProjectedParameter]) -> str:
    parts = ["self"]
    has_star = any(p.kind is ParameterKind.VAR_POSITIONAL for p in params)
    star_done = False
    for i, p in enumerate(params):
        if p.kind is ParameterKind.KEYWORD_ONLY and not has_star and not star_done:
            parts.append("*")
            star_done = True
        prefix = {ParameterKind.VAR_POSITIONAL: "*", ParameterKind.VAR_KEYWORD: "**"}.get(p.kind, "")
        text = f"{prefix}{p.name}"
        if p.public is not None:
            text += f": {p.public}"
            if p.default is not None:
                text += f" = {p.default}"
        elif p.default is not None:
            text += f"={p.default}"
        parts.append(text)
        is_last_posonly = p.kind is ParameterKind.POSITIONAL_ONLY and (
            i + 1 == len(params) or params[i + 1].kind is not ParameterKind.POSITIONAL_ONLY
        )
        if is_last_posonly:
            parts.append("/")
    return ", ".join(parts)


def call_fields(ident: str, projected: ProjectedMember) -> List[FieldSpec]:
    return [
        FieldSpec(f"{ident}_call_count", "int", "0"),
        FieldSpec(f"{ident}_call_args", f"list[{projected.args_entry_type}]", "[]"),
        FieldSpec(f"{ident}_handler", projected.handler_type, "None"),
    ]


def _bookkeeping(ctx: EmitContext, ident: str, projected: ProjectedMember) -> List[Node]:
    """Count the call, log its arguments and leave the handler in ``_handler``."""
    if ctx.family == "plain":
        return [
            Line(f"self.{ident}_call_count += 1"),
            Line(f"self.{ident}_call_args.append({projected.args_entry_expr})"),
            Line(f"_handler = self.{ident}_handler"),
        ]
    record = Block(
        "def _record(storage: Any) -> Any:",
        [
            Line(f"storage.{ident}_call_count += 1"),
            Line(f"storage.{ident}_call_args.append({projected.args_entry_expr})"),
            Line(f"return storage.{ident}_handler"),
        ],
    )
    # the handler runs after the critical section ends
    return [record, blank(), Line("_handler = self._storage.with_lock(_record)")]


def _handler_call(projected: ProjectedMember, may_wait: bool) -> str:
    call = f"_handler({projected.handler_args})"
    return f"await {call}" if may_wait else call


def _returning(ctx: EmitContext, ident: str, projected: ProjectedMember, may_wait: bool) -> List[Node]:
    slot = f"{ident}_handler"
    call = _handler_call(projected, may_wait)
    lines: List[Node] = [Line(f'_handler = {RUNTIME}.require_handler(self, "{slot}", _handler)')]
    if projected.erased_return:
        args = []
        if projected.witness is not None:
            args.append(projected.witness)
            if projected.witness_optional:
                args.append("optional=True")
        args += ["owner=self", f'field="{slot}"']
        lines.append(Line(f"return {RUNTIME}.Erased({call}).downcast({', '.join(args)})"))
    else:
        lines.append(Line(f"return {call}"))
    return lines


def _interface_decorators(ctx: EmitContext, public_name: str, resolved: ResolvedName) -> List[str]:
    decorators = []
    if resolved.overloaded:
        decorators.append(f'{RUNTIME}.overload_impl("{public_name}", {resolved.order})')
    if ctx.isolated:
        decorators.append(f"{RUNTIME}.isolated")
    return decorators


def _def_name(public_name: str, resolved: ResolvedName, role: str = "") -> str:
    if not resolved.overloaded:
        return public_name
    return f"_{resolved.identifier}{role}"


def _accessor_decorators(ctx: EmitContext) -> List[str]:
    return [f"{RUNTIME}.nonisolated"] if ctx.isolated else []


# ---------------------------------------------------------------
# Methods
# ---------------------------------------------------------------
def _method(ctx: EmitContext, member: MethodDeclaration, returns_value: bool) -> MemberFragment:
    resolved = ctx.name(member)
    projected = ctx.projected(member)
    ident = resolved.identifier

    keyword = "async def" if member.may_wait else "def"
    returns = projected.public_return if returns_value else "None"
    header = (
        f"{keyword} {_def_name(member.name, resolved)}{member.type_params}"
        f"({render_parameters(projected.parameters)}) -> {returns}:"
    )

    body = _bookkeeping(ctx, ident, projected)
    if returns_value:
        body += _returning(ctx, ident, projected, member.may_wait)
    else:
        body.append(Block("if _handler is not None:", [Line(_handler_call(projected, member.may_wait))]))

    block = Block(header, body, _interface_decorators(ctx, member.name, resolved))
    return MemberFragment(fields=call_fields(ident, projected), members=[blank(), block])


def method_void(ctx: EmitContext, member: MethodDeclaration) -> MemberFragment:
    return _method(ctx, member, returns_value=False)


def method_value(ctx: EmitContext, member: MethodDeclaration) -> MemberFragment:
    return _method(ctx, member, returns_value=True)


# ---------------------------------------------------------------
# Properties
# ---------------------------------------------------------------
def _forced_property(ctx: EmitContext, member: PropertyDeclaration, settable: bool) -> MemberFragment:
    text = ctx.projected(member).public_return
    backing = f"_{member.name}"
    getter = Block(
        f"def {member.name}(self) -> {text}:",
        [Line(f'return {RUNTIME}.unwrap(self.{backing}, self, "{backing}")')],
        ["property"] + _accessor_decorators(ctx),
    )
    members: List[Node] = [blank(), getter]
    if settable:
        members += [
            blank(),
            Block(
                f"def {member.name}(self, value: {text}) -> None:",
                [Line(f"self.{backing} = value")],
                [f"{member.name}.setter"] + _accessor_decorators(ctx),
            ),
        ]
    return MemberFragment(fields=[FieldSpec(backing, f"{text} | None", "None")], members=members)


def property_get(ctx: EmitContext, member: PropertyDeclaration) -> MemberFragment:
    return _forced_property(ctx, member, settable=False)


def property_get_set(ctx: EmitContext, member: PropertyDeclaration) -> MemberFragment:
    return _forced_property(ctx, member, settable=True)


def property_optional(ctx: EmitContext, member: PropertyDeclaration) -> MemberFragment:
    text = ctx.projected(member).public_return
    return MemberFragment(fields=[FieldSpec(member.name, text, "None", class_default=True)])


# ---------------------------------------------------------------
# Subscripts
# ---------------------------------------------------------------
def _subscript(ctx: EmitContext, member: SubscriptDeclaration, settable: bool) -> MemberFragment:
    resolved = ctx.name(member)
    projected = ctx.projected(member)
    ident = resolved.identifier
    params = render_parameters(projected.parameters)

    body = _bookkeeping(ctx, ident, projected)
    if member.optional:
        body.append(Block("if _handler is None:", [Line("return None")]))
        body.append(Line(f"return {_handler_call(projected, False)}"))
    else:
        body += _returning(ctx, ident, projected, False)

    getter = Block(
        f"def {_def_name('__getitem__', resolved, '_get')}({params}) -> {projected.public_return}:",
        body,
        _interface_decorators(ctx, "__getitem__", resolved),
    )
    fields = call_fields(ident, projected)
    members: List[Node] = [blank(), getter]

    if settable:
        fields.append(FieldSpec(f"{ident}_set_handler", projected.set_handler_type or "None", "None"))
        value = member.value_name
        set_args = ", ".join([p.name for p in projected.parameters] + [value])
        setter = Block(
            f"def {_def_name('__setitem__', resolved, '_set')}({params}, {value}: {projected.public_return}) -> None:",
            [
                Line(f"_handler = self.{ident}_set_handler"),
                Block("if _handler is not None:", [Line(f"_handler({set_args})")]),
            ],
            _interface_decorators(ctx, "__setitem__", resolved),
        )
        members += [blank(), setter]
    return MemberFragment(fields=fields, members=members)


def subscript_get(ctx: EmitContext, member: SubscriptDeclaration) -> MemberFragment:
    return _subscript(ctx, member, settable=False)


def subscript_get_set(ctx: EmitContext, member: SubscriptDeclaration) -> MemberFragment:
    return _subscript(ctx, member, settable=True)


# ---------------------------------------------------------------
# Dispatch table
# ---------------------------------------------------------------
Template = Callable[[EmitContext, MemberDeclaration], MemberFragment]

TEMPLATES: Dict[Tuple[MemberKind, str, str], Template] = {}
for _family in ("plain", "locked"):
    TEMPLATES[(MemberKind.METHOD, "void", _family)] = method_void  # type: ignore[assignment]
    TEMPLATES[(MemberKind.METHOD, "value", _family)] = method_value  # type: ignore[assignment]
    TEMPLATES[(MemberKind.PROPERTY, "get", _family)] = property_get  # type: ignore[assignment]
    TEMPLATES[(MemberKind.PROPERTY, "get_set", _family)] = property_get_set  # type: ignore[assignment]
    TEMPLATES[(MemberKind.PROPERTY, "optional", _family)] = property_optional  # type: ignore[assignment]
    TEMPLATES[(MemberKind.SUBSCRIPT, "get", _family)] = subscript_get  # type: ignore[assignment]
    TEMPLATES[(MemberKind.SUBSCRIPT, "get_set", _family)] = subscript_get_set  # type: ignore[assignment]


def template_key(member: MemberDeclaration, family: str) -> Tuple[MemberKind, str, str]:
    if isinstance(member, MethodDeclaration):
        variant = "value" if member.returns_value else "void"
    elif isinstance(member, PropertyDeclaration):
        if member.optional:
            variant = "optional"
        else:
            variant = "get_set" if member.accessors is AccessorSet.GET_AND_SET else "get"
    else:
        variant = "get_set" if member.accessors is AccessorSet.GET_AND_SET else "get"
    return member.kind, variant, family


def fragment_for(ctx: EmitContext, member: MemberDeclaration) -> MemberFragment:
    return TEMPLATES[template_key(member, ctx.family)](ctx, member)


def dispatcher(public_name: str) -> Block:
    """Public entry point of an overloaded group."""
    if public_name == "__getitem__":
        return Block(
            "def __getitem__(self, key: Any) -> Any:",
            [Line(f'return {RUNTIME}.dispatch_overload(self, "__getitem__", (key,), {{}})')],
        )
    if public_name == "__setitem__":
        return Block(
            "def __setitem__(self, key: Any, value: Any) -> None:",
            [Line(f'{RUNTIME}.dispatch_overload(self, "__setitem__", (key, value), {{}})')],
        )
    return Block(
        f"def {public_name}(self, *args: Any, **kwargs: Any) -> Any:",
        [Line(f'return {RUNTIME}.dispatch_overload(self, "{public_name}", args, kwargs)')],
    )

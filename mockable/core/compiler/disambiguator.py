"""
Overload disambiguator.

Members are grouped by (kind, base name). A singleton method keeps its name;
members of a larger group get a suffix built in stages, each stage applied
only to members that still collide:

1. the sanitized parameter-type tokens, in order;
2. the sanitized return-type token;
3. the effect tokens ``Async`` and ``Throwing``.

Subscripts always carry their index-type suffix, even alone.

Collisions are checked on the final generated identifiers (``set_bool_string``
and friends), not on raw suffixes, because snake-casing can merge suffixes
that differ only in case. Sanitized tokens are lossy, so members that are
still equal after stage 3 get an ordinal in source order; when their full
signatures are also structurally identical the input was not a legal overload
set and a warning is logged.

A final pass over the whole interface, in source order, keeps identifiers
unique across groups and keeps generated fields off declared member names.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Sequence, Tuple

from mockable.core.compiler.sanitizer import sanitize_type, snake_case
from mockable.core.model import (
    InterfaceDeclaration,
    MemberDeclaration,
    MemberKind,
    MethodDeclaration,
    SubscriptDeclaration,
)

_log = logging.getLogger("mockable.generator")

SUBSCRIPT_BASE = "subscript"
# per-member fields the emitter derives from an identifier
FIELD_SUFFIXES = ("_call_count", "_call_args", "_handler", "_set_handler")


@dataclass(frozen=True)
class ResolvedName:
    base: str
    suffix: str
    identifier: str
    group_size: int
    order: int

    @property
    def overloaded(self) -> bool:
        return self.group_size > 1


class NameTable:
    """Resolved names keyed by member identity for one invocation."""

    def __init__(self) -> None:
        self._names: Dict[int, ResolvedName] = {}
        self._groups: Dict[Tuple[MemberKind, str], List[MemberDeclaration]] = {}

    def add(self, member: MemberDeclaration, name: ResolvedName) -> None:
        self._names[id(member)] = name
        self._groups.setdefault((member.kind, member.name), []).append(member)

    def __getitem__(self, member: MemberDeclaration) -> ResolvedName:
        return self._names[id(member)]

    def __len__(self) -> int:
        return len(self._names)

    def group(self, member: MemberDeclaration) -> List[MemberDeclaration]:
        return list(self._groups[(member.kind, member.name)])

    def overloaded_groups(self) -> List[Tuple[Tuple[MemberKind, str], List[MemberDeclaration]]]:
        return [(key, list(members)) for key, members in self._groups.items() if len(members) > 1]

    def identifiers(self) -> List[str]:
        return [name.identifier for name in self._names.values()]


# ---------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------
def parameter_token(member: MemberDeclaration) -> str:
    params = getattr(member, "parameters", ())
    return "".join(sanitize_type(p.declared_type) for p in params)


def return_token(member: MemberDeclaration) -> str:
    if isinstance(member, SubscriptDeclaration):
        return sanitize_type(member.element_type)
    if isinstance(member, MethodDeclaration):
        return sanitize_type(member.return_type) if member.return_type is not None else "None"
    return ""


def effect_token(member: MemberDeclaration) -> str:
    token = ""
    if getattr(member, "may_wait", False):
        token += "Async"
    if getattr(member, "may_throw", False):
        token += "Throwing"
    return token


def signature_key(member: MemberDeclaration) -> tuple:
    """True type-expression identity of a member's signature."""
    params = tuple((p.kind.value, p.declared_type.canonical) for p in getattr(member, "parameters", ()))
    if isinstance(member, MethodDeclaration):
        ret = member.return_type.canonical if member.return_type is not None else None
    elif isinstance(member, SubscriptDeclaration):
        ret = member.element_type.canonical
    else:
        ret = None
    return params, ret, getattr(member, "may_wait", False), getattr(member, "may_throw", False)


def identifier_base(name: str) -> str:
    if name.startswith("__") and name.endswith("__") and len(name) > 4:
        return name.strip("_")
    return name


def make_identifier(base: str, suffix: str) -> str:
    stem = identifier_base(base)
    if not suffix:
        return stem
    return f"{stem}_{snake_case(suffix)}"


# ---------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------
def _colliding(base: str, suffixes: Sequence[str]) -> List[int]:
    idents = [make_identifier(base, s) for s in suffixes]
    counts = Counter(idents)
    return [i for i, ident in enumerate(idents) if counts[ident] > 1]


_STAGES: Tuple[Callable[[MemberDeclaration], str], ...] = (return_token, effect_token)


def resolve_suffixes(base: str, members: Sequence[MemberDeclaration], *, always_suffix: bool = False) -> List[str]:
    if len(members) == 1 and not always_suffix:
        return [""]

    suffixes = [parameter_token(m) for m in members]
    for stage in _STAGES:
        colliding = _colliding(base, suffixes)
        if not colliding:
            return suffixes
        for i in colliding:
            suffixes[i] += stage(members[i])

    colliding = _colliding(base, suffixes)
    if not colliding:
        return suffixes

    keys = Counter(signature_key(members[i]) for i in colliding)
    if any(count > 1 for count in keys.values()):
        _log.warning("Identical overloads of %s; numbering them in source order", base)
    else:
        _log.info("Overloads of %s share sanitized tokens; numbering them in source order", base)

    used: set = set()
    out: List[str] = []
    for suffix in suffixes:
        candidate, n = suffix, 1
        while make_identifier(base, candidate) in used:
            n += 1
            candidate = f"{suffix}{n}"
        used.add(make_identifier(base, candidate))
        out.append(candidate)
    return out


def _field_names(identifier: str) -> Tuple[str, ...]:
    return tuple(f"{identifier}{suffix}" for suffix in FIELD_SUFFIXES)


def _claim_identifiers(
    interface: InterfaceDeclaration, resolved: Dict[int, ResolvedName]
) -> Dict[int, ResolvedName]:
    """Make identifiers unique across the whole mock, in source order.

    Per-group resolution cannot see other groups: an overloaded ``get(key: str)``
    becomes ``get_string`` and meets a plain ``get_string()``, and ``__call__``
    strips to the same ``call`` as a method named ``call``. A later clash, or a
    generated field that would shadow a declared member, gets an ordinal.
    """
    members = interface.members()
    declared = {m.name for m in members}
    declared |= {f"_{m.name}" for m in members if m.kind is MemberKind.PROPERTY}
    taken = {m.name for m in members if m.kind is MemberKind.PROPERTY}
    fields: set = set()

    out: Dict[int, ResolvedName] = {}
    for member in members:
        name = resolved[id(member)]
        if member.kind is MemberKind.PROPERTY:
            out[id(member)] = name
            continue

        identifier, n = name.identifier, 1
        while identifier in taken or (declared | fields).intersection(_field_names(identifier)):
            n += 1
            identifier = f"{name.identifier}{n}"
        if n > 1:
            _log.info(
                "%s.%s: identifier %s already used in the mock; using %s",
                interface.name,
                member.name,
                name.identifier,
                identifier,
            )
            name = replace(name, suffix=f"{name.suffix}{n}", identifier=identifier)
        taken.add(identifier)
        fields.update(_field_names(identifier))
        out[id(member)] = name
    return out


def disambiguate(interface: InterfaceDeclaration) -> NameTable:
    groups: Dict[Tuple[MemberKind, str], List[MemberDeclaration]] = {}
    for member in interface.members():
        groups.setdefault((member.kind, member.name), []).append(member)

    resolved: Dict[int, ResolvedName] = {}
    for (kind, name), members in groups.items():
        if kind is MemberKind.PROPERTY:
            # alternatives in exclusive regions share one public name
            for order, member in enumerate(members):
                resolved[id(member)] = ResolvedName(name, "", name, len(members), order)
            continue

        base = SUBSCRIPT_BASE if kind is MemberKind.SUBSCRIPT else name
        suffixes = resolve_suffixes(base, members, always_suffix=kind is MemberKind.SUBSCRIPT)
        for order, (member, suffix) in enumerate(zip(members, suffixes)):
            resolved[id(member)] = ResolvedName(base, suffix, make_identifier(base, suffix), len(members), order)

    final = _claim_identifiers(interface, resolved)

    table = NameTable()
    for (kind, name), members in groups.items():
        for member in members:
            entry = final[id(member)]
            table.add(member, entry)
            if entry.overloaded:
                _log.debug("%s.%s #%d -> %s", interface.name, name, entry.order, entry.identifier)
    return table

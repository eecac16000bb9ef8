"""
Source scanner.

Finds the declarations a module marks for mock generation and the module
facts the extractor needs:

- top-level nodes decorated ``@mockable``, ``@mockable(...)`` or
  ``@<alias>.mockable``, with the ``force_portable_lock`` keyword if given;
- module-level ``TypeVar`` assignments (name, ``bound=``, ``default=``);
- top-level import statements, re-emitted at the head of the mock module so
  annotations resolve there too.
"""
from __future__ import annotations

import ast
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from mockable.core.compiler.extractor import ModuleTypeVar
from mockable.core.model import TypeExpr

_log = logging.getLogger("mockable.scanner")

MARKER_DECORATOR = "mockable"
_TYPEVAR_NAMES = {"TypeVar", "typing.TypeVar", "typing_extensions.TypeVar", "t.TypeVar"}
# `type X = ...` statements, 3.12+
_TYPE_ALIAS = getattr(ast, "TypeAlias", None)


@dataclass(frozen=True)
class MarkedDeclaration:
    node: ast.stmt
    name: str
    force_portable_lock: Optional[bool] = None


@dataclass
class ScannedModule:
    module: str
    declarations: List[MarkedDeclaration] = field(default_factory=list)
    type_vars: Dict[str, ModuleTypeVar] = field(default_factory=dict)
    imports: List[str] = field(default_factory=list)
    # top-level names the mock module imports back from the source module
    definitions: List[str] = field(default_factory=list)


def _marker_call(decorator: ast.expr) -> Optional[ast.expr]:
    target = decorator.func if isinstance(decorator, ast.Call) else decorator
    if isinstance(target, ast.Name) and target.id == MARKER_DECORATOR:
        return decorator
    if isinstance(target, ast.Attribute) and target.attr == MARKER_DECORATOR:
        return decorator
    return None


def _portable_flag(decorator: ast.expr) -> Optional[bool]:
    if not isinstance(decorator, ast.Call):
        return None
    for kw in decorator.keywords:
        if kw.arg == "force_portable_lock":
            if isinstance(kw.value, ast.Constant) and isinstance(kw.value.value, bool):
                return kw.value.value
            _log.warning("force_portable_lock must be a literal bool, got %s", ast.unparse(kw.value))
    return None


def _type_var(stmt: ast.stmt) -> Optional[ModuleTypeVar]:
    if not isinstance(stmt, ast.Assign) or len(stmt.targets) != 1:
        return None
    target, value = stmt.targets[0], stmt.value
    if not isinstance(target, ast.Name) or not isinstance(value, ast.Call):
        return None
    if ast.unparse(value.func) not in _TYPEVAR_NAMES:
        return None
    options = {kw.arg: kw.value for kw in value.keywords if kw.arg}
    bound = options.get("bound")
    default = options.get("default")
    return ModuleTypeVar(
        name=target.id,
        bound=TypeExpr.from_node(bound) if bound is not None else None,
        default=TypeExpr.from_node(default) if default is not None else None,
    )


def _defined_names(stmt: ast.stmt) -> List[str]:
    if isinstance(stmt, (ast.ClassDef, ast.FunctionDef, ast.AsyncFunctionDef)):
        return [stmt.name]
    if isinstance(stmt, ast.Assign):
        return [t.id for t in stmt.targets if isinstance(t, ast.Name)]
    if isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
        return [stmt.target.id]
    if _TYPE_ALIAS is not None and isinstance(stmt, _TYPE_ALIAS):
        return [stmt.name.id]  # type: ignore[attr-defined]
    return []


def scan_tree(tree: ast.Module, module: str) -> ScannedModule:
    scanned = ScannedModule(module=module)
    for stmt in tree.body:
        if isinstance(stmt, (ast.Import, ast.ImportFrom)):
            if isinstance(stmt, ast.ImportFrom) and stmt.module == "__future__":
                continue
            scanned.imports.append(ast.unparse(stmt))
            continue

        tv = _type_var(stmt)
        if tv is not None:
            scanned.type_vars[tv.name] = tv
            scanned.definitions.append(tv.name)
            continue

        for name in _defined_names(stmt):
            if name not in scanned.definitions:
                scanned.definitions.append(name)

        for decorator in getattr(stmt, "decorator_list", []):
            marker = _marker_call(decorator)
            if marker is None:
                continue
            scanned.declarations.append(
                MarkedDeclaration(
                    node=stmt,
                    name=getattr(stmt, "name", type(stmt).__name__),
                    force_portable_lock=_portable_flag(marker),
                )
            )
            break

    _log.debug(
        "Scanned %s: %d marked, %d type vars, %d imports",
        module,
        len(scanned.declarations),
        len(scanned.type_vars),
        len(scanned.imports),
    )
    return scanned


def scan_source(source: str, module: str, filename: str = "<unknown>") -> ScannedModule:
    """Parse ``source`` and scan it; a syntax error propagates to the caller."""
    return scan_tree(ast.parse(source, filename=filename), module)

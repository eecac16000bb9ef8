"""
Declaration-to-mock pipeline.

    guard -> extract -> {disambiguate, project} -> plan -> emit

One invocation handles one declaration, keeps no state between calls and
never mutates the input node. Generation-time misuse comes back as
diagnostics with no text; there is no partial emission.
"""
from __future__ import annotations

import ast
import logging
from typing import Mapping, Optional

from mockable.core.compiler.disambiguator import disambiguate
from mockable.core.compiler.emitter import emit_mock, mock_name_for
from mockable.core.compiler.extractor import ModuleTypeVar, extract_interface
from mockable.core.compiler.guard import guard_interface
from mockable.core.compiler.projector import project_all
from mockable.core.compiler.strategy import plan_strategy
from mockable.core.config import GeneratorOptions
from mockable.core.model import GenerationResult, MockableError
from mockable.core.observability.metrics import inc_generation

_log = logging.getLogger("mockable.generator")


def generate_mock(
    node: ast.AST,
    options: Optional[GeneratorOptions] = None,
    *,
    module_type_vars: Optional[Mapping[str, ModuleTypeVar]] = None,
) -> GenerationResult:
    opts = options or GeneratorOptions()
    name = getattr(node, "name", type(node).__name__)

    try:
        class_node = guard_interface(node)
        interface = extract_interface(class_node, module_type_vars)
    except MockableError as exc:
        _log.warning("Cannot generate mock for %s: %s", name, exc.message)
        inc_generation("none", "diagnostic")
        return GenerationResult(protocol=name, diagnostics=[exc.to_diagnostic()])

    names = disambiguate(interface)
    projections = project_all(interface)
    plan = plan_strategy(interface, opts)
    text = emit_mock(interface, names, projections, plan)

    mock_name = mock_name_for(interface.name)
    _log.info(
        "Generated %s (%s, %d members, %d variant(s))",
        mock_name,
        plan.shape.value,
        len(names),
        len(plan.variants),
    )
    inc_generation(plan.shape.value, "generated")
    return GenerationResult(protocol=interface.name, mock_name=mock_name, text=text)

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape
from pydantic import BaseModel, Field

from mockable.core.compiler.pipeline import generate_mock
from mockable.core.compiler.scanner import MarkedDeclaration, scan_source
from mockable.core.compiler.templates import RUNTIME
from mockable.core.config import GeneratorOptions, Settings
from mockable.core.model import Diagnostic, GenerationResult

_log = logging.getLogger("mockable.generator")

PACKAGE_ROOT = Path(__file__).resolve().parents[2]
TEMPLATES_DIR = PACKAGE_ROOT / "templates"


class ModuleResult(BaseModel):
    module: str
    text: str = ""
    mocks: List[GenerationResult] = Field(default_factory=list)

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return [d for m in self.mocks for d in m.diagnostics]

    @property
    def ok(self) -> bool:
        return not self.diagnostics


def _environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(enabled_extensions=()),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )


def _options_for(
    decl: MarkedDeclaration, settings: Settings, force_portable_lock: Optional[bool]
) -> GeneratorOptions:
    # decorator keyword, then the caller flag, then the configured default
    if decl.force_portable_lock is not None:
        return settings.options(decl.force_portable_lock)
    return settings.options(force_portable_lock)


def render_mock_module(
    module: str,
    mocks: List[GenerationResult],
    imports: List[str],
    definitions: List[str],
) -> str:
    template = _environment().get_template("mock_module.py.j2")
    generated = [m for m in mocks if m.ok]
    return template.render(
        module=module,
        protocols=[m.protocol for m in generated],
        imports=imports,
        runtime=RUNTIME,
        definitions=definitions,
        mocks=[m.text for m in generated],
        exports=[m.mock_name for m in generated if m.mock_name and not m.mock_name.startswith("_")],
    )


def generate_mock_module(
    source: str,
    module: str,
    settings: Optional[Settings] = None,
    *,
    force_portable_lock: Optional[bool] = None,
    filename: str = "<unknown>",
) -> ModuleResult:
    """
    Generate the mock module for every ``@mockable`` declaration in ``source``.

    ``module`` is the import path the generated file uses to reach the
    protocols. If any declaration produces diagnostics the result carries
    them and no text.
    """
    cfg = settings or Settings()
    scanned = scan_source(source, module, filename=filename)

    mocks = [
        generate_mock(decl.node, _options_for(decl, cfg, force_portable_lock), module_type_vars=scanned.type_vars)
        for decl in scanned.declarations
    ]
    result = ModuleResult(module=module, mocks=mocks)
    if not result.ok:
        _log.warning("%s: %d diagnostic(s), no module emitted", module, len(result.diagnostics))
        return result

    if not mocks:
        _log.info("%s: no @mockable declarations found", module)
    result.text = render_mock_module(module, mocks, scanned.imports, scanned.definitions)
    return result


def output_path_for(source_path: Path, suffix: str) -> Path:
    return source_path.with_name(f"{source_path.stem}{suffix}{source_path.suffix}")

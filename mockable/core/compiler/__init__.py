"""Protocol-to-mock compiler: one ``generate_mock`` call per marked declaration."""

from mockable.core.compiler.pipeline import generate_mock
from mockable.core.compiler.scanner import MarkedDeclaration, ScannedModule, scan_source

__all__ = ["generate_mock", "scan_source", "MarkedDeclaration", "ScannedModule"]

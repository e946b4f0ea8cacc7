"""Section detection and decoration planning."""

from .decorations import SectionDecorations, plan_decorations
from .scanner import DEFAULT_CELL_MARKERS, ScanResult, Section, resolve_language, scan_sections

__all__ = [
    "DEFAULT_CELL_MARKERS",
    "ScanResult",
    "Section",
    "SectionDecorations",
    "plan_decorations",
    "resolve_language",
    "scan_sections",
]

"""Hierarchical section lookup for line-oriented documents."""

from .core import LineRange, LineSpan, MalformedRangeError, NonLaminarRangeError, RangeIndex, RangeIndexError
from .sections import Section, SectionDecorations, plan_decorations, scan_sections

__version__ = "0.1.0"

__all__ = [
    "LineRange",
    "LineSpan",
    "MalformedRangeError",
    "NonLaminarRangeError",
    "RangeIndex",
    "RangeIndexError",
    "Section",
    "SectionDecorations",
    "plan_decorations",
    "scan_sections",
    "__version__",
]

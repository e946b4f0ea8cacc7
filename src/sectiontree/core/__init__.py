"""Core domain types: line spans and the section containment index."""

from .range_tree import MalformedRangeError, NonLaminarRangeError, RangeIndex, RangeIndexError
from .ranges import LineRange, LineSpan

__all__ = [
    "LineRange",
    "LineSpan",
    "RangeIndex",
    "RangeIndexError",
    "MalformedRangeError",
    "NonLaminarRangeError",
]

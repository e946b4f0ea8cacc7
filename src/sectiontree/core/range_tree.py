"""Line-based containment index over nested document sections.

:class:`RangeIndex` answers "which section contains line ``L``" for a laminar
family of spans, i.e. spans that are either disjoint or fully nested. Given
the sections::

    (1, 10), (3, 6), (4, 5), (7, 9)

the index resolves line 2 to ``(1, 10)``, lines 3 and 6 to ``(3, 6)``, lines
4 and 5 to ``(4, 5)`` and lines 7 through 9 to ``(7, 9)``.

Nodes live in an arena of parallel lists addressed by integer id. Id ``0`` is
a synthetic root covering every line; it has no span of its own.
"""

from __future__ import annotations

import logging
from bisect import bisect_right
from typing import Generic, Iterable, TypeVar

from .ranges import LineRange, LineSpan

__all__ = [
    "RangeIndex",
    "RangeIndexError",
    "MalformedRangeError",
    "NonLaminarRangeError",
]

LOGGER = logging.getLogger(__name__)

SpanT = TypeVar("SpanT", bound=LineSpan)

_ROOT = 0


class RangeIndexError(ValueError):
    """Base class for spans rejected by a strict :class:`RangeIndex` build."""


class MalformedRangeError(RangeIndexError):
    """Raised when a span ends before it starts."""

    def __init__(self, span: LineSpan) -> None:
        super().__init__(f"Span ends before it starts: {span.start_line}-{span.end_line}")
        self.span = span


class NonLaminarRangeError(RangeIndexError):
    """Raised when two spans partially overlap instead of nesting."""

    def __init__(self, existing: LineSpan, incoming: LineSpan) -> None:
        super().__init__(
            "Spans overlap without nesting: "
            f"{existing.start_line}-{existing.end_line} and "
            f"{incoming.start_line}-{incoming.end_line}"
        )
        self.existing = existing
        self.incoming = incoming


class RangeIndex(Generic[SpanT]):
    """Hierarchical index answering point queries over nested line spans.

    Only laminar families are supported. With ``strict=False`` malformed or
    crossing spans are still inserted and counted in :attr:`violations`;
    lookups touching them are undefined. With ``strict=True`` they raise a
    :class:`RangeIndexError` and the previous tree is kept.

    The index references the caller's span objects and never copies them.
    """

    __slots__ = (
        "_strict",
        "_spans",
        "_starts",
        "_ends",
        "_parents",
        "_children",
        "_child_starts",
        "_violations",
    )

    def __init__(self, ranges: Iterable[SpanT] = (), *, strict: bool = False) -> None:
        self._strict = strict
        self._spans: list[SpanT | None] = [None]
        self._starts: list[int] = [0]
        self._ends: list[int] = [0]
        self._parents: list[int] = [_ROOT]
        self._children: list[list[int]] = [[]]
        self._child_starts: list[list[int]] = [[]]
        self._violations = 0
        self.set(ranges)

    @classmethod
    def from_pairs(
        cls, pairs: Iterable[tuple[int, int]], *, strict: bool = False
    ) -> "RangeIndex[LineRange]":
        """Build an index from plain ``(start_line, end_line)`` pairs."""

        return cls([LineRange(start, end) for start, end in pairs], strict=strict)  # type: ignore[return-value]

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    def set(self, ranges: Iterable[SpanT]) -> None:
        """Rebuild the tree from ``ranges``, discarding the previous contents."""

        ordered = sorted(ranges, key=lambda span: (span.start_line, -span.end_line))
        spans: list[SpanT | None] = [None]
        starts = [0]
        ends = [0]
        parents = [_ROOT]
        children: list[list[int]] = [[]]
        child_starts: list[list[int]] = [[]]
        violations = 0

        current = _ROOT
        for span in ordered:
            start = span.start_line
            end = span.end_line
            if end < start:
                if self._strict:
                    raise MalformedRangeError(span)
                violations += 1
                LOGGER.debug("Indexing malformed span %s-%s", start, end)

            node = current
            while node != _ROOT and not (starts[node] <= start and end <= ends[node]):
                if ends[node] >= start:
                    existing = spans[node]
                    assert existing is not None
                    if self._strict:
                        raise NonLaminarRangeError(existing, span)
                    violations += 1
                    LOGGER.debug(
                        "Span %s-%s crosses %s-%s", start, end, starts[node], ends[node]
                    )
                node = parents[node]

            node_id = len(spans)
            spans.append(span)
            starts.append(start)
            ends.append(end)
            parents.append(node)
            children.append([])
            child_starts.append([])
            children[node].append(node_id)
            child_starts[node].append(start)
            current = node_id

        self._spans = spans
        self._starts = starts
        self._ends = ends
        self._parents = parents
        self._children = children
        self._child_starts = child_starts
        self._violations = violations
        if violations:
            LOGGER.warning(
                "Section index built from %d spans with %d nesting violations; "
                "lookups near them are unreliable",
                len(spans) - 1,
                violations,
            )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def find(self, line: int) -> SpanT | None:
        """Return the innermost span containing ``line``, or ``None``."""

        node = _ROOT
        while True:
            child = self._search_children(node, line)
            if child is None:
                break
            node = child
        return self._spans[node]

    def find_all(self, line: int) -> set[SpanT]:
        """Return every span containing ``line`` (the full ancestor chain)."""

        return set(self.find_chain(line))

    def find_chain(self, line: int) -> list[SpanT]:
        """Return the spans containing ``line`` ordered outermost first."""

        chain: list[SpanT] = []
        node = self._search_children(_ROOT, line)
        while node is not None:
            span = self._spans[node]
            assert span is not None
            chain.append(span)
            node = self._search_children(node, line)
        return chain

    def get_top_level_ranges(self) -> list[SpanT]:
        """Return the outermost spans ascending by start line."""

        return [self._spans[child] for child in self._children[_ROOT]]  # type: ignore[misc]

    @property
    def strict(self) -> bool:
        return self._strict

    @property
    def violations(self) -> int:
        """Malformed spans plus crossing pairs seen by the last lenient build."""

        return self._violations

    def __len__(self) -> int:
        return len(self._spans) - 1

    def __repr__(self) -> str:
        return f"RangeIndex(spans={len(self)}, top_level={len(self._children[_ROOT])})"

    def _search_children(self, node: int, line: int) -> int | None:
        # Siblings are disjoint and ascending, so only the last child starting
        # at or before ``line`` can contain it.
        position = bisect_right(self._child_starts[node], line) - 1
        if position < 0:
            return None
        child = self._children[node][position]
        if line > self._ends[child]:
            return None
        return child

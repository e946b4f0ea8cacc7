"""Line span types shared by the index and the section scanner."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@runtime_checkable
class LineSpan(Protocol):
    """Anything exposing inclusive, zero-based ``start_line``/``end_line`` bounds."""

    @property
    def start_line(self) -> int: ...

    @property
    def end_line(self) -> int: ...


@dataclass(slots=True, frozen=True)
class LineRange:
    """Inclusive line span.

    Bounds are kept exactly as given (only converted to ``int``), so a
    reversed or negative span reaches :class:`~sectiontree.core.range_tree.RangeIndex`
    unchanged and is reported there.
    """

    start_line: int
    end_line: int

    def __post_init__(self) -> None:
        for name in ("start_line", "end_line"):
            value = getattr(self, name)
            try:
                object.__setattr__(self, name, int(value))
            except (TypeError, ValueError) as exc:
                raise ValueError(f"LineRange {name} must be an integer, got {value!r}") from exc

    @property
    def line_count(self) -> int:
        """Number of lines covered, or ``0`` for a reversed span."""

        return max(0, self.end_line - self.start_line + 1)

    def to_dict(self) -> dict[str, int]:
        return {"start_line": self.start_line, "end_line": self.end_line}


__all__ = ["LineRange", "LineSpan"]

"""Plan which lines carry section borders for the focused-section highlight."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..core.ranges import LineSpan

__all__ = ["SectionDecorations", "plan_decorations"]


@dataclass(slots=True, frozen=True)
class SectionDecorations:
    """Line numbers that should receive each kind of section border.

    ``focused_*`` lines use the emphasised style, ``boundary_*`` lines the
    muted one. Renderers draw *top* borders above a line and *bottom* borders
    below it.
    """

    focused: LineSpan | None = None
    focused_top: tuple[int, ...] = ()
    focused_bottom: tuple[int, ...] = ()
    boundary_top: tuple[int, ...] = ()
    boundary_bottom: tuple[int, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (
            self.focused_top or self.focused_bottom or self.boundary_top or self.boundary_bottom
        )


def plan_decorations(sections: Iterable[LineSpan], focused: LineSpan | None) -> SectionDecorations:
    """Return the border lines for ``sections`` with ``focused`` emphasised.

    A section usually ends on the line right above the next one's start, so
    the muted bottom border directly above the focused section is dropped in
    favour of the focused top border.
    """

    spans = list(sections)
    start_lines = {span.start_line for span in spans}
    end_lines = {span.end_line for span in spans}

    if focused is None:
        return SectionDecorations(
            boundary_top=tuple(sorted(start_lines)),
            boundary_bottom=tuple(sorted(end_lines)),
        )

    focused_start = focused.start_line
    return SectionDecorations(
        focused=focused,
        focused_top=(focused_start,),
        focused_bottom=(focused.end_line,),
        boundary_top=tuple(sorted(line for line in start_lines if line != focused_start)),
        boundary_bottom=tuple(sorted(line for line in end_lines if line != focused_start - 1)),
    )

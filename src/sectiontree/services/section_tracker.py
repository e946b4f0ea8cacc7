"""Per-document section state kept in sync with editor activity.

The tracker rebuilds each document's :class:`RangeIndex` wholesale when the
document changes. Change events are debounced so typing bursts cause a single
rebuild once the document settles; the host calls :meth:`SectionTracker.flush`
from its timer or idle hook to run rebuilds that are due.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from ..core.range_tree import RangeIndex, RangeIndexError
from ..sections.decorations import SectionDecorations, plan_decorations
from ..sections.scanner import Section, resolve_language, scan_sections
from .event_bus import (
    DocumentChangedEvent,
    DocumentClosedEvent,
    DocumentEvent,
    DocumentEventBus,
    get_document_event_bus,
)
from .settings import Settings

__all__ = [
    "DocumentProvider",
    "DocumentSnapshot",
    "SectionState",
    "SectionTracker",
    "TrackerConfig",
    "tracker_from_settings",
]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class DocumentSnapshot:
    """Text and language hints for a document at a point in time."""

    document_id: str
    text: str
    language: str | None = None
    path: str | None = None
    version_id: int | None = None


DocumentProvider = Callable[[str], DocumentSnapshot | None]


@dataclass(slots=True)
class TrackerConfig:
    """Tunable parameters for the section tracker."""

    debounce_seconds: float = 0.5
    strict_nesting: bool = False
    cell_markers: dict[str, str] = field(default_factory=dict)
    language_suffixes: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings) -> "TrackerConfig":
        return cls(
            debounce_seconds=max(0.0, settings.debounce_seconds),
            strict_nesting=settings.strict_nesting,
            cell_markers=dict(settings.cell_markers),
            language_suffixes=dict(settings.language_suffixes),
        )


@dataclass(slots=True)
class SectionState:
    document_id: str
    language: str
    sections: tuple[Section, ...]
    index: RangeIndex[Section]
    version_id: int | None = None
    cursor_line: int | None = None
    latency_ms: float = 0.0


@dataclass(slots=True)
class _RebuildJob:
    document_id: str
    version_id: int
    available_at: float


class SectionTracker:
    """Keeps a section index per open document and answers cursor queries."""

    def __init__(
        self,
        *,
        document_provider: DocumentProvider,
        event_bus: DocumentEventBus | None = None,
        config: TrackerConfig | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        if document_provider is None:
            raise ValueError("document_provider is required")
        self._document_provider = document_provider
        self._config = config or TrackerConfig()
        self._clock = clock or _now
        self._event_bus = event_bus or get_document_event_bus()
        self._states: dict[str, SectionState] = {}
        self._pending: dict[str, _RebuildJob] = {}
        self._closed = False

        self._event_bus.subscribe(DocumentChangedEvent, self._handle_changed, weak=True)
        self._event_bus.subscribe(DocumentClosedEvent, self._handle_closed, weak=True)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def config(self) -> TrackerConfig:
        return self._config

    def open_document(self, document_id: str) -> SectionState | None:
        """Index ``document_id`` immediately, bypassing the debounce."""

        return self.rebuild(document_id)

    def rebuild(self, document_id: str) -> SectionState | None:
        """Rescan the document and replace its index."""

        self._pending.pop(document_id, None)
        snapshot = self._document_provider(document_id)
        if snapshot is None:
            self._states.pop(document_id, None)
            return None

        previous = self._states.get(document_id)
        started = time.perf_counter()
        language = resolve_language(
            snapshot.path,
            snapshot.language,
            extra_suffixes=self._config.language_suffixes,
        )
        result = scan_sections(
            snapshot.text,
            language=language,
            cell_markers=self._config.cell_markers,
        )
        try:
            index: RangeIndex[Section] = RangeIndex(
                result.sections, strict=self._config.strict_nesting
            )
        except RangeIndexError as exc:
            LOGGER.warning("Section index rebuild rejected for %s: %s", document_id, exc)
            return previous
        latency_ms = (time.perf_counter() - started) * 1000.0

        state = SectionState(
            document_id=document_id,
            language=result.language,
            sections=result.sections,
            index=index,
            version_id=snapshot.version_id,
            cursor_line=previous.cursor_line if previous is not None else None,
            latency_ms=round(latency_ms, 3),
        )
        self._states[document_id] = state
        LOGGER.debug(
            "Rebuilt section index for %s (%s): %d sections in %.3fms",
            document_id,
            result.language,
            len(result.sections),
            latency_ms,
        )
        return state

    def flush(self, now: float | None = None) -> list[str]:
        """Run every rebuild whose debounce window has elapsed.

        Returns the ids that were rebuilt. A due job whose version is already
        indexed is dropped without rescanning.
        """

        if self._closed:
            return []
        current = self._clock() if now is None else now
        due = [job for job in self._pending.values() if job.available_at <= current]
        rebuilt: list[str] = []
        for job in due:
            state = self._states.get(job.document_id)
            if state is not None and state.version_id == job.version_id:
                self._pending.pop(job.document_id, None)
                LOGGER.debug("Section index for %s already at v%s", job.document_id, job.version_id)
                continue
            self.rebuild(job.document_id)
            rebuilt.append(job.document_id)
        return rebuilt

    def is_rebuild_pending(self, document_id: str) -> bool:
        if self._closed:
            return False
        return document_id in self._pending

    def move_cursor(
        self,
        document_id: str,
        line: int,
        *,
        selection_empty: bool = True,
    ) -> SectionDecorations:
        """Record the caret line and return the resulting section borders.

        Only collapsed selections move the tracked caret; extending a
        selection keeps the previous focus.
        """

        state = self._states.get(document_id)
        if state is None:
            return SectionDecorations()
        if selection_empty:
            state.cursor_line = line
        return self.decorations(document_id)

    def decorations(self, document_id: str) -> SectionDecorations:
        state = self._states.get(document_id)
        if state is None:
            return SectionDecorations()
        return plan_decorations(state.sections, self.active_section(document_id))

    def active_section(self, document_id: str) -> Section | None:
        """Return the innermost section around the caret, if any."""

        state = self._states.get(document_id)
        if state is None or state.cursor_line is None:
            return None
        return state.index.find(state.cursor_line)

    def section_chain(self, document_id: str) -> list[Section]:
        """Return the sections enclosing the caret, outermost first."""

        state = self._states.get(document_id)
        if state is None or state.cursor_line is None:
            return []
        return state.index.find_chain(state.cursor_line)

    def sections(self, document_id: str) -> tuple[Section, ...]:
        state = self._states.get(document_id)
        return state.sections if state is not None else ()

    def index_for(self, document_id: str) -> RangeIndex[Section] | None:
        state = self._states.get(document_id)
        return state.index if state is not None else None

    def state_for(self, document_id: str) -> SectionState | None:
        return self._states.get(document_id)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._event_bus.unsubscribe(DocumentChangedEvent, self._handle_changed)
        self._event_bus.unsubscribe(DocumentClosedEvent, self._handle_closed)
        self._pending.clear()
        self._states.clear()

    # ------------------------------------------------------------------
    # Event bus handlers
    # ------------------------------------------------------------------
    def _handle_changed(self, event: DocumentEvent) -> None:
        if self._closed or not isinstance(event, DocumentChangedEvent):
            return
        available_at = self._clock() + max(0.0, self._config.debounce_seconds)
        self._pending[event.document_id] = _RebuildJob(
            document_id=event.document_id,
            version_id=event.version_id,
            available_at=available_at,
        )
        LOGGER.debug(
            "Section rebuild scheduled for %s (v%s) at %.3f",
            event.document_id,
            event.version_id,
            available_at,
        )

    def _handle_closed(self, event: DocumentEvent) -> None:
        if self._closed or not isinstance(event, DocumentClosedEvent):
            return
        self._pending.pop(event.document_id, None)
        self._states.pop(event.document_id, None)
        LOGGER.debug("Dropped section state for %s (%s)", event.document_id, event.reason or "closed")


def _now() -> float:
    return time.monotonic()


def tracker_from_settings(
    settings: Settings,
    *,
    document_provider: DocumentProvider,
    event_bus: DocumentEventBus | None = None,
    clock: Callable[[], float] | None = None,
) -> SectionTracker:
    """Create a tracker configured from persisted :class:`Settings`."""

    return SectionTracker(
        document_provider=document_provider,
        event_bus=event_bus,
        config=TrackerConfig.from_settings(settings),
        clock=clock,
    )

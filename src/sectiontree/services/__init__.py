"""Service layer: document events, settings and per-document section tracking."""

from .event_bus import (
    DocumentChangedEvent,
    DocumentClosedEvent,
    DocumentEventBus,
    get_document_event_bus,
    set_document_event_bus,
)
from .section_tracker import DocumentSnapshot, SectionTracker, TrackerConfig, tracker_from_settings
from .settings import Settings, SettingsStore

__all__ = [
    "DocumentEventBus",
    "DocumentChangedEvent",
    "DocumentClosedEvent",
    "DocumentSnapshot",
    "SectionTracker",
    "Settings",
    "SettingsStore",
    "TrackerConfig",
    "get_document_event_bus",
    "set_document_event_bus",
    "tracker_from_settings",
]

"""Tests for the document event bus."""

from __future__ import annotations

import gc
import logging

import pytest

from sectiontree.services.event_bus import (
    DocumentEventBus,
    DocumentEvent,
    DocumentChangedEvent,
    DocumentClosedEvent,
    get_document_event_bus,
    set_document_event_bus,
)


def test_publish_delivers_matching_events(event_bus: DocumentEventBus) -> None:
    changed: list[DocumentEvent] = []
    closed: list[DocumentEvent] = []
    event_bus.subscribe(DocumentChangedEvent, changed.append)
    event_bus.subscribe(DocumentClosedEvent, closed.append)

    event_bus.publish(DocumentChangedEvent(document_id="doc", version_id="3"))  # type: ignore[arg-type]

    assert len(changed) == 1
    assert closed == []
    event = changed[0]
    assert isinstance(event, DocumentChangedEvent)
    assert event.version_id == 3


def test_base_class_subscribers_see_every_event(event_bus: DocumentEventBus) -> None:
    seen: list[str] = []
    event_bus.subscribe(DocumentEvent, lambda event: seen.append(event.document_id))

    event_bus.publish(DocumentChangedEvent(document_id="a", version_id=1))
    event_bus.publish(DocumentClosedEvent(document_id="b", reason="tab closed"))

    assert seen == ["a", "b"]


def test_unsubscribe_stops_delivery(event_bus: DocumentEventBus) -> None:
    seen: list[DocumentEvent] = []

    def _record(event: DocumentEvent) -> None:
        seen.append(event)

    event_bus.subscribe(DocumentChangedEvent, _record)
    event_bus.unsubscribe(DocumentChangedEvent, _record)

    event_bus.publish(DocumentChangedEvent(document_id="doc", version_id=1))

    assert seen == []
    assert event_bus.subscriber_count(DocumentChangedEvent) == 0


def test_failing_subscriber_does_not_block_others(
    event_bus: DocumentEventBus, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.ERROR, logger="sectiontree.services.event_bus")
    seen: list[DocumentEvent] = []

    def _explode(_event: DocumentEvent) -> None:
        raise RuntimeError("boom")

    event_bus.subscribe(DocumentChangedEvent, _explode)
    event_bus.subscribe(DocumentChangedEvent, seen.append)

    event_bus.publish(DocumentChangedEvent(document_id="doc", version_id=1))

    assert len(seen) == 1
    assert "subscriber failed" in caplog.text


def test_weak_subscribers_are_dropped_when_collected(event_bus: DocumentEventBus) -> None:
    class _Listener:
        def __init__(self) -> None:
            self.events: list[DocumentEvent] = []

        def handle(self, event: DocumentEvent) -> None:
            self.events.append(event)

    listener = _Listener()
    event_bus.subscribe(DocumentChangedEvent, listener.handle, weak=True)
    event_bus.publish(DocumentChangedEvent(document_id="doc", version_id=1))
    assert len(listener.events) == 1

    del listener
    gc.collect()
    event_bus.publish(DocumentChangedEvent(document_id="doc", version_id=2))

    assert event_bus.subscriber_count(DocumentChangedEvent) == 0


def test_global_bus_can_be_replaced() -> None:
    original = get_document_event_bus()
    replacement = DocumentEventBus()
    try:
        assert set_document_event_bus(replacement) is replacement
        assert get_document_event_bus() is replacement
        fresh = set_document_event_bus(None)
        assert fresh is not replacement
    finally:
        set_document_event_bus(original)

"""Document change bus used to invalidate per-document section state."""

from __future__ import annotations

from dataclasses import dataclass
from threading import RLock
from typing import Any, Callable, List, MutableMapping, Type
import logging
import weakref

_LOGGER = logging.getLogger(__name__)


class DocumentEvent:
    """Base class for document lifecycle events."""

    __slots__ = ("document_id",)

    def __init__(self, document_id: str) -> None:
        self.document_id = document_id


class DocumentChangedEvent(DocumentEvent):
    """Published after the editor mutates a document.

    ``version_id`` is the document version the change produced; trackers use
    it to skip rebuilds for versions they have already indexed.
    """

    __slots__ = ("version_id",)

    def __init__(self, *, document_id: str, version_id: int) -> None:
        super().__init__(document_id)
        self.version_id = int(version_id)


class DocumentClosedEvent(DocumentEvent):
    """Published when a document is closed and its state should be dropped."""

    __slots__ = ("reason",)

    def __init__(self, *, document_id: str, reason: str | None = None) -> None:
        super().__init__(document_id)
        self.reason = reason


Subscriber = Callable[[DocumentEvent], None]


@dataclass(slots=True)
class _Subscription:
    """One registered handler, held strongly or through a weak reference."""

    func: Any
    owner: Any
    handler: Subscriber | None = None
    handler_ref: Callable[[], Subscriber | None] | None = None

    @classmethod
    def create(cls, handler: Subscriber, *, weak: bool) -> "_Subscription":
        func = getattr(handler, "__func__", handler)
        owner = getattr(handler, "__self__", None)
        if not weak:
            return cls(func=func, owner=owner, handler=handler)
        try:
            ref: Callable[[], Subscriber | None] = (
                weakref.WeakMethod(handler) if owner is not None else weakref.ref(handler)  # type: ignore[arg-type]
            )
        except TypeError:
            return cls(func=func, owner=owner, handler=handler)
        owner_ref = weakref.ref(owner) if owner is not None else None
        return cls(func=func, owner=owner_ref, handler_ref=ref)

    def resolve(self) -> Subscriber | None:
        if self.handler_ref is not None:
            return self.handler_ref()
        return self.handler

    def matches(self, handler: Subscriber) -> bool:
        if getattr(handler, "__func__", handler) is not self.func:
            return False
        owner = self.owner
        if self.handler_ref is not None and isinstance(owner, weakref.ReferenceType):
            owner = owner()
        return owner is getattr(handler, "__self__", None)


class DocumentEventBus:
    """Synchronous pub/sub bus for document lifecycle events.

    Handlers run on the publishing thread after the registry lock is
    released. A failing handler is logged and does not stop delivery to the
    rest. Weak subscriptions disappear once their owner is collected.
    """

    def __init__(self) -> None:
        self._subscriptions: MutableMapping[Type[DocumentEvent], List[_Subscription]] = {}
        self._lock = RLock()

    def subscribe(
        self,
        event_type: Type[DocumentEvent],
        handler: Subscriber,
        *,
        weak: bool = False,
    ) -> None:
        subscription = _Subscription.create(handler, weak=weak)
        with self._lock:
            self._subscriptions.setdefault(event_type, []).append(subscription)

    def unsubscribe(self, event_type: Type[DocumentEvent], handler: Subscriber) -> None:
        with self._lock:
            entries = self._subscriptions.get(event_type)
            if not entries:
                return
            entries[:] = [entry for entry in entries if not entry.matches(handler)]
            if not entries:
                self._subscriptions.pop(event_type, None)

    def subscriber_count(self, event_type: Type[DocumentEvent]) -> int:
        with self._lock:
            return sum(1 for entry in self._subscriptions.get(event_type, ()) if entry.resolve() is not None)

    def publish(self, event: DocumentEvent) -> None:
        handlers: list[Subscriber] = []
        with self._lock:
            for event_type in list(self._subscriptions):
                if not isinstance(event, event_type):
                    continue
                live = []
                for entry in self._subscriptions[event_type]:
                    handler = entry.resolve()
                    if handler is None:
                        continue
                    live.append(entry)
                    handlers.append(handler)
                if live:
                    self._subscriptions[event_type] = live
                else:
                    del self._subscriptions[event_type]
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                _LOGGER.exception("Document event subscriber failed for %s", event.document_id)


_GLOBAL_BUS: DocumentEventBus | None = None


def get_document_event_bus() -> DocumentEventBus:
    global _GLOBAL_BUS
    if _GLOBAL_BUS is None:
        _GLOBAL_BUS = DocumentEventBus()
    return _GLOBAL_BUS


def set_document_event_bus(bus: DocumentEventBus | None) -> DocumentEventBus:
    global _GLOBAL_BUS
    _GLOBAL_BUS = bus
    if _GLOBAL_BUS is None:
        _GLOBAL_BUS = DocumentEventBus()
    return _GLOBAL_BUS


__all__ = [
    "DocumentEventBus",
    "DocumentEvent",
    "DocumentChangedEvent",
    "DocumentClosedEvent",
    "get_document_event_bus",
    "set_document_event_bus",
]

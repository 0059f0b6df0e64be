"""Typed frame events and the in-process subscription bus."""

from __future__ import annotations

import inspect
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, ClassVar, Protocol

from openframe.contracts import (
    EVENT_ARTWORK_CHANGED,
    EVENT_FRAME_CONNECTED,
    EVENT_FRAME_UPDATED,
    EVENT_SIDE_EFFECT_FAILED,
)
from openframe.supervisor.models import ArtworkRecord, DeviceRecord

logger = logging.getLogger("openframe.supervisor.events")


@dataclass(frozen=True)
class FrameEvent:
    event_type: ClassVar[str] = "frame.event"

    def to_payload(self) -> dict[str, Any]:
        return {"event_type": self.event_type}


@dataclass(frozen=True)
class FrameConnected(FrameEvent):
    """Device record has been resolved or registered."""

    event_type: ClassVar[str] = EVENT_FRAME_CONNECTED
    device: DeviceRecord

    def to_payload(self) -> dict[str, Any]:
        return {"event_type": self.event_type, "device": self.device.model_dump(mode="json")}


@dataclass(frozen=True)
class FrameUpdated(FrameEvent):
    """Device record was replaced by a push from the remote service."""

    event_type: ClassVar[str] = EVENT_FRAME_UPDATED
    device: DeviceRecord

    def to_payload(self) -> dict[str, Any]:
        return {"event_type": self.event_type, "device": self.device.model_dump(mode="json")}


@dataclass(frozen=True)
class ArtworkChanged(FrameEvent):
    event_type: ClassVar[str] = EVENT_ARTWORK_CHANGED
    artwork: ArtworkRecord
    previous: ArtworkRecord | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type,
            "artwork_id": self.artwork.id,
            "previous_artwork_id": self.previous.id if self.previous else None,
        }


@dataclass(frozen=True)
class SideEffectFailed(FrameEvent):
    """A post-resolve collaborator (persistence, plugin sync) failed."""

    event_type: ClassVar[str] = EVENT_SIDE_EFFECT_FAILED
    stage: str
    error: BaseException

    def to_payload(self) -> dict[str, Any]:
        return {"event_type": self.event_type, "stage": self.stage, "message": str(self.error)}


Handler = Callable[[FrameEvent], Awaitable[None] | None]


class EventSink(Protocol):
    """External notification channel; receives every published event."""

    async def publish(self, event_type: str, payload: dict[str, Any]) -> None: ...


class EventBus:
    """Dispatch typed events to in-process subscribers and external sinks."""

    def __init__(self) -> None:
        self._handlers: dict[type[FrameEvent], list[Handler]] = defaultdict(list)
        self._sinks: list[EventSink] = []

    def subscribe(self, event_cls: type[FrameEvent], handler: Handler) -> Callable[[], None]:
        """Register handler for event_cls; returns a callable that unsubscribes it."""
        self._handlers[event_cls].append(handler)

        def _unsubscribe() -> None:
            handlers = self._handlers.get(event_cls, [])
            if handler in handlers:
                handlers.remove(handler)

        return _unsubscribe

    def add_sink(self, sink: EventSink) -> None:
        self._sinks.append(sink)

    async def publish(self, event: FrameEvent) -> None:
        """Run subscribers in registration order, then notify sinks.

        Subscriber errors propagate to the publisher. Sink errors are logged
        and dropped since the external channel is fire-and-forget.
        """
        logger.debug("Publishing %s", event.event_type)
        for handler in list(self._handlers.get(type(event), [])):
            result = handler(event)
            if inspect.isawaitable(result):
                await result

        if not self._sinks:
            return
        payload = event.to_payload()
        for sink in list(self._sinks):
            try:
                await sink.publish(event.event_type, payload)
            except Exception as e:
                logger.warning("Event sink failed for %s: %s", event.event_type, e)

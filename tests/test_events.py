"""Tests for the typed event bus and external sinks."""

import unittest

from openframe.supervisor.events import ArtworkChanged, EventBus, FrameConnected
from openframe.supervisor.models import ArtworkRecord, DeviceRecord


class _RecordingSink:
    def __init__(self) -> None:
        self.published: list[tuple[str, dict]] = []

    async def publish(self, event_type: str, payload: dict) -> None:
        self.published.append((event_type, payload))


class _BrokenSink:
    async def publish(self, event_type: str, payload: dict) -> None:
        raise ConnectionError("pubsub offline")


class EventBusTests(unittest.IsolatedAsyncioTestCase):
    """Validate subscription dispatch and fire-and-forget sinks."""

    async def test_sync_and_async_handlers_receive_matching_events(self) -> None:
        bus = EventBus()
        seen: list[str] = []

        async def _async_handler(event: FrameConnected) -> None:
            seen.append(f"async:{event.device.id}")

        bus.subscribe(FrameConnected, lambda event: seen.append(f"sync:{event.device.id}"))
        bus.subscribe(FrameConnected, _async_handler)
        bus.subscribe(ArtworkChanged, lambda event: seen.append("artwork"))

        await bus.publish(FrameConnected(device=DeviceRecord(id="f1")))
        self.assertEqual(seen, ["sync:f1", "async:f1"])

    async def test_unsubscribe_stops_delivery(self) -> None:
        bus = EventBus()
        seen: list[FrameConnected] = []
        unsubscribe = bus.subscribe(FrameConnected, seen.append)
        unsubscribe()
        unsubscribe()
        await bus.publish(FrameConnected(device=DeviceRecord(id="f1")))
        self.assertEqual(seen, [])

    async def test_handler_errors_reach_publisher(self) -> None:
        bus = EventBus()

        def _fail(event: FrameConnected) -> None:
            raise RuntimeError("handler broke")

        bus.subscribe(FrameConnected, _fail)
        with self.assertRaises(RuntimeError):
            await bus.publish(FrameConnected(device=DeviceRecord(id="f1")))

    async def test_sinks_get_payloads_and_failures_are_dropped(self) -> None:
        bus = EventBus()
        sink = _RecordingSink()
        bus.add_sink(_BrokenSink())
        bus.add_sink(sink)
        artwork = ArtworkRecord(id="a1", url="http://cdn.example.com/a.png", format={"start_command": "feh"})

        with self.assertLogs("openframe.supervisor.events", level="WARNING"):
            await bus.publish(ArtworkChanged(artwork=artwork))

        self.assertEqual(
            sink.published,
            [("artwork.changed", {"event_type": "artwork.changed", "artwork_id": "a1", "previous_artwork_id": None})],
        )


if __name__ == "__main__":
    unittest.main()

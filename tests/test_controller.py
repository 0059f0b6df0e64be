"""Tests for end-to-end frame startup, remote updates and shutdown."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

import httpx

from openframe.errors import StartupError
from openframe.supervisor.api_client import FrameApiClient
from openframe.supervisor.controller import FrameController
from openframe.supervisor.frame_config import FrameConfigStore, load_config, save_config


def _artwork_payload(artwork_id: str, *, download: bool = False) -> dict:
    return {
        "_id": artwork_id,
        "url": f"http://cdn.example.com/{artwork_id}.png",
        "_format": {"start_command": "feh -F", "end_command": "pkill feh", "download": download},
    }


class _FakeSupervisor:
    def __init__(self) -> None:
        self.calls: list[tuple] = []

    async def start(self, command: str):
        self.calls.append(("start", command))

    async def exec_detached(self, command: str) -> int:
        self.calls.append(("exec", command))
        return 0

    def kill_current(self) -> None:
        self.calls.append(("kill_current",))

    def shutdown(self) -> None:
        self.calls.append(("shutdown",))


class _FakeFetcher:
    async def fetch(self, url: str, destination_name: str) -> Path:
        return Path("/cache") / destination_name


class _FakeExtensions:
    def __init__(self) -> None:
        self.synced: list = []

    async def sync(self, device, events) -> None:
        self.synced.append(device.id)


class FrameControllerTests(unittest.IsolatedAsyncioTestCase):
    """Validate the connect -> display pipeline through the controller."""

    async def asyncSetUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.config_path = Path(self._tmp.name) / "ofrc.json"
        save_config(
            {
                "auth": {"username": "ada", "password": "pw"},
                "frame": {"id": "frame-1", "name": "hall"},
            },
            path=self.config_path,
        )
        self.login_status = 200
        self.frame = {"id": "frame-1", "name": "hall", "plugins": {"openframe-image": "*"},
                      "_current_artwork": _artwork_payload("a1")}
        self.supervisor = _FakeSupervisor()
        self.extensions = _FakeExtensions()
        self.controller = FrameController(
            FrameConfigStore(self.config_path),
            api=FrameApiClient("http://api.test:8888", transport=httpx.MockTransport(self._handler)),
            supervisor=self.supervisor,
            fetcher=_FakeFetcher(),
            extensions=self.extensions,
        )

    def _handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/OpenframeUsers/login":
            if self.login_status != 200:
                return httpx.Response(self.login_status, json={"error": "denied"})
            return httpx.Response(200, json={"id": "token-1", "userId": "user-1"})
        if request.url.path == "/api/Frames/frame-1":
            return httpx.Response(200, json=self.frame)
        return httpx.Response(404)

    async def test_start_connects_persists_and_displays_artwork(self) -> None:
        device = await self.controller.start()

        self.assertEqual(device.id, "frame-1")
        self.assertEqual(self.supervisor.calls, [("start", "feh -F http://cdn.example.com/a1.png")])
        self.assertEqual(self.controller.switcher.current.id, "a1")
        self.assertEqual(self.extensions.synced, ["frame-1"])

        saved = load_config(self.config_path)
        self.assertEqual(saved["frame"]["current_artwork"]["id"], "a1")
        self.assertEqual(saved["auth"]["access_token"], "token-1")
        await self.controller.shutdown()

    async def test_fatal_startup_error_names_stage(self) -> None:
        self.login_status = 401
        with self.assertRaises(StartupError) as ctx:
            await self.controller.start()
        self.assertEqual(ctx.exception.stage, "authenticate")
        self.assertTrue(str(ctx.exception).startswith("authenticate failed"))
        self.assertEqual(self.supervisor.calls, [])
        await self.controller.shutdown()

    async def test_frame_update_switches_to_new_artwork(self) -> None:
        await self.controller.start()
        self.supervisor.calls.clear()

        updated = dict(self.frame, _current_artwork=_artwork_payload("a2", download=True))
        await self.controller.handle_frame_update(updated)
        await self.controller.switcher.wait_idle()

        self.assertEqual(
            self.supervisor.calls,
            [("exec", "pkill feh"), ("kill_current",), ("start", "feh -F /cache/a2a2.png")],
        )
        self.assertEqual(load_config(self.config_path)["frame"]["current_artwork"]["id"], "a2")
        await self.controller.shutdown()

    async def test_shutdown_ends_artwork_and_kills_viewers(self) -> None:
        await self.controller.start()
        self.supervisor.calls.clear()
        await self.controller.shutdown()
        self.assertEqual(
            self.supervisor.calls,
            [("exec", "pkill feh"), ("kill_current",), ("shutdown",)],
        )
        self.assertIsNone(self.controller.switcher.current)


if __name__ == "__main__":
    unittest.main()

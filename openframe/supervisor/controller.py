"""Frame controller: owns the supervisor, connection and switcher for one frame."""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Any

from pydantic import ValidationError

from openframe.errors import STAGE_PERSIST, StartupError, FrameStageError
from openframe.supervisor.api_client import FrameApiClient
from openframe.supervisor.artwork_switcher import ArtworkSwitcher
from openframe.supervisor.connection import DeviceConnection
from openframe.supervisor.downloader import Downloader
from openframe.supervisor.events import EventBus, EventSink, FrameUpdated, SideEffectFailed
from openframe.supervisor.extension_manager import ExtensionManager
from openframe.supervisor.frame_config import FrameConfigStore, build_api_url, resolve_download_dir
from openframe.supervisor.models import Credentials, DeviceRecord
from openframe.supervisor.process_supervisor import ProcessSupervisor

logger = logging.getLogger("openframe.supervisor.controller")


class FrameController:
    """Wires one frame's components together and runs its startup sequence."""

    def __init__(
        self,
        store: FrameConfigStore,
        *,
        api: FrameApiClient | None = None,
        supervisor: ProcessSupervisor | None = None,
        fetcher: Downloader | None = None,
        extensions: ExtensionManager | None = None,
        sinks: list[EventSink] | None = None,
    ) -> None:
        self.store = store
        settings = store.settings
        self.events = EventBus()
        for sink in sinks or []:
            self.events.add_sink(sink)
        self.api = api or FrameApiClient(
            build_api_url(settings),
            timeout_seconds=settings["request_timeout_seconds"],
        )
        self.supervisor = supervisor or ProcessSupervisor()
        self.fetcher = fetcher or Downloader(resolve_download_dir(settings))
        self.extensions = extensions or ExtensionManager()
        self.connection = DeviceConnection(
            self.api,
            self.events,
            persist=self._persist,
            plugin_sync=self._sync_plugins,
        )
        self.switcher = ArtworkSwitcher(self.supervisor, self.fetcher)
        self.switcher.attach(self.events)
        self._stop_event = asyncio.Event()

    @property
    def device(self) -> DeviceRecord | None:
        return self.connection.device

    def _persist(self, device: DeviceRecord, credentials: Credentials | None) -> None:
        self.store.save_frame(device, credentials)

    async def _sync_plugins(self, device: DeviceRecord) -> None:
        await self.extensions.sync(device, self.events)

    async def start(self) -> DeviceRecord:
        """Connect the frame and display its assigned artwork.

        Any fatal connection error is re-raised as StartupError naming the
        stage that failed.
        """
        logger.info("Starting frame controller against %s", self.api.base_url)
        try:
            device = await self.connection.connect(self.store.credentials(), self.store.device())
        except FrameStageError as e:
            logger.error("Frame startup failed: %s", e)
            raise StartupError(e.stage, e) from e
        except ValidationError as e:
            raise StartupError("config", e) from e

        await self.switcher.wait_idle()
        logger.info("Frame %s ready", device.id)
        return device

    async def handle_frame_update(self, payload: dict[str, Any]) -> DeviceRecord:
        """Apply a frame record pushed by the remote service."""
        device = DeviceRecord.model_validate(payload)
        self.connection.device = device
        try:
            self._persist(device, None)
        except Exception as e:
            logger.warning("Could not persist updated frame %s: %s", device.id, e)
            await self.events.publish(SideEffectFailed(stage=STAGE_PERSIST, error=e))
        await self.events.publish(FrameUpdated(device=device))
        return device

    def request_stop(self) -> None:
        self._stop_event.set()

    async def shutdown(self) -> None:
        logger.info("Stopping frame controller...")
        try:
            await self.switcher.clear()
        finally:
            self.supervisor.shutdown()
            await self.api.close()

    async def run_forever(self) -> None:
        """Start, then keep viewers running until SIGINT/SIGTERM."""
        loop = asyncio.get_running_loop()
        try:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, self.request_stop)
        except NotImplementedError:
            logger.warning("Signal handlers not supported on this platform (likely Windows).")

        try:
            await self.start()
            await self._stop_event.wait()
        finally:
            await self.shutdown()

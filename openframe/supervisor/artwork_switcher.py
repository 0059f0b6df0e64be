"""Hand the display over from the current artwork's viewer to a new one."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Protocol

from openframe.errors import FrameError, SwitchInProgressError
from openframe.supervisor.downloader import content_addressed_name
from openframe.supervisor.events import ArtworkChanged, EventBus, FrameConnected, FrameUpdated
from openframe.supervisor.models import ArtworkRecord
from openframe.supervisor.process_supervisor import ProcessSupervisor

logger = logging.getLogger("openframe.supervisor.artwork_switcher")


class AssetFetcher(Protocol):
    async def fetch(self, url: str, destination_name: str) -> Path: ...


class ArtworkSwitcher:
    """
    Runs at most one switch at a time.

    `request_switch` is the entry point for assignments coming from the
    remote service: while a switch is in flight, newer requests replace a
    single pending slot (latest wins) and are applied once the running
    switch finishes. `switch_to` is the switch itself and refuses to be
    re-entered.
    """

    def __init__(
        self,
        supervisor: ProcessSupervisor,
        fetcher: AssetFetcher,
        events: EventBus | None = None,
    ) -> None:
        self.supervisor = supervisor
        self.fetcher = fetcher
        self.events = events
        self.current: ArtworkRecord | None = None
        self.last_error: Exception | None = None
        self._switching = False
        self._pending: ArtworkRecord | None = None
        self._worker: asyncio.Task | None = None

    @property
    def is_switching(self) -> bool:
        return self._switching

    def attach(self, events: EventBus) -> None:
        """Follow device records published on events."""
        self.events = events
        events.subscribe(FrameConnected, self.on_device_resolved)
        events.subscribe(FrameUpdated, self.on_device_resolved)

    async def build_command(self, artwork: ArtworkRecord) -> str:
        """Return the viewer command, downloading the asset first when the format asks for it."""
        if artwork.format.download:
            name = content_addressed_name(artwork.id, artwork.url)
            local_path = await self.fetcher.fetch(artwork.url, name)
            return f"{artwork.format.start_command} {local_path}"
        return f"{artwork.format.start_command} {artwork.url}"

    async def switch_to(self, new_artwork: ArtworkRecord) -> None:
        if self._switching:
            raise SwitchInProgressError()
        self._switching = True
        previous = self.current
        try:
            command = await self.build_command(new_artwork)
            if previous is not None:
                await self._end(previous)
                # outgoing viewer is gone (or going); nothing is displayed until start succeeds
                self.current = None
            await self.supervisor.start(command)
            self.current = new_artwork
        finally:
            self._switching = False

        logger.info("Now displaying artwork %s", new_artwork.id)
        if self.events is not None:
            await self.events.publish(ArtworkChanged(artwork=new_artwork, previous=previous))

    async def _end(self, artwork: ArtworkRecord) -> None:
        # the end command is dispatched, not awaited; the viewer may still be exiting
        if artwork.format.end_command:
            await self.supervisor.exec_detached(artwork.format.end_command)
        self.supervisor.kill_current()

    def request_switch(self, artwork: ArtworkRecord) -> asyncio.Task:
        """Queue artwork for display; returns the task draining the queue."""
        self._pending = artwork
        if self._worker is not None and not self._worker.done():
            logger.info("Switch in flight; artwork %s queued", artwork.id)
            return self._worker
        self._worker = asyncio.create_task(self._drain())
        return self._worker

    async def _drain(self) -> None:
        while self._pending is not None:
            artwork = self._pending
            self._pending = None
            if self.current is not None and self.current.id == artwork.id:
                logger.debug("Artwork %s already displayed", artwork.id)
                continue
            try:
                await self.switch_to(artwork)
                self.last_error = None
            except FrameError as e:
                self.last_error = e
                logger.error("Switch to artwork %s failed: %s", artwork.id, e)
            except Exception as e:
                self.last_error = e
                logger.exception("Unexpected error switching to artwork %s", artwork.id)

    async def wait_idle(self) -> None:
        if self._worker is not None:
            await asyncio.shield(self._worker)

    def on_device_resolved(self, event: FrameConnected | FrameUpdated) -> None:
        artwork = event.device.current_artwork
        if artwork is None:
            logger.debug("Frame %s has no artwork assigned", event.device.id)
            return
        if self._worker is not None and not self._worker.done():
            # a newer assignment must replace whatever is queued, even the displayed artwork
            self.request_switch(artwork)
            return
        if self.current is not None and self.current.id == artwork.id:
            logger.debug("Artwork %s unchanged", artwork.id)
            return
        self.request_switch(artwork)

    async def clear(self) -> None:
        """End the displayed artwork, if any, leaving the frame blank."""
        await self.wait_idle()
        if self.current is None:
            return
        await self._end(self.current)
        self.current = None

"""Artwork asset downloads into a content-addressed local cache."""

from __future__ import annotations

import logging
import posixpath
from pathlib import Path
from urllib.parse import urlparse

import httpx

from openframe.errors import FetchError

logger = logging.getLogger("openframe.supervisor.downloader")

DOWNLOAD_TIMEOUT_SECONDS = 60.0
CHUNK_SIZE = 64 * 1024


def content_addressed_name(artwork_id: str, url: str) -> str:
    """Return the cache file name for an artwork: its id followed by the URL basename."""
    basename = posixpath.basename(urlparse(url).path)
    return f"{artwork_id}{basename}"


class Downloader:
    """Fetch remote assets into download_dir, reusing files already present."""

    def __init__(
        self,
        download_dir: Path,
        *,
        timeout_seconds: float = DOWNLOAD_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.download_dir = Path(download_dir)
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def path_for(self, destination_name: str) -> Path:
        name = Path(destination_name).name
        if not name or name in {".", ".."}:
            raise FetchError(f"invalid destination name {destination_name!r}")
        return self.download_dir / name

    async def fetch(self, url: str, destination_name: str) -> Path:
        """Download url to download_dir/destination_name and return the local path."""
        target = self.path_for(destination_name)
        if target.exists() and target.stat().st_size > 0:
            logger.info("Using cached asset %s for %s", target, url)
            return target

        self.download_dir.mkdir(parents=True, exist_ok=True)
        temp_path = target.with_name(target.name + ".part")
        logger.info("Downloading %s -> %s", url, target)
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                async with client.stream("GET", url) as response:
                    response.raise_for_status()
                    with temp_path.open("wb") as handle:
                        async for chunk in response.aiter_bytes(CHUNK_SIZE):
                            handle.write(chunk)
            temp_path.replace(target)
        except (httpx.HTTPError, OSError) as e:
            temp_path.unlink(missing_ok=True)
            raise FetchError(f"download of {url} failed", cause=e) from e

        logger.info("Downloaded %s (%d bytes)", target, target.stat().st_size)
        return target

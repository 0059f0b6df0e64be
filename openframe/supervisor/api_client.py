"""Thin httpx client for the frame coordination REST API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger("openframe.supervisor.api_client")

LOGIN_PATH = "/api/OpenframeUsers/login"
FRAME_PATH = "/api/Frames/{frame_id}"
USER_FRAMES_PATH = "/api/OpenframeUsers/{user_id}/frames"
DEFAULT_TIMEOUT_SECONDS = 10.0


class ApiError(Exception):
    """Non-success response or transport failure from the REST API."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class FrameApiClient:
    """Calls the coordination service; carries the access token once armed."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._access_token: str | None = None
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    @property
    def access_token(self) -> str | None:
        return self._access_token

    def set_access_token(self, token: str | None) -> None:
        """Attach token as the access_token query parameter of later requests."""
        self._access_token = token

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, *, json: Any = None) -> dict[str, Any]:
        params = {"access_token": self._access_token} if self._access_token else None
        logger.debug("%s %s", method, path)
        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.HTTPError as e:
            raise ApiError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            raise ApiError(
                f"{method} {path} returned {response.status_code}: {response.text.strip()}",
                status_code=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as e:
            raise ApiError(f"{method} {path} returned invalid JSON", status_code=response.status_code) from e
        if not isinstance(payload, dict):
            raise ApiError(f"{method} {path} returned non-object JSON", status_code=response.status_code)
        return payload

    async def login(self, credentials: dict[str, str]) -> dict[str, Any]:
        """Return the login response: `id` is the access token, `userId` the owner."""
        return await self._request("POST", LOGIN_PATH, json=credentials)

    async def find_frame(self, frame_id: str) -> dict[str, Any]:
        return await self._request("GET", FRAME_PATH.format(frame_id=frame_id))

    async def create_frame(self, user_id: str, data: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", USER_FRAMES_PATH.format(user_id=user_id), json=data)

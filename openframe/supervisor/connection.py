"""Authenticate the frame and bring its local record in line with the remote one."""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable

from pydantic import ValidationError

from openframe.errors import (
    STAGE_PERSIST,
    STAGE_PLUGINS,
    AuthenticationError,
    RegistrationError,
    ResolutionNotFoundError,
)
from openframe.supervisor.api_client import ApiError, FrameApiClient
from openframe.supervisor.events import EventBus, FrameConnected, SideEffectFailed
from openframe.supervisor.models import ConnectionState, Credentials, DeviceRecord, Session

logger = logging.getLogger("openframe.supervisor.connection")

DEFAULT_PLUGIN_SEED: dict[str, str] = {
    "openframe-pluginexample": "git+https://git@github.com/OpenframeProject/Openframe-PluginExample.git",
}

PersistFn = Callable[[DeviceRecord, Credentials | None], Awaitable[None] | None]
PluginSyncFn = Callable[[DeviceRecord], Awaitable[None] | None]


async def _maybe_await(result: Any) -> None:
    if inspect.isawaitable(result):
        await result


class DeviceConnection:
    """
    Drives the frame through
    disconnected -> authenticating -> resolving [-> registering] -> connected.

    Any fatal step leaves the connection in `failed` and raises; there is
    no retry loop.
    """

    def __init__(
        self,
        api: FrameApiClient,
        events: EventBus,
        *,
        persist: PersistFn | None = None,
        plugin_sync: PluginSyncFn | None = None,
        default_plugins: dict[str, str] | None = None,
    ) -> None:
        self.api = api
        self.events = events
        self.persist = persist
        self.plugin_sync = plugin_sync
        self.default_plugins = dict(DEFAULT_PLUGIN_SEED if default_plugins is None else default_plugins)
        self.state = ConnectionState.DISCONNECTED
        self.credentials: Credentials | None = None
        self.device: DeviceRecord | None = None
        self.side_effect_failures: list[tuple[str, BaseException]] = []

    def _transition(self, state: ConnectionState) -> None:
        logger.debug("Connection state %s -> %s", self.state.value, state.value)
        self.state = state

    async def authenticate(self, credentials: Credentials) -> Session:
        """Exchange username/password for an access token and arm the client with it."""
        self._transition(ConnectionState.AUTHENTICATING)
        self.credentials = credentials
        try:
            payload = await self.api.login(credentials.login_payload())
        except ApiError as e:
            self._transition(ConnectionState.FAILED)
            raise AuthenticationError(cause=e) from e

        token = payload.get("id")
        if not token:
            self._transition(ConnectionState.FAILED)
            raise AuthenticationError("login response carried no access token")

        credentials.access_token = str(token)
        self.api.set_access_token(credentials.access_token)
        user_id = payload.get("userId")
        logger.info("Logged in as %s (user %s)", credentials.username, user_id)
        return Session(access_token=credentials.access_token, user_id=str(user_id) if user_id is not None else None)

    async def resolve(self, session: Session, device: DeviceRecord) -> DeviceRecord:
        """Fetch the frame by id; fall back to registering a new one on any failure."""
        self._transition(ConnectionState.RESOLVING)
        self.device = device
        if not device.is_registered:
            logger.info("Frame %r has no id yet; registering.", device.name)
            return await self.register(session, session.user_id, device)

        try:
            payload = await self.api.find_frame(device.id)
            resolved = DeviceRecord.model_validate(payload)
        except (ApiError, ValidationError) as e:
            if isinstance(e, ApiError) and e.is_not_found:
                error = ResolutionNotFoundError(f"frame {device.id} not found", cause=e)
            else:
                error = ResolutionNotFoundError(f"frame {device.id} could not be fetched", cause=e)
            logger.info("%s; registering a new frame.", error)
            return await self.register(session, session.user_id, device)

        logger.info("Found frame %s", resolved.id)
        self.device = resolved
        await self._after_resolved(resolved)
        return resolved

    async def register(self, session: Session, user_id: str | None, device: DeviceRecord) -> DeviceRecord:
        """Create a new remote frame for user_id from the local name and default plugins."""
        self._transition(ConnectionState.REGISTERING)
        if not user_id:
            self._transition(ConnectionState.FAILED)
            raise RegistrationError("no user id available to own the new frame")

        data = {
            "name": device.name,
            "settings": {},
            "plugins": dict(self.default_plugins),
        }
        try:
            payload = await self.api.create_frame(user_id, data)
            created = DeviceRecord.model_validate(payload)
        except (ApiError, ValidationError) as e:
            self._transition(ConnectionState.FAILED)
            raise RegistrationError(cause=e) from e

        logger.info("Registered new frame %s for user %s", created.id, user_id)
        self.device = created
        await self._after_resolved(created)
        return created

    async def connect(self, credentials: Credentials, device: DeviceRecord) -> DeviceRecord:
        """Authenticate, resolve (or register) and announce the connected frame."""
        session = await self.authenticate(credentials)
        resolved = await self.resolve(session, device)
        self._transition(ConnectionState.CONNECTED)
        await self.events.publish(FrameConnected(device=resolved))
        return resolved

    async def _after_resolved(self, device: DeviceRecord) -> None:
        """Persist and plugin-sync; failures are reported but do not undo the resolve."""
        if self.persist is not None:
            try:
                await _maybe_await(self.persist(device, self.credentials))
            except Exception as e:
                await self._report_side_effect(STAGE_PERSIST, e)
        if self.plugin_sync is not None:
            try:
                await _maybe_await(self.plugin_sync(device))
            except Exception as e:
                await self._report_side_effect(STAGE_PLUGINS, e)

    async def _report_side_effect(self, stage: str, error: Exception) -> None:
        logger.warning("Post-resolve %s failed for frame %s: %s", stage, self.device.id if self.device else None, error)
        self.side_effect_failures.append((stage, error))
        await self.events.publish(SideEffectFailed(stage=stage, error=error))

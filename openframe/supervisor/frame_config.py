"""Persistent frame configuration helpers."""

from __future__ import annotations

import json
import logging
from copy import deepcopy
from pathlib import Path
from typing import Any

from platformdirs import user_data_dir
from pydantic import ValidationError

from openframe.contracts import CONFIG_SCHEMA_V1, SUPPORTED_CONFIG_SCHEMAS
from openframe.supervisor.models import Credentials, DeviceRecord

logger = logging.getLogger("openframe.supervisor.frame_config")

CONFIG_PATH = Path.home() / ".openframe" / "ofrc.json"
ALLOWED_PROTOCOLS = {"http", "https"}
DEFAULT_SETTINGS: dict[str, Any] = {
    "api_protocol": "http",
    "api_domain": "localhost",
    "api_port": 8888,
    "request_timeout_seconds": 10.0,
    "download_dir": None,
}


def default_config() -> dict[str, Any]:
    return {
        "schema_version": CONFIG_SCHEMA_V1,
        "settings": dict(DEFAULT_SETTINGS),
        "auth": {"username": "", "password": "", "access_token": None},
        "frame": {"name": ""},
    }


def validate_config(config: dict[str, Any]) -> dict[str, Any]:
    """Validate config shape and normalize settings."""
    if not isinstance(config, dict):
        raise ValueError("config must be object")
    schema_version = config.get("schema_version", CONFIG_SCHEMA_V1)
    if schema_version not in SUPPORTED_CONFIG_SCHEMAS:
        raise ValueError("unsupported config schema_version")

    settings_raw = config.get("settings", {})
    if settings_raw is None:
        settings_raw = {}
    if not isinstance(settings_raw, dict):
        raise ValueError("settings must be object")
    settings = dict(DEFAULT_SETTINGS)
    settings.update(settings_raw)
    protocol = str(settings["api_protocol"]).strip().lower()
    if protocol not in ALLOWED_PROTOCOLS:
        raise ValueError(f"unsupported api_protocol: {protocol}")
    settings["api_protocol"] = protocol
    settings["api_domain"] = str(settings["api_domain"]).strip() or "localhost"
    try:
        settings["api_port"] = int(settings["api_port"])
        settings["request_timeout_seconds"] = float(settings["request_timeout_seconds"])
    except (TypeError, ValueError) as e:
        raise ValueError(f"invalid numeric setting: {e}") from e
    if not 0 < settings["api_port"] < 65536:
        raise ValueError("api_port out of range")
    if settings["request_timeout_seconds"] <= 0:
        raise ValueError("request_timeout_seconds must be positive")

    auth_raw = config.get("auth", {}) or {}
    if not isinstance(auth_raw, dict):
        raise ValueError("auth must be object")
    auth = {
        "username": str(auth_raw.get("username", "")),
        "password": str(auth_raw.get("password", "")),
        "access_token": auth_raw.get("access_token"),
    }

    frame_raw = config.get("frame", {}) or {}
    if not isinstance(frame_raw, dict):
        raise ValueError("frame must be object")
    try:
        frame = DeviceRecord.model_validate(frame_raw).model_dump(mode="json", exclude_none=True)
    except ValidationError as e:
        raise ValueError(f"invalid frame record: {e}") from e

    return {
        "schema_version": CONFIG_SCHEMA_V1,
        "settings": settings,
        "auth": auth,
        "frame": frame,
    }


def load_config(path: Path = CONFIG_PATH) -> dict[str, Any]:
    """Load config from disk or return defaults."""
    if not path.exists():
        return default_config()
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except Exception as e:
        logger.warning("Unreadable config at %s: %s", path, e)
        return default_config()
    try:
        return validate_config(raw)
    except ValueError as e:
        logger.warning("Invalid config at %s: %s", path, e)
        return default_config()


def save_config(config: dict[str, Any], path: Path = CONFIG_PATH) -> dict[str, Any]:
    """Validate and persist config to disk atomically."""
    validated = validate_config(config)
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_suffix(path.suffix + ".tmp")
    temp_path.write_text(json.dumps(validated, indent=2), encoding="utf-8")
    temp_path.replace(path)
    return validated


def build_api_url(settings: dict[str, Any]) -> str:
    return f"{settings['api_protocol']}://{settings['api_domain']}:{settings['api_port']}"


def resolve_download_dir(settings: dict[str, Any]) -> Path:
    configured = settings.get("download_dir")
    if configured:
        return Path(configured).expanduser()
    return Path(user_data_dir("openframe")) / "artwork"


class FrameConfigStore:
    """Binds a loaded config to its path; acts as the persistence collaborator."""

    def __init__(self, path: Path = CONFIG_PATH, config: dict[str, Any] | None = None) -> None:
        self.path = path
        self.config = config if config is not None else load_config(path)

    @property
    def settings(self) -> dict[str, Any]:
        return self.config["settings"]

    def credentials(self) -> Credentials:
        return Credentials.model_validate(self.config["auth"])

    def device(self) -> DeviceRecord:
        return DeviceRecord.model_validate(self.config["frame"])

    def save_frame(self, device: DeviceRecord, credentials: Credentials | None = None) -> None:
        """Persist the device record (and refreshed token, if given)."""
        updated = deepcopy(self.config)
        updated["frame"] = device.model_dump(mode="json", exclude_none=True)
        if credentials is not None:
            updated["auth"] = credentials.model_dump(mode="json")
        self.config = save_config(updated, self.path)
        logger.info("Saved frame %s to %s", device.id, self.path)

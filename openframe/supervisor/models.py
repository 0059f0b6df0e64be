from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from typing import Optional, Dict, Any
from enum import Enum
from datetime import datetime


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    AUTHENTICATING = "authenticating"
    RESOLVING = "resolving"
    REGISTERING = "registering"
    CONNECTED = "connected"
    FAILED = "failed"


class ArtworkFormat(BaseModel):
    model_config = ConfigDict(frozen=True)

    start_command: str
    end_command: Optional[str] = None
    download: bool = False


class ArtworkRecord(BaseModel):
    # remote payloads use the underscore spelling for id and format
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    url: str
    format: ArtworkFormat = Field(validation_alias=AliasChoices("format", "_format"))


class DeviceRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Optional[str] = None
    name: str = ""
    settings: Dict[str, Any] = Field(default_factory=dict)
    plugins: Dict[str, str] = Field(default_factory=dict)
    current_artwork: Optional[ArtworkRecord] = Field(
        default=None,
        validation_alias=AliasChoices("current_artwork", "_current_artwork"),
    )

    @property
    def is_registered(self) -> bool:
        return bool(self.id)


class Credentials(BaseModel):
    username: str
    password: str
    access_token: Optional[str] = None

    def login_payload(self) -> Dict[str, str]:
        return {"username": self.username, "password": self.password}


class Session(BaseModel):
    access_token: str
    user_id: Optional[str] = None


class ProcessRecord(BaseModel):
    pid: int
    command: str
    started_at: datetime

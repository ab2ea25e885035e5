"""
Plugin data models for the AgileStack core.

These models are views over the container runtime: a Plugin is never
stored, every listing is derived from Docker when it is requested.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PluginStatus(str, Enum):
    """Health of a plugin. Only OK is reported today."""
    OK = "OK"
    UNKNOWN = "UNKNOWN"


class Responses(str, Enum):
    ACK = "ACK"
    ERROR = "ERROR"


class Plugin(BaseModel):
    """
    A plugin known by its canonical name.

    Two plugins with the same name are the same plugin, whatever runtime
    object (image or container) they were read from.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Canonical plugin name, e.g. agilestack-proxy")
    status: PluginStatus = Field(default=PluginStatus.OK, description="Plugin health")

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Plugin):
            return self.name == other.name
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.name)


class InstallRequest(BaseModel):
    """Request to install (or re-install) a plugin."""

    name: str = Field(..., min_length=1, description="Canonical plugin name")
    cmd: Optional[str] = Field(
        default=None,
        description="Command overriding the image's default command"
    )

    @field_validator("cmd", mode="before")
    def empty_cmd_is_none(cls, v):
        """An empty command on the wire means no override."""
        if v is not None and not str(v).strip():
            return None
        return v


class UninstallRequest(BaseModel):
    name: str = Field(..., min_length=1, description="Canonical plugin name")


class OperationResult(BaseModel):
    """Outcome of an install or uninstall operation."""

    response: Responses = Responses.ACK
    details: str = ""

    @classmethod
    def ack(cls) -> "OperationResult":
        return cls(response=Responses.ACK)

    @classmethod
    def error(cls, details: str) -> "OperationResult":
        return cls(response=Responses.ERROR, details=details)

    @property
    def ok(self) -> bool:
        return self.response == Responses.ACK


class NewPluginRequest(BaseModel):
    """Request to build a new plugin image from a template directory."""

    name: str = Field(..., min_length=1, description="Plugin name, without the plugin prefix")
    url: str = Field(default="", description="URL written into the plugin's config.json")
    directory: str = Field(..., min_length=1, description="Docker build context directory")


class NewPluginResponse(BaseModel):
    status: bool = False

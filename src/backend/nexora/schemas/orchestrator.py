"""Pydantic models for payloads returned by the orchestration panel.

Server objects arrive wrapped as {"object": "server", "attributes": {...}};
from_payload() accepts either the wrapper or the bare attributes.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

_MIB = 1024 * 1024


def _unwrap(payload: Any) -> dict:
    if not isinstance(payload, dict):
        raise ValueError(f"expected an object, got {type(payload).__name__}")
    attributes = payload.get("attributes")
    if isinstance(attributes, dict):
        return attributes
    return payload


class RemoteAllocation(BaseModel):
    ip: str
    port: int


class RemoteLimits(BaseModel):
    memory: int = 0
    disk: int = 0
    cpu: int = 0


class RemoteServer(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    external_id: str = Field(alias="identifier", min_length=1)
    name: str
    description: str | None = None
    node: str | None = None
    status: str | None = None
    nest: int | None = None
    egg: int | None = None
    allocation: RemoteAllocation | None = None
    limits: RemoteLimits = Field(default_factory=RemoteLimits)

    @classmethod
    def from_payload(cls, payload: Any) -> "RemoteServer":
        return cls.model_validate(_unwrap(payload))

    @property
    def game_type(self) -> str | None:
        if self.nest is None or self.egg is None:
            return None
        return f"{self.nest}/{self.egg}"


class RemoteResources(BaseModel):
    cpu_absolute: float = 0.0
    memory_bytes: int = 0
    disk_bytes: int = 0
    network_rx_bytes: int = 0
    network_tx_bytes: int = 0

    @field_validator("cpu_absolute")
    @classmethod
    def _non_negative(cls, value: float) -> float:
        return max(value, 0.0)


class RemoteUsage(BaseModel):
    """Point-in-time resource reading; memory and disk are exposed in MiB."""

    model_config = ConfigDict(extra="ignore")

    current_state: str = "offline"
    is_suspended: bool = False
    resources: RemoteResources = Field(default_factory=RemoteResources)

    @classmethod
    def from_payload(cls, payload: Any) -> "RemoteUsage":
        return cls.model_validate(_unwrap(payload))

    @property
    def cpu(self) -> float:
        return self.resources.cpu_absolute

    @property
    def memory_mb(self) -> float:
        return self.resources.memory_bytes / _MIB

    @property
    def disk_mb(self) -> float:
        return self.resources.disk_bytes / _MIB


class Ack(BaseModel):
    accepted: bool = True

"""Pydantic schemas for the server domain API."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class PowerAction(str, Enum):
    START = "start"
    STOP = "stop"
    RESTART = "restart"
    KILL = "kill"


class UsageSampleResponse(BaseModel):
    server_id: int
    timestamp: datetime
    cpu_usage: float
    memory_usage: float
    disk_usage: float
    network_rx: float
    network_tx: float
    state: str

    model_config = {"from_attributes": True}


class ServerResponse(BaseModel):
    id: int
    external_id: str
    owner_id: int
    name: str
    description: str | None
    node: str | None
    game_type: str | None
    power_state: str
    ip_address: str | None
    port: int | None
    memory_limit: int
    disk_limit: int
    cpu_limit: int
    created_at: datetime
    synced_at: datetime | None

    model_config = {"from_attributes": True}


class ServerDetailResponse(ServerResponse):
    latest_sample: UsageSampleResponse | None = None


class ItemFailureResponse(BaseModel):
    index: int
    external_id: str | None
    reason: str

    model_config = {"from_attributes": True}


class ServerListResponse(BaseModel):
    data: list[ServerResponse]
    failures: list[ItemFailureResponse]


class PowerRequest(BaseModel):
    action: PowerAction


class CommandRequest(BaseModel):
    command: str


class ActionResponse(BaseModel):
    success: bool = True
    message: str
    power_state: str | None = None

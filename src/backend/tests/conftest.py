"""Shared fixtures: in-memory storage and a scripted orchestrator client."""

import os

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("STORAGE_BACKEND", "memory")

from unittest.mock import AsyncMock  # noqa: E402

import pytest  # noqa: E402

from nexora.orchestrator.client import OrchestratorClient  # noqa: E402
from nexora.repositories.server_repo import InMemoryServerRegistry  # noqa: E402
from nexora.repositories.telemetry_repo import InMemoryTelemetryStore  # noqa: E402
from nexora.schemas.orchestrator import Ack  # noqa: E402
from nexora.sync.locks import KeyedLock  # noqa: E402
from payloads import make_usage  # noqa: E402


@pytest.fixture
def registry() -> InMemoryServerRegistry:
    return InMemoryServerRegistry()


@pytest.fixture
def store() -> InMemoryTelemetryStore:
    return InMemoryTelemetryStore(capacity=100)


@pytest.fixture
def locks() -> KeyedLock:
    return KeyedLock()


@pytest.fixture
def client() -> AsyncMock:
    """OrchestratorClient double; tests script list_servers / get_usage / ..."""
    mock = AsyncMock(spec=OrchestratorClient)
    mock.list_servers = AsyncMock(return_value=[])
    mock.send_power = AsyncMock(return_value=Ack())
    mock.send_command = AsyncMock(return_value=Ack())
    mock.get_usage = AsyncMock(return_value=make_usage())
    return mock

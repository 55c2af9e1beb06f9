"""Process-wide collaborators and the FastAPI dependencies that expose them.

The application lifespan builds one Engine and stores it on app.state;
routes receive its parts through the get_* dependencies, which tests
override with in-memory instances.
"""

from dataclasses import dataclass, field

import httpx
from fastapi import Request

from nexora.config import settings
from nexora.orchestrator.client import OrchestratorClient
from nexora.repositories.server_repo import InMemoryServerRegistry, ServerRegistry, SqlServerRegistry
from nexora.repositories.telemetry_repo import (
    InMemoryTelemetryStore,
    SqlTelemetryStore,
    TelemetryStore,
)
from nexora.services.power_service import PowerController
from nexora.sync.locks import KeyedLock
from nexora.sync.poller import ActiveOwners


@dataclass
class Engine:
    registry: ServerRegistry
    store: TelemetryStore
    client: OrchestratorClient
    locks: KeyedLock = field(default_factory=KeyedLock)
    active_owners: ActiveOwners = field(default_factory=ActiveOwners)

    @property
    def power(self) -> PowerController:
        return PowerController(self.registry, self.client, self.locks)


def build_storage(backend: str | None = None) -> tuple[ServerRegistry, TelemetryStore]:
    backend = backend or settings.STORAGE_BACKEND
    if backend == "database":
        from nexora.database import AsyncSessionLocal

        return SqlServerRegistry(AsyncSessionLocal), SqlTelemetryStore(AsyncSessionLocal)
    return InMemoryServerRegistry(), InMemoryTelemetryStore()


def build_engine(http_client: httpx.AsyncClient, backend: str | None = None) -> Engine:
    registry, store = build_storage(backend)
    return Engine(registry=registry, store=store, client=OrchestratorClient(http_client))


def get_engine(request: Request) -> Engine:
    return request.app.state.engine

"""Polling flows: orchestrator → registry, and orchestrator → telemetry store.

sync_owner_servers() and collect_usage() are called both by the API routes
and by the scheduled poller. collect_usage() never raises on individual
server failures: a TransportError while fetching, or any error while storing,
is logged and that server simply has no sample this cycle.
"""

import asyncio
import logging

from nexora.config import settings
from nexora.errors import NotFoundError, TransportError
from nexora.models.server import PowerState, Server, ServerSample
from nexora.orchestrator.client import OrchestratorClient
from nexora.repositories.server_repo import ServerRegistry
from nexora.repositories.telemetry_repo import TelemetryStore
from nexora.sync.locks import KeyedLock
from nexora.sync.reconciler import ReconcileResult, reconcile, reconcile_one

logger = logging.getLogger(__name__)


async def sync_owner_servers(
    owner_id: int,
    credential: str,
    client: OrchestratorClient,
    registry: ServerRegistry,
    locks: KeyedLock,
) -> ReconcileResult:
    """Fetch the owner's server list and reconcile it into the registry.

    A failed list fetch propagates: reconciling an empty batch would mark
    every server removed.
    """
    items = await client.list_servers(credential)
    return await reconcile(registry, owner_id, items, locks)


async def get_owned_server(registry: ServerRegistry, owner_id: int, external_id: str) -> Server:
    """Look up a server by external id, hiding servers of other owners."""
    server = await registry.get_by_external_id(external_id)
    if server.owner_id != owner_id:
        raise NotFoundError(f"Server '{external_id}' not found")
    return server


async def sync_single_server(
    owner_id: int,
    credential: str,
    external_id: str,
    client: OrchestratorClient,
    registry: ServerRegistry,
    locks: KeyedLock,
) -> Server:
    await get_owned_server(registry, owner_id, external_id)
    item = await client.get_server(external_id, credential)
    return await reconcile_one(registry, owner_id, item, locks)


async def _fetch_and_record(
    server: Server,
    credential: str,
    client: OrchestratorClient,
    store: TelemetryStore,
    semaphore: asyncio.Semaphore,
) -> ServerSample | None:
    async with semaphore:
        try:
            usage = await client.get_usage(server.external_id, credential)
        except TransportError as exc:
            logger.warning(
                "Error fetching resources for server %s (%s): %s",
                server.id, server.external_id, exc.message,
            )
            return None
    try:
        return await store.record(server.id, usage)
    except Exception:
        logger.exception(
            "Failed to store usage sample for server %s (%s)", server.id, server.external_id
        )
        return None


async def collect_usage(
    owner_id: int,
    credential: str,
    client: OrchestratorClient,
    registry: ServerRegistry,
    store: TelemetryStore,
    concurrency: int | None = None,
) -> list[ServerSample]:
    """Record one usage sample for each of the owner's active servers.

    Returns the samples recorded in this cycle, ordered by server id.
    """
    servers = [
        s for s in await registry.list_by_owner(owner_id)
        if s.power_state != PowerState.REMOVED.value
    ]
    if not servers:
        return []

    semaphore = asyncio.Semaphore(concurrency or settings.TELEMETRY_CONCURRENCY)
    servers.sort(key=lambda s: s.id)
    samples = await asyncio.gather(
        *(_fetch_and_record(s, credential, client, store, semaphore) for s in servers)
    )
    return [s for s in samples if s is not None]

"""Scheduled polling of owners with recent dashboard activity.

The orchestrator credential belongs to the user's session, so the poller can
only refresh owners who have made an authenticated request within
ACTIVE_OWNER_TTL_SECONDS. Each run reconciles then samples every such
owner; one owner's failure is logged and the run moves on.
"""

import logging
import time
from dataclasses import dataclass

from nexora.config import settings
from nexora.orchestrator.client import OrchestratorClient
from nexora.repositories.server_repo import ServerRegistry
from nexora.repositories.telemetry_repo import TelemetryStore
from nexora.sync.locks import KeyedLock
from nexora.sync.server_sync import collect_usage, sync_owner_servers

log = logging.getLogger(__name__)


@dataclass
class _ActiveOwner:
    credential: str
    last_seen: float


class ActiveOwners:
    def __init__(self, ttl_seconds: int | None = None, clock=time.monotonic) -> None:
        self._ttl = ttl_seconds if ttl_seconds is not None else settings.ACTIVE_OWNER_TTL_SECONDS
        self._clock = clock
        self._owners: dict[int, _ActiveOwner] = {}

    def touch(self, owner_id: int, credential: str) -> None:
        if credential:
            self._owners[owner_id] = _ActiveOwner(credential, self._clock())

    def snapshot(self) -> dict[int, str]:
        """Expire idle owners and return owner_id → credential for the rest."""
        cutoff = self._clock() - self._ttl
        for owner_id in [o for o, a in self._owners.items() if a.last_seen < cutoff]:
            del self._owners[owner_id]
        return {o: a.credential for o, a in self._owners.items()}

    def __len__(self) -> int:
        return len(self._owners)


async def poll_active_owners(
    owners: ActiveOwners,
    client: OrchestratorClient,
    registry: ServerRegistry,
    store: TelemetryStore,
    locks: KeyedLock,
) -> dict[str, int]:
    """Returns {"owners": int, "failed": int, "samples": int}."""
    active = owners.snapshot()
    failed = 0
    samples = 0

    for owner_id, credential in active.items():
        try:
            await sync_owner_servers(owner_id, credential, client, registry, locks)
            recorded = await collect_usage(owner_id, credential, client, registry, store)
        except Exception:
            log.exception("Scheduled poll failed for owner %s", owner_id)
            failed += 1
            continue
        samples += len(recorded)

    if active:
        log.info("Polled %d owner(s): %d failed, %d sample(s)", len(active), failed, samples)
    return {"owners": len(active), "failed": failed, "samples": samples}

"""Reconciliation of orchestrator-reported servers into the registry.

reconcile() merges one owner's full server list:
  1. Parse every reported item; malformed items become ItemFailures.
  2. Collapse duplicate external ids (the later item wins).
  3. Upsert each reported server, deriving power_state from its status.
  4. Mark every known, not-yet-removed server of the owner that was not
     reported as removed.

A removed server that shows up again is revived in place: same internal id,
same owner, power state re-derived from the new status.

The whole pass runs under the owner's KeyedLock.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from nexora.errors import NotFoundError, PartialBatchFailure, ValidationError
from nexora.models.server import PowerState, Server
from nexora.repositories.server_repo import ServerRegistry
from nexora.schemas.orchestrator import RemoteServer
from nexora.sync.locks import KeyedLock

log = logging.getLogger(__name__)

_STATUS_MAP: dict[str, PowerState] = {
    "running": PowerState.RUNNING,
    "starting": PowerState.STARTING,
    "stopping": PowerState.STOPPING,
    "offline": PowerState.OFFLINE,
    "restarting": PowerState.RESTARTING,
    "installing": PowerState.INSTALLING,
    "install_failed": PowerState.INSTALLING,
    "reinstall_failed": PowerState.INSTALLING,
    "restoring_backup": PowerState.INSTALLING,
    "suspended": PowerState.OFFLINE,
}


def map_remote_status(status: str | None) -> PowerState:
    """Map the orchestrator's status string onto the local power state.

    The orchestrator reports no status for an installed, idle server.
    """
    if not status:
        return PowerState.OFFLINE
    state = _STATUS_MAP.get(status.strip().lower())
    if state is None:
        log.warning("Unknown orchestrator status %r, treating as offline", status)
        return PowerState.OFFLINE
    return state


def remote_to_attrs(remote: RemoteServer, owner_id: int) -> dict[str, Any]:
    return {
        "owner_id": owner_id,
        "name": remote.name,
        "description": remote.description,
        "node": remote.node,
        "game_type": remote.game_type,
        "power_state": map_remote_status(remote.status),
        "ip_address": remote.allocation.ip if remote.allocation else None,
        "port": remote.allocation.port if remote.allocation else None,
        "memory_limit": remote.limits.memory,
        "disk_limit": remote.limits.disk,
        "cpu_limit": remote.limits.cpu,
    }


def _guess_external_id(item: Any) -> str | None:
    if not isinstance(item, dict):
        return None
    attrs = item.get("attributes") if isinstance(item.get("attributes"), dict) else item
    value = attrs.get("identifier")
    return value if isinstance(value, str) else None


@dataclass
class ItemFailure:
    index: int
    external_id: str | None
    reason: str


@dataclass
class ReconcileResult:
    owner_id: int
    created: list[Server] = field(default_factory=list)
    updated: list[Server] = field(default_factory=list)
    removed: list[Server] = field(default_factory=list)
    failures: list[ItemFailure] = field(default_factory=list)

    @property
    def records(self) -> list[Server]:
        return [*self.created, *self.updated, *self.removed]

    @property
    def partial_failure(self) -> PartialBatchFailure | None:
        return PartialBatchFailure(self.failures) if self.failures else None

    def counts(self) -> dict[str, int]:
        return {
            "created": len(self.created),
            "updated": len(self.updated),
            "removed": len(self.removed),
            "failed": len(self.failures),
        }


async def reconcile(
    registry: ServerRegistry,
    owner_id: int,
    items: list[Any],
    locks: KeyedLock,
) -> ReconcileResult:
    result = ReconcileResult(owner_id=owner_id)

    # Later duplicates replace earlier ones but keep the first position.
    reported: dict[str, tuple[int, RemoteServer]] = {}
    # Malformed entries still prove the server exists remotely.
    unparsed: set[str] = set()
    for index, item in enumerate(items):
        try:
            remote = RemoteServer.from_payload(item)
        except (PydanticValidationError, ValueError) as exc:
            ext = _guess_external_id(item)
            log.warning("Skipping malformed server entry #%d (%s): %s", index, ext, exc)
            if ext:
                unparsed.add(ext)
            result.failures.append(ItemFailure(index, ext, f"malformed server entry: {exc}"))
            continue
        reported[remote.external_id] = (index, remote)

    async with locks.hold(owner_id):
        local = {s.external_id: s for s in await registry.list_by_owner(owner_id)}

        for external_id, (index, remote) in reported.items():
            if external_id not in local:
                try:
                    other = await registry.get_by_external_id(external_id)
                except NotFoundError:
                    other = None
                if other is not None:
                    log.warning(
                        "Server %s reported for owner %s belongs to owner %s",
                        external_id, owner_id, other.owner_id,
                    )
                    result.failures.append(
                        ItemFailure(index, external_id, "server is registered to another owner")
                    )
                    continue

            server = await registry.upsert(external_id, remote_to_attrs(remote, owner_id))
            if external_id in local:
                result.updated.append(server)
            else:
                result.created.append(server)

        for external_id, server in local.items():
            if external_id in reported or external_id in unparsed:
                continue
            if server.power_state == PowerState.REMOVED.value:
                continue
            result.removed.append(await registry.set_power_state(server.id, PowerState.REMOVED))

    if result.failures:
        log.warning("Reconciliation for owner %s: %s", owner_id, result.counts())
    else:
        log.info("Reconciliation for owner %s: %s", owner_id, result.counts())
    return result


async def reconcile_one(
    registry: ServerRegistry,
    owner_id: int,
    item: Any,
    locks: KeyedLock,
) -> Server:
    """Merge a single reported server without touching the owner's others."""
    try:
        remote = RemoteServer.from_payload(item)
    except (PydanticValidationError, ValueError) as exc:
        raise ValidationError(f"Malformed server entry from orchestrator: {exc}") from exc

    async with locks.hold(owner_id):
        try:
            existing = await registry.get_by_external_id(remote.external_id)
        except NotFoundError:
            existing = None
        if existing is not None and existing.owner_id != owner_id:
            raise NotFoundError(f"Server '{remote.external_id}' not found")
        return await registry.upsert(remote.external_id, remote_to_attrs(remote, owner_id))

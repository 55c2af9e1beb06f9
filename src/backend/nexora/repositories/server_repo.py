"""Server registry: the local source of truth for server records.

ServerRegistry is an ABC so the reconciler, power controller and routes are
written once against it. InMemoryServerRegistry keeps records in a
process-wide dict; SqlServerRegistry persists them through SQLAlchemy.

upsert() is the only write path for orchestrator-reported fields. On merge
it overwrites MERGED_FIELDS and never touches id, external_id, owner_id or
created_at.
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from nexora.errors import NotFoundError
from nexora.models.server import PowerState, Server

MERGED_FIELDS: tuple[str, ...] = (
    "name",
    "description",
    "node",
    "game_type",
    "power_state",
    "ip_address",
    "port",
    "memory_limit",
    "disk_limit",
    "cpu_limit",
)

_CREATE_DEFAULTS: dict[str, Any] = {
    "description": None,
    "node": None,
    "game_type": None,
    "power_state": PowerState.OFFLINE.value,
    "ip_address": None,
    "port": None,
    "memory_limit": 0,
    "disk_limit": 0,
    "cpu_limit": 0,
}


def _merged_values(attrs: dict[str, Any]) -> dict[str, Any]:
    values = {k: attrs[k] for k in MERGED_FIELDS if k in attrs}
    if "power_state" in values:
        values["power_state"] = PowerState(values["power_state"]).value
    return values


class ServerRegistry(ABC):
    @abstractmethod
    async def upsert(self, external_id: str, attrs: dict[str, Any]) -> Server:
        """Create the record for external_id, or merge attrs into it.

        attrs must carry owner_id and name when the record does not exist yet.
        """

    @abstractmethod
    async def get_by_internal_id(self, server_id: int) -> Server: ...

    @abstractmethod
    async def get_by_external_id(self, external_id: str) -> Server: ...

    @abstractmethod
    async def list_by_owner(self, owner_id: int) -> list[Server]: ...

    @abstractmethod
    async def set_power_state(self, server_id: int, state: PowerState | str) -> Server: ...

    async def ping(self) -> None:
        """Raise if the backing storage is unreachable."""


class InMemoryServerRegistry(ServerRegistry):
    """Dict-backed registry. Each operation completes without awaiting, so a
    concurrent reader never observes a half-applied upsert."""

    def __init__(self) -> None:
        self._by_id: dict[int, Server] = {}
        self._id_by_external: dict[str, int] = {}
        self._next_id = 1

    async def upsert(self, external_id: str, attrs: dict[str, Any]) -> Server:
        now = datetime.now(UTC)
        values = _merged_values(attrs)

        server_id = self._id_by_external.get(external_id)
        if server_id is not None:
            server = self._by_id[server_id]
            for key, value in values.items():
                setattr(server, key, value)
            server.synced_at = now
            return server

        server = Server(
            id=self._next_id,
            external_id=external_id,
            owner_id=attrs["owner_id"],
            created_at=now,
            synced_at=now,
            **{**_CREATE_DEFAULTS, **values},
        )
        self._next_id += 1
        self._by_id[server.id] = server
        self._id_by_external[external_id] = server.id
        return server

    async def get_by_internal_id(self, server_id: int) -> Server:
        server = self._by_id.get(server_id)
        if server is None:
            raise NotFoundError(f"Server {server_id} not found")
        return server

    async def get_by_external_id(self, external_id: str) -> Server:
        server_id = self._id_by_external.get(external_id)
        if server_id is None:
            raise NotFoundError(f"Server '{external_id}' not found")
        return self._by_id[server_id]

    async def list_by_owner(self, owner_id: int) -> list[Server]:
        return [s for s in self._by_id.values() if s.owner_id == owner_id]

    async def set_power_state(self, server_id: int, state: PowerState | str) -> Server:
        server = await self.get_by_internal_id(server_id)
        server.power_state = PowerState(state).value
        return server


class SqlServerRegistry(ServerRegistry):
    """Registry persisted in the servers table; one transaction per call."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def _get_external(self, session: AsyncSession, external_id: str) -> Server | None:
        result = await session.execute(select(Server).where(Server.external_id == external_id))
        return result.scalar_one_or_none()

    async def upsert(self, external_id: str, attrs: dict[str, Any]) -> Server:
        now = datetime.now(UTC)
        values = _merged_values(attrs)

        async with self._session_factory() as session:
            async with session.begin():
                server = await self._get_external(session, external_id)
                if server is None:
                    server = Server(
                        external_id=external_id,
                        owner_id=attrs["owner_id"],
                        created_at=now,
                        synced_at=now,
                        **{**_CREATE_DEFAULTS, **values},
                    )
                    session.add(server)
                else:
                    for key, value in values.items():
                        setattr(server, key, value)
                    server.synced_at = now
                await session.flush()
            return server

    async def get_by_internal_id(self, server_id: int) -> Server:
        async with self._session_factory() as session:
            server = await session.get(Server, server_id)
        if server is None:
            raise NotFoundError(f"Server {server_id} not found")
        return server

    async def get_by_external_id(self, external_id: str) -> Server:
        async with self._session_factory() as session:
            server = await self._get_external(session, external_id)
        if server is None:
            raise NotFoundError(f"Server '{external_id}' not found")
        return server

    async def list_by_owner(self, owner_id: int) -> list[Server]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Server).where(Server.owner_id == owner_id).order_by(Server.id)
            )
            return list(result.scalars().all())

    async def set_power_state(self, server_id: int, state: PowerState | str) -> Server:
        async with self._session_factory() as session:
            async with session.begin():
                server = await session.get(Server, server_id, with_for_update=True)
                if server is None:
                    raise NotFoundError(f"Server {server_id} not found")
                server.power_state = PowerState(state).value
            return server

    async def ping(self) -> None:
        async with self._session_factory() as session:
            await session.execute(select(1))

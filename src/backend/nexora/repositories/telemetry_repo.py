"""Telemetry store: bounded per-server history of usage samples.

After every record() a server keeps at most `capacity` samples; the oldest
are evicted first. History is ordered by sample timestamp, so a late sample
with an older timestamp lands in its place rather than at the end. Samples
for servers marked removed are still accepted; pollers skip removed servers
instead.
"""

from abc import ABC, abstractmethod
from bisect import insort
from datetime import UTC, datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from nexora.config import settings
from nexora.models.server import ServerSample
from nexora.schemas.orchestrator import RemoteUsage


def build_sample(server_id: int, usage: RemoteUsage, timestamp: datetime | None = None) -> ServerSample:
    return ServerSample(
        server_id=server_id,
        timestamp=timestamp or datetime.now(UTC),
        cpu_usage=usage.cpu,
        memory_usage=usage.memory_mb,
        disk_usage=usage.disk_mb,
        network_rx=float(usage.resources.network_rx_bytes),
        network_tx=float(usage.resources.network_tx_bytes),
        state=usage.current_state,
    )


def _sample_time(sample: ServerSample) -> datetime:
    return sample.timestamp


class TelemetryStore(ABC):
    def __init__(self, capacity: int | None = None) -> None:
        self.capacity = capacity or settings.TELEMETRY_HISTORY_LIMIT

    @abstractmethod
    async def record(
        self, server_id: int, usage: RemoteUsage, timestamp: datetime | None = None
    ) -> ServerSample: ...

    @abstractmethod
    async def history(self, server_id: int) -> list[ServerSample]:
        """Samples for server_id, oldest first."""

    @abstractmethod
    async def latest(self, server_id: int) -> ServerSample | None: ...

    @abstractmethod
    async def forget(self, server_id: int) -> None: ...


class InMemoryTelemetryStore(TelemetryStore):
    def __init__(self, capacity: int | None = None) -> None:
        super().__init__(capacity)
        self._samples: dict[int, list[ServerSample]] = {}

    async def record(
        self, server_id: int, usage: RemoteUsage, timestamp: datetime | None = None
    ) -> ServerSample:
        sample = build_sample(server_id, usage, timestamp)
        buf = self._samples.setdefault(server_id, [])
        # Equal timestamps keep arrival order, matching the (timestamp, id) order in SQL.
        insort(buf, sample, key=_sample_time)
        if len(buf) > self.capacity:
            del buf[: len(buf) - self.capacity]
        return sample

    async def history(self, server_id: int) -> list[ServerSample]:
        return list(self._samples.get(server_id, ()))

    async def latest(self, server_id: int) -> ServerSample | None:
        buf = self._samples.get(server_id)
        return buf[-1] if buf else None

    async def forget(self, server_id: int) -> None:
        self._samples.pop(server_id, None)


class SqlTelemetryStore(TelemetryStore):
    """Samples persisted in server_samples; eviction runs in the insert's
    transaction."""

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession], capacity: int | None = None
    ) -> None:
        super().__init__(capacity)
        self._session_factory = session_factory

    async def record(
        self, server_id: int, usage: RemoteUsage, timestamp: datetime | None = None
    ) -> ServerSample:
        sample = build_sample(server_id, usage, timestamp)
        async with self._session_factory() as session:
            async with session.begin():
                session.add(sample)
                await session.flush()
                keep = (
                    select(ServerSample.id)
                    .where(ServerSample.server_id == server_id)
                    .order_by(ServerSample.timestamp.desc(), ServerSample.id.desc())
                    .limit(self.capacity)
                )
                await session.execute(
                    delete(ServerSample).where(
                        ServerSample.server_id == server_id,
                        ServerSample.id.not_in(keep),
                    )
                )
        return sample

    async def history(self, server_id: int) -> list[ServerSample]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(ServerSample)
                .where(ServerSample.server_id == server_id)
                .order_by(ServerSample.timestamp, ServerSample.id)
            )
            return list(result.scalars().all())

    async def latest(self, server_id: int) -> ServerSample | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(ServerSample)
                .where(ServerSample.server_id == server_id)
                .order_by(ServerSample.timestamp.desc(), ServerSample.id.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def forget(self, server_id: int) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(
                    delete(ServerSample).where(ServerSample.server_id == server_id)
                )

"""SQLAlchemy ORM models for game servers and their usage samples.

The in-memory storage backends use the same classes as plain objects, so
callers see one record type regardless of STORAGE_BACKEND.
"""

import enum
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Float, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class PowerState(str, enum.Enum):
    INSTALLING = "installing"
    OFFLINE = "offline"
    STARTING = "starting"
    RUNNING = "running"
    RESTARTING = "restarting"
    STOPPING = "stopping"
    REMOVED = "removed"


_POWER_STATES_SQL = ", ".join(f"'{s.value}'" for s in PowerState)


class Server(Base):
    __tablename__ = "servers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    external_id: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    owner_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    node: Mapped[str | None] = mapped_column(Text, nullable=True)
    game_type: Mapped[str | None] = mapped_column(Text, nullable=True)
    power_state: Mapped[str] = mapped_column(
        Text,
        CheckConstraint(f"power_state IN ({_POWER_STATES_SQL})", name="ck_servers_power_state"),
        nullable=False,
    )
    ip_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    port: Mapped[int | None] = mapped_column(Integer, nullable=True)
    memory_limit: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    disk_limit: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cpu_limit: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Server id={self.id} external_id={self.external_id!r} state={self.power_state}>"


class ServerSample(Base):
    __tablename__ = "server_samples"
    __table_args__ = (Index("ix_server_samples_server_ts", "server_id", "timestamp"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    server_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("servers.id", ondelete="CASCADE"), nullable=False
    )
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    cpu_usage: Mapped[float] = mapped_column(Float, nullable=False)
    memory_usage: Mapped[float] = mapped_column(Float, nullable=False)
    disk_usage: Mapped[float] = mapped_column(Float, nullable=False)
    network_rx: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    network_tx: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    state: Mapped[str] = mapped_column(Text, nullable=False)

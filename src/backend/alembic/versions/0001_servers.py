"""Revision 0001: servers and server_samples tables

Creates the local registry of orchestrator-managed game servers and the
bounded usage-sample history. external_id is the orchestrator's server
identifier and the join key for reconciliation; records are never deleted,
only moved to power_state 'removed'.

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

_POWER_STATES = (
    "'installing', 'offline', 'starting', 'running', 'restarting', 'stopping', 'removed'"
)


def upgrade():
    op.create_table(
        "servers",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("external_id", sa.Text(), nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("node", sa.Text(), nullable=True),
        sa.Column("game_type", sa.Text(), nullable=True),
        sa.Column(
            "power_state",
            sa.Text(),
            sa.CheckConstraint(
                f"power_state IN ({_POWER_STATES})",
                name="ck_servers_power_state",
            ),
            nullable=False,
        ),
        sa.Column("ip_address", sa.Text(), nullable=True),
        sa.Column("port", sa.Integer(), nullable=True),
        sa.Column("memory_limit", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("disk_limit", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cpu_limit", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("synced_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_servers"),
        sa.UniqueConstraint("external_id", name="uq_servers_external_id"),
    )
    op.create_index("ix_servers_owner_id", "servers", ["owner_id"])

    op.create_table(
        "server_samples",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("server_id", sa.Integer(), nullable=False),
        sa.Column("timestamp", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("cpu_usage", sa.Float(), nullable=False),
        sa.Column("memory_usage", sa.Float(), nullable=False),
        sa.Column("disk_usage", sa.Float(), nullable=False),
        sa.Column("network_rx", sa.Float(), nullable=False, server_default="0"),
        sa.Column("network_tx", sa.Float(), nullable=False, server_default="0"),
        sa.Column("state", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_server_samples"),
        sa.ForeignKeyConstraint(
            ["server_id"], ["servers.id"], name="fk_server_samples_server", ondelete="CASCADE"
        ),
    )
    op.create_index(
        "ix_server_samples_server_ts", "server_samples", ["server_id", "timestamp"]
    )


def downgrade():
    op.drop_index("ix_server_samples_server_ts", table_name="server_samples")
    op.drop_table("server_samples")
    op.drop_index("ix_servers_owner_id", table_name="servers")
    op.drop_table("servers")

"""Current vessel state and archive log tables

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _vessel_columns() -> list[sa.Column]:
    """Report columns shared by both tables."""
    return [
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("course", sa.Float(), nullable=False, server_default="0"),
        sa.Column("speed", sa.Float(), nullable=False, server_default="0"),
        sa.Column("heading", sa.Float(), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("call_sign", sa.String(length=50), nullable=True),
        sa.Column("destination", sa.String(length=255), nullable=True),
        sa.Column("eta", sa.String(length=64), nullable=True),
        sa.Column("length", sa.Float(), nullable=True),
        sa.Column("width", sa.Float(), nullable=True),
        sa.Column("vessel_type", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("nav_status", sa.Integer(), nullable=False, server_default="15"),
        sa.Column("source", sa.String(length=50), nullable=False, server_default="telkomsat"),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    op.execute("CREATE SCHEMA IF NOT EXISTS ais")

    # One row per MMSI, overwritten on every report
    op.create_table(
        "current_vessels",
        sa.Column("mmsi", sa.Integer(), autoincrement=False, nullable=False),
        *_vessel_columns(),
        sa.Column("last_updated", sa.DateTime(), nullable=False),
        sa.Column("update_count", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("mmsi", name=op.f("pk_current_vessels")),
        schema="ais",
    )
    op.create_index("ix_current_vessels_timestamp", "current_vessels", ["timestamp"], schema="ais")
    op.create_index("ix_current_vessels_last_updated", "current_vessels", ["last_updated"], schema="ais")
    op.create_index(
        "ix_current_vessels_geo_location", "current_vessels", ["latitude", "longitude"], schema="ais"
    )

    # Append-only snapshots of superseded states
    op.create_table(
        "vessel_logs",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("mmsi", sa.Integer(), nullable=False),
        *_vessel_columns(),
        sa.Column("archived_at", sa.DateTime(), nullable=False),
        sa.Column("archive_reason", sa.String(length=50), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="archived"),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_vessel_logs")),
        schema="ais",
    )
    op.create_index("ix_vessel_logs_mmsi_timestamp", "vessel_logs", ["mmsi", "timestamp"], schema="ais")
    op.create_index("ix_vessel_logs_timestamp", "vessel_logs", ["timestamp"], schema="ais")
    op.create_index("ix_vessel_logs_archived_at", "vessel_logs", ["archived_at"], schema="ais")
    op.create_index("ix_vessel_logs_status", "vessel_logs", ["status"], schema="ais")
    op.create_index(
        "ix_vessel_logs_playback", "vessel_logs", ["mmsi", "timestamp", "status"], schema="ais"
    )
    op.create_index(
        "ix_vessel_logs_geo_temporal",
        "vessel_logs",
        ["latitude", "longitude", "timestamp"],
        schema="ais",
    )


def downgrade() -> None:
    op.drop_table("vessel_logs", schema="ais")
    op.drop_table("current_vessels", schema="ais")

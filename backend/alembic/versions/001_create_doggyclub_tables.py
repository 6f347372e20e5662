"""Create users, dogs, device_locations and encounters tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Initial schema for profiles, last known positions, and encounters.
How:   PostgreSQL: UUID keys with gen_random_uuid() defaults, TIMESTAMP WITH
       TIME ZONE, JSONB for Bluetooth beacon metadata.

Rollback: downgrade() drops all four tables (destructive — all data lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        server_default=sa.text("gen_random_uuid()"),
        nullable=False,
    )


def _timestamp(name: str, comment: str) -> sa.Column:
    return sa.Column(
        name,
        sa.TIMESTAMP(timezone=True),
        server_default=sa.text("CURRENT_TIMESTAMP"),
        nullable=False,
        comment=comment,
    )


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        _uuid_pk(),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("email", sa.String(100), nullable=False),
        sa.Column(
            "visibility",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'public'"),
            comment="public: dogs appear in nearby searches; private: hidden",
        ),
        _timestamp("created_at", "When the account was created (UTC)"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username", name="uq_users_username"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint("visibility IN ('public', 'private')", name="ck_users_visibility"),
    )

    # ── dogs ──────────────────────────────────────────────────────────────
    op.create_table(
        "dogs",
        _uuid_pk(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("breed", sa.String(50), nullable=False, server_default=sa.text("''")),
        sa.Column("age", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("photo_url", sa.String(255), nullable=True),
        sa.Column("bio", sa.Text(), nullable=False, server_default=sa.text("''")),
        _timestamp("created_at", "When the profile was created (UTC)"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_dogs_user_id", "dogs", ["user_id"])
    op.create_index("idx_dogs_created_at", "dogs", [sa.text("created_at DESC")])

    # ── device_locations ──────────────────────────────────────────────────
    # One row per dog (UNIQUE dog_id); overwritten on every report
    op.create_table(
        "device_locations",
        _uuid_pk(),
        sa.Column("dog_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        _timestamp("updated_at", "Time of the latest report (UTC)"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("dog_id", name="uq_device_locations_dog_id"),
        sa.ForeignKeyConstraint(["dog_id"], ["dogs.id"], ondelete="CASCADE"),
        sa.CheckConstraint("latitude BETWEEN -90 AND 90", name="ck_device_locations_latitude"),
        sa.CheckConstraint("longitude BETWEEN -180 AND 180", name="ck_device_locations_longitude"),
    )
    op.create_index("idx_device_locations_lat_lng", "device_locations", ["latitude", "longitude"])
    op.create_index("idx_device_locations_updated_at", "device_locations", ["updated_at"])

    # ── encounters ────────────────────────────────────────────────────────
    op.create_table(
        "encounters",
        _uuid_pk(),
        sa.Column("dog1_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("dog2_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column(
            "detection_method",
            sa.String(20),
            nullable=False,
            comment="gps | bluetooth",
        ),
        _timestamp("timestamp", "When the dogs met (UTC)"),
        sa.Column(
            "metadata",
            postgresql.JSONB(),
            nullable=True,
            comment="Beacon payload for Bluetooth encounters",
        ),
        sa.Column("pair_low_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("pair_high_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "dedup_bucket",
            sa.BigInteger(),
            nullable=False,
            comment="floor(epoch seconds / dedup window seconds)",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["dog1_id"], ["dogs.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["dog2_id"], ["dogs.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "pair_low_id", "pair_high_id", "dedup_bucket",
            name="uq_encounters_pair_bucket",
        ),
        sa.CheckConstraint("dog1_id <> dog2_id", name="ck_encounters_distinct_dogs"),
        sa.CheckConstraint("pair_low_id < pair_high_id", name="ck_encounters_pair_order"),
        sa.CheckConstraint(
            "detection_method IN ('gps', 'bluetooth')",
            name="ck_encounters_detection_method",
        ),
    )
    op.create_index(
        "idx_encounters_pair_timestamp",
        "encounters",
        ["pair_low_id", "pair_high_id", "timestamp"],
    )
    op.create_index("idx_encounters_dog1_id", "encounters", ["dog1_id"])
    op.create_index("idx_encounters_dog2_id", "encounters", ["dog2_id"])
    op.create_index("idx_encounters_timestamp", "encounters", [sa.text("timestamp DESC")])


def downgrade() -> None:
    """Drop all tables, children first."""
    op.drop_table("encounters")
    op.drop_table("device_locations")
    op.drop_table("dogs")
    op.drop_table("users")

"""Proof-of-Play ingestion schema"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_proof_of_play"
down_revision = None
branch_labels = None
depends_on = None


def _id_column() -> sa.Column:
    return sa.Column("id", sa.String(length=36), primary_key=True)


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable, server_default=sa.func.now())


def upgrade() -> None:
    op.create_table(
        "orgs",
        _id_column(),
        sa.Column("external_id", sa.Text(), nullable=True, unique=True),
        sa.Column("name", sa.Text(), nullable=False),
        _timestamp("created_at"),
    )

    op.create_table(
        "users_orgs",
        _id_column(),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("org_id", sa.String(length=36), sa.ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False, server_default="member"),
        _timestamp("created_at"),
        sa.UniqueConstraint("user_id", "org_id", name="uq_users_orgs_user_org"),
    )
    op.create_index("ix_users_orgs_user_id", "users_orgs", ["user_id"])

    op.create_table(
        "kiosks",
        _id_column(),
        sa.Column("org_id", sa.String(length=36), sa.ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("provider", sa.String(length=64), nullable=False),
        sa.Column("external_id", sa.Text(), nullable=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=True),
        sa.Column("tags", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.UniqueConstraint("org_id", "provider", "external_id", name="uq_kiosks_org_provider_external_id"),
    )
    op.create_index(
        "uq_kiosks_org_name",
        "kiosks",
        ["org_id", "name"],
        unique=True,
        postgresql_where=sa.text("external_id IS NULL"),
        sqlite_where=sa.text("external_id IS NULL"),
    )

    op.create_table(
        "assets",
        _id_column(),
        sa.Column("org_id", sa.String(length=36), sa.ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("asset_name", sa.Text(), nullable=False),
        sa.Column("provider_asset_id", sa.Text(), nullable=True),
        sa.Column("duration_sec", sa.Integer(), nullable=True),
        sa.Column("asset_key", sa.Text(), nullable=False),
        sa.Column("tags", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.UniqueConstraint("org_id", "asset_key", name="uq_assets_org_asset_key"),
    )

    op.create_table(
        "campaigns",
        _id_column(),
        sa.Column("org_id", sa.String(length=36), sa.ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("owner_user_id", sa.Text(), nullable=True),
        _timestamp("created_at"),
        sa.UniqueConstraint("org_id", "name", name="uq_campaigns_org_name"),
    )
    op.create_index("ix_campaigns_owner_user_id", "campaigns", ["owner_user_id"])

    op.create_table(
        "campaigns_assets",
        sa.Column(
            "campaign_id",
            sa.String(length=36),
            sa.ForeignKey("campaigns.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("asset_id", sa.String(length=36), sa.ForeignKey("assets.id", ondelete="CASCADE"), primary_key=True),
        _timestamp("created_at"),
    )

    op.create_table(
        "plays",
        _id_column(),
        sa.Column("org_id", sa.String(length=36), sa.ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("kiosk_id", sa.String(length=36), sa.ForeignKey("kiosks.id", ondelete="CASCADE"), nullable=False),
        sa.Column("asset_id", sa.String(length=36), sa.ForeignKey("assets.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "campaign_id",
            sa.String(length=36),
            sa.ForeignKey("campaigns.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("provider_event_id", sa.Text(), nullable=True),
        sa.Column("played_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_sec", sa.Integer(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.UniqueConstraint(
            "org_id", "kiosk_id", "asset_id", "played_at", name="uq_plays_org_kiosk_asset_played_at"
        ),
    )
    op.create_index("ix_plays_org_played_at", "plays", ["org_id", "played_at"])

    op.create_table(
        "plays_daily",
        sa.Column("org_id", sa.String(length=36), primary_key=True),
        sa.Column("day", sa.Date(), primary_key=True),
        sa.Column("kiosk_id", sa.String(length=36), primary_key=True),
        sa.Column("asset_id", sa.String(length=36), primary_key=True),
        sa.Column("play_count", sa.Integer(), nullable=False),
        sa.Column("total_duration_sec", sa.Integer(), nullable=False),
    )

    op.create_table(
        "notifications",
        _id_column(),
        sa.Column("org_id", sa.String(length=36), sa.ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("created_at"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_table("plays_daily")
    op.drop_index("ix_plays_org_played_at", table_name="plays")
    op.drop_table("plays")
    op.drop_table("campaigns_assets")
    op.drop_index("ix_campaigns_owner_user_id", table_name="campaigns")
    op.drop_table("campaigns")
    op.drop_table("assets")
    op.drop_index("uq_kiosks_org_name", table_name="kiosks")
    op.drop_table("kiosks")
    op.drop_index("ix_users_orgs_user_id", table_name="users_orgs")
    op.drop_table("users_orgs")
    op.drop_table("orgs")

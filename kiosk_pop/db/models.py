from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Optional
from uuid import uuid4

import sqlalchemy as sa
from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from kiosk_pop.db.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _uuid_str() -> str:
    return str(uuid4())


_ID_LENGTH = 36


class Org(Base):
    __tablename__ = "orgs"

    id: Mapped[str] = mapped_column(String(length=_ID_LENGTH), primary_key=True, default=_uuid_str)
    external_id: Mapped[Optional[str]] = mapped_column(Text, unique=True, nullable=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class OrgMembership(Base):
    __tablename__ = "users_orgs"
    __table_args__ = (UniqueConstraint("user_id", "org_id", name="uq_users_orgs_user_org"),)

    id: Mapped[str] = mapped_column(String(length=_ID_LENGTH), primary_key=True, default=_uuid_str)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    org_id: Mapped[str] = mapped_column(ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False)
    role: Mapped[str] = mapped_column(String(length=32), nullable=False, default="member")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class Kiosk(Base):
    __tablename__ = "kiosks"
    __table_args__ = (
        UniqueConstraint("org_id", "provider", "external_id", name="uq_kiosks_org_provider_external_id"),
        Index(
            "uq_kiosks_org_name",
            "org_id",
            "name",
            unique=True,
            postgresql_where=sa.text("external_id IS NULL"),
            sqlite_where=sa.text("external_id IS NULL"),
        ),
    )

    id: Mapped[str] = mapped_column(String(length=_ID_LENGTH), primary_key=True, default=_uuid_str)
    org_id: Mapped[str] = mapped_column(ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False)
    provider: Mapped[str] = mapped_column(String(length=64), nullable=False)
    external_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    timezone: Mapped[Optional[str]] = mapped_column(String(length=64), nullable=True)
    tags: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


class Asset(Base):
    __tablename__ = "assets"
    __table_args__ = (UniqueConstraint("org_id", "asset_key", name="uq_assets_org_asset_key"),)

    id: Mapped[str] = mapped_column(String(length=_ID_LENGTH), primary_key=True, default=_uuid_str)
    org_id: Mapped[str] = mapped_column(ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False)
    asset_name: Mapped[str] = mapped_column(Text, nullable=False)
    provider_asset_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    duration_sec: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    asset_key: Mapped[str] = mapped_column(Text, nullable=False)
    tags: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


class Campaign(Base):
    __tablename__ = "campaigns"
    __table_args__ = (UniqueConstraint("org_id", "name", name="uq_campaigns_org_name"),)

    id: Mapped[str] = mapped_column(String(length=_ID_LENGTH), primary_key=True, default=_uuid_str)
    org_id: Mapped[str] = mapped_column(ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    owner_user_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class CampaignAsset(Base):
    __tablename__ = "campaigns_assets"

    campaign_id: Mapped[str] = mapped_column(
        ForeignKey("campaigns.id", ondelete="CASCADE"), primary_key=True
    )
    asset_id: Mapped[str] = mapped_column(ForeignKey("assets.id", ondelete="CASCADE"), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class Play(Base):
    __tablename__ = "plays"
    __table_args__ = (
        UniqueConstraint("org_id", "kiosk_id", "asset_id", "played_at", name="uq_plays_org_kiosk_asset_played_at"),
        Index("ix_plays_org_played_at", "org_id", "played_at"),
    )

    id: Mapped[str] = mapped_column(String(length=_ID_LENGTH), primary_key=True, default=_uuid_str)
    org_id: Mapped[str] = mapped_column(ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False)
    kiosk_id: Mapped[str] = mapped_column(ForeignKey("kiosks.id", ondelete="CASCADE"), nullable=False)
    asset_id: Mapped[str] = mapped_column(ForeignKey("assets.id", ondelete="CASCADE"), nullable=False)
    campaign_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("campaigns.id", ondelete="SET NULL"), nullable=True
    )
    provider_event_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    played_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ended_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_sec: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


class PlayDaily(Base):
    """Daily rollup of plays; rebuilt wholesale by the aggregate refresher."""

    __tablename__ = "plays_daily"

    org_id: Mapped[str] = mapped_column(String(length=_ID_LENGTH), primary_key=True)
    day: Mapped[date] = mapped_column(Date, primary_key=True)
    kiosk_id: Mapped[str] = mapped_column(String(length=_ID_LENGTH), primary_key=True)
    asset_id: Mapped[str] = mapped_column(String(length=_ID_LENGTH), primary_key=True)
    play_count: Mapped[int] = mapped_column(Integer, nullable=False)
    total_duration_sec: Mapped[int] = mapped_column(Integer, nullable=False)


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(length=_ID_LENGTH), primary_key=True, default=_uuid_str)
    org_id: Mapped[str] = mapped_column(ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(length=64), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

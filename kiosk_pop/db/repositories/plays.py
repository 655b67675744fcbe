from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional, Tuple

from sqlalchemy import delete, func, insert, or_, select

from kiosk_pop.db.models import Asset, Campaign, Kiosk, Play, PlayDaily, utcnow
from kiosk_pop.db.repositories.base import Repository


class PlaysRepository(Repository):
    """Play events, the daily rollup derived from them, and report reads."""

    def upsert(
        self,
        *,
        org_id: str,
        kiosk_id: str,
        asset_id: str,
        campaign_id: Optional[str],
        provider_event_id: Optional[str],
        played_at: datetime,
        ended_at: Optional[datetime],
        duration_sec: Optional[int],
    ) -> Optional[str]:
        insert_stmt = self.upsert_insert(Play)
        stmt = (
            insert_stmt.values(
                org_id=org_id,
                kiosk_id=kiosk_id,
                asset_id=asset_id,
                campaign_id=campaign_id,
                provider_event_id=provider_event_id,
                played_at=played_at,
                ended_at=ended_at,
                duration_sec=duration_sec,
            )
            .on_conflict_do_update(
                index_elements=[Play.org_id, Play.kiosk_id, Play.asset_id, Play.played_at],
                set_={
                    "ended_at": insert_stmt.excluded.ended_at,
                    "duration_sec": insert_stmt.excluded.duration_sec,
                    "campaign_id": insert_stmt.excluded.campaign_id,
                    "provider_event_id": insert_stmt.excluded.provider_event_id,
                    "updated_at": utcnow(),
                },
            )
            .returning(Play.id)
        )
        play_id = self.session.execute(stmt).scalar_one_or_none()
        self.session.flush()
        return play_id

    def count(self, org_id: str) -> int:
        stmt = select(func.count(Play.id)).where(Play.org_id == org_id)
        return int(self.session.scalar(stmt) or 0)

    def report_rows(
        self,
        *,
        org_id: str,
        played_from: Optional[datetime] = None,
        played_before: Optional[datetime] = None,
        campaign_id: Optional[str] = None,
        screen_id: Optional[str] = None,
        asset_id: Optional[str] = None,
        account_id: Optional[str] = None,
    ) -> List[Tuple[Play, Kiosk, Asset, Optional[Campaign]]]:
        stmt = (
            select(Play, Kiosk, Asset, Campaign)
            .join(Kiosk, Kiosk.id == Play.kiosk_id)
            .join(Asset, Asset.id == Play.asset_id)
            .outerjoin(Campaign, Campaign.id == Play.campaign_id)
            .where(Play.org_id == org_id)
        )
        if played_from is not None:
            stmt = stmt.where(Play.played_at >= played_from)
        if played_before is not None:
            stmt = stmt.where(Play.played_at < played_before)
        if campaign_id:
            stmt = stmt.where(Play.campaign_id == campaign_id)
        if screen_id:
            stmt = stmt.where(or_(Kiosk.id == screen_id, Kiosk.external_id == screen_id))
        if asset_id:
            stmt = stmt.where(Play.asset_id == asset_id)
        if account_id:
            stmt = stmt.where(Campaign.owner_user_id == account_id)
        stmt = stmt.order_by(Play.played_at.desc(), Play.id.asc())
        return [tuple(row) for row in self.session.execute(stmt).all()]

    def rebuild_daily_rollup(self) -> None:
        """Recompute plays_daily for every org from scratch."""
        day = func.date(Play.played_at)
        source = select(
            Play.org_id,
            day,
            Play.kiosk_id,
            Play.asset_id,
            func.count(Play.id),
            func.coalesce(func.sum(Play.duration_sec), 0),
        ).group_by(Play.org_id, day, Play.kiosk_id, Play.asset_id)

        self.session.execute(delete(PlayDaily))
        self.session.execute(
            insert(PlayDaily).from_select(
                [
                    PlayDaily.org_id,
                    PlayDaily.day,
                    PlayDaily.kiosk_id,
                    PlayDaily.asset_id,
                    PlayDaily.play_count,
                    PlayDaily.total_duration_sec,
                ],
                source,
            )
        )
        self.session.commit()

    def daily_rollup(
        self,
        *,
        org_id: str,
        start_day: Optional[date] = None,
        end_day: Optional[date] = None,
    ) -> List[PlayDaily]:
        stmt = select(PlayDaily).where(PlayDaily.org_id == org_id)
        if start_day is not None:
            stmt = stmt.where(PlayDaily.day >= start_day)
        if end_day is not None:
            stmt = stmt.where(PlayDaily.day <= end_day)
        stmt = stmt.order_by(PlayDaily.day.asc(), PlayDaily.kiosk_id.asc(), PlayDaily.asset_id.asc())
        return list(self.session.scalars(stmt).all())

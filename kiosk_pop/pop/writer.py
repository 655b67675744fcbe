from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from kiosk_pop.db.repositories.plays import PlaysRepository
from kiosk_pop.pop.normalization import parse_timestamp
from kiosk_pop.pop.types import NormalizedRecord, ResolvedEntities, RowValidationError

PlayWindow = Tuple[datetime, Optional[datetime], Optional[int]]


def _parse_row_timestamp(value: str, tz_name: Optional[str]) -> datetime:
    try:
        return parse_timestamp(value, tz_name)
    except (ValueError, OverflowError) as exc:
        raise RowValidationError(f"unparseable timestamp {value!r}") from exc


def compute_play_window(record: NormalizedRecord, now: Optional[datetime] = None) -> PlayWindow:
    """Derive (played_at, ended_at, duration_sec) in UTC for a record.

    A record with only a duration is stamped at ``now``. A missing end is
    played_at + duration; a missing duration is end - start. Timestamps that
    cannot be read raise ``RowValidationError``.
    """
    tz_name = record.report_timezone
    if record.start_time:
        played_at = _parse_row_timestamp(record.start_time, tz_name)
    else:
        played_at = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)

    duration = record.duration_seconds
    ended_at: Optional[datetime] = None
    if record.end_time:
        ended_at = _parse_row_timestamp(record.end_time, tz_name)
    elif duration is not None:
        try:
            ended_at = played_at + timedelta(seconds=duration)
        except OverflowError as exc:
            raise RowValidationError(f"duration out of range: {duration}") from exc

    if duration is None and ended_at is not None:
        duration = max(int((ended_at - played_at).total_seconds()), 0)
    return played_at, ended_at, duration


class PlayWriter:
    def __init__(self, session: Session, *, org_id: str) -> None:
        self.org_id = org_id
        self.plays = PlaysRepository(session)

    def write(
        self,
        record: NormalizedRecord,
        entities: ResolvedEntities,
        now: Optional[datetime] = None,
    ) -> datetime:
        played_at, ended_at, duration = compute_play_window(record, now)
        self.plays.upsert(
            org_id=self.org_id,
            kiosk_id=entities.kiosk_id,
            asset_id=entities.asset_id,
            campaign_id=entities.campaign_id,
            provider_event_id=record.provider_event_id,
            played_at=played_at,
            ended_at=ended_at,
            duration_sec=duration,
        )
        return played_at

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from kiosk_pop.db.models import Asset, Campaign, Kiosk, Play
from kiosk_pop.db.repositories.assets import AssetsRepository
from kiosk_pop.db.repositories.campaigns import CampaignsRepository
from kiosk_pop.db.repositories.kiosks import KiosksRepository
from kiosk_pop.db.repositories.plays import PlaysRepository
from kiosk_pop.pop.normalization import as_utc, isoformat_utc, resolve_timezone

CSV_HEADERS = (
    "Report Date UTC",
    "Account ID",
    "Screen UUID",
    "Screen Name",
    "Screen Tags",
    "Asset ID",
    "Asset Name",
    "Asset Tags",
    "Start Time UTC",
    "Device Local Time",
    "Duration",
)


@dataclass
class ReportFilters:
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    campaign_id: Optional[str] = None
    screen_id: Optional[str] = None
    asset_id: Optional[str] = None
    account_id: Optional[str] = None


@dataclass(frozen=True)
class ProofOfPlayRecord:
    report_date_utc: str
    account_id: str
    screen_uuid: str
    screen_name: str
    screen_tags: str
    asset_id: str
    asset_name: str
    asset_tags: str
    start_time_utc: str
    device_local_time: str
    duration: int


@dataclass(frozen=True)
class ProofOfPlaySummary:
    total_plays: int
    unique_screens: int
    unique_assets: int
    total_duration_seconds: int
    average_duration_seconds: float
    date_range_start: str
    date_range_end: str


def _quoted(value: str) -> str:
    return '"' + (value or "").replace('"', '""') + '"'


def _field(value: str) -> str:
    if any(char in (value or "") for char in (",", "\"", "\n")):
        return _quoted(value)
    return value or ""


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


class ProofOfPlayReportService:
    """Read-side view over stored plays for one org: records, summary, CSV export."""

    def __init__(self, session: Session, *, org_id: str, default_duration_seconds: int = 15) -> None:
        self.org_id = org_id
        self.default_duration_seconds = default_duration_seconds
        self.plays = PlaysRepository(session)
        self.kiosks = KiosksRepository(session)
        self.assets = AssetsRepository(session)
        self.campaigns = CampaignsRepository(session)

    def _to_record(self, play: Play, kiosk: Kiosk, asset: Asset, campaign: Optional[Campaign]) -> ProofOfPlayRecord:
        played_at = as_utc(play.played_at)
        zone = resolve_timezone(kiosk.timezone)
        if zone is not None:
            device_local_time = played_at.astimezone(zone).isoformat()
        else:
            device_local_time = isoformat_utc(played_at)
        duration = play.duration_sec if play.duration_sec is not None else self.default_duration_seconds
        return ProofOfPlayRecord(
            report_date_utc=played_at.date().isoformat(),
            account_id=(campaign.owner_user_id if campaign else None) or "",
            screen_uuid=kiosk.external_id or kiosk.id,
            screen_name=kiosk.name,
            screen_tags=kiosk.tags or "",
            asset_id=asset.id,
            asset_name=asset.asset_name,
            asset_tags=asset.tags or "",
            start_time_utc=isoformat_utc(played_at),
            device_local_time=device_local_time,
            duration=int(duration),
        )

    def query(self, filters: Optional[ReportFilters] = None) -> List[ProofOfPlayRecord]:
        filters = filters or ReportFilters()
        rows = self.plays.report_rows(
            org_id=self.org_id,
            played_from=_day_start(filters.start_date) if filters.start_date else None,
            # end_date covers the whole calendar day.
            played_before=_day_start(filters.end_date + timedelta(days=1)) if filters.end_date else None,
            campaign_id=filters.campaign_id,
            screen_id=filters.screen_id,
            asset_id=filters.asset_id,
            account_id=filters.account_id,
        )
        return [self._to_record(play, kiosk, asset, campaign) for play, kiosk, asset, campaign in rows]

    def summarize(self, filters: Optional[ReportFilters] = None) -> ProofOfPlaySummary:
        records = self.query(filters)
        total_duration = sum(record.duration for record in records)
        start_times = sorted(record.start_time_utc for record in records)
        return ProofOfPlaySummary(
            total_plays=len(records),
            unique_screens=len({record.screen_uuid for record in records}),
            unique_assets=len({record.asset_id for record in records}),
            total_duration_seconds=total_duration,
            average_duration_seconds=(total_duration / len(records)) if records else 0,
            date_range_start=start_times[0][:10] if start_times else "",
            date_range_end=start_times[-1][:10] if start_times else "",
        )

    def export_csv(self, filters: Optional[ReportFilters] = None) -> str:
        lines = [",".join(CSV_HEADERS)]
        for record in self.query(filters):
            lines.append(
                ",".join(
                    [
                        record.report_date_utc,
                        _field(record.account_id),
                        _field(record.screen_uuid),
                        _quoted(record.screen_name),
                        _quoted(record.screen_tags),
                        record.asset_id,
                        _quoted(record.asset_name),
                        _quoted(record.asset_tags),
                        record.start_time_utc,
                        record.device_local_time,
                        str(record.duration),
                    ]
                )
            )
        return "\n".join(lines)

    def available_campaigns(self, account_id: Optional[str] = None) -> List[Dict[str, Any]]:
        return [
            {"id": campaign.id, "name": campaign.name, "accountId": campaign.owner_user_id or ""}
            for campaign in self.campaigns.list(self.org_id, owner_user_id=account_id)
        ]

    def available_screens(self) -> List[Dict[str, Any]]:
        return [
            {
                "id": kiosk.id,
                "uuid": kiosk.external_id or kiosk.id,
                "name": kiosk.name,
                "tags": kiosk.tags or "",
            }
            for kiosk in self.kiosks.list(self.org_id)
        ]

    def available_assets(self) -> List[Dict[str, Any]]:
        return [
            {"id": asset.id, "name": asset.asset_name, "tags": asset.tags or ""}
            for asset in self.assets.list(self.org_id)
        ]

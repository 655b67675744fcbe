from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response
from sqlalchemy.orm import Session

from kiosk_pop.auth.dependencies import AuthContext, get_current_user
from kiosk_pop.db.deps import get_session
from kiosk_pop.db.repositories.plays import PlaysRepository
from kiosk_pop.pop.parsing import BatchParseError
from kiosk_pop.pop.rollup import refresh_plays_daily
from kiosk_pop.schemas.proof_of_play import (
    AssetOption,
    CampaignOption,
    DailyRollupRow,
    DateRange,
    ImportResponse,
    ProofOfPlayRecordOut,
    ProofOfPlaySummaryOut,
    RollupRefreshResponse,
    ScreenOption,
)
from kiosk_pop.services.ingestion import (
    ImportResult,
    IngestionConfig,
    ProofOfPlayImporter,
    get_ingestion_config,
)
from kiosk_pop.services.notifications import (
    ImportCompletedContext,
    ImportFailedContext,
    NotificationTemplate,
    notify,
)
from kiosk_pop.services.reporting import ProofOfPlayReportService, ReportFilters

router = APIRouter(prefix="/proof-of-play", tags=["proof-of-play"])
logger = logging.getLogger(__name__)


def get_report_filters(
    start_date: Optional[date] = Query(default=None, alias="startDate"),
    end_date: Optional[date] = Query(default=None, alias="endDate"),
    campaign_id: Optional[str] = Query(default=None, alias="campaignId"),
    screen_id: Optional[str] = Query(default=None, alias="screenId"),
    kiosk_id: Optional[str] = Query(default=None, alias="kioskId"),
    asset_id: Optional[str] = Query(default=None, alias="assetId"),
    account_id: Optional[str] = Query(default=None, alias="accountId"),
) -> ReportFilters:
    return ReportFilters(
        start_date=start_date,
        end_date=end_date,
        campaign_id=campaign_id,
        screen_id=screen_id or kiosk_id,
        asset_id=asset_id,
        account_id=account_id,
    )


def _report_service(session: Session, auth: AuthContext, config: IngestionConfig) -> ProofOfPlayReportService:
    return ProofOfPlayReportService(
        session,
        org_id=auth.org_id,
        default_duration_seconds=config.default_duration_seconds,
    )


def _run_import(
    session: Session,
    auth: AuthContext,
    config: IngestionConfig,
    body: bytes,
    content_type: Optional[str],
) -> ImportResult:
    importer = ProofOfPlayImporter(session, org_id=auth.org_id, config=config)
    try:
        result = importer.import_payload(body, content_type)
    except BatchParseError as exc:
        if config.notify:
            notify(
                session,
                org_id=auth.org_id,
                user_id=auth.user_id,
                template_id=NotificationTemplate.import_failed,
                context=ImportFailedContext(error=str(exc)),
            )
        raise
    if config.notify:
        notify(
            session,
            org_id=auth.org_id,
            user_id=auth.user_id,
            template_id=NotificationTemplate.import_completed,
            context=ImportCompletedContext(
                format=result.format.value,
                inserted=result.inserted,
                dropped=result.dropped,
                last_played_at=result.last_played_at_iso or "",
            ),
        )
    return result


@router.post("/import", response_model=ImportResponse)
async def import_proof_of_play(
    request: Request,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
    config: IngestionConfig = Depends(get_ingestion_config),
) -> ImportResponse:
    body = await request.body()
    content_type = request.headers.get("content-type")
    result = await run_in_threadpool(_run_import, session, auth, config, body, content_type)
    return ImportResponse(
        ok=True,
        inserted=result.inserted,
        dropped=result.dropped,
        lastPlayedAt=result.last_played_at_iso,
    )


@router.get("/records", response_model=list[ProofOfPlayRecordOut])
def list_records(
    filters: ReportFilters = Depends(get_report_filters),
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
    config: IngestionConfig = Depends(get_ingestion_config),
) -> list[ProofOfPlayRecordOut]:
    records = _report_service(session, auth, config).query(filters)
    return [
        ProofOfPlayRecordOut(
            reportDateUTC=record.report_date_utc,
            accountId=record.account_id,
            screenUUID=record.screen_uuid,
            screenName=record.screen_name,
            screenTags=record.screen_tags,
            assetId=record.asset_id,
            assetName=record.asset_name,
            assetTags=record.asset_tags,
            startTimeUTC=record.start_time_utc,
            deviceLocalTime=record.device_local_time,
            duration=record.duration,
        )
        for record in records
    ]


@router.get("/summary", response_model=ProofOfPlaySummaryOut)
def get_summary(
    filters: ReportFilters = Depends(get_report_filters),
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
    config: IngestionConfig = Depends(get_ingestion_config),
) -> ProofOfPlaySummaryOut:
    summary = _report_service(session, auth, config).summarize(filters)
    return ProofOfPlaySummaryOut(
        totalPlays=summary.total_plays,
        uniqueScreens=summary.unique_screens,
        uniqueAssets=summary.unique_assets,
        totalDurationSeconds=summary.total_duration_seconds,
        averageDurationSeconds=summary.average_duration_seconds,
        dateRange=DateRange(start=summary.date_range_start, end=summary.date_range_end),
    )


@router.get("/export")
def export_records(
    filters: ReportFilters = Depends(get_report_filters),
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
    config: IngestionConfig = Depends(get_ingestion_config),
) -> Response:
    csv_text = _report_service(session, auth, config).export_csv(filters)
    filename = f"proof-of-play-{date.today().isoformat()}.csv"
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/filters/campaigns", response_model=list[CampaignOption])
def list_campaign_options(
    account_id: Optional[str] = Query(default=None, alias="accountId"),
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
    config: IngestionConfig = Depends(get_ingestion_config),
) -> list[CampaignOption]:
    options = _report_service(session, auth, config).available_campaigns(account_id)
    return [CampaignOption(**option) for option in options]


@router.get("/filters/screens", response_model=list[ScreenOption])
def list_screen_options(
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
    config: IngestionConfig = Depends(get_ingestion_config),
) -> list[ScreenOption]:
    return [ScreenOption(**option) for option in _report_service(session, auth, config).available_screens()]


@router.get("/filters/assets", response_model=list[AssetOption])
def list_asset_options(
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
    config: IngestionConfig = Depends(get_ingestion_config),
) -> list[AssetOption]:
    return [AssetOption(**option) for option in _report_service(session, auth, config).available_assets()]


@router.get("/rollup", response_model=list[DailyRollupRow])
def list_daily_rollup(
    start_date: Optional[date] = Query(default=None, alias="startDate"),
    end_date: Optional[date] = Query(default=None, alias="endDate"),
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> list[DailyRollupRow]:
    rows = PlaysRepository(session).daily_rollup(org_id=auth.org_id, start_day=start_date, end_day=end_date)
    return [
        DailyRollupRow(
            day=row.day,
            kioskId=row.kiosk_id,
            assetId=row.asset_id,
            playCount=row.play_count,
            totalDurationSeconds=row.total_duration_sec,
        )
        for row in rows
    ]


@router.post("/rollup/refresh", response_model=RollupRefreshResponse)
def refresh_daily_rollup(
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> RollupRefreshResponse:
    logger.info("Manual plays_daily refresh requested", extra={"org_id": auth.org_id, "sub": auth.user_id})
    return RollupRefreshResponse(ok=refresh_plays_daily(session))

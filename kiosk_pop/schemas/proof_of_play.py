from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class ImportResponse(BaseModel):
    ok: bool = True
    inserted: int
    dropped: int
    lastPlayedAt: str | None = None


class ProofOfPlayRecordOut(BaseModel):
    reportDateUTC: str
    accountId: str
    screenUUID: str
    screenName: str
    screenTags: str
    assetId: str
    assetName: str
    assetTags: str
    startTimeUTC: str
    deviceLocalTime: str
    duration: int


class DateRange(BaseModel):
    start: str
    end: str


class ProofOfPlaySummaryOut(BaseModel):
    totalPlays: int
    uniqueScreens: int
    uniqueAssets: int
    totalDurationSeconds: int
    averageDurationSeconds: float
    dateRange: DateRange


class CampaignOption(BaseModel):
    id: str
    name: str
    accountId: str


class ScreenOption(BaseModel):
    id: str
    uuid: str
    name: str
    tags: str


class AssetOption(BaseModel):
    id: str
    name: str
    tags: str


class DailyRollupRow(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    day: date
    kioskId: str
    assetId: str
    playCount: int
    totalDurationSeconds: int


class RollupRefreshResponse(BaseModel):
    ok: bool


class NotificationOut(BaseModel):
    id: str
    type: str
    title: str
    message: str
    data: dict[str, Any]
    read: bool
    createdAt: datetime

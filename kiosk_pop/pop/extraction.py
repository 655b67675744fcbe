from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, Optional

from kiosk_pop.pop.types import NormalizedRecord, RawRow, RowValidationError

logger = logging.getLogger(__name__)

# First non-empty alias wins, so order encodes preference.
DEVICE_NAME_ALIASES = ("Device Name", "Screen Name", "Device", "Device Name/ID", "deviceName")
DEVICE_ID_ALIASES = ("Device ID", "Device Name/ID", "Device ID/UUID", "Screen UUID", "deviceId")
ASSET_NAME_ALIASES = ("Asset Name", "Media", "Asset", "assetName")
CAMPAIGN_ALIASES = ("Campaign", "Playlist", "Campaign/Playlist", "campaignName")
START_TIME_ALIASES = ("Start Time", "Start Time UTC", "Start", "startTime")
END_TIME_ALIASES = ("End Time", "End Time UTC", "endTime")
EVENT_ID_ALIASES = ("Event ID", "Event", "ID", "providerEventId")
PROVIDER_ASSET_ID_ALIASES = ("Provider Asset ID", "providerAssetId")
TIMEZONE_ALIASES = ("Report TZ", "Timezone", "reportTimezone")
DURATION_SECONDS_ALIASES = ("Duration (sec)", "durationSeconds")

_SPACES_RE = re.compile(r"\s+")
_SLASH_RE = re.compile(r"\s*/\s*")
_NON_DIGIT_RE = re.compile(r"\D")


def normalize_header(header: Any) -> str:
    text = _SPACES_RE.sub(" ", str(header or "")).strip().lower()
    return _SLASH_RE.sub("/", text)


def _index_row(row: RawRow) -> Dict[str, str]:
    indexed: Dict[str, str] = {}
    for key, value in row.items():
        if value is None:
            continue
        text = str(value).strip()
        normalized = normalize_header(key)
        # Keep the first non-empty value when two headers normalize alike.
        if text and normalized not in indexed:
            indexed[normalized] = text
    return indexed


def _first(indexed: Dict[str, str], aliases: Iterable[str]) -> Optional[str]:
    for alias in aliases:
        value = indexed.get(normalize_header(alias))
        if value:
            return value
    return None


def parse_duration(value: Optional[str]) -> Optional[int]:
    """Read a "Duration" cell by keeping only its digits.

    Colon-delimited values ("0:30") are read digit-wise as well, which
    misreads them; they are logged so the provider format can be confirmed.
    """
    if not value:
        return None
    if ":" in value:
        logger.warning("Colon-delimited duration read digit-wise", extra={"duration": value})
    digits = _NON_DIGIT_RE.sub("", value)
    if not digits:
        return None
    return int(digits)


def parse_duration_seconds(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(float(value))
    except (ValueError, OverflowError):
        return None


def extract_record(row: RawRow) -> NormalizedRecord:
    indexed = _index_row(row)

    device_name = _first(indexed, DEVICE_NAME_ALIASES)
    device_id = _first(indexed, DEVICE_ID_ALIASES)
    asset_name = _first(indexed, ASSET_NAME_ALIASES)
    start_time = _first(indexed, START_TIME_ALIASES)

    duration = parse_duration(indexed.get(normalize_header("Duration")))
    if duration is None:
        duration = parse_duration_seconds(_first(indexed, DURATION_SECONDS_ALIASES))

    if not device_name and not device_id:
        raise RowValidationError("missing device name and device id")
    if not asset_name:
        raise RowValidationError("missing asset name")
    if not start_time and duration is None:
        raise RowValidationError("missing start time and duration")

    return NormalizedRecord(
        asset_name=asset_name,
        device_name=device_name,
        device_id=device_id,
        campaign_name=_first(indexed, CAMPAIGN_ALIASES),
        start_time=start_time,
        end_time=_first(indexed, END_TIME_ALIASES),
        duration_seconds=duration,
        provider_event_id=_first(indexed, EVENT_ID_ALIASES),
        provider_asset_id=_first(indexed, PROVIDER_ASSET_ID_ALIASES),
        report_timezone=_first(indexed, TIMEZONE_ALIASES),
    )

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

ASSET_KEY_SEPARATOR = "|"
ASSET_KEY_PLACEHOLDER = "-"

_WHITESPACE_RE = re.compile(r"\s+")

# Non-ISO layouts seen in provider exports, tried in order.
_PROVIDER_DATETIME_FORMATS = (
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %I:%M %p",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%d %b %Y %H:%M:%S",
)


def normalize_asset_name(name: Optional[str]) -> str:
    """Collapse whitespace and lowercase so cosmetic variants share a key."""
    return _WHITESPACE_RE.sub(" ", name or "").strip().lower()


def compute_asset_key(
    asset_name: Optional[str],
    provider_asset_id: Optional[str] = None,
    duration_sec: Optional[int] = None,
) -> str:
    provider_part = (provider_asset_id or "").strip() or ASSET_KEY_PLACEHOLDER
    duration_part = str(duration_sec) if duration_sec is not None else ASSET_KEY_PLACEHOLDER
    return ASSET_KEY_SEPARATOR.join((normalize_asset_name(asset_name), provider_part, duration_part))


def resolve_timezone(name: Optional[str]) -> Optional[ZoneInfo]:
    if not name or not name.strip():
        return None
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError):
        return None


def _parse_naive_or_aware(value: str) -> datetime:
    candidate = value.strip()
    if candidate.endswith(("Z", "z")):
        candidate = f"{candidate[:-1]}+00:00"
    try:
        return datetime.fromisoformat(candidate)
    except ValueError:
        pass
    for fmt in _PROVIDER_DATETIME_FORMATS:
        try:
            return datetime.strptime(candidate, fmt)
        except ValueError:
            continue
    raise ValueError(f"Unrecognized timestamp: {value!r}")


def parse_timestamp(value: str, timezone_name: Optional[str] = None) -> datetime:
    """Parse a provider timestamp into an aware UTC datetime.

    Timestamps carrying an offset keep it. Naive timestamps are read as local
    time in ``timezone_name`` when that is a known IANA zone, otherwise as UTC.
    """
    parsed = _parse_naive_or_aware(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=resolve_timezone(timezone_name) or timezone.utc)
    return parsed.astimezone(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from stores that drop tzinfo."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat_utc(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return as_utc(value).isoformat().replace("+00:00", "Z")

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

RawRow = Dict[str, Any]


class PayloadFormat(str, Enum):
    csv = "csv"
    html = "html"
    json = "json"


@dataclass
class ParsedPayload:
    format: PayloadFormat
    rows: List[RawRow] = field(default_factory=list)


@dataclass
class NormalizedRecord:
    """Typed candidate for one play event, extracted from a provider row."""

    asset_name: str
    device_name: Optional[str] = None
    device_id: Optional[str] = None
    campaign_name: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    duration_seconds: Optional[int] = None
    provider_event_id: Optional[str] = None
    provider_asset_id: Optional[str] = None
    report_timezone: Optional[str] = None

    @property
    def kiosk_name(self) -> str:
        return self.device_name or self.device_id or "Unknown"


class KioskResolutionKind(str, Enum):
    by_external_id = "resolved_by_external_id"
    by_name = "resolved_by_name"
    unresolved = "unresolved"


@dataclass(frozen=True)
class KioskResolution:
    kind: KioskResolutionKind
    kiosk_id: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.kind != KioskResolutionKind.unresolved and self.kiosk_id is not None


@dataclass(frozen=True)
class ResolvedEntities:
    kiosk_id: str
    asset_id: str
    campaign_id: Optional[str]
    kiosk_resolution: KioskResolutionKind


class DropReason(str, Enum):
    validation = "validation"
    resolution = "resolution"
    write = "write"


class RowValidationError(ValueError):
    """A row is missing the fields required to become a play."""


class RowResolutionError(RuntimeError):
    """A row's kiosk or asset identity could not be established."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Union

from sqlalchemy.orm import Session

from kiosk_pop.config import settings
from kiosk_pop.pop.extraction import extract_record
from kiosk_pop.pop.normalization import isoformat_utc
from kiosk_pop.pop.parsing import parse_payload
from kiosk_pop.pop.resolver import EntityResolver
from kiosk_pop.pop.rollup import refresh_plays_daily
from kiosk_pop.pop.types import DropReason, PayloadFormat, RowResolutionError, RowValidationError
from kiosk_pop.pop.writer import PlayWriter

logger = logging.getLogger(__name__)


def _next_row_stamp(previous: Optional[datetime]) -> datetime:
    """Wall-clock time for a row without a start time, strictly after ``previous``."""
    stamp = datetime.now(timezone.utc)
    if previous is not None and stamp <= previous:
        stamp = previous + timedelta(microseconds=1)
    return stamp


class IngestionConfigurationError(RuntimeError):
    """Ingestion settings are missing or invalid."""


@dataclass(frozen=True)
class IngestionConfig:
    provider: str
    default_duration_seconds: int = 15
    refresh_rollup: bool = True
    notify: bool = True

    def __post_init__(self) -> None:
        if not (self.provider or "").strip():
            raise IngestionConfigurationError("POP_PROVIDER_TAG must not be blank")
        if self.default_duration_seconds <= 0:
            raise IngestionConfigurationError("POP_DEFAULT_DURATION_SECONDS must be positive")


def get_ingestion_config() -> IngestionConfig:
    """Build a fresh config value from the current settings on every request."""
    return IngestionConfig(
        provider=settings.POP_PROVIDER_TAG.strip() if settings.POP_PROVIDER_TAG else "",
        default_duration_seconds=settings.POP_DEFAULT_DURATION_SECONDS,
        refresh_rollup=settings.POP_ROLLUP_REFRESH_ENABLED,
        notify=settings.POP_IMPORT_NOTIFICATIONS_ENABLED,
    )


@dataclass
class ImportResult:
    format: PayloadFormat
    parsed: int = 0
    inserted: int = 0
    dropped: int = 0
    last_played_at: Optional[datetime] = None
    drop_reasons: Counter = field(default_factory=Counter)

    @property
    def last_played_at_iso(self) -> Optional[str]:
        return isoformat_utc(self.last_played_at)

    def record_drop(self, reason: DropReason) -> None:
        self.dropped += 1
        self.drop_reasons[reason.value] += 1

    def record_insert(self, played_at: datetime) -> None:
        self.inserted += 1
        if self.last_played_at is None or played_at > self.last_played_at:
            self.last_played_at = played_at


class ProofOfPlayImporter:
    """Run one Proof-of-Play batch for an org.

    Rows are processed in order and each commits on its own, so a failing
    row never takes earlier rows with it. ``BatchParseError`` from parsing
    propagates; everything after parsing is counted, never raised.
    """

    def __init__(
        self,
        session: Session,
        *,
        org_id: str,
        config: IngestionConfig,
        refresher: Callable[[Session], bool] = refresh_plays_daily,
    ) -> None:
        self.session = session
        self.org_id = org_id
        self.config = config
        self.refresher = refresher
        self.resolver = EntityResolver(session, org_id=org_id, provider=config.provider)
        self.writer = PlayWriter(session, org_id=org_id)

    def import_payload(self, body: Union[bytes, str], content_type: Optional[str] = None) -> ImportResult:
        payload = parse_payload(body, content_type)
        result = ImportResult(format=payload.format, parsed=len(payload.rows))
        logger.info(
            "pop_import_started",
            extra={"org_id": self.org_id, "format": payload.format.value, "rows": result.parsed},
        )

        last_stamp: Optional[datetime] = None
        for index, row in enumerate(payload.rows):
            try:
                record = extract_record(row)
                entities = self.resolver.resolve(record)
                last_stamp = _next_row_stamp(last_stamp)
                played_at = self.writer.write(record, entities, now=last_stamp)
                self.session.commit()
            except RowValidationError as exc:
                self.session.rollback()
                result.record_drop(DropReason.validation)
                logger.debug("pop_row_dropped", extra={"row": index, "reason": "validation", "detail": str(exc)})
                continue
            except RowResolutionError as exc:
                self.session.rollback()
                result.record_drop(DropReason.resolution)
                logger.debug("pop_row_dropped", extra={"row": index, "reason": "resolution", "detail": str(exc)})
                continue
            except Exception:  # noqa: BLE001
                self.session.rollback()
                result.record_drop(DropReason.write)
                logger.warning("pop_row_write_failed", extra={"row": index, "org_id": self.org_id}, exc_info=True)
                continue
            result.record_insert(played_at)

        if self.config.refresh_rollup:
            self.refresher(self.session)

        logger.info(
            "pop_import_finished",
            extra={
                "org_id": self.org_id,
                "format": result.format.value,
                "parsed": result.parsed,
                "inserted": result.inserted,
                "dropped": result.dropped,
                "drop_reasons": dict(result.drop_reasons),
            },
        )
        return result

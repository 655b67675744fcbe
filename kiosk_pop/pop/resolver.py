from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from kiosk_pop.db.repositories.assets import AssetsRepository
from kiosk_pop.db.repositories.campaigns import CampaignsRepository
from kiosk_pop.db.repositories.kiosks import KiosksRepository
from kiosk_pop.pop.normalization import compute_asset_key, resolve_timezone
from kiosk_pop.pop.types import (
    KioskResolution,
    KioskResolutionKind,
    NormalizedRecord,
    ResolvedEntities,
    RowResolutionError,
)

logger = logging.getLogger(__name__)


class EntityResolver:
    """Find-or-create the kiosk, asset and campaign a record refers to.

    Everything is scoped to one org. Kiosks resolve in two tiers: by
    (provider, device id) when the report carries a device id, then by name
    among the org's kiosks that have no external id.
    """

    def __init__(self, session: Session, *, org_id: str, provider: str) -> None:
        self.org_id = org_id
        self.provider = provider
        self.kiosks = KiosksRepository(session)
        self.assets = AssetsRepository(session)
        self.campaigns = CampaignsRepository(session)

    def _kiosk_timezone(self, record: NormalizedRecord) -> Optional[str]:
        tz_name = (record.report_timezone or "").strip()
        return tz_name if resolve_timezone(tz_name) is not None else None

    def resolve_kiosk(self, record: NormalizedRecord) -> KioskResolution:
        external_id = (record.device_id or "").strip()
        name = (record.device_name or record.device_id or "").strip()
        tz = self._kiosk_timezone(record)

        if external_id:
            kiosk_id = self.kiosks.upsert_by_external_id(
                org_id=self.org_id,
                provider=self.provider,
                external_id=external_id,
                name=name or external_id,
                timezone=tz,
            )
            if kiosk_id:
                return KioskResolution(KioskResolutionKind.by_external_id, kiosk_id)
        if name:
            kiosk_id = self.kiosks.upsert_by_name(
                org_id=self.org_id,
                provider=self.provider,
                name=name,
                timezone=tz,
            )
            if kiosk_id:
                return KioskResolution(KioskResolutionKind.by_name, kiosk_id)
        return KioskResolution(KioskResolutionKind.unresolved)

    def resolve_asset(self, record: NormalizedRecord) -> Optional[str]:
        asset_name = (record.asset_name or "").strip()
        if not asset_name:
            return None
        provider_asset_id = (record.provider_asset_id or "").strip() or None
        return self.assets.upsert_by_key(
            org_id=self.org_id,
            asset_key=compute_asset_key(asset_name, provider_asset_id, record.duration_seconds),
            asset_name=asset_name,
            provider_asset_id=provider_asset_id,
            duration_sec=record.duration_seconds,
        )

    def resolve_campaign(self, record: NormalizedRecord, asset_id: str) -> Optional[str]:
        name = (record.campaign_name or "").strip()
        if not name:
            return None
        campaign_id = self.campaigns.upsert_by_name(org_id=self.org_id, name=name)
        if campaign_id:
            self.campaigns.link_asset(campaign_id=campaign_id, asset_id=asset_id)
        return campaign_id

    def resolve(self, record: NormalizedRecord) -> ResolvedEntities:
        kiosk = self.resolve_kiosk(record)
        if not kiosk.resolved:
            raise RowResolutionError("kiosk could not be resolved")
        asset_id = self.resolve_asset(record)
        if not asset_id:
            raise RowResolutionError("asset could not be resolved")
        campaign_id = self.resolve_campaign(record, asset_id)
        logger.debug(
            "Resolved play entities",
            extra={
                "org_id": self.org_id,
                "kiosk_id": kiosk.kiosk_id,
                "kiosk_resolution": kiosk.kind.value,
                "asset_id": asset_id,
                "campaign_id": campaign_id,
            },
        )
        return ResolvedEntities(
            kiosk_id=kiosk.kiosk_id,
            asset_id=asset_id,
            campaign_id=campaign_id,
            kiosk_resolution=kiosk.kind,
        )

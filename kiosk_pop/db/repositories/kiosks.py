from typing import List, Optional

from sqlalchemy import func, select

from kiosk_pop.db.models import Kiosk, utcnow
from kiosk_pop.db.repositories.base import Repository


class KiosksRepository(Repository):
    """Kiosks are created lazily on first sighting in a Proof-of-Play report."""

    def upsert_by_external_id(
        self,
        *,
        org_id: str,
        provider: str,
        external_id: str,
        name: str,
        timezone: Optional[str] = None,
    ) -> Optional[str]:
        insert = self.upsert_insert(Kiosk)
        stmt = (
            insert.values(
                org_id=org_id,
                provider=provider,
                external_id=external_id,
                name=name,
                timezone=timezone,
            )
            .on_conflict_do_update(
                index_elements=[Kiosk.org_id, Kiosk.provider, Kiosk.external_id],
                set_={
                    "name": insert.excluded.name,
                    "timezone": func.coalesce(insert.excluded.timezone, Kiosk.timezone),
                    "updated_at": utcnow(),
                },
            )
            .returning(Kiosk.id)
        )
        kiosk_id = self.session.execute(stmt).scalar_one_or_none()
        self.session.flush()
        return kiosk_id

    def upsert_by_name(
        self,
        *,
        org_id: str,
        provider: str,
        name: str,
        timezone: Optional[str] = None,
    ) -> Optional[str]:
        # Only kiosks without an external id participate in the (org_id, name) key.
        insert = self.upsert_insert(Kiosk)
        stmt = (
            insert.values(
                org_id=org_id,
                provider=provider,
                external_id=None,
                name=name,
                timezone=timezone,
            )
            .on_conflict_do_update(
                index_elements=[Kiosk.org_id, Kiosk.name],
                index_where=Kiosk.external_id.is_(None),
                set_={
                    "timezone": func.coalesce(insert.excluded.timezone, Kiosk.timezone),
                    "updated_at": utcnow(),
                },
            )
            .returning(Kiosk.id)
        )
        kiosk_id = self.session.execute(stmt).scalar_one_or_none()
        self.session.flush()
        return kiosk_id

    def list(self, org_id: str) -> List[Kiosk]:
        stmt = select(Kiosk).where(Kiosk.org_id == org_id).order_by(Kiosk.name.asc())
        return list(self.session.scalars(stmt).all())

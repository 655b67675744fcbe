from typing import List, Optional

from sqlalchemy import select

from kiosk_pop.db.models import Asset, utcnow
from kiosk_pop.db.repositories.base import Repository


class AssetsRepository(Repository):
    def upsert_by_key(
        self,
        *,
        org_id: str,
        asset_key: str,
        asset_name: str,
        provider_asset_id: Optional[str],
        duration_sec: Optional[int],
    ) -> Optional[str]:
        insert = self.upsert_insert(Asset)
        stmt = (
            insert.values(
                org_id=org_id,
                asset_key=asset_key,
                asset_name=asset_name,
                provider_asset_id=provider_asset_id,
                duration_sec=duration_sec,
            )
            .on_conflict_do_update(
                index_elements=[Asset.org_id, Asset.asset_key],
                set_={"asset_name": insert.excluded.asset_name, "updated_at": utcnow()},
            )
            .returning(Asset.id)
        )
        asset_id = self.session.execute(stmt).scalar_one_or_none()
        self.session.flush()
        return asset_id

    def get(self, org_id: str, asset_id: str) -> Optional[Asset]:
        stmt = select(Asset).where(Asset.org_id == org_id, Asset.id == asset_id)
        return self.session.scalars(stmt).first()

    def get_by_key(self, org_id: str, asset_key: str) -> Optional[Asset]:
        stmt = select(Asset).where(Asset.org_id == org_id, Asset.asset_key == asset_key)
        return self.session.scalars(stmt).first()

    def list(self, org_id: str) -> List[Asset]:
        stmt = select(Asset).where(Asset.org_id == org_id).order_by(Asset.asset_name.asc())
        return list(self.session.scalars(stmt).all())

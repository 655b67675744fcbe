from typing import List, Optional

from sqlalchemy import select

from kiosk_pop.db.models import Campaign, CampaignAsset
from kiosk_pop.db.repositories.base import Repository


class CampaignsRepository(Repository):
    def list(self, org_id: str, owner_user_id: Optional[str] = None) -> List[Campaign]:
        stmt = select(Campaign).where(Campaign.org_id == org_id)
        if owner_user_id:
            stmt = stmt.where(Campaign.owner_user_id == owner_user_id)
        stmt = stmt.order_by(Campaign.name.asc())
        return list(self.session.scalars(stmt).all())

    def get(self, org_id: str, campaign_id: str) -> Optional[Campaign]:
        stmt = select(Campaign).where(Campaign.org_id == org_id, Campaign.id == campaign_id)
        return self.session.scalars(stmt).first()

    def upsert_by_name(self, *, org_id: str, name: str) -> Optional[str]:
        insert = self.upsert_insert(Campaign)
        stmt = (
            insert.values(org_id=org_id, name=name)
            .on_conflict_do_update(
                index_elements=[Campaign.org_id, Campaign.name],
                set_={"name": insert.excluded.name},
            )
            .returning(Campaign.id)
        )
        campaign_id = self.session.execute(stmt).scalar_one_or_none()
        self.session.flush()
        return campaign_id

    def link_asset(self, *, campaign_id: str, asset_id: str) -> None:
        stmt = (
            self.upsert_insert(CampaignAsset)
            .values(campaign_id=campaign_id, asset_id=asset_id)
            .on_conflict_do_nothing(index_elements=[CampaignAsset.campaign_id, CampaignAsset.asset_id])
        )
        self.session.execute(stmt)
        self.session.flush()

    def asset_ids(self, campaign_id: str) -> List[str]:
        stmt = select(CampaignAsset.asset_id).where(CampaignAsset.campaign_id == campaign_id)
        return list(self.session.scalars(stmt).all())

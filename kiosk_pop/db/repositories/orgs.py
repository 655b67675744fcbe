from typing import Optional

from sqlalchemy import select

from kiosk_pop.db.models import Org, OrgMembership
from kiosk_pop.db.repositories.base import Repository


class OrgsRepository(Repository):
    def get(self, org_id: str) -> Optional[Org]:
        return self.session.get(Org, org_id)

    def get_by_external_id(self, external_id: str) -> Optional[Org]:
        stmt = select(Org).where(Org.external_id == external_id)
        return self.session.scalars(stmt).first()

    def first_membership(self, user_id: str) -> Optional[OrgMembership]:
        stmt = (
            select(OrgMembership)
            .where(OrgMembership.user_id == user_id)
            .order_by(OrgMembership.created_at.asc())
            .limit(1)
        )
        return self.session.scalars(stmt).first()
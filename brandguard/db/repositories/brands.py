from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from brandguard.db.models import Brand, Campaign
from brandguard.db.repositories.base import Repository


class BrandsRepository(Repository):
    def __init__(self, session: Session) -> None:
        super().__init__(session)

    def get(self, brand_id: str) -> Optional[Brand]:
        stmt = select(Brand).where(Brand.id == brand_id)
        return self.session.scalars(stmt).first()

    def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        stmt = select(Campaign).where(Campaign.id == campaign_id)
        return self.session.scalars(stmt).first()

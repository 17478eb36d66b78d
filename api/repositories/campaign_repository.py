"""Repository for campaign operations."""

from datetime import date, datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models import Campaign, CampaignCompletionReason, CampaignStatus


class CampaignRepository:
    """Repository for campaign CRUD and lifecycle writes."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_by_id(
        self, campaign_id: str, *, with_design: bool = False
    ) -> Campaign | None:
        """Get a campaign by ID, optionally eager-loading its design."""
        query = select(Campaign).where(Campaign.id == campaign_id)
        if with_design:
            query = query.options(selectinload(Campaign.design))
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def create(
        self,
        design_id: str,
        name: str,
        *,
        description: str | None = None,
        variable_mapping: dict[str, Any] | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        certificate_limit: int | None = None,
    ) -> Campaign:
        """Create a campaign in DRAFT.

        Calls flush() but does NOT commit; the caller is responsible for
        transaction management.
        """
        campaign = Campaign(
            design_id=design_id,
            name=name,
            description=description,
            variable_mapping=variable_mapping,
            start_date=start_date,
            end_date=end_date,
            certificate_limit=certificate_limit,
            status=CampaignStatus.DRAFT,
            certificates_issued=0,
        )
        self.db.add(campaign)
        await self.db.flush()
        return campaign

    async def increment_issued(self, campaign: Campaign, count: int = 1) -> Campaign:
        """Atomically add ``count`` to the campaign's issued counter."""
        await self.db.execute(
            update(Campaign)
            .where(Campaign.id == campaign.id)
            .values(certificates_issued=Campaign.certificates_issued + count)
        )
        await self.db.refresh(campaign, attribute_names=["certificates_issued"])
        return campaign

    async def activate(self, campaign: Campaign, *, start_date: date) -> Campaign:
        campaign.status = CampaignStatus.ACTIVE
        campaign.start_date = start_date
        campaign.completed_at = None
        campaign.completion_reason = None
        await self.db.flush()
        return campaign

    async def complete(
        self,
        campaign: Campaign,
        reason: CampaignCompletionReason,
        completed_at: datetime,
    ) -> Campaign:
        campaign.status = CampaignStatus.COMPLETED
        campaign.completion_reason = reason
        campaign.completed_at = completed_at
        await self.db.flush()
        return campaign

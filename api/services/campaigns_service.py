"""Campaign business logic.

This module handles the campaign lifecycle:
- Creation (always DRAFT)
- Execution: DRAFT -> ACTIVE
- Completion: automatic when the limit or end date is reached, or manual
- CSV recipient import into bulk certificate creation
"""

import logging
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from models import Campaign, CampaignCompletionReason, CampaignStatus
from repositories.campaign_repository import CampaignRepository
from repositories.certificate_repository import CertificateRepository
from repositories.design_repository import DesignRepository
from schemas import CampaignCreate, ImportResult, RecipientInput
from services.certificates_service import (
    CampaignNotFoundError,
    bulk_create_certificates,
)
from services.designs_service import DesignNotFoundError
from services.recipient_import_service import count_csv_rows, extract_recipients

logger = logging.getLogger(__name__)


class InvalidCampaignStateError(Exception):
    """Raised when a lifecycle transition is not allowed from the current state."""


async def _get_campaign(db: AsyncSession, campaign_id: str) -> Campaign:
    campaign = await CampaignRepository(db).get_by_id(campaign_id)
    if campaign is None:
        raise CampaignNotFoundError(campaign_id)
    return campaign


def determine_completion_reason(
    campaign: Campaign, now: datetime | None = None
) -> CampaignCompletionReason | None:
    """Why the campaign should complete now, or None if it should keep running.

    The limit is checked before the end date. A campaign runs through the
    whole of its end date (UTC).
    """
    if (
        campaign.certificate_limit is not None
        and campaign.certificates_issued >= campaign.certificate_limit
    ):
        return CampaignCompletionReason.LIMIT_REACHED

    now = now or datetime.now(UTC)
    if campaign.end_date is not None and now.date() > campaign.end_date:
        return CampaignCompletionReason.DATE_REACHED

    return None


async def create_campaign(db: AsyncSession, data: CampaignCreate) -> Campaign:
    """Create a DRAFT campaign.

    Raises:
        DesignNotFoundError: If the design does not exist
    """
    design = await DesignRepository(db).get_by_id(data.design_id)
    if design is None:
        raise DesignNotFoundError(data.design_id)

    campaign = await CampaignRepository(db).create(
        design.id,
        data.name,
        description=data.description,
        variable_mapping=(
            data.variable_mapping.model_dump() if data.variable_mapping else None
        ),
        start_date=data.start_date,
        end_date=data.end_date,
        certificate_limit=data.certificate_limit,
    )
    logger.info(
        "campaign.created",
        extra={"campaign_id": campaign.id, "design_id": design.id},
    )
    return campaign


async def check_completion(db: AsyncSession, campaign_id: str) -> bool:
    """Complete an ACTIVE campaign whose limit or end date has been reached.

    Returns:
        True if the campaign was completed by this call
    """
    campaign = await _get_campaign(db, campaign_id)
    if campaign.status != CampaignStatus.ACTIVE:
        return False

    reason = determine_completion_reason(campaign)
    if reason is None:
        return False

    await CampaignRepository(db).complete(campaign, reason, datetime.now(UTC))
    logger.info(
        "campaign.completed",
        extra={"campaign_id": campaign.id, "reason": reason.value},
    )
    return True


async def execute_campaign(db: AsyncSession, campaign_id: str) -> Campaign:
    """Start a DRAFT campaign.

    ``start_date`` defaults to today. The campaign may complete immediately
    if its limit or end date is already reached.

    Raises:
        CampaignNotFoundError: If the campaign does not exist
        InvalidCampaignStateError: If the campaign is not in DRAFT
    """
    campaign = await _get_campaign(db, campaign_id)
    if campaign.status != CampaignStatus.DRAFT:
        raise InvalidCampaignStateError(
            "Campaign can only be executed from the draft state."
        )

    start_date = campaign.start_date or datetime.now(UTC).date()
    await CampaignRepository(db).activate(campaign, start_date=start_date)
    logger.info("campaign.executed", extra={"campaign_id": campaign.id})

    await check_completion(db, campaign.id)
    return campaign


async def finish_campaign(db: AsyncSession, campaign_id: str) -> Campaign:
    """Manually complete an ACTIVE campaign.

    The recorded reason is the automatic one when it already applies,
    otherwise MANUAL.

    Raises:
        CampaignNotFoundError: If the campaign does not exist
        InvalidCampaignStateError: If the campaign is not ACTIVE or still has
            pending certificates
    """
    campaign = await _get_campaign(db, campaign_id)
    if campaign.status != CampaignStatus.ACTIVE:
        raise InvalidCampaignStateError("Campaign can only be finished when active.")

    if await CertificateRepository(db).has_pending_for_campaign(campaign.id):
        raise InvalidCampaignStateError(
            "Campaign cannot be finished while certificates are still pending."
        )

    reason = determine_completion_reason(campaign) or CampaignCompletionReason.MANUAL
    await CampaignRepository(db).complete(campaign, reason, datetime.now(UTC))
    logger.info(
        "campaign.completed",
        extra={"campaign_id": campaign.id, "reason": reason.value},
    )
    return campaign


async def import_recipients(
    db: AsyncSession,
    campaign_id: str,
    content: str | bytes,
) -> ImportResult:
    """Create certificates for every usable row of a recipient CSV.

    Rows are mapped with the campaign's ``variable_mapping``. When the
    campaign has a limit, only as many recipients as it can still issue are
    created (none once the limit is reached).

    Raises:
        CampaignNotFoundError: If the campaign does not exist
    """
    campaign = await _get_campaign(db, campaign_id)

    detected = count_csv_rows(content)

    recipients: list[RecipientInput] = []
    if campaign.can_issue_more():
        recipients = extract_recipients(content, campaign.variable_mapping)
        remaining = campaign.remaining_capacity
        if remaining is not None:
            recipients = recipients[:remaining]

    certificate_ids: list[str] = []
    if recipients:
        result = await bulk_create_certificates(db, campaign.id, recipients)
        certificate_ids = [certificate.id for certificate in result.certificates]

    completed = await check_completion(db, campaign.id)

    logger.info(
        "campaign.import.completed",
        extra={
            "campaign_id": campaign.id,
            "detected_rows": detected,
            "created": len(certificate_ids),
        },
    )

    return ImportResult(
        detected_rows=detected,
        created=len(certificate_ids),
        skipped=detected - len(certificate_ids),
        certificate_ids=certificate_ids,
        campaign_completed=completed,
    )

"""Certificate business logic.

This module handles the certificate lifecycle:
- Certificate creation (single and bulk) under a campaign
- Payload hydration through the render core
- Payload regeneration from the current design
- Revocation
- Public verification by token

PDF rendering lives in services.certificate_pdf_service.
Routes should delegate all certificate business logic to this module.
"""

import logging
import secrets
import string
from collections.abc import Sequence
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from models import Campaign, Certificate, CertificateStatus
from rendering import render_payload
from repositories.campaign_repository import CampaignRepository
from repositories.certificate_repository import CertificateRepository
from schemas import BulkCreateResult, CreateCertificateResult, RecipientInput
from services.designs_service import to_snapshot
from services.render_service import RenderJob, arender_payloads

logger = logging.getLogger(__name__)

VERIFICATION_TOKEN_LENGTH = 64
_TOKEN_ALPHABET = string.ascii_letters + string.digits


class CampaignNotFoundError(Exception):
    """Raised when a campaign does not exist."""

    def __init__(self, campaign_id: str) -> None:
        self.campaign_id = campaign_id
        super().__init__(f"Campaign not found: {campaign_id}")


class CertificateNotFoundError(Exception):
    """Raised when a certificate does not exist."""

    def __init__(self, certificate_id: str) -> None:
        self.certificate_id = certificate_id
        super().__init__(f"Certificate not found: {certificate_id}")


def generate_verification_token() -> str:
    """Generate a public verification token (64 random alphanumerics)."""
    return "".join(
        secrets.choice(_TOKEN_ALPHABET) for _ in range(VERIFICATION_TOKEN_LENGTH)
    )


async def _get_campaign(db: AsyncSession, campaign_id: str) -> Campaign:
    campaign = await CampaignRepository(db).get_by_id(campaign_id, with_design=True)
    if campaign is None:
        raise CampaignNotFoundError(campaign_id)
    return campaign


async def create_certificate(
    db: AsyncSession,
    campaign_id: str,
    recipient: RecipientInput,
) -> CreateCertificateResult:
    """Create one certificate under a campaign.

    The certificate starts PENDING. Its payload is built from the campaign's
    design right away; an empty design leaves ``certificate_data`` null and
    the certificate is reported as not yet renderable.

    Args:
        db: Database session
        campaign_id: Campaign to issue under
        recipient: Recipient identity and template data

    Returns:
        CreateCertificateResult with the certificate and its renderability

    Raises:
        CampaignNotFoundError: If the campaign does not exist
    """
    campaign = await _get_campaign(db, campaign_id)

    cert_repo = CertificateRepository(db)
    certificate = await cert_repo.create(
        design_id=campaign.design_id,
        campaign_id=campaign.id,
        recipient_name=recipient.recipient_name,
        recipient_email=recipient.recipient_email,
        recipient_data=recipient.recipient_data,
        verification_token=generate_verification_token(),
    )

    await CampaignRepository(db).increment_issued(campaign, 1)

    payload = render_payload(
        to_snapshot(campaign.design),
        recipient,
        certificate_id=certificate.id,
        campaign_id=campaign.id,
    )
    if payload is not None:
        certificate.certificate_data = payload.to_dict()
        await cert_repo.flush()

    logger.info(
        "certificate.created",
        extra={
            "certificate_id": certificate.id,
            "campaign_id": campaign.id,
            "renderable": payload is not None,
        },
    )

    return CreateCertificateResult(
        certificate=certificate, renderable=payload is not None
    )


async def bulk_create_certificates(
    db: AsyncSession,
    campaign_id: str,
    recipients: Sequence[RecipientInput],
) -> BulkCreateResult:
    """Create many certificates under a campaign in one transaction.

    Rows are inserted first so every payload can carry its certificate id;
    payloads are then computed in parallel and the campaign counter is
    incremented once for the whole batch.

    Raises:
        CampaignNotFoundError: If the campaign does not exist
    """
    campaign = await _get_campaign(db, campaign_id)
    if not recipients:
        return BulkCreateResult()

    cert_repo = CertificateRepository(db)
    certificates = [
        cert_repo.build(
            design_id=campaign.design_id,
            campaign_id=campaign.id,
            recipient_name=recipient.recipient_name,
            recipient_email=recipient.recipient_email,
            recipient_data=recipient.recipient_data,
            verification_token=generate_verification_token(),
        )
        for recipient in recipients
    ]
    await cert_repo.flush()

    payloads = await arender_payloads(
        to_snapshot(campaign.design),
        [
            RenderJob(certificate.id, campaign.id, recipient)
            for certificate, recipient in zip(certificates, recipients, strict=True)
        ],
    )

    renderable = 0
    for certificate, payload in zip(certificates, payloads, strict=True):
        if payload is not None:
            certificate.certificate_data = payload.to_dict()
            renderable += 1
    await cert_repo.flush()

    await CampaignRepository(db).increment_issued(campaign, len(certificates))

    logger.info(
        "certificate.bulk_created",
        extra={
            "campaign_id": campaign.id,
            "count": len(certificates),
            "renderable": renderable,
        },
    )

    return BulkCreateResult(certificates=certificates, renderable=renderable)


async def get_certificate(db: AsyncSession, certificate_id: str) -> Certificate:
    """Raises CertificateNotFoundError when the certificate does not exist."""
    certificate = await CertificateRepository(db).get_by_id(certificate_id)
    if certificate is None:
        raise CertificateNotFoundError(certificate_id)
    return certificate


async def get_certificate_payload(
    db: AsyncSession, certificate_id: str
) -> dict | None:
    """The persisted payload, or None while the certificate is not renderable."""
    certificate = await get_certificate(db, certificate_id)
    return certificate.certificate_data


async def list_campaign_certificates(
    db: AsyncSession,
    campaign_id: str,
    *,
    limit: int = 500,
    offset: int = 0,
) -> Sequence[Certificate]:
    return await CertificateRepository(db).get_by_campaign(
        campaign_id, limit=limit, offset=offset
    )


async def regenerate_payload(db: AsyncSession, certificate_id: str) -> Certificate:
    """Rebuild a certificate's payload from its design as it is now.

    This is the only operation that changes a persisted payload. The stored
    PDF, if any, is kept until it is rendered again.

    Raises:
        CertificateNotFoundError: If the certificate does not exist
    """
    cert_repo = CertificateRepository(db)
    certificate = await cert_repo.get_by_id(certificate_id, with_design=True)
    if certificate is None:
        raise CertificateNotFoundError(certificate_id)

    payload = render_payload(
        to_snapshot(certificate.design),
        certificate,
        certificate_id=certificate.id,
        campaign_id=certificate.campaign_id,
    )
    certificate.certificate_data = payload.to_dict() if payload is not None else None
    await cert_repo.flush()

    logger.info(
        "certificate.payload.regenerated",
        extra={"certificate_id": certificate.id, "renderable": payload is not None},
    )
    return certificate


async def revoke_certificate(
    db: AsyncSession,
    certificate_id: str,
    reason: str | None = None,
) -> Certificate:
    """Revoke a certificate so it no longer verifies.

    Raises:
        CertificateNotFoundError: If the certificate does not exist
    """
    cert_repo = CertificateRepository(db)
    certificate = await cert_repo.get_by_id(certificate_id)
    if certificate is None:
        raise CertificateNotFoundError(certificate_id)

    await cert_repo.revoke(certificate, datetime.now(UTC), reason)
    logger.info("certificate.revoked", extra={"certificate_id": certificate.id})
    return certificate


async def verify_certificate(
    db: AsyncSession,
    verification_token: str,
) -> Certificate | None:
    """Look up a certificate by token; only ISSUED certificates verify.

    Args:
        db: Database session
        verification_token: The public verification token

    Returns:
        Certificate if valid, else None
    """
    cert_repo = CertificateRepository(db)
    certificate = await cert_repo.get_by_verification_token(verification_token)
    if certificate is None or certificate.status != CertificateStatus.ISSUED:
        return None
    return certificate


async def verify_certificate_with_message(
    db: AsyncSession,
    verification_token: str,
) -> tuple[Certificate | None, str]:
    """Verify a certificate and return it with a user-friendly message."""
    certificate = await verify_certificate(db, verification_token)

    if certificate is None:
        return None, "Certificate not found. Please check the verification link."

    issued = certificate.issued_at
    if issued is None:
        return certificate, f"Valid certificate for {certificate.recipient_name}"

    return certificate, (
        f"Valid certificate for {certificate.recipient_name}"
        f" issued on {issued.strftime('%B %d, %Y')}"
    )

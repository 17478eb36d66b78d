"""Repository for certificate operations."""

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models import Certificate, CertificateStatus


class CertificateRepository:
    """Repository for certificate CRUD operations."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_by_id(
        self, certificate_id: str, *, with_design: bool = False
    ) -> Certificate | None:
        query = select(Certificate).where(Certificate.id == certificate_id)
        if with_design:
            query = query.options(selectinload(Certificate.design))
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_verification_token(self, token: str) -> Certificate | None:
        """Get a certificate by its verification token (for public verification)."""
        result = await self.db.execute(
            select(Certificate).where(Certificate.verification_token == token)
        )
        return result.scalar_one_or_none()

    async def get_by_campaign(
        self,
        campaign_id: str,
        *,
        limit: int = 500,
        offset: int = 0,
    ) -> Sequence[Certificate]:
        """Get a campaign's certificates, oldest first."""
        result = await self.db.execute(
            select(Certificate)
            .where(Certificate.campaign_id == campaign_id)
            .order_by(Certificate.created_at, Certificate.id)
            .limit(limit)
            .offset(offset)
        )
        return result.scalars().all()

    async def has_pending_for_campaign(self, campaign_id: str) -> bool:
        result = await self.db.execute(
            select(
                exists().where(
                    Certificate.campaign_id == campaign_id,
                    Certificate.status == CertificateStatus.PENDING,
                )
            )
        )
        return bool(result.scalar())

    def build(
        self,
        *,
        design_id: str,
        campaign_id: str | None,
        recipient_name: str,
        recipient_email: str,
        recipient_data: dict[str, Any] | None,
        verification_token: str,
    ) -> Certificate:
        """Add a PENDING certificate to the session without flushing."""
        certificate = Certificate(
            design_id=design_id,
            campaign_id=campaign_id,
            recipient_name=recipient_name,
            recipient_email=recipient_email,
            recipient_data=recipient_data,
            verification_token=verification_token,
            status=CertificateStatus.PENDING,
        )
        self.db.add(certificate)
        return certificate

    async def create(self, **fields: Any) -> Certificate:
        """Create a PENDING certificate.

        Calls flush() but does NOT commit; the caller is responsible for
        transaction management.
        """
        certificate = self.build(**fields)
        await self.db.flush()
        return certificate

    async def flush(self) -> None:
        await self.db.flush()

    async def mark_issued(self, certificate: Certificate, issued_at: datetime) -> None:
        certificate.status = CertificateStatus.ISSUED
        certificate.issued_at = issued_at
        await self.db.flush()

    async def revoke(
        self, certificate: Certificate, revoked_at: datetime, reason: str | None
    ) -> None:
        certificate.status = CertificateStatus.REVOKED
        certificate.revoked_at = revoked_at
        certificate.revocation_reason = reason
        await self.db.flush()

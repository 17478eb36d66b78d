"""SQLAlchemy models for designs, campaigns and certificates."""

from datetime import UTC, date, datetime
from enum import Enum as PyEnum
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, declared_attr, mapped_column, relationship

from core.database import Base


def utcnow() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(UTC)


def today() -> date:
    """Return current UTC date."""
    return datetime.now(UTC).date()


def new_id() -> str:
    return str(uuid4())


def _enum_column(enum_cls: type[PyEnum], name: str) -> Enum:
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        values_callable=lambda x: [e.value for e in x],
    )


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamp columns.

    Use this for any model that needs audit timestamps.
    """

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(DateTime(timezone=True), default=utcnow)

    @declared_attr
    def updated_at(cls) -> Mapped[datetime]:
        return mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class DesignStatus(str, PyEnum):
    DRAFT = "draft"
    ACTIVE = "active"
    INACTIVE = "inactive"
    ARCHIVED = "archived"


class CampaignStatus(str, PyEnum):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"


class CampaignCompletionReason(str, PyEnum):
    LIMIT_REACHED = "limit_reached"
    DATE_REACHED = "date_reached"
    MANUAL = "manual"


class CertificateStatus(str, PyEnum):
    """Lifecycle of a certificate.

    PENDING certificates exist but have no rendered artifact yet; they become
    ISSUED once their PDF has been generated.
    """

    PENDING = "pending"
    ISSUED = "issued"
    EXPIRED = "expired"
    REVOKED = "revoked"


class Design(TimestampMixin, Base):
    """A certificate design: the raw canvas document plus render settings."""

    __tablename__ = "designs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[DesignStatus] = mapped_column(
        _enum_column(DesignStatus, "design_status"),
        nullable=False,
        default=DesignStatus.DRAFT,
    )
    # Canvas document as saved by the editor; may be empty while drafting
    design_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    # Render settings, e.g. {"orientation": "portrait", "default_font_family": ...}
    settings: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    campaigns: Mapped[list["Campaign"]] = relationship(back_populates="design")


class Campaign(TimestampMixin, Base):
    """A batch of certificates issued from one design."""

    __tablename__ = "campaigns"
    __table_args__ = (Index("ix_campaigns_design", "design_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    design_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("designs.id", ondelete="RESTRICT"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # {"recipient_name": <column>, "recipient_email": <column>,
    #  "variables": {<variable key>: <column>}}
    variable_mapping: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True
    )
    status: Mapped[CampaignStatus] = mapped_column(
        _enum_column(CampaignStatus, "campaign_status"),
        nullable=False,
        default=CampaignStatus.DRAFT,
    )
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    certificate_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    certificates_issued: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completion_reason: Mapped[CampaignCompletionReason | None] = mapped_column(
        _enum_column(CampaignCompletionReason, "campaign_completion_reason"),
        nullable=True,
    )

    design: Mapped["Design"] = relationship(back_populates="campaigns")
    certificates: Mapped[list["Certificate"]] = relationship(
        back_populates="campaign"
    )

    @property
    def remaining_capacity(self) -> int | None:
        """Certificates still issuable, or None when the campaign is unlimited."""
        if self.certificate_limit is None:
            return None
        return max(0, self.certificate_limit - (self.certificates_issued or 0))

    def can_issue_more(self) -> bool:
        remaining = self.remaining_capacity
        return remaining is None or remaining > 0


class Certificate(TimestampMixin, Base):
    """One recipient's certificate and its persisted render payload."""

    __tablename__ = "certificates"
    __table_args__ = (
        Index("ix_certificates_campaign", "campaign_id"),
        Index("ix_certificates_campaign_status", "campaign_id", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    design_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("designs.id", ondelete="RESTRICT"),
        nullable=False,
    )
    campaign_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("campaigns.id", ondelete="SET NULL"),
        nullable=True,
    )
    recipient_name: Mapped[str] = mapped_column(String(255), nullable=False)
    recipient_email: Mapped[str] = mapped_column(String(255), nullable=False)
    recipient_data: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True
    )
    # Null until the design has something to render
    certificate_data: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True
    )
    verification_token: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
    )
    status: Mapped[CertificateStatus] = mapped_column(
        _enum_column(CertificateStatus, "certificate_status"),
        nullable=False,
        default=CertificateStatus.PENDING,
    )
    issued_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    revoked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    revocation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    pdf_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    # Last rasterization failure, cleared on success
    render_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    design: Mapped["Design"] = relationship()
    campaign: Mapped["Campaign | None"] = relationship(back_populates="certificates")

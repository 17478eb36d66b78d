"""Pydantic schemas for API request/response validation."""

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from models import (
    CampaignCompletionReason,
    CampaignStatus,
    Certificate,
    CertificateStatus,
    DesignStatus,
)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


# ============ Recipients ============


class RecipientInput(BaseModel):
    """One certificate recipient: identity plus free-form template data."""

    recipient_name: str = Field(min_length=1, max_length=255)
    recipient_email: str = Field(min_length=3, max_length=255)
    recipient_data: dict[str, Any] = Field(default_factory=dict)

    @field_validator("recipient_name")
    @classmethod
    def validate_recipient_name(cls, v: str) -> str:
        """Validate and clean recipient name."""
        cleaned = " ".join(v.strip().split())
        if not cleaned:
            raise ValueError("Recipient name cannot be empty")
        return cleaned

    @field_validator("recipient_email")
    @classmethod
    def validate_recipient_email(cls, v: str) -> str:
        v = v.strip()
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Invalid email address")
        return v


class VariableMapping(BaseModel):
    """How CSV columns map onto recipient fields and template variables."""

    recipient_name: str = "recipient_name"
    recipient_email: str = "recipient_email"
    # target variable key -> source column
    variables: dict[str, str] = Field(default_factory=dict)


# ============ Designs ============


class DesignCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    status: DesignStatus = DesignStatus.DRAFT
    design_data: dict[str, Any] | None = None
    settings: dict[str, Any] | None = None


class DesignUpdate(BaseModel):
    design_data: dict[str, Any] | None = None
    settings: dict[str, Any] | None = None


class DesignResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str | None = None
    status: DesignStatus
    design_data: dict[str, Any] | None = None
    settings: dict[str, Any] | None = None
    created_at: datetime


class DesignVariablesResponse(BaseModel):
    """Variable keys referenced by a design's text nodes."""

    design_id: str
    variables: list[str]


class DesignPreviewResponse(BaseModel):
    """Payload and page HTML for a sample recipient (nothing is persisted)."""

    payload: dict[str, Any] | None = None
    html: str | None = None


# ============ Campaigns ============


class CampaignCreate(BaseModel):
    design_id: str
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    variable_mapping: VariableMapping | None = None
    start_date: date | None = None
    end_date: date | None = None
    certificate_limit: int | None = Field(default=None, ge=1)

    @model_validator(mode="after")
    def validate_dates(self) -> Self:
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class CampaignResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    design_id: str
    name: str
    description: str | None = None
    variable_mapping: dict[str, Any] | None = None
    status: CampaignStatus
    start_date: date | None = None
    end_date: date | None = None
    certificate_limit: int | None = None
    certificates_issued: int
    completed_at: datetime | None = None
    completion_reason: CampaignCompletionReason | None = None
    created_at: datetime


class ImportResult(BaseModel):
    """Outcome of a CSV recipient import."""

    detected_rows: int
    created: int
    skipped: int
    certificate_ids: list[str] = Field(default_factory=list)
    campaign_completed: bool = False


# ============ Certificates ============


class CertificateCreate(RecipientInput):
    campaign_id: str


class BulkCertificateCreate(BaseModel):
    campaign_id: str
    recipients: list[RecipientInput] = Field(min_length=1, max_length=5000)


class CertificateResponse(BaseModel):
    """Response containing certificate data."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    design_id: str
    campaign_id: str | None = None
    recipient_name: str
    recipient_email: str
    recipient_data: dict[str, Any] | None = None
    verification_token: str
    status: CertificateStatus
    issued_at: datetime | None = None
    expires_at: datetime | None = None
    revoked_at: datetime | None = None
    revocation_reason: str | None = None
    has_payload: bool = False
    has_pdf: bool = False
    render_error: str | None = None
    created_at: datetime

    @classmethod
    def from_certificate(cls, certificate: Certificate) -> "CertificateResponse":
        response = cls.model_validate(certificate)
        return response.model_copy(
            update={
                "has_payload": certificate.certificate_data is not None,
                "has_pdf": certificate.pdf_path is not None,
            }
        )


class CertificatePayloadResponse(BaseModel):
    certificate_id: str
    payload: dict[str, Any]


class CertificateRevokeRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)


class CertificateVerifyResponse(BaseModel):
    """Response for certificate verification."""

    is_valid: bool
    certificate: CertificateResponse | None = None
    message: str


class BulkCertificateResponse(BaseModel):
    certificates: list[CertificateResponse]
    renderable: int


class PdfGenerationResponse(BaseModel):
    certificate_id: str
    status: CertificateStatus
    size_bytes: int
    attempts: int


# ============ Health ============


class HealthResponse(BaseModel):
    status: str
    service: str = "certificate-studio"


# ============ Service results ============


@dataclass
class CreateCertificateResult:
    """Result of certificate creation."""

    certificate: Certificate
    # False when the design had nothing to render yet
    renderable: bool


@dataclass
class BulkCreateResult:
    certificates: list[Certificate] = field(default_factory=list)
    renderable: int = 0


@dataclass
class PdfGenerationResult:
    certificate_id: str
    pdf_path: str
    size_bytes: int
    attempts: int

"""Certificate issuing, rendering and verification endpoints.

Route ordering note: Literal path segments (/verify/, /bulk) are defined
before parameterized segments (/{certificate_id}/) to prevent routing conflicts.
"""

from pathlib import Path

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse

from core.config import get_settings
from core.database import DbSession
from core.ratelimit import RENDER_LIMIT, limiter
from schemas import (
    BulkCertificateCreate,
    BulkCertificateResponse,
    CertificateCreate,
    CertificatePayloadResponse,
    CertificateResponse,
    CertificateRevokeRequest,
    CertificateVerifyResponse,
    PdfGenerationResponse,
)
from services.certificate_pdf_service import (
    CertificateGenerationError,
    PayloadNotReadyError,
    generate_certificate_pdf,
    generate_pending_pdfs,
    render_certificate_html,
)
from services.certificates_service import (
    CampaignNotFoundError,
    CertificateNotFoundError,
    bulk_create_certificates,
    create_certificate,
    get_certificate,
    regenerate_payload,
    revoke_certificate,
    verify_certificate_with_message,
)

router = APIRouter(prefix="/api/certificates", tags=["certificates"])

_NOT_FOUND = {404: {"description": "Certificate not found"}}
_NOT_RENDERABLE = {409: {"description": "Certificate has no render payload yet"}}


def _get_cache_control() -> str:
    """Get appropriate Cache-Control header value based on environment."""
    settings = get_settings()
    if settings.environment.lower() == "development":
        return "no-store"
    return "private, max-age=300"


# --- Collection endpoints ---


@router.post(
    "",
    response_model=CertificateResponse,
    status_code=201,
    responses={404: {"description": "Campaign not found"}},
)
async def create_certificate_endpoint(
    request: Request,
    body: CertificateCreate,
    background_tasks: BackgroundTasks,
    db: DbSession,
) -> CertificateResponse:
    """Issue a certificate; its PDF is rendered in the background."""
    try:
        result = await create_certificate(db, body.campaign_id, body)
    except CampaignNotFoundError:
        raise HTTPException(status_code=404, detail="Campaign not found")

    if result.renderable:
        background_tasks.add_task(
            generate_pending_pdfs,
            request.app.state.session_maker,
            [result.certificate.id],
        )
    return CertificateResponse.from_certificate(result.certificate)


@router.post(
    "/bulk",
    response_model=BulkCertificateResponse,
    status_code=201,
    responses={404: {"description": "Campaign not found"}},
)
async def bulk_create_certificates_endpoint(
    request: Request,
    body: BulkCertificateCreate,
    background_tasks: BackgroundTasks,
    db: DbSession,
) -> BulkCertificateResponse:
    try:
        result = await bulk_create_certificates(db, body.campaign_id, body.recipients)
    except CampaignNotFoundError:
        raise HTTPException(status_code=404, detail="Campaign not found")

    renderable_ids = [c.id for c in result.certificates if c.certificate_data]
    if renderable_ids:
        background_tasks.add_task(
            generate_pending_pdfs, request.app.state.session_maker, renderable_ids
        )
    return BulkCertificateResponse(
        certificates=[CertificateResponse.from_certificate(c) for c in result.certificates],
        renderable=result.renderable,
    )


# --- Literal path routes (before parameterized) ---


@router.get("/verify/{verification_token}", response_model=CertificateVerifyResponse)
async def verify_certificate_endpoint(
    verification_token: str,
    db: DbSession,
) -> CertificateVerifyResponse:
    """Public verification: only issued certificates are valid."""
    certificate, message = await verify_certificate_with_message(db, verification_token)
    return CertificateVerifyResponse(
        is_valid=certificate is not None,
        certificate=(
            CertificateResponse.from_certificate(certificate) if certificate else None
        ),
        message=message,
    )


# --- Parameterized routes ---


@router.get(
    "/{certificate_id}", response_model=CertificateResponse, responses=_NOT_FOUND
)
async def get_certificate_endpoint(
    certificate_id: str, db: DbSession
) -> CertificateResponse:
    try:
        certificate = await get_certificate(db, certificate_id)
    except CertificateNotFoundError:
        raise HTTPException(status_code=404, detail="Certificate not found")
    return CertificateResponse.from_certificate(certificate)


@router.get(
    "/{certificate_id}/payload",
    response_model=CertificatePayloadResponse,
    responses={**_NOT_FOUND, **_NOT_RENDERABLE},
)
async def get_certificate_payload_endpoint(
    certificate_id: str, db: DbSession
) -> CertificatePayloadResponse:
    try:
        certificate = await get_certificate(db, certificate_id)
    except CertificateNotFoundError:
        raise HTTPException(status_code=404, detail="Certificate not found")

    if certificate.certificate_data is None:
        raise HTTPException(status_code=409, detail="Certificate is not renderable yet")

    return CertificatePayloadResponse(
        certificate_id=certificate.id, payload=certificate.certificate_data
    )


@router.get(
    "/{certificate_id}/html",
    response_class=HTMLResponse,
    responses={**_NOT_FOUND, **_NOT_RENDERABLE},
)
async def get_certificate_html_endpoint(
    certificate_id: str, db: DbSession
) -> HTMLResponse:
    """The exact page handed to the rasterizer."""
    try:
        certificate = await get_certificate(db, certificate_id)
        html = render_certificate_html(certificate)
    except CertificateNotFoundError:
        raise HTTPException(status_code=404, detail="Certificate not found")
    except PayloadNotReadyError:
        raise HTTPException(status_code=409, detail="Certificate is not renderable yet")

    return HTMLResponse(content=html, headers={"Cache-Control": _get_cache_control()})


@router.post(
    "/{certificate_id}/pdf",
    response_model=PdfGenerationResponse,
    responses={
        **_NOT_FOUND,
        **_NOT_RENDERABLE,
        502: {"description": "Rasterization failed after retries"},
    },
)
@limiter.limit(RENDER_LIMIT)
async def generate_certificate_pdf_endpoint(
    request: Request,
    certificate_id: str,
    db: DbSession,
) -> PdfGenerationResponse | JSONResponse:
    """Render the certificate's PDF now and issue the certificate."""
    try:
        result = await generate_certificate_pdf(db, certificate_id)
    except CertificateNotFoundError:
        raise HTTPException(status_code=404, detail="Certificate not found")
    except PayloadNotReadyError:
        raise HTTPException(status_code=409, detail="Certificate is not renderable yet")
    except CertificateGenerationError as e:
        # Returned rather than raised so the recorded render_error is committed
        return JSONResponse(
            status_code=502,
            content={"detail": "PDF generation failed", "reason": e.reason},
        )

    certificate = await get_certificate(db, certificate_id)
    return PdfGenerationResponse(
        certificate_id=result.certificate_id,
        status=certificate.status,
        size_bytes=result.size_bytes,
        attempts=result.attempts,
    )


@router.get(
    "/{certificate_id}/pdf",
    response_class=FileResponse,
    responses={**_NOT_FOUND},
)
async def download_certificate_pdf_endpoint(
    certificate_id: str, db: DbSession
) -> FileResponse:
    try:
        certificate = await get_certificate(db, certificate_id)
    except CertificateNotFoundError:
        raise HTTPException(status_code=404, detail="Certificate not found")

    if not certificate.pdf_path or not Path(certificate.pdf_path).is_file():
        raise HTTPException(status_code=404, detail="PDF not generated yet")

    return FileResponse(
        certificate.pdf_path,
        media_type="application/pdf",
        filename=f"certificate-{certificate.id}.pdf",
        headers={"Cache-Control": _get_cache_control()},
    )


@router.post(
    "/{certificate_id}/regenerate",
    response_model=CertificateResponse,
    responses=_NOT_FOUND,
)
async def regenerate_certificate_endpoint(
    certificate_id: str, db: DbSession
) -> CertificateResponse:
    """Rebuild the payload from the design as it is now."""
    try:
        certificate = await regenerate_payload(db, certificate_id)
    except CertificateNotFoundError:
        raise HTTPException(status_code=404, detail="Certificate not found")
    return CertificateResponse.from_certificate(certificate)


@router.post(
    "/{certificate_id}/revoke",
    response_model=CertificateResponse,
    responses=_NOT_FOUND,
)
async def revoke_certificate_endpoint(
    certificate_id: str,
    body: CertificateRevokeRequest,
    db: DbSession,
) -> CertificateResponse:
    try:
        certificate = await revoke_certificate(db, certificate_id, body.reason)
    except CertificateNotFoundError:
        raise HTTPException(status_code=404, detail="Certificate not found")
    return CertificateResponse.from_certificate(certificate)

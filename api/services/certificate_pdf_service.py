"""Certificate PDF generation.

This module turns a certificate's persisted payload into a PDF artifact:
- HTML projection of the payload
- Rasterization with a hard per-attempt timeout, retries and a circuit breaker
- Process-wide queueing so only a few browsers run at once
- Artifact storage and issuing the certificate on success

A failed rasterization never deletes or invalidates the certificate: it
stays PENDING with ``render_error`` set and can be rendered again later.
"""

import asyncio
import logging
from collections.abc import Collection
from datetime import UTC, datetime
from pathlib import Path

from circuitbreaker import CircuitBreakerError, circuit
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from core.config import get_settings
from core.logger import certificate_context
from core.rasterizer import (
    TRANSIENT_ERRORS,
    RasterizationError,
    RasterizationTimeoutError,
    RasterizeOptions,
    Rasterizer,
    get_rasterizer,
    options_for,
)
from models import Certificate, CertificateStatus
from rendering import project_to_html
from repositories.certificate_repository import CertificateRepository
from schemas import PdfGenerationResult
from services.certificates_service import CertificateNotFoundError

logger = logging.getLogger(__name__)

# Backoff between attempts; tests swap in tenacity.wait_none()
RETRY_WAIT = wait_exponential_jitter(initial=0.5, max=8)

_render_semaphore: asyncio.Semaphore | None = None


class PayloadNotReadyError(Exception):
    """Raised when a certificate has no payload to render yet."""

    def __init__(self, certificate_id: str) -> None:
        self.certificate_id = certificate_id
        super().__init__(f"Certificate {certificate_id} has no render payload yet")


class CertificateGenerationError(Exception):
    """Raised when rasterization failed after all retries.

    The certificate record itself is unaffected.
    """

    def __init__(self, certificate_id: str, reason: str) -> None:
        self.certificate_id = certificate_id
        self.reason = reason
        super().__init__(f"PDF generation failed for {certificate_id}: {reason}")


def _get_render_semaphore() -> asyncio.Semaphore:
    global _render_semaphore
    if _render_semaphore is None:
        _render_semaphore = asyncio.Semaphore(get_settings().rasterizer_concurrency)
    return _render_semaphore


def reset_render_queue() -> None:
    """Drop the render semaphore so the next call re-reads settings."""
    global _render_semaphore
    _render_semaphore = None


def render_certificate_html(certificate: Certificate) -> str:
    """Project a certificate's payload to HTML.

    Raises:
        PayloadNotReadyError: If the certificate has no payload
    """
    if not certificate.certificate_data:
        raise PayloadNotReadyError(certificate.id)
    return project_to_html(
        certificate.certificate_data, asset_base_url=get_settings().asset_base_url
    )


async def _rasterize_once(
    rasterizer: Rasterizer, html: str, options: RasterizeOptions
) -> bytes:
    try:
        async with asyncio.timeout(options.timeout):
            return await rasterizer.render(html, options)
    except TimeoutError as e:
        raise RasterizationTimeoutError(
            f"Rasterization exceeded {options.timeout:g}s"
        ) from e


async def rasterize_with_retry(
    rasterizer: Rasterizer,
    html: str,
    options: RasterizeOptions,
    *,
    max_attempts: int | None = None,
) -> tuple[bytes, int]:
    """Rasterize ``html``, retrying transient failures.

    Each attempt is cancelled once ``options.timeout`` elapses. Timeouts and
    unavailable renderers are retried with exponential jitter; any other
    RasterizationError fails immediately.

    Returns:
        Tuple of (PDF bytes, attempts used)

    Raises:
        RasterizationError: When the last attempt fails
    """
    attempts = max_attempts or get_settings().rasterizer_max_attempts
    retrying = AsyncRetrying(
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        stop=stop_after_attempt(attempts),
        wait=RETRY_WAIT,
        reraise=True,
    )

    async for attempt in retrying:
        with attempt:
            pdf = await _rasterize_once(rasterizer, html, options)
    return pdf, retrying.statistics.get("attempt_number", 1)


@circuit(
    failure_threshold=5,
    recovery_timeout=60,
    expected_exception=TRANSIENT_ERRORS,
    name="rasterizer_circuit",
)
async def _rasterize_default(html: str, options: RasterizeOptions) -> tuple[bytes, int]:
    """Configured rasterizer behind the circuit breaker."""
    return await rasterize_with_retry(get_rasterizer(), html, options)


def _write_artifact(path: Path, pdf: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(pdf)


def artifact_path_for(certificate_id: str) -> Path:
    return get_settings().artifact_path / f"certificate-{certificate_id}.pdf"


async def generate_certificate_pdf(
    db: AsyncSession,
    certificate_id: str,
    *,
    rasterizer: Rasterizer | None = None,
) -> PdfGenerationResult:
    """Render a certificate's PDF and issue the certificate.

    Waits for a slot in the process-wide render queue before touching the
    database.

    Args:
        db: Database session
        certificate_id: Certificate to render
        rasterizer: Backend override; defaults to the configured backend
            behind the circuit breaker

    Returns:
        PdfGenerationResult with the artifact path and attempt count

    Raises:
        CertificateNotFoundError: If the certificate does not exist
        PayloadNotReadyError: If the certificate has no payload yet
        CertificateGenerationError: If rasterization failed after retries
    """
    async with _get_render_semaphore():
        return await _render_and_issue(db, certificate_id, rasterizer)


async def _render_and_issue(
    db: AsyncSession, certificate_id: str, rasterizer: Rasterizer | None
) -> PdfGenerationResult:
    cert_repo = CertificateRepository(db)
    certificate = await cert_repo.get_by_id(certificate_id)
    if certificate is None:
        raise CertificateNotFoundError(certificate_id)

    html = render_certificate_html(certificate)
    layout = certificate.certificate_data.get("layout") or {}
    options = options_for(layout.get("orientation", "landscape"))

    with certificate_context(certificate.id, certificate.campaign_id):
        try:
            if rasterizer is None:
                pdf, attempts = await _rasterize_default(html, options)
            else:
                pdf, attempts = await rasterize_with_retry(rasterizer, html, options)
        except (RasterizationError, CircuitBreakerError) as e:
            reason = str(e) or type(e).__name__
            logger.exception(
                "certificate.pdf.failed",
                extra={"certificate_id": certificate.id, "error": reason},
            )
            certificate.render_error = reason
            await cert_repo.flush()
            raise CertificateGenerationError(certificate.id, reason) from e

    path = artifact_path_for(certificate.id)
    await asyncio.to_thread(_write_artifact, path, pdf)

    certificate.pdf_path = str(path)
    certificate.render_error = None
    if certificate.status == CertificateStatus.PENDING:
        await cert_repo.mark_issued(certificate, datetime.now(UTC))
    else:
        await cert_repo.flush()

    logger.info(
        "certificate.pdf.generated",
        extra={
            "certificate_id": certificate.id,
            "attempts": attempts,
            "size_bytes": len(pdf),
        },
    )

    return PdfGenerationResult(
        certificate_id=certificate.id,
        pdf_path=str(path),
        size_bytes=len(pdf),
        attempts=attempts,
    )


async def _generate_in_session(
    session_maker: async_sessionmaker[AsyncSession], certificate_id: str
) -> None:
    # Queue first so waiting tasks do not hold pooled connections
    async with _get_render_semaphore(), session_maker() as session:
        try:
            await _render_and_issue(session, certificate_id, None)
        except PayloadNotReadyError:
            logger.info(
                "certificate.pdf.skipped",
                extra={"certificate_id": certificate_id, "reason": "no_payload"},
            )
        except CertificateNotFoundError:
            logger.warning(
                "certificate.pdf.skipped",
                extra={"certificate_id": certificate_id, "reason": "not_found"},
            )
        except CertificateGenerationError:
            # Already logged; keep the recorded render_error
            pass
        await session.commit()


async def generate_pending_pdfs(
    session_maker: async_sessionmaker[AsyncSession],
    certificate_ids: Collection[str],
) -> None:
    """Render PDFs for freshly created certificates in the background.

    Each certificate gets its own session, opened only once it holds a
    render slot, so at most ``rasterizer_concurrency`` sessions are open at
    a time. Failures are logged, never raised.
    """
    results = await asyncio.gather(
        *(_generate_in_session(session_maker, cid) for cid in certificate_ids),
        return_exceptions=True,
    )
    for certificate_id, result in zip(certificate_ids, results, strict=True):
        if isinstance(result, Exception):
            logger.error(
                "certificate.pdf.background_failed",
                extra={"certificate_id": certificate_id, "error": str(result)},
            )

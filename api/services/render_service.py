"""Bulk certificate payload generation.

Each recipient's payload is a pure function of the design snapshot and the
recipient, so a batch fans out over a bounded thread pool. Results always
come back in input order.
"""

import asyncio
import logging
from collections.abc import Sequence
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Any, NamedTuple

from core.config import get_settings
from rendering import CertificatePayload, DesignSnapshot, render_payload

logger = logging.getLogger(__name__)


class RenderJob(NamedTuple):
    certificate_id: str | None
    campaign_id: str | None
    recipient: Any


def _render_one(design: DesignSnapshot, job: RenderJob) -> CertificatePayload | None:
    return render_payload(
        design,
        job.recipient,
        certificate_id=job.certificate_id,
        campaign_id=job.campaign_id,
    )


def render_payloads(
    design: DesignSnapshot,
    jobs: Sequence[RenderJob | tuple[str | None, str | None, Any]],
    *,
    max_workers: int | None = None,
    executor: Executor | None = None,
) -> list[CertificatePayload | None]:
    """Build payloads for many recipients of one design.

    Args:
        design: Frozen design snapshot shared (read-only) by every job
        jobs: ``(certificate_id, campaign_id, recipient)`` triples
        max_workers: Pool size; defaults to ``settings.render_workers``
        executor: Existing executor to run on instead of a private pool

    Returns:
        One payload (or None for an empty design) per job, in input order
    """
    jobs = [RenderJob(*job) for job in jobs]
    if not jobs:
        return []

    if executor is not None:
        return list(executor.map(lambda job: _render_one(design, job), jobs))

    workers = max_workers or get_settings().render_workers
    if workers <= 1 or len(jobs) == 1:
        return [_render_one(design, job) for job in jobs]

    with ThreadPoolExecutor(
        max_workers=min(workers, len(jobs)), thread_name_prefix="render"
    ) as pool:
        payloads = list(pool.map(lambda job: _render_one(design, job), jobs))

    logger.info(
        "render.batch.completed",
        extra={"design_id": design.id, "count": len(jobs), "workers": workers},
    )
    return payloads


async def arender_payloads(
    design: DesignSnapshot,
    jobs: Sequence[RenderJob | tuple[str | None, str | None, Any]],
    *,
    max_workers: int | None = None,
) -> list[CertificatePayload | None]:
    """Run :func:`render_payloads` off the event loop."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        None, lambda: render_payloads(design, jobs, max_workers=max_workers)
    )

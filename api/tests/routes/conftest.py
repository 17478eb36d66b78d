"""Route test configuration.

- Rate limiting is disabled so handlers can be called repeatedly
- Background PDF renders are recorded instead of run
- The configured rasterizer is replaced with a FakeRasterizer
"""

from unittest.mock import patch

import pytest

from tests.factories import FakeRasterizer


class BackgroundRenders:
    """Stands in for generate_pending_pdfs; records each scheduled batch."""

    def __init__(self) -> None:
        self.batches: list[list[str]] = []

    async def __call__(self, session_maker, certificate_ids) -> None:
        self.batches.append(list(certificate_ids))


@pytest.fixture(autouse=True)
def _disable_rate_limiter():
    """Disable slowapi rate limiting so route handlers can be called directly."""
    with patch("core.ratelimit.limiter.enabled", False):
        yield


@pytest.fixture(autouse=True)
def background_renders(monkeypatch: pytest.MonkeyPatch) -> BackgroundRenders:
    recorder = BackgroundRenders()
    monkeypatch.setattr("routes.certificates_routes.generate_pending_pdfs", recorder)
    monkeypatch.setattr("routes.campaigns_routes.generate_pending_pdfs", recorder)
    return recorder


@pytest.fixture(autouse=True)
def route_rasterizer(monkeypatch: pytest.MonkeyPatch) -> FakeRasterizer:
    rasterizer = FakeRasterizer()
    monkeypatch.setattr(
        "services.certificate_pdf_service.get_rasterizer", lambda: rasterizer
    )
    return rasterizer

"""HTML -> PDF rasterization backends.

The render pipeline only ever sees the :class:`Rasterizer` protocol:
``await rasterizer.render(html, options) -> bytes``. Two backends exist:

- ``PlaywrightRasterizer`` drives a local headless Chromium
- ``HttpRasterizer`` posts the page to a rasterization sidecar over HTTP

Retries, timeouts and queueing wrap this interface in
``services.certificate_pdf_service``; backends make exactly one attempt.
"""

from __future__ import annotations

import asyncio
import tempfile
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Literal, Protocol

import httpx

from core.config import get_settings


class RasterizationError(Exception):
    """Rasterization failed and retrying will not help."""


class RasterizationTimeoutError(RasterizationError):
    """The renderer did not finish in time (transient)."""


class RasterizerUnavailableError(RasterizationError):
    """The renderer is down or overloaded (transient)."""


TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    RasterizationTimeoutError,
    RasterizerUnavailableError,
)


@dataclass(frozen=True)
class RasterizeOptions:
    orientation: Literal["landscape", "portrait"] = "landscape"
    page_format: str = "A4"
    timeout: float = 120.0
    wait_until: Literal["load", "domcontentloaded", "networkidle"] = "networkidle"
    print_background: bool = True

    @property
    def landscape(self) -> bool:
        return self.orientation == "landscape"


class Rasterizer(Protocol):
    async def render(self, html: str, options: RasterizeOptions) -> bytes: ...


class PlaywrightRasterizer:
    """Headless Chromium via Playwright.

    A browser is launched per call and always closed afterwards; the PDF is
    written into a scoped temporary directory that is removed regardless of
    outcome.
    """

    def __init__(
        self,
        *,
        chromium_args: list[str] | None = None,
        executable_path: str | None = None,
    ) -> None:
        self.chromium_args = chromium_args or []
        self.executable_path = executable_path or None

    async def render(self, html: str, options: RasterizeOptions) -> bytes:
        from playwright.async_api import Error as PlaywrightError
        from playwright.async_api import TimeoutError as PlaywrightTimeoutError
        from playwright.async_api import async_playwright

        timeout_ms = options.timeout * 1000

        try:
            with tempfile.TemporaryDirectory(prefix="certificate-") as tmp_dir:
                pdf_path = Path(tmp_dir) / "certificate.pdf"

                async with async_playwright() as p:
                    browser = await p.chromium.launch(
                        headless=True,
                        args=self.chromium_args,
                        executable_path=self.executable_path,
                    )
                    try:
                        page = await browser.new_page()
                        await page.set_content(
                            html, wait_until=options.wait_until, timeout=timeout_ms
                        )
                        await page.pdf(
                            path=str(pdf_path),
                            format=options.page_format,
                            landscape=options.landscape,
                            print_background=options.print_background,
                            margin={"top": "0", "right": "0", "bottom": "0", "left": "0"},
                            prefer_css_page_size=True,
                        )
                    finally:
                        await browser.close()

                return pdf_path.read_bytes()
        except PlaywrightTimeoutError as e:
            raise RasterizationTimeoutError(str(e)) from e
        except PlaywrightError as e:
            raise RasterizerUnavailableError(str(e)) from e


_rasterizer_http_client: httpx.AsyncClient | None = None
_rasterizer_client_lock = asyncio.Lock()


async def get_rasterizer_client() -> httpx.AsyncClient:
    """Get or create the shared HTTP client for the rasterization sidecar.

    Uses connection pooling to reduce overhead from per-request client creation.
    Thread-safe via asyncio.Lock to prevent race conditions.
    """
    global _rasterizer_http_client

    if _rasterizer_http_client is not None and not _rasterizer_http_client.is_closed:
        return _rasterizer_http_client

    async with _rasterizer_client_lock:
        if (
            _rasterizer_http_client is not None
            and not _rasterizer_http_client.is_closed
        ):
            return _rasterizer_http_client

        settings = get_settings()
        _rasterizer_http_client = httpx.AsyncClient(
            timeout=settings.http_timeout,
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
        )
        return _rasterizer_http_client


async def close_rasterizer_client() -> None:
    """Close the shared rasterizer HTTP client (called on application shutdown)."""
    global _rasterizer_http_client
    if _rasterizer_http_client is not None and not _rasterizer_http_client.is_closed:
        await _rasterizer_http_client.aclose()
    _rasterizer_http_client = None


class HttpRasterizer:
    """Rasterization sidecar reached over HTTP.

    The sidecar receives ``{"html": ..., "options": {...}}`` and answers with
    the PDF bytes.
    """

    def __init__(self, url: str, client: httpx.AsyncClient | None = None) -> None:
        self.url = url
        self._client = client

    async def render(self, html: str, options: RasterizeOptions) -> bytes:
        client = self._client or await get_rasterizer_client()

        try:
            response = await client.post(
                self.url,
                json={"html": html, "options": asdict(options)},
                timeout=options.timeout,
            )
        except httpx.TimeoutException as e:
            raise RasterizationTimeoutError(str(e)) from e
        except httpx.TransportError as e:
            raise RasterizerUnavailableError(str(e)) from e

        if response.status_code == 429 or response.status_code >= 500:
            raise RasterizerUnavailableError(
                f"Rasterizer returned {response.status_code}"
            )
        if response.status_code != 200:
            raise RasterizationError(
                f"Rasterizer rejected the page: {response.status_code}"
            )
        return response.content


def get_rasterizer() -> Rasterizer:
    """Build the configured rasterizer backend."""
    settings = get_settings()
    if settings.rasterizer_backend == "http":
        return HttpRasterizer(settings.rasterizer_url)
    return PlaywrightRasterizer(
        chromium_args=settings.chromium_args,
        executable_path=settings.chromium_executable_path,
    )


def options_for(orientation: str) -> RasterizeOptions:
    """Rasterize options for a payload orientation, timeout from settings."""
    settings = get_settings()
    return RasterizeOptions(
        orientation="portrait" if orientation == "portrait" else "landscape",
        timeout=settings.rasterizer_timeout,
    )

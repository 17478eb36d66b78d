"""Unit tests for core.ratelimit module.

Tests rate limiting utilities:
- rate_limit_exceeded_handler returns proper 429 JSON response
- Render and import endpoints carry their own limits
"""

import json
from unittest.mock import MagicMock

import pytest
from fastapi import Request
from slowapi.errors import RateLimitExceeded

from core.ratelimit import (
    IMPORT_LIMIT,
    RENDER_LIMIT,
    limiter,
    rate_limit_exceeded_handler,
)


def _make_rate_limit_exc(
    detail: str = "5 per 1 minute", retry_after: int = 30
) -> RateLimitExceeded:
    """Create a RateLimitExceeded with a mock Limit object."""
    mock_limit = MagicMock()
    mock_limit.error_message = None
    mock_limit.limit = detail
    exc = RateLimitExceeded(mock_limit)
    object.__setattr__(exc, "retry_after", retry_after)
    return exc


def _make_request() -> Request:
    request = MagicMock(spec=Request)
    request.client.host = "192.168.1.1"
    return request


@pytest.mark.unit
class TestRateLimitExceededHandler:
    """Test rate_limit_exceeded_handler response."""

    def test_returns_429_with_retry_after(self):
        exc = _make_rate_limit_exc(retry_after=30)

        response = rate_limit_exceeded_handler(_make_request(), exc)

        assert response.status_code == 429
        assert response.headers.get("Retry-After") == "30"

    def test_response_body_contains_detail(self):
        exc = _make_rate_limit_exc(detail="10 per 1 minute", retry_after=60)

        response = rate_limit_exceeded_handler(_make_request(), exc)

        body = json.loads(response.body)
        assert "Rate limit exceeded" in body["detail"]
        assert "retry_after" in body


@pytest.mark.unit
class TestLimits:
    def test_limiter_keys_are_prefixed(self):
        assert limiter._key_prefix == "certs:"

    @pytest.mark.parametrize("limit", [RENDER_LIMIT, IMPORT_LIMIT])
    def test_limits_are_per_minute(self, limit):
        assert limit.endswith("/minute")

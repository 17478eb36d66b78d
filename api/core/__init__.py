"""Core utilities for the Certificate Studio API.

This module exports commonly used utilities for easy importing:
    from core import get_logger
"""

from core.logger import certificate_context, get_logger, request_context

__all__ = [
    "get_logger",
    "certificate_context",
    "request_context",
]

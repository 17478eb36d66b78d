"""Structured logging for Certificate Studio.

Every line is rendered by structlog, whether it was emitted through
``logging.getLogger(__name__)`` (application modules, with ``extra={...}``)
or through a structlog logger from :func:`get_logger`.

Render context travels in contextvars so that a line logged deep inside the
rasterizer still carries the request and certificate it belongs to:

    with request_context(request_id):
        ...
        with certificate_context(certificate.id, campaign_id=certificate.campaign_id):
            logger.info("certificate.pdf.generated", extra={"attempts": 1})

Environment:
    LOG_LEVEL   DEBUG / INFO / WARNING / ... (default INFO)
    LOG_FORMAT  "json" for one JSON object per line, console otherwise
"""

import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from core.config import get_settings

SERVICE_NAME = "certificate-studio"

# Third-party loggers that are only interesting when something is wrong
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "asyncio", "aiosqlite")


def _add_service_fields(
    _logger: WrappedLogger, _method: str, event_dict: EventDict
) -> EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("environment", get_settings().environment)
    return event_dict


def _drop_color_message(
    _logger: WrappedLogger, _method: str, event_dict: EventDict
) -> EventDict:
    # uvicorn duplicates its message with ANSI codes under this key
    event_dict.pop("color_message", None)
    return event_dict


def configure_logging(level: str | None = None, json_output: bool | None = None) -> None:
    """Route stdlib and structlog output through one formatter.

    Args:
        level: Log level name; defaults to ``LOG_LEVEL``
        json_output: Force JSON or console output; defaults to ``LOG_FORMAT``
    """
    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    if json_output is None:
        json_output = os.environ.get("LOG_FORMAT", "").lower() == "json"

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.ExtraAdder(),
        _drop_color_message,
        _add_service_fields,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    renderer: Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=sys.stdout.isatty(),
            exception_formatter=structlog.dev.plain_traceback,
        )

    structlog.configure(
        processors=shared_processors
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                renderer,
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(log_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """structlog logger for call sites that prefer keyword fields over ``extra``."""
    return structlog.stdlib.get_logger(name)


@contextmanager
def request_context(request_id: str, **fields: object) -> Iterator[None]:
    """Tag every line logged while handling one HTTP request."""
    with structlog.contextvars.bound_contextvars(request_id=request_id, **fields):
        yield


@contextmanager
def certificate_context(
    certificate_id: str, campaign_id: str | None = None
) -> Iterator[None]:
    """Tag every line logged while rendering one certificate."""
    fields = {"certificate_id": certificate_id}
    if campaign_id:
        fields["campaign_id"] = campaign_id
    with structlog.contextvars.bound_contextvars(**fields):
        yield


def clear_log_context() -> None:
    structlog.contextvars.clear_contextvars()

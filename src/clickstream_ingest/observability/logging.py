"""structlog configuration and invocation diagnostics."""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

from clickstream_ingest.config.models import LoggingConfig

logger = structlog.get_logger()

_SECRET_MARKERS = ("SECRET", "TOKEN", "PASSWORD", "CREDENTIAL", "SESSION")


def configure_logging(config: LoggingConfig | None = None) -> None:
    """Configure structlog processors and the stdlib root handler."""
    cfg = config or LoggingConfig()
    level = logging.getLevelName(cfg.level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if cfg.json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def redacted_environment(environ: dict[str, str] | None = None) -> dict[str, str]:
    """Return the process environment with secret-looking values masked."""
    env = dict(os.environ if environ is None else environ)
    return {
        k: ("***" if any(marker in k.upper() for marker in _SECRET_MARKERS) else v)
        for k, v in env.items()
    }


def log_invocation(event: Any, context: Any) -> None:
    """Log environment, invocation context and event shape."""
    logger.info("invocation.environment", environment=redacted_environment())
    if context is not None:
        logger.info(
            "invocation.context",
            request_id=getattr(context, "aws_request_id", None),
            function_name=getattr(context, "function_name", None),
            function_version=getattr(context, "function_version", None),
            memory_limit_mb=getattr(context, "memory_limit_in_mb", None),
        )
    logger.info(
        "invocation.event",
        event_type=type(event).__name__,
        event_source=event.get("eventSource") if isinstance(event, dict) else None,
    )

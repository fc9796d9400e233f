"""Structured logging configuration for EnvFetch."""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog


def add_app_context(
    logger: Any, method_name: str, event_dict: structlog.types.EventDict,  # noqa: ARG001
) -> structlog.types.EventDict:
    """Stamp every event with the app name and the configured agent provider."""
    event_dict.setdefault("app", "envfetch")
    event_dict.setdefault("agent_provider", os.environ.get("AGENT_PROVIDER", "http"))
    return event_dict


def configure_logging() -> None:
    """Set up structlog with JSON or console rendering based on LOG_FORMAT env var.

    - LOG_FORMAT=json  → JSON lines (production)
    - LOG_FORMAT=console (default) → human-readable coloured output

    Every event carries ``app`` and ``agent_provider`` fields. LOG_LEVEL picks
    the root level; unknown names fall back to INFO. httpx's own request
    logging is held at WARNING so agent calls are not logged twice.
    """
    log_format = os.environ.get("LOG_FORMAT", "console").lower()
    log_level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_name, logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_app_context,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    logging.getLogger("httpx").setLevel(max(log_level, logging.WARNING))

"""
Structured logging for the scanner.

structlog, configured once on import from LOG_LEVEL / LOG_FORMAT. Modules log
a snake_case event name plus keyword context; the running scan's identity
(wallet_id, scan_id, scan_type) comes from contextvars bound by
scan_context() so call sites inside a scan never repeat it. RPC URLs that
carry an api-key are masked in every event before rendering.

Only stdlib logging and structlog are imported here so any backend_inflow
module can log without circular imports.
"""

from __future__ import annotations

import logging
import os
import re
import sys
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator

import structlog
from structlog.contextvars import bind_contextvars, unbind_contextvars

SCAN_CONTEXT_KEYS = ("wallet_id", "scan_id", "scan_type")

_API_KEY_RE = re.compile(r"(api[-_]key=)[^&\s\"']+", re.IGNORECASE)


def _add_timestamp(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    event_dict.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    return event_dict


def _event_type(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Log aggregation keys on event_type, not structlog's 'event'."""
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    return event_dict


def _mask_api_keys(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    for key, value in event_dict.items():
        if isinstance(value, str) and "key=" in value.lower():
            event_dict[key] = _API_KEY_RE.sub(r"\1***", value)
    return event_dict


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """
    (Re)configure structlog. Defaults come from LOG_LEVEL (INFO) and
    LOG_FORMAT (json; anything else renders for a console).
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    level_value = getattr(logging, level_name, logging.INFO)
    fmt = (fmt or os.getenv("LOG_FORMAT", "json")).strip().lower()

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _add_timestamp,
        _mask_api_keys,
        _event_type,
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_value),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_logging()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Return a structured logger for the given module name.

        logger = get_logger(__name__)
        logger.info("scan_completed", total_lamports_in=123)

    Inside scan_context() the event also carries wallet_id, scan_id and
    scan_type.
    """
    return structlog.get_logger(name).bind(logger=name)


@contextmanager
def scan_context(wallet_id: str, scan_id: str | None = None) -> Iterator[str]:
    """
    Bind wallet_id and a fresh scan_id to every event logged in this context
    (including tasks it spawns). Yields the scan_id.
    """
    scan_id = scan_id or uuid.uuid4().hex[:12]
    bind_contextvars(wallet_id=wallet_id, scan_id=scan_id)
    try:
        yield scan_id
    finally:
        unbind_contextvars(*SCAN_CONTEXT_KEYS)


def bind_scan_type(scan_type: str) -> None:
    """Add scan_type to the current scan_context once it has been decided."""
    bind_contextvars(scan_type=scan_type)

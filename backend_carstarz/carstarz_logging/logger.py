"""
structlog setup for Carstarz services.

Call sites pass a snake_case event plus keyword context, for example
    logger.info("mint_confirmed", token_id=42, wallet_id=short_wallet(owner))

JSON lines on stdout by default; LOG_FORMAT=console for local development.
This module must not import other backend_carstarz modules.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

import structlog

EventDict = dict[str, Any]


def _utc_timestamp(_logger: Any, _method: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    return event_dict


def _event_type(_logger: Any, _method: str, event_dict: EventDict) -> EventDict:
    """JSON consumers key on event_type; the console renderer still needs `event`."""
    if "event" in event_dict:
        event_dict.setdefault("event_type", event_dict.pop("event"))
    return event_dict


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """(Re)configure structlog. Defaults come from LOG_LEVEL and LOG_FORMAT."""
    level_name = (level or os.getenv("LOG_LEVEL") or "INFO").strip().upper()
    fmt = (fmt or os.getenv("LOG_FORMAT") or "json").strip().lower()

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
        _utc_timestamp,
    ]
    if fmt == "console":
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))
    else:
        processors += [_event_type, structlog.processors.JSONRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level_name, logging.INFO)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_logging()


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name).bind(logger=name)


def short_wallet(wallet: str | None) -> str:
    """First 10 chars of a wallet, for log fields."""
    if not wallet:
        return "?"
    return wallet[:10] + "..."


def bind_token(token_id: int) -> structlog.BoundLogger:
    """Logger with token_id bound to every call."""
    return get_logger("backend_carstarz").bind(token_id=token_id)

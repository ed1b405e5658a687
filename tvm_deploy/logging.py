"""
Structured logging setup for tvm-deploy.

This module configures **structlog** + the stdlib ``logging`` package so that:
- Library events (funding requested, poll observations, deploy confirmed, ...)
  are emitted as structured key/value records.
- Output is a console renderer by default (the CLI is interactive) or JSON for
  log shipping.
- Key material never reaches a log line (see ``REDACT_KEYS``).

Quick start
-----------
    from tvm_deploy.logging import setup_logging, get_logger

    setup_logging()  # call once on process start
    log = get_logger(__name__)
    log.info("deployed", address="0:ab...")

Environment
-----------
- LOG_LEVEL: one of DEBUG, INFO, WARNING, ERROR (default: WARNING)
- LOG_FORMAT: "console" (default) or "json"
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, Dict, Iterable, Optional

import structlog
from structlog.contextvars import merge_contextvars

REDACT_KEYS = {"secret", "private_key", "keys", "password", "token"}


def _redact_secrets(_: logging.Logger, __: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Processor that redacts sensitive values for well-known keys.
    """
    for k in list(event_dict.keys()):
        if k.lower() in REDACT_KEYS and event_dict[k] is not None:
            event_dict[k] = "***"
    return event_dict


def _base_processors() -> Iterable:
    yield structlog.stdlib.add_log_level
    yield structlog.processors.TimeStamper(fmt="iso", utc=True)
    yield merge_contextvars
    yield structlog.processors.StackInfoRenderer()
    yield structlog.processors.format_exc_info
    yield _redact_secrets
    yield structlog.processors.UnicodeDecoder()


def setup_logging(
    *,
    level: Optional[str | int] = None,
    log_format: Optional[str] = None,
) -> None:
    """
    Configure structlog + stdlib logging. Safe to call more than once; the
    last call wins.

    Logs go to stderr so that stdout stays reserved for progress output.
    """
    level = level or os.getenv("LOG_LEVEL", "").upper() or "WARNING"
    log_format = (log_format or os.getenv("LOG_FORMAT", "") or "console").lower()

    processors = list(_base_processors())
    if log_format == "json":
        renderer: Any = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False, sort_keys=False)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            *processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=[structlog.stdlib.add_logger_name, *processors],
        )
    )

    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(handler)

    # Silence noisy transport loggers
    logging.getLogger("httpcore").setLevel(os.getenv("LOG_LEVEL_HTTPCORE", "WARNING"))
    logging.getLogger("httpx").setLevel(os.getenv("LOG_LEVEL_HTTPX", "WARNING"))


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """
    Return a structlog logger bound to the stdlib logger `name`.
    """
    return structlog.get_logger(name)


def bind_context(**kv: Any) -> None:
    """
    Bind flow-scoped key/value pairs (e.g. contract name) into the structlog
    contextvars store; every event logged by the current task carries them.
    """
    structlog.contextvars.bind_contextvars(**kv)


def clear_context(*keys: str) -> None:
    if keys:
        structlog.contextvars.unbind_contextvars(*keys)
    else:
        structlog.contextvars.clear_contextvars()


__all__ = ["setup_logging", "get_logger", "bind_context", "clear_context"]

"""
Structured logging for AcademiChain.

Modules log snake_case events with key-value context through structlog::

    import structlog
    logger = structlog.get_logger()

    logger.warning("remote_call_failed", service="jira", status=503, body=resp.text)

Gateway failures routinely carry the remote response body, and config
objects carry the API token. Two processors run before rendering:

  - :func:`redact_credentials` masks credential-bearing keys
  - :func:`truncate_bodies` caps response bodies (an HTML login page can be
    tens of kilobytes)

The CLI calls :func:`configure_logging` once at startup. Output goes to
stderr so ``--json`` command output on stdout stays machine-readable.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from typing import Any

import structlog

CREDENTIAL_KEYS = frozenset({"api_token", "token", "password", "authorization", "auth"})
BODY_KEYS = frozenset({"body", "response"})
BODY_LIMIT = 500
QUIET_LOGGERS = ("httpx", "httpcore")

_MASK = "***"


def redact_credentials(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    for key in CREDENTIAL_KEYS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = _MASK
    return event_dict


def truncate_bodies(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    for key in BODY_KEYS.intersection(event_dict):
        value = event_dict[key]
        if isinstance(value, str) and len(value) > BODY_LIMIT:
            event_dict[key] = f"{value[:BODY_LIMIT]}... [{len(value) - BODY_LIMIT} chars truncated]"
    return event_dict


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_credentials,
        truncate_bodies,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(json_output: bool) -> structlog.types.Processor:
    if json_output:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def _has_structlog_handler(root: logging.Logger) -> bool:
    return any(
        isinstance(getattr(h, "formatter", None), structlog.stdlib.ProcessorFormatter)
        for h in root.handlers
    )


def configure_logging(*, level: str = "INFO", json_output: bool = False) -> None:
    """
    Route structlog and stdlib logging through one stderr handler.

    Unknown level names fall back to INFO. Repeated calls adjust the level
    but never add a second handler.
    """
    shared = _shared_processors()
    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    if not _has_structlog_handler(root):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processors=[
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    _renderer(json_output),
                ],
                foreign_pre_chain=shared,
            )
        )
        root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Request logging from the HTTP stack would echo auth headers at DEBUG
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

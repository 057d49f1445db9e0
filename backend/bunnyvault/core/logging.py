"""Structured logging configuration using structlog.

Placement events are logged as snake_case event names with keyword context.
Request middleware binds ``request_id`` and ``tenant_id``; the provisioner
adds ``shard_id`` once a tenant is placed, so provider-call logs of the same
request can be traced back to the tenant and shard they were made for.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from bunnyvault.config import settings

# Keys whose values must never reach log output
SECRET_KEYS = frozenset({"access_key", "accesskey", "api_key", "admin_key", "x-admin-key"})
REDACTED = "***"


def redact_secrets(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask provider and admin credentials passed as log context."""
    for key in event_dict:
        if key.lower() in SECRET_KEYS and event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def add_service_info(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", settings.app_name)
    event_dict.setdefault("version", settings.app_version)
    event_dict.setdefault("environment", settings.environment)
    return event_dict


def setup_logging() -> None:
    """Configure structlog over the standard library.

    JSON lines when ``log_format`` is ``json``, coloured console output otherwise.
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_secrets,
    ]

    if settings.log_format == "json":
        processors: list[Processor] = [
            *shared_processors,
            add_service_info,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level),
    )

    # Provider calls are logged by the client itself, with placement context
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.DEBUG if settings.database_echo else logging.WARNING
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind request-scoped values (request_id, tenant_id, shard_id) to later log lines."""
    structlog.contextvars.bind_contextvars(**kwargs)


def bind_placement(tenant_id: str, shard_id: str) -> None:
    """Tag the rest of the request's log lines with where the tenant lives."""
    structlog.contextvars.bind_contextvars(tenant_id=tenant_id, shard_id=shard_id)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()

"""
Structured logging for the symptom checker.

Every entry carries a timestamp, level, logger name, the application and
environment, and the request context bound by the HTTP middleware.

Free text typed by users (symptoms, analysis context) and raw completion
text are masked outside debug mode so audit-grade logs never hold it.
"""

import logging
import sys
from collections.abc import Callable
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from config.config import Settings, get_settings

# Event keys whose values may contain user-supplied health information
PATIENT_TEXT_FIELDS = frozenset({"symptom", "context", "full_context", "content", "prompt"})


def mask_patient_text(
    _logger: WrappedLogger, _method_name: str, event_dict: EventDict
) -> EventDict:
    """Replace patient free text with its length."""
    for key in PATIENT_TEXT_FIELDS.intersection(event_dict):
        value = event_dict[key]
        if isinstance(value, str):
            event_dict[key] = f"<redacted {len(value)} chars>"
    return event_dict


def app_context(settings: Settings) -> Callable[[WrappedLogger, str, EventDict], EventDict]:
    """Processor stamping each entry with the application name and environment."""

    def add_app_context(
        _logger: WrappedLogger, _method_name: str, event_dict: EventDict
    ) -> EventDict:
        event_dict.setdefault("app", settings.app_name)
        event_dict.setdefault("env", settings.environment)
        return event_dict

    return add_app_context


def configure_logging(settings: Settings | None = None) -> None:
    """
    Configure structlog and route the standard library through it.

    ``log_format="json"`` renders one JSON object per line for log
    aggregation; ``"console"`` renders for humans.
    """
    settings = settings or get_settings()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        app_context(settings),
    ]
    if not settings.debug:
        shared_processors.append(mask_patient_text)

    if settings.log_format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
        shared_processors.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(settings.log_level.upper())

    for noisy in ("uvicorn.access", "httpx", "openai", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, typically ``get_logger(__name__)``."""
    return structlog.get_logger(name)


def log_request_context(request_id: str, method: str, path: str, **extra: Any) -> None:
    """
    Bind request context to every entry logged while handling this request.

    Clears whatever the previous request on this context bound.
    """
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        http_method=method,
        http_path=path,
        **extra,
    )

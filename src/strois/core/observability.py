"""Observability setup for strois.

Logs are structured with structlog and written to stderr, so that commands
such as ``strois cat`` keep stdout for object content. Presigned URLs carry
their signature in the query string; :func:`redact_secrets` scrubs it (and
any credential field) from every event before rendering.
"""

import logging
import re
import sys
from typing import Any, MutableMapping, Union

import structlog
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from .config import settings

REDACTED = "***"

_SECRET_FIELDS = frozenset({"secret_key", "session_token", "token", "secret"})
_SIGNED_QUERY = re.compile(
    r"(X-Amz-(?:Signature|Credential|Security-Token)=)[^&\s]*", re.IGNORECASE
)


def redact_secrets(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Structlog processor hiding credentials and URL signatures."""
    for name, value in event_dict.items():
        if name in _SECRET_FIELDS and value is not None:
            event_dict[name] = REDACTED
        elif isinstance(value, str) and "X-Amz-" in value:
            event_dict[name] = _SIGNED_QUERY.sub(rf"\g<1>{REDACTED}", value)
    return event_dict


def setup_tracing() -> None:
    """Set up OpenTelemetry tracing."""
    if not settings.otel_enabled:
        return

    resource = Resource.create({"service.name": settings.otel_service_name})
    provider = TracerProvider(resource=resource)

    # Spans of every S3 round trip, printed to the console
    processor = BatchSpanProcessor(ConsoleSpanExporter())
    provider.add_span_processor(processor)

    trace.set_tracer_provider(provider)


def setup_logging() -> None:
    """Set up structured logging with structlog."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, settings.log_level.upper()),
    )

    renderer = (
        structlog.dev.ConsoleRenderer(colors=False)
        if settings.log_format == "console"
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            redact_secrets,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def set_log_level(level: Union[int, str]) -> None:
    """Change the level of every strois logger at runtime."""
    logging.getLogger().setLevel(level)


def get_logger(name: str) -> Any:
    """Get a logger instance."""
    return structlog.get_logger(name)


def get_tracer(name: str) -> trace.Tracer:
    """Get a tracer from the active provider (a no-op one when disabled)."""
    return trace.get_tracer(name)


# Initialize on import
setup_logging()
setup_tracing()

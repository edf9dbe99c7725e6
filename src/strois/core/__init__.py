"""Core utilities and shared components for strois."""

from .config import settings
from .exceptions import (
    ConfigurationError,
    InternalError,
    PartLimitExceededError,
    PayloadNotUtf8Error,
    StroisError,
    TransportError,
    UserError,
)
from .observability import get_logger, get_tracer, redact_secrets, set_log_level

__all__ = [
    "settings",
    "StroisError",
    "UserError",
    "ConfigurationError",
    "PartLimitExceededError",
    "PayloadNotUtf8Error",
    "TransportError",
    "InternalError",
    "get_logger",
    "get_tracer",
    "redact_secrets",
    "set_log_level",
]

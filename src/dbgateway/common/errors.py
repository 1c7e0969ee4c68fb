from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Codes attached to execution and extension failures.

    SQL admission and lookup envelopes are identified by their message alone;
    a batch deadline yields a partial result, never an error.
    """
    DB_EXECUTION_ERROR = "DB_EXECUTION_ERROR"
    NORMALIZATION_ERROR = "NORMALIZATION_ERROR"
    EXTENSION_NOT_FOUND = "EXTENSION_NOT_FOUND"
    EXTENSION_EXECUTION_FAILED = "EXTENSION_EXECUTION_FAILED"
    INVALID_EXTENSION_RESULT = "INVALID_EXTENSION_RESULT"


class GatewayError(Exception):
    """Base exception for dbgateway."""


class ConfigurationError(GatewayError, ValueError):
    """Raised at startup when datasource or extension configuration is invalid."""


class ResultNormalizationError(GatewayError, TypeError):
    """Raised when a driver or extension value has no portable representation."""

    def __init__(self, message: str, value: Any = None):
        super().__init__(message)
        self.value = value


def error_payload(message: str, **extra: Any) -> Dict[str, Any]:
    """Builds the in-band ``{"error": message}`` envelope returned to callers.

    Extra keys with a ``None`` value are dropped so the envelope stays minimal.
    """
    payload: Dict[str, Any] = {"error": message}
    for key, value in extra.items():
        if value is not None:
            payload[key] = value
    return payload


def driver_message(exc: BaseException) -> str:
    """Returns the most specific message for a failure.

    SQLAlchemy wraps DBAPI exceptions and decorates the text with the SQL and a
    documentation link; callers want the driver's own message, so the wrapped
    ``orig`` exception wins when present.
    """
    orig: Optional[BaseException] = getattr(exc, "orig", None)
    target = orig if orig is not None else exc
    message = str(target).strip()
    return message or type(target).__name__

"""Classification of inference failures into retryable and non-retryable."""

from enum import Enum

import httpx

from .errors import (
    ParseError,
    PermanentServiceError,
    RasterizationError,
    TransientServiceError,
)

# Status strings used by Google APIs for overload conditions
TRANSIENT_STATUSES = frozenset(
    {"RESOURCE_EXHAUSTED", "UNAVAILABLE", "INTERNAL", "DEADLINE_EXCEEDED"}
)

RATE_LIMIT_MARKERS = (
    "rate limit",
    "rate-limit",
    "ratelimit",
    "too many requests",
    "resource_exhausted",
    "resource exhausted",
    "quota exceeded",
    "overloaded",
    "temporarily unavailable",
)


class ErrorKind(str, Enum):
    TRANSIENT = "transient"
    PERMANENT = "permanent"


def _status_code(error: BaseException) -> int | None:
    """Return the HTTP-like status code carried by an SDK error, if any."""
    for attr in ("status_code", "code"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def classify_error(error: BaseException) -> ErrorKind:
    """Label a failed inference attempt as transient or permanent.

    Transient errors are rate limits (429), server-side failures (5xx) and
    overload signals. Everything else, including malformed responses and
    other 4xx rejections, is permanent and must not be retried.

    Args:
        error: The exception raised by the attempt.

    Returns:
        ErrorKind.TRANSIENT or ErrorKind.PERMANENT.
    """
    if isinstance(error, TransientServiceError):
        return ErrorKind.TRANSIENT
    if isinstance(error, (PermanentServiceError, ParseError, RasterizationError)):
        return ErrorKind.PERMANENT

    status_code = _status_code(error)
    if status_code is not None:
        if status_code == 429 or status_code >= 500:
            return ErrorKind.TRANSIENT
        return ErrorKind.PERMANENT

    status = getattr(error, "status", None)
    if isinstance(status, str) and status.upper() in TRANSIENT_STATUSES:
        return ErrorKind.TRANSIENT

    # httpx transport failures come from the genai SDK's HTTP layer
    if isinstance(error, (TimeoutError, ConnectionError, httpx.TransportError)):
        return ErrorKind.TRANSIENT

    message = str(error).lower()
    if any(marker in message for marker in RATE_LIMIT_MARKERS):
        return ErrorKind.TRANSIENT

    return ErrorKind.PERMANENT


def is_transient(error: BaseException) -> bool:
    return classify_error(error) is ErrorKind.TRANSIENT

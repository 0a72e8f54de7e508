"""Error taxonomy for remote classifier calls and input files.

Provider SDKs raise loosely structured errors. Everything that crosses the
provider boundary is normalized into :class:`AIServiceError`, whose ``kind``
comes from exactly one place: :func:`classify_error`.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Optional

import httpx
import openai

QUOTA_CODES = frozenset({"insufficient_quota", "billing_hard_limit_reached", "insufficient_balance"})


class ErrorKind(enum.Enum):
    QUOTA_EXHAUSTED = "quota_exhausted"
    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"
    AUTH = "auth"
    FATAL = "fatal"

    @property
    def retryable(self) -> bool:
        return self in (ErrorKind.RATE_LIMITED, ErrorKind.TRANSIENT)


@dataclass(frozen=True)
class APIErrorDetails:
    message: str
    type: str = "unknown"
    code: str = "unknown"
    status: Optional[int] = None


class AIServiceError(Exception):
    def __init__(self, message: str, provider: str, details: APIErrorDetails, kind: ErrorKind):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.details = details
        self.kind = kind

    @property
    def is_quota_error(self) -> bool:
        return self.kind is ErrorKind.QUOTA_EXHAUSTED

    @property
    def should_retry(self) -> bool:
        return self.kind.retryable

    @classmethod
    def from_exception(cls, exc: BaseException, provider: str) -> "AIServiceError":
        if isinstance(exc, AIServiceError):
            return exc
        details = _details_of(exc)
        kind = classify_error(exc)
        label = provider.upper()
        if kind is ErrorKind.QUOTA_EXHAUSTED:
            message = f"{label} API Error: Insufficient balance or quota. Please check your account credits."
        else:
            message = f"{label} API Error: {details.message}"
        return cls(message, provider, details, kind)


class MalformedResponseError(ValueError):
    """Provider text could not be parsed into the expected structure."""


class InputFormatError(ValueError):
    """A source bookmark file could not be parsed."""


def classify_error(exc: BaseException) -> ErrorKind:
    if isinstance(exc, AIServiceError):
        return exc.kind
    details = _details_of(exc)
    status = details.status
    if status == 402:
        return ErrorKind.QUOTA_EXHAUSTED
    if status == 429:
        if details.code in QUOTA_CODES or details.type in QUOTA_CODES:
            return ErrorKind.QUOTA_EXHAUSTED
        return ErrorKind.RATE_LIMITED
    if status in (401, 403):
        return ErrorKind.AUTH
    if status in (408, 409) or (status is not None and status >= 500):
        return ErrorKind.TRANSIENT
    if status is not None:
        return ErrorKind.FATAL
    if isinstance(exc, (openai.APIConnectionError, httpx.TransportError, TimeoutError, ConnectionError)):
        return ErrorKind.TRANSIENT
    return ErrorKind.FATAL


def _details_of(exc: BaseException) -> APIErrorDetails:
    status = _status_of(exc)
    body = getattr(exc, "body", None)
    err: Any = body.get("error", body) if isinstance(body, dict) else None
    if not isinstance(err, dict):
        err = {}
    message = err.get("message") or getattr(exc, "message", None) or str(exc) or type(exc).__name__
    etype = err.get("type") or getattr(exc, "type", None) or "unknown"
    code = err.get("code") or getattr(exc, "code", None) or "unknown"
    return APIErrorDetails(message=str(message), type=str(etype), code=str(code), status=status)


def _status_of(exc: BaseException) -> Optional[int]:
    for attr in ("status_code", "status"):
        v = getattr(exc, attr, None)
        if isinstance(v, int):
            return v
    resp = getattr(exc, "response", None)
    v = getattr(resp, "status_code", None)
    return v if isinstance(v, int) else None

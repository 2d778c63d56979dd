from typing import Optional

from .enums import ErrorKind


class ExtractionError(Exception):
    """Base exception for extraction failures.

    Unclassified failures land here and are treated as retryable.
    """

    kind: ErrorKind = ErrorKind.UNKNOWN
    retryable: bool = True

    def __init__(
        self,
        message: str,
        provider_id: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.provider_id = provider_id
        self.status_code = status_code

    def __str__(self) -> str:
        return self.message


class AuthError(ExtractionError):
    """Credentials rejected by the provider (401, 403)."""

    kind = ErrorKind.AUTH
    retryable = False


class BadRequestError(ExtractionError):
    """The provider refused the request as malformed (400)."""

    kind = ErrorKind.BAD_REQUEST
    retryable = False


class RateLimitError(ExtractionError):
    """Quota exhausted or rate limited (429)."""

    kind = ErrorKind.RATE_LIMIT


class UnavailableError(ExtractionError):
    """Transient provider outage (408, 5xx, network errors)."""

    kind = ErrorKind.UNAVAILABLE


class ParseError(ExtractionError):
    """The provider response held no recoverable structure."""

    kind = ErrorKind.PARSE

"""
Typed errors surfaced by the analysis pipeline.

Every failure leaving the core is one of three kinds, so callers can tell
"retry later" (rate limit), "retry now" (transport) and "do not retry"
(parsing/validation) apart.
"""

from typing import Optional


class CaseCritiqueError(Exception):
    """Base class for all analysis pipeline errors."""


class RateLimitError(CaseCritiqueError):
    """Raised when the edge limiter or the usage ledger has no quota left."""
    def __init__(
        self,
        message: str,
        retry_after_ms: int = 0,
        daily_remaining: Optional[int] = None,
        minute_remaining: Optional[int] = None,
    ):
        super().__init__(message)
        self.retry_after_ms = retry_after_ms
        self.daily_remaining = daily_remaining
        self.minute_remaining = minute_remaining

    @property
    def retry_after_seconds(self) -> int:
        """Retry-After value rounded up to whole seconds."""
        return -(-self.retry_after_ms // 1000)


class LLMTransportError(CaseCritiqueError):
    """Raised when the model call fails or returns nothing usable.

    Also the catch-all for unclassified failures inside the pipeline.
    """
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ParsingError(CaseCritiqueError):
    """Raised when a model response cannot be reduced to the expected shape."""


class InvalidCaseNoteError(ParsingError):
    """Raised when the caller's input is rejected before any model call."""


# Suggested transport status per error kind; applying it is the caller's job.
HTTP_STATUS_BY_ERROR = {
    RateLimitError: 429,
    ParsingError: 400,
    LLMTransportError: 500,
}


def http_status_for(error: CaseCritiqueError) -> int:
    """Return the suggested HTTP status for a pipeline error."""
    if isinstance(error, LLMTransportError) and error.status_code:
        return error.status_code
    for error_type, status in HTTP_STATUS_BY_ERROR.items():
        if isinstance(error, error_type):
            return status
    return 500

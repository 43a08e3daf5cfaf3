"""
Case analysis orchestration.

Composes the pipeline for one request:

1. Edge rate limit (by caller address, when configured)
2. Input validation (no model call for empty input or unknown criteria)
3. Usage quota reservation (by identity, when given)
4. PII redaction
5. Prompt construction
6. Model call
7. Usage accounting (only after a successful model response)
8. Response parsing and validation

Errors leave as RateLimitError, LLMTransportError or ParsingError; anything
else is wrapped as LLMTransportError.
"""

import logging
from functools import partial
from typing import Callable, List, Optional, Protocol, TypeVar, Union

from .criteria import ComprehensiveResult, CriterionKey, CriterionResult
from .errors import (
    InvalidCaseNoteError,
    LLMTransportError,
    ParsingError,
    RateLimitError,
)
from .parser import parse_comprehensive, parse_single
from .prompts import build_comprehensive_prompt, build_prompt
from .rate_limiter import EdgeRateLimiter
from .redaction import redact_pii
from .usage_ledger import UsageLedger, UsageStats, UsageStatus, approximate_token_count

logger = logging.getLogger(__name__)

T = TypeVar("T")

MIN_CASE_NOTE_LENGTH = 200
MAX_CASE_NOTE_LENGTH = 15000


class TextGenerator(Protocol):
    """Anything that turns a prompt into raw model text."""

    def generate(self, prompt: str) -> str:
        ...


def validate_case_note(text: str) -> List[str]:
    """Return the application-level length violations for a case note.

    The analyzer itself only rejects empty input; callers apply this check.
    """
    errors = []
    if not isinstance(text, str):
        return ["Case note is required and must be a string"]
    if len(text) < MIN_CASE_NOTE_LENGTH:
        errors.append(f"Case notes must be at least {MIN_CASE_NOTE_LENGTH} characters long")
    if len(text) > MAX_CASE_NOTE_LENGTH:
        errors.append(f"Case notes must be less than {MAX_CASE_NOTE_LENGTH:,} characters")
    return errors


class CaseAnalyzer:
    """Runs rubric critiques of case notes against an LLM."""

    def __init__(
        self,
        gateway: TextGenerator,
        ledger: Optional[UsageLedger] = None,
        edge_limiter: Optional[EdgeRateLimiter] = None,
    ):
        """Initialize the analyzer.

        Args:
            gateway: Model gateway used for every analysis
            ledger: Per-identity usage ledger (defaults to an in-memory one)
            edge_limiter: Optional per-address limiter checked first
        """
        self.gateway = gateway
        self.ledger = ledger if ledger is not None else UsageLedger()
        self.edge_limiter = edge_limiter

    def analyze_criterion(
        self,
        case_text: str,
        criterion: Union[CriterionKey, str],
        identity: Optional[str] = None,
        caller_address: Optional[str] = None,
    ) -> CriterionResult:
        """Score one rubric criterion for a case note.

        Raises:
            RateLimitError: If the caller or identity has no quota left
            InvalidCaseNoteError: If the input or criterion is rejected
            LLMTransportError: If the model call fails
            ParsingError: If the model response is malformed
        """
        label = criterion.value if isinstance(criterion, CriterionKey) else str(criterion)
        try:
            self._check_edge(caller_address)
            try:
                key = CriterionKey.parse(criterion)
            except ValueError as e:
                raise InvalidCaseNoteError(str(e)) from e
            return self._run(
                case_text, key.value, identity,
                partial(build_prompt, key),
                lambda raw: parse_single(raw, key)
            )
        except (RateLimitError, LLMTransportError, ParsingError):
            raise
        except Exception as e:
            raise LLMTransportError(f"Failed to analyze {label}: {e}") from e

    def analyze_comprehensive(
        self,
        case_text: str,
        identity: Optional[str] = None,
        caller_address: Optional[str] = None,
    ) -> ComprehensiveResult:
        """Score all four criteria in a single model call.

        Raises:
            RateLimitError: If the caller or identity has no quota left
            InvalidCaseNoteError: If the input is rejected
            LLMTransportError: If the model call fails
            ParsingError: If the model response is malformed or incomplete
        """
        try:
            self._check_edge(caller_address)
            return self._run(
                case_text, "all", identity,
                build_comprehensive_prompt, parse_comprehensive
            )
        except (RateLimitError, LLMTransportError, ParsingError):
            raise
        except Exception as e:
            raise LLMTransportError(f"Failed to analyze medical case: {e}") from e

    def usage_status(self, identity: str) -> UsageStatus:
        return self.ledger.status(identity)

    def usage_stats(self, identity: str) -> UsageStats:
        return self.ledger.stats(identity)

    def simulate_usage(self, identity: str, requests: int = 1) -> UsageStats:
        """Record synthetic requests for identity. Testing/admin hook."""
        self.ledger.simulate(identity, requests)
        return self.ledger.stats(identity)

    def clear_usage(self, identity: str) -> UsageStats:
        """Reset identity's usage. Testing/admin hook."""
        self.ledger.clear(identity)
        return self.ledger.stats(identity)

    def _check_edge(self, caller_address: Optional[str]) -> None:
        if self.edge_limiter is None or caller_address is None:
            return
        decision = self.edge_limiter.check(caller_address)
        if decision.limited:
            logger.warning("Edge rate limit hit for %s", caller_address)
            raise RateLimitError(
                "Too many requests. Please try again shortly.",
                retry_after_ms=decision.reset_in_ms
            )

    def _reserve(self, identity: str) -> None:
        status = self.ledger.reserve(identity)
        if status.can_proceed:
            return
        exhausted = []
        if status.daily_remaining == 0:
            exhausted.append(status.next_daily_reset)
        if status.minute_remaining == 0:
            exhausted.append(status.next_minute_reset)
        reset_at = max(exhausted)
        retry_after_ms = max(0, int((reset_at - self.ledger.clock()).total_seconds() * 1000))
        logger.warning("Usage quota exhausted for %s", identity)
        raise RateLimitError(
            f"Rate limit exceeded. Daily remaining: {status.daily_remaining}, "
            f"Minute remaining: {status.minute_remaining}",
            retry_after_ms=retry_after_ms,
            daily_remaining=status.daily_remaining,
            minute_remaining=status.minute_remaining,
        )

    def _run(
        self,
        case_text: str,
        criterion_label: str,
        identity: Optional[str],
        build: Callable[[str], str],
        parse: Callable[[str], T],
    ) -> T:
        if not isinstance(case_text, str) or not case_text.strip():
            raise InvalidCaseNoteError("Case note is required and must be a non-empty string")

        if identity is not None:
            self._reserve(identity)
        try:
            prompt = build(redact_pii(case_text))
            raw_text = self.gateway.generate(prompt)
            token_count = approximate_token_count(raw_text)
            if identity is not None:
                self.ledger.record(identity, token_count)
        finally:
            if identity is not None:
                self.ledger.release(identity)

        # Audit line: never log the note itself
        logger.info(
            "Analysis request identity=%s criterion=%s approx_tokens=%d at=%s",
            identity or "-", criterion_label, token_count, self.ledger.clock().isoformat()
        )
        return parse(raw_text)

"""
Case Critique: rubric-based critique of clinical case notes by an LLM.
"""

from .core.analysis import CaseAnalyzer, validate_case_note
from .core.criteria import (
    ComprehensiveResult,
    CriterionKey,
    CriterionResult,
    CriterionScore,
)
from .core.errors import (
    CaseCritiqueError,
    InvalidCaseNoteError,
    LLMTransportError,
    ParsingError,
    RateLimitError,
)
from .core.rate_limiter import EdgeRateLimiter, client_address
from .core.usage_ledger import UsageLedger

__all__ = [
    "CaseAnalyzer",
    "CaseCritiqueError",
    "ComprehensiveResult",
    "CriterionKey",
    "CriterionResult",
    "CriterionScore",
    "EdgeRateLimiter",
    "InvalidCaseNoteError",
    "LLMTransportError",
    "ParsingError",
    "RateLimitError",
    "UsageLedger",
    "client_address",
    "validate_case_note",
]

"""
Best-effort PII scrubbing for free-text case notes.

Runs before any text leaves the process. This is a heuristic filter, not a
compliance guarantee: names in running prose, addresses and unusual
identifier formats pass through untouched.
"""

import re
from typing import List, Tuple

EMAIL_PLACEHOLDER = "[REDACTED_EMAIL]"
PHONE_PLACEHOLDER = "[REDACTED_PHONE]"
ID_PLACEHOLDER = "[REDACTED_ID]"
DATE_PLACEHOLDER = "[REDACTED_DATE]"
NAME_PLACEHOLDER = "[REDACTED_NAME]"

# Placeholders are bracketed, digit-free and joined by underscores, so none
# of the patterns below can match text inserted by an earlier one.
_SUBSTITUTIONS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE), EMAIL_PLACEHOLDER),
    (re.compile(r"\+?\d[\d\s().-]{7,}\d"), PHONE_PLACEHOLDER),
    # MRN-like tokens: 6-12 alphanumerics with at least one digit
    (re.compile(r"\b(?=[0-9A-Z]*\d)[0-9A-Z]{6,12}\b", re.IGNORECASE), ID_PLACEHOLDER),
    (re.compile(r"\b(\d{4}-\d{2}-\d{2}|\d{1,2}/\d{1,2}/\d{2,4})\b"), DATE_PLACEHOLDER),
    (re.compile(r"\b(Name|Patient)\s*:\s*[^\n]+", re.IGNORECASE), r"\1: " + NAME_PLACEHOLDER),
]


def redact_pii(text: str) -> str:
    """Replace emails, phone numbers, identifiers, dates and labelled names.

    Never raises; non-string input is treated as empty text.
    """
    if not isinstance(text, str):
        return ""
    for pattern, replacement in _SUBSTITUTIONS:
        text = pattern.sub(replacement, text)
    return text

"""
Parsing and validation of model responses.

The model is an untrusted text generator: every response is reduced to a
typed result or a ParsingError, never trusted field by field.
"""

import json
import logging
import re
from typing import Any, Dict, Tuple

from .criteria import (
    MAX_SCORE,
    MIN_SCORE,
    ComprehensiveResult,
    CriterionKey,
    CriterionResult,
    CriterionScore,
)
from .errors import InvalidCaseNoteError, ParsingError

logger = logging.getLogger(__name__)

# ```json ... ``` or ``` ... ```, optionally with a language tag
_FENCE_RE = re.compile(r"\A```[\w+-]*[ \t]*\r?\n?(.*?)\s*```\Z", re.DOTALL)


def strip_code_fence(text: str) -> str:
    """Trim whitespace and remove a surrounding fenced code block, if any."""
    text = text.strip()
    match = _FENCE_RE.match(text)
    if match:
        return match.group(1).strip()
    return text


def _load_object(raw_text: str) -> Dict[str, Any]:
    if not isinstance(raw_text, str):
        raise ValueError("response is not text")
    try:
        parsed = json.loads(strip_code_fence(raw_text))
    except json.JSONDecodeError as e:
        raise ValueError(f"invalid JSON: {e}")
    except RecursionError:
        raise ValueError("invalid JSON: nesting too deep")
    if not isinstance(parsed, dict):
        raise ValueError(f"expected a JSON object, got {type(parsed).__name__}")
    return parsed


def _require_score(data: Dict[str, Any], path: str) -> int:
    if "score" not in data:
        raise ValueError(f"missing required field '{path}score'")
    score = data["score"]
    # bool is an int subclass; "true" is not a score
    if isinstance(score, bool) or not isinstance(score, int):
        raise ValueError(f"'{path}score' must be an integer, got {score!r}")
    if not MIN_SCORE <= score <= MAX_SCORE:
        raise ValueError(f"'{path}score' must be between {MIN_SCORE} and {MAX_SCORE}, got {score}")
    return score


def _require_feedback(data: Dict[str, Any], path: str) -> str:
    if "feedback" not in data or data["feedback"] is None:
        raise ValueError(f"missing required field '{path}feedback'")
    feedback = data["feedback"]
    if not isinstance(feedback, str):
        raise ValueError(f"'{path}feedback' must be a string")
    return feedback


def _optional_text(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string")
    return value


def _optional_list(data: Dict[str, Any], key: str) -> Tuple[str, ...]:
    value = data.get(key)
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"'{key}' must be a list of strings")
    return tuple(value)


def parse_single(raw_text: str, criterion: CriterionKey) -> CriterionResult:
    """Parse a single-criterion response.

    score and feedback are mandatory; strengths, improvements and evidence
    default to empty when absent.

    Raises:
        InvalidCaseNoteError: If criterion is not one of the four criteria
        ParsingError: If the response is not a valid critique object
    """
    try:
        key = CriterionKey.parse(criterion)
    except ValueError as e:
        raise InvalidCaseNoteError(str(e)) from e
    try:
        data = _load_object(raw_text)
        return CriterionResult(
            score=_require_score(data, ""),
            feedback=_require_feedback(data, ""),
            strengths=_optional_list(data, "strengths"),
            improvements=_optional_list(data, "improvements"),
            evidence=_optional_text(data, "evidence"),
        )
    except ValueError as e:
        raise ParsingError(f"Failed to parse AI response for {key.value}: {e}") from e


def parse_comprehensive(raw_text: str) -> ComprehensiveResult:
    """Parse a comprehensive (all criteria) response.

    All four criteria must be present; the result fails closed otherwise.
    totalScore is taken from the model and defaults to 0 when absent.

    Raises:
        ParsingError: If the response is malformed or incomplete
    """
    try:
        data = _load_object(raw_text)

        missing = [key.value for key in CriterionKey if not data.get(key.value)]
        if missing:
            raise ValueError(f"Invalid response structure: missing required criteria fields {missing}")

        scores = {}
        for key in CriterionKey:
            section = data[key.value]
            if not isinstance(section, dict):
                raise ValueError(f"'{key.value}' must be an object")
            path = f"{key.value}."
            scores[key] = CriterionScore(
                score=_require_score(section, path),
                feedback=_require_feedback(section, path),
            )

        total_score = data.get("totalScore")
        if total_score is None:
            total_score = 0
        elif isinstance(total_score, bool) or not isinstance(total_score, int):
            raise ValueError(f"'totalScore' must be an integer, got {total_score!r}")

        result = ComprehensiveResult(
            history_physical=scores[CriterionKey.HISTORY_PHYSICAL],
            differential=scores[CriterionKey.DIFFERENTIAL],
            assessment_plan=scores[CriterionKey.ASSESSMENT_PLAN],
            followup=scores[CriterionKey.FOLLOWUP],
            total_score=total_score,
            overall_feedback=_optional_text(data, "overallFeedback"),
        )
    except ValueError as e:
        raise ParsingError(f"Failed to parse comprehensive analysis response: {e}") from e

    if "totalScore" in data and result.total_score != result.computed_total:
        logger.warning(
            "Model reported totalScore=%d but criterion scores sum to %d",
            result.total_score, result.computed_total
        )
    return result

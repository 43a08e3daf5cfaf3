"""
Rubric criteria and analysis result types.

Results are immutable once produced by the parser.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Tuple


class CriterionKey(Enum):
    """The four fixed rubric dimensions."""
    HISTORY_PHYSICAL = "historyPhysical"
    DIFFERENTIAL = "differential"
    ASSESSMENT_PLAN = "assessmentPlan"
    FOLLOWUP = "followup"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @classmethod
    def parse(cls, value) -> "CriterionKey":
        """Coerce a wire value into a CriterionKey.

        Raises:
            ValueError: If the value is not one of the four criteria
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            valid = [key.value for key in cls]
            raise ValueError(f"Invalid criterion {value!r}. Must be one of: {valid}")


_LABELS = {
    CriterionKey.HISTORY_PHYSICAL: "History & Physical",
    CriterionKey.DIFFERENTIAL: "Differential Diagnosis",
    CriterionKey.ASSESSMENT_PLAN: "Assessment & Plan",
    CriterionKey.FOLLOWUP: "Follow-up",
}

MIN_SCORE = 1
MAX_SCORE = 3
MAX_TOTAL_SCORE = MAX_SCORE * len(CriterionKey)


@dataclass(frozen=True)
class CriterionResult:
    """Detailed critique of a single criterion."""
    score: int
    feedback: str
    strengths: Tuple[str, ...] = field(default_factory=tuple)
    improvements: Tuple[str, ...] = field(default_factory=tuple)
    evidence: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "feedback": self.feedback,
            "strengths": list(self.strengths),
            "improvements": list(self.improvements),
            "evidence": self.evidence,
        }


@dataclass(frozen=True)
class CriterionScore:
    """Score and feedback for one criterion within a comprehensive result."""
    score: int
    feedback: str


@dataclass(frozen=True)
class ComprehensiveResult:
    """All four criteria scored in a single model call.

    total_score is the model's own arithmetic; computed_total is ours.
    """
    history_physical: CriterionScore
    differential: CriterionScore
    assessment_plan: CriterionScore
    followup: CriterionScore
    total_score: int = 0
    overall_feedback: str = ""

    def criterion(self, key: CriterionKey) -> CriterionScore:
        return {
            CriterionKey.HISTORY_PHYSICAL: self.history_physical,
            CriterionKey.DIFFERENTIAL: self.differential,
            CriterionKey.ASSESSMENT_PLAN: self.assessment_plan,
            CriterionKey.FOLLOWUP: self.followup,
        }[key]

    @property
    def computed_total(self) -> int:
        return sum(self.criterion(key).score for key in CriterionKey)

    def to_dict(self) -> Dict[str, Any]:
        """Return the camelCase shape stored by the case-history layer."""
        data: Dict[str, Any] = {
            key.value: {
                "score": self.criterion(key).score,
                "feedback": self.criterion(key).feedback,
            }
            for key in CriterionKey
        }
        data["totalScore"] = self.total_score
        data["overallFeedback"] = self.overall_feedback
        return data

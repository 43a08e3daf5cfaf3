"""
Rubric prompts for case-note critique.

The 3/2/1-point scoring key embedded in each prompt is part of the contract
with the model: the parser only accepts integer scores in [1, 3].
"""

from typing import Callable, Dict, List, Tuple

from .criteria import CriterionKey

# Scoring key per criterion, reproduced verbatim in every prompt.
RUBRIC: Dict[CriterionKey, List[Tuple[int, str]]] = {
    CriterionKey.HISTORY_PHYSICAL: [
        (3, "Well-organized, accurate, relevant to complaint"),
        (2, "Minor details missing but adequate for assessment"),
        (1, "Key diagnostic information missing"),
    ],
    CriterionKey.DIFFERENTIAL: [
        (3, "Well-developed, prioritized, clinically reasoned"),
        (2, "Lacks depth but includes main diagnoses"),
        (1, "Incomplete or incorrect differential"),
    ],
    CriterionKey.ASSESSMENT_PLAN: [
        (3, "Evidence-based, appropriate, comprehensive"),
        (2, "Addresses chief complaint adequately"),
        (1, "Inappropriate or incomplete plan"),
    ],
    CriterionKey.FOLLOWUP: [
        (3, "Appropriate follow-up documented and scheduled"),
        (2, "Follow-up documented but not scheduled"),
        (1, "No appropriate follow-up documented"),
    ],
}

_RUBRIC_HEADINGS = {
    CriterionKey.HISTORY_PHYSICAL: "HISTORY & PHYSICAL EXAM",
    CriterionKey.DIFFERENTIAL: "DIFFERENTIAL DIAGNOSIS",
    CriterionKey.ASSESSMENT_PLAN: "ASSESSMENT & TREATMENT PLAN",
    CriterionKey.FOLLOWUP: "FOLLOW-UP",
}


def _scoring_lines(criterion: CriterionKey, indent: str = "") -> str:
    lines = []
    for points, description in RUBRIC[criterion]:
        unit = "point" if points == 1 else "points"
        lines.append(f"{indent}- {points} {unit}: {description}")
    return "\n".join(lines)


def _criterion_prompt(
    section: str,
    case_text: str,
    evaluate: str,
    focus: List[str],
    criterion: CriterionKey,
    feedback_hint: str,
    strengths_hint: str,
    improvements_hint: str,
) -> str:
    focus_lines = "\n".join(f"- {item}" for item in focus)
    return f"""
Analyze the {section} section of this medical case note:

**Case Note:**
{case_text}

**Instructions:**
{evaluate}
{focus_lines}

**Scoring Criteria:**
{_scoring_lines(criterion)}

**Response Format (JSON only):**
{{
  "score": [1-3],
  "feedback": "{feedback_hint}",
  "strengths": ["{strengths_hint}"],
  "improvements": ["{improvements_hint}"],
  "evidence": "Clinical evidence supporting the assessment"
}}"""


def history_physical_prompt(case_text: str) -> str:
    return _criterion_prompt(
        "History & Physical Examination",
        case_text,
        "Evaluate the quality and completeness of:",
        [
            "Patient history taking (chief complaint, history of present illness, past medical history, "
            "medications, allergies, social history, family history, review of systems)",
            "Physical examination documentation (vital signs, systematic examination findings, "
            "relevant clinical signs)",
            "Documentation quality and organization",
        ],
        CriterionKey.HISTORY_PHYSICAL,
        "Specific feedback on strengths and areas for improvement",
        "List of strong points",
        "List of specific areas to improve",
    )


def differential_prompt(case_text: str) -> str:
    return _criterion_prompt(
        "Differential Diagnosis",
        case_text,
        "Evaluate the appropriateness and thoroughness of:",
        [
            "Differential diagnoses considered",
            "Clinical reasoning and diagnostic process",
            "Use of evidence-based diagnostic criteria",
            "Consideration of red flags and serious conditions",
            "Appropriate use of diagnostic tests",
        ],
        CriterionKey.DIFFERENTIAL,
        "Specific feedback on diagnostic reasoning quality",
        "List of strong diagnostic reasoning points",
        "List of specific diagnostic areas to improve",
    )


def assessment_plan_prompt(case_text: str) -> str:
    return _criterion_prompt(
        "Assessment & Treatment",
        case_text,
        "Evaluate the quality of:",
        [
            "Clinical assessment and diagnostic conclusions",
            "Treatment plan appropriateness and evidence base",
            "Medication selection and dosing",
            "Non-pharmacological interventions",
            "Patient education and counseling",
            "Risk-benefit analysis",
        ],
        CriterionKey.ASSESSMENT_PLAN,
        "Specific feedback on assessment and treatment quality",
        "List of strong treatment planning points",
        "List of specific treatment areas to improve",
    )


def followup_prompt(case_text: str) -> str:
    return _criterion_prompt(
        "Follow-up",
        case_text,
        "Evaluate the adequacy of:",
        [
            "Follow-up scheduling and timing",
            "Monitoring parameters and indicators",
            "Patient instructions and education",
            "Warning signs and when to return",
            "Continuity of care planning",
            "Documentation of follow-up plan",
        ],
        CriterionKey.FOLLOWUP,
        "Specific feedback on follow-up planning quality",
        "List of strong follow-up planning points",
        "List of specific follow-up areas to improve",
    )


PROMPT_BUILDERS: Dict[CriterionKey, Callable[[str], str]] = {
    CriterionKey.HISTORY_PHYSICAL: history_physical_prompt,
    CriterionKey.DIFFERENTIAL: differential_prompt,
    CriterionKey.ASSESSMENT_PLAN: assessment_plan_prompt,
    CriterionKey.FOLLOWUP: followup_prompt,
}


def build_prompt(criterion: CriterionKey, case_text: str) -> str:
    """Build the single-criterion prompt for a case note.

    Raises:
        ValueError: If criterion is not a known rubric dimension
    """
    return PROMPT_BUILDERS[CriterionKey.parse(criterion)](case_text)


def _system_prompt() -> str:
    sections = []
    for number, criterion in enumerate(CriterionKey, start=1):
        sections.append(
            f"{number}. {_RUBRIC_HEADINGS[criterion]} (1-3 points):\n"
            f"{_scoring_lines(criterion, indent='   ')}"
        )
    rubric = "\n\n".join(sections)
    return f"""You are an expert medical educator tasked with evaluating clinical case documentation.
Analyze the provided clinical case text and score it based on these 4 criteria:

{rubric}

Return ONLY valid JSON in this exact format:
{{
  "historyPhysical": {{"score": X, "feedback": "specific feedback"}},
  "differential": {{"score": X, "feedback": "specific feedback"}},
  "assessmentPlan": {{"score": X, "feedback": "specific feedback"}},
  "followup": {{"score": X, "feedback": "specific feedback"}},
  "totalScore": X,
  "overallFeedback": "comprehensive summary"
}}"""


MEDICAL_ANALYSIS_SYSTEM_PROMPT = _system_prompt()


def build_comprehensive_prompt(case_text: str) -> str:
    """Build the prompt that scores all four criteria in one call."""
    return f"""
{MEDICAL_ANALYSIS_SYSTEM_PROMPT}

Clinical case to analyze:
{case_text}"""


SAMPLE_CASE_NOTES: Dict[str, str] = {
    "good": """**Chief Complaint:** 45-year-old male presents with chest pain

**History of Present Illness:** 
Patient reports 3-day history of substernal chest pressure, rated 7/10, radiating to left arm. Pain is worse with exertion and relieved with rest. No associated nausea, vomiting, or diaphoresis. Denies shortness of breath at rest.

**Past Medical History:** Hypertension, hyperlipidemia, smoking 1 pack/day x 20 years

**Medications:** Lisinopril 10mg daily, Atorvastatin 20mg daily

**Physical Examination:**
Vital signs: BP 150/90, HR 88, RR 16, O2 sat 98% RA
Cardiovascular: Regular rate and rhythm, no murmurs
Pulmonary: Clear to auscultation bilaterally
Extremities: No edema

**Assessment and Plan:**
1. Chest pain - likely musculoskeletal vs cardiac etiology
   - EKG, troponins, CXR ordered
   - Cardiology consultation if cardiac markers positive
   - Patient counseled on smoking cessation

**Follow-up:** Return if symptoms worsen, cardiology follow-up pending lab results""",
    "poor": """**Chief Complaint:** Patient has pain

**History:** Pain in chest for few days

**Exam:** Patient looks okay

**Plan:** Give pain medicine

**Follow-up:** Come back if needed""",
}

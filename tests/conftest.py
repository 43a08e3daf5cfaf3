"""
Shared fixtures: a scripted model gateway and controllable clocks.
"""

import json
from datetime import datetime, timedelta

import pytest

from case_critique.core.analysis import CaseAnalyzer
from case_critique.core.usage_ledger import UsageLedger


class FakeGateway:
    """Gateway returning queued responses and recording every prompt."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.prompts = []

    def generate(self, prompt):
        self.prompts.append(prompt)
        if not self.responses:
            raise AssertionError("FakeGateway called more times than scripted")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


class FakeClock:
    """Clock whose time only moves when advanced."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 1, 1, 9, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeMonotonic:
    """Monotonic seconds counter for the edge limiter."""

    def __init__(self, start=1000.0):
        self.value = start

    def __call__(self):
        return self.value

    def advance(self, seconds):
        self.value += seconds


def single_response(score=3, feedback="Thorough history and exam.", **extra):
    data = {
        "score": score,
        "feedback": feedback,
        "strengths": ["Vitals documented"],
        "improvements": ["Add allergies"],
        "evidence": "BP 150/90, HR 88",
    }
    data.update(extra)
    return json.dumps(data)


def comprehensive_response(scores=(3, 2, 3, 2), total=None, overall="Solid note."):
    keys = ["historyPhysical", "differential", "assessmentPlan", "followup"]
    data = {
        key: {"score": score, "feedback": f"{key} feedback"}
        for key, score in zip(keys, scores)
    }
    data["totalScore"] = sum(scores) if total is None else total
    data["overallFeedback"] = overall
    return json.dumps(data)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ledger(clock):
    return UsageLedger(clock=clock)


@pytest.fixture
def make_analyzer(ledger):
    """Build an analyzer around a FakeGateway scripted with responses."""
    def _make(*responses, edge_limiter=None):
        gateway = FakeGateway(*responses)
        return CaseAnalyzer(gateway, ledger=ledger, edge_limiter=edge_limiter), gateway
    return _make

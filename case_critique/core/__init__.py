"""
Core modules for Case Critique.

This package contains the case-analysis pipeline: redaction, usage and
rate limiting, rubric prompts, response parsing, and orchestration.
"""

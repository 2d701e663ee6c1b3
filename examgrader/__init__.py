"""
Exam Grader - resilient grading of free-text exam answers.

This package grades student answers against generated exams using an
AI grading oracle first and deterministic rule-based grading as a
fallback, and turns malformed LLM output into validated data.
"""

__version__ = "1.0.0"
__author__ = "Exam Grader Team"

"""
Storage Module.

Collaborator interfaces for exams and grading history, schema
normalization, and in-memory implementations.
"""

from examgrader.storage.base import DuplicateAttemptError, ExamStore, GradingResultStore
from examgrader.storage.memory import InMemoryExamStore, InMemoryGradingStore
from examgrader.storage.normalize import (
    ExamRecordError,
    normalize_exam_record,
    normalize_grading_record,
    record_attempt_number,
    status_for_record,
    to_grading_record,
)

__all__ = [
    "DuplicateAttemptError",
    "ExamRecordError",
    "ExamStore",
    "GradingResultStore",
    "InMemoryExamStore",
    "InMemoryGradingStore",
    "normalize_exam_record",
    "normalize_grading_record",
    "record_attempt_number",
    "status_for_record",
    "to_grading_record",
]

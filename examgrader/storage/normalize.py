"""
Normalization of stored records into canonical models.

Two schema versions coexist in storage:

- legacy: exams carry `exam_id`, a `created|answered|graded` status and
  their questions inside `exam_json.exam.questions` with `answer_text`.
- current: exams carry `id`, an upper-case status and question rows with
  `question_number`, `correct_answer` and `is_selected`.

Both grading tables store the full result in `grading_json`; legacy rows
may lack `attempt_number` and use provider-specific method tags.

Everything past this module sees only the canonical shape.
"""

import json
from typing import Any, Mapping

from pydantic import ValidationError

from examgrader.models import (
    Exam,
    ExamStatus,
    GradedQuestion,
    GradingMetadata,
    GradingMethod,
    GradingResult,
    Question,
    UsageMetadata,
    percentage_of,
)

DEFAULT_MAX_POINTS = 2

LEGACY_STATUSES = {
    "created": ExamStatus.READY,
    "answered": ExamStatus.PROCESSING,
    "graded": ExamStatus.GRADED,
}

LEGACY_STATUS_NAMES = {status: name for name, status in LEGACY_STATUSES.items()}

LEGACY_METHODS = {
    "gemini": GradingMethod.AI,
    "batch-gemini": GradingMethod.AI,
    "ai": GradingMethod.AI,
    "rule-based": GradingMethod.RULE_BASED,
}

LEGACY_USAGE_KEYS = {
    "promptTokenCount": "prompt_token_count",
    "candidatesTokenCount": "candidates_token_count",
    "totalTokenCount": "total_token_count",
    "inputCost": "input_cost",
    "outputCost": "output_cost",
    "estimatedCost": "estimated_cost",
}


class ExamRecordError(Exception):
    """Raised when a stored record matches no known schema."""

    def __init__(self, message: str, record_id: Any = None):
        self.record_id = record_id
        super().__init__(message)


# ==============================================================================
# Exams
# ==============================================================================


def is_legacy_exam(record: Mapping[str, Any]) -> bool:
    return "exam_json" in record


def normalize_exam_record(record: Mapping[str, Any]) -> Exam:
    """
    Convert a stored exam record of either schema into an Exam.

    Raises:
        ExamRecordError: If the record matches neither schema or holds invalid data.
    """
    try:
        if is_legacy_exam(record):
            return _normalize_legacy_exam(record)
        if "id" in record and "questions" in record:
            return _normalize_current_exam(record)
    except (ValidationError, KeyError, AttributeError, TypeError, ValueError) as e:
        raise ExamRecordError(f"Invalid exam record: {e}", _record_id(record)) from e

    raise ExamRecordError("Unrecognized exam record shape", _record_id(record))


def _normalize_legacy_exam(record: Mapping[str, Any]) -> Exam:
    exam_json = record.get("exam_json") or {}
    # Some writers stored the payload as a JSON string
    if isinstance(exam_json, str):
        exam_json = json.loads(exam_json)
    raw_questions = (exam_json.get("exam") or {}).get("questions") or []

    questions = tuple(
        Question(
            id=q["id"],
            question_text=q.get("question_text") or q.get("question") or "",
            question_type=q.get("question_type") or q.get("type") or "multiple_choice",
            options=_options(q.get("options")),
            answer_text=_text(q.get("answer_text", q.get("correct_answer"))),
            explanation=q.get("explanation"),
            max_points=q.get("max_points") or DEFAULT_MAX_POINTS,
        )
        for q in raw_questions
    )

    return Exam(
        exam_id=str(record["exam_id"]),
        subject=record.get("subject") or "",
        grade_level=_text(record.get("grade")),
        status=_legacy_status(record.get("status")),
        created_at=record.get("created_at"),
        questions=questions,
    )


def _normalize_current_exam(record: Mapping[str, Any]) -> Exam:
    rows = [q for q in record.get("questions") or [] if q.get("is_selected", True) is not False]
    rows.sort(key=lambda q: q.get("question_number") or 0)

    questions = tuple(
        Question(
            id=q["id"],
            question_text=q.get("question_text") or "",
            question_type=q.get("question_type") or "multiple_choice",
            options=_options(q.get("options")),
            answer_text=_text(q.get("correct_answer")),
            explanation=q.get("explanation"),
            max_points=q.get("max_points") or DEFAULT_MAX_POINTS,
        )
        for q in rows
    )

    status = str(record.get("status") or "").lower()
    try:
        exam_status = ExamStatus(status)
    except ValueError as e:
        raise ExamRecordError(f"Unknown exam status: {record.get('status')!r}", record["id"]) from e

    return Exam(
        exam_id=str(record["id"]),
        subject=record.get("subject") or "",
        grade_level=_text(record.get("grade")),
        status=exam_status,
        created_at=record.get("created_at"),
        questions=questions,
    )


def _legacy_status(value: Any) -> ExamStatus:
    status = str(value or "").lower()
    if status in LEGACY_STATUSES:
        return LEGACY_STATUSES[status]
    try:
        return ExamStatus(status)
    except ValueError as e:
        raise ExamRecordError(f"Unknown exam status: {value!r}") from e


def status_for_record(record: Mapping[str, Any], status: ExamStatus) -> str:
    """Render a canonical status in the vocabulary of the record's schema."""
    if is_legacy_exam(record):
        return LEGACY_STATUS_NAMES.get(status, status.value)
    return status.value.upper()


# ==============================================================================
# Grading records
# ==============================================================================


def record_attempt_number(record: Mapping[str, Any]) -> int:
    """Attempt number of a grading record; legacy rows without one are attempt 1."""
    grading_json = record.get("grading_json")
    nested = grading_json.get("attempt_number") if isinstance(grading_json, Mapping) else None
    return int(record.get("attempt_number") or nested or 1)


def normalize_grading_record(record: Mapping[str, Any]) -> GradingResult:
    """
    Convert a stored grading record of either table into a GradingResult.

    Raises:
        ExamRecordError: If the record holds no usable grading data.
    """
    grading_json = record.get("grading_json")
    if not isinstance(grading_json, Mapping):
        raise ExamRecordError("Grading record has no grading_json", record.get("exam_id"))

    attempt_number = record_attempt_number(record)
    metadata = grading_json.get("grading_metadata") or {}

    graded_at = record.get("graded_at") or grading_json.get("graded_at")
    timestamps: dict[str, Any] = {}
    if graded_at:
        timestamps["graded_at"] = graded_at
        timestamps["submitted_at"] = grading_json.get("submitted_at") or graded_at

    try:
        questions = tuple(_normalize_graded_question(q) for q in grading_json.get("questions") or [])
        return GradingResult(
            exam_id=str(record.get("exam_id") or grading_json["exam_id"]),
            attempt_number=attempt_number,
            subject=grading_json.get("subject") or "",
            grade_level=_text(grading_json.get("grade_level", grading_json.get("grade"))),
            final_grade=str(record.get("final_grade") or grading_json["final_grade"]),
            grade_scale=record.get("grade_scale") or grading_json.get("grade_scale") or "4-10",
            total_points=grading_json.get("total_points") or 0,
            max_total_points=grading_json.get("max_total_points") or 0,
            percentage=grading_json.get("percentage") or 0,
            questions=questions,
            questions_count=grading_json.get("questions_count") or len(questions),
            questions_correct=grading_json.get("questions_correct") or 0,
            questions_partial=grading_json.get("questions_partial") or 0,
            questions_incorrect=grading_json.get("questions_incorrect") or 0,
            grading_metadata=_normalize_metadata(metadata),
            **timestamps,
        )
    except (ValidationError, KeyError) as e:
        raise ExamRecordError(f"Invalid grading record: {e}", record.get("exam_id")) from e


def _normalize_graded_question(data: Mapping[str, Any]) -> GradedQuestion:
    max_points = data.get("max_points") or DEFAULT_MAX_POINTS
    points = data.get("points_awarded") or 0
    percentage = data.get("percentage")
    if percentage is None:
        percentage = percentage_of(points, max_points)

    return GradedQuestion(
        question_id=data["question_id"] if "question_id" in data else data["id"],
        question_text=data.get("question_text") or "",
        question_type=data.get("question_type") or "",
        expected_answer=_text(data.get("expected_answer")),
        student_answer=_text(data.get("student_answer")),
        points_awarded=points,
        max_points=max_points,
        percentage=percentage,
        feedback=data.get("feedback") or "",
        grade_reasoning=data.get("grade_reasoning") or "",
        grading_method=LEGACY_METHODS.get(
            str(data.get("grading_method") or ""), GradingMethod.RULE_BASED
        ),
        usage_metadata=_normalize_usage(data.get("usage_metadata")),
    )


def _normalize_metadata(data: Mapping[str, Any]) -> GradingMetadata:
    ai_graded = data.get("ai_graded", data.get("gemini_graded")) or 0
    rule_based_graded = data.get("rule_based_graded") or 0
    primary = LEGACY_METHODS.get(str(data.get("primary_method") or ""), GradingMethod.RULE_BASED)

    return GradingMetadata(
        ai_graded=ai_graded,
        rule_based_graded=rule_based_graded,
        primary_method=primary,
        ai_available=bool(data.get("ai_available", data.get("gemini_available"))),
        total_usage=_normalize_usage(data.get("total_usage", data.get("total_gemini_usage")))
        or UsageMetadata(),
        grading_prompt=data.get("grading_prompt") or "",
    )


def _normalize_usage(data: Mapping[str, Any] | None) -> UsageMetadata | None:
    if not data:
        return None
    fields = {LEGACY_USAGE_KEYS.get(key, key): value for key, value in data.items()}
    known = UsageMetadata.model_fields.keys()
    return UsageMetadata(**{k: v for k, v in fields.items() if k in known and v is not None})


def to_grading_record(result: GradingResult) -> dict[str, Any]:
    """Build the row written to the current grading store."""
    return {
        "exam_id": result.exam_id,
        "attempt_number": result.attempt_number,
        "grade_scale": result.grade_scale,
        "final_grade": result.final_grade,
        "graded_at": result.graded_at.isoformat(),
        "grading_prompt": result.grading_metadata.grading_prompt,
        "grading_json": result.model_dump(mode="json"),
    }


# ==============================================================================
# Helpers
# ==============================================================================


def _record_id(record: Mapping[str, Any]) -> Any:
    return record.get("exam_id", record.get("id"))


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _options(value: Any) -> tuple[str, ...] | None:
    if not value:
        return None
    return tuple(str(option) for option in value)

"""
Unit tests for stored-record normalization.
"""

import json
from typing import Any

import pytest

from examgrader.models import ExamStatus, GradingMethod
from examgrader.storage import (
    ExamRecordError,
    normalize_exam_record,
    normalize_grading_record,
    record_attempt_number,
    status_for_record,
    to_grading_record,
)


class TestExamRecords:
    """Tests for exam normalization across schema versions."""

    def test_legacy_exam(self, legacy_exam_record: dict[str, Any]) -> None:
        exam = normalize_exam_record(legacy_exam_record)

        assert exam.exam_id == "exam-1"
        assert exam.status == ExamStatus.READY
        assert exam.grade_level == "8"
        assert [q.id for q in exam.questions] == [1, 2, 3]
        assert exam.questions[0].answer_text == "Oxygen"
        assert exam.questions[0].options == ("Oxygen", "Nitrogen", "Helium")
        assert exam.max_total_points == 6

    def test_legacy_correct_answer_key(self, legacy_exam_record: dict[str, Any]) -> None:
        question = legacy_exam_record["exam_json"]["exam"]["questions"][0]
        question["correct_answer"] = question.pop("answer_text")

        exam = normalize_exam_record(legacy_exam_record)

        assert exam.questions[0].answer_text == "Oxygen"

    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            ("created", ExamStatus.READY),
            ("answered", ExamStatus.PROCESSING),
            ("graded", ExamStatus.GRADED),
        ],
    )
    def test_legacy_statuses(
        self, legacy_exam_record: dict[str, Any], status: str, expected: ExamStatus
    ) -> None:
        legacy_exam_record["status"] = status
        assert normalize_exam_record(legacy_exam_record).status == expected

    def test_current_exam(self, current_exam_record: dict[str, Any]) -> None:
        """Test deselected questions are dropped and the rest ordered by number."""
        exam = normalize_exam_record(current_exam_record)

        assert exam.exam_id == "exam-2"
        assert exam.status == ExamStatus.READY
        assert [q.id for q in exam.questions] == ["q-a", "q-b"]
        assert exam.questions[0].max_points == 2
        assert exam.questions[1].max_points == 3
        assert exam.questions[1].answer_text == "1917"

    @pytest.mark.parametrize("status", ["DRAFT", "PROCESSING", "READY", "FAILED", "GRADED"])
    def test_current_statuses(self, current_exam_record: dict[str, Any], status: str) -> None:
        current_exam_record["status"] = status
        assert normalize_exam_record(current_exam_record).status == ExamStatus(status.lower())

    def test_unknown_status(self, current_exam_record: dict[str, Any]) -> None:
        current_exam_record["status"] = "ARCHIVED"

        with pytest.raises(ExamRecordError):
            normalize_exam_record(current_exam_record)

    def test_unrecognized_shape(self) -> None:
        with pytest.raises(ExamRecordError) as exc_info:
            normalize_exam_record({"exam_id": "x", "title": "No questions anywhere"})

        assert exc_info.value.record_id == "x"

    def test_question_without_id(self, legacy_exam_record: dict[str, Any]) -> None:
        del legacy_exam_record["exam_json"]["exam"]["questions"][0]["id"]

        with pytest.raises(ExamRecordError):
            normalize_exam_record(legacy_exam_record)

    def test_legacy_exam_json_stored_as_string(self, legacy_exam_record: dict[str, Any]) -> None:
        """Test an exam_json payload serialized to a string is decoded."""
        legacy_exam_record["exam_json"] = json.dumps(legacy_exam_record["exam_json"])

        exam = normalize_exam_record(legacy_exam_record)

        assert [q.id for q in exam.questions] == [1, 2, 3]

    @pytest.mark.parametrize(
        "exam_json",
        [
            "not json at all",
            '"just a string"',
            {"exam": "flattened"},
            {"exam": {"questions": ["q1", "q2"]}},
            {"exam": {"questions": 7}},
        ],
    )
    def test_malformed_legacy_payload(self, exam_json: Any) -> None:
        record = {"exam_id": "e-bad", "status": "created", "exam_json": exam_json}

        with pytest.raises(ExamRecordError) as exc_info:
            normalize_exam_record(record)

        assert exc_info.value.record_id == "e-bad"

    def test_malformed_current_rows(self) -> None:
        record = {"id": "e-rows", "status": "READY", "questions": ["q1"]}

        with pytest.raises(ExamRecordError):
            normalize_exam_record(record)


class TestStatusRendering:
    """Tests for writing statuses back in the record's vocabulary."""

    def test_legacy_vocabulary(self, legacy_exam_record: dict[str, Any]) -> None:
        assert status_for_record(legacy_exam_record, ExamStatus.GRADED) == "graded"
        assert status_for_record(legacy_exam_record, ExamStatus.READY) == "created"
        assert status_for_record(legacy_exam_record, ExamStatus.FAILED) == "failed"

    def test_current_vocabulary(self, current_exam_record: dict[str, Any]) -> None:
        assert status_for_record(current_exam_record, ExamStatus.GRADED) == "GRADED"


class TestGradingRecords:
    """Tests for grading record normalization."""

    def test_attempt_number_defaults_to_one(self, make_grading_record) -> None:
        record = make_grading_record("exam-1", None)
        assert record_attempt_number(record) == 1

    def test_attempt_number_from_grading_json(self, make_grading_record) -> None:
        record = make_grading_record("exam-1", None)
        record["grading_json"]["attempt_number"] = 4

        assert record_attempt_number(record) == 4

    def test_legacy_record(self, make_grading_record) -> None:
        """Test provider-specific method tags and metadata keys are mapped."""
        record = make_grading_record("exam-1", None, wrong_ids=(2,), method="gemini")
        record["grading_json"]["grading_metadata"] = {
            "gemini_graded": 3,
            "rule_based_graded": 0,
            "primary_method": "gemini",
            "gemini_available": True,
            "total_gemini_usage": {"promptTokenCount": 300, "estimatedCost": 0.001},
        }

        result = normalize_grading_record(record)

        assert result.attempt_number == 1
        assert all(q.grading_method == GradingMethod.AI for q in result.questions)
        assert result.grading_metadata.ai_graded == 3
        assert result.grading_metadata.primary_method == GradingMethod.AI
        assert result.grading_metadata.ai_available
        assert result.grading_metadata.total_usage.prompt_token_count == 300
        assert result.wrong_question_ids == [2]

    def test_missing_grading_json(self) -> None:
        with pytest.raises(ExamRecordError):
            normalize_grading_record({"exam_id": "exam-1", "attempt_number": 1})

    def test_percentage_recomputed_when_missing(self, make_grading_record) -> None:
        record = make_grading_record("exam-1", 1)
        result = normalize_grading_record(record)

        assert [q.percentage for q in result.questions] == [100, 100, 100]

    def test_round_trip_through_storage(self, make_grading_record) -> None:
        """Test a written record reads back as the same result."""
        original = normalize_grading_record(make_grading_record("exam-1", 2, wrong_ids=(1,)))
        record = to_grading_record(original)

        assert record["attempt_number"] == 2
        assert record["final_grade"] == original.final_grade
        assert normalize_grading_record(record) == original

"""
Pytest configuration and fixtures.

Provides common test fixtures for all test modules.
"""

import json
from pathlib import Path
from typing import Any, Generator
from unittest.mock import AsyncMock, MagicMock

import pytest

from examgrader.config import Settings
from examgrader.grading.llm_client import Completion, TokenUsage
from examgrader.models import Exam, ExamStatus, Question, QuestionType, StudentAnswer


# ==============================================================================
# Settings Fixtures
# ==============================================================================


@pytest.fixture
def rules_settings() -> Settings:
    """Settings without AI credentials: rule-based grading only."""
    return Settings(
        llm_api_key=None,
        use_ai_grading=True,
        ai_timeout_seconds=5.0,
        _env_file=None,  # type: ignore[call-arg]
    )


@pytest.fixture
def ai_settings() -> Settings:
    """Settings with AI grading configured and a short timeout."""
    return Settings(
        llm_api_key="test-api-key",
        llm_base_url="https://test.api.com/v1/",
        llm_model="test-model",
        use_ai_grading=True,
        ai_timeout_seconds=0.5,
        _env_file=None,  # type: ignore[call-arg]
    )


# ==============================================================================
# AI Client Fixtures
# ==============================================================================


def _make_client(*responses: Any) -> MagicMock:
    """
    Build a mock completion client.

    Each response is either a Completion, a string (wrapped as a completion
    with usage), or an exception to raise.
    """
    client = MagicMock()
    client.model = "test-model"
    side_effect = []
    for response in responses:
        if isinstance(response, str):
            response = Completion(text=response, usage=TokenUsage(100, 20, 120))
        side_effect.append(response)
    client.complete = AsyncMock(side_effect=side_effect)
    return client


@pytest.fixture
def grading_response() -> str:
    """A well-formed AI grading response awarding full points."""
    return json.dumps(
        {
            "points_awarded": 2,
            "percentage": 100,
            "feedback": "Correct, photosynthesis produces oxygen.",
            "grade_reasoning": "Matches the model answer.",
        }
    )


# ==============================================================================
# Exam Fixtures
# ==============================================================================


@pytest.fixture
def mc_exam() -> Exam:
    """Three multiple-choice questions worth 2 points each."""
    return Exam(
        exam_id="exam-1",
        subject="Biology",
        grade_level="8",
        status=ExamStatus.READY,
        questions=(
            Question(
                id=1,
                question_text="Which gas do plants release?",
                question_type=QuestionType.MULTIPLE_CHOICE,
                options=("Oxygen", "Nitrogen", "Helium"),
                answer_text="Oxygen",
            ),
            Question(
                id=2,
                question_text="Where does photosynthesis happen?",
                question_type=QuestionType.MULTIPLE_CHOICE,
                options=("Roots", "Chloroplasts", "Stem"),
                answer_text="Chloroplasts",
            ),
            Question(
                id=3,
                question_text="Which pigment is green?",
                question_type=QuestionType.MULTIPLE_CHOICE,
                options=("Chlorophyll", "Carotene", "Melanin"),
                answer_text="Chlorophyll",
            ),
        ),
    )


@pytest.fixture
def mc_answers() -> list[StudentAnswer]:
    """One right answer and two wrong ones for mc_exam."""
    return [
        StudentAnswer(question_id=1, answer_text="Oxygen"),
        StudentAnswer(question_id=2, answer_text="Roots"),
        StudentAnswer(question_id=3, answer_text="Carotene"),
    ]


@pytest.fixture
def legacy_exam_record() -> dict[str, Any]:
    """An exam record in the legacy schema."""
    return {
        "exam_id": "exam-1",
        "subject": "Biology",
        "grade": 8,
        "status": "created",
        "created_at": "2024-09-01T10:00:00+00:00",
        "exam_json": {
            "exam": {
                "questions": [
                    {
                        "id": 1,
                        "question_text": "Which gas do plants release?",
                        "type": "multiple_choice",
                        "options": ["Oxygen", "Nitrogen", "Helium"],
                        "answer_text": "Oxygen",
                    },
                    {
                        "id": 2,
                        "question_text": "Where does photosynthesis happen?",
                        "type": "multiple_choice",
                        "options": ["Roots", "Chloroplasts", "Stem"],
                        "answer_text": "Chloroplasts",
                    },
                    {
                        "id": 3,
                        "question_text": "Which pigment is green?",
                        "type": "multiple_choice",
                        "options": ["Chlorophyll", "Carotene", "Melanin"],
                        "answer_text": "Chlorophyll",
                    },
                ]
            }
        },
    }


@pytest.fixture
def current_exam_record() -> dict[str, Any]:
    """An exam record in the current schema with one deselected question."""
    return {
        "id": "exam-2",
        "subject": "History",
        "grade": "9",
        "status": "READY",
        "questions": [
            {
                "id": "q-b",
                "question_number": 2,
                "question_text": "Finland became independent in which year?",
                "question_type": "short_answer",
                "correct_answer": "1917",
                "is_selected": True,
                "max_points": 3,
            },
            {
                "id": "q-a",
                "question_number": 1,
                "question_text": "Helsinki is the capital of Finland.",
                "question_type": "true_false",
                "correct_answer": "true",
                "is_selected": True,
            },
            {
                "id": "q-c",
                "question_number": 3,
                "question_text": "Unused question",
                "question_type": "multiple_choice",
                "correct_answer": "A",
                "is_selected": False,
            },
        ],
    }


def _grading_record(
    exam_id: str,
    attempt_number: int | None,
    wrong_ids: tuple[Any, ...] = (),
    question_ids: tuple[Any, ...] = (1, 2, 3),
    method: str = "rule-based",
) -> dict[str, Any]:
    """Build a stored grading record; attempt_number None mimics legacy rows."""
    questions = [
        {
            "question_id": qid,
            "points_awarded": 0 if qid in wrong_ids else 2,
            "max_points": 2,
            "grading_method": method,
        }
        for qid in question_ids
    ]
    correct = len(question_ids) - len(wrong_ids)
    total = correct * 2
    grading_json: dict[str, Any] = {
        "exam_id": exam_id,
        "final_grade": "7",
        "total_points": total,
        "max_total_points": len(question_ids) * 2,
        "percentage": round(total / (len(question_ids) * 2) * 100),
        "questions": questions,
        "questions_correct": correct,
        "questions_incorrect": len(wrong_ids),
    }
    record: dict[str, Any] = {
        "exam_id": exam_id,
        "final_grade": "7",
        "graded_at": "2024-09-02T12:00:00+00:00",
        "grading_json": grading_json,
    }
    if attempt_number is not None:
        record["attempt_number"] = attempt_number
    return record


@pytest.fixture
def exam_files(tmp_path: Path, legacy_exam_record: dict[str, Any]) -> Generator[tuple[Path, Path], None, None]:
    """Exam and answers JSON files for CLI tests."""
    exam_path = tmp_path / "exam.json"
    answers_path = tmp_path / "answers.json"
    exam_path.write_text(json.dumps(legacy_exam_record), encoding="utf-8")
    answers_path.write_text(
        json.dumps({"1": "Oxygen", "2": "Roots", "3": "Carotene"}), encoding="utf-8"
    )
    yield exam_path, answers_path


@pytest.fixture
def make_client():
    """Factory for mock completion clients."""
    return _make_client


@pytest.fixture
def make_grading_record():
    """Factory for stored grading records."""
    return _grading_record

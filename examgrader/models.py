"""
Pydantic models for the Exam Grader system.

These models define the canonical shapes for:
- Exams and their questions (normalized from any stored schema version)
- Student answers
- Per-question and per-exam grading results
- Token usage and cost metadata

Every component downstream of the storage boundary only sees these shapes.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

QuestionId = int | str


def utc_now() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


def percentage_of(points: float, max_points: float) -> int:
    """Percentage of max_points, rounded half-up to an integer."""
    if max_points <= 0:
        return 0
    value = Decimal(str(points)) / Decimal(str(max_points)) * 100
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ==============================================================================
# Enumerations
# ==============================================================================


class QuestionType(str, Enum):
    """Question types the rule-based grader understands."""

    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"
    FILL_IN_THE_BLANK = "fill_in_the_blank"


class ExamStatus(str, Enum):
    """Canonical exam lifecycle status."""

    DRAFT = "draft"
    PROCESSING = "processing"
    READY = "ready"
    GRADED = "graded"
    FAILED = "failed"


class GradingMethod(str, Enum):
    """How a question was graded."""

    AI = "ai"
    RULE_BASED = "rule-based"


# ==============================================================================
# Exam Models
# ==============================================================================


class Question(BaseModel):
    """
    A single exam question with its canonical answer.

    `question_type` keeps unrecognized type strings as-is so that the
    rule-based grader can report them instead of failing validation.
    """

    model_config = ConfigDict(frozen=True)

    id: QuestionId = Field(..., description="Question identifier")

    question_text: str = Field(..., description="Question as shown to the student")

    question_type: QuestionType | str = Field(
        default=QuestionType.MULTIPLE_CHOICE,
        description="Question type",
    )

    options: tuple[str, ...] | None = Field(
        default=None,
        description="Answer options for choice questions",
    )

    answer_text: str = Field(default="", description="Canonical answer")

    explanation: str | None = Field(default=None, description="Why the answer is correct")

    max_points: int = Field(default=2, ge=1, description="Maximum points for this question")


class Exam(BaseModel):
    """An exam in canonical shape, read-only to the grading core."""

    model_config = ConfigDict(frozen=True)

    exam_id: str = Field(..., min_length=1)

    subject: str = Field(default="")

    grade_level: str = Field(default="")

    status: ExamStatus = Field(default=ExamStatus.READY)

    created_at: datetime | None = Field(default=None)

    questions: tuple[Question, ...] = Field(default=())

    @computed_field  # type: ignore[prop-decorator]
    @property
    def max_total_points(self) -> int:
        """Sum of max points over all questions."""
        return sum(q.max_points for q in self.questions)


class StudentAnswer(BaseModel):
    """A student's free-text answer to one question."""

    model_config = ConfigDict(frozen=True)

    question_id: QuestionId

    answer_text: str | None = Field(default=None)

    @property
    def text(self) -> str:
        """Answer text, trimmed, empty when missing."""
        return (self.answer_text or "").strip()


# ==============================================================================
# Usage Models
# ==============================================================================


class UsageMetadata(BaseModel):
    """Token usage of one or more AI calls with computed cost."""

    model_config = ConfigDict(frozen=True)

    prompt_token_count: int = Field(default=0, ge=0)
    candidates_token_count: int = Field(default=0, ge=0)
    total_token_count: int = Field(default=0, ge=0)
    input_cost: float = Field(default=0.0, ge=0.0)
    output_cost: float = Field(default=0.0, ge=0.0)
    estimated_cost: float = Field(default=0.0, ge=0.0)
    model: str = Field(default="")


# ==============================================================================
# Grading Result Models
# ==============================================================================


class GradedQuestion(BaseModel):
    """
    The grading result for a single question.

    Points are always within [0, max_points] regardless of grading method.
    """

    model_config = ConfigDict(frozen=True)

    question_id: QuestionId

    question_text: str = Field(default="")

    question_type: str = Field(default="")

    expected_answer: str = Field(default="")

    student_answer: str = Field(default="")

    points_awarded: float = Field(..., ge=0)

    max_points: int = Field(..., ge=1)

    percentage: int = Field(..., ge=0, le=100)

    feedback: str = Field(default="")

    grade_reasoning: str = Field(default="")

    grading_method: GradingMethod

    usage_metadata: UsageMetadata | None = Field(default=None)

    @field_validator("question_type", mode="before")
    @classmethod
    def coerce_question_type(cls, v: Any) -> str:
        """Store enum members by value."""
        if isinstance(v, Enum):
            return str(v.value)
        return str(v)

    @model_validator(mode="after")
    def validate_points_range(self) -> "GradedQuestion":
        """Ensure awarded points don't exceed max points."""
        if self.points_awarded > self.max_points:
            raise ValueError(
                f"Awarded points ({self.points_awarded}) cannot exceed "
                f"max points ({self.max_points})"
            )
        return self

    @property
    def is_fully_correct(self) -> bool:
        return self.points_awarded >= self.max_points


class GradingMetadata(BaseModel):
    """How an exam was graded and what it cost."""

    model_config = ConfigDict(frozen=True)

    ai_graded: int = Field(default=0, ge=0)

    rule_based_graded: int = Field(default=0, ge=0)

    primary_method: GradingMethod = Field(default=GradingMethod.RULE_BASED)

    ai_available: bool = Field(default=False)

    total_usage: UsageMetadata = Field(default_factory=UsageMetadata)

    grading_prompt: str = Field(default="")


class GradingResult(BaseModel):
    """
    Complete grading result for one attempt at an exam.

    One result exists per (exam, attempt) pair.
    """

    model_config = ConfigDict(frozen=True)

    exam_id: str

    attempt_number: int = Field(default=1, ge=1)

    subject: str = Field(default="")

    grade_level: str = Field(default="")

    final_grade: str

    grade_scale: str = Field(default="4-10")

    total_points: float = Field(..., ge=0)

    max_total_points: int = Field(..., ge=0)

    percentage: int = Field(..., ge=0, le=100)

    questions: tuple[GradedQuestion, ...] = Field(default=())

    questions_count: int = Field(default=0, ge=0)

    questions_correct: int = Field(default=0, ge=0)

    questions_partial: int = Field(default=0, ge=0)

    questions_incorrect: int = Field(default=0, ge=0)

    grading_metadata: GradingMetadata = Field(default_factory=GradingMetadata)

    graded_at: datetime = Field(default_factory=utc_now)

    submitted_at: datetime = Field(default_factory=utc_now)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def wrong_question_ids(self) -> list[QuestionId]:
        """Questions awarded less than full credit, in exam order."""
        return [q.question_id for q in self.questions if not q.is_fully_correct]


class AttemptSummary(BaseModel):
    """One row of an exam's attempt history."""

    model_config = ConfigDict(frozen=True)

    attempt_number: int = Field(..., ge=1)
    final_grade: str
    percentage: int
    total_points: float
    max_total_points: int
    questions_correct: int
    questions_incorrect: int
    graded_at: datetime

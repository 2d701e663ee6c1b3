"""
Rule-based grading.

Deterministic fallback used whenever AI grading is skipped or fails.
Dispatches on question type; every branch returns a complete result.
"""

from typing import NamedTuple

from examgrader.config import Settings
from examgrader.models import Question, QuestionType


class RuleOutcome(NamedTuple):
    """Points and feedback produced by a rule."""

    points_awarded: float
    feedback: str


def _normalize(text: str | None) -> str:
    return (text or "").strip().lower()


class RuleBasedGrader:
    """
    Grades answers by comparing them with the canonical answer.

    Rules per type:
    - multiple_choice: exact case-insensitive match
    - true_false: exact match or a configured synonym of the same value
    - short_answer / fill_in_the_blank: containment in either direction,
      full credit on exact match, partial credit otherwise
    - anything else: zero credit
    """

    def __init__(self, settings: Settings):
        self._partial_credit_ratio = settings.partial_credit_ratio
        self._true_synonyms = settings.true_synonyms
        self._false_synonyms = settings.false_synonyms

    def grade(self, question: Question, student_answer: str, max_points: int) -> RuleOutcome:
        """
        Grade one answer.

        Args:
            question: The question with its canonical answer.
            student_answer: The student's answer text.
            max_points: Maximum points for the question.

        Returns:
            RuleOutcome with points in [0, max_points].
        """
        student = _normalize(student_answer)
        if not student:
            return RuleOutcome(0, "No answer given.")

        correct = _normalize(question.answer_text)

        question_type = question.question_type
        if question_type == QuestionType.MULTIPLE_CHOICE:
            return self._grade_multiple_choice(question, student, correct, max_points)
        if question_type == QuestionType.TRUE_FALSE:
            return self._grade_true_false(student, correct, max_points)
        if question_type in (QuestionType.SHORT_ANSWER, QuestionType.FILL_IN_THE_BLANK):
            return self._grade_text(question, student, correct, max_points)

        return RuleOutcome(0, f"Unknown question type: {question_type}")

    def _grade_multiple_choice(
        self, question: Question, student: str, correct: str, max_points: int
    ) -> RuleOutcome:
        if student == correct:
            return RuleOutcome(max_points, "Correct!")
        return RuleOutcome(0, f"Incorrect. The correct answer is: {question.answer_text}")

    def _grade_true_false(self, student: str, correct: str, max_points: int) -> RuleOutcome:
        expected = self._truth_value(correct)
        if student == correct or (expected is not None and self._truth_value(student) == expected):
            return RuleOutcome(max_points, "Correct!")

        if expected is None:
            shown = correct
        else:
            shown = "True" if expected else "False"
        return RuleOutcome(0, f"Incorrect. The correct answer is: {shown}")

    def _grade_text(
        self, question: Question, student: str, correct: str, max_points: int
    ) -> RuleOutcome:
        if not correct:
            return RuleOutcome(0, "No model answer available for comparison.")
        if student == correct:
            return RuleOutcome(max_points, "Correct! Complete answer.")
        if student in correct or correct in student:
            points = round(max_points * self._partial_credit_ratio, 2)
            return RuleOutcome(
                points, f"Partially correct. Model answer: {question.answer_text}"
            )
        return RuleOutcome(0, f"See the model answer: {question.answer_text}")

    def _truth_value(self, text: str) -> bool | None:
        if text in self._true_synonyms:
            return True
        if text in self._false_synonyms:
            return False
        return None

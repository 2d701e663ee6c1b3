"""
Grading engine - the core orchestrator.

Grades every question of an exam concurrently, waits for all of them,
then aggregates points, percentage, final grade, grading-method mix and
AI cost into one GradingResult.
"""

import asyncio
import logging
from datetime import datetime
from typing import Sequence

from examgrader.config import Settings, get_settings
from examgrader.grading.cost import CostAccountant, format_cost
from examgrader.grading.llm_client import LLMClient
from examgrader.grading.question_grader import QuestionGrader
from examgrader.models import (
    Exam,
    ExamStatus,
    GradedQuestion,
    GradingMetadata,
    GradingMethod,
    GradingResult,
    StudentAnswer,
    percentage_of,
    utc_now,
)

logger = logging.getLogger(__name__)

# Exams in these states accept a (new) submission
SUBMITTABLE_STATUSES = frozenset({ExamStatus.READY, ExamStatus.GRADED})

CORRECT_PERCENTAGE = 95
PARTIAL_PERCENTAGE = 50


class GradingEngine:
    """
    Main grading engine.

    Produces one complete GradingResult per call or None when the exam
    cannot be graded. Per-question failures are absorbed by the
    QuestionGrader, so the engine itself never drops a question.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        question_grader: QuestionGrader | None = None,
    ):
        """
        Initialize the grading engine.

        Args:
            settings: Configuration settings. Uses global settings if not provided.
            question_grader: Per-question grader. Built from settings if not provided,
                with an AI client only when AI grading is configured.
        """
        self._settings = settings or get_settings()
        self._cost_accountant = CostAccountant(
            self._settings.pricing, model=self._settings.llm_model
        )
        if question_grader is None:
            client = LLMClient(self._settings) if self._settings.ai_grading_available else None
            question_grader = QuestionGrader(self._settings, client, self._cost_accountant)
        self._question_grader = question_grader

    @staticmethod
    def is_gradable(exam: Exam) -> bool:
        """Whether an exam can accept a submission."""
        return exam.status in SUBMITTABLE_STATUSES and bool(exam.questions)

    async def grade_exam(
        self,
        exam: Exam,
        student_answers: Sequence[StudentAnswer],
        attempt_number: int,
    ) -> GradingResult | None:
        """
        Grade a student's answers to an exam.

        Args:
            exam: The exam in canonical shape.
            student_answers: Answers keyed by question id; missing answers grade as blank.
            attempt_number: Attempt number supplied by the caller.

        Returns:
            The GradingResult, or None if the exam is not gradable.
        """
        if not self.is_gradable(exam):
            logger.warning(
                "Exam %s is not gradable (status=%s, questions=%d)",
                exam.exam_id,
                exam.status.value,
                len(exam.questions),
            )
            return None

        submitted_at = utc_now()
        answers = {str(a.question_id): a.answer_text for a in student_answers}

        logger.info(
            "Grading exam %s attempt %d (%d questions)",
            exam.exam_id,
            attempt_number,
            len(exam.questions),
        )

        graded = await asyncio.gather(
            *(
                self._question_grader.grade_question(
                    question, answers.get(str(question.id)), question.max_points
                )
                for question in exam.questions
            )
        )

        return self._aggregate(exam, list(graded), attempt_number, submitted_at)

    def _aggregate(
        self,
        exam: Exam,
        graded: list[GradedQuestion],
        attempt_number: int,
        submitted_at: datetime,
    ) -> GradingResult:
        """
        Combine per-question results into the exam result.

        Args:
            exam: The graded exam.
            graded: One GradedQuestion per exam question, in exam order.
            attempt_number: Attempt number for the result.
            submitted_at: When the submission was received.

        Returns:
            Immutable GradingResult.
        """
        total_points = sum(q.points_awarded for q in graded)
        max_total_points = sum(q.max_points for q in graded)
        percentage = percentage_of(total_points, max_total_points)
        final_grade = self._settings.grade_scale.grade_for(percentage)

        correct = sum(1 for q in graded if q.percentage >= CORRECT_PERCENTAGE)
        partial = sum(1 for q in graded if PARTIAL_PERCENTAGE <= q.percentage < CORRECT_PERCENTAGE)

        ai_graded = sum(1 for q in graded if q.grading_method == GradingMethod.AI)
        rule_based_graded = len(graded) - ai_graded
        primary_method = GradingMethod.AI if ai_graded > rule_based_graded else GradingMethod.RULE_BASED

        total_usage = self._cost_accountant.aggregate(
            q.usage_metadata for q in graded if q.usage_metadata is not None
        )

        logger.info(
            "Exam %s attempt %d graded: %s/%s points (%d%%), grade %s, "
            "%d ai / %d rule-based, cost %s",
            exam.exam_id,
            attempt_number,
            total_points,
            max_total_points,
            percentage,
            final_grade,
            ai_graded,
            rule_based_graded,
            format_cost(total_usage.estimated_cost),
        )

        return GradingResult(
            exam_id=exam.exam_id,
            attempt_number=attempt_number,
            subject=exam.subject,
            grade_level=exam.grade_level,
            final_grade=final_grade,
            grade_scale=self._settings.grade_scale.name,
            total_points=total_points,
            max_total_points=max_total_points,
            percentage=percentage,
            questions=tuple(graded),
            questions_count=len(graded),
            questions_correct=correct,
            questions_partial=partial,
            questions_incorrect=len(graded) - correct - partial,
            grading_metadata=GradingMetadata(
                ai_graded=ai_graded,
                rule_based_graded=rule_based_graded,
                primary_method=primary_method,
                ai_available=self._question_grader.ai_available,
                total_usage=total_usage,
                grading_prompt=self._settings.grading_rubric,
            ),
            graded_at=utc_now(),
            submitted_at=submitted_at,
        )

    async def health_check(self) -> bool:
        """
        Check if AI grading is operational.

        Returns:
            True if an AI client is configured and reachable.
        """
        if not self._settings.ai_grading_available:
            return False
        return await LLMClient(self._settings).health_check()

"""
Per-question grading.

Tier 1 asks the AI grading oracle; tier 2 applies deterministic rules.
Tier 2 runs whenever tier 1 is skipped, raises, times out or returns
something unusable, so grading a question never fails.
"""

import asyncio
import logging
import math
from typing import Any

from examgrader.config import Settings, get_settings
from examgrader.grading.cost import CostAccountant, format_cost
from examgrader.grading.llm_client import CompletionClient
from examgrader.grading.prompt_builder import PromptBuilder
from examgrader.grading.rules import RuleBasedGrader
from examgrader.models import GradedQuestion, GradingMethod, Question, percentage_of
from examgrader.parsing import GRADING_RESPONSE_SCHEMA, ResponseExtractor

logger = logging.getLogger(__name__)


class GradingResponseError(Exception):
    """Raised when an AI grading response cannot be used for scoring."""


def _coerce_points(value: Any) -> float:
    """Read a numeric points value, rejecting booleans and non-finite numbers."""
    if isinstance(value, bool):
        raise GradingResponseError(f"points_awarded is not numeric: {value!r}")
    try:
        points = float(value)
    except (TypeError, ValueError) as e:
        raise GradingResponseError(f"points_awarded is not numeric: {value!r}") from e
    if not math.isfinite(points):
        raise GradingResponseError(f"points_awarded is not finite: {value!r}")
    return points


class QuestionGrader:
    """
    Grades a single question with AI first and rules as the fallback.

    The AI result is never trusted as-is: points are clamped into
    [0, max_points] and the percentage is recomputed.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: CompletionClient | None = None,
        cost_accountant: CostAccountant | None = None,
    ):
        """
        Initialize the question grader.

        Args:
            settings: Configuration settings. Uses global settings if not provided.
            client: AI completion client. Without one only rules are used.
            cost_accountant: Prices AI usage. Built from settings if not provided.
        """
        self._settings = settings or get_settings()
        self._client = client
        self._cost_accountant = cost_accountant or CostAccountant(
            self._settings.pricing, model=self._settings.llm_model
        )
        self._extractor = ResponseExtractor()
        self._rules = RuleBasedGrader(self._settings)

    @property
    def ai_available(self) -> bool:
        """Whether tier 1 can run at all."""
        return self._client is not None and self._settings.use_ai_grading

    async def grade_question(
        self,
        question: Question,
        student_answer: str | None,
        max_points: int,
    ) -> GradedQuestion:
        """
        Grade one question.

        Args:
            question: The question with its canonical answer.
            student_answer: The student's answer, may be empty or None.
            max_points: Maximum points for the question.

        Returns:
            A fully populated GradedQuestion.
        """
        answer = (student_answer or "").strip()

        if answer and self.ai_available:
            try:
                return await asyncio.wait_for(
                    self._grade_with_ai(question, answer, max_points),
                    timeout=self._settings.ai_timeout_seconds,
                )
            except asyncio.TimeoutError:
                logger.warning(
                    "AI grading timed out after %.1fs for question %s, using rules",
                    self._settings.ai_timeout_seconds,
                    question.id,
                )
            except Exception as e:
                logger.warning(
                    "AI grading failed for question %s, using rules: %s", question.id, e
                )

        return self._grade_with_rules(question, answer, max_points)

    async def _grade_with_ai(
        self, question: Question, answer: str, max_points: int
    ) -> GradedQuestion:
        """
        Tier 1: semantic grading by the AI oracle.

        Raises:
            LLMError: If the completion call fails.
            GradingResponseError: If the response lacks usable points.
        """
        client = self._client
        if client is None:
            raise GradingResponseError("No AI client configured")

        prompt = PromptBuilder.build_grading_prompt(
            question, answer, max_points, self._settings.grading_rubric
        )
        completion = await client.complete(prompt, system_prompt=PromptBuilder.get_system_prompt())

        usage = self._cost_accountant.usage_from_completion(
            prompt, completion.text, completion.usage, model=getattr(client, "model", None)
        )
        logger.info(
            "AI grading usage for question %s: %d tokens, %s",
            question.id,
            usage.total_token_count,
            format_cost(usage.estimated_cost),
        )

        extraction = self._extractor.parse(completion.text, GRADING_RESPONSE_SCHEMA)
        if not extraction.success:
            raise GradingResponseError(extraction.error or "Unparseable grading response")
        if not isinstance(extraction.data, dict) or "points_awarded" not in extraction.data:
            raise GradingResponseError("Grading response has no points_awarded")
        if extraction.validation_errors:
            logger.warning(
                "Grading response for question %s is incomplete: %s",
                question.id,
                "; ".join(extraction.validation_errors),
            )

        raw_points = _coerce_points(extraction.data["points_awarded"])
        points = max(0.0, min(float(max_points), raw_points))
        if points != raw_points:
            logger.warning(
                "Clamped AI points for question %s from %s to %s",
                question.id,
                raw_points,
                points,
            )

        return GradedQuestion(
            question_id=question.id,
            question_text=question.question_text,
            question_type=question.question_type,
            expected_answer=question.answer_text,
            student_answer=answer,
            points_awarded=points,
            max_points=max_points,
            percentage=percentage_of(points, max_points),
            feedback=str(extraction.data.get("feedback") or "No feedback provided."),
            grade_reasoning=str(extraction.data.get("grade_reasoning") or "AI grading"),
            grading_method=GradingMethod.AI,
            usage_metadata=usage,
        )

    def _grade_with_rules(self, question: Question, answer: str, max_points: int) -> GradedQuestion:
        """Tier 2: deterministic rule-based grading."""
        outcome = self._rules.grade(question, answer, max_points)
        logger.debug(
            "Question %s graded by rules: %s/%s points",
            question.id,
            outcome.points_awarded,
            max_points,
        )

        return GradedQuestion(
            question_id=question.id,
            question_text=question.question_text,
            question_type=question.question_type,
            expected_answer=question.answer_text,
            student_answer=answer,
            points_awarded=outcome.points_awarded,
            max_points=max_points,
            percentage=percentage_of(outcome.points_awarded, max_points),
            feedback=outcome.feedback,
            grade_reasoning="Rule-based grading",
            grading_method=GradingMethod.RULE_BASED,
        )

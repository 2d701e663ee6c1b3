"""
Grading service - the submission flow around the engine.

Looks up an exam, normalizes it, assigns the attempt number, grades,
persists one grading record and marks the exam graded. Callers that do
not want to wait can submit in the background.
"""

import asyncio
import logging
from typing import Sequence

from examgrader.attempts import AttemptTracker
from examgrader.config import Settings, get_settings
from examgrader.grading.engine import GradingEngine
from examgrader.models import AttemptSummary, ExamStatus, GradingResult, QuestionId, StudentAnswer
from examgrader.storage.base import DuplicateAttemptError, ExamStore, GradingResultStore
from examgrader.storage.normalize import ExamRecordError, normalize_exam_record, to_grading_record

logger = logging.getLogger(__name__)


class GradingService:
    """
    Entry point for submitting answers to a stored exam.

    Args:
        exam_store: Source of exam records.
        current_results: Grading store that receives new records.
        legacy_results: Optional pre-migration grading store, read only.
        engine: Grading engine. Built from settings if not provided.
        settings: Configuration settings. Uses global settings if not provided.
    """

    def __init__(
        self,
        exam_store: ExamStore,
        current_results: GradingResultStore,
        legacy_results: GradingResultStore | None = None,
        engine: GradingEngine | None = None,
        settings: Settings | None = None,
    ):
        self._settings = settings or get_settings()
        self._exam_store = exam_store
        self._results = current_results
        self._tracker = AttemptTracker(current_results, legacy_results)
        self._engine = engine or GradingEngine(self._settings)
        self._background: set[asyncio.Task] = set()

    async def submit_answers(
        self,
        exam_id: str,
        answers: Sequence[StudentAnswer],
    ) -> GradingResult | None:
        """
        Grade a submission and persist the result.

        Args:
            exam_id: Exam identifier.
            answers: The student's answers.

        Returns:
            The GradingResult, or None if the exam is missing, not gradable,
            or the result could not be stored.
        """
        record = await self._exam_store.find_exam_by_id(exam_id)
        if record is None:
            logger.warning("Exam %s not found", exam_id)
            return None

        try:
            exam = normalize_exam_record(record)
        except ExamRecordError as e:
            logger.warning("Exam %s could not be read: %s", exam_id, e)
            return None

        if not self._engine.is_gradable(exam):
            logger.warning(
                "Submission for exam %s declined (status=%s)", exam_id, exam.status.value
            )
            return None

        attempt_number = await self._tracker.get_next_attempt_number(exam.exam_id)
        result = await self._engine.grade_exam(exam, answers, attempt_number)
        if result is None:
            return None

        try:
            await self._results.insert_record(to_grading_record(result))
        except DuplicateAttemptError as e:
            logger.error("Grading result not stored: %s", e)
            return None
        except Exception as e:
            logger.error(
                "Failed to store grading result for exam %s attempt %d: %s",
                exam_id,
                attempt_number,
                e,
            )
            return None

        try:
            await self._exam_store.update_status(exam_id, ExamStatus.GRADED)
        except Exception as e:
            logger.error(
                "Grading result for exam %s attempt %d stored but status update failed: %s",
                exam_id,
                attempt_number,
                e,
            )
        return result

    def submit_in_background(
        self,
        exam_id: str,
        answers: Sequence[StudentAnswer],
    ) -> asyncio.Task:
        """
        Start grading without waiting for it.

        Must be called from a running event loop. An unexpected failure
        marks the exam as failed.

        Returns:
            The detached task; its result is what submit_answers returns.
        """
        task = asyncio.create_task(self.submit_answers(exam_id, answers))
        self._background.add(task)
        task.add_done_callback(lambda t: self._on_background_done(exam_id, t))
        return task

    def _on_background_done(self, exam_id: str, task: asyncio.Task) -> None:
        self._background.discard(task)

        if task.cancelled():
            logger.warning("Background grading of exam %s was cancelled", exam_id)
            return

        error = task.exception()
        if error is None:
            result = task.result()
            if result is None:
                logger.warning("Background grading of exam %s produced no result", exam_id)
            else:
                logger.info(
                    "Background grading of exam %s finished: attempt %d, grade %s",
                    exam_id,
                    result.attempt_number,
                    result.final_grade,
                )
            return

        logger.error("Background grading of exam %s failed: %s", exam_id, error, exc_info=error)
        failure = asyncio.ensure_future(self._exam_store.update_status(exam_id, ExamStatus.FAILED))
        self._background.add(failure)
        failure.add_done_callback(self._background.discard)

    async def wait_for_background(self) -> None:
        """Wait until every background submission has settled."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def get_next_attempt_number(self, exam_id: str) -> int:
        return await self._tracker.get_next_attempt_number(exam_id)

    async def get_wrong_question_ids(self, exam_id: str) -> list[QuestionId]:
        return await self._tracker.get_wrong_question_ids(exam_id)

    async def list_attempts(self, exam_id: str) -> list[AttemptSummary]:
        return await self._tracker.list_attempts(exam_id)

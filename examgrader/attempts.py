"""
Attempt tracking over an exam's grading history.

Grading history may be split across a legacy and a current store after a
schema migration; every read consults both. Storage is the sole arbiter
of attempt-number uniqueness.
"""

import asyncio
import logging
from typing import Any, Mapping

from examgrader.models import AttemptSummary, GradingResult, QuestionId
from examgrader.storage.base import GradingResultStore
from examgrader.storage.normalize import normalize_grading_record, record_attempt_number

logger = logging.getLogger(__name__)


class AttemptTracker:
    """
    Read-only queries over grading history.

    Args:
        current_store: Store that receives new grading records.
        legacy_store: Optional pre-migration store, read but never written.
    """

    def __init__(
        self,
        current_store: GradingResultStore,
        legacy_store: GradingResultStore | None = None,
    ):
        self._current_store = current_store
        self._legacy_store = legacy_store

    async def _records_by_attempt(self, exam_id: str) -> dict[int, Mapping[str, Any]]:
        """
        All grading records of an exam keyed by attempt number.

        When both stores hold the same attempt, the current store wins.
        """
        stores = [s for s in (self._legacy_store, self._current_store) if s is not None]
        fetched = await asyncio.gather(*(s.fetch_records(exam_id) for s in stores))

        by_attempt: dict[int, Mapping[str, Any]] = {}
        for records in fetched:
            for record in records:
                by_attempt[record_attempt_number(record)] = record
        return by_attempt

    async def get_next_attempt_number(self, exam_id: str) -> int:
        """
        Attempt number for the next submission of an exam.

        Returns:
            One more than the highest stored attempt, or 1 without history.
        """
        attempts = await self._records_by_attempt(exam_id)
        next_attempt = max(attempts, default=0) + 1
        logger.debug("Next attempt for exam %s is %d", exam_id, next_attempt)
        return next_attempt

    async def get_latest_result(self, exam_id: str) -> GradingResult | None:
        """The grading result of the most recent attempt, if any."""
        attempts = await self._records_by_attempt(exam_id)
        if not attempts:
            return None
        return normalize_grading_record(attempts[max(attempts)])

    async def get_wrong_question_ids(self, exam_id: str) -> list[QuestionId]:
        """
        Questions answered with less than full credit in the latest attempt.

        Returns:
            Question ids in exam order; empty without history.
        """
        latest = await self.get_latest_result(exam_id)
        if latest is None:
            return []
        return latest.wrong_question_ids

    async def list_attempts(self, exam_id: str) -> list[AttemptSummary]:
        """Attempt history of an exam, ordered by attempt number."""
        attempts = await self._records_by_attempt(exam_id)

        summaries = []
        for attempt_number in sorted(attempts):
            result = normalize_grading_record(attempts[attempt_number])
            summaries.append(
                AttemptSummary(
                    attempt_number=result.attempt_number,
                    final_grade=result.final_grade,
                    percentage=result.percentage,
                    total_points=result.total_points,
                    max_total_points=result.max_total_points,
                    questions_correct=result.questions_correct,
                    questions_incorrect=result.questions_incorrect,
                    graded_at=result.graded_at,
                )
            )
        return summaries

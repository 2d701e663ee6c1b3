"""
Storage collaborator interfaces.

The grading core does not own persistence. It reads exams and grading
history through these interfaces and writes one grading record per
(exam, attempt). Records are raw mappings in whatever schema version the
store holds; `examgrader.storage.normalize` turns them into canonical
models.
"""

from abc import ABC, abstractmethod
from typing import Any, Mapping

from examgrader.models import ExamStatus


class DuplicateAttemptError(Exception):
    """Raised when a grading record already exists for an (exam, attempt) pair."""

    def __init__(self, exam_id: str, attempt_number: int):
        self.exam_id = exam_id
        self.attempt_number = attempt_number
        super().__init__(f"Attempt {attempt_number} of exam '{exam_id}' is already graded")


class ExamStore(ABC):
    """Source of exam records."""

    @abstractmethod
    async def find_exam_by_id(self, exam_id: str) -> Mapping[str, Any] | None:
        """
        Look up an exam record.

        Args:
            exam_id: Exam identifier.

        Returns:
            The raw record in its stored schema, or None if not found.
        """

    @abstractmethod
    async def update_status(self, exam_id: str, status: ExamStatus) -> bool:
        """
        Set an exam's lifecycle status.

        Returns:
            True if the exam existed and was updated.
        """


class GradingResultStore(ABC):
    """Grading history for exams, one record per attempt."""

    @abstractmethod
    async def fetch_records(self, exam_id: str) -> list[Mapping[str, Any]]:
        """Return every grading record stored for an exam, in any order."""

    @abstractmethod
    async def insert_record(self, record: Mapping[str, Any]) -> None:
        """
        Write one grading record.

        Raises:
            DuplicateAttemptError: If the (exam, attempt) pair already exists.
        """

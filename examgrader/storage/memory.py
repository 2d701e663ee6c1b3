"""
In-memory storage collaborators.

Hold raw records exactly as a database would return them, so the
normalization path is exercised the same way as with real storage.
Records are deep-copied on the way in and out.
"""

import copy
from typing import Any, Iterable, Mapping

from examgrader.models import ExamStatus
from examgrader.storage.base import DuplicateAttemptError, ExamStore, GradingResultStore
from examgrader.storage.normalize import status_for_record


class InMemoryExamStore(ExamStore):
    """Exam records of any schema version, keyed by exam id."""

    def __init__(self, records: Iterable[Mapping[str, Any]] = ()):
        self._records: dict[str, dict[str, Any]] = {}
        for record in records:
            self.add(record)

    def add(self, record: Mapping[str, Any]) -> None:
        exam_id = record.get("exam_id", record.get("id"))
        if exam_id is None:
            raise ValueError("Exam record has neither 'exam_id' nor 'id'")
        self._records[str(exam_id)] = copy.deepcopy(dict(record))

    async def find_exam_by_id(self, exam_id: str) -> Mapping[str, Any] | None:
        record = self._records.get(str(exam_id))
        return copy.deepcopy(record) if record is not None else None

    async def update_status(self, exam_id: str, status: ExamStatus) -> bool:
        record = self._records.get(str(exam_id))
        if record is None:
            return False
        record["status"] = status_for_record(record, status)
        return True


class InMemoryGradingStore(GradingResultStore):
    """Grading records with a unique (exam_id, attempt_number) constraint."""

    def __init__(self, records: Iterable[Mapping[str, Any]] = ()):
        self._records: list[dict[str, Any]] = [copy.deepcopy(dict(r)) for r in records]

    async def fetch_records(self, exam_id: str) -> list[Mapping[str, Any]]:
        return [
            copy.deepcopy(record)
            for record in self._records
            if str(record.get("exam_id")) == str(exam_id)
        ]

    async def insert_record(self, record: Mapping[str, Any]) -> None:
        exam_id = str(record["exam_id"])
        attempt_number = record.get("attempt_number") or 1
        for existing in self._records:
            if (
                str(existing.get("exam_id")) == exam_id
                and (existing.get("attempt_number") or 1) == attempt_number
            ):
                raise DuplicateAttemptError(exam_id, attempt_number)
        self._records.append(copy.deepcopy(dict(record)))

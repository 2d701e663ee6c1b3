"""
Unit tests for attempt tracking across legacy and current stores.
"""

import pytest

from examgrader.attempts import AttemptTracker
from examgrader.storage import DuplicateAttemptError, InMemoryGradingStore


class TestNextAttemptNumber:
    """Tests for attempt numbering."""

    @pytest.mark.asyncio
    async def test_no_history(self) -> None:
        tracker = AttemptTracker(InMemoryGradingStore(), InMemoryGradingStore())
        assert await tracker.get_next_attempt_number("exam-1") == 1

    @pytest.mark.asyncio
    async def test_attempts_split_across_stores(self, make_grading_record) -> None:
        """Test attempts 1, 2 and 3 spread over both stores yield 4."""
        legacy = InMemoryGradingStore([make_grading_record("exam-1", 1), make_grading_record("exam-1", 3)])
        current = InMemoryGradingStore([make_grading_record("exam-1", 2)])

        tracker = AttemptTracker(current, legacy)

        assert await tracker.get_next_attempt_number("exam-1") == 4

    @pytest.mark.asyncio
    async def test_legacy_row_without_attempt_counts_as_first(self, make_grading_record) -> None:
        legacy = InMemoryGradingStore([make_grading_record("exam-1", None)])
        tracker = AttemptTracker(InMemoryGradingStore(), legacy)

        assert await tracker.get_next_attempt_number("exam-1") == 2

    @pytest.mark.asyncio
    async def test_other_exams_ignored(self, make_grading_record) -> None:
        current = InMemoryGradingStore([make_grading_record("exam-2", 5)])
        tracker = AttemptTracker(current)

        assert await tracker.get_next_attempt_number("exam-1") == 1


class TestWrongQuestionIds:
    """Tests for retry question selection."""

    @pytest.mark.asyncio
    async def test_no_history(self) -> None:
        tracker = AttemptTracker(InMemoryGradingStore())
        assert await tracker.get_wrong_question_ids("exam-1") == []

    @pytest.mark.asyncio
    async def test_latest_attempt_wins(self, make_grading_record) -> None:
        legacy = InMemoryGradingStore([make_grading_record("exam-1", 1, wrong_ids=(1, 2, 3))])
        current = InMemoryGradingStore([make_grading_record("exam-1", 2, wrong_ids=(2, 3))])

        tracker = AttemptTracker(current, legacy)

        assert await tracker.get_wrong_question_ids("exam-1") == [2, 3]

    @pytest.mark.asyncio
    async def test_latest_attempt_in_legacy_store(self, make_grading_record) -> None:
        legacy = InMemoryGradingStore([make_grading_record("exam-1", 3, wrong_ids=(1,))])
        current = InMemoryGradingStore([make_grading_record("exam-1", 2, wrong_ids=(2, 3))])

        tracker = AttemptTracker(current, legacy)

        assert await tracker.get_wrong_question_ids("exam-1") == [1]

    @pytest.mark.asyncio
    async def test_tie_prefers_current_store(self, make_grading_record) -> None:
        legacy = InMemoryGradingStore([make_grading_record("exam-1", None, wrong_ids=(1,))])
        current = InMemoryGradingStore([make_grading_record("exam-1", 1, wrong_ids=(3,))])

        tracker = AttemptTracker(current, legacy)

        assert await tracker.get_wrong_question_ids("exam-1") == [3]

    @pytest.mark.asyncio
    async def test_all_correct(self, make_grading_record) -> None:
        tracker = AttemptTracker(InMemoryGradingStore([make_grading_record("exam-1", 1)]))
        assert await tracker.get_wrong_question_ids("exam-1") == []


class TestHistory:
    """Tests for attempt history queries."""

    @pytest.mark.asyncio
    async def test_list_attempts_ordered(self, make_grading_record) -> None:
        legacy = InMemoryGradingStore([make_grading_record("exam-1", None)])
        current = InMemoryGradingStore(
            [make_grading_record("exam-1", 3, wrong_ids=(1,)), make_grading_record("exam-1", 2)]
        )

        attempts = await AttemptTracker(current, legacy).list_attempts("exam-1")

        assert [a.attempt_number for a in attempts] == [1, 2, 3]
        assert attempts[2].questions_incorrect == 1

    @pytest.mark.asyncio
    async def test_latest_result(self, make_grading_record) -> None:
        current = InMemoryGradingStore([make_grading_record("exam-1", 1), make_grading_record("exam-1", 2)])
        latest = await AttemptTracker(current).get_latest_result("exam-1")

        assert latest is not None
        assert latest.attempt_number == 2

    @pytest.mark.asyncio
    async def test_latest_result_without_history(self) -> None:
        assert await AttemptTracker(InMemoryGradingStore()).get_latest_result("exam-1") is None


class TestStoreUniqueness:
    """Tests for the (exam, attempt) constraint in the in-memory store."""

    @pytest.mark.asyncio
    async def test_duplicate_attempt_rejected(self, make_grading_record) -> None:
        store = InMemoryGradingStore([make_grading_record("exam-1", 1)])

        with pytest.raises(DuplicateAttemptError) as exc_info:
            await store.insert_record(make_grading_record("exam-1", 1))

        assert exc_info.value.attempt_number == 1

    @pytest.mark.asyncio
    async def test_other_attempt_accepted(self, make_grading_record) -> None:
        store = InMemoryGradingStore([make_grading_record("exam-1", 1)])
        await store.insert_record(make_grading_record("exam-1", 2))

        assert len(await store.fetch_records("exam-1")) == 2

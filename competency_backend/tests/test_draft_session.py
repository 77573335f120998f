import asyncio
import logging

import pytest

from assessment_engine.core.errors import (
    AssessmentCompletedError,
    EntityNotFoundError,
    ValidationFailedError,
)
from assessment_engine.db.memory import MemoryAssessmentStore
from assessment_engine.models.domain import Rating
from assessment_engine.services.catalog import open_session
from assessment_engine.services.history import load_snapshot
from conftest import make_subject, seed_store

DEBOUNCE = 0.01


class FlakyStore(MemoryAssessmentStore):
    """Memory store whose progress writes fail while `failing` is set."""

    def __init__(self):
        super().__init__()
        self.failing = False
        self.upserts = 0

    async def upsert_progress(self, *args, **kwargs):
        self.upserts += 1
        if self.failing:
            raise ConnectionError("store unavailable")
        return await super().upsert_progress(*args, **kwargs)


async def _open(store, assessment_id=None):
    return await open_session(store, "member-1", assessment_id, debounce_seconds=DEBOUNCE)


async def _seeded(store=None):
    store = store or MemoryAssessmentStore()
    await seed_store(store, [make_subject()])
    return store


def test_steps_follow_wizard_order_and_end_on_summary():
    async def scenario():
        session = await _open(await _seeded())
        assert [s.id for s in session.steps] == ["sub-code", "sub-testing", "sub-arch"]
        assert session.summary_step == 3
        assert session.current_step == 0
        assert session.criteria_for_step() == ["Follows style guide", "Consistently writes readable code"]
        assert session.criteria_for_step(2) == ["Estimates own tasks", "Flags risks early"]
        assert session.criteria_for_step(3) == []

    asyncio.run(scenario())


def test_next_fills_unrated_criteria_before_saving():
    async def scenario():
        store = await _seeded()
        session = await _open(store)
        await session.go_to(1)
        session.set_rating("sub-testing", "Writes unit tests", Rating.ABOVE)
        assert await session.next() == 2

        reloaded = await _open(store, session.assessment_id)
        state = reloaded.state_for("sub-testing")
        assert state.evaluations == {
            "Writes unit tests": Rating.ABOVE,
            "Can debug flaky tests": Rating.TARGET,
            "Understands mocking": Rating.TARGET,
        }
        assert reloaded.current_step == 0

    asyncio.run(scenario())


def test_debounced_autosave_writes_after_quiet_period():
    async def scenario():
        store = await _seeded()
        session = await _open(store)
        session.set_rating("sub-code", "Follows style guide", Rating.BELOW)
        session.set_rating("sub-code", "Follows style guide", Rating.WELL_BELOW)
        assert await store.list_progress_for_assessment(session.assessment_id) == []

        await asyncio.sleep(DEBOUNCE * 5)
        snapshot = await load_snapshot(store, session.assessment_id)
        assert [ev.evaluation for ev in snapshot.evaluations] == [Rating.WELL_BELOW]
        assert not session.is_dirty()

    asyncio.run(scenario())


def test_repeated_saves_keep_one_progress_row():
    async def scenario():
        store = await _seeded()
        session = await _open(store)
        session.set_notes("sub-code", "first")
        await session.flush()
        session.set_notes("sub-code", "second")
        session.set_level("sub-code", "P3 Career")
        await session.flush()

        progress = await store.list_progress_for_assessment(session.assessment_id)
        assert len(progress) == 1
        assert progress[0].notes == "second"
        assert progress[0].current_level == "p3_career"
        assert session.criteria_for_step(0) == ["Sets style guide", "Reviews for readability"]

    asyncio.run(scenario())


def test_resume_lands_on_first_step_without_ratings():
    async def scenario():
        store = await _seeded()
        session = await _open(store)
        await session.next()
        await session.next()

        resumed = await _open(store, session.assessment_id)
        assert resumed.current_step == 2

        await resumed.next()
        again = await _open(store, session.assessment_id)
        assert again.on_summary

    asyncio.run(scenario())


def test_complete_scores_coverage_and_locks_session():
    async def scenario():
        store = await _seeded()
        session = await _open(store)
        await session.next()
        assessment = await session.complete(notes="Solid quarter")

        assert assessment.is_completed
        assert assessment.completed_at is not None
        assert assessment.notes == "Solid quarter"
        assert assessment.overall_score == pytest.approx(100 / 3)
        assert session.on_summary

        with pytest.raises(AssessmentCompletedError):
            session.set_rating("sub-code", "Follows style guide", Rating.ABOVE)
        with pytest.raises(AssessmentCompletedError):
            await session.back()
        with pytest.raises(AssessmentCompletedError):
            await session.complete()

        resumed = await _open(store, assessment.id)
        assert resumed.on_summary

    asyncio.run(scenario())


def test_new_assessment_carries_over_latest_completed():
    async def scenario():
        store = await _seeded()
        first = await _open(store)
        first.set_rating("sub-code", "Follows style guide", Rating.WELL_ABOVE)
        first.set_notes("sub-code", "great reviews")
        await first.next()
        await first.complete()

        second = await _open(store)
        assert second.assessment_id != first.assessment_id
        copied = await load_snapshot(store, second.assessment_id)
        assert [p.sub_competency_id for p in copied.progress] == ["sub-code"]
        assert copied.progress[0].notes == "great reviews"
        assert {ev.criterion_text: ev.evaluation for ev in copied.evaluations} == {
            "Follows style guide": Rating.WELL_ABOVE,
            "Consistently writes readable code": Rating.TARGET,
        }
        assert second.state_for("sub-code").evaluations["Follows style guide"] == Rating.WELL_ABOVE

        # editing the copy leaves the completed assessment alone
        second.set_rating("sub-code", "Follows style guide", Rating.BELOW)
        await second.flush()
        original = await load_snapshot(store, first.assessment_id)
        assert Rating.BELOW not in [ev.evaluation for ev in original.evaluations]

    asyncio.run(scenario())


def test_autosave_failure_is_logged_and_retried(caplog):
    async def scenario():
        store = await _seeded(FlakyStore())
        session = await _open(store)
        store.failing = True
        session.set_rating("sub-code", "Follows style guide", Rating.ABOVE)
        await asyncio.sleep(DEBOUNCE * 5)

        assert session.is_dirty("sub-code")
        assert isinstance(session.last_save_error, ConnectionError)
        assert await store.list_progress_for_assessment(session.assessment_id) == []

        store.failing = False
        assert await session.flush() is True
        assert not session.is_dirty()
        assert len(await store.list_progress_for_assessment(session.assessment_id)) == 1

    with caplog.at_level(logging.WARNING, logger="assessment_engine.services.draft_session"):
        asyncio.run(scenario())
    assert any("Autosave failed" in r.getMessage() for r in caplog.records)


def test_cancel_drops_pending_write():
    async def scenario():
        store = await _seeded()
        session = await _open(store)
        session.set_notes("sub-code", "draft note")
        session.cancel()
        await asyncio.sleep(DEBOUNCE * 5)
        assert await store.list_progress_for_assessment(session.assessment_id) == []

    asyncio.run(scenario())


def test_close_schedules_flush_without_waiting():
    async def scenario():
        store = await _seeded()
        session = await _open(store)
        session.set_notes("sub-code", "closing note")
        task = session.close()
        assert task is not None
        await task
        progress = await store.list_progress_for_assessment(session.assessment_id)
        assert progress[0].notes == "closing note"

    asyncio.run(scenario())


def test_close_twice_shares_one_flush():
    async def scenario():
        store = await _seeded()
        session = await _open(store)
        session.set_notes("sub-code", "closing note")
        first = session.close()
        second = session.close()
        assert first is second
        assert await asyncio.wait_for(asyncio.gather(first, second), 2) == [True, True]

        session.set_notes("sub-code", "after close")
        session.close()
        assert await asyncio.wait_for(session.next(), 2) == 1
        progress = await store.list_progress_for_assessment(session.assessment_id)
        assert progress[0].notes == "after close"

    asyncio.run(scenario())


def test_invalid_edits_raise_before_persistence():
    async def scenario():
        store = await _seeded()
        session = await _open(store)
        with pytest.raises(ValidationFailedError):
            session.set_rating("sub-code", "", Rating.ABOVE)
        with pytest.raises(ValidationFailedError):
            session.set_rating("sub-code", "Follows style guide", "excellent")
        with pytest.raises(ValidationFailedError, match="Unknown level"):
            session.set_level("sub-code", "m2_manager")
        with pytest.raises(EntityNotFoundError):
            session.set_notes("sub-missing", "x")
        with pytest.raises(ValidationFailedError):
            await session.go_to(7)
        assert not session.is_dirty()

    asyncio.run(scenario())


def test_open_unknown_subject_or_assessment():
    async def scenario():
        store = await _seeded()
        with pytest.raises(EntityNotFoundError):
            await open_session(store, "nobody")
        with pytest.raises(EntityNotFoundError):
            await _open(store, "missing-assessment")

    asyncio.run(scenario())


def test_session_summary_reflects_in_memory_ratings():
    async def scenario():
        session = await _open(await _seeded())
        session.set_rating("sub-code", "Follows style guide", Rating.ABOVE)
        session.set_rating("sub-testing", "Writes unit tests", Rating.TARGET)
        session.set_rating("sub-arch", "Flags risks early", Rating.BELOW)
        summary = session.summary()
        assert summary.average == 3.0
        assert summary.assessment_id == session.assessment_id
        assert session.worst_rating_for("sub-arch") == Rating.BELOW
        assert session.hint_for("sub-code", 0, Rating.ABOVE) == "Sets style guide"
        session.cancel()

    asyncio.run(scenario())

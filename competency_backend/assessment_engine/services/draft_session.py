"""Wizard session over one draft assessment.

A session walks the subject through every sub-competency (one step each, in
competency then sub-competency order) followed by a Summary step. Edits are
kept in memory and written back through a debounced autosave; navigation and
completion flush pending writes first.

Autosave is best effort: failures are logged and the step stays dirty, so the
next debounce or flush retries the write.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from pydantic import ValidationError

from assessment_engine.core.config import get_settings
from assessment_engine.core.errors import (
    AssessmentCompletedError,
    AssessmentError,
    EntityNotFoundError,
    ValidationFailedError,
)
from assessment_engine.db.store import AssessmentStore
from assessment_engine.models.domain import (
    Assessment,
    AssessmentSnapshot,
    Competency,
    EvaluationInput,
    Level,
    Rating,
    SubCompetency,
    Subject,
)
from assessment_engine.models.scoring import MemberSummary
from assessment_engine.services.discussion_prompts import (
    DiscussionPrompt,
    DiscussionPromptGenerator,
    prompts_by_step,
)
from assessment_engine.services.history import load_latest_completed, load_snapshot
from assessment_engine.services.levels import (
    criterion_hint,
    get_criteria_for_level_with_fallback,
    resolve_level_key,
)
from assessment_engine.services.rating import fill_unrated, worst_rating
from assessment_engine.services.scoring import ordered_sub_competencies, summarize_member

logger = logging.getLogger(__name__)


@dataclass
class StepState:
    """In-memory state of one sub-competency step."""
    sub_competency_id: str
    current_level: str
    notes: Optional[str] = None
    # criterion text -> rating, in the order criteria were rated
    evaluations: Dict[str, Rating] = field(default_factory=dict)
    progress_id: Optional[str] = None
    dirty: bool = False

    def evaluation_inputs(self) -> List[EvaluationInput]:
        return [EvaluationInput(criterion_text=c, evaluation=r) for c, r in self.evaluations.items()]


class DraftSession:
    """One open wizard over a draft assessment of `subject`."""

    def __init__(
        self,
        store: AssessmentStore,
        subject: Subject,
        competencies: Sequence[Competency],
        sub_competencies: Sequence[SubCompetency],
        levels: Sequence[Level],
        debounce_seconds: Optional[float] = None,
    ):
        self.store = store
        self.subject = subject
        self.competencies = list(competencies)
        self.steps: List[SubCompetency] = ordered_sub_competencies(self.competencies, sub_competencies)
        self.levels = list(levels)
        if debounce_seconds is None:
            debounce_seconds = get_settings().autosave_debounce_ms / 1000
        self.debounce_seconds = debounce_seconds

        self.assessment: Optional[Assessment] = None
        self.current_step = 0
        self.last_save_error: Optional[Exception] = None
        self._state: Dict[str, StepState] = {}
        self._locks: Dict[Tuple[str, str], asyncio.Lock] = {}
        self._timers: Dict[Tuple[str, str], asyncio.TimerHandle] = {}
        self._saves: Set[asyncio.Task] = set()
        self._closing: Optional[asyncio.Task] = None

    # --- properties ---

    @property
    def summary_step(self) -> int:
        return len(self.steps)

    @property
    def on_summary(self) -> bool:
        return self.current_step == self.summary_step

    @property
    def assessment_id(self) -> str:
        return self._require_open().id

    @property
    def default_level_key(self) -> str:
        return resolve_level_key(self.levels, self.subject.current_level_key) or self.subject.current_level_key

    def is_dirty(self, sub_competency_id: Optional[str] = None) -> bool:
        if sub_competency_id is not None:
            state = self._state.get(sub_competency_id)
            return bool(state and state.dirty)
        return any(s.dirty for s in self._state.values())

    # --- open ---

    async def open(self, existing_assessment_id: Optional[str] = None) -> Assessment:
        """Create a new draft (carrying over the latest completed one) or resume a draft."""
        if existing_assessment_id:
            snapshot = await load_snapshot(self.store, existing_assessment_id)
            if snapshot.assessment.subject_id != self.subject.id:
                raise ValidationFailedError("Assessment belongs to a different subject")
            self.assessment = snapshot.assessment
            self._load(snapshot)
            self.current_step = self._resume_step()
            logger.info(
                "Resumed assessment %s at step %d/%d", self.assessment.id, self.current_step, self.summary_step
            )
            return self.assessment

        self.assessment = await self.store.create_draft_assessment(self.subject.id)
        previous = await load_latest_completed(self.store, self.subject.id)
        if previous is not None:
            await self._carry_over(previous)
        self.current_step = 0
        logger.info(
            "Created draft assessment %s for subject %s (carried over: %s)",
            self.assessment.id,
            self.subject.id,
            previous.assessment.id if previous else None,
        )
        return self.assessment

    def _load(self, snapshot: AssessmentSnapshot) -> None:
        by_progress = snapshot.evaluations_by_progress()
        for p in snapshot.progress:
            self._state[p.sub_competency_id] = StepState(
                sub_competency_id=p.sub_competency_id,
                current_level=p.current_level,
                notes=p.notes,
                evaluations={ev.criterion_text: ev.evaluation for ev in by_progress.get(p.id, [])},
                progress_id=p.id,
            )

    def _resume_step(self) -> int:
        if self.assessment is not None and self.assessment.is_completed:
            return self.summary_step
        for i, sub in enumerate(self.steps):
            state = self._state.get(sub.id)
            if state is None or not state.evaluations:
                return i
        return self.summary_step

    async def _carry_over(self, previous: AssessmentSnapshot) -> None:
        by_progress = previous.evaluations_by_progress()
        for p in previous.progress:
            progress = await self.store.upsert_progress(
                self.assessment_id, self.subject.id, p.sub_competency_id, p.current_level, p.notes
            )
            evaluations = by_progress.get(p.id, [])
            if evaluations:
                await self.store.replace_evaluations(
                    progress.id,
                    [EvaluationInput(criterion_text=ev.criterion_text, evaluation=ev.evaluation) for ev in evaluations],
                )
            self._state[p.sub_competency_id] = StepState(
                sub_competency_id=p.sub_competency_id,
                current_level=p.current_level,
                notes=p.notes,
                evaluations={ev.criterion_text: ev.evaluation for ev in evaluations},
                progress_id=progress.id,
            )

    # --- guards ---

    def _require_open(self) -> Assessment:
        if self.assessment is None:
            raise AssessmentError("Session is not open")
        return self.assessment

    def _require_editable(self) -> Assessment:
        assessment = self._require_open()
        if assessment.is_completed:
            raise AssessmentCompletedError(assessment.id)
        return assessment

    def _step_sub(self, sub_competency_id: str) -> SubCompetency:
        for sub in self.steps:
            if sub.id == sub_competency_id:
                return sub
        raise EntityNotFoundError("SubCompetency", sub_competency_id)

    def _ensure_state(self, sub_competency_id: str) -> StepState:
        self._step_sub(sub_competency_id)
        state = self._state.get(sub_competency_id)
        if state is None:
            state = StepState(sub_competency_id=sub_competency_id, current_level=self.default_level_key)
            self._state[sub_competency_id] = state
        return state

    # --- reads ---

    def state_for(self, sub_competency_id: str) -> Optional[StepState]:
        return self._state.get(sub_competency_id)

    def criteria_for_step(self, step: Optional[int] = None) -> List[str]:
        """Criteria shown on a step for its level; [] on the Summary step."""
        step = self.current_step if step is None else step
        if not 0 <= step < self.summary_step:
            return []
        sub = self.steps[step]
        state = self._state.get(sub.id)
        level_key = state.current_level if state else self.default_level_key
        return get_criteria_for_level_with_fallback(sub, level_key)

    def hint_for(self, sub_competency_id: str, index: int, rating: Rating) -> Optional[str]:
        """Same-position criterion at the level a rating points to."""
        sub = self._step_sub(sub_competency_id)
        state = self._state.get(sub_competency_id)
        base_key = state.current_level if state else self.default_level_key
        return criterion_hint(sub, self.levels, base_key, index, rating)

    def worst_rating_for(self, sub_competency_id: str) -> Optional[Rating]:
        state = self._state.get(sub_competency_id)
        return worst_rating(state.evaluations.values()) if state else None

    def summary(self) -> MemberSummary:
        """Member-relative summary of the ratings held by this session."""
        evaluations_by_sub = {sid: s.evaluation_inputs() for sid, s in self._state.items()}
        return summarize_member(
            self.subject,
            self.competencies,
            self.steps,
            evaluations_by_sub,
            assessment_id=self.assessment.id if self.assessment else None,
        )

    async def discussion_prompts(self, generator: DiscussionPromptGenerator) -> List[List[DiscussionPrompt]]:
        """Ask `generator` for 1:1 prompts on this assessment, laid out per step."""
        generated = await generator.generate_discussion_prompts(
            self.subject.id, self.assessment_id, self.subject.role_id
        )
        return prompts_by_step(self.steps, generated)

    # --- edits ---

    def set_rating(self, sub_competency_id: str, criterion_text: str, rating: Rating | str) -> None:
        self._require_editable()
        try:
            ev = EvaluationInput(criterion_text=criterion_text, evaluation=rating)
        except ValidationError as exc:
            raise ValidationFailedError.from_pydantic(exc) from exc
        state = self._ensure_state(sub_competency_id)
        state.evaluations[ev.criterion_text] = ev.evaluation
        state.dirty = True
        self._schedule_save(sub_competency_id)

    def set_notes(self, sub_competency_id: str, notes: Optional[str]) -> None:
        self._require_editable()
        state = self._ensure_state(sub_competency_id)
        state.notes = notes
        state.dirty = True
        self._schedule_save(sub_competency_id)

    def set_level(self, sub_competency_id: str, level: str) -> None:
        self._require_editable()
        level_key = resolve_level_key(self.levels, level)
        if level_key is None:
            raise ValidationFailedError(f"Unknown level: {level}")
        state = self._ensure_state(sub_competency_id)
        state.current_level = level_key
        state.dirty = True
        self._schedule_save(sub_competency_id)

    # --- autosave ---

    def _key(self, sub_competency_id: str) -> Tuple[str, str]:
        return (self.assessment_id, sub_competency_id)

    def _schedule_save(self, sub_competency_id: str) -> None:
        key = self._key(sub_competency_id)
        previous = self._timers.pop(key, None)
        if previous is not None:
            previous.cancel()
        loop = asyncio.get_running_loop()
        self._timers[key] = loop.call_later(self.debounce_seconds, self._spawn_save, sub_competency_id)

    def _spawn_save(self, sub_competency_id: str) -> None:
        self._timers.pop(self._key(sub_competency_id), None)
        task = asyncio.get_running_loop().create_task(self._save_step(sub_competency_id))
        self._saves.add(task)
        task.add_done_callback(self._saves.discard)

    def _cancel_timers(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

    async def _save_step(self, sub_competency_id: str) -> bool:
        state = self._state.get(sub_competency_id)
        if state is None or not state.dirty:
            return True
        lock = self._locks.setdefault(self._key(sub_competency_id), asyncio.Lock())
        async with lock:
            if not state.dirty:
                return True
            state.dirty = False
            try:
                progress = await self.store.upsert_progress(
                    self.assessment_id,
                    self.subject.id,
                    sub_competency_id,
                    state.current_level,
                    state.notes,
                )
                state.progress_id = progress.id
                evaluations = state.evaluation_inputs()
                if evaluations:
                    await self.store.replace_evaluations(progress.id, evaluations)
            except Exception as exc:
                state.dirty = True
                self.last_save_error = exc
                logger.warning(
                    "Autosave failed for assessment %s, sub-competency %s: %s",
                    self.assessment_id,
                    sub_competency_id,
                    exc,
                )
                return False
        logger.debug("Saved sub-competency %s of assessment %s", sub_competency_id, self.assessment_id)
        return True

    async def flush(self) -> bool:
        """Write every dirty step now. Returns False if any write failed."""
        self._require_open()
        self._cancel_timers()
        ok = True
        for sub_id in [sid for sid, s in self._state.items() if s.dirty]:
            ok = await self._save_step(sub_id) and ok
        # only debounced saves are awaited; a pending close() flush is not
        if self._saves:
            await asyncio.gather(*list(self._saves))
        return ok and not self.is_dirty()

    def cancel(self) -> None:
        """Drop pending debounced writes without saving them."""
        self._cancel_timers()

    def close(self) -> Optional[asyncio.Task]:
        """Schedule a final flush without waiting for it.

        Repeated calls while that flush is pending return the same task.
        """
        self._cancel_timers()
        if self._closing is not None and not self._closing.done():
            return self._closing
        if self.assessment is None or self.assessment.is_completed or not self.is_dirty():
            return None
        self._closing = asyncio.get_running_loop().create_task(self.flush())
        return self._closing

    # --- navigation ---

    async def next(self) -> int:
        """Rate unrated criteria as target, save the step and advance."""
        self._require_editable()
        if self.on_summary:
            return self.current_step
        sub = self.steps[self.current_step]
        state = self._ensure_state(sub.id)
        filled = fill_unrated(self.criteria_for_step(), state.evaluations)
        if filled != state.evaluations or state.progress_id is None:
            state.evaluations = filled
            state.dirty = True
        await self.flush()
        self.current_step += 1
        return self.current_step

    async def back(self) -> int:
        self._require_editable()
        await self.flush()
        self.current_step = max(0, self.current_step - 1)
        return self.current_step

    async def go_to(self, step: int) -> int:
        self._require_editable()
        if not 0 <= step <= self.summary_step:
            raise ValidationFailedError(f"Step must be between 0 and {self.summary_step}")
        await self.flush()
        self.current_step = step
        return self.current_step

    # --- completion ---

    async def complete(self, notes: Optional[str] = None) -> Assessment:
        """Flush, score coverage and mark the assessment completed."""
        assessment = self._require_editable()
        await self.flush()
        progress = await self.store.list_progress_for_assessment(assessment.id)
        step_ids = {s.id for s in self.steps}
        covered = {p.sub_competency_id for p in progress} & step_ids
        overall_score = len(covered) / len(step_ids) * 100 if step_ids else 0.0
        self.assessment = await self.store.complete_assessment(assessment.id, overall_score, notes)
        self.current_step = self.summary_step
        logger.info(
            "Completed assessment %s: %d/%d sub-competencies, score %.1f",
            assessment.id,
            len(covered),
            len(step_ids),
            overall_score,
        )
        return self.assessment

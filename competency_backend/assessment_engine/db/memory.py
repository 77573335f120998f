"""In-memory store used by default and in tests."""
from __future__ import annotations

from typing import Dict, List, Optional, Sequence
from uuid import uuid4

from assessment_engine.core.errors import EntityNotFoundError
from assessment_engine.db.store import AssessmentStore, completion_order, utc_now
from assessment_engine.models.domain import (
    Assessment,
    AssessmentStatus,
    Competency,
    CriteriaEvaluation,
    EvaluationInput,
    Progress,
    Role,
    SubCompetency,
    Subject,
)


class MemoryAssessmentStore(AssessmentStore):
    """Dict-backed store. Returned models are copies."""

    def __init__(self) -> None:
        self._roles: Dict[str, Role] = {}
        self._competencies: Dict[str, Competency] = {}
        self._subs: Dict[str, SubCompetency] = {}
        self._subjects: Dict[str, Subject] = {}
        self._assessments: Dict[str, Assessment] = {}
        self._progress: Dict[str, Progress] = {}
        # progress_id -> evaluations in insertion order
        self._evaluations: Dict[str, List[CriteriaEvaluation]] = {}

    async def add_role(self, role: Role) -> Role:
        self._roles[role.id] = role.model_copy()
        return role

    async def get_role(self, role_id: str) -> Optional[Role]:
        role = self._roles.get(role_id)
        return role.model_copy() if role else None

    async def add_competency(self, competency: Competency) -> Competency:
        self._competencies[competency.id] = competency.model_copy()
        return competency

    async def list_competencies(self, role_id: Optional[str] = None) -> List[Competency]:
        comps = [
            c.model_copy()
            for c in self._competencies.values()
            if role_id is None or c.role_id in (None, role_id)
        ]
        return sorted(comps, key=lambda c: c.order_index)

    async def add_sub_competency(self, sub: SubCompetency) -> SubCompetency:
        self._subs[sub.id] = sub.model_copy(deep=True)
        return sub

    async def list_sub_competencies(self, competency_ids: Optional[Sequence[str]] = None) -> List[SubCompetency]:
        wanted = set(competency_ids) if competency_ids is not None else None
        subs = [
            s.model_copy(deep=True)
            for s in self._subs.values()
            if wanted is None or s.competency_id in wanted
        ]
        return sorted(subs, key=lambda s: s.order_index)

    async def get_sub_competency(self, sub_competency_id: str) -> Optional[SubCompetency]:
        sub = self._subs.get(sub_competency_id)
        return sub.model_copy(deep=True) if sub else None

    async def add_subject(self, subject: Subject) -> Subject:
        self._subjects[subject.id] = subject.model_copy()
        return subject

    async def get_subject(self, subject_id: str) -> Optional[Subject]:
        subject = self._subjects.get(subject_id)
        return subject.model_copy() if subject else None

    async def list_subjects(self, kind: Optional[str] = None) -> List[Subject]:
        return [s.model_copy() for s in self._subjects.values() if kind is None or s.kind == kind]

    async def create_draft_assessment(self, subject_id: str) -> Assessment:
        if subject_id not in self._subjects:
            raise EntityNotFoundError("Subject", subject_id)
        now = utc_now()
        assessment = Assessment(id=str(uuid4()), subject_id=subject_id, created_at=now, updated_at=now)
        self._assessments[assessment.id] = assessment
        return assessment.model_copy()

    async def get_assessment(self, assessment_id: str) -> Optional[Assessment]:
        a = self._assessments.get(assessment_id)
        return a.model_copy() if a else None

    async def complete_assessment(
        self, assessment_id: str, overall_score: float, notes: Optional[str] = None
    ) -> Assessment:
        a = self._assessments.get(assessment_id)
        if a is None:
            raise EntityNotFoundError("Assessment", assessment_id)
        now = utc_now()
        a.status = AssessmentStatus.COMPLETED
        a.completed_at = now
        a.updated_at = now
        a.overall_score = overall_score
        if notes is not None:
            a.notes = notes
        return a.model_copy()

    async def delete_assessment(self, assessment_id: str) -> bool:
        if self._assessments.pop(assessment_id, None) is None:
            return False
        for pid in [p.id for p in self._progress.values() if p.assessment_id == assessment_id]:
            self._progress.pop(pid, None)
            self._evaluations.pop(pid, None)
        return True

    async def list_assessments(self, subject_id: str) -> List[Assessment]:
        rows = [a.model_copy() for a in self._assessments.values() if a.subject_id == subject_id]
        return sorted(rows, key=lambda a: a.created_at, reverse=True)

    async def list_completed_assessments(self, subject_id: str) -> List[Assessment]:
        rows = [
            a.model_copy()
            for a in self._assessments.values()
            if a.subject_id == subject_id and a.is_completed
        ]
        return sorted(rows, key=completion_order)

    async def upsert_progress(
        self,
        assessment_id: str,
        subject_id: str,
        sub_competency_id: str,
        current_level: str,
        notes: Optional[str] = None,
    ) -> Progress:
        if assessment_id not in self._assessments:
            raise EntityNotFoundError("Assessment", assessment_id)
        now = utc_now()
        existing = next(
            (
                p for p in self._progress.values()
                if p.assessment_id == assessment_id and p.sub_competency_id == sub_competency_id
            ),
            None,
        )
        if existing is not None:
            existing.current_level = current_level
            existing.notes = notes
            existing.updated_at = now
            return existing.model_copy()
        row = Progress(
            id=str(uuid4()),
            assessment_id=assessment_id,
            subject_id=subject_id,
            sub_competency_id=sub_competency_id,
            current_level=current_level,
            notes=notes,
            assessed_at=now,
            updated_at=now,
        )
        self._progress[row.id] = row
        return row.model_copy()

    async def replace_evaluations(
        self, progress_id: str, evaluations: Sequence[EvaluationInput]
    ) -> List[CriteriaEvaluation]:
        if progress_id not in self._progress:
            raise EntityNotFoundError("Progress", progress_id)
        rows = [
            CriteriaEvaluation(
                id=str(uuid4()),
                progress_id=progress_id,
                criterion_text=ev.criterion_text,
                evaluation=ev.evaluation,
            )
            for ev in evaluations
        ]
        self._evaluations[progress_id] = rows
        return [r.model_copy() for r in rows]

    async def list_progress_for_assessment(self, assessment_id: str) -> List[Progress]:
        rows = [p.model_copy() for p in self._progress.values() if p.assessment_id == assessment_id]
        return sorted(rows, key=lambda p: p.assessed_at)

    async def list_evaluations_for_progress_ids(self, progress_ids: Sequence[str]) -> List[CriteriaEvaluation]:
        out: List[CriteriaEvaluation] = []
        for pid in progress_ids:
            out.extend(r.model_copy() for r in self._evaluations.get(pid, []))
        return out

"""Persistence interface for catalog data, assessments, progress and evaluations.

Two adapters implement it: `db.memory` (in-process dicts) and `db.sqlite`
(stdlib sqlite3). `get_store()` picks one from DATA_PROVIDER.
"""
from __future__ import annotations

import abc
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from assessment_engine.core.config import get_settings
from assessment_engine.models.domain import (
    Assessment,
    Competency,
    CriteriaEvaluation,
    EvaluationInput,
    Progress,
    Role,
    SubCompetency,
    Subject,
)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def completion_order(assessment: Assessment) -> str:
    return assessment.completed_at or assessment.created_at


class AssessmentStore(abc.ABC):
    """Async data store used by draft sessions, scoring and trends."""

    # --- catalog ---

    @abc.abstractmethod
    async def add_role(self, role: Role) -> Role: ...

    @abc.abstractmethod
    async def get_role(self, role_id: str) -> Optional[Role]: ...

    @abc.abstractmethod
    async def add_competency(self, competency: Competency) -> Competency: ...

    @abc.abstractmethod
    async def list_competencies(self, role_id: Optional[str] = None) -> List[Competency]:
        """Competencies ordered by order_index; `role_id` also keeps unscoped ones."""

    @abc.abstractmethod
    async def add_sub_competency(self, sub: SubCompetency) -> SubCompetency: ...

    @abc.abstractmethod
    async def list_sub_competencies(self, competency_ids: Optional[Sequence[str]] = None) -> List[SubCompetency]: ...

    @abc.abstractmethod
    async def get_sub_competency(self, sub_competency_id: str) -> Optional[SubCompetency]: ...

    @abc.abstractmethod
    async def add_subject(self, subject: Subject) -> Subject: ...

    @abc.abstractmethod
    async def get_subject(self, subject_id: str) -> Optional[Subject]: ...

    @abc.abstractmethod
    async def list_subjects(self, kind: Optional[str] = None) -> List[Subject]: ...

    # --- assessments ---

    @abc.abstractmethod
    async def create_draft_assessment(self, subject_id: str) -> Assessment: ...

    @abc.abstractmethod
    async def get_assessment(self, assessment_id: str) -> Optional[Assessment]: ...

    @abc.abstractmethod
    async def complete_assessment(
        self, assessment_id: str, overall_score: float, notes: Optional[str] = None
    ) -> Assessment:
        """Mark completed with a timestamp. Raises EntityNotFoundError if missing."""

    @abc.abstractmethod
    async def delete_assessment(self, assessment_id: str) -> bool:
        """Delete the assessment with its progress and evaluations; False if missing."""

    @abc.abstractmethod
    async def list_assessments(self, subject_id: str) -> List[Assessment]:
        """All assessments of a subject, newest first."""

    @abc.abstractmethod
    async def list_completed_assessments(self, subject_id: str) -> List[Assessment]:
        """Completed assessments ordered by completion time (creation time if unset)."""

    # --- progress / evaluations ---

    @abc.abstractmethod
    async def upsert_progress(
        self,
        assessment_id: str,
        subject_id: str,
        sub_competency_id: str,
        current_level: str,
        notes: Optional[str] = None,
    ) -> Progress:
        """Insert or update the single row for (assessment, sub-competency)."""

    @abc.abstractmethod
    async def replace_evaluations(
        self, progress_id: str, evaluations: Sequence[EvaluationInput]
    ) -> List[CriteriaEvaluation]: ...

    @abc.abstractmethod
    async def list_progress_for_assessment(self, assessment_id: str) -> List[Progress]: ...

    @abc.abstractmethod
    async def list_evaluations_for_progress_ids(self, progress_ids: Sequence[str]) -> List[CriteriaEvaluation]: ...


_store: Optional[AssessmentStore] = None


# PUBLIC_INTERFACE
def get_store() -> AssessmentStore:
    """Return the process-wide store for the configured DATA_PROVIDER."""
    global _store
    if _store is None:
        settings = get_settings()
        if settings.data_provider == "sqlite":
            from assessment_engine.db.sqlite import SqliteAssessmentStore

            _store = SqliteAssessmentStore(settings.db_path)
        else:
            from assessment_engine.db.memory import MemoryAssessmentStore

            _store = MemoryAssessmentStore()
    return _store


# PUBLIC_INTERFACE
def reset_store_cache() -> None:
    """Drop the cached store so the next get_store() re-reads settings."""
    global _store
    _store = None

"""Catalog lookups shared by the HTTP layer and session setup."""
from __future__ import annotations

from typing import List, Optional, Tuple

from assessment_engine.core.errors import EntityNotFoundError
from assessment_engine.db.store import AssessmentStore
from assessment_engine.models.domain import Competency, SubCompetency, Subject
from assessment_engine.services.draft_session import DraftSession
from assessment_engine.services.levels import levels_for_role_type


# PUBLIC_INTERFACE
async def require_subject(store: AssessmentStore, subject_id: str) -> Subject:
    subject = await store.get_subject(subject_id)
    if subject is None:
        raise EntityNotFoundError("Subject", subject_id)
    return subject


# PUBLIC_INTERFACE
async def load_catalog(
    store: AssessmentStore, role_id: Optional[str] = None
) -> Tuple[List[Competency], List[SubCompetency]]:
    """Competencies in scope for a role with their sub-competencies."""
    competencies = await store.list_competencies(role_id)
    subs = await store.list_sub_competencies([c.id for c in competencies])
    return competencies, subs


# PUBLIC_INTERFACE
async def open_session(
    store: AssessmentStore,
    subject_id: str,
    assessment_id: Optional[str] = None,
    debounce_seconds: Optional[float] = None,
) -> DraftSession:
    """Build a DraftSession for a subject and open (or resume) its assessment."""
    subject = await require_subject(store, subject_id)
    competencies, subs = await load_catalog(store, subject.role_id)
    session = DraftSession(
        store,
        subject,
        competencies,
        subs,
        levels_for_role_type(subject.role_type),
        debounce_seconds=debounce_seconds,
    )
    await session.open(assessment_id)
    return session

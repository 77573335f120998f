"""Loads assessments together with their progress and evaluation rows."""
from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from assessment_engine.core.errors import EntityNotFoundError
from assessment_engine.db.store import AssessmentStore
from assessment_engine.models.domain import Assessment, AssessmentSnapshot, Subject


async def snapshot_for(store: AssessmentStore, assessment: Assessment) -> AssessmentSnapshot:
    progress = await store.list_progress_for_assessment(assessment.id)
    evaluations = (
        await store.list_evaluations_for_progress_ids([p.id for p in progress]) if progress else []
    )
    return AssessmentSnapshot(assessment=assessment, progress=progress, evaluations=evaluations)


# PUBLIC_INTERFACE
async def load_snapshot(store: AssessmentStore, assessment_id: str) -> AssessmentSnapshot:
    """Load one assessment with its rows; raises EntityNotFoundError if missing."""
    assessment = await store.get_assessment(assessment_id)
    if assessment is None:
        raise EntityNotFoundError("Assessment", assessment_id)
    return await snapshot_for(store, assessment)


# PUBLIC_INTERFACE
async def load_completed_snapshots(store: AssessmentStore, subject_id: str) -> List[AssessmentSnapshot]:
    """All completed assessments of a subject, oldest completion first."""
    completed = await store.list_completed_assessments(subject_id)
    return [await snapshot_for(store, a) for a in completed]


# PUBLIC_INTERFACE
async def load_latest_completed(store: AssessmentStore, subject_id: str) -> Optional[AssessmentSnapshot]:
    completed = await store.list_completed_assessments(subject_id)
    if not completed:
        return None
    return await snapshot_for(store, completed[-1])


# PUBLIC_INTERFACE
async def load_latest_by_subject(
    store: AssessmentStore, subjects: Sequence[Subject]
) -> Dict[str, AssessmentSnapshot]:
    """Most recent completed assessment per subject; subjects without one are omitted."""
    latest: Dict[str, AssessmentSnapshot] = {}
    for subject in subjects:
        snap = await load_latest_completed(store, subject.id)
        if snap is not None:
            latest[subject.id] = snap
    return latest

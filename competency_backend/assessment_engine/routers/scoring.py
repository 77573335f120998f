"""Member-relative and team-relative scoring endpoints."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from assessment_engine.core.errors import ValidationFailedError
from assessment_engine.db.store import AssessmentStore, get_store
from assessment_engine.models.domain import RoleType, SubjectKind
from assessment_engine.models.scoring import MemberSummary, TeamSkillMap
from assessment_engine.services.catalog import load_catalog, require_subject
from assessment_engine.services.history import load_latest_by_subject, load_latest_completed, load_snapshot
from assessment_engine.services.levels import levels_for_role_type
from assessment_engine.services.scoring import summarize_member, team_skill_map

router = APIRouter(prefix="/scoring", tags=["scoring"])


# PUBLIC_INTERFACE
@router.get(
    "/members/{subject_id}/summary",
    response_model=MemberSummary,
    summary="Member summary",
    description="Member-relative averages, classification and recommendation text.",
)
async def member_summary(
    subject_id: str,
    assessment_id: Optional[str] = Query(None, description="Defaults to the latest completed assessment"),
    store: AssessmentStore = Depends(get_store),
):
    subject = await require_subject(store, subject_id)
    competencies, subs = await load_catalog(store, subject.role_id)
    if assessment_id:
        snapshot = await load_snapshot(store, assessment_id)
        if snapshot.assessment.subject_id != subject.id:
            raise ValidationFailedError("Assessment belongs to a different subject")
    else:
        snapshot = await load_latest_completed(store, subject.id)
    if snapshot is None:
        return summarize_member(subject, competencies, subs, {})
    return summarize_member(
        subject, competencies, subs, snapshot.evaluations_by_sub_competency(), assessment_id=snapshot.assessment.id
    )


# PUBLIC_INTERFACE
@router.get(
    "/team/skill-map",
    response_model=TeamSkillMap,
    summary="Team skill map",
    description="Team-relative scores per competency for radar charts.",
)
async def skill_map(
    role_type: RoleType = Query(RoleType.IC, description="Level track of the team"),
    store: AssessmentStore = Depends(get_store),
):
    """Score every team member's latest completed assessment on one shared axis."""
    members = [m for m in await store.list_subjects(SubjectKind.MEMBER) if m.role_type == role_type]
    competencies, subs = await load_catalog(store)
    latest = await load_latest_by_subject(store, members)
    return team_skill_map(levels_for_role_type(role_type), competencies, subs, members, latest)

"""Hiring-gap recommendation endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from assessment_engine.db.store import AssessmentStore, get_store
from assessment_engine.models.domain import RoleType, SubjectKind
from assessment_engine.models.scoring import SkillRecommendationReport
from assessment_engine.services.catalog import load_catalog
from assessment_engine.services.history import load_latest_by_subject
from assessment_engine.services.levels import levels_for_role_type
from assessment_engine.services.recommendations import recommend_skills
from assessment_engine.services.scoring import team_skill_map

router = APIRouter(prefix="/recommendations", tags=["recommendations"])


# PUBLIC_INTERFACE
@router.get("/skills", response_model=SkillRecommendationReport, summary="Skills to hire for", description="Competencies where the team scores lowest, weakest first.")
async def skills(
    role_type: RoleType = Query(RoleType.IC, description="Level track of the team"),
    limit: int = Query(3, ge=1, le=50, description="Maximum number of results"),
    store: AssessmentStore = Depends(get_store),
):
    """Return hiring-gap priorities from the team's latest completed assessments."""
    members = [m for m in await store.list_subjects(SubjectKind.MEMBER) if m.role_type == role_type]
    competencies, subs = await load_catalog(store)
    latest = await load_latest_by_subject(store, members)
    skill_map = team_skill_map(levels_for_role_type(role_type), competencies, subs, members, latest)
    return recommend_skills(skill_map, limit=limit)

"""Level sequences, level-relative criteria and framework health endpoints."""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from assessment_engine.core.errors import EntityNotFoundError, ValidationFailedError
from assessment_engine.db.store import AssessmentStore, get_store
from assessment_engine.models.domain import Level, RoleType
from assessment_engine.models.scoring import FrameworkHealth
from assessment_engine.services.catalog import load_catalog
from assessment_engine.services.framework_health import framework_health
from assessment_engine.services.levels import (
    get_criteria_for_level_with_fallback,
    levels_for_role_type,
    resolve_level_key,
)

router = APIRouter(prefix="/levels", tags=["levels"])


class CriteriaOut(BaseModel):
    sub_competency_id: str
    level_key: str
    criteria: List[str] = Field(default_factory=list, description="Empty when no criteria are defined")


# PUBLIC_INTERFACE
@router.get("/{role_type}", response_model=List[Level], summary="Level sequence", description="Ordered levels of a role type, lowest first.")
def list_levels(role_type: RoleType):
    """Return the level sequence for `ic` or `management`."""
    return levels_for_role_type(role_type)


# PUBLIC_INTERFACE
@router.get(
    "/{role_type}/criteria/{sub_id}/{level_key}",
    response_model=CriteriaOut,
    summary="Criteria at a level",
    description="Criteria of a sub-competency at a level, with legacy-key fallback.",
)
async def criteria_at_level(
    role_type: RoleType, sub_id: str, level_key: str, store: AssessmentStore = Depends(get_store)
):
    """Resolve the level (key, label or legacy key) and return its criteria."""
    sub = await store.get_sub_competency(sub_id)
    if sub is None:
        raise EntityNotFoundError("SubCompetency", sub_id)
    resolved = resolve_level_key(levels_for_role_type(role_type), level_key)
    if resolved is None:
        raise ValidationFailedError(f"Unknown level: {level_key}")
    return CriteriaOut(
        sub_competency_id=sub.id,
        level_key=resolved,
        criteria=get_criteria_for_level_with_fallback(sub, resolved),
    )


# PUBLIC_INTERFACE
@router.get(
    "/{role_type}/health",
    response_model=FrameworkHealth,
    summary="Framework health",
    description="Levels without criteria and uneven criteria counts across the framework.",
)
async def criteria_health(
    role_type: RoleType,
    role_id: Optional[str] = Query(None, description="Limit to competencies of one role"),
    store: AssessmentStore = Depends(get_store),
):
    if role_id and await store.get_role(role_id) is None:
        raise EntityNotFoundError("Role", role_id)
    competencies, subs = await load_catalog(store, role_id)
    return framework_health(levels_for_role_type(role_type), competencies, subs)

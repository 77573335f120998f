"""Cross-assessment trend endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from assessment_engine.core.config import get_settings
from assessment_engine.db.store import AssessmentStore, get_store
from assessment_engine.models.scoring import ScoringStrategy, TrendReport
from assessment_engine.services.catalog import load_catalog, require_subject
from assessment_engine.services.history import load_completed_snapshots
from assessment_engine.services.levels import levels_for_role_type
from assessment_engine.services.trends import build_trend_report

router = APIRouter(prefix="/trends", tags=["trends"])


# PUBLIC_INTERFACE
@router.get("/{subject_id}", response_model=TrendReport, summary="Subject trends", description="First-to-last score changes across completed assessments.")
async def subject_trends(
    subject_id: str,
    strategy: ScoringStrategy = Query(ScoringStrategy.MEMBER_RELATIVE, description="Scoring formula"),
    store: AssessmentStore = Depends(get_store),
):
    subject = await require_subject(store, subject_id)
    competencies, subs = await load_catalog(store, subject.role_id)
    snapshots = await load_completed_snapshots(store, subject.id)
    return build_trend_report(
        subject.id,
        snapshots,
        competencies,
        subs,
        strategy,
        levels=levels_for_role_type(subject.role_type),
        subject_level_key=subject.current_level_key,
        threshold=get_settings().trend_threshold,
    )

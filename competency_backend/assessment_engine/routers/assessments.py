"""Assessment lifecycle endpoints: create, resume, save progress, complete, delete."""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field

from assessment_engine.core.errors import (
    AssessmentCompletedError,
    EntityNotFoundError,
    ValidationFailedError,
)
from assessment_engine.db.store import AssessmentStore, get_store
from assessment_engine.models.domain import (
    Assessment,
    AssessmentStatus,
    CriteriaEvaluation,
    EvaluationInput,
    Progress,
)
from assessment_engine.services.catalog import open_session, require_subject
from assessment_engine.services.levels import levels_for_role_type, resolve_level_key

router = APIRouter(prefix="/assessments", tags=["assessments"])


class AssessmentCreate(BaseModel):
    subject_id: str = Field(..., min_length=1)


class AssessmentComplete(BaseModel):
    notes: Optional[str] = Field(None, description="Overall assessment notes")


class ProgressSave(BaseModel):
    current_level: str = Field(..., min_length=1, description="Level key, label or legacy key")
    notes: Optional[str] = None
    evaluations: List[EvaluationInput] = Field(default_factory=list)


class SessionState(BaseModel):
    """Where the wizard stands for an assessment."""
    assessment: Assessment
    step: int = Field(..., ge=0, description="Current step; equal to total_steps on the Summary")
    total_steps: int
    on_summary: bool
    carried_over: int = Field(0, description="Sub-competencies copied from the previous assessment")


class ProgressOut(BaseModel):
    progress: Progress
    evaluations: List[CriteriaEvaluation] = Field(default_factory=list)


async def _require_assessment(store: AssessmentStore, assessment_id: str) -> Assessment:
    assessment = await store.get_assessment(assessment_id)
    if assessment is None:
        raise EntityNotFoundError("Assessment", assessment_id)
    return assessment


# PUBLIC_INTERFACE
@router.get("/", response_model=List[Assessment], summary="List assessments", description="Assessments of a subject, newest first.")
async def list_assessments(subject_id: str, store: AssessmentStore = Depends(get_store)):
    await require_subject(store, subject_id)
    return await store.list_assessments(subject_id)


# PUBLIC_INTERFACE
@router.post("/", response_model=SessionState, status_code=status.HTTP_201_CREATED, summary="Start assessment", description="Create a draft, copying the subject's latest completed assessment.")
async def create_assessment(payload: AssessmentCreate, store: AssessmentStore = Depends(get_store)):
    session = await open_session(store, payload.subject_id)
    return SessionState(
        assessment=session.assessment,
        step=session.current_step,
        total_steps=session.summary_step,
        on_summary=session.on_summary,
        carried_over=len(await store.list_progress_for_assessment(session.assessment_id)),
    )


# PUBLIC_INTERFACE
@router.get("/{assessment_id}/resume", response_model=SessionState, summary="Resume assessment", description="Step to resume at: first step without ratings, or the Summary.")
async def resume_assessment(assessment_id: str, store: AssessmentStore = Depends(get_store)):
    assessment = await _require_assessment(store, assessment_id)
    session = await open_session(store, assessment.subject_id, assessment_id)
    return SessionState(
        assessment=session.assessment,
        step=session.current_step,
        total_steps=session.summary_step,
        on_summary=session.on_summary,
    )


# PUBLIC_INTERFACE
@router.put("/{assessment_id}/progress/{sub_id}", response_model=ProgressOut, summary="Save step", description="Upsert a sub-competency's progress and replace its evaluations.")
async def save_progress(
    assessment_id: str, sub_id: str, payload: ProgressSave, store: AssessmentStore = Depends(get_store)
):
    """Immediate write of one wizard step.

    Evaluations are replaced whenever the field is sent, so `[]` clears them;
    omitting it keeps the recorded set.
    """
    assessment = await _require_assessment(store, assessment_id)
    if assessment.status == AssessmentStatus.COMPLETED:
        raise AssessmentCompletedError(assessment.id)
    subject = await require_subject(store, assessment.subject_id)
    if await store.get_sub_competency(sub_id) is None:
        raise EntityNotFoundError("SubCompetency", sub_id)
    level_key = resolve_level_key(levels_for_role_type(subject.role_type), payload.current_level)
    if level_key is None:
        raise ValidationFailedError(f"Unknown level: {payload.current_level}")

    progress = await store.upsert_progress(assessment.id, subject.id, sub_id, level_key, payload.notes)
    if "evaluations" in payload.model_fields_set:
        evaluations = await store.replace_evaluations(progress.id, payload.evaluations)
    else:
        evaluations = await store.list_evaluations_for_progress_ids([progress.id])
    return ProgressOut(progress=progress, evaluations=evaluations)


# PUBLIC_INTERFACE
@router.post("/{assessment_id}/complete", response_model=Assessment, summary="Complete assessment", description="Score coverage and mark the assessment completed.")
async def complete_assessment(
    assessment_id: str, payload: Optional[AssessmentComplete] = None, store: AssessmentStore = Depends(get_store)
):
    assessment = await _require_assessment(store, assessment_id)
    session = await open_session(store, assessment.subject_id, assessment_id)
    return await session.complete(payload.notes if payload else None)


# PUBLIC_INTERFACE
@router.delete("/{assessment_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete assessment", description="Delete an assessment with its progress and evaluations.")
async def delete_assessment(assessment_id: str, store: AssessmentStore = Depends(get_store)):
    if not await store.delete_assessment(assessment_id):
        raise EntityNotFoundError("Assessment", assessment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

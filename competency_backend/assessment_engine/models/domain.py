"""Domain DTOs for roles, levels, competencies, subjects, assessments and evaluations."""
from __future__ import annotations
from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

TITLE_MAX_LENGTH = 200
CRITERION_MAX_LENGTH = 500


def validate_title(value: str) -> str:
    """Trim and check a competency or sub-competency title."""
    title = (value or "").strip()
    if not title:
        raise ValueError("Title cannot be empty")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValueError(f"Title must be less than {TITLE_MAX_LENGTH} characters")
    return title


def validate_criterion(value: str) -> str:
    """Trim and check a single criterion statement."""
    criterion = (value or "").strip()
    if not criterion:
        raise ValueError("Criterion cannot be empty")
    if len(criterion) > CRITERION_MAX_LENGTH:
        raise ValueError(f"Criterion must be less than {CRITERION_MAX_LENGTH} characters")
    return criterion


class RoleType(str, Enum):
    IC = "ic"
    MANAGEMENT = "management"


class Rating(str, Enum):
    """Five-point evaluation of a single criterion, lowest first."""
    WELL_BELOW = "well_below"
    BELOW = "below"
    TARGET = "target"
    ABOVE = "above"
    WELL_ABOVE = "well_above"


class AssessmentStatus(str, Enum):
    DRAFT = "draft"
    COMPLETED = "completed"


class SubjectKind(str, Enum):
    MEMBER = "member"
    CANDIDATE = "candidate"


class Level(BaseModel):
    """A career tier within a role's ordered level sequence."""
    model_config = ConfigDict(frozen=True)

    key: str = Field(..., description="Stable level key (e.g., p3_career)")
    label: str = Field(..., description="Display label (e.g., P3 Career)")
    description: Optional[str] = Field(None, description="Short tier description")
    index: int = Field(..., ge=0, description="Position in the sequence; 0 is lowest")


class LevelCriteria(BaseModel):
    """Ordered criteria of a sub-competency at one level."""
    key: str = Field(..., min_length=1, description="Level key the criteria belong to")
    label: Optional[str] = Field(None, description="Level label at time of authoring")
    criteria: List[str] = Field(default_factory=list, description="Index-aligned criterion statements")

    @field_validator("criteria")
    @classmethod
    def _check_criteria(cls, value: List[str]) -> List[str]:
        return [validate_criterion(c) for c in value]


class Role(BaseModel):
    """Role owning a fixed level sequence."""
    id: str = Field(..., description="Role ID")
    name: str = Field(..., min_length=1, description="Role name")
    type: RoleType = Field(default=RoleType.IC, description="IC or management track")


class Competency(BaseModel):
    """Top-level competency grouping sub-competencies."""
    id: str = Field(..., description="Competency ID")
    title: str = Field(..., description="Competency title")
    code: Optional[str] = Field(None, description="Short code (e.g., 1)")
    description: Optional[str] = Field(None, description="Competency description")
    order_index: int = Field(default=0, description="Display order")
    role_id: Optional[str] = Field(None, description="Owning role, if scoped")

    @field_validator("title")
    @classmethod
    def _check_title(cls, value: str) -> str:
        return validate_title(value)


class SubCompetency(BaseModel):
    """Sub-competency with level-relative criteria.

    `level_criteria` is an ordered list; a plain `{level_key: [criteria]}`
    mapping is accepted on input and normalised. The legacy columns hold
    criteria authored before levels were keyed per role.
    """
    id: str = Field(..., description="Sub-competency ID")
    competency_id: str = Field(..., description="Parent competency ID")
    title: str = Field(..., description="Sub-competency title")
    code: Optional[str] = Field(None, description="Short code (e.g., 1.2)")
    order_index: int = Field(default=0, description="Display order within the competency")
    level_criteria: List[LevelCriteria] = Field(default_factory=list)
    associate_level: Optional[List[str]] = None
    intermediate_level: Optional[List[str]] = None
    senior_level: Optional[List[str]] = None
    lead_level: Optional[List[str]] = None
    principal_level: Optional[List[str]] = None

    @field_validator("title")
    @classmethod
    def _check_title(cls, value: str) -> str:
        return validate_title(value)

    @field_validator("level_criteria", mode="before")
    @classmethod
    def _normalize_level_criteria(cls, value):
        if value is None:
            return []
        if isinstance(value, dict):
            return [
                {"key": key, "criteria": list(criteria)}
                for key, criteria in value.items()
                if criteria is not None
            ]
        return value

    def criteria_for(self, level_key: str) -> Optional[List[str]]:
        """Criteria recorded under exactly `level_key`, or None when absent."""
        for entry in self.level_criteria:
            if entry.key == level_key:
                return list(entry.criteria)
        return None

    def legacy_column(self, legacy_key: str) -> Optional[List[str]]:
        column = {
            "associate": self.associate_level,
            "intermediate": self.intermediate_level,
            "senior": self.senior_level,
            "lead": self.lead_level,
            "principal": self.principal_level,
        }.get(legacy_key)
        return list(column) if column is not None else None


class Subject(BaseModel):
    """Team member or hiring candidate being assessed."""
    id: str = Field(..., description="Subject ID")
    name: str = Field(..., min_length=1, description="Display name")
    kind: SubjectKind = Field(default=SubjectKind.MEMBER)
    current_level_key: str = Field(..., min_length=1, description="Level key or label of the subject")
    role_id: Optional[str] = Field(None, description="Role the subject is assessed against")
    role_type: RoleType = Field(default=RoleType.IC)


class Assessment(BaseModel):
    """Assessment header; draft until completed."""
    id: str
    subject_id: str
    status: AssessmentStatus = AssessmentStatus.DRAFT
    created_at: str
    updated_at: str
    completed_at: Optional[str] = None
    overall_score: Optional[float] = None
    notes: Optional[str] = None

    @property
    def is_completed(self) -> bool:
        return self.status == AssessmentStatus.COMPLETED


class Progress(BaseModel):
    """Per-assessment, per-sub-competency record."""
    id: str
    assessment_id: str
    subject_id: str
    sub_competency_id: str
    current_level: str
    notes: Optional[str] = None
    assessed_at: str
    updated_at: str


class CriteriaEvaluation(BaseModel):
    """Rating of one criterion within a progress record."""
    id: str
    progress_id: str
    criterion_text: str
    evaluation: Rating


class EvaluationInput(BaseModel):
    """Criterion rating as written by a wizard step."""
    criterion_text: str = Field(..., min_length=1)
    evaluation: Rating


class AssessmentSnapshot(BaseModel):
    """An assessment with all of its progress and evaluation rows."""
    assessment: Assessment
    progress: List[Progress] = Field(default_factory=list)
    evaluations: List[CriteriaEvaluation] = Field(default_factory=list)

    def evaluations_by_progress(self) -> Dict[str, List[CriteriaEvaluation]]:
        grouped: Dict[str, List[CriteriaEvaluation]] = {}
        for ev in self.evaluations:
            grouped.setdefault(ev.progress_id, []).append(ev)
        return grouped

    def evaluations_by_sub_competency(self) -> Dict[str, List[CriteriaEvaluation]]:
        """Evaluations grouped by sub-competency ID, in stored order."""
        grouped = self.evaluations_by_progress()
        out: Dict[str, List[CriteriaEvaluation]] = {}
        for p in self.progress:
            out.setdefault(p.sub_competency_id, []).extend(grouped.get(p.id, []))
        return out

"""Scoring, recommendation, trend and framework health DTOs."""
from __future__ import annotations
from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from assessment_engine.models.domain import Rating


class ScoringStrategy(str, Enum):
    """Which aggregation formula a caller wants."""
    MEMBER_RELATIVE = "member_relative"
    TEAM_RELATIVE = "team_relative"


class MemberClassification(str, Enum):
    LEVEL_UP = "level-up"
    ON_TRACK = "on-track"
    NEEDS_SUPPORT = "needs-support"


class Priority(str, Enum):
    NOT_ASSESSED = "not_assessed"
    HIGH = "high"
    MEDIUM = "medium"
    STRENGTH = "strength"


class Trend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class SubCompetencySummary(BaseModel):
    """Member-relative result for one sub-competency."""
    sub_competency_id: str
    title: str
    average: Optional[float] = Field(None, ge=1, le=5, description="Mean rating weight, None when unrated")
    classification: Optional[MemberClassification] = None
    evaluation_count: int = 0
    worst: Optional[Rating] = Field(None, description="Lowest rating given, for navigation indicators")


class CompetencySummary(BaseModel):
    """Member-relative result for one competency."""
    competency_id: str
    title: str
    average: Optional[float] = Field(None, ge=1, le=5)
    classification: Optional[MemberClassification] = None
    evaluation_count: int = 0
    sub_competencies: List[SubCompetencySummary] = Field(default_factory=list)


class MemberSummary(BaseModel):
    """Member-relative summary of one assessment."""
    subject_id: str
    assessment_id: Optional[str] = None
    average: Optional[float] = Field(None, ge=1, le=5)
    classification: MemberClassification = MemberClassification.ON_TRACK
    recommendation: str
    distribution: Optional[Dict[str, float]] = Field(None, description="Percent above/target/below")
    competencies: List[CompetencySummary] = Field(default_factory=list)


class MemberSkillScore(BaseModel):
    """Team-relative score of one member in one competency (0 when not assessed)."""
    subject_id: str
    name: str
    score: float = Field(..., ge=0)


class TeamSubCompetencyScore(BaseModel):
    sub_competency_id: str
    title: str
    average: float = Field(0.0, ge=0)
    member_count: int = 0


class TeamCompetencyScore(BaseModel):
    """Team-relative scores of one competency across the team."""
    competency_id: str
    title: str
    average: float = Field(0.0, ge=0, description="Mean over members with at least one evaluation")
    member_count: int = 0
    member_scores: List[MemberSkillScore] = Field(default_factory=list)
    sub_competencies: List[TeamSubCompetencyScore] = Field(default_factory=list)


class TeamSkillMap(BaseModel):
    """Radar-chart data for the team."""
    max_score: int = Field(..., description="Upper bound of member scores for this team composition")
    member_count: int = 0
    competencies: List[TeamCompetencyScore] = Field(default_factory=list)


class SkillRecommendation(BaseModel):
    """Hiring-gap recommendation for one competency."""
    competency_id: str
    competency_title: str
    avg_score: float
    priority: Priority
    description: str
    member_count: int
    skills_to_look_for: List[TeamSubCompetencyScore] = Field(default_factory=list)


class SkillRecommendationReport(BaseModel):
    recommendations: List[SkillRecommendation] = Field(default_factory=list)
    headline: str


class TrendPoint(BaseModel):
    """Scores of one completed assessment, keyed by competency ID."""
    assessment_id: str
    date: str
    competency_scores: Dict[str, float] = Field(default_factory=dict)
    sub_competency_scores: Dict[str, float] = Field(default_factory=dict)


class TrendItem(BaseModel):
    id: str
    title: str
    first_score: float
    last_score: float
    diff: float
    trend: Trend


class TrendCounts(BaseModel):
    improving: int = 0
    stable: int = 0
    declining: int = 0


class TrendReport(BaseModel):
    """Cross-assessment trend of one subject."""
    subject_id: str
    strategy: ScoringStrategy
    points: List[TrendPoint] = Field(default_factory=list)
    competencies: List[TrendItem] = Field(default_factory=list)
    sub_competencies: List[TrendItem] = Field(default_factory=list)
    overall: Optional[TrendItem] = None
    counts: TrendCounts = Field(default_factory=TrendCounts)


class HealthStatus(str, Enum):
    COMPLETE = "complete"
    PARTIAL = "partial"
    INCOMPLETE = "incomplete"


class LevelGap(BaseModel):
    """A sub-competency with levels that have no criteria."""
    competency_title: str
    sub_competency_id: str
    sub_competency_title: str
    empty_levels: List[str] = Field(default_factory=list, description="Labels of levels without criteria")


class UnevenCriteria(BaseModel):
    """A sub-competency whose criteria counts vary sharply between levels."""
    competency_title: str
    sub_competency_id: str
    sub_competency_title: str
    counts: Dict[str, int] = Field(default_factory=dict, description="Criteria count per level label")
    min: int
    max: int


class FrameworkHealth(BaseModel):
    """Criteria coverage of a competency framework across a level sequence."""
    status: HealthStatus
    competency_count: int = 0
    sub_competency_count: int = 0
    total_slots: int = 0
    filled_slots: int = 0
    completion_pct: int = Field(0, ge=0, le=100)
    gaps: List[LevelGap] = Field(default_factory=list)
    uneven: List[UnevenCriteria] = Field(default_factory=list)

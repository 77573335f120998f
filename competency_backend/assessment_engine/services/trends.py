"""Cross-assessment trend classification.

Scores every completed assessment of a subject in completion order, then
compares the first and last points per competency, per sub-competency and
overall. A change counts only when it exceeds the threshold strictly.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from assessment_engine.models.domain import AssessmentSnapshot, Competency, Level, SubCompetency
from assessment_engine.models.scoring import (
    ScoringStrategy,
    Trend,
    TrendCounts,
    TrendItem,
    TrendPoint,
    TrendReport,
)
from assessment_engine.services.levels import level_base_score, max_possible_score
from assessment_engine.services.scoring import competency_scores, ordered_competencies, sub_competency_scores

logger = logging.getLogger(__name__)

DEFAULT_TREND_THRESHOLD = 0.3
# Differences are rounded before comparison so that e.g. 1.3 - 1.0 counts as 0.3.
DIFF_PRECISION = 6
OVERALL_ID = "overall"


# PUBLIC_INTERFACE
def classify_trend(diff: float, threshold: float = DEFAULT_TREND_THRESHOLD) -> Trend:
    """improving above +threshold, declining below -threshold, stable otherwise."""
    d = round(diff, DIFF_PRECISION)
    if d > threshold:
        return Trend.IMPROVING
    if d < -threshold:
        return Trend.DECLINING
    return Trend.STABLE


def completion_key(snapshot: AssessmentSnapshot) -> str:
    a = snapshot.assessment
    return a.completed_at or a.created_at


# PUBLIC_INTERFACE
def build_trend_series(
    snapshots: Sequence[AssessmentSnapshot],
    competencies: Sequence[Competency],
    sub_competencies: Sequence[SubCompetency],
    strategy: ScoringStrategy,
    levels: Optional[Sequence[Level]] = None,
    subject_level_key: Optional[str] = None,
) -> List[TrendPoint]:
    """One point per completed assessment with any progress, oldest first."""
    base_score = max_score = None
    if ScoringStrategy(strategy) == ScoringStrategy.TEAM_RELATIVE:
        if levels is None or subject_level_key is None:
            raise ValueError("team-relative trends need the level sequence and the subject's level")
        base_score = level_base_score(list(levels), subject_level_key)
        max_score = max_possible_score(list(levels), [subject_level_key])

    completed = sorted((s for s in snapshots if s.assessment.is_completed), key=completion_key)
    points: List[TrendPoint] = []
    for snap in completed:
        if not snap.progress:
            continue
        points.append(
            TrendPoint(
                assessment_id=snap.assessment.id,
                date=completion_key(snap),
                competency_scores=competency_scores(
                    strategy, snap, competencies, sub_competencies, base_score, max_score
                ),
                sub_competency_scores=sub_competency_scores(
                    strategy, snap, sub_competencies, base_score, max_score
                ),
            )
        )
    return points


def _first_last(
    first: Dict[str, float],
    last: Dict[str, float],
    items: Sequence[Tuple[str, str]],
    threshold: float,
) -> List[TrendItem]:
    out = []
    for item_id, title in items:
        first_score = first.get(item_id, 0.0)
        last_score = last.get(item_id, 0.0)
        diff = last_score - first_score
        out.append(
            TrendItem(
                id=item_id,
                title=title,
                first_score=first_score,
                last_score=last_score,
                diff=round(diff, DIFF_PRECISION),
                trend=classify_trend(diff, threshold),
            )
        )
    return out


# PUBLIC_INTERFACE
def compare_first_last(
    points: Sequence[TrendPoint],
    items: Sequence[Tuple[str, str]],
    granularity: str = "competency",
    threshold: float = DEFAULT_TREND_THRESHOLD,
) -> List[TrendItem]:
    """First-vs-last comparison of `(id, title)` items at competency or sub-competency level."""
    if len(points) < 2:
        return []
    attr = "sub_competency_scores" if granularity == "sub_competency" else "competency_scores"
    return _first_last(getattr(points[0], attr), getattr(points[-1], attr), items, threshold)


# PUBLIC_INTERFACE
def summarize_trends(items: Sequence[TrendItem]) -> TrendCounts:
    counts = TrendCounts()
    for item in items:
        if item.trend == Trend.IMPROVING:
            counts.improving += 1
        elif item.trend == Trend.DECLINING:
            counts.declining += 1
        else:
            counts.stable += 1
    return counts


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


# PUBLIC_INTERFACE
def build_trend_report(
    subject_id: str,
    snapshots: Sequence[AssessmentSnapshot],
    competencies: Sequence[Competency],
    sub_competencies: Sequence[SubCompetency],
    strategy: ScoringStrategy,
    levels: Optional[Sequence[Level]] = None,
    subject_level_key: Optional[str] = None,
    threshold: float = DEFAULT_TREND_THRESHOLD,
) -> TrendReport:
    """Trend report for one subject; comparisons need at least two points."""
    points = build_trend_series(
        snapshots, competencies, sub_competencies, strategy, levels, subject_level_key
    )
    report = TrendReport(subject_id=subject_id, strategy=strategy, points=points)
    if len(points) < 2:
        logger.debug("Subject %s has %d scored assessments; no trend", subject_id, len(points))
        return report

    first, last = points[0], points[-1]
    comps = ordered_competencies(competencies)
    report.competencies = compare_first_last(points, [(c.id, c.title) for c in comps], "competency", threshold)
    report.sub_competencies = compare_first_last(
        points, [(s.id, s.title) for s in sub_competencies], "sub_competency", threshold
    )
    overall = _first_last(
        {OVERALL_ID: _mean([first.competency_scores.get(c.id, 0.0) for c in comps])},
        {OVERALL_ID: _mean([last.competency_scores.get(c.id, 0.0) for c in comps])},
        [(OVERALL_ID, "Overall")], threshold,
    )
    report.overall = overall[0]
    report.counts = summarize_trends(report.competencies)
    return report

"""Aggregation of criterion ratings into skill scores.

Two formulas coexist and callers pick one explicitly:

- member-relative: mean rating weight (1.0 to 5.0). Drives an individual's
  own competency summaries and recommendation text.
- team-relative: the member's level base score plus the mean evaluation
  modifier, clamped to [0, max_score]. Drives team radar charts and hiring-gap
  priorities, where members at different levels share one axis.
"""
from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

from assessment_engine.models.domain import (
    AssessmentSnapshot,
    Competency,
    CriteriaEvaluation,
    EvaluationInput,
    Level,
    Rating,
    SubCompetency,
    Subject,
)
from assessment_engine.models.scoring import (
    CompetencySummary,
    MemberClassification,
    MemberSkillScore,
    MemberSummary,
    ScoringStrategy,
    SubCompetencySummary,
    TeamCompetencyScore,
    TeamSkillMap,
    TeamSubCompetencyScore,
)
from assessment_engine.services.levels import level_base_score, max_possible_score
from assessment_engine.services.rating import (
    ABOVE_TARGET,
    BELOW_TARGET,
    evaluation_to_score,
    rating_distribution,
    worst_rating,
)

logger = logging.getLogger(__name__)

Evaluation = Union[EvaluationInput, CriteriaEvaluation]
EvaluationsBySub = Mapping[str, Sequence[Evaluation]]

EVALUATION_MODIFIERS: Dict[Rating, int] = {
    Rating.WELL_BELOW: -2,
    Rating.BELOW: -1,
    Rating.TARGET: 0,
    Rating.ABOVE: 2,
    Rating.WELL_ABOVE: 4,
}

LEVEL_UP_THRESHOLD = 4.0
NEEDS_SUPPORT_THRESHOLD = 2.5
RECOMMENDATION_SAMPLE_SIZE = 2

NO_DATA_RECOMMENDATION = (
    "No assessment data available yet. Create an assessment to generate personalized recommendations."
)

_IMPROVEMENT_RULES = [
    (re.compile(r"^(understands|demonstrates understanding of)", re.IGNORECASE), "Develop understanding of"),
    (re.compile(r"^(can|able to)\b", re.IGNORECASE), "Improve ability to"),
    (re.compile(r"^(writes|creates|develops)\b", re.IGNORECASE), "Improve"),
    (re.compile(r"^(effectively|proficiently)\b", re.IGNORECASE), "Improve"),
]
_CONSISTENTLY = re.compile(r"consistently", re.IGNORECASE)


def ordered_competencies(competencies: Iterable[Competency]) -> List[Competency]:
    return sorted(competencies, key=lambda c: c.order_index)


def ordered_sub_competencies(
    competencies: Iterable[Competency], sub_competencies: Iterable[SubCompetency]
) -> List[SubCompetency]:
    """Sub-competencies in wizard order: competency order, then their own order."""
    comp_order = {c.id: c.order_index for c in competencies}
    return sorted(
        sub_competencies,
        key=lambda s: (comp_order.get(s.competency_id, float("inf")), s.order_index),
    )


def _subs_of(competency: Competency, sub_competencies: Iterable[SubCompetency]) -> List[SubCompetency]:
    return sorted(
        (s for s in sub_competencies if s.competency_id == competency.id),
        key=lambda s: s.order_index,
    )


def _ratings(evaluations: Iterable[Evaluation]) -> List[Rating]:
    return [Rating(e.evaluation) for e in evaluations]


# --- Member-relative ---

# PUBLIC_INTERFACE
def member_average(ratings: Iterable[Rating | str]) -> Optional[float]:
    """Mean rating weight over all ratings in scope; None when there are none."""
    scores = [evaluation_to_score(r) for r in ratings]
    if not scores:
        return None
    return sum(scores) / len(scores)


# PUBLIC_INTERFACE
def classify_member_average(average: float) -> MemberClassification:
    if average >= LEVEL_UP_THRESHOLD:
        return MemberClassification.LEVEL_UP
    if average < NEEDS_SUPPORT_THRESHOLD:
        return MemberClassification.NEEDS_SUPPORT
    return MemberClassification.ON_TRACK


# PUBLIC_INTERFACE
def rephrase_as_improvement(criterion: str) -> str:
    """Turn a capability statement into an improvement statement."""
    for pattern, replacement in _IMPROVEMENT_RULES:
        if pattern.match(criterion):
            return pattern.sub(replacement, criterion, count=1)
    if _CONSISTENTLY.search(criterion):
        return _CONSISTENTLY.sub("more consistently", criterion, count=1)
    return criterion


def _sample(evaluations: Sequence[Evaluation], prefer_above: bool) -> List[str]:
    below = [
        rephrase_as_improvement(e.criterion_text)
        for e in evaluations
        if Rating(e.evaluation) in BELOW_TARGET
    ][:RECOMMENDATION_SAMPLE_SIZE]
    above = [
        e.criterion_text
        for e in evaluations
        if Rating(e.evaluation) in ABOVE_TARGET
    ][:RECOMMENDATION_SAMPLE_SIZE]
    if prefer_above:
        return above or below
    return below or above


# PUBLIC_INTERFACE
def build_recommendation(name: str, evaluations: Sequence[Evaluation]) -> str:
    """Recommendation sentence for a member, citing up to two criteria."""
    average = member_average(_ratings(evaluations))
    if average is None:
        return NO_DATA_RECOMMENDATION

    classification = classify_member_average(average)
    focus = _sample(evaluations, prefer_above=classification == MemberClassification.LEVEL_UP)
    detail = f" ({'; '.join(focus)})" if focus else ""

    if classification == MemberClassification.LEVEL_UP:
        return (
            f"{name} demonstrates exceptional skills with most criteria above target{detail}. "
            "Ready for increased responsibilities and leadership opportunities."
        )
    if classification == MemberClassification.NEEDS_SUPPORT:
        return (
            f"{name} should focus on developing foundational skills{detail}. "
            "Recommend targeted training and mentorship to address gaps."
        )
    return (
        f"{name} is progressing well with solid performance across competencies{detail}. "
        "Continue supporting growth in key areas."
    )


def _summarize_sub(sub: SubCompetency, evaluations: Sequence[Evaluation]) -> SubCompetencySummary:
    ratings = _ratings(evaluations)
    average = member_average(ratings)
    return SubCompetencySummary(
        sub_competency_id=sub.id,
        title=sub.title,
        average=average,
        classification=classify_member_average(average) if average is not None else None,
        evaluation_count=len(ratings),
        worst=worst_rating(ratings),
    )


# PUBLIC_INTERFACE
def summarize_member(
    subject: Subject,
    competencies: Sequence[Competency],
    sub_competencies: Sequence[SubCompetency],
    evaluations_by_sub: EvaluationsBySub,
    assessment_id: Optional[str] = None,
) -> MemberSummary:
    """Member-relative summary of one assessment.

    Only evaluations of sub-competencies present in the catalog are in scope.
    """
    comp_summaries: List[CompetencySummary] = []
    in_scope: List[Evaluation] = []

    for comp in ordered_competencies(competencies):
        comp_evals: List[Evaluation] = []
        sub_summaries = []
        for sub in _subs_of(comp, sub_competencies):
            sub_evals = list(evaluations_by_sub.get(sub.id, []))
            comp_evals.extend(sub_evals)
            sub_summaries.append(_summarize_sub(sub, sub_evals))
        average = member_average(_ratings(comp_evals))
        comp_summaries.append(
            CompetencySummary(
                competency_id=comp.id,
                title=comp.title,
                average=average,
                classification=classify_member_average(average) if average is not None else None,
                evaluation_count=len(comp_evals),
                sub_competencies=sub_summaries,
            )
        )
        in_scope.extend(comp_evals)

    ratings = _ratings(in_scope)
    average = member_average(ratings)
    return MemberSummary(
        subject_id=subject.id,
        assessment_id=assessment_id,
        average=average,
        classification=(
            classify_member_average(average) if average is not None else MemberClassification.ON_TRACK
        ),
        recommendation=build_recommendation(subject.name, in_scope),
        distribution=rating_distribution(ratings),
        competencies=comp_summaries,
    )


# --- Team-relative ---

# PUBLIC_INTERFACE
def evaluation_modifier(rating: Rating | str) -> int:
    return EVALUATION_MODIFIERS[Rating(rating)]


# PUBLIC_INTERFACE
def member_score(base_score: float, ratings: Iterable[Rating | str], max_score: float) -> Optional[float]:
    """Base score plus mean modifier, clamped to [0, max_score]; None without ratings."""
    modifiers = [evaluation_modifier(r) for r in ratings]
    if not modifiers:
        return None
    raw = base_score + sum(modifiers) / len(modifiers)
    return max(0.0, min(float(max_score), raw))


# PUBLIC_INTERFACE
def score_ratings(
    strategy: ScoringStrategy,
    ratings: Sequence[Rating | str],
    base_score: Optional[float] = None,
    max_score: Optional[float] = None,
) -> Optional[float]:
    """Score ratings with the requested strategy; None when there are no ratings."""
    if ScoringStrategy(strategy) == ScoringStrategy.MEMBER_RELATIVE:
        return member_average(ratings)
    if base_score is None or max_score is None:
        raise ValueError("team-relative scoring needs base_score and max_score")
    return member_score(base_score, ratings, max_score)


def _team_average(scores: Iterable[Optional[float]]) -> tuple[float, int]:
    present = [s for s in scores if s is not None]
    if not present:
        return 0.0, 0
    return sum(present) / len(present), len(present)


# PUBLIC_INTERFACE
def team_skill_map(
    levels: Sequence[Level],
    competencies: Sequence[Competency],
    sub_competencies: Sequence[SubCompetency],
    members: Sequence[Subject],
    latest: Mapping[str, AssessmentSnapshot],
) -> TeamSkillMap:
    """Team-relative scores per competency and sub-competency.

    `latest` maps subject ID to that member's most recent completed
    assessment. The score ceiling is recomputed from the levels present on the
    team, so the same ratings can chart differently as the team changes.
    """
    levels = list(levels)
    max_score = max_possible_score(levels, [m.current_level_key for m in members])
    by_member: Dict[str, Dict[str, List[CriteriaEvaluation]]] = {
        m.id: latest[m.id].evaluations_by_sub_competency() for m in members if m.id in latest
    }
    bases = {m.id: level_base_score(levels, m.current_level_key) for m in members}

    def score_for(member: Subject, sub_ids: Sequence[str]) -> Optional[float]:
        evals = by_member.get(member.id, {})
        ratings = [ev.evaluation for sid in sub_ids for ev in evals.get(sid, [])]
        return member_score(bases[member.id], ratings, max_score)

    results: List[TeamCompetencyScore] = []
    for comp in ordered_competencies(competencies):
        subs = _subs_of(comp, sub_competencies)
        sub_ids = [s.id for s in subs]

        scores = {m.id: score_for(m, sub_ids) for m in members}
        average, count = _team_average(scores.values())

        sub_scores = []
        for sub in subs:
            sub_avg, sub_count = _team_average(score_for(m, [sub.id]) for m in members)
            sub_scores.append(
                TeamSubCompetencyScore(
                    sub_competency_id=sub.id, title=sub.title, average=sub_avg, member_count=sub_count
                )
            )

        results.append(
            TeamCompetencyScore(
                competency_id=comp.id,
                title=comp.title,
                average=average,
                member_count=count,
                member_scores=[
                    MemberSkillScore(subject_id=m.id, name=m.name, score=scores[m.id] or 0.0)
                    for m in members
                ],
                sub_competencies=sub_scores,
            )
        )

    logger.debug("Team skill map: %d members, %d competencies, max %d", len(members), len(results), max_score)
    return TeamSkillMap(max_score=max_score, member_count=len(members), competencies=results)


# --- Per-assessment scores (trend input) ---

def _snapshot_scores(
    strategy: ScoringStrategy,
    snapshot: AssessmentSnapshot,
    groups: Mapping[str, Sequence[str]],
    base_score: Optional[float],
    max_score: Optional[float],
) -> Dict[str, float]:
    by_sub = snapshot.evaluations_by_sub_competency()
    out: Dict[str, float] = {}
    for key, sub_ids in groups.items():
        ratings = [ev.evaluation for sid in sub_ids for ev in by_sub.get(sid, [])]
        score = score_ratings(strategy, ratings, base_score=base_score, max_score=max_score)
        out[key] = score if score is not None else 0.0
    return out


# PUBLIC_INTERFACE
def competency_scores(
    strategy: ScoringStrategy,
    snapshot: AssessmentSnapshot,
    competencies: Sequence[Competency],
    sub_competencies: Sequence[SubCompetency],
    base_score: Optional[float] = None,
    max_score: Optional[float] = None,
) -> Dict[str, float]:
    """Per-competency score of one assessment; 0 where nothing was rated."""
    groups = {c.id: [s.id for s in _subs_of(c, sub_competencies)] for c in competencies}
    return _snapshot_scores(strategy, snapshot, groups, base_score, max_score)


# PUBLIC_INTERFACE
def sub_competency_scores(
    strategy: ScoringStrategy,
    snapshot: AssessmentSnapshot,
    sub_competencies: Sequence[SubCompetency],
    base_score: Optional[float] = None,
    max_score: Optional[float] = None,
) -> Dict[str, float]:
    """Per-sub-competency score of one assessment; 0 where nothing was rated."""
    groups = {s.id: [s.id] for s in sub_competencies}
    return _snapshot_scores(strategy, snapshot, groups, base_score, max_score)

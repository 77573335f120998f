"""Hiring-gap recommendations from team-relative competency scores.

Classifies each competency of the team skill map into a priority, sorts the
gaps first and builds the "skills to look for" headline.

Thresholds apply to the team-relative scale, where consecutive levels sit two
points apart: below 4 is under a P2 bar, below 6 under a P3 bar.
"""
from __future__ import annotations

from typing import List

from assessment_engine.models.scoring import (
    Priority,
    SkillRecommendation,
    SkillRecommendationReport,
    TeamSkillMap,
)

HIGH_PRIORITY_BELOW = 4.0
MEDIUM_PRIORITY_BELOW = 6.0

PRIORITY_ORDER = {
    Priority.NOT_ASSESSED: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.STRENGTH: 3,
}

_DESCRIPTIONS = {
    Priority.NOT_ASSESSED: "No team members have been evaluated",
    Priority.HIGH: "Team average is below target",
    Priority.MEDIUM: "Room for improvement",
    Priority.STRENGTH: "Team is strong in this area",
}


# PUBLIC_INTERFACE
def classify_priority(avg_score: float, member_count: int) -> Priority:
    if member_count == 0:
        return Priority.NOT_ASSESSED
    if avg_score < HIGH_PRIORITY_BELOW:
        return Priority.HIGH
    if avg_score < MEDIUM_PRIORITY_BELOW:
        return Priority.MEDIUM
    return Priority.STRENGTH


def _headline(recs: List[SkillRecommendation]) -> str:
    not_assessed = next((r for r in recs if r.priority == Priority.NOT_ASSESSED), None)
    if not_assessed:
        return f"Focus on candidates with {not_assessed.competency_title} experience."
    if recs and all(r.priority == Priority.STRENGTH for r in recs):
        return "Your team is well-rounded! Consider candidates who can maintain these strengths."
    high = next((r for r in recs if r.priority == Priority.HIGH), None)
    if high:
        return f"Focus on candidates with {high.competency_title} experience."
    return "Look for candidates who can help elevate team skills."


# PUBLIC_INTERFACE
def recommend_skills(skill_map: TeamSkillMap, limit: int = 3) -> SkillRecommendationReport:
    """Return the competencies to hire for, weakest first.

    Args:
        skill_map: Team-relative scores for the current team.
        limit: Max number of recommendations.

    Returns:
        Report sorted by priority (not assessed, high, medium, strength), then
        ascending score.
    """
    if limit <= 0 or limit > 50:
        limit = 3

    if skill_map.member_count == 0:
        return SkillRecommendationReport(
            recommendations=[],
            headline="Add team members and complete assessments to see skill recommendations.",
        )

    recs: list[SkillRecommendation] = []
    for comp in skill_map.competencies:
        priority = classify_priority(comp.average, comp.member_count)
        recs.append(
            SkillRecommendation(
                competency_id=comp.competency_id,
                competency_title=comp.title,
                avg_score=comp.average,
                priority=priority,
                description=_DESCRIPTIONS[priority],
                member_count=comp.member_count,
                skills_to_look_for=sorted(comp.sub_competencies, key=lambda s: (s.member_count > 0, s.average)),
            )
        )
    recs.sort(key=lambda r: (PRIORITY_ORDER[r.priority], r.avg_score))
    top = recs[:limit]
    return SkillRecommendationReport(recommendations=top, headline=_headline(top))

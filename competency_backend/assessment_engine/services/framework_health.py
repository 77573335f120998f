"""Criteria coverage checks for a competency framework.

Every sub-competency should define criteria at every level of the sequence,
and the lists should be roughly index-aligned so rating hints line up across
levels. A slot is one (sub-competency, level) pair; it is filled when the
criteria lookup (with legacy fallback) returns at least one criterion.
"""
from __future__ import annotations

import math
from typing import Dict, List, Sequence

from assessment_engine.models.domain import Competency, Level, SubCompetency
from assessment_engine.models.scoring import FrameworkHealth, HealthStatus, LevelGap, UnevenCriteria
from assessment_engine.services.levels import get_criteria_for_level_with_fallback
from assessment_engine.services.scoring import ordered_sub_competencies

# Gapped sub-competencies tolerated before the framework needs attention.
PARTIAL_GAP_LIMIT = 3
UNEVEN_RATIO = 3
UNEVEN_SPREAD = 4


def _is_uneven(counts: Dict[str, int]) -> bool:
    filled = [c for c in counts.values() if c > 0]
    if len(filled) < 2:
        return False
    low, high = min(filled), max(filled)
    return high >= low * UNEVEN_RATIO and high - low >= UNEVEN_SPREAD


# PUBLIC_INTERFACE
def framework_health(
    levels: Sequence[Level],
    competencies: Sequence[Competency],
    sub_competencies: Sequence[SubCompetency],
) -> FrameworkHealth:
    """Empty-level gaps, completion percentage and uneven criteria counts.

    Sub-competencies are reported in wizard order.
    """
    titles = {c.id: c.title for c in competencies}
    filled_slots = 0
    gaps: List[LevelGap] = []
    uneven: List[UnevenCriteria] = []

    for sub in ordered_sub_competencies(competencies, sub_competencies):
        competency_title = titles.get(sub.competency_id, "Unknown")
        counts: Dict[str, int] = {}
        empty: List[str] = []
        for lvl in levels:
            count = len(get_criteria_for_level_with_fallback(sub, lvl.key))
            counts[lvl.label] = count
            if count:
                filled_slots += 1
            else:
                empty.append(lvl.label)

        if empty:
            gaps.append(LevelGap(
                competency_title=competency_title,
                sub_competency_id=sub.id,
                sub_competency_title=sub.title,
                empty_levels=empty,
            ))
        if _is_uneven(counts):
            filled = [c for c in counts.values() if c > 0]
            uneven.append(UnevenCriteria(
                competency_title=competency_title,
                sub_competency_id=sub.id,
                sub_competency_title=sub.title,
                counts=counts,
                min=min(filled),
                max=max(filled),
            ))

    total_slots = len(sub_competencies) * len(levels)
    # half-up, so 12.5 -> 13
    completion_pct = math.floor(filled_slots / total_slots * 100 + 0.5) if total_slots else 0

    if not gaps:
        status = HealthStatus.COMPLETE
    elif len(gaps) <= PARTIAL_GAP_LIMIT:
        status = HealthStatus.PARTIAL
    else:
        status = HealthStatus.INCOMPLETE

    return FrameworkHealth(
        status=status,
        competency_count=len(competencies),
        sub_competency_count=len(sub_competencies),
        total_slots=total_slots,
        filled_slots=filled_slots,
        completion_pct=completion_pct,
        gaps=gaps,
        uneven=uneven,
    )

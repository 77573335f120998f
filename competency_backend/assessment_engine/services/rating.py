"""Five-point rating scale: weights, labels and reducers."""
from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel

from assessment_engine.models.domain import Rating


class RatingOption(BaseModel):
    value: Rating
    label: str
    hint: str
    score: int


RATING_OPTIONS: List[RatingOption] = [
    RatingOption(value=Rating.WELL_BELOW, label="Well Below",
                 hint="Significant gaps, substantial development needed", score=1),
    RatingOption(value=Rating.BELOW, label="Below",
                 hint="Partially meets expectations, development needed", score=2),
    RatingOption(value=Rating.TARGET, label="At Target",
                 hint="Meets expectations for the target level", score=3),
    RatingOption(value=Rating.ABOVE, label="Above",
                 hint="Consistently strong, exceeds most expectations", score=4),
    RatingOption(value=Rating.WELL_ABOVE, label="Well Above",
                 hint="Exceptional, exceeds all expectations for this level", score=5),
]

RATING_SCORE_MAP: Dict[Rating, int] = {o.value: o.score for o in RATING_OPTIONS}

DEFAULT_RATING = Rating.TARGET

BELOW_TARGET = frozenset({Rating.WELL_BELOW, Rating.BELOW})
ABOVE_TARGET = frozenset({Rating.ABOVE, Rating.WELL_ABOVE})


# PUBLIC_INTERFACE
def evaluation_to_score(rating: Rating | str) -> int:
    """Numeric weight of a rating, 1 (well_below) to 5 (well_above)."""
    return RATING_SCORE_MAP[Rating(rating)]


# PUBLIC_INTERFACE
def worst_rating(ratings: Iterable[Rating | str]) -> Optional[Rating]:
    """Lowest-scored rating; the first one seen wins a tie."""
    worst: Optional[Rating] = None
    for r in ratings:
        rating = Rating(r)
        if worst is None or RATING_SCORE_MAP[rating] < RATING_SCORE_MAP[worst]:
            worst = rating
    return worst


# PUBLIC_INTERFACE
def fill_unrated(criteria: Iterable[str], evaluations: Mapping[str, Rating]) -> Dict[str, Rating]:
    """Rate every criterion without a rating as target.

    Keeps existing ratings, including ones for criteria not in `criteria`
    (e.g. recorded against another level), and appends defaults in criteria
    order.
    """
    filled: Dict[str, Rating] = {k: Rating(v) for k, v in evaluations.items() if v}
    for criterion in criteria:
        if criterion not in filled:
            filled[criterion] = DEFAULT_RATING
    return filled


# PUBLIC_INTERFACE
def rating_distribution(ratings: Iterable[Rating | str]) -> Optional[Dict[str, float]]:
    """Share of ratings above, at and below target, in percent."""
    above = target = below = 0
    for r in ratings:
        rating = Rating(r)
        if rating in ABOVE_TARGET:
            above += 1
        elif rating in BELOW_TARGET:
            below += 1
        else:
            target += 1
    total = above + target + below
    if total == 0:
        return None
    return {
        "above": above / total * 100,
        "target": target / total * 100,
        "below": below / total * 100,
    }

import pytest

from assessment_engine.models.domain import Rating
from assessment_engine.services.rating import (
    RATING_OPTIONS,
    evaluation_to_score,
    fill_unrated,
    rating_distribution,
    worst_rating,
)


def test_rating_weights_run_one_to_five():
    assert [evaluation_to_score(o.value) for o in RATING_OPTIONS] == [1, 2, 3, 4, 5]
    assert evaluation_to_score("above") == 4


def test_unknown_rating_raises():
    with pytest.raises(ValueError):
        evaluation_to_score("excellent")


def test_worst_rating_first_seen_wins_tie():
    assert worst_rating([Rating.TARGET, Rating.BELOW, Rating.ABOVE]) == Rating.BELOW
    assert worst_rating(["above", "well_above"]) == Rating.ABOVE
    assert worst_rating([]) is None


def test_fill_unrated_defaults_to_target_and_keeps_existing():
    filled = fill_unrated(["A", "B", "C"], {"B": Rating.ABOVE, "Z": Rating.BELOW})
    assert filled == {"B": Rating.ABOVE, "Z": Rating.BELOW, "A": Rating.TARGET, "C": Rating.TARGET}


def test_rating_distribution_percentages():
    dist = rating_distribution([Rating.ABOVE, Rating.TARGET, Rating.BELOW, Rating.WELL_BELOW])
    assert dist == {"above": 25.0, "target": 25.0, "below": 50.0}
    assert rating_distribution([]) is None

# tests/test_property_based.py
"""
Property-based tests for the scoring and level helpers, covering:
  - team-relative scores stay within [0, max_score]
  - member-relative averages stay within [1, 5] and are monotone in ratings
  - level navigation never runs off the sequence
  - trend classification is antisymmetric
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from assessment_engine.models.domain import Rating
from assessment_engine.models.scoring import Trend
from assessment_engine.services.levels import (
    IC_LEVELS,
    MANAGEMENT_LEVELS,
    get_level_n_above,
    get_level_n_below,
    max_possible_score,
)
from assessment_engine.services.rating import RATING_SCORE_MAP, fill_unrated
from assessment_engine.services.scoring import member_average, member_score
from assessment_engine.services.trends import classify_trend

# ---------------------------------------------------------------------------
# Shared strategies
# ---------------------------------------------------------------------------

ALL_RATINGS = list(Rating)
ratings_st = st.lists(st.sampled_from(ALL_RATINGS), min_size=1, max_size=30)
level_seq_st = st.sampled_from([IC_LEVELS, MANAGEMENT_LEVELS])


@st.composite
def team_st(draw):
    """Draw a level sequence and a team of member level keys from it."""
    levels = draw(level_seq_st)
    keys = draw(st.lists(st.sampled_from([lvl.key for lvl in levels]), min_size=1, max_size=8))
    return levels, keys


@given(team=team_st(), ratings=ratings_st)
@settings(max_examples=300)
def test_team_relative_score_is_clamped(team, ratings):
    levels, keys = team
    max_score = max_possible_score(levels, keys)
    for key in keys:
        base = (next(lvl.index for lvl in levels if lvl.key == key) + 1) * 2
        score = member_score(base, ratings, max_score)
        assert 0 <= score <= max_score


@given(ratings=ratings_st)
@settings(max_examples=300)
def test_member_average_within_scale(ratings):
    avg = member_average(ratings)
    assert 1 <= avg <= 5


@given(ratings=ratings_st, index=st.integers(min_value=0, max_value=29))
@settings(max_examples=300)
def test_raising_one_rating_never_lowers_average(ratings, index):
    index %= len(ratings)
    current = ratings[index]
    better = [r for r in ALL_RATINGS if RATING_SCORE_MAP[r] >= RATING_SCORE_MAP[current]]
    raised = list(ratings)
    raised[index] = better[-1]
    assert member_average(raised) >= member_average(ratings)


@given(levels=level_seq_st, n=st.integers(min_value=0, max_value=6), start=st.integers(min_value=0, max_value=4))
def test_level_navigation_stays_in_sequence(levels, n, start):
    key = levels[start % len(levels)].key
    keys = [lvl.key for lvl in levels]
    for found in (get_level_n_above(levels, key, n), get_level_n_below(levels, key, n)):
        assert found is None or found in keys
    index = keys.index(key)
    assert (get_level_n_above(levels, key, n) is None) == (index + n >= len(keys))
    assert (get_level_n_below(levels, key, n) is None) == (index - n < 0)


@given(diff=st.floats(min_value=-5, max_value=5, allow_nan=False, allow_infinity=False))
def test_trend_classification_is_antisymmetric(diff):
    mirrored = {Trend.IMPROVING: Trend.DECLINING, Trend.DECLINING: Trend.IMPROVING, Trend.STABLE: Trend.STABLE}
    assert classify_trend(-diff) == mirrored[classify_trend(diff)]


@given(
    criteria=st.lists(st.text(min_size=1, max_size=10), max_size=8, unique=True),
    rated=st.dictionaries(st.text(min_size=1, max_size=10), st.sampled_from(ALL_RATINGS), max_size=5),
)
def test_fill_unrated_covers_every_criterion(criteria, rated):
    filled = fill_unrated(criteria, rated)
    assert set(criteria) <= set(filled)
    for criterion, rating in rated.items():
        assert filled[criterion] == rating

import pytest

from assessment_engine.models.domain import (
    Assessment,
    AssessmentSnapshot,
    AssessmentStatus,
    CriteriaEvaluation,
    Progress,
    Rating,
)
from assessment_engine.models.scoring import ScoringStrategy, Trend
from assessment_engine.services.levels import IC_LEVELS
from assessment_engine.services.trends import (
    build_trend_report,
    build_trend_series,
    classify_trend,
    compare_first_last,
)


@pytest.mark.parametrize(
    "diff, expected",
    [
        (1.5, Trend.IMPROVING),
        (0.31, Trend.IMPROVING),
        (0.30, Trend.STABLE),
        (1.3 - 1.0, Trend.STABLE),
        (0.0, Trend.STABLE),
        (-0.30, Trend.STABLE),
        (-0.31, Trend.DECLINING),
    ],
)
def test_classify_trend_threshold_is_strict(diff, expected):
    assert classify_trend(diff) == expected


def test_custom_threshold():
    assert classify_trend(0.4, threshold=0.5) == Trend.STABLE


def _snapshot(aid, completed_at, ratings_by_sub, status=AssessmentStatus.COMPLETED, created_at="2024-01-01T00:00:00"):
    assessment = Assessment(
        id=aid,
        subject_id="member-1",
        status=status,
        created_at=created_at,
        updated_at=created_at,
        completed_at=completed_at,
    )
    progress, evaluations = [], []
    for sub_id, ratings in ratings_by_sub.items():
        pid = f"{aid}-{sub_id}"
        progress.append(Progress(
            id=pid, assessment_id=aid, subject_id="member-1", sub_competency_id=sub_id,
            current_level="p2_developing", assessed_at=created_at, updated_at=created_at,
        ))
        evaluations += [
            CriteriaEvaluation(id=f"{pid}-{i}", progress_id=pid, criterion_text=f"c{i}", evaluation=r)
            for i, r in enumerate(ratings)
        ]
    return AssessmentSnapshot(assessment=assessment, progress=progress, evaluations=evaluations)


def test_competency_improving_from_two_to_three_and_a_half(catalog):
    _, competencies, subs = catalog
    snapshots = [
        # listed out of order on purpose
        _snapshot("later", "2024-06-01", {"sub-code": [Rating.ABOVE, Rating.TARGET], "sub-testing": [Rating.ABOVE, Rating.ABOVE, Rating.TARGET, Rating.TARGET]}),
        _snapshot("first", "2024-01-01", {"sub-code": [Rating.BELOW], "sub-testing": [Rating.BELOW]}),
    ]
    report = build_trend_report("member-1", snapshots, competencies, subs, ScoringStrategy.MEMBER_RELATIVE)
    assert [p.assessment_id for p in report.points] == ["first", "later"]

    craft = next(i for i in report.competencies if i.id == "comp-craft")
    assert craft.first_score == 2.0
    assert craft.last_score == 3.5
    assert craft.diff == 1.5
    assert craft.trend == Trend.IMPROVING

    delivery = next(i for i in report.competencies if i.id == "comp-delivery")
    assert delivery.trend == Trend.STABLE
    assert report.counts.improving == 1 and report.counts.stable == 1 and report.counts.declining == 0
    assert report.overall.trend == Trend.IMPROVING


def test_fewer_than_two_points_gives_no_comparison(catalog):
    _, competencies, subs = catalog
    snapshots = [
        _snapshot("only", "2024-01-01", {"sub-code": [Rating.TARGET]}),
        _snapshot("empty", "2024-02-01", {}),
        _snapshot("draft", None, {"sub-code": [Rating.WELL_ABOVE]}, status=AssessmentStatus.DRAFT),
    ]
    report = build_trend_report("member-1", snapshots, competencies, subs, ScoringStrategy.MEMBER_RELATIVE)
    assert [p.assessment_id for p in report.points] == ["only"]
    assert report.competencies == [] and report.overall is None
    assert report.counts.improving == report.counts.stable == report.counts.declining == 0


def test_completion_time_falls_back_to_creation_time(catalog):
    _, competencies, subs = catalog
    snapshots = [
        _snapshot("b", "2024-03-01", {"sub-code": [Rating.TARGET]}),
        _snapshot("a", None, {"sub-code": [Rating.TARGET]}, created_at="2024-02-01"),
    ]
    points = build_trend_series(snapshots, competencies, subs, ScoringStrategy.MEMBER_RELATIVE)
    assert [p.assessment_id for p in points] == ["a", "b"]


def test_team_relative_trend_uses_subject_level(catalog):
    _, competencies, subs = catalog
    snapshots = [
        _snapshot("first", "2024-01-01", {"sub-code": [Rating.BELOW]}),
        _snapshot("last", "2024-06-01", {"sub-code": [Rating.WELL_ABOVE]}),
    ]
    report = build_trend_report(
        "member-1", snapshots, competencies, subs, ScoringStrategy.TEAM_RELATIVE,
        levels=IC_LEVELS, subject_level_key="p2_developing",
    )
    craft = next(i for i in report.competencies if i.id == "comp-craft")
    # base 4, ceiling max(6, 4 + 4) = 8
    assert craft.first_score == 3.0
    assert craft.last_score == 8.0
    assert craft.trend == Trend.IMPROVING


def test_team_relative_trend_needs_levels(catalog):
    _, competencies, subs = catalog
    with pytest.raises(ValueError):
        build_trend_series([], competencies, subs, ScoringStrategy.TEAM_RELATIVE)


def test_sub_competency_granularity(catalog):
    _, competencies, subs = catalog
    snapshots = [
        _snapshot("first", "2024-01-01", {"sub-code": [Rating.ABOVE], "sub-testing": [Rating.TARGET]}),
        _snapshot("last", "2024-06-01", {"sub-code": [Rating.BELOW], "sub-testing": [Rating.TARGET]}),
    ]
    points = build_trend_series(snapshots, competencies, subs, ScoringStrategy.MEMBER_RELATIVE)
    items = compare_first_last(points, [("sub-code", "Code Quality"), ("sub-testing", "Testing")], "sub_competency")
    assert [(i.id, i.diff, i.trend) for i in items] == [
        ("sub-code", -2.0, Trend.DECLINING),
        ("sub-testing", 0.0, Trend.STABLE),
    ]
    assert compare_first_last(points[:1], [("sub-code", "Code Quality")]) == []

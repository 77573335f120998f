from assessment_engine.models.domain import Competency, SubCompetency
from assessment_engine.models.scoring import HealthStatus
from assessment_engine.services.framework_health import framework_health
from assessment_engine.services.levels import IC_LEVELS, MANAGEMENT_LEVELS

COMP = Competency(id="comp-1", title="Craft", order_index=1)


def _sub(sub_id, order=1, competency_id="comp-1", **criteria):
    return SubCompetency(
        id=sub_id, competency_id=competency_id, title=sub_id.title(), order_index=order, level_criteria=criteria
    )


def _full(sub_id, order=1, per_level=2):
    return _sub(sub_id, order, **{lvl.key: [f"{lvl.key} {i}" for i in range(per_level)] for lvl in IC_LEVELS})


def test_catalog_with_gaps_is_partial(catalog):
    _, competencies, subs = catalog
    health = framework_health(IC_LEVELS, competencies, subs)
    assert health.competency_count == 2 and health.sub_competency_count == 3
    assert (health.filled_slots, health.total_slots, health.completion_pct) == (6, 15, 40)
    assert health.status == HealthStatus.PARTIAL

    arch = next(g for g in health.gaps if g.sub_competency_id == "sub-arch")
    # legacy columns count through the criteria fallback
    assert arch.empty_levels == ["P1 Entry", "P4 Advanced", "P5 Principal"]
    assert arch.competency_title == "Delivery"
    assert health.uneven == []


def test_every_level_filled_is_complete():
    health = framework_health(IC_LEVELS, [COMP], [_full("sub-a"), _full("sub-b", 2)])
    assert health.status == HealthStatus.COMPLETE
    assert health.completion_pct == 100
    assert health.gaps == []


def test_more_than_three_gapped_subs_is_incomplete():
    subs = [_sub(f"sub-{i}", i, p1_entry=["Only entry"]) for i in range(4)]
    health = framework_health(IC_LEVELS, [COMP], subs)
    assert len(health.gaps) == 4
    assert health.status == HealthStatus.INCOMPLETE


def test_uneven_criteria_counts():
    lopsided = _sub("sub-a", p1_entry=["one"], p2_developing=[f"c{i}" for i in range(5)])
    close = _sub("sub-b", 2, p1_entry=["a", "b"], p2_developing=[f"c{i}" for i in range(5)])
    health = framework_health(IC_LEVELS, [COMP], [lopsided, close])

    assert [u.sub_competency_id for u in health.uneven] == ["sub-a"]
    item = health.uneven[0]
    assert (item.min, item.max) == (1, 5)
    assert item.counts["P1 Entry"] == 1 and item.counts["P3 Career"] == 0


def test_completion_rounds_half_up():
    subs = [_sub("sub-a", m1_team_lead=["Runs standups"]), _sub("sub-b", 2)]
    health = framework_health(MANAGEMENT_LEVELS, [COMP], subs)
    assert (health.filled_slots, health.total_slots) == (1, 8)
    assert health.completion_pct == 13


def test_unknown_competency_and_empty_framework():
    health = framework_health(IC_LEVELS, [], [_sub("sub-a", competency_id="comp-gone")])
    assert health.gaps[0].competency_title == "Unknown"

    empty = framework_health(IC_LEVELS, [], [])
    assert empty.completion_pct == 0 and empty.total_slots == 0
    assert empty.status == HealthStatus.COMPLETE

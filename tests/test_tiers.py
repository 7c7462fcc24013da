import pytest

from conftest import MONDAY, TUESDAY, make_contractor
from fieldroute.models.domain import DaySchedule, Stop
from fieldroute.services.optimization.base import DayPlan, OptimizationContext
from fieldroute.services.optimization.cross_day import CrossDayRebalance
from fieldroute.services.optimization.intra_day import IntraDayReorder
from fieldroute.services.optimization.selector import evaluate_tiers, get_tiers
from fieldroute.services.optimization.slot_swap import RestrictedSlotSwap
from fieldroute.services.routing.models import DistanceCache, DistanceEdge

WORKDAY = DaySchedule(enabled=True, start="07:00", end="17:00")


def _stop(stop_id, time, *, day=MONDAY, flexibility="flexible", slot="morning", locked=False):
    hours, minutes = time.split(":")
    return Stop(
        id=stop_id,
        day=day,
        current_time=int(hours) * 60 + int(minutes),
        duration_minutes=60,
        flexibility=flexibility,
        locked_for_optimization=locked,
        address_key=stop_id,
        slot=slot,
    )


def _context(plans, positions):
    cache = DistanceCache()
    for a, pa in positions.items():
        for b, pb in positions.items():
            if a != b:
                cache.add(DistanceEdge(a, b, abs(pa - pb)))
    return OptimizationContext(contractor=make_contractor(), days=plans, cache=cache)


def _times(result):
    return {change.job_id: change.new_time for change in result.changes}


def test_intra_day_reorders_flexible_group():
    plan = DayPlan(MONDAY, WORKDAY, [_stop("A", "07:00"), _stop("B", "08:00"), _stop("C", "09:00")])
    context = _context([plan], {"A": 0, "B": 30, "C": 10})

    [result] = IntraDayReorder().evaluate(context)

    assert result.minutes_saved == 20
    assert _times(result) == {"C": "08:10", "B": "09:30"}
    assert not result.requires_approval


def test_intra_day_is_never_worse_than_current_order():
    plan = DayPlan(MONDAY, WORKDAY, [_stop("A", "07:00"), _stop("B", "08:00"), _stop("C", "09:00")])
    context = _context([plan], {"A": 0, "B": 10, "C": 20})

    assert IntraDayReorder().evaluate(context) == []


def test_intra_day_ignores_orders_that_rely_on_unknown_legs():
    plan = DayPlan(MONDAY, WORKDAY, [_stop("A", "07:00"), _stop("B", "08:00"), _stop("C", "09:00")])
    cache = DistanceCache()
    for a, b, minutes in [("A", "B", 10), ("B", "C", 10), ("A", "C", 5)]:
        cache.add(DistanceEdge(a, b, minutes))

    for local_search in (False, True):
        context = OptimizationContext(
            contractor=make_contractor(), days=[plan], cache=cache, local_search=local_search
        )
        assert IntraDayReorder().evaluate(context) == []


def test_intra_day_leaves_locked_stops_alone():
    stops = [
        _stop("A", "07:00"),
        _stop("B", "08:00"),
        _stop("C", "09:00"),
        _stop("L", "12:00", flexibility="locked"),
        _stop("K", "15:00", locked=True),
    ]
    context = _context([DayPlan(MONDAY, WORKDAY, stops)], {"A": 0, "B": 30, "C": 10, "L": 50, "K": 5})

    [result] = IntraDayReorder().evaluate(context)

    assert "L" not in _times(result)
    assert "K" not in _times(result)


def test_restricted_afternoon_group_is_anchored_at_midpoint():
    stops = [
        _stop("P1", "12:30", flexibility="time_restricted", slot="afternoon"),
        _stop("P2", "13:30", flexibility="time_restricted", slot="afternoon"),
        _stop("P3", "14:30", flexibility="time_restricted", slot="afternoon"),
    ]
    context = _context([DayPlan(MONDAY, WORKDAY, stops)], {"P1": 0, "P2": 30, "P3": 10})

    [result] = IntraDayReorder().evaluate(context)

    times = _times(result)
    assert times["P1"] == "12:00"
    assert times["P3"] == "13:10"
    assert times["P2"] == "14:30"


def test_cross_day_moves_flexible_stops_between_days():
    plans = [
        DayPlan(MONDAY, WORKDAY, [_stop("A", "07:00"), _stop("B", "08:00")]),
        DayPlan(TUESDAY, WORKDAY, [_stop("C", "07:00", day=TUESDAY), _stop("D", "08:00", day=TUESDAY)]),
    ]
    context = _context(plans, {"A": 0, "B": 100, "C": 5, "D": 105})

    [result] = CrossDayRebalance(threshold_minutes=5).evaluate(context)

    assert result.minutes_saved == 190
    moved = {change.job_id: (change.new_date, change.new_time) for change in result.changes}
    assert moved["C"] == (MONDAY, "08:05")
    assert moved["B"] == (TUESDAY, "07:00")
    assert moved["D"] == (TUESDAY, "08:05")


def test_cross_day_rejects_layouts_with_unknown_legs():
    plans = [
        DayPlan(MONDAY, WORKDAY, [_stop("A", "07:00"), _stop("B", "08:00")]),
        DayPlan(TUESDAY, WORKDAY, [_stop("C", "07:00", day=TUESDAY), _stop("D", "08:00", day=TUESDAY)]),
    ]
    context = _context(plans, {"A": 0, "B": 100, "C": 5, "D": 105})
    del context.cache.edges["B->D"]
    context.local_search = False

    assert CrossDayRebalance(threshold_minutes=5).evaluate(context) == []


def test_cross_day_needs_two_days_of_flexible_stops():
    plan = DayPlan(MONDAY, WORKDAY, [_stop("A", "07:00"), _stop("B", "08:00"), _stop("C", "09:00")])
    context = _context([plan], {"A": 0, "B": 30, "C": 10})

    assert CrossDayRebalance(threshold_minutes=5).evaluate(context) == []


def _slot_plan():
    return DayPlan(
        MONDAY,
        WORKDAY,
        [
            _stop("M1", "07:00", flexibility="time_restricted"),
            _stop("M2", "08:00", flexibility="time_restricted"),
            _stop("P1", "12:00", flexibility="time_restricted", slot="afternoon"),
            _stop("P2", "13:00", flexibility="time_restricted", slot="afternoon"),
        ],
    )


def test_slot_swap_only_proposes():
    context = _context([_slot_plan()], {"M1": 0, "M2": 50, "P1": 2, "P2": 52})

    [result] = RestrictedSlotSwap(threshold_minutes=5).evaluate(context)

    assert result.requires_approval
    assert result.changes == []
    assert result.minutes_saved == 96
    moves = {s.job_id: (s.current_slot, s.suggested_slot) for s in result.suggestions}
    assert moves == {"P1": ("afternoon", "morning"), "M2": ("morning", "afternoon")}


def test_slot_swap_below_threshold_is_discarded():
    context = _context([_slot_plan()], {"M1": 0, "M2": 3, "P1": 1, "P2": 4})

    assert RestrictedSlotSwap(threshold_minutes=5).evaluate(context) == []


def test_tier_order_for_v1():
    assert [tier.tier for tier in get_tiers("v1")] == [1, 2, 3]


def test_unknown_strategy_version_is_rejected():
    with pytest.raises(ValueError):
        get_tiers("v0")


def test_evaluate_tiers_collects_every_tier():
    context = _context([_slot_plan()], {"M1": 0, "M2": 50, "P1": 2, "P2": 52})

    results = evaluate_tiers(context)

    assert [result.tier for result in results] == [3]


def test_slot_swap_rejects_proposals_with_unknown_legs():
    context = _context([_slot_plan()], {"M1": 0, "M2": 50, "P1": 2, "P2": 52})
    del context.cache.edges["M2->P2"]
    context.local_search = False

    assert RestrictedSlotSwap(threshold_minutes=5).evaluate(context) == []


def _slot_swap_context(m2_to_p2):
    cache = DistanceCache()
    edges = {
        ("M1", "M2"): 5,
        ("P1", "P2"): 5,
        ("M1", "P1"): 1,
        ("P1", "M2"): 4,
        ("M1", "P2"): 9,
        ("M2", "P2"): m2_to_p2,
    }
    for (a, b), minutes in edges.items():
        cache.add(DistanceEdge(a, b, minutes))
        cache.add(DistanceEdge(b, a, minutes))
    return OptimizationContext(contractor=make_contractor(), days=[_slot_plan()], cache=cache)


def test_slot_swap_saving_three_minutes_is_not_proposed():
    assert RestrictedSlotSwap(threshold_minutes=5).evaluate(_slot_swap_context(6)) == []


def test_slot_swap_saving_six_minutes_is_proposed():
    [result] = RestrictedSlotSwap(threshold_minutes=5).evaluate(_slot_swap_context(3))

    assert result.minutes_saved == 6
    assert {s.job_id: s.suggested_slot for s in result.suggestions} == {"P1": "morning", "M2": "afternoon"}

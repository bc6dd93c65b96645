from __future__ import annotations

import logging

import pytest

from mortality_explorer.state.constraints import (
    GLOBAL_CONSTRAINTS,
    PRIORITY_BUSINESS,
    PRIORITY_HARD,
    Constraint,
    apply_constraints,
)
from mortality_explorer.state.views import EXCESS_VIEW, VIEWS, view_defaults


def _state(view: str = "mortality", **overrides):
    state = view_defaults(view)
    state["view"] = view
    state.update(overrides)
    return state


def test_population_disables_baseline_and_interval():
    fixed = apply_constraints(_state(type="population"), GLOBAL_CONSTRAINTS)
    assert fixed["show_baseline"] is False
    assert fixed["show_prediction_interval"] is False


def test_matrix_disables_overlays_then_interval_follows():
    fixed = apply_constraints(_state(chart_style="matrix", maximize=True), GLOBAL_CONSTRAINTS)
    assert fixed["show_baseline"] is False
    assert fixed["show_prediction_interval"] is False
    assert fixed["maximize"] is False


def test_view_flags_follow_view():
    fixed = apply_constraints(_state("excess"), GLOBAL_CONSTRAINTS)
    assert fixed["is_excess"] is True
    assert fixed["is_zscore"] is False


def test_excess_requirement_wins_over_matrix():
    constraints = EXCESS_VIEW.constraints + GLOBAL_CONSTRAINTS
    fixed = apply_constraints(_state("excess", chart_style="matrix"), constraints)
    assert fixed["show_baseline"] is True


@pytest.mark.parametrize(
    "view, overrides",
    [
        ("mortality", {"chart_style": "matrix", "show_logarithmic": True, "maximize": True, "type": "population"}),
        ("excess", {"chart_style": "matrix", "show_logarithmic": True, "cumulative": True, "show_total": True}),
        ("zscore", {"chart_style": "matrix", "cumulative": True, "show_logarithmic": True, "show_percentage": True}),
    ],
)
def test_constraints_are_idempotent(view, overrides):
    constraints = VIEWS.get(view).constraints + GLOBAL_CONSTRAINTS

    once = apply_constraints(_state(view, **overrides), constraints)

    assert apply_constraints(once, constraints) == once
    assert apply_constraints(once, constraints, frozenset(overrides)) == once


def test_soft_constraint_yields_to_user_override():
    state = _state(show_prediction_interval=False)
    assert apply_constraints(state, GLOBAL_CONSTRAINTS)["show_prediction_interval"] is True

    kept = apply_constraints(state, GLOBAL_CONSTRAINTS, frozenset({"show_prediction_interval"}))
    assert kept["show_prediction_interval"] is False


def test_higher_priority_wins_conflicts():
    low = Constraint("low", when=lambda s: True, apply={"x": 1}, priority=PRIORITY_BUSINESS)
    high = Constraint("high", when=lambda s: True, apply={"x": 2}, priority=PRIORITY_HARD)
    assert apply_constraints({"x": 0}, [high, low])["x"] == 2


def test_fix_is_pure():
    state = {"x": 0}
    constraint = Constraint("set-x", when=lambda s: True, apply={"x": 1})
    assert constraint.fix(state) == {"x": 1}
    assert state == {"x": 0}


def test_non_converging_constraints_stop_after_max_passes(caplog):
    counter = Constraint("count", when=lambda s: True, apply=lambda s: {"n": s["n"] + 1})
    with caplog.at_level(logging.WARNING):
        fixed = apply_constraints({"n": 0}, [counter], max_passes=3)
    assert fixed["n"] == 3
    assert "did not converge" in caplog.text

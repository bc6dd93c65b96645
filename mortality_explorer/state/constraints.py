from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Union

logger = logging.getLogger(__name__)

# Priorities: constraints run in ascending order so the higher one has the
# last word on a field both touch
PRIORITY_SOFT = 0
PRIORITY_BUSINESS = 1
PRIORITY_HARD = 2
PRIORITY_VIEW = 3

MAX_PASSES = 10

State = Mapping[str, Any]
Updates = Union[Mapping[str, Any], Callable[[State], Mapping[str, Any]]]


@dataclass(frozen=True)
class Constraint:
    """
    A tagged cross-field rule: when `when(state)` holds, the fields in
    `apply` are forced to the given values.

    `kind` identifies the rule for logging and tests. A soft constraint
    (`allow_user_override=True`) never touches a field the user set.
    """
    kind: str
    when: Callable[[State], bool]
    apply: Updates
    reason: str = ""
    priority: int = PRIORITY_BUSINESS
    allow_user_override: bool = False

    def updates(self, state: State) -> Mapping[str, Any]:
        return self.apply(state) if callable(self.apply) else self.apply

    def fix(self, state: State, user_overrides: FrozenSet[str] = frozenset()) -> Dict[str, Any]:
        """Pure: returns a new state dict with the rule applied if it fires."""
        fixed = dict(state)
        if not self.when(state):
            return fixed
        for field, value in self.updates(state).items():
            if self.allow_user_override and field in user_overrides:
                continue
            fixed[field] = value
        return fixed


def _sync_view_flags(state: State) -> Mapping[str, Any]:
    view = state.get("view")
    return {"is_excess": view == "excess", "is_zscore": view == "zscore"}


GLOBAL_CONSTRAINTS: tuple[Constraint, ...] = (
    Constraint(
        kind="population-disables-baseline",
        when=lambda s: s.get("type") == "population",
        apply={"show_baseline": False, "show_prediction_interval": False},
        reason="Population data has no baseline",
        priority=PRIORITY_HARD,
    ),
    Constraint(
        kind="asmr-le-require-all-ages",
        when=lambda s: s.get("type") in ("asmr", "le") and list(s.get("age_groups") or []) != ["all"],
        apply={"age_groups": ("all",)},
        reason="Age-standardized rates and life expectancy cover all ages",
        priority=PRIORITY_HARD,
    ),
    Constraint(
        kind="matrix-disables-overlays",
        when=lambda s: s.get("chart_style") == "matrix",
        apply={
            "show_baseline": False,
            "show_prediction_interval": False,
            "maximize": False,
            "show_logarithmic": False,
        },
        reason="Matrix style cannot draw baselines, intervals or scale options",
        priority=PRIORITY_HARD,
    ),
    Constraint(
        kind="view-sync-flags",
        when=lambda s: (s.get("is_excess"), s.get("is_zscore")) != (
            s.get("view") == "excess", s.get("view") == "zscore"),
        apply=_sync_view_flags,
        reason="View flags follow the active view",
        priority=PRIORITY_HARD,
    ),
    Constraint(
        kind="baseline-off-disables-pi",
        when=lambda s: not s.get("show_baseline"),
        apply={"show_prediction_interval": False},
        reason="Prediction intervals need a baseline",
        priority=PRIORITY_BUSINESS,
    ),
    Constraint(
        kind="cumulative-off-disables-total",
        when=lambda s: not s.get("cumulative"),
        apply={"show_total": False},
        reason="Totals are only shown for cumulative series",
        priority=PRIORITY_BUSINESS,
    ),
    Constraint(
        kind="baseline-on-restores-pi",
        when=lambda s: s.get("view") == "mortality" and bool(s.get("show_baseline")),
        apply={"show_prediction_interval": True},
        reason="Re-enabling the baseline brings its interval back",
        priority=PRIORITY_SOFT,
        allow_user_override=True,
    ),
)


def apply_constraints(
        state: State,
        constraints: Iterable[Constraint],
        user_overrides: FrozenSet[str] = frozenset(),
        max_passes: int = MAX_PASSES,
) -> Dict[str, Any]:
    """
    Apply `constraints` in ascending priority until nothing changes.

    Repeating to a fixpoint lets a rule react to a field another rule just
    forced (matrix turns the baseline off, then the interval follows).
    The result is idempotent: applying it again returns an equal state.
    """
    ordered: List[Constraint] = sorted(constraints, key=lambda c: c.priority)
    current = dict(state)

    for _ in range(max_passes):
        before = current
        for constraint in ordered:
            current = constraint.fix(current, user_overrides)
        if current == before:
            return current

    logger.warning(
        "Constraints did not converge",
        extra={"max_passes": max_passes, "kinds": [c.kind for c in ordered]},
    )
    return current

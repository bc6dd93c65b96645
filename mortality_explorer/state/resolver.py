from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Set, Tuple

from .constraints import GLOBAL_CONSTRAINTS, Constraint, apply_constraints
from .fields import (
    FIELDS,
    FIELDS_BY_NAME,
    LIST,
    VIEW_SCOPED_FIELDS,
    RawQuery,
    decode_query,
    encode_fields,
    normalize_query,
    to_query_string,
)
from .views import VIEWS, UIFieldState, ViewDefinition, ViewRegistry

logger = logging.getLogger(__name__)

SOURCE_USER = "user"
SOURCE_SYSTEM = "system"
SOURCE_CONSTRAINT = "constraint"


@dataclass(frozen=True)
class StateChange:
    """
    One requested (or constraint-forced) field edit.

    `source` is "user" for edits that should count as overrides, "system"
    for repairs made on the user's behalf (date snapping, auto-fix) and
    "constraint" for values forced during resolution.
    """
    field: str
    value: Any
    source: str = SOURCE_USER
    reason: str = ""


@dataclass(frozen=True)
class ResolvedState:
    """
    Immutable snapshot of the explorer state after constraints.

    Only StateStore.apply_resolved_state stores one; every edit goes through
    the resolver and produces a fresh snapshot.
    """
    values: Mapping[str, Any]
    view: str
    user_overrides: FrozenSet[str] = frozenset()
    ui: Mapping[str, UIFieldState] = field(default_factory=dict)
    changes: Tuple[StateChange, ...] = ()

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)

    def is_user_set(self, name: str) -> bool:
        return name in self.user_overrides


def _normalize(values: Mapping[str, Any]) -> Dict[str, Any]:
    normalized = dict(values)
    for spec in FIELDS:
        if spec.kind == LIST and normalized.get(spec.name) is not None:
            normalized[spec.name] = tuple(normalized[spec.name])
    return normalized


def compute_ui(view: ViewDefinition, values: Mapping[str, Any]) -> Dict[str, UIFieldState]:
    """Visible/disabled state of each control for the resolved values."""
    ui: Dict[str, UIFieldState] = {spec.name: UIFieldState() for spec in FIELDS}
    ui.update(view.ui)

    def _disable(name: str) -> None:
        ui[name] = UIFieldState(visible=ui[name].visible, disabled=True)

    metric = values.get("type")
    if metric == "population" or values.get("chart_style") == "matrix":
        _disable("show_baseline")
    if not values.get("show_baseline"):
        _disable("show_prediction_interval")
        _disable("baseline_method")
    if not values.get("cumulative"):
        _disable("show_total")
    if metric in ("asmr", "le"):
        _disable("age_groups")
    if metric is None or "asmr" not in metric:
        ui["standard_population"] = UIFieldState(visible=False)
    return ui


class StateResolver:
    """
    Turns queries and edits into ResolvedState snapshots.

    Resolution is a pure function of (view, values, overrides): view
    defaults are filled in, then view and global constraints are applied
    to a fixpoint. Nothing here touches a store.
    """

    def __init__(
            self,
            registry: ViewRegistry = VIEWS,
            global_constraints: Iterable[Constraint] = GLOBAL_CONSTRAINTS,
    ):
        self.registry = registry
        self.global_constraints = tuple(global_constraints)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------
    def resolve_initial(self, query: RawQuery | str | None) -> ResolvedState:
        q = normalize_query(query)
        view = self.registry.detect(q)
        explicit = decode_query(q)

        metric = explicit.get("type", FIELDS_BY_NAME["type"].default)
        view = self._compatible_view(view, metric)

        values = self.registry.defaults_for(view)
        values.update(explicit)
        changes = [StateChange(name, value, SOURCE_USER, "query") for name, value in explicit.items()]
        return self._finalize(view, values, set(explicit), changes)

    def resolve_change(self, change: StateChange, current: ResolvedState) -> ResolvedState:
        return self.resolve_changes([change], current)

    def resolve_changes(self, changes: Iterable[StateChange], current: ResolvedState) -> ResolvedState:
        """
        Apply several edits as one resolution. A view edit is applied first
        (through resolve_view_change), the field edits on top of it.
        """
        changes = list(changes)
        view_changes = [c for c in changes if c.field == "view"]
        field_changes = [c for c in changes if c.field != "view"]

        state = current
        if view_changes:
            state = self.resolve_view_change(view_changes[-1].value, current, source=view_changes[-1].source)
            if not field_changes:
                return state

        values = dict(state.values)
        overrides: Set[str] = set(state.user_overrides)
        for change in field_changes:
            if change.field not in FIELDS_BY_NAME:
                raise KeyError(f"Unknown state field '{change.field}'")
            values[change.field] = change.value
            if change.source == SOURCE_USER:
                overrides.add(change.field)

        view = self._compatible_view(state.view, values.get("type"))
        if view != state.view:
            self._reset_view_scoped(view, values, overrides)

        return self._finalize(view, values, overrides, list(changes))

    def resolve_view_change(
            self,
            view_name: str,
            current: ResolvedState,
            source: str = SOURCE_USER,
    ) -> ResolvedState:
        """
        Switch views. Overrides of view-scoped fields are forgotten and those
        fields take the new view's defaults; data selection is kept.

        :raises KeyError: if `view_name` is not registered
        """
        target = self.registry.get(view_name)
        values = dict(current.values)
        overrides: Set[str] = set(current.user_overrides)

        if not target.is_metric_compatible(values.get("type")):
            logger.info(
                "Metric not available in view; using default metric",
                extra={"view": view_name, "metric": values.get("type")},
            )
            values["type"] = FIELDS_BY_NAME["type"].default
            overrides.discard("type")

        self._reset_view_scoped(view_name, values, overrides)
        changes = [StateChange("view", view_name, source)]
        return self._finalize(view_name, values, overrides, changes)

    # ------------------------------------------------------------------
    # Query encoding
    # ------------------------------------------------------------------
    def to_query_pairs(self, resolved: ResolvedState) -> List[Tuple[str, str]]:
        """
        Minimal query reproducing `resolved`: the view marker plus every
        user-set field whose value differs from the view default.
        """
        view = self.registry.get(resolved.view)
        pairs: List[Tuple[str, str]] = []
        if view.url_param:
            pairs.append((view.url_param, "1"))
        pairs.extend(encode_fields(
            resolved.values, resolved.user_overrides, self.registry.defaults_for(resolved.view),
        ))
        return pairs

    def to_query_string(self, resolved: ResolvedState) -> str:
        return to_query_string(self.to_query_pairs(resolved))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _compatible_view(self, view_name: str, metric: Optional[str]) -> str:
        view = self.registry.get(view_name)
        if view.is_metric_compatible(metric):
            return view_name
        fallback = self.registry.default.name
        logger.info(
            "Metric not available in view; falling back",
            extra={"view": view_name, "metric": metric, "fallback": fallback},
        )
        return fallback

    def _reset_view_scoped(self, view_name: str, values: Dict[str, Any], overrides: Set[str]) -> None:
        defaults = self.registry.defaults_for(view_name)
        for name in VIEW_SCOPED_FIELDS:
            values[name] = defaults[name]
        overrides.difference_update(VIEW_SCOPED_FIELDS)

    def _finalize(
            self,
            view_name: str,
            values: Dict[str, Any],
            overrides: Set[str],
            changes: List[StateChange],
    ) -> ResolvedState:
        view = self.registry.get(view_name)
        values = _normalize(values)
        values["view"] = view_name

        frozen_overrides = frozenset(overrides)
        fixed = _normalize(apply_constraints(
            values, view.constraints + self.global_constraints, frozen_overrides,
        ))

        forced = [name for name in fixed if fixed.get(name) != values.get(name)]
        changes.extend(StateChange(name, fixed[name], SOURCE_CONSTRAINT) for name in forced)

        logger.debug(
            "Resolved explorer state",
            extra={"view": view_name, "overrides": sorted(frozen_overrides), "forced": forced},
        )
        return ResolvedState(
            values=MappingProxyType(fixed),
            view=view_name,
            user_overrides=frozen_overrides,
            ui=MappingProxyType(compute_ui(view, fixed)),
            changes=tuple(changes),
        )

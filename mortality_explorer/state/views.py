from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .constraints import PRIORITY_BUSINESS, PRIORITY_VIEW, Constraint
from .fields import RawQuery, base_defaults, normalize_query

MORTALITY = "mortality"
EXCESS = "excess"
ZSCORE = "zscore"


@dataclass(frozen=True)
class UIFieldState:
    visible: bool = True
    disabled: bool = False


@dataclass(frozen=True)
class ViewDefinition:
    """
    A mutually exclusive explorer mode.

    - defaults: overrides on top of the base field defaults
    - constraints: rules that only hold while this view is active
    - ui: per-control visibility/disabled state for this view
    - url_param: query key that selects the view when set to "1"
    """
    name: str
    label: str
    url_param: Optional[str] = None
    defaults: Mapping[str, Any] = field(default_factory=dict)
    constraints: Tuple[Constraint, ...] = ()
    ui: Mapping[str, UIFieldState] = field(default_factory=dict)
    compatible_metrics: Tuple[str, ...] = ("deaths", "cmr", "asmr", "le", "population")

    def is_metric_compatible(self, metric: Optional[str]) -> bool:
        return metric in self.compatible_metrics


class ViewRegistry:
    """
    Registry of view definitions.

    Enforces that each view name and each url_param is unique, and keeps
    registration order so the UI can list views without a hardcoded list.
    The first registered view is the fallback when nothing else matches.
    """

    def __init__(self):
        self._views: Dict[str, ViewDefinition] = {}

    def register(self, view: ViewDefinition) -> None:
        """
        :raises TypeError: if `view` is not a ViewDefinition
        :raises ValueError: if the name or url_param is already registered
        """
        if not isinstance(view, ViewDefinition):
            raise TypeError(f"View '{view!r}' must be a ViewDefinition")
        if view.name in self._views:
            raise ValueError(f"View '{view.name}' already registered")
        if view.url_param and any(v.url_param == view.url_param for v in self._views.values()):
            raise ValueError(f"URL parameter '{view.url_param}' already used by another view")
        self._views[view.name] = view

    def get(self, name: str) -> ViewDefinition:
        try:
            return self._views[name]
        except KeyError:
            raise KeyError(f"View '{name}' not found")

    def __contains__(self, name: object) -> bool:
        return name in self._views

    @property
    def default(self) -> ViewDefinition:
        return next(iter(self._views.values()))

    def all_views(self) -> List[ViewDefinition]:
        return list(self._views.values())

    def defaults_for(self, name: str) -> Dict[str, Any]:
        """Base defaults overlaid with the view's own defaults."""
        values = base_defaults()
        values.update(self.get(name).defaults)
        return values

    def detect(self, query: RawQuery | str | None) -> str:
        """
        Pick the view a query selects. Precedence: zscore marker, excess
        marker, legacy isExcess=true, explicit view=<name>, default view.
        """
        q = normalize_query(query)

        def _flag(key: str) -> Optional[str]:
            values = q.get(key)
            return values[-1] if values else None

        # zscore is checked first so "?e=1&zs=1" resolves deterministically
        for view in sorted(self._views.values(), key=lambda v: v.name != ZSCORE):
            if view.url_param and _flag(view.url_param) == "1":
                return view.name
        if _flag("isExcess") == "true" and EXCESS in self._views:
            return EXCESS
        explicit = _flag("view")
        if explicit in self._views:
            return explicit
        return self.default.name


_HIDDEN = UIFieldState(visible=False)
_LOCKED = UIFieldState(visible=True, disabled=True)

MORTALITY_VIEW = ViewDefinition(
    name=MORTALITY,
    label="Mortality",
)

EXCESS_VIEW = ViewDefinition(
    name=EXCESS,
    label="Excess mortality",
    url_param="e",
    defaults={
        "chart_style": "bar",
        "show_baseline": True,
        "show_prediction_interval": False,
        "show_percentage": True,
        "cumulative": False,
        "show_logarithmic": False,
    },
    constraints=(
        Constraint(
            kind="excess-requires-baseline",
            when=lambda s: not s.get("show_baseline"),
            apply={"show_baseline": True},
            reason="Excess is measured against a baseline",
            priority=PRIORITY_VIEW,
        ),
        Constraint(
            kind="excess-disables-logarithmic",
            when=lambda s: bool(s.get("show_logarithmic")),
            apply={"show_logarithmic": False},
            reason="Excess values can be negative",
            priority=PRIORITY_VIEW,
        ),
        Constraint(
            kind="cumulative-off-disables-total",
            when=lambda s: not s.get("cumulative"),
            apply={"show_total": False},
            reason="Totals are only shown for cumulative excess",
            priority=PRIORITY_BUSINESS,
        ),
    ),
    ui={
        "show_baseline": _LOCKED,
        "show_logarithmic": _HIDDEN,
    },
    compatible_metrics=("deaths", "cmr", "asmr"),
)

ZSCORE_VIEW = ViewDefinition(
    name=ZSCORE,
    label="Z-score",
    url_param="zs",
    defaults={
        "chart_style": "line",
        "show_baseline": True,
        "show_prediction_interval": False,
        "show_logarithmic": False,
    },
    constraints=(
        Constraint(
            kind="zscore-requires-baseline",
            when=lambda s: not s.get("show_baseline"),
            apply={"show_baseline": True},
            reason="Z-scores are computed against a baseline",
            priority=PRIORITY_VIEW,
        ),
        Constraint(
            kind="zscore-disables-logarithmic",
            when=lambda s: bool(s.get("show_logarithmic")),
            apply={"show_logarithmic": False},
            reason="Z-scores can be negative",
            priority=PRIORITY_VIEW,
        ),
        Constraint(
            kind="zscore-disables-cumulative-percentage",
            when=lambda s: bool(s.get("cumulative")) or bool(s.get("show_percentage")),
            apply={"cumulative": False, "show_percentage": False},
            reason="Z-scores are neither cumulative nor relative",
            priority=PRIORITY_VIEW,
        ),
        Constraint(
            kind="zscore-disallows-matrix",
            when=lambda s: s.get("chart_style") == "matrix",
            apply={"chart_style": "line"},
            reason="Z-scores are drawn as lines or bars",
            priority=PRIORITY_VIEW,
        ),
    ),
    ui={
        "show_baseline": _LOCKED,
        "show_logarithmic": _HIDDEN,
        "cumulative": _HIDDEN,
        "show_total": _HIDDEN,
        "show_percentage": _HIDDEN,
        "show_prediction_interval": _HIDDEN,
    },
    compatible_metrics=("deaths", "cmr", "asmr"),
)


def build_view_registry() -> ViewRegistry:
    registry = ViewRegistry()
    registry.register(MORTALITY_VIEW)
    registry.register(EXCESS_VIEW)
    registry.register(ZSCORE_VIEW)
    return registry


VIEWS = build_view_registry()


def detect_view(query: RawQuery | str | None) -> str:
    return VIEWS.detect(query)


def view_defaults(name: str) -> Dict[str, Any]:
    return VIEWS.defaults_for(name)

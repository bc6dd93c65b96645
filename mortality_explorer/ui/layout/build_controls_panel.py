from __future__ import annotations

from typing import List

import dash_bootstrap_components as dbc
from dash import dcc, html

from mortality_explorer.core.labels import METRICS
from mortality_explorer.core.period import GRANULARITIES
from mortality_explorer.state.fields import CHART_STYLES, base_defaults
from mortality_explorer.state.views import ViewRegistry
from mortality_explorer.ui.ids import IDs

# Checklist option value -> boolean state field
OPTION_FIELDS = {
    "baseline": "show_baseline",
    "pi": "show_prediction_interval",
    "cumulative": "cumulative",
    "total": "show_total",
    "percentage": "show_percentage",
    "log": "show_logarithmic",
    "maximize": "maximize",
    "labels": "show_labels",
}

_OPTION_LABELS = {
    "baseline": "Baseline",
    "pi": "95% prediction interval",
    "cumulative": "Cumulative",
    "total": "Total",
    "percentage": "Percentage",
    "log": "Logarithmic scale",
    "maximize": "Maximize",
    "labels": "Legend",
}


def _labelled(label: str, control) -> html.Div:
    return html.Div([dbc.Label(label, className="mb-1"), control], className="mb-3")


def build_controls_panel(registry: ViewRegistry, countries: List[str]) -> dbc.Card:
    defaults = base_defaults()
    return dbc.Card(
        dbc.CardBody(
            [
                _labelled(
                    "View",
                    dbc.RadioItems(
                        id=IDs.Control.VIEW_SELECT,
                        options=[{"label": v.label, "value": v.name} for v in registry.all_views()],
                        value=registry.default.name,
                    ),
                ),
                _labelled(
                    "Countries",
                    dcc.Dropdown(
                        id=IDs.Control.COUNTRY_SELECT,
                        options=[{"label": c, "value": c} for c in countries],
                        value=list(defaults["countries"]),
                        multi=True,
                    ),
                ),
                _labelled(
                    "Metric",
                    dcc.Dropdown(
                        id=IDs.Control.TYPE_SELECT,
                        options=[{"label": m, "value": m} for m in METRICS],
                        value=defaults["type"],
                        clearable=False,
                    ),
                ),
                _labelled(
                    "Period",
                    dcc.Dropdown(
                        id=IDs.Control.CHART_TYPE_SELECT,
                        options=[{"label": g.replace("_", " "), "value": g} for g in GRANULARITIES],
                        value=defaults["chart_type"],
                        clearable=False,
                    ),
                ),
                _labelled(
                    "Style",
                    dcc.Dropdown(
                        id=IDs.Control.STYLE_SELECT,
                        options=[{"label": s, "value": s} for s in CHART_STYLES],
                        value=defaults["chart_style"],
                        clearable=False,
                    ),
                ),
                _labelled(
                    "Options",
                    dbc.Checklist(
                        id=IDs.Control.OPTIONS_CHECKLIST,
                        options=[{"label": _OPTION_LABELS[k], "value": k} for k in OPTION_FIELDS],
                        value=[k for k, f in OPTION_FIELDS.items() if defaults[f]],
                    ),
                ),
            ]
        ),
    )

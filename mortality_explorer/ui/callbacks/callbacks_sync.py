from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, List, Mapping, Optional

import dash
from dash import Input, Output, exceptions

from mortality_explorer.state.resolver import ResolvedState, StateChange
from mortality_explorer.ui.ids import IDs
from mortality_explorer.ui.layout.build_controls_panel import OPTION_FIELDS

if TYPE_CHECKING:
    from mortality_explorer.ui.config import AppConfig

logger = logging.getLogger(__name__)

# Control id -> state field for the single-valued selectors
_CONTROL_FIELDS = {
    IDs.Control.VIEW_SELECT: "view",
    IDs.Control.COUNTRY_SELECT: "countries",
    IDs.Control.TYPE_SELECT: "type",
    IDs.Control.CHART_TYPE_SELECT: "chart_type",
    IDs.Control.STYLE_SELECT: "chart_style",
}


def _controls_from_state(resolved: ResolvedState) -> tuple:
    values = resolved.values
    return (
        resolved.view,
        list(values["countries"]),
        values["type"],
        values["chart_type"],
        values["chart_style"],
        [key for key, field in OPTION_FIELDS.items() if values.get(field)],
    )


def _changes_from_controls(
        triggered_id: Optional[str],
        controls: Mapping[str, Any],
        current: Mapping[str, Any],
) -> List[StateChange]:
    """
    Pure helper: turn the control that fired into user edits.

    The options checklist is diffed against the current values so only the
    toggled flag becomes an edit (and an override).
    """
    if triggered_id in _CONTROL_FIELDS:
        field = _CONTROL_FIELDS[triggered_id]
        value = controls.get(triggered_id)
        if field == "countries":
            value = tuple(value or ())
        if value is None or (field != "view" and current.get(field) == value):
            return []
        return [StateChange(field, value)]

    if triggered_id == IDs.Control.OPTIONS_CHECKLIST:
        selected = set(controls.get(triggered_id) or [])
        return [
            StateChange(field, key in selected)
            for key, field in OPTION_FIELDS.items()
            if bool(current.get(field)) != (key in selected)
        ]
    return []


def register_sync_callbacks(app: dash.Dash, ctx: AppConfig) -> None:
    # ---------------------------------------------------------
    # Query string <-> controls
    # ---------------------------------------------------------
    @app.callback(
        Output(IDs.Control.URL, "search"),
        Output(IDs.Control.VIEW_SELECT, "value"),
        Output(IDs.Control.COUNTRY_SELECT, "value"),
        Output(IDs.Control.TYPE_SELECT, "value"),
        Output(IDs.Control.CHART_TYPE_SELECT, "value"),
        Output(IDs.Control.STYLE_SELECT, "value"),
        Output(IDs.Control.OPTIONS_CHECKLIST, "value"),
        Input(IDs.Control.URL, "search"),
        Input(IDs.Control.VIEW_SELECT, "value"),
        Input(IDs.Control.COUNTRY_SELECT, "value"),
        Input(IDs.Control.TYPE_SELECT, "value"),
        Input(IDs.Control.CHART_TYPE_SELECT, "value"),
        Input(IDs.Control.STYLE_SELECT, "value"),
        Input(IDs.Control.OPTIONS_CHECKLIST, "value"),
    )
    def sync_query_and_controls(search, view, countries, metric, chart_type, style, options):
        current = ctx.resolver.resolve_initial(search or "")
        triggered_id = dash.ctx.triggered_id

        # Page load / back-forward: the query string wins
        if triggered_id in (None, IDs.Control.URL):
            return (dash.no_update, *_controls_from_state(current))

        controls = {
            IDs.Control.VIEW_SELECT: view,
            IDs.Control.COUNTRY_SELECT: countries,
            IDs.Control.TYPE_SELECT: metric,
            IDs.Control.CHART_TYPE_SELECT: chart_type,
            IDs.Control.STYLE_SELECT: style,
            IDs.Control.OPTIONS_CHECKLIST: options,
        }
        changes = _changes_from_controls(triggered_id, controls, current.values)
        if not changes:
            raise exceptions.PreventUpdate

        resolved = ctx.resolver.resolve_changes(changes, current)
        query = ctx.resolver.to_query_string(resolved)
        logger.info(
            "Controls changed explorer state",
            extra={"trigger": triggered_id, "fields": [c.field for c in changes], "query": query},
        )
        return (f"?{query}" if query else "", *_controls_from_state(resolved))

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import dash
from dash import Input, Output

from mortality_explorer.core.exceptions import DatasetFetchError
from mortality_explorer.services.explorer_controller import ExplorerController
from mortality_explorer.ui.figure import build_figure, message_figure
from mortality_explorer.ui.ids import IDs

if TYPE_CHECKING:
    from mortality_explorer.ui.config import AppConfig

logger = logging.getLogger(__name__)


def _status_text(controller: ExplorerController) -> str:
    if controller.message:
        return controller.message
    labels = controller.labels
    if not labels:
        return "No data loaded."
    return f"{len(labels)} periods available ({labels[0]} to {labels[-1]})"


def _search_update(search: str | None, query: str):
    """Repaired query for the address bar, or no_update when it already matches."""
    if (search or "").lstrip("?") == query:
        return dash.no_update
    return f"?{query}" if query else ""


def register_render_callbacks(app: dash.Dash, ctx: AppConfig) -> None:
    # ---------------------------------------------------------
    # Main figure: query string -> figure
    # ---------------------------------------------------------
    @app.callback(
        Output(IDs.Control.MAIN_GRAPH, "figure"),
        Output(IDs.Control.STATUS_BAR, "children"),
        Output(IDs.Control.QUERY_TEXT, "children"),
        Output(IDs.Control.URL, "search", allow_duplicate=True),
        Input(IDs.Control.URL, "search"),
        prevent_initial_call="initial_duplicate",
    )
    def update_main_graph_from_query(search: str | None):
        controller = ctx.build_controller(renderer=build_figure)
        controller.load(search or "")

        try:
            asyncio.run(controller.refresh())
        except DatasetFetchError as e:
            logger.warning("Dataset fetch failed", extra={"error": str(e)})
            return message_figure("Data could not be loaded.", str(e)), "Error", "", dash.no_update
        except Exception:
            logger.exception("Unexpected error while rendering chart", extra={"query": search})
            return message_figure("Something went wrong while rendering this chart."), "Error", "", dash.no_update

        # Fixes applied while loading are pushed back so the URL matches the chart
        query = controller.query_string()
        return (
            controller.figure,
            _status_text(controller),
            f"?{query}" if query else "",
            _search_update(search, query),
        )

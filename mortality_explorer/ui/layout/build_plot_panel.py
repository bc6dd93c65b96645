from __future__ import annotations

import dash_bootstrap_components as dbc
from dash import dcc, html

from mortality_explorer.services.loading import DEFAULT_DELAY_MS
from mortality_explorer.ui.ids import IDs


def build_plot_panel(delay_ms: int = DEFAULT_DELAY_MS) -> dbc.Card:
    return dbc.Card(
        [
            dbc.CardHeader(
                html.Div(
                    [
                        html.Strong("Chart"),
                        html.Small(id=IDs.Control.STATUS_BAR, className="ms-3 text-muted"),
                    ],
                    className="d-flex align-items-center",
                ),
                className="p-2",
            ),
            dbc.CardBody(
                [
                    dcc.Loading(
                        id=IDs.Control.MAIN_GRAPH_LOADING,
                        type="default",
                        # Fast refreshes finish before the spinner appears
                        delay_show=delay_ms,
                        children=dcc.Graph(
                            id=IDs.Control.MAIN_GRAPH,
                            style={"height": "650px"},
                            config={"responsive": True},
                        ),
                    ),
                    html.Code(id=IDs.Control.QUERY_TEXT, className="small text-muted"),
                ],
            ),
        ],
    )

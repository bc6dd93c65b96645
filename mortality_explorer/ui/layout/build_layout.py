from __future__ import annotations

from typing import TYPE_CHECKING

import dash_bootstrap_components as dbc
from dash import dcc, html

from mortality_explorer.ui.ids import IDs
from mortality_explorer.ui.layout.build_controls_panel import build_controls_panel
from mortality_explorer.ui.layout.build_plot_panel import build_plot_panel

if TYPE_CHECKING:
    from mortality_explorer.ui.config import AppConfig


def build_layout(ctx: AppConfig):
    return dbc.Container(
        fluid=True,
        children=[
            dcc.Location(id=IDs.Control.URL, refresh=False),
            dbc.Navbar(
                dbc.Container(html.H2(ctx.explorer_config.ui_title, className="mb-0"), fluid=True),
                className="mb-3",
            ),
            dbc.Row(
                [
                    dbc.Col(build_controls_panel(ctx.resolver.registry, ctx.countries), md=3),
                    dbc.Col(build_plot_panel(ctx.explorer_config.loading_delay_ms), md=9),
                ]
            ),
        ],
    )

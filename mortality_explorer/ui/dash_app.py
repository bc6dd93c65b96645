from __future__ import annotations

import logging
from pathlib import Path
from typing import List

import dash_bootstrap_components as dbc
from dash import Dash

from mortality_explorer.config.loader import load_config
from mortality_explorer.core.exceptions import ConfigError
from mortality_explorer.services.dataset_service import CsvDatasetFetcher
from mortality_explorer.state.resolver import StateResolver
from mortality_explorer.ui.callbacks.callbacks_render import register_render_callbacks
from mortality_explorer.ui.callbacks.callbacks_sync import register_sync_callbacks
from mortality_explorer.ui.config import AppConfig
from mortality_explorer.ui.layout.build_layout import build_layout

logger = logging.getLogger(__name__)


def _discover_countries(data_root: Path) -> List[str]:
    """Country codes that have a directory under any granularity."""
    countries = set()
    for granularity_dir in data_root.iterdir():
        if granularity_dir.is_dir():
            countries.update(p.name for p in granularity_dir.iterdir() if p.is_dir())
    return sorted(countries)


def create_dash_app(config_root: Path | str = Path("config")) -> Dash:
    config_root = Path(config_root)

    # 1) Load Config
    explorer_config = load_config(config_root)
    if explorer_config.data_root is None or not explorer_config.data_root.is_dir():
        raise ConfigError(f"data_root is not a directory: {explorer_config.data_root}")

    # 2) App Context
    ctx = AppConfig(
        config_root=config_root,
        explorer_config=explorer_config,
        fetcher=CsvDatasetFetcher(explorer_config.data_root),
        resolver=StateResolver(),
        countries=_discover_countries(explorer_config.data_root),
    )
    ctx.validate()

    logger.info(
        "Creating Dash app",
        extra={"config_root": str(config_root), "n_countries": len(ctx.countries)},
    )

    app = Dash(__name__, external_stylesheets=[dbc.themes.FLATLY])
    app.title = explorer_config.ui_title
    app.layout = build_layout(ctx)

    # Register callbacks
    register_sync_callbacks(app, ctx)
    register_render_callbacks(app, ctx)

    return app

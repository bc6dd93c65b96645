from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from mortality_explorer.config.model import ExplorerConfig
from mortality_explorer.services.access import FeatureAccess
from mortality_explorer.services.aggregation import aggregate_chart_data
from mortality_explorer.services.data_orchestrator import DataOrchestrator
from mortality_explorer.services.dataset_service import CsvDatasetFetcher
from mortality_explorer.services.explorer_controller import ExplorerController, Renderer
from mortality_explorer.services.loading import LoadingIndicator
from mortality_explorer.state.resolver import StateResolver
from mortality_explorer.state.store import StateStore


@dataclass
class AppConfig:
    config_root: Path
    explorer_config: ExplorerConfig
    fetcher: Optional[CsvDatasetFetcher] = None
    resolver: StateResolver = field(default_factory=StateResolver)
    countries: List[str] = field(default_factory=list)

    def validate(self) -> None:
        """Ensure all required services are attached before the app starts."""
        if self.fetcher is None:
            raise RuntimeError("AppConfig.fetcher must be initialized.")

    def build_controller(self, renderer: Optional[Renderer] = None) -> ExplorerController:
        """
        Fresh controller per request: the query string carries the whole
        state, only the dataset file cache is shared between requests.
        """
        self.validate()
        orchestrator = DataOrchestrator(
            self.fetcher,
            aggregate_chart_data,
            loading=LoadingIndicator(self.explorer_config.loading_delay_ms),
        )
        return ExplorerController(
            orchestrator,
            store=StateStore(self.resolver),
            access=FeatureAccess(self.explorer_config.access_tier),
            renderer=renderer,
            max_countries=self.explorer_config.max_countries,
        )

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from mortality_explorer.core.exceptions import ConfigError
from mortality_explorer.services.access import TIERS
from mortality_explorer.services.loading import DEFAULT_DELAY_MS
from mortality_explorer.state.validation import DEFAULT_MAX_COUNTRIES


@dataclass
class ExplorerConfig:
    """
    Parsed global.json.

    - ui_title: browser tab / navbar title
    - data_root: directory the CSV dataset fetcher reads from
    - loading_delay_ms: how long an update may run before the overlay shows
    - max_countries: upper bound on compared jurisdictions
    - access_tier: tier used for gated features (public/registered/pro)
    """
    ui_title: str = "Mortality Explorer"
    data_root: Optional[Path] = None
    loading_delay_ms: int = DEFAULT_DELAY_MS
    max_countries: int = DEFAULT_MAX_COUNTRIES
    access_tier: str = "public"

    @classmethod
    def from_raw(cls, raw: Dict[str, Any], data_root: Optional[Path] = None) -> ExplorerConfig:
        """:raises ConfigError: if a value has the wrong type or is out of range"""
        try:
            delay = int(raw.get("loading_delay_ms", DEFAULT_DELAY_MS))
            max_countries = int(raw.get("max_countries", DEFAULT_MAX_COUNTRIES))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid numeric value in global config: {e}") from e

        if delay < 0:
            raise ConfigError("loading_delay_ms must be >= 0")
        if max_countries < 1:
            raise ConfigError("max_countries must be >= 1")

        tier = str(raw.get("access_tier", "public")).lower()
        if tier not in TIERS:
            raise ConfigError(f"Unknown access_tier '{tier}'")

        return cls(
            ui_title=raw.get("ui_title", "Mortality Explorer"),
            data_root=data_root,
            loading_delay_ms=delay,
            max_countries=max_countries,
            access_tier=tier,
        )

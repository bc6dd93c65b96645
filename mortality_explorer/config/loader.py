from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from mortality_explorer.core.exceptions import ConfigError

from .model import ExplorerConfig

logger = logging.getLogger(__name__)

DATA_ROOT_ENV = "MORTALITY_EXPLORER_DATA_ROOT"


def _resolve_data_root(root: Path, raw_value: Optional[str]) -> Optional[Path]:
    # Absolute paths are used as-is, relative ones are resolved against the config root
    env_value = os.getenv(DATA_ROOT_ENV)
    if env_value:
        raw_value = env_value
    if raw_value is None:
        return None
    path = Path(raw_value)
    if path.is_absolute():
        return path
    return (root / path).resolve()


def load_config(root: Path | str) -> ExplorerConfig:
    """
    Load the explorer configuration from `root/global.json`.

    Expected structure:

        root/
            global.json     {"ui_title": ..., "data_root": "../data", ...}

    The data root may be overridden with MORTALITY_EXPLORER_DATA_ROOT.

    :raises FileNotFoundError: if global.json does not exist
    :raises ConfigError: if the file is not a JSON object or holds invalid values
    """
    root = Path(root)
    logger.info("Loading global config", extra={"config_root": str(root)})

    global_path = root / "global.json"
    if not global_path.is_file():
        raise FileNotFoundError(f"File not found at {global_path}")

    try:
        with global_path.open() as f:
            raw = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {global_path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"{global_path} must contain a JSON object")

    config = ExplorerConfig.from_raw(raw, data_root=_resolve_data_root(root, raw.get("data_root")))
    logger.info(
        "Global config loaded",
        extra={
            "config_root": str(root),
            "data_root": str(config.data_root) if config.data_root else None,
            "access_tier": config.access_tier,
        },
    )
    return config

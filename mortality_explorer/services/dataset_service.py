from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Sequence

import pandas as pd

from mortality_explorer.core.exceptions import DatasetFetchError
from mortality_explorer.core.labels import COL_AGE_GROUP, COL_COUNTRY, COL_DATE
from mortality_explorer.core.period import GRANULARITIES

logger = logging.getLogger(__name__)

EMPTY_COLUMNS = [COL_COUNTRY, COL_AGE_GROUP, COL_DATE]


class CsvDatasetFetcher:
    """
    Default dataset fetcher backed by per-series CSV files.

    Layout:

        data_root/
            <granularity>/
                <iso3c>/
                    <age_group>.csv     (columns: date, deaths, cmr, asmr_who, ...)

    Files are read lazily and cached by path, so refetching a selection
    that only changed baseline parameters does not touch the disk.
    Missing files are skipped: a selection without any file yields an
    empty frame, which the orchestrator reports as "no data".
    """

    def __init__(self, data_root: Path | str):
        self.data_root = Path(data_root)
        self._loaded: Dict[Path, pd.DataFrame] = {}

    def is_loaded(self, path: Path) -> bool:
        return path in self._loaded

    def clear_cache(self) -> None:
        self._loaded.clear()

    def path_for(self, granularity: str, country: str, age_group: str) -> Path:
        return self.data_root / granularity / country / f"{age_group}.csv"

    async def __call__(
            self,
            granularity: str,
            countries: Sequence[str],
            age_groups: Sequence[str],
    ) -> pd.DataFrame:
        """
        :raises DatasetFetchError: if the data root or granularity directory does not exist
        """
        if granularity not in GRANULARITIES:
            raise DatasetFetchError(f"Unknown granularity '{granularity}'")
        granularity_dir = self.data_root / granularity
        if not granularity_dir.is_dir():
            raise DatasetFetchError(f"No data directory for granularity at {granularity_dir}")

        frames: List[pd.DataFrame] = []
        for country in countries:
            for age_group in age_groups:
                frame = await self._load(self.path_for(granularity, country, age_group))
                if frame is None:
                    continue
                frame = frame.copy()
                frame[COL_COUNTRY] = country
                frame[COL_AGE_GROUP] = age_group
                frames.append(frame)

        if not frames:
            logger.info(
                "No dataset files for selection",
                extra={"granularity": granularity, "countries": list(countries), "age_groups": list(age_groups)},
            )
            return pd.DataFrame(columns=EMPTY_COLUMNS)

        return pd.concat(frames, ignore_index=True)

    async def _load(self, path: Path) -> pd.DataFrame | None:
        # 1. Fast path: already read
        if path in self._loaded:
            return self._loaded[path]

        if not path.is_file():
            logger.debug("Dataset file missing", extra={"path": str(path)})
            return None

        # 2. Read off the event loop
        try:
            logger.info("Loading dataset file", extra={"path": str(path)})
            frame = await asyncio.to_thread(pd.read_csv, path, dtype={COL_DATE: str})
        except Exception:
            logger.exception("Unexpected error while reading dataset file", extra={"path": str(path)})
            raise

        if COL_DATE not in frame.columns:
            raise DatasetFetchError(f"Dataset file {path} has no '{COL_DATE}' column")

        self._loaded[path] = frame
        return frame

from __future__ import annotations

import logging
from typing import List, Sequence, Tuple

import pandas as pd

from .period import sort_labels

logger = logging.getLogger(__name__)

METRICS = ("deaths", "cmr", "asmr", "le", "population")
STANDARD_POPULATIONS = ("who", "esp", "usa", "country")

# Long-format dataset columns
COL_COUNTRY = "iso3c"
COL_AGE_GROUP = "age_group"
COL_DATE = "date"


def is_asmr(metric: str) -> bool:
    return "asmr" in metric


def data_key(metric: str, standard_population: str = "who") -> str:
    """Dataset column holding the values of `metric`."""
    if is_asmr(metric):
        return f"asmr_{standard_population}"
    return metric


def keys_for_type(
        metric: str,
        show_baseline: bool,
        standard_population: str = "who",
) -> Tuple[str, ...]:
    """
    Series keys the aggregation step should produce for one metric.

    Population has no baseline; everything else yields the raw series plus,
    when the baseline is shown, the baseline and its interval. Excess
    series are derived from these during aggregation.
    """
    if metric == "population":
        return ("population",)

    base = data_key(metric, standard_population)
    if show_baseline:
        return (base, f"{base}_baseline", f"{base}_baseline_lower", f"{base}_baseline_upper")
    return (base,)


def label_column(metric: str, standard_population: str = "who") -> str:
    """Column whose non-null rows define which dates exist for the chart."""
    if is_asmr(metric):
        return data_key(metric, standard_population)
    if metric == "le":
        return "le"
    return "cmr"


def get_all_chart_labels(
        dataset: pd.DataFrame,
        column: str,
        age_groups: Sequence[str],
        countries: Sequence[str],
) -> List[str]:
    """
    Sorted, deduplicated labels for which `column` has a value for any of
    the selected countries and age groups.
    """
    if dataset is None or dataset.empty:
        return []
    if column not in dataset.columns:
        logger.warning(
            "Dataset has no column for label derivation",
            extra={"column": column, "columns": list(dataset.columns)},
        )
        return []

    mask = (
        dataset[COL_AGE_GROUP].isin(list(age_groups))
        & dataset[COL_COUNTRY].isin(list(countries))
        & dataset[column].notna()
    )
    dates = dataset.loc[mask, COL_DATE].astype(str).unique()
    return sort_labels(dates)

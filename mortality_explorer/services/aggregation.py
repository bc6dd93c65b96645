from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from mortality_explorer.core.labels import COL_AGE_GROUP, COL_COUNTRY, COL_DATE
from mortality_explorer.core.period import MONTHLY, QUARTERLY, PeriodIndex, is_weekly

logger = logging.getLogger(__name__)

# Two-sided 95% prediction interval
Z_95 = 1.96

Series = Tuple[Optional[float], ...]


@dataclass(frozen=True)
class ChartData:
    """
    Output of the aggregation step.

    series[age_group][iso3c][key] holds one value per entry of `labels`
    (None where there is no value). `missing` lists the
    (age_group, iso3c) pairs that had no data at all.
    """
    labels: Tuple[str, ...]
    series: Mapping[str, Mapping[str, Mapping[str, Series]]] = field(default_factory=dict)
    missing: Tuple[Tuple[str, str], ...] = ()

    def get(self, age_group: str, country: str, key: str) -> Optional[Series]:
        return self.series.get(age_group, {}).get(country, {}).get(key)


def seasonal_period(granularity: str) -> int:
    """Number of labels per year that share a seasonal slot."""
    if granularity == QUARTERLY:
        return 4
    if granularity == MONTHLY:
        return 12
    if is_weekly(granularity):
        return 52
    return 1


def _fit_slot(y: np.ndarray, x_all: np.ndarray, method: str) -> Tuple[np.ndarray, float]:
    """
    Fit one seasonal slot. `y` holds the baseline-window observations in
    order, `x_all` the cycle numbers to predict for. Returns the predictions
    and the residual standard deviation.
    """
    n = len(y)
    if method == "naive":
        pred = np.full(len(x_all), y[-1])
        resid = np.diff(y) if n > 1 else np.zeros(1)
    elif method == "median":
        pred = np.full(len(x_all), np.median(y))
        resid = y - pred[0]
    elif method == "lin_reg" and n > 1:
        slope, intercept = np.polyfit(np.arange(n, dtype=float), y, 1)
        pred = intercept + slope * x_all
        resid = y - (intercept + slope * np.arange(n, dtype=float))
    elif method == "exp" and n > 1:
        # Simple exponential smoothing; the forecast is the final level
        alpha = 0.3
        level = y[0]
        fitted = [level]
        for value in y[1:]:
            level = alpha * value + (1 - alpha) * level
            fitted.append(level)
        pred = np.full(len(x_all), level)
        resid = y - np.asarray(fitted)
    else:
        pred = np.full(len(x_all), y.mean())
        resid = y - pred[0]

    sd = float(np.std(resid, ddof=1)) if len(resid) > 1 else 0.0
    return pred, sd * np.sqrt(1 + 1 / max(n, 1))


def compute_baseline(
        values: np.ndarray,
        labels: Sequence[str],
        granularity: str,
        method: str,
        baseline_from: str,
        baseline_to: str,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Baseline and prediction standard error for every position of `values`,
    fitted over the labels from `baseline_from` to `baseline_to`.
    """
    index = PeriodIndex(labels)
    lo, hi = index.index_of(baseline_from), index.index_of(baseline_to)
    if lo > hi:
        lo, hi = hi, lo

    period = seasonal_period(granularity)
    baseline = np.full(len(values), np.nan)
    spread = np.full(len(values), np.nan)
    positions = np.arange(len(values))

    for slot in range(period):
        in_slot = (positions - lo) % period == slot
        window = in_slot & (positions >= lo) & (positions <= hi)
        y = values[window]
        y = y[~np.isnan(y)]
        if y.size == 0:
            continue
        cycles = ((positions[in_slot] - lo) // period).astype(float)
        pred, se = _fit_slot(y, cycles, method)
        baseline[in_slot] = pred
        spread[in_slot] = se
    return baseline, spread


def _to_series(values: np.ndarray) -> Series:
    return tuple(None if np.isnan(v) else float(v) for v in values)


def _country_series(
        rows: pd.DataFrame,
        data_key: str,
        labels: Sequence[str],
) -> np.ndarray:
    if data_key not in rows.columns or rows.empty:
        return np.full(len(labels), np.nan)
    by_date = rows.drop_duplicates(subset=COL_DATE, keep="last").set_index(COL_DATE)[data_key]
    by_date.index = by_date.index.astype(str)
    return pd.to_numeric(by_date.reindex(list(labels)), errors="coerce").to_numpy(dtype=float)


async def aggregate_chart_data(
        data_key: str,
        granularity: str,
        dataset: pd.DataFrame,
        labels: Sequence[str],
        start_index: int,
        cumulative: bool,
        age_groups: Sequence[str],
        countries: Sequence[str],
        baseline_method: Optional[str],
        baseline_from: Optional[str],
        baseline_to: Optional[str],
        keys: Sequence[str],
        progress: Callable[[int, int], None],
) -> ChartData:
    """
    Default aggregation: per age group and country, slice the series from
    `start_index`, fit the baseline (when a method and window are given),
    and derive excess and z-score series from it.

    Baselines are fitted over the full label range, so a slider start after
    the baseline window still gets a baseline.
    """
    visible = tuple(labels[start_index:])
    total = len(age_groups) * len(countries)
    done = 0
    wanted = set(keys)
    with_baseline = bool(baseline_method and baseline_from and baseline_to)

    series: Dict[str, Dict[str, Dict[str, Series]]] = {}
    missing = []

    for age_group in age_groups:
        by_country: Dict[str, Dict[str, Series]] = {}
        for country in countries:
            rows = dataset[(dataset[COL_AGE_GROUP] == age_group) & (dataset[COL_COUNTRY] == country)]
            values = _country_series(rows, data_key, labels)

            if np.isnan(values).all():
                missing.append((age_group, country))
            else:
                by_country[country] = _series_for(
                    values, labels, granularity, start_index, cumulative, data_key, wanted,
                    baseline_method if with_baseline else None, baseline_from, baseline_to,
                )

            done += 1
            progress(done, total)
            # Yield between series so the loading timer and UI stay responsive
            await asyncio.sleep(0)
        series[age_group] = by_country

    if missing:
        logger.info(
            "Selection has series without data",
            extra={"data_key": data_key, "missing": [f"{a}:{c}" for a, c in missing]},
        )
    return ChartData(labels=visible, series=series, missing=tuple(missing))


def _series_for(
        values: np.ndarray,
        labels: Sequence[str],
        granularity: str,
        start_index: int,
        cumulative: bool,
        data_key: str,
        wanted: set,
        baseline_method: Optional[str],
        baseline_from: Optional[str],
        baseline_to: Optional[str],
) -> Dict[str, Series]:
    observed = values[start_index:]
    out: Dict[str, np.ndarray] = {}

    if cumulative:
        observed = np.nancumsum(observed)
    out[data_key] = observed

    if baseline_method:
        baseline, se = compute_baseline(values, labels, granularity, baseline_method, baseline_from, baseline_to)
        baseline, se = baseline[start_index:], se[start_index:]
        if cumulative:
            baseline = np.nancumsum(baseline)
            se = np.sqrt(np.nancumsum(se ** 2))

        half_width = Z_95 * se
        out[f"{data_key}_baseline"] = baseline
        out[f"{data_key}_baseline_lower"] = baseline - half_width
        out[f"{data_key}_baseline_upper"] = baseline + half_width

        excess = observed - baseline
        out[f"{data_key}_excess"] = excess
        out[f"{data_key}_excess_lower"] = observed - (baseline + half_width)
        out[f"{data_key}_excess_upper"] = observed - (baseline - half_width)
        with np.errstate(divide="ignore", invalid="ignore"):
            out[f"{data_key}_zscore"] = np.where(se > 0, excess / se, np.nan)
            out[f"{data_key}_excess_percentage"] = np.where(baseline != 0, excess / baseline * 100, np.nan)

    derived_suffixes = ("_excess", "_excess_lower", "_excess_upper", "_zscore", "_excess_percentage")
    return {
        key: _to_series(arr)
        for key, arr in out.items()
        if key in wanted or key.endswith(derived_suffixes)
    }

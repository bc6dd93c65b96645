"""
Pure predicates over resolved state values.

Every function takes the values mapping of a ResolvedState (or any mapping
with the same field names) and reads nothing else.
"""
from __future__ import annotations

from typing import Any, Mapping, Tuple

from mortality_explorer.core.labels import is_asmr, keys_for_type
from mortality_explorer.core.period import is_yearly_like

from .validation import DEFAULT_MAX_COUNTRIES

Values = Mapping[str, Any]


def is_asmr_type(values: Values) -> bool:
    return is_asmr(values.get("type") or "")


def is_population_type(values: Values) -> bool:
    return values.get("type") == "population"


def is_le_type(values: Values) -> bool:
    return values.get("type") == "le"


def is_deaths_type(values: Values) -> bool:
    return values.get("type") == "deaths"


def is_line_style(values: Values) -> bool:
    return values.get("chart_style") == "line"


def is_bar_style(values: Values) -> bool:
    return values.get("chart_style") == "bar"


def is_matrix_style(values: Values) -> bool:
    return values.get("chart_style") == "matrix"


def is_error_bar_type(values: Values) -> bool:
    """Excess bars draw their prediction interval as error bars."""
    return is_bar_style(values) and bool(values.get("is_excess"))


def has_baseline(values: Values) -> bool:
    """Whether the baseline toggle applies at all."""
    return not is_population_type(values) and not values.get("is_excess")


def is_yearly_chart_type(values: Values) -> bool:
    return is_yearly_like(values.get("chart_type") or "")


def show_cumulative_pi(values: Values) -> bool:
    # Cumulative intervals are only defined for yearly mean/linear baselines
    return (
        bool(values.get("cumulative"))
        and is_yearly_chart_type(values)
        and values.get("baseline_method") in ("lin_reg", "mean")
    )


def max_countries_allowed(values: Values, limit: int = DEFAULT_MAX_COUNTRIES) -> int:
    return limit


def keys_for_fetch(values: Values) -> Tuple[str, ...]:
    """Series keys the aggregation step is asked for (raw + baseline)."""
    return keys_for_type(
        values.get("type") or "",
        bool(values.get("show_baseline")),
        values.get("standard_population") or "who",
    )

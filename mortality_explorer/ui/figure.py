from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence, Tuple

import plotly.graph_objs as go

from mortality_explorer.core.period import PeriodIndex
from mortality_explorer.services.data_orchestrator import FetchResult
from mortality_explorer.state.helpers import is_bar_style, is_error_bar_type, is_matrix_style

logger = logging.getLogger(__name__)

METRIC_LABELS = {
    "deaths": "Deaths",
    "cmr": "Crude mortality rate (per 100k)",
    "asmr": "Age-standardized mortality rate (per 100k)",
    "le": "Life expectancy",
    "population": "Population",
}


# -----------------------------------------------------------------------------
# Helper: Empty/Error Figures
# -----------------------------------------------------------------------------
def message_figure(title: str, details: Optional[str] = None) -> go.Figure:
    fig = go.Figure()
    text = title if details is None else f"{title}<br><br>{details}"
    fig.add_annotation(
        text=text,
        showarrow=False,
        xref="paper",
        yref="paper",
        x=0.5,
        y=0.5,
    )
    fig.update_xaxes(visible=False)
    fig.update_yaxes(visible=False)
    fig.update_layout(margin=dict(l=40, r=40, t=40, b=40))
    return fig


def _window(labels: Sequence[str], values: Mapping[str, Any]) -> Tuple[int, int]:
    """Index bounds of the selected date range within `labels`."""
    index = PeriodIndex(labels)
    if not len(index):
        return 0, 0
    lo = index.index_of(values["date_from"]) if values.get("date_from") else 0
    hi = index.index_of(values["date_to"]) if values.get("date_to") else len(index) - 1
    return lo, hi + 1


def _series_key(data_key: str, values: Mapping[str, Any]) -> str:
    view = values.get("view")
    if view == "excess":
        return f"{data_key}_excess_percentage" if values.get("show_percentage") else f"{data_key}_excess"
    if view == "zscore":
        return f"{data_key}_zscore"
    return data_key


def _hover_format(values: Mapping[str, Any]) -> Optional[str]:
    decimals = values.get("decimals")
    if decimals and decimals != "auto":
        return f".{decimals}f"
    return None


def build_figure(
        result: Optional[FetchResult],
        values: Mapping[str, Any],
        message: Optional[str] = None,
) -> go.Figure:
    """
    Render a fetch result for the resolved state values.

    Mortality shows the raw series with optional baseline and interval band,
    excess shows (percentage) excess, z-score shows z-scores. Matrix style
    renders a country x period heatmap of the same series.
    """
    if message:
        return message_figure(message)
    if result is None:
        return message_figure("No data loaded.", "Choose countries and a chart type to see a chart.")

    data = result.series
    lo, hi = _window(data.labels, values)
    x = list(data.labels[lo:hi])
    data_key = result.request.data_key
    key = _series_key(data_key, values)
    title = METRIC_LABELS.get(result.request.type, result.request.type)

    if is_matrix_style(values):
        return _matrix_figure(result, key, lo, hi, x, title)

    fig = go.Figure()
    hover = _hover_format(values)
    for age_group, by_country in data.series.items():
        for country, series in by_country.items():
            name = country if age_group == "all" else f"{country} ({age_group})"
            y = series.get(key)
            if y is None:
                logger.debug("Series key missing", extra={"key": key, "country": country})
                continue
            y = list(y[lo:hi])

            error_y = None
            if is_error_bar_type(values) and values.get("show_prediction_interval"):
                lower, upper = series.get(f"{data_key}_excess_lower"), series.get(f"{data_key}_excess_upper")
                if lower is not None and upper is not None and not values.get("show_percentage"):
                    error_y = dict(
                        type="data",
                        symmetric=False,
                        array=[(u - v) if u is not None and v is not None else None
                               for u, v in zip(upper[lo:hi], y)],
                        arrayminus=[(v - l) if l is not None and v is not None else None
                                    for l, v in zip(lower[lo:hi], y)],
                    )

            if is_bar_style(values):
                fig.add_trace(go.Bar(x=x, y=y, name=name, error_y=error_y))
            else:
                fig.add_trace(go.Scatter(x=x, y=y, name=name, mode="lines"))

            if values.get("view") == "mortality" and values.get("show_baseline"):
                _add_baseline(fig, series, data_key, lo, hi, x, name, bool(values.get("show_prediction_interval")))

    if values.get("view") == "zscore":
        for level in (-2, 2):
            fig.add_hline(y=level, line_dash="dot", line_color="grey")

    fig.update_layout(
        title=title,
        barmode="group",
        showlegend=bool(values.get("show_labels", True)),
        margin=dict(l=40, r=20, t=60, b=40),
    )
    fig.update_yaxes(
        type="log" if values.get("show_logarithmic") else "linear",
        rangemode="normal" if values.get("maximize") else "tozero",
        tickformat=hover,
    )
    if hover:
        fig.update_traces(hovertemplate="%{x}: %{y:" + hover + "}")
    return fig


def _add_baseline(fig: go.Figure, series, data_key, lo, hi, x, name, show_pi: bool) -> None:
    baseline = series.get(f"{data_key}_baseline")
    if baseline is None:
        return
    fig.add_trace(go.Scatter(
        x=x, y=list(baseline[lo:hi]), name=f"{name} baseline", mode="lines", line=dict(dash="dash"),
    ))
    lower, upper = series.get(f"{data_key}_baseline_lower"), series.get(f"{data_key}_baseline_upper")
    if show_pi and lower is not None and upper is not None:
        fig.add_trace(go.Scatter(x=x, y=list(upper[lo:hi]), mode="lines", line=dict(width=0), showlegend=False))
        fig.add_trace(go.Scatter(
            x=x, y=list(lower[lo:hi]), mode="lines", line=dict(width=0), fill="tonexty",
            name=f"{name} 95% PI", opacity=0.3,
        ))


def _matrix_figure(result: FetchResult, key: str, lo: int, hi: int, x, title: str) -> go.Figure:
    rows, z = [], []
    for age_group, by_country in result.series.series.items():
        for country, series in by_country.items():
            y = series.get(key)
            if y is None:
                continue
            rows.append(country if age_group == "all" else f"{country} ({age_group})")
            z.append(list(y[lo:hi]))

    if not z:
        return message_figure("Nothing to show for this selection.")

    fig = go.Figure(data=go.Heatmap(z=z, x=x, y=rows, colorscale="RdBu_r"))
    fig.update_layout(title=title, margin=dict(l=80, r=20, t=60, b=40))
    return fig

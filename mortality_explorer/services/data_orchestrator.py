from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence, Tuple

import pandas as pd

from mortality_explorer.core.baseline import BaselinePolicy
from mortality_explorer.core.date_range import DateRange
from mortality_explorer.core.labels import (
    data_key,
    get_all_chart_labels,
    is_asmr,
    keys_for_type,
    label_column,
)
from mortality_explorer.core.period import PeriodIndex

from .aggregation import ChartData
from .loading import LoadingIndicator

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
DatasetFetcher = Callable[[str, Sequence[str], Sequence[str]], Awaitable[pd.DataFrame]]
# (data_key, granularity, dataset, labels, start_index, cumulative, age_groups,
#  countries, baseline_method, baseline_from, baseline_to, keys, progress)
Aggregator = Callable[..., Awaitable[ChartData]]


@dataclass(frozen=True)
class FetchRequest:
    """
    Snapshot of every state value a fetch reads.

    Two requests compare equal exactly when they would fetch the same data,
    which is how superseded results are recognised.
    """
    chart_type: str
    countries: Tuple[str, ...]
    age_groups: Tuple[str, ...]
    type: str
    standard_population: str = "who"
    show_baseline: bool = True
    baseline_method: Optional[str] = None
    baseline_date_from: Optional[str] = None
    baseline_date_to: Optional[str] = None
    slider_start: Optional[str] = None
    cumulative: bool = False

    @classmethod
    def from_values(cls, values: Mapping[str, Any]) -> FetchRequest:
        show_baseline = bool(values.get("show_baseline"))
        return cls(
            chart_type=values["chart_type"],
            countries=tuple(values.get("countries") or ()),
            age_groups=tuple(values.get("age_groups") or ()),
            type=values["type"],
            standard_population=values.get("standard_population") or "who",
            show_baseline=show_baseline,
            baseline_method=values.get("baseline_method") if show_baseline else None,
            baseline_date_from=values.get("baseline_date_from"),
            baseline_date_to=values.get("baseline_date_to"),
            slider_start=values.get("slider_start"),
            cumulative=bool(values.get("cumulative")),
        )

    @property
    def is_asmr(self) -> bool:
        return is_asmr(self.type)

    @property
    def fetch_age_groups(self) -> Tuple[str, ...]:
        # Age-standardized series only exist for the all-ages aggregate
        return ("all",) if self.is_asmr else self.age_groups

    @property
    def data_key(self) -> str:
        return data_key(self.type, self.standard_population)

    def keys(self, with_baseline: bool = True) -> Tuple[str, ...]:
        return keys_for_type(self.type, self.show_baseline and with_baseline, self.standard_population)


@dataclass(frozen=True)
class FetchResult:
    request: FetchRequest
    dataset: pd.DataFrame
    labels: Tuple[str, ...]
    series: ChartData
    baseline_from: Optional[str]
    baseline_to: Optional[str]
    has_baselines: bool = True


class DataOrchestrator:
    """
    Two-phase fetch of chart data.

    Phase 1 loads the raw dataset and derives its labels; phase 2 repairs
    the baseline window against those labels; phase 3 hands everything to
    the aggregation function. Only one update runs at a time: a call made
    while another is in flight is dropped and returns None.
    """

    def __init__(
            self,
            fetch_dataset: DatasetFetcher,
            aggregate: Aggregator,
            baseline_policy: Optional[BaselinePolicy] = None,
            loading: Optional[LoadingIndicator] = None,
    ):
        self._fetch_dataset = fetch_dataset
        self._aggregate = aggregate
        self.baseline_policy = baseline_policy or BaselinePolicy()
        self.loading = loading
        self.is_updating = False
        self.progress = 0
        self._dataset: Optional[pd.DataFrame] = None

    # ------------------------------------------------------------------
    # Dataset slot
    # ------------------------------------------------------------------
    def get_dataset(self) -> Optional[pd.DataFrame]:
        return self._dataset

    def set_dataset(self, dataset: Optional[pd.DataFrame]) -> None:
        self._dataset = dataset

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def update(
            self,
            request: FetchRequest,
            on_progress: Optional[ProgressCallback] = None,
    ) -> Optional[FetchResult]:
        """
        Fetch and aggregate everything for `request`.

        Returns None when the call was dropped (another update in flight) or
        when the selection has no data. Fetch and aggregation errors are
        re-raised after the updating flag is cleared.
        """
        if not self._begin(request):
            return None
        try:
            prepared = await self._prepare(request)
            if prepared is None:
                return None
            dataset, labels, baseline = prepared
            series = await self._run_aggregation(request, dataset, labels, baseline, on_progress)
            return FetchResult(request, dataset, labels, series, baseline.from_ or None, baseline.to or None)
        except Exception:
            logger.exception("Chart data update failed", extra=self._log_context(request))
            raise
        finally:
            self._end()

    async def update_progressive(
            self,
            request: FetchRequest,
            on_progress: Optional[ProgressCallback] = None,
    ) -> Optional[Tuple[FetchResult, Callable[[], Awaitable[FetchResult]]]]:
        """
        Like update(), but the first result is aggregated without baselines
        so raw series can be shown immediately. The returned coroutine
        function computes the full result over the same dataset and labels.
        """
        if not self._begin(request):
            return None
        try:
            prepared = await self._prepare(request)
            if prepared is None:
                return None
            dataset, labels, baseline = prepared
            first = FetchResult(
                request,
                dataset,
                labels,
                await self._run_aggregation(request, dataset, labels, None, on_progress),
                baseline.from_ or None,
                baseline.to or None,
                has_baselines=False,
            )
        except Exception:
            logger.exception("Progressive chart data update failed", extra=self._log_context(request))
            raise
        finally:
            self._end()

        async def inject_baselines() -> FetchResult:
            series = await self._run_aggregation(request, dataset, labels, baseline, on_progress)
            return FetchResult(request, dataset, labels, series, baseline.from_ or None, baseline.to or None)

        return first, inject_baselines

    def validate_baseline_dates(self, request: FetchRequest, labels: Sequence[str]) -> DateRange:
        """
        Baseline window to use for `labels`: endpoints that are not exact
        labels are replaced with the policy defaults. Without a baseline
        method the requested endpoints pass through untouched.
        """
        if not request.baseline_method:
            return DateRange(request.baseline_date_from or "", request.baseline_date_to or "")
        return self.baseline_policy.validate(
            request.chart_type,
            labels,
            request.baseline_method,
            request.baseline_date_from,
            request.baseline_date_to,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _begin(self, request: FetchRequest) -> bool:
        if self.is_updating:
            logger.warning("Update already in progress; dropping request", extra=self._log_context(request))
            return False
        self.is_updating = True
        self.progress = 0
        if self.loading is not None:
            self.loading.start()
        return True

    def _end(self) -> None:
        self.is_updating = False
        if self.loading is not None:
            self.loading.stop()

    async def _prepare(self, request: FetchRequest):
        dataset = await self._fetch_dataset(request.chart_type, request.countries, request.fetch_age_groups)
        self.set_dataset(dataset)

        labels = tuple(get_all_chart_labels(
            dataset,
            label_column(request.type, request.standard_population),
            request.fetch_age_groups,
            request.countries,
        ))
        if not labels:
            logger.info("No data available for selection", extra=self._log_context(request))
            return None

        return dataset, labels, self.validate_baseline_dates(request, labels)

    async def _run_aggregation(
            self,
            request: FetchRequest,
            dataset: pd.DataFrame,
            labels: Tuple[str, ...],
            baseline: Optional[DateRange],
            on_progress: Optional[ProgressCallback],
    ) -> ChartData:
        start_index = PeriodIndex(labels).index_of(request.slider_start) if request.slider_start else 0
        with_baseline = baseline is not None and bool(request.baseline_method)

        return await self._aggregate(
            request.data_key,
            request.chart_type,
            dataset,
            labels,
            start_index,
            request.cumulative,
            request.fetch_age_groups,
            request.countries,
            request.baseline_method if with_baseline else None,
            (baseline.from_ or None) if with_baseline else None,
            (baseline.to or None) if with_baseline else None,
            request.keys(with_baseline=with_baseline),
            on_progress or self._default_progress,
        )

    def _default_progress(self, done: int, total: int) -> None:
        self.progress = round(done / total * 100) if total else 100

    @staticmethod
    def _log_context(request: FetchRequest) -> dict:
        return {
            "chart_type": request.chart_type,
            "countries": list(request.countries),
            "metric": request.type,
        }

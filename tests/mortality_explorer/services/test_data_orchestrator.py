from __future__ import annotations

import asyncio

import pandas as pd
import pytest

from mortality_explorer.services.aggregation import ChartData
from mortality_explorer.services.data_orchestrator import DataOrchestrator, FetchRequest
from mortality_explorer.services.loading import LoadingIndicator

SEASONS = [f"{y}/{str(y + 1)[-2:]}" for y in range(2009, 2023)]


def _make_dataset(labels=SEASONS, countries=("USA",)):
    rows = []
    for country in countries:
        for i, label in enumerate(labels):
            rows.append({
                "iso3c": country,
                "age_group": "all",
                "date": label,
                "deaths": 100.0 + i,
                "cmr": 900.0 + i,
                "asmr_who": 500.0 + i,
            })
    return pd.DataFrame(rows)


def _make_fetcher(frame, gate: asyncio.Event | None = None):
    calls = []

    async def fetch(granularity, countries, age_groups):
        calls.append((granularity, tuple(countries), tuple(age_groups)))
        if gate is not None:
            await gate.wait()
        return frame

    fetch.calls = calls
    return fetch


class _RecordingAggregator:
    def __init__(self, error: Exception | None = None):
        self.calls = []
        self.error = error

    async def __call__(self, *args):
        self.calls.append(args)
        if self.error is not None:
            raise self.error
        args[12](1, 2)
        labels, start_index = args[3], args[4]
        return ChartData(labels=tuple(labels[start_index:]))


def _make_request(**overrides) -> FetchRequest:
    values = dict(
        chart_type="fluseason",
        countries=("USA",),
        age_groups=("all",),
        type="asmr",
        baseline_method="mean",
        slider_start="2010",
    )
    values.update(overrides)
    return FetchRequest(**values)


def test_request_from_values_drops_method_without_baseline():
    values = {
        "chart_type": "yearly",
        "countries": ["USA"],
        "age_groups": ["all"],
        "type": "deaths",
        "show_baseline": False,
        "baseline_method": "mean",
    }
    request = FetchRequest.from_values(values)

    assert request.baseline_method is None
    assert request.countries == ("USA",)
    assert request == FetchRequest.from_values(dict(values, baseline_method="median"))


def test_asmr_requests_fetch_all_ages():
    request = _make_request(age_groups=("0-14", "15-64"))
    assert request.fetch_age_groups == ("all",)
    assert request.data_key == "asmr_who"
    assert _make_request(type="deaths", age_groups=("0-14",)).fetch_age_groups == ("0-14",)


@pytest.mark.asyncio
async def test_update_passes_defaults_to_aggregator():
    aggregate = _RecordingAggregator()
    orchestrator = DataOrchestrator(_make_fetcher(_make_dataset()), aggregate)

    result = await orchestrator.update(_make_request())

    assert result is not None
    assert result.labels == tuple(SEASONS)
    assert (result.baseline_from, result.baseline_to) == ("2016/17", "2018/19")
    args = aggregate.calls[0]
    assert args[0] == "asmr_who"
    assert args[1] == "fluseason"
    # "2010" is equidistant from 2009/10 and 2010/11; the later wins
    assert args[4] == 1
    assert args[6] == ("all",)
    assert args[7] == ("USA",)
    assert args[8:11] == ("mean", "2016/17", "2018/19")
    assert "asmr_who_baseline" in args[11]
    assert orchestrator.progress == 50
    assert orchestrator.get_dataset() is not None
    assert not orchestrator.is_updating


@pytest.mark.asyncio
async def test_update_uses_custom_progress_callback():
    progress = []
    orchestrator = DataOrchestrator(_make_fetcher(_make_dataset()), _RecordingAggregator())

    await orchestrator.update(_make_request(), on_progress=lambda done, total: progress.append((done, total)))

    assert progress == [(1, 2)]
    assert orchestrator.progress == 0


@pytest.mark.asyncio
async def test_asmr_fetches_all_ages_only():
    fetch = _make_fetcher(_make_dataset())
    orchestrator = DataOrchestrator(fetch, _RecordingAggregator())

    await orchestrator.update(_make_request(age_groups=("0-14",)))

    assert fetch.calls == [("fluseason", ("USA",), ("all",))]


@pytest.mark.asyncio
async def test_member_baseline_dates_are_kept_and_others_replaced():
    aggregate = _RecordingAggregator()
    orchestrator = DataOrchestrator(_make_fetcher(_make_dataset()), aggregate)

    result = await orchestrator.update(_make_request(baseline_date_from="2001/02", baseline_date_to="2012/13"))

    assert (result.baseline_from, result.baseline_to) == ("2016/17", "2012/13")


@pytest.mark.asyncio
async def test_yearly_baseline_outside_labels_falls_back_to_first_label():
    years = ["2020", "2021", "2022", "2023"]
    orchestrator = DataOrchestrator(_make_fetcher(_make_dataset(years)), _RecordingAggregator())

    result = await orchestrator.update(_make_request(
        chart_type="yearly", slider_start=None, baseline_date_from="2099", baseline_date_to="2021",
    ))

    assert (result.baseline_from, result.baseline_to) == ("2020", "2021")


@pytest.mark.asyncio
async def test_without_baseline_method_nothing_is_fitted():
    aggregate = _RecordingAggregator()
    orchestrator = DataOrchestrator(_make_fetcher(_make_dataset()), aggregate)

    result = await orchestrator.update(_make_request(show_baseline=False, baseline_method=None))

    assert aggregate.calls[0][8:12] == (None, None, None, ("asmr_who",))
    assert (result.baseline_from, result.baseline_to) == (None, None)


@pytest.mark.asyncio
async def test_empty_dataset_returns_none():
    aggregate = _RecordingAggregator()
    empty = pd.DataFrame(columns=["iso3c", "age_group", "date"])
    orchestrator = DataOrchestrator(_make_fetcher(empty), aggregate)

    assert await orchestrator.update(_make_request()) is None
    assert aggregate.calls == []
    assert not orchestrator.is_updating


@pytest.mark.asyncio
async def test_errors_propagate_and_reset_flag():
    loading = LoadingIndicator(delay_ms=1000)
    orchestrator = DataOrchestrator(
        _make_fetcher(_make_dataset()), _RecordingAggregator(RuntimeError("boom")), loading=loading,
    )

    with pytest.raises(RuntimeError):
        await orchestrator.update(_make_request())

    assert not orchestrator.is_updating
    assert not loading.pending
    assert not loading.visible


@pytest.mark.asyncio
async def test_concurrent_update_is_dropped():
    gate = asyncio.Event()
    fetch = _make_fetcher(_make_dataset(), gate)
    orchestrator = DataOrchestrator(fetch, _RecordingAggregator())

    first = asyncio.create_task(orchestrator.update(_make_request()))
    await asyncio.sleep(0)
    assert orchestrator.is_updating

    assert await orchestrator.update(_make_request()) is None
    gate.set()
    assert await first is not None
    assert len(fetch.calls) == 1


@pytest.mark.asyncio
async def test_progressive_update_injects_baselines_later():
    aggregate = _RecordingAggregator()
    fetch = _make_fetcher(_make_dataset())
    orchestrator = DataOrchestrator(fetch, aggregate)

    first, inject_baselines = await orchestrator.update_progressive(_make_request())

    assert not first.has_baselines
    assert aggregate.calls[0][8] is None
    assert aggregate.calls[0][11] == ("asmr_who",)
    assert not orchestrator.is_updating

    full = await inject_baselines()

    assert full.has_baselines
    assert aggregate.calls[1][8:11] == ("mean", "2016/17", "2018/19")
    assert full.dataset is first.dataset
    assert len(fetch.calls) == 1

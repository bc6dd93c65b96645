from __future__ import annotations

import pandas as pd
import pytest

from mortality_explorer.core.date_range import DateRange
from mortality_explorer.services.aggregation import aggregate_chart_data
from mortality_explorer.services.data_orchestrator import DataOrchestrator
from mortality_explorer.services.explorer_controller import (
    DOWNLOAD,
    FILTER,
    NO_ASMR_DATA_MESSAGE,
    NO_DATA_MESSAGE,
    NONE,
    UPDATE,
    ExplorerController,
    strongest_update,
    update_type_for,
)
from mortality_explorer.state.resolver import StateChange
from mortality_explorer.state.validation import IssueReporter

LABELS = {
    "yearly": [str(y) for y in range(2015, 2024)],
    "fluseason": [f"{y}/{str(y + 1)[-2:]}" for y in range(2009, 2023)],
}


def _make_fetcher(on_call=None):
    calls = []

    async def fetch(granularity, countries, age_groups):
        calls.append((granularity, tuple(countries), tuple(age_groups)))
        if on_call is not None:
            await on_call(len(calls))
        rows = [
            {
                "iso3c": country,
                "age_group": age_group,
                "date": label,
                "deaths": 1000.0 + i,
                "cmr": 900.0 + i,
                "asmr_who": 500.0 + i,
            }
            for country in countries
            for age_group in age_groups
            for i, label in enumerate(LABELS.get(granularity, []))
        ]
        return pd.DataFrame(rows)

    fetch.calls = calls
    return fetch


def _make_controller(query=None, fetch=None, **kwargs):
    renders = []
    orchestrator = DataOrchestrator(fetch or _make_fetcher(), aggregate_chart_data)
    controller = ExplorerController(
        orchestrator,
        renderer=lambda result, values, message: renders.append((result, dict(values), message)),
        **kwargs,
    )
    controller.load(query)
    return controller, renders


def test_update_strategy_per_field():
    assert update_type_for("countries", {}) == DOWNLOAD
    assert update_type_for("baseline_method", {}) == UPDATE
    assert update_type_for("date_from", {}) == FILTER
    assert update_type_for("decimals", {}) == NONE
    assert update_type_for("cumulative", {"baseline_method": "mean"}) == UPDATE
    assert update_type_for("cumulative", {"baseline_method": "auto"}) == FILTER


def test_strongest_update_wins():
    assert strongest_update(["decimals", "date_from", "slider_start"], {}) == UPDATE
    assert strongest_update(["chart_style", "type"], {}) == DOWNLOAD
    assert strongest_update([], {}) == NONE


@pytest.mark.asyncio
async def test_refresh_renders_result_and_keeps_untouched_dates_empty():
    controller, renders = _make_controller("ct=yearly")

    result = await controller.refresh()

    assert result is not None
    assert controller.labels == tuple(LABELS["yearly"])
    assert controller.values["date_from"] is None
    assert controller.values["date_to"] is None
    assert len(renders) == 1
    assert renders[0][2] is None
    assert controller.range_calculator().available_range == DateRange("2015", "2023")


@pytest.mark.asyncio
async def test_granularity_change_converts_user_dates():
    fetch = _make_fetcher()
    controller, _ = _make_controller("ct=monthly&df=2020+Mar&dt=2022+Nov", fetch)

    kind = await controller.change("chart_type", "yearly")

    assert kind == DOWNLOAD
    assert fetch.calls[-1][0] == "yearly"
    assert controller.values["date_from"] == "2020"
    assert controller.values["date_to"] == "2022"
    assert controller.store.is_user_set("date_from")


@pytest.mark.asyncio
async def test_out_of_range_dates_snap_to_nearest_labels():
    controller, renders = _make_controller("ct=yearly&df=1990&dt=2030")

    await controller.refresh()

    assert controller.values["date_from"] == "2015"
    assert controller.values["date_to"] == "2023"
    assert renders[-1][1]["date_from"] == "2015"


@pytest.mark.asyncio
async def test_no_data_messages():
    controller, renders = _make_controller("ct=monthly")
    assert await controller.refresh() is None
    assert renders[-1][0] is None
    assert renders[-1][2] == NO_ASMR_DATA_MESSAGE
    assert controller.labels == ()

    controller, renders = _make_controller("ct=monthly&t=deaths")
    await controller.refresh()
    assert renders[-1][2] == NO_DATA_MESSAGE


@pytest.mark.asyncio
async def test_stale_result_is_discarded_and_refetched():
    holder = {}

    async def on_call(n):
        if n == 1:
            store = holder["controller"].store
            store.apply_resolved_state(
                store.resolver.resolve_change(StateChange("countries", ["SWE"]), store.state)
            )

    fetch = _make_fetcher(on_call)
    controller, renders = _make_controller("ct=yearly", fetch)
    holder["controller"] = controller

    result = await controller.refresh()

    assert [call[1] for call in fetch.calls] == [("USA", "SWE"), ("SWE",)]
    assert result.request.countries == ("SWE",)
    assert len(renders) == 1


@pytest.mark.asyncio
async def test_refresh_during_update_runs_again_afterwards():
    holder = {}

    async def on_call(n):
        if n == 1:
            holder["nested"] = await holder["controller"].refresh()

    fetch = _make_fetcher(on_call)
    controller, renders = _make_controller("ct=yearly", fetch)
    holder["controller"] = controller

    await controller.refresh()

    assert holder["nested"] is None
    assert len(fetch.calls) == 2
    assert len(renders) == 1


@pytest.mark.asyncio
async def test_user_baseline_dates_are_written_back():
    controller, _ = _make_controller("bdf=2001/02")

    await controller.refresh()

    assert controller.values["baseline_date_from"] == "2016/17"
    assert controller.values["baseline_date_to"] is None
    assert "bdf=2016/17" in controller.query_string()


@pytest.mark.asyncio
async def test_progressive_refresh_renders_twice():
    controller, renders = _make_controller("ct=yearly", progressive=True)

    result = await controller.refresh()

    assert len(renders) == 2
    assert not renders[0][0].has_baselines
    assert renders[1][0].has_baselines
    assert result is renders[1][0]


@pytest.mark.asyncio
async def test_progressive_refresh_keeps_baselines_after_write_back():
    controller, renders = _make_controller("bdf=2001/02", progressive=True)

    result = await controller.refresh()

    assert len(renders) == 2
    assert result.has_baselines
    assert controller.result is result
    assert controller.values["baseline_date_from"] == "2016/17"
    assert "bdf=2016/17" in controller.query_string()


@pytest.mark.asyncio
async def test_filter_and_none_changes_do_not_fetch():
    fetch = _make_fetcher()
    controller, renders = _make_controller("ct=yearly", fetch)

    assert await controller.change("chart_style", "bar") == FILTER
    assert len(renders) == 1
    assert await controller.change("decimals", "2") == NONE
    assert len(renders) == 1
    assert fetch.calls == []


@pytest.mark.asyncio
async def test_switch_view_updates_query():
    controller, _ = _make_controller()

    kind = await controller.switch_view("excess")

    assert kind == FILTER
    assert controller.values["is_excess"] is True
    assert controller.query_string() == "e=1"


def test_load_repairs_invalid_query():
    shown = []
    controller, _ = _make_controller(
        "c=AAA&c=BBB&c=CCC&cs=pie", max_countries=2, reporter=IssueReporter(shown.append),
    )

    assert controller.values["countries"] == ("AAA", "BBB")
    assert controller.values["chart_style"] == "line"
    assert len(shown) == 2

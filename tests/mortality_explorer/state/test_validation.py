from __future__ import annotations

import pytest

from mortality_explorer.state.validation import (
    IssueReporter,
    auto_fix,
    ensure_valid,
    validate_state,
)
from mortality_explorer.state.views import view_defaults
from mortality_explorer.validation import ValidationError


def _values(**overrides):
    values = view_defaults("mortality")
    values.update({"view": "mortality", "is_excess": False, "is_zscore": False})
    values.update(overrides)
    return values


def _codes(values, **kwargs):
    return [issue.code for issue in validate_state(values, **kwargs)]


def test_default_state_is_valid():
    assert validate_state(_values()) == []
    ensure_valid(_values())


def test_country_count_rules():
    assert _codes(_values(countries=())) == ["COUNTRIES_EMPTY"]
    assert _codes(_values(countries=("A", "B", "C")), max_countries=2) == ["COUNTRIES_MAX"]


def test_enum_values_are_checked():
    issues = validate_state(_values(chart_style="pie"))
    assert [(i.code, i.field) for i in issues] == [("ENUM_VALUE", "chart_style")]


def test_date_format_follows_chart_type():
    assert _codes(_values(chart_type="yearly", date_from="2020/21")) == ["DATE_FORMAT"]
    assert _codes(_values(chart_type="monthly", baseline_date_to="2019")) == ["BASELINE_DATE_FORMAT"]
    assert _codes(_values(chart_type="monthly", date_from="2019 Jan", date_to="2020 Dec")) == []


def test_order_rules():
    assert "DATE_ORDER" in _codes(_values(date_from="2020/21", date_to="2015/16"))
    assert "BASELINE_ORDER" in _codes(_values(baseline_date_from="2019/20", baseline_date_to="2016/17"))
    assert "BASELINE_AFTER_DISPLAY" in _codes(_values(baseline_date_from="2019/20", date_to="2015/16"))


def test_baseline_rules():
    assert "EXCESS_REQUIRES_BASELINE" in _codes(_values(is_excess=True, show_baseline=False,
                                                        show_prediction_interval=False))
    assert "POPULATION_NO_BASELINE" in _codes(_values(type="population"))
    assert _codes(_values(show_baseline=False)) == ["PI_REQUIRES_BASELINE"]


def test_ensure_valid_raises_with_codes():
    with pytest.raises(ValidationError) as excinfo:
        ensure_valid(_values(countries=(), age_groups=()))
    assert excinfo.value.codes == ["COUNTRIES_EMPTY", "AGE_GROUPS_EMPTY"]


def test_auto_fix_repairs_issues():
    values = _values(
        countries=("A", "B", "C"),
        chart_style="pie",
        chart_type="yearly",
        date_from="2020 Mar",
        show_baseline=False,
    )
    issues = validate_state(values, max_countries=2)

    updates = auto_fix(issues, values, max_countries=2)

    assert updates == {
        "countries": ["A", "B"],
        "chart_style": "line",
        "date_from": "2020",
        "show_prediction_interval": False,
    }
    assert validate_state({**values, **updates}, max_countries=2) == []


def test_auto_fix_swaps_reversed_dates():
    values = _values(date_from="2020/21", date_to="2015/16")
    updates = auto_fix(validate_state(values), values)
    assert updates == {"date_from": "2015/16", "date_to": "2020/21"}


def test_reporter_shows_each_message_once_until_valid():
    shown = []
    reporter = IssueReporter(shown.append)
    issues = validate_state(_values(countries=()))

    assert reporter.report(issues) == ["Select at least one country."]
    assert reporter.report(issues) == []
    assert reporter.report([]) == []
    assert reporter.report(issues) == ["Select at least one country."]
    assert shown == ["Select at least one country.", "Select at least one country."]

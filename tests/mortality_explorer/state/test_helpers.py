from __future__ import annotations

from mortality_explorer.state import helpers


def test_metric_predicates():
    assert helpers.is_asmr_type({"type": "asmr"})
    assert not helpers.is_asmr_type({"type": "cmr"})
    assert helpers.is_population_type({"type": "population"})
    assert helpers.is_le_type({"type": "le"})
    assert helpers.is_deaths_type({"type": "deaths"})


def test_style_predicates():
    assert helpers.is_line_style({"chart_style": "line"})
    assert helpers.is_bar_style({"chart_style": "bar"})
    assert helpers.is_matrix_style({"chart_style": "matrix"})
    assert helpers.is_error_bar_type({"chart_style": "bar", "is_excess": True})
    assert not helpers.is_error_bar_type({"chart_style": "bar", "is_excess": False})


def test_has_baseline():
    assert helpers.has_baseline({"type": "deaths", "is_excess": False})
    assert not helpers.has_baseline({"type": "population", "is_excess": False})
    assert not helpers.has_baseline({"type": "deaths", "is_excess": True})


def test_show_cumulative_pi():
    values = {"cumulative": True, "chart_type": "fluseason", "baseline_method": "mean"}
    assert helpers.show_cumulative_pi(values)
    assert not helpers.show_cumulative_pi({**values, "chart_type": "monthly"})
    assert not helpers.show_cumulative_pi({**values, "baseline_method": "median"})
    assert not helpers.show_cumulative_pi({**values, "cumulative": False})


def test_keys_for_fetch():
    keys = helpers.keys_for_fetch({"type": "asmr", "show_baseline": True, "standard_population": "esp"})
    assert keys[0] == "asmr_esp"
    assert "asmr_esp_baseline" in keys
    assert helpers.keys_for_fetch({"type": "deaths", "show_baseline": False}) == ("deaths",)


def test_max_countries_allowed():
    assert helpers.max_countries_allowed({}) == 10
    assert helpers.max_countries_allowed({}, limit=3) == 3

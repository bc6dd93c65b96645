from mortality_explorer.state.resolver import StateResolver
from mortality_explorer.ui.callbacks.callbacks_sync import _changes_from_controls, _controls_from_state
from mortality_explorer.ui.ids import IDs


def _current(query=None):
    return StateResolver().resolve_initial(query)


def test_controls_reflect_resolved_state():
    view, countries, metric, chart_type, style, options = _controls_from_state(_current("e=1&c=DEU"))

    assert view == "excess"
    assert countries == ["DEU"]
    assert metric == "asmr"
    assert chart_type == "fluseason"
    assert style == "bar"
    assert "baseline" in options
    assert "percentage" in options
    assert "pi" not in options


def test_selector_change_becomes_single_edit():
    current = _current()
    controls = {IDs.Control.TYPE_SELECT: "deaths"}

    changes = _changes_from_controls(IDs.Control.TYPE_SELECT, controls, current.values)

    assert [(c.field, c.value) for c in changes] == [("type", "deaths")]


def test_unchanged_selector_yields_nothing():
    current = _current()
    controls = {IDs.Control.COUNTRY_SELECT: ["USA", "SWE"]}

    assert _changes_from_controls(IDs.Control.COUNTRY_SELECT, controls, current.values) == []


def test_checklist_only_edits_toggled_flags():
    current = _current()
    options = ["baseline", "pi", "labels", "cumulative"]
    controls = {IDs.Control.OPTIONS_CHECKLIST: options}

    changes = _changes_from_controls(IDs.Control.OPTIONS_CHECKLIST, controls, current.values)

    assert [(c.field, c.value) for c in changes] == [("cumulative", True)]


def test_unknown_trigger_yields_nothing():
    assert _changes_from_controls(None, {}, _current().values) == []

from __future__ import annotations

from mortality_explorer.core.date_range import DateRange, RangeCalculator
from mortality_explorer.core.period import MONTHS

YEARLY = [str(y) for y in range(1990, 2024)]
FLUSEASON = [f"{y}/{(y + 1) % 100:02d}" for y in range(1995, 2024)]
MONTHLY = [f"{y} {m}" for y in range(2019, 2022) for m in MONTHS]


def test_available_range_and_effective_min_without_extended_access():
    calc = RangeCalculator("yearly", YEARLY)
    assert calc.available_range == DateRange("1990", "2023")
    assert calc.available_labels == tuple(YEARLY)
    assert calc.effective_min_date == "2000"
    assert calc.visible_labels[0] == "2000"
    assert calc.visible_labels[-1] == "2023"


def test_extended_access_sees_full_history():
    calc = RangeCalculator("yearly", YEARLY, has_extended_access=True)
    assert calc.effective_min_date == "1990"
    assert calc.visible_labels[0] == "1990"


def test_slider_start_trims_visible_labels():
    calc = RangeCalculator("yearly", YEARLY, slider_start="2010")
    assert calc.visible_labels[0] == "2010"
    assert calc.visible_range == DateRange("2010", "2023")


def test_unparseable_labels_are_hidden_without_extended_access():
    labels = ["1995", "2005", "n/a", "2010"]
    assert RangeCalculator("yearly", labels).visible_labels == ("2005", "2010")
    assert RangeCalculator("yearly", labels, has_extended_access=True).visible_labels == tuple(labels)


def test_season_floor_keeps_1999_00():
    calc = RangeCalculator("fluseason", FLUSEASON)
    assert calc.effective_min_date == "1999/00"
    assert calc.visible_labels[0] == "1999/00"


def test_data_starting_after_floor_is_its_own_minimum():
    calc = RangeCalculator("yearly", [str(y) for y in range(2005, 2010)])
    assert calc.effective_min_date == "2005"


def test_empty_labels_never_raise():
    calc = RangeCalculator("monthly", [], slider_start="2010", date_from="2020 Jan")
    assert calc.available_range is None
    assert calc.effective_min_date is None
    assert calc.visible_labels == ()
    assert calc.visible_range is None
    assert calc.selected_range == DateRange("2020 Jan", "")
    assert calc.get_default_range() == DateRange("", "")
    assert calc.match_date_to_label("2020 Jan") is None
    assert calc.find_closest_year_label("2020") is None
    assert not calc.is_valid_date("2020 Jan")


def test_match_date_to_label_policies():
    calc = RangeCalculator("monthly", MONTHLY, has_extended_access=True)
    assert calc.match_date_to_label("2020 May") == "2020 May"
    assert calc.match_date_to_label("2020") == "2020 Jan"
    assert calc.match_date_to_label("2020", prefer_last=True) == "2020 Dec"
    assert calc.match_date_to_label("2025 Mar", prefer_last=True) == "2021 Dec"
    assert calc.match_date_to_label("1990 Mar") == "2019 Jan"
    assert calc.match_date_to_label("") is None


def test_yearly_date_maps_onto_season_starting_that_year():
    calc = RangeCalculator("fluseason", ["2019/20", "2020/21", "2021/22"])
    assert calc.match_date_to_label("2021", False) == "2021/22"
    assert calc.match_date_to_label("2020", True) == "2020/21"


def test_find_closest_year_label_prefers_later_year_on_tie():
    calc = RangeCalculator("yearly", ["2018", "2020"], has_extended_access=True)
    assert calc.find_closest_year_label("2019") == "2020"
    assert calc.find_closest_year_label(2018) == "2018"


def test_selected_range_leaves_unset_endpoints_empty():
    calc = RangeCalculator("yearly", YEARLY, slider_start="2010", date_to="2020")
    assert calc.selected_range == DateRange("", "2020")
    assert RangeCalculator("yearly", YEARLY).selected_range == DateRange("", "")
    assert calc.get_default_range() == DateRange("2010", "2023")


def test_is_valid_date_uses_visible_labels():
    calc = RangeCalculator("yearly", YEARLY, slider_start="2010")
    assert calc.is_valid_date("2015")
    assert not calc.is_valid_date("2005")
    assert not calc.is_valid_date(None)

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Set

from mortality_explorer.core.baseline import BASELINE_METHODS
from mortality_explorer.core.labels import METRICS, STANDARD_POPULATIONS
from mortality_explorer.core.period import GRANULARITIES, convert_label, label_pattern, parse_position
from mortality_explorer.validation.errors import ValidationError, ValidationIssue

from .fields import CHART_STYLES, DECIMALS, FIELDS_BY_NAME

logger = logging.getLogger(__name__)

DEFAULT_MAX_COUNTRIES = 10

_ENUMS: Dict[str, Iterable[str]] = {
    "type": METRICS,
    "chart_type": GRANULARITIES,
    "chart_style": CHART_STYLES,
    "standard_population": STANDARD_POPULATIONS,
    "baseline_method": BASELINE_METHODS,
    "decimals": DECIMALS,
}


def _issue(code: str, message: str, field: str | None = None) -> ValidationIssue:
    return ValidationIssue(code=code, message=message, field=field)


def _after(a: str | None, b: str | None) -> bool:
    pa, pb = parse_position(a), parse_position(b)
    return pa is not None and pb is not None and pa > pb


def validate_state(values: Mapping[str, Any], max_countries: int = DEFAULT_MAX_COUNTRIES) -> List[ValidationIssue]:
    """
    Check a resolved state against the cross-field rules.

    Returns every issue found (empty list means valid). Each issue carries a
    stable code so repairs dispatch on the code rather than on wording.
    """
    issues: List[ValidationIssue] = []

    countries = list(values.get("countries") or [])
    if not countries:
        issues.append(_issue("COUNTRIES_EMPTY", "Select at least one country.", "countries"))
    elif len(countries) > max_countries:
        issues.append(_issue(
            "COUNTRIES_MAX", f"At most {max_countries} countries can be compared.", "countries",
        ))

    if not list(values.get("age_groups") or []):
        issues.append(_issue("AGE_GROUPS_EMPTY", "Select at least one age group.", "age_groups"))

    for field, allowed in _ENUMS.items():
        if values.get(field) not in tuple(allowed):
            issues.append(_issue(
                "ENUM_VALUE", f"Invalid value {values.get(field)!r} for {field}.", field,
            ))

    granularity = values.get("chart_type")
    if granularity in GRANULARITIES:
        pattern = label_pattern(granularity)
        for field, code in (
                ("date_from", "DATE_FORMAT"),
                ("date_to", "DATE_FORMAT"),
                ("baseline_date_from", "BASELINE_DATE_FORMAT"),
                ("baseline_date_to", "BASELINE_DATE_FORMAT"),
        ):
            value = values.get(field)
            if value and not pattern.match(value):
                issues.append(_issue(
                    code, f"{field} {value!r} does not match the {granularity} format.", field,
                ))

    if _after(values.get("date_from"), values.get("date_to")):
        issues.append(_issue("DATE_ORDER", "Start date must not be after end date.", "date_from"))
    if _after(values.get("baseline_date_from"), values.get("baseline_date_to")):
        issues.append(_issue(
            "BASELINE_ORDER", "Baseline start must not be after baseline end.", "baseline_date_from",
        ))
    if _after(values.get("baseline_date_from"), values.get("date_to")):
        issues.append(_issue(
            "BASELINE_AFTER_DISPLAY", "Baseline period must not start after the displayed period.",
            "baseline_date_from",
        ))

    is_excess = bool(values.get("is_excess"))
    show_baseline = bool(values.get("show_baseline"))
    if is_excess and not show_baseline:
        issues.append(_issue(
            "EXCESS_REQUIRES_BASELINE", "Excess mortality requires the baseline.", "show_baseline",
        ))
    if values.get("type") == "population" and (show_baseline or is_excess):
        issues.append(_issue(
            "POPULATION_NO_BASELINE", "Population data cannot show a baseline or excess.", "show_baseline",
        ))
    if values.get("show_prediction_interval") and not show_baseline:
        issues.append(_issue(
            "PI_REQUIRES_BASELINE", "Prediction intervals require the baseline.", "show_prediction_interval",
        ))

    return issues


def ensure_valid(values: Mapping[str, Any], max_countries: int = DEFAULT_MAX_COUNTRIES) -> None:
    """:raises ValidationError: if `values` has any issue"""
    issues = validate_state(values, max_countries=max_countries)
    if issues:
        raise ValidationError(issues)


# ----------------------------------------------------------------------
# Auto-fix
# ----------------------------------------------------------------------
Fixer = Callable[[ValidationIssue, Mapping[str, Any], int], Dict[str, Any]]


def _fix_countries_empty(issue, values, max_countries):
    return {"countries": list(FIELDS_BY_NAME["countries"].default)}


def _fix_countries_max(issue, values, max_countries):
    return {"countries": list(values.get("countries") or [])[:max_countries]}


def _fix_age_groups(issue, values, max_countries):
    return {"age_groups": ["all"]}


def _fix_enum(issue, values, max_countries):
    return {issue.field: FIELDS_BY_NAME[issue.field].default}


def _fix_date_format(issue, values, max_countries):
    prefer_last = issue.field in ("date_to", "baseline_date_to")
    return {issue.field: convert_label(values.get(issue.field), values.get("chart_type"), prefer_last)}


def _fix_date_order(issue, values, max_countries):
    return {"date_from": values.get("date_to"), "date_to": values.get("date_from")}


def _fix_baseline_order(issue, values, max_countries):
    return {
        "baseline_date_from": values.get("baseline_date_to"),
        "baseline_date_to": values.get("baseline_date_from"),
    }


def _fix_baseline_after_display(issue, values, max_countries):
    # Fall back to the policy defaults computed at fetch time
    return {"baseline_date_from": None, "baseline_date_to": None}


def _fix_excess_baseline(issue, values, max_countries):
    return {"show_baseline": True}


def _fix_population_baseline(issue, values, max_countries):
    return {"show_baseline": False, "show_prediction_interval": False}


def _fix_pi(issue, values, max_countries):
    return {"show_prediction_interval": False}


AUTO_FIXES: Dict[str, Fixer] = {
    "COUNTRIES_EMPTY": _fix_countries_empty,
    "COUNTRIES_MAX": _fix_countries_max,
    "AGE_GROUPS_EMPTY": _fix_age_groups,
    "ENUM_VALUE": _fix_enum,
    "DATE_FORMAT": _fix_date_format,
    "BASELINE_DATE_FORMAT": _fix_date_format,
    "DATE_ORDER": _fix_date_order,
    "BASELINE_ORDER": _fix_baseline_order,
    "BASELINE_AFTER_DISPLAY": _fix_baseline_after_display,
    "EXCESS_REQUIRES_BASELINE": _fix_excess_baseline,
    "POPULATION_NO_BASELINE": _fix_population_baseline,
    "PI_REQUIRES_BASELINE": _fix_pi,
}


def auto_fix(
        issues: Iterable[ValidationIssue],
        values: Mapping[str, Any],
        max_countries: int = DEFAULT_MAX_COUNTRIES,
) -> Dict[str, Any]:
    """
    Field updates that repair `issues`. Issues with no registered fixer are
    skipped (and logged) so the caller can surface them instead.
    """
    updates: Dict[str, Any] = {}
    for issue in issues:
        fixer = AUTO_FIXES.get(issue.code)
        if fixer is None:
            logger.warning("No auto-fix for validation issue", extra={"code": issue.code})
            continue
        updates.update(fixer(issue, {**values, **updates}, max_countries))
    return updates


class IssueReporter:
    """
    Surfaces each distinct validation message once.

    Messages shown while the state stays invalid are not repeated; once a
    validation pass comes back clean the memory is cleared.
    """

    def __init__(self, sink: Callable[[str], None] | None = None):
        self._shown: Set[str] = set()
        self._sink = sink

    def report(self, issues: Iterable[ValidationIssue]) -> List[str]:
        issues = list(issues)
        if not issues:
            self._shown.clear()
            return []

        fresh: List[str] = []
        for issue in issues:
            if issue.message in self._shown:
                continue
            self._shown.add(issue.message)
            fresh.append(issue.message)
            logger.warning(
                "State validation issue",
                extra={"code": issue.code, "field": issue.field, "validation_message": issue.message},
            )
            if self._sink is not None:
                self._sink(issue.message)
        return fresh

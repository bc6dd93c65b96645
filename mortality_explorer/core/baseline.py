from __future__ import annotations

from typing import Optional, Sequence

from .date_range import DateRange
from .period import MONTHLY, QUARTERLY, is_season, is_weekly

BASELINE_METHODS = ("naive", "mean", "median", "lin_reg", "exp")

# Last pre-pandemic period per granularity family
_DEFAULT_END_YEAR = 2019


def season_string(granularity: str, year: int) -> str:
    """
    Label at which a baseline starting in `year` begins.

    Season granularities use the season that *ends* in `year`
    (2017 -> "2016/17").
    """
    if is_weekly(granularity):
        return f"{year}-W01"
    if granularity == MONTHLY:
        return f"{year} Jan"
    if granularity == QUARTERLY:
        return f"{year} Q1"
    if is_season(granularity):
        return f"{year - 1}/{str(year)[-2:]}"
    return f"{year}"


def _leading_year(label: str) -> Optional[int]:
    head = label[:4]
    return int(head) if head.isdigit() else None


def baseline_start_year(labels: Sequence[str], method: Optional[str]) -> int:
    if not labels:
        return 2015
    first_year = _leading_year(labels[0])

    if method == "naive":
        return 2015
    if method == "mean":
        return 2017
    if method == "lin_reg":
        return 2010
    if method == "exp":
        if first_year is None or first_year < 2000:
            return 2000
        return first_year
    return first_year if first_year is not None else 2015


def default_baseline_from(granularity: str, labels: Sequence[str], method: Optional[str]) -> Optional[str]:
    """Start label for the method, or the first label when that is not available."""
    candidate = season_string(granularity, baseline_start_year(labels, method))
    if labels and candidate not in labels:
        return labels[0]
    return candidate


def default_baseline_to(granularity: str, labels: Sequence[str] = ()) -> Optional[str]:
    """End label of the pre-pandemic baseline, clamped to the last label if missing."""
    if is_weekly(granularity):
        candidate = f"{_DEFAULT_END_YEAR}-W52"
    elif granularity == MONTHLY:
        candidate = f"{_DEFAULT_END_YEAR} Dec"
    elif granularity == QUARTERLY:
        candidate = f"{_DEFAULT_END_YEAR} Q4"
    elif is_season(granularity):
        candidate = f"{_DEFAULT_END_YEAR - 1}/{str(_DEFAULT_END_YEAR)[-2:]}"
    else:
        candidate = f"{_DEFAULT_END_YEAR}"

    if labels and candidate not in labels:
        return labels[-1]
    return candidate


class BaselinePolicy:
    """
    Default baseline window policy used by the data orchestrator.

    Kept as a small object so deployments can swap in a different policy
    without touching the orchestrator.
    """

    def default_from(self, granularity: str, labels: Sequence[str], method: Optional[str]) -> Optional[str]:
        return default_baseline_from(granularity, labels, method)

    def default_to(self, granularity: str, labels: Sequence[str]) -> Optional[str]:
        return default_baseline_to(granularity, labels)

    def validate(
            self,
            granularity: str,
            labels: Sequence[str],
            method: Optional[str],
            baseline_from: Optional[str],
            baseline_to: Optional[str],
    ) -> DateRange:
        """
        Replace any endpoint that is not an exact label with the default.
        Endpoints that are members are returned unchanged.
        """
        members = set(labels)
        start = baseline_from if baseline_from in members else self.default_from(granularity, labels, method)
        end = baseline_to if baseline_to in members else self.default_to(granularity, labels)
        return DateRange(start or "", end or "")

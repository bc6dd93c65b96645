from __future__ import annotations

import re
from typing import Dict, Iterable, Iterator, List, Optional, Pattern, Tuple

from .exceptions import EmptyIndexError

YEARLY = "yearly"
MIDYEAR = "midyear"
FLUSEASON = "fluseason"
QUARTERLY = "quarterly"
MONTHLY = "monthly"
WEEKLY = "weekly"
WEEKLY_13W_SMA = "weekly_13w_sma"
WEEKLY_26W_SMA = "weekly_26w_sma"
WEEKLY_52W_SMA = "weekly_52w_sma"
WEEKLY_104W_SMA = "weekly_104w_sma"

GRANULARITIES: Tuple[str, ...] = (
    YEARLY,
    MIDYEAR,
    FLUSEASON,
    QUARTERLY,
    MONTHLY,
    WEEKLY,
    WEEKLY_13W_SMA,
    WEEKLY_26W_SMA,
    WEEKLY_52W_SMA,
    WEEKLY_104W_SMA,
)

MONTHS: Tuple[str, ...] = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

_YEAR_RE = re.compile(r"^(\d{4})$")
_SEASON_RE = re.compile(r"^(\d{4})/(\d{2})$")
_QUARTER_RE = re.compile(r"^(\d{4}) Q([1-4])$")
_MONTH_RE = re.compile(r"^(\d{4}) ([A-Z][a-z]{2})$")
_WEEK_RE = re.compile(r"^(\d{4})-W(\d{2})$")
_LEADING_YEAR_RE = re.compile(r"^(\d{4})")


def is_weekly(granularity: str) -> bool:
    return granularity.startswith(WEEKLY)


def is_season(granularity: str) -> bool:
    return granularity in (MIDYEAR, FLUSEASON)


def is_yearly_like(granularity: str) -> bool:
    """Granularities with one label per (possibly season-spanning) year."""
    return granularity == YEARLY or is_season(granularity)


def label_pattern(granularity: str) -> Pattern[str]:
    """Regex a well-formed label of the given granularity must match."""
    if granularity == YEARLY:
        return _YEAR_RE
    if is_season(granularity):
        return _SEASON_RE
    if granularity == QUARTERLY:
        return _QUARTER_RE
    if granularity == MONTHLY:
        return _MONTH_RE
    if is_weekly(granularity):
        return _WEEK_RE
    raise ValueError(f"Unknown granularity '{granularity}'")


def parse_position(label: Optional[str]) -> Optional[float]:
    """
    Map a label onto a fractional year so labels of one granularity can be
    ordered and compared by distance.

    Season labels ("2016/17") sit in the middle of their first year.
    A label in no known format that still starts with four digits is placed
    at that year; anything else has no position.
    """
    if not label:
        return None

    m = _YEAR_RE.match(label)
    if m:
        return float(m.group(1))

    m = _SEASON_RE.match(label)
    if m:
        return int(m.group(1)) + 0.5

    m = _QUARTER_RE.match(label)
    if m:
        return int(m.group(1)) + (int(m.group(2)) - 1) / 4

    m = _MONTH_RE.match(label)
    if m and m.group(2) in MONTHS:
        return int(m.group(1)) + MONTHS.index(m.group(2)) / 12

    m = _WEEK_RE.match(label)
    if m:
        return int(m.group(1)) + (int(m.group(2)) - 1) / 53

    m = _LEADING_YEAR_RE.match(label)
    if m:
        return float(m.group(1))
    return None


def sort_labels(labels: Iterable[str]) -> List[str]:
    """
    Chronological sort. Monthly labels are not lexically ordered, so the
    sort key is always the parsed position; unparseable labels go last.
    """

    def _key(label: str):
        pos = parse_position(label)
        return (pos is None, pos if pos is not None else 0.0, label)

    return sorted(set(labels), key=_key)


def format_label(granularity: str, year: int, last: bool = False) -> str:
    """First (or last) canonical label whose leading year is `year`."""
    if granularity == YEARLY:
        return f"{year:04d}"
    if is_season(granularity):
        return f"{year:04d}/{(year + 1) % 100:02d}"
    if granularity == QUARTERLY:
        return f"{year:04d} Q{4 if last else 1}"
    if granularity == MONTHLY:
        return f"{year:04d} {MONTHS[-1] if last else MONTHS[0]}"
    if is_weekly(granularity):
        return f"{year:04d}-W{52 if last else 1:02d}"
    raise ValueError(f"Unknown granularity '{granularity}'")


def convert_label(label: Optional[str], granularity: str, prefer_last: bool = False) -> Optional[str]:
    """
    Rewrite a label from another granularity into this one, keeping its year.
    Labels already in the right format are returned unchanged.
    """
    if not label:
        return None
    if label_pattern(granularity).match(label):
        return label
    m = _LEADING_YEAR_RE.match(label)
    if m is None:
        return None
    return format_label(granularity, int(m.group(1)), last=prefer_last)


def year_2000_floor(granularity: str) -> str:
    """Earliest label shown to callers without extended time-period access."""
    if granularity == YEARLY:
        return "2000"
    if is_season(granularity):
        return "1999/00"
    if granularity == QUARTERLY:
        return "2000 Q1"
    if granularity == MONTHLY:
        return "2000 Jan"
    if is_weekly(granularity):
        return "2000-W01"
    raise ValueError(f"Unknown granularity '{granularity}'")


class PeriodIndex:
    """
    Ordered, deduplicated sequence of period labels for one fetch.

    Lookups are tolerant: a label that is not a member resolves to the
    chronologically closest member (ties go to the later label), so a slider
    start of "2010" lands on "2010/11" in a fluseason index.
    """

    def __init__(self, labels: Iterable[str]):
        self._labels: Tuple[str, ...] = tuple(dict.fromkeys(labels))
        self._lookup: Dict[str, int] = {label: i for i, label in enumerate(self._labels)}
        self._positions: Tuple[Optional[float], ...] = tuple(
            parse_position(label) for label in self._labels
        )

    @property
    def labels(self) -> Tuple[str, ...]:
        return self._labels

    def __len__(self) -> int:
        return len(self._labels)

    def __iter__(self) -> Iterator[str]:
        return iter(self._labels)

    def __contains__(self, label: object) -> bool:
        return label in self._lookup

    def __repr__(self) -> str:
        return f"PeriodIndex(n={len(self._labels)}, first={self.first!r}, last={self.last!r})"

    @property
    def first(self) -> Optional[str]:
        return self._labels[0] if self._labels else None

    @property
    def last(self) -> Optional[str]:
        return self._labels[-1] if self._labels else None

    def label_at(self, index: int) -> str:
        return self._labels[index]

    @staticmethod
    def year_of(label: str) -> str:
        return label[:4]

    def is_valid(self, label: Optional[str]) -> bool:
        return label is not None and label in self._lookup

    def index_of(self, label: str) -> int:
        """
        Position of `label`, or of the closest member when it is not present.

        :raises EmptyIndexError: if the index holds no labels
        """
        if not self._labels:
            raise EmptyIndexError("Cannot look up a label in an empty PeriodIndex")

        exact = self._lookup.get(label)
        if exact is not None:
            return exact

        target = parse_position(label)
        if target is None:
            return 0

        best_idx = 0
        best_dist: Optional[float] = None
        for i, pos in enumerate(self._positions):
            if pos is None:
                continue
            dist = abs(pos - target)
            # `<=` keeps walking forward on a tie, so the later label wins
            if best_dist is None or dist <= best_dist:
                best_idx, best_dist = i, dist
        return best_idx

    def closest_label(self, label: str) -> Optional[str]:
        if not self._labels:
            return None
        return self._labels[self.index_of(label)]

    def slice_from(self, label: Optional[str]) -> Tuple[str, ...]:
        if not self._labels:
            return ()
        if label is None:
            return self._labels
        return self._labels[self.index_of(label):]

    def range(self, start: Optional[str], end: Optional[str]) -> Tuple[str, ...]:
        """Inclusive slice between two (closest-matched) labels."""
        if not self._labels:
            return ()
        lo = self.index_of(start) if start else 0
        hi = self.index_of(end) if end else len(self._labels) - 1
        if lo > hi:
            return ()
        return self._labels[lo:hi + 1]

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .period import PeriodIndex, parse_position, year_2000_floor


@dataclass(frozen=True)
class DateRange:
    """Inclusive pair of period labels. Empty strings mean "no range"."""
    from_: str
    to: str


class RangeCalculator:
    """
    Derives the selectable and visible date ranges for the current chart.

    Every property is recomputed from the inputs on access, so a calculator
    can be rebuilt freely whenever labels or state change. Empty label sets
    never raise: ranges become None and lookups return None.
    """

    def __init__(
            self,
            granularity: str,
            all_labels: Sequence[str],
            slider_start: Optional[str] = None,
            date_from: Optional[str] = None,
            date_to: Optional[str] = None,
            has_extended_access: bool = False,
    ):
        self.granularity = granularity
        self.slider_start = slider_start
        self.date_from = date_from
        self.date_to = date_to
        self.has_extended_access = has_extended_access
        self._index = PeriodIndex(all_labels)

    # ------------------------------------------------------------------
    # Ranges
    # ------------------------------------------------------------------
    @property
    def available_labels(self) -> Tuple[str, ...]:
        return self._index.labels

    @property
    def available_range(self) -> Optional[DateRange]:
        if not self._index:
            return None
        return DateRange(self._index.first, self._index.last)

    @property
    def effective_min_date(self) -> Optional[str]:
        available = self.available_range
        if available is None:
            return None
        if self.has_extended_access:
            return available.from_

        floor = year_2000_floor(self.granularity)
        data_min_pos = parse_position(available.from_)
        floor_pos = parse_position(floor)
        if data_min_pos is not None and floor_pos is not None and data_min_pos < floor_pos:
            return floor
        return available.from_

    @property
    def visible_labels(self) -> Tuple[str, ...]:
        labels = self._index.slice_from(self.slider_start)
        if self.has_extended_access or not labels:
            return labels

        min_pos = parse_position(self.effective_min_date)
        if min_pos is None:
            return labels
        return tuple(
            label for label in labels
            if (pos := parse_position(label)) is not None and pos >= min_pos
        )

    @property
    def visible_range(self) -> Optional[DateRange]:
        visible = self.visible_labels
        if not visible:
            return None
        return DateRange(visible[0], visible[-1])

    @property
    def selected_range(self) -> DateRange:
        """Current selection as given; unset endpoints stay empty."""
        return DateRange(self.date_from or "", self.date_to or "")

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def is_valid_date(self, label: Optional[str]) -> bool:
        return label is not None and label in self.visible_labels

    def _labels_by_year(self) -> Dict[str, List[str]]:
        grouped: Dict[str, List[str]] = {}
        for label in self.visible_labels:
            grouped.setdefault(PeriodIndex.year_of(label), []).append(label)
        return grouped

    def find_closest_year_label(self, year: str | int, prefer_last: bool = False) -> Optional[str]:
        """
        First (or last) visible label of `year`, or of the nearest year that
        has labels. Equidistant years resolve to the later one.
        """
        grouped = self._labels_by_year()
        if not grouped:
            return None

        year_str = f"{int(year):04d}" if isinstance(year, int) else str(year)
        candidates = grouped.get(year_str)
        if candidates is None:
            if not year_str.isdigit():
                return None
            target = int(year_str)
            best_year: Optional[str] = None
            best_dist: Optional[int] = None
            for y in sorted(grouped):
                if not y.isdigit():
                    continue
                dist = abs(int(y) - target)
                if best_dist is None or dist <= best_dist:
                    best_year, best_dist = y, dist
            if best_year is None:
                return None
            candidates = grouped[best_year]

        return candidates[-1] if prefer_last else candidates[0]

    def match_date_to_label(self, date: Optional[str], prefer_last: bool = False) -> Optional[str]:
        """
        Snap an arbitrary date string onto a visible label:
        exact member, else first/last label of the same year, else the
        first/last label of the nearest year.
        """
        if not date or not self.visible_labels:
            return None
        if date in self.visible_labels:
            return date
        return self.find_closest_year_label(PeriodIndex.year_of(date), prefer_last)

    def get_default_range(self) -> DateRange:
        visible = self.visible_labels
        if not visible:
            return DateRange("", "")
        return DateRange(visible[0], visible[-1])

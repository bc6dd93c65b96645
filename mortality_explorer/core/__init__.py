"""
Core domain layer: period labels and their index, date range derivation,
baseline window defaults and dataset label/key helpers
"""

from .date_range import DateRange, RangeCalculator
from .period import PeriodIndex

__all__ = ["DateRange", "PeriodIndex", "RangeCalculator"]

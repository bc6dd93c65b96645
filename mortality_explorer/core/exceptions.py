from __future__ import annotations


class ExplorerError(Exception):
    """Base exception for all mortality_explorer errors"""
    pass


class EmptyIndexError(ExplorerError, LookupError):
    """
    A position lookup was attempted on a PeriodIndex without labels.
    Callers are expected to check for an empty index first.
    """
    pass


class ConfigError(ExplorerError):
    """Invalid or inconsistent global.json or environment overrides"""
    pass


class DatasetFetchError(ExplorerError):
    """
    None of the files backing a dataset selection could be read
    (missing data root, unknown granularity directory, ...)
    """
    pass

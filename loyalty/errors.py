"""
Error types for the loyalty core.

Only structural problems raise. Per-deal data quality issues are reported
as SkippedRecord entries, never as exceptions.
"""


class InvalidConfiguration(ValueError):
    """The tier table is empty, unsorted, or has duplicate thresholds."""


class InvalidDealBatch(TypeError):
    """The raw deal input is not a list."""

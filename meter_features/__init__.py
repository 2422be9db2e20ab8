"""Meter Features - feature extraction over utility-meter time series.

This package applies composable feature functions to per-meter interval
readings and weather observations:
- models: customer records, date filters and the per-unit failure sentinel
- sources: pluggable data sources (in-memory, CSV, synthetic, Supabase)
- iterator: flat and geocode-grouped iteration with failure isolation
- reducer: reduction of run results into a pandas DataFrame

Example:
    >>> from meter_features import iterate_meters, to_table
    >>> from meter_features.features import consumption_features
    >>> result = iterate_meters(source, ["000123"], [consumption_features])
    >>> table = to_table(result)
"""

from meter_features.context import LockingRunContext, RunContext
from meter_features.iterator import (
    FlatIterator,
    GroupedIterator,
    UnitExecutor,
    iterate_meters,
    iterate_zip,
)
from meter_features.reducer import failed_ids, summarize, to_table

__all__ = [
    "FlatIterator",
    "GroupedIterator",
    "LockingRunContext",
    "RunContext",
    "UnitExecutor",
    "__version__",
    "failed_ids",
    "iterate_meters",
    "iterate_zip",
    "summarize",
    "to_table",
]
__version__ = "0.1.0"

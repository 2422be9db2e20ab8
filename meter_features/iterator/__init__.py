"""Iteration engine: per-unit execution and flat/grouped iteration."""

from meter_features.iterator.executor import FeatureFunction, UnitExecutor, feature_name
from meter_features.iterator.strategies import (
    FlatIterator,
    GroupedIterator,
    GroupSink,
    iterate_meters,
    iterate_zip,
)

__all__ = [
    "FeatureFunction",
    "FlatIterator",
    "GroupSink",
    "GroupedIterator",
    "UnitExecutor",
    "feature_name",
    "iterate_meters",
    "iterate_zip",
]

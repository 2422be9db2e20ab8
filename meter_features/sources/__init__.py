"""Data sources that supply meter records and weather to the iterators."""

from meter_features.sources.base import DataSource
from meter_features.sources.csv_source import CsvDataSource
from meter_features.sources.memory import InMemoryDataSource
from meter_features.sources.supabase_source import SupabaseDataSource
from meter_features.sources.synthetic import SyntheticDataSource

__all__ = [
    "CsvDataSource",
    "DataSource",
    "InMemoryDataSource",
    "SupabaseDataSource",
    "SyntheticDataSource",
]

"""Data source reading meter readings and weather from Supabase.

The readings table stores data in long format:
    meter_id | geocode | time | kwh

The weather table stores one row per geocode and day:
    geocode | date | temperature_c
"""

import logging
from typing import Any, Optional, Sequence

import pandas as pd

from meter_features.config import IterationConfig
from meter_features.errors import ConfigurationError, DataFetchError
from meter_features.models import CustomerRecord, DateFilter
from meter_features.sources.base import DataSource

logger = logging.getLogger(__name__)

# Optional Supabase import
try:
    from supabase import Client, create_client

    SUPABASE_AVAILABLE = True
except ImportError:
    SUPABASE_AVAILABLE = False
    Client = None  # type: ignore
    create_client = None  # type: ignore

# PostgREST returns at most 1000 rows per request by default
PAGE_SIZE = 1000


class SupabaseDataSource(DataSource):
    """Serves meter records from Supabase tables.

    Example:
        >>> config = IterationConfig(
        ...     supabase_url="https://your-project.supabase.co",
        ...     supabase_key="your-key",
        ... )
        >>> source = SupabaseDataSource(config)
        >>> record = source.get_meter_data_for_id("000123")
    """

    def __init__(self, config: IterationConfig) -> None:
        """Initialize and connect.

        Args:
            config: Iteration configuration holding the Supabase settings

        Raises:
            ImportError: If supabase is not installed
            ConfigurationError: If URL or key are missing
        """
        if not SUPABASE_AVAILABLE:
            raise ImportError(
                "supabase is not installed; install with `pip install supabase`"
            )
        if not config.supabase_url:
            raise ConfigurationError("Supabase URL is required for the Supabase source")
        if not config.supabase_key:
            raise ConfigurationError("Supabase key is required for the Supabase source")

        self.config = config
        self._geocodes: Optional[list[str]] = None
        try:
            self._client: Client = create_client(config.supabase_url, config.supabase_key)
        except Exception as e:
            logger.exception("Failed to connect to Supabase")
            raise DataFetchError(f"Failed to connect to Supabase: {e}") from e
        logger.info("Connected to Supabase at %s", config.supabase_url)

    def _fetch_all(
        self, table: str, columns: str, order_by: Sequence[str], **eq_filters: Any
    ) -> list[dict]:
        """Page through a table, returning every matching row.

        Pages are ordered by ``order_by`` so consecutive range requests
        neither repeat nor skip rows.
        """
        rows: list[dict] = []
        offset = 0
        while True:
            query = self._client.table(table).select(columns)
            for column, value in eq_filters.items():
                query = query.eq(column, value)
            for column in order_by:
                query = query.order(column)
            query = query.range(offset, offset + PAGE_SIZE - 1)

            try:
                result = query.execute()
            except Exception as e:
                raise DataFetchError(f"Query on {table} failed: {e}") from e

            if not result.data:
                break
            rows.extend(result.data)
            logger.debug(
                "Fetched %d rows from %s (total: %d)", len(result.data), table, len(rows)
            )

            if len(result.data) < PAGE_SIZE:
                break
            offset += PAGE_SIZE
        return rows

    def get_ids(self, geocode: Optional[str] = None, **filters: Any) -> list[str]:
        eq_filters = dict(filters)
        if geocode is not None:
            eq_filters["geocode"] = geocode
        rows = self._fetch_all(
            self.config.readings_table, "meter_id", ["meter_id"], **eq_filters
        )
        return list(dict.fromkeys(str(row["meter_id"]) for row in rows))

    def get_geocodes(self, use_cache: bool = True) -> list[str]:
        if self._geocodes is None or not use_cache:
            rows = self._fetch_all(self.config.readings_table, "geocode", ["geocode"])
            self._geocodes = list(dict.fromkeys(str(row["geocode"]) for row in rows))
        return list(self._geocodes)

    def get_meter_data_for_id(
        self, meter_id: str, date_filter: Optional[DateFilter] = None
    ) -> CustomerRecord:
        rows = self._fetch_all(
            self.config.readings_table,
            "meter_id,geocode,time,kwh",
            ["time"],
            meter_id=meter_id,
        )
        if not rows:
            raise DataFetchError(f"Unknown meter id: {meter_id!r}", meter_id)

        df = pd.DataFrame(rows)
        df["time"] = pd.to_datetime(df["time"], utc=True).dt.tz_convert(None)
        geocode = str(df["geocode"].iloc[0])
        record = CustomerRecord.from_long(
            meter_id,
            df,
            time_col="time",
            value_col="kwh",
            intervals_per_day=self.config.intervals_per_day,
            geocode=geocode,
            weather=self.get_weather_for_geocode(geocode),
        )
        return record.filter_dates(date_filter)

    def get_weather_for_geocode(
        self, geocode: str, date_filter: Optional[DateFilter] = None
    ) -> Optional[pd.DataFrame]:
        rows = self._fetch_all(
            self.config.weather_table, "date,temperature_c", ["date"], geocode=geocode
        )
        if not rows:
            return None
        df = pd.DataFrame(rows)
        df["date"] = (
            pd.to_datetime(df["date"], utc=True).dt.tz_convert(None).dt.normalize()
        )
        weather = df.groupby("date")["temperature_c"].mean().to_frame()
        if date_filter is not None:
            weather = date_filter.apply(weather)
        return weather

    def close(self) -> None:
        """Drop the Supabase client."""
        self._client = None
        logger.info("Closed Supabase data source")

    def __enter__(self) -> "SupabaseDataSource":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

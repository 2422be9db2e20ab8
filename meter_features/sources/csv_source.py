"""Data source reading long-format CSV files with pandas.

Readings file (one row per interval reading):
    meter_id,geocode,timestamp,kwh
    000123,94305,2024-01-01 00:00:00,0.42

Weather file (optional, one row per geocode and day):
    geocode,date,temperature_c
    94305,2024-01-01,11.3
"""

import logging
from pathlib import Path
from typing import Any, Optional, Union

import pandas as pd

from meter_features.errors import DataFetchError
from meter_features.models import CustomerRecord, DateFilter
from meter_features.sources.base import DataSource

logger = logging.getLogger(__name__)

READINGS_COLUMNS = ("meter_id", "geocode", "timestamp", "kwh")
WEATHER_COLUMNS = ("geocode", "date", "temperature_c")


class CsvDataSource(DataSource):
    """Serves meter records from CSV files.

    Files are loaded lazily on first use. Id and geocode columns are read
    as strings so values such as ``000123`` keep their leading zeros.
    """

    def __init__(
        self,
        readings_path: Union[str, Path],
        weather_path: Optional[Union[str, Path]] = None,
        intervals_per_day: int = 24,
    ) -> None:
        self.readings_path = Path(readings_path)
        self.weather_path = Path(weather_path) if weather_path else None
        self.intervals_per_day = intervals_per_day
        self._readings: Optional[pd.DataFrame] = None
        self._weather: Optional[pd.DataFrame] = None
        self._geocodes: Optional[list[str]] = None

    def _load_readings(self) -> pd.DataFrame:
        if self._readings is None:
            try:
                df = pd.read_csv(
                    self.readings_path,
                    dtype={"meter_id": str, "geocode": str},
                    keep_default_na=False,
                    na_values={"kwh": ["", "NA", "NaN"]},
                )
            except (OSError, pd.errors.ParserError) as e:
                raise DataFetchError(
                    f"Failed to read readings file {self.readings_path}: {e}"
                ) from e
            missing = [col for col in READINGS_COLUMNS if col not in df.columns]
            if missing:
                raise DataFetchError(
                    f"Readings file {self.readings_path} is missing columns: {missing}"
                )
            logger.info("Loaded %d readings from %s", len(df), self.readings_path)
            self._readings = df
        return self._readings

    def _load_weather(self) -> Optional[pd.DataFrame]:
        if self.weather_path is None:
            return None
        if self._weather is None:
            try:
                df = pd.read_csv(self.weather_path, dtype={"geocode": str})
            except (OSError, pd.errors.ParserError) as e:
                raise DataFetchError(
                    f"Failed to read weather file {self.weather_path}: {e}"
                ) from e
            missing = [col for col in WEATHER_COLUMNS if col not in df.columns]
            if missing:
                raise DataFetchError(
                    f"Weather file {self.weather_path} is missing columns: {missing}"
                )
            df["date"] = pd.to_datetime(df["date"])
            self._weather = df
        return self._weather

    def get_ids(self, geocode: Optional[str] = None, **filters: Any) -> list[str]:
        df = self._load_readings()
        if geocode is not None:
            df = df[df["geocode"] == geocode]
        return list(dict.fromkeys(df["meter_id"]))

    def get_geocodes(self, use_cache: bool = True) -> list[str]:
        if self._geocodes is None or not use_cache:
            df = self._load_readings()
            self._geocodes = list(dict.fromkeys(df["geocode"]))
        return list(self._geocodes)

    def get_meter_data_for_id(
        self, meter_id: str, date_filter: Optional[DateFilter] = None
    ) -> CustomerRecord:
        df = self._load_readings()
        rows = df[df["meter_id"] == meter_id]
        if rows.empty:
            raise DataFetchError(f"Unknown meter id: {meter_id!r}", meter_id)

        geocode = rows["geocode"].iloc[0]
        record = CustomerRecord.from_long(
            meter_id,
            rows,
            time_col="timestamp",
            value_col="kwh",
            intervals_per_day=self.intervals_per_day,
            geocode=geocode,
            weather=self.get_weather_for_geocode(geocode),
        )
        return record.filter_dates(date_filter)

    def get_weather_for_geocode(
        self, geocode: str, date_filter: Optional[DateFilter] = None
    ) -> Optional[pd.DataFrame]:
        weather = self._load_weather()
        if weather is None:
            return None
        rows = weather[weather["geocode"] == geocode]
        if rows.empty:
            return None
        daily = (
            rows.groupby(rows["date"].dt.normalize())["temperature_c"]
            .mean()
            .to_frame()
        )
        daily.index.name = "date"
        if date_filter is not None:
            daily = date_filter.apply(daily)
        return daily

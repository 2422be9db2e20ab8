"""Per-meter data bundle handed to feature functions."""

import logging
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Optional

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

SUPPORTED_INTERVALS_PER_DAY = (24, 96)


@dataclass(frozen=True)
class DateFilter:
    """Inclusive date range applied to readings and weather."""

    start: Optional[date] = None
    end: Optional[date] = None

    def __post_init__(self) -> None:
        if self.start and self.end and self.start > self.end:
            raise ValueError(
                f"Date filter start {self.start} is after end {self.end}"
            )

    @property
    def is_open(self) -> bool:
        """True when neither bound is set."""
        return self.start is None and self.end is None

    def apply(self, df: pd.DataFrame) -> pd.DataFrame:
        """Return the rows of a date-indexed frame that fall inside the range."""
        if self.is_open or df.empty:
            return df
        index = pd.DatetimeIndex(pd.to_datetime(df.index))
        if index.tz is not None:
            index = index.tz_localize(None)
        mask = np.ones(len(df), dtype=bool)
        if self.start is not None:
            mask &= np.asarray(index >= pd.Timestamp(self.start))
        if self.end is not None:
            mask &= np.asarray(index < pd.Timestamp(self.end) + pd.Timedelta(days=1))
        return df[mask]

    @classmethod
    def from_strings(
        cls, start: Optional[str] = None, end: Optional[str] = None
    ) -> "DateFilter":
        """Build a filter from ISO date strings (empty strings mean unbounded)."""
        return cls(
            start=date.fromisoformat(start) if start else None,
            end=date.fromisoformat(end) if end else None,
        )


@dataclass
class CustomerRecord:
    """Meter readings and metadata for one customer/meter.

    The readings frame is indexed by day with one column per intraday
    interval (24 hourly or 96 quarter-hourly kWh values). Weather, when
    present, is a frame indexed by day with a ``temperature_c`` column.

    Attributes:
        meter_id: Opaque meter identifier, always a string
        readings: Day x interval matrix of kWh readings
        geocode: Geographic grouping code (e.g. zip code)
        weather: Optional daily weather observations for the geocode
        metadata: Free-form attributes supplied by the data source
    """

    meter_id: str
    readings: pd.DataFrame
    geocode: Optional[str] = None
    weather: Optional[pd.DataFrame] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.meter_id, str):
            raise TypeError(
                f"meter_id must be a string, got {type(self.meter_id).__name__}"
            )
        width = self.readings.shape[1]
        if width not in SUPPORTED_INTERVALS_PER_DAY:
            raise ValueError(
                f"Readings for meter {self.meter_id} have {width} intervals per day; "
                f"expected one of {SUPPORTED_INTERVALS_PER_DAY}"
            )

    @property
    def intervals_per_day(self) -> int:
        return self.readings.shape[1]

    @property
    def n_days(self) -> int:
        return len(self.readings)

    @property
    def kwh(self) -> np.ndarray:
        """Readings as a 2-D float array (days x intervals)."""
        return self.readings.to_numpy(dtype=float)

    def daily_totals(self) -> pd.Series:
        """Total kWh per day, skipping missing intervals."""
        return self.readings.sum(axis=1, min_count=1)

    def hourly(self) -> pd.DataFrame:
        """Readings aggregated to 24 hourly columns labelled 0-23.

        An hour with no readings at all stays NaN; partial hours sum the
        readings present.
        """
        if self.intervals_per_day == 24:
            values = self.kwh
        else:
            per_hour = self.intervals_per_day // 24
            quarters = self.kwh.reshape(self.n_days, 24, per_hour)
            values = np.nansum(quarters, axis=2)
            values[np.isnan(quarters).all(axis=2)] = np.nan
        return pd.DataFrame(values, index=self.readings.index, columns=range(24))

    def filter_dates(self, date_filter: Optional[DateFilter]) -> "CustomerRecord":
        """Return a copy restricted to the given date range."""
        if date_filter is None or date_filter.is_open:
            return self
        weather = None
        if self.weather is not None:
            weather = date_filter.apply(self.weather)
        return replace(
            self, readings=date_filter.apply(self.readings), weather=weather
        )

    @classmethod
    def from_long(
        cls,
        meter_id: str,
        df: pd.DataFrame,
        *,
        time_col: str = "timestamp",
        value_col: str = "kwh",
        intervals_per_day: int = 24,
        geocode: Optional[str] = None,
        weather: Optional[pd.DataFrame] = None,
    ) -> "CustomerRecord":
        """Pivot long-format readings into the day x interval matrix.

        The long format stores one reading per row:
            timestamp | kwh

        Each timestamp is mapped to its day and its slot within the day.
        Duplicate readings for the same slot keep the first value.

        Args:
            meter_id: Meter identifier
            df: Long-format readings
            time_col: Name of the timestamp column
            value_col: Name of the reading column
            intervals_per_day: 24 (hourly) or 96 (15-minute)
            geocode: Geographic grouping code
            weather: Daily weather frame for the geocode

        Returns:
            CustomerRecord with a complete interval grid (missing slots are NaN)
        """
        if intervals_per_day not in SUPPORTED_INTERVALS_PER_DAY:
            raise ValueError(
                f"intervals_per_day must be one of {SUPPORTED_INTERVALS_PER_DAY}"
            )
        slots = range(intervals_per_day)
        if df.empty:
            readings = pd.DataFrame(columns=slots, dtype=float)
            return cls(meter_id, readings, geocode=geocode, weather=weather)

        times = pd.to_datetime(df[time_col])
        minutes_per_slot = 24 * 60 // intervals_per_day
        long_df = pd.DataFrame(
            {
                "day": times.dt.normalize(),
                "slot": (times.dt.hour * 60 + times.dt.minute) // minutes_per_slot,
                "value": pd.to_numeric(df[value_col], errors="coerce"),
            }
        )

        dup_count = long_df.duplicated(subset=["day", "slot"]).sum()
        if dup_count:
            logger.warning(
                "Meter %s has %d duplicate interval readings; using first value",
                meter_id,
                dup_count,
            )

        readings = long_df.pivot_table(
            index="day", columns="slot", values="value", aggfunc="first"
        ).reindex(columns=slots)
        readings.columns.name = None
        readings.index.name = "date"
        return cls(meter_id, readings, geocode=geocode, weather=weather)

"""Weather-sensitivity features.

Geocode-level weather statistics are the same for every meter in a
geocode, so they are computed once per run and kept in the context cache
under ``("weather_stats", geocode)``. The raw weather frame is read from
``("weather", geocode)``, which the grouped iterator fills ahead of time;
otherwise the record's own weather is cached there on first use.
"""

import logging
from typing import Any

import numpy as np
import pandas as pd

from meter_features.context import RunContext
from meter_features.errors import FeatureComputationError
from meter_features.models import CustomerRecord

logger = logging.getLogger(__name__)

BALANCE_POINT_C = 18.0
MIN_OVERLAP_DAYS = 7


def _daily_temperature(record: CustomerRecord, ctx: RunContext) -> pd.Series:
    def load() -> pd.DataFrame:
        if record.weather is None:
            raise FeatureComputationError(
                f"No weather data for geocode {record.geocode!r}",
                feature_name="weather_features",
            )
        return record.weather

    weather = ctx.get_or_compute("weather", record.geocode, load)
    if "temperature_c" not in weather.columns:
        raise FeatureComputationError(
            "Weather data has no temperature_c column", feature_name="weather_features"
        )
    temps = weather["temperature_c"].dropna()
    # Key by calendar day so readings and weather align regardless of timezone
    temps.index = pd.Index(pd.to_datetime(temps.index).date, name="date")
    return temps.groupby(level=0).mean()


def _weather_stats(temps: pd.Series) -> dict[str, float]:
    return {
        "mean_temp_c": float(temps.mean()),
        "heating_degree_days": float((BALANCE_POINT_C - temps).clip(lower=0).sum()),
        "cooling_degree_days": float((temps - BALANCE_POINT_C).clip(lower=0).sum()),
    }


def weather_features(
    record: CustomerRecord, ctx: RunContext, **extra: Any
) -> dict[str, Any]:
    """Geocode climate summary and the meter's temperature sensitivity.

    Adds:
    - weather: nested mapping of geocode statistics (mean temperature,
      heating and cooling degree days over the weather period)
    - temp_kwh_correlation: Pearson correlation of daily kWh and temperature
    - heating_slope_kwh_per_c: kWh per degree below the balance point
    - cooling_slope_kwh_per_c: kWh per degree above the balance point
    """
    if record.geocode is None:
        raise FeatureComputationError(
            f"Meter {record.meter_id} has no geocode", feature_name="weather_features"
        )

    temps = _daily_temperature(record, ctx)
    stats = ctx.get_or_compute(
        "weather_stats", record.geocode, lambda: _weather_stats(temps)
    )

    daily = record.daily_totals().dropna()
    daily.index = pd.Index(pd.to_datetime(daily.index).date, name="date")
    joined = pd.concat([daily.rename("kwh"), temps.rename("temp")], axis=1, join="inner")
    if len(joined) < MIN_OVERLAP_DAYS:
        raise FeatureComputationError(
            f"Meter {record.meter_id} overlaps weather on {len(joined)} days; "
            f"need at least {MIN_OVERLAP_DAYS}",
            feature_name="weather_features",
        )

    hdd = (BALANCE_POINT_C - joined["temp"]).clip(lower=0)
    cdd = (joined["temp"] - BALANCE_POINT_C).clip(lower=0)

    return {
        "weather": dict(stats),
        "temp_kwh_correlation": float(joined["kwh"].corr(joined["temp"])),
        "heating_slope_kwh_per_c": _slope(hdd, joined["kwh"]),
        "cooling_slope_kwh_per_c": _slope(cdd, joined["kwh"]),
    }


def _slope(x: pd.Series, y: pd.Series) -> float:
    """Least-squares slope of y on x; NaN when x has no spread."""
    if x.std(ddof=0) == 0:
        return np.nan
    slope, _ = np.polyfit(x.to_numpy(dtype=float), y.to_numpy(dtype=float), 1)
    return float(slope)

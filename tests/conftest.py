"""Shared fixtures for meter feature tests."""

import numpy as np
import pandas as pd
import pytest

from meter_features.models import CustomerRecord


def _days(n_days: int) -> pd.DatetimeIndex:
    return pd.date_range("2024-01-01", periods=n_days, freq="D", name="date")


@pytest.fixture
def make_record():
    """Factory for records with a flat intraday profile.

    Daily totals default to an even ramp from 1 to 2 kWh.
    """

    def _make(
        meter_id="001",
        geocode="94305",
        daily_kwh=None,
        intervals_per_day=24,
        n_days=14,
        weather=None,
    ):
        daily = (
            np.linspace(1.0, 2.0, n_days)
            if daily_kwh is None
            else np.asarray(daily_kwh, dtype=float)
        )
        values = np.repeat(daily[:, None] / intervals_per_day, intervals_per_day, axis=1)
        readings = pd.DataFrame(
            values, index=_days(len(daily)), columns=range(intervals_per_day)
        )
        return CustomerRecord(meter_id, readings, geocode=geocode, weather=weather)

    return _make


@pytest.fixture
def make_weather():
    """Factory for daily weather with temperatures ramping upwards."""

    def _make(n_days=14, start_temp=5.0, end_temp=25.0):
        return pd.DataFrame(
            {"temperature_c": np.linspace(start_temp, end_temp, n_days)},
            index=_days(n_days),
        )

    return _make

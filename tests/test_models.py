"""Tests for meter record and result models."""

from datetime import date

import numpy as np
import pandas as pd
import pytest

from meter_features.models import (
    CustomerRecord,
    DateFilter,
    Failure,
    UnitOutcome,
    is_failure,
)


class TestDateFilter:
    """Tests for DateFilter."""

    def test_open_filter(self):
        """Test a filter without bounds is open and returns frames unchanged."""
        df = pd.DataFrame({"v": [1, 2]}, index=pd.date_range("2024-01-01", periods=2))
        date_filter = DateFilter()
        assert date_filter.is_open
        assert date_filter.apply(df) is df

    def test_inverted_range_raises(self):
        """Test start after end is rejected."""
        with pytest.raises(ValueError, match="is after end"):
            DateFilter(start=date(2024, 2, 1), end=date(2024, 1, 1))

    def test_from_strings(self):
        """Test building from ISO strings, empty meaning unbounded."""
        date_filter = DateFilter.from_strings("2024-01-05", "")
        assert date_filter.start == date(2024, 1, 5)
        assert date_filter.end is None

    def test_apply_is_inclusive(self):
        """Test both bounds are included."""
        df = pd.DataFrame(
            {"v": range(10)}, index=pd.date_range("2024-01-01", periods=10)
        )
        result = DateFilter(date(2024, 1, 3), date(2024, 1, 5)).apply(df)
        assert list(result["v"]) == [2, 3, 4]


class TestCustomerRecord:
    """Tests for CustomerRecord."""

    def test_creation(self, make_record):
        """Test record exposes its shape."""
        record = make_record(n_days=7)
        assert record.meter_id == "001"
        assert record.intervals_per_day == 24
        assert record.n_days == 7
        assert record.kwh.shape == (7, 24)

    def test_meter_id_must_be_string(self):
        """Test numeric ids are rejected instead of coerced."""
        readings = pd.DataFrame(np.zeros((1, 24)))
        with pytest.raises(TypeError, match="meter_id must be a string"):
            CustomerRecord(123, readings)

    def test_unsupported_interval_width(self):
        """Test readings must have 24 or 96 columns."""
        readings = pd.DataFrame(np.zeros((1, 48)))
        with pytest.raises(ValueError, match="48 intervals per day"):
            CustomerRecord("001", readings)

    def test_daily_totals(self, make_record):
        """Test daily totals sum each day's intervals."""
        record = make_record(daily_kwh=[24.0, 48.0], n_days=2)
        assert list(record.daily_totals()) == pytest.approx([24.0, 48.0])

    def test_hourly_from_quarter_hours(self, make_record):
        """Test 96 intervals are summed into 24 hourly columns."""
        record = make_record(daily_kwh=[24.0], intervals_per_day=96)
        hourly = record.hourly()
        assert hourly.shape == (1, 24)
        assert list(hourly.columns) == list(range(24))
        assert hourly.iloc[0].tolist() == pytest.approx([1.0] * 24)

    def test_filter_dates(self, make_record, make_weather):
        """Test date filtering applies to readings and weather."""
        record = make_record(weather=make_weather())
        filtered = record.filter_dates(DateFilter(date(2024, 1, 2), date(2024, 1, 4)))
        assert filtered.n_days == 3
        assert len(filtered.weather) == 3
        assert record.n_days == 14

    def test_filter_dates_none_returns_same_record(self, make_record):
        """Test no filter returns the record untouched."""
        record = make_record()
        assert record.filter_dates(None) is record

    def test_from_long_pivots_readings(self):
        """Test long-format readings become a day x interval matrix."""
        df = pd.DataFrame(
            {
                "timestamp": [
                    "2024-01-01 00:00:00",
                    "2024-01-01 01:00:00",
                    "2024-01-02 00:00:00",
                ],
                "kwh": [1.0, 2.0, 3.0],
            }
        )
        record = CustomerRecord.from_long("000123", df, geocode="94305")

        assert record.meter_id == "000123"
        assert record.n_days == 2
        assert record.intervals_per_day == 24
        assert record.readings.loc[pd.Timestamp("2024-01-01"), 0] == 1.0
        assert record.readings.loc[pd.Timestamp("2024-01-01"), 1] == 2.0
        assert np.isnan(record.readings.loc[pd.Timestamp("2024-01-02"), 1])

    def test_from_long_quarter_hours(self):
        """Test 15-minute readings land in the right slot."""
        df = pd.DataFrame({"timestamp": ["2024-01-01 01:45:00"], "kwh": [0.5]})
        record = CustomerRecord.from_long("001", df, intervals_per_day=96)
        assert record.readings.iloc[0, 7] == 0.5

    def test_from_long_duplicates_keep_first(self):
        """Test duplicate readings for a slot keep the first value."""
        df = pd.DataFrame(
            {
                "timestamp": ["2024-01-01 00:00:00", "2024-01-01 00:00:00"],
                "kwh": [1.0, 9.0],
            }
        )
        record = CustomerRecord.from_long("001", df)
        assert record.readings.iloc[0, 0] == 1.0

    def test_from_long_empty(self):
        """Test an empty frame gives an empty record."""
        df = pd.DataFrame({"timestamp": [], "kwh": []})
        record = CustomerRecord.from_long("001", df)
        assert record.n_days == 0
        assert record.intervals_per_day == 24

    def test_hourly_keeps_gaps_missing(self, make_record):
        """Test an hour with no readings is NaN at both resolutions."""
        hourly_record = make_record(daily_kwh=[24.0])
        hourly_record.readings.iloc[0, 0] = np.nan
        quarter_record = make_record(daily_kwh=[24.0], intervals_per_day=96)
        quarter_record.readings.iloc[0, 0:4] = np.nan
        quarter_record.readings.iloc[0, 4] = np.nan

        assert np.isnan(hourly_record.hourly().iloc[0, 0])
        assert np.isnan(quarter_record.hourly().iloc[0, 0])
        assert quarter_record.hourly().iloc[0, 1] == pytest.approx(0.75)


class TestResults:
    """Tests for Failure and UnitOutcome."""

    def test_failure_from_exception(self):
        """Test failure captures stage, type and message."""
        failure = Failure.from_exception("fetch", KeyError("missing"))
        assert failure.stage == "fetch"
        assert failure.error_type == "KeyError"
        assert "missing" in failure.message
        assert is_failure(failure)

    def test_feature_mapping_is_not_failure(self):
        """Test normal results are not failures."""
        assert not is_failure({"total_kwh": 1.0})
        assert not is_failure({})

    def test_outcome_success(self):
        """Test successful outcome exposes its features."""
        outcome = UnitOutcome.success("001", {"a": 1})
        assert outcome.ok
        assert outcome.value == {"a": 1}

    def test_outcome_failed(self):
        """Test failed outcome exposes its failure."""
        failure = Failure("fetch", "DataFetchError", "gone")
        outcome = UnitOutcome.failed("001", failure)
        assert not outcome.ok
        assert outcome.value is failure

    def test_outcome_requires_exactly_one(self):
        """Test outcome cannot be both or neither."""
        with pytest.raises(ValueError):
            UnitOutcome("001")
        with pytest.raises(ValueError):
            UnitOutcome("001", features={}, failure=Failure("fetch", "E", "m"))

"""Load-shape features computed from a meter's readings alone."""

import logging
from typing import Any

import numpy as np

from meter_features.context import RunContext
from meter_features.errors import FeatureComputationError
from meter_features.models import CustomerRecord

logger = logging.getLogger(__name__)

# Time-of-use schedule (hour ranges, end exclusive)
TOU_PEAK_HOURS = (16, 21)
TOU_SHOULDER_HOURS = ((7, 16), (21, 22))


def _require_readings(record: CustomerRecord, name: str) -> None:
    if record.n_days == 0 or record.readings.isna().all().all():
        raise FeatureComputationError(
            f"Meter {record.meter_id} has no readings", feature_name=name
        )


def consumption_features(
    record: CustomerRecord, ctx: RunContext, **extra: Any
) -> dict[str, Any]:
    """Daily consumption statistics and load factor.

    Adds the following features:
    - n_days: Days with at least one reading
    - total_kwh: Total consumption
    - mean_daily_kwh / min_daily_kwh / max_daily_kwh / std_daily_kwh
    - mean_interval_kwh / max_interval_kwh
    - load_factor: Mean interval reading over max interval reading
    """
    _require_readings(record, "consumption_features")

    daily = record.daily_totals().dropna()
    kwh = record.kwh
    max_interval = float(np.nanmax(kwh))
    mean_interval = float(np.nanmean(kwh))

    return {
        "n_days": int(len(daily)),
        "total_kwh": float(daily.sum()),
        "mean_daily_kwh": float(daily.mean()),
        "min_daily_kwh": float(daily.min()),
        "max_daily_kwh": float(daily.max()),
        "std_daily_kwh": float(daily.std(ddof=0)),
        "mean_interval_kwh": mean_interval,
        "max_interval_kwh": max_interval,
        "load_factor": mean_interval / max_interval if max_interval > 0 else np.nan,
    }


def hourly_profile_features(
    record: CustomerRecord, ctx: RunContext, **extra: Any
) -> dict[str, Any]:
    """Average kWh for each hour of the day, plus the peak hour.

    Returns ``profile`` as a nested mapping (``profile.h00`` ... ``profile.h23``
    once reduced to a table) and ``peak_hour``.
    """
    _require_readings(record, "hourly_profile_features")

    means = record.hourly().mean(axis=0, skipna=True)
    profile = {f"h{hour:02d}": float(value) for hour, value in means.items()}
    return {
        "profile": profile,
        "peak_hour": int(means.idxmax()),
    }


def tou_features(record: CustomerRecord, ctx: RunContext, **extra: Any) -> dict[str, Any]:
    """Share of consumption in each time-of-use period.

    The schedule can be overridden through the context keys
    ``tou_peak_hours`` and ``tou_shoulder_hours``.

    Adds:
    - tou_peak_share, tou_shoulder_share, tou_off_peak_share (sum to 1)
    """
    _require_readings(record, "tou_features")

    peak_start, peak_end = ctx.get("tou_peak_hours", TOU_PEAK_HOURS)
    shoulder_ranges = ctx.get("tou_shoulder_hours", TOU_SHOULDER_HOURS)

    by_hour = record.hourly().sum(axis=0)
    total = float(by_hour.sum())
    if total <= 0:
        raise FeatureComputationError(
            f"Meter {record.meter_id} has zero consumption", feature_name="tou_features"
        )

    hours = by_hour.index.to_numpy()
    peak_mask = (hours >= peak_start) & (hours < peak_end)
    shoulder_mask = np.zeros(len(hours), dtype=bool)
    for start, end in shoulder_ranges:
        shoulder_mask |= (hours >= start) & (hours < end)
    shoulder_mask &= ~peak_mask

    peak = float(by_hour[peak_mask].sum()) / total
    shoulder = float(by_hour[shoulder_mask].sum()) / total
    return {
        "tou_peak_share": peak,
        "tou_shoulder_share": shoulder,
        "tou_off_peak_share": 1.0 - peak - shoulder,
    }

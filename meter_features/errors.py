"""Exception types raised by the feature extraction engine."""

from typing import Optional


class MeterFeaturesError(Exception):
    """Base class for all meter feature errors."""


class DataFetchError(MeterFeaturesError):
    """A data source could not produce a record for a meter id."""

    def __init__(self, message: str, meter_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.meter_id = meter_id


class FeatureComputationError(MeterFeaturesError):
    """A feature function failed or returned something unusable."""

    def __init__(self, message: str, feature_name: Optional[str] = None) -> None:
        super().__init__(message)
        self.feature_name = feature_name


class ConfigurationError(MeterFeaturesError, ValueError):
    """Run-wide misconfiguration. Raised before any unit is processed."""


class FeatureKeyCollisionError(ConfigurationError):
    """Two feature functions emitted the same key while strict merging is on."""

    def __init__(self, key: str, first: str, second: str) -> None:
        super().__init__(
            f"Feature key {key!r} emitted by both {first!r} and {second!r}"
        )
        self.key = key
        self.first = first
        self.second = second

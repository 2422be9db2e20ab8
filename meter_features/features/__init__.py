"""Built-in feature functions.

Every feature function takes ``(record, ctx, **extra)`` and returns a
mapping of feature name to value.
"""

from meter_features.errors import ConfigurationError
from meter_features.features.basic import (
    consumption_features,
    hourly_profile_features,
    tou_features,
)
from meter_features.features.weather import weather_features

FEATURE_REGISTRY = {
    "consumption": consumption_features,
    "hourly_profile": hourly_profile_features,
    "tou": tou_features,
    "weather": weather_features,
}


def resolve_feature_fns(names):
    """Look up feature functions by registry name, keeping the given order.

    Raises:
        ConfigurationError: If a name is not registered
    """
    unknown = [name for name in names if name not in FEATURE_REGISTRY]
    if unknown:
        raise ConfigurationError(
            f"Unknown feature functions: {unknown}; "
            f"available: {sorted(FEATURE_REGISTRY)}"
        )
    return [FEATURE_REGISTRY[name] for name in names]


__all__ = [
    "FEATURE_REGISTRY",
    "consumption_features",
    "hourly_profile_features",
    "resolve_feature_fns",
    "tou_features",
    "weather_features",
]

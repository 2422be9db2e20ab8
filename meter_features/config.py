"""Configuration for feature extraction runs.

Follows the environment-override pattern used across the project: explicit
arguments win, then environment variables, then defaults.
"""

import json
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

from meter_features.context import LockingRunContext, RunContext
from meter_features.errors import ConfigurationError
from meter_features.models import DateFilter

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _env_bool(name: str) -> Optional[bool]:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return None
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got: {raw!r}")


def _env_int(name: str) -> Optional[int]:
    raw = os.environ.get(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got: {raw!r}") from e


@dataclass
class IterationConfig:
    """Configuration for an iteration run.

    Supports environment variable overrides:
    - MF_START_DATE / MF_END_DATE: ISO dates bounding the readings used
    - MF_STRICT_MERGE: Fail on feature key collisions instead of last-write-wins
    - MF_MAX_WORKERS: Thread pool size for unit dispatch (1 = sequential)
    - MF_PROGRESS_INTERVAL: Log progress every N units
    - MF_OUTPUT_DIR: Directory for per-group result files
    - MF_CACHE_RESULTS: Hand each finished geocode group to a result sink
    - SUPABASE_URL / SUPABASE_KEY: Supabase connection for the Supabase source
    - MF_READINGS_TABLE / MF_WEATHER_TABLE: Supabase table names

    Attributes:
        start_date: First day of readings to use (ISO string, empty = unbounded)
        end_date: Last day of readings to use (ISO string, empty = unbounded)
        strict_merge: Raise on duplicate feature keys across functions
        max_workers: Number of threads used to run units
        progress_interval: Units between progress log lines
        output_dir: Directory for per-group result files
        cache_results: Persist grouped results per geocode as they finish
        intervals_per_day: Reading resolution for file-based sources (24 or 96)
        supabase_url: Supabase project URL
        supabase_key: Supabase API key
        readings_table: Supabase table holding interval readings
        weather_table: Supabase table holding daily weather
    """

    start_date: str = ""
    end_date: str = ""
    strict_merge: bool = False
    max_workers: int = 1
    progress_interval: int = 100
    output_dir: str = "output"
    cache_results: bool = False
    intervals_per_day: int = 24

    # Supabase source settings
    supabase_url: str = ""
    supabase_key: str = ""
    readings_table: str = "meter_readings"
    weather_table: str = "weather_daily"

    def __post_init__(self) -> None:
        """Apply environment variable overrides only when values are at defaults."""
        if self.start_date == "":
            self.start_date = os.environ.get("MF_START_DATE", "")
        if self.end_date == "":
            self.end_date = os.environ.get("MF_END_DATE", "")
        if self.strict_merge is False:
            env_strict = _env_bool("MF_STRICT_MERGE")
            if env_strict is not None:
                self.strict_merge = env_strict
        if self.max_workers == 1:
            env_workers = _env_int("MF_MAX_WORKERS")
            if env_workers is not None:
                self.max_workers = env_workers
        if self.progress_interval == 100:
            env_progress = _env_int("MF_PROGRESS_INTERVAL")
            if env_progress is not None:
                self.progress_interval = env_progress
        if self.output_dir == "output":
            self.output_dir = os.environ.get("MF_OUTPUT_DIR", self.output_dir)
        if self.cache_results is False:
            env_cache = _env_bool("MF_CACHE_RESULTS")
            if env_cache is not None:
                self.cache_results = env_cache
        if self.supabase_url == "":
            self.supabase_url = os.environ.get("SUPABASE_URL", "")
        if self.supabase_key == "":
            self.supabase_key = os.environ.get("SUPABASE_KEY", "")
        if self.readings_table == "meter_readings":
            self.readings_table = os.environ.get(
                "MF_READINGS_TABLE", self.readings_table
            )
        if self.weather_table == "weather_daily":
            self.weather_table = os.environ.get("MF_WEATHER_TABLE", self.weather_table)

    @property
    def date_filter(self) -> DateFilter:
        """Date range built from start_date/end_date.

        Raises:
            ConfigurationError: If a date is not ISO formatted or the range is inverted
        """
        try:
            return DateFilter.from_strings(self.start_date, self.end_date)
        except ValueError as e:
            raise ConfigurationError(f"Invalid date range: {e}") from e

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            ConfigurationError: If a value is out of range
        """
        if self.max_workers <= 0:
            raise ConfigurationError("max_workers must be positive")
        if self.progress_interval <= 0:
            raise ConfigurationError("progress_interval must be positive")
        if self.intervals_per_day not in (24, 96):
            raise ConfigurationError("intervals_per_day must be 24 or 96")
        _ = self.date_filter

    def build_context(
        self, feature_fns: Sequence[Callable[..., Any]], **settings: Any
    ) -> RunContext:
        """Create a fresh RunContext for one run.

        A LockingRunContext is used whenever units may run concurrently.
        """
        self.validate()
        context_cls = LockingRunContext if self.max_workers > 1 else RunContext
        return context_cls(
            feature_fns=list(feature_fns),
            date_filter=self.date_filter,
            strict_merge=self.strict_merge,
            **settings,
        )

    @classmethod
    def from_dict(cls, data: dict) -> "IterationConfig":
        """Create config from dictionary."""
        try:
            return cls(**data)
        except TypeError as e:
            raise ValueError(f"Invalid configuration format: {e}") from e

    @classmethod
    def from_file(cls, path: Path) -> "IterationConfig":
        """Load config from JSON file."""
        try:
            with open(path) as f:
                data = json.load(f)
        except FileNotFoundError as exc:
            raise FileNotFoundError(f"Configuration file not found: {path}") from exc
        except json.JSONDecodeError as exc:
            raise ValueError(
                f"Invalid JSON in configuration file {path}: {exc}"
            ) from exc
        return cls.from_dict(data)

    def to_dict(self) -> dict:
        """Convert config to dictionary, leaving out the API key."""
        data = asdict(self)
        data.pop("supabase_key")
        return data

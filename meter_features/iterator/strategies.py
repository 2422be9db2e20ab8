"""Iteration strategies that drive the executor across many meters.

Two strategies share the same per-unit semantics:

- FlatIterator walks an ordered list of meter ids.
- GroupedIterator walks geocodes, loads each geocode's weather into the
  run context once, then processes the ids located in that geocode.

Every requested id ends up in the RunResult, either with its features or
with a Failure. Only configuration errors abort a run.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional, Sequence

from meter_features.context import RunContext
from meter_features.errors import ConfigurationError, DataFetchError
from meter_features.iterator.executor import FeatureFunction, UnitExecutor
from meter_features.models import CustomerRecord, Failure, RunResult, UnitOutcome
from meter_features.sources.base import DataSource

logger = logging.getLogger(__name__)

# Called with (geocode, group_result) after each geocode finishes
GroupSink = Callable[[str, RunResult], None]

WEATHER_CATEGORY = "weather"


def _prepare_context(
    feature_fns: Optional[Sequence[FeatureFunction]],
    context: Optional[RunContext],
) -> RunContext:
    """Resolve the context and feature functions for a run.

    Explicit ``feature_fns`` are written into the context so every unit and
    every feature function sees the same configuration.
    """
    if context is None:
        context = RunContext()
    if feature_fns is not None:
        context["feature_fns"] = list(feature_fns)
    return context


def _check_ids(ids: Sequence[str]) -> list[str]:
    ids = list(ids)
    for meter_id in ids:
        if not isinstance(meter_id, str):
            raise ConfigurationError(
                f"Meter ids must be strings, got {type(meter_id).__name__}: {meter_id!r}"
            )
    if len(set(ids)) != len(ids):
        logger.warning("Duplicate meter ids in input; each id is reported once")
    return ids


class FlatIterator:
    """Runs feature functions over an ordered list of meter ids.

    Units run sequentially by default. With ``max_workers > 1`` each id's
    fetch and feature computation is one task on a thread pool; the context
    must then be thread safe (see LockingRunContext). Results always keep
    the input order.
    """

    def __init__(
        self,
        data_source: DataSource,
        max_workers: int = 1,
        progress_interval: int = 100,
    ) -> None:
        """
        Initialize the iterator.

        Args:
            data_source: Source of customer records
            max_workers: Threads used to run units (1 = sequential)
            progress_interval: Units between progress log lines
        """
        if max_workers <= 0:
            raise ConfigurationError("max_workers must be positive")
        self.data_source = data_source
        self.max_workers = max_workers
        self.progress_interval = progress_interval

    def run_unit(
        self,
        meter_id: str,
        executor: UnitExecutor,
        context: RunContext,
        **extra: Any,
    ) -> UnitOutcome:
        """Fetch one meter's record and run the executor on it.

        A failed fetch is recorded as a Failure, like a failed feature. The
        outcome is always keyed by the requested ``meter_id``, whatever id
        the returned record carries.
        """
        try:
            record = self.data_source.get_meter_data_for_id(
                meter_id, date_filter=context.get("date_filter")
            )
            if not isinstance(record, CustomerRecord):
                raise DataFetchError(
                    f"Data source returned {type(record).__name__} for meter "
                    f"{meter_id!r}, expected a CustomerRecord",
                    meter_id,
                )
        except Exception as e:
            failure = Failure.from_exception("fetch", e)
            logger.warning(
                "Could not load data for meter %s: %s: %s",
                meter_id,
                failure.error_type,
                failure.message,
            )
            return UnitOutcome.failed(meter_id, failure)
        if record.meter_id != meter_id:
            logger.debug(
                "Source returned meter id %r for requested id %r",
                record.meter_id,
                meter_id,
            )
        return executor.execute(record, context, meter_id, **extra)

    def run_units(
        self,
        ids: list[str],
        executor: UnitExecutor,
        context: RunContext,
        extra: dict[str, Any],
    ) -> list[UnitOutcome]:
        if self.max_workers == 1 or len(ids) <= 1:
            outcomes = []
            for i, meter_id in enumerate(ids, start=1):
                outcomes.append(self.run_unit(meter_id, executor, context, **extra))
                self._log_progress(i, len(ids))
            return outcomes

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = [
                pool.submit(self.run_unit, meter_id, executor, context, **extra)
                for meter_id in ids
            ]
            outcomes = []
            for i, future in enumerate(futures, start=1):
                outcomes.append(future.result())
                self._log_progress(i, len(ids))
        return outcomes

    def check_context(self, context: RunContext) -> None:
        """Reject contexts that cannot be shared by concurrent units."""
        if self.max_workers > 1 and not context.thread_safe:
            raise ConfigurationError(
                "Parallel dispatch needs a thread-safe context; use LockingRunContext"
            )

    def _log_progress(self, done: int, total: int) -> None:
        if done % self.progress_interval == 0 and done < total:
            logger.info("Processed %d/%d meters", done, total)

    def run(
        self,
        ids: Sequence[str],
        feature_fns: Optional[Sequence[FeatureFunction]] = None,
        context: Optional[RunContext] = None,
        **extra: Any,
    ) -> RunResult:
        """
        Run the feature functions for every id.

        Args:
            ids: Meter ids, processed in order
            feature_fns: Feature functions (default: ``context["feature_fns"]``)
            context: Shared run context (default: a fresh RunContext)
            **extra: Extra keyword arguments passed to every feature function

        Returns:
            RunResult mapping each id to its features or a Failure

        Raises:
            ConfigurationError: If ids, feature functions or context are invalid
        """
        context = _prepare_context(feature_fns, context)
        ids = _check_ids(ids)
        self.check_context(context)
        executor = UnitExecutor.from_context(context)

        logger.info("Starting feature extraction for %d meters", len(ids))
        start = time.monotonic()
        outcomes = self.run_units(ids, executor, context, extra)

        result: RunResult = {outcome.meter_id: outcome.value for outcome in outcomes}
        failed = sum(1 for outcome in outcomes if not outcome.ok)
        logger.info(
            "Feature extraction completed: %d meters, %d failed, %.2fs",
            len(result),
            failed,
            time.monotonic() - start,
        )
        return result


class GroupedIterator:
    """Runs feature functions geocode by geocode.

    Before a geocode's units run, its weather is fetched once and cached
    in the context under ``("weather", geocode)``, so feature functions
    for every meter in the group reuse it instead of recomputing it.
    Grouping does not change any unit's features. A geocode whose ids
    cannot be listed, or are not all strings, is logged and skipped.
    """

    def __init__(
        self,
        data_source: DataSource,
        max_workers: int = 1,
        progress_interval: int = 100,
    ) -> None:
        self.data_source = data_source
        self._flat = FlatIterator(
            data_source, max_workers=max_workers, progress_interval=progress_interval
        )

    def _preload_weather(self, geocode: str, context: RunContext) -> None:
        if context.has_cached(WEATHER_CATEGORY, geocode):
            return
        try:
            weather = self.data_source.get_weather_for_geocode(
                geocode, date_filter=context.get("date_filter")
            )
        except Exception as e:
            logger.warning("Could not load weather for geocode %s: %s", geocode, e)
            return
        if weather is not None:
            context.put_cached(WEATHER_CATEGORY, geocode, weather)

    def run(
        self,
        geocodes: Sequence[str],
        feature_fns: Optional[Sequence[FeatureFunction]] = None,
        context: Optional[RunContext] = None,
        cache_results: bool = False,
        group_sink: Optional[GroupSink] = None,
        **extra: Any,
    ) -> RunResult:
        """
        Run the feature functions for every meter in every geocode.

        Args:
            geocodes: Geocodes, processed in order
            feature_fns: Feature functions (default: ``context["feature_fns"]``)
            context: Shared run context (default: a fresh RunContext)
            cache_results: Hand each finished group to ``group_sink``
            group_sink: Callable receiving ``(geocode, group_result)``
            **extra: Extra keyword arguments passed to every feature function

        Returns:
            RunResult for all meters of all geocodes, in iteration order

        Raises:
            ConfigurationError: If the run is misconfigured
        """
        context = _prepare_context(feature_fns, context)
        if cache_results and group_sink is None:
            raise ConfigurationError("cache_results requires a group_sink")
        self._flat.check_context(context)
        executor = UnitExecutor.from_context(context)

        logger.info("Starting grouped feature extraction for %d geocodes", len(geocodes))
        start = time.monotonic()
        result: RunResult = {}
        failed = 0

        for n, geocode in enumerate(geocodes, start=1):
            try:
                ids = _check_ids(self.data_source.get_ids(geocode=geocode))
            except Exception as e:
                logger.error("Could not list meters for geocode %s: %s", geocode, e)
                continue

            logger.info(
                "Geocode %s (%d/%d): %d meters", geocode, n, len(geocodes), len(ids)
            )
            self._preload_weather(geocode, context)

            outcomes = self._flat.run_units(ids, executor, context, extra)
            group_result: RunResult = {o.meter_id: o.value for o in outcomes}
            failed += sum(1 for o in outcomes if not o.ok)
            result.update(group_result)

            if cache_results:
                group_sink(geocode, group_result)

        logger.info(
            "Grouped feature extraction completed: %d meters, %d failed, %.2fs",
            len(result),
            failed,
            time.monotonic() - start,
        )
        return result


def iterate_meters(
    data_source: DataSource,
    ids: Sequence[str],
    feature_fns: Optional[Sequence[FeatureFunction]] = None,
    context: Optional[RunContext] = None,
    **extra: Any,
) -> RunResult:
    """Run feature functions over a list of meter ids (sequentially)."""
    return FlatIterator(data_source).run(ids, feature_fns, context, **extra)


def iterate_zip(
    data_source: DataSource,
    geocodes: Sequence[str],
    feature_fns: Optional[Sequence[FeatureFunction]] = None,
    context: Optional[RunContext] = None,
    cache_results: bool = False,
    group_sink: Optional[GroupSink] = None,
    **extra: Any,
) -> RunResult:
    """Run feature functions geocode by geocode (sequentially)."""
    return GroupedIterator(data_source).run(
        geocodes, feature_fns, context, cache_results, group_sink, **extra
    )

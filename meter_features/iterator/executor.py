"""Runs an ordered list of feature functions against one customer record."""

import logging
from collections.abc import Mapping
from typing import Any, Callable, Optional, Sequence

from meter_features.context import RunContext
from meter_features.errors import (
    ConfigurationError,
    FeatureComputationError,
    FeatureKeyCollisionError,
)
from meter_features.models import CustomerRecord, Failure, UnitOutcome

logger = logging.getLogger(__name__)

# (record, context, **extra) -> mapping of feature name to value
FeatureFunction = Callable[..., Optional[Mapping[str, Any]]]


def feature_name(fn: FeatureFunction) -> str:
    """Readable name for a feature function (functions, partials, callables)."""
    name = getattr(fn, "__name__", None)
    if name is None and hasattr(fn, "func"):
        name = getattr(fn.func, "__name__", None)
    return name or type(fn).__name__


class UnitExecutor:
    """Invokes feature functions for one unit and merges their outputs.

    Outputs are merged in function order. On a key collision the later
    function wins, unless ``strict`` is set, in which case the collision
    raises :class:`FeatureKeyCollisionError` and aborts the run.

    Any other exception raised by a feature function turns the whole unit
    into a :class:`Failure`; no partial features are kept.
    """

    def __init__(self, feature_fns: Sequence[FeatureFunction], strict: bool = False) -> None:
        """
        Initialize the executor.

        Args:
            feature_fns: Feature functions, called in order
            strict: Raise on duplicate feature keys instead of overwriting

        Raises:
            ConfigurationError: If no functions are given or one is not callable
        """
        self.feature_fns = list(feature_fns)
        if not self.feature_fns:
            raise ConfigurationError("At least one feature function is required")
        for fn in self.feature_fns:
            if not callable(fn):
                raise ConfigurationError(f"Feature function {fn!r} is not callable")
        self.strict = strict

    @classmethod
    def from_context(cls, context: RunContext) -> "UnitExecutor":
        """Build an executor from the context's ``feature_fns`` and ``strict_merge``."""
        return cls(context.feature_fns, strict=bool(context.get("strict_merge", False)))

    def execute(
        self,
        record: CustomerRecord,
        context: RunContext,
        unit_id: Optional[str] = None,
        **extra: Any,
    ) -> UnitOutcome:
        """
        Run every feature function against a record.

        Args:
            record: Customer record for the unit
            context: Shared run context (functions may write to its cache)
            unit_id: Id the outcome is reported under
                (default: the record's meter_id)
            **extra: Extra keyword arguments passed to every function

        Returns:
            UnitOutcome holding either the merged features or a Failure

        Raises:
            FeatureKeyCollisionError: On duplicate keys in strict mode
        """
        if unit_id is None:
            unit_id = record.meter_id
        merged: dict[str, Any] = {}
        origin: dict[str, str] = {}

        for fn in self.feature_fns:
            name = feature_name(fn)
            try:
                output = fn(record, context, **extra)
                if output is None:
                    continue
                if not isinstance(output, Mapping):
                    raise FeatureComputationError(
                        f"{name} returned {type(output).__name__}, expected a mapping",
                        feature_name=name,
                    )
            except Exception as e:
                failure = Failure.from_exception(f"feature:{name}", e)
                logger.warning(
                    "Feature %s failed for meter %s: %s: %s",
                    name,
                    unit_id,
                    failure.error_type,
                    failure.message,
                )
                logger.debug("Traceback for meter %s", unit_id, exc_info=True)
                return UnitOutcome.failed(unit_id, failure)

            for key, value in output.items():
                if key in merged:
                    if self.strict:
                        raise FeatureKeyCollisionError(key, origin[key], name)
                    logger.debug(
                        "Feature key %r from %s overwrites value from %s",
                        key,
                        name,
                        origin[key],
                    )
                merged[key] = value
                origin[key] = name

        return UnitOutcome.success(unit_id, merged)

"""Reduction of a RunResult into a rectangular pandas DataFrame."""

import logging
from collections.abc import Mapping
from typing import Any

import numpy as np
import pandas as pd

from meter_features.errors import FeatureKeyCollisionError
from meter_features.models import RunResult, is_failure

logger = logging.getLogger(__name__)

ID_COLUMN = "id"


def flatten_features(
    features: Mapping[str, Any], sep: str = ".", strict: bool = False
) -> dict[str, Any]:
    """Flatten nested mappings into dotted keys.

    ``{"model": {"slope": 1.2}}`` becomes ``{"model.slope": 1.2}``. Lists,
    arrays and other values are kept as single cells.

    A flattened key can clash with a top-level key that already contains
    the separator (``"model.slope"`` next to ``{"model": {"slope": ...}}``).
    The later entry wins and the clash is logged at DEBUG; with
    ``strict=True`` it raises FeatureKeyCollisionError instead.
    """
    flat: dict[str, Any] = {}
    origin: dict[str, str] = {}
    for key, value in features.items():
        if isinstance(value, Mapping):
            items = [
                (f"{key}{sep}{sub_key}", sub_value)
                for sub_key, sub_value in flatten_features(value, sep, strict).items()
            ]
            source = f"nested {key!r}"
        else:
            items = [(str(key), value)]
            source = f"key {key!r}"
        for flat_key, flat_value in items:
            if flat_key in flat:
                if strict:
                    raise FeatureKeyCollisionError(flat_key, origin[flat_key], source)
                logger.debug(
                    "Flattened column %r from %s overwrites value from %s",
                    flat_key,
                    source,
                    origin[flat_key],
                )
            flat[flat_key] = flat_value
            origin[flat_key] = source
    return flat


def failed_ids(result: RunResult) -> list[str]:
    """Ids whose unit ended in a Failure, in iteration order."""
    return [meter_id for meter_id, unit in result.items() if is_failure(unit)]


def summarize(result: RunResult) -> dict[str, Any]:
    """Counts of attempted, succeeded and failed units."""
    failures = failed_ids(result)
    return {
        "units_attempted": len(result),
        "units_succeeded": len(result) - len(failures),
        "units_failed": len(failures),
        "failed_ids": failures,
    }


def to_table(
    result: RunResult, flatten: bool = True, strict: bool = False
) -> pd.DataFrame:
    """Reduce a RunResult to one row per id and one column per feature.

    Columns are the union of feature names over all successful units, in
    the order they are first seen while walking the result. A Failure
    becomes a row of missing values; a feature a unit did not emit is a
    missing value (NaN), never zero. Failed ids are also listed in
    ``table.attrs["failed_ids"]``.

    Args:
        result: RunResult from an iteration run
        flatten: Expand nested mappings into dotted column names
        strict: Raise when flattening produces the same column twice

    Returns:
        DataFrame indexed by id (kept as strings)
    """
    index = pd.Index(list(result.keys()), dtype=object, name=ID_COLUMN)
    rows: list[dict[str, Any]] = []
    columns: dict[str, None] = {}

    for unit in result.values():
        if is_failure(unit):
            rows.append({})
            continue
        row = flatten_features(unit, strict=strict) if flatten else dict(unit)
        for key in row:
            columns.setdefault(key)
        rows.append(row)

    table = pd.DataFrame(
        {
            col: pd.Series(
                [row.get(col, np.nan) for row in rows], index=index, dtype=object
            )
            for col in columns
        },
        index=index,
        columns=list(columns),
    ).infer_objects()
    table.attrs["failed_ids"] = failed_ids(result)

    logger.debug(
        "Reduced %d units to a %d x %d table", len(result), *table.shape
    )
    return table

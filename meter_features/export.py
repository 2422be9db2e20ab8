"""Writing result tables to disk."""

import logging
import re
from pathlib import Path
from typing import Union

import pandas as pd

from meter_features.models import RunResult
from meter_features.reducer import to_table

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def write_table(table: pd.DataFrame, path: Union[str, Path]) -> Path:
    """Write a result table as CSV, creating parent directories.

    Args:
        table: Table from ``to_table``
        path: Destination file

    Returns:
        Path written to
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        table.to_csv(path, index=True, index_label=table.index.name or "id")
    except OSError as exc:
        raise RuntimeError(f"Failed to write results to {path}: {exc}") from exc
    logger.info("Wrote %d rows x %d columns to %s", len(table), table.shape[1], path)
    return path


class CsvGroupSink:
    """Writes each finished geocode group to its own CSV file.

    Pass an instance as ``group_sink`` with ``cache_results=True``. Files
    are named ``features_<geocode>.csv`` inside ``output_dir``.
    """

    def __init__(self, output_dir: Union[str, Path]) -> None:
        self.output_dir = Path(output_dir)
        self.written: list[Path] = []

    def path_for(self, geocode: str) -> Path:
        safe = _UNSAFE_FILENAME_CHARS.sub("_", geocode) or "unknown"
        return self.output_dir / f"features_{safe}.csv"

    def __call__(self, geocode: str, group_result: RunResult) -> None:
        path = write_table(to_table(group_result), self.path_for(geocode))
        self.written.append(path)

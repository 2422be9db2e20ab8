#!/usr/bin/env python3
"""CLI runner for meter feature extraction.

This script:
1. Opens a data source (synthetic, CSV files or Supabase)
2. Runs the selected feature functions per meter, or per geocode group
3. Writes the resulting feature table as CSV

Usage:
    # Synthetic data, all meters, default features
    python run_feature_extraction.py --meters --source synthetic

    # CSV data grouped by zip code, weather features only
    python run_feature_extraction.py --zip --source csv \
        --readings data/readings.csv --weather data/weather.csv --features weather

    # Persist each zip code's results as soon as it finishes
    python run_feature_extraction.py --zip --source synthetic --cache-results

Environment variables:
    MF_START_DATE / MF_END_DATE: ISO dates bounding the readings used
    MF_STRICT_MERGE: Fail on duplicate feature keys (default: false)
    MF_MAX_WORKERS: Threads used to run meters (default: 1)
    MF_OUTPUT_DIR: Directory for per-group results (default: output)
    SUPABASE_URL / SUPABASE_KEY: Supabase connection for --source supabase
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

DEFAULT_FEATURES = ["consumption", "hourly_profile", "tou", "weather"]


class FeatureExtractionRunner:
    """Runner class for feature extraction.

    Builds the data source, context and iterator from command-line
    settings, runs one iteration and writes the result table.
    """

    def __init__(
        self,
        source: str = "synthetic",
        feature_names: Optional[list[str]] = None,
        readings_path: Optional[str] = None,
        weather_path: Optional[str] = None,
        n_meters: int = 20,
        seed: Optional[int] = 42,
        config: Optional[Any] = None,
    ) -> None:
        """Initialize the runner.

        Args:
            source: Data source kind: synthetic, csv or supabase
            feature_names: Registered feature function names
            readings_path: Readings CSV (csv source)
            weather_path: Weather CSV (csv source)
            n_meters: Number of meters (synthetic source)
            seed: Random seed (synthetic source)
            config: IterationConfig (default: built from the environment)

        Raises:
            ConfigurationError: If the source or features are misconfigured
        """
        from meter_features.config import IterationConfig
        from meter_features.errors import ConfigurationError
        from meter_features.features import resolve_feature_fns

        self._config = config or IterationConfig()
        self._config.validate()
        self._feature_names = list(feature_names or DEFAULT_FEATURES)
        self._feature_fns = resolve_feature_fns(self._feature_names)

        if source == "synthetic":
            from meter_features.sources import SyntheticDataSource

            self._source = SyntheticDataSource(
                n_meters=n_meters,
                intervals_per_day=self._config.intervals_per_day,
                seed=seed,
            )
        elif source == "csv":
            from meter_features.sources import CsvDataSource

            if not readings_path:
                raise ConfigurationError("--readings is required for the csv source")
            self._source = CsvDataSource(
                readings_path,
                weather_path,
                intervals_per_day=self._config.intervals_per_day,
            )
        elif source == "supabase":
            from meter_features.sources import SupabaseDataSource

            self._source = SupabaseDataSource(self._config)
        else:
            raise ConfigurationError(f"Unknown data source: {source!r}")
        self._source_kind = source

    def run_meters(self, ids: Optional[list[str]] = None) -> dict:
        """Run feature extraction over a flat list of meter ids.

        Args:
            ids: Meter ids (default: every id in the source)

        Returns:
            RunResult mapping meter id to features or Failure
        """
        from meter_features.iterator import FlatIterator

        ids = ids if ids is not None else self._source.get_ids()
        iterator = FlatIterator(
            self._source,
            max_workers=self._config.max_workers,
            progress_interval=self._config.progress_interval,
        )
        return iterator.run(ids, context=self._config.build_context(self._feature_fns))

    def run_zip(self, geocodes: Optional[list[str]] = None) -> dict:
        """Run feature extraction geocode by geocode.

        Args:
            geocodes: Geocodes (default: every geocode in the source)

        Returns:
            RunResult covering the meters of all geocodes
        """
        from meter_features.export import CsvGroupSink
        from meter_features.iterator import GroupedIterator

        geocodes = geocodes if geocodes is not None else self._source.get_geocodes()
        sink = CsvGroupSink(self._config.output_dir) if self._config.cache_results else None
        iterator = GroupedIterator(
            self._source,
            max_workers=self._config.max_workers,
            progress_interval=self._config.progress_interval,
        )
        return iterator.run(
            geocodes,
            context=self._config.build_context(self._feature_fns),
            cache_results=self._config.cache_results,
            group_sink=sink,
        )

    def write(self, result: dict, output: Path) -> dict:
        """Reduce a RunResult to a table, write it and return a summary."""
        from meter_features.export import write_table
        from meter_features.reducer import summarize, to_table

        write_table(to_table(result, strict=self._config.strict_merge), output)
        summary = summarize(result)
        if summary["units_failed"]:
            logger.warning(
                "%d of %d meters failed: %s",
                summary["units_failed"],
                summary["units_attempted"],
                ", ".join(summary["failed_ids"][:10]),
            )
        return summary

    def get_status(self) -> dict:
        """Describe the configured source, features and settings."""
        return {
            "source": self._source_kind,
            "features": self._feature_names,
            "config": self._config.to_dict(),
        }

    def close(self) -> None:
        """Release data source resources."""
        close = getattr(self._source, "close", None)
        if close is not None:
            close()


def _split(value: Optional[str]) -> Optional[list[str]]:
    if not value:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Feature extraction for utility meter data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # All synthetic meters, default features
    python run_feature_extraction.py --meters --source synthetic

    # Selected meters from CSV
    python run_feature_extraction.py --meters --source csv \\
        --readings readings.csv --ids 000123,000456

    # Grouped by zip code with 4 worker threads
    python run_feature_extraction.py --zip --source synthetic --workers 4
        """,
    )

    # Iteration mode
    mode_group = parser.add_mutually_exclusive_group(required=True)
    mode_group.add_argument(
        "--meters",
        action="store_true",
        help="Iterate over a flat list of meter ids",
    )
    mode_group.add_argument(
        "--zip",
        action="store_true",
        help="Iterate geocode by geocode, sharing weather within each group",
    )
    mode_group.add_argument(
        "--status",
        action="store_true",
        help="Show configuration and exit",
    )

    # Data source
    parser.add_argument(
        "--source",
        choices=["synthetic", "csv", "supabase"],
        default="synthetic",
        help="Data source (default: synthetic)",
    )
    parser.add_argument("--readings", type=str, help="Readings CSV (csv source)")
    parser.add_argument("--weather", type=str, help="Weather CSV (csv source)")
    parser.add_argument(
        "--n-meters",
        type=int,
        default=20,
        help="Number of synthetic meters (default: 20)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=42,
        help="Seed for synthetic data (default: 42)",
    )
    parser.add_argument(
        "--intervals-per-day",
        type=int,
        choices=[24, 96],
        default=24,
        help="Reading resolution (default: 24)",
    )

    # Selection
    parser.add_argument("--ids", type=str, help="Comma-separated meter ids")
    parser.add_argument("--geocodes", type=str, help="Comma-separated geocodes")
    parser.add_argument(
        "--features",
        type=str,
        default=",".join(DEFAULT_FEATURES),
        help=f"Comma-separated feature functions (default: {','.join(DEFAULT_FEATURES)})",
    )
    parser.add_argument("--start-date", type=str, default="", help="First day (ISO)")
    parser.add_argument("--end-date", type=str, default="", help="Last day (ISO)")

    # Execution
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail on duplicate feature keys across functions",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Threads used to run meters (default: 1)",
    )
    parser.add_argument(
        "--cache-results",
        action="store_true",
        help="Write each geocode's results as soon as it finishes (--zip)",
    )

    # Output
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("output/features.csv"),
        help="Output CSV (default: output/features.csv)",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default="output",
        help="Directory for per-geocode files (default: output)",
    )

    # Logging
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args(argv)

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logging.getLogger("meter_features").setLevel(logging.DEBUG)

    try:
        from meter_features.config import IterationConfig

        config = IterationConfig(
            start_date=args.start_date,
            end_date=args.end_date,
            strict_merge=args.strict,
            max_workers=args.workers,
            output_dir=args.output_dir,
            cache_results=args.cache_results,
            intervals_per_day=args.intervals_per_day,
        )
        runner = FeatureExtractionRunner(
            source=args.source,
            feature_names=_split(args.features),
            readings_path=args.readings,
            weather_path=args.weather,
            n_meters=args.n_meters,
            seed=args.seed,
            config=config,
        )
    except Exception as e:
        logger.error("Failed to initialize feature extraction runner: %s", e)
        return 1

    try:
        if args.status:
            status = runner.get_status()
            print("\nFeature Extraction Status")
            print("=" * 40)
            print(f"Source: {status['source']}")
            print(f"Features: {', '.join(status['features'])}")
            print("\nConfiguration:")
            for key, value in status["config"].items():
                print(f"  {key}: {value}")
            return 0

        if args.meters:
            result = runner.run_meters(_split(args.ids))
        else:
            result = runner.run_zip(_split(args.geocodes))

        summary = runner.write(result, args.output)
        logger.info(
            "Done: %d meters, %d succeeded, %d failed",
            summary["units_attempted"],
            summary["units_succeeded"],
            summary["units_failed"],
        )
        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 1
    except Exception as e:
        logger.exception("Feature extraction failed: %s", e)
        return 1
    finally:
        runner.close()


if __name__ == "__main__":
    sys.exit(main())

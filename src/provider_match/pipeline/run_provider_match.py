"""
Main pipeline orchestrator for ProviderMatch.

Coordinates a match request from snapshot loading through validation,
eligibility filtering, ranking or team search, and reporting.
"""

import argparse
import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from ..config import DEFAULT_CONFIG_PATH, load_match_config, validate_match_config
from ..ingestion.schema_validator import validate_provider_data
from ..ingestion.snapshot_loader import dataframe_to_providers, load_provider_snapshot
from ..match.combination import aggregate_score, find_best_combination
from ..match.matcher import match_providers
from ..match.validation import (
    check_provider_assignment, filter_verified, validate_categories, validate_category,
    validate_positive_int, validate_reference_location
)
from ..reporting.summary import get_combination_statistics, get_match_statistics

logger = logging.getLogger(__name__)


class ProviderMatchPipeline:
    """
    Main pipeline orchestrator for ProviderMatch.

    Loads a provider snapshot once per run and hands it to the matching
    engine, timing each stage.
    """

    def __init__(self, config_path: str = DEFAULT_CONFIG_PATH):
        """
        Initialize pipeline with configuration.

        Args:
            config_path: Path to configuration file
        """
        self.config_path = config_path
        self.config = load_match_config(config_path)
        if not validate_match_config(self.config):
            raise ValueError(f"Invalid configuration: {config_path}")

        self.pipeline_start_time = None
        self.stage_times = {}
        self.stage_durations = {}
        self.validation_summary = {}

        logger.info("Initialized ProviderMatch pipeline")

    def _start_stage_timer(self, stage_name: str):
        """Start timing for a pipeline stage."""
        self.stage_times[stage_name] = time.time()
        logger.info(f"Starting stage: {stage_name}")

    def _end_stage_timer(self, stage_name: str):
        """End timing for a pipeline stage."""
        if stage_name in self.stage_times:
            duration = time.time() - self.stage_times[stage_name]
            self.stage_durations[stage_name] = duration
            logger.info(f"Completed stage: {stage_name} in {duration:.2f} seconds")

    def load_providers(self, input_path: str) -> pd.DataFrame:
        """
        Load the provider snapshot.

        Args:
            input_path: Path to snapshot file

        Returns:
            DataFrame with snapshot rows
        """
        self._start_stage_timer("snapshot_loading")

        try:
            df = load_provider_snapshot(input_path)
            self._end_stage_timer("snapshot_loading")
            return df

        except Exception as e:
            logger.error(f"Snapshot loading failed: {e}")
            raise

    def validate_providers(self, df: pd.DataFrame) -> List[Dict]:
        """
        Validate the snapshot and convert it to provider records.

        Args:
            df: Snapshot DataFrame

        Returns:
            All valid provider records, verified or not
        """
        self._start_stage_timer("snapshot_validation")

        try:
            ingestion_config = self.config.get("ingestion", {})
            validated_df, self.validation_summary = validate_provider_data(df, ingestion_config)

            providers = dataframe_to_providers(
                validated_df, ingestion_config.get("skills_separator", ";")
            )

            logger.info(f"Snapshot validation completed: "
                        f"{self.validation_summary.get('success_rate', 0):.2%} success rate, "
                        f"{len(providers)} providers kept")

            self._end_stage_timer("snapshot_validation")
            return providers

        except Exception as e:
            logger.error(f"Snapshot validation failed: {e}")
            raise

    def match_service(self, category: str, providers: Sequence[Dict],
                      limit: Optional[int] = None,
                      reference_location: Optional[Dict] = None) -> Dict[str, Any]:
        """
        Rank providers for a single service category.

        Args:
            category: Requested category
            providers: Provider snapshot
            limit: Maximum number of providers (config default if None)
            reference_location: Service location (optional)

        Returns:
            Response with service_type, providers and count
        """
        category = validate_category(category)
        if limit is None:
            limit = self.config["matching"]["default_limit"]
        limit = validate_positive_int(limit, "limit")
        reference_location = validate_reference_location(reference_location)

        self._start_stage_timer("single_category_match")

        matched = match_providers(category, providers, limit, reference_location)

        self._end_stage_timer("single_category_match")

        return {
            "service_type": category,
            "providers": matched,
            "count": len(matched)
        }

    def match_multiple_services(self, categories: Sequence[str], providers: Sequence[Dict],
                                max_team_size: Optional[int] = None,
                                reference_location: Optional[Dict] = None) -> Dict[str, Any]:
        """
        Search for the best provider team covering several categories.

        Args:
            categories: Requested categories
            providers: Provider snapshot; unverified providers are removed here
            max_team_size: Largest team (config default if None)
            reference_location: Service location (optional)

        Returns:
            Response with service_types, providers, count, aggregate_score
            and uncovered_categories
        """
        categories = validate_categories(categories)
        if max_team_size is None:
            max_team_size = self.config["matching"]["default_max_team_size"]
        max_team_size = validate_positive_int(max_team_size, "max_team_size")
        reference_location = validate_reference_location(reference_location)

        self._start_stage_timer("multi_category_search")

        team = find_best_combination(
            categories,
            filter_verified(providers),
            max_team_size,
            reference_location,
            self.config.get("search", {}).get("max_nodes")
        )
        statistics = get_combination_statistics(team, categories)

        self._end_stage_timer("multi_category_search")

        return {
            "service_types": categories,
            "providers": team,
            "count": len(team),
            "aggregate_score": aggregate_score(team),
            "uncovered_categories": statistics["uncovered_categories"]
        }

    def request_provider(self, provider_id: str, category: str,
                         providers: Sequence[Dict]) -> Dict:
        """
        Check that a specific provider can be requested for a category.

        Args:
            provider_id: Identifier of the requested provider
            category: Category the booking needs
            providers: Full provider snapshot, including unverified providers

        Returns:
            The provider record

        Raises:
            MatchValidationError: If the provider cannot take the booking
        """
        provider = next(
            (candidate for candidate in providers if str(candidate.get("id")) == str(provider_id)),
            None
        )
        return check_provider_assignment(provider, category)

    def generate_report(self, response: Dict[str, Any], provider_count: int) -> Dict[str, Any]:
        """
        Generate the run report.

        Args:
            response: Single- or multi-category response
            provider_count: Number of eligible providers in the snapshot

        Returns:
            Report dictionary
        """
        if "service_types" in response:
            match_statistics = get_combination_statistics(
                response["providers"], response["service_types"]
            )
        else:
            match_statistics = get_match_statistics(response["providers"])

        return {
            "pipeline_execution": {
                "start_time": self.pipeline_start_time,
                "end_time": datetime.now(),
                "stage_durations": dict(self.stage_durations),
                "total_duration": time.time() - self.pipeline_start_time if self.pipeline_start_time else 0
            },
            "snapshot": {
                "eligible_providers": provider_count,
                "validation": self.validation_summary
            },
            "match_statistics": match_statistics,
            "response": response
        }

    def run_pipeline(self, input_path: str, categories: Sequence[str],
                     limit: Optional[int] = None,
                     max_team_size: Optional[int] = None,
                     reference_location: Optional[Dict] = None,
                     output_path: Optional[str] = None) -> Dict[str, Any]:
        """
        Run a complete match request.

        One category produces a ranked list; several produce a team.

        Args:
            input_path: Path to provider snapshot
            categories: Requested categories
            limit: Result size for single-category requests
            max_team_size: Team size for multi-category requests
            reference_location: Service location (optional)
            output_path: Directory for result files (optional)

        Returns:
            Run report
        """
        categories = validate_categories(categories)

        self.pipeline_start_time = time.time()
        logger.info(f"Starting ProviderMatch pipeline for {categories} using {input_path}")

        try:
            snapshot_df = self.load_providers(input_path)
            providers = filter_verified(self.validate_providers(snapshot_df))

            if len(categories) == 1:
                response = self.match_service(categories[0], providers, limit, reference_location)
            else:
                response = self.match_multiple_services(
                    categories, providers, max_team_size, reference_location
                )

            report = self.generate_report(response, len(providers))

            if output_path:
                self._save_results(report, output_path)

            total_duration = time.time() - self.pipeline_start_time
            logger.info(f"Pipeline completed successfully in {total_duration:.2f} seconds")

            return report

        except Exception as e:
            logger.error(f"Pipeline failed: {e}")
            raise

    def _save_results(self, report: Dict[str, Any], output_path: str):
        """Save the report and matched providers to the output directory."""
        output_dir = Path(output_path)
        output_dir.mkdir(parents=True, exist_ok=True)

        formats = self.config.get("output", {}).get("formats", ["json"])

        if "json" in formats:
            with open(output_dir / "match_report.json", "w") as f:
                json.dump(report, f, indent=2, default=str)

        if "csv" in formats:
            rows = []
            for rank, entry in enumerate(report["response"]["providers"], 1):
                provider = entry.get("provider", entry)
                rows.append({
                    "rank": rank,
                    "provider_id": provider.get("id"),
                    "name": provider.get("name", ""),
                    "score": entry.get("match_score", entry.get("score")),
                    "distance": entry.get("distance"),
                    "distance_factor": entry.get("distance_factor"),
                    "covered_categories": ";".join(entry.get("covered_categories", []))
                })
            pd.DataFrame(rows).to_csv(output_dir / "matched_providers.csv", index=False)

        logger.info(f"Results saved to {output_path}")


def get_logging_settings(config: Dict[str, Any], level_override: Optional[str] = None) -> Tuple[int, str]:
    """
    Resolve the log level and log file for the CLI.

    Args:
        config: Match configuration
        level_override: Level name from the command line (optional)

    Returns:
        Tuple of (logging level, log file path)
    """
    logging_config = config.get("logging", {})
    level_name = str(level_override or logging_config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {level_name}")

    return level, logging_config.get("file", "logs/provider_match.log")


def main():
    """Main entry point for ProviderMatch."""
    parser = argparse.ArgumentParser(description="ProviderMatch Provider Matching Engine")
    parser.add_argument("--input", required=True, help="Provider snapshot path (.csv, .json, .jsonl, .parquet)")
    parser.add_argument("--category", required=True, action="append",
                        help="Service category; repeat for a multi-category team search")
    parser.add_argument("--limit", type=int, help="Maximum providers for a single category")
    parser.add_argument("--max-team-size", type=int, help="Maximum team size for several categories")
    parser.add_argument("--latitude", type=float, help="Service location latitude")
    parser.add_argument("--longitude", type=float, help="Service location longitude")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Configuration file path")
    parser.add_argument("--output", help="Output directory path")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Overrides logging.level from the configuration")

    args = parser.parse_args()

    if (args.latitude is None) != (args.longitude is None):
        parser.error("--latitude and --longitude must be given together")

    level, log_file = get_logging_settings(load_match_config(args.config), args.log_level)
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_file)
        ]
    )

    reference_location = None
    if args.latitude is not None:
        reference_location = {"latitude": args.latitude, "longitude": args.longitude}

    try:
        pipeline = ProviderMatchPipeline(args.config)
        report = pipeline.run_pipeline(
            input_path=args.input,
            categories=args.category,
            limit=args.limit,
            max_team_size=args.max_team_size,
            reference_location=reference_location,
            output_path=args.output
        )

        response = report["response"]

        print("\n" + "=" * 50)
        print("MATCH SUMMARY")
        print("=" * 50)
        for rank, entry in enumerate(response["providers"], 1):
            provider = entry.get("provider", entry)
            score = entry.get("match_score", entry.get("score"))
            covered = entry.get("covered_categories")
            suffix = f" covers {', '.join(covered)}" if covered else ""
            print(f"#{rank} {provider.get('name') or provider.get('id')}: {score:.3f}{suffix}")
        print(f"Providers returned: {response['count']}")
        print(f"Total Duration: {report['pipeline_execution']['total_duration']:.2f} seconds")
        print("=" * 50)

    except Exception as e:
        logger.error(f"Match execution failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

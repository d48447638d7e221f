"""
Integration tests for the complete ProviderMatch pipeline.
"""

import json
import logging
import sys
import tempfile
from pathlib import Path

import pandas as pd
import pytest

# Add src to path
sys.path.append(str(Path(__file__).parent.parent / "src"))

from provider_match.config import load_match_config
from provider_match.match.validation import MatchValidationError
from provider_match.pipeline.run_provider_match import ProviderMatchPipeline, get_logging_settings


class TestProviderMatchPipeline:
    """Integration tests for the complete pipeline."""

    def setup_method(self):
        """Setup test fixtures."""
        self.temp_dir = tempfile.mkdtemp()

        self.test_data = pd.DataFrame({
            "id": ["p1", "p2", "p3", "p4", "p5", "p5", "p6"],
            "name": [
                "Hari Plumbing Works",
                "Sita Tiles",
                "Bikash Electricals",
                "New Plumber",
                "Kathmandu Home Repairs",
                "Kathmandu Home Repairs (duplicate)",
                "Pending Painter"
            ],
            "skills": [
                "Plumbing",
                "Tiling",
                "Electrical",
                "Plumbing",
                "Plumbing;Tiling",
                "Plumbing;Tiling",
                "Painting"
            ],
            "verification_status": [
                "verified", "verified", "verified", "verified", "verified", "verified", "pending"
            ],
            "rating_average": [4.5, 4.2, 4.8, 5.0, 3.9, 3.9, 5.0],
            "rating_total_reviews": [20, 35, 50, 1, 15, 15, 100],
            "experience_years": [12, 6, 9, 1, 4, 4, 20],
            "latitude": [27.7172, 27.6800, None, 27.7000, 27.7100, 27.7100, 27.7172],
            "longitude": [85.3240, 85.3100, None, 85.3200, 85.3300, 85.3300, 85.3240]
        })

        self.test_file = Path(self.temp_dir) / "providers.csv"
        self.test_data.to_csv(self.test_file, index=False)

        self.config_path = Path(self.temp_dir) / "test_config.yaml"
        self.create_test_config()

        self.pipeline = ProviderMatchPipeline(str(self.config_path))

    def create_test_config(self):
        """Create minimal test configuration."""
        config_content = """
matching:
  default_limit: 3
  default_max_team_size: 2

search:
  max_nodes: 5000

ingestion:
  required_columns:
    - id
    - skills
    - verification_status
  skills_separator: ";"

output:
  formats: ["json", "csv"]
"""
        with open(self.config_path, 'w') as f:
            f.write(config_content)

    def test_config_loading(self):
        """Configuration overrides merge over defaults."""
        config = load_match_config(str(self.config_path))

        assert config["matching"]["default_limit"] == 3
        assert config["search"]["max_nodes"] == 5000
        assert config["logging"]["level"] == "INFO"

    def test_missing_config_uses_defaults(self):
        """A missing configuration file falls back to defaults."""
        config = load_match_config(str(Path(self.temp_dir) / "absent.yaml"))

        assert config["matching"]["default_limit"] == 10
        assert config["matching"]["default_max_team_size"] == 3

    def test_logging_settings_from_config(self):
        """The logging section sets level and file; the command line overrides the level."""
        config = load_match_config(str(self.config_path))
        config["logging"] = {"level": "warning", "file": "run/match.log"}

        assert get_logging_settings(config) == (logging.WARNING, "run/match.log")
        assert get_logging_settings(config, "DEBUG") == (logging.DEBUG, "run/match.log")
        assert get_logging_settings(load_match_config(str(self.config_path))) == (
            logging.INFO, "logs/provider_match.log"
        )

        config["logging"]["level"] = "LOUD"
        with pytest.raises(ValueError, match="Unknown log level"):
            get_logging_settings(config)

    def test_single_category_pipeline(self):
        """One category produces a ranked list of verified providers."""
        report = self.pipeline.run_pipeline(str(self.test_file), ["Plumbing"])

        response = report["response"]
        ids = [provider["id"] for provider in response["providers"]]

        assert response["service_type"] == "Plumbing"
        assert response["count"] == len(ids) == 3
        assert ids[0] == "p1"
        assert set(ids) == {"p1", "p4", "p5"}
        assert report["snapshot"]["eligible_providers"] == 5
        assert report["match_statistics"]["count"] == 3

    def test_single_category_with_service_location(self):
        """A service location makes distances relative to the request."""
        location = {"latitude": 27.7000, "longitude": 85.3200}
        report = self.pipeline.run_pipeline(
            str(self.test_file), ["Plumbing"], limit=5, reference_location=location
        )

        providers = {provider["id"]: provider for provider in report["response"]["providers"]}

        assert providers["p4"]["distance"] == 0.0
        assert providers["p4"]["distance_factor"] == pytest.approx(0.3)

    def test_multi_category_pipeline(self):
        """Several categories produce a covering team within the size cap."""
        report = self.pipeline.run_pipeline(
            str(self.test_file), ["Plumbing", "Tiling", "Electrical"], max_team_size=3
        )

        response = report["response"]
        covered = [category for entry in response["providers"] for category in entry["covered_categories"]]

        assert response["service_types"] == ["Plumbing", "Tiling", "Electrical"]
        assert [entry["provider"]["id"] for entry in response["providers"]] == ["p1", "p2", "p3"]
        assert set(covered) == {"Plumbing", "Tiling", "Electrical"}
        assert response["uncovered_categories"] == []
        assert response["aggregate_score"] == pytest.approx(
            sum(entry["score"] for entry in response["providers"])
        )
        assert report["match_statistics"]["coverage_ratio"] == 1.0

    def test_small_team_keeps_highest_aggregate(self):
        """With too few slots the highest-scoring team wins even if it leaves a gap."""
        report = self.pipeline.run_pipeline(str(self.test_file), ["Plumbing", "Tiling", "Electrical"])

        response = report["response"]

        assert [entry["provider"]["id"] for entry in response["providers"]] == ["p1", "p3"]
        assert response["uncovered_categories"] == ["Tiling"]
        assert report["match_statistics"]["coverage_ratio"] == pytest.approx(2 / 3)

    def test_pending_providers_never_matched(self):
        """Unverified providers are excluded from every path."""
        single = self.pipeline.run_pipeline(str(self.test_file), ["Painting"])
        multi = self.pipeline.run_pipeline(str(self.test_file), ["Painting", "Plumbing"])

        assert single["response"]["providers"] == []
        assert all(entry["provider"]["id"] != "p6" for entry in multi["response"]["providers"])

    def test_validation_errors_before_matching(self):
        """Malformed requests are rejected before any scoring runs."""
        with pytest.raises(MatchValidationError):
            self.pipeline.run_pipeline(str(self.test_file), [])

        with pytest.raises(MatchValidationError):
            self.pipeline.run_pipeline(str(self.test_file), ["Plumbing", "Tiling"], max_team_size=0)

        with pytest.raises(MatchValidationError):
            self.pipeline.run_pipeline(str(self.test_file), ["Plumbing"], limit=-1)

    def test_request_provider(self):
        """Requesting a provider checks verification and skills."""
        providers = self.pipeline.validate_providers(self.pipeline.load_providers(str(self.test_file)))

        assert self.pipeline.request_provider("p2", "Tiling", providers)["name"] == "Sita Tiles"

        with pytest.raises(MatchValidationError):
            self.pipeline.request_provider("p6", "Painting", providers)
        with pytest.raises(MatchValidationError):
            self.pipeline.request_provider("p2", "Plumbing", providers)
        with pytest.raises(MatchValidationError):
            self.pipeline.request_provider("missing", "Plumbing", providers)

    def test_duplicate_rows_dropped(self):
        """Duplicate provider ids are removed during validation."""
        providers = self.pipeline.validate_providers(self.pipeline.load_providers(str(self.test_file)))

        assert [provider["id"] for provider in providers].count("p5") == 1
        assert not self.pipeline.validation_summary["success"]

    def test_results_saved(self):
        """Output directory receives the JSON report and CSV ranking."""
        output_dir = Path(self.temp_dir) / "output"

        self.pipeline.run_pipeline(str(self.test_file), ["Plumbing", "Tiling"], output_path=str(output_dir))

        with open(output_dir / "match_report.json") as f:
            saved = json.load(f)
        ranking = pd.read_csv(output_dir / "matched_providers.csv")

        assert saved["response"]["service_types"] == ["Plumbing", "Tiling"]
        assert len(ranking) == saved["response"]["count"]
        assert list(ranking["rank"]) == list(range(1, len(ranking) + 1))

    def test_unsupported_snapshot_format(self):
        """Unsupported snapshot files fail the run."""
        with pytest.raises(ValueError, match="Unsupported file format"):
            self.pipeline.run_pipeline(str(Path(self.temp_dir) / "providers.txt"), ["Plumbing"])


if __name__ == "__main__":
    pytest.main([__file__])

"""
Unit tests for snapshot ingestion and validation.
"""

import sys
import tempfile
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

# Add src to path
sys.path.append(str(Path(__file__).parent.parent / "src"))

from provider_match.ingestion.schema_validator import (
    ProviderSnapshotValidator,
    validate_provider_data
)
from provider_match.ingestion.snapshot_loader import (
    dataframe_to_providers,
    load_provider_snapshot,
    parse_skills,
    row_to_provider
)


class TestSnapshotLoader:
    """Test cases for snapshot loading and conversion."""

    def setup_method(self):
        """Setup test fixtures."""
        self.temp_dir = tempfile.mkdtemp()

    def test_parse_skills(self):
        """Skills accept delimited strings, JSON lists and sequences."""
        assert parse_skills("Plumbing; Tiling ;") == ["Plumbing", "Tiling"]
        assert parse_skills('["Plumbing", "Tiling"]') == ["Plumbing", "Tiling"]
        assert parse_skills(["Plumbing", "Plumbing", " Tiling"]) == ["Plumbing", "Tiling"]
        assert parse_skills(np.array(["Electrical"])) == ["Electrical"]
        assert parse_skills("Plumbing|Tiling", separator="|") == ["Plumbing", "Tiling"]
        assert parse_skills(None) == []
        assert parse_skills(float("nan")) == []

    def test_row_to_provider(self):
        """Flat rows become nested provider records."""
        provider = row_to_provider({
            "id": "7",
            "name": "Ram Plumbing",
            "skills": "Plumbing;Tiling",
            "verification_status": " Verified ",
            "rating_average": 4.5,
            "rating_total_reviews": 12.0,
            "experience_years": 6,
            "latitude": 27.7,
            "longitude": 85.3
        })

        assert provider == {
            "id": "7",
            "name": "Ram Plumbing",
            "skills": ["Plumbing", "Tiling"],
            "verification_status": "verified",
            "rating": {"average": 4.5, "total_reviews": 12},
            "experience_years": 6.0,
            "location": {"latitude": 27.7, "longitude": 85.3}
        }

    def test_row_without_location_or_rating(self):
        """Missing values fall back to empty rating and no location."""
        provider = row_to_provider({"id": "8", "skills": "Painting", "verification_status": "verified",
                                    "latitude": None, "longitude": 85.3})

        assert provider["location"] is None
        assert provider["rating"] == {"average": 0.0, "total_reviews": 0}
        assert provider["experience_years"] == 0.0

    def test_dataframe_to_providers_handles_nan(self):
        """NaN cells are treated as missing."""
        df = pd.DataFrame({
            "id": ["1", "2"],
            "skills": ["Plumbing", "Tiling"],
            "verification_status": ["verified", "pending"],
            "rating_average": [4.0, np.nan],
            "rating_total_reviews": [3, np.nan],
            "latitude": [27.7, np.nan],
            "longitude": [85.3, np.nan]
        })

        providers = dataframe_to_providers(df)

        assert [provider["id"] for provider in providers] == ["1", "2"]
        assert providers[0]["location"] == {"latitude": 27.7, "longitude": 85.3}
        assert providers[1]["location"] is None
        assert providers[1]["rating"] == {"average": 0.0, "total_reviews": 0}

    def test_load_csv_snapshot(self):
        """CSV snapshots load with string identifiers."""
        path = Path(self.temp_dir) / "providers.csv"
        pd.DataFrame({
            "id": ["001", "002"],
            "skills": ["Plumbing", "Tiling"],
            "verification_status": ["verified", "verified"]
        }).to_csv(path, index=False)

        df = load_provider_snapshot(str(path))

        assert len(df) == 2
        assert list(df["id"]) == ["001", "002"]

    def test_load_json_snapshot(self):
        """JSON record snapshots keep list-valued skills."""
        path = Path(self.temp_dir) / "providers.json"
        path.write_text('[{"id": "1", "skills": ["Plumbing", "Tiling"], "verification_status": "verified"}]')

        providers = dataframe_to_providers(load_provider_snapshot(str(path)))

        assert providers[0]["skills"] == ["Plumbing", "Tiling"]

    def test_unsupported_format(self):
        """Unknown file types are rejected."""
        with pytest.raises(ValueError, match="Unsupported file format"):
            load_provider_snapshot("providers.xlsx")

    def test_missing_file(self):
        """Missing snapshots raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_provider_snapshot(str(Path(self.temp_dir) / "absent.csv"))


class TestProviderSnapshotValidator:
    """Test cases for snapshot validation."""

    def setup_method(self):
        """Setup test fixtures."""
        self.config = {"required_columns": ["id", "skills", "verification_status"]}
        self.validator = ProviderSnapshotValidator(self.config)

    def test_clean_snapshot_passes(self):
        """Valid snapshots pass every check unchanged."""
        df = pd.DataFrame({
            "id": ["1", "2"],
            "skills": ["Plumbing", "Tiling"],
            "verification_status": ["verified", "pending"],
            "rating_average": [4.0, 3.0],
            "latitude": [27.7, 27.6],
            "longitude": [85.3, 85.4]
        })

        cleaned, summary = validate_provider_data(df, self.config)

        assert summary["success"]
        assert summary["success_rate"] == 1.0
        assert len(cleaned) == 2

    def test_missing_required_column(self):
        """Snapshots without required columns are rejected."""
        df = pd.DataFrame({"id": ["1"], "skills": ["Plumbing"]})

        with pytest.raises(ValueError, match="missing required columns"):
            self.validator.validate_data(df)

    def test_expectation_results_reported(self):
        """Each expectation is reported with its column and offending row count."""
        df = pd.DataFrame({
            "id": ["1", "2", "3"],
            "skills": ["Plumbing", "Tiling", "Painting"],
            "verification_status": [" Verified ", "archived", "pending"],
            "rating_average": [4.0, 6.0, None]
        })

        results = self.validator.validate_data(df)
        by_check = {(result["check"], result["column"]): result for result in results}

        assert by_check[("known_status", "verification_status")]["failed_rows"] == 1
        assert not by_check[("in_range", "rating_average")]["success"]
        assert by_check[("in_range", "rating_average")]["failed_rows"] == 1
        assert by_check[("unique", "id")]["success"]
        assert by_check[("not_null", "skills")]["success"]
        assert ("in_range", "latitude") not in by_check

    def test_invalid_rows_removed(self):
        """Null ids, duplicate ids and unknown statuses are dropped."""
        df = pd.DataFrame({
            "id": ["1", "1", None, "4", "5"],
            "skills": ["Plumbing", "Tiling", "Plumbing", "Plumbing", "Tiling"],
            "verification_status": ["verified", "verified", "verified", "archived", "rejected"]
        })

        cleaned, summary = validate_provider_data(df, self.config)

        assert not summary["success"]
        assert summary["failed_checks"] == 3
        assert list(cleaned["id"]) == ["1", "5"]
        assert list(cleaned["skills"]) == ["Plumbing", "Tiling"]

    def test_out_of_range_values_cleaned(self):
        """Ratings and experience are clamped; bad coordinates clear the location."""
        df = pd.DataFrame({
            "id": ["1", "2"],
            "skills": ["Plumbing", "Tiling"],
            "verification_status": ["verified", "verified"],
            "rating_average": [7.5, -1.0],
            "experience_years": [-2.0, 4.0],
            "latitude": [127.0, 27.7],
            "longitude": [85.3, 85.3]
        })

        cleaned, _ = validate_provider_data(df, self.config)

        assert list(cleaned["rating_average"]) == [5.0, 0.0]
        assert list(cleaned["experience_years"]) == [0.0, 4.0]
        assert np.isnan(cleaned["latitude"].iloc[0])
        assert np.isnan(cleaned["longitude"].iloc[0])
        assert cleaned["latitude"].iloc[1] == 27.7


if __name__ == "__main__":
    pytest.main([__file__])

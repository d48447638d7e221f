"""
Schema validation using Great Expectations for ProviderMatch.

Validates provider snapshot data against the expected columns and value
ranges. Rows that cannot be matched safely are dropped; out-of-range
numeric values are clamped so that scoring stays well defined.
"""

import logging
from typing import Any, Dict, List, Tuple

import great_expectations as gx
import pandas as pd

from ..config import VERIFICATION_STATUSES

logger = logging.getLogger(__name__)

# column -> (min, max) accepted range
NUMERIC_RANGES = {
    "rating_average": (0.0, 5.0),
    "rating_total_reviews": (0.0, None),
    "experience_years": (0.0, None),
}

COORDINATE_RANGES = {
    "latitude": (-90.0, 90.0),
    "longitude": (-180.0, 180.0),
}


class ProviderSnapshotValidator:
    """
    Validates provider snapshot schema and quality using Great Expectations.

    Each expectation result is reduced to a dictionary with the check name,
    column, success flag and number of offending rows.
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize validator with configuration.

        Args:
            config: Ingestion configuration dictionary
        """
        self.config = config
        self.required_columns = config.get("required_columns", ["id", "skills", "verification_status"])

        # Ephemeral context: nothing is written to a GX project directory
        self.context = gx.get_context(mode="ephemeral")
        self.data_source_name = "provider_snapshot"
        self._setup_data_source()

        logger.info("Initialized ProviderSnapshotValidator")

    def _setup_data_source(self):
        """Set up the pandas data source and whole-dataframe batch definition."""
        data_source = self.context.data_sources.add_pandas(name=self.data_source_name)
        data_asset = data_source.add_dataframe_asset(name="providers")
        self.batch_definition = data_asset.add_batch_definition_whole_dataframe("snapshot")

    def create_expectations(self, df: pd.DataFrame) -> List[Tuple[str, str, Any]]:
        """
        Build (check name, column, expectation) triples for a snapshot.

        Args:
            df: Snapshot DataFrame

        Returns:
            List of check names and columns paired with GX expectations
        """
        expectations = []

        for column in self.required_columns:
            expectations.append(("not_null", column, gx.expectations.ExpectColumnValuesToNotBeNull(column=column)))

        if "id" in df.columns:
            expectations.append(("unique", "id", gx.expectations.ExpectColumnValuesToBeUnique(column="id")))

        if "verification_status" in df.columns:
            expectations.append(("known_status", "verification_status", gx.expectations.ExpectColumnValuesToBeInSet(
                column="verification_status", value_set=list(VERIFICATION_STATUSES)
            )))

        for column, (low, high) in {**NUMERIC_RANGES, **COORDINATE_RANGES}.items():
            if column in df.columns:
                expectations.append(("in_range", column, gx.expectations.ExpectColumnValuesToBeBetween(
                    column=column, min_value=low, max_value=high
                )))

        return expectations

    @staticmethod
    def _prepare_frame(df: pd.DataFrame) -> pd.DataFrame:
        """Normalize statuses and coerce numeric columns before validation."""
        prepared = df.copy()

        if "verification_status" in prepared.columns:
            statuses = prepared["verification_status"]
            prepared["verification_status"] = statuses.where(
                statuses.isnull(), statuses.astype(str).str.strip().str.lower()
            )

        for column in {**NUMERIC_RANGES, **COORDINATE_RANGES}:
            if column in prepared.columns:
                prepared[column] = pd.to_numeric(prepared[column], errors="coerce")

        return prepared

    def validate_data(self, df: pd.DataFrame) -> List[Dict[str, Any]]:
        """
        Validate a snapshot against the provider expectations.

        Args:
            df: Snapshot DataFrame

        Returns:
            List of check results

        Raises:
            ValueError: If required columns are missing
        """
        try:
            batch = self.batch_definition.get_batch(batch_parameters={"dataframe": self._prepare_frame(df)})

            missing = [
                column for column in self.required_columns
                if not batch.validate(gx.expectations.ExpectColumnToExist(column=column)).success
            ]
            if missing:
                raise ValueError(f"Provider snapshot missing required columns: {missing}")

            results = []
            for check, column, expectation in self.create_expectations(df):
                expectation_result = batch.validate(expectation)
                results.append({
                    "check": check,
                    "column": column,
                    "success": bool(expectation_result.success),
                    "failed_rows": int(expectation_result.result.get("unexpected_count") or 0)
                })

        except Exception as e:
            logger.error(f"Validation failed: {e}")
            raise

        passed = sum(1 for result in results if result["success"])
        logger.info(f"Validation completed: {passed}/{len(results)} expectations passed")

        for result in results:
            if not result["success"]:
                logger.warning(f"Failed expectation: {result['check']} for column: {result['column']} "
                               f"({result['failed_rows']} rows)")

        return results

    def get_validation_summary(self, results: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Summarize check results.

        Args:
            results: Output of validate_data

        Returns:
            Dictionary with validation summary
        """
        failed = [result for result in results if not result["success"]]

        summary = {
            "success": not failed,
            "total_checks": len(results),
            "successful_checks": len(results) - len(failed),
            "failed_checks": len(failed),
            "failed_checks_details": failed,
            "success_rate": (len(results) - len(failed)) / len(results) if results else 0.0
        }

        logger.info(f"Validation summary: {summary['successful_checks']}/{summary['total_checks']} passed "
                    f"({summary['success_rate']:.2%} success rate)")

        return summary

    def clean_invalid_data(self, df: pd.DataFrame, results: List[Dict[str, Any]]) -> pd.DataFrame:
        """
        Clean invalid data based on validation results.

        Args:
            df: Original DataFrame
            results: Output of validate_data

        Returns:
            Cleaned DataFrame
        """
        original_rows = len(df)
        cleaned_df = df.copy()

        for result in results:
            if result["success"]:
                continue

            check = result["check"]
            column = result["column"]

            if check == "not_null":
                null_mask = cleaned_df[column].isnull()
                cleaned_df = cleaned_df[~null_mask]
                logger.info(f"Removed {int(null_mask.sum())} rows with null values in column '{column}'")

            elif check == "unique":
                duplicate_mask = cleaned_df[column].duplicated(keep="first")
                cleaned_df = cleaned_df[~duplicate_mask]
                logger.info(f"Removed {int(duplicate_mask.sum())} duplicate provider IDs")

            elif check == "known_status":
                statuses = cleaned_df[column].astype(str).str.strip().str.lower()
                invalid_mask = ~statuses.isin(VERIFICATION_STATUSES)
                cleaned_df = cleaned_df[~invalid_mask]
                logger.info(f"Removed {int(invalid_mask.sum())} rows with unknown verification status")

            elif check == "in_range" and column in NUMERIC_RANGES:
                low, high = NUMERIC_RANGES[column]
                cleaned_df[column] = pd.to_numeric(cleaned_df[column], errors="coerce").clip(lower=low, upper=high)
                logger.info(f"Clamped {result['failed_rows']} out-of-range values in column '{column}'")

            elif check == "in_range" and column in COORDINATE_RANGES:
                # A bad coordinate invalidates the whole location
                low, high = COORDINATE_RANGES[column]
                values = pd.to_numeric(cleaned_df[column], errors="coerce")
                bad_mask = (values < low) | (values > high)
                for coordinate in COORDINATE_RANGES:
                    if coordinate in cleaned_df.columns:
                        cleaned_df[coordinate] = pd.to_numeric(
                            cleaned_df[coordinate], errors="coerce"
                        ).mask(bad_mask)
                logger.info(f"Cleared location for {int(bad_mask.sum())} rows with invalid '{column}'")

        removed_rows = original_rows - len(cleaned_df)
        if original_rows:
            logger.info(f"Data cleaning completed: removed {removed_rows} invalid rows "
                        f"({removed_rows / original_rows:.2%} of data)")

        return cleaned_df


def validate_provider_data(df: pd.DataFrame, config: Dict[str, Any]) -> Tuple[pd.DataFrame, Dict[str, Any]]:
    """
    Convenience function to validate and clean a provider snapshot.

    Args:
        df: Snapshot DataFrame to validate
        config: Ingestion configuration

    Returns:
        Tuple of (cleaned_df, validation_summary)
    """
    validator = ProviderSnapshotValidator(config)
    results = validator.validate_data(df)
    summary = validator.get_validation_summary(results)

    if summary["success"]:
        logger.info("All validation checks passed")
        return df, summary

    logger.warning("Validation failed, cleaning invalid data")
    cleaned_df = validator.clean_invalid_data(df, results)
    return cleaned_df, summary

"""
Provider snapshot loader for ProviderMatch.

Loads provider records from local CSV, JSON or Parquet files and converts
flat rows into the provider records consumed by the matching engine.
"""

import json
import logging
import math
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = (".csv", ".json", ".jsonl", ".parquet")


def load_provider_snapshot(input_path: str) -> pd.DataFrame:
    """
    Load a provider snapshot file into a DataFrame.

    Args:
        input_path: Path to a .csv, .json, .jsonl or .parquet file

    Returns:
        DataFrame with one row per provider

    Raises:
        ValueError: If the file format is not supported
        FileNotFoundError: If the file does not exist
    """
    path = Path(input_path)
    suffix = path.suffix.lower()

    if suffix not in SUPPORTED_FORMATS:
        raise ValueError(f"Unsupported file format: {input_path}")

    if not path.exists():
        raise FileNotFoundError(f"Provider snapshot not found: {input_path}")

    if suffix == ".csv":
        df = pd.read_csv(path, dtype={"id": str})
    elif suffix == ".parquet":
        df = pd.read_parquet(path)
    elif suffix == ".jsonl":
        df = pd.read_json(path, lines=True, dtype={"id": str})
    else:
        df = pd.read_json(path, orient="records", dtype={"id": str})

    logger.info(f"Loaded {len(df)} provider records from {input_path}")
    return df


def parse_skills(value, separator: str = ";") -> List[str]:
    """
    Parse a skills cell into a list of category names.

    Accepts lists/arrays, JSON-encoded lists and separator-delimited strings.

    Args:
        value: Raw skills value
        separator: Delimiter for string values

    Returns:
        List of stripped, non-empty category names in original order
    """
    if value is None:
        return []

    if isinstance(value, (list, tuple, np.ndarray)):
        items = list(value)
    elif isinstance(value, float) and math.isnan(value):
        return []
    else:
        text = str(value).strip()
        if text.startswith("["):
            try:
                items = json.loads(text)
            except json.JSONDecodeError:
                items = text.strip("[]").split(",")
        else:
            items = text.split(separator)

    skills = []
    for item in items:
        if item is None:
            continue
        skill = str(item).strip().strip("'\"")
        if skill and skill not in skills:
            skills.append(skill)

    return skills


def _optional_float(value) -> Optional[float]:
    """Return a finite float or None."""
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def row_to_provider(row: Dict, separator: str = ";") -> Dict:
    """
    Convert a flat snapshot row into a provider record.

    Args:
        row: Flat row dictionary
        separator: Skills delimiter

    Returns:
        Provider record with nested rating and location
    """
    latitude = _optional_float(row.get("latitude"))
    longitude = _optional_float(row.get("longitude"))

    location = None
    if latitude is not None and longitude is not None:
        location = {"latitude": latitude, "longitude": longitude}

    total_reviews = _optional_float(row.get("rating_total_reviews"))
    name = row.get("name")

    return {
        "id": str(row.get("id")),
        "name": name if isinstance(name, str) else "",
        "skills": parse_skills(row.get("skills"), separator),
        "verification_status": str(row.get("verification_status") or "pending").strip().lower(),
        "rating": {
            "average": _optional_float(row.get("rating_average")) or 0.0,
            "total_reviews": int(total_reviews) if total_reviews else 0
        },
        "experience_years": _optional_float(row.get("experience_years")) or 0.0,
        "location": location
    }


def dataframe_to_providers(df: pd.DataFrame, separator: str = ";") -> List[Dict]:
    """
    Convert a snapshot DataFrame into provider records.

    Args:
        df: Snapshot DataFrame
        separator: Skills delimiter

    Returns:
        Provider records in row order
    """
    records = df.astype(object).where(pd.notna(df), None).to_dict("records")
    providers = [row_to_provider(row, separator) for row in records]

    logger.info(f"Converted {len(providers)} rows to provider records")
    return providers

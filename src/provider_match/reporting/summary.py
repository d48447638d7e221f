"""
Match statistics for ProviderMatch.

Summarizes ranked single-category results and provider teams for the
pipeline report.
"""

import logging
from typing import Any, Dict, List, Sequence

import numpy as np
import pandas as pd

from ..config import DISTANCE_CAP_KM

logger = logging.getLogger(__name__)


def get_match_statistics(results: Sequence[Dict]) -> Dict[str, Any]:
    """
    Calculate statistics for a ranked single-category result.

    Args:
        results: Output of match_providers

    Returns:
        Dictionary with score and distance statistics
    """
    if not results:
        return {"count": 0}

    df = pd.DataFrame({
        "match_score": [entry["match_score"] for entry in results],
        "distance_factor": [entry["distance_factor"] for entry in results],
        "distance": [entry["distance"] if entry["distance"] is not None else np.nan
                     for entry in results],
    })

    scores = df["match_score"]
    distances = df["distance"].dropna()

    stats = {
        "count": len(df),
        "score_statistics": {
            "mean_score": float(scores.mean()),
            "median_score": float(scores.median()),
            "std_score": float(scores.std(ddof=0)),
            "min_score": float(scores.min()),
            "max_score": float(scores.max())
        },
        "mean_distance_factor": float(df["distance_factor"].mean()),
        "located_count": int(len(distances)),
        "within_cap_count": int((distances <= DISTANCE_CAP_KM).sum()),
        "median_distance_km": float(np.median(distances)) if len(distances) else None
    }

    return stats


def get_combination_statistics(team: Sequence[Dict], categories: Sequence[str]) -> Dict[str, Any]:
    """
    Calculate statistics for a provider team.

    Args:
        team: Output of find_best_combination
        categories: Requested categories

    Returns:
        Dictionary with team size, aggregate score and coverage
    """
    requested = list(dict.fromkeys(categories))
    covered = set()
    for entry in team:
        covered.update(entry.get("covered_categories", []))

    uncovered: List[str] = [category for category in requested if category not in covered]
    member_scores = np.array([entry["score"] for entry in team], dtype=float)

    stats = {
        "team_size": len(team),
        "aggregate_score": float(member_scores.sum()) if len(member_scores) else 0.0,
        "coverage_ratio": (len(requested) - len(uncovered)) / len(requested) if requested else 0.0,
        "uncovered_categories": uncovered
    }

    if uncovered and team:
        logger.warning(f"Team leaves categories uncovered: {uncovered}")

    return stats

"""
Single-category matcher for ProviderMatch.

Filters the provider snapshot to verified providers offering a category,
scores them and returns the best ranked providers.
"""

import logging
from typing import Dict, List, Optional, Sequence

from .scorer import rank_scored, score_provider
from .validation import has_skill, is_verified

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10


def match_providers(category: str,
                    providers: Sequence[Dict],
                    limit: int = DEFAULT_LIMIT,
                    reference_location: Optional[Dict] = None) -> List[Dict]:
    """
    Rank providers for a single service category.

    Args:
        category: Requested service category
        providers: Provider snapshot
        limit: Maximum number of providers to return
        reference_location: Service location for distance scoring (optional)

    Returns:
        Provider records annotated with match_score, distance and
        distance_factor, best first. Empty if nobody offers the category.
    """
    candidates = [
        provider for provider in providers
        if is_verified(provider) and has_skill(provider, category)
    ]

    scored = []
    for provider in candidates:
        result = score_provider(provider, reference_location)
        scored.append({**result, "provider": provider})

    ranked = rank_scored(scored)[:max(limit, 0)]

    logger.info(f"Matched {len(ranked)} of {len(candidates)} eligible providers for '{category}'")

    return [
        {
            **entry["provider"],
            "match_score": entry["score"],
            "distance": entry["distance"],
            "distance_factor": entry["distance_factor"]
        }
        for entry in ranked
    ]

"""
Provider scorer for ProviderMatch.

Combines a Bayesian-smoothed rating with review volume, experience and
proximity bonuses into a single comparable score. Same inputs always
produce the same score.
"""

import logging
import math
from typing import Dict, Iterable, List, Optional, Tuple

from ..config import (
    CITY_CENTER, DISTANCE_CAP_KM, EXPERIENCE_SATURATION_YEARS, EXPERIENCE_WEIGHT,
    FALLBACK_DISTANCE_WEIGHT, PRIOR_MEAN, PRIOR_STRENGTH, REQUEST_DISTANCE_WEIGHT,
    TRUST_WEIGHT
)
from ..geo.distance import distance_km, has_coordinates

logger = logging.getLogger(__name__)


def _as_number(value, default: float = 0.0) -> float:
    """Coerce a record field to a non-negative float, falling back to default."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number) or number < 0:
        return default
    return number


def get_rating(provider: Dict) -> Tuple[float, int]:
    """
    Extract (average, total_reviews) from a provider record.

    An average without any reviews carries no signal and is reported as 0.

    Args:
        provider: Provider record

    Returns:
        Tuple of (average rating in [0, 5], total reviews)
    """
    rating = provider.get("rating")
    if not isinstance(rating, dict):
        rating = {}
    average = min(_as_number(rating.get("average")), 5.0)
    total_reviews = int(_as_number(rating.get("total_reviews")))

    if total_reviews == 0:
        average = 0.0

    return average, total_reviews


def calculate_bayesian_average(average: float, total_reviews: int) -> float:
    """
    Shrink the observed average toward the prior mean.

    Formula:
    - (PRIOR_MEAN * PRIOR_STRENGTH + average * reviews) / (PRIOR_STRENGTH + reviews)

    Args:
        average: Observed average rating
        total_reviews: Number of reviews behind the average

    Returns:
        Bayesian average rating
    """
    return ((PRIOR_MEAN * PRIOR_STRENGTH + average * total_reviews) /
            (PRIOR_STRENGTH + total_reviews))


def calculate_trust_factor(total_reviews: int) -> float:
    """Logarithmic bonus for review volume."""
    return math.log(1 + total_reviews) * TRUST_WEIGHT


def calculate_experience_factor(experience_years: float) -> float:
    """Linear experience bonus, capped at EXPERIENCE_SATURATION_YEARS."""
    return min(experience_years / EXPERIENCE_SATURATION_YEARS, 1.0) * EXPERIENCE_WEIGHT


def calculate_distance_factor(provider_location: Optional[Dict],
                              reference_location: Optional[Dict] = None) -> Tuple[Optional[float], float]:
    """
    Calculate the proximity bonus for a provider.

    Reference point precedence:
    - request location and provider location: distance between them
    - request location only: distance from request to the city center
    - provider location only: distance from the city center (smaller weight)
    - neither: no distance, no bonus

    Args:
        provider_location: Provider coordinates (optional)
        reference_location: Service location for this request (optional)

    Returns:
        Tuple of (distance in km or None, distance factor)
    """
    provider_located = has_coordinates(provider_location)

    if has_coordinates(reference_location):
        weight = REQUEST_DISTANCE_WEIGHT
        target = provider_location if provider_located else CITY_CENTER
        distance = distance_km(reference_location, target)
    elif provider_located:
        weight = FALLBACK_DISTANCE_WEIGHT
        distance = distance_km(CITY_CENTER, provider_location)
    else:
        return None, 0.0

    if distance <= DISTANCE_CAP_KM:
        distance_factor = (DISTANCE_CAP_KM - distance) / DISTANCE_CAP_KM * weight
    else:
        distance_factor = 0.0

    return distance, distance_factor


def score_provider(provider: Dict, reference_location: Optional[Dict] = None) -> Dict:
    """
    Score a single provider relative to an optional service location.

    Args:
        provider: Provider record
        reference_location: Service location for this request (optional)

    Returns:
        Dictionary with score and its components
    """
    average, total_reviews = get_rating(provider)
    experience_years = _as_number(provider.get("experience_years"))

    bayesian_average = calculate_bayesian_average(average, total_reviews)
    trust_factor = calculate_trust_factor(total_reviews)
    experience_factor = calculate_experience_factor(experience_years)
    distance, distance_factor = calculate_distance_factor(
        provider.get("location"), reference_location
    )

    score = bayesian_average + trust_factor + experience_factor + distance_factor

    logger.debug(f"Provider {provider.get('id')}: bayes={bayesian_average:.3f}, "
                 f"trust={trust_factor:.3f}, experience={experience_factor:.3f}, "
                 f"distance_factor={distance_factor:.3f}, score={score:.3f}")

    return {
        "provider_id": provider.get("id"),
        "score": score,
        "bayesian_average": bayesian_average,
        "trust_factor": trust_factor,
        "experience_factor": experience_factor,
        "distance_factor": distance_factor,
        "distance": distance
    }


def rank_scored(entries: Iterable[Dict]) -> List[Dict]:
    """
    Order scored entries best first.

    Higher score wins; equal scores go to the closer provider (unknown
    distance last), then to the earlier snapshot position.

    Args:
        entries: Dictionaries carrying "score" and "distance"

    Returns:
        New list in ranked order
    """
    return sorted(
        entries,
        key=lambda entry: (
            -entry["score"],
            entry.get("distance") is None,
            entry.get("distance") or 0.0
        )
    )

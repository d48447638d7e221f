"""
Request validation for ProviderMatch.

Rejects malformed match requests before any scoring or search runs, and
checks provider eligibility for a requested category.
"""

import logging
import math
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


class MatchValidationError(ValueError):
    """Raised when a match request is rejected before reaching the engine."""


def is_verified(provider: Dict) -> bool:
    """Check whether a provider is eligible for matching."""
    return provider.get("verification_status") == "verified"


def provider_skills(provider: Dict) -> List[str]:
    """
    Skills of a provider as a list.

    A bare string is a single skill, never a sequence of characters.
    """
    skills = provider.get("skills")
    if not skills:
        return []
    if isinstance(skills, str):
        return [skills]
    return list(skills)


def has_skill(provider: Dict, category: str) -> bool:
    """Check whether a provider offers a category."""
    return category in provider_skills(provider)


def validate_category(category) -> str:
    """
    Validate a single service category.

    Args:
        category: Requested category

    Returns:
        Category with surrounding whitespace removed

    Raises:
        MatchValidationError: If the category is missing or blank
    """
    if not isinstance(category, str) or not category.strip():
        raise MatchValidationError("Service type is required")
    return category.strip()


def validate_categories(categories) -> List[str]:
    """
    Validate a set of service categories.

    Duplicates are dropped; first-seen order is kept so that searches over
    the same request are reproducible.

    Args:
        categories: Requested categories

    Returns:
        Ordered list of distinct categories

    Raises:
        MatchValidationError: If the collection is missing, empty or holds a blank entry
    """
    if categories is None or isinstance(categories, str):
        raise MatchValidationError("Service types array is required")

    validated = []
    for category in categories:
        category = validate_category(category)
        if category not in validated:
            validated.append(category)

    if not validated:
        raise MatchValidationError("Service types array is required")

    return validated


def validate_positive_int(value, name: str) -> int:
    """
    Validate a positive integer request parameter.

    Raises:
        MatchValidationError: If the value is not an integer >= 1
    """
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise MatchValidationError(f"{name} must be a positive integer, got {value!r}")
    return value


def validate_reference_location(location: Optional[Dict]) -> Optional[Dict]:
    """
    Validate an optional service location.

    Args:
        location: {"latitude", "longitude"} or None

    Returns:
        Location with float coordinates, or None

    Raises:
        MatchValidationError: If coordinates are malformed or out of range
    """
    if location is None:
        return None

    if not isinstance(location, dict):
        raise MatchValidationError("Service location must be a mapping with latitude and longitude")

    try:
        latitude = float(location["latitude"])
        longitude = float(location["longitude"])
    except (KeyError, TypeError, ValueError):
        raise MatchValidationError("Service location requires numeric latitude and longitude")

    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        raise MatchValidationError("Service location coordinates must be finite")

    if not -90.0 <= latitude <= 90.0 or not -180.0 <= longitude <= 180.0:
        raise MatchValidationError(
            f"Service location out of range: latitude={latitude}, longitude={longitude}"
        )

    return {"latitude": latitude, "longitude": longitude}


def check_provider_assignment(provider: Optional[Dict], category: str) -> Dict:
    """
    Check that a specific provider can be requested for a category.

    Args:
        provider: Provider record, or None if the lookup found nothing
        category: Category the booking needs

    Returns:
        The provider record

    Raises:
        MatchValidationError: If the provider is missing, unverified or lacks the skill
    """
    category = validate_category(category)

    if provider is None or not is_verified(provider):
        raise MatchValidationError("Provider not found or not verified")

    if not has_skill(provider, category):
        raise MatchValidationError("Provider does not offer this service type")

    logger.info(f"Provider {provider.get('id')} accepted for {category}")
    return provider


def filter_verified(providers: Iterable[Dict]) -> List[Dict]:
    """Keep only verified providers, preserving snapshot order."""
    return [provider for provider in providers if is_verified(provider)]

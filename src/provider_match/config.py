"""
Configuration for ProviderMatch.

Scoring weights are fixed design constants and live at module level.
Operational settings (result sizes, search budget, ingestion and output
options) are loaded from YAML and merged over defaults.
"""

import logging
from pathlib import Path
from typing import Any, Dict

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/provider_match.yaml"

# Bayesian prior: mean rating and strength in virtual reviews
PRIOR_MEAN = 3.0
PRIOR_STRENGTH = 10

# Review volume bonus: ln(1 + reviews) * weight
TRUST_WEIGHT = 0.1

# Experience bonus saturates at this many years
EXPERIENCE_WEIGHT = 0.2
EXPERIENCE_SATURATION_YEARS = 10

# Proximity bonus decays linearly to zero at the cap
DISTANCE_CAP_KM = 20.0
REQUEST_DISTANCE_WEIGHT = 0.3   # explicit service location supplied
FALLBACK_DISTANCE_WEIGHT = 0.15  # only the city center reference available

EARTH_RADIUS_KM = 6371.0

# Kathmandu center (Thamel area)
CITY_CENTER = {"latitude": 27.7172, "longitude": 85.3240}

VERIFICATION_STATUSES = ("pending", "verified", "rejected")


def get_default_match_config() -> Dict[str, Any]:
    """
    Get default ProviderMatch configuration.

    Returns:
        Default configuration dictionary
    """
    return {
        "matching": {
            "default_limit": 10,
            "default_max_team_size": 3
        },
        "search": {
            "max_nodes": 100000
        },
        "ingestion": {
            "required_columns": ["id", "skills", "verification_status"],
            "skills_separator": ";"
        },
        "output": {
            "formats": ["json"]
        },
        "logging": {
            "level": "INFO",
            "file": "logs/provider_match.log"
        }
    }


def load_match_config(config_path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """
    Load configuration from YAML file, merged over the defaults.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary
    """
    defaults = get_default_match_config()

    config_file = Path(config_path)
    if not config_file.exists():
        logger.warning(f"Configuration file {config_path} not found, using defaults")
        return defaults

    try:
        with open(config_file, 'r') as f:
            loaded = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse configuration from {config_path}: {e}")
        return defaults

    if not isinstance(loaded, dict):
        logger.error(f"Configuration in {config_path} must be a mapping, using defaults")
        return defaults

    config = merge_configs(defaults, loaded)
    logger.info(f"Loaded match configuration from {config_path}")
    return config


def validate_match_config(config: Dict[str, Any]) -> bool:
    """
    Validate match configuration.

    Args:
        config: Configuration dictionary

    Returns:
        True if configuration is valid, False otherwise
    """
    required_sections = ["matching", "search", "ingestion"]

    for section in required_sections:
        if section not in config:
            logger.error(f"Missing required configuration section: {section}")
            return False

    matching_config = config.get("matching", {})
    for key in ("default_limit", "default_max_team_size"):
        value = matching_config.get(key)
        if not isinstance(value, int) or isinstance(value, bool) or value < 1:
            logger.error(f"matching.{key} must be a positive integer")
            return False

    max_nodes = config.get("search", {}).get("max_nodes")
    if max_nodes is not None and (not isinstance(max_nodes, int) or max_nodes < 1):
        logger.error("search.max_nodes must be a positive integer or null")
        return False

    ingestion_config = config.get("ingestion", {})
    if not isinstance(ingestion_config.get("required_columns", []), list):
        logger.error("ingestion.required_columns must be a list")
        return False

    separator = ingestion_config.get("skills_separator", ";")
    if not isinstance(separator, str) or not separator:
        logger.error("ingestion.skills_separator must be a non-empty string")
        return False

    logger.info("Configuration validation passed")
    return True


def merge_configs(base_config: Dict[str, Any], override_config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge two configuration dictionaries.

    Args:
        base_config: Base configuration
        override_config: Override configuration

    Returns:
        Merged configuration
    """
    merged = base_config.copy()

    for key, value in override_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value

    return merged

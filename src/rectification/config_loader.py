"""
Configuration loader for the Rectification module.

Loads and validates configuration from config.yaml file.
"""

import logging
from pathlib import Path
from typing import Any, Dict

import yaml

from src.rectification.types import (
    BorderMode,
    CoordinateConfig,
    DetectorOrigin,
    DisplayConfig,
    DisplayGravity,
    RectificationConfig,
    RectifierConfig,
)

logger = logging.getLogger(__name__)

# Default configuration path (relative to this file)
DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"


def load_config(config_path: Path = DEFAULT_CONFIG_PATH) -> RectificationConfig:
    """
    Load rectification configuration from YAML file.

    Args:
        config_path: Path to the configuration YAML file.

    Returns:
        Validated RectificationConfig object.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValueError: If config is invalid or missing required fields.

    Example:
        >>> config = load_config()
        >>> config.rectifier.border_mode
        <BorderMode.CLAMP: 'clamp'>
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    logger.debug(f"Loading rectification config from {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        raw_config = yaml.safe_load(f) or {}

    try:
        config = _parse_config(raw_config)
        _validate_config(config)
        logger.info("Successfully loaded rectification configuration")
        return config
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Invalid configuration file: {e}") from e


def _parse_config(raw: Dict[str, Any]) -> RectificationConfig:
    """Parse raw dictionary into structured config objects.

    Missing sections or keys fall back to the dataclass defaults.
    """
    rectifier_raw = raw.get("rectifier") or {}
    coordinates_raw = raw.get("coordinates") or {}
    display_raw = raw.get("display") or {}

    defaults = RectifierConfig()
    max_side = rectifier_raw.get("max_output_side", defaults.max_output_side)

    return RectificationConfig(
        rectifier=RectifierConfig(
            border_mode=BorderMode(
                rectifier_raw.get("border_mode", defaults.border_mode.value)
            ),
            max_workers=int(rectifier_raw.get("max_workers", defaults.max_workers)),
            min_rows_per_band=int(
                rectifier_raw.get("min_rows_per_band", defaults.min_rows_per_band)
            ),
            max_output_side=None if max_side is None else int(max_side),
        ),
        coordinates=CoordinateConfig(
            detector_origin=DetectorOrigin(
                coordinates_raw.get(
                    "detector_origin", CoordinateConfig().detector_origin.value
                )
            ),
        ),
        display=DisplayConfig(
            gravity=DisplayGravity(
                display_raw.get("gravity", DisplayConfig().gravity.value)
            ),
        ),
    )


def _validate_config(config: RectificationConfig) -> None:
    """
    Validate configuration values for logical consistency.

    Raises:
        ValueError: If any configuration value is invalid.
    """
    if config.rectifier.max_workers < 1:
        raise ValueError("max_workers must be at least 1")

    if config.rectifier.min_rows_per_band < 1:
        raise ValueError("min_rows_per_band must be at least 1")

    if (
        config.rectifier.max_output_side is not None
        and config.rectifier.max_output_side < 1
    ):
        raise ValueError("max_output_side must be at least 1 when set")

    logger.debug("Configuration validation passed")

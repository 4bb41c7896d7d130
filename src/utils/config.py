"""Configuration loader for the screen recognizer.

This module provides typed configuration access with YAML loading,
validation, an environment variable override for the file path, and
singleton access.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

DETECTORS = ("sift", "orb")


@dataclass
class PathsConfig:
    """Locations of calibrations, reference images and the database."""

    calibrations_path: str = "data/calibrations"
    card_image_path: str = "data/cards"
    hero_image_path: str = "data/heroes"
    misc_image_path: str = "data/misc"
    database_path: str = "data/database.yaml"


@dataclass
class RecognitionConfig:
    """Matching thresholds and descriptor settings."""

    calibration_id: str = "default"
    phash_threshold: int = 10
    ratio: float = 0.6
    min_good_matches: int = 7
    detector: str = "sift"
    n_features: int = 0
    contrast_threshold: float = 0.04
    n_octave_layers: int = 3


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class Config:
    """Main configuration container.

    Attributes:
        paths: Data file locations.
        recognition: Matching settings.
        logging: Logging settings.
    """

    paths: PathsConfig = field(default_factory=PathsConfig)
    recognition: RecognitionConfig = field(default_factory=RecognitionConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# Global singleton instance
_config_instance: Optional[Config] = None


def _parse_paths_config(data: dict) -> PathsConfig:
    """Parse paths configuration section."""
    defaults = PathsConfig()
    return PathsConfig(
        calibrations_path=data.get("calibrations_path", defaults.calibrations_path),
        card_image_path=data.get("card_image_path", defaults.card_image_path),
        hero_image_path=data.get("hero_image_path", defaults.hero_image_path),
        misc_image_path=data.get("misc_image_path", defaults.misc_image_path),
        database_path=data.get("database_path", defaults.database_path),
    )


def _parse_recognition_config(data: dict) -> RecognitionConfig:
    """Parse recognition configuration section."""
    defaults = RecognitionConfig()
    return RecognitionConfig(
        calibration_id=str(data.get("calibration_id", defaults.calibration_id)),
        phash_threshold=int(data.get("phash_threshold", defaults.phash_threshold)),
        ratio=float(data.get("ratio", defaults.ratio)),
        min_good_matches=int(data.get("min_good_matches", defaults.min_good_matches)),
        detector=str(data.get("detector", defaults.detector)).lower(),
        n_features=int(data.get("n_features", defaults.n_features)),
        contrast_threshold=float(data.get("contrast_threshold", defaults.contrast_threshold)),
        n_octave_layers=int(data.get("n_octave_layers", defaults.n_octave_layers)),
    )


def _parse_logging_config(data: dict) -> LoggingConfig:
    """Parse logging configuration section."""
    return LoggingConfig(
        level=data.get("level", "INFO"),
        file=data.get("file"),
    )


def _number(section: dict, key: str, kind: type):
    """Read an optional numeric setting, rejecting values that are not numbers."""
    value = section.get(key)
    if value is None:
        return None
    try:
        return kind(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"recognition.{key} must be a number, got {value!r}") from e


def _validate_config(data: dict) -> None:
    """Validate section types and value ranges."""
    for section in ("paths", "recognition", "logging"):
        if section in data and not isinstance(data[section], dict):
            raise ValueError(f"'{section}' section must be a dictionary")

    recognition = data.get("recognition", {})

    threshold = _number(recognition, "phash_threshold", int)
    if threshold is not None and not (1 <= threshold <= 64):
        raise ValueError("recognition.phash_threshold must be between 1 and 64")

    ratio = _number(recognition, "ratio", float)
    if ratio is not None and not (0.0 < ratio <= 1.0):
        raise ValueError("recognition.ratio must be in (0.0, 1.0]")

    min_good = _number(recognition, "min_good_matches", int)
    if min_good is not None and min_good < 1:
        raise ValueError("recognition.min_good_matches must be at least 1")

    detector = str(recognition.get("detector", "sift")).lower()
    if detector not in DETECTORS:
        raise ValueError(f"recognition.detector must be one of {DETECTORS}")


def load_config(path: Optional[str] = None) -> Config:
    """Load and validate configuration from YAML file.

    Args:
        path: Optional path to configuration file. If None, uses
            HSRECOG_CONFIG_PATH env var or defaults to 'config.yaml'.

    Returns:
        Validated Config dataclass instance.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ValueError: If the configuration is invalid.
        yaml.YAMLError: If the YAML is malformed.
    """
    global _config_instance

    if path is None:
        path = os.environ.get("HSRECOG_CONFIG_PATH", "config.yaml")

    config_path = Path(path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    # Handle empty config file
    if data is None:
        data = {}

    _validate_config(data)

    config = Config(
        paths=_parse_paths_config(data.get("paths", {})),
        recognition=_parse_recognition_config(data.get("recognition", {})),
        logging=_parse_logging_config(data.get("logging", {})),
    )

    _config_instance = config

    return config


def get_config() -> Config:
    """Get the global configuration singleton.

    Returns the previously loaded configuration, or loads it from
    the default path if not yet loaded.
    """
    global _config_instance

    if _config_instance is None:
        _config_instance = load_config()

    return _config_instance


def reset_config() -> None:
    """Reset the global configuration singleton."""
    global _config_instance
    _config_instance = None

"""Screen calibration: expected resolution and regions per recognizer.

Calibrations are YAML files named ``<calibration_id>.yaml``::

    resolution:
      width: 1280
      height: 720
    regions:
      draft_card_pick:
        - [100, 200, 150, 150]
        - [400, 200, 150, 150]
        - [700, 200, 150, 150]
      game_coin:
        - [540, 300, 200, 100]

Region keys are lower-case recognizer names; recognizers without an entry
get no regions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from src.recognition.errors import CalibrationError
from src.recognition.types import RecognizerKind, Region, regions_from_lists

logger = logging.getLogger(__name__)

DEFAULT_CALIBRATION_ID = "default"


@dataclass(frozen=True)
class Calibration:
    """Calibrated layout of the game screen.

    Attributes:
        width: Expected frame width.
        height: Expected frame height.
        regions: Regions per recognizer, in slot order.
        source: File the calibration was loaded from, if any.
    """

    width: int
    height: int
    regions: dict[RecognizerKind, tuple[Region, ...]] = field(default_factory=dict)
    source: Path | None = None

    def regions_for(self, kind: RecognizerKind) -> tuple[Region, ...]:
        return self.regions.get(kind, ())

    @classmethod
    def from_dict(cls, data: dict, source: Path | None = None) -> Calibration:
        """Parse a calibration mapping.

        Raises:
            CalibrationError: If the mapping is malformed.
        """
        if not isinstance(data, dict):
            raise CalibrationError("Calibration must be a mapping")

        resolution = data.get("resolution")
        if not isinstance(resolution, dict):
            raise CalibrationError("Calibration is missing 'resolution'")
        try:
            width = int(resolution["width"])
            height = int(resolution["height"])
        except (KeyError, TypeError, ValueError) as e:
            raise CalibrationError(f"Invalid resolution: {resolution}") from e
        if width <= 0 or height <= 0:
            raise CalibrationError(f"Resolution must be positive: {width}x{height}")

        raw_regions = data.get("regions") or {}
        if not isinstance(raw_regions, dict):
            raise CalibrationError("'regions' must be a mapping")

        regions: dict[RecognizerKind, tuple[Region, ...]] = {}
        for name, values in raw_regions.items():
            try:
                kind = RecognizerKind[str(name).upper()]
            except KeyError as e:
                raise CalibrationError(f"Unknown recognizer in calibration: {name}") from e
            try:
                parsed = regions_from_lists(values or [])
            except (TypeError, ValueError) as e:
                raise CalibrationError(f"Invalid regions for {name}: {values}") from e

            for region in parsed:
                if (
                    region.x < 0 or region.y < 0
                    or region.width <= 0 or region.height <= 0
                    or region.x + region.width > width
                    or region.y + region.height > height
                ):
                    raise CalibrationError(f"Region {region} of {name} lies outside {width}x{height}")
            regions[kind] = tuple(parsed)

        return cls(width=width, height=height, regions=regions, source=source)

    @classmethod
    def from_file(cls, path: str | Path) -> Calibration:
        """Load a calibration file.

        Raises:
            CalibrationError: If the file is missing or malformed.
        """
        path = Path(path)
        if not path.exists():
            raise CalibrationError(f"Calibration file not found: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise CalibrationError(f"Malformed calibration file {path}: {e}") from e

        calibration = cls.from_dict(data, source=path)
        logger.debug(
            f"Loaded calibration {path}: {calibration.width}x{calibration.height}, "
            f"{len(calibration.regions)} recognizers"
        )
        return calibration


def load_calibration(directory: str | Path, calibration_id: str) -> Calibration:
    """Load a calibration by ID, falling back to the default one.

    Args:
        directory: Directory holding ``<id>.yaml`` files.
        calibration_id: Calibration to load.

    Returns:
        The requested calibration, or the default one if it failed to load.

    Raises:
        CalibrationError: If the default calibration cannot be loaded either.
    """
    directory = Path(directory)
    try:
        return Calibration.from_file(directory / f"{calibration_id}.yaml")
    except CalibrationError as e:
        if calibration_id == DEFAULT_CALIBRATION_ID:
            raise
        logger.error(
            f"Calibration with ID {calibration_id} was not properly initialized ({e}), "
            "trying to use default..."
        )

    return Calibration.from_file(directory / f"{DEFAULT_CALIBRATION_ID}.yaml")

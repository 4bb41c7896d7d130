"""Calibration and reference data loading."""

from .calibration import Calibration, load_calibration, DEFAULT_CALIBRATION_ID
from .database import CardRecord, HeroRecord, ReferenceDatabase, precompute_hashes

__all__ = [
    "Calibration",
    "load_calibration",
    "DEFAULT_CALIBRATION_ID",
    "CardRecord",
    "HeroRecord",
    "ReferenceDatabase",
    "precompute_hashes",
]

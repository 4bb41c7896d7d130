"""Exceptions raised while loading recognition resources.

Recognition misses are never exceptions; these only cover construction-time
problems with calibration files and reference data.
"""


class CalibrationError(ValueError):
    """Raised when a calibration file is missing or malformed."""


class ReferenceDataError(ValueError):
    """Raised when reference images or the reference database are unusable."""

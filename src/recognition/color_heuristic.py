"""Glow-colour heuristic for picking the highlighted draft slot.

During a draft the slot holding the higher-rarity card glows in a colour
tied to the rarity of the offered cards. This module compares the mean HSV
colour of each slot to find that glow. It abstains (returns None) far more
often than it decides.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Sequence

import cv2
import numpy as np

from src.recognition.types import CardQuality, Region

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)

# Minimum mean brightness of the slots before colours are trusted
LEGENDARY_VALUE_GATE = 200
DEFAULT_VALUE_GATE = 220

# OpenCV hue bands (0-180 scale)
EPIC_HUE_BAND = (110, 150)
OTHER_HUE_BANDS = ((90, 110), (50, 80))
RED_HUE_LIMIT = 30


@dataclass(frozen=True)
class SlotColor:
    """Mean HSV colour of one slot.

    Attributes:
        hue: Mean hue (0-180).
        saturation: Mean saturation (0-255).
        value: Mean value (0-255).
    """

    hue: float
    saturation: float
    value: float

    @property
    def is_red(self) -> bool:
        return self.hue < RED_HUE_LIMIT

    def is_candidate(self, quality: int) -> bool:
        """Whether the hue lies in the glow band for ``quality``."""
        if quality == CardQuality.EPIC:
            low, high = EPIC_HUE_BAND
            return low <= self.hue <= high
        return any(low <= self.hue <= high for low, high in OTHER_HUE_BANDS)


def slot_colors(image: NDArray[np.uint8], regions: Sequence[Region]) -> list[SlotColor]:
    """Compute the mean HSV colour of every region of a BGR image."""
    colors: list[SlotColor] = []
    for region in regions:
        hsv = cv2.cvtColor(region.crop(image), cv2.COLOR_BGR2HSV)
        hue, saturation, value = cv2.mean(hsv)[:3]
        colors.append(SlotColor(hue=hue, saturation=saturation, value=value))
    return colors


def value_gate(quality: int) -> int:
    """Minimum average brightness for a given card quality."""
    return LEGENDARY_VALUE_GATE if quality == CardQuality.LEGENDARY else DEFAULT_VALUE_GATE


def choose_slot(colors: Sequence[SlotColor], quality: int) -> int | None:
    """Decide on a slot from precomputed slot colours.

    A slot is chosen only if it is the single slot in the glow band and also
    the least saturated one.

    Args:
        colors: Per-slot mean colours, in slot order.
        quality: Quality of the first card of the last recognized draft pick.

    Returns:
        Slot index, or None when the frame is too dark or the choice is
        ambiguous.
    """
    if not colors:
        return None

    average_value = sum(color.value for color in colors) / len(colors)
    if average_value < value_gate(quality):
        logger.debug(f"Slots too dark to judge: average value {average_value:.1f}")
        return None

    red = [False] * len(colors)
    candidate = -1
    match = True
    min_saturation_index = 0
    min_saturation = colors[0].saturation

    for index, color in enumerate(colors):
        if color.saturation < min_saturation:
            min_saturation = color.saturation
            min_saturation_index = index

        red[index] = color.is_red
        if color.is_candidate(quality):
            # a second glowing slot makes the choice ambiguous
            if candidate >= 0:
                match = False
            candidate = index

    # TODO: red[] is never consulted; decide whether non-candidate slots must be red
    if match and candidate == min_saturation_index:
        return candidate
    return None


def pick_bluest(
    image: NDArray[np.uint8],
    regions: Sequence[Region],
    last_draft: Sequence[int],
    quality_lookup: Callable[[int], int],
) -> int | None:
    """Pick the glowing slot of a draft screen.

    Args:
        image: BGR frame at calibration resolution.
        regions: Draft slot regions.
        last_draft: Identifiers of the last recognized draft card pick.
        quality_lookup: Maps a card identifier to its quality.

    Returns:
        Slot index, or None if there is no prior draft pick, the image has
        no colour channels, or no decision could be made.
    """
    if not last_draft or image.ndim != 3:
        return None

    quality = quality_lookup(last_draft[0])
    return choose_slot(slot_colors(image, regions), quality)

"""64-bit DCT perceptual hash and Hamming-distance lookup."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence

import cv2
import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray

HASH_BITS = 64

# Distance reported when there is nothing to compare against
NO_DISTANCE = HASH_BITS + 1


@dataclass(frozen=True)
class HashComparison:
    """Closest reference hash found by :func:`best_match`.

    Attributes:
        index: Index into the compared hash sequence, -1 if it was empty.
        distance: Hamming distance to that hash.
    """

    index: int
    distance: int


def phash(image: NDArray[np.uint8]) -> int:
    """Compute the perceptual hash of an image.

    The image is blurred with a 7x7 mean filter, shrunk to 32x32 and
    transformed with a DCT. The 8x8 block of lowest frequencies (skipping
    the DC row and column) is thresholded at its median.

    Args:
        image: BGR or grayscale image.

    Returns:
        Hash as an unsigned 64-bit integer.
    """
    if image.ndim == 3:
        gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    else:
        gray = image

    blurred = cv2.blur(gray.astype(np.float32), (7, 7))
    small = cv2.resize(blurred, (32, 32), interpolation=cv2.INTER_AREA)
    dct = cv2.dct(small)
    low = dct[1:9, 1:9].flatten()
    median = np.median(low)

    value = 0
    for bit in low > median:
        value = (value << 1) | int(bit)
    return value


def hamming_distance(a: int, b: int) -> int:
    """Number of differing bits between two hashes."""
    return bin(a ^ b).count("1")


def best_match(value: int, hashes: Sequence[int]) -> HashComparison:
    """Find the hash closest to ``value``.

    The first hash with the minimum distance wins.
    """
    best_index = -1
    best_distance = NO_DISTANCE
    for index, candidate in enumerate(hashes):
        distance = hamming_distance(value, candidate)
        if distance < best_distance:
            best_index = index
            best_distance = distance
    return HashComparison(index=best_index, distance=best_distance)

"""Perceptual-hash nearest-neighbour matching over calibrated regions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Sequence

import numpy as np

from src.recognition.phash import best_match, phash
from src.recognition.types import (
    Dataset,
    DatasetEntry,
    RecognitionResult,
    RecognizerKind,
    Region,
)

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)


class HashMatcher:
    """Matches region crops against a dataset of reference hashes.

    A region matches the closest reference when the Hamming distance is
    strictly below the dataset threshold. A recognizer result is only valid
    when every one of its regions matched.
    """

    def match_regions(
        self,
        image: NDArray[np.uint8],
        regions: Sequence[Region],
        dataset: Dataset,
    ) -> list[DatasetEntry]:
        """Find the best dataset entry for each region.

        Args:
            image: Frame at calibration resolution.
            regions: Regions to crop, in order.
            dataset: Reference hashes to compare against.

        Returns:
            One entry per region, in region order. Regions without a close
            enough reference yield :meth:`DatasetEntry.no_match`.
        """
        matches: list[DatasetEntry] = []
        for region in regions:
            region_hash = phash(region.crop(image))
            best = best_match(region_hash, dataset.hashes)

            if best.index >= 0 and best.distance < dataset.threshold:
                matches.append(dataset.entries[best.index])
            else:
                logger.debug(
                    f"No match for {region}: best distance {best.distance} "
                    f">= threshold {dataset.threshold}"
                )
                matches.append(DatasetEntry.no_match())
        return matches

    def recognize(
        self,
        image: NDArray[np.uint8],
        kind: RecognizerKind,
        regions: Sequence[Region],
        dataset: Dataset,
    ) -> RecognitionResult:
        """Run one hash-based recognizer.

        Returns:
            Valid result holding one identifier per region if all regions
            matched, otherwise an invalid empty result.
        """
        matches = self.match_regions(image, regions, dataset)
        if not matches or not all(match.valid for match in matches):
            return RecognitionResult(valid=False)

        return RecognitionResult(
            valid=True,
            recognizer=kind,
            results=[match.identifier for match in matches],
        )

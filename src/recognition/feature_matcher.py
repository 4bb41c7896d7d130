"""Local-feature matching for binary-outcome screens.

Used for the coin toss and game end banners, where a small fixed set of
reference images is compared against each calibrated region using SIFT
descriptors, a k=2 nearest-neighbour search and a ratio test.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Sequence

import cv2
import numpy as np

from src.recognition.errors import ReferenceDataError
from src.recognition.types import (
    DescriptorReference,
    RecognitionResult,
    RecognizerKind,
    Region,
)

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)


def ratio_test(knn_matches: Iterable[Sequence[cv2.DMatch]], ratio: float = 0.6) -> list[cv2.DMatch]:
    """Keep correspondences clearly closer than their runner-up.

    Args:
        knn_matches: Output of ``knnMatch(..., k=2)``.
        ratio: Maximum best/second-best distance ratio (inclusive).

    Returns:
        Accepted best-neighbour matches.
    """
    good: list[cv2.DMatch] = []
    for pair in knn_matches:
        if len(pair) < 2:
            continue
        best, second = pair[0], pair[1]
        if best.distance <= ratio * second.distance:
            good.append(best)
    return good


class FeatureMatcher:
    """Picks the reference with the most distinctive correspondences.

    Attributes:
        ratio: Ratio test threshold.
        min_good_matches: Accepted correspondences needed for a candidate.
        detector: Descriptor type, ``"sift"`` or ``"orb"``.
    """

    def __init__(
        self,
        ratio: float = 0.6,
        min_good_matches: int = 7,
        detector: str = "sift",
        n_features: int = 0,
        contrast_threshold: float = 0.04,
        n_octave_layers: int = 3,
    ) -> None:
        """Initialize feature matcher.

        Args:
            ratio: Ratio test threshold.
            min_good_matches: Minimum accepted correspondences for a reference
                to count as a candidate.
            detector: ``"sift"`` (float descriptors, L2) or ``"orb"``
                (binary descriptors, Hamming).
            n_features: Maximum features to keep (0 keeps all for SIFT).
            contrast_threshold: SIFT contrast threshold.
            n_octave_layers: SIFT layers per octave.
        """
        self.ratio = ratio
        self.min_good_matches = min_good_matches
        self.detector = detector.lower()

        if self.detector == "sift":
            self._extractor = cv2.SIFT_create(
                nfeatures=n_features,
                nOctaveLayers=n_octave_layers,
                contrastThreshold=contrast_threshold,
            )
            self._matcher = cv2.BFMatcher(cv2.NORM_L2, crossCheck=False)
        elif self.detector == "orb":
            self._extractor = cv2.ORB_create(nfeatures=n_features or 500)
            self._matcher = cv2.BFMatcher(cv2.NORM_HAMMING, crossCheck=False)
        else:
            raise ValueError(f"Unknown feature detector: {detector}")

        logger.info(
            f"FeatureMatcher initialized: detector={self.detector}, "
            f"ratio={ratio}, min_good_matches={min_good_matches}"
        )

    def extract_descriptors(self, gray: NDArray[np.uint8]) -> NDArray | None:
        """Extract descriptors from a grayscale image.

        Returns:
            Descriptor matrix, or None if no keypoints were found.
        """
        _, descriptors = self._extractor.detectAndCompute(gray, None)
        if descriptors is None or len(descriptors) == 0:
            return None
        return descriptors

    def count_good_matches(self, query: NDArray, reference: NDArray) -> int:
        """Count correspondences from ``query`` to ``reference`` passing the ratio test."""
        if reference is None or len(reference) == 0:
            return 0
        try:
            raw_matches = self._matcher.knnMatch(query, reference, k=2)
        except cv2.error as e:
            logger.warning(f"Matching failed: {e}")
            return 0
        return len(ratio_test(raw_matches, self.ratio))

    def best_reference(
        self,
        descriptors: NDArray,
        references: Sequence[DescriptorReference],
    ) -> int | None:
        """Pick the outcome of the best-supported reference.

        A reference is a candidate with at least ``min_good_matches`` accepted
        correspondences. The candidate with the most wins; the first one in
        reference order wins ties.

        Returns:
            Outcome identifier, or None if no reference qualified.
        """
        best_outcome: int | None = None
        best_count = 0
        for reference in references:
            count = self.count_good_matches(descriptors, reference.descriptors)
            if count >= self.min_good_matches and count > best_count:
                best_outcome = reference.outcome
                best_count = count

        if best_outcome is not None:
            logger.debug(f"Best reference outcome {best_outcome} with {best_count} matches")
        return best_outcome

    def match_regions(
        self,
        image: NDArray[np.uint8],
        kind: RecognizerKind,
        regions: Sequence[Region],
        references: Sequence[DescriptorReference],
    ) -> RecognitionResult:
        """Run one feature-based recognizer.

        Regions without descriptors or without a qualifying reference are
        skipped.

        Returns:
            Result holding the winning outcome of every region that had one;
            valid if at least one region did.
        """
        result = RecognitionResult(valid=False)

        for region in regions:
            crop = region.crop(image)
            if crop.ndim == 3:
                gray = cv2.cvtColor(crop, cv2.COLOR_BGR2GRAY)
            else:
                gray = crop.copy()

            descriptors = self.extract_descriptors(gray)
            if descriptors is None:
                continue

            outcome = self.best_reference(descriptors, references)
            if outcome is not None:
                result.results.append(outcome)
                result.valid = True
                result.recognizer = kind

        return result

    def load_reference(self, path: str | Path, outcome: int) -> DescriptorReference:
        """Load a reference image and extract its descriptors.

        Raises:
            ReferenceDataError: If the image cannot be read.
        """
        image = cv2.imread(str(path), cv2.IMREAD_GRAYSCALE)
        if image is None:
            raise ReferenceDataError(f"Failed to load reference image: {path}")

        descriptors = self.extract_descriptors(image)
        if descriptors is None:
            logger.warning(f"Reference image {path} has no features, it will never match")
            descriptors = np.empty((0, 0), dtype=np.float32)

        logger.debug(f"Loaded reference '{Path(path).name}': {len(descriptors)} descriptors")
        return DescriptorReference(descriptors=descriptors, outcome=outcome)

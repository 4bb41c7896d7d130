"""Recognition engine dispatching recognizers over calibrated regions.

The engine owns one recognizer per :class:`RecognizerKind`. Hash-based
recognizers identify cards and hero classes; feature-based recognizers read
the coin toss and the game end banner. Callers select which recognizers run
per frame.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Sequence

import cv2
import numpy as np

from src.recognition.color_heuristic import pick_bluest
from src.recognition.feature_matcher import FeatureMatcher
from src.recognition.hash_matcher import HashMatcher
from src.recognition.types import (
    Dataset,
    DescriptorReference,
    DraftContext,
    Outcome,
    RecognitionResult,
    RecognizerKind,
    Region,
)

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from src.data.calibration import Calibration
    from src.data.database import ReferenceDatabase
    from src.utils.config import Config

logger = logging.getLogger(__name__)

# Reference images read from the misc image directory, in matching order
END_REFERENCE_IMAGES = (
    ("game_end_victory.png", Outcome.GAME_END_VICTORY),
    ("game_end_defeat.png", Outcome.GAME_END_DEFEAT),
)
COIN_REFERENCE_IMAGES = (
    ("game_coin_first.png", Outcome.GAME_COIN_FIRST),
    ("game_coin_second.png", Outcome.GAME_COIN_SECOND),
)


class Recognizer(ABC):
    """A recognizer bound to its regions and reference data."""

    def __init__(self, kind: RecognizerKind, regions: Sequence[Region]) -> None:
        self.kind = kind
        self.regions = tuple(regions)

    @abstractmethod
    def attempt(self, image: NDArray[np.uint8]) -> RecognitionResult | None:
        """Run on a normalized frame. Returns None when nothing was recognized."""


class HashRecognizer(Recognizer):
    """Identifies every region by perceptual hash; all regions must match."""

    def __init__(
        self,
        kind: RecognizerKind,
        regions: Sequence[Region],
        dataset: Dataset,
        matcher: HashMatcher,
    ) -> None:
        super().__init__(kind, regions)
        self.dataset = dataset
        self.matcher = matcher

    def attempt(self, image: NDArray[np.uint8]) -> RecognitionResult | None:
        result = self.matcher.recognize(image, self.kind, self.regions, self.dataset)
        return result if result.valid else None


class FeatureRecognizer(Recognizer):
    """Matches regions against reference descriptors; one hit is enough."""

    def __init__(
        self,
        kind: RecognizerKind,
        regions: Sequence[Region],
        references: Sequence[DescriptorReference],
        matcher: FeatureMatcher,
    ) -> None:
        super().__init__(kind, regions)
        self.references = tuple(references)
        self.matcher = matcher

    def attempt(self, image: NDArray[np.uint8]) -> RecognitionResult | None:
        result = self.matcher.match_regions(image, self.kind, self.regions, self.references)
        return result if result.valid else None


class RecognitionEngine:
    """Runs the selected recognizers over a captured frame.

    Recognizers run in registration order: class pick, card pick, class
    show, draw, draw init 1 and 2 (hash based), then coin and game end
    (feature based). The last valid draft card pick is kept in
    :attr:`context` for :meth:`index_of_bluest`.

    The engine is not safe for concurrent ``recognize`` calls from several
    sessions; use one engine per session or lock externally.

    Attributes:
        calibration: Frame resolution and regions per recognizer.
        recognizers: Registered recognizers in dispatch order.
        context: Last valid draft card pick.
    """

    HASH_KINDS = (
        (RecognizerKind.DRAFT_CLASS_PICK, "classes"),
        (RecognizerKind.DRAFT_CARD_PICK, "cards"),
        (RecognizerKind.GAME_CLASS_SHOW, "classes"),
        (RecognizerKind.GAME_DRAW, "cards"),
        (RecognizerKind.GAME_DRAW_INIT_1, "cards"),
        (RecognizerKind.GAME_DRAW_INIT_2, "cards"),
    )

    def __init__(
        self,
        calibration: Calibration,
        card_set: Dataset,
        class_set: Dataset,
        coin_references: Sequence[DescriptorReference],
        end_references: Sequence[DescriptorReference],
        database: ReferenceDatabase | None = None,
        hash_matcher: HashMatcher | None = None,
        feature_matcher: FeatureMatcher | None = None,
    ) -> None:
        """Initialize the engine and register its recognizers.

        Args:
            calibration: Frame resolution and regions per recognizer.
            card_set: Card reference hashes.
            class_set: Hero class reference hashes.
            coin_references: Coin toss reference descriptors.
            end_references: Game end reference descriptors.
            database: Reference database used to look up card quality.
            hash_matcher: Hash matcher, created if omitted.
            feature_matcher: Feature matcher, created if omitted.
        """
        self.calibration = calibration
        self.database = database
        self.hash_matcher = hash_matcher or HashMatcher()
        self.feature_matcher = feature_matcher or FeatureMatcher()
        self.context = DraftContext()

        datasets = {"cards": card_set, "classes": class_set}
        self.recognizers: list[Recognizer] = [
            HashRecognizer(kind, calibration.regions_for(kind), datasets[name], self.hash_matcher)
            for kind, name in self.HASH_KINDS
        ]
        self.recognizers.append(FeatureRecognizer(
            RecognizerKind.GAME_COIN,
            calibration.regions_for(RecognizerKind.GAME_COIN),
            coin_references,
            self.feature_matcher,
        ))
        self.recognizers.append(FeatureRecognizer(
            RecognizerKind.GAME_END,
            calibration.regions_for(RecognizerKind.GAME_END),
            end_references,
            self.feature_matcher,
        ))

        logger.info(
            f"RecognitionEngine initialized: resolution={calibration.width}x{calibration.height}, "
            f"cards={len(card_set)}, classes={len(class_set)}"
        )

    @classmethod
    def from_config(cls, database: ReferenceDatabase, config: Config) -> RecognitionEngine:
        """Build an engine from configuration and a reference database.

        Loads the configured calibration (falling back to the default one),
        fills in missing reference hashes, builds the hash datasets and
        extracts descriptors from the coin and game end reference images.

        Raises:
            CalibrationError: If neither the configured nor the default
                calibration can be loaded.
            ReferenceDataError: If reference images are missing.
        """
        from src.data.calibration import load_calibration
        from src.data.database import precompute_hashes

        paths = config.paths
        settings = config.recognition

        calibration = load_calibration(paths.calibrations_path, settings.calibration_id)

        if database.has_missing_data():
            logger.info("pHashes missing from database, filling...")
            precompute_hashes(database, paths.card_image_path, paths.hero_image_path)

        threshold = settings.phash_threshold
        card_set = Dataset.from_pairs(database.card_pairs(), threshold)
        class_set = Dataset.from_pairs(database.hero_pairs(), threshold)

        feature_matcher = FeatureMatcher(
            ratio=settings.ratio,
            min_good_matches=settings.min_good_matches,
            detector=settings.detector,
            n_features=settings.n_features,
            contrast_threshold=settings.contrast_threshold,
            n_octave_layers=settings.n_octave_layers,
        )
        misc_dir = Path(paths.misc_image_path)
        end_references = [
            feature_matcher.load_reference(misc_dir / name, outcome)
            for name, outcome in END_REFERENCE_IMAGES
        ]
        coin_references = [
            feature_matcher.load_reference(misc_dir / name, outcome)
            for name, outcome in COIN_REFERENCE_IMAGES
        ]

        return cls(
            calibration,
            card_set,
            class_set,
            coin_references,
            end_references,
            database=database,
            feature_matcher=feature_matcher,
        )

    def normalize(self, frame: NDArray[np.uint8]) -> NDArray[np.uint8]:
        """Resize ``frame`` to the calibration resolution if it differs."""
        height, width = frame.shape[:2]
        if width != self.calibration.width or height != self.calibration.height:
            return cv2.resize(frame, (self.calibration.width, self.calibration.height))
        return frame

    def recognize(
        self,
        frame: NDArray[np.uint8],
        selection: int | Iterable[RecognizerKind] = RecognizerKind.all(),
    ) -> list[RecognitionResult]:
        """Run the selected recognizers over a frame.

        Args:
            frame: BGR or grayscale frame at any resolution.
            selection: Bitmask of :class:`RecognizerKind` or an iterable of
                kinds.

        Returns:
            Valid results only, in recognizer registration order.
        """
        selected = RecognizerKind.selection(selection)
        image = self.normalize(frame)

        results: list[RecognitionResult] = []
        for recognizer in self.recognizers:
            if recognizer.kind not in selected:
                continue
            result = recognizer.attempt(image)
            if result is not None:
                logger.debug(f"{recognizer.kind.name}: {result.results}")
                results.append(result)

        if RecognizerKind.DRAFT_CARD_PICK in selected:
            for result in results:
                if result.recognizer == RecognizerKind.DRAFT_CARD_PICK:
                    self.context.update(result)
                    break

        return results

    def card_quality(self, card_id: int) -> int:
        if self.database is None:
            raise RuntimeError("No reference database attached to look up card quality")
        return self.database.card_quality(card_id)

    def index_of_bluest(
        self,
        image: NDArray[np.uint8],
        regions: Sequence[Region] | None = None,
    ) -> int | None:
        """Pick the glowing draft slot using the retained draft pick.

        Args:
            image: BGR frame. Resized to the calibration resolution when the
                default regions are used.
            regions: Slot regions, defaults to the draft card pick regions.

        Returns:
            Slot index, or None if no decision could be made.
        """
        if regions is None:
            regions = self.calibration.regions_for(RecognizerKind.DRAFT_CARD_PICK)
            image = self.normalize(image)
        return pick_bluest(image, regions, self.context.last_draft, self.card_quality)


def create_engine(config_path: str | None = None) -> RecognitionEngine:
    """Load configuration, set up logging and build an engine.

    Args:
        config_path: Configuration file, see :func:`src.utils.config.load_config`.
    """
    from src.data.database import ReferenceDatabase
    from src.utils.config import load_config
    from src.utils.logger import setup_logging

    config = load_config(config_path)
    setup_logging(config.logging.level, config.logging.file)

    database = ReferenceDatabase.load(config.paths.database_path)
    return RecognitionEngine.from_config(database, config)

"""Recognition of calibrated screen regions."""

from .types import (
    CardQuality,
    Dataset,
    DatasetEntry,
    DescriptorReference,
    DraftContext,
    Outcome,
    RecognitionResult,
    RecognizerKind,
    Region,
)
from .errors import CalibrationError, ReferenceDataError
from .phash import HashComparison, best_match, hamming_distance, phash
from .hash_matcher import HashMatcher
from .feature_matcher import FeatureMatcher, ratio_test
from .color_heuristic import SlotColor, choose_slot, pick_bluest, slot_colors
from .engine import (
    FeatureRecognizer,
    HashRecognizer,
    RecognitionEngine,
    Recognizer,
    create_engine,
)

__all__ = [
    # Data types
    "CardQuality",
    "Dataset",
    "DatasetEntry",
    "DescriptorReference",
    "DraftContext",
    "Outcome",
    "RecognitionResult",
    "RecognizerKind",
    "Region",
    # Errors
    "CalibrationError",
    "ReferenceDataError",
    # Perceptual hash
    "HashComparison",
    "best_match",
    "hamming_distance",
    "phash",
    # Matchers
    "HashMatcher",
    "FeatureMatcher",
    "ratio_test",
    # Colour heuristic
    "SlotColor",
    "choose_slot",
    "pick_bluest",
    "slot_colors",
    # Engine
    "FeatureRecognizer",
    "HashRecognizer",
    "RecognitionEngine",
    "Recognizer",
    "create_engine",
]

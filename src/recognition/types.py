"""Shared data types for the recognition engine.

Regions, recognizer kinds, reference datasets and recognition results are
defined here so the matchers, the engine and the data loaders agree on a
single vocabulary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum, IntFlag
from typing import TYPE_CHECKING, Iterable, Sequence

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray


@dataclass(frozen=True)
class Region:
    """Axis-aligned rectangle in calibrated-frame coordinates.

    Attributes:
        x: Left edge.
        y: Top edge.
        width: Region width in pixels.
        height: Region height in pixels.
    """

    x: int
    y: int
    width: int
    height: int

    def crop(self, image: NDArray[np.uint8]) -> NDArray[np.uint8]:
        """Return the view of ``image`` covered by this region."""
        return image[self.y:self.y + self.height, self.x:self.x + self.width]


class RecognizerKind(IntFlag):
    """Recognizers the engine can run. Each kind occupies its own bit."""

    DRAFT_CLASS_PICK = 1
    DRAFT_CARD_PICK = 2
    GAME_CLASS_SHOW = 4
    GAME_DRAW = 8
    GAME_DRAW_INIT_1 = 16
    GAME_DRAW_INIT_2 = 32
    GAME_COIN = 64
    GAME_END = 128

    @classmethod
    def all(cls) -> RecognizerKind:
        """Mask selecting every recognizer."""
        mask = cls(0)
        for kind in cls.members():
            mask |= kind
        return mask

    @classmethod
    def members(cls) -> list[RecognizerKind]:
        """Single-bit kinds in declaration order."""
        return [cls[name] for name in cls.__members__]

    @classmethod
    def selection(cls, selected: int | Iterable[RecognizerKind]) -> set[RecognizerKind]:
        """Normalize a bitmask or an iterable of kinds to a set of kinds."""
        if isinstance(selected, int):
            return {kind for kind in cls.members() if selected & kind}
        return {cls(kind) for kind in selected}


class Outcome(IntEnum):
    """Identifiers produced by the feature-based recognizers."""

    GAME_END_VICTORY = 0
    GAME_END_DEFEAT = 1
    GAME_COIN_FIRST = 2
    GAME_COIN_SECOND = 3


class CardQuality(IntEnum):
    """Card rarity tiers as stored in the reference database."""

    FREE = 0
    COMMON = 1
    RARE = 3
    EPIC = 4
    LEGENDARY = 5


@dataclass(frozen=True)
class DatasetEntry:
    """One reference in a dataset, or the no-match sentinel.

    Callers must check ``valid`` before using ``identifier``.
    """

    identifier: int
    valid: bool = True

    @classmethod
    def no_match(cls) -> DatasetEntry:
        return cls(identifier=-1, valid=False)


@dataclass(frozen=True)
class Dataset:
    """Reference entries with their perceptual hashes.

    ``entries[i]`` corresponds to ``hashes[i]``. Built once and shared
    read-only across recognitions.

    Attributes:
        entries: Reference entries in scan order.
        hashes: 64-bit perceptual hash for each entry.
        threshold: A match requires a distance strictly below this value.
    """

    entries: tuple[DatasetEntry, ...]
    hashes: tuple[int, ...]
    threshold: int

    def __post_init__(self) -> None:
        if len(self.entries) != len(self.hashes):
            raise ValueError(
                f"Dataset entries and hashes differ in length: "
                f"{len(self.entries)} != {len(self.hashes)}"
            )

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[int, int]], threshold: int) -> Dataset:
        """Build a dataset from ``(identifier, phash)`` pairs."""
        entries: list[DatasetEntry] = []
        hashes: list[int] = []
        for identifier, phash in pairs:
            entries.append(DatasetEntry(identifier))
            hashes.append(int(phash))
        return cls(entries=tuple(entries), hashes=tuple(hashes), threshold=threshold)

    def __len__(self) -> int:
        return len(self.entries)


@dataclass
class DescriptorReference:
    """Feature descriptors of a reference image and the outcome it stands for."""

    descriptors: NDArray[np.float32]
    outcome: int


@dataclass
class RecognitionResult:
    """Outcome of running one recognizer over its regions.

    Attributes:
        valid: Whether the result can be trusted.
        recognizer: Recognizer that produced the result.
        results: Matched identifiers, in region order.
    """

    valid: bool = False
    recognizer: RecognizerKind | None = None
    results: list[int] = field(default_factory=list)


@dataclass
class DraftContext:
    """Identifiers of the most recent valid draft card pick.

    Written by the engine, read by the colour heuristic. May be stale if the
    card-pick recognizer has not run since the screen changed.
    """

    last_draft: list[int] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.last_draft

    def update(self, result: RecognitionResult) -> None:
        """Retain ``result`` if it is a valid draft card pick."""
        if result.valid and result.recognizer == RecognizerKind.DRAFT_CARD_PICK:
            self.last_draft = list(result.results)

    def clear(self) -> None:
        self.last_draft = []


def regions_from_lists(values: Sequence[Sequence[int]]) -> list[Region]:
    """Convert ``[[x, y, w, h], ...]`` to a list of regions."""
    return [Region(*(int(v) for v in value)) for value in values]

"""Reference database of known cards and heroes.

Stored as YAML::

    cards:
      - {id: 0, name: Fireball, quality: 1, phash: 1234567890}
    heroes:
      - {id: 0, name: Mage, phash: 987654321}

``phash`` may be missing or null until :func:`precompute_hashes` fills it in
from the reference images.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import cv2
import yaml

from src.recognition.errors import ReferenceDataError
from src.recognition.phash import phash
from src.recognition.types import CardQuality

logger = logging.getLogger(__name__)


@dataclass
class CardRecord:
    """A known card."""

    id: int
    name: str = ""
    quality: int = CardQuality.COMMON
    phash: int | None = None


@dataclass
class HeroRecord:
    """A known hero class."""

    id: int
    name: str = ""
    phash: int | None = None


@dataclass
class ReferenceDatabase:
    """Cards and heroes with their reference hashes.

    Attributes:
        cards: Known cards in dataset order.
        heroes: Known heroes in dataset order.
        path: File the database is saved to.
    """

    cards: list[CardRecord] = field(default_factory=list)
    heroes: list[HeroRecord] = field(default_factory=list)
    path: Path | None = None

    @classmethod
    def load(cls, path: str | Path) -> ReferenceDatabase:
        """Load the database from a YAML file.

        Raises:
            FileNotFoundError: If the file does not exist.
            ReferenceDataError: If the file is malformed.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Reference database not found: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ReferenceDataError(f"Malformed reference database {path}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ReferenceDataError("Reference database must be a mapping")

        try:
            cards = [
                CardRecord(
                    id=int(item["id"]),
                    name=str(item.get("name", "")),
                    quality=int(item.get("quality", CardQuality.COMMON)),
                    phash=_parse_hash(item.get("phash")),
                )
                for item in data.get("cards") or []
            ]
            heroes = [
                HeroRecord(
                    id=int(item["id"]),
                    name=str(item.get("name", "")),
                    phash=_parse_hash(item.get("phash")),
                )
                for item in data.get("heroes") or []
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise ReferenceDataError(f"Invalid record in {path}: {e}") from e

        logger.info(f"Loaded reference database {path}: {len(cards)} cards, {len(heroes)} heroes")
        return cls(cards=cards, heroes=heroes, path=path)

    def save(self, path: str | Path | None = None) -> None:
        """Write the database back to YAML."""
        target = Path(path) if path is not None else self.path
        if target is None:
            raise ValueError("No path to save the reference database to")

        data = {
            "cards": [
                {"id": c.id, "name": c.name, "quality": int(c.quality), "phash": c.phash}
                for c in self.cards
            ],
            "heroes": [
                {"id": h.id, "name": h.name, "phash": h.phash}
                for h in self.heroes
            ],
        }
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)
        logger.debug(f"Saved reference database to {target}")

    def has_missing_data(self) -> bool:
        """Whether any card or hero lacks a reference hash."""
        return any(c.phash is None for c in self.cards) or any(h.phash is None for h in self.heroes)

    def card_quality(self, card_id: int) -> int:
        """Quality of a card by identifier.

        Raises:
            KeyError: If the card is unknown.
        """
        for card in self.cards:
            if card.id == card_id:
                return card.quality
        raise KeyError(f"Unknown card: {card_id}")

    def card_pairs(self) -> list[tuple[int, int]]:
        """``(id, phash)`` for every hashed card."""
        return [(c.id, c.phash) for c in self.cards if c.phash is not None]

    def hero_pairs(self) -> list[tuple[int, int]]:
        """``(id, phash)`` for every hashed hero."""
        return [(h.id, h.phash) for h in self.heroes if h.phash is not None]


def _parse_hash(value) -> int | None:
    if value is None:
        return None
    if isinstance(value, str):
        return int(value, 0)
    return int(value)


def _hash_image(directory: Path, record_id: int) -> int:
    image_path = directory / f"{record_id:03d}.png"
    image = cv2.imread(str(image_path), cv2.IMREAD_GRAYSCALE)
    if image is None:
        raise ReferenceDataError(f"Failed to load reference image: {image_path}")
    return phash(image)


def precompute_hashes(
    database: ReferenceDatabase,
    card_image_path: str | Path,
    hero_image_path: str | Path,
) -> None:
    """Compute reference hashes from ``<id:03d>.png`` images and save.

    Args:
        database: Database to fill in place.
        card_image_path: Directory with card images.
        hero_image_path: Directory with hero images.

    Raises:
        ReferenceDataError: If a reference image cannot be read.
    """
    card_dir = Path(card_image_path)
    hero_dir = Path(hero_image_path)

    for card in database.cards:
        card.phash = _hash_image(card_dir, card.id)
    for hero in database.heroes:
        hero.phash = _hash_image(hero_dir, hero.id)

    logger.info(f"Computed {len(database.cards)} card and {len(database.heroes)} hero hashes")
    if database.path is not None:
        database.save()

"""Tests for calibration files and the reference database."""

import cv2
import numpy as np
import pytest
import yaml

from src.data import (
    Calibration,
    CardRecord,
    HeroRecord,
    ReferenceDatabase,
    load_calibration,
    precompute_hashes,
)
from src.recognition import CalibrationError, CardQuality, RecognizerKind, Region, ReferenceDataError, phash


def write_yaml(path, data):
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f)


CALIBRATION = {
    "resolution": {"width": 1280, "height": 720},
    "regions": {
        "draft_card_pick": [[100, 200, 150, 150], [400, 200, 150, 150], [700, 200, 150, 150]],
        "game_coin": [[540, 300, 200, 100]],
    },
}


class TestCalibration:
    """Tests for calibration parsing."""

    def test_from_file(self, tmp_path):
        """Test regions are parsed per recognizer."""
        path = tmp_path / "laptop.yaml"
        write_yaml(path, CALIBRATION)

        calibration = Calibration.from_file(path)

        assert (calibration.width, calibration.height) == (1280, 720)
        assert calibration.regions_for(RecognizerKind.DRAFT_CARD_PICK)[1] == Region(400, 200, 150, 150)
        assert calibration.regions_for(RecognizerKind.GAME_COIN) == (Region(540, 300, 200, 100),)
        assert calibration.source == path

    def test_unlisted_recognizer_has_no_regions(self, tmp_path):
        """Test missing kinds default to no regions."""
        calibration = Calibration.from_dict(CALIBRATION)
        assert calibration.regions_for(RecognizerKind.GAME_END) == ()

    def test_missing_resolution(self):
        """Test resolution is required."""
        with pytest.raises(CalibrationError):
            Calibration.from_dict({"regions": {}})

    def test_unknown_recognizer(self):
        """Test unknown region keys are rejected."""
        with pytest.raises(CalibrationError):
            Calibration.from_dict({"resolution": {"width": 10, "height": 10}, "regions": {"shop": []}})

    def test_region_outside_frame(self):
        """Test regions must lie within the resolution."""
        data = {"resolution": {"width": 100, "height": 100}, "regions": {"game_end": [[50, 50, 60, 10]]}}
        with pytest.raises(CalibrationError):
            Calibration.from_dict(data)

    def test_malformed_region(self):
        """Test regions need four numbers."""
        data = {"resolution": {"width": 100, "height": 100}, "regions": {"game_end": [[1, 2, 3]]}}
        with pytest.raises(CalibrationError):
            Calibration.from_dict(data)

    def test_missing_file(self, tmp_path):
        """Test missing file raises CalibrationError."""
        with pytest.raises(CalibrationError):
            Calibration.from_file(tmp_path / "nope.yaml")


class TestLoadCalibration:
    """Tests for default fallback."""

    def test_requested_calibration(self, tmp_path):
        """Test requested ID is loaded when valid."""
        write_yaml(tmp_path / "laptop.yaml", CALIBRATION)
        write_yaml(tmp_path / "default.yaml", {"resolution": {"width": 800, "height": 600}})

        assert load_calibration(tmp_path, "laptop").width == 1280

    def test_falls_back_to_default(self, tmp_path, caplog):
        """Test broken calibration falls back to default with an error log."""
        (tmp_path / "broken.yaml").write_text("resolution: [oops", encoding="utf-8")
        write_yaml(tmp_path / "default.yaml", {"resolution": {"width": 800, "height": 600}})

        with caplog.at_level("ERROR"):
            calibration = load_calibration(tmp_path, "broken")

        assert calibration.width == 800
        assert "broken" in caplog.text

    def test_default_failure_propagates(self, tmp_path):
        """Test missing default calibration is an error."""
        with pytest.raises(CalibrationError):
            load_calibration(tmp_path, "laptop")


class TestReferenceDatabase:
    """Tests for the reference database file."""

    def test_load_and_save(self, tmp_path):
        """Test database round-trips through YAML."""
        path = tmp_path / "db.yaml"
        write_yaml(path, {
            "cards": [{"id": 0, "name": "Fireball", "quality": 1, "phash": 12345}],
            "heroes": [{"id": 3, "name": "Mage", "phash": "0xff"}],
        })

        database = ReferenceDatabase.load(path)
        assert database.cards[0].name == "Fireball"
        assert database.heroes[0].phash == 255
        assert database.card_pairs() == [(0, 12345)]
        assert not database.has_missing_data()

        database.cards[0].phash = 999
        database.save()
        assert ReferenceDatabase.load(path).cards[0].phash == 999

    def test_missing_hash_detected(self):
        """Test records without hashes are reported and excluded."""
        database = ReferenceDatabase(
            cards=[CardRecord(id=1, phash=5), CardRecord(id=2)],
            heroes=[HeroRecord(id=0, phash=7)],
        )
        assert database.has_missing_data()
        assert database.card_pairs() == [(1, 5)]
        assert database.hero_pairs() == [(0, 7)]

    def test_card_quality(self):
        """Test quality lookup by identifier."""
        database = ReferenceDatabase(cards=[
            CardRecord(id=4, quality=CardQuality.EPIC),
            CardRecord(id=9, quality=CardQuality.LEGENDARY),
        ])
        assert database.card_quality(9) == CardQuality.LEGENDARY
        with pytest.raises(KeyError):
            database.card_quality(1)

    def test_invalid_record(self, tmp_path):
        """Test records without an id are rejected."""
        path = tmp_path / "db.yaml"
        write_yaml(path, {"cards": [{"name": "Nameless"}]})
        with pytest.raises(ReferenceDataError):
            ReferenceDatabase.load(path)

    def test_missing_file(self, tmp_path):
        """Test missing database file."""
        with pytest.raises(FileNotFoundError):
            ReferenceDatabase.load(tmp_path / "db.yaml")


class TestPrecomputeHashes:
    """Tests for the one-time hash precomputation."""

    def test_fills_and_saves(self, tmp_path):
        """Test hashes come from <id:03d>.png images and are persisted."""
        rng = np.random.default_rng(1)
        card_image = rng.integers(0, 256, size=(80, 60), dtype=np.uint8)
        hero_image = rng.integers(0, 256, size=(80, 60), dtype=np.uint8)
        (tmp_path / "cards").mkdir()
        (tmp_path / "heroes").mkdir()
        cv2.imwrite(str(tmp_path / "cards" / "007.png"), card_image)
        cv2.imwrite(str(tmp_path / "heroes" / "002.png"), hero_image)

        database = ReferenceDatabase(
            cards=[CardRecord(id=7)],
            heroes=[HeroRecord(id=2)],
            path=tmp_path / "db.yaml",
        )
        precompute_hashes(database, tmp_path / "cards", tmp_path / "heroes")

        assert database.cards[0].phash == phash(card_image)
        assert database.heroes[0].phash == phash(hero_image)
        assert ReferenceDatabase.load(tmp_path / "db.yaml").card_pairs() == [(7, phash(card_image))]

    def test_missing_image(self, tmp_path):
        """Test missing reference image is an error."""
        database = ReferenceDatabase(cards=[CardRecord(id=7)])
        with pytest.raises(ReferenceDataError):
            precompute_hashes(database, tmp_path, tmp_path)

"""Tests for the draft slot glow-colour heuristic."""

import cv2
import numpy as np
import pytest

from src.recognition import CardQuality, Region, SlotColor, choose_slot, pick_bluest, slot_colors

SLOTS = [Region(0, 0, 30, 30), Region(30, 0, 30, 30), Region(60, 0, 30, 30)]


def hsv_frame(colors):
    """BGR frame made of solid slots with the given HSV colours."""
    hsv = np.zeros((30, 90, 3), dtype=np.uint8)
    for region, (h, s, v) in zip(SLOTS, colors):
        hsv[region.y:region.y + region.height, region.x:region.x + region.width] = (h, s, v)
    return cv2.cvtColor(hsv, cv2.COLOR_HSV2BGR)


def slots(*values):
    return [SlotColor(hue=h, saturation=s, value=v) for h, s, v in values]


class TestSlotColor:
    """Tests for per-slot classification."""

    def test_epic_band(self):
        """Test epic quality uses the purple band."""
        assert SlotColor(110, 0, 0).is_candidate(CardQuality.EPIC)
        assert SlotColor(150, 0, 0).is_candidate(CardQuality.EPIC)
        assert not SlotColor(100, 0, 0).is_candidate(CardQuality.EPIC)
        assert not SlotColor(151, 0, 0).is_candidate(CardQuality.EPIC)

    def test_other_bands(self):
        """Test non-epic qualities use the blue and green bands."""
        for hue in (50, 65, 80, 90, 100, 110):
            assert SlotColor(hue, 0, 0).is_candidate(CardQuality.RARE)
        for hue in (49, 85, 111, 130):
            assert not SlotColor(hue, 0, 0).is_candidate(CardQuality.LEGENDARY)

    def test_red_flag(self):
        """Test hue below 30 is flagged red."""
        assert SlotColor(29.9, 0, 0).is_red
        assert not SlotColor(30, 0, 0).is_red


class TestChooseSlot:
    """Tests for the decision rule."""

    def test_dark_frame_abstains(self):
        """Test average value below the gate always abstains."""
        colors = slots((100, 10, 219), (10, 200, 219), (10, 200, 219))
        assert choose_slot(colors, CardQuality.RARE) is None

    def test_legendary_gate_is_lower(self):
        """Test legendary picks only need an average value of 200."""
        colors = slots((100, 10, 205), (10, 200, 205), (10, 200, 205))
        assert choose_slot(colors, CardQuality.LEGENDARY) == 0
        assert choose_slot(colors, CardQuality.RARE) is None

    def test_gate_is_inclusive(self):
        """Test average value exactly at the gate passes."""
        colors = slots((10, 200, 220), (100, 10, 220), (10, 200, 220))
        assert choose_slot(colors, CardQuality.COMMON) == 1

    def test_single_candidate_with_min_saturation(self):
        """Test the unique glowing, least saturated slot is chosen."""
        colors = slots((10, 200, 250), (15, 180, 250), (95, 40, 250))
        assert choose_slot(colors, CardQuality.RARE) == 2

    def test_single_candidate_not_least_saturated(self):
        """Test candidate must also hold the minimum saturation."""
        colors = slots((10, 20, 250), (95, 40, 250), (15, 180, 250))
        assert choose_slot(colors, CardQuality.RARE) is None

    def test_two_candidates_abstain(self):
        """Test two glowing slots are ambiguous."""
        colors = slots((95, 40, 250), (60, 30, 250), (15, 180, 250))
        assert choose_slot(colors, CardQuality.RARE) is None

    def test_no_candidate_abstains(self):
        """Test no glowing slot means no decision."""
        colors = slots((10, 20, 250), (15, 40, 250), (20, 180, 250))
        assert choose_slot(colors, CardQuality.RARE) is None

    def test_saturation_tie_first_wins(self):
        """Test minimum saturation tracking keeps the earliest slot."""
        colors = slots((10, 40, 250), (95, 40, 250), (15, 180, 250))
        assert choose_slot(colors, CardQuality.RARE) is None

    def test_epic_quality_uses_purple(self):
        """Test blue slot is not a candidate for epic picks."""
        colors = slots((95, 40, 250), (130, 30, 250), (15, 180, 250))
        assert choose_slot(colors, CardQuality.EPIC) == 1

    def test_no_slots(self):
        """Test empty slot list."""
        assert choose_slot([], CardQuality.RARE) is None


class TestPickBluest:
    """Tests for the full heuristic on images."""

    def test_no_prior_draft(self):
        """Test heuristic abstains without a retained draft pick."""
        frame = hsv_frame([(100, 40, 250), (10, 200, 250), (10, 200, 250)])
        lookup = pytest.fail  # must not be consulted
        assert pick_bluest(frame, SLOTS, [], lookup) is None

    def test_picks_blue_slot(self):
        """Test the blue, least saturated slot is returned."""
        frame = hsv_frame([(10, 200, 250), (100, 40, 250), (10, 200, 250)])
        assert pick_bluest(frame, SLOTS, [7, 8, 9], lambda card_id: CardQuality.RARE) == 1

    def test_quality_looked_up_from_first_card(self):
        """Test quality comes from the first retained identifier."""
        frame = hsv_frame([(10, 200, 250), (130, 40, 250), (10, 200, 250)])
        seen = []

        def lookup(card_id):
            seen.append(card_id)
            return CardQuality.EPIC

        assert pick_bluest(frame, SLOTS, [7, 8, 9], lookup) == 1
        assert seen == [7]

    def test_grayscale_frame_abstains(self):
        """Test frames without colour channels give no decision."""
        frame = cv2.cvtColor(hsv_frame([(10, 200, 250), (100, 40, 250), (10, 200, 250)]), cv2.COLOR_BGR2GRAY)
        assert pick_bluest(frame, SLOTS, [7, 8, 9], lambda card_id: CardQuality.RARE) is None

    def test_dark_frame(self):
        """Test dark frames abstain regardless of hue."""
        frame = hsv_frame([(10, 200, 120), (100, 40, 120), (10, 200, 120)])
        assert pick_bluest(frame, SLOTS, [7], lambda card_id: CardQuality.LEGENDARY) is None

    def test_slot_colors(self):
        """Test per-slot HSV means."""
        frame = hsv_frame([(10, 200, 250), (100, 40, 250), (60, 120, 200)])
        colors = slot_colors(frame, SLOTS)

        assert len(colors) == 3
        assert colors[1].hue == pytest.approx(100, abs=2)
        assert colors[2].value == pytest.approx(200, abs=2)
        assert colors[0].saturation > colors[1].saturation

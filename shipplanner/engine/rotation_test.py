"""Tests for quarter-turn rotation of positions and sizes."""

import pytest

from shipplanner.engine.rotation import (
    normalize_rotation,
    rotate_by_90,
    rotate_position,
    rotate_size,
)


class TestRotatePosition:
    # 3 wide, 2 tall layout
    W, H = 3, 2

    def test_zero_is_identity(self):
        assert rotate_position(2, 1, 0, self.W, self.H) == (2, 1)

    def test_ninety(self):
        assert rotate_position(0, 0, 90, self.W, self.H) == (1, 0)
        assert rotate_position(2, 1, 90, self.W, self.H) == (0, 2)

    def test_one_eighty(self):
        assert rotate_position(0, 0, 180, self.W, self.H) == (2, 1)
        assert rotate_position(2, 1, 180, self.W, self.H) == (0, 0)

    def test_two_seventy(self):
        assert rotate_position(0, 0, 270, self.W, self.H) == (0, 2)
        assert rotate_position(2, 1, 270, self.W, self.H) == (1, 0)

    @pytest.mark.parametrize("rotation", [0, 90, 180, 270])
    def test_stays_inside_rotated_box(self, rotation):
        rw, rh = rotate_size((self.W, self.H), rotation)
        seen = set()
        for y in range(self.H):
            for x in range(self.W):
                rx, ry = rotate_position(x, y, rotation, self.W, self.H)
                assert 0 <= rx < rw and 0 <= ry < rh
                seen.add((rx, ry))
        assert len(seen) == self.W * self.H

    def test_ninety_twice_matches_one_eighty_from_canonical(self):
        """Two quarter turns applied to the canonical frame equal a half turn."""
        x, y = rotate_position(2, 0, 90, self.W, self.H)
        # The 90-degree frame is H wide and W tall.
        assert rotate_position(x, y, 90, self.H, self.W) == rotate_position(
            2, 0, 180, self.W, self.H
        )


class TestRotateSize:
    def test_quarter_turns_swap(self):
        assert rotate_size((3, 1), 90) == (1, 3)
        assert rotate_size((3, 1), 270) == (1, 3)

    def test_half_turn_keeps(self):
        assert rotate_size((3, 1), 180) == (3, 1)
        assert rotate_size((3, 1), 0) == (3, 1)


class TestRotateBy90:
    def test_clockwise_cycle(self):
        r = 0
        seen = []
        for _ in range(4):
            r = rotate_by_90(r, "cw")
            seen.append(r)
        assert seen == [90, 180, 270, 0]

    def test_counter_clockwise(self):
        assert rotate_by_90(0, "ccw") == 270
        assert rotate_by_90(90, "ccw") == 0


class TestNormalizeRotation:
    def test_valid_values(self):
        assert normalize_rotation(90) == 90
        assert normalize_rotation("180") == 180
        assert normalize_rotation(450) == 90

    def test_invalid_defaults_to_zero(self):
        assert normalize_rotation(None) == 0
        assert normalize_rotation("abc") == 0
        assert normalize_rotation(45) == 0

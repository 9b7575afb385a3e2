"""Tests for exit directions."""

import pytest
from py_worldgen.core.directions import (
    COMPASS_DIRECTIONS,
    OPPOSITE_DIRECTIONS,
    Direction,
    calculate_direction,
    directions_by_bearing,
    opposite,
)


class TestOpposites:
    """Test the opposite mapping."""

    def test_total(self):
        """Test that every direction has an opposite."""
        assert set(OPPOSITE_DIRECTIONS) == set(Direction)

    def test_involution(self):
        """Test that the opposite of the opposite is the direction itself."""
        for direction in Direction:
            assert opposite(opposite(direction)) == direction

    def test_compass_opposites_stay_compass(self):
        """Test that compass directions map onto compass directions."""
        for direction in COMPASS_DIRECTIONS:
            assert opposite(direction) in COMPASS_DIRECTIONS
            assert opposite(direction) != direction


class TestCalculateDirection:
    """Test bearing to direction conversion (y grows southward)."""

    @pytest.mark.parametrize(
        "target, expected",
        [
            ((10, 0), Direction.EAST),
            ((10, 10), Direction.SOUTHEAST),
            ((0, 10), Direction.SOUTH),
            ((-10, 10), Direction.SOUTHWEST),
            ((-10, 0), Direction.WEST),
            ((-10, -10), Direction.NORTHWEST),
            ((0, -10), Direction.NORTH),
            ((10, -10), Direction.NORTHEAST),
        ],
    )
    def test_octants(self, target, expected):
        """Test each compass octant."""
        assert calculate_direction((0, 0), target) == expected

    def test_coincident_points(self):
        """Test that identical positions resolve to east."""
        assert calculate_direction((5, 5), (5, 5)) == Direction.EAST

    def test_preference_order(self):
        """Test that the closest direction comes first and the opposite last."""
        order = directions_by_bearing((0, 0), (10, 1))
        assert order[0] == Direction.EAST
        assert order[-1] == Direction.WEST
        assert sorted(order, key=COMPASS_DIRECTIONS.index) == COMPASS_DIRECTIONS

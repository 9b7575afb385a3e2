"""Exit directions and bearing helpers."""

import math
from enum import Enum
from typing import Dict, List, Tuple


class Direction(str, Enum):
    """Closed set of exit directions."""

    NORTH = "north"
    NORTHEAST = "northeast"
    EAST = "east"
    SOUTHEAST = "southeast"
    SOUTH = "south"
    SOUTHWEST = "southwest"
    WEST = "west"
    NORTHWEST = "northwest"
    UP = "up"
    DOWN = "down"
    IN = "in"
    OUT = "out"
    FORWARD = "forward"
    BACKWARD = "backward"
    LEFT = "left"
    RIGHT = "right"
    UNKNOWN = "unknown"


# Clockwise from north
COMPASS_DIRECTIONS: List[Direction] = [
    Direction.NORTH,
    Direction.NORTHEAST,
    Direction.EAST,
    Direction.SOUTHEAST,
    Direction.SOUTH,
    Direction.SOUTHWEST,
    Direction.WEST,
    Direction.NORTHWEST,
]

OPPOSITE_DIRECTIONS: Dict[Direction, Direction] = {
    Direction.NORTH: Direction.SOUTH,
    Direction.NORTHEAST: Direction.SOUTHWEST,
    Direction.EAST: Direction.WEST,
    Direction.SOUTHEAST: Direction.NORTHWEST,
    Direction.SOUTH: Direction.NORTH,
    Direction.SOUTHWEST: Direction.NORTHEAST,
    Direction.WEST: Direction.EAST,
    Direction.NORTHWEST: Direction.SOUTHEAST,
    Direction.UP: Direction.DOWN,
    Direction.DOWN: Direction.UP,
    Direction.IN: Direction.OUT,
    Direction.OUT: Direction.IN,
    Direction.FORWARD: Direction.BACKWARD,
    Direction.BACKWARD: Direction.FORWARD,
    Direction.LEFT: Direction.RIGHT,
    Direction.RIGHT: Direction.LEFT,
    Direction.UNKNOWN: Direction.UNKNOWN,
}

# Screen convention: y grows southward, so 90 degrees is south
_COMPASS_ANGLES: Dict[Direction, float] = {
    Direction.EAST: 0.0,
    Direction.SOUTHEAST: 45.0,
    Direction.SOUTH: 90.0,
    Direction.SOUTHWEST: 135.0,
    Direction.WEST: 180.0,
    Direction.NORTHWEST: 225.0,
    Direction.NORTH: 270.0,
    Direction.NORTHEAST: 315.0,
}


def opposite(direction: Direction) -> Direction:
    """Opposite of a direction."""
    return OPPOSITE_DIRECTIONS[direction]


def bearing(from_pos: Tuple[float, float], to_pos: Tuple[float, float]) -> float:
    """Bearing in degrees [0, 360) measured clockwise from east."""
    dx = to_pos[0] - from_pos[0]
    dy = to_pos[1] - from_pos[1]
    return math.degrees(math.atan2(dy, dx)) % 360.0


def calculate_direction(
    from_pos: Tuple[float, float], to_pos: Tuple[float, float]
) -> Direction:
    """
    Compass direction from one position to another.

    Each compass direction owns a 45 degree octant centred on its angle;
    coincident positions resolve to east.
    """
    angle = bearing(from_pos, to_pos)
    octant = int(((angle + 22.5) % 360.0) // 45.0)
    return [
        Direction.EAST,
        Direction.SOUTHEAST,
        Direction.SOUTH,
        Direction.SOUTHWEST,
        Direction.WEST,
        Direction.NORTHWEST,
        Direction.NORTH,
        Direction.NORTHEAST,
    ][octant]


def directions_by_bearing(
    from_pos: Tuple[float, float], to_pos: Tuple[float, float]
) -> List[Direction]:
    """Compass directions ordered by angular closeness to the true bearing."""
    angle = bearing(from_pos, to_pos)

    def separation(direction: Direction) -> Tuple[float, int]:
        diff = abs(_COMPASS_ANGLES[direction] - angle) % 360.0
        return (min(diff, 360.0 - diff), COMPASS_DIRECTIONS.index(direction))

    return sorted(COMPASS_DIRECTIONS, key=separation)

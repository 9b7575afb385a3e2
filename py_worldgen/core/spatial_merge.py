"""
Spatial merging of independent fractal projections.

Several fractal trees grown in the same band are combined into one vertex
set. A uniform grid hash finds vertices of different trees that ended up
close to each other and links them with reciprocal artificial edges, so
the trees read as one denser network. Neighbouring bands are then joined
by a few bridge edges across their shared boundary.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

import structlog

from ..config.ecosystems import EcosystemName
from .fractal_generators import FractalSegment
from .models import Connection, Vertex

logger = structlog.get_logger()

# World extent at which the base threshold applies unscaled, metres
REFERENCE_WORLD_SIZE = 10_000.0

# Collision distance of the reference world, metres
BASE_MERGE_THRESHOLD = 180.0

# Neighbour cells visited from each cell so every adjacent pair is seen once
FORWARD_OFFSETS = [(1, 0), (-1, 1), (0, 1), (1, 1)]


@dataclass(frozen=True)
class MergeParameters:
    """Collision detection settings for one world."""

    distance_threshold: float
    cell_size: float
    degree_cap: int  # Artificial merge edges allowed per vertex

    @classmethod
    def for_world(cls, world_size: float, place_density: float) -> "MergeParameters":
        """
        Derive thresholds from the world extent and place density.

        Thresholds grow with sqrt(world_size) and shrink with
        sqrt(place_density); larger or denser worlds get a higher cap.
        """
        scale = math.sqrt(max(world_size, 1.0) / REFERENCE_WORLD_SIZE)
        threshold = BASE_MERGE_THRESHOLD * scale / math.sqrt(place_density)
        degree_cap = 2 + int(2 * scale * math.sqrt(place_density))
        return cls(
            distance_threshold=threshold,
            cell_size=threshold,
            degree_cap=max(2, min(6, degree_cap)),
        )


@dataclass
class MergeResult:
    """Vertices and connections of one merged band."""

    vertices: List[Vertex]
    connections: List[Connection]
    collision_edges: int = 0


def reciprocal_pair(a: Vertex, b: Vertex, **kwargs) -> List[Connection]:
    """Two artificial connections linking a and b both ways."""
    length = math.hypot(a.x - b.x, a.y - b.y)
    return [
        Connection(a.id, b.id, length, artificial=True, **kwargs),
        Connection(b.id, a.id, length, artificial=True, **kwargs),
    ]


def detect_collisions(
    vertices: Sequence[Vertex], owners: Sequence[int], params: MergeParameters
) -> List[Tuple[int, int]]:
    """
    Find close vertex pairs belonging to different projections.

    Args:
        vertices: Merged vertex list
        owners: Projection index of each vertex
        params: Threshold, grid cell size and per-vertex cap

    Returns:
        Index pairs to link, in deterministic grid order
    """
    grid: Dict[Tuple[int, int], List[int]] = {}
    for i, vertex in enumerate(vertices):
        key = (int(math.floor(vertex.x / params.cell_size)), int(math.floor(vertex.y / params.cell_size)))
        grid.setdefault(key, []).append(i)

    merge_degree = [0] * len(vertices)
    pairs = []

    def consider(a: int, b: int):
        if owners[a] == owners[b]:
            return
        if merge_degree[a] >= params.degree_cap or merge_degree[b] >= params.degree_cap:
            return
        va, vb = vertices[a], vertices[b]
        if math.hypot(va.x - vb.x, va.y - vb.y) > params.distance_threshold:
            return
        pairs.append((a, b))
        merge_degree[a] += 1
        merge_degree[b] += 1

    for key in sorted(grid):
        members = grid[key]
        for m, a in enumerate(members):
            for b in members[m + 1:]:
                consider(a, b)
        for dx, dy in FORWARD_OFFSETS:
            others = grid.get((key[0] + dx, key[1] + dy))
            if not others:
                continue
            for a in members:
                for b in others:
                    consider(a, b)

    return pairs


def merge_projections(
    projections: Sequence[Sequence[FractalSegment]],
    ecosystem: EcosystemName,
    params: MergeParameters,
) -> MergeResult:
    """
    Merge the fractal projections of one band.

    Args:
        projections: Segment lists, one per independent tree
        ecosystem: Base ecosystem of the band
        params: Collision detection settings

    Returns:
        Band vertices with growth and collision connections
    """
    vertices: List[Vertex] = []
    owners: List[int] = []
    connections: List[Connection] = []

    for p, segments in enumerate(projections):
        for segment in segments:
            vertices.append(
                Vertex(
                    id=segment.id,
                    x=segment.x,
                    y=segment.y,
                    ecosystem=ecosystem,
                    depth=segment.depth,
                    parent_id=segment.parent_id,
                )
            )
            owners.append(p)
            if segment.parent_id is not None:
                connections.append(Connection(segment.parent_id, segment.id, segment.length))

    collisions = detect_collisions(vertices, owners, params)
    for a, b in collisions:
        connections.extend(reciprocal_pair(vertices[a], vertices[b]))

    logger.debug(
        "Projections merged",
        ecosystem=ecosystem.biome,
        projections=len(projections),
        vertices=len(vertices),
        collision_edges=len(collisions),
    )
    return MergeResult(vertices=vertices, connections=connections, collision_edges=len(collisions))


def bridge_adjacent_bands(
    bands: Sequence[Sequence[Vertex]], bridges_per_boundary: int = 2, candidates: int = 8
) -> List[Connection]:
    """
    Join each band to the next one east of it.

    The easternmost vertices of a band are paired with the westernmost
    vertices of its neighbour, shortest pairs first, without reusing an
    endpoint.
    """
    connections: List[Connection] = []

    for b in range(len(bands) - 1):
        west_band, east_band = bands[b], bands[b + 1]
        if not west_band or not east_band:
            continue

        west = sorted(west_band, key=lambda v: (-v.x, v.id))[:candidates]
        east = sorted(east_band, key=lambda v: (v.x, v.id))[:candidates]
        pairs = sorted(
            (math.hypot(a.x - c.x, a.y - c.y), i, j)
            for i, a in enumerate(west)
            for j, c in enumerate(east)
        )

        used_west, used_east = set(), set()
        for _, i, j in pairs:
            if i in used_west or j in used_east:
                continue
            used_west.add(i)
            used_east.add(j)
            a, c = west[i], east[j]
            connections.extend(reciprocal_pair(a, c, ecosystem_transition=(a.ecosystem, c.ecosystem)))
            if len(used_west) >= bridges_per_boundary:
                break

    return connections

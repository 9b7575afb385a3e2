"""
Ecosystem band mapping.

The world is cut into equal-width bands along x, west to east, each with a
base ecosystem from the progression table. In the final band a positional
hash swaps a share of vertices to the band's secondary ecosystem, giving a
speckled boundary that depends only on position and seed.
"""

import math
from collections import Counter
from dataclasses import replace
from typing import Dict, List, Sequence, Tuple

import structlog

from ..config.ecosystems import ECOSYSTEM_PROGRESSION, SECONDARY_ECOSYSTEMS, EcosystemName
from .fractal_generators import WorldConstraints
from .models import Connection, Vertex, WorldGenerationConfig

logger = structlog.get_logger()


def position_hash(x: float, y: float, seed: int) -> int:
    """Stable 32-bit hash of a floored position."""
    xi = int(math.floor(x))
    yi = int(math.floor(y))
    return ((xi * 73856093) ^ (yi * 19349663) ^ (seed * 83492791)) & 0xFFFFFFFF


def band_index(x: float, width: float, band_count: int) -> int:
    """Band containing an x coordinate; out-of-range values clamp to the edges."""
    index = int(math.floor(x / width * band_count))
    return min(max(index, 0), band_count - 1)


def determine_ecosystem(x: float, y: float, config: WorldGenerationConfig) -> EcosystemName:
    """
    Ecosystem at a position.

    Pure function of the position and the config: the base ecosystem of
    the band, or in the final band the secondary ecosystem when
    ``hash(x, y) mod 100`` falls under the dithering percentage.

    Args:
        x: World x coordinate
        y: World y coordinate
        config: Run configuration

    Returns:
        Ecosystem id
    """
    width, _ = config.world_dimensions()
    index = band_index(x, width, config.band_count)
    base = ECOSYSTEM_PROGRESSION[index]

    if index == config.band_count - 1:
        percentage = int(round(config.dithering_strength * 100))
        if position_hash(x, y, config.seed) % 100 < percentage:
            return SECONDARY_ECOSYSTEMS[base]

    return base


class EcosystemBandMapper:
    """Assigns ecosystems to vertices and marks cross-ecosystem edges."""

    def __init__(self, config: WorldGenerationConfig):
        self.config = config
        self.width, self.height = config.world_dimensions()

    @property
    def band_ecosystems(self) -> List[EcosystemName]:
        return ECOSYSTEM_PROGRESSION[: self.config.band_count]

    def band_bounds(self) -> List[WorldConstraints]:
        """Region of each band, west to east."""
        band_width = self.width / self.config.band_count
        return [
            WorldConstraints(b * band_width, 0.0, (b + 1) * band_width, self.height)
            for b in range(self.config.band_count)
        ]

    def map_vertices(self, vertices: Sequence[Vertex]) -> Tuple[List[Vertex], Dict[EcosystemName, int]]:
        """
        Label every vertex with the ecosystem at its position.

        Returns:
            New vertex list and per-ecosystem counts
        """
        mapped = [
            replace(v, ecosystem=determine_ecosystem(v.x, v.y, self.config)) for v in vertices
        ]
        counts = Counter(v.ecosystem for v in mapped)
        logger.info(
            "Ecosystems assigned",
            vertices=len(mapped),
            distribution={eco.biome: counts[eco] for eco in sorted(counts, key=lambda e: e.value)},
        )
        return mapped, dict(counts)

    @staticmethod
    def annotate_transitions(
        vertices: Sequence[Vertex], connections: Sequence[Connection]
    ) -> List[Connection]:
        """Set ``ecosystem_transition`` on edges whose endpoints differ in ecosystem."""
        ecosystem_of = {v.id: v.ecosystem for v in vertices}
        annotated = []
        for connection in connections:
            source = ecosystem_of.get(connection.from_id)
            target = ecosystem_of.get(connection.to_id)
            if source is not None and target is not None and source != target:
                connection = replace(connection, ecosystem_transition=(source, target))
            elif connection.ecosystem_transition is not None:
                connection = replace(connection, ecosystem_transition=None)
            annotated.append(connection)
        return annotated

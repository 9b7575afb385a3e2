"""
Core data model for world generation.

Vertices and connections come out of fractal growth and merging; places
and exits are what the rest of the game navigates. The run configuration
is validated up front so that no stage ever sees impossible parameters.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, Field, model_validator

from ..config import settings
from ..config.ecosystems import ECOSYSTEM_PROGRESSION, EcologicalProfile, EcosystemName
from .directions import Direction
from .fractal_generators import FractalGeneratorType

MAX_SEED = 2 ** 32 - 1

# Base distance between neighbouring places, metres
BASE_PLACE_SPACING = 300.0

# Width to height ratio of derived worlds
GOLDEN_RATIO = 1.618

# World area per place, in units of spacing squared
WORLD_FILL_FACTOR = 3.0


@dataclass
class Vertex:
    """A positioned node produced by fractal growth."""

    id: str
    x: float
    y: float
    ecosystem: EcosystemName
    depth: int = 0
    parent_id: Optional[str] = None

    @property
    def position(self) -> Tuple[float, float]:
        return (self.x, self.y)


@dataclass(frozen=True)
class Connection:
    """
    Edge between two vertices.

    Growth edges are directed parent to child. Merge, bridge and repair
    edges are always stored as reciprocal pairs flagged ``artificial``.
    """

    from_id: str
    to_id: str
    length: float
    artificial: bool = False
    ecosystem_transition: Optional[Tuple[EcosystemName, EcosystemName]] = None


@dataclass(frozen=True)
class Exit:
    """Directional link from one place to another."""

    direction: Direction
    label: str
    to: str


@dataclass
class Place:
    """A navigable location with at most one exit per direction."""

    id: str
    name: str
    description: str
    ecology: EcologicalProfile
    x: float
    y: float
    exits: Dict[Direction, Exit] = field(default_factory=dict)

    @property
    def ecosystem(self) -> EcosystemName:
        return self.ecology.ecosystem


@dataclass(frozen=True)
class ConnectionStats:
    """Directed exit totals of a finished world."""

    total: int
    reciprocal: int


@dataclass
class GenerationTuning:
    """
    Tunable heuristics of the exit, repair and layout stages.

    Defaults come from the process settings so deployments can adjust them
    through the environment.
    """

    max_degree: int = 8  # Hard cap on compass exits per place
    fill_degree_cap: int = 6  # Phase 2 stops filling at this degree
    relay_candidates: int = 6  # Relay places tried per edge
    relay_pool_size: int = 32  # Low-degree places kept per ecosystem
    star_topology_threshold: int = 50  # Components above which repair uses a star
    repair_max_iterations: int = 10  # Bridging rounds before giving up
    repair_candidates: int = 8  # Candidate places per component
    layout_min_vertices: int = 50  # Layout only runs above this vertex count

    @classmethod
    def from_settings(cls) -> "GenerationTuning":
        return cls(
            max_degree=settings.max_degree,
            fill_degree_cap=settings.fill_degree_cap,
            relay_candidates=settings.relay_candidates,
            relay_pool_size=settings.relay_pool_size,
            star_topology_threshold=settings.star_topology_threshold,
            repair_max_iterations=settings.repair_max_iterations,
            repair_candidates=settings.repair_candidates,
            layout_min_vertices=settings.layout_min_vertices,
        )


class WorldGenerationConfig(BaseModel):
    """Parameters of one generation run."""

    seed: int = Field(0, ge=0, le=MAX_SEED, description="Seed of the run's random stream")
    width: Optional[float] = Field(None, gt=0, le=1_000_000, description="World width in metres")
    height: Optional[float] = Field(None, gt=0, le=1_000_000, description="World height in metres")
    band_count: int = Field(
        len(ECOSYSTEM_PROGRESSION),
        ge=1,
        le=len(ECOSYSTEM_PROGRESSION),
        description="Number of ecosystem bands, west to east",
    )
    branching_factor: float = Field(0.6, ge=0.0, le=1.0, description="Chance of extra branches per node")
    place_density: float = Field(1.0, gt=0.0, le=10.0, description="Relative place density")
    dithering_strength: float = Field(
        0.3, ge=0.0, le=1.0, description="Share of final-band vertices given the secondary ecosystem"
    )
    min_places: int = Field(100, ge=1, le=settings.max_min_places, description="Minimum number of places")
    max_places: Optional[int] = Field(None, ge=1, description="Maximum number of places (default 2x min)")
    generator: FractalGeneratorType = Field(
        FractalGeneratorType.RIVER_DELTA, description="Fractal pattern used for every band"
    )
    projections_per_band: int = Field(2, ge=1, le=4, description="Independent fractal trees per band")
    optimize_layout: bool = Field(False, description="Run the force-directed layout pass")

    @model_validator(mode="after")
    def check_consistency(self) -> "WorldGenerationConfig":
        if (self.width is None) != (self.height is None):
            raise ValueError("width and height must be given together")
        if self.max_places is not None and self.max_places < self.min_places:
            raise ValueError(
                f"max_places ({self.max_places}) must be >= min_places ({self.min_places})"
            )
        return self

    def resolved_max_places(self) -> int:
        return self.max_places if self.max_places is not None else 2 * self.min_places

    def place_target(self) -> int:
        """Number of places the run aims for, inside [min_places, max_places]."""
        target = int(math.ceil(self.min_places * 1.2))
        return max(self.min_places, min(self.resolved_max_places(), target))

    def spacing(self) -> float:
        """Nominal distance between neighbouring places."""
        return BASE_PLACE_SPACING / math.sqrt(self.place_density)

    def world_dimensions(self) -> Tuple[float, float]:
        """
        World extent as (width, height).

        Explicit dimensions win; otherwise a golden-ratio rectangle is
        sized to hold the place target at the configured spacing.
        """
        if self.width is not None and self.height is not None:
            return (float(self.width), float(self.height))

        area = self.place_target() * self.spacing() ** 2 * WORLD_FILL_FACTOR
        height = math.sqrt(area / GOLDEN_RATIO)
        return (height * GOLDEN_RATIO, height)

"""
Fractal branch generators.

Each generator grows a tree of segments from an origin under stochastic
angle and length rules. Variants share one ``generate`` contract and carry
their own config dataclass; they are looked up through a registry keyed by
``FractalGeneratorType``.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Type

import structlog

from .lcg_prng import SeededRandom

logger = structlog.get_logger()


class FractalGeneratorType(str, Enum):
    """Available branch patterns."""

    RIVER_DELTA = "river_delta"
    LICHTENBERG = "lichtenberg"


@dataclass(frozen=True)
class FractalSegment:
    """One grown segment; the origin has no parent and depth 0."""

    id: str
    x: float
    y: float
    parent_id: Optional[str]
    depth: int
    angle: float  # Radians, direction of growth from the parent
    length: float


@dataclass
class SparkingConfig:
    """Forced extra branching where growth crosses given fractions of the bounds."""

    enabled: bool = True
    boundary_points: Tuple[float, ...] = (0.25, 0.5, 0.75)  # Fractions along x
    extra_branches: int = 1
    respark_attempts_per_segment: int = 10  # Budget for restarting dead growth


@dataclass
class FractalConfig:
    """Parameters shared by every branch pattern."""

    segment_length: float = 1.0
    length_decay: float = 0.97  # Length multiplier per depth level
    min_length_ratio: float = 0.5  # Floor of the decayed length
    max_depth: int = 64
    branching_factor: float = 0.6
    angular_dispersion: float = math.pi / 6  # Max deviation from the parent angle
    max_segments: int = 100
    sparking: SparkingConfig = field(default_factory=SparkingConfig)


@dataclass(frozen=True)
class WorldConstraints:
    """Axis-aligned region growth must stay inside."""

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    def contains(self, x: float, y: float) -> bool:
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y

    def fraction_x(self, x: float) -> float:
        return (x - self.min_x) / self.width


class FractalGenerator(ABC):
    """Base class for branch patterns."""

    generator_type: FractalGeneratorType
    config_class: Type[FractalConfig] = FractalConfig

    def default_config(self) -> FractalConfig:
        return self.config_class()

    def generate(
        self,
        start_position: Tuple[float, float],
        start_direction: float,
        config: FractalConfig,
        rng: SeededRandom,
        constraints: WorldConstraints,
        system_id: str = "fractal",
    ) -> List[FractalSegment]:
        """
        Grow one fractal tree.

        Args:
            start_position: Origin of the tree
            start_direction: Main growth direction in radians (0 is east)
            config: Pattern parameters
            rng: Random stream of the run, consumed in a fixed order
            constraints: Region the tree must stay inside
            system_id: Prefix of generated segment ids

        Returns:
            Segments in creation order, origin first
        """
        if config.max_segments < 1:
            raise ValueError(f"max_segments must be positive, got {config.max_segments}")
        if config.max_depth < 0:
            raise ValueError(f"max_depth must be non-negative, got {config.max_depth}")
        if constraints.width <= 0 or constraints.height <= 0:
            raise ValueError("Growth constraints must have positive area")

        x = min(max(start_position[0], constraints.min_x), constraints.max_x)
        y = min(max(start_position[1], constraints.min_y), constraints.max_y)
        origin = FractalSegment(
            id=f"{system_id}_segment_0",
            x=x,
            y=y,
            parent_id=None,
            depth=0,
            angle=start_direction,
            length=0.0,
        )

        if config.max_depth == 0 or config.max_segments == 1:
            return [origin]

        segments = self._grow(origin, start_direction, config, rng, constraints, system_id)

        logger.debug(
            "Fractal grown",
            generator=self.generator_type.value,
            system_id=system_id,
            segments=len(segments),
            max_depth=max(s.depth for s in segments),
        )
        return segments

    @abstractmethod
    def _grow(
        self,
        origin: FractalSegment,
        start_direction: float,
        config: FractalConfig,
        rng: SeededRandom,
        constraints: WorldConstraints,
        system_id: str,
    ) -> List[FractalSegment]:
        """Grow children from the origin; returned list starts with the origin."""

    @staticmethod
    def segment_length(config: FractalConfig, depth: int) -> float:
        """Length of a segment at the given depth."""
        return config.segment_length * max(config.min_length_ratio, config.length_decay ** depth)

    @staticmethod
    def crosses_spark_point(
        config: FractalConfig, constraints: WorldConstraints, x_from: float, x_to: float
    ) -> bool:
        """True if moving from x_from to x_to passes a sparking boundary point."""
        if not config.sparking.enabled:
            return False
        f_from = constraints.fraction_x(x_from)
        f_to = constraints.fraction_x(x_to)
        low, high = min(f_from, f_to), max(f_from, f_to)
        return any(low < point <= high for point in config.sparking.boundary_points)


FRACTAL_GENERATORS: Dict[FractalGeneratorType, Type[FractalGenerator]] = {}


def register_generator(
    generator_type: FractalGeneratorType,
) -> Callable[[Type[FractalGenerator]], Type[FractalGenerator]]:
    """Class decorator adding a generator to the registry."""

    def decorator(cls: Type[FractalGenerator]) -> Type[FractalGenerator]:
        cls.generator_type = generator_type
        FRACTAL_GENERATORS[generator_type] = cls
        return cls

    return decorator


def create_fractal_generator(generator_type: FractalGeneratorType) -> FractalGenerator:
    """Instantiate the generator registered for a pattern type."""
    try:
        return FRACTAL_GENERATORS[FractalGeneratorType(generator_type)]()
    except KeyError:
        raise ValueError(f"Unknown fractal generator: {generator_type}") from None

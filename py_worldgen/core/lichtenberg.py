"""
Lichtenberg (electrical discharge) branch pattern.

Dielectric breakdown on a grid: the discharge grows one cell at a time,
choosing among frontier cells with probability proportional to a
normalised field potential raised to a power. Sinks along the far edge
pull the discharge across the region, while already charged cells spread
it sideways into branches.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Tuple

from .fractal_generators import (
    FractalConfig,
    FractalGenerator,
    FractalGeneratorType,
    FractalSegment,
    WorldConstraints,
    register_generator,
)
from .lcg_prng import SeededRandom

Cell = Tuple[int, int]

NEIGHBOR_OFFSETS = [(-1, -1), (0, -1), (1, -1), (-1, 0), (1, 0), (-1, 1), (0, 1), (1, 1)]


@dataclass
class LichtenbergConfig(FractalConfig):
    """Discharge parameters; ``segment_length`` is the grid cell size."""

    sampling_power: float = 3.0  # Sharpness of growth toward high potential
    sink_strength: float = 100.0
    jitter: float = 0.5  # Positional noise as a fraction of the cell size


class DischargeField:
    """
    Potential field over the growth grid.

    Equivalent to the charge-simulation step of a dielectric breakdown
    model: each frontier cell holds the potential induced by all charged
    cells plus the attraction of the sinks.
    """

    def __init__(self, cols: int, rows: int, sinks: List[Cell], sink_strength: float):
        self.cols = cols
        self.rows = rows
        self.sinks = sinks
        self.sink_strength = sink_strength
        self.sources: Dict[Cell, int] = {}  # cell -> segment index
        self.frontier: Dict[Cell, List] = {}  # cell -> [potential, parent segment index]

    @staticmethod
    def _source_term(a: Cell, b: Cell) -> float:
        distance = math.hypot(a[0] - b[0], a[1] - b[1])
        return 1.0 - 0.5 / max(distance, 0.1)

    def _potential(self, cell: Cell) -> float:
        potential = sum(self._source_term(cell, source) for source in self.sources)
        for sink in self.sinks:
            distance = math.hypot(cell[0] - sink[0], cell[1] - sink[1])
            potential += self.sink_strength / max(distance, 0.1)
        return potential

    def charge(self, cell: Cell, segment_index: int, depth: int, max_depth: int):
        """Turn a cell into a source and extend the frontier around it."""
        self.frontier.pop(cell, None)
        self.sources[cell] = segment_index

        for other, entry in self.frontier.items():
            entry[0] += self._source_term(cell, other)

        if depth + 1 > max_depth:
            return

        for dx, dy in NEIGHBOR_OFFSETS:
            neighbor = (cell[0] + dx, cell[1] + dy)
            if not (0 <= neighbor[0] < self.cols and 0 <= neighbor[1] < self.rows):
                continue
            if neighbor in self.sources or neighbor in self.frontier:
                continue
            self.frontier[neighbor] = [self._potential(neighbor), segment_index]

    def sample(self, rng: SeededRandom, power: float) -> Cell:
        """Pick a frontier cell weighted by normalised potential^power."""
        cells = list(self.frontier)
        values = [self.frontier[c][0] for c in cells]
        low, high = min(values), max(values)

        if high - low < 1e-3:
            return cells[rng.next_int(len(cells))]

        weights = [((v - low) / (high - low)) ** power for v in values]
        target = rng.next() * sum(weights)
        cumulative = 0.0
        for cell, weight in zip(cells, weights):
            cumulative += weight
            if target < cumulative:
                return cell
        return cells[-1]


@register_generator(FractalGeneratorType.LICHTENBERG)
class LichtenbergGenerator(FractalGenerator):
    """Branching discharge pattern grown on a grid."""

    config_class = LichtenbergConfig

    def _grow(
        self,
        origin: FractalSegment,
        start_direction: float,
        config: FractalConfig,
        rng: SeededRandom,
        constraints: WorldConstraints,
        system_id: str,
    ) -> List[FractalSegment]:
        power = getattr(config, "sampling_power", LichtenbergConfig.sampling_power)
        sink_strength = getattr(config, "sink_strength", LichtenbergConfig.sink_strength)
        jitter = getattr(config, "jitter", LichtenbergConfig.jitter)

        # Higher branching flattens the distribution so side branches survive
        power = power * (1.5 - config.branching_factor)

        cell_size = config.segment_length
        cols = max(1, int(constraints.width // cell_size))
        rows = max(1, int(constraints.height // cell_size))

        def cell_of(x: float, y: float) -> Cell:
            col = int((x - constraints.min_x) // cell_size)
            row = int((y - constraints.min_y) // cell_size)
            return (min(max(col, 0), cols - 1), min(max(row, 0), rows - 1))

        field = DischargeField(cols, rows, self._sinks(start_direction, cols, rows), sink_strength)
        segments = [origin]
        field.charge(cell_of(origin.x, origin.y), 0, 0, config.max_depth)

        while len(segments) < config.max_segments and field.frontier:
            cell = field.sample(rng, power)
            parent_x = segments[field.frontier[cell][1]].x
            index = self._discharge(cell, field, segments, config, rng, constraints, jitter, system_id)

            if not self.crosses_spark_point(config, constraints, parent_x, segments[index].x):
                continue

            # Forced side branches out of the new cell
            for _ in range(config.sparking.extra_branches):
                if len(segments) >= config.max_segments:
                    break
                branches = [c for c, entry in field.frontier.items() if entry[1] == index]
                if not branches:
                    break
                branch = branches[rng.next_int(len(branches))]
                self._discharge(branch, field, segments, config, rng, constraints, jitter, system_id)

        return segments

    @staticmethod
    def _sinks(start_direction: float, cols: int, rows: int) -> List[Cell]:
        """Sink cells on the edge the start direction points at."""
        far_col = cols - 1 if math.cos(start_direction) >= 0 else 0
        sinks = [(far_col, rows // 2)]
        if cols > 8 and rows > 2:
            for fraction in (0.3, 0.7):
                sink = (far_col, int(rows * fraction))
                if sink not in sinks:
                    sinks.append(sink)
        return sinks

    @staticmethod
    def _discharge(
        cell: Cell,
        field: DischargeField,
        segments: List[FractalSegment],
        config: FractalConfig,
        rng: SeededRandom,
        constraints: WorldConstraints,
        jitter: float,
        system_id: str,
    ) -> int:
        """Charge a frontier cell and record the segment reaching it."""
        parent = segments[field.frontier[cell][1]]
        size = config.segment_length

        x = constraints.min_x + (cell[0] + 0.5) * size + (rng.next() - 0.5) * size * jitter
        y = constraints.min_y + (cell[1] + 0.5) * size + (rng.next() - 0.5) * size * jitter
        x = min(max(x, constraints.min_x), constraints.max_x)
        y = min(max(y, constraints.min_y), constraints.max_y)

        segment = FractalSegment(
            id=f"{system_id}_segment_{len(segments)}",
            x=x,
            y=y,
            parent_id=parent.id,
            depth=parent.depth + 1,
            angle=math.atan2(y - parent.y, x - parent.x),
            length=math.hypot(x - parent.x, y - parent.y),
        )
        segments.append(segment)
        index = len(segments) - 1
        field.charge(cell, index, segment.depth, config.max_depth)
        return index

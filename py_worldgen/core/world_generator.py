"""
World generation pipeline driver.

Runs the stages strictly forward:

    GenerateFractals -> MergeProjections -> MapEcosystems -> BuildPlaces
    -> AssignExits -> RepairConnectivity -> EnhanceConnectivity
    -> [LayoutOptimize] -> Done

The driver owns the random stream, the vertex list and the place graph,
and hands each to one stage at a time. Cancellation is checked between
stages only; a cancelled run returns what it has so far instead of
raising. Stage anomalies end up in the diagnostics, never as exceptions.
"""

import asyncio
import math
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Union

import structlog

from .connectivity import ConnectivityRepair, RepairStats
from .ecosystems import EcosystemBandMapper, band_index
from .enhancement import EcosystemConnectivityEnhancer, EnhancementStats
from .fractal_generators import (
    FractalConfig,
    FractalGenerator,
    FractalSegment,
    WorldConstraints,
    create_fractal_generator,
)
from .layout import LayoutConfig, force_directed_layout
from .lcg_prng import SeededRandom
from .models import (
    Connection,
    ConnectionStats,
    GenerationTuning,
    Place,
    Vertex,
    WorldGenerationConfig,
)
from .place_graph import ExitAssigner, ExitAssignmentStats, PlaceGraph, build_places
from .river_delta import RiverDeltaConfig
from .spatial_merge import MergeParameters, bridge_adjacent_bands, merge_projections

logger = structlog.get_logger()

# Extra growth rounds when the first pass falls short of min_places
MAX_TOPUP_ROUNDS = 3

# Grid cells per segment in a band, keeps grid-based growth from running out of room
GROWTH_ROOM_FACTOR = 3.0

BRIDGES_PER_BAND_BOUNDARY = 2

# Share of a band width kept clear at its edges during layout
BAND_EDGE_INSET = 1e-6


class PipelineStage(str, Enum):
    """Pipeline states in execution order."""

    PENDING = "pending"
    GENERATE_FRACTALS = "generate_fractals"
    MERGE_PROJECTIONS = "merge_projections"
    MAP_ECOSYSTEMS = "map_ecosystems"
    BUILD_PLACES = "build_places"
    ASSIGN_EXITS = "assign_exits"
    REPAIR_CONNECTIVITY = "repair_connectivity"
    ENHANCE_CONNECTIVITY = "enhance_connectivity"
    LAYOUT_OPTIMIZE = "layout_optimize"
    DONE = "done"


@dataclass
class LayoutStats:
    iterations: int
    converged: bool
    max_displacement: float
    exits_reoriented: int = 0


@dataclass
class GenerationDiagnostics:
    """Side-channel of counts and timings collected during a run."""

    stage_timings: Dict[str, float] = field(default_factory=dict)  # Seconds per stage
    vertices_per_band: List[int] = field(default_factory=list)
    topup_projections: int = 0
    merge_threshold: float = 0.0
    merge_degree_cap: int = 0
    collision_edges: int = 0
    band_bridges: int = 0
    ecosystem_counts: Dict[str, int] = field(default_factory=dict)
    exits: Optional[ExitAssignmentStats] = None
    repair: Optional[RepairStats] = None
    enhancement: Optional[EnhancementStats] = None
    layout: Optional[LayoutStats] = None
    warnings: List[str] = field(default_factory=list)


@dataclass
class WorldGenerationResult:
    """Places, vertices and statistics of one run."""

    places: List[Place]
    vertices: List[Vertex]
    connection_stats: ConnectionStats
    config: WorldGenerationConfig
    diagnostics: GenerationDiagnostics
    stage: PipelineStage = PipelineStage.DONE
    aborted: bool = False


ProgressCallback = Callable[[PipelineStage, float], None]


def split_evenly(total: int, parts: int) -> List[int]:
    """Split a count into parts differing by at most one, larger parts first."""
    base, remainder = divmod(total, parts)
    return [base + (1 if k < remainder else 0) for k in range(parts)]


class WorldGenerator:
    """
    Drives one generation run.

    Args:
        config: Run configuration, or a dict validated into one
        tuning: Heuristic thresholds, defaults from settings
        cancel_check: Polled between stages; returning True aborts the run
        progress_callback: Called with (stage, fraction) after each stage
    """

    def __init__(
        self,
        config: Union[WorldGenerationConfig, Dict[str, Any]],
        tuning: Optional[GenerationTuning] = None,
        cancel_check: Optional[Callable[[], bool]] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        if not isinstance(config, WorldGenerationConfig):
            config = WorldGenerationConfig.model_validate(config)

        self.config = config
        self.tuning = tuning or GenerationTuning.from_settings()
        self.cancel_check = cancel_check
        self.progress_callback = progress_callback

        self.rng = SeededRandom(config.seed)
        self.mapper = EcosystemBandMapper(config)
        self.diagnostics = GenerationDiagnostics()
        self.stage = PipelineStage.PENDING
        self.aborted = False

        self.projections: List[List[List[FractalSegment]]] = []
        self.vertices: List[Vertex] = []
        self.connections: List[Connection] = []
        self.graph: Optional[PlaceGraph] = None
        self.vertex_index: Dict[str, int] = {}

    def _steps(self):
        steps = [
            (PipelineStage.GENERATE_FRACTALS, self._generate_fractals),
            (PipelineStage.MERGE_PROJECTIONS, self._merge_projections),
            (PipelineStage.MAP_ECOSYSTEMS, self._map_ecosystems),
            (PipelineStage.BUILD_PLACES, self._build_places),
            (PipelineStage.ASSIGN_EXITS, self._assign_exits),
            (PipelineStage.REPAIR_CONNECTIVITY, self._repair_connectivity),
            (PipelineStage.ENHANCE_CONNECTIVITY, self._enhance_connectivity),
        ]
        if self.config.optimize_layout:
            steps.append((PipelineStage.LAYOUT_OPTIMIZE, self._optimize_layout))
        return steps

    def run_stages(self) -> Iterator[PipelineStage]:
        """
        Execute the pipeline, yielding after every completed stage.

        Stops early, with ``aborted`` set, when the cancel check fires.
        """
        if self.stage != PipelineStage.PENDING:
            raise RuntimeError("A WorldGenerator runs only once")

        steps = self._steps()
        logger.info(
            "Starting world generation",
            seed=self.config.seed,
            bands=self.config.band_count,
            place_target=self.config.place_target(),
            generator=self.config.generator.value,
        )

        for n, (stage, step) in enumerate(steps):
            if self.cancel_check is not None and self.cancel_check():
                self.aborted = True
                logger.warning("World generation cancelled", completed_stage=self.stage.value)
                return

            started = time.perf_counter()
            step()
            self.diagnostics.stage_timings[stage.value] = time.perf_counter() - started
            self.stage = stage

            if self.progress_callback is not None:
                self.progress_callback(stage, (n + 1) / len(steps))
            yield stage

        self.stage = PipelineStage.DONE
        logger.info(
            "World generation complete",
            places=len(self.vertices),
            warnings=len(self.diagnostics.warnings),
        )
        yield PipelineStage.DONE

    def generate(self) -> WorldGenerationResult:
        """Run every stage and return the result."""
        for _ in self.run_stages():
            pass
        return self.result()

    async def generate_async(self) -> WorldGenerationResult:
        """Run every stage, yielding to the event loop between stages."""
        for _ in self.run_stages():
            await asyncio.sleep(0)
        return self.result()

    def result(self) -> WorldGenerationResult:
        """Snapshot of the run in its current state."""
        if self.graph is not None:
            places = self.graph.places
            stats = self.graph.connection_stats()
        else:
            places = []
            stats = ConnectionStats(total=0, reciprocal=0)

        return WorldGenerationResult(
            places=places,
            vertices=self.vertices,
            connection_stats=stats,
            config=self.config,
            diagnostics=self.diagnostics,
            stage=self.stage,
            aborted=self.aborted,
        )

    def _warn(self, message: str, **context):
        logger.warning(message, **context)
        self.diagnostics.warnings.append(message)

    # Stages

    def _generate_fractals(self):
        generator = create_fractal_generator(self.config.generator)
        bounds = self.mapper.band_bounds()
        target = self.config.place_target()

        # Mouths of one band sit within half a merge threshold of each other
        mouth_gap = 0.5 * self._merge_parameters().distance_threshold

        self.projections = [[] for _ in bounds]
        for b, quota in enumerate(split_evenly(target, self.config.band_count)):
            shares = split_evenly(quota, self.config.projections_per_band)
            for p, share in enumerate(shares):
                if share == 0:
                    continue
                constraints = bounds[b]
                start_y = constraints.min_y + constraints.height * (p + 1) / (len(shares) + 1)
                mouth_y = constraints.min_y + constraints.height / 2 + (p - (len(shares) - 1) / 2) * mouth_gap
                self.projections[b].append(
                    self._grow(generator, b, p, share, constraints, start_y, mouth_y)
                )

        total = self._vertex_count()
        rounds = 0
        while total < self.config.min_places and rounds < MAX_TOPUP_ROUNDS:
            rounds += 1
            for b, share in enumerate(split_evenly(target - total, self.config.band_count)):
                if share == 0:
                    continue
                constraints = bounds[b]
                start_y = self.rng.next_float(constraints.min_y, constraints.max_y)
                p = len(self.projections[b])
                self.projections[b].append(
                    self._grow(generator, b, p, share, constraints, start_y)
                )
                self.diagnostics.topup_projections += 1
            total = self._vertex_count()

        if total < self.config.min_places:
            self._warn("Fractal growth fell short of min_places", vertices=total, min_places=self.config.min_places)

        self.diagnostics.vertices_per_band = [
            sum(len(segments) for segments in band) for band in self.projections
        ]
        logger.info(
            "Fractals generated",
            vertices=total,
            per_band=self.diagnostics.vertices_per_band,
            topup_projections=self.diagnostics.topup_projections,
        )

    def _vertex_count(self) -> int:
        return sum(len(segments) for band in self.projections for segments in band)

    def _grow(
        self,
        generator: FractalGenerator,
        band: int,
        projection: int,
        quota: int,
        constraints: WorldConstraints,
        start_y: float,
        mouth_y: Optional[float] = None,
    ) -> List[FractalSegment]:
        fractal_config: FractalConfig = generator.default_config()
        if isinstance(fractal_config, RiverDeltaConfig):
            fractal_config.mouth_y = mouth_y
        room = math.sqrt(constraints.width * constraints.height / (GROWTH_ROOM_FACTOR * quota))
        fractal_config.segment_length = min(self.config.spacing(), room)
        fractal_config.max_segments = quota
        fractal_config.max_depth = max(1, quota)
        fractal_config.branching_factor = self.config.branching_factor

        return generator.generate(
            (constraints.min_x, start_y),
            0.0,
            fractal_config,
            self.rng,
            constraints,
            system_id=f"band{band}-p{projection}",
        )

    def _merge_parameters(self) -> MergeParameters:
        return MergeParameters.for_world(max(self.mapper.width, self.mapper.height), self.config.place_density)

    def _merge_projections(self):
        params = self._merge_parameters()
        self.diagnostics.merge_threshold = params.distance_threshold
        self.diagnostics.merge_degree_cap = params.degree_cap

        band_vertices = []
        for b, projections in enumerate(self.projections):
            merged = merge_projections(projections, self.mapper.band_ecosystems[b], params)
            self.vertices.extend(merged.vertices)
            self.connections.extend(merged.connections)
            self.diagnostics.collision_edges += merged.collision_edges
            band_vertices.append(merged.vertices)

        bridges = bridge_adjacent_bands(band_vertices, BRIDGES_PER_BAND_BOUNDARY)
        self.connections.extend(bridges)
        self.diagnostics.band_bridges = len(bridges) // 2
        self.projections = []

        logger.info(
            "Projections merged",
            vertices=len(self.vertices),
            connections=len(self.connections),
            collision_edges=self.diagnostics.collision_edges,
            band_bridges=self.diagnostics.band_bridges,
        )

    def _map_ecosystems(self):
        self.vertices, counts = self.mapper.map_vertices(self.vertices)
        self.connections = self.mapper.annotate_transitions(self.vertices, self.connections)
        self.diagnostics.ecosystem_counts = {eco.biome: count for eco, count in counts.items()}

    def _build_places(self):
        self.graph, self.vertex_index = build_places(self.vertices, self.tuning.max_degree)

    def _assign_exits(self):
        self.diagnostics.exits = ExitAssigner(self.graph, self.tuning).assign(
            self.connections, self.vertex_index
        )

    def _repair_connectivity(self):
        stats = ConnectivityRepair(self.graph, self.tuning).repair()
        self.diagnostics.repair = stats
        if stats.final_components > 1:
            self._warn(
                "Place graph left with multiple components",
                components=stats.final_components,
            )

    def _enhance_connectivity(self):
        self.diagnostics.enhancement = EcosystemConnectivityEnhancer(
            self.graph, self.rng, self.tuning
        ).enhance()

    def _optimize_layout(self):
        if len(self.vertices) <= self.tuning.layout_min_vertices:
            logger.info(
                "Layout skipped",
                vertices=len(self.vertices),
                threshold=self.tuning.layout_min_vertices,
            )
            return

        width, height = self.mapper.width, self.mapper.height
        layout_config = LayoutConfig.for_world(
            (width / 2, height / 2),
            math.hypot(width, height) / 2,
            len(self.vertices),
            self.config.spacing(),
        )
        layout = force_directed_layout(
            [v.position for v in self.vertices],
            self.graph.edges(),
            layout_config,
            bounds=self._band_boxes(),
        )

        self.vertices = [
            replace(vertex, x=float(x), y=float(y))
            for vertex, (x, y) in zip(self.vertices, layout.positions.tolist())
        ]
        for place, vertex in zip(self.graph.places, self.vertices):
            place.x, place.y = vertex.x, vertex.y
        reoriented = self.graph.reorient_exits()

        self.diagnostics.layout = LayoutStats(
            iterations=layout.iterations,
            converged=layout.converged,
            max_displacement=layout.max_displacement,
            exits_reoriented=reoriented,
        )
        logger.info("Exits reoriented after layout", moved=reoriented)

    def _band_boxes(self) -> List[Tuple[float, float, float, float]]:
        """Box of each vertex's own band, inset so band lookups stay stable at the edges."""
        bounds = self.mapper.band_bounds()
        inset = bounds[0].width * BAND_EDGE_INSET
        boxes = []
        for vertex in self.vertices:
            band = bounds[band_index(vertex.x, self.mapper.width, self.config.band_count)]
            boxes.append((band.min_x + inset, band.min_y, band.max_x - inset, band.max_y))
        return boxes


def generate_world(
    config: Union[WorldGenerationConfig, Dict[str, Any]],
    tuning: Optional[GenerationTuning] = None,
    cancel_check: Optional[Callable[[], bool]] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> WorldGenerationResult:
    """
    Generate a world in one call.

    Raises:
        pydantic.ValidationError: If the configuration is invalid
    """
    return WorldGenerator(config, tuning, cancel_check, progress_callback).generate()


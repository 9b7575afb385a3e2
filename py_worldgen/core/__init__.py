"""
Core world generation modules.
"""

from .lcg_prng import SeededRandom
from .directions import Direction, COMPASS_DIRECTIONS, OPPOSITE_DIRECTIONS, calculate_direction, opposite
from .models import (
    Vertex,
    Connection,
    Exit,
    Place,
    ConnectionStats,
    GenerationTuning,
    WorldGenerationConfig,
)
from .fractal_generators import (
    FractalGeneratorType,
    FractalSegment,
    FractalConfig,
    SparkingConfig,
    WorldConstraints,
    create_fractal_generator,
)
from .lichtenberg import LichtenbergGenerator, LichtenbergConfig
from .river_delta import RiverDeltaGenerator, RiverDeltaConfig
from .spatial_merge import MergeParameters, merge_projections, bridge_adjacent_bands
from .ecosystems import EcosystemBandMapper, determine_ecosystem
from .place_graph import PlaceGraph, ExitAssigner, build_places
from .connectivity import ConnectivityRepair, find_components, count_place_components
from .enhancement import EcosystemConnectivityEnhancer
from .layout import LayoutConfig, force_directed_layout
from .world_generator import (
    PipelineStage,
    WorldGenerator,
    WorldGenerationResult,
    GenerationDiagnostics,
    generate_world,
)

__all__ = [
    'SeededRandom',
    'Direction', 'COMPASS_DIRECTIONS', 'OPPOSITE_DIRECTIONS', 'calculate_direction', 'opposite',
    'Vertex', 'Connection', 'Exit', 'Place', 'ConnectionStats', 'GenerationTuning',
    'WorldGenerationConfig',
    'FractalGeneratorType', 'FractalSegment', 'FractalConfig', 'SparkingConfig',
    'WorldConstraints', 'create_fractal_generator',
    'LichtenbergGenerator', 'LichtenbergConfig', 'RiverDeltaGenerator', 'RiverDeltaConfig',
    'MergeParameters', 'merge_projections', 'bridge_adjacent_bands',
    'EcosystemBandMapper', 'determine_ecosystem',
    'PlaceGraph', 'ExitAssigner', 'build_places',
    'ConnectivityRepair', 'find_components', 'count_place_components',
    'EcosystemConnectivityEnhancer',
    'LayoutConfig', 'force_directed_layout',
    'PipelineStage', 'WorldGenerator', 'WorldGenerationResult', 'GenerationDiagnostics',
    'generate_world',
]

"""Tests for fractal branch generators."""

from collections import Counter

import pytest
from py_worldgen.core.fractal_generators import (
    FractalGenerator,
    FractalGeneratorType,
    SparkingConfig,
    WorldConstraints,
    create_fractal_generator,
)
from py_worldgen.core.lcg_prng import SeededRandom
from py_worldgen.core.lichtenberg import LichtenbergConfig, LichtenbergGenerator
from py_worldgen.core.river_delta import RiverDeltaConfig, RiverDeltaGenerator

DEFAULT_SEED = 1234
BOUNDS = WorldConstraints(0.0, 0.0, 1000.0, 1000.0)


def check_tree(segments, constraints):
    """Shared structural checks for a grown tree."""
    index = {s.id: s for s in segments}
    assert len(index) == len(segments)

    origin = segments[0]
    assert origin.parent_id is None
    assert origin.depth == 0

    for segment in segments[1:]:
        assert segment.parent_id in index
        assert segment.depth == index[segment.parent_id].depth + 1
        assert constraints.contains(segment.x, segment.y)


def children_per_segment(segments):
    """Number of children of every segment, zero included."""
    counts = Counter(s.parent_id for s in segments if s.parent_id is not None)
    return {s.id: counts[s.id] for s in segments}


class TestRegistry:
    """Test generator lookup."""

    def test_create_by_type(self):
        """Test that both registered patterns can be created."""
        assert isinstance(create_fractal_generator(FractalGeneratorType.RIVER_DELTA), RiverDeltaGenerator)
        assert isinstance(create_fractal_generator("lichtenberg"), LichtenbergGenerator)

    def test_unknown_type(self):
        """Test that unknown patterns are rejected."""
        with pytest.raises(ValueError):
            create_fractal_generator("spiral")

    def test_config_classes(self):
        """Test that each pattern carries its own config."""
        assert isinstance(RiverDeltaGenerator().default_config(), RiverDeltaConfig)
        assert isinstance(LichtenbergGenerator().default_config(), LichtenbergConfig)


class TestRiverDelta:
    """Test the river delta pattern."""

    @pytest.fixture
    def config(self):
        """Config sized for the test bounds."""
        return RiverDeltaConfig(segment_length=50.0, max_depth=40, max_segments=40)

    def grow(self, config, seed=DEFAULT_SEED):
        return RiverDeltaGenerator().generate(
            (0.0, 500.0), 0.0, config, SeededRandom(seed), BOUNDS, system_id="delta"
        )

    def test_depth_zero_yields_origin(self, config):
        """Test that depth 0 returns only the origin."""
        config.max_depth = 0
        segments = self.grow(config)

        assert len(segments) == 1
        assert segments[0].parent_id is None
        assert (segments[0].x, segments[0].y) == (0.0, 500.0)

    def test_reaches_quota(self, config):
        """Test that growth stops exactly at max_segments."""
        segments = self.grow(config)
        assert len(segments) == 40

    def test_tree_structure(self, config):
        """Test parent links, depths and bounds."""
        check_tree(self.grow(config), BOUNDS)

    def test_depth_limit(self, config):
        """Test that no segment exceeds max_depth."""
        config.max_depth = 3
        config.max_segments = 200
        segments = self.grow(config)
        assert max(s.depth for s in segments) <= 3

    def test_grows_eastward(self, config):
        """Test that the delta advances along the start direction."""
        segments = self.grow(config)
        assert max(s.x for s in segments) > 100.0

    def test_main_channel_reaches_mouth(self, config):
        """Test that the main channel ends near the far edge on the start line."""
        segments = self.grow(config)
        assert (980.0, 500.0) in [(s.x, s.y) for s in segments]

    def test_mouth_position(self, config):
        """Test that a configured mouth height is honoured."""
        config.mouth_y = 800.0
        segments = self.grow(config)
        assert (980.0, 800.0) in [(s.x, s.y) for s in segments]

    def test_short_quota_still_spans(self, config):
        """Test that a tiny quota lengthens the main channel steps instead of stopping short."""
        config.max_segments = 5
        segments = self.grow(config)

        assert len(segments) == 5
        assert (980.0, 500.0) in [(s.x, s.y) for s in segments]

    def test_deterministic(self, config):
        """Test that the same seed reproduces the same tree."""
        assert self.grow(config) == self.grow(config)

    def test_seed_changes_tree(self, config):
        """Test that different seeds give different trees."""
        assert self.grow(config, seed=1) != self.grow(config, seed=2)

    def test_segment_ids(self, config):
        """Test that ids carry the system prefix."""
        segments = self.grow(config)
        assert segments[0].id == "delta_segment_0"
        assert all(s.id.startswith("delta_segment_") for s in segments)


class TestLichtenberg:
    """Test the electrical discharge pattern."""

    @pytest.fixture
    def config(self):
        """Config with a 30x30 growth grid."""
        return LichtenbergConfig(segment_length=10.0, max_depth=100, max_segments=60)

    def grow(self, config, seed=DEFAULT_SEED):
        bounds = WorldConstraints(0.0, 0.0, 300.0, 300.0)
        return LichtenbergGenerator().generate(
            (0.0, 150.0), 0.0, config, SeededRandom(seed), bounds, system_id="spark"
        )

    def test_depth_zero_yields_origin(self, config):
        """Test that depth 0 returns only the origin."""
        config.max_depth = 0
        assert len(self.grow(config)) == 1

    def test_reaches_quota(self, config):
        """Test that growth stops exactly at max_segments."""
        assert len(self.grow(config)) == 60

    def test_tree_structure(self, config):
        """Test parent links, depths and bounds."""
        check_tree(self.grow(config), WorldConstraints(0.0, 0.0, 300.0, 300.0))

    def test_one_segment_per_cell(self, config):
        """Test that the discharge never revisits a grid cell."""
        segments = self.grow(config)
        cells = {(int(s.x // 10.0), int(s.y // 10.0)) for s in segments[1:]}
        assert len(cells) == len(segments) - 1

    def test_small_grid_runs_out(self):
        """Test that growth ends when the grid is full."""
        config = LichtenbergConfig(segment_length=10.0, max_depth=100, max_segments=500)
        bounds = WorldConstraints(0.0, 0.0, 30.0, 30.0)
        segments = LichtenbergGenerator().generate((0.0, 15.0), 0.0, config, SeededRandom(5), bounds)
        assert len(segments) <= 10

    def test_deterministic(self, config):
        """Test that the same seed reproduces the same tree."""
        assert self.grow(config) == self.grow(config)


class TestSparking:
    """Test forced branching at boundary points."""

    def test_crossing_detection(self):
        """Test detection of boundary crossings along x."""
        config = RiverDeltaConfig(sparking=SparkingConfig(boundary_points=(0.5,)))
        bounds = WorldConstraints(0.0, 0.0, 100.0, 100.0)

        assert FractalGenerator.crosses_spark_point(config, bounds, 40.0, 60.0)
        assert FractalGenerator.crosses_spark_point(config, bounds, 60.0, 40.0)
        assert not FractalGenerator.crosses_spark_point(config, bounds, 10.0, 20.0)

    def test_disabled(self):
        """Test that disabled sparking never fires."""
        config = RiverDeltaConfig(sparking=SparkingConfig(enabled=False))
        bounds = WorldConstraints(0.0, 0.0, 100.0, 100.0)
        assert not FractalGenerator.crosses_spark_point(config, bounds, 0.0, 100.0)

    def test_crossing_forces_distributaries(self):
        """Test that segments crossing a boundary point grow the extra branches."""
        bounds = WorldConstraints(0.0, 0.0, 10000.0, 10000.0)

        def grow(sparking):
            config = RiverDeltaConfig(
                segment_length=100.0,
                max_depth=1000,
                max_segments=1000,
                branching_factor=0.0,
                sparking=sparking,
            )
            return RiverDeltaGenerator().generate((0.0, 5000.0), 0.0, config, SeededRandom(3), bounds)

        sparking = SparkingConfig()
        sparked = grow(sparking)
        plain = grow(SparkingConfig(enabled=False))

        # Without sparking and branching only the main channel forks, into itself and one distributary
        assert max(children_per_segment(plain).values()) <= 2
        assert max(children_per_segment(sparked).values()) >= 2 + sparking.extra_branches

        index = {s.id: s for s in sparked}
        children = children_per_segment(sparked)
        crossings = [
            s
            for s in sparked[1: len(sparked) // 2]
            if FractalGenerator.crosses_spark_point(RiverDeltaConfig(), bounds, index[s.parent_id].x, s.x)
        ]
        assert crossings
        for segment in crossings:
            assert children[segment.id] >= 1 + sparking.extra_branches

    def test_lichtenberg_forced_discharges(self):
        """Test that the first cell past a boundary point is followed by its forced branches."""
        config = LichtenbergConfig(
            segment_length=10.0,
            max_depth=1000,
            max_segments=400,
            sparking=SparkingConfig(boundary_points=(0.5,), extra_branches=2),
        )
        bounds = WorldConstraints(0.0, 0.0, 300.0, 300.0)
        segments = LichtenbergGenerator().generate((0.0, 150.0), 0.0, config, SeededRandom(8), bounds)

        # Cells of column 15 start past x = 150, so the first one there is a fresh crossing
        first = next(k for k, s in enumerate(segments) if s.x > 150.0)

        assert segments[first + 1].parent_id == segments[first].id
        assert segments[first + 2].parent_id == segments[first].id


class TestValidation:
    """Test argument checks."""

    def test_rejects_empty_bounds(self):
        """Test that zero-area constraints raise."""
        with pytest.raises(ValueError):
            RiverDeltaGenerator().generate(
                (0, 0), 0.0, RiverDeltaConfig(), SeededRandom(1), WorldConstraints(0, 0, 0, 10)
            )

    def test_rejects_zero_segments(self):
        """Test that a zero quota raises."""
        with pytest.raises(ValueError):
            RiverDeltaGenerator().generate(
                (0, 0), 0.0, RiverDeltaConfig(max_segments=0), SeededRandom(1), BOUNDS
            )

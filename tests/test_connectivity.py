"""Tests for connectivity repair."""

import pytest
from py_worldgen.config.ecosystems import EcosystemName
from py_worldgen.core.connectivity import (
    ConnectivityRepair,
    count_place_components,
    find_components,
)
from py_worldgen.core.directions import COMPASS_DIRECTIONS, Direction, opposite
from py_worldgen.core.models import GenerationTuning, Vertex
from py_worldgen.core.place_graph import build_places


def pairs_graph(count, spacing=1000.0):
    """``count`` two-place components laid out on a grid."""
    vertices = []
    for k in range(count):
        x = (k % 10) * spacing
        y = (k // 10) * spacing
        vertices.append(Vertex(f"p{k}a", x, y, EcosystemName.GRASSLAND))
        vertices.append(Vertex(f"p{k}b", x + 100.0, y, EcosystemName.GRASSLAND))
    graph, _ = build_places(vertices)
    for k in range(count):
        graph.connect(2 * k, 2 * k + 1, Direction.EAST)
    return graph


def assert_valid_exits(graph):
    for i, place in enumerate(graph.places):
        assert graph.degree(i) <= 8
        assert set(place.exits) <= set(COMPASS_DIRECTIONS)
        for direction, exit_ in place.exits.items():
            target = graph.places[graph.index_of(exit_.to)]
            assert target.exits[opposite(direction)].to == place.id


class TestFindComponents:
    """Test component discovery."""

    def test_pairs(self):
        """Test that each pair is its own component."""
        components = find_components(pairs_graph(4))
        assert components == [[0, 1], [2, 3], [4, 5], [6, 7]]

    def test_count_place_components(self):
        """Test the id-based component count used on finished worlds."""
        graph = pairs_graph(3)
        assert count_place_components(graph.places) == 3

        graph.connect(1, 2, Direction.NORTHEAST)
        assert count_place_components(graph.places) == 2
        assert count_place_components([]) == 0


class TestConnectivityRepair:
    """Test component bridging."""

    def test_already_connected(self):
        """Test that a connected graph is left alone."""
        graph = pairs_graph(1)
        stats = ConnectivityRepair(graph).repair()

        assert stats.initial_components == 1
        assert stats.final_components == 1
        assert stats.iterations == 0
        assert stats.bridges == 0

    def test_bridges_few_components(self):
        """Test that a handful of components are bridged to the anchor."""
        graph = pairs_graph(12)
        stats = ConnectivityRepair(graph).repair()

        assert stats.initial_components == 12
        assert stats.final_components == 1
        assert not stats.star_topology
        assert len(find_components(graph)) == 1
        assert_valid_exits(graph)

    def test_star_topology_for_many_components(self):
        """Test that sixty components end as one through the star strategy."""
        graph = pairs_graph(60)
        stats = ConnectivityRepair(graph).repair()

        assert stats.initial_components == 60
        assert stats.star_topology
        assert stats.final_components == 1
        assert count_place_components(graph.places) == 1
        assert_valid_exits(graph)

    def test_isolated_places(self):
        """Test that places without any exits get attached."""
        vertices = [Vertex(f"v{n}", n * 50.0, 0.0, EcosystemName.FOREST) for n in range(7)]
        graph, _ = build_places(vertices)

        stats = ConnectivityRepair(graph).repair()

        assert stats.final_components == 1
        assert all(graph.degree(i) >= 1 for i in range(len(graph)))

    def test_frees_exits_on_saturated_places(self):
        """Test that a fully used place is attached by freeing a redundant exit."""
        # A ring of eight around a hub; every hub slot and ring edge is used
        vertices = [Vertex("hub", 0.0, 0.0, EcosystemName.MOUNTAIN)]
        for n in range(8):
            vertices.append(Vertex(f"r{n}", 100.0 * n, 100.0, EcosystemName.MOUNTAIN))
        vertices.append(Vertex("lonely", 5000.0, 5000.0, EcosystemName.MOUNTAIN))
        graph, _ = build_places(vertices)

        for n, direction in enumerate(COMPASS_DIRECTIONS):
            graph.connect(0, n + 1, direction)
        for n in range(8):
            a, b = n + 1, (n + 1) % 8 + 1
            graph.connect_direct(a, b)

        tuning = GenerationTuning(repair_candidates=1)
        repair = ConnectivityRepair(graph, tuning)
        repair._force_connect(0, 9)

        assert graph.are_connected(0, 9)
        assert graph.degree(0) == 8
        assert repair.stats.exits_freed >= 1
        assert len(find_components(graph)) == 1
        assert_valid_exits(graph)

    def test_force_connect_respects_max_degree(self):
        """Test that a place at a lowered cap gives up an exit before gaining one."""
        vertices = [
            Vertex("hub", 0.0, 0.0, EcosystemName.FOREST),
            Vertex("north", 0.0, -100.0, EcosystemName.FOREST),
            Vertex("south", 0.0, 100.0, EcosystemName.FOREST),
            Vertex("west", -100.0, 0.0, EcosystemName.FOREST),
            Vertex("far", 1000.0, 0.0, EcosystemName.FOREST),
        ]
        graph, _ = build_places(vertices, max_degree=3)
        graph.connect(0, 1, Direction.NORTH)
        graph.connect(0, 2, Direction.SOUTH)
        graph.connect(0, 3, Direction.WEST)
        graph.connect(1, 3, Direction.SOUTHWEST)

        repair = ConnectivityRepair(graph, GenerationTuning(max_degree=3))
        repair._force_connect(0, 4)

        assert graph.adjacency[0][Direction.EAST] == 4
        assert graph.degree(0) == 3
        assert not graph.are_connected(0, 1)
        assert repair.stats.exits_freed == 1
        assert len(find_components(graph)) == 1
        assert_valid_exits(graph)

    def test_iteration_cap(self):
        """Test that a zero round budget leaves components unbridged."""
        graph = pairs_graph(3)
        stats = ConnectivityRepair(graph, GenerationTuning(repair_max_iterations=0)).repair()

        assert stats.initial_components == 3
        assert stats.final_components == 3
        assert stats.bridges == 0

    @pytest.mark.parametrize("threshold", [1, 50])
    def test_strategy_threshold(self, threshold):
        """Test that the star strategy engages only above the threshold."""
        graph = pairs_graph(5)
        tuning = GenerationTuning(star_topology_threshold=threshold)
        stats = ConnectivityRepair(graph, tuning).repair()

        assert stats.star_topology == (threshold < 5)
        assert stats.final_components == 1

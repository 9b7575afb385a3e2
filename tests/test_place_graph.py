"""Tests for places and exit assignment."""

import math

import pytest
from py_worldgen.config.ecosystems import PLACE_DESCRIPTIONS, EcosystemName
from py_worldgen.core.directions import COMPASS_DIRECTIONS, Direction, opposite
from py_worldgen.core.models import Connection, GenerationTuning, Vertex
from py_worldgen.core.place_graph import ExitAssigner, PlaceGraph, build_places


def make_graph(points, ecosystem=EcosystemName.STEPPE):
    """Build a graph from (id, x, y) tuples."""
    vertices = [Vertex(vid, x, y, ecosystem) for vid, x, y in points]
    return build_places(vertices)


def fill_except(graph, i, keep, prefix_start):
    """Occupy every compass slot of place i except ``keep`` with far-away fillers."""
    n = prefix_start
    for direction in COMPASS_DIRECTIONS:
        if direction == keep:
            continue
        j = graph.index_of(f"flux:place:steppe:f{n}")
        graph.connect(i, j, direction)
        n += 1
    return n


def assert_reciprocal(graph):
    for place in graph.places:
        for direction, exit_ in place.exits.items():
            target = graph.places[graph.index_of(exit_.to)]
            assert target.exits[opposite(direction)].to == place.id


class TestBuildPlaces:
    """Test vertex to place conversion."""

    def test_ids_and_names(self):
        """Test place ids, names and descriptions."""
        graph, index = make_graph([("v0", 0, 0), ("v1", 10, 0)])

        assert len(graph) == 2
        assert graph.places[0].id == "flux:place:steppe:v0"
        assert graph.places[1].name == "Steppe Crossing 2"
        assert graph.places[0].description in PLACE_DESCRIPTIONS[EcosystemName.STEPPE]
        assert index == {"v0": 0, "v1": 1}

    def test_ecology_attached(self):
        """Test that each place carries its climate envelope."""
        graph, _ = make_graph([("v0", 0, 0)], EcosystemName.MOUNTAIN)
        assert graph.places[0].ecosystem == EcosystemName.MOUNTAIN
        assert graph.places[0].ecology.pressure[1] < 1000.0

    def test_duplicate_id(self):
        """Test that duplicate place ids are rejected."""
        graph, _ = make_graph([("v0", 0, 0)])
        with pytest.raises(ValueError):
            graph.add_place(graph.places[0])


class TestPlaceGraph:
    """Test exit slots."""

    @pytest.fixture
    def graph(self):
        graph, _ = make_graph([("a", 0, 0), ("b", 100, 0), ("c", 0, 100)])
        return graph

    def test_connect_is_reciprocal(self, graph):
        """Test that one connect call creates both exits."""
        graph.connect(0, 1, Direction.EAST)

        a, b = graph.places[0], graph.places[1]
        assert a.exits[Direction.EAST].to == b.id
        assert b.exits[Direction.WEST].to == a.id
        assert a.exits[Direction.EAST].label == f"To {b.name}"
        assert graph.connection_stats().total == 2
        assert graph.connection_stats().reciprocal == 2

    def test_used_slot_rejected(self, graph):
        """Test that a direction cannot be used twice."""
        graph.connect(0, 1, Direction.EAST)
        with pytest.raises(ValueError):
            graph.connect(0, 2, Direction.EAST)

    def test_find_slot_follows_bearing(self, graph):
        """Test that the slot closest to the bearing is preferred."""
        assert graph.find_slot(0, 1) == Direction.EAST
        assert graph.find_slot(0, 2) == Direction.SOUTH

    def test_find_slot_falls_back(self, graph):
        """Test that a taken slot moves to the next closest direction."""
        graph.connect(0, 2, Direction.EAST)
        assert graph.find_slot(0, 1) in (Direction.NORTHEAST, Direction.SOUTHEAST)

    def test_find_slot_respects_cap(self, graph):
        """Test that a full place offers no slot."""
        graph.connect(0, 1, Direction.EAST)
        assert graph.find_slot(0, 2, cap=1) is None
        assert graph.find_slot(0, 0) is None

    def test_disconnect(self, graph):
        """Test that removing an exit removes its reverse."""
        graph.connect(0, 1, Direction.EAST)
        assert graph.disconnect(0, Direction.EAST) == 1
        assert graph.degree(0) == 0
        assert graph.degree(1) == 0
        assert graph.disconnect(0, Direction.EAST) is None

    def test_edges_and_degree(self, graph):
        """Test undirected edge listing."""
        graph.connect(0, 1, Direction.EAST)
        graph.connect(0, 2, Direction.SOUTH)

        assert sorted(graph.edges()) == [(0, 1), (0, 2)]
        assert graph.neighbors(0) == [1, 2]
        assert graph.average_degree() == pytest.approx(4 / 3)

    def test_reorient_exits(self, graph):
        """Test that an exit moves to the slot matching its bearing."""
        graph.connect(0, 2, Direction.EAST)

        assert graph.reorient_exits() == 1
        assert graph.adjacency[0] == {Direction.SOUTH: 2}
        assert graph.places[2].exits[Direction.NORTH].to == graph.places[0].id
        assert Direction.EAST not in graph.places[0].exits
        assert graph.reorient_exits() == 0
        assert_reciprocal(graph)

    def test_reorient_keeps_aligned_exits(self, graph):
        """Test that exits already on their bearing are left alone."""
        graph.connect(0, 1, Direction.EAST)
        graph.connect(0, 2, Direction.SOUTH)

        assert graph.reorient_exits() == 0
        assert sorted(graph.edges()) == [(0, 1), (0, 2)]


class TestExitAssigner:
    """Test two-phase exit assignment."""

    def test_phase_one_and_transitions(self):
        """Test that transition edges are counted and zero-degree places linked first."""
        graph, index = make_graph([("a", 0, 0), ("b", 100, 0), ("c", 200, 0)])
        connections = [
            Connection("a", "b", 100.0),
            Connection("b", "c", 100.0, ecosystem_transition=(EcosystemName.STEPPE, EcosystemName.GRASSLAND)),
        ]

        stats = ExitAssigner(graph).assign(connections, index)

        assert stats.edges == 2
        assert stats.transition_edges == 1
        assert stats.phase1_edges == 2
        assert stats.direct == 2
        assert graph.places[1].exits[Direction.EAST].to == graph.places[2].id
        assert_reciprocal(graph)

    def test_deduplicates(self):
        """Test that reverse and repeated connections become one edge."""
        graph, index = make_graph([("a", 0, 0), ("b", 100, 0)])
        connections = [Connection("a", "b", 100.0), Connection("b", "a", 100.0, artificial=True)]

        stats = ExitAssigner(graph).assign(connections, index)

        assert stats.edges == 1
        assert graph.degree(0) == 1

    def test_missing_reference(self):
        """Test that connections to unknown vertices are counted and skipped."""
        graph, index = make_graph([("a", 0, 0)])
        stats = ExitAssigner(graph).assign([Connection("a", "ghost", 1.0)], index)

        assert stats.missing_references == 1
        assert stats.edges == 0

    def test_hub_overflow_uses_relays(self):
        """Test that a star with more leaves than slots still links every leaf."""
        points = [("hub", 0.0, 0.0)]
        for n in range(10):
            angle = math.radians(36 * n)
            points.append((f"leaf{n}", 100 * math.cos(angle), 100 * math.sin(angle)))
        graph, index = make_graph(points)
        connections = [Connection("hub", f"leaf{n}", 100.0) for n in range(10)]

        stats = ExitAssigner(graph).assign(connections, index)

        assert graph.degree(0) == 8
        assert stats.direct == 8
        assert stats.relayed == 2
        assert stats.skipped == 0
        assert all(graph.degree(i) >= 1 for i in range(1, 11))
        assert max(graph.degree(i) for i in range(len(graph))) <= 8
        assert_reciprocal(graph)

    def test_relay_when_slots_misaligned(self):
        """Test relaying when no free direction pair lines up."""
        points = [("i", 0, 0), ("j", 100, 0), ("r", 50, 50)]
        points += [(f"f{n}", 5000.0 + n, 5000.0) for n in range(8)]
        graph, index = make_graph(points)
        i, j, r = 0, 1, 2
        next_filler = fill_except(graph, i, Direction.SOUTHEAST, 0)
        graph.connect(j, graph.index_of(f"flux:place:steppe:f{next_filler}"), Direction.NORTHWEST)

        assigner = ExitAssigner(graph, GenerationTuning(fill_degree_cap=8))
        stats = assigner.assign([Connection("i", "j", 100.0)], index)

        assert stats.relayed == 1
        assert graph.are_connected(i, r)
        assert graph.are_connected(r, j)
        assert not graph.are_connected(i, j)

    def test_relay_rolls_back(self):
        """Test that a half-built relay is undone."""
        points = [("i", 0, 0), ("j", 100, 0), ("r", 50, 50)]
        points += [(f"f{n}", 5000.0 + n, 5000.0) for n in range(14)]
        graph, _ = make_graph(points)
        i, j, r = 0, 1, 2
        n = fill_except(graph, i, Direction.SOUTHEAST, 0)
        fill_except(graph, r, Direction.NORTHWEST, n)

        assigner = ExitAssigner(graph, GenerationTuning(fill_degree_cap=8))

        assert not assigner._try_relay(i, r, j, 8)
        assert graph.degree(i) == 7
        assert graph.degree(r) == 7
        assert not graph.are_connected(i, r)

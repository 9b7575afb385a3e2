"""
Place graph and two-phase exit assignment.

Vertices become places; connections become directional exits. A place
has at most one exit per compass direction, and exits always come in
reciprocal pairs: ``A --d--> B`` implies ``B --opposite(d)--> A``.

Exit assignment runs in two phases over the deduplicated edge list,
ecosystem-transition edges first:

1. Minimum degree: edges touching a place with no exits yet are placed
   directly, or through a relay place when no direction pair is free.
2. Capacity fill: every remaining edge is placed the same way, up to the
   fill degree cap.

Edges that fit neither way are skipped and counted.
"""

import math
import zlib
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import structlog

from ..config.ecosystems import (
    ECOSYSTEM_PROFILES,
    PLACE_DESCRIPTIONS,
    PLACE_NAMES,
    EcosystemName,
)
from .directions import COMPASS_DIRECTIONS, Direction, directions_by_bearing, opposite
from .models import Connection, ConnectionStats, Exit, GenerationTuning, Place, Vertex

logger = structlog.get_logger()


class PlaceGraph:
    """
    Places plus an index-based adjacency table.

    ``adjacency[i]`` maps each used direction of place ``i`` to the index
    of the place it leads to. ``Place.exits`` is kept in step with it.
    """

    def __init__(self, max_degree: int = 8):
        self.max_degree = min(max_degree, len(COMPASS_DIRECTIONS))
        self.places: List[Place] = []
        self.adjacency: List[Dict[Direction, int]] = []
        self._index: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self.places)

    def add_place(self, place: Place) -> int:
        """Append a place and return its index."""
        if place.id in self._index:
            raise ValueError(f"Duplicate place id: {place.id}")
        self._index[place.id] = len(self.places)
        self.places.append(place)
        self.adjacency.append({})
        return len(self.places) - 1

    def index_of(self, place_id: str) -> Optional[int]:
        return self._index.get(place_id)

    def position(self, i: int) -> Tuple[float, float]:
        return (self.places[i].x, self.places[i].y)

    def ecosystem(self, i: int) -> EcosystemName:
        return self.places[i].ecosystem

    def distance(self, i: int, j: int) -> float:
        a, b = self.places[i], self.places[j]
        return math.hypot(a.x - b.x, a.y - b.y)

    def degree(self, i: int) -> int:
        return len(self.adjacency[i])

    def neighbors(self, i: int) -> List[int]:
        """Neighbour indices in compass order."""
        exits = self.adjacency[i]
        return [exits[d] for d in COMPASS_DIRECTIONS if d in exits]

    def are_connected(self, i: int, j: int) -> bool:
        return j in self.adjacency[i].values()

    def find_slot(self, i: int, j: int, cap: Optional[int] = None) -> Optional[Direction]:
        """
        Direction free at i whose opposite is free at j.

        Directions are tried in order of closeness to the bearing from i
        to j. Returns None when either place is at the cap or no pair of
        slots lines up.
        """
        cap = self.max_degree if cap is None else min(cap, self.max_degree)
        if i == j or self.degree(i) >= cap or self.degree(j) >= cap:
            return None

        used_i, used_j = self.adjacency[i], self.adjacency[j]
        for direction in directions_by_bearing(self.position(i), self.position(j)):
            if direction not in used_i and opposite(direction) not in used_j:
                return direction
        return None

    def connect(self, i: int, j: int, direction: Direction):
        """Create the reciprocal exit pair i --direction--> j."""
        back = opposite(direction)
        if direction in self.adjacency[i] or back in self.adjacency[j]:
            raise ValueError(f"Exit slot already used: {direction.value} between {i} and {j}")

        self.adjacency[i][direction] = j
        self.adjacency[j][back] = i

        a, b = self.places[i], self.places[j]
        a.exits[direction] = Exit(direction=direction, label=f"To {b.name}", to=b.id)
        b.exits[back] = Exit(direction=back, label=f"To {a.name}", to=a.id)

    def connect_direct(self, i: int, j: int, cap: Optional[int] = None) -> bool:
        """Connect i and j through any free slot pair; False if none exists."""
        direction = self.find_slot(i, j, cap)
        if direction is None:
            return False
        self.connect(i, j, direction)
        return True

    def disconnect(self, i: int, direction: Direction) -> Optional[int]:
        """Remove the exit pair leaving i in a direction; returns the former neighbour."""
        j = self.adjacency[i].pop(direction, None)
        if j is None:
            return None
        back = opposite(direction)
        self.adjacency[j].pop(back, None)
        self.places[i].exits.pop(direction, None)
        self.places[j].exits.pop(back, None)
        return j

    def reorient_exits(self) -> int:
        """
        Move exits to directions closer to their current bearing.

        An exit ``i --d--> j`` moves to a better-ranked direction when that
        slot is free at i and its opposite is free at j, ranking from the
        lower-index end of each edge. Passes repeat until nothing moves, so
        no edge is left with a free better-ranked slot pair. Edges are never
        added or removed.

        Returns:
            Number of exit pairs moved
        """
        moved = 0
        changed = True
        while changed:
            changed = False
            for i in range(len(self.places)):
                for direction in [d for d in COMPASS_DIRECTIONS if d in self.adjacency[i]]:
                    j = self.adjacency[i].get(direction)
                    if j is None or j < i:
                        continue
                    for better in directions_by_bearing(self.position(i), self.position(j)):
                        if better == direction:
                            break
                        if better not in self.adjacency[i] and opposite(better) not in self.adjacency[j]:
                            self.disconnect(i, direction)
                            self.connect(i, j, better)
                            moved += 1
                            changed = True
                            break
        return moved

    def edges(self) -> List[Tuple[int, int]]:
        """Undirected edges as (lower, higher) index pairs."""
        result = []
        for i, exits in enumerate(self.adjacency):
            for direction in COMPASS_DIRECTIONS:
                j = exits.get(direction)
                if j is not None and i < j:
                    result.append((i, j))
        return result

    def average_degree(self) -> float:
        if not self.places:
            return 0.0
        return sum(len(exits) for exits in self.adjacency) / len(self.places)

    def connection_stats(self) -> ConnectionStats:
        """Count directed exits and those with a matching reverse exit."""
        total = 0
        reciprocal = 0
        for place in self.places:
            for direction, exit_ in place.exits.items():
                total += 1
                target = self.index_of(exit_.to)
                if target is None:
                    continue
                back = self.places[target].exits.get(opposite(direction))
                if back is not None and back.to == place.id:
                    reciprocal += 1
        return ConnectionStats(total=total, reciprocal=reciprocal)


def place_id_for(vertex: Vertex) -> str:
    return f"flux:place:{vertex.ecosystem.biome}:{vertex.id}"


def build_places(vertices: Sequence[Vertex], max_degree: int = 8) -> Tuple[PlaceGraph, Dict[str, int]]:
    """
    Create one place per vertex.

    Args:
        vertices: Vertices with ecosystems assigned
        max_degree: Exit cap of the graph

    Returns:
        The place graph and a vertex id to place index map
    """
    graph = PlaceGraph(max_degree)
    vertex_index: Dict[str, int] = {}

    for n, vertex in enumerate(vertices):
        ecosystem = vertex.ecosystem
        descriptions = PLACE_DESCRIPTIONS[ecosystem]
        place = Place(
            id=place_id_for(vertex),
            name=f"{PLACE_NAMES[ecosystem]} {n + 1}",
            description=descriptions[zlib.crc32(vertex.id.encode("utf-8")) % len(descriptions)],
            ecology=ECOSYSTEM_PROFILES[ecosystem],
            x=vertex.x,
            y=vertex.y,
        )
        vertex_index[vertex.id] = graph.add_place(place)

    logger.info("Places built", places=len(graph))
    return graph, vertex_index


@dataclass
class ExitAssignmentStats:
    """Outcome counts of exit assignment."""

    edges: int = 0
    transition_edges: int = 0
    phase1_edges: int = 0
    phase2_edges: int = 0
    direct: int = 0
    relayed: int = 0
    already_connected: int = 0
    skipped: int = 0
    missing_references: int = 0


class ExitAssigner:
    """Turns merged connections into reciprocal exits."""

    def __init__(self, graph: PlaceGraph, tuning: Optional[GenerationTuning] = None):
        self.graph = graph
        self.tuning = tuning or GenerationTuning()
        self.stats = ExitAssignmentStats()

    def assign(self, connections: Sequence[Connection], vertex_index: Dict[str, int]) -> ExitAssignmentStats:
        """
        Run both phases over the connection list.

        Args:
            connections: Growth, merge and bridge connections
            vertex_index: Vertex id to place index

        Returns:
            Assignment statistics
        """
        edges = self._collect_edges(connections, vertex_index)
        # Stable sort keeps generation order within each group
        edges.sort(key=lambda edge: 0 if edge[2] else 1)

        handled = [False] * len(edges)

        pools = self._relay_pools()
        for k, (i, j, _) in enumerate(edges):
            if self.graph.degree(i) == 0 or self.graph.degree(j) == 0:
                handled[k] = True
                self.stats.phase1_edges += 1
                self._place_edge(i, j, self.tuning.max_degree, pools)

        pools = self._relay_pools()
        for k, (i, j, _) in enumerate(edges):
            if handled[k]:
                continue
            self.stats.phase2_edges += 1
            self._place_edge(i, j, self.tuning.fill_degree_cap, pools)

        logger.info(
            "Exits assigned",
            edges=self.stats.edges,
            direct=self.stats.direct,
            relayed=self.stats.relayed,
            skipped=self.stats.skipped,
            missing_references=self.stats.missing_references,
        )
        return self.stats

    def _collect_edges(
        self, connections: Sequence[Connection], vertex_index: Dict[str, int]
    ) -> List[Tuple[int, int, bool]]:
        """Deduplicate connections into undirected (i, j, is_transition) edges."""
        position: Dict[Tuple[int, int], int] = {}
        edges: List[Tuple[int, int, bool]] = []

        for connection in connections:
            i = vertex_index.get(connection.from_id)
            j = vertex_index.get(connection.to_id)
            if i is None or j is None:
                self.stats.missing_references += 1
                logger.debug(
                    "Connection references unknown vertex",
                    from_id=connection.from_id,
                    to_id=connection.to_id,
                )
                continue
            if i == j:
                continue

            transition = connection.ecosystem_transition is not None
            key = (min(i, j), max(i, j))
            if key in position:
                if transition and not edges[position[key]][2]:
                    a, b, _ = edges[position[key]]
                    edges[position[key]] = (a, b, True)
                continue
            position[key] = len(edges)
            edges.append((i, j, transition))

        self.stats.edges = len(edges)
        self.stats.transition_edges = sum(1 for edge in edges if edge[2])
        return edges

    def _relay_pools(self) -> Dict[EcosystemName, List[int]]:
        """Lowest-degree places of each ecosystem that can still take two exits."""
        by_ecosystem: Dict[EcosystemName, List[int]] = {}
        for i in range(len(self.graph)):
            if self.graph.degree(i) <= self.tuning.max_degree - 2:
                by_ecosystem.setdefault(self.graph.ecosystem(i), []).append(i)

        return {
            ecosystem: sorted(members, key=lambda i: (self.graph.degree(i), i))[: self.tuning.relay_pool_size]
            for ecosystem, members in by_ecosystem.items()
        }

    def _place_edge(self, i: int, j: int, cap: int, pools: Dict[EcosystemName, List[int]]):
        if self.graph.are_connected(i, j):
            self.stats.already_connected += 1
            return

        if self.graph.connect_direct(i, j, cap):
            self.stats.direct += 1
            return

        if self._connect_via_relay(i, j, cap, pools):
            self.stats.relayed += 1
            return

        self.stats.skipped += 1

    def _connect_via_relay(self, i: int, j: int, cap: int, pools: Dict[EcosystemName, List[int]]) -> bool:
        """Link i and j through an intermediate place: i <-> relay <-> j."""
        candidates = list(pools.get(self.graph.ecosystem(i), []))
        for r in pools.get(self.graph.ecosystem(j), []):
            if r not in candidates:
                candidates.append(r)

        mid_x = (self.graph.places[i].x + self.graph.places[j].x) / 2
        mid_y = (self.graph.places[i].y + self.graph.places[j].y) / 2
        candidates = [r for r in candidates if r != i and r != j and self.graph.degree(r) <= cap - 2]
        candidates.sort(
            key=lambda r: (math.hypot(self.graph.places[r].x - mid_x, self.graph.places[r].y - mid_y), r)
        )

        for r in candidates[: self.tuning.relay_candidates]:
            if self._try_relay(i, r, j, cap):
                return True
        return False

    def _try_relay(self, i: int, r: int, j: int, cap: int) -> bool:
        added = None
        if not self.graph.are_connected(i, r):
            first = self.graph.find_slot(i, r, cap)
            if first is None:
                return False
            self.graph.connect(i, r, first)
            added = first

        if not self.graph.are_connected(r, j):
            second = self.graph.find_slot(r, j, cap)
            if second is None:
                if added is not None:
                    self.graph.disconnect(i, added)
                return False
            self.graph.connect(r, j, second)

        return True

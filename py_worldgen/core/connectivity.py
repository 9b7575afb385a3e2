"""
Connectivity repair for the place graph.

After exit assignment some places may be unreachable from others. Repair
runs in rounds: find connected components, take the largest as anchor and
bridge every other component to it with one reciprocal exit. Heavily
fragmented graphs use a star topology against a fixed pool of anchor
places instead. When no free direction pair exists between the chosen
places, an existing exit is removed to make room, preferring exits that
lie on a cycle.
"""

from collections import deque
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import structlog

from .directions import COMPASS_DIRECTIONS, Direction, directions_by_bearing, opposite
from .models import GenerationTuning, Place
from .place_graph import PlaceGraph

logger = structlog.get_logger()

# Places explored when checking whether an exit lies on a cycle
REDUNDANCY_SEARCH_LIMIT = 512

# Candidates per component tried in star topology rounds
STAR_COMPONENT_CANDIDATES = 2


def find_components(graph: PlaceGraph) -> List[List[int]]:
    """
    Connected components of the place graph.

    Exits are treated as undirected adjacency. Components are listed in
    order of their lowest place index, members in BFS discovery order.
    """
    seen = [False] * len(graph)
    components = []

    for start in range(len(graph)):
        if seen[start]:
            continue
        seen[start] = True
        component = [start]
        queue = deque([start])
        while queue:
            current = queue.popleft()
            for neighbor in graph.neighbors(current):
                if not seen[neighbor]:
                    seen[neighbor] = True
                    component.append(neighbor)
                    queue.append(neighbor)
        components.append(component)

    return components


@dataclass
class RepairStats:
    """Outcome of connectivity repair."""

    initial_components: int = 0
    final_components: int = 0
    iterations: int = 0
    bridges: int = 0
    exits_freed: int = 0
    star_topology: bool = False


class ConnectivityRepair:
    """Bridges components until the place graph is connected."""

    def __init__(self, graph: PlaceGraph, tuning: Optional[GenerationTuning] = None):
        self.graph = graph
        self.tuning = tuning or GenerationTuning()
        self.stats = RepairStats()

    def repair(self) -> RepairStats:
        """
        Bridge components until one remains or the round budget runs out.

        Returns:
            Repair statistics; ``final_components`` above 1 means the
            budget was exhausted
        """
        components = find_components(self.graph)
        self.stats.initial_components = len(components)

        while len(components) > 1 and self.stats.iterations < self.tuning.repair_max_iterations:
            self.stats.iterations += 1

            anchor_position = max(range(len(components)), key=lambda k: (len(components[k]), -k))
            anchor = components[anchor_position]
            others = [c for k, c in enumerate(components) if k != anchor_position]

            if len(components) > self.tuning.star_topology_threshold:
                self.stats.star_topology = True
                self._star_round(anchor, others)
            else:
                self._bridge_round(anchor, others)

            components = find_components(self.graph)
            logger.debug(
                "Repair round finished",
                iteration=self.stats.iterations,
                components=len(components),
            )

        self.stats.final_components = len(components)

        if len(components) > 1:
            logger.warning(
                "Connectivity repair hit its iteration cap",
                components=len(components),
                iterations=self.stats.iterations,
            )
        else:
            logger.info(
                "Connectivity repaired",
                initial_components=self.stats.initial_components,
                bridges=self.stats.bridges,
                exits_freed=self.stats.exits_freed,
                iterations=self.stats.iterations,
            )
        return self.stats

    def _centroid(self, members: Sequence[int]) -> Tuple[float, float]:
        places = self.graph.places
        return (
            sum(places[i].x for i in members) / len(members),
            sum(places[i].y for i in members) / len(members),
        )

    def _candidates(self, members: Sequence[int], toward: Tuple[float, float]) -> List[int]:
        """Members below the fill cap first, then nearest to a point."""
        places = self.graph.places
        cap = self.tuning.fill_degree_cap

        def key(i: int):
            dx = places[i].x - toward[0]
            dy = places[i].y - toward[1]
            return (self.graph.degree(i) >= cap, dx * dx + dy * dy, i)

        return sorted(members, key=key)[: self.tuning.repair_candidates]

    def _bridge_round(self, anchor: List[int], others: List[List[int]]):
        anchor_members = list(anchor)
        for component in others:
            self._bridge(component, anchor_members)
            anchor_members.extend(component)

    def _bridge(self, component: List[int], anchor_members: List[int]):
        """Attach a component to the anchor with one exit pair."""
        component_candidates = self._candidates(component, self._centroid(anchor_members))
        anchor_candidates = self._candidates(anchor_members, self._centroid(component))

        for c in component_candidates:
            for a in anchor_candidates:
                direction = self.graph.find_slot(c, a)
                if direction is not None:
                    self.graph.connect(c, a, direction)
                    self.stats.bridges += 1
                    return

        self._force_connect(component_candidates[0], anchor_candidates[0])
        self.stats.bridges += 1

    def _star_round(self, anchor: List[int], others: List[List[int]]):
        """Attach every component to a pool of low-degree anchor places."""
        pool_size = max(self.tuning.repair_candidates, 2 * len(others))
        pool = sorted(anchor, key=lambda i: (self.graph.degree(i), i))[:pool_size]

        for component in others:
            candidates = sorted(component, key=lambda i: (self.graph.degree(i), i))
            linked = False
            for c in candidates[:STAR_COMPONENT_CANDIDATES]:
                for a in pool:
                    direction = self.graph.find_slot(c, a)
                    if direction is not None:
                        self.graph.connect(c, a, direction)
                        self.stats.bridges += 1
                        linked = True
                        break
                if linked:
                    break
            # Unlinked components are retried in the next round

    def _force_connect(self, c: int, a: int):
        """
        Connect two places by removing the exits that block a direction pair.

        The direction closest to the bearing whose blocking exits all lie on
        cycles is chosen; otherwise the one needing the fewest removals. A
        place already at the degree cap also gives up one exit when the
        chosen slot is free, so the cap holds after the bridge.
        """
        best = None
        for direction in directions_by_bearing(self.graph.position(c), self.graph.position(a)):
            blockers: List[Tuple[int, Direction]] = []
            for place, slot in ((c, direction), (a, opposite(direction))):
                if slot in self.graph.adjacency[place]:
                    blockers.append((place, slot))
                elif self.graph.adjacency[place] and self.graph.degree(place) >= self.graph.max_degree:
                    blockers.append((place, self._spare_exit(place)))

            on_cycle = all(self._is_redundant(place, d) for place, d in blockers)
            score = (not on_cycle, len(blockers))
            if best is None or score < best[0]:
                best = (score, direction, blockers)

        _, direction, blockers = best
        for place, d in blockers:
            self.graph.disconnect(place, d)
            self.stats.exits_freed += 1

        self.graph.connect(c, a, direction)
        logger.debug("Freed exit slots for bridge", place=c, anchor=a, freed=len(blockers))

    def _spare_exit(self, place: int) -> Direction:
        """Exit of a capped place to drop: the first on a cycle, else the first in compass order."""
        used = [d for d in COMPASS_DIRECTIONS if d in self.graph.adjacency[place]]
        for direction in used:
            if self._is_redundant(place, direction):
                return direction
        return used[0]

    def _is_redundant(self, place: int, direction: Direction) -> bool:
        """True if the exit's endpoints stay connected without it."""
        target = self.graph.adjacency[place][direction]
        seen = {place}
        queue = deque([place])

        while queue and len(seen) < REDUNDANCY_SEARCH_LIMIT:
            current = queue.popleft()
            for neighbor in self.graph.neighbors(current):
                if current == place and neighbor == target:
                    continue
                if neighbor == target:
                    return True
                if neighbor not in seen:
                    seen.add(neighbor)
                    queue.append(neighbor)

        return False


def count_place_components(places: Sequence[Place]) -> int:
    """Connected components among places, following exits by target id."""
    index = {place.id: n for n, place in enumerate(places)}
    adjacency: List[List[int]] = [[] for _ in places]
    for n, place in enumerate(places):
        for exit_ in place.exits.values():
            m = index.get(exit_.to)
            if m is not None:
                adjacency[n].append(m)
                adjacency[m].append(n)

    seen = [False] * len(places)
    components = 0
    for start in range(len(places)):
        if seen[start]:
            continue
        components += 1
        seen[start] = True
        queue = deque([start])
        while queue:
            current = queue.popleft()
            for neighbor in adjacency[current]:
                if not seen[neighbor]:
                    seen[neighbor] = True
                    queue.append(neighbor)
    return components

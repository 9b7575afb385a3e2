"""
Ecosystem-tuned connectivity enhancement.

Fractal growth leaves a sparse graph with an average degree just under 2.
Each ecosystem declares a target average degree and a graph-hop radius;
places below their target gain a few new exits to places found within
that radius, from the same ecosystem or a small random sample of
adjacent ecosystems. Existing exits are never removed.

An ecosystem stops gaining exits once its average degree reaches the
target, and a candidate already holding ``ceil(target)`` exits of its own
ecosystem's profile is passed over.
"""

import math
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

import structlog

from ..config.ecosystems import (
    CONNECTIVITY_PROFILES,
    ECOSYSTEM_ADJACENCY,
    ConnectivityProfile,
    EcosystemName,
)
from .lcg_prng import SeededRandom
from .models import GenerationTuning
from .place_graph import PlaceGraph

logger = structlog.get_logger()


@dataclass
class EnhancementStats:
    """Edges added by the enhancement stage."""

    edges_added: Dict[str, int] = field(default_factory=dict)  # Biome -> new exit pairs
    average_degree_before: float = 0.0
    average_degree_after: float = 0.0
    ecosystem_degree_before: Dict[str, float] = field(default_factory=dict)  # Biome -> average degree
    ecosystem_degree_after: Dict[str, float] = field(default_factory=dict)

    @property
    def total_added(self) -> int:
        return sum(self.edges_added.values())


class EcosystemConnectivityEnhancer:
    """Adds hop-bounded proximity exits per ecosystem profile."""

    def __init__(
        self,
        graph: PlaceGraph,
        rng: SeededRandom,
        tuning: Optional[GenerationTuning] = None,
        profiles: Mapping[EcosystemName, ConnectivityProfile] = CONNECTIVITY_PROFILES,
        adjacency: Mapping[EcosystemName, Tuple[EcosystemName, ...]] = ECOSYSTEM_ADJACENCY,
    ):
        self.graph = graph
        self.rng = rng
        self.tuning = tuning or GenerationTuning()
        self.profiles = profiles
        self.adjacency = adjacency
        self._degree_sums: Dict[EcosystemName, int] = {}
        self._place_counts: Dict[EcosystemName, int] = {}

    def enhance(self) -> EnhancementStats:
        """
        Add exits to every place below its ecosystem's target degree.

        Returns:
            Per-ecosystem counts and average degree before and after
        """
        stats = EnhancementStats(average_degree_before=self.graph.average_degree())
        self._count_degrees()
        stats.ecosystem_degree_before = self.ecosystem_averages()

        for i in range(len(self.graph)):
            ecosystem = self.graph.ecosystem(i)
            profile = self.profiles[ecosystem]
            deficit = profile.target_degree - self.graph.degree(i)
            if deficit <= 0 or self._at_target(ecosystem):
                continue

            wanted = min(profile.max_new_edges, int(math.ceil(deficit)))
            added = 0
            for j in self._candidates(i, ecosystem, profile):
                if added >= wanted or self._at_target(ecosystem):
                    break
                if self.graph.are_connected(i, j) or self._saturated(j):
                    continue
                if self.graph.connect_direct(i, j, self.tuning.fill_degree_cap):
                    self._degree_sums[ecosystem] += 1
                    self._degree_sums[self.graph.ecosystem(j)] += 1
                    added += 1

            if added:
                stats.edges_added[ecosystem.biome] = stats.edges_added.get(ecosystem.biome, 0) + added

        stats.average_degree_after = self.graph.average_degree()
        stats.ecosystem_degree_after = self.ecosystem_averages()
        logger.info(
            "Connectivity enhanced",
            edges_added=stats.total_added,
            average_degree_before=round(stats.average_degree_before, 3),
            average_degree_after=round(stats.average_degree_after, 3),
        )
        return stats

    def _count_degrees(self):
        self._degree_sums = {}
        self._place_counts = {}
        for i in range(len(self.graph)):
            ecosystem = self.graph.ecosystem(i)
            self._degree_sums[ecosystem] = self._degree_sums.get(ecosystem, 0) + self.graph.degree(i)
            self._place_counts[ecosystem] = self._place_counts.get(ecosystem, 0) + 1

    def ecosystem_averages(self) -> Dict[str, float]:
        """Average degree per biome present in the graph."""
        return {
            ecosystem.biome: self._degree_sums[ecosystem] / count
            for ecosystem, count in self._place_counts.items()
        }

    def _at_target(self, ecosystem: EcosystemName) -> bool:
        average = self._degree_sums[ecosystem] / self._place_counts[ecosystem]
        return average >= self.profiles[ecosystem].target_degree

    def _saturated(self, j: int) -> bool:
        """True if place j already has its ecosystem's share of exits."""
        ecosystem = self.graph.ecosystem(j)
        target = self.profiles[ecosystem].target_degree
        return self.graph.degree(j) >= math.ceil(target) or self._at_target(ecosystem)

    def hop_distances(self, start: int, max_hops: int) -> Dict[int, int]:
        """BFS hop counts from a place, bounded by max_hops."""
        hops = {start: 0}
        queue = deque([start])
        while queue:
            current = queue.popleft()
            if hops[current] >= max_hops:
                continue
            for neighbor in self.graph.neighbors(current):
                if neighbor not in hops:
                    hops[neighbor] = hops[current] + 1
                    queue.append(neighbor)
        return hops

    def _candidates(self, i: int, ecosystem: EcosystemName, profile: ConnectivityProfile) -> List[int]:
        """Same-ecosystem places by hop count then distance, then a sample of adjacent ones."""
        hops = self.hop_distances(i, profile.max_hops)
        neighbours_of_ecosystem = self.adjacency.get(ecosystem, ())

        same: List[int] = []
        adjacent: List[int] = []
        for j, hop in hops.items():
            if hop < 2:
                continue
            other = self.graph.ecosystem(j)
            if other == ecosystem:
                same.append(j)
            elif other in neighbours_of_ecosystem:
                adjacent.append(j)

        def key(j: int):
            return (hops[j], self.graph.distance(i, j), j)

        same.sort(key=key)
        adjacent.sort(key=key)
        return same + self.rng.sample(adjacent, profile.adjacent_sample)

"""
Ecosystem reference tables.

Climate envelopes, band progression, band-neighbour adjacency and the
per-ecosystem connectivity tuning used by the enhancement stage.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple


class EcosystemName(str, Enum):
    """Ecosystem identifiers (URNs)."""

    STEPPE = "flux:eco:steppe:arid"
    GRASSLAND = "flux:eco:grassland:temperate"
    FOREST = "flux:eco:forest:temperate"
    MOUNTAIN = "flux:eco:mountain:arid"
    JUNGLE = "flux:eco:jungle:tropical"
    MARSH = "flux:eco:marsh:tropical"

    @property
    def biome(self) -> str:
        """Short biome name, e.g. ``steppe``."""
        return self.value.split(":")[2]


@dataclass(frozen=True)
class EcologicalProfile:
    """Climate envelope attached to every place."""

    ecosystem: EcosystemName
    temperature: Tuple[float, float]  # Celsius
    pressure: Tuple[float, float]  # hPa
    humidity: Tuple[float, float]  # percent


@dataclass(frozen=True)
class ConnectivityProfile:
    """How densely the enhancement stage connects an ecosystem."""

    target_degree: float  # Desired average exits per place
    max_hops: int  # Graph-hop radius searched for new neighbours
    max_new_edges: int = 2  # New exits added per place
    adjacent_sample: int = 2  # Candidates sampled from adjacent ecosystems


ECOSYSTEM_PROFILES: Dict[EcosystemName, EcologicalProfile] = {
    EcosystemName.STEPPE: EcologicalProfile(
        EcosystemName.STEPPE, (15.0, 35.0), (1000.0, 1020.0), (20.0, 45.0)
    ),
    EcosystemName.GRASSLAND: EcologicalProfile(
        EcosystemName.GRASSLAND, (10.0, 25.0), (1005.0, 1020.0), (45.0, 70.0)
    ),
    EcosystemName.FOREST: EcologicalProfile(
        EcosystemName.FOREST, (8.0, 22.0), (1000.0, 1020.0), (65.0, 85.0)
    ),
    EcosystemName.MOUNTAIN: EcologicalProfile(
        EcosystemName.MOUNTAIN, (-5.0, 15.0), (850.0, 950.0), (25.0, 55.0)
    ),
    EcosystemName.JUNGLE: EcologicalProfile(
        EcosystemName.JUNGLE, (20.0, 35.0), (1005.0, 1020.0), (75.0, 95.0)
    ),
    EcosystemName.MARSH: EcologicalProfile(
        EcosystemName.MARSH, (22.0, 32.0), (1010.0, 1025.0), (85.0, 100.0)
    ),
}

# West to east
ECOSYSTEM_PROGRESSION: List[EcosystemName] = [
    EcosystemName.STEPPE,
    EcosystemName.GRASSLAND,
    EcosystemName.FOREST,
    EcosystemName.MOUNTAIN,
    EcosystemName.JUNGLE,
]

# Substituted into the final band by positional dithering
SECONDARY_ECOSYSTEMS: Dict[EcosystemName, EcosystemName] = {
    EcosystemName.STEPPE: EcosystemName.GRASSLAND,
    EcosystemName.GRASSLAND: EcosystemName.STEPPE,
    EcosystemName.FOREST: EcosystemName.GRASSLAND,
    EcosystemName.MOUNTAIN: EcosystemName.FOREST,
    EcosystemName.JUNGLE: EcosystemName.MARSH,
}

ECOSYSTEM_ADJACENCY: Dict[EcosystemName, Tuple[EcosystemName, ...]] = {
    EcosystemName.STEPPE: (EcosystemName.GRASSLAND,),
    EcosystemName.GRASSLAND: (EcosystemName.STEPPE, EcosystemName.FOREST),
    EcosystemName.FOREST: (EcosystemName.GRASSLAND, EcosystemName.MOUNTAIN),
    EcosystemName.MOUNTAIN: (EcosystemName.FOREST, EcosystemName.JUNGLE),
    EcosystemName.JUNGLE: (EcosystemName.MOUNTAIN, EcosystemName.MARSH),
    EcosystemName.MARSH: (EcosystemName.JUNGLE,),
}

# Open terrain connects densely, rugged terrain and wetland sparsely
CONNECTIVITY_PROFILES: Dict[EcosystemName, ConnectivityProfile] = {
    EcosystemName.STEPPE: ConnectivityProfile(target_degree=4.0, max_hops=3),
    EcosystemName.GRASSLAND: ConnectivityProfile(target_degree=3.2, max_hops=3),
    EcosystemName.FOREST: ConnectivityProfile(target_degree=2.8, max_hops=2),
    EcosystemName.MOUNTAIN: ConnectivityProfile(target_degree=2.4, max_hops=2),
    EcosystemName.JUNGLE: ConnectivityProfile(target_degree=2.8, max_hops=2),
    EcosystemName.MARSH: ConnectivityProfile(target_degree=2.0, max_hops=2),
}

PLACE_NAMES: Dict[EcosystemName, str] = {
    EcosystemName.STEPPE: "Steppe Crossing",
    EcosystemName.GRASSLAND: "Grassland",
    EcosystemName.FOREST: "Forest Grove",
    EcosystemName.MOUNTAIN: "Mountain Pass",
    EcosystemName.JUNGLE: "Jungle Clearing",
    EcosystemName.MARSH: "Marsh",
}

PLACE_DESCRIPTIONS: Dict[EcosystemName, Tuple[str, ...]] = {
    EcosystemName.STEPPE: (
        "Wide open grassland stretches to the horizon.",
        "Dry wind sweeps across the endless plain.",
        "Sparse shrubs dot the sun-baked earth.",
    ),
    EcosystemName.GRASSLAND: (
        "Rolling hills covered in tall grass.",
        "Wildflowers sway in the gentle breeze.",
        "A meadow alive with buzzing insects.",
    ),
    EcosystemName.FOREST: (
        "Dense trees create a canopy overhead.",
        "Moss-covered trunks line a quiet path.",
        "Dappled light filters through the leaves.",
    ),
    EcosystemName.MOUNTAIN: (
        "Rocky peaks and narrow passes.",
        "A steep trail winds between boulders.",
        "Thin air and loose scree underfoot.",
    ),
    EcosystemName.JUNGLE: (
        "Thick vegetation and humid air.",
        "Vines hang from towering trees.",
        "The calls of unseen creatures echo around you.",
    ),
    EcosystemName.MARSH: (
        "Soggy ground and standing water.",
        "Reeds rise from the murky shallows.",
        "Mist hangs low over the stagnant pools.",
    ),
}

"""
Configuration modules for world generation.
"""

from .config import Settings, settings
from .ecosystems import (
    CONNECTIVITY_PROFILES,
    ECOSYSTEM_ADJACENCY,
    ECOSYSTEM_PROFILES,
    ECOSYSTEM_PROGRESSION,
    SECONDARY_ECOSYSTEMS,
    ConnectivityProfile,
    EcologicalProfile,
    EcosystemName,
)
from .log_setup import configure_logging

__all__ = [
    'Settings', 'settings', 'configure_logging',
    'EcosystemName', 'EcologicalProfile', 'ConnectivityProfile',
    'ECOSYSTEM_PROFILES', 'ECOSYSTEM_PROGRESSION', 'SECONDARY_ECOSYSTEMS',
    'ECOSYSTEM_ADJACENCY', 'CONNECTIVITY_PROFILES',
]

"""
Export of generated worlds.

This package provides:
- Deterministic JSON Lines serialisation
- Content-addressed (SHA-256) export files
- Validating import of exported worlds
"""

from .jsonl import (
    FORMAT_VERSION,
    ImportedWorld,
    WorldImportError,
    content_hash,
    export_world,
    load_world,
    parse_world,
    serialize_world,
    world_records,
)

__all__ = [
    'FORMAT_VERSION', 'ImportedWorld', 'WorldImportError',
    'content_hash', 'export_world', 'load_world', 'parse_world',
    'serialize_world', 'world_records',
]

"""
JSON Lines export and import of generated worlds.

Layout of a file:

- line 1: a ``world`` header record (format version, config, stats)
- one ``place`` record per line, in generation order
- one ``vertex`` record per line, in the same order, keeping the growth
  depth and parent of each vertex and the place built from it

Records are written with sorted keys and compact separators so that a
given world always serialises to the same bytes. Exports are named after
the SHA-256 of those bytes.
"""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

import structlog

from .. import __version__
from ..config.ecosystems import ECOSYSTEM_PROFILES, EcosystemName
from ..core.directions import COMPASS_DIRECTIONS, Direction, opposite
from ..core.models import Exit, Place, Vertex
from ..core.world_generator import WorldGenerationResult

logger = structlog.get_logger()

FORMAT_VERSION = 2

_SHA256_HEX = re.compile(r"^[0-9a-f]{64}$")

# Compass exits first, then the relative directions in enum order
_EXIT_ORDER = COMPASS_DIRECTIONS + [d for d in Direction if d not in COMPASS_DIRECTIONS]


class WorldImportError(ValueError):
    """Raised when a JSONL world file is malformed."""


def _place_record(place: Place) -> Dict[str, Any]:
    ecology = place.ecology
    return {
        "type": "place",
        "id": place.id,
        "name": place.name,
        "description": place.description,
        "ecosystem": place.ecosystem.value,
        "ecology": {
            "temperature": list(ecology.temperature),
            "pressure": list(ecology.pressure),
            "humidity": list(ecology.humidity),
        },
        "coordinates": [place.x, place.y],
        "exits": {
            d.value: {"direction": d.value, "label": place.exits[d].label, "to": place.exits[d].to}
            for d in _EXIT_ORDER
            if d in place.exits
        },
    }


def _vertex_record(vertex: Vertex, place_id: Optional[str]) -> Dict[str, Any]:
    return {
        "type": "vertex",
        "id": vertex.id,
        "coordinates": [vertex.x, vertex.y],
        "ecosystem": vertex.ecosystem.value,
        "depth": vertex.depth,
        "parent_id": vertex.parent_id,
        "place": place_id,
    }


def world_records(result: WorldGenerationResult) -> Iterator[Dict[str, Any]]:
    """Header record, then one record per place, then one per vertex."""
    yield {
        "type": "world",
        "format_version": FORMAT_VERSION,
        "generator_version": __version__,
        "config": result.config.model_dump(mode="json"),
        "connection_stats": {
            "total": result.connection_stats.total,
            "reciprocal": result.connection_stats.reciprocal,
        },
        "place_count": len(result.places),
        "vertex_count": len(result.vertices),
    }
    for place in result.places:
        yield _place_record(place)

    # Places are built one per vertex in order; aborted runs may have none
    place_ids = [place.id for place in result.places]
    for n, vertex in enumerate(result.vertices):
        yield _vertex_record(vertex, place_ids[n] if n < len(place_ids) else None)


def serialize_world(result: WorldGenerationResult) -> str:
    """Serialise a world to JSON Lines text."""
    lines = [json.dumps(record, sort_keys=True, separators=(",", ":")) for record in world_records(result)]
    return "\n".join(lines) + "\n"


def content_hash(text: str) -> str:
    """SHA-256 hex digest of the UTF-8 encoded text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def export_world(result: WorldGenerationResult, directory: Union[str, Path]) -> Path:
    """
    Write a world to ``{sha256}.jsonl`` in a directory.

    Args:
        result: Finished generation result
        directory: Output directory, created if missing

    Returns:
        Path of the written file
    """
    text = serialize_world(result)
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{content_hash(text)}.jsonl"
    path.write_text(text, encoding="utf-8")

    logger.info("World exported", path=str(path), places=len(result.places))
    return path


@dataclass
class ImportedWorld:
    """Contents of a JSONL world file."""

    header: Dict[str, Any]
    places: List[Place]
    vertices: List[Vertex] = field(default_factory=list)


def _parse_place(record: Dict[str, Any], line_number: int) -> Place:
    try:
        ecosystem = EcosystemName(record["ecosystem"])
        x, y = record["coordinates"]
        exits = {}
        for key, value in record["exits"].items():
            direction = Direction(key)
            exits[direction] = Exit(direction=direction, label=value["label"], to=value["to"])
        return Place(
            id=record["id"],
            name=record["name"],
            description=record["description"],
            ecology=ECOSYSTEM_PROFILES[ecosystem],
            x=float(x),
            y=float(y),
            exits=exits,
        )
    except (KeyError, TypeError, ValueError) as e:
        raise WorldImportError(f"Line {line_number}: invalid place record ({e})") from e


def _parse_vertex(record: Dict[str, Any], line_number: int) -> Vertex:
    try:
        x, y = record["coordinates"]
        return Vertex(
            id=record["id"],
            x=float(x),
            y=float(y),
            ecosystem=EcosystemName(record["ecosystem"]),
            depth=int(record["depth"]),
            parent_id=record["parent_id"],
        )
    except (KeyError, TypeError, ValueError) as e:
        raise WorldImportError(f"Line {line_number}: invalid vertex record ({e})") from e


def parse_world(text: str) -> ImportedWorld:
    """
    Parse and validate JSON Lines world text.

    Checks the header, unique place and vertex ids, that every exit leads
    to a known place and has its reciprocal, and that vertex parents and
    places are known.

    Raises:
        WorldImportError: If any check fails
    """
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        raise WorldImportError("Empty world file")

    records = []
    for n, line in enumerate(lines, start=1):
        try:
            records.append(json.loads(line))
        except json.JSONDecodeError as e:
            raise WorldImportError(f"Line {n}: invalid JSON ({e.msg})") from e

    header = records[0]
    if not isinstance(header, dict) or header.get("type") != "world":
        raise WorldImportError("First line must be a world header record")
    if header.get("format_version") != FORMAT_VERSION:
        raise WorldImportError(f"Unsupported format version: {header.get('format_version')}")

    places: List[Place] = []
    vertices: List[Vertex] = []
    vertex_places: Dict[str, Optional[str]] = {}
    seen = set()
    for n, record in enumerate(records[1:], start=2):
        kind = record.get("type") if isinstance(record, dict) else None
        if kind == "place":
            place = _parse_place(record, n)
            if place.id in seen:
                raise WorldImportError(f"Line {n}: duplicate place id {place.id}")
            seen.add(place.id)
            places.append(place)
        elif kind == "vertex":
            vertex = _parse_vertex(record, n)
            if vertex.id in vertex_places:
                raise WorldImportError(f"Line {n}: duplicate vertex id {vertex.id}")
            vertex_places[vertex.id] = record.get("place")
            vertices.append(vertex)
        else:
            raise WorldImportError(f"Line {n}: expected a place or vertex record")

    by_id = {place.id: place for place in places}
    for place in places:
        for direction, exit_ in place.exits.items():
            target = by_id.get(exit_.to)
            if target is None:
                raise WorldImportError(f"Place {place.id}: exit {direction.value} leads to unknown place {exit_.to}")
            back = target.exits.get(opposite(direction))
            if back is None or back.to != place.id:
                raise WorldImportError(f"Place {place.id}: exit {direction.value} has no reciprocal exit")

    for vertex in vertices:
        if vertex.parent_id is not None and vertex.parent_id not in vertex_places:
            raise WorldImportError(f"Vertex {vertex.id}: unknown parent {vertex.parent_id}")
        place_id = vertex_places[vertex.id]
        if place_id is not None and place_id not in by_id:
            raise WorldImportError(f"Vertex {vertex.id}: unknown place {place_id}")

    return ImportedWorld(header=header, places=places, vertices=vertices)


def load_world(path: Union[str, Path], verify_hash: bool = True) -> ImportedWorld:
    """
    Read a world file, checking a content-hash filename when present.

    Raises:
        WorldImportError: If the file is malformed or its hash does not match
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")

    if verify_hash and _SHA256_HEX.match(path.stem) and content_hash(text) != path.stem:
        raise WorldImportError(f"Content hash mismatch for {path.name}")

    return parse_world(text)

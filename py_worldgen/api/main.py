"""FastAPI main application."""

from typing import Dict, List, Optional, Tuple

import structlog
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from .. import __version__
from ..config import configure_logging, settings
from ..core.connectivity import count_place_components
from ..core.models import WorldGenerationConfig
from ..core.world_generator import WorldGenerationResult, generate_world
from ..export.jsonl import content_hash, serialize_world

configure_logging()

logger = structlog.get_logger()

# Initialize FastAPI app
app = FastAPI(
    title="World Generator API",
    description="Procedural generation of connected place graphs",
    version=__version__,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Generated worlds by content hash: (result, serialised JSONL)
_worlds: Dict[str, Tuple[WorldGenerationResult, str]] = {}


# Response models
class ConnectionStatsModel(BaseModel):
    total: int
    reciprocal: int


class WorldSummary(BaseModel):
    """Summary information about a generated world."""

    world_id: str = Field(..., description="SHA-256 of the exported JSONL")
    seed: int
    place_count: int
    vertex_count: int
    components: int
    connection_stats: ConnectionStatsModel
    ecosystem_counts: Dict[str, int]
    warnings: List[str]
    generation_time_seconds: Optional[float] = None


def _summarize(world_id: str, result: WorldGenerationResult) -> WorldSummary:
    diagnostics = result.diagnostics
    return WorldSummary(
        world_id=world_id,
        seed=result.config.seed,
        place_count=len(result.places),
        vertex_count=len(result.vertices),
        components=count_place_components(result.places),
        connection_stats=ConnectionStatsModel(
            total=result.connection_stats.total,
            reciprocal=result.connection_stats.reciprocal,
        ),
        ecosystem_counts=diagnostics.ecosystem_counts,
        warnings=diagnostics.warnings,
        generation_time_seconds=sum(diagnostics.stage_timings.values()),
    )


def _get_world(world_id: str) -> Tuple[WorldGenerationResult, str]:
    world = _worlds.get(world_id)
    if world is None:
        raise HTTPException(status_code=404, detail="World not found")
    return world


@app.get("/health")
def health():
    """Liveness check."""
    return {"status": "ok", "version": __version__}


@app.post("/worlds", response_model=WorldSummary)
def create_world(config: WorldGenerationConfig):
    """Generate a world and keep it in memory under its content hash."""
    logger.info("World requested", seed=config.seed, min_places=config.min_places)

    result = generate_world(config)
    text = serialize_world(result)
    world_id = content_hash(text)
    _worlds[world_id] = (result, text)

    return _summarize(world_id, result)


@app.get("/worlds/{world_id}", response_model=WorldSummary)
def get_world(world_id: str):
    """Summary of a generated world."""
    result, _ = _get_world(world_id)
    return _summarize(world_id, result)


@app.get("/worlds/{world_id}/export", response_class=PlainTextResponse)
def export_world(world_id: str):
    """Generated world as JSON Lines."""
    _, text = _get_world(world_id)
    return PlainTextResponse(
        content=text,
        media_type="application/x-ndjson",
        headers={"Content-Disposition": f'attachment; filename="{world_id}.jsonl"'},
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)

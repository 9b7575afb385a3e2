from pathlib import Path
from dotenv import dotenv_values
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

import os

# Explicitly load .env for local/dev environments only if values are missing from the environment
BASE_DIR = Path(__file__).resolve().parent.parent.parent
env_file = BASE_DIR / ".env"

if env_file.exists():
    file_env = dotenv_values(env_file)
    missing_keys = {k: v for k, v in file_env.items() if k not in os.environ and v is not None}
    for k, v in missing_keys.items():
        os.environ[k] = v


class Settings(BaseSettings):
    """Application settings pulled from environment variables."""

    model_config = SettingsConfigDict(env_prefix="WORLDGEN_", extra="ignore")

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Log renderer: json or console")

    # Generation limits
    max_min_places: int = Field(
        default=20000, description="Upper bound accepted for min_places"
    )

    # Exit assignment
    max_degree: int = Field(default=8, description="Hard cap on compass exits per place")
    fill_degree_cap: int = Field(
        default=6, description="Degree cap used while filling capacity in phase 2"
    )
    relay_candidates: int = Field(
        default=6, description="Relay places tried per edge before skipping it"
    )
    relay_pool_size: int = Field(
        default=32, description="Low-degree places kept per ecosystem relay pool"
    )

    # Connectivity repair
    star_topology_threshold: int = Field(
        default=50, description="Component count above which repair uses a star topology"
    )
    repair_max_iterations: int = Field(
        default=10, description="Bridging rounds before repair gives up"
    )
    repair_candidates: int = Field(
        default=8, description="Candidate places considered per component"
    )

    # Layout
    layout_min_vertices: int = Field(
        default=50, description="Vertex count above which layout optimisation runs"
    )


settings = Settings()

"""Application settings using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Compiler configuration. Every field can be set via CROWSFOOT_<NAME>."""

    # Logging Configuration
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    # Determinism: seeds every random draw made during layout
    layout_seed: int = 42

    # Entity nominal size
    entity_width: float = 120
    entity_height: float = 80

    # Force-directed strategy
    force_iterations: int = 50
    force_repulsion: float = 200000.0
    force_attraction: float = 0.1
    force_spring_length: float = 200
    force_damping: float = 0.9
    force_max_step: float = 50
    force_center_x: float = 600
    force_center_y: float = 400
    force_radius: float = 300

    # Grid strategy
    grid_cell_width: float = 200
    grid_cell_height: float = 150
    grid_start_x: float = 300
    grid_start_y: float = 200

    # Post-processing
    min_distance: float = 140
    proximity_threshold: float = 400
    proximity_pull: float = 0.1
    line_buffer: float = 70
    margin: float = 50
    collision_sweeps: int = 100

    model_config = SettingsConfigDict(
        env_prefix="CROWSFOOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Get or create the global settings instance."""
    return Settings()

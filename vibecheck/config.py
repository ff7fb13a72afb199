"""Tunable constants for the daily queue and taste ranking."""

import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class DailyConfig(BaseModel):
    """Daily queue and taste ranking settings.

    Defaults match the values the app has always shipped with.
    """

    model_config = ConfigDict(extra="forbid")

    queue_size: int = Field(default=10, ge=1)
    playlist_min_score: int = Field(default=7, ge=1, le=10)
    seed_artist_count: int = Field(default=5, ge=0, le=5)
    recommendation_limit: int = Field(default=30, ge=1, le=100)
    history_limit: int = Field(default=50, ge=1, le=50)
    recent_limit: int = Field(default=50, ge=1, le=50)
    bayes_prior_strength: float = Field(default=3, gt=0)
    default_global_mean: float = Field(default=6.5, ge=1, le=10)
    top_artists: int = Field(default=7, ge=1)
    top_genres: int = Field(default=10, ge=1)
    next_queue_hour: int = Field(default=10, ge=0, le=23)
    timezone: str | None = None


def load_config(config_path: Path | None) -> DailyConfig:
    """Load settings from a JSON file. Returns defaults if path is None or missing."""
    if config_path is None or not config_path.exists():
        return DailyConfig()
    with open(config_path) as f:
        data = json.load(f)
    return DailyConfig.model_validate(data)

"""Taste profile data models. Derived on every read, never persisted."""

from pydantic import BaseModel, Field


class RatedTrack(BaseModel):
    """A rating joined with the catalog item it refers to."""

    item_id: str
    score: int = Field(ge=1, le=10)
    name: str = ""
    artists: list[str] = Field(default_factory=list)
    genres: list[str] = Field(default_factory=list)
    image_url: str | None = None


class TasteEntity(BaseModel):
    """Aggregate for one artist or genre."""

    name: str
    display_name: str
    count: int
    total: int
    avg_score: float
    adjusted_score: float
    image_url: str | None = None


class Persona(BaseModel):
    label: str
    description: str


class TasteProfile(BaseModel):
    """Everything the profile screen shows about a user's taste."""

    total_ratings: int
    avg_score: float
    persona: Persona
    top_artists: list[TasteEntity] = Field(default_factory=list)
    top_genres: list[TasteEntity] = Field(default_factory=list)
    distribution: dict[int, int] = Field(default_factory=dict)
    recently_loved: list[RatedTrack] = Field(default_factory=list)

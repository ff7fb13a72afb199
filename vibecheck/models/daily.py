"""Daily queue, playlist and rating data models."""

from datetime import date, datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

Mood = Literal["hype", "bright", "chill", "moody", "mixed"]


class CatalogItem(BaseModel):
    """A track in the shared catalog, keyed by its external source id."""

    id: str
    source_id: str
    type: str = "track"
    name: str
    image_url: str | None = None
    preview_url: str | None = None
    artists: list[str] = Field(default_factory=list)
    genres: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def primary_artist(self) -> str:
        return self.artists[0] if self.artists else ""


class DailyQueue(BaseModel):
    """One queue per user per calendar day."""

    id: str
    user_id: str
    date: date
    mood: Mood | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None


class DailyQueueItem(BaseModel):
    """A single track placed into a daily queue."""

    id: str
    queue_id: str
    item_id: str
    position: int = Field(ge=0)
    score: int | None = Field(default=None, ge=1, le=10)
    skipped: bool = False
    rated_at: datetime | None = None
    created_at: datetime | None = None
    item: CatalogItem | None = None

    @property
    def resolved(self) -> bool:
        """Scored or skipped."""
        return self.score is not None or self.skipped

    @property
    def counts_toward_mood(self) -> bool:
        return self.score is not None and not self.skipped


class DailyPlaylist(BaseModel):
    """The playlist derived from a completed queue."""

    id: str
    queue_id: str
    user_id: str
    mood: Mood
    created_at: datetime | None = None


class DailyPlaylistItem(BaseModel):
    """A track that made it into a daily playlist."""

    id: str
    playlist_id: str
    item_id: str
    score: int = Field(ge=1, le=10)
    position: int = Field(ge=0)
    created_at: datetime | None = None
    item: CatalogItem | None = None


class Rating(BaseModel):
    """Permanent rating history entry, one per (user, item)."""

    id: str
    user_id: str
    item_id: str
    score: int = Field(ge=1, le=10)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class QueueView(BaseModel):
    """A queue together with its items in position order."""

    queue: DailyQueue
    items: list[DailyQueueItem] = Field(default_factory=list)


class PlaylistView(BaseModel):
    """A playlist together with its items in rank order."""

    playlist: DailyPlaylist
    items: list[DailyPlaylistItem] = Field(default_factory=list)


class NoQueueStatus(BaseModel):
    state: Literal["none"] = "none"


class BuildingStatus(BaseModel):
    state: Literal["building"] = "building"
    queue: DailyQueue


class InProgressStatus(BaseModel):
    state: Literal["in_progress"] = "in_progress"
    queue: DailyQueue
    rated: int
    total: int


class CompletedStatus(BaseModel):
    state: Literal["completed"] = "completed"
    queue: DailyQueue
    mood: Mood | None = None
    playlist: DailyPlaylist | None = None


DailyStatus = Annotated[
    Union[NoQueueStatus, BuildingStatus, InProgressStatus, CompletedStatus],
    Field(discriminator="state"),
]

"""Candidate source and credential interfaces."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass
class Track:
    """A track as returned by a candidate source."""

    source_id: str
    name: str
    artists: list[str] = field(default_factory=list)
    image_url: str | None = None
    preview_url: str | None = None
    album_name: str = ""
    genres: list[str] = field(default_factory=list)

    @property
    def primary_artist(self) -> str:
        return self.artists[0] if self.artists else ""


class CandidateSource(ABC):
    """Supplies track candidates for the daily queue.

    Implementations raise SourceError when a call fails at the transport
    level. An empty list is a valid, successful result.
    """

    @abstractmethod
    def fetch_broad_history(self, credential: str) -> list[Track]:
        """The user's listening history across several time windows."""

    @abstractmethod
    def fetch_recent(self, credential: str) -> list[Track]:
        """Recently played tracks."""

    @abstractmethod
    def fetch_top_entities(self, credential: str, k: int) -> list[str]:
        """Ids of the user's top ``k`` artists, used as recommendation seeds."""

    @abstractmethod
    def fetch_similar(self, credential: str, seed_ids: list[str], limit: int) -> list[Track]:
        """Recommendations seeded from ``seed_ids``."""


class CredentialProvider(ABC):
    """Hands out a valid source credential, refreshing it when needed."""

    @abstractmethod
    def get_valid_credential(self) -> str | None:
        """Return a usable token, or None if the user is not connected."""


class StaticCredentials(CredentialProvider):
    """A fixed token (or None). Used by the CLI and tests."""

    def __init__(self, token: str | None) -> None:
        self.token = token

    def get_valid_credential(self) -> str | None:
        return self.token

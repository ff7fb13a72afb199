"""Best-effort genre tag and preview lookup.

Lookups never raise: a missing match, an HTTP error or a malformed response
all come back as "no data" ([] or None). Results, including misses, are
cached per (artist, track name) for the life of the process.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)

DEEZER_API = "https://api.deezer.com"


def cache_key(artist: str, name: str) -> str:
    """Normalized cache key for a track."""
    return f"{artist.strip()}::{name.strip()}".lower()


@dataclass(frozen=True)
class TrackMatch:
    """What a search found for one track."""

    preview_url: str | None = None
    album_id: int | None = None


NO_MATCH = TrackMatch()


class LookupCache:
    """Thread-safe cache of search results keyed by ``cache_key``.

    One shared instance lives for the whole process (``SHARED_CACHE``);
    tests pass a fresh one.
    """

    def __init__(self) -> None:
        self._matches: dict[str, TrackMatch] = {}
        self._genres: dict[int, list[str]] = {}
        self._lock = threading.Lock()

    def get_match(self, key: str) -> TrackMatch | None:
        with self._lock:
            return self._matches.get(key)

    def set_match(self, key: str, match: TrackMatch) -> None:
        with self._lock:
            self._matches[key] = match

    def get_genres(self, album_id: int) -> list[str] | None:
        with self._lock:
            genres = self._genres.get(album_id)
            return list(genres) if genres is not None else None

    def set_genres(self, album_id: int, genres: list[str]) -> None:
        with self._lock:
            self._genres[album_id] = list(genres)

    def clear(self) -> None:
        with self._lock:
            self._matches.clear()
            self._genres.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._matches)


SHARED_CACHE = LookupCache()


class TagLookup(ABC):
    """Secondary lookup for genre tags and preview clips."""

    @abstractmethod
    def lookup_tags(self, name: str, primary_artist: str) -> list[str]:
        """Genre labels for a track; [] when unknown."""

    @abstractmethod
    def lookup_preview(self, name: str, primary_artist: str) -> str | None:
        """A preview clip URL; None when unknown."""


class NullLookup(TagLookup):
    """Lookup that never finds anything."""

    def lookup_tags(self, name: str, primary_artist: str) -> list[str]:
        return []

    def lookup_preview(self, name: str, primary_artist: str) -> str | None:
        return None


class DeezerLookup(TagLookup):
    """Deezer search API lookup. No auth required."""

    def __init__(
        self,
        client: httpx.Client | None = None,
        cache: LookupCache | None = None,
    ) -> None:
        self._http_client = client or httpx.Client(timeout=10.0)
        self.cache = cache if cache is not None else SHARED_CACHE

    def close(self) -> None:
        self._http_client.close()

    def _get_json(self, endpoint: str, params: dict | None = None) -> dict | None:
        try:
            response = self._http_client.get(f"{DEEZER_API}/{endpoint}", params=params)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Deezer request %s failed: %s", endpoint, e)
            return None
        return data if isinstance(data, dict) else None

    def search(self, name: str, primary_artist: str) -> TrackMatch:
        """Find the best match for a track, consulting the cache first."""
        key = cache_key(primary_artist, name)
        cached = self.cache.get_match(key)
        if cached is not None:
            return cached

        data = self._get_json(
            "search",
            {"q": f'artist:"{primary_artist}" track:"{name}"', "limit": 1, "output": "json"},
        )
        match = NO_MATCH
        results = (data or {}).get("data") or []
        if results and isinstance(results[0], dict):
            track = results[0]
            album = track.get("album") or {}
            match = TrackMatch(preview_url=track.get("preview") or None, album_id=album.get("id"))

        logger.debug(
            '"%s" by "%s": %s, album %s',
            name,
            primary_artist,
            "preview found" if match.preview_url else "no preview",
            match.album_id,
        )
        self.cache.set_match(key, match)
        return match

    def lookup_preview(self, name: str, primary_artist: str) -> str | None:
        return self.search(name, primary_artist).preview_url

    def lookup_tags(self, name: str, primary_artist: str) -> list[str]:
        album_id = self.search(name, primary_artist).album_id
        if not album_id:
            return []

        cached = self.cache.get_genres(album_id)
        if cached is not None:
            return cached

        data = self._get_json(f"album/{album_id}")
        if data is None:
            return []
        genres = [
            g["name"]
            for g in (data.get("genres") or {}).get("data", [])
            if isinstance(g, dict) and g.get("name")
        ]
        self.cache.set_genres(album_id, genres)
        return genres

"""
Spotify candidate source and token storage.

Uses the Web API on behalf of a connected user (authorization code + PKCE
tokens, stored in a JSON token file). Transport failures surface as
SourceError so the queue builder can tell "not connected" from "connected
but the source is down".
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx
from pydantic import BaseModel

from ..errors import SourceError
from .base import CandidateSource, CredentialProvider, Track

logger = logging.getLogger(__name__)

API_BASE = "https://api.spotify.com/v1"
TOKEN_URL = "https://accounts.spotify.com/api/token"

# Time windows combined into the "broad history" pool
TIME_RANGES = ("short_term", "medium_term", "long_term")

# Refresh this long before the stored expiry
REFRESH_MARGIN = timedelta(seconds=60)


def map_track(data: dict) -> Track:
    """Convert a Web API track object into a Track."""
    album = data.get("album") or {}
    images = album.get("images") or []
    return Track(
        source_id=data["id"],
        name=data.get("name", ""),
        artists=[a["name"] for a in data.get("artists", []) if a.get("name")],
        image_url=images[0].get("url") if images else None,
        preview_url=data.get("preview_url"),
        album_name=album.get("name", ""),
    )


class SpotifySource(CandidateSource):
    """Candidate source backed by the Spotify Web API."""

    def __init__(
        self,
        client: httpx.Client | None = None,
        history_limit: int = 50,
        recent_limit: int = 50,
    ) -> None:
        """
        Args:
            client: HTTP client to use (a default one with a 30s timeout otherwise)
            history_limit: Tracks per time window for the broad history
            recent_limit: Recently played tracks to fetch
        """
        self._http_client = client or httpx.Client(timeout=30.0)
        self.history_limit = history_limit
        self.recent_limit = recent_limit

    def close(self) -> None:
        self._http_client.close()

    def _api_request(self, endpoint: str, token: str, params: dict | None = None) -> dict:
        """Make an authenticated API request."""
        try:
            response = self._http_client.get(
                f"{API_BASE}/{endpoint}",
                headers={"Authorization": f"Bearer {token}"},
                params=params,
            )
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Spotify request %s failed: %s", endpoint, e)
            raise SourceError(f"Spotify request {endpoint} failed: {e}") from e

    def fetch_broad_history(self, credential: str) -> list[Track]:
        tracks = []
        for time_range in TIME_RANGES:
            data = self._api_request(
                "me/top/tracks",
                credential,
                {"limit": self.history_limit, "time_range": time_range},
            )
            tracks.extend(map_track(t) for t in data.get("items", []) if t and t.get("id"))
        logger.debug("Fetched %d top tracks across %d windows", len(tracks), len(TIME_RANGES))
        return tracks

    def fetch_recent(self, credential: str) -> list[Track]:
        data = self._api_request(
            "me/player/recently-played", credential, {"limit": self.recent_limit}
        )
        tracks = []
        for entry in data.get("items", []):
            track = (entry or {}).get("track")
            if track and track.get("id"):
                tracks.append(map_track(track))
        return tracks

    def fetch_top_entities(self, credential: str, k: int) -> list[str]:
        data = self._api_request(
            "me/top/artists", credential, {"limit": k, "time_range": "medium_term"}
        )
        return [a["id"] for a in data.get("items", []) if a and a.get("id")]

    def fetch_similar(self, credential: str, seed_ids: list[str], limit: int) -> list[Track]:
        if not seed_ids:
            return []
        data = self._api_request(
            "recommendations",
            credential,
            # The API accepts at most five seeds
            {"seed_artists": ",".join(seed_ids[:5]), "limit": limit},
        )
        return [map_track(t) for t in data.get("tracks", []) if t and t.get("id")]


class StoredToken(BaseModel):
    """Token file contents."""

    access_token: str
    expires_at: datetime
    refresh_token: str | None = None


class TokenFileCredentials(CredentialProvider):
    """Stores user tokens in a JSON file and refreshes them transparently."""

    def __init__(
        self,
        token_path: Path,
        client_id: str | None,
        client: httpx.Client | None = None,
    ) -> None:
        self.token_path = token_path
        self.client_id = client_id
        self._http_client = client or httpx.Client(timeout=30.0)

    def load(self) -> StoredToken | None:
        if not self.token_path.exists():
            return None
        with open(self.token_path) as f:
            data = json.load(f)
        return StoredToken.model_validate(data)

    def store_token(
        self, access_token: str, expires_in: int, refresh_token: str | None = None
    ) -> StoredToken:
        """Persist a fresh access token, keeping the old refresh token if none is given."""
        if refresh_token is None:
            previous = self.load()
            refresh_token = previous.refresh_token if previous else None
        token = StoredToken(
            access_token=access_token,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
            refresh_token=refresh_token,
        )
        self.token_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.token_path, "w") as f:
            json.dump(token.model_dump(mode="json"), f, indent=2)
        return token

    def clear(self) -> None:
        self.token_path.unlink(missing_ok=True)

    def get_valid_credential(self) -> str | None:
        token = self.load()
        if token is None:
            return None
        if datetime.now(timezone.utc) <= token.expires_at - REFRESH_MARGIN:
            return token.access_token
        return self._refresh(token)

    def _refresh(self, token: StoredToken) -> str | None:
        if not token.refresh_token or not self.client_id:
            return None

        logger.debug("Refreshing Spotify access token")
        try:
            response = self._http_client.post(
                TOKEN_URL,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": token.refresh_token,
                    "client_id": self.client_id,
                },
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Spotify token refresh failed: %s", e)
            return None
        if not data.get("access_token"):
            return None

        # Spotify may rotate the refresh token
        refreshed = self.store_token(
            data["access_token"],
            data.get("expires_in", 3600),
            data.get("refresh_token") or token.refresh_token,
        )
        return refreshed.access_token

"""Queue Builder - build today's queue once per user per calendar day.

Flow for a user with no queue today:
1. Return the existing queue if one is already there
2. Get a valid source credential → NoCredential if absent
3. Fetch history, recent plays and top-artist seeds concurrently, then
   recommendations seeded from the top artists
4. Deduplicate by source id (first seen wins)
5. Shuffle the pool and take up to queue_size tracks
6. Attach genre tags and missing previews (best-effort)
7. Upsert the tracks into the catalog, then re-read their internal ids
8. Insert the queue and its items together
9. Re-read and return today's queue
"""

import random
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import date
from typing import NoReturn

from .audit import AuditLogger, audit_event, bind_audit
from .config import DailyConfig
from .errors import BuildFailed, NoCredential, SourceError
from .lookup import NullLookup, TagLookup
from .models.daily import QueueView
from .queries import get_today_queue
from .sources.base import CandidateSource, CredentialProvider, Track
from .store import Store, StoreError, UniqueViolation, utcnow_iso


def dedupe_tracks(tracks: list[Track]) -> list[Track]:
    """Drop repeated source ids, keeping the first occurrence in order."""
    seen: set[str] = set()
    unique = []
    for track in tracks:
        if track.source_id in seen:
            continue
        seen.add(track.source_id)
        unique.append(track)
    return unique


def select_tracks(pool: list[Track], size: int, rng: random.Random) -> list[Track]:
    """Shuffle the whole pool and take the first ``size`` tracks (all if fewer)."""
    shuffled = list(pool)
    rng.shuffle(shuffled)
    return shuffled[:size]


class QueueBuilder:
    """Builds and returns the daily queue for a user."""

    def __init__(
        self,
        store: Store,
        source: CandidateSource,
        credentials: CredentialProvider,
        lookup: TagLookup | None = None,
        audit: AuditLogger | None = None,
        config: DailyConfig | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.store = store
        self.source = source
        self.credentials = credentials
        self.lookup = lookup or NullLookup()
        self.audit = audit
        self.config = config or DailyConfig()
        self.rng = rng or random.Random()

    def ensure_daily_queue(self, user_id: str, today: date) -> QueueView:
        """Get or create the queue for (user, today).

        Raises:
            NoCredential: No usable source session.
            BuildFailed: Sourcing or persistence failed.
        """
        log = bind_audit(self.audit, user=user_id, date=today.isoformat())

        existing = get_today_queue(self.store, user_id, today)
        if existing is not None:
            audit_event(log, "QUEUE_EXISTS")
            return existing

        credential = self.credentials.get_valid_credential()
        if not credential:
            audit_event(log, "NO_CREDENTIAL")
            raise NoCredential("Connect a music account to get a daily queue")

        pool = dedupe_tracks(self.gather_candidates(credential))
        if not pool:
            self._fail(log, "no candidates")

        selected = select_tracks(pool, self.config.queue_size, self.rng)
        selected = self.enrich(selected)

        try:
            id_map = self.save_catalog(selected)
        except StoreError as e:
            self._fail(log, f"catalog upsert failed: {e}")

        try:
            view = self.create_queue(user_id, today, selected, id_map)
        except UniqueViolation:
            # Someone else built today's queue between our check and insert
            audit_event(log, "QUEUE_RACE")
            view = get_today_queue(self.store, user_id, today)
            if view is None:
                self._fail(log, "queue vanished after race")
            return view
        except StoreError as e:
            self._fail(log, f"queue insert failed: {e}")

        audit_event(log, "QUEUE_BUILD", queue=view.queue.id, items=len(view.items), pool=len(pool))
        return view

    def gather_candidates(self, credential: str) -> list[Track]:
        """Combine every candidate strategy into one pool.

        A strategy that raises SourceError contributes nothing.
        """
        with ThreadPoolExecutor(max_workers=3) as pool:
            history = pool.submit(self.source.fetch_broad_history, credential)
            recent = pool.submit(self.source.fetch_recent, credential)
            seeds = pool.submit(
                self.source.fetch_top_entities, credential, self.config.seed_artist_count
            )
            candidates = self._collect("history", history.result) + self._collect(
                "recent", recent.result
            )
            seed_ids = self._collect("top", seeds.result)

        if seed_ids:
            candidates += self._collect(
                "similar",
                lambda: self.source.fetch_similar(
                    credential, seed_ids, self.config.recommendation_limit
                ),
            )
        return candidates

    def _collect(self, strategy: str, fetch) -> list:
        try:
            return list(fetch())
        except SourceError as e:
            audit_event(self.audit, "SOURCE_FAILED", strategy=strategy, error=str(e))
            return []

    def enrich(self, tracks: list[Track]) -> list[Track]:
        """Attach genre tags and fill in missing previews. Never fails."""
        if not tracks:
            return []
        with ThreadPoolExecutor(max_workers=min(len(tracks), 8)) as pool:
            return list(pool.map(self._enrich_one, tracks))

    def _enrich_one(self, track: Track) -> Track:
        preview_url = track.preview_url
        genres = list(track.genres)
        try:
            if not preview_url:
                preview_url = self.lookup.lookup_preview(track.name, track.primary_artist)
            tags = self.lookup.lookup_tags(track.name, track.primary_artist)
            if tags:
                genres = list(tags)
        except Exception as e:
            audit_event(self.audit, "LOOKUP_FAILED", track=track.source_id, error=str(e))
        return replace(track, preview_url=preview_url, genres=genres)

    def save_catalog(self, tracks: list[Track]) -> dict[str, str]:
        """Upsert tracks into the catalog and return source id -> internal id."""
        now = utcnow_iso()
        self.store.upsert(
            "items",
            [
                {
                    "source_id": t.source_id,
                    "type": "track",
                    "name": t.name,
                    "image_url": t.image_url,
                    "preview_url": t.preview_url,
                    "artists": list(t.artists),
                    "genres": list(t.genres),
                    "updated_at": now,
                }
                for t in tracks
            ],
            on_conflict=("source_id", "type"),
        )
        rows = self.store.select_in("items", "source_id", [t.source_id for t in tracks])
        return {row["source_id"]: row["id"] for row in rows if row.get("type") == "track"}

    def create_queue(
        self, user_id: str, today: date, selected: list[Track], id_map: dict[str, str]
    ) -> QueueView:
        """Insert the queue row and its items in one transaction."""
        resolved = [id_map[t.source_id] for t in selected if t.source_id in id_map]
        queue_items = [
            {"item_id": item_id, "position": position} for position, item_id in enumerate(resolved)
        ]
        if not queue_items:
            raise StoreError("No selected track resolved to a catalog id")

        with self.store.transaction():
            [queue] = self.store.insert(
                "daily_queues",
                {
                    "user_id": user_id,
                    "date": today.isoformat(),
                    "mood": None,
                    "completed_at": None,
                },
            )
            self.store.insert(
                "daily_queue_items",
                [
                    {
                        "queue_id": queue["id"],
                        "item_id": qi["item_id"],
                        "position": qi["position"],
                        "score": None,
                        "skipped": False,
                        "rated_at": None,
                    }
                    for qi in queue_items
                ],
            )

        view = get_today_queue(self.store, user_id, today)
        if view is None:
            raise StoreError("Queue missing right after insert")
        return view

    def _fail(self, log: AuditLogger | None, reason: str) -> NoReturn:
        audit_event(log, "QUEUE_BUILD_FAILED", reason=reason)
        raise BuildFailed(reason)

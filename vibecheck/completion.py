"""Completion detection and playlist materialization.

Runs after every rate/skip. Completion is gated on the queue's
``completed_at``: it is claimed under the store lock, and once it is set the
detector only reads. The unique constraint on ``daily_playlists.queue_id``
backs this up for callers working from a stale view of the queue.
"""

from datetime import datetime, timezone

from .audit import AuditLogger, audit_event
from .errors import DuplicateCompletion
from .models.daily import DailyPlaylist, DailyQueue, DailyQueueItem
from .mood import compute_mood, mood_scores
from .queries import find_playlist, get_queue, get_queue_items
from .store import Store, StoreError, UniqueViolation

PLAYLIST_MIN_SCORE = 7


def playlist_caption(min_score: int = PLAYLIST_MIN_SCORE) -> str:
    """Caption shown under the playlist, e.g. "scored 7+"."""
    return f"scored {min_score}+"


def empty_playlist_message(min_score: int = PLAYLIST_MIN_SCORE) -> str:
    return f"No tracks scored {min_score} or above today. Tomorrow's a new queue."


def playlist_candidates(
    items: list[DailyQueueItem], min_score: int = PLAYLIST_MIN_SCORE
) -> list[DailyQueueItem]:
    """Non-skipped items scored at or above ``min_score``, best first.

    Ties keep queue position order.
    """
    qualifying = [
        item for item in items if item.counts_toward_mood and item.score >= min_score
    ]
    return sorted(qualifying, key=lambda item: (-item.score, item.position))


def materialize_playlist(
    store: Store,
    queue: DailyQueue,
    items: list[DailyQueueItem],
    min_score: int = PLAYLIST_MIN_SCORE,
) -> DailyPlaylist:
    """Create the playlist row and its items in one write.

    Raises:
        DuplicateCompletion: A playlist already exists for this queue.
        StoreError: Any other persistence failure.
    """
    if queue.mood is None:
        raise ValueError(f"Queue {queue.id} has no mood yet")

    selected = playlist_candidates(items, min_score)
    try:
        with store.transaction():
            [row] = store.insert(
                "daily_playlists",
                {"queue_id": queue.id, "user_id": queue.user_id, "mood": queue.mood},
            )
            if selected:
                store.insert(
                    "daily_playlist_items",
                    [
                        {
                            "playlist_id": row["id"],
                            "item_id": item.item_id,
                            "score": item.score,
                            "position": position,
                        }
                        for position, item in enumerate(selected)
                    ],
                )
    except UniqueViolation as e:
        raise DuplicateCompletion(f"Queue {queue.id} already has a playlist") from e

    return DailyPlaylist.model_validate(row)


def check_completion(
    store: Store,
    queue_id: str,
    audit: AuditLogger | None = None,
    min_score: int = PLAYLIST_MIN_SCORE,
) -> DailyPlaylist | None:
    """Complete the queue if every item is resolved.

    The resolved check and the ``completed_at`` write happen in one store
    transaction, so of two callers resolving the last item only one records
    the completion; the other sees it already done.

    Returns:
        The playlist if the queue is (now or already) complete, else None.
        None is also returned when the completion could not be recorded (the
        next rate/skip retries it) or when it was recorded but the playlist
        insert failed; that insert is not retried.
    """
    try:
        with store.transaction():
            queue = get_queue(store, queue_id)
            if queue is None:
                return None

            if queue.is_completed:
                return find_playlist(store, queue.id)

            items = get_queue_items(store, queue.id, with_items=False)
            if not items or not all(item.resolved for item in items):
                return None

            scores = mood_scores(items)
            mood = compute_mood(scores)
            updated = store.update(
                "daily_queues",
                queue.id,
                {"mood": mood, "completed_at": datetime.now(timezone.utc).isoformat()},
            )
    except StoreError as e:
        audit_event(audit, "COMPLETE_FAILED", queue=queue_id, error=str(e))
        return None

    queue = DailyQueue.model_validate(updated)
    audit_event(audit, "COMPLETE", queue=queue.id, mood=mood, rated=len(scores), total=len(items))

    try:
        playlist = materialize_playlist(store, queue, items, min_score)
    except DuplicateCompletion:
        audit_event(audit, "DUPLICATE_COMPLETION", queue=queue.id)
        return find_playlist(store, queue.id)
    except StoreError as e:
        audit_event(audit, "PLAYLIST_FAILED", queue=queue.id, error=str(e))
        return None

    audit_event(audit, "PLAYLIST", queue=queue.id, playlist=playlist.id, mood=playlist.mood)
    return playlist

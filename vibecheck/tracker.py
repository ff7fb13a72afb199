"""Rating and skip mutations for daily queue items."""

from datetime import datetime, timezone

from .audit import AuditLogger, audit_event, bind_audit
from .completion import PLAYLIST_MIN_SCORE, check_completion
from .errors import MutationFailed
from .models.daily import DailyPlaylist
from .queries import get_queue
from .store import Store, StoreError


def validate_score(score: int) -> int:
    """Scores are integers from 1 to 10."""
    if isinstance(score, bool) or not isinstance(score, int):
        raise ValueError(f"Score must be an integer, got {score!r}")
    if not 1 <= score <= 10:
        raise ValueError(f"Score must be between 1 and 10, got {score}")
    return score


def rate(
    store: Store,
    user_id: str,
    queue_item_id: str,
    item_id: str,
    score: int,
    audit: AuditLogger | None = None,
    min_score: int = PLAYLIST_MIN_SCORE,
) -> DailyPlaylist | None:
    """Score a queue item and mirror it into the user's rating history.

    Both writes go through one store transaction: either the queue item and
    the history row are updated together, or neither is.

    Returns:
        The day's playlist if this rating completed the queue.

    Raises:
        ValueError: Score out of range, ``item_id`` is not the item in that
            queue slot, or the queue belongs to another user.
        MutationFailed: The queue item does not exist or the writes did not
            persist.
    """
    validate_score(score)
    now = datetime.now(timezone.utc).isoformat()
    log = bind_audit(audit, user=user_id)

    try:
        with store.transaction():
            row = store.get("daily_queue_items", queue_item_id)
            if row is None:
                raise MutationFailed(f"No queue item {queue_item_id}")
            check_owner(store, row, user_id, item_id)
            store.update("daily_queue_items", queue_item_id, {"score": score, "rated_at": now})
            store.upsert(
                "ratings",
                {"user_id": user_id, "item_id": item_id, "score": score, "updated_at": now},
                on_conflict=("user_id", "item_id"),
            )
    except StoreError as e:
        raise MutationFailed(f"Could not save rating for {queue_item_id}: {e}") from e

    audit_event(log, "RATE", queue_item=queue_item_id, item=item_id, score=score)
    return check_completion(store, row["queue_id"], audit=log, min_score=min_score)


def check_owner(store: Store, row: dict, user_id: str, item_id: str) -> None:
    """Reject a rating aimed at someone else's queue or at the wrong track."""
    if row["item_id"] != item_id:
        raise ValueError(f"Queue item {row['id']} holds item {row['item_id']}, not {item_id}")
    queue = get_queue(store, row["queue_id"])
    if queue is None or queue.user_id != user_id:
        raise ValueError(f"Queue item {row['id']} does not belong to user {user_id}")


def skip(
    store: Store,
    queue_item_id: str,
    audit: AuditLogger | None = None,
    min_score: int = PLAYLIST_MIN_SCORE,
) -> DailyPlaylist | None:
    """Mark a queue item skipped. Best-effort: a failed write is only logged.

    Returns:
        The day's playlist if this skip completed the queue.
    """
    try:
        row = store.update("daily_queue_items", queue_item_id, {"skipped": True})
        queue_id = row["queue_id"]
    except StoreError as e:
        audit_event(audit, "SKIP_FAILED", queue_item=queue_item_id, error=str(e))
        existing = store.get("daily_queue_items", queue_item_id)
        if existing is None:
            return None
        queue_id = existing["queue_id"]
    else:
        audit_event(audit, "SKIP", queue_item=queue_item_id)

    return check_completion(store, queue_id, audit=audit, min_score=min_score)

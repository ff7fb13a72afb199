"""Read paths for daily queues and playlists.

Every caller that needs "today's queue" goes through these functions so the
builder's short-circuit, the status check and the UI all see the same data.
"""

from datetime import date

from .models.daily import (
    BuildingStatus,
    CatalogItem,
    CompletedStatus,
    DailyPlaylist,
    DailyPlaylistItem,
    DailyQueue,
    DailyQueueItem,
    DailyStatus,
    InProgressStatus,
    NoQueueStatus,
    PlaylistView,
    QueueView,
)
from .store import Store


def find_queue(store: Store, user_id: str, day: date) -> DailyQueue | None:
    """The queue for (user, day), if one exists."""
    rows = store.select("daily_queues", user_id=user_id, date=day.isoformat())
    return DailyQueue.model_validate(rows[0]) if rows else None


def get_queue(store: Store, queue_id: str) -> DailyQueue | None:
    row = store.get("daily_queues", queue_id)
    return DailyQueue.model_validate(row) if row else None


def _catalog_lookup(store: Store, item_ids: list[str]) -> dict[str, CatalogItem]:
    rows = store.select_in("items", "id", item_ids)
    return {row["id"]: CatalogItem.model_validate(row) for row in rows}


def get_queue_items(store: Store, queue_id: str, with_items: bool = True) -> list[DailyQueueItem]:
    """Items of a queue in position order, optionally joined with catalog rows."""
    rows = store.select("daily_queue_items", order_by="position", queue_id=queue_id)
    catalog = _catalog_lookup(store, [r["item_id"] for r in rows]) if with_items else {}
    items = []
    for row in rows:
        item = DailyQueueItem.model_validate(row)
        item.item = catalog.get(item.item_id)
        items.append(item)
    return items


def get_queue_view(store: Store, queue: DailyQueue) -> QueueView:
    return QueueView(queue=queue, items=get_queue_items(store, queue.id))


def get_today_queue(store: Store, user_id: str, today: date) -> QueueView | None:
    """Today's queue with full item metadata, or None if not built yet."""
    queue = find_queue(store, user_id, today)
    if queue is None:
        return None
    return get_queue_view(store, queue)


def find_playlist(store: Store, queue_id: str) -> DailyPlaylist | None:
    rows = store.select("daily_playlists", queue_id=queue_id)
    return DailyPlaylist.model_validate(rows[0]) if rows else None


def get_playlist_view(store: Store, playlist: DailyPlaylist) -> PlaylistView:
    rows = store.select("daily_playlist_items", order_by="position", playlist_id=playlist.id)
    catalog = _catalog_lookup(store, [r["item_id"] for r in rows])
    items = []
    for row in rows:
        item = DailyPlaylistItem.model_validate(row)
        item.item = catalog.get(item.item_id)
        items.append(item)
    return PlaylistView(playlist=playlist, items=items)


def get_today_playlist(store: Store, user_id: str, today: date) -> PlaylistView | None:
    """Today's playlist with tracks, once the queue has been completed."""
    queue = find_queue(store, user_id, today)
    if queue is None or not queue.is_completed:
        return None
    playlist = find_playlist(store, queue.id)
    if playlist is None:
        return None
    return get_playlist_view(store, playlist)


def get_daily_status(store: Store, user_id: str, today: date) -> DailyStatus:
    """Lightweight status of today's queue, derived from the stored fields."""
    queue = find_queue(store, user_id, today)
    if queue is None:
        return NoQueueStatus()

    if queue.is_completed:
        return CompletedStatus(
            queue=queue, mood=queue.mood, playlist=find_playlist(store, queue.id)
        )

    items = get_queue_items(store, queue.id, with_items=False)
    if not items:
        return BuildingStatus(queue=queue)

    rated = sum(1 for item in items if item.resolved)
    return InProgressStatus(queue=queue, rated=rated, total=len(items))

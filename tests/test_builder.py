"""Tests for QueueBuilder."""

import random

import pytest
from conftest import TODAY, USER, make_tracks, run_in_threads

from vibecheck import queries
from vibecheck.builder import QueueBuilder, dedupe_tracks, select_tracks
from vibecheck.config import DailyConfig
from vibecheck.errors import BuildFailed, NoCredential
from vibecheck.lookup import TagLookup
from vibecheck.sources.base import StaticCredentials, Track
from vibecheck.sources.mock import MockSource
from vibecheck.store import Store, StoreError


class FixedLookup(TagLookup):
    """Lookup that tags every track with the same genres."""

    def __init__(self, genres, preview="https://cdn.example/preview.mp3"):
        self.genres = genres
        self.preview = preview
        self.calls = []

    def lookup_tags(self, name, primary_artist):
        self.calls.append(("tags", name, primary_artist))
        return list(self.genres)

    def lookup_preview(self, name, primary_artist):
        self.calls.append(("preview", name, primary_artist))
        return self.preview


class ExplodingLookup(TagLookup):
    """Lookup that breaks its never-raise contract."""

    def lookup_tags(self, name, primary_artist):
        raise RuntimeError("lookup down")

    def lookup_preview(self, name, primary_artist):
        raise RuntimeError("lookup down")


def make_builder(store, source, token="token", **kwargs):
    return QueueBuilder(
        store, source, StaticCredentials(token), rng=random.Random(7), **kwargs
    )


class TestDedupeAndSelect:
    """Tests for dedupe_tracks() and select_tracks()."""

    def test_dedupe_keeps_first_occurrence(self):
        """Later duplicates are dropped; order is preserved."""
        a, b = make_tracks(2)
        a_again = Track(a.source_id, "Other name", ["Other"])
        assert dedupe_tracks([a, b, a_again]) == [a, b]

    def test_dedupe_does_not_require_artwork(self):
        """Tracks without artwork are kept."""
        track = Track("trk_x", "No Art", ["Artist"], None)
        assert dedupe_tracks([track]) == [track]

    def test_select_takes_at_most_size(self):
        """Selection never exceeds the requested size."""
        pool = make_tracks(25)
        selected = select_tracks(pool, 10, random.Random(1))
        assert len(selected) == 10
        assert len({t.source_id for t in selected}) == 10

    def test_select_takes_all_when_pool_small(self):
        """A pool smaller than size is returned in full."""
        pool = make_tracks(4)
        selected = select_tracks(pool, 10, random.Random(1))
        assert sorted(t.source_id for t in selected) == sorted(t.source_id for t in pool)

    def test_select_does_not_mutate_pool(self):
        """The caller's pool keeps its order."""
        pool = make_tracks(12)
        before = list(pool)
        select_tracks(pool, 10, random.Random(1))
        assert pool == before

    def test_select_is_deterministic_for_seed(self):
        """The same seed gives the same selection."""
        pool = make_tracks(30)
        first = select_tracks(pool, 10, random.Random(3))
        second = select_tracks(pool, 10, random.Random(3))
        assert first == second


class TestEnsureDailyQueue:
    """Tests for QueueBuilder.ensure_daily_queue()."""

    def test_builds_queue_of_ten(self, built_queue):
        """The mock pool has 14 distinct tracks, so the queue holds 10."""
        assert len(built_queue.items) == 10
        assert built_queue.queue.user_id == USER
        assert built_queue.queue.date == TODAY
        assert built_queue.queue.mood is None
        assert not built_queue.queue.is_completed

    def test_items_are_distinct_and_ordered(self, built_queue):
        """Positions run 0..k-1 and no track appears twice."""
        assert [item.position for item in built_queue.items] == list(range(10))
        source_ids = [item.item.source_id for item in built_queue.items]
        assert len(set(source_ids)) == len(source_ids)

    def test_items_carry_catalog_metadata(self, built_queue):
        """Each queue item is joined with its catalog row."""
        for item in built_queue.items:
            assert item.item is not None
            assert item.item.name
            assert item.item.artists
            assert item.score is None
            assert item.skipped is False

    def test_idempotent_same_day(self, builder, built_queue, mock_source):
        """A second call returns the same queue and items without sourcing."""
        calls_before = list(mock_source.calls)
        again = builder.ensure_daily_queue(USER, TODAY)
        assert again.queue.id == built_queue.queue.id
        assert [i.id for i in again.items] == [i.id for i in built_queue.items]
        assert mock_source.calls == calls_before

    def test_existing_queue_logged(self, builder, built_queue, audit_path):
        """The short-circuit is recorded in the audit log."""
        builder.ensure_daily_queue(USER, TODAY)
        content = audit_path.read_text()
        assert "[QUEUE_BUILD]" in content
        assert "[QUEUE_EXISTS]" in content

    def test_small_pool_gives_short_queue(self, store):
        """Queue size is min(10, distinct candidates)."""
        tracks = make_tracks(4)
        source = MockSource(history=tracks, recent=tracks[:2], top_ids=[], similar=[])
        view = make_builder(store, source).ensure_daily_queue(USER, TODAY)
        assert len(view.items) == 4

    def test_queue_size_from_config(self, store):
        """queue_size caps the selection."""
        builder = make_builder(store, MockSource(), config=DailyConfig(queue_size=3))
        view = builder.ensure_daily_queue(USER, TODAY)
        assert len(view.items) == 3

    def test_separate_users_get_separate_queues(self, store):
        """Queues are scoped per user."""
        first = make_builder(store, MockSource()).ensure_daily_queue("alice", TODAY)
        second = make_builder(store, MockSource()).ensure_daily_queue("bob", TODAY)
        assert first.queue.id != second.queue.id

    def test_catalog_shared_across_users(self, store):
        """Tracks are upserted, not duplicated, when two users draw them."""
        make_builder(store, MockSource(), config=DailyConfig(queue_size=14)).ensure_daily_queue(
            "alice", TODAY
        )
        make_builder(store, MockSource(), config=DailyConfig(queue_size=14)).ensure_daily_queue(
            "bob", TODAY
        )
        assert len(store.select("items")) == 14

    def test_no_credential(self, store, audit):
        """A missing credential raises NoCredential and writes nothing."""
        builder = make_builder(store, MockSource(), token=None, audit=audit)
        with pytest.raises(NoCredential):
            builder.ensure_daily_queue(USER, TODAY)
        assert store.select("daily_queues") == []
        assert "[NO_CREDENTIAL]" in audit.log_path.read_text()

    def test_empty_pool_is_build_failed(self, store):
        """A valid credential with nothing to choose from is BuildFailed, not NoCredential."""
        source = MockSource(history=[], recent=[], top_ids=[], similar=[])
        with pytest.raises(BuildFailed):
            make_builder(store, source).ensure_daily_queue(USER, TODAY)
        assert store.select("daily_queues") == []

    def test_all_strategies_failing_is_build_failed(self, store, audit):
        """Transport failures on every strategy end in BuildFailed."""
        source = MockSource(failing={"history", "recent", "top"})
        with pytest.raises(BuildFailed):
            make_builder(store, source, audit=audit).ensure_daily_queue(USER, TODAY)
        content = audit.log_path.read_text()
        assert content.count("[SOURCE_FAILED]") == 3
        assert "[QUEUE_BUILD_FAILED]" in content

    def test_one_failing_strategy_degrades(self, store):
        """A single failing strategy contributes nothing but the build continues."""
        source = MockSource(failing={"history", "top"})
        view = make_builder(store, source).ensure_daily_queue(USER, TODAY)
        # recent plays only, no seeds for recommendations
        assert len(view.items) == 4
        assert "similar" not in source.calls

    def test_similar_skipped_without_seeds(self, store):
        """No top artists means no recommendation call."""
        source = MockSource(top_ids=[])
        make_builder(store, source).ensure_daily_queue(USER, TODAY)
        assert "similar" not in source.calls

    def test_seed_count_passed_to_source(self, store):
        """At most seed_artist_count top artists are requested."""
        source = MockSource(top_ids=["a1", "a2", "a3", "a4", "a5", "a6", "a7"])
        seen = {}
        original = source.fetch_similar

        def spy(credential, seed_ids, limit):
            seen["seeds"] = seed_ids
            seen["limit"] = limit
            return original(credential, seed_ids, limit)

        source.fetch_similar = spy
        make_builder(store, source).ensure_daily_queue(USER, TODAY)
        assert seen == {"seeds": ["a1", "a2", "a3", "a4", "a5"], "limit": 30}

    def test_enrichment_fills_genres_and_previews(self, store):
        """Lookup genres and previews are stored on the catalog rows."""
        lookup = FixedLookup(["indie pop"])
        view = make_builder(store, MockSource(), lookup=lookup).ensure_daily_queue(USER, TODAY)
        for item in view.items:
            assert item.item.genres == ["indie pop"]
            assert item.item.preview_url == "https://cdn.example/preview.mp3"

    def test_existing_preview_not_replaced(self, store):
        """Preview lookup only runs for tracks without one."""
        track = Track("trk_p", "Has Preview", ["A"], None, "https://p.example/own.mp3")
        source = MockSource(history=[track], recent=[], top_ids=[], similar=[])
        lookup = FixedLookup([])
        view = make_builder(store, source, lookup=lookup).ensure_daily_queue(USER, TODAY)
        assert view.items[0].item.preview_url == "https://p.example/own.mp3"
        assert ("preview", "Has Preview", "A") not in lookup.calls

    def test_lookup_failure_does_not_abort_build(self, store, audit):
        """A raising lookup is absorbed and the build completes."""
        view = make_builder(
            store, MockSource(), lookup=ExplodingLookup(), audit=audit
        ).ensure_daily_queue(USER, TODAY)
        assert len(view.items) == 10
        assert all(item.item.genres == [] for item in view.items)
        assert "[LOOKUP_FAILED]" in audit.log_path.read_text()

    def test_catalog_failure_is_build_failed(self, store, monkeypatch):
        """An upsert error aborts the build before any queue is written."""

        def broken_upsert(*args, **kwargs):
            raise StoreError("disk full")

        monkeypatch.setattr(store, "upsert", broken_upsert)
        with pytest.raises(BuildFailed, match="catalog upsert failed"):
            make_builder(store, MockSource()).ensure_daily_queue(USER, TODAY)
        assert store.select("daily_queues") == []

    def test_queue_insert_failure_leaves_no_partial_queue(self, store, monkeypatch):
        """A failure while inserting items rolls back the queue row too."""
        original_insert = store.insert

        def failing_insert(table, rows):
            if table == "daily_queue_items":
                raise StoreError("write failed")
            return original_insert(table, rows)

        monkeypatch.setattr(store, "insert", failing_insert)
        with pytest.raises(BuildFailed, match="queue insert failed"):
            make_builder(store, MockSource()).ensure_daily_queue(USER, TODAY)
        assert Store(store.store_path).select("daily_queues") == []

    def test_race_returns_winning_queue(self, store, monkeypatch, audit):
        """Losing the insert race returns the queue the other caller built."""
        winner = make_builder(store, MockSource()).ensure_daily_queue(USER, TODAY)

        # The loser's first read happened before the winner committed
        original = queries.get_today_queue
        reads = []

        def stale_first_read(store_, user_id, today):
            reads.append(today)
            if len(reads) == 1:
                return None
            return original(store_, user_id, today)

        monkeypatch.setattr("vibecheck.builder.get_today_queue", stale_first_read)
        loser = make_builder(store, MockSource(), audit=audit).ensure_daily_queue(USER, TODAY)

        assert loser.queue.id == winner.queue.id
        assert len(store.select("daily_queues")) == 1
        assert len(store.select("daily_queue_items")) == 10
        assert "[QUEUE_RACE]" in audit.log_path.read_text()

    def test_concurrent_builds_share_one_queue(self, store_path, audit):
        """Builders racing on the same day all return the one queue that got persisted."""

        def build(n):
            builder = make_builder(Store(store_path), MockSource(), audit=audit)
            return builder.ensure_daily_queue(USER, TODAY)

        results = run_in_threads(build, 4)

        assert not any(isinstance(r, Exception) for r in results)
        assert len({view.queue.id for view in results}) == 1
        store = Store(store_path)
        assert len(store.select("daily_queues")) == 1
        assert len(store.select("daily_queue_items")) == 10
        assert audit.log_path.read_text().count("[QUEUE_BUILD]") == 1

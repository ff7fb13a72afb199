"""Pytest fixtures for vibecheck tests."""

import random
import threading
from datetime import date
from pathlib import Path

import pytest

from vibecheck.audit import AuditLogger
from vibecheck.builder import QueueBuilder
from vibecheck.models.daily import QueueView
from vibecheck.sources.base import StaticCredentials, Track
from vibecheck.sources.mock import MockSource
from vibecheck.store import Store

USER = "user-1"
TODAY = date(2026, 2, 19)


def make_tracks(count: int, prefix: str = "trk") -> list[Track]:
    """Distinct tracks with one artist each."""
    return [
        Track(f"{prefix}_{i:02d}", f"Song {i}", [f"Artist {i % 3}"], f"https://img.example/{i}.jpg")
        for i in range(count)
    ]


def run_in_threads(fn, count: int) -> list:
    """Call fn(i) for i in range(count) from threads released together.

    Results come back in index order; an exception takes its call's place.
    """
    barrier = threading.Barrier(count)
    results: list = [None] * count

    def worker(i: int) -> None:
        barrier.wait()
        try:
            results[i] = fn(i)
        except Exception as e:
            results[i] = e

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return results


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    """Return a temporary store file path."""
    return tmp_path / "store.json"


@pytest.fixture
def store(store_path: Path) -> Store:
    """Return a Store instance with temporary path."""
    return Store(store_path)


@pytest.fixture
def audit_path(tmp_path: Path) -> Path:
    return tmp_path / "audit.log"


@pytest.fixture
def audit(audit_path: Path) -> AuditLogger:
    return AuditLogger(audit_path)


@pytest.fixture
def mock_source() -> MockSource:
    return MockSource()


@pytest.fixture
def builder(store: Store, mock_source: MockSource, audit: AuditLogger) -> QueueBuilder:
    """A builder over the canned mock source with a fixed shuffle."""
    return QueueBuilder(
        store,
        mock_source,
        StaticCredentials("token"),
        audit=audit,
        rng=random.Random(42),
    )


@pytest.fixture
def built_queue(builder: QueueBuilder) -> QueueView:
    """Today's queue, freshly built from the mock source."""
    return builder.ensure_daily_queue(USER, TODAY)

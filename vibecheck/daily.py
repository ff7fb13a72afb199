"""Daily queue service and command-line entry point.

DailyService ties the store, candidate source, credentials, lookup and audit
log together and resolves "today" in the user's timezone, so callers only
pass user and item ids.
"""

import argparse
import json
import os
import random
import sys
from collections.abc import Callable
from datetime import date, datetime
from pathlib import Path

from .audit import AuditLogger
from .builder import QueueBuilder
from .clock import format_countdown, local_now, next_queue_time, resolve_timezone, today_date
from .completion import PLAYLIST_MIN_SCORE, empty_playlist_message, playlist_caption
from .config import DailyConfig, load_config
from .errors import BuildFailed, MutationFailed, NoCredential
from .lookup import DeezerLookup, NullLookup, TagLookup
from .models.daily import DailyPlaylist, DailyStatus, PlaylistView, QueueView
from .queries import get_daily_status, get_today_playlist, get_today_queue
from .sources.base import CandidateSource, CredentialProvider, StaticCredentials
from .sources.mock import MockSource
from .sources.spotify import SpotifySource, TokenFileCredentials
from .store import Store
from .tracker import rate, skip


class DailyService:
    """Entry point for everything the daily screen does."""

    def __init__(
        self,
        store: Store,
        source: CandidateSource,
        credentials: CredentialProvider,
        lookup: TagLookup | None = None,
        audit: AuditLogger | None = None,
        config: DailyConfig | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.audit = audit
        self.config = config or DailyConfig()
        self.tz = resolve_timezone(self.config.timezone)
        self.clock = clock or (lambda: local_now(self.tz))
        self.builder = QueueBuilder(
            store,
            source,
            credentials,
            lookup=lookup,
            audit=audit,
            config=self.config,
            rng=rng,
        )

    def today(self) -> date:
        return today_date(self.clock(), self.tz)

    def ensure(self, user_id: str) -> QueueView:
        """Get or build today's queue. Raises NoCredential or BuildFailed."""
        return self.builder.ensure_daily_queue(user_id, self.today())

    def queue(self, user_id: str) -> QueueView | None:
        return get_today_queue(self.store, user_id, self.today())

    def rate(
        self, user_id: str, queue_item_id: str, item_id: str, score: int
    ) -> DailyPlaylist | None:
        return rate(
            self.store,
            user_id,
            queue_item_id,
            item_id,
            score,
            audit=self.audit,
            min_score=self.config.playlist_min_score,
        )

    def skip(self, queue_item_id: str) -> DailyPlaylist | None:
        return skip(
            self.store, queue_item_id, audit=self.audit, min_score=self.config.playlist_min_score
        )

    def status(self, user_id: str) -> DailyStatus:
        return get_daily_status(self.store, user_id, self.today())

    def playlist(self, user_id: str) -> PlaylistView | None:
        return get_today_playlist(self.store, user_id, self.today())

    def countdown(self) -> str:
        """Time left until the next queue, as HH:MM:SS."""
        now = self.clock()
        return format_countdown(next_queue_time(now, self.config.next_queue_hour) - now)


def get_provider(
    provider_name: str, token_path: Path | None, config: DailyConfig
) -> tuple[CandidateSource, CredentialProvider, TagLookup]:
    """Get a candidate source, credential provider and lookup by name.

    Args:
        provider_name: "mock" or "spotify".
        token_path: Token file for the spotify provider.
        config: Settings for fetch limits.

    Raises:
        ValueError: If provider is not supported.
    """
    if provider_name == "mock":
        return MockSource(), StaticCredentials("mock-token"), NullLookup()
    if provider_name == "spotify":
        credentials = TokenFileCredentials(
            token_path or Path("data/spotify_token.json"),
            client_id=os.getenv("SPOTIFY_CLIENT_ID"),
        )
        source = SpotifySource(
            history_limit=config.history_limit, recent_limit=config.recent_limit
        )
        return source, credentials, DeezerLookup()
    raise ValueError(f"Unknown provider: {provider_name}. Supported: mock, spotify")


def _print_json(model) -> None:
    print(json.dumps(model.model_dump(mode="json"), indent=2))


def _print_queue(view: QueueView) -> None:
    print(f"Queue {view.queue.id} for {view.queue.date.isoformat()}")
    for item in view.items:
        if item.skipped:
            state = "skipped"
        elif item.score is not None:
            state = f"{item.score}/10"
        else:
            state = "pending"
        name = item.item.name if item.item else item.item_id
        artists = ", ".join(item.item.artists) if item.item else ""
        print(f"  {item.position:2d}. [{item.id}] {name} - {artists} ({state})")


def _print_playlist(view: PlaylistView, min_score: int = PLAYLIST_MIN_SCORE) -> None:
    count = len(view.items)
    tracks = "track" if count == 1 else "tracks"
    caption = playlist_caption(min_score)
    print(f"Today's {view.playlist.mood} playlist · {count} {tracks} · {caption}")
    if not view.items:
        print(f"  {empty_playlist_message(min_score)}")
    for item in view.items:
        name = item.item.name if item.item else item.item_id
        print(f"  {item.position + 1}. {name} ({item.score}/10)")


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for the daily queue."""
    parser = argparse.ArgumentParser(description="Build, rate and review the daily queue")
    parser.add_argument("--store", type=Path, required=True, help="Path to the store JSON file")
    parser.add_argument("--user", required=True, help="User id")
    parser.add_argument("--config", type=Path, default=None, help="Path to a JSON settings file")
    parser.add_argument(
        "--audit-log", type=Path, default=None, help="Path to audit log file (optional)"
    )
    parser.add_argument(
        "--provider",
        default="mock",
        choices=["mock", "spotify"],
        help="Candidate source to use (default: mock)",
    )
    parser.add_argument("--token-file", type=Path, default=None, help="Spotify token file")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for the shuffle")
    parser.add_argument("--json", action="store_true", help="Print results as JSON")

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("build", help="Get or build today's queue")
    commands.add_parser("status", help="Show today's progress")
    commands.add_parser("playlist", help="Show today's playlist")
    commands.add_parser("countdown", help="Time until the next queue")
    rate_cmd = commands.add_parser("rate", help="Score a queue item")
    rate_cmd.add_argument("queue_item", help="Queue item id")
    rate_cmd.add_argument("score", type=int, help="Score from 1 to 10")
    skip_cmd = commands.add_parser("skip", help="Skip a queue item")
    skip_cmd.add_argument("queue_item", help="Queue item id")

    args = parser.parse_args(argv)

    config = load_config(args.config)
    source, credentials, lookup = get_provider(args.provider, args.token_file, config)
    service = DailyService(
        Store(args.store),
        source,
        credentials,
        lookup=lookup,
        audit=AuditLogger(args.audit_log) if args.audit_log else None,
        config=config,
        rng=random.Random(args.seed) if args.seed is not None else None,
    )

    if args.command == "build":
        try:
            view = service.ensure(args.user)
        except NoCredential as e:
            print(f"Not connected: {e}", file=sys.stderr)
            return 2
        except BuildFailed as e:
            print(f"Couldn't build today's queue, try again: {e}", file=sys.stderr)
            return 1
        if args.json:
            _print_json(view)
        else:
            _print_queue(view)

    elif args.command == "status":
        status = service.status(args.user)
        if args.json:
            _print_json(status)
        elif status.state == "in_progress":
            print(f"In progress: {status.rated}/{status.total} rated")
        elif status.state == "completed":
            print(f"Completed: {status.mood}")
        else:
            print(status.state.replace("_", " ").capitalize())

    elif args.command == "playlist":
        view = service.playlist(args.user)
        if view is None:
            print("No playlist yet. Finish today's queue first.")
            return 1
        if args.json:
            _print_json(view)
        else:
            _print_playlist(view, service.config.playlist_min_score)

    elif args.command == "countdown":
        print(service.countdown())

    elif args.command in ("rate", "skip"):
        row = service.store.get("daily_queue_items", args.queue_item)
        if row is None:
            print(f"Error: queue item not found: {args.queue_item}", file=sys.stderr)
            return 1
        try:
            if args.command == "rate":
                playlist = service.rate(args.user, args.queue_item, row["item_id"], args.score)
            else:
                playlist = service.skip(args.queue_item)
        except (ValueError, MutationFailed) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        if playlist is not None:
            print(f"Queue complete! Today's mood: {playlist.mood}")

    return 0


if __name__ == "__main__":
    sys.exit(main())

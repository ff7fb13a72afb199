"""vibecheck - daily track queue, mood playlist and taste ranking engine."""

__version__ = "1.0.0"

from .builder import QueueBuilder
from .completion import check_completion, materialize_playlist
from .config import DailyConfig, load_config
from .daily import DailyService
from .errors import (
    BuildFailed,
    DuplicateCompletion,
    MutationFailed,
    NoCredential,
    SourceError,
    VibecheckError,
)
from .mood import compute_mood
from .store import Store, StoreError, UniqueViolation
from .taste import build_profile, rank_artists, rank_genres
from .tracker import rate, skip

__all__ = [
    "__version__",
    "QueueBuilder",
    "DailyService",
    "check_completion",
    "materialize_playlist",
    "rate",
    "skip",
    "compute_mood",
    "rank_artists",
    "rank_genres",
    "build_profile",
    "DailyConfig",
    "load_config",
    "Store",
    "StoreError",
    "UniqueViolation",
    "VibecheckError",
    "NoCredential",
    "BuildFailed",
    "MutationFailed",
    "DuplicateCompletion",
    "SourceError",
]

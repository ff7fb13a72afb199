"""Mock candidate source for testing and offline use.

Returns a fixed set of canned tracks. The history and recent lists overlap on
purpose so callers exercise deduplication.
"""

from ..errors import SourceError
from .base import CandidateSource, Track

# =============================================================================
# Canned tracks
# =============================================================================
HISTORY_TRACKS = [
    Track("trk_01", "Midnight City", ["M83"], "https://img.example/m83.jpg"),
    Track("trk_02", "Dreams", ["Fleetwood Mac"], "https://img.example/rumours.jpg"),
    Track("trk_03", "Redbone", ["Childish Gambino"], "https://img.example/awaken.jpg"),
    Track("trk_04", "Motion Sickness", ["Phoebe Bridgers"], "https://img.example/stranger.jpg"),
    Track("trk_05", "Nights", ["Frank Ocean"], "https://img.example/blonde.jpg"),
    Track("trk_06", "Teardrop", ["Massive Attack"], None),
]

RECENT_TRACKS = [
    Track("trk_03", "Redbone", ["Childish Gambino"], "https://img.example/awaken.jpg"),
    Track("trk_07", "Runaway", ["Kanye West", "Pusha T"], "https://img.example/mbdtf.jpg"),
    Track("trk_08", "Holocene", ["Bon Iver"], "https://img.example/boniver.jpg"),
    Track("trk_01", "Midnight City", ["M83"], "https://img.example/m83.jpg"),
]

TOP_ARTIST_IDS = ["art_m83", "art_frank_ocean", "art_bon_iver"]

SIMILAR_TRACKS = [
    Track("trk_09", "Oblivion", ["Grimes"], "https://img.example/visions.jpg"),
    Track("trk_10", "Pink + White", ["Frank Ocean"], "https://img.example/blonde.jpg"),
    Track("trk_11", "Skinny Love", ["Bon Iver"], "https://img.example/emma.jpg"),
    Track("trk_12", "Wait", ["M83"], "https://img.example/hurry.jpg"),
    Track("trk_13", "Kyoto", ["Phoebe Bridgers"], None),
    Track("trk_14", "Ivy", ["Frank Ocean"], "https://img.example/blonde.jpg"),
]

STRATEGIES = frozenset({"history", "recent", "top", "similar"})


class MockSource(CandidateSource):
    """Canned candidate source.

    Args:
        history, recent, top_ids, similar: Override the canned lists.
        failing: Strategy names ("history", "recent", "top", "similar") that
            raise SourceError instead of returning data.
    """

    def __init__(
        self,
        history: list[Track] | None = None,
        recent: list[Track] | None = None,
        top_ids: list[str] | None = None,
        similar: list[Track] | None = None,
        failing: set[str] | frozenset[str] = frozenset(),
    ) -> None:
        unknown = set(failing) - STRATEGIES
        if unknown:
            raise ValueError(f"Unknown strategies: {sorted(unknown)}")
        self.history = list(HISTORY_TRACKS if history is None else history)
        self.recent = list(RECENT_TRACKS if recent is None else recent)
        self.top_ids = list(TOP_ARTIST_IDS if top_ids is None else top_ids)
        self.similar = list(SIMILAR_TRACKS if similar is None else similar)
        self.failing = frozenset(failing)
        self.calls: list[str] = []

    def _call(self, strategy: str) -> None:
        self.calls.append(strategy)
        if strategy in self.failing:
            raise SourceError(f"mock {strategy} unavailable")

    def fetch_broad_history(self, credential: str) -> list[Track]:
        self._call("history")
        return list(self.history)

    def fetch_recent(self, credential: str) -> list[Track]:
        self._call("recent")
        return list(self.recent)

    def fetch_top_entities(self, credential: str, k: int) -> list[str]:
        self._call("top")
        return self.top_ids[:k]

    def fetch_similar(self, credential: str, seed_ids: list[str], limit: int) -> list[Track]:
        self._call("similar")
        return self.similar[:limit]

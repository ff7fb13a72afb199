"""Taste Ranker - rank a user's artists and genres from their rating history.

Ranking uses a Bayesian average so a single lucky 10/10 does not outrank an
artist with many consistently good ratings:

    adjusted = (sum_of_scores + M * global_mean) / (count + M)

M is the prior strength (3: roughly three ratings before an entity's own
average is taken at face value) and global_mean is the user's mean score
over all ratings (6.5 when they have none).
"""

import argparse
import json
import re
from collections.abc import Callable, Iterable
from pathlib import Path

from .config import load_config
from .models.daily import CatalogItem, Rating
from .models.taste import Persona, RatedTrack, TasteEntity, TasteProfile
from .store import Store

BAYES_M = 3
DEFAULT_GLOBAL_MEAN = 6.5
TOP_ARTISTS = 7
TOP_GENRES = 10
LOVED_SCORE = 8

# (minimum average, label, description), checked in order
PERSONAS = (
    (8.5, "The Connoisseur", "Only what truly moves you earns a high score"),
    (7.5, "True Believer", "Music is a deeply serious thing to you"),
    (6.5, "Discerning Listener", "You know exactly what you like"),
    (5.5, "Avid Explorer", "You hear it all and rate honestly"),
)
NEW_LISTENER = Persona(label="Getting Started", description="Rate more tracks to reveal your taste")
HARD_TO_PLEASE = Persona(label="Hard to Please", description="Your standards are sky high")
PERSONA_MIN_RATINGS = 5


def bayesian_score(total: float, count: int, global_mean: float, m: float = BAYES_M) -> float:
    """Shrink an entity's average toward ``global_mean`` by ``m`` pseudo-ratings."""
    return (total + m * global_mean) / (count + m)


def global_mean(ratings: list[RatedTrack], default: float = DEFAULT_GLOBAL_MEAN) -> float:
    """Mean score over every rating, or ``default`` when there are none."""
    if not ratings:
        return default
    return sum(r.score for r in ratings) / len(ratings)


def title_case(text: str) -> str:
    """Capitalize the first letter of every word, leaving the rest untouched."""
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), text)


def rank_entities(
    ratings: list[RatedTrack],
    keys: Callable[[RatedTrack], Iterable[str]],
    m: float = BAYES_M,
    default_mean: float = DEFAULT_GLOBAL_MEAN,
    display: Callable[[str], str] | None = None,
) -> list[TasteEntity]:
    """Aggregate ratings per entity and rank them, best first.

    Args:
        ratings: The user's full rating history.
        keys: Entity names a rating contributes to (its artists or genres).
        m: Prior strength.
        default_mean: Prior mean when there are no ratings.
        display: Maps an entity name to its display name.

    Returns:
        Every entity, sorted by adjusted score, then count, then raw average.
        Remaining ties keep first-encountered order.
    """
    prior = global_mean(ratings, default_mean)
    stats: dict[str, dict] = {}
    for rating in ratings:
        for name in dict.fromkeys(keys(rating)):
            entry = stats.setdefault(name, {"count": 0, "total": 0, "image_url": None})
            entry["count"] += 1
            entry["total"] += rating.score
            if entry["image_url"] is None and rating.image_url:
                entry["image_url"] = rating.image_url

    entities = [
        TasteEntity(
            name=name,
            display_name=display(name) if display else name,
            count=entry["count"],
            total=entry["total"],
            avg_score=entry["total"] / entry["count"],
            adjusted_score=bayesian_score(entry["total"], entry["count"], prior, m),
            image_url=entry["image_url"],
        )
        for name, entry in stats.items()
    ]
    entities.sort(key=lambda e: (-e.adjusted_score, -e.count, -e.avg_score))
    return entities


def rank_artists(
    ratings: list[RatedTrack],
    limit: int | None = TOP_ARTISTS,
    m: float = BAYES_M,
    default_mean: float = DEFAULT_GLOBAL_MEAN,
) -> list[TasteEntity]:
    """Top artists by adjusted score."""
    ranked = rank_entities(ratings, lambda r: r.artists, m=m, default_mean=default_mean)
    return ranked if limit is None else ranked[:limit]


def rank_genres(
    ratings: list[RatedTrack],
    limit: int | None = TOP_GENRES,
    m: float = BAYES_M,
    default_mean: float = DEFAULT_GLOBAL_MEAN,
) -> list[TasteEntity]:
    """Top genres by adjusted score. Display names are title-cased."""
    ranked = rank_entities(
        ratings, lambda r: r.genres, m=m, default_mean=default_mean, display=title_case
    )
    return ranked if limit is None else ranked[:limit]


def score_distribution(ratings: list[RatedTrack]) -> dict[int, int]:
    """Number of ratings at each score from 1 to 10."""
    counts = dict.fromkeys(range(1, 11), 0)
    for rating in ratings:
        counts[rating.score] += 1
    return counts


def persona(avg: float, total: int) -> Persona:
    """A label for how the user rates."""
    if total < PERSONA_MIN_RATINGS:
        return NEW_LISTENER
    for threshold, label, description in PERSONAS:
        if avg >= threshold:
            return Persona(label=label, description=description)
    return HARD_TO_PLEASE


def tracks_for_artist(ratings: list[RatedTrack], artist: str) -> list[RatedTrack]:
    """Ratings credited to ``artist``, best first."""
    return sorted((r for r in ratings if artist in r.artists), key=lambda r: -r.score)


def tracks_for_genre(ratings: list[RatedTrack], genre: str) -> list[RatedTrack]:
    """Ratings tagged with ``genre``, best first."""
    return sorted((r for r in ratings if genre in r.genres), key=lambda r: -r.score)


def recently_loved(ratings: list[RatedTrack], limit: int = 6) -> list[RatedTrack]:
    """The first ``limit`` ratings of 8 or more, in history order."""
    return [r for r in ratings if r.score >= LOVED_SCORE][:limit]


def build_profile(
    ratings: list[RatedTrack],
    top_artists: int = TOP_ARTISTS,
    top_genres: int = TOP_GENRES,
    m: float = BAYES_M,
    default_mean: float = DEFAULT_GLOBAL_MEAN,
) -> TasteProfile:
    """Everything the profile view needs, computed fresh from the history."""
    total = len(ratings)
    avg = sum(r.score for r in ratings) / total if total else 0.0
    return TasteProfile(
        total_ratings=total,
        avg_score=avg,
        persona=persona(avg, total),
        top_artists=rank_artists(ratings, top_artists, m, default_mean),
        top_genres=rank_genres(ratings, top_genres, m, default_mean),
        distribution=score_distribution(ratings),
        recently_loved=recently_loved(ratings),
    )


def share_text(profile: TasteProfile, username: str = "") -> str:
    """Plain-text profile summary for sharing."""
    score = f"{profile.avg_score:.1f}" if profile.total_ratings else "—"
    lines = [
        "My Vibecheck Profile",
        profile.persona.label,
        f"{profile.total_ratings} ratings · {score}/10 avg",
    ]
    if profile.top_artists:
        top = "\n".join(
            f"{i}. {a.name} (avg {a.avg_score:.1f})"
            for i, a in enumerate(profile.top_artists[:3], start=1)
        )
        lines.append(f"\nTop Artists:\n{top}")
    lines.append(f"\nvibecheck.app/@{username}")
    return "\n".join(lines)


def load_rated_tracks(store: Store, user_id: str) -> list[RatedTrack]:
    """The user's ratings joined with their catalog items, newest first."""
    ratings = [
        Rating.model_validate(row)
        for row in store.select("ratings", order_by="-created_at", user_id=user_id)
    ]
    catalog = {
        row["id"]: CatalogItem.model_validate(row)
        for row in store.select_in("items", "id", [r.item_id for r in ratings])
    }
    tracks = []
    for rating in ratings:
        item = catalog.get(rating.item_id)
        tracks.append(
            RatedTrack(
                item_id=rating.item_id,
                score=rating.score,
                name=item.name if item else "",
                artists=item.artists if item else [],
                genres=item.genres if item else [],
                image_url=item.image_url if item else None,
            )
        )
    return tracks


def main() -> None:
    """CLI entry point for the taste ranker."""
    parser = argparse.ArgumentParser(description="Rank a user's top artists and genres")
    parser.add_argument("--store", type=Path, required=True, help="Path to the store JSON file")
    parser.add_argument("--user", required=True, help="User id")
    parser.add_argument("--config", type=Path, default=None, help="Path to a JSON settings file")
    parser.add_argument("--username", default="", help="Username for the share text")
    parser.add_argument(
        "--json", action="store_true", help="Print the full profile as JSON"
    )
    args = parser.parse_args()

    config = load_config(args.config)
    profile = build_profile(
        load_rated_tracks(Store(args.store), args.user),
        top_artists=config.top_artists,
        top_genres=config.top_genres,
        m=config.bayes_prior_strength,
        default_mean=config.default_global_mean,
    )

    if args.json:
        print(json.dumps(profile.model_dump(mode="json"), indent=2))
        return

    print(share_text(profile, args.username))
    if profile.top_genres:
        print("\nTop Genres:")
        for i, genre in enumerate(profile.top_genres, start=1):
            print(f"  {i}. {genre.display_name} ({genre.count}, avg {genre.avg_score:.1f})")


if __name__ == "__main__":
    main()

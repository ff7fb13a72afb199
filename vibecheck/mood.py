"""Mood classification from a day's rating scores.

Mood is derived from the score distribution alone, so it works without any
per-track audio features:

- high spread (std dev >= 2.5)  -> mixed  (inconsistent day)
- mean >= 8                     -> hype   (loving everything)
- mean >= 6.5                   -> bright (enjoying the day)
- mean >= 4.5                   -> chill  (selective, understated)
- otherwise                     -> moody  (nothing landing)

A day with no scores at all (everything skipped) is mixed.
"""

import math
from collections.abc import Sequence

from .models.daily import DailyQueueItem, Mood

MOODS: tuple[Mood, ...] = ("hype", "bright", "chill", "moody", "mixed")

MIXED_SPREAD = 2.5

# (minimum mean, mood), checked in order
MEAN_BUCKETS: tuple[tuple[float, Mood], ...] = (
    (8.0, "hype"),
    (6.5, "bright"),
    (4.5, "chill"),
)


def compute_mood(scores: Sequence[int | float]) -> Mood:
    """Reduce a set of scores to one mood label."""
    if not scores:
        return "mixed"

    n = len(scores)
    mean = sum(scores) / n
    variance = sum((s - mean) ** 2 for s in scores) / n
    if math.sqrt(variance) >= MIXED_SPREAD:
        return "mixed"

    for threshold, mood in MEAN_BUCKETS:
        if mean >= threshold:
            return mood
    return "moody"


def mood_scores(items: Sequence[DailyQueueItem]) -> list[int]:
    """Scores that count toward the mood: scored and not skipped."""
    return [item.score for item in items if item.counts_toward_mood]

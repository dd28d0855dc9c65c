"""Random selection ("decide") over the unwatched part of a watchlist."""

import logging
import random
from typing import Iterable, Optional

from .constants import MOOD_KEYWORDS, MediaStatus
from .formatting import parse_duration_to_minutes, split_genres
from .models import MediaItem, SpinFilters

logger = logging.getLogger(__name__)


def _matches_genres(item: MediaItem, genres: list[str]) -> bool:
    if not item.genre:
        return False
    film_genres = item.genre.lower()
    return any(g.lower() in film_genres for g in genres)


def _within_duration(item: MediaItem, max_duration: int) -> bool:
    # Films without runtime info stay eligible
    if not item.duration:
        return True
    return parse_duration_to_minutes(item.duration) <= max_duration


def _matches_mood(item: MediaItem, keywords: list[str]) -> bool:
    text = f"{item.genre or ''} {item.plot or ''} {item.title or ''}".lower()
    return any(keyword in text for keyword in keywords)


def candidate_pool(items: Iterable[MediaItem], filters: Optional[SpinFilters] = None) -> list[MediaItem]:
    """Unwatched items that pass every filter."""
    pool = [item for item in items if item.status == MediaStatus.UNWATCHED]
    if filters is None:
        return pool

    if filters.genres:
        pool = [item for item in pool if _matches_genres(item, filters.genres)]
    if filters.max_duration:
        pool = [item for item in pool if _within_duration(item, filters.max_duration)]
    if filters.mood:
        keywords = MOOD_KEYWORDS.get(filters.mood.lower(), [])
        if keywords:
            pool = [item for item in pool if _matches_mood(item, keywords)]
        else:
            logger.debug(f"Unknown mood '{filters.mood}', not filtering by mood")
    if filters.exclude_ids:
        excluded = set(filters.exclude_ids)
        pool = [item for item in pool if item.id not in excluded]
    return pool


def select_random(
    items: Iterable[MediaItem],
    filters: Optional[SpinFilters] = None,
    rng: Optional[random.Random] = None,
) -> Optional[MediaItem]:
    """Pick one eligible item uniformly at random, or None if none qualify."""
    pool = candidate_pool(items, filters)
    if not pool:
        return None
    return (rng or random).choice(pool)


def describe_filters(filters: Optional[SpinFilters]) -> str:
    """Human-readable summary of active filters."""
    if filters is None:
        return ""
    parts = []
    if filters.genres:
        parts.append(", ".join(filters.genres))
    if filters.max_duration:
        parts.append(f"under {filters.max_duration} min")
    if filters.mood:
        parts.append(f"{filters.mood} mood")
    return ", ".join(parts)


def available_genres(items: Iterable[MediaItem]) -> list[str]:
    """Sorted distinct genres across unwatched items."""
    genres = set()
    for item in items:
        if item.status == MediaStatus.UNWATCHED:
            genres.update(split_genres(item.genre))
    return sorted(genres)

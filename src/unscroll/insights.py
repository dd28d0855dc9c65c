"""Viewing statistics, the yearly recap and recommendation fallbacks."""

import calendar
import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Iterable, Optional

from .ai_client import AIClient
from .constants import MAX_RATING, MIN_RATING, RATING_STEP, RECOMMENDATION_MIN_RATING, MediaStatus, ReviewStyle
from .errors import ProviderUnavailableError
from .formatting import parse_duration_to_minutes, parse_iso_date, split_genres
from .models import (
    MediaItem,
    RankedName,
    Recommendation,
    RecommendationSet,
    ReviewDraft,
    StatsSummary,
    TasteProfile,
    WrappedInsights,
    WrappedSummary,
)
from .tmdb_client import TMDBClient

logger = logging.getLogger(__name__)

RECENT_WATCHES_LIMIT = 4
TOP_GENRES_LIMIT = 5
RECOMMENDATION_LIMIT = 5
# Watched films used as seeds for provider-side recommendations
RECOMMENDATION_SEEDS = 3


def _year_of(date: Optional[str]) -> Optional[int]:
    if not date:
        return None
    try:
        return parse_iso_date(date).year
    except ValueError:
        return None


def _ranked(counter: Counter, limit: Optional[int] = None) -> list[RankedName]:
    return [RankedName(name=name, count=count) for name, count in counter.most_common(limit)]


def _rating_key(rating: float) -> str:
    return f"{rating:g}"


def _watched(items: Iterable[MediaItem]) -> list[MediaItem]:
    return [item for item in items if item.status == MediaStatus.WATCHED]


def compute_stats(items: Iterable[MediaItem], year: Optional[int] = None) -> StatsSummary:
    """All-time statistics; ``year`` selects the "watched this year" count."""
    items = list(items)
    year = year or datetime.now(timezone.utc).year
    watched = _watched(items)
    rated = [item for item in watched if item.user_rating is not None]

    total_minutes = sum(parse_duration_to_minutes(item.duration) for item in watched)
    hours = total_minutes // 60

    steps = int((MAX_RATING - MIN_RATING) / RATING_STEP) + 1
    rating_counts = {_rating_key(MIN_RATING + i * RATING_STEP): 0 for i in range(steps)}
    for item in rated:
        rating_counts[_rating_key(item.user_rating)] += 1

    recent = sorted(
        (item for item in watched if item.watched_at),
        key=lambda item: parse_iso_date(item.watched_at),
        reverse=True,
    )
    recent += [item for item in watched if not item.watched_at]

    return StatsSummary(
        total_watched=len(watched),
        total_watchlist=sum(1 for item in items if item.status == MediaStatus.UNWATCHED),
        total_views=sum(item.total_views for item in items),
        hours=hours,
        days=hours // 24,
        avg_rating=sum(item.user_rating for item in rated) / len(rated) if rated else 0.0,
        rated_count=len(rated),
        top_genres=_ranked(Counter(g for item in watched for g in split_genres(item.genre)), TOP_GENRES_LIMIT),
        rating_counts=rating_counts,
        watched_this_year=sum(1 for item in watched if _year_of(item.watched_at) == year),
        favorites=[item for item in watched if item.user_rating == MAX_RATING],
        recent_watches=recent[:RECENT_WATCHES_LIMIT],
    )


def watches_in_year(item: MediaItem, year: int) -> int:
    """First watch plus rewatches that fall in ``year``."""
    count = 1 if _year_of(item.watched_at) == year else 0
    return count + sum(1 for date in item.rewatch_dates if _year_of(date) == year)


def compute_wrapped(items: Iterable[MediaItem], year: int) -> WrappedSummary:
    """Summary of films first watched in ``year``."""
    items = list(items)
    films = [item for item in _watched(items) if _year_of(item.watched_at) == year]
    if not films:
        return WrappedSummary(year=year)

    total_minutes = sum(parse_duration_to_minutes(item.duration) for item in films)
    genres = Counter(g for item in films for g in split_genres(item.genre))
    directors = Counter(item.director for item in films if item.director)
    languages = Counter(item.original_language for item in films if item.original_language)
    months = Counter(calendar.month_name[parse_iso_date(item.watched_at).month] for item in films)

    rated = [item for item in films if item.user_rating]
    top_rated = []
    if rated:
        best = max(item.user_rating for item in rated)
        top_rated = [item for item in rated if item.user_rating == best]
        if len(top_rated) > 1:
            most_watches = max(watches_in_year(item, year) for item in top_rated)
            top_rated = [item for item in top_rated if watches_in_year(item, year) == most_watches]

    # Rewatches in the year count even for films first seen in earlier years
    total_rewatches = sum(
        1
        for item in _watched(items)
        if item.watched_at
        for date in item.rewatch_dates
        if _year_of(date) == year
    )

    with_duration = [item for item in films if parse_duration_to_minutes(item.duration) > 0]
    top_director = directors.most_common(1)

    return WrappedSummary(
        year=year,
        total_films=len(films),
        total_minutes=total_minutes,
        total_hours=total_minutes / 60,
        top_genre=(_ranked(genres, 1) or [None])[0],
        top_genres=_ranked(genres, 3),
        # A single film does not make a favourite director
        top_director=RankedName(name=top_director[0][0], count=top_director[0][1])
        if top_director and top_director[0][1] > 1
        else None,
        top_directors=_ranked(directors, 3),
        favorite_language=(_ranked(languages, 1) or [None])[0],
        busiest_month=(_ranked(months, 1) or [None])[0],
        avg_rating=sum(item.user_rating for item in rated) / len(rated) if rated else None,
        top_rated_films=top_rated,
        total_rewatches=total_rewatches,
        longest_film=max(with_duration, key=lambda i: parse_duration_to_minutes(i.duration), default=None),
        shortest_film=min(with_duration, key=lambda i: parse_duration_to_minutes(i.duration), default=None),
        films=films,
    )


class InsightsService:
    """Provider-backed insights with graceful degradation."""

    def __init__(self, ai: AIClient, tmdb: TMDBClient):
        self.ai = ai
        self.tmdb = tmdb

    def recommendations(self, items: list[MediaItem]) -> RecommendationSet:
        """AI recommendations, falling back to TMDB's "similar viewers" lists."""
        watched = _watched(items)
        library_titles = [item.title for item in items]
        try:
            return self.ai.recommend(watched, exclude_titles=library_titles)
        except ProviderUnavailableError as e:
            logger.warning(f"AI recommendations unavailable ({e.message}), falling back to TMDB")
        return self._tmdb_recommendations(watched, library_titles)

    def _tmdb_recommendations(self, watched: list[MediaItem], library_titles: list[str]) -> RecommendationSet:
        seeds = sorted(
            (item for item in watched if item.user_rating and item.user_rating >= RECOMMENDATION_MIN_RATING),
            key=lambda item: item.user_rating,
            reverse=True,
        )[:RECOMMENDATION_SEEDS]
        if not seeds:
            raise ProviderUnavailableError("No recommendations available")

        known = {title.lower() for title in library_titles}
        recommendations = []
        for seed in seeds:
            movie_id = self.tmdb.find_movie_id(seed.title, seed.year)
            if movie_id is None:
                continue
            for movie in self.tmdb.get_recommendations(movie_id):
                if movie.title.lower() in known:
                    continue
                known.add(movie.title.lower())
                recommendations.append(
                    Recommendation(
                        title=movie.title,
                        year=movie.year,
                        reason=f"Because you liked {seed.title}",
                        match_score=max(1, 90 - 5 * len(recommendations)),
                    )
                )
                if len(recommendations) >= RECOMMENDATION_LIMIT:
                    break
            if len(recommendations) >= RECOMMENDATION_LIMIT:
                break

        if not recommendations:
            raise ProviderUnavailableError("No recommendations available")
        return RecommendationSet(
            recommendations=recommendations,
            analysis="Picked from films similar to your top-rated watches.",
            source="tmdb",
        )

    def taste_profile(self, items: list[MediaItem]) -> TasteProfile:
        return self.ai.analyze_taste(_watched(items))

    def wrapped(self, items: list[MediaItem], year: int) -> tuple[WrappedSummary, Optional[WrappedInsights]]:
        """Yearly summary plus insights (None when there is nothing to describe or the provider fails)."""
        summary = compute_wrapped(items, year)
        if summary.total_films == 0:
            return summary, None
        try:
            return summary, self.ai.wrapped_insights(summary)
        except ProviderUnavailableError as e:
            logger.warning(f"Wrapped insights unavailable: {e.message}")
            return summary, None

    def draft_review(
        self,
        title: str,
        rating: float,
        keywords: Optional[list[str]] = None,
        style: ReviewStyle = ReviewStyle.CASUAL,
    ) -> ReviewDraft:
        return self.ai.generate_review(title, rating, keywords, style)

"""TMDB (The Movie Database) API client."""

import logging
from typing import Optional

from .base_client import BaseAPIClient
from .constants import TMDB_SEARCH_LIMIT
from .errors import ProviderUnavailableError
from .formatting import format_runtime
from .models import MovieDetails, MovieSearchResult, WatchProvider

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2


class TMDBClient(BaseAPIClient):
    """Client for TMDB API v3.

    Accepts either a v3 API key (sent as a query parameter) or a v4 read
    access token (sent as a bearer token).
    """

    SERVICE_NAME = "TMDB"
    BASE_URL = "https://api.themoviedb.org/3"
    IMAGE_BASE_URL = "https://image.tmdb.org/t/p/w500"

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_token: Optional[str] = None,
        base_url: str = BASE_URL,
        image_base_url: str = IMAGE_BASE_URL,
        language: str = "en-US",
        region: str = "US",
    ):
        """Initialize TMDB client with an API key or access token."""
        super().__init__(base_url=base_url, access_token=api_token)
        self.api_key = api_key
        self.image_base_url = image_base_url.rstrip("/")
        self.language = language
        self.region = region

    @classmethod
    def from_settings(cls, settings) -> "TMDBClient":
        return cls(
            api_key=settings.tmdb_api_key,
            api_token=settings.tmdb_api_token,
            base_url=settings.tmdb_base_url,
            image_base_url=settings.tmdb_image_base_url,
            language=settings.tmdb_language,
            region=settings.tmdb_region,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key or self.access_token)

    def _params(self, **extra) -> dict:
        if not self.configured:
            raise ProviderUnavailableError("TMDB API key not configured")
        params = {"language": self.language}
        if self.api_key:
            params["api_key"] = self.api_key
        params.update({k: v for k, v in extra.items() if v is not None})
        return params

    def poster_url(self, poster_path: Optional[str]) -> Optional[str]:
        return f"{self.image_base_url}{poster_path}" if poster_path else None

    def search_movies(self, query: str, limit: int = TMDB_SEARCH_LIMIT, year: Optional[int] = None) -> list[MovieSearchResult]:
        """Search movies by title; queries under two characters return nothing."""
        if not query or len(query.strip()) < MIN_QUERY_LENGTH:
            return []

        data = self._get("search/movie", self._params(query=query.strip(), page=1, year=year))
        results = [
            MovieSearchResult(
                id=movie["id"],
                title=movie.get("title") or "",
                release_date=movie.get("release_date") or "",
                poster_path=movie.get("poster_path"),
                overview=movie.get("overview") or "",
            )
            for movie in data.get("results", [])[:limit]
            if movie.get("id") is not None
        ]
        logger.debug(f"TMDB search '{query}' returned {len(results)} results")
        return results

    def find_movie_id(self, title: str, year: Optional[int] = None) -> Optional[int]:
        """Best TMDB match for a title (and optional release year)."""
        results = self.search_movies(title, limit=1, year=year)
        return results[0].id if results else None

    def get_movie_details(self, movie_id: int, region: Optional[str] = None) -> MovieDetails:
        """Fetch details, credits and streaming providers in one request."""
        data = self._get(
            f"movie/{movie_id}",
            self._params(append_to_response="credits,watch/providers"),
        )
        credits = data.get("credits") or {}

        cast = [
            member["name"]
            for member in sorted(credits.get("cast", []), key=lambda m: m.get("order", 0))
            if member.get("name")
        ]
        director = next(
            (member.get("name") for member in credits.get("crew", []) if member.get("job") == "Director"),
            None,
        )
        genres = [g["name"] for g in data.get("genres", []) if g.get("name")]
        release_date = data.get("release_date") or ""

        return MovieDetails(
            tmdb_id=data.get("id", movie_id),
            title=data.get("title") or "",
            year=int(release_date[:4]) if release_date[:4].isdigit() else None,
            genre=", ".join(genres) or None,
            plot=data.get("overview") or None,
            cast=cast,
            director=director,
            duration=format_runtime(data.get("runtime")),
            poster_url=self.poster_url(data.get("poster_path")),
            original_language=data.get("original_language"),
            watch_providers=self._parse_providers(data.get("watch/providers") or {}, region or self.region),
        )

    def _parse_providers(self, data: dict, region: str) -> list[WatchProvider]:
        """Flat-rate (subscription) providers for one region."""
        regional = (data.get("results") or {}).get(region) or {}
        return [
            WatchProvider(
                provider_id=provider["provider_id"],
                provider_name=provider.get("provider_name", ""),
                logo_path=self.poster_url(provider.get("logo_path")),
            )
            for provider in regional.get("flatrate", [])
            if provider.get("provider_id") is not None
        ]

    def get_recommendations(self, movie_id: int, limit: int = 5) -> list[MovieSearchResult]:
        """Movies TMDB recommends for viewers of ``movie_id``."""
        data = self._get(f"movie/{movie_id}/recommendations", self._params(page=1))
        return [
            MovieSearchResult(
                id=movie["id"],
                title=movie.get("title") or "",
                release_date=movie.get("release_date") or "",
                poster_path=movie.get("poster_path"),
                overview=movie.get("overview") or "",
            )
            for movie in data.get("results", [])[:limit]
            if movie.get("id") is not None
        ]

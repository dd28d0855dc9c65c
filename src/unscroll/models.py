"""Data models for watchlist/diary entries and provider payloads."""

import logging
from typing import Annotated, Any, Literal, Optional

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from .constants import (
    MAX_RATING,
    MIN_RATING,
    RATING_STEP,
    ErrorKind,
    MediaFormat,
    MediaStatus,
    PersuadeMood,
    ReviewStyle,
)
from .formatting import parse_iso_date

logger = logging.getLogger(__name__)

# Fields a stored document must carry; everything else may be missing or malformed.
REQUIRED_DOCUMENT_FIELDS = {"id", "user_id", "title"}


def validate_rating(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    if value < MIN_RATING or value > MAX_RATING:
        raise ValueError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")
    if (value / RATING_STEP) != int(value / RATING_STEP):
        raise ValueError(f"Rating must be a multiple of {RATING_STEP}")
    return float(value)


def _validate_date(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    parse_iso_date(value)
    return value.strip()


def _readable_dates(doc_id: str, dates: list) -> list:
    readable = []
    for date in dates:
        try:
            parse_iso_date(date)
        except ValueError:
            logger.warning(f"Document {doc_id} has unreadable rewatch date {date!r}, skipping it")
            continue
        readable.append(date)
    return readable


def _split_cast(value: Any) -> Any:
    if isinstance(value, str):
        return [name.strip() for name in value.split(",") if name.strip()]
    return value


Rating = Annotated[Optional[float], AfterValidator(validate_rating)]
DateString = Annotated[str, AfterValidator(_validate_date)]
CastList = Annotated[Optional[list[str]], BeforeValidator(_split_cast)]


class WatchProvider(BaseModel):
    """Streaming provider offering a title (informational only)."""

    provider_id: int
    provider_name: str
    logo_path: Optional[str] = None


class MediaItem(BaseModel):
    """One watchlist/diary entry owned by exactly one user."""

    model_config = ConfigDict(extra="ignore")

    # Identifiers
    id: str
    user_id: str
    title: str

    # Descriptive metadata
    year: Optional[int] = None
    genre: Optional[str] = None
    plot: Optional[str] = None
    cast: CastList = None
    director: Optional[str] = None
    duration: Optional[str] = None
    poster_url: Optional[str] = None
    original_language: Optional[str] = None
    format: MediaFormat = MediaFormat.MOVIE
    rating: Optional[float] = None

    # Diary data
    status: MediaStatus = MediaStatus.UNWATCHED
    user_rating: Rating = None
    user_review: Optional[str] = None
    watched_at: Optional[DateString] = None
    rewatch_count: int = Field(default=0, ge=0)
    rewatch_dates: list[DateString] = Field(default_factory=list)

    watch_providers: Optional[list[WatchProvider]] = None

    # Timestamps
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def total_views(self) -> int:
        """First watch plus rewatches; 0 unless currently watched."""
        return self.rewatch_count + 1 if self.status == MediaStatus.WATCHED else 0

    @classmethod
    def from_document(cls, doc_id: str, data: Optional[dict]) -> "MediaItem":
        """Build an item from a stored document without trusting its shape.

        Missing or malformed optional fields fall back to their defaults.
        Unparseable rewatch dates are dropped one by one so the rest of the
        history survives the next write.
        """
        payload = {k: v for k, v in (data or {}).items() if v is not None}
        payload["id"] = doc_id
        if isinstance(payload.get("rewatch_dates"), list):
            payload["rewatch_dates"] = _readable_dates(doc_id, payload["rewatch_dates"])
        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            bad_fields = {err["loc"][0] for err in e.errors() if err["loc"]}
            if bad_fields & REQUIRED_DOCUMENT_FIELDS:
                raise
            logger.warning(f"Document {doc_id} has malformed fields {sorted(bad_fields)}, using defaults")
            for field in bad_fields:
                payload.pop(field, None)
            return cls.model_validate(payload)

    def to_document(self) -> dict:
        """Serialize to the persisted document shape."""
        return self.model_dump(mode="json")


class MediaItemCreate(BaseModel):
    """Input for adding a title to the watchlist."""

    title: str = Field(min_length=1)
    year: Optional[int] = None
    genre: Optional[str] = None
    plot: Optional[str] = None
    cast: CastList = None
    director: Optional[str] = None
    duration: Optional[str] = None
    poster_url: Optional[str] = None
    original_language: Optional[str] = None
    format: MediaFormat = MediaFormat.MOVIE
    rating: Optional[float] = None
    status: MediaStatus = MediaStatus.UNWATCHED
    user_rating: Rating = None
    user_review: Optional[str] = None
    watched_at: Optional[DateString] = None
    watch_providers: Optional[list[WatchProvider]] = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        """Reject blank titles."""
        if not v.strip():
            raise ValueError("Title is required")
        return v.strip()


class MediaItemUpdate(BaseModel):
    """Partial edit of descriptive fields, rating and review.

    Status and watch history change only through the watch-history actions.
    """

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    year: Optional[int] = None
    genre: Optional[str] = None
    plot: Optional[str] = None
    cast: CastList = None
    director: Optional[str] = None
    duration: Optional[str] = None
    poster_url: Optional[str] = None
    original_language: Optional[str] = None
    format: Optional[MediaFormat] = None
    rating: Optional[float] = None
    user_rating: Rating = None
    user_review: Optional[str] = None
    watch_providers: Optional[list[WatchProvider]] = None


class UserProfile(BaseModel):
    """Profile document stored in the users collection."""

    id: str
    email: str
    username: str
    is_demo: bool = False
    created_at: Optional[str] = None


class CurrentUser(BaseModel):
    """The authenticated caller of an action."""

    id: str
    email: Optional[str] = None
    username: Optional[str] = None
    is_demo: bool = False


class ActionResult(BaseModel):
    """Result of an action: success flag plus data or error."""

    success: bool
    data: Any = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None, message: Optional[str] = None) -> "ActionResult":
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, kind: ErrorKind, error: str) -> "ActionResult":
        return cls(success=False, error=error, error_kind=kind)


class SpinFilters(BaseModel):
    """Optional filters narrowing the random selection pool."""

    genres: list[str] = Field(default_factory=list)
    max_duration: Optional[int] = Field(None, gt=0)
    mood: Optional[str] = None
    exclude_ids: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Provider payloads
# ---------------------------------------------------------------------------


class MovieSearchResult(BaseModel):
    """A single metadata-provider search hit."""

    id: int
    title: str
    release_date: str = ""
    poster_path: Optional[str] = None
    overview: str = ""

    @property
    def year(self) -> Optional[int]:
        if len(self.release_date) >= 4 and self.release_date[:4].isdigit():
            return int(self.release_date[:4])
        return None


class MovieDetails(BaseModel):
    """Full metadata for one movie, ready to merge into a media item."""

    tmdb_id: int
    title: str
    year: Optional[int] = None
    genre: Optional[str] = None
    plot: Optional[str] = None
    cast: list[str] = Field(default_factory=list)
    director: Optional[str] = None
    duration: Optional[str] = None
    poster_url: Optional[str] = None
    original_language: Optional[str] = None
    watch_providers: list[WatchProvider] = Field(default_factory=list)

    def to_create(self) -> MediaItemCreate:
        """Convert to an add-item payload."""
        return MediaItemCreate(
            title=self.title,
            year=self.year,
            genre=self.genre,
            plot=self.plot,
            cast=self.cast or None,
            director=self.director,
            duration=self.duration,
            poster_url=self.poster_url,
            original_language=self.original_language,
            watch_providers=self.watch_providers or None,
        )


class AutofillResponse(BaseModel):
    genre: str
    plot: str
    cast: list[str]
    duration: str
    format: Literal["movie"] = "movie"
    year: int
    found: Optional[bool] = None


class PersuadeResponse(BaseModel):
    phrase: str
    mood: PersuadeMood
    emoji: str


class ReviewDraft(BaseModel):
    review: str
    style: ReviewStyle


class Recommendation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    year: Optional[int] = None
    reason: str
    match_score: int = Field(alias="matchScore", ge=1, le=100)


class RecommendationSet(BaseModel):
    recommendations: list[Recommendation] = Field(max_length=5)
    analysis: str
    source: str = "ai"


class FilmSoulmate(BaseModel):
    director: str
    reason: str


class TasteProfile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    dna: str
    patterns: list[str] = Field(max_length=5)
    film_soulmate: FilmSoulmate = Field(alias="filmSoulmate")
    blind_spots: list[str] = Field(alias="blindSpots", max_length=3)
    quirks: list[str] = Field(max_length=3)
    critic_score: int = Field(alias="criticScore", ge=1, le=100)
    mainstream_score: int = Field(alias="mainstreamScore", ge=1, le=100)


class WrappedInsights(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    personality: str
    spirit_animal: FilmSoulmate = Field(alias="spiritAnimal")
    prediction: str
    roast: str
    compliment: str


# ---------------------------------------------------------------------------
# Insights
# ---------------------------------------------------------------------------


class RankedName(BaseModel):
    """A name with how often it occurs (genre, director, month...)."""

    name: str
    count: int


class StatsSummary(BaseModel):
    """All-time viewing statistics for one user."""

    total_watched: int = 0
    total_watchlist: int = 0
    total_views: int = 0
    hours: int = 0
    days: int = 0
    avg_rating: float = 0.0
    rated_count: int = 0
    top_genres: list[RankedName] = Field(default_factory=list)
    rating_counts: dict[str, int] = Field(default_factory=dict)
    watched_this_year: int = 0
    favorites: list[MediaItem] = Field(default_factory=list)
    recent_watches: list[MediaItem] = Field(default_factory=list)


class WrappedSummary(BaseModel):
    """One calendar year of viewing, as shown in the year-end recap."""

    year: int
    total_films: int = 0
    total_minutes: int = 0
    total_hours: float = 0.0
    top_genre: Optional[RankedName] = None
    top_genres: list[RankedName] = Field(default_factory=list)
    top_director: Optional[RankedName] = None
    top_directors: list[RankedName] = Field(default_factory=list)
    favorite_language: Optional[RankedName] = None
    busiest_month: Optional[RankedName] = None
    avg_rating: Optional[float] = None
    top_rated_films: list[MediaItem] = Field(default_factory=list)
    total_rewatches: int = 0
    longest_film: Optional[MediaItem] = None
    shortest_film: Optional[MediaItem] = None
    films: list[MediaItem] = Field(default_factory=list)

"""Constants used throughout the application."""

from enum import Enum


class MediaStatus(str, Enum):
    """Watchlist/diary status of a media item."""

    UNWATCHED = "unwatched"
    WATCHING = "watching"
    WATCHED = "watched"


class MediaFormat(str, Enum):
    """Media formats (only movies are populated today)."""

    MOVIE = "movie"


class ReviewStyle(str, Enum):
    """Writing styles for generated reviews."""

    CASUAL = "casual"
    CRITIC = "critic"
    POETIC = "poetic"
    HUMOROUS = "humorous"


class PersuadeMood(str, Enum):
    """Mood attached to a persuasive phrase."""

    EXCITED = "excited"
    INTRIGUING = "intriguing"
    COZY = "cozy"
    THRILLING = "thrilling"


class ErrorKind(str, Enum):
    """Error kinds surfaced to callers of the actions."""

    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    OUT_OF_RANGE = "out_of_range"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    UNAUTHENTICATED = "unauthenticated"
    INVALID_INPUT = "invalid_input"
    FAILURE = "failure"


# Collections
USERS_COLLECTION = "users"
MEDIA_ITEMS_COLLECTION = "media_items"
SESSIONS_COLLECTION = "sessions"

# Ratings (half-star steps)
MIN_RATING = 0.5
MAX_RATING = 5.0
RATING_STEP = 0.5

# Mood keywords for the "decide" spin filters
MOOD_KEYWORDS: dict[str, list[str]] = {
    "christmas": ["christmas", "holiday", "xmas", "winter", "snow", "santa", "miracle"],
    "romantic": ["romance", "romantic", "love", "wedding", "relationship"],
    "action": ["action", "adventure", "thriller", "spy", "war", "fight"],
    "funny": ["comedy", "funny", "humor", "laugh", "parody"],
    "scary": ["horror", "scary", "thriller", "suspense", "terror", "ghost"],
    "family": ["family", "animation", "kids", "children", "pixar", "disney", "animated"],
    "thoughtful": ["drama", "biography", "documentary", "history", "thought-provoking"],
}

# HTTP Status Codes
HTTP_OK = 200
HTTP_BAD_REQUEST = 400
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409
HTTP_UNPROCESSABLE = 422
HTTP_TOO_MANY_REQUESTS = 429
HTTP_INTERNAL_ERROR = 500
HTTP_SERVICE_UNAVAILABLE = 503

# Default values
DEFAULT_WEB_UI_PORT = 8080
DEFAULT_SESSION_TTL_HOURS = 120  # 5 days
DEFAULT_LOCAL_USER_ID = "local"
TMDB_SEARCH_LIMIT = 8
RECOMMENDATION_FILM_LIMIT = 20
RECOMMENDATION_MIN_RATING = 3
TASTE_MIN_FILMS = 5
TASTE_SAMPLE_SIZE = 25

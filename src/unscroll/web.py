"""
HTTP API for Unscroll.
Exposes the watchlist/diary actions, random selection, insights and provider
lookups behind bearer-token sessions.
"""

import logging
import threading
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

from . import __version__
from .ai_client import AIClient
from .auth import AuthService
from .config import get_settings
from .constants import (
    HTTP_BAD_REQUEST,
    HTTP_CONFLICT,
    HTTP_INTERNAL_ERROR,
    HTTP_NOT_FOUND,
    HTTP_SERVICE_UNAVAILABLE,
    HTTP_UNAUTHORIZED,
    HTTP_UNPROCESSABLE,
    MEDIA_ITEMS_COLLECTION,
    ErrorKind,
    MediaStatus,
    ReviewStyle,
)
from .errors import UnauthenticatedError, UnscrollError
from .insights import InsightsService, compute_stats
from .media_service import MediaService
from .models import (
    ActionResult,
    AutofillResponse,
    CurrentUser,
    MediaItemCreate,
    MediaItemUpdate,
    MovieDetails,
    MovieSearchResult,
    PersuadeResponse,
    RecommendationSet,
    ReviewDraft,
    SpinFilters,
    StatsSummary,
    TasteProfile,
    UserProfile,
    WrappedInsights,
    WrappedSummary,
)
from .store import DocumentStore, create_store
from .tmdb_client import TMDBClient

logger = logging.getLogger(__name__)

app = FastAPI(title="Unscroll", version=__version__)

ERROR_STATUS = {
    ErrorKind.NOT_FOUND: HTTP_NOT_FOUND,
    ErrorKind.INVALID_STATE: HTTP_CONFLICT,
    ErrorKind.OUT_OF_RANGE: HTTP_UNPROCESSABLE,
    ErrorKind.INVALID_INPUT: HTTP_BAD_REQUEST,
    ErrorKind.PROVIDER_UNAVAILABLE: HTTP_SERVICE_UNAVAILABLE,
    ErrorKind.UNAUTHENTICATED: HTTP_UNAUTHORIZED,
    ErrorKind.FAILURE: HTTP_INTERNAL_ERROR,
}

# Lazily built collaborators shared by all requests
_store: Optional[DocumentStore] = None
_tmdb_client: Optional[TMDBClient] = None
_ai_client: Optional[AIClient] = None
_init_lock = threading.Lock()

_bearer = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# Request/response models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    email: str
    username: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class SessionResponse(BaseModel):
    token: str
    user: CurrentUser


class WatchEventRequest(BaseModel):
    """Optional explicit date for a watch event (defaults to now)."""
    date: Optional[str] = None


class WatchDateRequest(BaseModel):
    date: str


class StatusRequest(BaseModel):
    status: MediaStatus


class RatingRequest(BaseModel):
    rating: Optional[float] = None


class ReviewRequest(BaseModel):
    review: Optional[str] = None


class BulkDeleteRequest(BaseModel):
    ids: list[str] = Field(min_length=1)


class AutofillRequest(BaseModel):
    title: str


class PersuadeRequest(BaseModel):
    title: str
    genre: Optional[str] = None
    plot: Optional[str] = None


class ReviewDraftRequest(BaseModel):
    title: str
    rating: float
    keywords: list[str] = Field(default_factory=list)
    style: ReviewStyle = ReviewStyle.CASUAL


class WrappedResponse(BaseModel):
    summary: WrappedSummary
    insights: Optional[WrappedInsights] = None


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_store() -> DocumentStore:
    """Document store built from settings on first use."""
    global _store
    with _init_lock:
        if _store is None:
            _store = create_store(get_settings())
            logger.info(f"Using {get_settings().store_backend} document store")
        return _store


def get_tmdb_client() -> TMDBClient:
    global _tmdb_client
    with _init_lock:
        if _tmdb_client is None:
            _tmdb_client = TMDBClient.from_settings(get_settings())
        return _tmdb_client


def get_ai_client() -> AIClient:
    global _ai_client
    with _init_lock:
        if _ai_client is None:
            _ai_client = AIClient.from_settings(get_settings())
        return _ai_client


def get_auth_service(store: DocumentStore = Depends(get_store)) -> AuthService:
    return AuthService.from_settings(store, get_settings())


def get_bearer_token(credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer)) -> str:
    if credentials is None:
        raise HTTPException(status_code=HTTP_UNAUTHORIZED, detail="You must be logged in")
    return credentials.credentials


def get_current_user(
    token: str = Depends(get_bearer_token),
    auth: AuthService = Depends(get_auth_service),
) -> CurrentUser:
    return auth.verify(token)


def get_media_service(
    user: CurrentUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
) -> MediaService:
    return MediaService(store, user)


def get_insights_service(
    ai: AIClient = Depends(get_ai_client),
    tmdb: TMDBClient = Depends(get_tmdb_client),
) -> InsightsService:
    return InsightsService(ai, tmdb)


@app.exception_handler(UnscrollError)
async def unscroll_error_handler(request: Request, exc: UnscrollError):
    """Map application errors to HTTP status codes."""
    status_code = ERROR_STATUS.get(exc.kind, HTTP_INTERNAL_ERROR)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, UnauthenticatedError) else None
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "kind": exc.kind.value},
        headers=headers,
    )


def _unwrap(result: ActionResult) -> ActionResult:
    """Raise the HTTP error matching a failed action result."""
    if not result.success:
        raise HTTPException(
            status_code=ERROR_STATUS.get(result.error_kind, HTTP_INTERNAL_ERROR),
            detail=result.error,
        )
    return result


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


@app.post("/api/auth/register", status_code=201)
def register(data: RegisterRequest, auth: AuthService = Depends(get_auth_service)) -> UserProfile:
    return auth.register(data.email, data.username, data.password)


@app.post("/api/auth/login")
def login(data: LoginRequest, auth: AuthService = Depends(get_auth_service)) -> SessionResponse:
    token = auth.login(data.email, data.password)
    return SessionResponse(token=token, user=auth.verify(token))


@app.post("/api/auth/demo")
def demo_login(auth: AuthService = Depends(get_auth_service)) -> SessionResponse:
    token = auth.demo_login()
    return SessionResponse(token=token, user=auth.verify(token))


@app.post("/api/auth/logout")
def logout(token: str = Depends(get_bearer_token), auth: AuthService = Depends(get_auth_service)):
    auth.logout(token)
    return {"success": True}


@app.get("/api/auth/me")
def me(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    return user


# ---------------------------------------------------------------------------
# Media items
# ---------------------------------------------------------------------------


@app.get("/api/media")
def list_media(status: Optional[MediaStatus] = None, service: MediaService = Depends(get_media_service)) -> ActionResult:
    return _unwrap(service.list_items(status))


@app.post("/api/media", status_code=201)
def add_media(data: MediaItemCreate, service: MediaService = Depends(get_media_service)) -> ActionResult:
    return _unwrap(service.add_item(data))


@app.post("/api/media/bulk-delete")
def bulk_delete_media(data: BulkDeleteRequest, service: MediaService = Depends(get_media_service)) -> ActionResult:
    return _unwrap(service.bulk_delete(data.ids))


@app.get("/api/media/{item_id}")
def get_media(item_id: str, service: MediaService = Depends(get_media_service)) -> ActionResult:
    return _unwrap(service.get_item(item_id))


@app.patch("/api/media/{item_id}")
def update_media(item_id: str, data: MediaItemUpdate, service: MediaService = Depends(get_media_service)) -> ActionResult:
    return _unwrap(service.update_item(item_id, data))


@app.delete("/api/media/{item_id}")
def delete_media(item_id: str, service: MediaService = Depends(get_media_service)) -> ActionResult:
    return _unwrap(service.delete_item(item_id))


@app.post("/api/media/{item_id}/watched")
def mark_watched(
    item_id: str,
    data: Optional[WatchEventRequest] = None,
    service: MediaService = Depends(get_media_service),
) -> ActionResult:
    return _unwrap(service.mark_as_watched(item_id, data.date if data else None))


@app.post("/api/media/{item_id}/rewatch")
def add_rewatch(
    item_id: str,
    data: Optional[WatchEventRequest] = None,
    service: MediaService = Depends(get_media_service),
) -> ActionResult:
    return _unwrap(service.mark_as_rewatched(item_id, data.date if data else None))


@app.delete("/api/media/{item_id}/rewatch")
def remove_rewatch(
    item_id: str,
    index: Optional[int] = None,
    service: MediaService = Depends(get_media_service),
) -> ActionResult:
    return _unwrap(service.remove_rewatch(item_id, index))


@app.put("/api/media/{item_id}/watch-date")
def update_watch_date(item_id: str, data: WatchDateRequest, service: MediaService = Depends(get_media_service)) -> ActionResult:
    return _unwrap(service.update_watch_date(item_id, data.date))


@app.put("/api/media/{item_id}/status")
def set_status(item_id: str, data: StatusRequest, service: MediaService = Depends(get_media_service)) -> ActionResult:
    return _unwrap(service.set_status(item_id, data.status))


@app.put("/api/media/{item_id}/rating")
def rate_media(item_id: str, data: RatingRequest, service: MediaService = Depends(get_media_service)) -> ActionResult:
    return _unwrap(service.rate(item_id, data.rating))


@app.put("/api/media/{item_id}/review")
def review_media(item_id: str, data: ReviewRequest, service: MediaService = Depends(get_media_service)) -> ActionResult:
    return _unwrap(service.review(item_id, data.review))


# ---------------------------------------------------------------------------
# Decide and insights
# ---------------------------------------------------------------------------


@app.post("/api/decide")
def decide(filters: Optional[SpinFilters] = None, service: MediaService = Depends(get_media_service)) -> ActionResult:
    return _unwrap(service.get_random_unwatched(filters))


@app.get("/api/genres")
def genres(service: MediaService = Depends(get_media_service)) -> ActionResult:
    return _unwrap(service.get_all_genres())


@app.get("/api/stats")
def stats(year: Optional[int] = None, service: MediaService = Depends(get_media_service)) -> StatsSummary:
    return compute_stats(service.load_items(), year)


@app.get("/api/wrapped/{year}")
def wrapped(
    year: int,
    service: MediaService = Depends(get_media_service),
    insights: InsightsService = Depends(get_insights_service),
) -> WrappedResponse:
    summary, ai_insights = insights.wrapped(service.load_items(), year)
    return WrappedResponse(summary=summary, insights=ai_insights)


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


@app.get("/api/tmdb/search")
def tmdb_search(
    query: str,
    user: CurrentUser = Depends(get_current_user),
    tmdb: TMDBClient = Depends(get_tmdb_client),
) -> list[MovieSearchResult]:
    return tmdb.search_movies(query)


@app.get("/api/tmdb/movie/{movie_id}")
def tmdb_movie(
    movie_id: int,
    region: Optional[str] = None,
    user: CurrentUser = Depends(get_current_user),
    tmdb: TMDBClient = Depends(get_tmdb_client),
) -> MovieDetails:
    return tmdb.get_movie_details(movie_id, region)


@app.post("/api/ai/autofill")
def ai_autofill(
    data: AutofillRequest,
    user: CurrentUser = Depends(get_current_user),
    ai: AIClient = Depends(get_ai_client),
) -> AutofillResponse:
    return ai.autofill(data.title)


@app.post("/api/ai/persuade")
def ai_persuade(
    data: PersuadeRequest,
    user: CurrentUser = Depends(get_current_user),
    ai: AIClient = Depends(get_ai_client),
) -> PersuadeResponse:
    return ai.persuade(data.title, data.genre, data.plot)


@app.post("/api/ai/review")
def ai_review(
    data: ReviewDraftRequest,
    user: CurrentUser = Depends(get_current_user),
    insights: InsightsService = Depends(get_insights_service),
) -> ReviewDraft:
    return insights.draft_review(data.title, data.rating, data.keywords, data.style)


@app.post("/api/ai/recommendations")
def ai_recommendations(
    service: MediaService = Depends(get_media_service),
    insights: InsightsService = Depends(get_insights_service),
) -> RecommendationSet:
    return insights.recommendations(service.load_items())


@app.post("/api/ai/taste")
def ai_taste(
    service: MediaService = Depends(get_media_service),
    insights: InsightsService = Depends(get_insights_service),
) -> TasteProfile:
    return insights.taste_profile(service.load_items())


@app.get("/api/health")
def health(
    store: DocumentStore = Depends(get_store),
    tmdb: TMDBClient = Depends(get_tmdb_client),
    ai: AIClient = Depends(get_ai_client),
):
    """Liveness plus which optional providers are configured."""
    store.query(MEDIA_ITEMS_COLLECTION, limit=1)
    return {"status": "ok", "version": __version__, "tmdb": tmdb.configured, "ai": ai.configured}

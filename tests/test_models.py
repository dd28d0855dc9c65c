"""Unit tests for data models."""

import pytest
from pydantic import ValidationError

from unscroll.constants import MediaStatus
from unscroll.models import MediaItem, MediaItemCreate, MediaItemUpdate, Recommendation, TasteProfile


def test_media_item_creation():
    """Test creating a media item with defaults."""
    item = MediaItem(id="a", user_id="u", title="Alien", year=1979, genre="Horror, Science Fiction")

    assert item.title == "Alien"
    assert item.status == MediaStatus.UNWATCHED
    assert item.rewatch_count == 0
    assert item.rewatch_dates == []
    assert item.watched_at is None
    assert item.total_views == 0


def test_rating_validation():
    """Test half-star rating validation."""
    assert MediaItem(id="a", user_id="u", title="T", user_rating=4.5).user_rating == 4.5
    assert MediaItem(id="a", user_id="u", title="T", user_rating=5).user_rating == 5.0

    for bad in (0, 4.3, 5.5, -1):
        with pytest.raises(ValidationError):
            MediaItem(id="a", user_id="u", title="T", user_rating=bad)


def test_watch_dates_accept_year_and_date_strings():
    """Test that year-only and full ISO dates are kept verbatim."""
    item = MediaItem(
        id="a",
        user_id="u",
        title="T",
        watched_at="2024",
        rewatch_dates=["2024-05-01", "2024-03-01T10:00:00Z"],
        rewatch_count=2,
    )
    assert item.watched_at == "2024"
    assert item.rewatch_dates == ["2024-05-01", "2024-03-01T10:00:00Z"]

    with pytest.raises(ValidationError):
        MediaItem(id="a", user_id="u", title="T", watched_at="last tuesday")


def test_cast_accepts_comma_separated_string():
    """Test legacy cast strings are split into names."""
    item = MediaItem(id="a", user_id="u", title="T", cast="Al Pacino, Robert De Niro ,")
    assert item.cast == ["Al Pacino", "Robert De Niro"]


def test_total_views():
    """Test total views counts the first watch plus rewatches only when watched."""
    watched = MediaItem(
        id="a", user_id="u", title="T", status="watched", watched_at="2024-01-01",
        rewatch_count=2, rewatch_dates=["2024-02-01", "2024-03-01"],
    )
    assert watched.total_views == 3

    shelved = watched.model_copy(update={"status": MediaStatus.UNWATCHED})
    assert shelved.total_views == 0


def test_from_document_tolerates_missing_and_malformed_fields():
    """Test stored documents with shape drift still load."""
    item = MediaItem.from_document(
        "doc-1",
        {
            "user_id": "u",
            "title": "Heat",
            "user_rating": "great",
            "rewatch_dates": "not-a-list",
            "genre": None,
            "unknown_field": 1,
        },
    )
    assert item.id == "doc-1"
    assert item.user_rating is None
    assert item.rewatch_dates == []
    assert item.genre is None


def test_from_document_drops_only_unreadable_rewatch_dates():
    """Test one bad rewatch date does not discard the rest of the history."""
    item = MediaItem.from_document(
        "doc-1",
        {
            "user_id": "u",
            "title": "Heat",
            "watched_at": "2020-01-01",
            "rewatch_count": 3,
            "rewatch_dates": ["2021-01-01", "not-a-date", 2022, "2022-01-01"],
        },
    )
    assert item.rewatch_dates == ["2021-01-01", "2022-01-01"]
    assert item.watched_at == "2020-01-01"


def test_from_document_requires_title():
    """Test documents without a title are rejected."""
    with pytest.raises(ValidationError):
        MediaItem.from_document("doc-1", {"user_id": "u"})


def test_create_payload_strips_title():
    """Test title validation on create."""
    assert MediaItemCreate(title="  Heat ").title == "Heat"
    with pytest.raises(ValidationError):
        MediaItemCreate(title="   ")


def test_update_payload_rejects_watch_history_fields():
    """Test status and history cannot be edited through a generic update."""
    with pytest.raises(ValidationError):
        MediaItemUpdate(status="watched")
    with pytest.raises(ValidationError):
        MediaItemUpdate(rewatch_count=3)


def test_provider_payload_aliases():
    """Test camelCase provider fields map onto the models."""
    rec = Recommendation.model_validate({"title": "Thief", "reason": "Because you liked Heat", "matchScore": 88})
    assert rec.match_score == 88
    assert rec.model_dump(by_alias=True)["matchScore"] == 88

    with pytest.raises(ValidationError):
        Recommendation.model_validate({"title": "Thief", "reason": "r", "matchScore": 0})

    profile = TasteProfile.model_validate(
        {
            "dna": "You like crime.",
            "patterns": ["heists"],
            "filmSoulmate": {"director": "Michael Mann", "reason": "Night cities"},
            "blindSpots": ["musicals"],
            "quirks": [],
            "criticScore": 70,
            "mainstreamScore": 40,
        }
    )
    assert profile.film_soulmate.director == "Michael Mann"

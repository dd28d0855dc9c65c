"""Shared fixtures."""

import pytest

from unscroll.models import CurrentUser, MediaItem
from unscroll.media_service import MediaService
from unscroll.store import MemoryDocumentStore


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def user():
    return CurrentUser(id="user-1", email="ada@example.com", username="ada")


@pytest.fixture
def other_user():
    return CurrentUser(id="user-2", email="bob@example.com", username="bob")


@pytest.fixture
def service(store, user):
    return MediaService(store, user)


@pytest.fixture
def make_item():
    """Factory for media items with sensible defaults."""

    def _make(**overrides) -> MediaItem:
        data = {"id": "item-1", "user_id": "user-1", "title": "Heat"}
        data.update(overrides)
        return MediaItem.model_validate(data)

    return _make

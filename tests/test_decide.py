"""Tests for random selection over the watchlist."""

import random
from collections import Counter

import pytest

from unscroll.decide import available_genres, candidate_pool, describe_filters, select_random
from unscroll.models import SpinFilters


@pytest.fixture
def library(make_item):
    return [
        make_item(id="a", title="Alien", genre="Horror, Science Fiction", duration="1h 57m"),
        make_item(id="b", title="Heat", genre="Crime, Drama", duration="2h 50m"),
        make_item(id="c", title="Elf", genre="Comedy, Family", plot="A Christmas tale", duration="1h 37m"),
        make_item(id="d", title="Untitled", genre=None, duration=None),
        make_item(id="e", title="Saw", genre="Horror", status="watched", watched_at="2023-10-31"),
        make_item(id="f", title="Up", genre="Animation", status="watching"),
    ]


def test_only_unwatched_items_are_candidates(library):
    assert {item.id for item in candidate_pool(library)} == {"a", "b", "c", "d"}


def test_single_match_is_always_selected(library):
    """Scenario: one unwatched horror film among watched and non-matching films."""
    filters = SpinFilters(genres=["horror"])
    for seed in range(20):
        assert select_random(library, filters, random.Random(seed)).id == "a"


def test_empty_pool_returns_none(library):
    assert select_random(library, SpinFilters(genres=["Western"])) is None
    assert select_random([]) is None


def test_genre_filter_is_case_insensitive_substring(library):
    pool = candidate_pool(library, SpinFilters(genres=["DRAMA", "comedy"]))
    assert {item.id for item in pool} == {"b", "c"}


def test_genre_filter_excludes_items_without_genre(library):
    pool = candidate_pool(library, SpinFilters(genres=["a"]))
    assert "d" not in {item.id for item in pool}


def test_max_duration_keeps_items_without_runtime(library):
    pool = candidate_pool(library, SpinFilters(max_duration=120))
    assert {item.id for item in pool} == {"a", "c", "d"}


def test_mood_filter_matches_genre_plot_and_title(library, make_item):
    pool = candidate_pool(library, SpinFilters(mood="Christmas"))
    assert [item.id for item in pool] == ["c"]

    pool = candidate_pool(library, SpinFilters(mood="scary"))
    assert [item.id for item in pool] == ["a"]

    titled = [make_item(id="x", title="Love Actually", genre="Comedy")]
    assert len(candidate_pool(titled, SpinFilters(mood="romantic"))) == 1


def test_unknown_mood_does_not_filter(library):
    assert len(candidate_pool(library, SpinFilters(mood="sleepy"))) == 4


def test_exclude_ids(library):
    pool = candidate_pool(library, SpinFilters(exclude_ids=["a", "b", "zzz"]))
    assert {item.id for item in pool} == {"c", "d"}


def test_filters_combine(library):
    filters = SpinFilters(genres=["horror", "comedy"], max_duration=100)
    assert [item.id for item in candidate_pool(library, filters)] == ["c"]


def test_selection_is_uniform(make_item):
    """Test each eligible item is picked about equally often."""
    items = [make_item(id=str(i), title=f"Film {i}") for i in range(4)]
    rng = random.Random(1234)
    draws = 10_000

    counts = Counter(select_random(items, rng=rng).id for _ in range(draws))

    assert set(counts) == {"0", "1", "2", "3"}
    for count in counts.values():
        assert abs(count - draws / 4) < 250


def test_describe_filters():
    assert describe_filters(None) == ""
    assert describe_filters(SpinFilters()) == ""
    assert (
        describe_filters(SpinFilters(genres=["Horror", "Comedy"], max_duration=90, mood="cozy"))
        == "Horror, Comedy, under 90 min, cozy mood"
    )


def test_available_genres_only_from_unwatched(library):
    assert available_genres(library) == ["Comedy", "Crime", "Drama", "Family", "Horror", "Science Fiction"]

"""Tests for the text-generation client and its fallbacks."""

import json
import random
from types import SimpleNamespace

import pytest
from openai import OpenAIError

from unscroll.ai_client import (
    REVIEW_FALLBACKS,
    AIClient,
    persuade_fallback,
    review_fallback,
)
from unscroll.constants import PersuadeMood, ReviewStyle
from unscroll.errors import InvalidInputError, NotFoundError, ProviderUnavailableError
from unscroll.models import WrappedSummary


class FakeCompletions:
    """Stands in for ``client.chat.completions``."""

    def __init__(self, reply):
        self.reply = reply
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if isinstance(self.reply, Exception):
            raise self.reply
        content = self.reply if isinstance(self.reply, str) or self.reply is None else json.dumps(self.reply)
        message = SimpleNamespace(content=content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_ai(reply):
    completions = FakeCompletions(reply)
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return AIClient(client=client, model="test-model"), completions


def test_unconfigured_client():
    client = AIClient()
    assert not client.configured
    with pytest.raises(ProviderUnavailableError):
        client.autofill("Heat")


def test_autofill():
    client, completions = fake_ai(
        {
            "genre": "Crime, Drama",
            "plot": "A thief and a detective.",
            "cast": ["Al Pacino", "Robert De Niro"],
            "duration": "2h 50m",
            "format": "movie",
            "year": 1995,
            "found": True,
        }
    )

    result = client.autofill("  Heat ")

    assert result.year == 1995
    assert completions.calls[0]["model"] == "test-model"
    assert completions.calls[0]["response_format"] == {"type": "json_object"}
    assert '"Heat"' in completions.calls[0]["messages"][1]["content"]


def test_autofill_unknown_film():
    client, _ = fake_ai(
        {"genre": "", "plot": "", "cast": [], "duration": "", "format": "movie", "year": 2030, "found": False}
    )
    with pytest.raises(NotFoundError):
        client.autofill("Some Future Film")


def test_autofill_requires_title():
    client, completions = fake_ai({})
    with pytest.raises(InvalidInputError):
        client.autofill("   ")
    assert completions.calls == []


@pytest.mark.parametrize("reply", ["not json at all", None, {"genre": "Drama"}, OpenAIError("boom")])
def test_bad_provider_replies_are_unavailable(reply):
    client, _ = fake_ai(reply)
    with pytest.raises(ProviderUnavailableError):
        client.autofill("Heat")


def test_persuade_uses_provider():
    client, _ = fake_ai({"phrase": "Go now!", "mood": "excited", "emoji": "🎬"})
    result = client.persuade("Heat", "Crime")
    assert result.phrase == "Go now!"
    assert result.mood == PersuadeMood.EXCITED


def test_persuade_falls_back_on_failure():
    client, _ = fake_ai("garbage")
    assert client.persuade("Alien", "Horror, Science Fiction") == persuade_fallback("Alien", "Horror, Science Fiction")
    assert AIClient().persuade("Alien", "Horror").phrase == "You might lose some sleep."


def test_persuade_fallback_by_genre_and_title_length():
    horror = persuade_fallback("Alien", "Horror")
    assert horror.phrase == "You might lose some sleep."
    assert horror.mood == PersuadeMood.THRILLING

    generic = persuade_fallback("Heat", None)
    assert generic.phrase == "Trust me on this one."
    assert generic.mood == PersuadeMood.COZY


def test_review_falls_back_when_unconfigured():
    draft = AIClient().generate_review("Heat", 4.5, style="critic")
    assert draft.review in REVIEW_FALLBACKS[5]
    assert draft.style == ReviewStyle.CRITIC


def test_review_fallback_rounds_rating():
    rng = random.Random(0)
    assert review_fallback(0.5, ReviewStyle.CASUAL, rng).review in REVIEW_FALLBACKS[1]
    assert review_fallback(3.0, ReviewStyle.CASUAL, rng).review in REVIEW_FALLBACKS[3]


def test_review_provider_errors_propagate_when_configured():
    client, _ = fake_ai("garbage")
    with pytest.raises(ProviderUnavailableError):
        client.generate_review("Heat", 4)


def test_review_requires_title_and_rating():
    with pytest.raises(InvalidInputError):
        AIClient().generate_review("", 4)
    with pytest.raises(InvalidInputError):
        AIClient().generate_review("Heat", None)


def test_recommend(make_item):
    client, completions = fake_ai(
        {
            "recommendations": [
                {"title": "Thief", "year": 1981, "reason": "Because you liked Heat", "matchScore": 91}
            ],
            "analysis": "You like crime films.",
        }
    )
    films = [
        make_item(id="1", title="Heat", user_rating=5, status="watched", watched_at="2024"),
        make_item(id="2", title="Cats", user_rating=1, status="watched", watched_at="2024"),
    ]

    result = client.recommend(films, exclude_titles=["Heat", "Cats", "Alien"])

    assert result.recommendations[0].match_score == 91
    assert result.source == "ai"
    prompt = completions.calls[0]["messages"][1]["content"]
    assert "- Heat (unknown) - 5.0★" in prompt
    assert "Cats (" not in prompt
    assert "Exclude these titles: Heat, Cats, Alien" in prompt


def test_recommend_needs_rated_films(make_item):
    client, completions = fake_ai({})
    with pytest.raises(InvalidInputError):
        client.recommend([])
    with pytest.raises(InvalidInputError):
        client.recommend([make_item(user_rating=2.5)])
    assert completions.calls == []


def test_analyze_taste(make_item):
    client, completions = fake_ai(
        {
            "dna": "You love slow-burn crime.",
            "patterns": ["Heists"],
            "filmSoulmate": {"director": "Michael Mann", "reason": "Cool professionals"},
            "blindSpots": ["Musicals"],
            "quirks": ["Night scenes"],
            "criticScore": 70,
            "mainstreamScore": 40,
        }
    )
    films = [
        make_item(id=str(n), title=f"Film {n}", genre="Crime", director="Michael Mann", user_rating=4)
        for n in range(5)
    ]

    profile = client.analyze_taste(films)

    assert profile.film_soulmate.director == "Michael Mann"
    assert profile.critic_score == 70
    prompt = completions.calls[0]["messages"][1]["content"]
    assert "Top genres: Crime (5)" in prompt
    assert "Michael Mann (5 films)" in prompt

    with pytest.raises(InvalidInputError):
        client.analyze_taste(films[:4])


def test_wrapped_insights():
    summary = WrappedSummary(year=2024, total_films=12, total_hours=24.5)

    fallback = AIClient().wrapped_insights(summary)
    assert "12 films" in fallback.personality

    client, completions = fake_ai(
        {
            "personality": "A night owl.",
            "spiritAnimal": {"director": "Agnès Varda", "reason": "Curious"},
            "prediction": "More documentaries.",
            "roast": "So many subtitles.",
            "compliment": "Great eye.",
        }
    )
    insights = client.wrapped_insights(summary)
    assert insights.spirit_animal.director == "Agnès Varda"
    assert "2025" in completions.calls[0]["messages"][0]["content"]

    with pytest.raises(InvalidInputError):
        client.wrapped_insights(WrappedSummary(year=2024))

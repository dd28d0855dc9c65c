"""Text-generation client (OpenAI chat completions in JSON mode)."""

import json
import logging
import random
from collections import Counter
from typing import Optional, Type, TypeVar

from openai import OpenAI, OpenAIError
from pydantic import BaseModel, ValidationError

from .constants import (
    RECOMMENDATION_FILM_LIMIT,
    RECOMMENDATION_MIN_RATING,
    TASTE_MIN_FILMS,
    TASTE_SAMPLE_SIZE,
    PersuadeMood,
    ReviewStyle,
)
from .errors import InvalidInputError, NotFoundError, ProviderUnavailableError
from .formatting import split_genres
from .models import (
    AutofillResponse,
    FilmSoulmate,
    MediaItem,
    PersuadeResponse,
    RecommendationSet,
    ReviewDraft,
    TasteProfile,
    WrappedInsights,
    WrappedSummary,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"

ModelT = TypeVar("ModelT", bound=BaseModel)

# Persuasive phrases used when the provider is unavailable, keyed by genre keyword
GENRE_FALLBACKS: dict[str, list[tuple[str, PersuadeMood, str]]] = {
    "horror": [
        ("Keep the lights on for this one.", PersuadeMood.THRILLING, "👻"),
        ("Scary in the best way.", PersuadeMood.THRILLING, "🔪"),
        ("You might lose some sleep.", PersuadeMood.THRILLING, "💀"),
    ],
    "thriller": [
        ("The ending will surprise you.", PersuadeMood.THRILLING, "🔍"),
        ("You won't be able to look away.", PersuadeMood.THRILLING, "😰"),
        ("Full of surprises.", PersuadeMood.INTRIGUING, "🎯"),
    ],
    "comedy": [
        ("Get ready to laugh a lot.", PersuadeMood.EXCITED, "😂"),
        ("You'll smile the whole time.", PersuadeMood.COZY, "🤣"),
        ("Feel-good film alert!", PersuadeMood.EXCITED, "😄"),
    ],
    "romance": [
        ("Have tissues ready.", PersuadeMood.COZY, "💕"),
        ("Your heart will thank you.", PersuadeMood.COZY, "❤️"),
        ("A beautiful love story.", PersuadeMood.INTRIGUING, "💝"),
    ],
    "action": [
        ("Non-stop fun from start to end.", PersuadeMood.EXCITED, "💥"),
        ("Action-packed and exciting.", PersuadeMood.THRILLING, "🔥"),
        ("Hold on tight!", PersuadeMood.EXCITED, "⚡"),
    ],
    "sci-fi": [
        ("Get ready to be amazed.", PersuadeMood.INTRIGUING, "🚀"),
        ("The future looks cool.", PersuadeMood.EXCITED, "🤖"),
        ("Mind-blowing stuff.", PersuadeMood.INTRIGUING, "🌌"),
    ],
    "fantasy": [
        ("Magic and adventure await.", PersuadeMood.EXCITED, "🧙"),
        ("A world you'll love.", PersuadeMood.COZY, "✨"),
        ("Epic and amazing.", PersuadeMood.EXCITED, "🐉"),
    ],
    "drama": [
        ("A story that stays with you.", PersuadeMood.INTRIGUING, "🎭"),
        ("Beautiful and moving.", PersuadeMood.INTRIGUING, "💫"),
        ("You'll feel all the feelings.", PersuadeMood.COZY, "🌟"),
    ],
    "animation": [
        ("Beautiful animation, great story.", PersuadeMood.EXCITED, "🎨"),
        ("Fun for everyone.", PersuadeMood.COZY, "✨"),
        ("Looks amazing.", PersuadeMood.EXCITED, "🌈"),
    ],
    "christmas": [
        ("Perfect for the holidays.", PersuadeMood.COZY, "🎄"),
        ("Grab some hot cocoa.", PersuadeMood.COZY, "☃️"),
        ("Holiday vibes!", PersuadeMood.COZY, "🎅"),
    ],
    "default": [
        ("This one is special.", PersuadeMood.INTRIGUING, "⭐"),
        ("A great watch.", PersuadeMood.EXCITED, "🎬"),
        ("You should watch this.", PersuadeMood.EXCITED, "🍿"),
        ("You won't regret it.", PersuadeMood.INTRIGUING, "🎥"),
        ("Trust me on this one.", PersuadeMood.COZY, "✨"),
    ],
}

# Canned reviews per rounded star rating
REVIEW_FALLBACKS: dict[int, list[str]] = {
    5: ["Loved every minute. One of my favorites now.", "Amazing film. Everyone should see this."],
    4: ["Really liked this one. Would watch again.", "Great film with some really good moments."],
    3: ["It was okay. Some good parts, some slow.", "Worth watching once if you like this type."],
    2: ["Not for me. Had some good ideas but missed.", "Expected more. Kind of boring."],
    1: ["Hard to finish. Would not recommend.", "Not good. Save your time."],
}

AUTOFILL_PROMPT = """You are a movie database expert. Given a film title, return accurate information about it in JSON format.

Return ONLY a JSON object with these exact fields:
{
  "genre": "string - main genres separated by comma",
  "plot": "string - brief 1-2 sentence plot summary without spoilers",
  "cast": ["string array - top 3-4 main actors/actresses"],
  "duration": "string - runtime (e.g., '2h 15m')",
  "format": "movie",
  "year": number - release year,
  "found": boolean - true if you know this film, false if you don't recognize it
}

If you don't recognize the film or it's too recent, set "found" to false and fill in reasonable placeholder values. Always set format to "movie"."""

PERSUADE_PROMPT = """You convince people to watch films. Write a short, fun phrase that makes them want to watch now.

Return ONLY a JSON object:
{
  "phrase": "string - A short sentence (max 80 chars). Use simple words. Be fun and direct.",
  "mood": "excited" | "intriguing" | "cozy" | "thrilling",
  "emoji": "string - One emoji for the film"
}

Use simple English. Keep it short. Match the mood to the genre."""

REVIEW_PROMPT = """You write short film reviews. Write 1-2 simple sentences (max 150 characters).

Writing styles:
- casual: Like talking to a friend
- critic: More serious, about the film quality
- poetic: Beautiful words, emotional
- humorous: Funny and playful

Return ONLY a JSON object:
{
  "review": "string - the review",
  "style": "string - the style used"
}

Use simple English words. Match tone to rating: 5 = loved it, 4 = liked it, 3 = it was okay, 2 = didn't like it, 1 = bad."""

RECOMMEND_PROMPT = """You suggest films to watch. Based on what the user liked, suggest 5 films they might enjoy.

Return ONLY a JSON object:
{
  "recommendations": [
    {"title": "Film Title", "year": 2020, "reason": "Because you liked [Film Name] - short reason", "matchScore": 85}
  ],
  "analysis": "What kind of films they seem to like (1 simple sentence)"
}

Rules:
- Only suggest real films
- Don't suggest films from the exclude list
- Mix popular films and hidden gems
- Use simple English
- Always start reason with "Because you liked [Film Name]" or "Because you watched [Film Name]" referencing a film from their list"""

TASTE_PROMPT = """You analyze someone's film taste and talk directly to them. Use "you" and "your". Use simple English.

Return ONLY a JSON object:
{
  "dna": "2-3 simple sentences about what makes YOUR film taste special",
  "patterns": ["up to 5 things you notice about what YOU watch"],
  "filmSoulmate": {"director": "Director name", "reason": "Why this director fits YOUR taste"},
  "blindSpots": ["up to 3 types of films YOU don't watch"],
  "quirks": ["up to 3 fun things about YOUR taste"],
  "criticScore": 75,
  "mainstreamScore": 50
}

criticScore is 1-100 (100 = very strict rater). mainstreamScore is 1-100 (popular vs rare films)."""

WRAPPED_PROMPT = """You create fun film year summaries. Be friendly and playful. Use simple English.

Return ONLY a JSON object:
{{
  "personality": "2 simple sentences about what kind of film fan they are",
  "spiritAnimal": {{"director": "A director that fits their taste", "reason": "Why this director fits them"}},
  "prediction": "A fun guess about their {next_year} film watching (simple sentence)",
  "roast": "A friendly joke about their film habits (keep it nice!)",
  "compliment": "Something nice about their film taste (simple sentence)"
}}"""


def persuade_fallback(title: str, genre: Optional[str]) -> PersuadeResponse:
    """Pick a canned phrase matching the genre, varied by title length."""
    genre_lower = (genre or "").lower()
    fallbacks = next(
        (phrases for key, phrases in GENRE_FALLBACKS.items() if key != "default" and key in genre_lower),
        GENRE_FALLBACKS["default"],
    )
    phrase, mood, emoji = fallbacks[len(title or "") % len(fallbacks)]
    return PersuadeResponse(phrase=phrase, mood=mood, emoji=emoji)


def review_fallback(rating: float, style: ReviewStyle, rng: Optional[random.Random] = None) -> ReviewDraft:
    """Canned review matching the star rating."""
    options = REVIEW_FALLBACKS.get(int(rating + 0.5), REVIEW_FALLBACKS[3])
    return ReviewDraft(review=(rng or random).choice(options), style=style)


def wrapped_fallback(summary: WrappedSummary) -> WrappedInsights:
    """Generic year-end insights when no provider is configured."""
    return WrappedInsights(
        personality=(
            f"You watched {summary.total_films} films this year. "
            "That's a lot of movie nights! Your taste is special."
        ),
        spirit_animal=FilmSoulmate(
            director="Christopher Nolan",
            reason="You like films that make you think and look amazing",
        ),
        prediction="You'll find a new favorite director and watch some old classics again.",
        roast="Your watchlist is longer than your free time. But hey, dreams are free!",
        compliment="You really love films and it shows. Keep watching!",
    )


def _film_line(item: MediaItem) -> str:
    rating = f"{item.user_rating}★" if item.user_rating else "unrated"
    return (
        f"- {item.title} ({item.year or '?'}) | {item.genre or 'unknown'} | "
        f"{rating} | Dir: {item.director or 'unknown'}"
    )


class AIClient:
    """Client for an OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        client=None,
    ):
        """Initialize; without a key or client every call is unavailable."""
        self.model = model
        if client is not None:
            self.client = client
        elif api_key:
            self.client = OpenAI(api_key=api_key, base_url=base_url, timeout=timeout)
        else:
            self.client = None

    @classmethod
    def from_settings(cls, settings) -> "AIClient":
        return cls(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            timeout=settings.openai_timeout,
        )

    @property
    def configured(self) -> bool:
        return self.client is not None

    def _ask(self, response_model: Type[ModelT], system: str, user: str, **options) -> ModelT:
        """Run one JSON-mode completion and validate it against ``response_model``."""
        if self.client is None:
            raise ProviderUnavailableError("AI features are not configured (set openai.api_key)")

        try:
            completion = self.client.chat.completions.create(
                model=self.model,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                **options,
            )
        except OpenAIError as e:
            logger.error(f"AI request failed: {e}")
            raise ProviderUnavailableError("AI request failed")

        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise ProviderUnavailableError("No response received from AI")

        try:
            return response_model.model_validate(json.loads(content))
        except json.JSONDecodeError:
            logger.error(f"AI returned non-JSON content: {content[:200]}")
            raise ProviderUnavailableError("Failed to parse AI response")
        except ValidationError as e:
            logger.error(f"AI response failed validation: {e}")
            raise ProviderUnavailableError("Invalid response format from AI")

    def autofill(self, title: str) -> AutofillResponse:
        """Suggest metadata for a title."""
        if not title or not title.strip():
            raise InvalidInputError("Please provide a title to autofill")

        result = self._ask(
            AutofillResponse,
            AUTOFILL_PROMPT,
            f'Provide information for the film: "{title.strip()}"',
            max_tokens=1000,
        )
        if result.found is False:
            raise NotFoundError(
                "Film not found in AI database. This might be a very recent release. "
                "Please fill in the details manually."
            )
        return result

    def persuade(self, title: str, genre: Optional[str] = None, plot: Optional[str] = None) -> PersuadeResponse:
        """Short phrase selling a film; falls back to canned phrases on any provider failure."""
        if not title:
            raise InvalidInputError("Title is required")

        try:
            return self._ask(
                PersuadeResponse,
                PERSUADE_PROMPT,
                f'Generate a persuasive phrase for:\nTitle: "{title}"\n'
                f"Genre: {genre or 'Unknown'}\nPlot: {plot or 'A captivating story'}",
                temperature=0.95,
                max_tokens=150,
            )
        except ProviderUnavailableError as e:
            logger.warning(f"Using fallback phrase for '{title}': {e.message}")
            return persuade_fallback(title, genre)

    def generate_review(
        self,
        title: str,
        rating: float,
        keywords: Optional[list[str]] = None,
        style: ReviewStyle = ReviewStyle.CASUAL,
    ) -> ReviewDraft:
        """Draft a short review matching the rating and style."""
        if not title or rating is None:
            raise InvalidInputError("Title and rating are required")
        style = ReviewStyle(style)

        if not self.configured:
            logger.warning("AI not configured, using fallback review")
            return review_fallback(rating, style)

        keyword_line = f"Keywords: {', '.join(keywords)}" if keywords else ""
        return self._ask(
            ReviewDraft,
            REVIEW_PROMPT,
            f'Generate a {style.value} review for:\nFilm: "{title}"\nRating: {rating}/5 stars\n{keyword_line}',
            temperature=0.9,
            max_tokens=200,
        )

    def recommend(self, films: list[MediaItem], exclude_titles: Optional[list[str]] = None) -> RecommendationSet:
        """Suggest up to five new films based on well-rated watched ones."""
        if not films:
            raise InvalidInputError("No watched films provided")

        top_films = [
            f for f in films if f.user_rating and f.user_rating >= RECOMMENDATION_MIN_RATING
        ][:RECOMMENDATION_FILM_LIMIT]
        if not top_films:
            raise InvalidInputError("Rate some films first to get recommendations")

        film_lines = "\n".join(
            f"- {f.title} ({f.year or 'unknown'}) - {f.user_rating}★ - {f.genre or 'unknown genre'}"
            for f in top_films
        )
        return self._ask(
            RecommendationSet,
            RECOMMEND_PROMPT,
            f"Based on these rated films, recommend 5 new films:\n\n{film_lines}\n\n"
            f"Exclude these titles: {', '.join(exclude_titles or []) or 'none'}",
            temperature=0.8,
            max_tokens=600,
        )

    def analyze_taste(self, films: list[MediaItem]) -> TasteProfile:
        """Describe the user's taste from their watched films."""
        if len(films) < TASTE_MIN_FILMS:
            raise InvalidInputError(f"Need at least {TASTE_MIN_FILMS} watched films for taste analysis")

        rated = [f.user_rating for f in films if f.user_rating]
        avg_rating = sum(rated) / len(rated) if rated else 0
        genre_counts = Counter(g for f in films for g in split_genres(f.genre))
        director_counts = Counter(f.director for f in films if f.director)

        top_genres = ", ".join(f"{g} ({c})" for g, c in genre_counts.most_common(5))
        top_directors = ", ".join(f"{d} ({c} films)" for d, c in director_counts.most_common(3))
        sample = "\n".join(_film_line(f) for f in films[:TASTE_SAMPLE_SIZE])

        return self._ask(
            TasteProfile,
            TASTE_PROMPT,
            f"Analyze this film collection:\n\nTotal films: {len(films)}\n"
            f"Average rating: {avg_rating:.1f}/5\nTop genres: {top_genres}\n"
            f"Top directors: {top_directors}\n\nSample of films (with ratings):\n{sample}",
            temperature=0.85,
            max_tokens=700,
        )

    def wrapped_insights(self, summary: WrappedSummary) -> WrappedInsights:
        """Playful year-end insights; canned text when unconfigured."""
        if summary.total_films == 0:
            raise InvalidInputError("No film data provided")

        if not self.configured:
            return wrapped_fallback(summary)

        return self._ask(
            WrappedInsights,
            WRAPPED_PROMPT.format(next_year=summary.year + 1),
            "Generate Wrapped insights for this user:\n"
            f"- Films watched: {summary.total_films}\n"
            f"- Hours watched: {round(summary.total_hours)}\n"
            f"- Top genres: {', '.join(g.name for g in summary.top_genres) or 'varied'}\n"
            f"- Top directors: {', '.join(d.name for d in summary.top_directors) or 'varied'}\n"
            f"- Average rating: {summary.avg_rating or 0:.1f}\n"
            f"- Top rated films: {', '.join(f.title for f in summary.top_rated_films) or 'varied'}\n"
            f"- Busiest month: {summary.busiest_month.name if summary.busiest_month else 'unknown'}\n"
            f"- Favorite language: {summary.favorite_language.name if summary.favorite_language else 'English'}",
            temperature=0.95,
            max_tokens=500,
        )

"""Formatting helpers for genres, runtimes and dates."""

import re
from datetime import datetime, timezone
from typing import Optional

# Common short forms for genre names
GENRE_ABBREVIATIONS = {
    "science fiction": "Sci-Fi",
    "documentary": "Doc",
    "animation": "Animated",
    "tv movie": "TV",
}

_GENRE_SPLIT = re.compile(r",|/")
_HOURS = re.compile(r"(\d+)\s*h", re.IGNORECASE)
_MINUTES = re.compile(r"(\d+)\s*m", re.IGNORECASE)
_YEAR_ONLY = re.compile(r"^\d{4}$")
_YEAR_MONTH = re.compile(r"^\d{4}-\d{2}$")


def split_genres(genre: Optional[str]) -> list[str]:
    """Split a comma or slash separated genre string."""
    if not genre:
        return []
    return [g.strip() for g in _GENRE_SPLIT.split(genre) if g.strip()]


def _abbreviate(name: str) -> str:
    return GENRE_ABBREVIATIONS.get(name.lower(), name)


def format_genre(genre: Optional[str]) -> str:
    """Format a genre string as "Genre1/Genre2" (max 2, abbreviated)."""
    return "/".join(_abbreviate(g) for g in split_genres(genre)[:2])


def format_genres_from_list(genres: list[dict]) -> str:
    """Format a TMDB genre list ([{id, name}]) the same way."""
    names = [g.get("name") for g in genres if g.get("name")]
    return "/".join(_abbreviate(n) for n in names[:2])


def parse_duration_to_minutes(duration: Optional[str]) -> int:
    """Parse a runtime such as "2h 15m" into minutes (0 if unparseable)."""
    if not duration:
        return 0
    hours = _HOURS.search(duration)
    minutes = _MINUTES.search(duration)
    return (int(hours.group(1)) if hours else 0) * 60 + (int(minutes.group(1)) if minutes else 0)


def format_runtime(runtime: Optional[int]) -> Optional[str]:
    """Format a runtime in minutes as "2h 15m" or "45m"."""
    if not runtime:
        return None
    hours, minutes = divmod(int(runtime), 60)
    return f"{hours}h {minutes}m" if hours > 0 else f"{minutes}m"


def parse_iso_date(value: str) -> datetime:
    """Parse a year-only, date or datetime ISO string into an aware datetime.

    Naive values are treated as UTC. Raises ValueError for anything else.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid date: {value!r}")
    text = value.strip()
    if _YEAR_ONLY.match(text):
        text = f"{text}-01-01"
    elif _YEAR_MONTH.match(text):
        text = f"{text}-01"
    parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()

"""Command-line interface for Unscroll."""

import logging
import random
import sys
from typing import Optional

import click

from . import __version__
from .config import get_settings, validate_credentials
from .constants import MediaStatus
from .errors import ProviderUnavailableError, UnscrollError
from .formatting import format_genre
from .insights import compute_stats
from .media_service import MediaService
from .models import ActionResult, CurrentUser, MediaItem, MediaItemCreate, SpinFilters
from .store import create_store
from .tmdb_client import TMDBClient

logger = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def setup_logging(level: str):
    """Configure logging for the application."""
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )


def _warn_missing_credentials():
    """Log which optional providers are unconfigured (features degrade, nothing fails)."""
    is_valid, missing = validate_credentials()
    if is_valid:
        return
    settings = get_settings()
    logger.warning("=" * 60)
    logger.warning("Some providers are not configured; related features will be limited:")
    for name in missing:
        logger.warning(f"  - {name}")
    logger.warning(f"Edit {settings.config_path} or set TMDB_API_KEY / OPENAI_API_KEY")
    logger.warning("=" * 60)


def _local_service() -> MediaService:
    """Media actions for the configured local user."""
    settings = get_settings()
    user = CurrentUser(id=settings.cli_user_id, username=settings.cli_user_id)
    return MediaService(create_store(settings), user)


def _check(result: ActionResult) -> ActionResult:
    """Exit with an error message when an action failed."""
    if not result.success:
        click.echo(f"Error ({result.error_kind.value}): {result.error}", err=True)
        sys.exit(1)
    return result


def _describe(item: MediaItem) -> str:
    year = f" ({item.year})" if item.year else ""
    rating = f" {item.user_rating:g}★" if item.user_rating else ""
    views = f" x{item.total_views}" if item.total_views > 1 else ""
    genre = f" [{format_genre(item.genre)}]" if item.genre else ""
    return f"{item.id}  {item.title}{year}{genre}  {item.status.value}{views}{rating}"


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS),
    default="WARNING",
    help="Logging level",
)
def main(log_level: str):
    """Unscroll: decide what to watch and keep a film diary."""
    setup_logging(log_level)


@main.command()
@click.option("--host", type=str, default=None, help="Bind host (default from config)")
@click.option("--port", type=int, default=None, help="Bind port (default from config)")
def serve(host: Optional[str], port: Optional[int]):
    """Run the HTTP API."""
    import uvicorn
    from fastapi.middleware.cors import CORSMiddleware

    from .web import app

    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level)
    host = host or settings.host
    port = port or settings.port

    logger.info("=" * 60)
    logger.info("Unscroll API")
    logger.info(f"Listening on http://{host}:{port}")
    logger.info(f"Store backend: {settings.store_backend}")
    logger.info("=" * 60)
    _warn_missing_credentials()

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    try:
        uvicorn.run(app, host=host, port=port, log_level=settings.log_level.lower())
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
        sys.exit(0)


@main.command()
@click.option("--email", prompt=True)
@click.option("--username", prompt=True)
@click.password_option()
def register(email: str, username: str, password: str):
    """Create an account for the HTTP API."""
    from .auth import AuthService

    settings = get_settings()
    try:
        profile = AuthService.from_settings(create_store(settings), settings).register(email, username, password)
    except UnscrollError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)
    click.echo(f"Registered {profile.username} ({profile.id})")


@main.command()
@click.argument("title")
@click.option("--year", type=int, default=None)
@click.option("--genre", default=None)
@click.option("--duration", default=None, help='Runtime such as "2h 15m"')
@click.option(
    "--status",
    type=click.Choice([s.value for s in MediaStatus]),
    default=MediaStatus.UNWATCHED.value,
)
@click.option("--tmdb/--no-tmdb", default=True, help="Fill in details from TMDB")
def add(title: str, year: Optional[int], genre: Optional[str], duration: Optional[str], status: str, tmdb: bool):
    """Add a film to the watchlist."""
    settings = get_settings()
    data = MediaItemCreate(title=title, year=year, genre=genre, duration=duration, status=status)

    if tmdb:
        client = TMDBClient.from_settings(settings)
        try:
            movie_id = client.find_movie_id(title, year)
            if movie_id is None:
                click.echo(f"No TMDB match for '{title}', adding as entered")
            else:
                details = client.get_movie_details(movie_id).to_create()
                # Options given on the command line win over TMDB's values
                explicit = {
                    k: v for k, v in {"year": year, "genre": genre, "duration": duration}.items() if v is not None
                }
                data = details.model_copy(update={**explicit, "status": MediaStatus(status)})
        except ProviderUnavailableError as e:
            click.echo(f"TMDB unavailable ({e.message}), adding as entered", err=True)

    result = _check(_local_service().add_item(data))
    click.echo(f"Added: {_describe(result.data)}")


@main.command(name="list")
@click.option("--status", type=click.Choice([s.value for s in MediaStatus]), default=None)
def list_items(status: Optional[str]):
    """List films, newest first."""
    result = _check(_local_service().list_items(MediaStatus(status) if status else None))
    if not result.data:
        click.echo("Nothing here yet.")
    for item in result.data:
        click.echo(_describe(item))


@main.command()
@click.argument("item_id")
@click.option("--date", default=None, help="ISO date of the first watch (default: now)")
def watch(item_id: str, date: Optional[str]):
    """Mark a film as watched."""
    result = _check(_local_service().mark_as_watched(item_id, date))
    click.echo(f"Watched: {_describe(result.data)}")


@main.command()
@click.argument("item_id")
@click.option("--date", default=None, help="ISO date of the rewatch (default: now)")
def rewatch(item_id: str, date: Optional[str]):
    """Log a rewatch of a film."""
    result = _check(_local_service().mark_as_rewatched(item_id, date))
    click.echo(f"Rewatched: {_describe(result.data)}")


@main.command()
@click.argument("item_id")
@click.option("--index", type=int, default=None, help="Rewatch to remove (default: latest)")
def unrewatch(item_id: str, index: Optional[int]):
    """Remove a logged rewatch."""
    result = _check(_local_service().remove_rewatch(item_id, index))
    click.echo(f"Updated: {_describe(result.data)}")


@main.command()
@click.argument("item_id")
@click.argument("new_status", type=click.Choice([s.value for s in MediaStatus]))
def status(item_id: str, new_status: str):
    """Change a film's status (watch history is kept)."""
    result = _check(_local_service().set_status(item_id, MediaStatus(new_status)))
    click.echo(f"Updated: {_describe(result.data)}")


@main.command()
@click.option("--genre", "genres", multiple=True, help="Genre to include (repeatable)")
@click.option("--max-duration", type=int, default=None, help="Maximum runtime in minutes")
@click.option("--mood", default=None, help="christmas, romantic, action, funny, scary, family, thoughtful")
@click.option("--seed", type=int, default=None, help="Random seed for a reproducible pick")
def decide(genres: tuple, max_duration: Optional[int], mood: Optional[str], seed: Optional[int]):
    """Pick a random unwatched film."""
    filters = SpinFilters(genres=list(genres), max_duration=max_duration, mood=mood)
    rng = random.Random(seed) if seed is not None else None
    result = _check(_local_service().get_random_unwatched(filters, rng))
    if result.data is None:
        click.echo(result.message)
        return
    click.echo(f"Tonight: {_describe(result.data)}")


@main.command()
@click.argument("query")
def search(query: str):
    """Search TMDB for a film."""
    try:
        results = TMDBClient.from_settings(get_settings()).search_movies(query)
    except ProviderUnavailableError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)
    if not results:
        click.echo("No results.")
    for movie in results:
        year = f" ({movie.year})" if movie.year else ""
        click.echo(f"{movie.id}  {movie.title}{year}")


@main.command()
@click.option("--year", type=int, default=None, help="Year for the 'watched this year' count")
def stats(year: Optional[int]):
    """Show viewing statistics."""
    try:
        summary = compute_stats(_local_service().load_items(), year)
    except UnscrollError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)
    click.echo(f"Watched: {summary.total_watched} ({summary.total_views} views)")
    click.echo(f"Watchlist: {summary.total_watchlist}")
    click.echo(f"Time watched: {summary.hours}h ({summary.days} days)")
    click.echo(f"Average rating: {summary.avg_rating:.1f} from {summary.rated_count} ratings")
    click.echo(f"Watched this year: {summary.watched_this_year}")
    if summary.top_genres:
        click.echo("Top genres: " + ", ".join(f"{g.name} ({g.count})" for g in summary.top_genres))


if __name__ == "__main__":
    main()

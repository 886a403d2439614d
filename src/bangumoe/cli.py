"""Command-line interface for the Bangumoe collection client."""

import asyncio
import logging
import sys
from typing import Awaitable, Callable, Optional

import click

from . import __version__
from .app import (
    AppContext,
    BindBangumi,
    DeleteCollection,
    Dispatcher,
    Navigate,
    OpenAuthModal,
    OpenCreateModal,
    OpenEditModal,
    SetFilter,
    SubmitAuth,
    SubmitCollection,
    SyncBangumi,
    UnbindBangumi,
    UpdateAuthDraft,
    UpdateDraft,
)
from .config import Settings, get_settings, reload_settings
from .constants import DEFAULT_WEB_UI_PORT, Section
from .errors import BangumoeError, StateError
from .models import CollectionEntry, CollectionType
from .notifications import Level

logger = logging.getLogger(__name__)

TYPE_CHOICES = [t.value for t in CollectionType]
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def setup_logging(level: str):
    """Configure logging for the application."""
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
        force=True,
    )


def _print_entries(entries) -> None:
    if not entries:
        click.echo("No collection entries")
        return
    for entry in entries:
        _print_entry(entry)


def _print_entry(entry: CollectionEntry) -> None:
    rating = f"{entry.rating}/10" if entry.rating is not None else "-"
    episodes = entry.anime.episode_count if entry.anime and entry.anime.episode_count else "?"
    click.echo(f"[{entry.id}] {entry.title} ({entry.type.value}, {episodes} eps) rating: {rating}")
    if entry.comment:
        click.echo(f"      {entry.comment}")


async def _login(settings: Settings, dispatcher: Dispatcher) -> None:
    """Log in with the configured credentials, if any."""
    if not settings.has_credentials:
        return
    await dispatcher.dispatch(OpenAuthModal())
    await dispatcher.dispatch(UpdateAuthDraft(fields={"username": settings.username, "password": settings.password}))
    await dispatcher.dispatch(SubmitAuth())


def _run(settings: Settings, steps: Callable[[Dispatcher], Awaitable[None]]) -> None:
    """Run ``steps`` against a fresh application context and report the outcome.

    Notifications are echoed; the command exits non-zero if any of them is an
    error or a step raised.
    """
    context = AppContext.from_settings(settings)
    dispatcher = Dispatcher(context)

    async def runner():
        try:
            await _login(settings, dispatcher)
            await steps(dispatcher)
        finally:
            await context.close()

    failed = False
    try:
        asyncio.run(runner())
    except StateError as e:
        click.echo(f"Error: {e}", err=True)
        failed = True
    except BangumoeError:
        # Already reported through a notification
        failed = True

    for notification in context.notifier.drain():
        is_error = notification.level in (Level.ERROR, Level.WARNING)
        failed = failed or notification.level is Level.ERROR
        click.echo(f"[{notification.level.value}] {notification.message}", err=is_error)

    if failed:
        sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to config.yaml (default: data/config.yaml or $BANGUMOE_CONFIG)",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS),
    default=None,
    help="Logging level (default: from config)",
)
@click.pass_context
def main(ctx: click.Context, config_path: Optional[str], log_level: Optional[str]):
    """Browse and edit your anime collection, and sync it with Bangumi."""
    settings = reload_settings(config_path) if config_path else get_settings()
    setup_logging(log_level or settings.log_level)
    ctx.obj = settings


@main.command()
@click.option("--type", "type_", type=click.Choice(TYPE_CHOICES), default=None, help="Only this collection type")
@click.option("--rating", type=click.IntRange(1, 10), default=None, help="Only this rating")
@click.pass_obj
def collections(settings: Settings, type_: Optional[str], rating: Optional[int]):
    """List collection entries, optionally filtered."""

    async def steps(dispatcher: Dispatcher):
        await dispatcher.dispatch(Navigate(section=Section.COLLECTIONS))
        if type_ or rating:
            await dispatcher.dispatch(SetFilter(type=type_, rating=rating))
        _print_entries(dispatcher.context.store.snapshot)

    _run(settings, steps)


@main.command()
@click.option("--anime-id", type=int, required=True, help="Anime to add")
@click.option("--type", "type_", type=click.Choice(TYPE_CHOICES), default=CollectionType.WATCHING.value)
@click.option("--rating", type=int, default=None, help="Rating from 1 to 10")
@click.option("--comment", default="", help="Free-form comment")
@click.pass_obj
def add(settings: Settings, anime_id: int, type_: str, rating: Optional[int], comment: str):
    """Add an anime to the collection."""

    async def steps(dispatcher: Dispatcher):
        await dispatcher.dispatch(Navigate(section=Section.COLLECTIONS))
        await dispatcher.dispatch(OpenCreateModal(anime_id=anime_id))
        await dispatcher.dispatch(UpdateDraft(fields={"type": type_, "rating": rating, "comment": comment}))
        saved = await dispatcher.dispatch(SubmitCollection())
        _print_entry(saved)

    _run(settings, steps)


@main.command()
@click.argument("entry_id", type=int)
@click.option("--type", "type_", type=click.Choice(TYPE_CHOICES), default=None)
@click.option("--rating", type=int, default=None, help="Rating from 1 to 10")
@click.option("--comment", default=None, help="Free-form comment")
@click.pass_obj
def edit(settings: Settings, entry_id: int, type_: Optional[str], rating: Optional[int], comment: Optional[str]):
    """Edit a collection entry."""
    changes = {"type": type_, "rating": rating, "comment": comment}
    changes = {k: v for k, v in changes.items() if v is not None}

    async def steps(dispatcher: Dispatcher):
        await dispatcher.dispatch(Navigate(section=Section.COLLECTIONS))
        await dispatcher.dispatch(OpenEditModal(entry_id=entry_id))
        await dispatcher.dispatch(UpdateDraft(fields=changes))
        saved = await dispatcher.dispatch(SubmitCollection())
        _print_entry(saved)

    _run(settings, steps)


@main.command()
@click.argument("entry_id", type=int)
@click.confirmation_option(prompt="Delete this collection entry?")
@click.pass_obj
def delete(settings: Settings, entry_id: int):
    """Delete a collection entry."""

    async def steps(dispatcher: Dispatcher):
        await dispatcher.dispatch(Navigate(section=Section.COLLECTIONS))
        await dispatcher.dispatch(DeleteCollection(entry_id=entry_id, confirmed=True))

    _run(settings, steps)


@main.group()
def bangumi():
    """Manage the Bangumi account binding."""


@bangumi.command()
@click.pass_obj
def status(settings: Settings):
    """Show the Bangumi binding status."""

    async def steps(dispatcher: Dispatcher):
        await dispatcher.dispatch(Navigate(section=Section.BANGUMI))
        coordinator = dispatcher.context.coordinator
        binding = coordinator.binding
        if binding is None:
            click.echo("Not bound to a Bangumi account")
            return
        click.echo(f"Bound to Bangumi user {binding.bangumi_user_id}")
        if binding.created_at:
            click.echo(f"Bound since: {binding.created_at:%Y-%m-%d %H:%M:%S}")
        if binding.token_expires_at:
            click.echo(f"Token expires: {binding.token_expires_at:%Y-%m-%d %H:%M:%S}")

    _run(settings, steps)


@bangumi.command()
@click.pass_obj
def bind(settings: Settings):
    """Bind a Bangumi account."""

    async def steps(dispatcher: Dispatcher):
        await dispatcher.dispatch(Navigate(section=Section.BANGUMI))
        result = await dispatcher.dispatch(BindBangumi())
        name = result.nickname or result.username or result.bangumi_user_id
        click.echo(f"Bound to Bangumi user {name}")

    _run(settings, steps)


@bangumi.command()
@click.confirmation_option(prompt="Unbind the Bangumi account?")
@click.pass_obj
def unbind(settings: Settings):
    """Unbind the Bangumi account."""

    async def steps(dispatcher: Dispatcher):
        await dispatcher.dispatch(Navigate(section=Section.BANGUMI))
        await dispatcher.dispatch(UnbindBangumi(confirmed=True))

    _run(settings, steps)


@bangumi.command()
@click.pass_obj
def sync(settings: Settings):
    """Sync the Bangumi collection into the local one."""

    async def steps(dispatcher: Dispatcher):
        await dispatcher.dispatch(Navigate(section=Section.BANGUMI))
        result = await dispatcher.dispatch(SyncBangumi())
        click.echo("\n=== Sync Results ===")
        click.echo(f"New anime: {result.new_animes}")
        click.echo(f"Updated collections: {result.updated_collections}")
        click.echo(f"Total collections: {result.total_collections}")

    _run(settings, steps)


@main.command()
@click.option("--port", type=int, default=DEFAULT_WEB_UI_PORT, help="Web UI port")
@click.option("--host", type=str, default="127.0.0.1", help="Web UI host")
@click.pass_obj
def web(settings: Settings, port: int, host: str):
    """Serve the JSON control surface."""
    import uvicorn
    from .web import create_app

    logger.info("=" * 60)
    logger.info("Bangumoe - Web control surface")
    logger.info(f"URL: http://{host}:{port}/api/state")
    logger.info(f"Backend: {settings.backend.value}")
    logger.info("=" * 60)

    app = create_app(AppContext.from_settings(settings), settings=settings)
    try:
        uvicorn.run(app, host=host, port=port, log_level="warning")
    except KeyboardInterrupt:
        logger.info("Web control surface stopped by user")
        sys.exit(0)


if __name__ == "__main__":
    main()

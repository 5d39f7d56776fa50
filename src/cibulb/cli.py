import asyncio
from datetime import datetime, timezone
import logging
from typing import Optional

import aiohttp
from gidgethub import aiohttp as gh_aiohttp
import humanize
import sanic.log
from tabulate import tabulate
import typer

from cibulb.config import SETTINGS
from cibulb.errors import IndicatorError
from cibulb.handlers import refresh_status
from cibulb.light_bulb import Bulb, fetch_build_status
from cibulb.logger import LOG_FORMAT, get_log_handlers
from cibulb.notify import create_notifier
from cibulb.status import aggregate_status
from cibulb.storage import RepositoryStore


logging.basicConfig(format=LOG_FORMAT, level=logging.INFO)
logger = logging.getLogger("cibulb")


app = typer.Typer()


@app.callback()
def init():
    logging.getLogger().setLevel(SETTINGS.log_level)
    logger.setLevel(SETTINGS.log_level)
    get_log_handlers(logger, SETTINGS)
    get_log_handlers(sanic.log.logger, SETTINGS)


@app.command()
def migrate():
    store = RepositoryStore(SETTINGS)
    store.initialize()
    typer.echo(f"Migrated {store.db_path}")


@app.command()
def refresh(dry_run: bool = typer.Option(False, "--dry-run")):
    """Recompute the aggregate status and notify once."""
    settings = SETTINGS
    if dry_run:
        settings = SETTINGS.model_copy(update={"DRY_RUN": True})

    async def handle():
        async with aiohttp.ClientSession() as session:
            notifier = create_notifier(settings, session)
            return await refresh_status(settings, RepositoryStore(settings), notifier)

    result = asyncio.run(handle())
    if result.failed:
        typer.echo(f"Refresh failed: {result.error}", err=True)
        raise typer.Exit(code=1)
    typer.echo(result.aggregate.value)


@app.command()
def repos():
    with RepositoryStore(SETTINGS).connect() as conn:
        records = conn.fetch_all()

    now = datetime.now(timezone.utc)
    rows = [
        (
            record.name,
            record.status,
            humanize.naturaltime(now - record.last_seen_at)
            if record.last_seen_at is not None
            else "",
        )
        for record in sorted(records, key=lambda r: r.name)
    ]
    typer.echo(tabulate(rows, headers=["repository", "status", "updated"]))
    typer.echo(f"\nAggregate: {aggregate_status(records).value}")


@app.command()
def light(
    owner: Optional[str] = typer.Argument(None),
    repo: Optional[str] = typer.Argument(None),
    ref: str = typer.Option("master", "--ref"),
):
    """
    Color the bulb. With OWNER and REPO the latest GitHub commit status of
    REF is shown, otherwise the aggregate of the stored repositories.
    """
    if (owner is None) != (repo is None):
        raise typer.BadParameter("Give both OWNER and REPO, or neither")

    async def handle():
        if owner is not None and repo is not None:
            async with aiohttp.ClientSession() as session:
                gh = gh_aiohttp.GitHubAPI(
                    session,
                    "cibulb",
                    oauth_token=SETTINGS.GITHUB_TOKEN,
                    base_url=SETTINGS.GITHUB_API_URL,
                )
                state = (await fetch_build_status(gh, owner, repo, ref)).state
        else:
            with RepositoryStore(SETTINGS).connect() as conn:
                state = aggregate_status(conn.fetch_all()).value

        bulb = await Bulb.connect(SETTINGS.BULB_NAME)
        try:
            color = await bulb.show_status(state)
        finally:
            await bulb.disconnect()
        return state, color

    try:
        state, color = asyncio.run(handle())
    except IndicatorError as exc:
        typer.echo(f"Light failed: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"{state} -> {color.name}")

"""
Reverie CLI - Command line interface for the simulation server.

Usage:
    reverie run           Start the server
    reverie seed          Create tables and seed starter content
    reverie creatures     List the creature registry
"""

import asyncio
import logging
from pathlib import Path

import click

from reverie import __version__
from reverie.config import ServerConfig


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@click.group()
@click.version_option(version=__version__, prog_name="reverie")
@click.option("--log-level", default=None, help="Root log level (default: REVERIE_LOG_LEVEL or INFO)")
@click.pass_context
def main(ctx: click.Context, log_level: str | None):
    """Reverie - authoritative multiplayer world simulation."""
    config = ServerConfig()
    if log_level:
        config.log_level = log_level
    _configure_logging(config.log_level)
    ctx.obj = config


@main.command()
@click.option("--host", "-h", default=None, help="Host to bind to")
@click.option("--port", "-p", default=None, type=int, help="Port to bind to")
@click.pass_obj
def run(config: ServerConfig, host: str | None, port: int | None):
    """Start the simulation server."""
    import uvicorn

    from reverie.main import create_app

    if host:
        config.host = host
    if port:
        config.port = port

    click.echo(f"Starting Reverie on {config.host}:{config.port}...")
    uvicorn.run(
        create_app(server_config=config),
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )


@main.command()
@click.option(
    "--world-data",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Directory holding scenes.yaml and characters.yaml",
)
@click.pass_obj
def seed(config: ServerConfig, world_data: Path | None):
    """Create tables and seed starter scenes and characters."""
    from reverie.db import create_tables, make_engine, make_session_factory
    from reverie.engine.loader import seed_world

    world_data = world_data or config.world_data_dir

    async def _seed() -> tuple[int, int]:
        db_engine = make_engine(config.database_url)
        try:
            await create_tables(db_engine)
            async with make_session_factory(db_engine)() as session:
                return await seed_world(session, world_data)
        finally:
            await db_engine.dispose()

    scenes, characters = asyncio.run(_seed())
    click.echo(f"Seeded {scenes} scenes and {characters} characters into {config.database_url}")


@main.command()
@click.option(
    "--file",
    "creatures_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Creature table (default: world_data/creatures.yaml)",
)
@click.pass_obj
def creatures(config: ServerConfig, creatures_file: Path | None):
    """List registered creature templates."""
    from reverie.engine.creatures import CreatureRegistry

    registry = CreatureRegistry.from_yaml(creatures_file or config.world_data_dir / "creatures.yaml")
    for creature_id in registry.ids():
        template = registry.get(creature_id)
        click.echo(
            f"{creature_id:<16} {template.name:<20} {template.classification:<10} "
            f"lvl {template.level:<3} hp {template.max_hp}"
        )


if __name__ == "__main__":
    main()

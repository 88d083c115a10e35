"""CLI commands for gemini-relay."""

from __future__ import annotations

import asyncio
import sqlite3
import sys

import typer
from loguru import logger

from geminirelay import __logo__, __version__
from geminirelay.config.loader import ConfigError, load_config
from geminirelay.config.schema import Config

app = typer.Typer(
    name="geminirelay",
    help=f"{__logo__} gemini-relay - chat relay to Gemini",
    no_args_is_help=True,
)


def version_callback(value: bool):
    if value:
        typer.echo(f"{__logo__} gemini-relay v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """gemini-relay - chat relay to Gemini with API key rotation."""
    pass


def _setup_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")


def _load_config_or_exit() -> Config:
    try:
        return load_config()
    except ConfigError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def gateway(
    verbose: bool = typer.Option(False, "--verbose", help="Verbose output"),
):
    """Start the bot: Telegram channel, dispatcher and Gemini client."""
    from geminirelay.agent.dispatcher import Dispatcher
    from geminirelay.bus.queue import MessageBus
    from geminirelay.channels.manager import ChannelManager
    from geminirelay.i18n.catalog import MessageCatalog
    from geminirelay.knowledge.persona import load_persona
    from geminirelay.providers.factory import create_provider
    from geminirelay.session.history import HistoryStore

    _setup_logging(verbose)
    logger.info("Starting bot...")
    config = _load_config_or_exit()

    history = HistoryStore(config.database_path)
    try:
        history.init_schema()
    except sqlite3.Error as e:
        typer.echo(f"Error: failed to initialize database schema: {e}", err=True)
        raise typer.Exit(1)

    catalog = MessageCatalog.load()
    provider = create_provider(config)
    persona = load_persona(config.knowledge.file) if config.knowledge.enabled else ""

    bus = MessageBus()
    channels = ChannelManager(config, bus)
    dispatcher = Dispatcher(
        bus=bus,
        provider=provider,
        history=history,
        catalog=catalog,
        channels=channels,
        persona=persona,
        store=config.store,
    )

    if channels.enabled_channels:
        typer.echo(f"✓ Channels enabled: {', '.join(channels.enabled_channels)}")
    else:
        typer.echo("Warning: No channels enabled")

    async def run():
        try:
            await asyncio.gather(
                dispatcher.run(),
                channels.start_all(),
            )
        except KeyboardInterrupt:
            typer.echo("\nShutting down...")
        finally:
            dispatcher.stop()
            await channels.stop_all()
            history.close()
            logger.info("Bot shut down gracefully")

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


@app.command()
def status():
    """Show the effective configuration."""
    config = _load_config_or_exit()

    typer.echo(f"{__logo__} gemini-relay Status\n")
    typer.echo(f"API keys: {len(config.gemini.api_keys)}")
    typer.echo(f"Chat model: {config.gemini.chat_model}")
    typer.echo(f"Vision model: {config.gemini.vision_model}")
    typer.echo(f"Document model: {config.gemini.document_model}")
    knowledge = config.knowledge.file or "(no file)"
    typer.echo(f"Knowledge: {'✓ ' + knowledge if config.knowledge.enabled else 'disabled'}")
    typer.echo(f"Database: {config.database_path}")
    typer.echo(f"Telegram: {'✓' if config.telegram.token else 'not configured'}")


if __name__ == "__main__":
    app()

"""Command-line interface for the Hotplate page agent.

Provides commands for following a Hotplate server with a headless page
and for validating configuration files.
"""

from __future__ import annotations

import asyncio
import contextlib
import signal
from collections.abc import MutableMapping
from pathlib import Path
from typing import Any

import click
import httpx
import structlog

from hotplate import __version__
from hotplate.agent import Agent
from hotplate.core.config import HotplateConfig
from hotplate.page import HeadlessPage

log = structlog.get_logger()


def _configure_logging(*, verbose: bool = False, quiet: bool = False) -> None:
    """Configure structlog with appropriate log level filtering."""
    import logging

    if quiet:
        min_level = logging.WARNING
    elif verbose:
        min_level = logging.DEBUG
    else:
        min_level = logging.INFO

    def _filter_by_level(
        _logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
    ) -> MutableMapping[str, Any]:
        if getattr(logging, method_name.upper(), 0) < min_level:
            raise structlog.DropEvent
        return event_dict

    structlog.configure(
        processors=[
            _filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.dev.ConsoleRenderer(colors=True),
        ],
    )


def _load_config(config_path: Path | None) -> HotplateConfig:
    if config_path is None:
        return HotplateConfig()
    return HotplateConfig.from_yaml(config_path)


async def follow(page: HeadlessPage, config: HotplateConfig, shutdown: asyncio.Event) -> None:
    """Run agents for successive page contexts until shutdown is set.

    Each reload ends the current context: the agent stops, the page is
    fetched again, and a fresh agent connects with a new identity.

    Raises:
        httpx.HTTPError: If the page cannot be loaded
    """
    while not shutdown.is_set():
        await page.load()

        agent = Agent(page, config.agent)
        await agent.start()

        navigation = asyncio.create_task(page.wait_for_navigation())
        stop = asyncio.create_task(shutdown.wait())
        try:
            await asyncio.wait([navigation, stop], return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (navigation, stop):
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
            await agent.stop()


@click.group()
@click.version_option(version=__version__, prog_name="hotplate-agent")
def cli() -> None:
    """Hotplate page agent.

    Telemetry uplink and remote-control surface for a Hotplate dev server.
    """


@cli.command()
@click.argument("url")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="YAML configuration file",
)
@click.option("--width", type=int, default=None, help="Viewport width (overrides config)")
@click.option("--height", type=int, default=None, help="Viewport height (overrides config)")
@click.option(
    "--screenshots/--no-screenshots",
    default=None,
    help="Render screenshots in a headless browser (overrides config)",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    help="Suppress progress output",
)
def run(
    url: str,
    config_path: Path | None,
    width: int | None,
    height: int | None,
    screenshots: bool | None,
    verbose: bool,
    quiet: bool,
) -> None:
    """Follow a Hotplate server with a headless page.

    URL: Page URL served by Hotplate (e.g. http://localhost:5500/)
    """
    _configure_logging(verbose=verbose, quiet=quiet)

    try:
        config = _load_config(config_path)
        if width is not None:
            config.page.width = width
        if height is not None:
            config.page.height = height
        if screenshots is not None:
            config.page.screenshots = screenshots
        page = HeadlessPage(url, config.page)
    except Exception as e:
        log.error("Failed to start", error=str(e))
        raise SystemExit(1) from e

    async def main() -> None:
        shutdown = asyncio.Event()
        loop = asyncio.get_running_loop()

        def handle_signal(signum: int, _frame: object) -> None:
            log.info("Received signal, stopping agent", signal=signum)
            loop.call_soon_threadsafe(shutdown.set)

        signal.signal(signal.SIGINT, handle_signal)
        signal.signal(signal.SIGTERM, handle_signal)

        try:
            await follow(page, config, shutdown)
        finally:
            await page.close()

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        log.info("Interrupted by user")
    except httpx.HTTPError as e:
        log.error("Failed to load page", url=url, error=str(e))
        raise SystemExit(1) from e

    log.info("Agent finished", loads=page.loads)


@cli.command()
@click.argument("config_path", type=click.Path(exists=True, path_type=Path))
def validate(config_path: Path) -> None:
    """Validate configuration file.

    CONFIG_PATH: Path to YAML configuration file

    Exits with code 0 if valid, 1 if invalid.
    """
    try:
        config = HotplateConfig.from_yaml(config_path)
    except Exception as e:
        log.error("Configuration invalid", error=str(e))
        raise SystemExit(1) from e

    log.info("Configuration valid", endpoint=config.agent.endpoint_path)
    click.echo(f"  Endpoint: {config.agent.endpoint_path}")
    click.echo(f"  Reconnect delay: {config.agent.reconnect_delay}s")
    click.echo(f"  Console levels: {', '.join(lvl.value for lvl in config.agent.console_levels)}")
    click.echo(f"  Viewport: {config.page.width}x{config.page.height}")
    screenshots = config.page.browser if config.page.screenshots else "off"
    click.echo(f"  Screenshots: {screenshots}")


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()

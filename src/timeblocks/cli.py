"""CLI for timeblocks: inspect a remote calendar through a headless engine."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

import click

from timeblocks import __version__
from timeblocks.config import DEFAULT_CONFIG_PATH, ConfigError, EngineConfig, load_config
from timeblocks.core.logging import configure_logging
from timeblocks.engine import CalendarEngine

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _build_engine(config: EngineConfig) -> CalendarEngine:
    return CalendarEngine.from_config(config)


def _load(config_path: Path) -> EngineConfig:
    try:
        config = load_config(config_path)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    configure_logging(
        level=config.logging.level,
        fmt=config.logging.format,
        log_root=config.logging.log_root,
        calendar_name=config.calendar.name,
    )
    return config


def _collect(config: EngineConfig, read: Callable[[CalendarEngine], T]) -> T:
    async def _run() -> T:
        async with _build_engine(config) as engine:
            if not engine.gate.data_loaded:
                raise click.ClickException("Could not fetch events from the event store")
            return read(engine)

    return asyncio.run(_run())


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_CONFIG_PATH,
    show_default=True,
    help="Path to the TOML config file",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path) -> None:
    """timeblocks: mirror and summarize a remote calendar of time-blocks."""
    ctx.obj = config_path


@cli.command()
@click.pass_obj
def events(config_path: Path) -> None:
    """List cached events in local time."""
    config = _load(config_path)
    local_events = _collect(config, lambda engine: engine.local_events())
    if not local_events:
        click.echo("No events.")
        return
    for event in local_events:
        click.echo(
            f"{event.id}\t{event.start:%Y-%m-%d %H:%M}\t{event.end:%Y-%m-%d %H:%M}\t"
            f"{event.duration_hours:.2f}h\t{event.title}"
        )


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Emit the aggregation as JSON")
@click.pass_obj
def summary(config_path: Path, as_json: bool) -> None:
    """Print hours grouped by week and day."""
    config = _load(config_path)
    weeks = _collect(config, lambda engine: engine.summary())

    if as_json:
        click.echo(json.dumps([week.model_dump(mode="json") for week in weeks], indent=2))
        return
    if not weeks:
        click.echo("No events.")
        return
    for week in weeks:
        click.echo(f"Week {week.week_number}: {week.weekly_total_hours:.2f}h")
        for day in week.days:
            click.echo(f"  {day.date} {day.weekday:<9} {day.daily_total_hours:.2f}h")

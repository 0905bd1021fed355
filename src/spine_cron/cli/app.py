"""
Root Typer application for the ``spine-cron`` CLI.

Commands:
    next EXPR        upcoming occurrences of a cron expression
    validate EXPR    parse a cron expression and report errors
    config           effective settings from environment / .env
"""

from __future__ import annotations

import json
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import typer
from rich.console import Console
from rich.table import Table

from spine_cron.core.errors import ParseError, SearchExhausted

app = typer.Typer(
    name="spine-cron",
    help="spine-cron: recurring-job scheduling with cron and interval schedules.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()


def _version_callback(value: bool) -> None:
    if value:
        from spine_cron import __version__

        typer.echo(f"spine-cron {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """spine-cron CLI: inspect cron expressions and scheduler settings."""
    from spine_cron.core.logging import configure_from_settings
    from spine_cron.core.settings import SchedulerSettings

    configure_from_settings(SchedulerSettings())


def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise typer.BadParameter(f"Unknown timezone: {name}") from exc


@app.command("next")
def next_occurrences(
    expression: str = typer.Argument(..., help="Cron expression (5 or 6 fields), quoted"),
    count: int = typer.Option(5, "--count", "-n", min=1, help="How many occurrences"),
    start: str | None = typer.Option(None, "--start", help="ISO start time (default: now)"),
    tz: str = typer.Option("UTC", "--tz", help="Timezone for evaluation"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show the next occurrences of a cron expression."""
    from spine_cron.scheduling.cron import CronExpression

    zone = _zone(tz)
    if start is None:
        origin = datetime.now(zone)
    else:
        try:
            origin = datetime.fromisoformat(start)
        except ValueError as exc:
            raise typer.BadParameter(f"Invalid ISO timestamp: {start}") from exc
        origin = origin.replace(tzinfo=zone) if origin.tzinfo is None else origin.astimezone(zone)

    try:
        expr = CronExpression.parse(expression)
        occurrences = list(expr.iter_occurrences(origin, count))
    except (ParseError, SearchExhausted) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    if json_out:
        typer.echo(json.dumps([o.isoformat() for o in occurrences], indent=2))
        return

    table = Table(title=f"Next {count} for '{expr}' ({tz})")
    table.add_column("#", justify="right")
    table.add_column("Occurrence")
    table.add_column("Weekday")
    for i, occurrence in enumerate(occurrences, start=1):
        table.add_row(str(i), occurrence.isoformat(), occurrence.strftime("%a"))
    console.print(table)


@app.command("validate")
def validate(
    expression: str = typer.Argument(..., help="Cron expression (5 or 6 fields), quoted"),
) -> None:
    """Check that a cron expression parses."""
    from spine_cron.scheduling.cron import CronExpression

    try:
        CronExpression.parse(expression)
    except ParseError as e:
        console.print(f"[red]Invalid:[/red] {e}")
        raise typer.Exit(code=1)
    console.print(f"[green]Valid:[/green] {expression}")


@app.command("config")
def show_config() -> None:
    """Print effective scheduler settings as JSON."""
    from spine_cron.core.settings import SchedulerSettings

    typer.echo(SchedulerSettings().model_dump_json(indent=2))


if __name__ == "__main__":
    app()

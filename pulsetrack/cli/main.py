"""
PulseTrack CLI Main Entry Point

Headless front end for the heartbeat engine: manage the API key and
project, send single heartbeats, or run a host loop over a file.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Optional

import structlog
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from pulsetrack import __version__
from pulsetrack.api.progress import RichProgressIndicator
from pulsetrack.host.hooks import HeadlessHost
from pulsetrack.host.loop import HostLoop
from pulsetrack.runtime import PulseRuntime


def configure_logging(verbose: bool = False) -> None:
    """Route structlog through stdlib logging with console rendering."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(colors=True),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


logger = structlog.get_logger(__name__)
console = Console()

app = typer.Typer(
    name="pulsetrack",
    help="PulseTrack - editor activity heartbeats",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(
            Panel(
                Text.from_markup(
                    f"[bold cyan]PulseTrack[/bold cyan] v{__version__}\n"
                    "[dim]Editor activity heartbeats[/dim]"
                ),
                title="Version",
                border_style="cyan",
            )
        )
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output.",
        ),
    ] = False,
) -> None:
    """
    PulseTrack - report editor activity to a time-tracking service.
    """
    configure_logging(verbose)


def _runtime(document: Optional[Path] = None, application: Optional[str] = None) -> PulseRuntime:
    """Build a runtime over a headless host rooted at the working directory."""
    cwd = Path.cwd()
    host = HeadlessHost(
        application_name=application or cwd.name,
        document=document.resolve() if document else None,
        project_path=cwd,
    )
    return PulseRuntime(host)


@app.command()
def enable() -> None:
    """Turn heartbeat reporting on."""
    runtime = _runtime()
    runtime.context.enabled = True
    runtime.shutdown()
    console.print("[green]Heartbeats enabled.[/green]")


@app.command()
def disable() -> None:
    """Turn heartbeat reporting off."""
    runtime = _runtime()
    runtime.context.enabled = False
    runtime.shutdown()
    console.print("[yellow]Heartbeats disabled.[/yellow]")


@app.command("set-key")
def set_key(
    key: Annotated[str, typer.Argument(help="API key for the remote service")],
) -> None:
    """Store an API key without validating it."""
    runtime = _runtime()
    runtime.context.api_key = key
    runtime.shutdown()
    console.print("API key stored. Run [bold]pulsetrack validate[/bold] to check it.")


@app.command()
def validate(
    key: Annotated[
        Optional[str],
        typer.Argument(help="Key to validate and store (defaults to the stored key)"),
    ] = None,
) -> None:
    """
    Validate the API key against the remote service.

    Press Ctrl-C while validating to cancel.
    """
    runtime = _runtime()
    try:
        valid = runtime.client.validate_key(key, indicator=RichProgressIndicator(console))
        user = runtime.context.current_user
    finally:
        runtime.shutdown()

    if not valid:
        console.print("[red]Invalid[/red] API key (or validation cancelled).")
        raise typer.Exit(1)

    name = (user.display_name or user.username) if user else None
    console.print(f"[green]Valid[/green] API key{f' for {name}' if name else ''}.")


@app.command()
def projects(
    select: Annotated[
        Optional[str],
        typer.Option("--select", "-s", help="Make the named project active"),
    ] = None,
    application: Annotated[
        Optional[str],
        typer.Option("--app", help="Application name used to pick a default project"),
    ] = None,
    timeout: Annotated[float, typer.Option("--timeout", help="Seconds to wait")] = 30.0,
) -> None:
    """List your remote projects."""
    runtime = _runtime(application=application)
    settings = runtime.settings
    try:
        if runtime.client.list_projects() is None:
            console.print("[red]Validate your API key first.[/red]")
            raise typer.Exit(1)

        runtime.drain(timeout_seconds=timeout, interval=settings.tick_interval_ms / 1000)
        if runtime.context.retrieving_projects:
            runtime.client.cancel_project_listing()
            runtime.drain(timeout_seconds=1.0)
            console.print("[red]Timed out waiting for the project list.[/red]")
            raise typer.Exit(1)

        context = runtime.context
        if select is not None:
            project = context.find_project(select)
            if project is None:
                console.print(f"[red]No project named {select!r}.[/red]")
                raise typer.Exit(1)
            context.active_project = project

        active = context.active_project
        table = Table(title="Projects")
        table.add_column("", width=1)
        table.add_column("Name", style="cyan")
        table.add_column("ID", style="dim")
        for project in context.projects:
            marker = "*" if active and project.id == active.id else ""
            table.add_row(marker, project.name, project.id)
        console.print(table)
    finally:
        runtime.shutdown()


@app.command()
def beat(
    document: Annotated[
        Optional[Path],
        typer.Argument(help="File the activity is attributed to"),
    ] = None,
    write: Annotated[bool, typer.Option("--write", "-w", help="Report a save")] = False,
    timeout: Annotated[float, typer.Option("--timeout", help="Seconds to wait")] = 30.0,
) -> None:
    """Send a single heartbeat."""
    runtime = _runtime(document=document)
    try:
        if runtime.composer.send(is_write=write) is None:
            console.print(
                "[yellow]Heartbeat skipped:[/yellow] enable PulseTrack and validate your API key."
            )
            raise typer.Exit(1)

        runtime.drain(timeout_seconds=timeout, interval=runtime.settings.tick_interval_ms / 1000)
        last = runtime.context.last_heartbeat
        if not last.id:
            console.print("[red]Heartbeat was not accepted.[/red]")
            raise typer.Exit(1)
        console.print(f"[green]Heartbeat sent[/green] for {last.entity} ({last.id}).")
    finally:
        runtime.shutdown()


@app.command()
def run(
    document: Annotated[Path, typer.Argument(help="File to watch for saves")],
    duration: Annotated[
        Optional[float],
        typer.Option("--duration", "-d", help="Stop after this many seconds"),
    ] = None,
    application: Annotated[
        Optional[str],
        typer.Option("--app", help="Application name reported to the host"),
    ] = None,
) -> None:
    """Run a headless host loop, sending heartbeats as the file changes."""
    runtime = _runtime(document=document, application=application)
    runtime.start()
    loop = HostLoop(runtime.host, tick_interval_ms=runtime.settings.tick_interval_ms)
    console.print(f"Watching [cyan]{document}[/cyan]. Press Ctrl-C to stop.")
    try:
        asyncio.run(loop.run(duration))
    except KeyboardInterrupt:
        logger.info("Host loop interrupted", ticks=loop.tick_count)
    finally:
        runtime.shutdown()


@app.command()
def status() -> None:
    """Show the stored configuration."""
    runtime = _runtime()
    context = runtime.context
    table = Table(title="PulseTrack", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Enabled", "yes" if context.enabled else "no")
    table.add_row("API key", "set" if context.api_key else "not set")
    table.add_row("Validated", "yes" if context.api_key_validated else "no")
    table.add_row("Project", context.active_project_name or "-")
    table.add_row("Version control", "on" if context.vcs_enabled else "off")
    table.add_row("API base", runtime.settings.api_base)
    table.add_row("Settings file", str(runtime.settings.settings_path))
    runtime.shutdown()
    console.print(table)


if __name__ == "__main__":
    app()

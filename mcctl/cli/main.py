"""mcctl CLI — run the control API or drive the install pipeline directly.

`mcctl serve` starts the HTTP control API.
`mcctl install paper 1.20.1` downloads and verifies a server jar without
needing the API to be up.
"""

from __future__ import annotations

import asyncio

import httpx
import typer
from rich.console import Console
from rich.panel import Panel

from mcctl.artifacts.installer import Installer, InstallResult
from mcctl.config import settings
from mcctl.events.bus import Event, EventBus
from mcctl.types import DistributionChannel

console = Console()

app = typer.Typer(
    name="mcctl",
    help="mcctl -- install, start and stop a Minecraft server behind an HTTP API.",
    no_args_is_help=True,
)


@app.command("serve")
def serve(
    port: int = typer.Option(settings.port, "--port", "-p", help="Port to run on"),
    host: str = typer.Option(settings.host, "--host", help="Host to bind to"),
):
    """Launch the HTTP control API and process supervisor."""
    from mcctl.serve import main

    console.print(f"[bold cyan]mcctl[/bold cyan] control API starting at http://{host}:{port}")
    console.print(f"[dim]Server directory: {settings.workdir}. Press Ctrl+C to stop.[/dim]")
    asyncio.run(main(settings, host=host, port=port))


@app.command("install")
def install(
    channel: str = typer.Argument(help="Distribution channel: paper or fabric"),
    version: str = typer.Argument(help="Minecraft version, e.g. 1.20.1"),
):
    """Download a server jar into the server directory and verify it."""
    try:
        dist = DistributionChannel(channel)
    except ValueError:
        choices = ", ".join(c.value for c in DistributionChannel)
        console.print(f"[red]Unknown channel '{channel}'. Choose one of: {choices}[/red]")
        raise typer.Exit(code=2)

    result = asyncio.run(_install(dist, version))

    if not result.ok:
        console.print(Panel(f"[red]{result.message}[/red]", title="install", border_style="red"))
        raise typer.Exit(code=1)

    if result.verified:
        integrity = f"[green]sha256 {result.hash}[/green]"
    else:
        integrity = "[yellow]unverified (vendor publishes no digest)[/yellow]"
    console.print(Panel(
        f"[bold]{result.message}[/bold]\n\n"
        f"Path:       {result.path}\n"
        f"Integrity:  {integrity}",
        title="install",
        border_style="cyan",
    ))


async def _install(channel: DistributionChannel, version: str) -> InstallResult:
    bus = EventBus()

    async def _progress(event: Event) -> None:
        console.print(f"[dim]{event.topic}[/dim] {event.data}")

    bus.subscribe("install.*", _progress)
    async with httpx.AsyncClient(timeout=settings.http_timeout, follow_redirects=True) as client:
        installer = Installer(client, settings, event_bus=bus)
        return await installer.install(channel, version)


@app.command("version")
def version():
    """Print the mcctl version."""
    from mcctl import __version__

    console.print(f"mcctl v{__version__}")

"""Command-line interface for nerohost.

A developer tool for poking at a single extension file: show its metadata
and run the four extraction operations against it.
"""

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from nerohost import __version__
from nerohost.config import settings
from nerohost.errors import NeroHostError
from nerohost.host import ExtensionHost
from nerohost.loader import read_module
from nerohost.metadata import read_metadata
from nerohost.models import SearchFilter
from nerohost.plugins import load_plugins

app = typer.Typer(
    name="nerohost",
    help="Load sandboxed extensions and run content extraction against them",
    add_completion=False,
)
console = Console()


def _run(path: str, operation):
    """Load an extension and run one coroutine-producing operation on it."""

    async def main():
        load_plugins()
        host = ExtensionHost(settings=settings)
        try:
            extension = await host.load(path)
            return await operation(extension)
        finally:
            host.close()

    try:
        return asyncio.run(main())
    except (NeroHostError, ValueError) as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        raise typer.Exit(code=1)


def _parse_filter(raw: str) -> SearchFilter:
    """Parse ``id=value1,value2`` into a SearchFilter."""
    if "=" not in raw:
        raise typer.BadParameter(f"expected ID=VALUE[,VALUE...], got {raw!r}")
    filter_id, values = raw.split("=", 1)
    return SearchFilter(id=filter_id, values=[v for v in values.split(",") if v])


@app.command()
def info(path: str = typer.Argument(..., help="Path to the extension component")):
    """Show extension metadata without instantiating it."""
    try:
        metadata = read_metadata(read_module(path))
    except NeroHostError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(code=1)

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="yellow")

    table.add_row("Version", str(metadata.version))
    table.add_row("Format", "component" if metadata.is_component else "core module")
    for key in ("description", "authors", "licenses", "homepage", "source", "revision"):
        value = getattr(metadata, key)
        if value:
            table.add_row(key.capitalize(), value)
    for field_name, values in metadata.producers.items():
        producers = ", ".join(f"{name} {version}".strip() for name, version in values.items())
        table.add_row(f"Producers ({field_name})", producers)

    console.print(table)


@app.command()
def filters(path: str = typer.Argument(..., help="Path to the extension component")):
    """List the search filters an extension supports."""
    categories = _run(path, lambda ext: ext.filters())

    if not categories:
        console.print("\n[yellow]Extension declares no filters[/yellow]\n")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Category", style="cyan")
    table.add_column("Filters", style="white")
    for category in categories:
        table.add_row(
            f"{category.display_name} [dim]({category.id})[/dim]",
            ", ".join(f"{f.display_name} [dim]({f.id})[/dim]" for f in category.filters),
        )
    console.print(table)


@app.command()
def search(
    path: str = typer.Argument(..., help="Path to the extension component"),
    query: str = typer.Argument(..., help="Search query"),
    page: Optional[int] = typer.Option(None, "--page", "-p", help="Page number"),
    filter_: list[str] = typer.Option(
        [], "--filter", "-f", help="Filter as ID=VALUE[,VALUE...] (repeatable)"
    ),
):
    """Search an extension's source for series."""
    search_filters = [_parse_filter(raw) for raw in filter_]
    result = _run(path, lambda ext: ext.search(query, page, search_filters))

    if not result.items:
        console.print(f"\n[yellow]No results found for:[/yellow] {query}\n")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("#", style="dim", width=3)
    table.add_column("ID", style="cyan")
    table.add_column("Title", style="white", width=50)
    table.add_column("Type", style="green")

    for idx, series in enumerate(result.items, 1):
        title = series.title[:47] + "..." if len(series.title) > 50 else series.title
        table.add_row(str(idx), series.id, title, series.kind or "")

    console.print(table)
    if result.has_next_page:
        console.print("[dim]More results available (--page)[/dim]")


@app.command()
def episodes(
    path: str = typer.Argument(..., help="Path to the extension component"),
    series_id: str = typer.Argument(..., help="Series ID"),
    page: Optional[int] = typer.Option(None, "--page", "-p", help="Page number"),
):
    """List episodes of a series."""
    result = _run(path, lambda ext: ext.get_series_episodes(series_id, page))

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("No.", justify="right", style="green")
    table.add_column("ID", style="cyan")
    table.add_column("Title", style="white")
    for episode in result.items:
        table.add_row(str(episode.number), episode.id, episode.title or "")

    console.print(table)
    if result.has_next_page:
        console.print("[dim]More episodes available (--page)[/dim]")


@app.command()
def videos(
    path: str = typer.Argument(..., help="Path to the extension component"),
    series_id: str = typer.Argument(..., help="Series ID"),
    episode_id: str = typer.Argument(..., help="Episode ID"),
):
    """Resolve playable videos for an episode."""
    result = _run(path, lambda ext: ext.get_series_videos(series_id, episode_id))

    if not result:
        console.print("\n[yellow]No video sources found[/yellow]\n")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Server", style="cyan")
    table.add_column("Resolution", style="green")
    table.add_column("URL", style="white")
    table.add_column("Headers", justify="right", style="dim")
    for video in result:
        width, height = video.resolution
        table.add_row(video.server, f"{width}x{height}", str(video.video_url), str(len(video.video_headers)))

    console.print(table)


@app.command()
def config():
    """Show current configuration."""
    console.print("\n[bold cyan]nerohost Configuration[/bold cyan]\n")

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Setting", style="cyan", width=30)
    table.add_column("Value", style="yellow")

    timeout = f"{settings.call_timeout}s" if settings.call_timeout else "none"
    table.add_row("Call Timeout", timeout)
    table.add_row("HTTP Timeout", f"{settings.http_timeout}s")
    table.add_row("HTTP Max Response", f"{settings.http_max_response_bytes} bytes")
    table.add_row("HTTP Schemes", ", ".join(settings.http_allowed_schemes))
    table.add_row("Blocked Hosts", ", ".join(settings.http_blocked_hosts))
    table.add_row("Log Level", settings.log_level)
    table.add_row("Debug Mode", str(settings.enable_debug))

    console.print(table)
    console.print()


@app.command()
def version():
    """Show version information."""
    console.print(f"[bold cyan]nerohost[/bold cyan] version [green]{__version__}[/green]")


if __name__ == "__main__":
    app()

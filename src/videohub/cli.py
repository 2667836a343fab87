"""Operator command-line interface using Typer."""

from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from videohub import __version__
from videohub.logging import setup_logging

# Setup logging
setup_logging()

app = typer.Typer(
    name="videohub",
    help="VideoHub - integrity and maintenance tooling for the video backend",
    add_completion=False,
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"VideoHub v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """VideoHub - cascade deletes, toggles and channel views."""
    pass


def _coordinator():
    from videohub.adapters.blob import get_blob_store
    from videohub.adapters.store import get_entity_store
    from videohub.services import IntegrityCoordinator

    return IntegrityCoordinator(get_entity_store(), get_blob_store())


def _print_report(report) -> None:
    """Print a cascade report as a table."""
    table = Table(title=f"Cascade: {report.root} {report.root_id}")
    table.add_column("Step", style="cyan")
    table.add_column("Removed", justify="right", style="green")

    for step, removed in report.removed.items():
        table.add_row(step, str(removed))

    console.print(table)
    if report.deleted:
        console.print(f"[bold green]✓ {report.root} {report.root_id} deleted[/bold green]")
    else:
        console.print(
            f"[yellow]{report.root} {report.root_id} was already gone; dependents swept[/yellow]"
        )


def _purge(cascade) -> None:
    from videohub.errors import UpstreamFailure, VideoHubError
    from videohub.utils import run_async

    try:
        report = run_async(cascade)
    except UpstreamFailure as e:
        console.print(f"[bold red]✗ Cascade aborted at step '{e.step}': {e.message}[/bold red]")
        console.print("[dim]Completed steps are kept; re-run the same command to finish.[/dim]")
        raise typer.Exit(code=1)
    except VideoHubError as e:
        console.print(f"[bold red]Error: {e.message}[/bold red]")
        raise typer.Exit(code=1)

    _print_report(report)


@app.command("init-db")
def init_db() -> None:
    """Create the database tables."""
    from videohub.config import settings
    from videohub.db import init_db as create_tables

    try:
        create_tables()
        console.print(f"[bold green]✓ Database ready[/bold green] [dim]{settings.database_url}[/dim]")
    except Exception as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise typer.Exit(code=1)


@app.command("purge-user")
def purge_user(
    user_id: str = typer.Argument(..., help="Id of the user to delete"),
) -> None:
    """Delete a user with all their content, likes and subscriptions."""
    _purge(_coordinator().delete_user(user_id))


@app.command("purge-video")
def purge_video(
    video_id: str = typer.Argument(..., help="Id of the video to delete"),
) -> None:
    """Delete a video with its likes, comments, memberships and media."""
    _purge(_coordinator().delete_video(video_id))


@app.command("purge-playlist")
def purge_playlist(
    playlist_id: str = typer.Argument(..., help="Id of the playlist to delete"),
) -> None:
    """Delete a playlist (its videos are kept)."""
    _purge(_coordinator().delete_playlist(playlist_id))


@app.command()
def channel(
    channel_id: str = typer.Argument(..., help="Id of the channel (user)"),
    viewer: Optional[str] = typer.Option(None, "--viewer", help="Viewer id for subscription status"),
) -> None:
    """Show a channel profile and its stats."""
    from videohub.adapters.store import get_entity_store
    from videohub.errors import VideoHubError
    from videohub.services import AggregationAssembler
    from videohub.utils import run_async

    assembler = AggregationAssembler(get_entity_store())

    async def _load():
        profile = await assembler.channel_profile(channel_id, viewer_id=viewer)
        stats = await assembler.channel_stats(channel_id)
        return profile, stats

    try:
        profile, stats = run_async(_load())
    except VideoHubError as e:
        console.print(f"[bold red]Error: {e.message}[/bold red]")
        raise typer.Exit(code=1)

    console.print(Panel.fit(
        f"[bold]{profile.full_name}[/bold] [dim]@{profile.username}[/dim]\n"
        f"[cyan]Email:[/cyan] {profile.email}\n"
        f"[cyan]Subscribers:[/cyan] {profile.subscriber_count}  "
        f"[cyan]Subscribed to:[/cyan] {profile.subscribed_to_count}",
        title=f"Channel {profile.id}",
    ))

    table = Table(title="Channel Stats")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Videos", str(stats.video_count))
    table.add_row("Total views", str(stats.total_views))
    table.add_row("Video likes", str(stats.total_video_likes))
    table.add_row("Subscribers", str(stats.subscriber_count))
    if viewer:
        table.add_row("Viewer subscribed", "yes" if profile.is_subscribed_by_viewer else "no")
    console.print(table)


@app.command()
def health() -> None:
    """Check that the configured entity and blob stores are reachable."""
    from videohub.adapters.blob import get_blob_store
    from videohub.adapters.store import get_entity_store
    from videohub.utils import run_async

    store = get_entity_store()
    blobs = get_blob_store()

    async def _check():
        return await store.health_check(), await blobs.health_check()

    store_ok, blobs_ok = run_async(_check())

    table = Table(title="Service Health")
    table.add_column("Service", style="cyan")
    table.add_column("Backend")
    table.add_column("Status")
    table.add_row("Entity store", store.name, "✓" if store_ok else "✗")
    table.add_row("Blob store", blobs.name, "✓" if blobs_ok else "✗")
    console.print(table)

    if not (store_ok and blobs_ok):
        console.print("[bold yellow]Some services unhealthy[/bold yellow]")
        raise typer.Exit(code=1)
    console.print("[bold green]All services healthy![/bold green]")


if __name__ == "__main__":
    app()

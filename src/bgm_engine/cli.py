"""Command-line interface using Typer."""

from typing import Optional
from uuid import UUID

import typer
from rich.console import Console
from rich.table import Table

from bgm_engine import __version__
from bgm_engine.logging import setup_logging

# Setup logging
setup_logging()

app = typer.Typer(
    name="bgm-engine",
    help="BGM Engine - background music video pipeline CLI",
    add_completion=False,
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"BGM Engine v{__version__}")
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
    """BGM Engine - generate music, compose audio programs, render videos."""
    pass


def _load_content(session, content_id: str):
    from bgm_engine.db.models import ContentModel

    content = session.get(ContentModel, UUID(content_id))
    if content is None:
        console.print(f"[bold red]Content not found: {content_id}[/bold red]")
        raise typer.Exit(code=1)
    return content


@app.command("queue-music")
def queue_music(
    content_id: str = typer.Argument(..., help="Content UUID"),
    mode: str = typer.Option("auto", "--mode", "-m", help="auto, single or bulk"),
    count: int = typer.Option(5, "--count", "-n", help="Requests to create in bulk mode"),
) -> None:
    """Create music generation requests for a content and enqueue them."""
    from bgm_engine.db.session import get_session_context
    from bgm_engine.services.queueing import MusicGenerationQueueingService

    if mode not in ("auto", "single", "bulk"):
        console.print(f"[bold red]Unknown mode: {mode}[/bold red]")
        raise typer.Exit(code=1)

    with get_session_context() as session:
        content = _load_content(session, content_id)
        service = MusicGenerationQueueingService(session, content)

        if mode == "single":
            generations = [service.queue_single_generation()]
        elif mode == "bulk":
            generations = service.queue_bulk_generation(count)
        else:
            console.print(
                f"[dim]Content needs {service.required_count} request(s), "
                f"{service.existing_count} already exist[/dim]"
            )
            generations = service.queue_music_generations()

        if not generations:
            console.print("[green]Nothing to queue, the content already has enough requests[/green]")
            return

        for generation in generations:
            console.print(f"[green]Queued music generation {generation.id}[/green]")


@app.command("generate-music")
def generate_music(
    generation_id: str = typer.Argument(..., help="Music generation UUID"),
    blocking: bool = typer.Option(
        False, "--blocking", help="Use the deprecated submit-and-wait task"
    ),
) -> None:
    """Enqueue a music generation request that already exists."""
    from bgm_engine.jobs.music_pipeline import generate_music_blocking_task, generate_music_task

    task = generate_music_blocking_task if blocking else generate_music_task
    result = task.delay(generation_id)
    console.print(f"[green]Task enqueued: {result.id}[/green]")


@app.command("compose-audio")
def compose_audio(
    content_id: str = typer.Argument(..., help="Content UUID"),
) -> None:
    """Select tracks and build the audio program for a content."""
    from bgm_engine.db.session import get_session_context
    from bgm_engine.services.queueing import request_audio

    with get_session_context() as session:
        content = _load_content(session, content_id)
        audio = request_audio(session, content)
        console.print(f"Audio {audio.id}: [cyan]{audio.status}[/cyan]")


@app.command("render-video")
def render_video(
    content_id: str = typer.Argument(..., help="Content UUID"),
) -> None:
    """Render the video for a content with completed audio and artwork."""
    from bgm_engine.db.session import get_session_context
    from bgm_engine.services.queueing import request_video
    from bgm_engine.services.video_render import VideoPrerequisiteError

    with get_session_context() as session:
        content = _load_content(session, content_id)
        try:
            video = request_video(session, content)
        except VideoPrerequisiteError as e:
            console.print(f"[bold red]{e}[/bold red]")
            raise typer.Exit(code=1)
        console.print(f"Video {video.id}: [cyan]{video.status}[/cyan]")


@app.command()
def thumbnail(
    artwork_id: str = typer.Argument(..., help="Artwork UUID"),
    wait: bool = typer.Option(False, "--wait", "-w", help="Wait for completion"),
) -> None:
    """Generate the YouTube thumbnail for an artwork."""
    from bgm_engine.jobs.derivative_pipeline import process_artwork_task

    result = process_artwork_task.delay(artwork_id)
    console.print(f"[green]Task enqueued: {result.id}[/green]")

    if wait:
        console.print("[dim]Waiting for result...[/dim]")
        try:
            task_result = result.get(timeout=120)
        except Exception as e:
            console.print(f"[bold red]Thumbnail generation failed: {e}[/bold red]")
            raise typer.Exit(code=1)
        console.print(f"Action: [cyan]{task_result.get('action')}[/cyan]")
        if task_result.get("path"):
            console.print(f"Path: {task_result['path']}")


@app.command()
def status(
    task_id: str = typer.Argument(..., help="The task ID to check"),
) -> None:
    """Check the status of a job."""
    from celery.result import AsyncResult

    from bgm_engine.worker import celery_app

    result = AsyncResult(task_id, app=celery_app)

    table = Table(title="Job Status")
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    table.add_row("Task ID", task_id)
    table.add_row("Status", result.state)

    if result.state == "SUCCESS":
        table.add_row("Result", str(result.result)[:200])
    elif result.state == "FAILURE":
        table.add_row("Error", str(result.result))

    console.print(table)


@app.command()
def show(
    content_id: str = typer.Argument(..., help="Content UUID"),
) -> None:
    """Show the pipeline state of a content."""
    from bgm_engine.db.session import get_session_context

    with get_session_context() as session:
        content = _load_content(session, content_id)

        console.print(
            f"[bold]{content.theme}[/bold] [dim]({content.duration_minutes} min)[/dim]"
        )

        table = Table(title="Music Generations")
        table.add_column("ID", style="dim")
        table.add_column("Status")
        table.add_column("Tracks")
        table.add_column("Error")
        for generation in content.music_generations:
            durations = ", ".join(
                f"{t.duration_seconds}s" if t.duration_seconds is not None else t.status
                for t in generation.tracks
            )
            error: Optional[str] = (generation.metadata_ or {}).get("error")
            table.add_row(str(generation.id)[:8], generation.status, durations, (error or "")[:60])
        console.print(table)

        stages = Table(title="Stages")
        stages.add_column("Stage", style="cyan")
        stages.add_column("Status")
        stages.add_column("Details")
        audio = content.audio
        stages.add_row(
            "audio",
            audio.status if audio else "-",
            f"{audio.duration_seconds}s" if audio and audio.duration_seconds else "",
        )
        video = content.video
        stages.add_row(
            "video",
            video.status if video else "-",
            (video.error_message or video.resolution or "") if video else "",
        )
        artwork = content.artwork
        stages.add_row(
            "thumbnail",
            "done" if artwork and artwork.has_youtube_thumbnail else "-",
            "",
        )
        console.print(stages)


if __name__ == "__main__":
    app()

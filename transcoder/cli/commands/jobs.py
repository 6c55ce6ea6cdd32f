# Job commands - enqueue a video, process one in-process, show its transcoding status

import time
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from transcoder.core.config import settings
from transcoder.core.database import SessionLocal, create_tables
from transcoder.core.exceptions import VideoNotFoundError
from transcoder.core.storage import MediaPaths
from transcoder.schemas import TranscodeJobData
from transcoder.services import job_store

console = Console()

STATUS_STYLES = {
    "uploading": "dim",
    "pending": "dim",
    "processing": "yellow",
    "ready": "green",
    "completed": "green",
    "failed": "red",
}


def resolve_output_dir(video_id: str, output_dir: Optional[str]) -> str:
    return output_dir or MediaPaths(settings.media_root).hls_dir(video_id)


def enqueue_video(video_id: str, input_path: str, output_dir: Optional[str] = None):
    """
    Queue a transcode job for a video

    Args:
        video_id: Video row id
        input_path: Raw upload path
        output_dir: HLS output directory (defaults to <media_root>/hls/<video_id>)
    """
    from transcoder.worker import enqueue_transcode

    output_dir = resolve_output_dir(video_id, output_dir)
    result = enqueue_transcode(video_id, input_path, output_dir)

    table = Table(title="Queued Job")
    table.add_column("Task ID", style="cyan")
    table.add_column("Video", style="magenta")
    table.add_column("Output", style="dim")
    table.add_row(result.id, video_id, output_dir)
    console.print(table)
    console.print(f"\n[dim]Use 'streambox-transcoder status {video_id}' to check progress[/dim]")


def process_video(video_id: str, input_path: str, output_dir: Optional[str] = None):
    """Run the whole pipeline for one video in this process, bypassing the queue"""
    from transcoder.cli.commands.worker import configure_logging
    from transcoder.worker import get_job_processor

    configure_logging()
    job = TranscodeJobData(
        video_id=video_id,
        input_path=input_path,
        output_dir=resolve_output_dir(video_id, output_dir),
    )

    try:
        get_job_processor()(job)
    except Exception as e:
        console.print(f"[bold red]❌ Transcoding failed:[/bold red] {e}")
        raise typer.Exit(code=1)

    console.print(f"[bold green]✅ Video {video_id} is ready[/bold green]")


def render_status(status) -> Panel:
    style = STATUS_STYLES.get(status.status, "white")
    lines = [
        f"Status:   [{style}]{status.status}[/{style}]",
        f"Progress: {status.progress}%",
    ]
    if status.error:
        lines.append(f"Error:    [red]{status.error}[/red]")
    return Panel("\n".join(lines), title=f"Video {status.video_id}", expand=False)


def show_status(video_id: str, watch: bool = False, interval: float = 2.0):
    """
    Print the video's status and the progress of its latest job attempt

    With watch, refreshes until the video is ready or failed.
    """
    while True:
        db = SessionLocal()
        try:
            status = job_store.get_transcode_status(db, video_id)
        except VideoNotFoundError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            db.close()

        console.print(render_status(status))
        if not watch or status.status in ("ready", "failed"):
            return
        time.sleep(interval)


def init_database():
    create_tables()
    console.print("[green]Database tables created[/green]")

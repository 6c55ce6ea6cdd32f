from typing import Optional

import typer

from .commands.jobs import enqueue_video, init_database, process_video, show_status
from .commands.probe import show_probe
from .commands.worker import run_worker

# Creating the main Typer instance
app = typer.Typer(help="Streambox transcoder", no_args_is_help=True)


@app.command()
def worker(
    concurrency: Optional[int] = typer.Option(None, "--concurrency", "-c", help="Parallel job slots (defaults to TRANSCODE_CONCURRENCY)"),
    queue: Optional[str] = typer.Option(None, "--queue", "-Q", help="Queue to consume (defaults to QUEUE_NAME)"),
    log_level: Optional[str] = typer.Option(None, "--log-level", "-l", help="Logging level")
):
    """
    Run the transcode worker.

    Stops gracefully on SIGTERM/SIGINT, waiting for in-flight jobs.
    """
    run_worker(concurrency=concurrency, queue=queue, log_level=log_level)


@app.command()
def enqueue(
    video_id: str = typer.Argument(..., help="ID of the video row"),
    input_path: str = typer.Argument(..., help="Path to the raw upload"),
    output_dir: Optional[str] = typer.Option(None, "--output-dir", "-o", help="HLS output directory")
):
    """
    Queue a video for transcoding.
    """
    enqueue_video(video_id, input_path, output_dir)


@app.command()
def process(
    video_id: str = typer.Argument(..., help="ID of the video row"),
    input_path: str = typer.Argument(..., help="Path to the raw upload"),
    output_dir: Optional[str] = typer.Option(None, "--output-dir", "-o", help="HLS output directory")
):
    """
    Transcode a video in the foreground without going through the queue.
    """
    process_video(video_id, input_path, output_dir)


@app.command()
def probe(
    file_path: str = typer.Argument(..., help="Path to a media file")
):
    """
    Show source metadata and the renditions that would be produced.
    """
    show_probe(file_path)


@app.command()
def status(
    video_id: str = typer.Argument(..., help="ID of the video to check"),
    watch: bool = typer.Option(False, "--watch", "-w", help="Continuously watch for updates")
):
    """
    Check transcoding status for a video.
    """
    show_status(video_id, watch=watch)


@app.command("init-db")
def init_db():
    """
    Create the videos and transcode_jobs tables.
    """
    init_database()


if __name__ == "__main__":
    app()

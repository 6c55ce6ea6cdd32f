# Probe command - show source metadata as reported by ffprobe

import typer
from rich.console import Console
from rich.table import Table

from transcoder.core.config import settings
from transcoder.core.exceptions import ProbeError
from transcoder.services.engine import FFmpegEngine
from transcoder.services.probe import probe_video

console = Console()


def format_bitrate(bitrate):
    if bitrate is None:
        return "unknown"
    if bitrate < 1_000_000:
        return f"{bitrate / 1000:.0f} kb/s"
    return f"{bitrate / 1_000_000:.2f} Mb/s"


def show_probe(file_path: str):
    engine = FFmpegEngine(ffmpeg_path=settings.ffmpeg_path, ffprobe_path=settings.ffprobe_path)

    try:
        metadata = probe_video(file_path, engine=engine)
    except ProbeError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(code=1)

    ladder = [q.name for q in settings.qualities if q.height <= metadata.height]

    table = Table(title=f"🎞️  {file_path}", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Resolution", f"{metadata.width}x{metadata.height}")
    table.add_row("Duration", f"{metadata.duration:.2f}s")
    table.add_row("Codec", metadata.codec or "unknown")
    table.add_row("Bitrate", format_bitrate(metadata.bitrate))
    table.add_row("Frame rate", f"{metadata.fps:.2f} fps" if metadata.fps else "unknown")
    table.add_row("Renditions", ", ".join(ladder) or "[yellow]none[/yellow]")
    console.print(table)

# WebVTT cue track - maps time ranges to tiles of the sprite sheet

from typing import Tuple


def format_vtt_time(seconds: float) -> str:
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)
    ms = int((seconds % 1) * 1000)

    return f"{hours:02d}:{minutes:02d}:{secs:02d}.{ms:03d}"


def calculate_sprite_position(
    index: int, columns: int, thumb_width: int, thumb_height: int
) -> Tuple[int, int]:
    """Pixel offset (x, y) of tile `index` in a row-major grid"""
    col = index % columns
    row = index // columns
    return col * thumb_width, row * thumb_height


def generate_vtt(
    duration: float,
    interval: float,
    columns: int,
    rows: int,
    thumb_width: int,
    thumb_height: int,
    sprite_filename: str,
) -> str:
    """
    Build the cue file for a sprite sheet.

    At most columns*rows cues are written; anything past
    columns*rows*interval seconds has no preview tile.
    """
    lines = ["WEBVTT", ""]
    current_time = 0.0
    index = 0
    max_frames = columns * rows

    while current_time < duration and index < max_frames:
        x, y = calculate_sprite_position(index, columns, thumb_width, thumb_height)

        start_time = format_vtt_time(current_time)
        end_time = format_vtt_time(min(current_time + interval, duration))

        lines.append(f"{start_time} --> {end_time}")
        lines.append(f"{sprite_filename}#xywh={x},{y},{thumb_width},{thumb_height}")
        lines.append("")

        current_time += interval
        index += 1

    return "\n".join(lines)

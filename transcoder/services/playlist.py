# HLS master playlist - lists the renditions that were actually encoded

import os
import re
from typing import List

from transcoder.schemas import QualityPreset

MASTER_PLAYLIST = "master.m3u8"
RENDITION_PLAYLIST = "playlist.m3u8"

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_bitrate(bitrate: str) -> int:
    """
    Leading integer of a bitrate string ("2500k" -> 2500), like JavaScript parseInt

    Raises:
        ValueError: the string does not start with a number
    """
    match = _LEADING_INT.match(bitrate)
    if not match:
        raise ValueError(f"Invalid bitrate: {bitrate!r}")
    return int(match.group(1))


def build_playlist_content(qualities: List[QualityPreset]) -> str:
    lines = ["#EXTM3U", "#EXT-X-VERSION:3"]

    for quality in qualities:
        bandwidth = parse_bitrate(quality.bitrate) * 1000
        lines.append(
            f"#EXT-X-STREAM-INF:BANDWIDTH={bandwidth},RESOLUTION={quality.width}x{quality.height}"
        )
        lines.append(f"{quality.name}/{RENDITION_PLAYLIST}")

    return "\n".join(lines)


def generate_master_playlist(output_dir: str, qualities: List[QualityPreset]) -> str:
    """Write master.m3u8 into output_dir and return its path"""
    playlist_path = os.path.join(output_dir, MASTER_PLAYLIST)
    with open(playlist_path, "w", encoding="utf-8") as f:
        f.write(build_playlist_content(qualities))
    return playlist_path

"""
Media facts read with ffprobe through ffmpeg-python: source duration and bitrate.
"""

import re
from pathlib import Path
from typing import Optional

import ffmpeg
from loguru import logger

from ..utils.ffmpeg_utils import find_executable
from .exceptions import MediaFileException, NoDurationFoundException


def parse_duration(duration_str: str) -> float:
    """
    Parses a duration string into total seconds.

    Handles the two formats ffprobe emits: plain seconds ("3600.5") and
    timecodes ("01:00:00.500", hours optional).

    Returns:
        The total duration in seconds, or 0.0 if parsing fails.
    """
    try:
        return float(duration_str)
    except (TypeError, ValueError):
        match = re.fullmatch(r"(?:(\d{1,2}):)?(\d{1,2}):(\d{1,2}(?:\.\d+)?)", str(duration_str))
        if match:
            hours_str, minutes_str, seconds_str = match.groups()
            hours = int(hours_str) if hours_str else 0
            return float(hours * 3600 + int(minutes_str) * 60 + float(seconds_str))
        logger.warning(f"Could not parse duration string: {duration_str}")
    return 0.0


class MediaFile:
    """
    A source video and the ffprobe facts the queue needs about it.

    Probing happens on construction via `ffmpeg.probe` (ffmpeg-python). Only the
    duration and the overall bitrate are kept; everything else about the streams
    is FFmpeg's business during the burn.

    Attributes:
        path (Path): Absolute path to the media file.
        size (int): File size in bytes.
        probe (dict): Raw ffprobe output.
        duration (float): Duration in seconds.
        bitrate (int): Overall bitrate in bits per second, 0 when unknown.

    Raises:
        FileNotFoundError: If the file does not exist.
        MediaFileException: If ffprobe fails on the file.
        NoDurationFoundException: If no duration can be determined.
    """

    def __init__(self, path: Path):
        self.path = path.resolve()
        if not self.path.is_file():
            raise FileNotFoundError(f"Media file not found: {self.path}")

        self.size = self.path.stat().st_size
        self.probe: dict = {}
        self.duration: float = 0.0
        self.bitrate: int = 0

        self.set_probe()
        self.set_duration()
        self.set_bitrate()

    def set_probe(self):
        try:
            self.probe = ffmpeg.probe(str(self.path), cmd=find_executable("ffprobe"))
        except ffmpeg.Error as e:
            stderr = e.stderr.decode("utf-8", errors="replace") if isinstance(e.stderr, bytes) else e.stderr
            raise MediaFileException(f"ffprobe failed for {self.path}: {stderr}") from e
        except OSError as e:
            raise MediaFileException(f"Could not run ffprobe for {self.path}: {e}") from e

    def set_duration(self):
        """
        Takes the container duration, falling back to the longest stream duration.
        """
        duration = parse_duration(self.probe.get("format", {}).get("duration", ""))
        if duration <= 0:
            stream_durations = [
                parse_duration(stream.get("duration", ""))
                for stream in self.probe.get("streams", [])
            ]
            duration = max(stream_durations, default=0.0)
        if duration <= 0:
            raise NoDurationFoundException(f"No duration found for {self.path}")
        self.duration = duration

    def set_bitrate(self):
        """
        Reads the container bitrate; when ffprobe has none it is derived from size / duration.
        """
        bit_rate_str = self.probe.get("format", {}).get("bit_rate")
        if bit_rate_str:
            try:
                self.bitrate = int(bit_rate_str)
                return
            except ValueError:
                logger.warning(f"Could not parse bit_rate '{bit_rate_str}' for {self.path.name}")
        if self.duration > 0:
            self.bitrate = int(8 * self.size / self.duration)


def probe_duration(path: Path) -> float:
    """Duration of `path` in seconds. Raises `MediaFileException` subclasses on failure."""
    return MediaFile(path).duration


def probe_bitrate(path: Path) -> Optional[int]:
    """Overall bitrate of `path` in bps, or None when it cannot be probed."""
    try:
        return MediaFile(path).bitrate or None
    except (FileNotFoundError, MediaFileException) as e:
        logger.debug(f"Bitrate probe failed for {path}: {e}")
        return None

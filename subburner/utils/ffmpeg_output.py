"""
Parsers for the text FFmpeg writes while encoding.

FFmpeg reports progress on stderr as lines such as

    frame=  123 fps= 45 q=28.0 size=    1024kB time=00:00:05.12 bitrate=1634.2kbits/s speed=1.5x

and mixes them with banner, stream and warning lines. These helpers turn a single
line into structured telemetry or a log category.
"""

import re
import time
from typing import Optional

from ..domain.models import LogType, Progress
from .format_utils import format_eta

_DURATION_RE = re.compile(r"Duration: (\d{2}:\d{2}:\d{2}\.\d{2})")
_FRAME_RE = re.compile(r"frame=\s*(\d+)")
_FPS_RE = re.compile(r"fps=\s*([\d.]+)")
_TIME_RE = re.compile(r"time=\s*(\d{2}:\d{2}:\d{2}\.\d{2})")
_BITRATE_RE = re.compile(r"bitrate=\s*([\d.]+\w+/s)")
_SPEED_RE = re.compile(r"speed=\s*([\d.]+x)")


def parse_time(time_string: str) -> float:
    """
    Parses "HH:MM:SS.cc", "MM:SS.cc" or plain seconds into seconds.

    >>> parse_time("01:30:45.50")
    5445.5
    """
    parts = time_string.split(":")
    if len(parts) == 3:
        return float(parts[0]) * 3600 + float(parts[1]) * 60 + float(parts[2])
    if len(parts) == 2:
        return float(parts[0]) * 60 + float(parts[1])
    return float(time_string)


def extract_duration(output: str) -> Optional[float]:
    """Finds the input duration FFmpeg prints in its stream banner, in seconds."""
    match = _DURATION_RE.search(output)
    if match:
        return parse_time(match.group(1))
    return None


def is_progress_line(line: str) -> bool:
    return "frame=" in line or "size=" in line


def parse_progress_line(
    line: str,
    total_duration: float,
    start_time: Optional[float] = None,
    now: Optional[float] = None,
) -> Optional[Progress]:
    """
    Parses one FFmpeg progress line.

    Args:
        line: A single line of encoder output.
        total_duration: Duration of the source in seconds; 0 when unknown, in which
            case the percentage stays at 0.
        start_time: `time.monotonic()` value taken when the encode started. Used for the ETA.
        now: Current `time.monotonic()` value, for tests.

    Returns:
        A `Progress`, or None when the line is not a progress line.
    """
    if "frame=" not in line:
        return None

    time_match = _TIME_RE.search(line)
    if not time_match:
        return None

    frame_match = _FRAME_RE.search(line)
    fps_match = _FPS_RE.search(line)
    bitrate_match = _BITRATE_RE.search(line)
    speed_match = _SPEED_RE.search(line)

    current_time = parse_time(time_match.group(1))
    percentage = min(100.0, current_time / total_duration * 100) if total_duration > 0 else 0.0

    eta = None
    if start_time is not None and total_duration > 0 and 0 < percentage < 100:
        elapsed = (now if now is not None else time.monotonic()) - start_time
        estimated_total = elapsed / (percentage / 100)
        eta = format_eta(estimated_total - elapsed)

    return Progress(
        frame=int(frame_match.group(1)) if frame_match else 0,
        fps=float(fps_match.group(1)) if fps_match else 0.0,
        time=time_match.group(1),
        time_seconds=current_time,
        bitrate=bitrate_match.group(1) if bitrate_match else "N/A",
        speed=speed_match.group(1) if speed_match else "N/A",
        percentage=round(percentage, 2),
        eta=eta,
    )


def categorize_log(line: str) -> LogType:
    """Assigns an encoder output line to a display category by keyword."""
    lower = line.lower()

    if "error" in lower or "failed" in lower or "invalid" in lower:
        return LogType.ERROR
    if "warning" in lower or "deprecated" in lower or ("not found" in lower and "glyph" not in lower):
        return LogType.WARNING
    if "completed" in lower or "success" in lower or "done" in lower:
        return LogType.SUCCESS
    if any(word in lower for word in ("stream", "duration", "encoder", "bitrate", "video:", "audio:")):
        return LogType.METADATA
    if "libav" in lower or "configuration:" in lower:
        return LogType.DEBUG
    return LogType.INFO

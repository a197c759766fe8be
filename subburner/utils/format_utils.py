"""
This module contains helper functions for formatting data into human-readable strings
and for reading the few human-written values the encoder settings carry, such as
"2400k" style bitrates.
"""

import math
import re
from datetime import timedelta
from pathlib import Path
from typing import List


def format_timedelta(td_object: timedelta) -> str:
    """
    Formats a timedelta object into a "HH:MM:SS" string.

    Args:
        td_object: The timedelta object to format.

    Returns:
        A string representing the timedelta in HH:MM:SS format.
        For example, a timedelta of 7261 seconds becomes "02:01:01".
        Returns "00:00:00" if the input is not a valid timedelta object.
    """
    if not isinstance(td_object, timedelta):
        return "00:00:00"

    total_seconds = int(td_object.total_seconds())
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02}:{minutes:02}:{seconds:02}"


def formatted_size(size_bytes: int) -> str:
    """
    Converts a size in bytes to a human-readable string (e.g., B, KB, MB, GB, TB).

    Args:
        size_bytes: The size in bytes.

    Returns:
        A formatted string with the appropriate unit.
        For example, 1536 becomes "1.50 KB", and 2097152 becomes "2 MB".
    """
    if size_bytes < 0:
        size_bytes = 0

    units = ["B", "KB", "MB", "GB", "TB", "PB"]
    factor = 1024.0

    if size_bytes == 0:
        return "0 B"

    for unit in units:
        if size_bytes < factor:
            if unit == "B":
                return f"{size_bytes} {unit}"
            else:
                return f"{size_bytes:.2f} {unit}".replace(".00", "")
        size_bytes /= factor

    return f"{size_bytes:.2f} {units[-1]}".replace(".00", "")


def format_eta(seconds: float) -> str:
    """
    Formats a remaining time in seconds as "2h 30m 15s", "4m 2s" or "9s".

    Negative or non-finite values (no rate known yet) give "Calculating...".
    """
    if seconds < 0 or not math.isfinite(seconds):
        return "Calculating..."

    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


_BITRATE_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*([kKmM])?$")


def parse_bitrate(bitrate_str: str, default: int) -> int:
    """
    Converts an FFmpeg style bitrate ("2400k", "6M", "800000") to bits per second.

    Args:
        bitrate_str: The bitrate string.
        default: Value returned when the string cannot be parsed.
    """
    match = _BITRATE_RE.match((bitrate_str or "").strip())
    if not match:
        return default

    value = float(match.group(1))
    unit = (match.group(2) or "").lower()
    if unit == "k":
        return int(value * 1000)
    if unit == "m":
        return int(value * 1_000_000)
    return int(value)


def contains_any_extensions(file_path_obj: Path, extensions_to_check: List[str]) -> bool:
    """
    Checks if a file's extension is present in a given list (case-insensitive).

    Args:
        file_path_obj: A `pathlib.Path` object for the file to check.
        extensions_to_check: A list of file extensions, with or without the leading dot.

    Returns:
        True if the file's extension is in the list, False otherwise.
    """
    if not extensions_to_check:
        return False

    file_extension = file_path_obj.suffix.lower()
    normalized_extensions = {
        ext.lower() if ext.startswith(".") else f".{ext.lower()}"
        for ext in extensions_to_check
    }
    return file_extension in normalized_extensions

"""
This module provides utility functions related to FFmpeg.

It builds the deterministic argument list of a subtitle burn, escapes paths for
the `subtitles` filter, rejects paths FFmpeg cannot be trusted with, locates the
executables, and includes a robust wrapper for running short-lived commands.
"""

import os
import re
import shlex
import subprocess
import sys
from pathlib import Path
from typing import List, Optional, Tuple, Union

from loguru import logger

from ..config.common import MAX_PATH_LENGTH, MODULE_PATH
from ..config.encoding import (
    HARDWARE_ENCODERS,
    SOFTWARE_ENCODER,
    SOFTWARE_PRESET,
    SOFTWARE_TUNE,
)
from ..domain.models import EncodingSettings

_INVISIBLE_UNICODE_RE = re.compile("[\u200b-\u200f\u2028-\u202f\ufeff]")


def find_executable(name: str) -> str:
    """
    Determines the executable to call for `name` ("ffmpeg" or "ffprobe").

    The configured `ffmpeg_dir` wins when it holds the tool; otherwise the bare
    name is returned and resolved through the system PATH.
    """
    exe_name = f"{name}.exe" if sys.platform == "win32" else name
    if MODULE_PATH and MODULE_PATH.is_dir():
        configured = MODULE_PATH / exe_name
        if configured.is_file():
            return str(configured)
        logger.warning(f"`ffmpeg_dir` is configured, but '{exe_name}' was not found there. Falling back to system PATH.")
    return name


def escape_subtitle_path(file_path: Union[str, Path]) -> str:
    """
    Escapes a file path for FFmpeg's `subtitles` filter.

    The path goes through the filter graph parser and then libass, so a Windows
    backslash has to be written four times. Drive colons, quotes and the filter
    graph separators are backslash-escaped. `/videos/a:b.ass` becomes
    `/videos/a\\:b.ass`.
    """
    escaped = str(file_path).replace("\\", "\\\\\\\\")
    for char in (":", "'", "[", "]", ";", ",", "="):
        escaped = escaped.replace(char, "\\" + char)
    return escaped


def validate_path_for_ffmpeg(file_path: Union[str, Path]) -> Optional[str]:
    """
    Checks that a path can be placed on an FFmpeg command line safely.

    Returns:
        None when the path is acceptable, otherwise a message describing the problem.
    """
    path_str = str(file_path)
    if "\n" in path_str or "\r" in path_str:
        return "Path contains newline characters"
    if "\0" in path_str:
        return "Path contains null bytes"
    if len(path_str) > MAX_PATH_LENGTH:
        return "Path exceeds maximum length"
    if _INVISIBLE_UNICODE_RE.search(path_str):
        return "Path contains invisible Unicode characters"
    return None


def build_encoder_args(settings: EncodingSettings) -> List[str]:
    """
    Video encoder arguments for the given settings.

    GPU encodes use the hardware H.264 encoder with rate control taken from the
    quality mode; constant-quality modes run with `-b:v 0`. Software encodes
    always use a fixed-bitrate libx264.
    """
    args: List[str] = []

    if settings.gpu_encode:
        hw_encoder = "nvenc" if settings.hw_encoder == "auto" else settings.hw_encoder
        args += ["-c:v", HARDWARE_ENCODERS[hw_encoder]]

        rc = settings.quality_mode
        args += ["-rc:v", rc]
        if rc in ("cq", "vbr_hq"):
            args += ["-cq:v", str(settings.cq)]
        args += ["-preset", settings.preset, "-tune", "hq"]
        if settings.spatial_aq:
            args += ["-spatial_aq", "1"]
        if settings.temporal_aq:
            args += ["-temporal_aq", "1"]
        args += ["-rc-lookahead", str(settings.rc_lookahead)]
        if rc in ("cq", "vbr_hq"):
            args += ["-b:v", "0"]
        else:
            args += ["-b:v", settings.bitrate]
    else:
        args += [
            "-c:v", SOFTWARE_ENCODER,
            "-b:v", settings.bitrate,
            "-preset", SOFTWARE_PRESET,
            "-tune", SOFTWARE_TUNE,
        ]

    return args


def build_burn_command(
    ffmpeg_path: str,
    video_path: Path,
    subtitle_path: Path,
    output_path: Path,
    settings: EncodingSettings,
) -> List[str]:
    """
    The full FFmpeg command burning `subtitle_path` into `video_path`.

    The result depends only on its arguments. Audio is copied untouched and the
    output is always overwritten (`-y`): conflicts are settled before dispatch.
    """
    filters: List[str] = []
    if settings.scale_width and settings.scale_height:
        filters.append(f"scale={settings.scale_width}:{settings.scale_height}")
    filters.append(f"subtitles='{escape_subtitle_path(subtitle_path)}'")
    if settings.gpu_encode:
        filters.append("format=yuv420p")

    cmd = [ffmpeg_path, "-hide_banner", "-i", str(video_path), "-vf", ",".join(filters)]
    cmd += build_encoder_args(settings)
    cmd += ["-c:a", "copy"]
    if output_path.suffix.lower() == ".mp4":
        cmd += ["-movflags", "+faststart"]
    cmd += ["-y", str(output_path)]
    return cmd


def display_command(cmd_list: List[str]) -> str:
    """Quotes and joins a command for logging, the way the current platform would."""
    if os.name == "nt":
        return subprocess.list2cmdline(cmd_list)
    return shlex.join(cmd_list)


def run_cmd(
    cmd_parts: Union[str, List[str]],
    show_cmd: bool = False,
    timeout: Optional[float] = None,
) -> Optional[subprocess.CompletedProcess]:
    """
    Executes a short external command and captures its output.

    This is a wrapper around `subprocess.run` that adds logging and never raises
    for the usual failure modes. It is meant for quick helper invocations
    (version checks, encoder listings), not for the long-running burn itself.

    Args:
        cmd_parts: The command as a list of arguments, or a single string which is
                   split with shlex.
        show_cmd: If True, the command is logged at DEBUG level before execution.
        timeout: Seconds before the command is abandoned.

    Returns:
        The `subprocess.CompletedProcess` (whatever the return code), or None if
        the command could not be started or timed out.
    """
    if isinstance(cmd_parts, str):
        try:
            cmd_list = shlex.split(cmd_parts)
        except ValueError as e:
            logger.error(f"Error splitting command string with shlex: '{cmd_parts}'. Error: {e}")
            return None
    else:
        cmd_list = list(cmd_parts)

    if not cmd_list:
        logger.error("run_cmd received an empty command list.")
        return None

    if show_cmd:
        logger.debug(f"Executing: {display_command(cmd_list)}")

    try:
        result = subprocess.run(
            cmd_list,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            shell=False,
            timeout=timeout,
        )
    except FileNotFoundError:
        logger.error(f"Command not found: {cmd_list[0]}")
        return None
    except subprocess.TimeoutExpired:
        logger.error(f"Command timed out after {timeout}s: {display_command(cmd_list)}")
        return None
    except OSError as e:
        logger.error(f"Could not execute {cmd_list[0]}: {e}")
        return None

    if result.returncode != 0:
        logger.debug(f"Command exited with code {result.returncode}: {display_command(cmd_list)}")
    return result


def detect_gpu_encoder(ffmpeg_path: Optional[str] = None) -> Tuple[bool, str]:
    """
    Checks which hardware H.264 encoders the FFmpeg build offers.

    Returns:
        (available, description) where description names the detected encoder
        family or explains why none was found.
    """
    result = run_cmd([ffmpeg_path or find_executable("ffmpeg"), "-hide_banner", "-encoders"], timeout=3)
    if result is None:
        return False, "Error checking GPU"

    output = (result.stdout or "") + (result.stderr or "")
    if "h264_nvenc" in output:
        return True, "NVIDIA NVENC detected"
    if "h264_qsv" in output:
        return True, "Intel Quick Sync detected"
    if "h264_amf" in output:
        return True, "AMD AMF detected"
    return False, "No hardware encoder detected"

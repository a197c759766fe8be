"""
Command-Line Interface (CLI) setup for the subtitle burner.

This module uses Python's `argparse` to define and parse the command-line
arguments that control what gets queued and how it is encoded.
"""
import argparse
from typing import List, Optional

from .config.encoding import PRESETS, QUALITY_MODES
from .domain.models import ConflictStrategy


def get_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parses command-line arguments for the subtitle burner.

    Encoding flags left out fall back to the defaults from `config.encoding`
    (and `config.user.yaml`).

    Args:
        argv: Arguments to parse instead of `sys.argv[1:]`.

    Returns:
        argparse.Namespace: The parsed arguments.
    """
    parser = argparse.ArgumentParser(description="Burn subtitles into videos with FFmpeg, one file at a time.")
    parser.add_argument(
        "inputs", nargs="*", default=["."],
        help="Video/subtitle files or directories. Videos are paired with subtitles by name.",
    )
    parser.add_argument(
        "--recursive", action="store_true", help="Scan input directories recursively."
    )
    parser.add_argument(
        "--output-dir", type=str, default=None, help="Write all outputs to this directory."
    )
    parser.add_argument(
        "--subfolder", action="store_true",
        help="Write each output to a 'burned' subfolder next to its video (ignored with --output-dir).",
    )
    parser.add_argument(
        "--suffix", type=str, default="", help="Text appended to output file names, e.g. 'subbed'."
    )
    parser.add_argument(
        "--bitrate", type=str, default=None, help="Target video bitrate, e.g. 2400k or 6M."
    )
    parser.add_argument(
        "--quality-mode", type=str, default=None, choices=QUALITY_MODES,
        help="Rate control mode for GPU encodes.",
    )
    parser.add_argument(
        "--cq", type=int, default=None, help="Constant quality value for cq / vbr_hq modes."
    )
    parser.add_argument(
        "--preset", type=str, default=None, choices=PRESETS, help="Hardware encoder preset."
    )
    parser.add_argument(
        "--gpu", action="store_true", help="Encode with the hardware H.264 encoder."
    )
    parser.add_argument(
        "--on-conflict", type=str, default=ConflictStrategy.AUTO_RENAME.value,
        choices=[strategy.value for strategy in ConflictStrategy],
        help="What to do when an output file already exists.",
    )
    parser.add_argument(
        "--ignore-disk-space", action="store_true",
        help="Start even when the destination seems to lack free space.",
    )
    parser.add_argument(
        "--log-level", type=str, default="INFO", choices=["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set the logging level. TRACE also prints every encoder line.",
    )
    parser.add_argument(
        "--log-dir", type=str, default=None,
        help="Directory for the success (YAML) and error (text) run logs. Defaults to the current directory.",
    )
    parser.add_argument(
        "--dated-log", action="store_true",
        help="Write the success log to a new dated file (burn_log_YYYYMMDD_<random>.yaml) for this run.",
    )
    parser.add_argument(
        "--check-gpu", action="store_true", help="Report hardware encoder availability and exit."
    )

    args = parser.parse_args(argv)

    if args.cq is not None and not 0 <= args.cq <= 51:
        parser.error(f"--cq must be between 0 and 51, got {args.cq}")

    return args

"""
Path helpers: output naming, rename candidates, and discovery of video/subtitle pairs.
"""

import re
from pathlib import Path
from typing import Iterable, List, NamedTuple, Optional, Tuple

from loguru import logger

from ..config.encoding import (
    OUTPUT_EXTENSION,
    OUTPUT_SUBFOLDER_NAME,
    SUBTITLE_EXTENSIONS,
    VIDEO_EXTENSIONS,
)
from .format_utils import contains_any_extensions


def sanitize_file_name(name: str) -> str:
    name = re.sub(r'[<>:"/\\|?*]', "", name)
    name = re.sub(r"[\x00-\x1f\x7f]", "", name)
    name = re.sub(r"\s+", " ", name).strip(" .")
    return name[:200] or "output"


def rename_candidate(path: Path, n: int) -> Path:
    """`movie.mp4` -> `movie (n).mp4` in the same directory."""
    return path.with_name(f"{path.stem} ({n}){path.suffix}")


def default_output_path(
    video_path: Path,
    suffix: str = "",
    output_dir: Optional[Path] = None,
    use_subfolder: bool = False,
) -> Path:
    """
    Where the burned copy of `video_path` goes when the caller does not say.

    Args:
        video_path: Source video.
        suffix: Text appended to the stem after a space, e.g. "subbed".
        output_dir: Explicit destination directory. Wins over `use_subfolder`.
        use_subfolder: Put the output in a subfolder next to the source.

    Returns:
        An absolute path ending in the output extension. Nothing is created on disk.
    """
    video_path = video_path.resolve()
    if output_dir:
        target_dir = output_dir.resolve()
    elif use_subfolder:
        target_dir = video_path.parent / OUTPUT_SUBFOLDER_NAME
    else:
        target_dir = video_path.parent

    suffix = suffix.strip()
    stem = video_path.stem + (f" {suffix}" if suffix else "")
    return target_dir / f"{sanitize_file_name(stem)}{OUTPUT_EXTENSION}"


class FilePair(NamedTuple):
    video: Path
    subtitle: Path


def discover_files(inputs: Iterable[Path], recursive: bool = False) -> Tuple[List[Path], List[Path]]:
    """
    Splits the given files and directories into videos and subtitles.

    Directories are scanned (recursively when asked); other file types are ignored.
    Both lists come back sorted and de-duplicated.
    """
    videos, subtitles = set(), set()

    def _classify(path: Path):
        if contains_any_extensions(path, list(VIDEO_EXTENSIONS)):
            videos.add(path.resolve())
        elif contains_any_extensions(path, list(SUBTITLE_EXTENSIONS)):
            subtitles.add(path.resolve())
        else:
            logger.trace(f"Ignoring unsupported file: {path}")

    for input_path in inputs:
        if input_path.is_dir():
            pattern = "**/*" if recursive else "*"
            for child in input_path.glob(pattern):
                if child.is_file():
                    _classify(child)
        elif input_path.is_file():
            _classify(input_path)
        else:
            logger.warning(f"Input does not exist: {input_path}")

    return sorted(videos), sorted(subtitles)


def auto_pair_files(videos: List[Path], subtitles: List[Path]) -> Tuple[List[FilePair], List[Path]]:
    """
    Pairs each video with a subtitle by base name.

    A subtitle matches when its stem equals the video stem, is contained in it
    (`show_1080p.mkv` + `show.ass`), or contains it (`show.mkv` + `show_eng.ass`),
    compared case-insensitively. Each subtitle is used at most once; videos are
    matched in the order given.

    Returns:
        (pairs, unpaired videos)
    """
    pairs: List[FilePair] = []
    unpaired: List[Path] = []
    used: set = set()

    for video in videos:
        video_base = video.stem.lower()
        match = None
        for subtitle in subtitles:
            if subtitle in used:
                continue
            sub_base = subtitle.stem.lower()
            if video_base == sub_base or sub_base in video_base or video_base in sub_base:
                match = subtitle
                break

        if match:
            pairs.append(FilePair(video, match))
            used.add(match)
        else:
            unpaired.append(video)

    return pairs, unpaired

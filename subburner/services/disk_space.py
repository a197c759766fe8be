"""
Disk space estimation for prospective burn outputs.

The estimate is advisory. It exists so a batch does not run for an hour and then
die on a full disk, not to give a hard bound: constant-quality output sizes are
only guessed from the source bitrate.
"""

import os
import shutil
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from loguru import logger

from ..config.common import DISK_SPACE_SAFETY_MARGIN
from ..config.encoding import (
    CQ_BITRATE_FLOOR,
    CQ_BITRATE_TABLE,
    CQ_SOURCE_MULTIPLIER_FLOOR,
    CQ_SOURCE_MULTIPLIERS,
    FALLBACK_BITRATE_BPS,
)
from ..domain.media import probe_bitrate
from ..domain.models import DiskSpaceReport, EncodingSettings
from ..utils.format_utils import formatted_size, parse_bitrate


def _lookup(table, value, floor):
    for upper_bound, result in table:
        if value <= upper_bound:
            return result
    return floor


def nearest_existing_dir(path: Path) -> Path:
    """The closest existing ancestor of `path`, so a not-yet-created output dir can be measured."""
    candidate = path
    while not candidate.exists():
        if candidate.parent == candidate:
            break
        candidate = candidate.parent
    return candidate


def volume_label(path: Path) -> str:
    """Drive letter on Windows ("D:"), mount point elsewhere."""
    drive, _ = os.path.splitdrive(str(path))
    if drive:
        return drive.upper()
    candidate = path
    while not os.path.ismount(candidate) and candidate.parent != candidate:
        candidate = candidate.parent
    return str(candidate)


@dataclass
class SpaceRequest:
    """One prospective output, as handed to `DiskSpaceEstimator.estimate_batch`."""

    output_path: Path
    duration_seconds: float
    settings: EncodingSettings
    video_path: Optional[Path] = None


class DiskSpaceEstimator:
    """
    Computes required and available bytes for outputs.

    Args:
        space_query: Returns (total, used, free) for a directory, like `shutil.disk_usage`.
        bitrate_probe: Returns the overall bitrate of a source video in bps, or None.
        safety_margin: Multiplier (> 1) applied to the requirement before comparing.
    """

    def __init__(
        self,
        space_query: Callable = shutil.disk_usage,
        bitrate_probe: Callable[[Path], Optional[int]] = probe_bitrate,
        safety_margin: float = DISK_SPACE_SAFETY_MARGIN,
    ):
        if safety_margin <= 1.0:
            raise ValueError("safety_margin must be greater than 1.0")
        self.space_query = space_query
        self.bitrate_probe = bitrate_probe
        self.safety_margin = safety_margin

    def estimate_required(
        self,
        duration_seconds: float,
        settings: EncodingSettings,
        video_path: Optional[Path] = None,
    ) -> int:
        """
        Estimated output size in bytes.

        Bitrate-based modes give duration x target bitrate / 8. Constant-quality
        modes scale the source bitrate by a factor chosen from the CQ value; when
        the source cannot be probed a typical 1080p bitrate for that CQ is used.
        A missing source file or unknown duration gives 0.
        """
        if video_path is not None and not video_path.is_file():
            logger.debug(f"Source {video_path} not found; size estimate skipped.")
            return 0
        if not duration_seconds or duration_seconds <= 0:
            return 0

        if settings.is_bitrate_based:
            bitrate_bps = parse_bitrate(settings.bitrate, FALLBACK_BITRATE_BPS)
        else:
            source_bps = self.bitrate_probe(video_path) if video_path is not None else None
            if source_bps:
                bitrate_bps = source_bps * _lookup(CQ_SOURCE_MULTIPLIERS, settings.cq, CQ_SOURCE_MULTIPLIER_FLOOR)
            else:
                bitrate_bps = _lookup(CQ_BITRATE_TABLE, settings.cq, CQ_BITRATE_FLOOR)

        return int(duration_seconds * bitrate_bps / 8)

    def _measure(self, directory: Path):
        """Returns (label, total, available, volume key) for the volume holding `directory`."""
        existing = nearest_existing_dir(directory)
        usage = self.space_query(str(existing))
        try:
            key = os.stat(existing).st_dev
        except OSError:
            key = str(existing)
        return volume_label(existing), int(usage.total), int(usage.free), key

    def _report(self, label: str, total: int, available: int, required: int) -> DiskSpaceReport:
        sufficient = available >= required * self.safety_margin
        return DiskSpaceReport(
            available=available,
            total=total,
            required=required,
            sufficient=sufficient,
            volume_label=label,
        )

    def estimate(
        self,
        output_path: Path,
        duration_seconds: float,
        settings: EncodingSettings,
        video_path: Optional[Path] = None,
    ) -> DiskSpaceReport:
        """Space report for a single output. Never raises for a missing source."""
        required = self.estimate_required(duration_seconds, settings, video_path)
        try:
            label, total, available, _ = self._measure(output_path.parent)
        except OSError as e:
            logger.warning(f"Disk space query failed for {output_path.parent}: {e}")
            return DiskSpaceReport(available=0, total=0, required=required, sufficient=True, volume_label="?")

        report = self._report(label, total, available, required)
        logger.debug(
            f"Disk space for {output_path.name} on {label}: "
            f"{formatted_size(available)} available, {formatted_size(required)} required"
        )
        return report

    def estimate_batch(self, requests: Iterable[SpaceRequest]) -> List[DiskSpaceReport]:
        """
        One report per destination volume, requirements summed across the batch.

        Volumes whose free space cannot be queried are reported as sufficient.
        """
        volumes: Dict[object, dict] = OrderedDict()
        for request in requests:
            required = self.estimate_required(request.duration_seconds, request.settings, request.video_path)
            try:
                label, total, available, key = self._measure(request.output_path.parent)
            except OSError as e:
                logger.warning(f"Disk space query failed for {request.output_path.parent}: {e}")
                continue
            volume = volumes.setdefault(key, {"label": label, "total": total, "available": available, "required": 0})
            volume["required"] += required

        reports = [
            self._report(v["label"], v["total"], v["available"], v["required"])
            for v in volumes.values()
        ]
        for report in reports:
            logger.debug(
                f"Batch needs {report.required_formatted} on {report.volume_label}, "
                f"{report.available_formatted} available (sufficient={report.sufficient})"
            )
        return reports

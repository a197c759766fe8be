"""
Pre-dispatch checks for a batch of queue items.

Conflicts are checked before disk space: resolving a conflict can move an output
to another path, which changes the space calculation.
"""

from pathlib import Path
from typing import Callable, List, Optional

from loguru import logger

from ..domain.exceptions import MediaFileException
from ..domain.media import probe_duration
from ..domain.models import (
    AdmissionResult,
    Clear,
    ConflictsFound,
    EncodingSettings,
    InsufficientSpace,
    QueueItem,
)
from .conflict_resolver import ConflictResolver
from .disk_space import DiskSpaceEstimator, SpaceRequest


class AdmissionController:
    """
    Decides whether a batch may start.

    Args:
        resolver: Conflict detection.
        estimator: Disk space estimation.
        duration_probe: Source duration in seconds; failures count as 0 (no space needed).
    """

    def __init__(
        self,
        resolver: Optional[ConflictResolver] = None,
        estimator: Optional[DiskSpaceEstimator] = None,
        duration_probe: Callable[[Path], float] = probe_duration,
    ):
        self.resolver = resolver or ConflictResolver()
        self.estimator = estimator or DiskSpaceEstimator()
        self.duration_probe = duration_probe

    def _duration(self, item: QueueItem) -> float:
        try:
            return float(self.duration_probe(item.video_path) or 0.0)
        except (FileNotFoundError, MediaFileException) as e:
            logger.debug(f"Duration unknown for {item.video_name}, not counted for disk space: {e}")
            return 0.0

    def admit(
        self,
        items: List[QueueItem],
        settings: EncodingSettings,
        override_space: bool = False,
        skip_conflicts: bool = False,
    ) -> AdmissionResult:
        """
        Checks `items` against the disk as it is now.

        Args:
            items: Candidate items, normally every pending item of the queue.
            settings: Settings the items would be encoded with.
            override_space: Proceed even when space is short. The shortfall is
                still computed and logged.
            skip_conflicts: The caller already accepted that existing outputs will
                be replaced; only disk space is checked.

        Returns:
            `ConflictsFound`, `InsufficientSpace` or `Clear`.
        """
        if not items:
            return Clear()

        conflicts = [] if skip_conflicts else self.resolver.detect(items)
        if conflicts:
            logger.warning(f"Admission blocked: {len(conflicts)} output file(s) already exist.")
            return ConflictsFound(conflicts=tuple(conflicts))

        requests = [
            SpaceRequest(
                output_path=item.output_path,
                duration_seconds=self._duration(item),
                settings=item.settings_snapshot or settings,
                video_path=item.video_path,
            )
            for item in items
        ]
        reports = self.estimator.estimate_batch(requests)
        short = [report for report in reports if not report.sufficient]
        if short:
            first = short[0]
            message = (
                f"Insufficient disk space on {first.volume_label}: "
                f"{first.available_formatted} available, {first.required_formatted} required"
            )
            if not override_space:
                logger.warning(f"Admission blocked: {message}")
                return InsufficientSpace(report=first, reports=tuple(reports))
            logger.warning(f"{message}. Proceeding on explicit override.")

        logger.debug(f"Admission clear for {len(items)} item(s).")
        return Clear()

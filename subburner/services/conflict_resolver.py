"""
Output path conflict detection and resolution.

A conflict is an output path that already exists on disk. The resolver reports
them and, on request, moves conflicting items to free `name (n).ext` paths.
It never touches the filesystem beyond existence checks.
"""

from dataclasses import replace
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Set

from loguru import logger

from ..domain.models import ConflictReport, ConflictStrategy, QueueItem
from ..utils.paths import rename_candidate


def _path_key(path: Path) -> str:
    return str(path).casefold()


class ConflictResolver:
    """
    Args:
        exists: File-existence check, `Path.exists` by default.
        candidate: Builds the n-th rename candidate for a path.
    """

    def __init__(
        self,
        exists: Callable[[Path], bool] = Path.exists,
        candidate: Callable[[Path, int], Path] = rename_candidate,
    ):
        self.exists = exists
        self.candidate = candidate

    def detect_one(self, item: QueueItem) -> Optional[ConflictReport]:
        if self.exists(item.output_path):
            return ConflictReport(item_id=item.id, existing_path=item.output_path)
        return None

    def detect(self, items: Iterable[QueueItem]) -> List[ConflictReport]:
        """Reports every item whose output path exists on disk right now."""
        conflicts = [report for report in map(self.detect_one, items) if report]
        if conflicts:
            logger.debug(f"{len(conflicts)} output conflict(s): {[str(c.existing_path) for c in conflicts]}")
        return conflicts

    def free_path(self, path: Path, reserved: Set[str]) -> Path:
        """
        The first `stem (n)ext` path, n = 1, 2, ..., that neither exists on disk
        nor is already claimed in `reserved`.
        """
        n = 1
        while True:
            candidate = self.candidate(path, n)
            if _path_key(candidate) not in reserved and not self.exists(candidate):
                return candidate
            n += 1

    def resolve(self, items: List[QueueItem], strategy: ConflictStrategy) -> List[QueueItem]:
        """
        Applies `strategy` to a batch and returns the items with their resolved paths.

        `auto_rename` moves every item whose target exists on disk, or was already
        claimed by an earlier item of the same batch, to a free rename candidate.
        `overwrite` and `cancel` return the items unchanged; with `overwrite` the
        existing files are replaced when the encoder writes its output.
        Returned items are copies; the input list is not modified.
        """
        strategy = ConflictStrategy(strategy)
        if strategy is not ConflictStrategy.AUTO_RENAME:
            return [replace(item) for item in items]

        reserved: Set[str] = set()
        resolved: List[QueueItem] = []
        for item in items:
            target = item.output_path
            if _path_key(target) in reserved or self.exists(target):
                target = self.free_path(item.output_path, reserved)
                logger.info(f"Output for {item.video_name} renamed: {item.output_path.name} -> {target.name}")
            reserved.add(_path_key(target))
            resolved.append(replace(item, output_path=target))
        return resolved

"""
The command-line batch run.

`BatchBurnPipeline` turns the parsed arguments into a queue: it pairs videos
with subtitles, queues every pair, starts the queue through admission (settling
output conflicts with `--on-conflict`) and blocks until the run ends. Queue
events are logged with loguru and written to the success and error run logs.
"""

import argparse
from pathlib import Path
from typing import List, Optional

from loguru import logger

from ..domain.exceptions import ValidationError
from ..domain.models import (
    Aborted,
    AdmissionResult,
    ConflictsFound,
    ConflictStrategy,
    EncodingSettings,
    InsufficientSpace,
    QueueEvent,
    QueueEventKind,
    QueueStats,
)
from ..services.logging_service import ErrorLog, SuccessLog
from ..services.queue_manager import QueueManager
from ..utils.format_utils import format_eta
from ..utils.paths import FilePair, auto_pair_files, default_output_path, discover_files


class BatchBurnPipeline:
    """
    Headless driver of one burn queue.

    Discovers video/subtitle pairs from the command line inputs, queues them,
    starts the queue through admission and waits until it is done. Queue events
    are mirrored to loguru and to the success / error run reports.
    """

    def __init__(self, args: argparse.Namespace, manager: Optional[QueueManager] = None):
        self.args = args
        self.output_dir: Optional[Path] = Path(args.output_dir).resolve() if args.output_dir else None
        self.log_dir: Path = Path(args.log_dir).resolve() if args.log_dir else Path.cwd().resolve()
        self.manager = manager or QueueManager(settings=self.build_settings(args), output_suffix=args.suffix or "")
        self.success_log = SuccessLog(self.log_dir, use_dated_filename=args.dated_log)
        self.error_log = ErrorLog(self.log_dir)
        self._last_percent: dict = {}
        self._unsubscribe = self.manager.subscribe(self.on_event)

    @staticmethod
    def build_settings(args: argparse.Namespace) -> EncodingSettings:
        overrides = {
            "bitrate": args.bitrate,
            "quality_mode": args.quality_mode,
            "cq": args.cq,
            "preset": args.preset,
            "gpu_encode": True if args.gpu else None,
        }
        return EncodingSettings().merged({k: v for k, v in overrides.items() if v is not None})

    # --- Discovery ---

    def collect_pairs(self) -> List[FilePair]:
        inputs = [Path(p) for p in self.args.inputs]
        videos, subtitles = discover_files(inputs, recursive=self.args.recursive)
        logger.info(f"Found {len(videos)} video(s) and {len(subtitles)} subtitle file(s).")
        pairs, unpaired = auto_pair_files(videos, subtitles)
        for video in unpaired:
            logger.warning(f"No subtitle found for {video.name}; skipped.")
        return pairs

    def enqueue(self, pairs: List[FilePair]) -> List[str]:
        ids = []
        for pair in pairs:
            output = default_output_path(
                pair.video,
                self.args.suffix or "",
                output_dir=self.output_dir,
                use_subfolder=self.args.subfolder,
            )
            try:
                ids.append(self.manager.add(pair.video, pair.subtitle, output))
            except ValidationError as e:
                logger.error(f"Could not queue {pair.video.name}: {e}")
        return ids

    # --- Events ---

    def on_event(self, event: QueueEvent):
        """Queue observer. Runs under the queue lock, so it only logs and appends to files."""
        if event.kind is QueueEventKind.ITEM_PROGRESS:
            progress = event.payload["progress"]
            step = int(progress.percentage // 10)
            if step > self._last_percent.get(event.item_id, -1):
                self._last_percent[event.item_id] = step
                logger.info(
                    f"{progress.percentage:5.1f}% time={progress.time} fps={progress.fps} "
                    f"speed={progress.speed} eta={progress.eta or '-'}"
                )
        elif event.kind is QueueEventKind.ITEM_LOG:
            logger.trace(f"[{event.payload['stream'] or 'runner'}] {event.payload['line']}")
        elif event.kind is QueueEventKind.ITEM_COMPLETED:
            self.success_log.write_item(self.manager.get_item(event.item_id))
        elif event.kind is QueueEventKind.ITEM_ERROR:
            self.error_log.write_item(self.manager.get_item(event.item_id))
        elif event.kind is QueueEventKind.QUEUE_COMPLETED:
            self.log_summary(event.payload["stats"])

    @staticmethod
    def log_summary(stats: QueueStats):
        logger.info(
            f"Burned {stats.completed}/{stats.total}, {stats.error} failed, {stats.cancelled} cancelled "
            f"in {format_eta(stats.elapsed_seconds)}."
        )

    # --- Running ---

    def start(self) -> AdmissionResult:
        """
        Starts the queue. Output conflicts are settled with the `--on-conflict`
        strategy; a disk space shortfall stops the run unless `--ignore-disk-space`.
        """
        strategy = ConflictStrategy(self.args.on_conflict)
        override = self.args.ignore_disk_space

        result = self.manager.start(override_space=override)
        if isinstance(result, ConflictsFound):
            for conflict in result.conflicts:
                logger.warning(f"Output already exists: {conflict.existing_path}")
            logger.info(f"Resolving {len(result.conflicts)} conflict(s) with strategy '{strategy.value}'.")
            result = self.manager.start(conflict_strategy=strategy, override_space=override)

        if isinstance(result, InsufficientSpace):
            for report in result.reports:
                if not report.sufficient:
                    logger.error(
                        f"Not enough space on {report.volume_label}: {report.required_formatted} needed "
                        f"(plus margin), {report.available_formatted} available. "
                        f"Use --ignore-disk-space to start anyway."
                    )
        elif isinstance(result, Aborted):
            logger.warning(f"Run aborted: {result.reason}")
        return result

    def run(self) -> bool:
        """
        Queues every pair found in the inputs and burns them.

        Returns:
            True when the queue ran and no item failed.
        """
        pairs = self.collect_pairs()
        if not pairs:
            logger.warning("Nothing to burn: no video/subtitle pairs found.")
            return False
        if not self.enqueue(pairs):
            return False

        result = self.start()
        if not result.is_clear:
            return False

        try:
            while not self.manager.wait_until_idle(timeout=1.0):
                pass
        except KeyboardInterrupt:
            logger.warning("Interrupted; cancelling the queue.")
            self.manager.cancel_all()
        finally:
            self._unsubscribe()

        stats = self.manager.get_stats()
        return stats.error == 0 and stats.cancelled == 0

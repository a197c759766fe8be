"""
The encoding queue.

`QueueManager` owns the ordered list of `QueueItem`s, runs admission before a
batch starts, hands one item at a time to a process runner and advances on every
terminal outcome. Observers subscribe to `QueueEvent`s.

Every public method and every runner event handler runs under one re-entrant
lock, so admission, conflict re-checks and dispatch form a single critical
section and at most one item is ever `processing`. Observers are called while
that lock is held: they see events in state-change order and must not block.
"""

import threading
from datetime import datetime
from functools import partial
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from loguru import logger

from ..config.common import (
    ITEM_STATUS_CANCELLED,
    ITEM_STATUS_COMPLETED,
    ITEM_STATUS_ERROR,
    ITEM_STATUS_PAUSED,
    ITEM_STATUS_PENDING,
    ITEM_STATUS_PROCESSING,
    TERMINAL_ITEM_STATUSES,
)
from ..domain.exceptions import InvariantViolation, ItemNotFoundError, ValidationError
from ..domain.models import (
    AdmissionResult,
    Aborted,
    ConflictStrategy,
    EncodingSettings,
    LogLine,
    LogType,
    QueueEvent,
    QueueEventKind,
    QueueItem,
    QueueStats,
    RunnerEvent,
    RunnerEventKind,
)
from ..utils.ffmpeg_utils import validate_path_for_ffmpeg
from ..utils.paths import default_output_path
from .admission import AdmissionController
from .process_runner import ProcessRunner, RunnerListener

QueueListener = Callable[[QueueEvent], None]
# (item copy, settings snapshot, listener) -> started runner exposing cancel()
RunnerFactory = Callable[[QueueItem, EncodingSettings, RunnerListener], object]

PathLike = Union[str, Path]
ItemEntry = Union[Tuple[PathLike, PathLike], Tuple[PathLike, PathLike, Optional[PathLike]], Dict[str, PathLike]]


def _default_runner_factory(item: QueueItem, settings: EncodingSettings, listener: RunnerListener):
    return ProcessRunner.run(item, settings, listener)


class QueueManager:
    """
    Args:
        settings: Initial global encoding settings.
        admission: Pre-dispatch checks; a default controller is built when omitted.
        runner_factory: Starts the encode of one item and returns a handle with
            `cancel()`. The handle reports back through the listener it is given.
        output_suffix: Suffix used for default output names when `add` gets no output path.
    """

    def __init__(
        self,
        settings: Optional[EncodingSettings] = None,
        admission: Optional[AdmissionController] = None,
        runner_factory: RunnerFactory = _default_runner_factory,
        output_suffix: str = "",
    ):
        self._lock = threading.RLock()
        self._idle = threading.Condition(self._lock)
        self._items: List[QueueItem] = []
        self._settings = settings or EncodingSettings()
        self._admission = admission or AdmissionController()
        self._runner_factory = runner_factory
        self._output_suffix = output_suffix
        self._listeners: List[QueueListener] = []

        # A paused queue is still running; it only stops dispatching.
        self._running = False
        self._paused = False
        # At most one item is processing; its runner is None until the factory returns.
        self._active_id: Optional[str] = None
        self._active_runner = None
        # Strategy the current run was admitted with, reset when a new run starts.
        self._conflict_strategy: Optional[ConflictStrategy] = None

    # --- Observers ---

    def subscribe(self, listener: QueueListener) -> Callable[[], None]:
        """Registers `listener` for every queue event. Returns a function that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def _emit(self, kind: QueueEventKind, item_id: Optional[str] = None, **payload):
        event = QueueEvent(kind=kind, item_id=item_id, payload=payload)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Queue listener failed on {kind.value}")

    def _emit_snapshot(self):
        self._emit(QueueEventKind.QUEUE_SNAPSHOT_CHANGED, items=[item.snapshot() for item in self._items])

    def _emit_status(self, item: QueueItem):
        self._emit(QueueEventKind.ITEM_STATUS_CHANGED, item.id, status=item.status, item=item.snapshot())

    # --- Lookups ---

    def _find(self, item_id: str) -> QueueItem:
        for item in self._items:
            if item.id == item_id:
                return item
        raise ItemNotFoundError(f"No queue item with id {item_id}")

    def _pending(self) -> List[QueueItem]:
        return [item for item in self._items if item.status == ITEM_STATUS_PENDING]

    def get_all(self) -> List[QueueItem]:
        with self._lock:
            return [item.snapshot() for item in self._items]

    def get_item(self, item_id: str) -> QueueItem:
        with self._lock:
            return self._find(item_id).snapshot()

    @property
    def settings(self) -> EncodingSettings:
        with self._lock:
            return self._settings

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def is_paused(self) -> bool:
        with self._lock:
            return self._paused

    def get_stats(self) -> QueueStats:
        """
        Counts per status plus timing.

        `elapsed_seconds` is the encode time of finished items plus the running
        time of the active one. The remaining estimate multiplies the average
        duration of completed items by the work left; it is None until one item
        has completed.
        """
        with self._lock:
            counts = {status: 0 for status in (
                ITEM_STATUS_PENDING, ITEM_STATUS_PROCESSING, ITEM_STATUS_PAUSED,
                ITEM_STATUS_COMPLETED, ITEM_STATUS_ERROR, ITEM_STATUS_CANCELLED,
            )}
            for item in self._items:
                counts[item.status] = counts.get(item.status, 0) + 1

            now = datetime.now()
            finished_durations = [
                item.encode_seconds for item in self._items
                if item.status in TERMINAL_ITEM_STATUSES and item.encode_seconds is not None
            ]
            completed_durations = [
                item.encode_seconds for item in self._items
                if item.status == ITEM_STATUS_COMPLETED and item.encode_seconds is not None
            ]
            active_elapsed = 0.0
            if self._active_id is not None:
                active = self._find(self._active_id)
                if active.started_at:
                    active_elapsed = (now - active.started_at).total_seconds()

            remaining = None
            if completed_durations:
                average = sum(completed_durations) / len(completed_durations)
                remaining = average * counts[ITEM_STATUS_PENDING]
                if self._active_id is not None:
                    remaining += max(0.0, average - active_elapsed)

            return QueueStats(
                total=len(self._items),
                pending=counts[ITEM_STATUS_PENDING],
                processing=counts[ITEM_STATUS_PROCESSING],
                paused=counts[ITEM_STATUS_PAUSED],
                completed=counts[ITEM_STATUS_COMPLETED],
                error=counts[ITEM_STATUS_ERROR],
                cancelled=counts[ITEM_STATUS_CANCELLED],
                elapsed_seconds=sum(finished_durations) + active_elapsed,
                estimated_remaining_seconds=remaining,
            )

    # --- Mutating commands ---

    def _build_item(self, entry: ItemEntry) -> QueueItem:
        if isinstance(entry, dict):
            video, subtitle, output = entry.get("video_path"), entry.get("subtitle_path"), entry.get("output_path")
        elif len(entry) == 3:
            video, subtitle, output = entry
        elif len(entry) == 2:
            (video, subtitle), output = entry, None
        else:
            raise ValidationError(f"Cannot build a queue item from {entry!r}")
        if not video or not subtitle:
            raise ValidationError("Both a video path and a subtitle path are required.")

        video_path = Path(video).resolve()
        subtitle_path = Path(subtitle).resolve()
        if not video_path.is_file():
            raise ValidationError(f"Video file not found: {video_path}")
        if not subtitle_path.is_file():
            raise ValidationError(f"Subtitle file not found: {subtitle_path}")

        output_path = Path(output).resolve() if output else default_output_path(video_path, self._output_suffix)
        for path in (video_path, subtitle_path, output_path):
            problem = validate_path_for_ffmpeg(path)
            if problem:
                raise ValidationError(f"{problem}: {path!r}")
        return QueueItem(video_path=video_path, subtitle_path=subtitle_path, output_path=output_path)

    def add(self, video_path: PathLike, subtitle_path: PathLike, output_path: Optional[PathLike] = None) -> str:
        """
        Appends one job and returns its id.

        Raises:
            ValidationError: If the video or subtitle does not exist or a path is unsafe.
        """
        return self.add_many([(video_path, subtitle_path, output_path)])[0]

    def add_many(self, entries: Iterable[ItemEntry]) -> List[str]:
        """
        Appends several jobs, all or nothing.

        Each entry is `(video, subtitle)`, `(video, subtitle, output)` or a dict with
        `video_path`, `subtitle_path` and optional `output_path`. Every entry is
        validated before any item is added.

        Items added while a batch is running join it without admission: there is
        no disk space check for them, and an existing output is only handled by
        the conflict re-check at dispatch (renamed unless the run overwrites).
        A paused queue stays paused.
        """
        new_items = [self._build_item(entry) for entry in entries]
        with self._lock:
            self._items.extend(new_items)
            for item in new_items:
                logger.debug(f"Queued {item.video_name} -> {item.output_path} (id {item.id})")
            if new_items:
                self._emit_snapshot()
        return [item.id for item in new_items]

    def remove(self, item_id: str):
        """
        Removes an item that is not processing. Removing a pending item is how a single job is cancelled.

        Raises:
            ItemNotFoundError: Unknown id.
            InvariantViolation: The item is processing.
        """
        with self._lock:
            item = self._find(item_id)
            if item.status == ITEM_STATUS_PROCESSING:
                raise InvariantViolation(f"Cannot remove {item.video_name}: it is being processed.")
            self._items.remove(item)
            logger.debug(f"Removed {item.video_name} (id {item.id}) from queue")
            self._emit_snapshot()

    def reorder(self, from_index: int, to_index: int):
        """
        Moves the item at `from_index` to `to_index`; all other items keep their relative order.

        Raises:
            ValidationError: An index is out of range.
            InvariantViolation: Either index holds the processing item.
        """
        with self._lock:
            size = len(self._items)
            for index in (from_index, to_index):
                if not 0 <= index < size:
                    raise ValidationError(f"Queue index {index} out of range (0..{size - 1}).")
            for index in (from_index, to_index):
                if self._items[index].status == ITEM_STATUS_PROCESSING:
                    raise InvariantViolation("The item being processed cannot be reordered.")
            if from_index == to_index:
                return
            item = self._items.pop(from_index)
            self._items.insert(to_index, item)
            self._emit_snapshot()

    def clear(self) -> int:
        """Removes every item except the processing one. Returns how many were removed."""
        with self._lock:
            kept = [item for item in self._items if item.status == ITEM_STATUS_PROCESSING]
            removed = len(self._items) - len(kept)
            self._items = kept
            logger.debug(f"Cleared {removed} item(s) from queue")
            self._emit_snapshot()
            return removed

    def update_item_output(self, item_id: str, new_path: PathLike):
        """
        Replaces the output path of a pending item.

        Raises:
            ItemNotFoundError: Unknown id.
            InvariantViolation: The item is not pending.
            ValidationError: The new path is unsafe for FFmpeg.
        """
        new_output = Path(new_path).resolve()
        problem = validate_path_for_ffmpeg(new_output)
        if problem:
            raise ValidationError(f"{problem}: {new_output!r}")
        with self._lock:
            item = self._find(item_id)
            if item.status != ITEM_STATUS_PENDING:
                raise InvariantViolation(f"Output of {item.video_name} can only change while pending (is {item.status}).")
            item.output_path = new_output
            logger.debug(f"Output for {item.video_name} set to {new_output}")
            self._emit_status(item)
            self._emit_snapshot()

    def update_settings(self, partial_settings: Dict) -> EncodingSettings:
        """Merges `partial_settings` into the global settings. Already dispatched items keep their snapshot."""
        with self._lock:
            self._settings = self._settings.merged(partial_settings)
            logger.debug(f"Encoding settings updated: {partial_settings}")
            return self._settings

    # --- Running ---

    def start(
        self,
        conflict_strategy: Optional[ConflictStrategy] = None,
        override_space: bool = False,
    ) -> AdmissionResult:
        """
        Admits every pending item and, when clear, starts dispatching them in order.

        Args:
            conflict_strategy: How to settle existing output files before the check.
                `cancel` aborts the start and leaves everything pending. `overwrite`
                keeps the paths and admits on disk space alone. Without a
                strategy, existing outputs come back as `ConflictsFound`.
            override_space: Start even if admission reports insufficient space.

        Returns:
            The admission outcome. Only `Clear` starts (or keeps) the queue running;
            any other result leaves the queue unchanged.
        """
        with self._lock:
            pending = self._pending()
            # A start while running (resume) keeps the strategy of the current run.
            if not self._running:
                self._conflict_strategy = None

            if conflict_strategy is not None:
                conflict_strategy = ConflictStrategy(conflict_strategy)
                if conflict_strategy is ConflictStrategy.CANCEL:
                    logger.info("Batch start cancelled on output conflicts.")
                    return Aborted(reason="Start cancelled on output conflicts")
                # resolve() works on copies; write the chosen paths back.
                resolved = self._admission.resolver.resolve(pending, conflict_strategy)
                for item, resolved_item in zip(pending, resolved):
                    item.output_path = resolved_item.output_path
                self._conflict_strategy = conflict_strategy

            # An overwrite run (including a paused one being resumed) only checks space.
            result = self._admission.admit(
                pending,
                self._settings,
                override_space=override_space,
                skip_conflicts=self._conflict_strategy is ConflictStrategy.OVERWRITE,
            )
            if not result.is_clear:
                # Renamed paths stay on the items even when space blocks the start.
                if conflict_strategy is not None:
                    self._emit_snapshot()
                return result

            self._running = True
            self._paused = False
            logger.info(f"Queue started with {len(pending)} pending item(s).")
            self._emit_snapshot()
            self._advance()
            return result

    def resume(
        self,
        conflict_strategy: Optional[ConflictStrategy] = None,
        override_space: bool = False,
    ) -> AdmissionResult:
        """Clears a pause after re-running admission. Same contract as `start`."""
        return self.start(conflict_strategy, override_space)

    def pause(self):
        """Stops dispatching new items. The item being processed runs to its end."""
        with self._lock:
            if self._paused:
                return
            self._paused = True
            logger.info("Queue paused; the active item will finish.")
            self._emit_snapshot()
            self._idle.notify_all()

    def cancel_all(self):
        """
        Cancels the active encode and marks every other non-terminal item `cancelled`.

        Blocks until the encoder process has exited.
        """
        with self._lock:
            self._running = False
            self._paused = False
            now = datetime.now()
            # The processing item is marked by its runner's CANCELLED event.
            for item in self._items:
                if item.status == ITEM_STATUS_PENDING:
                    item.status = ITEM_STATUS_CANCELLED
                    item.finished_at = now
                    self._emit_status(item)
            runner = self._active_runner
            logger.info("Cancelling the whole queue.")
            self._emit_snapshot()
            self._idle.notify_all()

        # Runner events need the lock, so wait for the process outside it.
        if runner is not None:
            runner.cancel()

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Blocks until nothing is processing and the queue is stopped, finished or paused.

        Returns:
            False if `timeout` expired first.
        """
        with self._idle:
            return self._idle.wait_for(
                lambda: self._active_id is None and (not self._running or self._paused),
                timeout=timeout,
            )

    # --- Dispatch ---

    def _advance(self):
        if not self._running or self._paused or self._active_id is not None:
            return

        pending = self._pending()
        if not pending:
            # Nothing left: the run is over.
            self._running = False
            stats = self.get_stats()
            logger.info(
                f"Queue completed: {stats.completed} completed, {stats.error} failed, {stats.cancelled} cancelled."
            )
            self._emit(QueueEventKind.QUEUE_COMPLETED, stats=stats)
            self._idle.notify_all()
            return

        self._dispatch(pending[0])

    def _recheck_conflict(self, item: QueueItem):
        """Earlier items of this run may have just written the file this one targets."""
        resolver = self._admission.resolver
        if resolver.detect_one(item) is None or self._conflict_strategy is ConflictStrategy.OVERWRITE:
            return
        reserved = {
            str(other.output_path).casefold()
            for other in self._items
            if other is not item and other.status in (ITEM_STATUS_PENDING, ITEM_STATUS_PROCESSING)
        }
        new_path = resolver.free_path(item.output_path, reserved)
        logger.warning(f"{item.output_path} appeared before dispatch; writing {new_path.name} instead.")
        item.logs.append(LogLine(f"Output existed, renamed to {new_path.name}", LogType.WARNING))
        item.output_path = new_path

    def _dispatch(self, item: QueueItem):
        self._recheck_conflict(item)

        # Later update_settings calls do not reach this item.
        item.settings_snapshot = self._settings
        item.status = ITEM_STATUS_PROCESSING
        item.started_at = datetime.now()
        item.finished_at = None
        item.progress = None
        item.error_message = None
        item.logs = []
        self._active_id = item.id
        self._active_runner = None

        logger.info(f"Processing {item.video_name} (id {item.id})")
        logger.debug(f"Video: {item.video_path}")
        logger.debug(f"Subtitle: {item.subtitle_path}")
        logger.debug(f"Output: {item.output_path}")
        logger.debug(f"Settings: {item.settings_snapshot.to_dict()}")
        self._emit_status(item)
        self._emit_snapshot()

        listener = partial(self._on_runner_event, item.id)
        try:
            runner = self._runner_factory(item.snapshot(), item.settings_snapshot, listener)
        except Exception as e:
            logger.exception(f"Could not start encode for {item.video_name}")
            self._on_runner_event(item.id, RunnerEvent(RunnerEventKind.ERROR, message=f"Process error: {e}"))
            return

        # The runner may already have finished and the next item been dispatched.
        if self._active_id == item.id:
            self._active_runner = runner

    def _on_runner_event(self, item_id: str, event: RunnerEvent):
        with self._lock:
            if item_id != self._active_id:
                logger.debug(f"Ignoring {event.kind.value} event for inactive item {item_id}")
                return
            item = self._find(item_id)

            # Progress and log events leave the status alone.
            if event.kind is RunnerEventKind.PROGRESS:
                item.progress = event.progress
                self._emit(QueueEventKind.ITEM_PROGRESS, item_id, progress=event.progress)
                return

            if event.kind is RunnerEventKind.LOG:
                item.logs.append(event.log)
                self._emit(QueueEventKind.ITEM_LOG, item_id, line=event.log.line,
                           type=event.log.type, stream=event.log.stream)
                return

            # Terminal event: free the slot before picking the next item.
            item.finished_at = datetime.now()
            self._active_id = None
            self._active_runner = None

            if event.kind is RunnerEventKind.COMPLETED:
                item.status = ITEM_STATUS_COMPLETED
                if event.output_path:
                    item.output_path = event.output_path
                item.logs.append(LogLine(f"Output: {item.output_path}", LogType.SUCCESS))
                logger.success(f"Completed {item.video_name} -> {item.output_path}")
                self._emit_status(item)
                self._emit(QueueEventKind.ITEM_COMPLETED, item_id, output_path=item.output_path)
            elif event.kind is RunnerEventKind.ERROR:
                item.status = ITEM_STATUS_ERROR
                item.error_message = event.message or "Encoding failed"
                item.logs.append(LogLine(f"Error: {item.error_message}", LogType.ERROR))
                logger.error(f"Failed {item.video_name}: {item.error_message}")
                self._emit_status(item)
                self._emit(QueueEventKind.ITEM_ERROR, item_id, message=item.error_message)
            else:
                item.status = ITEM_STATUS_CANCELLED
                item.logs.append(LogLine("Process cancelled by user", LogType.WARNING))
                logger.warning(f"Cancelled {item.video_name}")
                self._emit_status(item)

            self._emit_snapshot()
            self._idle.notify_all()
            self._advance()

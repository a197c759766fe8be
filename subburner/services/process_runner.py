"""
Supervision of one external FFmpeg burn.

A `ProcessRunner` spawns the encoder, turns its output into an ordered stream of
`RunnerEvent`s, and ends that stream with exactly one terminal event:
`completed`, `error` or `cancelled`. It never retries.

Threads per runner: one reader per pipe feeding a single line queue, and one
pump thread that is the only caller of `on_event`. Events therefore arrive in
the order the lines were read and the terminal event is always the last one.
"""

import queue
import subprocess
import threading
import time
from collections import deque
from pathlib import Path
from typing import Callable, List, Optional

from loguru import logger

from ..config.common import ERROR_TAIL_LINES, TERMINATE_GRACE_SECONDS
from ..domain.exceptions import JobCancelled, JobError, MediaFileException
from ..domain.media import probe_duration
from ..domain.models import (
    EncodingSettings,
    LogLine,
    LogType,
    QueueItem,
    RunnerEvent,
    RunnerEventKind,
)
from ..utils.ffmpeg_output import categorize_log, extract_duration, is_progress_line, parse_progress_line
from ..utils.ffmpeg_utils import (
    build_burn_command,
    display_command,
    find_executable,
    validate_path_for_ffmpeg,
)

STDOUT = "stdout"
STDERR = "stderr"

RunnerListener = Callable[[RunnerEvent], None]


class ProcessRunner:
    """
    One cancellable, observable encode.

    Args:
        video_path, subtitle_path, output_path: Absolute paths of the job.
        settings: The settings snapshot the job was dispatched with.
        on_event: Called from the runner's pump thread for every event.
        ffmpeg_path: Encoder executable; resolved from the config when omitted.
        duration_probe: Returns the source duration in seconds. Failures are
            tolerated; the duration is then read from the encoder's banner.
        command_builder: Builds the argument list, `build_burn_command` by default.
        grace_seconds: Time allowed between SIGTERM and SIGKILL on cancel.
    """

    def __init__(
        self,
        video_path: Path,
        subtitle_path: Path,
        output_path: Path,
        settings: EncodingSettings,
        on_event: RunnerListener,
        ffmpeg_path: Optional[str] = None,
        duration_probe: Callable[[Path], float] = probe_duration,
        command_builder: Callable[..., List[str]] = build_burn_command,
        grace_seconds: float = TERMINATE_GRACE_SECONDS,
        name: str = "",
    ):
        self.video_path = video_path
        self.subtitle_path = subtitle_path
        self.output_path = output_path
        self.settings = settings
        self.on_event = on_event
        self.ffmpeg_path = ffmpeg_path or find_executable("ffmpeg")
        self.duration_probe = duration_probe
        self.command_builder = command_builder
        self.grace_seconds = grace_seconds
        self.name = name or video_path.name

        self.duration: float = 0.0
        self.return_code: Optional[int] = None
        self.terminal_event: Optional[RunnerEvent] = None

        self._lock = threading.Lock()
        self._process: Optional[subprocess.Popen] = None
        self._thread: Optional[threading.Thread] = None
        self._cancel_requested = False
        self._signalled = False
        self._finished = threading.Event()
        self._tail: deque = deque(maxlen=ERROR_TAIL_LINES)
        self._start_time: Optional[float] = None

    @classmethod
    def run(cls, item: QueueItem, settings: EncodingSettings, on_event: RunnerListener, **kwargs) -> "ProcessRunner":
        """Creates a runner for `item` and starts it. Returns immediately."""
        runner = cls(
            item.video_path,
            item.subtitle_path,
            item.output_path,
            settings,
            on_event,
            name=item.video_name,
            **kwargs,
        )
        runner.start()
        return runner

    # --- Public API ---

    @property
    def is_running(self) -> bool:
        return self._thread is not None and not self._finished.is_set()

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    def start(self):
        with self._lock:
            if self._thread is not None:
                raise RuntimeError("Runner already started")
            self._thread = threading.Thread(target=self._pump, name=f"burn-{self.name}", daemon=True)
        self._thread.start()

    def cancel(self):
        """
        Stops the encode and blocks until the process has exited.

        The run then ends with a `cancelled` event. Cancelling a finished run does nothing.
        """
        with self._lock:
            if self._finished.is_set() or self._cancel_requested:
                already = True
            else:
                already = False
                self._cancel_requested = True
            process = self._process
            thread = self._thread

        if already:
            self._join(thread)
            return

        if thread is None:
            self._finish(RunnerEvent(RunnerEventKind.CANCELLED, message="Cancelled before start"))
            return

        if process is not None and process.poll() is None:
            logger.info(f"Cancelling encode of {self.name}")
            self._signalled = True
            self._terminate(process)
        self._join(thread)

    def wait(self, timeout: Optional[float] = None) -> Optional[RunnerEvent]:
        """Waits for the terminal event and returns it (None on timeout)."""
        self._finished.wait(timeout)
        return self.terminal_event

    # --- Internals ---

    def _join(self, thread: Optional[threading.Thread]):
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def _terminate(self, process: subprocess.Popen):
        process.terminate()
        try:
            process.wait(timeout=self.grace_seconds)
        except subprocess.TimeoutExpired:
            logger.warning(f"Encoder for {self.name} ignored SIGTERM for {self.grace_seconds}s; killing it.")
            process.kill()
            process.wait()

    def _emit(self, event: RunnerEvent):
        try:
            self.on_event(event)
        except Exception:
            logger.exception(f"Runner listener failed on {event.kind.value} event for {self.name}")

    def _finish(self, event: RunnerEvent):
        with self._lock:
            if self._finished.is_set():
                return
            self.terminal_event = event
        self._emit(event)
        self._finished.set()

    def _log(self, text: str, log_type: LogType = LogType.INFO, stream: Optional[str] = None):
        self._emit(RunnerEvent(RunnerEventKind.LOG, log=LogLine(text, log_type, stream)))

    def _probe_duration(self):
        try:
            self.duration = float(self.duration_probe(self.video_path) or 0.0)
        except (FileNotFoundError, MediaFileException) as e:
            logger.debug(f"Duration probe failed for {self.video_path}: {e}")
            self.duration = 0.0

    def _check_paths(self) -> Optional[str]:
        if not self.video_path.is_file():
            return f"Video file not found: {self.video_path}"
        if not self.subtitle_path.is_file():
            return f"Subtitle file not found: {self.subtitle_path}"
        for label, path in (("video", self.video_path), ("subtitle", self.subtitle_path), ("output", self.output_path)):
            problem = validate_path_for_ffmpeg(path)
            if problem:
                return f"Invalid {label} path: {problem}"
        return None

    def _spawn(self, cmd: List[str]) -> Optional[subprocess.Popen]:
        with self._lock:
            if self._cancel_requested:
                return None
            self._process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
            return self._process

    @staticmethod
    def _read_stream(stream, name: str, lines: queue.Queue):
        try:
            for line in stream:
                lines.put((name, line.rstrip("\r\n")))
        finally:
            lines.put((name, None))

    def _handle_line(self, stream: str, line: str):
        if not line.strip():
            return

        if stream == STDERR and self.duration <= 0:
            duration = extract_duration(line)
            if duration:
                self.duration = duration
                self._log(
                    f"Video duration detected: {int(duration // 60)}m {round(duration % 60)}s",
                    LogType.METADATA,
                )

        if is_progress_line(line):
            progress = parse_progress_line(line, self.duration, self._start_time)
            if progress:
                self._emit(RunnerEvent(RunnerEventKind.PROGRESS, progress=progress))
            return

        text = line.strip()
        if stream == STDERR:
            self._tail.append(text)
        self._log(text, categorize_log(text), stream)

    def _failure_message(self, return_code: int) -> str:
        if self._tail:
            return " | ".join(self._tail)
        return f"Process exited with code {return_code}"

    def _remove_partial_output(self):
        try:
            if self.output_path.exists():
                self.output_path.unlink()
                self._log("Partial output file deleted")
        except OSError as e:
            self._log(f"Failed to delete partial output: {e}", LogType.WARNING)

    def _pump(self):
        try:
            self._run_process()
        except JobCancelled as e:
            self._finish(RunnerEvent(RunnerEventKind.CANCELLED, message=str(e) or None))
        except JobError as e:
            if e.exit_code is not None:
                logger.error(f"Encode of {self.name} failed (exit code {e.exit_code}): {e}")
            self._finish(RunnerEvent(RunnerEventKind.ERROR, message=str(e)))
        except Exception as e:
            logger.exception(f"Unexpected failure while running encode for {self.name}")
            self._finish(RunnerEvent(RunnerEventKind.ERROR, message=f"Process error: {e}"))

    def _run_process(self):
        problem = self._check_paths()
        if problem:
            raise JobError(problem)

        self._probe_duration()
        try:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self._log(f"Failed to ensure output directory: {e}", LogType.WARNING)

        cmd = self.command_builder(self.ffmpeg_path, self.video_path, self.subtitle_path, self.output_path, self.settings)
        logger.debug(f"Burn command for {self.name}: {display_command(cmd)}")
        self._log("Starting FFmpeg process...")
        self._log(f"Video: {self.video_path}")
        self._log(f"Subtitles: {self.subtitle_path}")
        self._log(f"Output: {self.output_path}")
        self._log(f"Command: {display_command(cmd)}", LogType.DEBUG)

        self._start_time = time.monotonic()
        try:
            process = self._spawn(cmd)
        except OSError as e:
            raise JobError(f"Process error: {e}") from e
        if process is None:
            raise JobCancelled("Cancelled before start")

        lines: queue.Queue = queue.Queue()
        readers = [
            threading.Thread(target=self._read_stream, args=(process.stdout, STDOUT, lines), daemon=True),
            threading.Thread(target=self._read_stream, args=(process.stderr, STDERR, lines), daemon=True),
        ]
        for reader in readers:
            reader.start()

        open_streams = len(readers)
        while open_streams:
            stream, line = lines.get()
            if line is None:
                open_streams -= 1
                continue
            self._handle_line(stream, line)

        for reader in readers:
            reader.join()
        self.return_code = process.wait()

        with self._lock:
            # A cancel that arrived after a clean exit leaves the result alone.
            cancelled = self._cancel_requested and (self._signalled or self.return_code != 0)

        if cancelled:
            self._log("Process was cancelled", LogType.WARNING)
            self._remove_partial_output()
            raise JobCancelled()
        if self.return_code != 0:
            raise JobError(self._failure_message(self.return_code), exit_code=self.return_code)

        self._log("Process completed successfully!", LogType.SUCCESS)
        self._finish(RunnerEvent(RunnerEventKind.COMPLETED, output_path=self.output_path))

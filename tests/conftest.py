"""
Shared fixtures: media files on disk, a controllable disk and a scripted runner
standing in for FFmpeg so queue tests are deterministic.
"""

from collections import namedtuple
from pathlib import Path
from typing import List

import pytest

from subburner.domain.models import (
    LogLine,
    LogType,
    Progress,
    RunnerEvent,
    RunnerEventKind,
)
from subburner.services.admission import AdmissionController
from subburner.services.disk_space import DiskSpaceEstimator
from subburner.services.queue_manager import QueueManager

DiskUsage = namedtuple("DiskUsage", "total used free")

GB = 1024 ** 3


def make_pair(directory: Path, stem: str):
    """Creates `<stem>.mkv` and `<stem>.ass` in `directory` and returns their paths."""
    directory.mkdir(parents=True, exist_ok=True)
    video = directory / f"{stem}.mkv"
    subtitle = directory / f"{stem}.ass"
    video.write_bytes(b"\x00" * 1024)
    subtitle.write_text("[Script Info]\n", encoding="utf-8")
    return video, subtitle


@pytest.fixture
def media_pair(tmp_path):
    return make_pair(tmp_path, "episode01")


@pytest.fixture
def media_pairs(tmp_path):
    return [make_pair(tmp_path, f"episode{i:02}") for i in range(1, 4)]


class FakeDisk:
    """`shutil.disk_usage` stand-in with adjustable free space."""

    def __init__(self, free: int = 100 * GB, total: int = 500 * GB):
        self.free = free
        self.total = total
        self.queried: List[str] = []

    def __call__(self, path):
        self.queried.append(path)
        return DiskUsage(self.total, self.total - self.free, self.free)


@pytest.fixture
def fake_disk():
    return FakeDisk()


class FakeRunner:
    """Handle returned by `FakeRunnerFactory`; the test decides when and how it ends."""

    def __init__(self, item, settings, listener):
        self.item = item
        self.settings = settings
        self.listener = listener
        self.finished = False
        self.cancel_calls = 0

    def _end(self, event: RunnerEvent):
        assert not self.finished, "terminal event sent twice"
        self.finished = True
        self.listener(event)

    def progress(self, percentage: float):
        self.listener(RunnerEvent(RunnerEventKind.PROGRESS, progress=Progress(percentage=percentage)))

    def log(self, line: str, log_type: LogType = LogType.INFO):
        self.listener(RunnerEvent(RunnerEventKind.LOG, log=LogLine(line, log_type, "stderr")))

    def complete(self):
        self._end(RunnerEvent(RunnerEventKind.COMPLETED, output_path=self.item.output_path))

    def fail(self, message: str = "Conversion failed!"):
        self._end(RunnerEvent(RunnerEventKind.ERROR, message=message))

    def cancel(self):
        self.cancel_calls += 1
        if not self.finished:
            self._end(RunnerEvent(RunnerEventKind.CANCELLED))


class FakeRunnerFactory:
    """Records every dispatch. With `auto_complete`, runners finish as soon as they start."""

    def __init__(self, auto_complete: bool = False):
        self.runners: List[FakeRunner] = []
        self.auto_complete = auto_complete

    def __call__(self, item, settings, listener):
        runner = FakeRunner(item, settings, listener)
        self.runners.append(runner)
        if self.auto_complete:
            runner.complete()
        return runner

    @property
    def last(self) -> FakeRunner:
        return self.runners[-1]


@pytest.fixture
def runner_factory():
    return FakeRunnerFactory()


@pytest.fixture
def admission(fake_disk):
    estimator = DiskSpaceEstimator(space_query=fake_disk, bitrate_probe=lambda path: None)
    return AdmissionController(estimator=estimator, duration_probe=lambda path: 600.0)


@pytest.fixture
def manager(admission, runner_factory):
    return QueueManager(admission=admission, runner_factory=runner_factory)


@pytest.fixture
def events(manager):
    """Every event the manager emits, in order."""
    received = []
    manager.subscribe(received.append)
    return received

"""Tests for the pre-dispatch admission checks."""
from subburner.domain.exceptions import MediaFileException
from subburner.domain.models import (
    Clear,
    ConflictsFound,
    EncodingSettings,
    InsufficientSpace,
    QueueItem,
)
from subburner.services.admission import AdmissionController
from subburner.services.disk_space import DiskSpaceEstimator

from tests.conftest import FakeDisk


def _items(pairs):
    return [QueueItem(video_path=v, subtitle_path=s, output_path=v.with_suffix(".mp4")) for v, s in pairs]


def _controller(disk, duration=600.0):
    estimator = DiskSpaceEstimator(space_query=disk, bitrate_probe=lambda p: None)
    return AdmissionController(estimator=estimator, duration_probe=lambda p: duration)


class TestAdmit:
    def test_empty_batch_is_clear(self):
        assert _controller(FakeDisk()).admit([], EncodingSettings()) == Clear()

    def test_clear(self, media_pairs):
        result = _controller(FakeDisk()).admit(_items(media_pairs), EncodingSettings())

        assert result.is_clear

    def test_conflicts_reported_first(self, media_pairs):
        items = _items(media_pairs)
        items[1].output_path.write_bytes(b"old")
        disk = FakeDisk(free=0)

        result = _controller(disk).admit(items, EncodingSettings())

        assert isinstance(result, ConflictsFound)
        assert [c.item_id for c in result.conflicts] == [items[1].id]
        assert disk.queried == []

    def test_insufficient_space(self, media_pairs):
        disk = FakeDisk(free=300_000_000)

        result = _controller(disk).admit(_items(media_pairs), EncodingSettings(bitrate="2000k"))

        assert isinstance(result, InsufficientSpace)
        assert result.report.required == 450_000_000
        assert not result.report.sufficient
        assert len(result.reports) == 1

    def test_override_space(self, media_pairs):
        disk = FakeDisk(free=0)

        result = _controller(disk).admit(_items(media_pairs), EncodingSettings(), override_space=True)

        assert result.is_clear

    def test_override_does_not_skip_conflicts(self, media_pairs):
        items = _items(media_pairs)
        items[0].output_path.write_bytes(b"old")

        result = _controller(FakeDisk(free=0)).admit(items, EncodingSettings(), override_space=True)

        assert isinstance(result, ConflictsFound)

    def test_unprobeable_duration_counts_as_zero(self, media_pairs):
        def broken(path):
            raise MediaFileException("not a video")

        estimator = DiskSpaceEstimator(space_query=FakeDisk(free=0), bitrate_probe=lambda p: None)
        controller = AdmissionController(estimator=estimator, duration_probe=broken)

        assert controller.admit(_items(media_pairs), EncodingSettings()).is_clear

    def test_skip_conflicts_checks_space_only(self, media_pairs):
        items = _items(media_pairs)
        items[0].output_path.write_bytes(b"old")
        disk = FakeDisk(free=0)

        result = _controller(disk).admit(items, EncodingSettings(), skip_conflicts=True)

        assert isinstance(result, InsufficientSpace)
        assert disk.queried

    def test_skip_conflicts_clear(self, media_pairs):
        items = _items(media_pairs)
        items[0].output_path.write_bytes(b"old")

        assert _controller(FakeDisk()).admit(items, EncodingSettings(), skip_conflicts=True).is_clear

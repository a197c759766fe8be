"""Tests for output conflict detection and resolution."""
from pathlib import Path

from subburner.domain.models import ConflictStrategy, QueueItem
from subburner.services.conflict_resolver import ConflictResolver


def _item(tmp_path: Path, output_name: str) -> QueueItem:
    return QueueItem(
        video_path=tmp_path / "video.mkv",
        subtitle_path=tmp_path / "video.ass",
        output_path=tmp_path / output_name,
    )


class TestDetect:
    def test_no_conflicts(self, tmp_path):
        items = [_item(tmp_path, "a.mp4"), _item(tmp_path, "b.mp4")]

        assert ConflictResolver().detect(items) == []

    def test_existing_output_reported(self, tmp_path):
        (tmp_path / "b.mp4").write_bytes(b"old")
        items = [_item(tmp_path, "a.mp4"), _item(tmp_path, "b.mp4")]

        conflicts = ConflictResolver().detect(items)

        assert [c.item_id for c in conflicts] == [items[1].id]
        assert conflicts[0].existing_path == tmp_path / "b.mp4"


class TestResolve:
    def test_auto_rename_picks_first_free_candidate(self, tmp_path):
        (tmp_path / "movie.mp4").write_bytes(b"old")
        (tmp_path / "movie (1).mp4").write_bytes(b"older")
        item = _item(tmp_path, "movie.mp4")

        resolved = ConflictResolver().resolve([item], ConflictStrategy.AUTO_RENAME)

        assert resolved[0].output_path == tmp_path / "movie (2).mp4"
        assert resolved[0].id == item.id
        assert item.output_path == tmp_path / "movie.mp4"

    def test_auto_rename_keeps_batch_targets_unique(self, tmp_path):
        (tmp_path / "movie.mp4").write_bytes(b"old")
        items = [_item(tmp_path, "movie.mp4"), _item(tmp_path, "movie.mp4"), _item(tmp_path, "MOVIE (1).mp4")]

        resolved = ConflictResolver().resolve(items, "auto_rename")
        targets = [str(i.output_path).casefold() for i in resolved]

        assert len(set(targets)) == len(targets)
        assert all(not i.output_path.exists() for i in resolved)

    def test_auto_rename_leaves_free_paths_alone(self, tmp_path):
        item = _item(tmp_path, "fresh.mp4")

        resolved = ConflictResolver().resolve([item], ConflictStrategy.AUTO_RENAME)

        assert resolved[0].output_path == item.output_path

    def test_overwrite_keeps_paths(self, tmp_path):
        (tmp_path / "movie.mp4").write_bytes(b"old")
        item = _item(tmp_path, "movie.mp4")

        resolved = ConflictResolver().resolve([item], ConflictStrategy.OVERWRITE)

        assert resolved[0].output_path == tmp_path / "movie.mp4"
        assert resolved[0] is not item

    def test_injected_existence_check(self, tmp_path):
        taken = {tmp_path / "x.mp4", tmp_path / "x (1).mp4"}
        resolver = ConflictResolver(exists=lambda p: p in taken)

        resolved = resolver.resolve([_item(tmp_path, "x.mp4")], ConflictStrategy.AUTO_RENAME)

        assert resolved[0].output_path == tmp_path / "x (2).mp4"

    def test_free_path_respects_reserved(self, tmp_path):
        resolver = ConflictResolver(exists=lambda p: False)
        reserved = {str(tmp_path / "x (1).mp4").casefold()}

        assert resolver.free_path(tmp_path / "x.mp4", reserved) == tmp_path / "x (2).mp4"

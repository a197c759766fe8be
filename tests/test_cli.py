"""Tests for argument parsing and the batch pipeline."""
from datetime import datetime
from unittest.mock import patch

import pytest
import yaml

from subburner.cli import get_args
from subburner.domain.models import ConflictStrategy
from subburner.pipeline.batch_pipeline import BatchBurnPipeline
from subburner.services.queue_manager import QueueManager

from tests.conftest import FakeRunnerFactory


class TestGetArgs:
    def test_defaults(self):
        args = get_args([])

        assert args.inputs == ["."]
        assert args.on_conflict == ConflictStrategy.AUTO_RENAME.value
        assert args.log_level == "INFO"
        assert not args.gpu
        assert not args.dated_log

    def test_encoding_flags(self):
        args = get_args(["a.mkv", "--gpu", "--cq", "23", "--quality-mode", "cq", "--preset", "p6"])

        settings = BatchBurnPipeline.build_settings(args)

        assert settings.gpu_encode
        assert (settings.cq, settings.quality_mode, settings.preset) == (23, "cq", "p6")

    def test_bad_cq(self):
        with pytest.raises(SystemExit):
            get_args(["--cq", "99"])

    def test_bad_conflict_strategy(self):
        with pytest.raises(SystemExit):
            get_args(["--on-conflict", "ask"])


@pytest.fixture
def pipeline_for(admission, tmp_path):
    def _make(argv, factory):
        args = get_args(argv + ["--log-dir", str(tmp_path / "logs")])
        manager = QueueManager(
            settings=BatchBurnPipeline.build_settings(args), admission=admission, runner_factory=factory
        )
        return BatchBurnPipeline(args, manager=manager)

    return _make


class TestBatchBurnPipeline:
    def test_burns_all_pairs(self, pipeline_for, media_pairs, tmp_path):
        pipeline = pipeline_for([str(tmp_path), "--suffix", "subbed"], FakeRunnerFactory(auto_complete=True))

        assert pipeline.run()

        items = pipeline.manager.get_all()
        assert [i.status for i in items] == ["completed"] * 3
        assert items[0].output_path.name == "episode01 subbed.mp4"
        entries = yaml.safe_load(pipeline.success_log.log_file_path.read_text(encoding="utf-8"))
        assert len(entries) == 3

    def test_dated_success_log(self, pipeline_for, media_pair, tmp_path):
        pipeline = pipeline_for([str(tmp_path), "--dated-log"], FakeRunnerFactory(auto_complete=True))

        assert pipeline.run()

        log_name = pipeline.success_log.log_file_path.name
        assert log_name.startswith(f"burn_log_{datetime.now():%Y%m%d}_")
        assert len(yaml.safe_load(pipeline.success_log.log_file_path.read_text(encoding="utf-8"))) == 1

    def test_unpaired_video_skipped(self, pipeline_for, media_pair, tmp_path):
        (tmp_path / "lonely.mkv").write_bytes(b"")
        pipeline = pipeline_for([str(tmp_path)], FakeRunnerFactory(auto_complete=True))

        assert pipeline.run()
        assert len(pipeline.manager.get_all()) == 1

    def test_nothing_to_do(self, pipeline_for, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()

        assert not pipeline_for([str(empty)], FakeRunnerFactory()).run()

    def test_conflicts_resolved_with_cli_strategy(self, pipeline_for, media_pair, tmp_path):
        (tmp_path / "episode01.mp4").write_bytes(b"old")
        pipeline = pipeline_for([str(tmp_path), "--on-conflict", "auto_rename"], FakeRunnerFactory(auto_complete=True))

        assert pipeline.run()
        assert pipeline.manager.get_all()[0].output_path.name == "episode01 (1).mp4"

    def test_overwrite_strategy_burns_in_place(self, pipeline_for, media_pair, tmp_path):
        existing = tmp_path / "episode01.mp4"
        existing.write_bytes(b"old")
        factory = FakeRunnerFactory(auto_complete=True)
        pipeline = pipeline_for([str(tmp_path), "--on-conflict", "overwrite"], factory)

        assert pipeline.run()
        assert len(factory.runners) == 1
        assert factory.last.item.output_path == existing.resolve()
        assert pipeline.manager.get_all()[0].status == "completed"

    def test_cancel_strategy_aborts(self, pipeline_for, media_pair, tmp_path):
        (tmp_path / "episode01.mp4").write_bytes(b"old")
        factory = FakeRunnerFactory()
        pipeline = pipeline_for([str(tmp_path), "--on-conflict", "cancel"], factory)

        assert not pipeline.run()
        assert factory.runners == []

    def test_insufficient_space_aborts(self, pipeline_for, fake_disk, media_pair, tmp_path):
        fake_disk.free = 10
        factory = FakeRunnerFactory(auto_complete=True)

        assert not pipeline_for([str(tmp_path)], factory).run()
        assert factory.runners == []

    def test_ignore_disk_space(self, pipeline_for, fake_disk, media_pair, tmp_path):
        fake_disk.free = 10

        assert pipeline_for([str(tmp_path), "--ignore-disk-space"], FakeRunnerFactory(auto_complete=True)).run()

    def test_failures_written_to_error_log(self, pipeline_for, media_pair, tmp_path):
        def failing(item, settings, listener):
            runner = FakeRunnerFactory()(item, settings, listener)
            runner.fail("Error opening filters!")
            return runner

        pipeline = pipeline_for([str(tmp_path)], failing)

        assert not pipeline.run()
        assert "Error opening filters!" in pipeline.error_log.log_file_path.read_text(encoding="utf-8")

    def test_interrupt_cancels_queue(self, pipeline_for, media_pairs, tmp_path):
        factory = FakeRunnerFactory()
        pipeline = pipeline_for([str(tmp_path)], factory)

        with patch.object(QueueManager, "wait_until_idle", side_effect=KeyboardInterrupt):
            assert not pipeline.run()

        assert [i.status for i in pipeline.manager.get_all()] == ["cancelled"] * 3
        assert factory.runners[0].cancel_calls == 1

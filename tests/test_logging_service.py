"""Tests for the success (YAML) and error (text) run logs."""
from datetime import datetime, timedelta

import yaml

from subburner.domain.models import EncodingSettings, LogLine, LogType, QueueItem
from subburner.services.logging_service import ErrorLog, SuccessLog


def _finished_item(tmp_path, status="completed"):
    output = tmp_path / "show.mp4"
    output.write_bytes(b"\x00" * 2048)
    started = datetime(2026, 1, 2, 3, 4, 5)
    return QueueItem(
        video_path=tmp_path / "show.mkv",
        subtitle_path=tmp_path / "show.ass",
        output_path=output,
        status=status,
        settings_snapshot=EncodingSettings(bitrate="3000k"),
        started_at=started,
        finished_at=started + timedelta(seconds=90),
    )


class TestSuccessLog:
    def test_appends_indexed_records(self, tmp_path):
        log = SuccessLog(tmp_path)
        item = _finished_item(tmp_path)

        log.write_item(item)
        log.write_item(item)

        entries = yaml.safe_load(log.log_file_path.read_text(encoding="utf-8"))
        assert [e["index"] for e in entries] == [1, 2]
        assert entries[0]["output"] == str(item.output_path)
        assert entries[0]["encode_time"] == 90.0
        assert entries[0]["output_size"] == "2 KB"
        assert entries[0]["settings"]["bitrate"] == "3000k"

    def test_recovers_from_garbage(self, tmp_path):
        log = SuccessLog(tmp_path)
        log.log_file_path.write_text("just a string", encoding="utf-8")

        log.write({"video": "a"})

        assert yaml.safe_load(log.log_file_path.read_text(encoding="utf-8")) == [{"video": "a", "index": 1}]

    def test_dated_filename(self, tmp_path):
        log = SuccessLog(tmp_path, use_dated_filename=True)

        assert log.log_file_path.name.startswith(f"burn_log_{datetime.now():%Y%m%d}_")

    def test_creates_directory(self, tmp_path):
        log = SuccessLog(tmp_path / "logs")

        assert log.log_dir.is_dir()


class TestErrorLog:
    def test_write_item(self, tmp_path):
        log = ErrorLog(tmp_path)
        item = _finished_item(tmp_path, status="error")
        item.error_message = "Error opening filters!"
        item.logs = [LogLine("Stream #0", LogType.METADATA), LogLine("Error opening filters!", LogType.ERROR)]

        log.write_item(item)

        text = log.log_file_path.read_text(encoding="utf-8")
        assert "message: Error opening filters!" in text
        assert f"video: {item.video_path}" in text
        assert "Stream #0" not in text
        assert text.rstrip().endswith(ErrorLog.linesep_marker)

    def test_blocks_appended(self, tmp_path):
        log = ErrorLog(tmp_path)

        log.write("first")
        log.write("second")
        log.write()

        assert log.log_file_path.read_text(encoding="utf-8").count(ErrorLog.linesep_marker) == 2

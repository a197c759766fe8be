"""Tests for parsing FFmpeg stderr."""
import pytest

from subburner.domain.models import LogType
from subburner.utils.ffmpeg_output import (
    categorize_log,
    extract_duration,
    is_progress_line,
    parse_progress_line,
    parse_time,
)

PROGRESS_LINE = "frame=  300 fps= 45 q=28.0 size=    1024kB time=00:00:30.00 bitrate=1634.2kbits/s speed=1.5x"


class TestParseTime:
    @pytest.mark.parametrize(
        "value, expected",
        [("01:30:45.50", 5445.5), ("02:03.5", 123.5), ("42", 42.0)],
    )
    def test_formats(self, value, expected):
        assert parse_time(value) == expected


class TestExtractDuration:
    def test_banner_line(self):
        line = "  Duration: 00:23:40.05, start: 0.000000, bitrate: 2410 kb/s"

        assert extract_duration(line) == pytest.approx(1420.05)

    def test_no_duration(self):
        assert extract_duration("Stream #0:0: Video: h264") is None


class TestParseProgressLine:
    def test_full_line(self):
        progress = parse_progress_line(PROGRESS_LINE, total_duration=120.0)

        assert progress.frame == 300
        assert progress.fps == 45.0
        assert progress.time == "00:00:30.00"
        assert progress.time_seconds == 30.0
        assert progress.bitrate == "1634.2kbits/s"
        assert progress.speed == "1.5x"
        assert progress.percentage == 25.0

    def test_unknown_duration_gives_zero_percent(self):
        assert parse_progress_line(PROGRESS_LINE, total_duration=0).percentage == 0.0

    def test_percentage_capped(self):
        assert parse_progress_line(PROGRESS_LINE, total_duration=10.0).percentage == 100.0

    def test_eta_from_elapsed(self):
        # 25% done after 10 s: 30 s remaining
        progress = parse_progress_line(PROGRESS_LINE, total_duration=120.0, start_time=100.0, now=110.0)

        assert progress.eta == "30s"

    def test_not_progress(self):
        assert parse_progress_line("Press [q] to stop", 120.0) is None
        assert parse_progress_line("frame=  1 fps=0.0", 120.0) is None

    def test_is_progress_line(self):
        assert is_progress_line(PROGRESS_LINE)
        assert not is_progress_line("Input #0, matroska,webm, from 'a.mkv':")


class TestCategorizeLog:
    @pytest.mark.parametrize(
        "line, expected",
        [
            ("Error opening filters!", LogType.ERROR),
            ("Conversion failed!", LogType.ERROR),
            ("Warning: deprecated pixel format", LogType.WARNING),
            ("fontselect: font not found", LogType.WARNING),
            ("glyph not found in font", LogType.INFO),
            ("Encoding done", LogType.SUCCESS),
            ("Stream #0:0: Video: h264", LogType.METADATA),
            ("configuration: --enable-gpl", LogType.DEBUG),
            ("Press [q] to stop", LogType.INFO),
        ],
    )
    def test_categories(self, line, expected):
        assert categorize_log(line) == expected

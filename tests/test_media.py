"""Tests for the ffprobe wrapper, with `ffmpeg.probe` patched out."""
from unittest.mock import patch

import ffmpeg
import pytest

from subburner.domain.exceptions import MediaFileException, NoDurationFoundException
from subburner.domain.media import MediaFile, parse_duration, probe_bitrate, probe_duration


@pytest.mark.parametrize(
    "value, expected",
    [("3600.5", 3600.5), ("01:00:00.500", 3600.5), ("02:30", 150.0), ("garbage", 0.0), (None, 0.0)],
)
def test_parse_duration(value, expected):
    assert parse_duration(value) == expected


class TestMediaFile:
    def test_duration_and_bitrate(self, media_pair):
        video, _ = media_pair
        probe = {"format": {"duration": "1420.05", "bit_rate": "2410000"}, "streams": []}

        with patch("subburner.domain.media.ffmpeg.probe", return_value=probe):
            media = MediaFile(video)

        assert media.duration == 1420.05
        assert media.bitrate == 2_410_000

    def test_stream_duration_fallback(self, media_pair):
        video, _ = media_pair
        probe = {"format": {}, "streams": [{"duration": "10.0"}, {"duration": "12.5"}]}

        with patch("subburner.domain.media.ffmpeg.probe", return_value=probe):
            media = MediaFile(video)

        assert media.duration == 12.5
        # 1024 bytes over 12.5 s
        assert media.bitrate == int(8 * 1024 / 12.5)

    def test_no_duration(self, media_pair):
        video, _ = media_pair

        with patch("subburner.domain.media.ffmpeg.probe", return_value={"format": {}, "streams": []}):
            with pytest.raises(NoDurationFoundException):
                MediaFile(video)

    def test_probe_error(self, media_pair):
        video, _ = media_pair
        error = ffmpeg.Error("ffprobe", b"", b"Invalid data found when processing input")

        with patch("subburner.domain.media.ffmpeg.probe", side_effect=error):
            with pytest.raises(MediaFileException, match="Invalid data"):
                MediaFile(video)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            MediaFile(tmp_path / "missing.mkv")


def test_probe_helpers(media_pair, tmp_path):
    video, _ = media_pair

    with patch("subburner.domain.media.ffmpeg.probe", return_value={"format": {"duration": "60"}, "streams": []}):
        assert probe_duration(video) == 60.0
    assert probe_bitrate(tmp_path / "missing.mkv") is None

"""Tests for the formatting helpers."""
from datetime import timedelta

import pytest

from subburner.utils.format_utils import format_eta, format_timedelta, formatted_size, parse_bitrate


@pytest.mark.parametrize(
    "value, expected",
    [("2400k", 2_400_000), ("6M", 6_000_000), ("1.5m", 1_500_000), ("800000", 800_000), ("", 7), ("abc", 7)],
)
def test_parse_bitrate(value, expected):
    assert parse_bitrate(value, default=7) == expected


@pytest.mark.parametrize(
    "seconds, expected",
    [(9, "9s"), (242, "4m 2s"), (9015, "2h 30m 15s"), (-1, "Calculating..."), (float("inf"), "Calculating...")],
)
def test_format_eta(seconds, expected):
    assert format_eta(seconds) == expected


def test_formatted_size():
    assert formatted_size(0) == "0 B"
    assert formatted_size(1536) == "1.50 KB"
    assert formatted_size(2 * 1024 ** 2) == "2 MB"


def test_format_timedelta():
    assert format_timedelta(timedelta(seconds=7261)) == "02:01:01"
    assert format_timedelta("nope") == "00:00:00"

"""Tests for parsing submitted dates."""

from datetime import datetime, timezone

import pytest

from formrelay.utils.datetime_parsing import parse_datetime_value, to_awork_datetime


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("2026-05-01", datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)),
        ("2026-05-01T08:15:00Z", datetime(2026, 5, 1, 8, 15, tzinfo=timezone.utc)),
        ("2026-05-01T10:15:00+02:00", datetime(2026, 5, 1, 8, 15, tzinfo=timezone.utc)),
        ("2026-05-01 08:15", datetime(2026, 5, 1, 8, 15, tzinfo=timezone.utc)),
        ("01.05.2026", datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)),
        ("05/01/2026", datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)),
        ("1777636800", datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)),
        ("1777636800000", datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)),
    ],
)
def test_parse_datetime_value(raw, expected):
    assert parse_datetime_value(raw) == expected


@pytest.mark.parametrize("raw", ["", "   ", "tomorrow", "2026-13-45"])
def test_unparseable_values_return_none(raw):
    assert parse_datetime_value(raw) is None


def test_to_awork_datetime_normalizes_to_utc():
    value = parse_datetime_value("2026-05-01T10:15:30+02:00")
    assert to_awork_datetime(value) == "2026-05-01T08:15:30Z"

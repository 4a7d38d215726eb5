"""
Tests for UTC datetime helpers
"""

from datetime import datetime, timezone, timedelta

import pytest

from utils.datetime_utils import (
    utc_now,
    ensure_utc,
    add_calendar_days,
    format_utc_iso,
    parse_utc_iso,
    utc_date_stamp,
)


def test_utc_now_is_aware():
    assert utc_now().tzinfo == timezone.utc


def test_ensure_utc_treats_naive_as_utc():
    assert ensure_utc(datetime(2025, 1, 1, 12, 0)) == datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


def test_ensure_utc_converts_other_zones():
    plus_two = timezone(timedelta(hours=2))
    converted = ensure_utc(datetime(2025, 1, 1, 12, 0, tzinfo=plus_two))
    assert converted == datetime(2025, 1, 1, 10, 0, tzinfo=timezone.utc)
    assert converted.tzinfo == timezone.utc


def test_add_calendar_days_reward_window():
    purchase = datetime(2025, 1, 1, tzinfo=timezone.utc)
    assert add_calendar_days(purchase, 30) == datetime(2025, 1, 31, tzinfo=timezone.utc)


def test_add_calendar_days_crosses_month_and_leap_day():
    assert add_calendar_days(datetime(2024, 2, 15, 9, 30), 30) == datetime(2024, 3, 16, 9, 30, tzinfo=timezone.utc)


def test_format_utc_iso():
    assert format_utc_iso(None) is None
    assert format_utc_iso(datetime(2025, 1, 31)) == '2025-01-31T00:00:00+00:00'


@pytest.mark.parametrize('value', ['2025-01-01T00:00:00Z', '2025-01-01T00:00:00+00:00', '2025-01-01T01:00:00+01:00'])
def test_parse_utc_iso(value):
    assert parse_utc_iso(value) == datetime(2025, 1, 1, tzinfo=timezone.utc)


def test_parse_utc_iso_rejects_garbage():
    with pytest.raises(ValueError):
        parse_utc_iso('not a date')


def test_utc_date_stamp():
    assert utc_date_stamp(datetime(2025, 1, 31, 23, 59, tzinfo=timezone.utc)) == '2025-01-31'

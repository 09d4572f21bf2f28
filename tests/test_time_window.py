from datetime import datetime, time, timedelta, timezone

import pytest

from conftest import tw
from errors import InvalidStart, RejectedDay, WindowExhausted
from models import Venue
from time_window import (
    DEFAULT_RULES, TZ, build_repeat_starts, normalize_window, parse_start,
)

# 2025-03-02 是星期日，03-03 星期一 ... 03-08 星期六
SUNDAY = (2025, 3, 2)
MONDAY = (2025, 3, 3)
TUESDAY = (2025, 3, 4)
WEDNESDAY = (2025, 3, 5)
THURSDAY = (2025, 3, 6)
SATURDAY = (2025, 3, 8)


def test_monday_afternoon_is_truncated_at_early_close():
    w = normalize_window(tw(*MONDAY, 16))
    assert w.start == tw(*MONDAY, 16)
    assert w.end == tw(*MONDAY, 18)
    assert w.truncated is True


def test_tuesday_early_morning_snaps_to_floor():
    w = normalize_window(tw(*TUESDAY, 3))
    assert w.start == tw(*TUESDAY, 7)
    assert w.end == tw(*TUESDAY, 10)
    assert w.truncated is False


@pytest.mark.parametrize("hour", [0, 7, 12, 20, 23])
def test_sunday_is_rejected_at_any_time(hour):
    with pytest.raises(RejectedDay):
        normalize_window(tw(*SUNDAY, hour))


def test_day_is_decided_in_reference_zone():
    # UTC 星期六 17:00 = 台北星期日 01:00
    with pytest.raises(RejectedDay):
        normalize_window(datetime(2025, 3, 1, 17, 0, tzinfo=timezone.utc))
    # UTC 星期日 16:30 = 台北星期一 00:30 -> 移到 07:00
    w = normalize_window(datetime(2025, 3, 2, 16, 30, tzinfo=timezone.utc))
    assert w.start == tw(*MONDAY, 7)


def test_start_at_ceiling_is_too_late():
    with pytest.raises(WindowExhausted):
        normalize_window(tw(*WEDNESDAY, 18))
    with pytest.raises(WindowExhausted):
        normalize_window(tw(*THURSDAY, 22))


def test_late_close_on_other_days():
    w = normalize_window(tw(*THURSDAY, 20))
    assert w.end == tw(*THURSDAY, 21, 30)
    assert w.truncated is True

    w = normalize_window(tw(*SATURDAY, 18, 30))
    assert w.end == tw(*SATURDAY, 21, 30)
    assert w.truncated is False


@pytest.mark.parametrize("day", [MONDAY, TUESDAY, WEDNESDAY, THURSDAY, SATURDAY])
@pytest.mark.parametrize("hour,minute", [(0, 0), (6, 59), (7, 0), (9, 15), (14, 45), (17, 59), (19, 0), (21, 0)])
def test_window_properties(day, hour, minute):
    requested = tw(*day, hour, minute)
    try:
        w = normalize_window(requested)
    except WindowExhausted:
        ceiling = DEFAULT_RULES.ceiling_for(requested.date())
        assert requested.timetz().replace(tzinfo=None) >= ceiling
        return

    local_start = w.start.astimezone(TZ)
    local_end = w.end.astimezone(TZ)
    assert local_start.time() >= time(7, 0)
    assert w.start >= requested
    assert w.length <= timedelta(hours=3)
    if not w.truncated:
        assert w.length == timedelta(hours=3)

    limit = time(18, 0) if day in (MONDAY, WEDNESDAY) else time(21, 30)
    assert local_end.date() == local_start.date()
    assert local_end.time() <= limit


def test_venue_uses_default_rules():
    assert normalize_window(tw(*TUESDAY, 9), Venue.classroom) == normalize_window(tw(*TUESDAY, 9))


def test_parse_start_with_offset():
    assert parse_start("2025-03-04T01:00:00Z") == datetime(2025, 3, 4, 1, tzinfo=timezone.utc)
    assert parse_start("2025-03-04T09:00:00+08:00") == tw(*TUESDAY, 9)


def test_parse_start_without_offset_uses_reference_zone():
    assert parse_start("2025-03-04T09:00") == tw(*TUESDAY, 9)


@pytest.mark.parametrize("raw", ["", "   ", "tomorrow", "2025-13-40T99:00"])
def test_parse_start_rejects_garbage(raw):
    with pytest.raises(InvalidStart):
        parse_start(raw)


@pytest.mark.parametrize("raw", ["9999-12-31T23:00:00+00:00", "9999-01-01T09:00", "0001-01-01T00:00:00+14:00"])
def test_parse_start_rejects_dates_beyond_horizon(raw):
    with pytest.raises(InvalidStart):
        parse_start(raw)


def test_normalize_near_datetime_limits():
    # 換成台北時間就超過 9999-12-31
    with pytest.raises(InvalidStart):
        normalize_window(datetime(9999, 12, 31, 23, tzinfo=timezone.utc))
    # 9999-12-31 是星期五，加三小時超出範圍
    with pytest.raises(InvalidStart):
        normalize_window(datetime(9999, 12, 31, 22, tzinfo=TZ))


def test_repeat_starts_two_weeks():
    # 第一筆：星期二 09:00，勾選一、三
    starts = build_repeat_starts(tw(*TUESDAY, 9), [[1, 3]])
    assert starts == [
        tw(*MONDAY, 9),
        tw(*WEDNESDAY, 9),
    ]


def test_repeat_starts_per_week_days():
    starts = build_repeat_starts(tw(*TUESDAY, 9), [[2], [4, 4, 9]])
    assert starts == [tw(*TUESDAY, 9), tw(2025, 3, 13, 9)]

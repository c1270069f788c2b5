from datetime import date, datetime, timedelta, timezone

import pytest

from openmrs_appointments import config
from openmrs_appointments.timefmt import (
    date_key,
    day_range,
    from_epoch_millis,
    parse_offset_iso,
    to_colon_offset_iso,
    to_compact_offset_iso,
    to_epoch_millis,
)

EAT = timezone(timedelta(hours=3))


def test_colon_form_uses_local_wall_clock():
    assert to_colon_offset_iso(datetime(2025, 11, 27, 12, 0)) == "2025-11-27T12:00:00+03:00"


def test_compact_form_has_millis_and_no_colon():
    dt = datetime(2025, 11, 27, 0, 0, 0, 123456)
    assert to_compact_offset_iso(dt) == "2025-11-27T00:00:00.123+0300"


def test_aware_input_keeps_its_own_offset():
    dt = datetime(2025, 1, 5, 8, 15, tzinfo=timezone(timedelta(hours=-5, minutes=-30)))
    assert to_colon_offset_iso(dt) == "2025-01-05T08:15:00-05:30"
    assert to_compact_offset_iso(dt) == "2025-01-05T08:15:00.000-0530"


def test_zero_offset_is_positive(monkeypatch):
    monkeypatch.setattr(config, "TZ_OFFSET_MINUTES", 0)
    assert to_colon_offset_iso(datetime(2025, 6, 1, 9, 30)).endswith("+00:00")


@pytest.mark.parametrize("dt", [
    datetime(2025, 11, 27, 12, 0, tzinfo=EAT),
    datetime(2024, 2, 29, 23, 59, 59, tzinfo=timezone(timedelta(hours=-7))),
    datetime(2030, 7, 1, 0, 0, 1, tzinfo=timezone(timedelta(hours=5, minutes=45))),
])
def test_both_forms_round_trip_to_the_same_instant(dt):
    assert parse_offset_iso(to_colon_offset_iso(dt)) == dt
    with_ms = dt.replace(microsecond=456000)
    assert parse_offset_iso(to_compact_offset_iso(with_ms)) == with_ms


def test_parse_rejects_missing_offset():
    with pytest.raises(ValueError):
        parse_offset_iso("2025-11-27T12:00:00")


def test_epoch_millis_round_trip():
    dt = datetime(2025, 11, 27, 12, 0, tzinfo=EAT)
    assert to_epoch_millis(dt) == 1764234000000
    assert from_epoch_millis(1764234000000) == dt


def test_day_range_covers_local_day():
    start, end = day_range(date(2025, 11, 27))
    assert start == "2025-11-27T00:00:00.000+0300"
    assert end == "2025-11-27T23:59:59.999+0300"


def test_date_key_uses_local_calendar_day():
    # 22:30 UTC is already the next day in UTC+03:00
    assert date_key(datetime(2025, 11, 26, 22, 30, tzinfo=timezone.utc)) == "2025-11-27"
    assert date_key(date(2025, 1, 2)) == "2025-01-02"

"""Date/time serialization for the OpenMRS appointments module.

OpenMRS wants two different offset spellings depending on the endpoint:

* creation and conflict payloads: ``2025-11-27T12:00:00+03:00`` (colon form)
* search and summary queries:     ``2025-11-27T00:00:00.000+0300`` (compact form)

Responses come back as Unix epoch milliseconds. Keep every conversion in
this module so call sites never build these strings by hand.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo

from dateutil.parser import isoparse
from dateutil.relativedelta import relativedelta

from . import config

_END_OF_DAY = time(23, 59, 59, 999000)


def local_tz() -> tzinfo | None:
    """Zone used for naive datetimes. ``None`` means the host's local zone."""
    if config.TZ_OFFSET_MINUTES is None:
        return None
    return timezone(timedelta(minutes=config.TZ_OFFSET_MINUTES))


def localize(dt: datetime) -> datetime:
    """Return an aware datetime; naive input is read as local wall-clock time."""
    if dt.tzinfo is not None and dt.utcoffset() is not None:
        return dt
    tz = local_tz()
    if tz is None:
        return dt.astimezone()
    return dt.replace(tzinfo=tz)


def today() -> date:
    tz = local_tz()
    if tz is None:
        return date.today()
    return datetime.now(tz).date()


def _offset_parts(dt: datetime) -> tuple[str, str, str]:
    minutes = int(dt.utcoffset().total_seconds() // 60)
    sign = "+" if minutes >= 0 else "-"
    hours, mins = divmod(abs(minutes), 60)
    return sign, f"{hours:02d}", f"{mins:02d}"


def to_colon_offset_iso(dt: datetime) -> str:
    """``YYYY-MM-DDTHH:MM:SS+HH:MM``, used for booking and conflict payloads."""
    dt = localize(dt)
    sign, hh, mm = _offset_parts(dt)
    return f"{dt.strftime('%Y-%m-%dT%H:%M:%S')}{sign}{hh}:{mm}"


def to_compact_offset_iso(dt: datetime) -> str:
    """``YYYY-MM-DDTHH:MM:SS.mmm+HHMM``, used for search and summary queries."""
    dt = localize(dt)
    sign, hh, mm = _offset_parts(dt)
    return f"{dt.strftime('%Y-%m-%dT%H:%M:%S')}.{dt.microsecond // 1000:03d}{sign}{hh}{mm}"


def parse_offset_iso(text: str) -> datetime:
    """Parse either offset form back into an aware datetime."""
    parsed = isoparse(text)
    if parsed.tzinfo is None:
        raise ValueError(f"timestamp has no UTC offset: {text!r}")
    return parsed


def from_epoch_millis(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def to_epoch_millis(dt: datetime) -> int:
    return int(localize(dt).timestamp() * 1000)


def date_key(day: date | datetime | None = None) -> str:
    """Key used by ``appointmentCountMap`` for a local calendar day."""
    if day is None:
        day = today()
    if isinstance(day, datetime):
        day = localize(day).astimezone(local_tz()).date()
    return day.strftime("%Y-%m-%d")


def day_range(day: date | None = None) -> tuple[str, str]:
    """Local start and end of ``day`` (default today) in compact form."""
    if day is None:
        day = today()
    start = localize(datetime.combine(day, time.min))
    end = localize(datetime.combine(day, _END_OF_DAY))
    return to_compact_offset_iso(start), to_compact_offset_iso(end)


def today_range() -> tuple[str, str]:
    return day_range(today())


def future_range(years: int = 5) -> tuple[str, str]:
    """From the start of today to the end of the same calendar day ``years`` ahead."""
    start_day = today()
    end_day = start_day + relativedelta(years=years)
    start = localize(datetime.combine(start_day, time.min))
    end = localize(datetime.combine(end_day, _END_OF_DAY))
    return to_compact_offset_iso(start), to_compact_offset_iso(end)

"""Create single and recurring appointments.

Recurrence is normally expanded by OpenMRS (``/recurring-appointments``).
Servers without that endpoint answer 404/405; in that case the series is
expanded here and each occurrence is booked as a single appointment.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta

from dateutil.parser import isoparse
from dateutil.relativedelta import relativedelta

from . import client
from .models import (
    Appointment,
    AppointmentRequest,
    ProviderRef,
    RecurrenceType,
    RecurringAppointmentRequest,
    RecurringAppointmentResponse,
    RecurringPattern,
)
from .result import Ok, Result
from .timefmt import localize, parse_offset_iso, to_colon_offset_iso

logger = logging.getLogger(__name__)

APPOINTMENT_KIND = "Scheduled"


def _creation_payload(request: AppointmentRequest) -> dict:
    payload = request.to_wire()
    payload["appointmentKind"] = APPOINTMENT_KIND
    payload["status"] = "Scheduled"
    return payload


def build_request(
    patient_uuid: str,
    service_uuid: str,
    location_uuid: str,
    day: date,
    start_time: time,
    duration_minutes: int,
    provider_uuid: str | None = None,
    comments: str | None = None,
    recurring_pattern: RecurringPattern | None = None,
) -> AppointmentRequest:
    """Turn booking-form values (local wall-clock) into a request payload."""
    start = localize(datetime.combine(day, start_time))
    end = start + timedelta(minutes=duration_minutes)
    fields = dict(
        patient_uuid=patient_uuid,
        service_uuid=service_uuid,
        location_uuid=location_uuid,
        start_date_time=to_colon_offset_iso(start),
        end_date_time=to_colon_offset_iso(end),
        providers=[ProviderRef(uuid=provider_uuid)] if provider_uuid else [],
        comments=comments,
    )
    if recurring_pattern is not None:
        return RecurringAppointmentRequest(recurring_pattern=recurring_pattern, **fields)
    return AppointmentRequest(**fields)


def build_pattern(
    kind: RecurrenceType | str,
    period: int,
    end_day: date,
    days_of_week: list[int] | None = None,
) -> RecurringPattern:
    return RecurringPattern(
        type=kind,
        period=period,
        end_date=to_colon_offset_iso(datetime.combine(end_day, time.min)),
        days_of_week=days_of_week or [],
    )


async def schedule_single_result(request: AppointmentRequest) -> Result[Appointment]:
    raw = await client.request(
        "POST", "/appointment", json=_creation_payload(request),
        source="Single appointment scheduling",
    )
    result = client.parse_one(raw, Appointment, "Single appointment scheduling")
    if result.ok:
        logger.info("Appointment %s successfully scheduled.", result.value.uuid)
    return result


async def schedule_single(request: AppointmentRequest) -> Appointment | None:
    """Book one appointment; ``None`` when OpenMRS did not confirm it."""
    return (await schedule_single_result(request)).unwrap_or(None)


async def schedule_recurring_result(
    request: RecurringAppointmentRequest,
) -> Result[list[RecurringAppointmentResponse]]:
    payload = _creation_payload(request)
    raw = await client.request(
        "POST", "/recurring-appointments", json=payload,
        source="Recurring appointment scheduling",
    )
    if not raw.ok and raw.status in (404, 405):
        logger.warning("Recurring endpoint unavailable (HTTP %s); expanding the series locally.", raw.status)
        return await _book_expanded(request)

    result = client.parse_list(raw, RecurringAppointmentResponse, "Recurring appointment scheduling")
    if result.ok:
        logger.info("Successfully scheduled %d recurring appointments.", len(result.value))
    return result


async def schedule_recurring(request: RecurringAppointmentRequest) -> list[RecurringAppointmentResponse] | None:
    """Book a series; ``None`` when the series could not be booked."""
    return (await schedule_recurring_result(request)).unwrap_or(None)


async def _book_expanded(request: RecurringAppointmentRequest) -> Result[list[RecurringAppointmentResponse]]:
    start = parse_offset_iso(request.start_date_time)
    end = parse_offset_iso(request.end_date_time)
    pattern = request.recurring_pattern
    single_fields = request.model_dump(exclude={"recurring_pattern"})

    booked: list[RecurringAppointmentResponse] = []
    for occ_start, occ_end in expand_recurrence(start, end, pattern):
        occurrence = AppointmentRequest(
            **{**single_fields, "start_date_time": to_colon_offset_iso(occ_start),
               "end_date_time": to_colon_offset_iso(occ_end)}
        )
        result = await schedule_single_result(occurrence)
        if not result.ok:
            logger.error(
                "Recurring series stopped at %s; already booked: %s",
                occurrence.start_date_time,
                [r.appointment_default_response.uuid for r in booked] or "none",
            )
            return result
        booked.append(RecurringAppointmentResponse(
            appointment_default_response=result.value,
            recurring_pattern=pattern.to_wire(),
        ))
    logger.info("Successfully scheduled %d recurring appointments.", len(booked))
    return Ok(booked)


def _horizon(end_date: str) -> date:
    # the calendar day as written, in the end date's own offset
    return isoparse(end_date).date()


def _placer(start: datetime):
    """Attach a zone to naive wall-clock occurrences.

    When ``start`` is in the local zone each occurrence is localized on its
    own, so a DST change moves the offset and not the wall-clock time. A start
    in some other fixed offset keeps that offset.
    """
    wall = start.replace(tzinfo=None)
    if localize(wall).utcoffset() == start.utcoffset():
        return localize
    return lambda naive: naive.replace(tzinfo=start.tzinfo)


def expand_recurrence(
    start: datetime, end: datetime, pattern: RecurringPattern,
) -> list[tuple[datetime, datetime]]:
    """Concrete ``(start, end)`` windows for a series, first window included.

    Occurrences keep the original duration and wall-clock time. The pattern's
    end date is inclusive. Monthly series skip months without the start's
    day-of-month; weekly series default to the start's weekday.
    """
    start = localize(start)
    duration = localize(end) - start
    place = _placer(start)
    wall = start.replace(tzinfo=None)
    horizon = _horizon(pattern.end_date)
    first_day = wall.date()
    walls: list[datetime] = []

    if pattern.type == RecurrenceType.DAY:
        step = 0
        while True:
            occ = wall + timedelta(days=step * pattern.period)
            if occ.date() > horizon:
                break
            walls.append(occ)
            step += 1

    elif pattern.type == RecurrenceType.WEEK:
        weekdays = pattern.days_of_week or [wall.isoweekday()]
        monday = first_day - timedelta(days=first_day.weekday())
        while monday <= horizon:
            for weekday in weekdays:
                day = monday + timedelta(days=weekday - 1)
                if first_day <= day <= horizon:
                    walls.append(datetime.combine(day, wall.time()))
            monday += timedelta(weeks=pattern.period)

    else:
        step = 0
        month_start = first_day.replace(day=1)
        while month_start <= horizon:
            occ = wall + relativedelta(months=step * pattern.period)
            # relativedelta clamps Jan 31 + 1 month to Feb 28
            if occ.day == wall.day and occ.date() <= horizon:
                walls.append(occ)
            step += 1
            month_start = first_day.replace(day=1) + relativedelta(months=step * pattern.period)

    starts = [place(w) for w in walls]
    return [(s, s + duration) for s in starts]

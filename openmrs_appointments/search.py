"""Appointment queries and the daily per-service summary."""
from __future__ import annotations

import logging
from datetime import date, datetime, timezone

from . import client
from .dashboard import total_for_day
from .models import (
    Appointment,
    AppointmentSearchPayload,
    AppointmentStatus,
    AppointmentSummary,
    PatientAppointment,
)
from .result import Result
from .timefmt import date_key, day_range, future_range, parse_offset_iso

logger = logging.getLogger(__name__)


async def search_appointments_result(payload: AppointmentSearchPayload) -> Result[list[Appointment]]:
    raw = await client.request(
        "POST", "/appointments/search", json=payload.to_wire(),
        source="Appointment search",
    )
    result = client.parse_list(raw, Appointment, "Appointment search")
    if result.ok:
        logger.info("Retrieved %d appointments matching the criteria.", len(result.value))
    return result


async def search_appointments(payload: AppointmentSearchPayload) -> list[Appointment]:
    return (await search_appointments_result(payload)).unwrap_or([])


async def get_appointments_for_day(
    day: date | None = None,
    status: AppointmentStatus | str | None = None,
) -> list[Appointment]:
    start, end = day_range(day)
    return await search_appointments(AppointmentSearchPayload(start_date=start, end_date=end, status=status))


async def get_all_future_appointments(
    status: AppointmentStatus | str | None = AppointmentStatus.SCHEDULED,
) -> list[Appointment]:
    """Bookings from the start of today up to five years ahead."""
    start, end = future_range()
    appointments = await search_appointments(
        AppointmentSearchPayload(start_date=start, end_date=end, status=status)
    )
    logger.info("Retrieved %d future appointments.", len(appointments))
    return appointments


async def get_all_future_appointments_for_patient(patient_uuid: str) -> list[Appointment]:
    start, end = future_range()
    return await search_appointments(AppointmentSearchPayload(
        start_date=start,
        end_date=end,
        status=AppointmentStatus.SCHEDULED,
        patient_uuid=patient_uuid,
    ))


async def list_patient_appointments(patient_uuid: str) -> list[PatientAppointment]:
    """All appointments of one patient via the legacy resource, oldest first."""
    if not patient_uuid:
        logger.error("Patient UUID is required to fetch appointments.")
        return []
    raw = await client.request(
        "GET", "/appointment", params={"patient": patient_uuid, "v": "full"},
        source="Patient appointments", body_limit=100,
    )
    appointments = client.parse_list(raw, PatientAppointment, "Patient appointments", key="results").unwrap_or([])
    return sorted(appointments, key=_start_instant)


_UNKNOWN_START = datetime.min.replace(tzinfo=timezone.utc)


def _start_instant(appointment: PatientAppointment) -> tuple[bool, datetime]:
    # entries without a readable start go last
    if not appointment.start_datetime:
        return True, _UNKNOWN_START
    try:
        return False, parse_offset_iso(appointment.start_datetime)
    except (ValueError, OverflowError):
        logger.warning("Unreadable start %r on appointment %s", appointment.start_datetime, appointment.uuid)
        return True, _UNKNOWN_START


async def get_daily_summary_result(day: date | None = None) -> Result[list[AppointmentSummary]]:
    start, end = day_range(day)
    raw = await client.request(
        "GET", "/appointment/appointmentSummary", params={"startDate": start, "endDate": end},
        source="Appointment summary API", body_limit=200,
    )
    result = client.parse_list(raw, AppointmentSummary, "Appointment summary API")
    if result.ok:
        logger.info("Fetched %d appointment service summaries.", len(result.value))
    return result


async def get_daily_summary(day: date | None = None) -> list[AppointmentSummary]:
    """One row per service with counts keyed by date; defaults to today."""
    return (await get_daily_summary_result(day)).unwrap_or([])


async def get_appointments_today_count() -> int:
    return total_for_day(await get_daily_summary(), date_key())

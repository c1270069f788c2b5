"""Reductions behind the appointments dashboard: metrics, filtering, paging."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Generic, Sequence, TypeVar

from pydantic import BaseModel, Field

from .models import Appointment, AppointmentStatus, AppointmentSummary

T = TypeVar("T")

ITEMS_PER_PAGE = 10


def _count(summary: AppointmentSummary, key: str) -> int:
    counts = summary.counts_for(key)
    return counts.all_appointments_count if counts else 0


def total_for_day(summaries: Sequence[AppointmentSummary], key: str) -> int:
    return sum(_count(s, key) for s in summaries)


def missed_for_day(summaries: Sequence[AppointmentSummary], key: str) -> int:
    total = 0
    for summary in summaries:
        counts = summary.counts_for(key)
        if counts:
            total += counts.missed_appointments_count
    return total


def highest_volume_service(summaries: Sequence[AppointmentSummary], key: str) -> AppointmentSummary | None:
    """Service with the most bookings on ``key``.

    Ties keep the earlier entry, so an all-zero list yields its first element.
    Only an empty list yields ``None``.
    """
    if not summaries:
        return None
    best = summaries[0]
    for current in summaries[1:]:
        if _count(current, key) > _count(best, key):
            best = current
    return best


def checked_in_count(appointments: Sequence[Appointment]) -> int:
    return sum(1 for a in appointments if a.status == AppointmentStatus.CHECKED_IN.value)


def filter_by_patient(appointments: Sequence[Appointment], query: str | None) -> list[Appointment]:
    """Case-insensitive match on patient name or identifier."""
    if not query:
        return list(appointments)
    needle = query.lower()
    matches = []
    for appt in appointments:
        patient = appt.patient
        if patient is None:
            continue
        if needle in (patient.name or "").lower() or needle in (patient.identifier or "").lower():
            matches.append(appt)
    return matches


@dataclass
class Page(Generic[T]):
    items: list[T]
    page: int
    total_pages: int
    total_items: int


def paginate(items: Sequence[T], page: int = 1, per_page: int = ITEMS_PER_PAGE) -> Page[T]:
    total_pages = math.ceil(len(items) / per_page)
    page = min(max(page, 1), max(total_pages, 1))
    start = (page - 1) * per_page
    return Page(items=list(items[start:start + per_page]), page=page,
                total_pages=total_pages, total_items=len(items))


class DashboardMetrics(BaseModel):
    date_key: str = Field(alias="dateKey")
    total_appointments: int = Field(alias="totalAppointments")
    missed_appointments: int = Field(alias="missedAppointments")
    checked_in: int = Field(alias="checkedIn")
    highest_volume_service: str | None = Field(default=None, alias="highestVolumeService")
    highest_volume_count: int = Field(default=0, alias="highestVolumeCount")

    model_config = {"populate_by_name": True}


def build_metrics(
    summaries: Sequence[AppointmentSummary],
    appointments: Sequence[Appointment],
    key: str,
) -> DashboardMetrics:
    top = highest_volume_service(summaries, key)
    return DashboardMetrics(
        date_key=key,
        total_appointments=total_for_day(summaries, key),
        missed_appointments=missed_for_day(summaries, key),
        checked_in=checked_in_count(appointments),
        highest_volume_service=top.appointment_service.name if top else None,
        highest_volume_count=_count(top, key) if top else 0,
    )

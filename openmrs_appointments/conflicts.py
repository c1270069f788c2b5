"""Pre-flight overlap check for a proposed booking.

Advisory only: nothing here blocks scheduling. A failed check reports
"no conflicts" so an outage never stops a clinic from booking.
"""
from __future__ import annotations

import logging

from . import client
from .models import AppointmentRequest, ConflictAppointment
from .result import Result

logger = logging.getLogger(__name__)


async def check_conflicts_result(request: AppointmentRequest) -> Result[list[ConflictAppointment]]:
    raw = await client.request(
        "POST", "/appointments/conflicts", json=request.to_wire(),
        source="Conflict check API", body_limit=200,
    )
    result = client.parse_list(raw, ConflictAppointment, "Conflict check API")
    if result.ok:
        if result.value:
            logger.warning("Conflict detected! Found %d overlapping appointments.", len(result.value))
        else:
            logger.info("No conflicts found. Appointment is clear to book.")
    return result


async def check_conflicts(request: AppointmentRequest) -> list[ConflictAppointment]:
    """Overlapping bookings for ``request``; empty when clear or when the check failed."""
    return (await check_conflicts_result(request)).unwrap_or([])


async def has_conflicts(request: AppointmentRequest) -> bool:
    return bool(await check_conflicts(request))

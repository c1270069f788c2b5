"""Appointment status changes.

OpenMRS is the only authority on which transitions are legal: any target
status is sent as requested. ``ALLOWED_TRANSITIONS`` describes the usual
front-desk flow for callers that want to warn a user, but
:func:`update_status` never consults it.
"""
from __future__ import annotations

import logging

from . import client
from .models import Appointment, AppointmentStatus, StatusUpdate
from .result import Result

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset({
        AppointmentStatus.CHECKED_IN, AppointmentStatus.CANCELLED, AppointmentStatus.MISSED,
    }),
    AppointmentStatus.CHECKED_IN: frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.MISSED: frozenset(),
}

# dedicated endpoint missing on this server -> read-modify-write instead
_FALLBACK_STATUSES = (404, 405)


def is_transition_allowed(current: AppointmentStatus | str, target: AppointmentStatus | str) -> bool:
    return AppointmentStatus(target) in ALLOWED_TRANSITIONS[AppointmentStatus(current)]


def _with_reason(body: dict, update: StatusUpdate) -> dict:
    if update.status == AppointmentStatus.CANCELLED and update.cancel_reason:
        body["cancelReason"] = update.cancel_reason
    return body


async def _via_status_change(update: StatusUpdate) -> Result[Appointment]:
    body = _with_reason({"toStatus": update.status.value}, update)
    raw = await client.request(
        "POST", f"/appointments/{update.uuid}/status-change", json=body,
        source="Appointment status update",
    )
    return client.parse_one(raw, Appointment, "Appointment status update")


async def _via_resource_update(update: StatusUpdate) -> Result[Appointment]:
    path = f"/appointment/{update.uuid}"
    current = await client.request("GET", path, source="Fetch current appointment")
    if not current.ok:
        return current
    if not isinstance(current.value, dict):
        return client.parse_one(current, Appointment, "Fetch current appointment")

    body = _with_reason({**current.value, "status": update.status.value}, update)
    raw = await client.request("POST", path, json=body, source="Appointment status update")
    return client.parse_one(raw, Appointment, "Appointment status update")


async def update_status_result(update: StatusUpdate) -> Result[Appointment]:
    result = await _via_status_change(update)
    if not result.ok and result.status in _FALLBACK_STATUSES:
        logger.warning(
            "status-change endpoint unavailable (HTTP %s); updating appointment %s directly.",
            result.status, update.uuid,
        )
        result = await _via_resource_update(update)
    if result.ok:
        logger.info("Appointment %s status successfully updated to %s.", result.value.uuid, result.value.status)
    return result


async def update_status(update: StatusUpdate) -> Appointment | None:
    """Apply ``update``; ``None`` when OpenMRS did not accept it."""
    return (await update_status_result(update)).unwrap_or(None)


async def check_in(uuid: str) -> Appointment | None:
    return await update_status(StatusUpdate(uuid=uuid, status=AppointmentStatus.CHECKED_IN))


async def check_out(uuid: str) -> Appointment | None:
    return await update_status(StatusUpdate(uuid=uuid, status=AppointmentStatus.COMPLETED))


async def cancel(uuid: str, reason: str | None = None) -> Appointment | None:
    return await update_status(StatusUpdate(uuid=uuid, status=AppointmentStatus.CANCELLED, cancel_reason=reason))


async def mark_missed(uuid: str) -> Appointment | None:
    return await update_status(StatusUpdate(uuid=uuid, status=AppointmentStatus.MISSED))

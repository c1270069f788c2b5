import json

import httpx
import pytest
import respx

from openmrs_appointments import status
from openmrs_appointments.models import AppointmentRequest, AppointmentStatus, StatusUpdate
from openmrs_appointments.scheduler import schedule_single
from conftest import API, BASE, load_fixture


def _appt(**changes):
    return {**load_fixture("appointment_created.json"), **changes}


@pytest.mark.asyncio
async def test_check_in_posts_to_status_change():
    with respx.mock(base_url=BASE) as m:
        route = m.post(f"{API}/appointments/appt-123/status-change").respond(200, json=_appt(status="CheckedIn"))

        updated = await status.update_status(StatusUpdate(uuid="appt-123", status="CheckedIn"))

        assert updated.status == "CheckedIn"
        assert json.loads(route.calls.last.request.content) == {"toStatus": "CheckedIn"}


@pytest.mark.asyncio
async def test_skipping_check_in_is_not_blocked_locally():
    # Scheduled -> Completed is sent as-is; OpenMRS decides
    with respx.mock(base_url=BASE) as m:
        route = m.post(f"{API}/appointments/appt-123/status-change").respond(200, json=_appt(status="Completed"))

        updated = await status.update_status(StatusUpdate(uuid="appt-123", status="Completed"))

        assert updated.status == "Completed"
        assert route.called


@pytest.mark.asyncio
async def test_cancel_reason_only_sent_when_cancelling():
    with respx.mock(base_url=BASE) as m:
        route = m.post(f"{API}/appointments/appt-123/status-change").respond(200, json=_appt(status="Missed"))

        await status.update_status(StatusUpdate(uuid="appt-123", status="Missed", cancel_reason="ignored"))
        assert json.loads(route.calls.last.request.content) == {"toStatus": "Missed"}

        route.respond(200, json=_appt(status="Cancelled", cancelReason="Patient travelled"))
        cancelled = await status.cancel("appt-123", "Patient travelled")
        assert json.loads(route.calls.last.request.content) == {
            "toStatus": "Cancelled", "cancelReason": "Patient travelled",
        }
        assert cancelled.cancel_reason == "Patient travelled"


@pytest.mark.asyncio
async def test_falls_back_to_read_modify_write_when_endpoint_missing():
    current = _appt(customField="keep-me")
    with respx.mock(base_url=BASE) as m:
        m.post(f"{API}/appointments/appt-123/status-change").respond(404)
        m.get(f"{API}/appointment/appt-123").respond(200, json=current)
        write = m.post(f"{API}/appointment/appt-123").respond(200, json=_appt(status="CheckedIn"))

        updated = await status.check_in("appt-123")

        assert updated.status == "CheckedIn"
        body = json.loads(write.calls.last.request.content)
        assert body["status"] == "CheckedIn"
        assert body["customField"] == "keep-me"
        assert body["appointmentNumber"] == "0042"


@pytest.mark.asyncio
async def test_no_fallback_on_other_rejections():
    with respx.mock(base_url=BASE) as m:
        m.post(f"{API}/appointments/appt-123/status-change").respond(400, text="Invalid transition")

        assert await status.check_out("appt-123") is None


@pytest.mark.asyncio
async def test_network_error_returns_none():
    with respx.mock(base_url=BASE) as m:
        m.post(f"{API}/appointments/appt-123/status-change").mock(side_effect=httpx.ConnectError("down"))

        assert await status.mark_missed("appt-123") is None


def test_transition_table_describes_front_desk_flow():
    assert status.is_transition_allowed("Scheduled", "CheckedIn")
    assert status.is_transition_allowed(AppointmentStatus.CHECKED_IN, AppointmentStatus.COMPLETED)
    assert not status.is_transition_allowed("Scheduled", "Completed")
    assert not status.is_transition_allowed("Cancelled", "Scheduled")


@pytest.mark.asyncio
async def test_book_then_check_in():
    request = AppointmentRequest(
        patient_uuid="P1", service_uuid="S1", location_uuid="L1",
        start_date_time="2025-11-27T12:00:00+03:00", end_date_time="2025-11-27T12:30:00+03:00",
    )
    with respx.mock(base_url=BASE) as m:
        create = m.post(f"{API}/appointment").respond(200, json=_appt())
        change = m.post(f"{API}/appointments/appt-123/status-change").respond(200, json=_appt(status="CheckedIn"))

        booked = await schedule_single(request)
        assert booked.status == "Scheduled"
        assert json.loads(create.calls.last.request.content)["startDateTime"] == "2025-11-27T12:00:00+03:00"

        checked_in = await status.check_in(booked.uuid)
        assert checked_in.status == "CheckedIn"
        assert json.loads(change.calls.last.request.content) == {"toStatus": "CheckedIn"}

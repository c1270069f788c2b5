import asyncio
import logging
import uuid as uuidlib
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

from . import catalog, config, conflicts, dashboard, scheduler, search, status
from .client import bind_session
from .models import (
    Appointment,
    AppointmentRequest,
    AppointmentSearchPayload,
    AppointmentStatus,
    RecurringAppointmentRequest,
    RecurringAppointmentResponse,
    StatusUpdate,
)
from .timefmt import date_key, parse_offset_iso, to_epoch_millis

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


class StatusChangeRequest(BaseModel):
    status: AppointmentStatus
    cancel_reason: Optional[str] = None


class DashboardResponse(BaseModel):
    metrics: dashboard.DashboardMetrics
    appointments: list[Appointment]
    page: int
    total_pages: int = Field(alias="totalPages")
    total_items: int = Field(alias="totalItems")

    model_config = {"populate_by_name": True}


# HTTPBearer scheme so Swagger-UI can attach the Authorization header globally
auth_scheme = HTTPBearer(auto_error=False)

app = FastAPI(title="OpenMRS Appointment Adapter")


def verify_api_key(credentials: HTTPAuthorizationCredentials = Depends(auth_scheme)):
    """Validate Bearer token provided via Authorization header"""
    if (
        credentials is None
        or credentials.scheme.lower() != "bearer"
        or not config.ADAPTER_API_KEY
        or credentials.credentials != config.ADAPTER_API_KEY
    ):
        raise HTTPException(status_code=401, detail="Invalid API key")


async def openmrs_session(request: Request):
    """Forward the caller's OpenMRS cookie, if any, to calls made for this request."""
    bind_session(request.cookies.get("JSESSIONID"))


guarded = [Depends(verify_api_key), Depends(openmrs_session)]


def _offline_appointment(start: str, end: str, patient: str, appt_status: str = "Scheduled") -> Appointment:
    return Appointment(
        uuid=str(uuidlib.uuid4()),
        appointment_number="offline-demo",
        patient={"uuid": patient, "name": "Demo Patient"},
        start_date_time=to_epoch_millis(parse_offset_iso(start)),
        end_date_time=to_epoch_millis(parse_offset_iso(end)),
        status=appt_status,
    )


# Catalog -------------------------------------------------------------------

@app.get("/catalog/locations", dependencies=guarded)
async def get_locations():
    return await catalog.list_bookable_locations()


@app.get("/catalog/services", dependencies=guarded)
async def get_services():
    return await catalog.list_services()


@app.get("/catalog/providers", dependencies=guarded)
async def get_providers():
    return await catalog.list_providers()


@app.get("/catalog/options", dependencies=guarded)
async def get_options():
    return await catalog.get_scheduling_options()


# Booking -------------------------------------------------------------------

@app.post("/appointments/conflicts", dependencies=guarded)
async def post_conflicts(req: AppointmentRequest):
    """Overlapping bookings; an empty list means clear to book."""
    return await conflicts.check_conflicts(req)


@app.post("/appointments", dependencies=guarded, response_model=Appointment)
async def post_appointment(req: AppointmentRequest):
    if config.offline_mode():
        return _offline_appointment(req.start_date_time, req.end_date_time, req.patient_uuid)
    appt = await scheduler.schedule_single(req)
    if appt is None:
        raise HTTPException(status_code=502, detail="Scheduling failed")
    return appt


@app.post("/appointments/recurring", dependencies=guarded, response_model=list[RecurringAppointmentResponse])
async def post_recurring(req: RecurringAppointmentRequest):
    if config.offline_mode():
        windows = scheduler.expand_recurrence(
            parse_offset_iso(req.start_date_time), parse_offset_iso(req.end_date_time), req.recurring_pattern,
        )
        return [
            RecurringAppointmentResponse(
                appointment_default_response=_offline_appointment(
                    s.isoformat(), e.isoformat(), req.patient_uuid,
                ),
                recurring_pattern=req.recurring_pattern.to_wire(),
            )
            for s, e in windows
        ]
    booked = await scheduler.schedule_recurring(req)
    if booked is None:
        raise HTTPException(status_code=502, detail="Recurring scheduling failed")
    return booked


# Queries -------------------------------------------------------------------

@app.post("/appointments/search", dependencies=guarded)
async def post_search(payload: AppointmentSearchPayload):
    return await search.search_appointments(payload)


@app.get("/appointments/future", dependencies=guarded)
async def get_future(patient_uuid: Optional[str] = Query(None)):
    if patient_uuid:
        return await search.get_all_future_appointments_for_patient(patient_uuid)
    return await search.get_all_future_appointments()


@app.get("/appointments/summary", dependencies=guarded)
async def get_summary(day: Optional[date] = Query(None, description="YYYY-MM-DD, defaults to today")):
    return await search.get_daily_summary(day)


@app.get("/appointments/dashboard", dependencies=guarded, response_model=DashboardResponse)
async def get_dashboard(
    page: int = Query(1, ge=1),
    query: Optional[str] = Query(None, description="Patient name or identifier"),
    appt_status: Optional[AppointmentStatus] = Query(None, alias="status"),
):
    """Today's metrics plus one page of today's appointments."""
    summaries, appointments = await asyncio.gather(
        search.get_daily_summary(),
        search.get_appointments_for_day(status=appt_status),
    )
    metrics = dashboard.build_metrics(summaries, appointments, date_key())
    paged = dashboard.paginate(dashboard.filter_by_patient(appointments, query), page)
    return DashboardResponse(
        metrics=metrics,
        appointments=paged.items,
        page=paged.page,
        total_pages=paged.total_pages,
        total_items=paged.total_items,
    )


@app.get("/patients/{patient_uuid}/appointments", dependencies=guarded)
async def get_patient_appointments(patient_uuid: str):
    return await search.list_patient_appointments(patient_uuid)


# Status --------------------------------------------------------------------

@app.post("/appointments/{appointment_uuid}/status", dependencies=guarded, response_model=Appointment)
async def post_status(appointment_uuid: str, req: StatusChangeRequest):
    if config.offline_mode():
        now = datetime.now(timezone.utc)
        return Appointment(
            uuid=appointment_uuid,
            status=req.status.value,
            start_date_time=to_epoch_millis(now),
            end_date_time=to_epoch_millis(now + timedelta(minutes=30)),
            cancel_reason=req.cancel_reason if req.status == AppointmentStatus.CANCELLED else None,
        )
    appt = await status.update_status(
        StatusUpdate(uuid=appointment_uuid, status=req.status, cancel_reason=req.cancel_reason)
    )
    if appt is None:
        raise HTTPException(status_code=502, detail="Status update failed")
    return appt

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .timefmt import from_epoch_millis, parse_offset_iso


class AppointmentStatus(str, Enum):
    SCHEDULED = "Scheduled"
    CHECKED_IN = "CheckedIn"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    MISSED = "Missed"


class RecurrenceType(str, Enum):
    DAY = "DAY"
    WEEK = "WEEK"
    MONTH = "MONTH"


class _WireModel(BaseModel):
    """Outgoing payloads: camelCase on the wire, snake_case in Python."""

    model_config = {"populate_by_name": True}

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class _ResponseModel(BaseModel):
    # keep unmodelled server fields so a read-modify-write does not drop them
    model_config = {"populate_by_name": True, "extra": "allow"}


# Reference data ------------------------------------------------------------

class Location(_ResponseModel):
    uuid: str
    display: str = ""


class Provider(_ResponseModel):
    uuid: str
    display: str = ""


class Speciality(_ResponseModel):
    uuid: str | None = None
    name: str | None = None


class ServiceType(_ResponseModel):
    uuid: str
    name: str = ""
    duration: int | None = None  # minutes


class AppointmentServiceType(_ResponseModel):
    uuid: str
    display: str = ""
    duration: int | None = None


class AppointmentService(_ResponseModel):
    uuid: str
    name: str = ""
    appointment_service_id: int | None = Field(default=None, alias="appointmentServiceId")
    description: str | None = None
    speciality: Speciality | None = None
    duration_mins: int | None = Field(default=None, alias="durationMins")
    color: str | None = None
    service_types: list[ServiceType] = Field(default_factory=list, alias="serviceTypes")

    @field_validator("service_types", mode="before")
    @classmethod
    def _null_service_types(cls, v):
        return v or []


class SchedulingOptions(BaseModel):
    service_types: list[AppointmentServiceType] = Field(default_factory=list, alias="serviceTypes")
    providers: list[Provider] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


# Write side ----------------------------------------------------------------

def _offset_instant(text: str) -> datetime:
    try:
        return parse_offset_iso(text)
    except (ValueError, OverflowError) as exc:
        raise ValueError(f"expected an ISO timestamp with a UTC offset, got {text!r}") from exc


class ProviderRef(_WireModel):
    uuid: str


class AppointmentRequest(_WireModel):
    """A proposed booking. Times carry an explicit ``+HH:MM`` offset."""

    patient_uuid: str = Field(alias="patientUuid", min_length=1)
    service_uuid: str = Field(alias="serviceUuid", min_length=1)
    location_uuid: str = Field(alias="locationUuid", min_length=1)
    start_date_time: str = Field(alias="startDateTime")
    end_date_time: str = Field(alias="endDateTime")
    providers: list[ProviderRef] = Field(default_factory=list)
    comments: str = "Scheduled appointment"

    @field_validator("comments", mode="before")
    @classmethod
    def _default_comments(cls, v):
        return v or "Scheduled appointment"

    @field_validator("start_date_time", "end_date_time")
    @classmethod
    def _explicit_offset(cls, v: str) -> str:
        _offset_instant(v)
        return v

    @model_validator(mode="after")
    def _end_after_start(self):
        if _offset_instant(self.end_date_time) <= _offset_instant(self.start_date_time):
            raise ValueError("endDateTime must be after startDateTime")
        return self


class RecurringPattern(_WireModel):
    type: RecurrenceType
    period: int = Field(default=1, ge=1)
    end_date: str = Field(alias="endDate")
    days_of_week: list[int] = Field(default_factory=list, alias="daysOfWeek")

    @field_validator("end_date")
    @classmethod
    def _end_date_offset(cls, v: str) -> str:
        _offset_instant(v)
        return v

    @field_validator("days_of_week")
    @classmethod
    def _valid_weekdays(cls, v: list[int]) -> list[int]:
        for day in v:
            if not 1 <= day <= 7:
                raise ValueError(f"daysOfWeek entries must be 1-7 (Monday=1), got {day}")
        return sorted(set(v))

    @model_validator(mode="after")
    def _weekdays_only_for_weekly(self):
        if self.type != RecurrenceType.WEEK:
            self.days_of_week = []
        return self


class RecurringAppointmentRequest(AppointmentRequest):
    recurring_pattern: RecurringPattern = Field(alias="recurringPattern")


class AppointmentSearchPayload(_WireModel):
    """Search filters. Dates use the compact ``+HHMM`` offset form."""

    start_date: str = Field(alias="startDate")
    end_date: str = Field(alias="endDate")
    status: Optional[AppointmentStatus] = None
    service_uuid: Optional[str] = Field(default=None, alias="serviceUuid")
    location_uuid: Optional[str] = Field(default=None, alias="locationUuid")
    patient_uuid: Optional[str] = Field(default=None, alias="patientUuid")


class StatusUpdate(BaseModel):
    uuid: str = Field(min_length=1)
    status: AppointmentStatus
    cancel_reason: Optional[str] = Field(default=None, alias="cancelReason")

    model_config = {"populate_by_name": True}


# Read side -----------------------------------------------------------------

class PatientSnapshot(_ResponseModel):
    uuid: str
    name: str = ""
    identifier: str | None = None


class ServiceSnapshot(_ResponseModel):
    uuid: str
    name: str = ""


class LocationSnapshot(_ResponseModel):
    uuid: str
    name: str | None = None
    display: str | None = None


class Appointment(_ResponseModel):
    """Appointment as returned by OpenMRS; times are epoch milliseconds."""

    uuid: str
    appointment_number: str | None = Field(default=None, alias="appointmentNumber")
    patient: PatientSnapshot | None = None
    service: ServiceSnapshot | None = None
    location: LocationSnapshot | None = None
    providers: list[dict] = Field(default_factory=list)
    start_date_time: int | None = Field(default=None, alias="startDateTime")
    end_date_time: int | None = Field(default=None, alias="endDateTime")
    status: str | None = None
    comments: str | None = None
    recurring: bool = False
    cancel_reason: str | None = Field(default=None, alias="cancelReason")

    @field_validator("providers", mode="before")
    @classmethod
    def _null_providers(cls, v):
        return v or []

    @property
    def start(self) -> datetime | None:
        return from_epoch_millis(self.start_date_time) if self.start_date_time is not None else None

    @property
    def end(self) -> datetime | None:
        return from_epoch_millis(self.end_date_time) if self.end_date_time is not None else None


class ConflictAppointment(Appointment):
    pass


class RecurringAppointmentResponse(_ResponseModel):
    appointment_default_response: Appointment = Field(alias="appointmentDefaultResponse")
    recurring_pattern: dict | None = Field(default=None, alias="recurringPattern")


class PatientAppointment(_ResponseModel):
    """Legacy ``/appointment?patient=`` representation."""

    uuid: str
    start_datetime: str | None = Field(default=None, alias="startDatetime")
    end_datetime: str | None = Field(default=None, alias="endDatetime")
    status: str | None = None
    service_type: dict = Field(default_factory=dict, alias="serviceType")
    location: dict | None = None
    provider: dict | None = None
    patient: dict | None = None
    reason: str | None = None


class CountDetails(_ResponseModel):
    all_appointments_count: int = Field(default=0, alias="allAppointmentsCount")
    missed_appointments_count: int = Field(default=0, alias="missedAppointmentsCount")
    appointment_date: int | None = Field(default=None, alias="appointmentDate")
    appointment_service_uuid: str | None = Field(default=None, alias="appointmentServiceUuid")


class AppointmentSummary(_ResponseModel):
    """Per-service counts keyed by ``YYYY-MM-DD``."""

    appointment_service: AppointmentService = Field(alias="appointmentService")
    appointment_count_map: dict[str, CountDetails] = Field(default_factory=dict, alias="appointmentCountMap")

    def counts_for(self, key: str) -> CountDetails | None:
        return self.appointment_count_map.get(key)

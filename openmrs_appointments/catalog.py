"""Reference data needed to book an appointment.

Lookups degrade to an empty list on any failure so a form can show
"no options" instead of breaking. Successful results are cached for the
life of the process; call :func:`clear_catalog_cache` to refresh.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from . import client
from .models import AppointmentService, AppointmentServiceType, Location, Provider, SchedulingOptions
from .result import Ok, Result

logger = logging.getLogger(__name__)

_CATALOG_CACHE: dict[str, list[Any]] = {}

APPOINTMENT_LOCATION_TAG = "Appointment Location"


def clear_catalog_cache() -> None:
    _CATALOG_CACHE.clear()


async def _cached(name: str, fetch) -> Result[list[Any]]:
    if name in _CATALOG_CACHE:
        return Ok(list(_CATALOG_CACHE[name]))
    result = await fetch()
    # only cache real data; an empty or failed lookup is retried next time
    if result.ok and result.value:
        _CATALOG_CACHE[name] = list(result.value)
    return result


async def list_bookable_locations_result() -> Result[list[Location]]:
    async def fetch():
        raw = await client.request(
            "GET", "/location", params={"tag": APPOINTMENT_LOCATION_TAG},
            source="Location API", body_limit=200,
        )
        return client.parse_list(raw, Location, "Location API", key="results")

    result = await _cached("locations", fetch)
    if result.ok:
        logger.info("Fetched %d appointment locations.", len(result.value))
    return result


async def list_bookable_locations() -> list[Location]:
    return (await list_bookable_locations_result()).unwrap_or([])


async def list_services_result() -> Result[list[AppointmentService]]:
    async def fetch():
        raw = await client.request(
            "GET", "/appointmentService/all/full",
            source="Appointment Service API", body_limit=200,
        )
        return client.parse_list(raw, AppointmentService, "Appointment Service API")

    result = await _cached("services", fetch)
    if result.ok:
        logger.info("Fetched %d appointment services.", len(result.value))
    return result


async def list_services() -> list[AppointmentService]:
    return (await list_services_result()).unwrap_or([])


async def list_providers_result() -> Result[list[Provider]]:
    async def fetch():
        raw = await client.request(
            "GET", "/provider", params={"v": "custom:(uuid,display,retired)"},
            source="Provider API", body_limit=200,
        )
        return client.parse_list(raw, Provider, "Provider API", key="results", skip_retired=True)

    return await _cached("providers", fetch)


async def list_providers() -> list[Provider]:
    return (await list_providers_result()).unwrap_or([])


async def list_service_types_result() -> Result[list[AppointmentServiceType]]:
    async def fetch():
        raw = await client.request(
            "GET", "/appointmentservicetype", params={"v": "custom:(uuid,display,duration,retired)"},
            source="Appointment Service Type API", body_limit=200,
        )
        return client.parse_list(
            raw, AppointmentServiceType, "Appointment Service Type API", key="results", skip_retired=True,
        )

    return await _cached("service_types", fetch)


async def list_service_types() -> list[AppointmentServiceType]:
    return (await list_service_types_result()).unwrap_or([])


async def get_scheduling_options() -> SchedulingOptions:
    """Service types and providers for the booking form, fetched together."""
    service_types, providers = await asyncio.gather(list_service_types(), list_providers())
    return SchedulingOptions(service_types=service_types, providers=providers)

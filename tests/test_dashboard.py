from openmrs_appointments import dashboard
from openmrs_appointments.models import Appointment, AppointmentSummary
from conftest import load_fixture

KEY = "2025-11-27"


def _summary(name, count, missed=0):
    return AppointmentSummary.model_validate({
        "appointmentService": {"uuid": name, "name": name},
        "appointmentCountMap": {KEY: {"allAppointmentsCount": count, "missedAppointmentsCount": missed}},
    })


def _appointments():
    return [Appointment.model_validate(a) for a in load_fixture("appointment_search.json")]


def test_highest_volume_strictly_greater_wins():
    rows = [_summary("A", 2), _summary("B", 5), _summary("C", 3)]
    assert dashboard.highest_volume_service(rows, KEY).appointment_service.name == "B"


def test_highest_volume_tie_keeps_earlier():
    rows = [_summary("A", 1), _summary("B", 4), _summary("C", 4)]
    assert dashboard.highest_volume_service(rows, KEY).appointment_service.name == "B"


def test_highest_volume_all_zero_returns_first():
    rows = [_summary("A", 0), _summary("B", 0)]
    assert dashboard.highest_volume_service(rows, KEY) is rows[0]


def test_highest_volume_missing_key_counts_as_zero():
    rows = [_summary("A", 0), _summary("B", 3)]
    assert dashboard.highest_volume_service(rows, "2025-11-28") is rows[0]


def test_highest_volume_empty_is_none():
    assert dashboard.highest_volume_service([], KEY) is None


def test_metrics_from_fixture():
    summaries = [AppointmentSummary.model_validate(s) for s in load_fixture("appointment_summary.json")]
    metrics = dashboard.build_metrics(summaries, _appointments(), KEY)
    assert metrics.total_appointments == 11
    assert metrics.missed_appointments == 3
    assert metrics.checked_in == 1
    assert metrics.highest_volume_service == "Dental"
    assert metrics.highest_volume_count == 7


def test_filter_by_name_or_identifier_case_insensitive():
    appts = _appointments()
    assert [a.uuid for a in dashboard.filter_by_patient(appts, "otieno")] == ["appt-2"]
    assert [a.uuid for a in dashboard.filter_by_patient(appts, "mrn-1001")] == ["appt-1"]
    assert dashboard.filter_by_patient(appts, "") == appts


def test_paginate_clamps_page():
    items = list(range(23))
    page = dashboard.paginate(items, 3)
    assert page.items == [20, 21, 22]
    assert page.total_pages == 3
    assert dashboard.paginate(items, 99).page == 3
    assert dashboard.paginate([], 2).page == 1
    assert dashboard.paginate([], 2).total_pages == 0

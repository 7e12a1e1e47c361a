from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime
from decimal import Decimal

import pytest

from hr_record_store.attendance.model import NewAttendance, Punch
from hr_record_store.core.enums import AttendanceStatus, PunchSource
from hr_record_store.core.exceptions import DuplicateKeyError, InvalidReferenceError, NotFoundError, ValidationError
from hr_record_store.employees.model import TerminationDetails

DAY = date(2025, 3, 3)


def at(hour, minute=0, day=DAY):
    return datetime(day.year, day.month, day.day, hour, minute)


def test_one_record_per_employee_and_date(container, employee):
    container.attendance_service.create(NewAttendance(employee=employee.id, date=DAY))
    with pytest.raises(DuplicateKeyError):
        container.attendance_service.create(NewAttendance(employee=employee.id, date=DAY))


def test_concurrent_creates_for_same_day(container, employee):
    barrier = threading.Barrier(2)

    def create():
        barrier.wait()
        try:
            return container.attendance_service.create(NewAttendance(employee=employee.id, date=DAY))
        except DuplicateKeyError as exc:
            return exc

    with ThreadPoolExecutor(max_workers=2) as pool:
        outcomes = list(pool.map(lambda _: create(), range(2)))

    assert sum(isinstance(o, DuplicateKeyError) for o in outcomes) == 1
    assert len(container.attendance_service.history(employee.id)) == 1


def test_unknown_or_separated_employee_rejected(container, employee):
    with pytest.raises(InvalidReferenceError):
        container.attendance_service.create(NewAttendance(employee="missing", date=DAY))

    container.employee_service.terminate(employee.id, TerminationDetails(termination_date=DAY))
    with pytest.raises(InvalidReferenceError):
        container.attendance_service.record_check_in(employee.id, at=at(9))


def test_history_is_newest_first(container, employee):
    for day in (date(2025, 3, 5), date(2025, 3, 1), date(2025, 3, 3), date(2025, 2, 27)):
        container.attendance_service.create(NewAttendance(employee=employee.id, date=day))

    dates = [r.date for r in container.attendance_service.history(employee.id)]
    assert dates == sorted(dates, reverse=True)

    bounded = container.attendance_service.history(
        employee.id, start_date=date(2025, 3, 1), end_date=date(2025, 3, 3)
    )
    assert [r.date for r in bounded] == [date(2025, 3, 3), date(2025, 3, 1)]


def test_day_of_punches_derives_totals(container, employee):
    svc = container.attendance_service
    svc.record_check_in(employee.id, at=at(9), location="HQ")
    svc.start_break(employee.id, at=at(12), reason="Lunch")
    svc.end_break(employee.id, at=at(12, 30))
    record = svc.record_check_out(employee.id, at=at(17, 30))

    assert record.check_in.location == "HQ"
    assert record.check_in.source == PunchSource.MANUAL
    assert record.breaks[0].duration == 30
    assert record.total_break_time == 30
    assert record.total_work_hours == Decimal("8.00")
    assert record.is_closed


def test_check_in_keeps_earliest_and_check_out_latest(container, employee):
    svc = container.attendance_service
    first = svc.record_check_in(employee.id, at=at(9))
    same = svc.record_check_in(employee.id, at=at(9, 15))
    assert same.version == first.version
    assert same.check_in.time == at(9)

    earlier = svc.record_check_in(employee.id, at=at(8, 45))
    assert earlier.check_in.time == at(8, 45)

    svc.record_check_out(employee.id, at=at(18))
    kept = svc.record_check_out(employee.id, at=at(17))
    assert kept.check_out.time == at(18)


def test_break_rules(container, employee):
    svc = container.attendance_service
    svc.record_check_in(employee.id, at=at(9))
    with pytest.raises(ValidationError):
        svc.end_break(employee.id, at=at(10))

    svc.start_break(employee.id, at=at(10))
    with pytest.raises(ValidationError):
        svc.start_break(employee.id, at=at(10, 5))


def test_check_out_cannot_precede_check_in(container, employee):
    with pytest.raises(ValidationError):
        container.attendance_service.create(
            NewAttendance(employee=employee.id, date=DAY, check_in=Punch(time=at(10)), check_out=Punch(time=at(9)))
        )


def test_update_rejects_identity_and_derived_fields(container, employee):
    record = container.attendance_service.create(NewAttendance(employee=employee.id, date=DAY))
    with pytest.raises(ValidationError):
        container.attendance_service.update(record.id, {"employee": "someone-else"})
    with pytest.raises(ValidationError):
        container.attendance_service.update(record.id, {"total_work_hours": 12})

    updated = container.attendance_service.update(
        record.id, {"status": AttendanceStatus.LATE, "late_arrival.is_late": True, "late_arrival.late_by_minutes": 20}
    )
    assert updated.status == AttendanceStatus.LATE
    assert updated.late_arrival.late_by_minutes == 20


def test_list_by_date_filters_status(container, make_employee):
    a = make_employee()
    b = make_employee()
    container.attendance_service.create(NewAttendance(employee=a.id, date=DAY))
    container.attendance_service.create(NewAttendance(employee=b.id, date=DAY, status=AttendanceStatus.ABSENT))

    absent = container.attendance_service.list_by_date(DAY, status=AttendanceStatus.ABSENT)
    assert [r.employee for r in absent] == [b.id]
    assert len(container.attendance_service.list_by_date(DAY)) == 2


def test_approve_overtime(container, make_employee):
    worker = make_employee()
    manager = make_employee()
    record = container.attendance_service.record_check_in(worker.id, at=at(9))

    approved = container.attendance_service.approve_overtime(record.id, manager.id, hours="1.5")
    assert approved.overtime.approved is True
    assert approved.overtime.hours == Decimal("1.5")
    assert approved.approved_by == manager.id

    with pytest.raises(InvalidReferenceError):
        container.attendance_service.approve_overtime(record.id, "missing")


def test_get_for_day_not_found(container, employee):
    with pytest.raises(NotFoundError):
        container.attendance_service.get_for_day(employee.id, DAY)


def test_ending_a_break_on_an_empty_day_creates_nothing(container, employee):
    with pytest.raises(ValidationError):
        container.attendance_service.end_break(employee.id, at=at(13))
    assert container.attendance_service.history(employee.id) == []


def test_repeated_break_punches_are_ignored(container, employee):
    svc = container.attendance_service
    svc.record_check_in(employee.id, at=at(9))
    svc.start_break(employee.id, at=at(12))
    closed = svc.end_break(employee.id, at=at(12, 30))

    with pytest.raises(ValidationError):
        svc.start_break(employee.id, at=at(12))
    with pytest.raises(ValidationError):
        svc.end_break(employee.id, at=at(12, 30))

    record = svc.get_by_id(closed.id)
    assert len(record.breaks) == 1
    assert record.version == closed.version

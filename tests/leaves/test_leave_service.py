from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal

import pytest

from hr_record_store.core.enums import LeaveStatus, LeaveType, SettingsCategory
from hr_record_store.core.exceptions import (
    ConcurrencyConflictError,
    InvalidReferenceError,
    InvalidTransitionError,
    OverlapError,
    ValidationError,
)
from hr_record_store.leaves.model import NewLeave


def apply(container, employee, start, end, **kwargs):
    return container.leave_service.apply(
        NewLeave(
            employee=employee.id,
            leave_type=kwargs.pop("leave_type", LeaveType.CASUAL),
            start_date=start,
            end_date=end,
            reason=kwargs.pop("reason", "Family event"),
            **kwargs,
        )
    )


def test_end_before_start_is_rejected(container, employee):
    with pytest.raises(ValidationError):
        apply(container, employee, date(2025, 3, 7), date(2025, 3, 3))


def test_number_of_days_is_derived_from_working_days(container, employee):
    week = apply(container, employee, date(2025, 3, 3), date(2025, 3, 9))
    assert week.number_of_days == Decimal("5")
    assert week.status == LeaveStatus.PENDING


def test_number_of_days_must_match_the_calendar(container, employee):
    with pytest.raises(ValidationError):
        apply(container, employee, date(2025, 3, 3), date(2025, 3, 7), number_of_days=Decimal("7"))

    half = apply(container, employee, date(2025, 3, 10), date(2025, 3, 10), number_of_days=Decimal("0.5"))
    assert half.number_of_days == Decimal("0.5")


def test_holidays_are_excluded(container, employee):
    container.settings_service.put(
        SettingsCategory.HOLIDAYS, {"holidays": [{"date": "2025-03-05", "name": "Founders Day"}]}
    )
    leave = apply(container, employee, date(2025, 3, 3), date(2025, 3, 7))
    assert leave.number_of_days == Decimal("4")

    with pytest.raises(ValidationError):
        apply(container, employee, date(2025, 3, 8), date(2025, 3, 9))  # weekend only


def test_overlapping_active_leave_is_rejected(container, employee):
    first = apply(container, employee, date(2025, 3, 3), date(2025, 3, 5))
    with pytest.raises(OverlapError) as err:
        apply(container, employee, date(2025, 3, 5), date(2025, 3, 6))
    assert err.value.conflicting_id == first.id

    container.leave_service.cancel(first.id)
    again = apply(container, employee, date(2025, 3, 5), date(2025, 3, 6))
    assert again.status == LeaveStatus.PENDING


def test_concurrent_overlapping_requests_admit_one(container, employee):
    barrier = threading.Barrier(2)

    def run(start):
        barrier.wait()
        try:
            return apply(container, employee, start, date(2025, 3, 7))
        except OverlapError as exc:
            return exc

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(pool.map(run, [date(2025, 3, 3), date(2025, 3, 4)]))

    assert sum(isinstance(r, OverlapError) for r in results) == 1
    assert len(container.leave_service.history(employee.id)) == 1


def test_pending_approved_cancelled(container, employee, make_employee):
    manager = make_employee()
    leave = apply(container, employee, date(2025, 3, 3), date(2025, 3, 4))

    approved = container.leave_service.approve(leave.id, manager.id)
    assert approved.status == LeaveStatus.APPROVED
    assert approved.approved_by == manager.id
    assert approved.approved_on is not None

    cancelled = container.leave_service.cancel(leave.id)
    assert cancelled.status == LeaveStatus.CANCELLED


def test_rejected_cannot_be_approved(container, employee, make_employee):
    manager = make_employee()
    leave = apply(container, employee, date(2025, 3, 3), date(2025, 3, 4))

    with pytest.raises(ValidationError):
        container.leave_service.reject(leave.id, manager.id, reason="  ")
    rejected = container.leave_service.reject(leave.id, manager.id, reason="Release week")
    assert rejected.rejection_reason == "Release week"

    with pytest.raises(InvalidTransitionError):
        container.leave_service.approve(leave.id, manager.id)
    with pytest.raises(InvalidTransitionError):
        container.leave_service.cancel(leave.id)


def test_approver_must_exist(container, employee):
    leave = apply(container, employee, date(2025, 3, 3), date(2025, 3, 4))
    with pytest.raises(InvalidReferenceError):
        container.leave_service.approve(leave.id, "missing")


def test_stale_version_conflicts(container, employee, make_employee):
    manager = make_employee()
    leave = apply(container, employee, date(2025, 3, 3), date(2025, 3, 4))
    container.leave_service.update(leave.id, {"reason": "Wedding"})

    with pytest.raises(ConcurrencyConflictError):
        container.leave_service.approve(leave.id, manager.id, expected_version=leave.version)


def test_update_only_while_pending_and_rederives_days(container, employee, make_employee):
    leave = apply(container, employee, date(2025, 3, 3), date(2025, 3, 4))
    moved = container.leave_service.update(leave.id, {"end_date": date(2025, 3, 6)})
    assert moved.number_of_days == Decimal("4")

    container.leave_service.approve(leave.id, make_employee().id)
    with pytest.raises(ValidationError):
        container.leave_service.update(leave.id, {"reason": "changed"})


def test_queries(container, employee, make_employee):
    other = make_employee()
    a = apply(container, employee, date(2025, 3, 3), date(2025, 3, 3))
    b = apply(container, employee, date(2025, 4, 7), date(2025, 4, 8))
    c = apply(container, other, date(2025, 3, 4), date(2025, 3, 5))

    assert [l.id for l in container.leave_service.history(employee.id)] == [b.id, a.id]
    assert {l.id for l in container.leave_service.list_by_status(LeaveStatus.PENDING)} == {a.id, b.id, c.id}
    in_march = container.leave_service.list_in_range(date(2025, 3, 1), date(2025, 3, 31))
    assert [l.id for l in in_march] == [a.id, c.id]
    assert [l.id for l in container.leave_service.overlapping(other.id, date(2025, 3, 5), date(2025, 3, 9))] == [c.id]

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime
from decimal import Decimal

import pytest

from hr_record_store.biometrics.model import NewBiometricLog
from hr_record_store.core.enums import BiometricLogType, PunchSource
from hr_record_store.core.exceptions import ValidationError
from hr_record_store.employees.model import TerminationDetails

DAY = date(2025, 3, 3)


def at(hour, minute=0):
    return datetime(DAY.year, DAY.month, DAY.day, hour, minute)


@pytest.fixture
def enrolled(container, employee):
    return container.employee_service.register_biometric(employee.id, "FP-7")


def ingest(container, log_type, when, biometric_id="FP-7"):
    return container.biometric_service.ingest(
        NewBiometricLog(
            biometric_id=biometric_id,
            log_type=log_type,
            timestamp=when,
            device_id="gate-1",
            device_location="Main gate",
            raw_data={"uid": 7, "verify": "finger"},
        )
    )


def test_ingest_resolves_employee_and_starts_unprocessed(container, enrolled):
    log = ingest(container, BiometricLogType.CHECK_IN, at(9))
    assert log.employee == enrolled.id
    assert log.processed is False
    assert log.raw_data == {"uid": 7, "verify": "finger"}

    stranger = ingest(container, BiometricLogType.CHECK_IN, at(9), biometric_id="FP-404")
    assert stranger.employee is None


def test_reprocessing_a_log_mutates_attendance_once(container, enrolled):
    log = ingest(container, BiometricLogType.CHECK_IN, at(9))

    first = container.biometric_service.reconcile(log.id)
    record = container.attendance_service.get_by_id(first.attendance_id)
    second = container.biometric_service.reconcile(log.id)

    assert first.applied is True
    assert second.applied is False
    assert second.attendance_id == first.attendance_id
    assert container.attendance_service.get_by_id(first.attendance_id).version == record.version
    processed = container.biometric_service.get_by_id(log.id)
    assert processed.processed is True
    assert processed.attendance_record == record.id
    assert record.check_in.source == PunchSource.BIOMETRIC


def test_concurrent_reconcile_applies_once(container, enrolled):
    log = ingest(container, BiometricLogType.CHECK_IN, at(9))
    barrier = threading.Barrier(2)

    def run(_):
        barrier.wait()
        return container.biometric_service.reconcile(log.id)

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(pool.map(run, range(2)))

    assert sum(r.applied for r in results) == 1
    assert container.biometric_service.get_by_id(log.id).processed is True
    assert len(container.attendance_service.history(enrolled.id)) == 1


def test_duplicate_device_events_do_not_change_the_record(container, enrolled):
    a = ingest(container, BiometricLogType.CHECK_IN, at(9))
    b = ingest(container, BiometricLogType.CHECK_IN, at(9))

    first = container.biometric_service.reconcile(a.id)
    version = container.attendance_service.get_by_id(first.attendance_id).version
    second = container.biometric_service.reconcile(b.id)

    assert second.applied is False
    assert second.attendance_id == first.attendance_id
    assert container.attendance_service.get_by_id(first.attendance_id).version == version

    for log_type, when in ((BiometricLogType.BREAK_IN, at(12)), (BiometricLogType.BREAK_OUT, at(12, 30))):
        container.biometric_service.reconcile(ingest(container, log_type, when).id)
    closed = container.attendance_service.get_by_id(first.attendance_id)

    for log_type, when in ((BiometricLogType.BREAK_IN, at(12)), (BiometricLogType.BREAK_OUT, at(12, 30))):
        again = container.biometric_service.reconcile(ingest(container, log_type, when).id)
        assert again.applied is False

    record = container.attendance_service.get_by_id(first.attendance_id)
    assert len(record.breaks) == 1
    assert record.breaks[0].duration == 30
    assert record.version == closed.version


def test_pending_logs_build_the_day_in_timestamp_order(container, enrolled):
    # delivered out of order
    ingest(container, BiometricLogType.CHECK_OUT, at(18))
    ingest(container, BiometricLogType.BREAK_OUT, at(12, 30))
    ingest(container, BiometricLogType.CHECK_IN, at(9))
    ingest(container, BiometricLogType.BREAK_IN, at(12))

    assert [l.timestamp for l in container.biometric_service.unprocessed()] == [at(9), at(12), at(12, 30), at(18)]
    results = container.biometric_service.reconcile_pending()

    assert all(r.applied for r in results)
    record = container.attendance_service.get_for_day(enrolled.id, DAY)
    assert record.check_in.time == at(9)
    assert record.check_out.time == at(18)
    assert record.total_break_time == 30
    assert record.total_work_hours == Decimal("8.50")
    assert container.biometric_service.unprocessed() == []


def test_unknown_biometric_id_is_skipped_and_left_unprocessed(container, enrolled):
    stray = ingest(container, BiometricLogType.CHECK_IN, at(9), biometric_id="FP-404")
    ok = ingest(container, BiometricLogType.CHECK_IN, at(9, 1))

    results = {r.log_id: r for r in container.biometric_service.reconcile_pending()}

    assert results[stray.id].skipped
    assert results[ok.id].applied
    assert [l.id for l in container.biometric_service.unprocessed()] == [stray.id]


def test_failed_application_rolls_back_the_claim(container, enrolled):
    log = ingest(container, BiometricLogType.CHECK_IN, at(9))
    container.employee_service.terminate(enrolled.id, TerminationDetails(termination_date=DAY))

    [result] = container.biometric_service.reconcile_pending()

    assert result.skipped
    assert container.biometric_service.get_by_id(log.id).processed is False


def test_mark_processed_is_idempotent(container, enrolled):
    log = ingest(container, BiometricLogType.CHECK_IN, at(9))
    first = container.biometric_service.mark_processed(log.id)
    second = container.biometric_service.mark_processed(log.id)
    assert first.processed and second.processed
    assert second.processed_at == first.processed_at


def test_log_queries_are_ordered(container, enrolled):
    ingest(container, BiometricLogType.CHECK_IN, at(9))
    ingest(container, BiometricLogType.CHECK_OUT, at(17))

    by_device_id = container.biometric_service.by_biometric_id("FP-7")
    assert [l.timestamp for l in by_device_id] == [at(17), at(9)]
    by_employee = container.biometric_service.for_employee(enrolled.id)
    assert [l.timestamp for l in by_employee] == [at(17), at(9)]


def test_unmatched_log_can_be_assigned_before_reconciling(container, enrolled):
    log = ingest(container, BiometricLogType.CHECK_IN, at(9), biometric_id="FP-OLD")
    assert container.biometric_service.reconcile_pending()[0].skipped

    fixed = container.biometric_service.update(log.id, {"biometric_id": "FP-7", "employee": enrolled.id})
    assert fixed.employee == enrolled.id

    result = container.biometric_service.reconcile(log.id)
    assert result.applied is True

    with pytest.raises(ValidationError):
        container.biometric_service.update(log.id, {"device_location": "Back door"})
    with pytest.raises(ValidationError):
        container.biometric_service.update(
            ingest(container, BiometricLogType.CHECK_OUT, at(18)).id, {"processed": True}
        )

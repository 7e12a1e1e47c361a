from __future__ import annotations

import dataclasses
from datetime import date

import pytest
from sqlalchemy import text

from hr_record_store.attendance.model import NewAttendance
from hr_record_store.core.enums import AttendanceStatus
from hr_record_store.core.exceptions import (
    DuplicateKeyError,
    InvalidReferenceError,
    QueryTimeoutError,
    StorageUnavailableError,
)
from hr_record_store.database.bootstrap import list_indexes, list_tables
from hr_record_store.database.connection import DBConfig, DatabaseConnection
from hr_record_store.database.records import new_id, versioned_update
from hr_record_store.database.session import db_session, read_session, run_in_transaction
from hr_record_store.database.tables import AttendanceRow


def test_all_tables_exist(conn):
    assert set(list_tables(conn)) >= {
        "departments",
        "employees",
        "attendance",
        "leaves",
        "salaries",
        "salary_slips",
        "salary_slip_downloads",
        "biometric_logs",
        "settings",
        "audit_logs",
    }


@pytest.mark.parametrize(
    "table, expected",
    [
        ("employees", {"uq_employees_employee_id", "uq_employees_email", "uq_employees_biometric_id", "ix_employees_department_status"}),
        ("attendance", {"uq_attendance_employee_date", "ix_attendance_date_status", "ix_attendance_employee_date_desc"}),
        ("leaves", {"ix_leaves_employee_start_desc", "ix_leaves_status_applied_desc", "ix_leaves_start_end"}),
        ("salaries", {"uq_salaries_employee_period", "ix_salaries_period_desc", "ix_salaries_payment_status"}),
        ("salary_slips", {"uq_salary_slips_slip_number", "uq_salary_slips_salary", "ix_salary_slips_email_sent"}),
        ("biometric_logs", {"ix_biometric_logs_biometric_ts_desc", "ix_biometric_logs_processed_ts", "ix_biometric_logs_employee_ts_desc"}),
        ("audit_logs", {"ix_audit_logs_performed_by_ts_desc", "ix_audit_logs_target_ts_desc", "ix_audit_logs_ts_desc"}),
    ],
)
def test_query_paths_are_indexed(conn, table, expected):
    assert expected <= set(list_indexes(conn, table))


def test_missing_reference_is_reported(container, employee):
    record = container.attendance_service.create(NewAttendance(employee=employee.id, date=date(2025, 3, 3)))
    orphan = dataclasses.replace(record, id=new_id(), employee="ghost")

    with pytest.raises(InvalidReferenceError):
        container.attendance_repo.create(orphan)


def test_nested_calls_share_one_transaction(conn, container, employee):
    def work(session):
        container.attendance_service.create(NewAttendance(employee=employee.id, date=date(2025, 3, 4)))
        container.attendance_service.create(NewAttendance(employee=employee.id, date=date(2025, 3, 4)))

    with pytest.raises(DuplicateKeyError):
        run_in_transaction(conn, work)
    # first insert rolled back with the second
    assert container.attendance_service.history(employee.id) == []


def test_guarded_update_needs_matching_version_and_guard(conn, container, employee):
    record = container.attendance_service.create(NewAttendance(employee=employee.id, date=date(2025, 3, 5)))

    with db_session(conn) as session:
        assert not versioned_update(
            session, AttendanceRow, entity_id=record.id, expected_version=record.version + 1,
            values={"remarks": "stale"}, now=record.updated_at,
        )
        assert not versioned_update(
            session, AttendanceRow, entity_id=record.id, expected_version=record.version,
            values={"remarks": "wrong status"}, now=record.updated_at, guard={"status": AttendanceStatus.HOLIDAY.value},
        )
        assert versioned_update(
            session, AttendanceRow, entity_id=record.id, expected_version=record.version,
            values={"remarks": "ok"}, now=record.updated_at, guard={"status": record.status.value},
        )

    saved = container.attendance_service.get_by_id(record.id)
    assert saved.remarks == "ok"
    assert saved.version == record.version + 1


def test_reads_are_time_bounded(conn):
    slow = text(
        "WITH RECURSIVE n(x) AS (SELECT 1 UNION ALL SELECT x + 1 FROM n WHERE x < 100000000) SELECT count(*) FROM n"
    )
    with pytest.raises(QueryTimeoutError):
        with read_session(conn, timeout=0.05) as session:
            session.execute(slow).scalar()


def test_unreachable_database_is_reported(tmp_path):
    missing = DatabaseConnection(DBConfig(url=f"sqlite:///{tmp_path / 'no' / 'such' / 'dir.db'}"))
    with pytest.raises(StorageUnavailableError):
        with db_session(missing) as session:
            session.execute(text("SELECT 1"))

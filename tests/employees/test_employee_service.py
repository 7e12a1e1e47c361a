from __future__ import annotations

import dataclasses
from datetime import date
from decimal import Decimal

import pytest

from hr_record_store.attendance.model import NewAttendance
from hr_record_store.core.enums import DocumentType, EmployeeStatus, LeaveType, SettingsCategory
from hr_record_store.core.exceptions import (
    DependentRecordsError,
    DuplicateKeyError,
    InvalidReferenceError,
    NotFoundError,
    ValidationError,
)
from hr_record_store.employees.model import EmployeeDocument, PersonalInfo, TerminationDetails


def test_create_applies_configured_defaults(employee):
    assert employee.employee_id == "EMP001"
    assert employee.employment_details.probation_period == 3
    assert employee.salary_info.deductions.provident_fund == Decimal("0.00")
    assert employee.leave_balance.casual == Decimal("12")
    assert employee.leave_balance.annual == Decimal("15")
    assert employee.version == 1


def test_email_is_normalized_and_unique(container, make_employee):
    first = make_employee(
        personal_info=PersonalInfo(first_name="A", last_name="B", email="Same@Example.COM", phone="1")
    )
    assert first.personal_info.email == "same@example.com"

    with pytest.raises(DuplicateKeyError):
        make_employee(personal_info=PersonalInfo(first_name="C", last_name="D", email="same@example.com", phone="2"))
    assert container.employee_service.get_by_email("SAME@example.com").id == first.id


def test_employee_id_is_unique(make_employee):
    make_employee(employee_id="E1")
    with pytest.raises(DuplicateKeyError):
        make_employee(employee_id="e1")


def test_employee_id_is_fixed_after_create(container, employee):
    with pytest.raises(ValidationError, match="read-only"):
        container.employee_service.update(employee.id, {"employee_id": "EMP999"})
    assert container.employee_service.get_by_id(employee.id).employee_id == "EMP001"


def test_biometric_id_unique_when_present(container, make_employee):
    a = make_employee()
    b = make_employee()
    make_employee()  # no biometric id: many may coexist

    container.employee_service.register_biometric(a.id, "FP-1")
    with pytest.raises(DuplicateKeyError):
        container.employee_service.register_biometric(b.id, "FP-1")
    assert container.employee_service.get_by_biometric_id("FP-1").id == a.id


def test_invalid_email_rejected(make_employee):
    with pytest.raises(ValidationError):
        make_employee(personal_info=PersonalInfo(first_name="A", last_name="B", email="not-an-email", phone="1"))


def test_department_must_exist_and_be_active(container, make_employee, department, employee):
    job = dataclasses.replace(employee.employment_details, department="missing")
    with pytest.raises(InvalidReferenceError):
        make_employee(employment_details=job)

    container.department_service.deactivate(department.id)
    with pytest.raises(InvalidReferenceError):
        make_employee(employment_details=employee.employment_details)


def test_reporting_manager_cycles_are_rejected(container, make_employee):
    boss = make_employee()
    lead = make_employee()
    dev = make_employee()
    container.employee_service.update(lead.id, {"employment_details.reporting_manager": boss.id})
    container.employee_service.update(dev.id, {"employment_details.reporting_manager": lead.id})

    with pytest.raises(ValidationError):
        container.employee_service.update(dev.id, {"employment_details.reporting_manager": dev.id})
    with pytest.raises(ValidationError):
        container.employee_service.update(boss.id, {"employment_details.reporting_manager": dev.id})

    assert [e.id for e in container.employee_service.direct_reports(boss.id)] == [lead.id]


def test_queries_by_department_and_status(container, department, make_employee):
    a = make_employee()
    b = make_employee()
    container.employee_service.terminate(b.id, TerminationDetails(termination_date=date(2025, 1, 31), reason="Contract end"))

    active = container.employee_service.list_by_department(department.id, status=EmployeeStatus.ACTIVE)
    assert [e.id for e in active] == [a.id]
    terminated = container.employee_service.list_by_status(EmployeeStatus.TERMINATED)
    assert [e.id for e in terminated] == [b.id]


def test_terminate_requires_separated_status(container, employee):
    with pytest.raises(ValidationError):
        container.employee_service.terminate(
            employee.id, TerminationDetails(termination_date=date(2025, 1, 31)), status=EmployeeStatus.ON_LEAVE
        )
    resigned = container.employee_service.terminate(
        employee.id, TerminationDetails(termination_date=date(2025, 1, 31)), status=EmployeeStatus.RESIGNED
    )
    assert resigned.status == EmployeeStatus.RESIGNED
    assert resigned.termination_details.termination_date == date(2025, 1, 31)


def test_add_document(container, employee):
    updated = container.employee_service.add_document(
        employee.id,
        EmployeeDocument(document_type=DocumentType.RESUME, document_name="cv.pdf", document_url="s3://docs/cv.pdf"),
    )
    assert len(updated.documents) == 1
    assert updated.documents[0].uploaded_at is not None


def test_leave_balance_never_negative(container, employee):
    updated = container.employee_service.adjust_leave_balance(employee.id, LeaveType.SICK, Decimal("-2.5"))
    assert updated.leave_balance.sick == Decimal("7.5")

    with pytest.raises(ValidationError):
        container.employee_service.adjust_leave_balance(employee.id, LeaveType.SICK, -100)
    with pytest.raises(ValidationError):
        container.employee_service.adjust_leave_balance(employee.id, LeaveType.MATERNITY, 1)


def test_delete_restricted_by_dependents(container, employee, make_employee):
    container.attendance_service.create(NewAttendance(employee=employee.id, date=date(2025, 3, 3)))
    with pytest.raises(DependentRecordsError):
        container.employee_service.delete(employee.id)

    other = make_employee()
    container.employee_service.delete(other.id)
    with pytest.raises(NotFoundError):
        container.employee_service.get_by_id(other.id)


def test_delete_restricted_while_heading_a_department(container, department, make_employee):
    head = make_employee()
    container.department_service.assign_head(department.id, head.id)

    with pytest.raises(DependentRecordsError, match="department_heads"):
        container.employee_service.delete(head.id)
    assert container.employee_service.get_by_id(head.id).id == head.id

    container.department_service.assign_head(department.id, None)
    container.employee_service.delete(head.id)
    assert container.department_service.get_by_id(department.id).head_of_department is None


def test_delete_restricted_while_named_on_settings(container, make_employee):
    editor = make_employee()
    container.settings_service.put(SettingsCategory.GENERAL, {"company": "Acme"}, updated_by=editor.id)

    with pytest.raises(DependentRecordsError, match="settings"):
        container.employee_service.delete(editor.id)

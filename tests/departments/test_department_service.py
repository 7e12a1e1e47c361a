from __future__ import annotations

import pytest

from hr_record_store.core.enums import DepartmentName
from hr_record_store.core.exceptions import (
    ConcurrencyConflictError,
    DependentRecordsError,
    DuplicateKeyError,
    InvalidReferenceError,
    NotFoundError,
    ValidationError,
)
from hr_record_store.departments.model import NewDepartment


def test_other_requires_custom_name(container):
    with pytest.raises(ValidationError):
        container.department_service.create(NewDepartment(department_id="x1", name=DepartmentName.OTHER))

    legal = container.department_service.create(
        NewDepartment(department_id="x2", name=DepartmentName.OTHER, custom_name="Legal")
    )
    assert legal.display_name == "Legal"


def test_custom_name_rejected_for_fixed_names(container):
    with pytest.raises(ValidationError):
        container.department_service.create(
            NewDepartment(department_id="s1", name=DepartmentName.SALES, custom_name="Legal")
        )


def test_unknown_name_is_rejected(container):
    with pytest.raises(ValidationError):
        container.department_service.create(NewDepartment(department_id="s1", name="Marketing"))


def test_department_id_is_uppercased_and_unique(container, department):
    assert department.department_id == "DEV"
    assert container.department_service.get_by_code("dev").id == department.id

    with pytest.raises(DuplicateKeyError):
        container.department_service.create(NewDepartment(department_id="Dev", name=DepartmentName.HR))


def test_employee_count_is_derived(container, department, make_employee):
    make_employee()
    make_employee()
    assert container.department_service.get_by_id(department.id).employee_count == 2


def test_list_filters_by_active_flag(container, department):
    hr = container.department_service.create(NewDepartment(department_id="hr", name=DepartmentName.HR))
    container.department_service.deactivate(hr.id)

    active = container.department_service.list_departments(is_active=True)
    inactive = container.department_service.list_departments(is_active=False)
    assert [d.id for d in active] == [department.id]
    assert [d.id for d in inactive] == [hr.id]


def test_update_bumps_version_and_checks_expected_version(container, department):
    updated = container.department_service.update(department.id, {"description": "Platform team"})
    assert updated.version == department.version + 1
    assert updated.updated_at >= department.updated_at

    with pytest.raises(ConcurrencyConflictError):
        container.department_service.update(department.id, {"description": "stale"}, expected_version=department.version)


def test_update_rejects_unknown_and_derived_fields(container, department):
    with pytest.raises(ValidationError):
        container.department_service.update(department.id, {"colour": "blue"})
    with pytest.raises(ValidationError):
        container.department_service.update(department.id, {"employee_count": 7})


def test_assign_head_requires_existing_employee(container, department, employee):
    with pytest.raises(InvalidReferenceError):
        container.department_service.assign_head(department.id, "missing")

    assert container.department_service.assign_head(department.id, employee.id).head_of_department == employee.id


def test_delete_is_restricted_while_employees_reference_it(container, department, employee):
    with pytest.raises(DependentRecordsError):
        container.department_service.delete(department.id)

    empty = container.department_service.create(NewDepartment(department_id="seo", name=DepartmentName.SEO))
    container.department_service.delete(empty.id)
    with pytest.raises(NotFoundError):
        container.department_service.get_by_id(empty.id)

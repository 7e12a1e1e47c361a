from __future__ import annotations

import itertools
from datetime import date
from decimal import Decimal

import pytest

from hr_record_store.container import build_container
from hr_record_store.core.enums import DepartmentName, EmployeeType
from hr_record_store.database.bootstrap import apply_schema
from hr_record_store.database.connection import DBConfig, DatabaseConnection
from hr_record_store.departments.model import NewDepartment
from hr_record_store.employees.model import EmploymentDetails, NewEmployee, PersonalInfo, SalaryInfo


@pytest.fixture
def conn(tmp_path):
    conn = DatabaseConnection(
        DBConfig(url=f"sqlite:///{tmp_path / 'hr.db'}"),
        query_timeout=5,
        retry_attempts=3,
        retry_backoff=0.01,
    )
    apply_schema(conn)
    yield conn
    conn.dispose()


@pytest.fixture
def container(conn):
    return build_container(db_config={}, conn=conn)


@pytest.fixture
def department(container):
    return container.department_service.create(NewDepartment(department_id="dev", name=DepartmentName.DEVELOPERS))


@pytest.fixture
def make_employee(container, department):
    counter = itertools.count(1)

    def make(**overrides):
        n = next(counter)
        draft = NewEmployee(
            employee_id=overrides.pop("employee_id", f"emp{n:03d}"),
            personal_info=overrides.pop(
                "personal_info",
                PersonalInfo(first_name="Test", last_name=f"User{n}", email=f"user{n}@example.com", phone=f"09000000{n:02d}"),
            ),
            employment_details=overrides.pop(
                "employment_details",
                EmploymentDetails(
                    department=department.id,
                    designation="Engineer",
                    employee_type=EmployeeType.FULL_TIME,
                    joining_date=date(2024, 1, 2),
                ),
            ),
            salary_info=overrides.pop("salary_info", SalaryInfo(basic_salary=Decimal("1000.00"))),
            **overrides,
        )
        return container.employee_service.create(draft)

    return make


@pytest.fixture
def employee(make_employee):
    return make_employee()

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from .attendance.service import AttendanceService
from .attendance.sql_attendance_repository import SqlAttendanceRepository
from .audit.model import AuditFailure
from .audit.service import AuditTrail
from .audit.sql_audit_repository import SqlAuditLogRepository
from .biometrics.service import BiometricService
from .biometrics.sql_biometric_log_repository import SqlBiometricLogRepository
from .core.constants import (
    DEFAULT_QUERY_TIMEOUT_SECONDS,
    DEFAULT_WRITE_RETRY_ATTEMPTS,
    DEFAULT_WRITE_RETRY_BACKOFF_SECONDS,
)
from .core.defaults import EntityDefaults
from .database.connection import DBConfig, DatabaseConnection
from .departments.service import DepartmentService
from .departments.sql_department_repository import SqlDepartmentRepository
from .employees.service import EmployeeService
from .employees.sql_employee_repository import SqlEmployeeRepository
from .leaves.service import LeaveService
from .leaves.sql_leave_repository import SqlLeaveRepository
from .payroll.service import SalaryService
from .payroll.slip_service import SalarySlipService
from .payroll.sql_salary_repository import SqlSalaryRepository
from .payroll.sql_salary_slip_repository import SqlSalarySlipRepository
from .settings.service import SettingsService
from .settings.sql_settings_repository import SqlSettingsRepository


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection
    defaults: EntityDefaults

    departments_repo: SqlDepartmentRepository
    employees_repo: SqlEmployeeRepository
    attendance_repo: SqlAttendanceRepository
    leaves_repo: SqlLeaveRepository
    salaries_repo: SqlSalaryRepository
    salary_slips_repo: SqlSalarySlipRepository
    biometric_logs_repo: SqlBiometricLogRepository
    settings_repo: SqlSettingsRepository
    audit_repo: SqlAuditLogRepository

    audit_trail: AuditTrail
    department_service: DepartmentService
    employee_service: EmployeeService
    attendance_service: AttendanceService
    leave_service: LeaveService
    salary_service: SalaryService
    salary_slip_service: SalarySlipService
    biometric_service: BiometricService
    settings_service: SettingsService


def build_container(
    *,
    db_config: dict,
    settings: Any = None,
    conn: Optional[DatabaseConnection] = None,
    on_audit_failure: Optional[Callable[[AuditFailure], None]] = None,
) -> Container:
    """Wire repositories and services.

    ``settings`` is a settings module (see ``config``) or any object with the
    same attributes; missing attributes fall back to the built-in defaults.
    """
    if conn is None:
        config = DBConfig.from_dict({**db_config, "url": getattr(settings, "DATABASE_URL", None) or db_config.get("url")})
        conn = DatabaseConnection.get_instance(
            config,
            echo=bool(getattr(settings, "SQL_ECHO", False)),
            query_timeout=float(getattr(settings, "QUERY_TIMEOUT_SECONDS", DEFAULT_QUERY_TIMEOUT_SECONDS)),
            retry_attempts=int(getattr(settings, "WRITE_RETRY_ATTEMPTS", DEFAULT_WRITE_RETRY_ATTEMPTS)),
            retry_backoff=float(getattr(settings, "WRITE_RETRY_BACKOFF_SECONDS", DEFAULT_WRITE_RETRY_BACKOFF_SECONDS)),
        )
    defaults = EntityDefaults.from_settings(settings)

    departments_repo = SqlDepartmentRepository(conn)
    employees_repo = SqlEmployeeRepository(conn)
    attendance_repo = SqlAttendanceRepository(conn)
    leaves_repo = SqlLeaveRepository(conn)
    salaries_repo = SqlSalaryRepository(conn)
    salary_slips_repo = SqlSalarySlipRepository(conn)
    biometric_logs_repo = SqlBiometricLogRepository(conn)
    settings_repo = SqlSettingsRepository(conn)
    audit_repo = SqlAuditLogRepository(conn)

    audit_trail = AuditTrail(audit_repo, on_failure=on_audit_failure)
    department_service = DepartmentService(departments_repo, employees_repo, audit=audit_trail)
    employee_service = EmployeeService(employees_repo, departments_repo, defaults=defaults, audit=audit_trail)
    settings_service = SettingsService(settings_repo, employees_repo, audit=audit_trail)
    attendance_service = AttendanceService(attendance_repo, employees_repo, audit=audit_trail)
    leave_service = LeaveService(leaves_repo, employees_repo, calendar=settings_service, audit=audit_trail)
    salary_service = SalaryService(salaries_repo, employees_repo, defaults=defaults, audit=audit_trail)
    salary_slip_service = SalarySlipService(salary_slips_repo, salaries_repo, employees_repo, audit=audit_trail)
    biometric_service = BiometricService(
        biometric_logs_repo, employees_repo, attendance_service, conn, audit=audit_trail
    )

    return Container(
        conn=conn,
        defaults=defaults,
        departments_repo=departments_repo,
        employees_repo=employees_repo,
        attendance_repo=attendance_repo,
        leaves_repo=leaves_repo,
        salaries_repo=salaries_repo,
        salary_slips_repo=salary_slips_repo,
        biometric_logs_repo=biometric_logs_repo,
        settings_repo=settings_repo,
        audit_repo=audit_repo,
        audit_trail=audit_trail,
        department_service=department_service,
        employee_service=employee_service,
        attendance_service=attendance_service,
        leave_service=leave_service,
        salary_service=salary_service,
        salary_slip_service=salary_slip_service,
        biometric_service=biometric_service,
        settings_service=settings_service,
    )

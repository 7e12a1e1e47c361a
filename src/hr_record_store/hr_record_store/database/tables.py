"""Table definitions and indexes for the record store.

Sub-records of an employee that are queried on (email, department, biometric
id, status) are plain columns; the rest live in JSON columns of the owning row.
"""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase

MONEY = Numeric(12, 2)
DAYS = Numeric(6, 1)


class Base(DeclarativeBase):
    pass


class DepartmentRow(Base):
    __tablename__ = "departments"

    id = Column(String(32), primary_key=True)
    department_id = Column(String(50), nullable=False)
    name = Column(String(50), nullable=False)
    custom_name = Column(String(100))
    description = Column(Text)
    # Not a database FK: departments and employees reference each other.
    head_of_department = Column(String(32))
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint("department_id", name="uq_departments_department_id"),
        Index("ix_departments_department_id_active", "department_id", "is_active"),
        Index("ix_departments_active", "is_active"),
    )


class EmployeeRow(Base):
    __tablename__ = "employees"

    id = Column(String(32), primary_key=True)
    employee_id = Column(String(50), nullable=False)

    # personal info
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(30), nullable=False)
    alternate_phone = Column(String(30))
    date_of_birth = Column(Date)
    gender = Column(String(10))
    blood_group = Column(String(10))
    address = Column(JSON)
    emergency_contact = Column(JSON)

    # employment details
    department_id = Column(String(32), ForeignKey("departments.id"), nullable=False)
    designation = Column(String(100), nullable=False)
    employee_type = Column(String(20), nullable=False)
    joining_date = Column(Date, nullable=False)
    confirmation_date = Column(Date)
    probation_period = Column(Integer)
    reporting_manager_id = Column(String(32), ForeignKey("employees.id"))
    work_location = Column(String(20), nullable=False)

    # salary info
    basic_salary = Column(MONEY, nullable=False)
    allowance_house_rent = Column(MONEY, nullable=False, default=0)
    allowance_medical = Column(MONEY, nullable=False, default=0)
    allowance_transport = Column(MONEY, nullable=False, default=0)
    allowance_other = Column(MONEY, nullable=False, default=0)
    deduction_tax = Column(MONEY, nullable=False, default=0)
    deduction_provident_fund = Column(MONEY, nullable=False, default=0)
    deduction_insurance = Column(MONEY, nullable=False, default=0)
    deduction_other = Column(MONEY, nullable=False, default=0)
    bank_details = Column(JSON)

    # biometric info
    biometric_id = Column(String(50))
    fingerprint_registered = Column(Boolean, nullable=False, default=False)
    biometric_last_synced_at = Column(DateTime)

    status = Column(String(20), nullable=False)
    termination = Column(JSON)
    documents = Column(JSON, nullable=False)

    leave_casual = Column(DAYS, nullable=False, default=0)
    leave_sick = Column(DAYS, nullable=False, default=0)
    leave_annual = Column(DAYS, nullable=False, default=0)
    leave_unpaid = Column(DAYS, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint("employee_id", name="uq_employees_employee_id"),
        UniqueConstraint("email", name="uq_employees_email"),
        # NULLs do not collide, so the constraint only binds when an id is set.
        UniqueConstraint("biometric_id", name="uq_employees_biometric_id"),
        Index("ix_employees_department_status", "department_id", "status"),
        Index("ix_employees_status", "status"),
        Index("ix_employees_reporting_manager", "reporting_manager_id"),
    )


class AttendanceRow(Base):
    __tablename__ = "attendance"

    id = Column(String(32), primary_key=True)
    employee_id = Column(String(32), ForeignKey("employees.id"), nullable=False)
    date = Column(Date, nullable=False)
    check_in = Column(JSON)
    check_out = Column(JSON)
    breaks = Column(JSON, nullable=False)
    total_work_hours = Column(Numeric(6, 2))
    total_break_time = Column(Integer, nullable=False, default=0)
    work_type = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False)
    is_late = Column(Boolean, nullable=False, default=False)
    late_by_minutes = Column(Integer, nullable=False, default=0)
    is_early = Column(Boolean, nullable=False, default=False)
    early_by_minutes = Column(Integer, nullable=False, default=0)
    overtime_hours = Column(Numeric(6, 2), nullable=False, default=0)
    overtime_approved = Column(Boolean, nullable=False, default=False)
    remarks = Column(Text)
    approved_by = Column(String(32), ForeignKey("employees.id"))
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint("employee_id", "date", name="uq_attendance_employee_date"),
        Index("ix_attendance_date_status", "date", "status"),
        Index("ix_attendance_employee_date_desc", employee_id, date.desc()),
    )


class LeaveRow(Base):
    __tablename__ = "leaves"

    id = Column(String(32), primary_key=True)
    employee_id = Column(String(32), ForeignKey("employees.id"), nullable=False)
    leave_type = Column(String(20), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    number_of_days = Column(DAYS, nullable=False)
    reason = Column(Text, nullable=False)
    status = Column(String(20), nullable=False)
    applied_on = Column(DateTime, nullable=False)
    approved_by = Column(String(32), ForeignKey("employees.id"))
    approved_on = Column(DateTime)
    rejection_reason = Column(Text)
    supporting_documents = Column(JSON, nullable=False)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        Index("ix_leaves_employee_start_desc", employee_id, start_date.desc()),
        Index("ix_leaves_status_applied_desc", status, applied_on.desc()),
        Index("ix_leaves_start_end", "start_date", "end_date"),
    )


class SalaryRow(Base):
    __tablename__ = "salaries"

    id = Column(String(32), primary_key=True)
    employee_id = Column(String(32), ForeignKey("employees.id"), nullable=False)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)

    basic_salary = Column(MONEY, nullable=False)
    house_rent_allowance = Column(MONEY, nullable=False, default=0)
    medical_allowance = Column(MONEY, nullable=False, default=0)
    transport_allowance = Column(MONEY, nullable=False, default=0)
    other_allowances = Column(MONEY, nullable=False, default=0)
    overtime = Column(MONEY, nullable=False, default=0)
    bonus = Column(MONEY, nullable=False, default=0)
    incentives = Column(MONEY, nullable=False, default=0)

    tax = Column(MONEY, nullable=False, default=0)
    provident_fund = Column(MONEY, nullable=False, default=0)
    insurance = Column(MONEY, nullable=False, default=0)
    loan_deduction = Column(MONEY, nullable=False, default=0)
    late_deduction = Column(MONEY, nullable=False, default=0)
    absent_deduction = Column(MONEY, nullable=False, default=0)
    other_deductions = Column(MONEY, nullable=False, default=0)

    total_working_days = Column(DAYS, nullable=False)
    present_days = Column(DAYS, nullable=False)
    absent_days = Column(DAYS, nullable=False, default=0)
    leave_days = Column(DAYS, nullable=False, default=0)
    half_days = Column(DAYS, nullable=False, default=0)
    paid_leave_days = Column(DAYS, nullable=False, default=0)

    gross_salary = Column(MONEY, nullable=False)
    total_deductions = Column(MONEY, nullable=False)
    net_salary = Column(MONEY, nullable=False)

    payment_status = Column(String(20), nullable=False)
    payment_date = Column(DateTime)
    payment_method = Column(String(20))
    transaction_id = Column(String(100))
    remarks = Column(Text)
    generated_by = Column(String(32), ForeignKey("employees.id"))
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint("employee_id", "month", "year", name="uq_salaries_employee_period"),
        Index("ix_salaries_period_desc", year.desc(), month.desc()),
        Index("ix_salaries_payment_status", "payment_status"),
    )


class SalarySlipRow(Base):
    __tablename__ = "salary_slips"

    id = Column(String(32), primary_key=True)
    salary_id = Column(String(32), ForeignKey("salaries.id"), nullable=False)
    employee_id = Column(String(32), ForeignKey("employees.id"), nullable=False)
    slip_number = Column(String(50), nullable=False)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    generated_at = Column(DateTime, nullable=False)
    pdf_url = Column(String(500))
    email_sent = Column(Boolean, nullable=False, default=False)
    email_sent_at = Column(DateTime)
    email_status = Column(String(20), nullable=False)
    download_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint("slip_number", name="uq_salary_slips_slip_number"),
        UniqueConstraint("salary_id", name="uq_salary_slips_salary"),
        Index("ix_salary_slips_employee_period_desc", employee_id, year.desc(), month.desc()),
        Index("ix_salary_slips_email_sent", "email_sent"),
    )


class SalarySlipDownloadRow(Base):
    __tablename__ = "salary_slip_downloads"

    id = Column(Integer, primary_key=True, autoincrement=True)
    slip_id = Column(String(32), ForeignKey("salary_slips.id"), nullable=False)
    downloaded_at = Column(DateTime, nullable=False)

    __table_args__ = (Index("ix_salary_slip_downloads_slip", "slip_id", "downloaded_at"),)


class BiometricLogRow(Base):
    __tablename__ = "biometric_logs"

    id = Column(String(32), primary_key=True)
    biometric_id = Column(String(50), nullable=False)
    employee_id = Column(String(32), ForeignKey("employees.id"))
    log_type = Column(String(20), nullable=False)
    timestamp = Column(DateTime, nullable=False)
    device_id = Column(String(100))
    device_location = Column(String(200))
    processed = Column(Boolean, nullable=False, default=False)
    processed_at = Column(DateTime)
    attendance_id = Column(String(32), ForeignKey("attendance.id"))
    raw_data = Column(JSON)
    created_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_biometric_logs_biometric_ts_desc", biometric_id, timestamp.desc()),
        Index("ix_biometric_logs_processed_ts", "processed", "timestamp"),
        Index("ix_biometric_logs_employee_ts_desc", employee_id, timestamp.desc()),
    )


class SettingsRow(Base):
    __tablename__ = "settings"

    id = Column(String(32), primary_key=True)
    category = Column(String(50), nullable=False)
    payload = Column(JSON, nullable=False)
    updated_by = Column(String(32))
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (UniqueConstraint("category", name="uq_settings_category"),)


class AuditLogRow(Base):
    __tablename__ = "audit_logs"

    id = Column(String(32), primary_key=True)
    action = Column(String(100), nullable=False)
    # Plain ids: the trail outlives the employees it mentions.
    performed_by = Column(String(32), nullable=False)
    target_employee = Column(String(32))
    collection = Column(String(50))
    document_id = Column(String(32))
    changes = Column(JSON)
    ip_address = Column(String(64))
    user_agent = Column(String(500))
    timestamp = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_audit_logs_performed_by_ts_desc", performed_by, timestamp.desc()),
        Index("ix_audit_logs_target_ts_desc", target_employee, timestamp.desc()),
        Index("ix_audit_logs_ts_desc", timestamp.desc()),
    )

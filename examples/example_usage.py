"""Example: using the service layer directly.

Creates a department and an employee, records one day from biometric device
events, then runs the month's payroll for that employee.
"""

from datetime import date, datetime
from decimal import Decimal

from config import load_settings

from hr_record_store.biometrics.model import NewBiometricLog
from hr_record_store.container import build_container
from hr_record_store.core.enums import BiometricLogType, DepartmentName, EmployeeType, PaymentMethod
from hr_record_store.database.bootstrap import apply_schema
from hr_record_store.departments.model import NewDepartment
from hr_record_store.employees.model import EmploymentDetails, NewEmployee, PersonalInfo, SalaryInfo
from hr_record_store.payroll.model import AttendanceSummary, NewSalary


def main():
    settings = load_settings()

    container = build_container(db_config=settings.DB_CONFIG, settings=settings)
    if getattr(settings, "AUTO_INIT_DB", False):
        apply_schema(container.conn)

    developers = container.department_service.create(NewDepartment(department_id="dev", name=DepartmentName.DEVELOPERS))
    employee = container.employee_service.create(
        NewEmployee(
            employee_id="emp001",
            personal_info=PersonalInfo(first_name="An", last_name="Nguyen", email="an.nguyen@example.com", phone="0900000001"),
            employment_details=EmploymentDetails(
                department=developers.id,
                designation="Backend Engineer",
                employee_type=EmployeeType.FULL_TIME,
                joining_date=date(2024, 1, 2),
            ),
            salary_info=SalaryInfo(basic_salary=Decimal("1500.00")),
        )
    )
    container.employee_service.register_biometric(employee.id, "FP-0001")

    day = date.today()
    for log_type, hour in ((BiometricLogType.CHECK_IN, 9), (BiometricLogType.CHECK_OUT, 18)):
        container.biometric_service.ingest(
            NewBiometricLog(biometric_id="FP-0001", log_type=log_type, timestamp=datetime(day.year, day.month, day.day, hour))
        )
    for result in container.biometric_service.reconcile_pending():
        print(result)

    record = container.attendance_service.get_for_day(employee.id, day)
    print(f"{employee.full_name}: {record.total_work_hours} hours on {record.date}")

    salary = container.salary_service.create(
        NewSalary(
            employee=employee.id,
            month=day.month,
            year=day.year,
            attendance=AttendanceSummary(total_working_days=Decimal("22"), present_days=Decimal("22")),
        )
    )
    container.salary_service.mark_processing(salary.id)
    paid = container.salary_service.mark_paid(salary.id, method=PaymentMethod.CASH)
    slip = container.salary_slip_service.generate(paid.id)
    print(f"{slip.slip_number}: net {paid.net_salary} ({paid.payment_status.value})")


if __name__ == "__main__":
    main()

from __future__ import annotations

from decimal import Decimal

import pytest

from hr_record_store.core.enums import PaymentMethod, PaymentStatus
from hr_record_store.core.exceptions import DuplicateKeyError, InvalidTransitionError, NotFoundError, ValidationError
from hr_record_store.employees.model import Allowances, SalaryDeductions, SalaryInfo
from hr_record_store.payroll.model import AttendanceSummary, Deductions, Earnings, NewSalary

SUMMARY = AttendanceSummary(total_working_days=Decimal("22"), present_days=Decimal("20"), leave_days=Decimal("2"))


def draft(employee, **kwargs):
    return NewSalary(employee=employee.id, month=kwargs.pop("month", 3), year=kwargs.pop("year", 2025), attendance=SUMMARY, **kwargs)


def test_totals_reconcile_exactly(container, employee):
    salary = container.salary_service.create(
        draft(
            employee,
            earnings=Earnings(basic_salary=Decimal("1000.10"), bonus=Decimal("0.20"), overtime=Decimal("49.70")),
            deductions=Deductions(tax=Decimal("100.05"), provident_fund=Decimal("0.05")),
        )
    )
    assert salary.gross_salary == Decimal("1050.00")
    assert salary.total_deductions == Decimal("100.10")
    assert salary.net_salary == Decimal("949.90")
    assert salary.gross_salary - salary.total_deductions == salary.net_salary

    stored = container.salary_service.get_by_id(salary.id)
    assert stored.gross_salary == sum(vars(stored.earnings).values())
    assert stored.total_deductions == sum(vars(stored.deductions).values())


def test_given_totals_must_match_components(container, employee):
    with pytest.raises(ValidationError):
        container.salary_service.create(
            draft(employee, earnings=Earnings(basic_salary=Decimal("1000")), gross_salary=Decimal("1000.01"))
        )
    ok = container.salary_service.create(
        draft(employee, earnings=Earnings(basic_salary=Decimal("1000")), gross_salary=Decimal("1000.00"), net_salary=Decimal("1000"))
    )
    assert ok.net_salary == Decimal("1000.00")


def test_defaults_come_from_employee_salary_info(container, make_employee):
    employee = make_employee(
        salary_info=SalaryInfo(
            basic_salary=Decimal("2000"),
            allowances=Allowances(house_rent=Decimal("300"), transport=Decimal("50")),
            deductions=SalaryDeductions(tax=Decimal("200"), provident_fund=Decimal("120")),
        )
    )
    salary = container.salary_service.create(draft(employee))
    assert salary.earnings.house_rent_allowance == Decimal("300.00")
    assert salary.gross_salary == Decimal("2350.00")
    assert salary.total_deductions == Decimal("320.00")
    assert salary.net_salary == Decimal("2030.00")


def test_one_salary_per_employee_and_period(container, employee):
    container.salary_service.create(draft(employee))
    with pytest.raises(DuplicateKeyError):
        container.salary_service.create(draft(employee))
    container.salary_service.create(draft(employee, month=4))


def test_month_and_attendance_summary_are_validated(container, employee):
    with pytest.raises(ValidationError):
        container.salary_service.create(draft(employee, month=13))
    with pytest.raises(ValidationError):
        container.salary_service.create(
            NewSalary(
                employee=employee.id,
                month=3,
                year=2025,
                attendance=AttendanceSummary(total_working_days=Decimal("20"), present_days=Decimal("21")),
            )
        )


def test_deductions_cannot_exceed_gross(container, employee):
    with pytest.raises(ValidationError):
        container.salary_service.create(
            draft(employee, earnings=Earnings(basic_salary=Decimal("100")), deductions=Deductions(tax=Decimal("101")))
        )


def test_payment_flow(container, employee):
    salary = container.salary_service.create(draft(employee))
    with pytest.raises(InvalidTransitionError):
        container.salary_service.mark_paid(salary.id, method=PaymentMethod.CASH)

    container.salary_service.mark_processing(salary.id)
    held = container.salary_service.hold(salary.id, reason="Bank details missing")
    assert held.payment_status == PaymentStatus.ON_HOLD
    assert held.remarks == "Bank details missing"
    resumed = container.salary_service.resume(salary.id, to=PaymentStatus.PROCESSING)
    assert resumed.payment_status == PaymentStatus.PROCESSING

    with pytest.raises(ValidationError):
        container.salary_service.mark_paid(salary.id, method=PaymentMethod.BANK_TRANSFER)
    paid = container.salary_service.mark_paid(salary.id, method=PaymentMethod.BANK_TRANSFER, transaction_id="TX-1")
    assert paid.payment_status == PaymentStatus.PAID
    assert paid.payment_date is not None

    with pytest.raises(InvalidTransitionError):
        container.salary_service.hold(salary.id)
    with pytest.raises(ValidationError):
        container.salary_service.update(salary.id, {"earnings.bonus": 10})


def test_update_recomputes_totals(container, employee):
    salary = container.salary_service.create(draft(employee))
    updated = container.salary_service.update(salary.id, {"earnings.bonus": "150.00"})
    assert updated.gross_salary == salary.gross_salary + Decimal("150.00")
    assert updated.net_salary == updated.gross_salary - updated.total_deductions

    with pytest.raises(ValidationError):
        container.salary_service.update(salary.id, {"net_salary": "1.00"})


def test_period_queries(container, make_employee):
    a = make_employee()
    b = make_employee()
    jan = container.salary_service.create(draft(a, month=1))
    feb = container.salary_service.create(draft(a, month=2))
    feb_b = container.salary_service.create(draft(b, month=2))
    container.salary_service.mark_processing(feb_b.id)

    assert [s.id for s in container.salary_service.history(a.id)] == [feb.id, jan.id]
    assert {s.id for s in container.salary_service.list_for_period(2025, 2)} == {feb.id, feb_b.id}
    periods = [(s.year, s.month) for s in container.salary_service.list_for_period(2025)]
    assert periods == sorted(periods, reverse=True)
    processing = container.salary_service.list_by_payment_status(PaymentStatus.PROCESSING)
    assert [s.id for s in processing] == [feb_b.id]
    assert container.salary_service.get_for_period(a.id, 1, 2025).id == jan.id
    with pytest.raises(NotFoundError):
        container.salary_service.get_for_period(b.id, 1, 2025)

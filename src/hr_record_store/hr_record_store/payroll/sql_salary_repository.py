from __future__ import annotations

from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import insert, select

from ..common.datetime_utils import now_local
from ..core.enums import PaymentMethod, PaymentStatus
from ..database.connection import DatabaseConnection
from ..database.records import versioned_update
from ..database.session import db_session, read_session, run_in_transaction
from ..database.tables import SalaryRow
from .model import AttendanceSummary, Deductions, Earnings, Salary
from .repository import SalaryRepository

_EARNINGS = [f for f in Earnings.__dataclass_fields__]
_DEDUCTIONS = [f for f in Deductions.__dataclass_fields__]
_ATTENDANCE = [f for f in AttendanceSummary.__dataclass_fields__]


class SqlSalaryRepository(SalaryRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, salary_id: str) -> Optional[Salary]:
        with db_session(self._conn_factory) as session:
            r = session.get(SalaryRow, salary_id)
            return self._to_entity(r) if r else None

    def get_for_period(self, employee_id: str, month: int, year: int) -> Optional[Salary]:
        with db_session(self._conn_factory) as session:
            r = session.scalars(
                select(SalaryRow).where(
                    SalaryRow.employee_id == employee_id, SalaryRow.month == month, SalaryRow.year == year
                )
            ).first()
            return self._to_entity(r) if r else None

    def list_for_employee(self, employee_id: str, *, limit: int = 200) -> Sequence[Salary]:
        stmt = (
            select(SalaryRow)
            .where(SalaryRow.employee_id == employee_id)
            .order_by(SalaryRow.year.desc(), SalaryRow.month.desc())
            .limit(int(limit))
        )
        with db_session(self._conn_factory) as session:
            return [self._to_entity(r) for r in session.scalars(stmt)]

    def list_for_period(
        self,
        year: int,
        month: Optional[int] = None,
        *,
        payment_status: Optional[PaymentStatus] = None,
        limit: int = 200,
        timeout: Optional[float] = None,
    ) -> Sequence[Salary]:
        stmt = select(SalaryRow).where(SalaryRow.year == year)
        if month is not None:
            stmt = stmt.where(SalaryRow.month == month)
        if payment_status is not None:
            stmt = stmt.where(SalaryRow.payment_status == payment_status.value)
        stmt = stmt.order_by(SalaryRow.year.desc(), SalaryRow.month.desc(), SalaryRow.employee_id).limit(int(limit))
        with read_session(self._conn_factory, timeout=timeout) as session:
            return [self._to_entity(r) for r in session.scalars(stmt)]

    def list_by_payment_status(
        self, payment_status: PaymentStatus, *, limit: int = 200, timeout: Optional[float] = None
    ) -> Sequence[Salary]:
        stmt = (
            select(SalaryRow)
            .where(SalaryRow.payment_status == payment_status.value)
            .order_by(SalaryRow.year.desc(), SalaryRow.month.desc(), SalaryRow.employee_id)
            .limit(int(limit))
        )
        with read_session(self._conn_factory, timeout=timeout) as session:
            return [self._to_entity(r) for r in session.scalars(stmt)]

    def create(self, salary: Salary) -> Salary:
        def work(session):
            session.execute(insert(SalaryRow).values(**self._to_values(salary)))
            return salary

        return run_in_transaction(self._conn_factory, work)

    def update(
        self, salary: Salary, *, expected_version: int, expected_status: PaymentStatus
    ) -> Optional[Salary]:
        def work(session):
            ok = versioned_update(
                session,
                SalaryRow,
                entity_id=salary.id,
                expected_version=expected_version,
                values=self._to_values(salary),
                now=now_local(),
                guard={"payment_status": expected_status.value},
            )
            return self.get_by_id(salary.id) if ok else None

        return run_in_transaction(self._conn_factory, work)

    @staticmethod
    def _to_values(s: Salary) -> dict:
        values = {
            "id": s.id,
            "employee_id": s.employee,
            "month": s.month,
            "year": s.year,
            "gross_salary": s.gross_salary,
            "total_deductions": s.total_deductions,
            "net_salary": s.net_salary,
            "payment_status": s.payment_status.value,
            "payment_date": s.payment_date,
            "payment_method": s.payment_method.value if s.payment_method else None,
            "transaction_id": s.transaction_id,
            "remarks": s.remarks,
            "generated_by": s.generated_by,
            "created_at": s.created_at,
            "updated_at": s.updated_at,
            "version": s.version,
        }
        values.update({name: getattr(s.earnings, name) for name in _EARNINGS})
        values.update({name: getattr(s.deductions, name) for name in _DEDUCTIONS})
        values.update({name: getattr(s.attendance, name) for name in _ATTENDANCE})
        return values

    @staticmethod
    def _to_entity(r: SalaryRow) -> Salary:
        def dec(name):
            value = getattr(r, name)
            return Decimal(str(value if value is not None else 0))

        return Salary(
            id=r.id,
            employee=r.employee_id,
            month=int(r.month),
            year=int(r.year),
            earnings=Earnings(**{name: dec(name) for name in _EARNINGS}),
            deductions=Deductions(**{name: dec(name) for name in _DEDUCTIONS}),
            attendance=AttendanceSummary(**{name: dec(name) for name in _ATTENDANCE}),
            gross_salary=dec("gross_salary"),
            total_deductions=dec("total_deductions"),
            net_salary=dec("net_salary"),
            payment_status=PaymentStatus(r.payment_status),
            payment_date=r.payment_date,
            payment_method=PaymentMethod(r.payment_method) if r.payment_method else None,
            transaction_id=r.transaction_id,
            remarks=r.remarks,
            generated_by=r.generated_by,
            created_at=r.created_at,
            updated_at=r.updated_at,
            version=int(r.version),
        )

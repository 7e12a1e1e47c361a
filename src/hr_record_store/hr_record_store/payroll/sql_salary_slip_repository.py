from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import insert, select, update

from ..common.datetime_utils import now_local
from ..core.enums import EmailStatus
from ..database.connection import DatabaseConnection
from ..database.records import versioned_update
from ..database.session import db_session, run_in_transaction
from ..database.tables import SalarySlipDownloadRow, SalarySlipRow
from .model import SalarySlip
from .repository import SalarySlipRepository


class SqlSalarySlipRepository(SalarySlipRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, slip_id: str) -> Optional[SalarySlip]:
        return self._first(SalarySlipRow.id == slip_id)

    def get_by_slip_number(self, slip_number: str) -> Optional[SalarySlip]:
        return self._first(SalarySlipRow.slip_number == slip_number.strip())

    def get_by_salary(self, salary_id: str) -> Optional[SalarySlip]:
        return self._first(SalarySlipRow.salary_id == salary_id)

    def list_for_employee(self, employee_id: str, *, limit: int = 200) -> Sequence[SalarySlip]:
        stmt = (
            select(SalarySlipRow)
            .where(SalarySlipRow.employee_id == employee_id)
            .order_by(SalarySlipRow.year.desc(), SalarySlipRow.month.desc())
            .limit(int(limit))
        )
        return self._all(stmt)

    def list_by_email_sent(self, email_sent: bool, *, limit: int = 200) -> Sequence[SalarySlip]:
        stmt = (
            select(SalarySlipRow)
            .where(SalarySlipRow.email_sent == bool(email_sent))
            .order_by(SalarySlipRow.generated_at.asc())
            .limit(int(limit))
        )
        return self._all(stmt)

    def create(self, slip: SalarySlip) -> SalarySlip:
        def work(session):
            session.execute(insert(SalarySlipRow).values(**self._to_values(slip)))
            return slip

        return run_in_transaction(self._conn_factory, work)

    def update(
        self, slip: SalarySlip, *, expected_version: int, expected_status: EmailStatus
    ) -> Optional[SalarySlip]:
        def work(session):
            ok = versioned_update(
                session,
                SalarySlipRow,
                entity_id=slip.id,
                expected_version=expected_version,
                values=self._to_values(slip),
                now=now_local(),
                guard={"email_status": expected_status.value},
            )
            return self.get_by_id(slip.id) if ok else None

        return run_in_transaction(self._conn_factory, work)

    def record_download(self, slip_id: str, at: datetime) -> Optional[SalarySlip]:
        def work(session):
            result = session.execute(
                update(SalarySlipRow)
                .where(SalarySlipRow.id == slip_id)
                .values(
                    download_count=SalarySlipRow.download_count + 1,
                    version=SalarySlipRow.version + 1,
                    updated_at=now_local(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return None
            session.execute(insert(SalarySlipDownloadRow).values(slip_id=slip_id, downloaded_at=at))
            session.expire_all()
            return self.get_by_id(slip_id)

        return run_in_transaction(self._conn_factory, work)

    def _first(self, condition) -> Optional[SalarySlip]:
        with db_session(self._conn_factory) as session:
            r = session.scalars(select(SalarySlipRow).where(condition)).first()
            return self._to_entity(session, r) if r else None

    def _all(self, stmt) -> Sequence[SalarySlip]:
        with db_session(self._conn_factory) as session:
            return [self._to_entity(session, r) for r in session.scalars(stmt).all()]

    @staticmethod
    def _to_values(s: SalarySlip) -> dict:
        # downloaded_at lives in its own table and is only appended by record_download.
        return {
            "id": s.id,
            "salary_id": s.salary,
            "employee_id": s.employee,
            "slip_number": s.slip_number,
            "month": s.month,
            "year": s.year,
            "generated_at": s.generated_at,
            "pdf_url": s.pdf_url,
            "email_sent": bool(s.email_sent),
            "email_sent_at": s.email_sent_at,
            "email_status": s.email_status.value,
            "download_count": s.download_count,
            "created_at": s.created_at,
            "updated_at": s.updated_at,
            "version": s.version,
        }

    @staticmethod
    def _to_entity(session, r: SalarySlipRow) -> SalarySlip:
        downloads = session.scalars(
            select(SalarySlipDownloadRow.downloaded_at)
            .where(SalarySlipDownloadRow.slip_id == r.id)
            .order_by(SalarySlipDownloadRow.downloaded_at.asc(), SalarySlipDownloadRow.id.asc())
        ).all()
        return SalarySlip(
            id=r.id,
            salary=r.salary_id,
            employee=r.employee_id,
            month=int(r.month),
            year=int(r.year),
            slip_number=r.slip_number,
            generated_at=r.generated_at,
            pdf_url=r.pdf_url,
            email_sent=bool(r.email_sent),
            email_sent_at=r.email_sent_at,
            email_status=EmailStatus(r.email_status),
            downloaded_at=tuple(downloads),
            created_at=r.created_at,
            updated_at=r.updated_at,
            version=int(r.version),
        )

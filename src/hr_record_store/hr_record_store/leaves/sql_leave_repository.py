from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from sqlalchemy import insert, select, update

from ..common.datetime_utils import now_local
from ..common.serialization import read_datetime, to_jsonable
from ..core.enums import LeaveStatus, LeaveType
from ..core.exceptions import OverlapError
from ..database.connection import DatabaseConnection
from ..database.records import versioned_update
from ..database.session import db_session, read_session, run_in_transaction
from ..database.tables import EmployeeRow, LeaveRow
from .model import BLOCKING_STATUSES, Leave, SupportingDocument
from .repository import LeaveRepository


class SqlLeaveRepository(LeaveRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, leave_id: str) -> Optional[Leave]:
        with db_session(self._conn_factory) as session:
            r = session.get(LeaveRow, leave_id)
            return self._to_entity(r) if r else None

    def list_for_employee(self, employee_id: str, *, limit: int = 200) -> Sequence[Leave]:
        stmt = (
            select(LeaveRow)
            .where(LeaveRow.employee_id == employee_id)
            .order_by(LeaveRow.start_date.desc(), LeaveRow.applied_on.desc())
            .limit(int(limit))
        )
        with db_session(self._conn_factory) as session:
            return [self._to_entity(r) for r in session.scalars(stmt)]

    def list_by_status(
        self, status: LeaveStatus, *, limit: int = 200, timeout: Optional[float] = None
    ) -> Sequence[Leave]:
        stmt = (
            select(LeaveRow)
            .where(LeaveRow.status == status.value)
            .order_by(LeaveRow.applied_on.desc())
            .limit(int(limit))
        )
        with read_session(self._conn_factory, timeout=timeout) as session:
            return [self._to_entity(r) for r in session.scalars(stmt)]

    def find_overlapping(
        self,
        employee_id: str,
        start_date: date,
        end_date: date,
        *,
        statuses: Iterable[LeaveStatus],
        exclude_id: Optional[str] = None,
    ) -> Sequence[Leave]:
        with db_session(self._conn_factory) as session:
            return [
                self._to_entity(r)
                for r in session.scalars(self._overlap_stmt(employee_id, start_date, end_date, statuses, exclude_id))
            ]

    def list_in_range(
        self,
        start_date: date,
        end_date: date,
        *,
        status: Optional[LeaveStatus] = None,
        limit: int = 200,
        timeout: Optional[float] = None,
    ) -> Sequence[Leave]:
        stmt = select(LeaveRow).where(LeaveRow.start_date <= end_date, LeaveRow.end_date >= start_date)
        if status is not None:
            stmt = stmt.where(LeaveRow.status == status.value)
        stmt = stmt.order_by(LeaveRow.start_date.asc(), LeaveRow.employee_id.asc()).limit(int(limit))
        with read_session(self._conn_factory, timeout=timeout) as session:
            return [self._to_entity(r) for r in session.scalars(stmt)]

    def create(self, leave: Leave) -> Leave:
        def work(session):
            self._assert_no_overlap(session, leave)
            session.execute(insert(LeaveRow).values(**self._to_values(leave)))
            return leave

        return run_in_transaction(self._conn_factory, work)

    def update(
        self,
        leave: Leave,
        *,
        expected_version: int,
        expected_status: LeaveStatus,
        check_overlap: bool = False,
    ) -> Optional[Leave]:
        def work(session):
            if check_overlap:
                self._assert_no_overlap(session, leave)
            ok = versioned_update(
                session,
                LeaveRow,
                entity_id=leave.id,
                expected_version=expected_version,
                values=self._to_values(leave),
                now=now_local(),
                guard={"status": expected_status.value},
            )
            return self.get_by_id(leave.id) if ok else None

        return run_in_transaction(self._conn_factory, work)

    def _assert_no_overlap(self, session, leave: Leave) -> None:
        # Serializes concurrent requests of the same employee on the employee row.
        # SQLite ignores FOR UPDATE; a no-op write takes its database write lock instead.
        if self._conn_factory.dialect_name == "sqlite":
            session.execute(
                update(EmployeeRow)
                .where(EmployeeRow.id == leave.employee)
                .values(employee_id=EmployeeRow.employee_id)
                .execution_options(synchronize_session=False)
            )
        else:
            session.execute(select(EmployeeRow.id).where(EmployeeRow.id == leave.employee).with_for_update())
        clash = session.scalars(
            self._overlap_stmt(leave.employee, leave.start_date, leave.end_date, BLOCKING_STATUSES, leave.id).limit(1)
        ).first()
        if clash is not None:
            raise OverlapError(
                f"Leave overlaps {clash.status} leave {clash.start_date.isoformat()}..{clash.end_date.isoformat()}",
                conflicting_id=clash.id,
            )

    @staticmethod
    def _overlap_stmt(employee_id, start_date, end_date, statuses, exclude_id):
        stmt = select(LeaveRow).where(
            LeaveRow.employee_id == employee_id,
            LeaveRow.start_date <= end_date,
            LeaveRow.end_date >= start_date,
            LeaveRow.status.in_([s.value for s in statuses]),
        )
        if exclude_id is not None:
            stmt = stmt.where(LeaveRow.id != exclude_id)
        return stmt.order_by(LeaveRow.start_date.asc())

    @staticmethod
    def _to_values(l: Leave) -> dict:
        return {
            "id": l.id,
            "employee_id": l.employee,
            "leave_type": l.leave_type.value,
            "start_date": l.start_date,
            "end_date": l.end_date,
            "number_of_days": l.number_of_days,
            "reason": l.reason,
            "status": l.status.value,
            "applied_on": l.applied_on,
            "approved_by": l.approved_by,
            "approved_on": l.approved_on,
            "rejection_reason": l.rejection_reason,
            "supporting_documents": to_jsonable(l.supporting_documents),
            "created_at": l.created_at,
            "updated_at": l.updated_at,
            "version": l.version,
        }

    @staticmethod
    def _to_entity(r: LeaveRow) -> Leave:
        return Leave(
            id=r.id,
            employee=r.employee_id,
            leave_type=LeaveType(r.leave_type),
            start_date=r.start_date,
            end_date=r.end_date,
            number_of_days=Decimal(str(r.number_of_days)),
            reason=r.reason,
            status=LeaveStatus(r.status),
            applied_on=r.applied_on,
            approved_by=r.approved_by,
            approved_on=r.approved_on,
            rejection_reason=r.rejection_reason,
            supporting_documents=tuple(
                SupportingDocument(
                    document_name=d["document_name"],
                    document_url=d["document_url"],
                    uploaded_at=read_datetime(d["uploaded_at"]),
                )
                for d in (r.supporting_documents or [])
            ),
            created_at=r.created_at,
            updated_at=r.updated_at,
            version=int(r.version),
        )

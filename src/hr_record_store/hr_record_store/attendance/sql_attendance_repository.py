from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import insert, select

from ..common.datetime_utils import now_local
from ..common.serialization import read_datetime, to_jsonable
from ..core.enums import AttendanceStatus, PunchSource, WorkType
from ..database.connection import DatabaseConnection
from ..database.records import versioned_update
from ..database.session import db_session, read_session, run_in_transaction
from ..database.tables import AttendanceRow
from .model import Attendance, BreakInterval, EarlyDeparture, LateArrival, Overtime, Punch
from .repository import AttendanceRepository


class SqlAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, attendance_id: str) -> Optional[Attendance]:
        with db_session(self._conn_factory) as session:
            r = session.get(AttendanceRow, attendance_id)
            return self._to_entity(r) if r else None

    def get_for_employee_and_date(self, employee_id: str, work_date: date) -> Optional[Attendance]:
        with db_session(self._conn_factory) as session:
            r = session.scalars(
                select(AttendanceRow).where(AttendanceRow.employee_id == employee_id, AttendanceRow.date == work_date)
            ).first()
            return self._to_entity(r) if r else None

    def list_for_employee(
        self,
        employee_id: str,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: int = 200,
        timeout: Optional[float] = None,
    ) -> Sequence[Attendance]:
        stmt = select(AttendanceRow).where(AttendanceRow.employee_id == employee_id)
        if start_date is not None:
            stmt = stmt.where(AttendanceRow.date >= start_date)
        if end_date is not None:
            stmt = stmt.where(AttendanceRow.date <= end_date)
        stmt = stmt.order_by(AttendanceRow.date.desc()).limit(int(limit))
        with read_session(self._conn_factory, timeout=timeout) as session:
            return [self._to_entity(r) for r in session.scalars(stmt)]

    def list_by_date(
        self,
        work_date: date,
        *,
        status: Optional[AttendanceStatus] = None,
        limit: int = 200,
        timeout: Optional[float] = None,
    ) -> Sequence[Attendance]:
        stmt = select(AttendanceRow).where(AttendanceRow.date == work_date)
        if status is not None:
            stmt = stmt.where(AttendanceRow.status == status.value)
        stmt = stmt.order_by(AttendanceRow.employee_id.asc()).limit(int(limit))
        with read_session(self._conn_factory, timeout=timeout) as session:
            return [self._to_entity(r) for r in session.scalars(stmt)]

    def create(self, record: Attendance) -> Attendance:
        def work(session):
            session.execute(insert(AttendanceRow).values(**self._to_values(record)))
            return record

        return run_in_transaction(self._conn_factory, work)

    def update(self, record: Attendance, *, expected_version: int) -> Optional[Attendance]:
        def work(session):
            ok = versioned_update(
                session,
                AttendanceRow,
                entity_id=record.id,
                expected_version=expected_version,
                values=self._to_values(record),
                now=now_local(),
            )
            return self.get_by_id(record.id) if ok else None

        return run_in_transaction(self._conn_factory, work)

    @staticmethod
    def _to_values(a: Attendance) -> dict:
        return {
            "id": a.id,
            "employee_id": a.employee,
            "date": a.date,
            "check_in": to_jsonable(a.check_in) if a.check_in else None,
            "check_out": to_jsonable(a.check_out) if a.check_out else None,
            "breaks": to_jsonable(a.breaks),
            "total_work_hours": a.total_work_hours,
            "total_break_time": int(a.total_break_time or 0),
            "work_type": a.work_type.value,
            "status": a.status.value,
            "is_late": bool(a.late_arrival.is_late),
            "late_by_minutes": int(a.late_arrival.late_by_minutes),
            "is_early": bool(a.early_departure.is_early),
            "early_by_minutes": int(a.early_departure.early_by_minutes),
            "overtime_hours": a.overtime.hours,
            "overtime_approved": bool(a.overtime.approved),
            "remarks": a.remarks,
            "approved_by": a.approved_by,
            "created_at": a.created_at,
            "updated_at": a.updated_at,
            "version": a.version,
        }

    @staticmethod
    def _punch(data: Optional[dict]) -> Optional[Punch]:
        if not data:
            return None
        return Punch(
            time=read_datetime(data["time"]),
            location=data.get("location"),
            source=PunchSource(data.get("source") or PunchSource.BIOMETRIC.value),
            ip_address=data.get("ip_address"),
        )

    @classmethod
    def _to_entity(cls, r: AttendanceRow) -> Attendance:
        return Attendance(
            id=r.id,
            employee=r.employee_id,
            date=r.date,
            check_in=cls._punch(r.check_in),
            check_out=cls._punch(r.check_out),
            breaks=tuple(
                BreakInterval(
                    break_in=read_datetime(b["break_in"]),
                    reason=b.get("reason"),
                    break_out=read_datetime(b.get("break_out")),
                    duration=b.get("duration"),
                )
                for b in (r.breaks or [])
            ),
            total_work_hours=Decimal(r.total_work_hours) if r.total_work_hours is not None else None,
            total_break_time=int(r.total_break_time or 0),
            work_type=WorkType(r.work_type),
            status=AttendanceStatus(r.status),
            late_arrival=LateArrival(is_late=bool(r.is_late), late_by_minutes=int(r.late_by_minutes or 0)),
            early_departure=EarlyDeparture(is_early=bool(r.is_early), early_by_minutes=int(r.early_by_minutes or 0)),
            overtime=Overtime(hours=Decimal(r.overtime_hours or 0), approved=bool(r.overtime_approved)),
            remarks=r.remarks,
            approved_by=r.approved_by,
            created_at=r.created_at,
            updated_at=r.updated_at,
            version=int(r.version),
        )

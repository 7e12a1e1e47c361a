from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import insert, select, update

from ..core.enums import BiometricLogType
from ..database.connection import DatabaseConnection
from ..database.session import db_session, read_session, run_in_transaction
from ..database.tables import BiometricLogRow
from .model import BiometricLog
from .repository import BiometricLogRepository


class SqlBiometricLogRepository(BiometricLogRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, log_id: str) -> Optional[BiometricLog]:
        with db_session(self._conn_factory) as session:
            r = session.get(BiometricLogRow, log_id, populate_existing=True)
            return self._to_entity(r) if r else None

    def list_unprocessed(self, *, limit: int = 200) -> Sequence[BiometricLog]:
        stmt = (
            select(BiometricLogRow)
            .where(BiometricLogRow.processed.is_(False))
            .order_by(BiometricLogRow.timestamp.asc(), BiometricLogRow.created_at.asc())
            .limit(int(limit))
        )
        with db_session(self._conn_factory) as session:
            return [self._to_entity(r) for r in session.scalars(stmt)]

    def list_by_biometric_id(self, biometric_id: str, *, limit: int = 200) -> Sequence[BiometricLog]:
        stmt = (
            select(BiometricLogRow)
            .where(BiometricLogRow.biometric_id == biometric_id)
            .order_by(BiometricLogRow.timestamp.desc())
            .limit(int(limit))
        )
        with db_session(self._conn_factory) as session:
            return [self._to_entity(r) for r in session.scalars(stmt)]

    def list_for_employee(
        self, employee_id: str, *, limit: int = 200, timeout: Optional[float] = None
    ) -> Sequence[BiometricLog]:
        stmt = (
            select(BiometricLogRow)
            .where(BiometricLogRow.employee_id == employee_id)
            .order_by(BiometricLogRow.timestamp.desc())
            .limit(int(limit))
        )
        with read_session(self._conn_factory, timeout=timeout) as session:
            return [self._to_entity(r) for r in session.scalars(stmt)]

    def create(self, log: BiometricLog) -> BiometricLog:
        def work(session):
            session.execute(insert(BiometricLogRow).values(**self._to_values(log)))
            return log

        return run_in_transaction(self._conn_factory, work)

    def update_unprocessed(self, log: BiometricLog) -> bool:
        values = self._to_values(log)
        for key in ("id", "created_at", "processed", "processed_at", "attendance_id"):
            values.pop(key)

        def work(session):
            result = session.execute(
                update(BiometricLogRow)
                .where(BiometricLogRow.id == log.id, BiometricLogRow.processed.is_(False))
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

        return run_in_transaction(self._conn_factory, work)

    def claim(
        self,
        log_id: str,
        *,
        at: datetime,
        employee_id: Optional[str] = None,
        attendance_id: Optional[str] = None,
    ) -> bool:
        values = {"processed": True, "processed_at": at}
        if employee_id is not None:
            values["employee_id"] = employee_id
        if attendance_id is not None:
            values["attendance_id"] = attendance_id

        def work(session):
            result = session.execute(
                update(BiometricLogRow)
                .where(BiometricLogRow.id == log_id, BiometricLogRow.processed.is_(False))
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

        return run_in_transaction(self._conn_factory, work)

    def link_attendance(self, log_id: str, attendance_id: str) -> None:
        def work(session):
            session.execute(
                update(BiometricLogRow)
                .where(BiometricLogRow.id == log_id)
                .values(attendance_id=attendance_id)
                .execution_options(synchronize_session=False)
            )

        run_in_transaction(self._conn_factory, work)

    @staticmethod
    def _to_values(b: BiometricLog) -> dict:
        return {
            "id": b.id,
            "biometric_id": b.biometric_id,
            "employee_id": b.employee,
            "log_type": b.log_type.value,
            "timestamp": b.timestamp,
            "device_id": b.device_id,
            "device_location": b.device_location,
            "processed": bool(b.processed),
            "processed_at": b.processed_at,
            "attendance_id": b.attendance_record,
            "raw_data": dict(b.raw_data) if b.raw_data is not None else None,
            "created_at": b.created_at,
        }

    @staticmethod
    def _to_entity(r: BiometricLogRow) -> BiometricLog:
        return BiometricLog(
            id=r.id,
            biometric_id=r.biometric_id,
            employee=r.employee_id,
            log_type=BiometricLogType(r.log_type),
            timestamp=r.timestamp,
            device_id=r.device_id,
            device_location=r.device_location,
            processed=bool(r.processed),
            processed_at=r.processed_at,
            attendance_record=r.attendance_id,
            raw_data=r.raw_data,
            created_at=r.created_at,
        )

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from .model import BiometricLog


class BiometricLogRepository(Protocol):
    def get_by_id(self, log_id: str) -> Optional[BiometricLog]:
        raise NotImplementedError

    def list_unprocessed(self, *, limit: int = 200) -> Sequence[BiometricLog]:
        """Oldest event first."""

        raise NotImplementedError

    def list_by_biometric_id(self, biometric_id: str, *, limit: int = 200) -> Sequence[BiometricLog]:
        """Newest event first."""

        raise NotImplementedError

    def list_for_employee(
        self, employee_id: str, *, limit: int = 200, timeout: Optional[float] = None
    ) -> Sequence[BiometricLog]:
        """Newest event first."""

        raise NotImplementedError

    def create(self, log: BiometricLog) -> BiometricLog:
        raise NotImplementedError

    def update_unprocessed(self, log: BiometricLog) -> bool:
        """Rewrite an unprocessed log. False when it is gone or already processed."""

        raise NotImplementedError

    def claim(
        self,
        log_id: str,
        *,
        at: datetime,
        employee_id: Optional[str] = None,
        attendance_id: Optional[str] = None,
    ) -> bool:
        """Flip ``processed`` from false to true. False when the log was already processed."""

        raise NotImplementedError

    def link_attendance(self, log_id: str, attendance_id: str) -> None:
        raise NotImplementedError

from __future__ import annotations

from datetime import date
from typing import Iterable, Optional, Protocol, Sequence

from ..core.enums import LeaveStatus
from .model import Leave


class LeaveRepository(Protocol):
    def get_by_id(self, leave_id: str) -> Optional[Leave]:
        raise NotImplementedError

    def list_for_employee(self, employee_id: str, *, limit: int = 200) -> Sequence[Leave]:
        """Newest start date first."""

        raise NotImplementedError

    def list_by_status(
        self, status: LeaveStatus, *, limit: int = 200, timeout: Optional[float] = None
    ) -> Sequence[Leave]:
        """Most recently applied first."""

        raise NotImplementedError

    def find_overlapping(
        self,
        employee_id: str,
        start_date: date,
        end_date: date,
        *,
        statuses: Iterable[LeaveStatus],
        exclude_id: Optional[str] = None,
    ) -> Sequence[Leave]:
        raise NotImplementedError

    def list_in_range(
        self,
        start_date: date,
        end_date: date,
        *,
        status: Optional[LeaveStatus] = None,
        limit: int = 200,
        timeout: Optional[float] = None,
    ) -> Sequence[Leave]:
        raise NotImplementedError

    def create(self, leave: Leave) -> Leave:
        """Insert unless another Pending/Approved leave of the employee overlaps."""

        raise NotImplementedError

    def update(
        self,
        leave: Leave,
        *,
        expected_version: int,
        expected_status: LeaveStatus,
        check_overlap: bool = False,
    ) -> Optional[Leave]:
        raise NotImplementedError

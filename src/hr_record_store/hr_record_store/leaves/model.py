from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Tuple

from ..core.enums import LeaveStatus, LeaveType

LEAVE_TRANSITIONS = {
    LeaveStatus.PENDING: frozenset({LeaveStatus.APPROVED, LeaveStatus.REJECTED, LeaveStatus.CANCELLED}),
    LeaveStatus.APPROVED: frozenset({LeaveStatus.CANCELLED}),
    LeaveStatus.REJECTED: frozenset(),
    LeaveStatus.CANCELLED: frozenset(),
}

# Statuses that hold the dates of a leave.
BLOCKING_STATUSES = (LeaveStatus.PENDING, LeaveStatus.APPROVED)


@dataclass(frozen=True)
class SupportingDocument:
    document_name: str
    document_url: str
    uploaded_at: datetime


@dataclass(frozen=True)
class Leave:
    """Domain entity: a leave request over an inclusive date range."""

    id: str
    employee: str
    leave_type: LeaveType
    start_date: date
    end_date: date
    number_of_days: Decimal
    reason: str
    status: LeaveStatus
    applied_on: datetime
    approved_by: Optional[str]
    approved_on: Optional[datetime]
    rejection_reason: Optional[str]
    supporting_documents: Tuple[SupportingDocument, ...]
    created_at: datetime
    updated_at: datetime
    version: int = 1

    def overlaps(self, start: date, end: date) -> bool:
        return self.start_date <= end and start <= self.end_date


@dataclass(frozen=True)
class NewLeave:
    employee: str
    leave_type: LeaveType
    start_date: date
    end_date: date
    reason: str
    number_of_days: Optional[Decimal] = None  # derived from the working-day calendar when omitted
    supporting_documents: Tuple[SupportingDocument, ...] = ()

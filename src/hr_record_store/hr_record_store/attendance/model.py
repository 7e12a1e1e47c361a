from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Tuple

from ..common.datetime_utils import minutes_between
from ..core.enums import AttendanceStatus, PunchSource, WorkType


@dataclass(frozen=True)
class Punch:
    """A check-in or check-out."""

    time: datetime
    location: Optional[str] = None
    source: PunchSource = PunchSource.BIOMETRIC
    ip_address: Optional[str] = None


@dataclass(frozen=True)
class BreakInterval:
    break_in: datetime
    reason: Optional[str] = None
    break_out: Optional[datetime] = None
    duration: Optional[int] = None  # minutes, derived

    @property
    def is_open(self) -> bool:
        return self.break_out is None


@dataclass(frozen=True)
class LateArrival:
    is_late: bool = False
    late_by_minutes: int = 0


@dataclass(frozen=True)
class EarlyDeparture:
    is_early: bool = False
    early_by_minutes: int = 0


@dataclass(frozen=True)
class Overtime:
    hours: Decimal = Decimal("0")
    approved: bool = False


@dataclass(frozen=True)
class Attendance:
    """Domain entity: one employee's attendance for one calendar date."""

    id: str
    employee: str
    date: date
    check_in: Optional[Punch]
    check_out: Optional[Punch]
    breaks: Tuple[BreakInterval, ...]
    total_work_hours: Optional[Decimal]
    total_break_time: int
    work_type: WorkType
    status: AttendanceStatus
    late_arrival: LateArrival
    early_departure: EarlyDeparture
    overtime: Overtime
    remarks: Optional[str]
    approved_by: Optional[str]
    created_at: datetime
    updated_at: datetime
    version: int = 1

    @property
    def open_break(self) -> Optional[BreakInterval]:
        for interval in reversed(self.breaks):
            if interval.is_open:
                return interval
        return None

    @property
    def is_closed(self) -> bool:
        return self.check_out is not None


@dataclass(frozen=True)
class NewAttendance:
    employee: str
    date: date
    check_in: Optional[Punch] = None
    check_out: Optional[Punch] = None
    breaks: Tuple[BreakInterval, ...] = ()
    work_type: WorkType = WorkType.OFFICE
    status: AttendanceStatus = AttendanceStatus.PRESENT
    late_arrival: LateArrival = field(default_factory=LateArrival)
    early_departure: EarlyDeparture = field(default_factory=EarlyDeparture)
    overtime: Overtime = field(default_factory=Overtime)
    remarks: Optional[str] = None
    approved_by: Optional[str] = None


def with_derived_totals(record: Attendance) -> Attendance:
    """Recompute break durations, total break time and total work hours."""
    breaks = tuple(
        dataclasses.replace(b, duration=minutes_between(b.break_in, b.break_out) if b.break_out else None)
        for b in record.breaks
    )
    break_minutes = sum(b.duration or 0 for b in breaks)

    work_hours = None
    if record.check_in and record.check_out:
        worked = max(minutes_between(record.check_in.time, record.check_out.time) - break_minutes, 0)
        work_hours = (Decimal(worked) / Decimal(60)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    return dataclasses.replace(record, breaks=breaks, total_break_time=break_minutes, total_work_hours=work_hours)

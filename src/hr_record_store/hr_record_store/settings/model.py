"""Settings records and their typed payloads.

Each category has one stored record. WorkingHours, LeavePolicy,
AttendanceRules and Holidays carry a dataclass payload; every other category
keeps a free-form key/value mapping.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping, Optional, Tuple, Union

from ..common.datetime_utils import as_date, parse_hhmm
from ..common.serialization import to_jsonable
from ..common.validators import require_non_empty, require_non_negative_int, to_non_negative_number
from ..core.enums import SettingsCategory
from ..core.exceptions import ValidationError

WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


@dataclass(frozen=True)
class WorkingHours:
    start_time: str = "09:00"
    end_time: str = "18:00"
    late_grace_period: int = 15  # minutes
    half_day_hours: Decimal = Decimal("4")
    full_day_hours: Decimal = Decimal("8")


@dataclass(frozen=True)
class LeavePolicy:
    casual: Decimal = Decimal("12")
    sick: Decimal = Decimal("10")
    annual: Decimal = Decimal("15")
    carry_forward: bool = True
    max_carry_forward: Decimal = Decimal("5")


@dataclass(frozen=True)
class AttendanceRules:
    auto_checkout: bool = True
    auto_checkout_time: str = "19:00"
    weekends: Tuple[str, ...] = ("Saturday", "Sunday")
    overtime_approval_required: bool = True

    @property
    def weekend_days(self) -> frozenset:
        """Weekend days as ``date.weekday()`` numbers."""
        return frozenset(WEEKDAY_NAMES.index(name) for name in self.weekends)


@dataclass(frozen=True)
class Holiday:
    date: date
    name: str
    type: str = "National"


@dataclass(frozen=True)
class HolidayCalendar:
    holidays: Tuple[Holiday, ...] = ()

    def dates(self) -> frozenset:
        return frozenset(h.date for h in self.holidays)


@dataclass(frozen=True)
class GenericSettings:
    values: Mapping[str, Any] = field(default_factory=dict)


SettingsPayload = Union[WorkingHours, LeavePolicy, AttendanceRules, HolidayCalendar, GenericSettings]

_TYPED = {
    SettingsCategory.WORKING_HOURS: WorkingHours,
    SettingsCategory.LEAVE_POLICY: LeavePolicy,
    SettingsCategory.ATTENDANCE_RULES: AttendanceRules,
    SettingsCategory.HOLIDAYS: HolidayCalendar,
}


@dataclass(frozen=True)
class Settings:
    id: str
    category: SettingsCategory
    payload: SettingsPayload
    updated_by: Optional[str]
    created_at: datetime
    updated_at: datetime
    version: int = 1


def default_payload(category: SettingsCategory) -> SettingsPayload:
    return _TYPED.get(category, GenericSettings)()


def parse_payload(category: SettingsCategory, raw) -> SettingsPayload:
    """Build the typed payload for ``category`` from a dataclass or a mapping.

    Mapping keys may be snake_case or camelCase ("lateGracePeriod").
    """
    expected = _TYPED.get(category, GenericSettings)
    if expected is GenericSettings:
        values = raw.values if isinstance(raw, GenericSettings) else raw
        if not isinstance(values, Mapping):
            raise ValidationError(f"{category.value} settings must be a mapping")
        return GenericSettings(values=dict(to_jsonable(dict(values))))

    if isinstance(raw, expected):
        data = to_jsonable(raw)
    elif isinstance(raw, Mapping):
        data = {_snake(k): v for k, v in raw.items()}
    else:
        raise ValidationError(f"{category.value} settings must be a mapping")

    if expected is WorkingHours:
        return _working_hours(data)
    if expected is LeavePolicy:
        return _leave_policy(data)
    if expected is AttendanceRules:
        return _attendance_rules(data)
    return _holidays(data)


def payload_to_dict(payload: SettingsPayload) -> dict:
    if isinstance(payload, GenericSettings):
        return dict(to_jsonable(dict(payload.values)))
    return to_jsonable(payload)


def _snake(key) -> str:
    return _CAMEL_RE.sub("_", str(key)).lower()


def _reject_unknown(data: Mapping[str, Any], allowed, category: str) -> None:
    unknown = sorted(set(data) - set(allowed))
    if unknown:
        raise ValidationError(f"Unknown {category} settings: {', '.join(unknown)}")


def _hhmm(value, field_name: str) -> str:
    return parse_hhmm(value, field_name).strftime("%H:%M")


def _working_hours(data: Mapping[str, Any]) -> WorkingHours:
    base = WorkingHours()
    _reject_unknown(data, base.__dataclass_fields__, "WorkingHours")
    start = _hhmm(data.get("start_time", base.start_time), "start_time")
    end = _hhmm(data.get("end_time", base.end_time), "end_time")
    if start == end:
        raise ValidationError("start_time and end_time must differ")
    half = to_non_negative_number(data.get("half_day_hours", base.half_day_hours), "half_day_hours")
    full = to_non_negative_number(data.get("full_day_hours", base.full_day_hours), "full_day_hours")
    if half > full:
        raise ValidationError("half_day_hours cannot exceed full_day_hours")
    return WorkingHours(
        start_time=start,
        end_time=end,
        late_grace_period=require_non_negative_int(data.get("late_grace_period", base.late_grace_period), "late_grace_period"),
        half_day_hours=half,
        full_day_hours=full,
    )


def _leave_policy(data: Mapping[str, Any]) -> LeavePolicy:
    base = LeavePolicy()
    _reject_unknown(data, base.__dataclass_fields__, "LeavePolicy")
    return LeavePolicy(
        casual=to_non_negative_number(data.get("casual", base.casual), "casual"),
        sick=to_non_negative_number(data.get("sick", base.sick), "sick"),
        annual=to_non_negative_number(data.get("annual", base.annual), "annual"),
        carry_forward=bool(data.get("carry_forward", base.carry_forward)),
        max_carry_forward=to_non_negative_number(data.get("max_carry_forward", base.max_carry_forward), "max_carry_forward"),
    )


def _attendance_rules(data: Mapping[str, Any]) -> AttendanceRules:
    base = AttendanceRules()
    _reject_unknown(data, base.__dataclass_fields__, "AttendanceRules")
    weekends = []
    for name in data.get("weekends", base.weekends) or ():
        day = str(name).strip().capitalize()
        if day not in WEEKDAY_NAMES:
            raise ValidationError(f"Unknown weekday: {name!r}")
        if day not in weekends:
            weekends.append(day)
    return AttendanceRules(
        auto_checkout=bool(data.get("auto_checkout", base.auto_checkout)),
        auto_checkout_time=_hhmm(data.get("auto_checkout_time", base.auto_checkout_time), "auto_checkout_time"),
        weekends=tuple(weekends),
        overtime_approval_required=bool(data.get("overtime_approval_required", base.overtime_approval_required)),
    )


def _holidays(data: Mapping[str, Any]) -> HolidayCalendar:
    _reject_unknown(data, ("holidays",), "Holidays")
    holidays = []
    seen = set()
    for item in data.get("holidays") or ():
        if not isinstance(item, Mapping):
            raise ValidationError("Each holiday must be a mapping with date and name")
        day = as_date(item.get("date"), "holidays.date")
        if day in seen:
            raise ValidationError(f"Holiday listed twice: {day.isoformat()}")
        seen.add(day)
        holidays.append(
            Holiday(
                date=day,
                name=require_non_empty(item.get("name"), "holidays.name"),
                type=str(item.get("type") or "National").strip(),
            )
        )
    return HolidayCalendar(holidays=tuple(sorted(holidays, key=lambda h: h.date)))

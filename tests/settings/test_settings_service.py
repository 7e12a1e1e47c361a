from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest

from hr_record_store.core.enums import SettingsCategory
from hr_record_store.core.exceptions import ConcurrencyConflictError, NotFoundError, ValidationError
from hr_record_store.settings.model import (
    AttendanceRules,
    GenericSettings,
    HolidayCalendar,
    Settings,
    WorkingHours,
    parse_payload,
)
from hr_record_store.settings.service import SettingsService


def test_payloads_are_typed_per_category(container):
    container.settings_service.put(
        SettingsCategory.WORKING_HOURS,
        {"startTime": "09:00", "endTime": "18:00", "lateGracePeriod": 15, "halfDayHours": 4, "fullDayHours": 8},
    )
    hours = container.settings_service.get_payload(SettingsCategory.WORKING_HOURS)
    assert isinstance(hours, WorkingHours)
    assert hours.late_grace_period == 15
    assert hours.full_day_hours == Decimal("8")


def test_unknown_categories_keep_a_generic_payload(container):
    container.settings_service.put(SettingsCategory.EMAIL_CONFIGURATION, {"smtpHost": "mail.local", "port": 25})
    payload = container.settings_service.get_payload(SettingsCategory.EMAIL_CONFIGURATION)
    assert isinstance(payload, GenericSettings)
    assert payload.values == {"smtpHost": "mail.local", "port": 25}


def test_invalid_payloads_are_rejected():
    with pytest.raises(ValidationError):
        parse_payload(SettingsCategory.WORKING_HOURS, {"startTime": "9am"})
    with pytest.raises(ValidationError):
        parse_payload(SettingsCategory.ATTENDANCE_RULES, {"weekends": ["Funday"]})
    with pytest.raises(ValidationError):
        parse_payload(SettingsCategory.LEAVE_POLICY, {"casual": -1})
    with pytest.raises(ValidationError):
        parse_payload(SettingsCategory.LEAVE_POLICY, {"bogus": 1})
    with pytest.raises(ValidationError):
        parse_payload(SettingsCategory.HOLIDAYS, {"holidays": [{"date": "2025-01-26"}]})


def test_put_creates_then_replaces(container, employee):
    first = container.settings_service.put(SettingsCategory.LEAVE_POLICY, {"casual": 10}, updated_by=employee.id)
    second = container.settings_service.put(SettingsCategory.LEAVE_POLICY, {"casual": 14})

    assert second.id == first.id
    assert second.version == first.version + 1
    assert second.payload.casual == Decimal("14")
    assert len(container.settings_service.list_all()) == 1

    with pytest.raises(ConcurrencyConflictError):
        container.settings_service.put(SettingsCategory.LEAVE_POLICY, {"casual": 1}, expected_version=first.version)


def test_missing_category(container):
    with pytest.raises(NotFoundError):
        container.settings_service.get(SettingsCategory.GENERAL)
    assert isinstance(
        container.settings_service.get_payload(SettingsCategory.ATTENDANCE_RULES, fallback=True), AttendanceRules
    )


def test_delete(container):
    container.settings_service.put(SettingsCategory.GENERAL, {"company": "Acme"})
    container.settings_service.delete(SettingsCategory.GENERAL)
    with pytest.raises(NotFoundError):
        container.settings_service.delete(SettingsCategory.GENERAL)


def test_working_days_use_weekends_and_holidays(container):
    assert container.settings_service.count_working_days(date(2025, 3, 3), date(2025, 3, 16)) == 10

    container.settings_service.put(SettingsCategory.ATTENDANCE_RULES, {"weekends": ["Friday"]})
    container.settings_service.put(
        SettingsCategory.HOLIDAYS,
        {"holidays": [{"date": "2025-03-04", "name": "Spring Day", "type": "Company"}]},
    )
    calendar = container.settings_service.get_payload(SettingsCategory.HOLIDAYS)
    assert isinstance(calendar, HolidayCalendar)
    assert calendar.holidays[0].type == "Company"

    days = container.settings_service.working_days(date(2025, 3, 3), date(2025, 3, 9))
    assert date(2025, 3, 4) not in days
    assert date(2025, 3, 7) not in days
    assert date(2025, 3, 8) in days
    assert len(days) == 5


class MisshapenSettings:
    def get_by_category(self, category):
        stamp = datetime(2025, 1, 1)
        return Settings(
            id="s1",
            category=category,
            payload=GenericSettings(values={"weekends": "Sunday"}),
            updated_by=None,
            created_at=stamp,
            updated_at=stamp,
        )


def test_calendar_rejects_a_payload_of_the_wrong_shape():
    service = SettingsService(MisshapenSettings())
    with pytest.raises(ValidationError):
        service.weekend_days()
    with pytest.raises(ValidationError):
        service.holidays()

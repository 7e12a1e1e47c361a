from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional, Sequence

from ..audit.service import AuditTrail, audit_write
from ..common.datetime_utils import as_date, iter_dates, now_local
from ..common.serialization import diff
from ..common.validators import optional_text, require_enum
from ..core.enums import SettingsCategory
from ..core.exceptions import ConcurrencyConflictError, DuplicateKeyError, InvalidReferenceError, NotFoundError, ValidationError
from ..database.records import new_id
from ..employees.repository import EmployeeRepository
from .model import (
    AttendanceRules,
    Holiday,
    HolidayCalendar,
    Settings,
    SettingsPayload,
    default_payload,
    parse_payload,
    payload_to_dict,
)
from .repository import SettingsRepository

logger = logging.getLogger(__name__)

COLLECTION = "settings"


class SettingsService:
    """Use case: system-wide configuration, one record per category."""

    def __init__(
        self,
        settings: SettingsRepository,
        employees: Optional[EmployeeRepository] = None,
        *,
        audit: Optional[AuditTrail] = None,
    ):
        self._settings = settings
        self._employees = employees
        self._audit = audit

    def get(self, category: SettingsCategory) -> Settings:
        category = require_enum(SettingsCategory, category, "category")
        record = self._settings.get_by_category(category)
        if not record:
            raise NotFoundError("Settings", category.value)
        return record

    def get_payload(self, category: SettingsCategory, *, fallback: bool = False) -> SettingsPayload:
        """Typed payload of ``category``.

        With ``fallback`` a missing record yields the built-in defaults instead
        of raising NotFoundError.
        """
        category = require_enum(SettingsCategory, category, "category")
        record = self._settings.get_by_category(category)
        if record:
            return record.payload
        if fallback:
            return default_payload(category)
        raise NotFoundError("Settings", category.value)

    def list_all(self) -> Sequence[Settings]:
        return self._settings.list_all()

    def put(
        self,
        category: SettingsCategory,
        payload,
        *,
        updated_by: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> Settings:
        """Create or replace the payload of ``category``."""
        category = require_enum(SettingsCategory, category, "category")
        parsed = parse_payload(category, payload)
        updated_by = optional_text(updated_by)
        if updated_by and self._employees is not None and not self._employees.get_by_id(updated_by):
            raise InvalidReferenceError(f"Employee does not exist: {updated_by}")

        current = self._settings.get_by_category(category)
        if current is None:
            if expected_version is not None:
                raise ConcurrencyConflictError(f"Settings {category.value} does not exist yet")
            now = now_local()
            try:
                created = self._settings.create(
                    Settings(
                        id=new_id(),
                        category=category,
                        payload=parsed,
                        updated_by=updated_by,
                        created_at=now,
                        updated_at=now,
                        version=1,
                    )
                )
            except DuplicateKeyError:
                # Lost the race against another first write; replace theirs.
                current = self._settings.get_by_category(category)
                if current is None:
                    raise
            else:
                logger.info("settings created: %s", category.value)
                audit_write(
                    self._audit, updated_by, action="settings.create", collection=COLLECTION,
                    document_id=created.id, changes=payload_to_dict(parsed),
                )
                return created

        if expected_version is not None and int(expected_version) != current.version:
            raise ConcurrencyConflictError(f"Settings {category.value} changed (version {current.version})")
        candidate = Settings(
            id=current.id,
            category=category,
            payload=parsed,
            updated_by=updated_by,
            created_at=current.created_at,
            updated_at=current.updated_at,
            version=current.version,
        )
        updated = self._settings.update(candidate, expected_version=current.version)
        if updated is None:
            raise ConcurrencyConflictError(f"Settings {category.value} was modified concurrently")
        logger.info("settings replaced: %s (version %s)", category.value, updated.version)
        audit_write(
            self._audit, updated_by, action="settings.update", collection=COLLECTION,
            document_id=updated.id, changes=diff(payload_to_dict(current.payload), payload_to_dict(updated.payload)),
        )
        return updated

    def delete(self, category: SettingsCategory, *, actor: Optional[str] = None) -> None:
        current = self.get(category)
        if not self._settings.delete(current.category):
            raise NotFoundError("Settings", current.category.value)
        logger.info("settings deleted: %s", current.category.value)
        audit_write(
            self._audit, actor, action="settings.delete", collection=COLLECTION,
            document_id=current.id, changes=payload_to_dict(current.payload),
        )

    # -------- Calendar helpers --------
    def weekend_days(self) -> frozenset:
        rules = self._typed_payload(SettingsCategory.ATTENDANCE_RULES, AttendanceRules)
        return rules.weekend_days

    def holidays(self, start: Optional[date] = None, end: Optional[date] = None) -> List[Holiday]:
        calendar = self._typed_payload(SettingsCategory.HOLIDAYS, HolidayCalendar)
        return [
            h for h in calendar.holidays
            if (start is None or h.date >= start) and (end is None or h.date <= end)
        ]

    def working_days(self, start: date, end: date) -> List[date]:
        """Dates in [start, end] that are neither weekend days nor holidays."""
        start = as_date(start, "start")
        end = as_date(end, "end")
        if end < start:
            raise ValidationError("end must be >= start")
        weekends = self.weekend_days()
        closed = {h.date for h in self.holidays(start, end)}
        return [d for d in iter_dates(start, end) if d.weekday() not in weekends and d not in closed]

    def count_working_days(self, start: date, end: date) -> int:
        return len(self.working_days(start, end))

    def _typed_payload(self, category: SettingsCategory, expected: type):
        payload = self.get_payload(category, fallback=True)
        if not isinstance(payload, expected):
            raise ValidationError(f"Stored {category.value} settings are not {expected.__name__}")
        return payload

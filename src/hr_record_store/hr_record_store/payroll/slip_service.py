from __future__ import annotations

import dataclasses
import logging
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence

from ..audit.service import AuditTrail, audit_write
from ..common.datetime_utils import now_local
from ..common.patching import apply_changes
from ..common.serialization import diff, to_jsonable
from ..common.validators import optional_text
from ..core.constants import DEFAULT_LIST_LIMIT
from ..core.enums import EmailStatus
from ..core.exceptions import ConcurrencyConflictError, InvalidReferenceError, InvalidTransitionError, NotFoundError
from ..database.records import new_id
from ..employees.repository import EmployeeRepository
from .model import EMAIL_TRANSITIONS, Salary, SalarySlip
from .repository import SalaryRepository, SalarySlipRepository

logger = logging.getLogger(__name__)

COLLECTION = "salary_slips"

_READ_ONLY = (
    "salary",
    "employee",
    "month",
    "year",
    "slip_number",
    "generated_at",
    "email_sent",
    "email_sent_at",
    "email_status",
    "downloaded_at",
)


def slip_number_for(salary: Salary, employee_code: str) -> str:
    """``SLIP-<YYYYMM>-<employee code>``; unique because a salary is unique per period."""
    return f"SLIP-{salary.period}-{employee_code}"


class SalarySlipService:
    def __init__(
        self,
        slips: SalarySlipRepository,
        salaries: SalaryRepository,
        employees: EmployeeRepository,
        *,
        audit: Optional[AuditTrail] = None,
    ):
        self._slips = slips
        self._salaries = salaries
        self._employees = employees
        self._audit = audit

    def generate(self, salary_id: str, *, pdf_url: Optional[str] = None, actor: Optional[str] = None) -> SalarySlip:
        """Create the slip of a salary. A second slip for the same salary is a DuplicateKeyError."""
        salary = self._salaries.get_by_id(salary_id)
        if not salary:
            raise InvalidReferenceError(f"Salary does not exist: {salary_id}")
        employee = self._employees.get_by_id(salary.employee)
        if not employee:
            raise InvalidReferenceError(f"Employee does not exist: {salary.employee}")

        now = now_local()
        slip = SalarySlip(
            id=new_id(),
            salary=salary.id,
            employee=salary.employee,
            month=salary.month,
            year=salary.year,
            slip_number=slip_number_for(salary, employee.employee_id),
            generated_at=now,
            pdf_url=optional_text(pdf_url),
            email_sent=False,
            email_sent_at=None,
            email_status=EmailStatus.NOT_SENT,
            downloaded_at=(),
            created_at=now,
            updated_at=now,
            version=1,
        )
        created = self._slips.create(slip)
        logger.info("salary slip generated: %s", created.slip_number)
        audit_write(
            self._audit, actor, action="salary_slip.generate", collection=COLLECTION,
            document_id=created.id, target_employee=created.employee, changes=to_jsonable(created),
        )
        return created

    def get_by_id(self, slip_id: str) -> SalarySlip:
        slip = self._slips.get_by_id(slip_id)
        if not slip:
            raise NotFoundError("SalarySlip", slip_id)
        return slip

    def get_by_slip_number(self, slip_number: str) -> SalarySlip:
        slip = self._slips.get_by_slip_number(slip_number)
        if not slip:
            raise NotFoundError("SalarySlip", slip_number)
        return slip

    def get_for_salary(self, salary_id: str) -> SalarySlip:
        slip = self._slips.get_by_salary(salary_id)
        if not slip:
            raise NotFoundError("SalarySlip", f"salary {salary_id}")
        return slip

    def history(self, employee_id: str, *, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[SalarySlip]:
        return self._slips.list_for_employee(employee_id, limit=limit)

    def unsent(self, *, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[SalarySlip]:
        """Slips whose email has not gone out, oldest first."""
        return self._slips.list_by_email_sent(False, limit=limit)

    def update(
        self,
        slip_id: str,
        changes: Mapping[str, Any],
        *,
        expected_version: Optional[int] = None,
        actor: Optional[str] = None,
    ) -> SalarySlip:
        """Edit a slip. Only ``pdf_url`` is editable; email and download state have their own operations."""
        current = self.get_by_id(slip_id)
        if expected_version is not None and int(expected_version) != current.version:
            raise ConcurrencyConflictError(f"SalarySlip {slip_id} changed (version {current.version})")
        candidate = apply_changes(current, changes, read_only=_READ_ONLY)
        candidate = dataclasses.replace(candidate, pdf_url=optional_text(candidate.pdf_url))
        return self._save(current, candidate, actor=actor, action="salary_slip.update")

    def attach_pdf(self, slip_id: str, pdf_url: str, *, actor: Optional[str] = None) -> SalarySlip:
        return self.update(slip_id, {"pdf_url": pdf_url}, actor=actor)

    # -------- Email status --------
    def mark_email_sent(self, slip_id: str, *, at: Optional[datetime] = None) -> SalarySlip:
        current = self._transition(slip_id, EmailStatus.SENT)
        candidate = dataclasses.replace(
            current, email_status=EmailStatus.SENT, email_sent=True, email_sent_at=at or now_local()
        )
        return self._save(current, candidate, actor=None, action="salary_slip.email_sent")

    def mark_email_failed(self, slip_id: str) -> SalarySlip:
        return self._email_undelivered(slip_id, EmailStatus.FAILED)

    def mark_email_bounced(self, slip_id: str) -> SalarySlip:
        return self._email_undelivered(slip_id, EmailStatus.BOUNCED)

    def record_download(self, slip_id: str, *, at: Optional[datetime] = None) -> SalarySlip:
        slip = self._slips.record_download(slip_id, at or now_local())
        if slip is None:
            raise NotFoundError("SalarySlip", slip_id)
        return slip

    # -------- Internals --------
    def _email_undelivered(self, slip_id: str, status: EmailStatus) -> SalarySlip:
        current = self._transition(slip_id, status)
        candidate = dataclasses.replace(current, email_status=status, email_sent=False)
        logger.warning("salary slip %s email %s", current.slip_number, status.value.lower())
        return self._save(current, candidate, actor=None, action=f"salary_slip.email_{status.value.lower()}")

    def _transition(self, slip_id: str, target: EmailStatus) -> SalarySlip:
        current = self.get_by_id(slip_id)
        if target not in EMAIL_TRANSITIONS[current.email_status]:
            raise InvalidTransitionError("SalarySlip email", current.email_status, target)
        return current

    def _save(self, current: SalarySlip, candidate: SalarySlip, *, actor: Optional[str], action: str) -> SalarySlip:
        updated = self._slips.update(candidate, expected_version=current.version, expected_status=current.email_status)
        if updated is None:
            raise ConcurrencyConflictError(f"SalarySlip {current.id} was modified concurrently")
        audit_write(
            self._audit, actor, action=action, collection=COLLECTION,
            document_id=updated.id, target_employee=updated.employee, changes=diff(current, updated),
        )
        return updated

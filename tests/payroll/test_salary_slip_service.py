from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import pytest

from hr_record_store.core.enums import EmailStatus
from hr_record_store.core.exceptions import (
    ConcurrencyConflictError,
    DuplicateKeyError,
    InvalidReferenceError,
    InvalidTransitionError,
    ValidationError,
)
from hr_record_store.payroll.model import AttendanceSummary, NewSalary


@pytest.fixture
def salary(container, employee):
    return container.salary_service.create(
        NewSalary(
            employee=employee.id,
            month=3,
            year=2025,
            attendance=AttendanceSummary(total_working_days=Decimal("21"), present_days=Decimal("21")),
        )
    )


def test_generate_links_salary_and_numbers_the_slip(container, employee, salary):
    slip = container.salary_slip_service.generate(salary.id, pdf_url="s3://slips/emp001-202503.pdf")
    assert slip.slip_number == "SLIP-202503-EMP001"
    assert (slip.employee, slip.month, slip.year) == (employee.id, 3, 2025)
    assert slip.email_status == EmailStatus.NOT_SENT
    assert slip.email_sent is False
    assert container.salary_slip_service.get_by_slip_number("SLIP-202503-EMP001").id == slip.id
    assert container.salary_slip_service.get_for_salary(salary.id).id == slip.id


def test_one_slip_per_salary(container, salary):
    container.salary_slip_service.generate(salary.id)
    with pytest.raises(DuplicateKeyError):
        container.salary_slip_service.generate(salary.id)


def test_salary_must_exist(container):
    with pytest.raises(InvalidReferenceError):
        container.salary_slip_service.generate("missing")


def test_email_state_machine(container, salary):
    slip = container.salary_slip_service.generate(salary.id)
    assert [s.id for s in container.salary_slip_service.unsent()] == [slip.id]

    with pytest.raises(InvalidTransitionError):
        container.salary_slip_service.mark_email_bounced(slip.id)

    sent = container.salary_slip_service.mark_email_sent(slip.id, at=datetime(2025, 4, 1, 8, 0))
    assert sent.email_sent is True
    assert sent.email_sent_at == datetime(2025, 4, 1, 8, 0)
    assert container.salary_slip_service.unsent() == []

    bounced = container.salary_slip_service.mark_email_bounced(slip.id)
    assert bounced.email_status == EmailStatus.BOUNCED
    assert bounced.email_sent is False
    with pytest.raises(InvalidTransitionError):
        container.salary_slip_service.mark_email_sent(slip.id)


def test_download_count_matches_timestamps(container, salary):
    slip = container.salary_slip_service.generate(salary.id)
    container.salary_slip_service.record_download(slip.id, at=datetime(2025, 4, 2, 9, 0))
    after = container.salary_slip_service.record_download(slip.id, at=datetime(2025, 4, 3, 9, 0))

    assert after.download_count == 2
    assert after.downloaded_at == (datetime(2025, 4, 2, 9, 0), datetime(2025, 4, 3, 9, 0))

    refreshed = container.salary_slip_service.mark_email_sent(slip.id)
    assert refreshed.download_count == 2


def test_only_the_pdf_link_is_editable(container, salary):
    slip = container.salary_slip_service.generate(salary.id)

    updated = container.salary_slip_service.update(slip.id, {"pdf_url": " s3://slips/v2.pdf "}, expected_version=1)
    assert updated.pdf_url == "s3://slips/v2.pdf"
    assert updated.version == 2

    with pytest.raises(ValidationError):
        container.salary_slip_service.update(slip.id, {"slip_number": "SLIP-X"})
    container.salary_slip_service.attach_pdf(slip.id, "s3://slips/v3.pdf")
    with pytest.raises(ConcurrencyConflictError):
        container.salary_slip_service.update(slip.id, {"pdf_url": "s3://slips/v4.pdf"}, expected_version=2)

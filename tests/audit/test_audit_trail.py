from __future__ import annotations

from datetime import datetime

import pytest

from hr_record_store.audit.model import AuditMetadata
from hr_record_store.audit.service import AuditTrail
from hr_record_store.core.enums import DepartmentName
from hr_record_store.core.exceptions import StorageUnavailableError, ValidationError
from hr_record_store.departments.model import NewDepartment
from hr_record_store.departments.service import DepartmentService


class FailingEntries:
    def append(self, entry):
        raise StorageUnavailableError("audit store offline")


def test_services_record_changes(container, department, employee):
    container.department_service.update(department.id, {"description": "Platform"}, actor=employee.id)

    [entry] = container.audit_trail.by_performer(employee.id)
    assert entry.action == "department.update"
    assert entry.collection == "departments"
    assert entry.document_id == department.id
    assert entry.changes["description"] == {"from": None, "to": "Platform"}


def test_append_requires_action_and_performer(container):
    with pytest.raises(ValidationError):
        container.audit_trail.append(action="", performed_by="x")
    with pytest.raises(ValidationError):
        container.audit_trail.append(action="login", performed_by=" ")


def test_queries_are_newest_first(container, employee):
    for n in range(3):
        container.audit_trail.append(
            action=f"step.{n}",
            performed_by=employee.id,
            target_employee=employee.id,
            metadata=AuditMetadata(ip_address="10.0.0.1", user_agent="pytest"),
            timestamp=datetime(2025, 3, 3, 9, n),
        )
    actions = [e.action for e in container.audit_trail.by_target(employee.id)]
    assert actions == ["step.2", "step.1", "step.0"]
    assert container.audit_trail.recent(limit=1)[0].action == "step.2"
    assert container.audit_trail.by_target(employee.id)[0].metadata.ip_address == "10.0.0.1"


def test_failed_audit_write_does_not_fail_the_operation(container):
    seen = []
    trail = AuditTrail(FailingEntries(), on_failure=seen.append)
    service = DepartmentService(container.departments_repo, container.employees_repo, audit=trail)

    created = service.create(NewDepartment(department_id="ops", name=DepartmentName.HR), actor="admin")

    assert container.department_service.get_by_id(created.id).department_id == "OPS"
    [failure] = trail.drain_failures()
    assert failure.action == "department.create"
    assert isinstance(failure.error, StorageUnavailableError)
    assert seen == [failure]
    assert trail.failures == []

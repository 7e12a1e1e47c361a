from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import pytest

from hr_record_store.common.patching import apply_changes
from hr_record_store.common.validators import normalize_email, require_month, require_upper_code, to_money
from hr_record_store.core.exceptions import ValidationError


@dataclass(frozen=True)
class Contact:
    email: str
    phone: Optional[str] = None


@dataclass(frozen=True)
class Person:
    id: str
    name: str
    contact: Contact
    version: int = 1


def person():
    return Person(id="p1", name="An", contact=Contact(email="an@example.com"))


def test_dotted_keys_reach_into_sub_records():
    changed = apply_changes(person(), {"name": "Binh", "contact.phone": "0900"})
    assert changed.name == "Binh"
    assert changed.contact == Contact(email="an@example.com", phone="0900")


def test_rejects_unknown_and_read_only_fields():
    with pytest.raises(ValidationError):
        apply_changes(person(), {})
    with pytest.raises(ValidationError):
        apply_changes(person(), {"nickname": "x"})
    with pytest.raises(ValidationError):
        apply_changes(person(), {"version": 9})
    with pytest.raises(ValidationError):
        apply_changes(person(), {"name": "x"}, read_only=("name",))
    with pytest.raises(ValidationError):
        apply_changes(person(), {"contact.fax": "1"})


def test_validators():
    assert require_upper_code(" dev ", "code") == "DEV"
    assert normalize_email(" An@Example.COM ") == "an@example.com"
    assert to_money("10.5", "amount") == Decimal("10.50")
    with pytest.raises(ValidationError):
        to_money("-1", "amount")
    with pytest.raises(ValidationError):
        require_month(13)
    with pytest.raises(ValidationError):
        normalize_email("not-an-email")

from __future__ import annotations

import dataclasses
from typing import Any, Iterable, Mapping, TypeVar

from ..core.exceptions import ValidationError

T = TypeVar("T")

READ_ONLY_FIELDS = frozenset({"id", "created_at", "updated_at", "version"})


def apply_changes(entity: T, changes: Mapping[str, Any], *, read_only: Iterable[str] = ()) -> T:
    """Return a copy of ``entity`` with ``changes`` applied.

    Keys are field names; a dotted key ("personal_info.phone") reaches into an
    owned sub-record. Unknown and read-only fields are rejected.
    """
    if not changes:
        raise ValidationError("No changes given")

    blocked = READ_ONLY_FIELDS | set(read_only)
    nested: dict[str, dict[str, Any]] = {}
    direct: dict[str, Any] = {}
    names = {f.name for f in dataclasses.fields(entity)}

    for key, value in changes.items():
        head, _, rest = str(key).partition(".")
        if head not in names:
            raise ValidationError(f"Unknown field: {key}")
        if head in blocked:
            raise ValidationError(f"Field is read-only: {key}")
        if rest:
            nested.setdefault(head, {})[rest] = value
        else:
            direct[head] = value

    for head, sub_changes in nested.items():
        base = direct.get(head, getattr(entity, head))
        if base is None or not dataclasses.is_dataclass(base):
            raise ValidationError(f"Cannot set nested fields on empty {head}")
        direct[head] = apply_changes(base, sub_changes)

    return dataclasses.replace(entity, **direct)

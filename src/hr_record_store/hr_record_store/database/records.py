from __future__ import annotations

import uuid
from datetime import datetime
from typing import Mapping, Optional

from sqlalchemy import delete, update
from sqlalchemy.orm import Session


def new_id() -> str:
    """Opaque record id."""
    return uuid.uuid4().hex


def versioned_update(
    session: Session,
    row_cls,
    *,
    entity_id: str,
    expected_version: int,
    values: dict,
    now: datetime,
    guard: Optional[Mapping[str, object]] = None,
) -> bool:
    """UPDATE guarded by the version the caller read. False means someone else won.

    ``guard`` adds column equality conditions, e.g. the status a transition
    starts from.
    """
    values = dict(values)
    values.pop("id", None)
    values.pop("created_at", None)
    values["version"] = int(expected_version) + 1
    values["updated_at"] = now
    stmt = update(row_cls).where(row_cls.id == entity_id, row_cls.version == int(expected_version))
    for column, expected in (guard or {}).items():
        stmt = stmt.where(getattr(row_cls, column) == expected)
    result = session.execute(stmt.values(**values).execution_options(synchronize_session=False))
    # Rows loaded earlier in a shared transaction are stale now.
    session.expire_all()
    return result.rowcount > 0


def delete_by_id(session: Session, row_cls, entity_id: str) -> bool:
    result = session.execute(
        delete(row_cls).where(row_cls.id == entity_id).execution_options(synchronize_session=False)
    )
    return result.rowcount > 0

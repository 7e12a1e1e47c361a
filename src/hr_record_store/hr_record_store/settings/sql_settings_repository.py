from __future__ import annotations

from typing import Optional, Sequence

from sqlalchemy import delete, insert, select

from ..common.datetime_utils import now_local
from ..core.enums import SettingsCategory
from ..database.connection import DatabaseConnection
from ..database.records import versioned_update
from ..database.session import db_session, run_in_transaction
from ..database.tables import SettingsRow
from .model import Settings, parse_payload, payload_to_dict
from .repository import SettingsRepository


class SqlSettingsRepository(SettingsRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_category(self, category: SettingsCategory) -> Optional[Settings]:
        with db_session(self._conn_factory) as session:
            r = session.scalars(select(SettingsRow).where(SettingsRow.category == category.value)).first()
            return self._to_entity(r) if r else None

    def list_all(self) -> Sequence[Settings]:
        with db_session(self._conn_factory) as session:
            return [self._to_entity(r) for r in session.scalars(select(SettingsRow).order_by(SettingsRow.category))]

    def create(self, settings: Settings) -> Settings:
        def work(session):
            session.execute(insert(SettingsRow).values(**self._to_values(settings)))
            return settings

        return run_in_transaction(self._conn_factory, work)

    def update(self, settings: Settings, *, expected_version: int) -> Optional[Settings]:
        def work(session):
            ok = versioned_update(
                session,
                SettingsRow,
                entity_id=settings.id,
                expected_version=expected_version,
                values=self._to_values(settings),
                now=now_local(),
            )
            return self.get_by_category(settings.category) if ok else None

        return run_in_transaction(self._conn_factory, work)

    def delete(self, category: SettingsCategory) -> bool:
        def work(session):
            result = session.execute(delete(SettingsRow).where(SettingsRow.category == category.value))
            return result.rowcount > 0

        return run_in_transaction(self._conn_factory, work)

    @staticmethod
    def _to_values(s: Settings) -> dict:
        return {
            "id": s.id,
            "category": s.category.value,
            "payload": payload_to_dict(s.payload),
            "updated_by": s.updated_by,
            "created_at": s.created_at,
            "updated_at": s.updated_at,
            "version": s.version,
        }

    @staticmethod
    def _to_entity(r: SettingsRow) -> Settings:
        category = SettingsCategory(r.category)
        return Settings(
            id=r.id,
            category=category,
            payload=parse_payload(category, r.payload or {}),
            updated_by=r.updated_by,
            created_at=r.created_at,
            updated_at=r.updated_at,
            version=int(r.version),
        )

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..core.enums import SettingsCategory
from .model import Settings


class SettingsRepository(Protocol):
    def get_by_category(self, category: SettingsCategory) -> Optional[Settings]:
        raise NotImplementedError

    def list_all(self) -> Sequence[Settings]:
        raise NotImplementedError

    def create(self, settings: Settings) -> Settings:
        raise NotImplementedError

    def update(self, settings: Settings, *, expected_version: int) -> Optional[Settings]:
        raise NotImplementedError

    def delete(self, category: SettingsCategory) -> bool:
        raise NotImplementedError

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import delete, select

from chatvault.infrastructure.stores.models import AppSettingModel
from chatvault.infrastructure.stores.sqlalchemy_db import SessionProvider


class SettingsStore:
    """Key/value runtime settings, JSON encoded."""

    def __init__(self, provider: SessionProvider):
        self._provider = provider

    def get(self, key: str, default: Any = None) -> Any:
        with self._provider.session() as session:
            row = session.get(AppSettingModel, key)
            if row is None:
                return default
            value = row.get_value()
            return default if value is None else value

    def set(self, key: str, value: Any) -> None:
        with self._provider.session() as session:
            row = session.get(AppSettingModel, key)
            if row is None:
                row = AppSettingModel(key=key)
                session.add(row)
            row.set_value(value)
            row.updated_at = datetime.now(timezone.utc)
            session.commit()

    def delete(self, key: str) -> None:
        with self._provider.session() as session:
            session.execute(delete(AppSettingModel).where(AppSettingModel.key == key))
            session.commit()

    def items(self, prefix: Optional[str] = None) -> Dict[str, Any]:
        stmt = select(AppSettingModel)
        if prefix:
            stmt = stmt.where(AppSettingModel.key.startswith(prefix))
        with self._provider.session() as session:
            return {r.key: r.get_value() for r in session.execute(stmt.order_by(AppSettingModel.key)).scalars()}

# workshop_billing/data_access/settings_repository.py

import sqlite3
from typing import Dict, Any, Optional, List
from workshop_billing.data_access.database_manager import DatabaseManager
from workshop_billing.business_logic.entities.setting_entity import SettingEntity
import logging

logger = logging.getLogger(__name__)


class SettingsRepository:
    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager
        self.table_name = "settings"

    def _entity_from_row(self, row: Dict[str, Any]) -> SettingEntity:
        if row is None:
            raise ValueError("Input row cannot be None for SettingEntity")
        try:
            return SettingEntity(
                organization_id=row['organization_id'],
                key=row['key'],
                value=row['value']
            )
        except KeyError as e:
            logger.error(f"KeyError when creating SettingEntity from row: {e}. Row: {row}")
            raise

    def get_setting(self, organization_id: str, key: str,
                    conn: Optional[sqlite3.Connection] = None) -> Optional[SettingEntity]:
        query = f"SELECT * FROM {self.table_name} WHERE organization_id = ? AND key = ?"
        row = self.db_manager.fetch_one(query, (organization_id, key), conn=conn)
        return self._entity_from_row(dict(row)) if row else None

    def get_settings(self, organization_id: str, keys: List[str],
                     conn: Optional[sqlite3.Connection] = None) -> Dict[str, Optional[str]]:
        """Returns {key: value} for the requested keys that exist for the organization."""
        if not keys:
            return {}
        placeholders = ', '.join(['?'] * len(keys))
        query = f"SELECT * FROM {self.table_name} WHERE organization_id = ? AND key IN ({placeholders})"
        rows = self.db_manager.fetch_all(query, (organization_id, *keys), conn=conn)
        return {row['key']: row['value'] for row in rows}

    def set_setting(self, setting: SettingEntity, conn: Optional[sqlite3.Connection] = None) -> SettingEntity:
        query = f"INSERT OR REPLACE INTO {self.table_name} (organization_id, key, value) VALUES (?, ?, ?)"
        self.db_manager.execute_query(query, (setting.organization_id, setting.key, setting.value), conn=conn)
        return setting

    def delete_setting(self, organization_id: str, key: str, conn: Optional[sqlite3.Connection] = None) -> None:
        query = f"DELETE FROM {self.table_name} WHERE organization_id = ? AND key = ?"
        self.db_manager.execute_query(query, (organization_id, key), conn=conn)

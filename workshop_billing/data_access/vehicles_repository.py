# workshop_billing/data_access/vehicles_repository.py

import sqlite3
from typing import Optional, List

from workshop_billing.data_access.base_repository import BaseRepository
from workshop_billing.data_access.database_manager import DatabaseManager
from workshop_billing.business_logic.entities.vehicle_entity import VehicleEntity
import logging

logger = logging.getLogger(__name__)


class VehiclesRepository(BaseRepository[VehicleEntity]):
    def __init__(self, db_manager: DatabaseManager):
        super().__init__(db_manager=db_manager,
                         model_type=VehicleEntity,
                         table_name="vehicles")

    def get_for_organization(self, vehicle_id: int, organization_id: str,
                             conn: Optional[sqlite3.Connection] = None) -> Optional[VehicleEntity]:
        query = f"SELECT * FROM {self._table_name} WHERE id = ? AND organization_id = ?"
        row = self.db_manager.fetch_one(query, (vehicle_id, organization_id), conn=conn)
        return self._entity_from_row(dict(row)) if row else None

    def get_by_organization(self, organization_id: str) -> List[VehicleEntity]:
        return self.find_by_criteria({"organization_id": organization_id}, order_by="id ASC")

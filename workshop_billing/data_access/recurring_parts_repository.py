# workshop_billing/data_access/recurring_parts_repository.py

import sqlite3
from typing import List, Optional

from workshop_billing.data_access.base_repository import BaseRepository
from workshop_billing.data_access.database_manager import DatabaseManager
from workshop_billing.business_logic.entities.template_line_entities import TemplatePartEntity
import logging

logger = logging.getLogger(__name__)


class RecurringPartsRepository(BaseRepository[TemplatePartEntity]):
    def __init__(self, db_manager: DatabaseManager):
        super().__init__(db_manager=db_manager,
                         model_type=TemplatePartEntity,
                         table_name="recurring_parts")

    def get_by_agreement_id(self, agreement_id: int,
                            conn: Optional[sqlite3.Connection] = None) -> List[TemplatePartEntity]:
        return self.find_by_criteria({"agreement_id": agreement_id}, order_by="position ASC, id ASC", conn=conn)

    def delete_by_agreement_id(self, agreement_id: int, conn: Optional[sqlite3.Connection] = None) -> None:
        query = f"DELETE FROM {self._table_name} WHERE agreement_id = ?"
        self.db_manager.execute_query(query, (agreement_id,), conn=conn)

# workshop_billing/data_access/invoice_labor_repository.py

import sqlite3
from typing import List, Optional

from workshop_billing.data_access.base_repository import BaseRepository
from workshop_billing.data_access.database_manager import DatabaseManager
from workshop_billing.business_logic.entities.invoice_line_entities import LaborLineEntity
import logging

logger = logging.getLogger(__name__)


class InvoiceLaborRepository(BaseRepository[LaborLineEntity]):
    def __init__(self, db_manager: DatabaseManager):
        super().__init__(db_manager=db_manager,
                         model_type=LaborLineEntity,
                         table_name="invoice_labor")

    def get_by_invoice_id(self, invoice_id: int, conn: Optional[sqlite3.Connection] = None) -> List[LaborLineEntity]:
        return self.find_by_criteria({"invoice_id": invoice_id}, order_by="position ASC, id ASC", conn=conn)

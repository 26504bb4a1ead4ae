# workshop_billing/data_access/invoice_parts_repository.py

import sqlite3
from typing import List, Optional

from workshop_billing.data_access.base_repository import BaseRepository
from workshop_billing.data_access.database_manager import DatabaseManager
from workshop_billing.business_logic.entities.invoice_line_entities import PartLineEntity
import logging

logger = logging.getLogger(__name__)


class InvoicePartsRepository(BaseRepository[PartLineEntity]):
    def __init__(self, db_manager: DatabaseManager):
        super().__init__(db_manager=db_manager,
                         model_type=PartLineEntity,
                         table_name="invoice_parts")

    def get_by_invoice_id(self, invoice_id: int, conn: Optional[sqlite3.Connection] = None) -> List[PartLineEntity]:
        return self.find_by_criteria({"invoice_id": invoice_id}, order_by="position ASC, id ASC", conn=conn)

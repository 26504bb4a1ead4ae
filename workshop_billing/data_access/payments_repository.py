# workshop_billing/data_access/payments_repository.py

import sqlite3
from typing import Optional, List

from workshop_billing.data_access.base_repository import BaseRepository
from workshop_billing.data_access.database_manager import DatabaseManager
from workshop_billing.business_logic.entities.payment_entity import PaymentEntity
import logging

logger = logging.getLogger(__name__)


class PaymentsRepository(BaseRepository[PaymentEntity]):
    def __init__(self, db_manager: DatabaseManager):
        super().__init__(db_manager=db_manager,
                         model_type=PaymentEntity,
                         table_name="payments")

    def get_by_invoice_id(self, invoice_id: int, conn: Optional[sqlite3.Connection] = None) -> List[PaymentEntity]:
        return self.find_by_criteria({"invoice_id": invoice_id}, order_by="payment_date ASC, id ASC", conn=conn)

    def get_for_organization(self, payment_id: int, organization_id: str,
                             conn: Optional[sqlite3.Connection] = None) -> Optional[PaymentEntity]:
        """The payment, only if its invoice belongs to the organization."""
        query = (f"SELECT p.* FROM {self._table_name} p "
                 f"JOIN invoices i ON i.id = p.invoice_id "
                 f"WHERE p.id = ? AND i.organization_id = ?")
        row = self.db_manager.fetch_one(query, (payment_id, organization_id), conn=conn)
        return self._entity_from_row(dict(row)) if row else None

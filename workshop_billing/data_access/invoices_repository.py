# workshop_billing/data_access/invoices_repository.py

import sqlite3
from typing import Optional, List

from workshop_billing.data_access.base_repository import BaseRepository
from workshop_billing.data_access.database_manager import DatabaseManager
from workshop_billing.business_logic.entities.invoice_entity import InvoiceEntity
import logging

logger = logging.getLogger(__name__)


class InvoicesRepository(BaseRepository[InvoiceEntity]):
    def __init__(self, db_manager: DatabaseManager):
        super().__init__(db_manager=db_manager,
                         model_type=InvoiceEntity,
                         table_name="invoices")

    def get_for_organization(self, invoice_id: int, organization_id: str,
                             conn: Optional[sqlite3.Connection] = None) -> Optional[InvoiceEntity]:
        query = f"SELECT * FROM {self._table_name} WHERE id = ? AND organization_id = ?"
        row = self.db_manager.fetch_one(query, (invoice_id, organization_id), conn=conn)
        return self._entity_from_row(dict(row)) if row else None

    def get_by_invoice_number(self, organization_id: str, invoice_number: str,
                              conn: Optional[sqlite3.Connection] = None) -> Optional[InvoiceEntity]:
        query = f"SELECT * FROM {self._table_name} WHERE organization_id = ? AND invoice_number = ?"
        row = self.db_manager.fetch_one(query, (organization_id, invoice_number), conn=conn)
        return self._entity_from_row(dict(row)) if row else None

    def get_invoice_numbers(self, organization_id: str,
                            conn: Optional[sqlite3.Connection] = None) -> List[str]:
        query = f"SELECT invoice_number FROM {self._table_name} WHERE organization_id = ?"
        rows = self.db_manager.fetch_all(query, (organization_id,), conn=conn)
        return [row['invoice_number'] for row in rows]

    def get_by_organization(self, organization_id: str) -> List[InvoiceEntity]:
        return self.find_by_criteria({"organization_id": organization_id}, order_by="service_date DESC, id DESC")

    def get_by_agreement_id(self, agreement_id: int) -> List[InvoiceEntity]:
        return self.find_by_criteria({"recurring_agreement_id": agreement_id}, order_by="id ASC")

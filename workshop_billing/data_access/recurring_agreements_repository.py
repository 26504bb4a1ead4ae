# workshop_billing/data_access/recurring_agreements_repository.py

import sqlite3
from datetime import date
from typing import Optional, List

from workshop_billing.data_access.base_repository import BaseRepository
from workshop_billing.data_access.database_manager import DatabaseManager
from workshop_billing.business_logic.entities.recurring_agreement_entity import RecurringAgreementEntity
import logging

logger = logging.getLogger(__name__)


class RecurringAgreementsRepository(BaseRepository[RecurringAgreementEntity]):
    def __init__(self, db_manager: DatabaseManager):
        super().__init__(db_manager=db_manager,
                         model_type=RecurringAgreementEntity,
                         table_name="recurring_agreements")

    def get_for_organization(self, agreement_id: int, organization_id: str,
                             conn: Optional[sqlite3.Connection] = None) -> Optional[RecurringAgreementEntity]:
        query = f"SELECT * FROM {self._table_name} WHERE id = ? AND organization_id = ?"
        row = self.db_manager.fetch_one(query, (agreement_id, organization_id), conn=conn)
        return self._entity_from_row(dict(row)) if row else None

    def get_by_organization(self, organization_id: str) -> List[RecurringAgreementEntity]:
        return self.find_by_criteria({"organization_id": organization_id}, order_by="next_run_date ASC, id ASC")

    def get_due_ids(self, as_of: date, organization_id: Optional[str] = None) -> List[int]:
        """Ids of active agreements due on or before as_of and not past their end date, oldest first."""
        query = (f"SELECT id FROM {self._table_name} WHERE is_active = 1 AND next_run_date <= ? "
                 f"AND (end_date IS NULL OR next_run_date <= end_date)")
        params: list = [as_of.isoformat()]
        if organization_id is not None:
            query += " AND organization_id = ?"
            params.append(organization_id)
        query += " ORDER BY next_run_date ASC, id ASC"
        rows = self.db_manager.fetch_all(query, tuple(params))
        return [row['id'] for row in rows]

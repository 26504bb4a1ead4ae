# workshop_billing/business_logic/agreement_manager.py

import sqlite3
from datetime import datetime
from typing import Optional, List, Dict, Any, Iterable, TYPE_CHECKING
import logging

from workshop_billing.exceptions import NotFoundError, ValidationError
from .entities.recurring_agreement_entity import RecurringAgreementEntity
from .entities.template_line_entities import TemplatePartEntity, TemplateLaborEntity
from .schedule_advancer import is_past_end
from .validation import (
    UNSET, TemplatePartInput, TemplateLaborInput, parse_agreement_input, parse_agreement_update, to_positive_int,
)

if TYPE_CHECKING:
    from ..data_access.recurring_agreements_repository import RecurringAgreementsRepository
    from ..data_access.recurring_parts_repository import RecurringPartsRepository
    from ..data_access.recurring_labor_repository import RecurringLaborRepository
    from .vehicle_manager import VehicleManager
    from .settings_manager import SettingsManager

logger = logging.getLogger(__name__)


class AgreementManager:
    """Create, change and remove recurring billing agreements and their template lines."""

    def __init__(self,
                 agreements_repository: 'RecurringAgreementsRepository',
                 recurring_parts_repository: 'RecurringPartsRepository',
                 recurring_labor_repository: 'RecurringLaborRepository',
                 vehicle_manager: 'VehicleManager',
                 settings_manager: 'SettingsManager'):
        self.agreements_repo = agreements_repository
        self.parts_repo = recurring_parts_repository
        self.labor_repo = recurring_labor_repository
        self.vehicle_manager = vehicle_manager
        self.settings_manager = settings_manager

    @property
    def db_manager(self):
        return self.agreements_repo.db_manager

    # --- reads ---

    def load_templates(self, agreement: RecurringAgreementEntity,
                       conn: Optional[sqlite3.Connection] = None) -> RecurringAgreementEntity:
        agreement.template_parts = self.parts_repo.get_by_agreement_id(agreement.id, conn=conn)
        agreement.template_labor = self.labor_repo.get_by_agreement_id(agreement.id, conn=conn)
        return agreement

    def get_agreement(self, organization_id: str, agreement_id: int,
                      conn: Optional[sqlite3.Connection] = None) -> RecurringAgreementEntity:
        agreement = self.agreements_repo.get_for_organization(agreement_id, organization_id, conn=conn)
        if agreement is None:
            logger.warning(f"Recurring agreement {agreement_id} not found for organization {organization_id}.")
            raise NotFoundError(f"Recurring agreement {agreement_id} not found.")
        return self.load_templates(agreement, conn=conn)

    def list_agreements(self, organization_id: str) -> List[RecurringAgreementEntity]:
        """All agreements of the organization, soonest next run first."""
        agreements = self.agreements_repo.get_by_organization(organization_id)
        for agreement in agreements:
            self.load_templates(agreement)
        logger.debug(f"Fetched {len(agreements)} recurring agreements for organization {organization_id}.")
        return agreements

    # --- writes ---

    def _add_templates(self, agreement_id: int, parts: Iterable[TemplatePartInput],
                       labor: Iterable[TemplateLaborInput], conn: sqlite3.Connection) -> None:
        for position, part in enumerate(parts):
            self.parts_repo.add(TemplatePartEntity(
                name=part.name, part_number=part.part_number, quantity=part.quantity,
                unit_price=part.unit_price, agreement_id=agreement_id, position=position), conn=conn)
        for position, line in enumerate(labor):
            self.labor_repo.add(TemplateLaborEntity(
                description=line.description, hours=line.hours, rate=line.rate,
                agreement_id=agreement_id, position=position), conn=conn)

    def create_agreement(self, organization_id: str, data: Dict[str, Any]) -> RecurringAgreementEntity:
        agreement_input = parse_agreement_input(data)
        logger.info(f"Creating recurring agreement '{agreement_input.title}' for organization {organization_id}.")

        with self.db_manager.transaction() as conn:
            self.vehicle_manager.get_vehicle_for_organization(agreement_input.vehicle_id, organization_id, conn=conn)
            tax_rate = agreement_input.tax_rate
            if tax_rate is None:
                tax_rate = self.settings_manager.get_default_tax_rate(organization_id, conn=conn)

            agreement = RecurringAgreementEntity(
                organization_id=organization_id,
                vehicle_id=agreement_input.vehicle_id,
                title=agreement_input.title,
                description=agreement_input.description,
                frequency=agreement_input.frequency,
                next_run_date=agreement_input.next_run_date,
                end_date=agreement_input.end_date,
                service_type=agreement_input.service_type,
                cost=agreement_input.cost,
                tax_rate=tax_rate,
                invoice_notes=agreement_input.invoice_notes,
                is_active=True,
                created_at=datetime.now(),
            )
            self.agreements_repo.add(agreement, conn=conn)
            self._add_templates(agreement.id, agreement_input.template_parts, agreement_input.template_labor, conn)
            created = self.load_templates(agreement, conn=conn)

        logger.info(f"Recurring agreement {created.id} created; first run on {created.next_run_date}.")
        return created

    def update_agreement(self, organization_id: str, data: Dict[str, Any]) -> RecurringAgreementEntity:
        """
        Applies a partial update. Template parts or labor, when given, replace
        the stored template lines in the same transaction as the field changes.
        """
        update = parse_agreement_update(data)

        with self.db_manager.transaction() as conn:
            agreement = self.agreements_repo.get_for_organization(update.agreement_id, organization_id, conn=conn)
            if agreement is None:
                raise NotFoundError(f"Recurring agreement {update.agreement_id} not found.")

            changes = update.changed_fields()
            if "vehicle_id" in changes:
                self.vehicle_manager.get_vehicle_for_organization(changes["vehicle_id"], organization_id, conn=conn)
            for field_name, value in changes.items():
                setattr(agreement, field_name, value)
            if agreement.end_date is not None and agreement.end_date < agreement.next_run_date:
                raise ValidationError("end_date cannot be before next_run_date.")
            self.agreements_repo.update(agreement, conn=conn)

            replace_parts = update.template_parts is not UNSET
            replace_labor = update.template_labor is not UNSET
            if replace_parts:
                self.parts_repo.delete_by_agreement_id(agreement.id, conn=conn)
                self._add_templates(agreement.id, update.template_parts, (), conn)
            if replace_labor:
                self.labor_repo.delete_by_agreement_id(agreement.id, conn=conn)
                self._add_templates(agreement.id, (), update.template_labor, conn)
            updated = self.load_templates(agreement, conn=conn)

        logger.info(f"Recurring agreement {updated.id} updated (fields: {sorted(changes)}, "
                    f"parts replaced: {replace_parts}, labor replaced: {replace_labor}).")
        return updated

    def delete_agreement(self, organization_id: str, agreement_id: Any) -> None:
        agreement_id = to_positive_int(agreement_id, "id")
        with self.db_manager.transaction() as conn:
            agreement = self.agreements_repo.get_for_organization(agreement_id, organization_id, conn=conn)
            if agreement is None:
                raise NotFoundError(f"Recurring agreement {agreement_id} not found.")
            # Template lines go with it; already issued invoices keep a NULL back reference
            self.agreements_repo.delete(agreement_id, conn=conn)
        logger.info(f"Recurring agreement {agreement_id} deleted for organization {organization_id}.")

    def toggle_agreement(self, organization_id: str, agreement_id: Any,
                         active: Optional[bool] = None) -> RecurringAgreementEntity:
        """Sets is_active to the given value, or flips it when active is None."""
        agreement_id = to_positive_int(agreement_id, "id")
        if active is not None and not isinstance(active, bool):
            raise ValidationError("active must be true or false.")

        with self.db_manager.transaction() as conn:
            agreement = self.agreements_repo.get_for_organization(agreement_id, organization_id, conn=conn)
            if agreement is None:
                raise NotFoundError(f"Recurring agreement {agreement_id} not found.")
            agreement.is_active = (not agreement.is_active) if active is None else active
            if agreement.is_active and is_past_end(agreement.next_run_date, agreement.end_date):
                raise ValidationError(f"Recurring agreement {agreement_id} ended on {agreement.end_date}; "
                                      f"extend end_date to {agreement.next_run_date} or later before resuming it.")
            self.agreements_repo.update(agreement, conn=conn)
            toggled = self.load_templates(agreement, conn=conn)

        logger.info(f"Recurring agreement {agreement_id} is now {'active' if toggled.is_active else 'paused'}.")
        return toggled

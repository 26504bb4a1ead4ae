# workshop_billing/business_logic/invoice_manager.py

import sqlite3
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List, Dict, Any, Callable, Iterable, TypeVar, TYPE_CHECKING
import logging

from workshop_billing.constants import ServiceType
from workshop_billing.exceptions import NotFoundError, ConflictError
from .entities.invoice_entity import InvoiceEntity
from .entities.invoice_line_entities import PartLineEntity, LaborLineEntity
from .money_calculator import (
    Discount, NO_DISCOUNT, calculate_totals, finalize_for_persistence, part_line_total, labor_line_total, round_money,
)
from .validation import parse_invoice_input, to_positive_int

if TYPE_CHECKING:
    from ..data_access.invoices_repository import InvoicesRepository
    from ..data_access.invoice_parts_repository import InvoicePartsRepository
    from ..data_access.invoice_labor_repository import InvoiceLaborRepository
    from .invoice_number_sequencer import InvoiceNumberSequencer
    from .vehicle_manager import VehicleManager
    from .settings_manager import SettingsManager

logger = logging.getLogger(__name__)

R = TypeVar('R')


def is_invoice_number_conflict(error: sqlite3.IntegrityError) -> bool:
    message = str(error)
    return "UNIQUE" in message and "invoice_number" in message


def retry_on_conflict(unit: Callable[[], R], description: str) -> R:
    """
    Runs a transactional unit, and once more if it lost an invoice number race.
    The unit must open its own transaction so the retry re-reads the issued numbers.
    """
    try:
        return unit()
    except ConflictError as e:
        logger.warning(f"{description}: invoice number conflict ({e}); retrying once.")
        return unit()


class InvoiceManager:
    def __init__(self,
                 invoices_repository: 'InvoicesRepository',
                 invoice_parts_repository: 'InvoicePartsRepository',
                 invoice_labor_repository: 'InvoiceLaborRepository',
                 sequencer: 'InvoiceNumberSequencer',
                 vehicle_manager: 'VehicleManager',
                 settings_manager: 'SettingsManager'):
        self.invoices_repo = invoices_repository
        self.invoice_parts_repo = invoice_parts_repository
        self.invoice_labor_repo = invoice_labor_repository
        self.sequencer = sequencer
        self.vehicle_manager = vehicle_manager
        self.settings_manager = settings_manager

    @property
    def db_manager(self):
        return self.invoices_repo.db_manager

    def issue_invoice(self, conn: sqlite3.Connection, organization_id: str, title: str, service_date: date,
                      parts: Iterable, labor: Iterable, cost: Decimal = Decimal("0"),
                      discount: Discount = NO_DISCOUNT, tax_rate: Decimal = Decimal("0"),
                      vehicle_id: Optional[int] = None, service_type: Optional[ServiceType] = None,
                      description: Optional[str] = None, invoice_notes: Optional[str] = None,
                      recurring_agreement_id: Optional[int] = None, invoice_number: Optional[str] = None,
                      now: Optional[datetime] = None) -> InvoiceEntity:
        """
        Numbers and inserts an invoice with snapshot copies of its lines.

        Runs on the caller's open transaction. parts need name, part_number,
        quantity and unit_price; labor needs description, hours and rate.
        Totals are always computed here from the lines.
        """
        now = now or datetime.now()
        parts = list(parts)
        labor = list(labor)
        totals = finalize_for_persistence(calculate_totals(parts, labor, cost, discount, tax_rate))

        if invoice_number is None:
            invoice_number = self.sequencer.issue_next(organization_id, conn, now=now).invoice_number
        elif self.invoices_repo.get_by_invoice_number(organization_id, invoice_number, conn=conn) is not None:
            raise ConflictError(f"Invoice number {invoice_number} is already in use.")

        invoice = InvoiceEntity(
            organization_id=organization_id,
            invoice_number=invoice_number,
            title=title,
            description=description,
            service_type=service_type,
            service_date=service_date,
            vehicle_id=vehicle_id,
            recurring_agreement_id=recurring_agreement_id,
            cost=round_money(cost),
            subtotal=totals.subtotal,
            discount_type=discount.kind,
            discount_value=discount.value,
            discount_amount=totals.discount_amount,
            tax_rate=totals.tax_rate,
            tax_amount=totals.tax_amount,
            total_amount=totals.total_amount,
            invoice_notes=invoice_notes,
            created_at=now,
        )
        try:
            self.invoices_repo.add(invoice, conn=conn)
        except sqlite3.IntegrityError as e:
            if is_invoice_number_conflict(e):
                raise ConflictError(f"Invoice number {invoice_number} was taken concurrently.") from e
            raise

        for position, part in enumerate(parts):
            invoice.part_lines.append(self.invoice_parts_repo.add(PartLineEntity(
                name=part.name, part_number=part.part_number, quantity=Decimal(part.quantity),
                unit_price=part.unit_price, total=round_money(part_line_total(part.quantity, part.unit_price)),
                invoice_id=invoice.id, position=position), conn=conn))
        for position, line in enumerate(labor):
            invoice.labor_lines.append(self.invoice_labor_repo.add(LaborLineEntity(
                description=line.description, hours=line.hours, rate=line.rate,
                total=round_money(labor_line_total(line.hours, line.rate)),
                invoice_id=invoice.id, position=position), conn=conn))

        logger.debug(f"Invoice {invoice.invoice_number} (ID: {invoice.id}) inserted for organization "
                     f"{organization_id}: subtotal {totals.subtotal}, discount {totals.discount_amount}, "
                     f"tax {totals.tax_amount}, total {totals.total_amount}.")
        return invoice

    def create_invoice(self, organization_id: str, data: Dict[str, Any],
                       now: Optional[datetime] = None) -> InvoiceEntity:
        """Creates a one-off invoice. Client supplied totals are never accepted."""
        invoice_input = parse_invoice_input(data)
        logger.info(f"Creating invoice '{invoice_input.title}' for organization {organization_id} "
                    f"with {len(invoice_input.parts)} part(s) and {len(invoice_input.labor)} labor line(s).")

        def unit() -> InvoiceEntity:
            with self.db_manager.transaction() as conn:
                self.vehicle_manager.get_vehicle_for_organization(invoice_input.vehicle_id, organization_id, conn=conn)
                tax_rate = invoice_input.tax_rate
                if tax_rate is None:
                    tax_rate = self.settings_manager.get_default_tax_rate(organization_id, conn=conn)
                return self.issue_invoice(
                    conn, organization_id,
                    title=invoice_input.title,
                    description=invoice_input.description,
                    service_date=invoice_input.service_date,
                    service_type=invoice_input.service_type,
                    vehicle_id=invoice_input.vehicle_id,
                    parts=invoice_input.parts,
                    labor=invoice_input.labor,
                    cost=invoice_input.cost,
                    discount=invoice_input.discount,
                    tax_rate=tax_rate,
                    invoice_notes=invoice_input.invoice_notes,
                    invoice_number=invoice_input.invoice_number,
                    now=now,
                )

        invoice = retry_on_conflict(unit, f"Invoice creation for organization {organization_id}")
        logger.info(f"Invoice {invoice.invoice_number} (ID: {invoice.id}) created, total {invoice.total_amount}.")
        return invoice

    def get_invoice(self, organization_id: str, invoice_id: Any,
                    conn: Optional[sqlite3.Connection] = None) -> InvoiceEntity:
        invoice_id = to_positive_int(invoice_id, "invoice_id")
        invoice = self.invoices_repo.get_for_organization(invoice_id, organization_id, conn=conn)
        if invoice is None:
            logger.warning(f"Invoice {invoice_id} not found for organization {organization_id}.")
            raise NotFoundError(f"Invoice {invoice_id} not found.")
        invoice.part_lines = self.invoice_parts_repo.get_by_invoice_id(invoice.id, conn=conn)
        invoice.labor_lines = self.invoice_labor_repo.get_by_invoice_id(invoice.id, conn=conn)
        return invoice

    def list_invoices(self, organization_id: str) -> List[InvoiceEntity]:
        logger.debug(f"Fetching invoices of organization {organization_id}.")
        return self.invoices_repo.get_by_organization(organization_id)

    def delete_invoice(self, organization_id: str, invoice_id: Any) -> None:
        """Removes the invoice together with its lines and payments."""
        invoice_id = to_positive_int(invoice_id, "invoice_id")
        with self.db_manager.transaction() as conn:
            if self.invoices_repo.get_for_organization(invoice_id, organization_id, conn=conn) is None:
                raise NotFoundError(f"Invoice {invoice_id} not found.")
            self.invoices_repo.delete(invoice_id, conn=conn)
        logger.info(f"Invoice {invoice_id} deleted for organization {organization_id}.")

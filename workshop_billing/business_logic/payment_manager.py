# workshop_billing/business_logic/payment_manager.py

import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Dict, Any, TYPE_CHECKING
import logging

from workshop_billing.constants import PaymentStatus
from workshop_billing.exceptions import NotFoundError
from .entities.payment_entity import PaymentEntity
from .validation import parse_payment_input, to_positive_int

if TYPE_CHECKING:
    from ..data_access.payments_repository import PaymentsRepository
    from ..data_access.invoices_repository import InvoicesRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerSummary:
    invoice_id: int
    total_amount: Decimal
    total_paid: Decimal
    balance_due: Decimal  # negative when overpaid
    status: PaymentStatus
    payments: List[PaymentEntity] = field(default_factory=list)


def payment_status(total_paid: Decimal, balance_due: Decimal) -> PaymentStatus:
    if total_paid == 0:
        return PaymentStatus.UNPAID
    if balance_due <= 0:
        return PaymentStatus.PAID
    return PaymentStatus.PARTIAL


def summarize(invoice_id: int, total_amount: Decimal, payments: List[PaymentEntity]) -> LedgerSummary:
    """Derives paid amount, balance and status; nothing here is stored."""
    total_paid = sum((p.amount for p in payments), Decimal("0"))
    balance_due = total_amount - total_paid
    return LedgerSummary(
        invoice_id=invoice_id,
        total_amount=total_amount,
        total_paid=total_paid,
        balance_due=balance_due,
        status=payment_status(total_paid, balance_due),
        payments=list(payments),
    )


class PaymentManager:
    """
    Payments recorded against invoices.

    Overpayment is accepted and shows up as a negative balance; there is
    no refund or cap logic.
    """

    def __init__(self, payments_repository: 'PaymentsRepository', invoices_repository: 'InvoicesRepository'):
        if payments_repository is None or invoices_repository is None:
            raise ValueError("payments_repository and invoices_repository cannot be None")
        self.payments_repo = payments_repository
        self.invoices_repo = invoices_repository

    @property
    def db_manager(self):
        return self.payments_repo.db_manager

    def _ledger(self, organization_id: str, invoice_id: int, conn: Optional[sqlite3.Connection] = None) -> LedgerSummary:
        invoice = self.invoices_repo.get_for_organization(invoice_id, organization_id, conn=conn)
        if invoice is None:
            logger.warning(f"Invoice {invoice_id} not found for organization {organization_id}.")
            raise NotFoundError(f"Invoice {invoice_id} not found.")
        payments = self.payments_repo.get_by_invoice_id(invoice_id, conn=conn)
        return summarize(invoice.id, invoice.total_amount, payments)

    def get_ledger(self, organization_id: str, invoice_id: Any) -> LedgerSummary:
        return self._ledger(organization_id, to_positive_int(invoice_id, "invoice_id"))

    def record_payment(self, organization_id: str, data: Dict[str, Any]) -> LedgerSummary:
        payment_input = parse_payment_input(data)
        with self.db_manager.transaction() as conn:
            if self.invoices_repo.get_for_organization(payment_input.invoice_id, organization_id, conn=conn) is None:
                raise NotFoundError(f"Invoice {payment_input.invoice_id} not found.")
            payment = self.payments_repo.add(PaymentEntity(
                invoice_id=payment_input.invoice_id,
                amount=payment_input.amount,
                payment_date=payment_input.payment_date,
                method=payment_input.method,
                note=payment_input.note,
                created_at=datetime.now(),
            ), conn=conn)
            ledger = self._ledger(organization_id, payment_input.invoice_id, conn=conn)

        logger.info(f"Payment {payment.id} of {payment.amount} ({payment.method.value}) recorded on invoice "
                    f"{ledger.invoice_id}; balance due {ledger.balance_due}, status {ledger.status.value}.")
        if ledger.balance_due < 0:
            logger.warning(f"Invoice {ledger.invoice_id} is overpaid by {-ledger.balance_due}.")
        return ledger

    def delete_payment(self, organization_id: str, payment_id: Any) -> LedgerSummary:
        payment_id = to_positive_int(payment_id, "payment_id")
        with self.db_manager.transaction() as conn:
            payment = self.payments_repo.get_for_organization(payment_id, organization_id, conn=conn)
            if payment is None:
                raise NotFoundError(f"Payment {payment_id} not found.")
            self.payments_repo.delete(payment_id, conn=conn)
            ledger = self._ledger(organization_id, payment.invoice_id, conn=conn)

        logger.info(f"Payment {payment_id} deleted from invoice {ledger.invoice_id}; "
                    f"balance due {ledger.balance_due}, status {ledger.status.value}.")
        return ledger

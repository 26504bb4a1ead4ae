# workshop_billing/business_logic/billing_service.py
"""
The operations other parts of the application call.

Every call is checked against the caller's permissions and scoped to the
caller's organization. Expected failures come back as a ServiceResult with
ok=False instead of an exception; after a successful write the revalidate
hook is told which views changed.
"""

import sqlite3
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, TYPE_CHECKING
import logging

from workshop_billing.constants import Permission, BILLING_PATH, RECURRING_BILLING_PATH, INVOICE_PATH_TEMPLATE
from workshop_billing.exceptions import BillingError
from .authorization import AuthContext, require_permission, require_organization

if TYPE_CHECKING:
    from .agreement_manager import AgreementManager
    from .invoice_manager import InvoiceManager
    from .payment_manager import PaymentManager
    from .recurring_billing_processor import RecurringBillingProcessor

logger = logging.getLogger(__name__)

RevalidateHook = Callable[[List[str]], None]


@dataclass(frozen=True)
class ServiceResult:
    ok: bool
    data: Any = None
    error: Optional[str] = None
    error_code: Optional[str] = None


def log_revalidate(paths: List[str]) -> None:
    logger.debug(f"Revalidate: {', '.join(paths)}")


def invoice_path(invoice_id: int) -> str:
    return INVOICE_PATH_TEMPLATE.format(invoice_id=invoice_id)


class BillingService:
    def __init__(self,
                 agreement_manager: 'AgreementManager',
                 invoice_manager: 'InvoiceManager',
                 payment_manager: 'PaymentManager',
                 processor: 'RecurringBillingProcessor',
                 revalidate: Optional[RevalidateHook] = None):
        self.agreement_manager = agreement_manager
        self.invoice_manager = invoice_manager
        self.payment_manager = payment_manager
        self.processor = processor
        self.revalidate = revalidate or log_revalidate

    def _notify(self, paths: Iterable[str]) -> None:
        paths = list(dict.fromkeys(paths))
        if not paths:
            return
        try:
            self.revalidate(paths)
        except Exception as e:
            # The write is already committed; a stale view is not worth failing the call
            logger.error(f"Revalidation of {paths} failed: {e}", exc_info=True)

    def _call(self, ctx: AuthContext, permission: Permission, operation: Callable[[str], Any],
              paths: Optional[Callable[[Any], Iterable[str]]] = None, description: str = "") -> ServiceResult:
        try:
            require_permission(ctx, permission)
            organization_id = require_organization(ctx)
            data = operation(organization_id)
        except BillingError as e:
            logger.info(f"{description or 'Billing call'} rejected for user {ctx.user_id if ctx else None}: {e}")
            return ServiceResult(ok=False, error=str(e), error_code=e.error_code)
        except sqlite3.Error as e:
            logger.error(f"{description or 'Billing call'} failed on the database: {e}", exc_info=True)
            return ServiceResult(ok=False, error="The billing database is unavailable.", error_code="database_error")

        if paths is not None:
            self._notify(paths(data))
        return ServiceResult(ok=True, data=data)

    # --- agreements ---

    def create_agreement(self, ctx: AuthContext, data: Dict[str, Any]) -> ServiceResult:
        return self._call(ctx, Permission.BILLING_CREATE,
                          lambda org: self.agreement_manager.create_agreement(org, data),
                          paths=lambda _: [BILLING_PATH, RECURRING_BILLING_PATH],
                          description="Create agreement")

    def update_agreement(self, ctx: AuthContext, data: Dict[str, Any]) -> ServiceResult:
        return self._call(ctx, Permission.BILLING_UPDATE,
                          lambda org: self.agreement_manager.update_agreement(org, data),
                          paths=lambda _: [BILLING_PATH, RECURRING_BILLING_PATH],
                          description="Update agreement")

    def delete_agreement(self, ctx: AuthContext, agreement_id: Any) -> ServiceResult:
        return self._call(ctx, Permission.BILLING_DELETE,
                          lambda org: self.agreement_manager.delete_agreement(org, agreement_id),
                          paths=lambda _: [BILLING_PATH, RECURRING_BILLING_PATH],
                          description="Delete agreement")

    def toggle_agreement(self, ctx: AuthContext, agreement_id: Any, active: Optional[bool] = None) -> ServiceResult:
        return self._call(ctx, Permission.BILLING_UPDATE,
                          lambda org: self.agreement_manager.toggle_agreement(org, agreement_id, active),
                          paths=lambda _: [BILLING_PATH, RECURRING_BILLING_PATH],
                          description="Toggle agreement")

    def list_agreements(self, ctx: AuthContext) -> ServiceResult:
        return self._call(ctx, Permission.BILLING_READ, self.agreement_manager.list_agreements,
                          description="List agreements")

    def get_agreement(self, ctx: AuthContext, agreement_id: Any) -> ServiceResult:
        return self._call(ctx, Permission.BILLING_READ,
                          lambda org: self.agreement_manager.get_agreement(org, agreement_id),
                          description="Get agreement")

    # --- billing run ---

    def run_due_billing(self, ctx: AuthContext, now: Optional[datetime] = None,
                        stop_event: Optional[threading.Event] = None) -> ServiceResult:
        """
        Bills due agreements of the caller's organization, or of every
        organization when called with the system context.
        """
        try:
            require_permission(ctx, Permission.BILLING_CREATE)
            run = self.processor.run_due_billing(organization_id=ctx.organization_id, now=now, stop_event=stop_event)
        except BillingError as e:
            logger.error(f"Billing run for user {ctx.user_id if ctx else None} did not run: {e}")
            return ServiceResult(ok=False, error=str(e), error_code=e.error_code)

        if run.results:
            self._notify([BILLING_PATH, RECURRING_BILLING_PATH] + [invoice_path(r.invoice_id) for r in run.results])
        return ServiceResult(ok=True, data=run)

    # --- invoices ---

    def create_invoice(self, ctx: AuthContext, data: Dict[str, Any]) -> ServiceResult:
        return self._call(ctx, Permission.BILLING_CREATE,
                          lambda org: self.invoice_manager.create_invoice(org, data),
                          paths=lambda invoice: [BILLING_PATH, invoice_path(invoice.id)],
                          description="Create invoice")

    def get_invoice(self, ctx: AuthContext, invoice_id: Any) -> ServiceResult:
        return self._call(ctx, Permission.BILLING_READ,
                          lambda org: self.invoice_manager.get_invoice(org, invoice_id),
                          description="Get invoice")

    def list_invoices(self, ctx: AuthContext) -> ServiceResult:
        return self._call(ctx, Permission.BILLING_READ, self.invoice_manager.list_invoices,
                          description="List invoices")

    def delete_invoice(self, ctx: AuthContext, invoice_id: Any) -> ServiceResult:
        return self._call(ctx, Permission.BILLING_DELETE,
                          lambda org: self.invoice_manager.delete_invoice(org, invoice_id),
                          paths=lambda _: [BILLING_PATH, invoice_path(invoice_id)],
                          description="Delete invoice")

    # --- payments ---

    def record_payment(self, ctx: AuthContext, data: Dict[str, Any]) -> ServiceResult:
        return self._call(ctx, Permission.BILLING_CREATE,
                          lambda org: self.payment_manager.record_payment(org, data),
                          paths=lambda ledger: [BILLING_PATH, invoice_path(ledger.invoice_id)],
                          description="Record payment")

    def delete_payment(self, ctx: AuthContext, payment_id: Any) -> ServiceResult:
        return self._call(ctx, Permission.BILLING_DELETE,
                          lambda org: self.payment_manager.delete_payment(org, payment_id),
                          paths=lambda ledger: [BILLING_PATH, invoice_path(ledger.invoice_id)],
                          description="Delete payment")

    def get_ledger(self, ctx: AuthContext, invoice_id: Any) -> ServiceResult:
        return self._call(ctx, Permission.BILLING_READ,
                          lambda org: self.payment_manager.get_ledger(org, invoice_id),
                          description="Get ledger")

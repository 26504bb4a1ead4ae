# workshop_billing/business_logic/recurring_billing_processor.py
"""
Turns due recurring agreements into invoices.

Each agreement is materialized in its own transaction: the invoice, its
snapshot lines, the issued number and the agreement's advanced schedule
commit together or not at all. A failed agreement stays due and is picked
up again by the next run; the rest of the batch carries on.
"""

import sqlite3
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, TYPE_CHECKING
import logging

from workshop_billing.exceptions import BillingError, BillingRunError
from .money_calculator import NO_DISCOUNT
from .schedule_advancer import next_run_date, is_past_end
from .invoice_manager import retry_on_conflict

if TYPE_CHECKING:
    from ..data_access.recurring_agreements_repository import RecurringAgreementsRepository
    from .agreement_manager import AgreementManager
    from .invoice_manager import InvoiceManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgreementRunResult:
    agreement_id: int
    invoice_id: int
    invoice_number: str


@dataclass(frozen=True)
class AgreementFailure:
    agreement_id: int
    error: str
    error_code: str = "billing_error"


@dataclass
class BillingRunResult:
    started_at: datetime
    results: List[AgreementRunResult] = field(default_factory=list)
    failures: List[AgreementFailure] = field(default_factory=list)
    stopped_early: bool = False

    @property
    def processed_count(self) -> int:
        return len(self.results)


class RecurringBillingProcessor:
    def __init__(self,
                 agreements_repository: 'RecurringAgreementsRepository',
                 agreement_manager: 'AgreementManager',
                 invoice_manager: 'InvoiceManager'):
        self.agreements_repo = agreements_repository
        self.agreement_manager = agreement_manager
        self.invoice_manager = invoice_manager

    @property
    def db_manager(self):
        return self.agreements_repo.db_manager

    def _materialize_once(self, agreement_id: int, now: datetime) -> Optional[AgreementRunResult]:
        with self.db_manager.transaction() as conn:
            # Re-read under the write lock: another run may have advanced it since the due query
            agreement = self.agreements_repo.get_by_id(agreement_id, conn=conn)
            if agreement is None or not agreement.is_due(now):
                return None
            self.agreement_manager.load_templates(agreement, conn=conn)

            invoice = self.invoice_manager.issue_invoice(
                conn, agreement.organization_id,
                title=agreement.title,
                description=agreement.description,
                service_date=now.date(),
                service_type=agreement.service_type,
                vehicle_id=agreement.vehicle_id,
                parts=agreement.template_parts,
                labor=agreement.template_labor,
                cost=agreement.cost,
                discount=NO_DISCOUNT,
                tax_rate=agreement.tax_rate,
                invoice_notes=agreement.invoice_notes,
                recurring_agreement_id=agreement.id,
                now=now,
            )

            agreement.next_run_date = next_run_date(agreement.next_run_date, agreement.frequency)
            agreement.last_run_at = now
            agreement.run_count += 1
            if is_past_end(agreement.next_run_date, agreement.end_date):
                agreement.is_active = False
                logger.info(f"Recurring agreement {agreement.id} reached its end date {agreement.end_date}; deactivated.")
            self.agreements_repo.update(agreement, conn=conn)

            return AgreementRunResult(agreement_id=agreement.id, invoice_id=invoice.id,
                                      invoice_number=invoice.invoice_number)

    def materialize_agreement(self, agreement_id: int, now: Optional[datetime] = None) -> Optional[AgreementRunResult]:
        """
        Bills one agreement if it is still due at `now`.
        Returns None when there was nothing to do; raises when the unit rolled back.
        """
        now = now or datetime.now()
        return retry_on_conflict(lambda: self._materialize_once(agreement_id, now),
                                 f"Recurring agreement {agreement_id}")

    def run_due_billing(self, organization_id: Optional[str] = None, now: Optional[datetime] = None,
                        stop_event: Optional[threading.Event] = None) -> BillingRunResult:
        """
        Bills every due agreement, of one organization or of all of them.

        A failure to find the due agreements raises BillingRunError. Billing
        and database errors of one agreement are logged and returned in
        `failures`; anything else is a bug and propagates.
        """
        now = now or datetime.now()
        run = BillingRunResult(started_at=now)
        scope = f"organization {organization_id}" if organization_id is not None else "all organizations"

        try:
            due_ids = self.agreements_repo.get_due_ids(now.date(), organization_id=organization_id)
        except sqlite3.Error as e:
            logger.error(f"Billing run for {scope} could not load due agreements: {e}", exc_info=True)
            raise BillingRunError(f"Could not load due agreements: {e}") from e

        logger.info(f"Billing run for {scope} as of {now.date()}: {len(due_ids)} due agreement(s).")

        for index, agreement_id in enumerate(due_ids):
            if stop_event is not None and stop_event.is_set():
                run.stopped_early = True
                logger.warning(f"Billing run stopped on request; {len(due_ids) - index} agreement(s) left for the next run.")
                break
            try:
                result = self.materialize_agreement(agreement_id, now)
            except (BillingError, sqlite3.Error) as e:
                error_code = e.error_code if isinstance(e, BillingError) else "database_error"
                run.failures.append(AgreementFailure(agreement_id=agreement_id, error=str(e), error_code=error_code))
                logger.error(f"Recurring agreement {agreement_id} failed and stays due: {e}", exc_info=True)
                continue

            if result is None:
                logger.info(f"Recurring agreement {agreement_id} is no longer due; skipped.")
                continue
            run.results.append(result)
            logger.info(f"Recurring agreement {agreement_id} billed: invoice {result.invoice_number} "
                        f"(ID: {result.invoice_id}).")

        logger.info(f"Billing run for {scope} finished: {run.processed_count} processed, "
                    f"{len(run.failures)} failed.")
        return run

# workshop_billing/main_app.py
import os
import sys
import argparse
import logging
import logging.config
from datetime import datetime
from typing import Optional

# --- Configuration and Constants ---
from workshop_billing.config import DATABASE_PATH, LOGGING_CONFIG, ensure_runtime_dirs
from workshop_billing.constants import Permission

# --- Data Access Layer (DAL) ---
from workshop_billing.data_access.database_manager import DatabaseManager
from workshop_billing.data_access.settings_repository import SettingsRepository
from workshop_billing.data_access.vehicles_repository import VehiclesRepository
from workshop_billing.data_access.recurring_agreements_repository import RecurringAgreementsRepository
from workshop_billing.data_access.recurring_parts_repository import RecurringPartsRepository
from workshop_billing.data_access.recurring_labor_repository import RecurringLaborRepository
from workshop_billing.data_access.invoices_repository import InvoicesRepository
from workshop_billing.data_access.invoice_parts_repository import InvoicePartsRepository
from workshop_billing.data_access.invoice_labor_repository import InvoiceLaborRepository
from workshop_billing.data_access.payments_repository import PaymentsRepository

# --- Business Logic Layer (BLL) ---
from workshop_billing.business_logic.settings_manager import SettingsManager
from workshop_billing.business_logic.vehicle_manager import VehicleManager
from workshop_billing.business_logic.invoice_number_sequencer import InvoiceNumberSequencer
from workshop_billing.business_logic.agreement_manager import AgreementManager
from workshop_billing.business_logic.invoice_manager import InvoiceManager
from workshop_billing.business_logic.payment_manager import PaymentManager
from workshop_billing.business_logic.recurring_billing_processor import RecurringBillingProcessor
from workshop_billing.business_logic.billing_service import BillingService, RevalidateHook
from workshop_billing.business_logic.authorization import AuthContext, SYSTEM_CONTEXT
from workshop_billing.exceptions import BillingError

logger = logging.getLogger(__name__)


class BillingApplication:
    """Builds the repositories and managers over one database file."""

    def __init__(self, db_path: str = DATABASE_PATH, revalidate: Optional[RevalidateHook] = None,
                 create_tables: bool = True):
        logger.info(f"Initializing Database Manager for {db_path}...")
        self.db_manager = DatabaseManager(db_path)
        if create_tables:
            self.db_manager.create_tables()

        # Repositories
        self.settings_repo = SettingsRepository(self.db_manager)
        self.vehicles_repo = VehiclesRepository(self.db_manager)
        self.agreements_repo = RecurringAgreementsRepository(self.db_manager)
        self.recurring_parts_repo = RecurringPartsRepository(self.db_manager)
        self.recurring_labor_repo = RecurringLaborRepository(self.db_manager)
        self.invoices_repo = InvoicesRepository(self.db_manager)
        self.invoice_parts_repo = InvoicePartsRepository(self.db_manager)
        self.invoice_labor_repo = InvoiceLaborRepository(self.db_manager)
        self.payments_repo = PaymentsRepository(self.db_manager)

        # Managers
        self.settings_manager = SettingsManager(self.settings_repo)
        self.vehicle_manager = VehicleManager(self.vehicles_repo)
        self.sequencer = InvoiceNumberSequencer(self.settings_repo, self.invoices_repo)
        self.agreement_manager = AgreementManager(
            self.agreements_repo, self.recurring_parts_repo, self.recurring_labor_repo,
            self.vehicle_manager, self.settings_manager)
        self.invoice_manager = InvoiceManager(
            self.invoices_repo, self.invoice_parts_repo, self.invoice_labor_repo,
            self.sequencer, self.vehicle_manager, self.settings_manager)
        self.payment_manager = PaymentManager(self.payments_repo, self.invoices_repo)
        self.processor = RecurringBillingProcessor(self.agreements_repo, self.agreement_manager, self.invoice_manager)
        self.service = BillingService(
            self.agreement_manager, self.invoice_manager, self.payment_manager, self.processor,
            revalidate=revalidate)
        logger.info("Billing application wired.")


def _cli_context(organization_id: Optional[str]) -> AuthContext:
    if organization_id is None:
        return SYSTEM_CONTEXT
    return AuthContext(user_id="cli", organization_id=organization_id, permissions=frozenset(Permission))


def cmd_init_db(app: BillingApplication, args: argparse.Namespace) -> int:
    print(f"Database ready at {app.db_manager.db_path}")
    return 0


def cmd_run_billing(app: BillingApplication, args: argparse.Namespace) -> int:
    result = app.service.run_due_billing(_cli_context(args.org), now=args.as_of)
    if not result.ok:
        print(f"Billing run failed: {result.error}", file=sys.stderr)
        return 2

    run = result.data
    print(f"Processed {run.processed_count} agreement(s), {len(run.failures)} failure(s).")
    for item in run.results:
        print(f"  agreement {item.agreement_id} -> invoice {item.invoice_number} (ID: {item.invoice_id})")
    for failure in run.failures:
        print(f"  agreement {failure.agreement_id} FAILED: {failure.error}")
    return 1 if run.failures else 0


def cmd_ledger(app: BillingApplication, args: argparse.Namespace) -> int:
    result = app.service.get_ledger(_cli_context(args.org), args.invoice)
    if not result.ok:
        print(f"Error: {result.error}", file=sys.stderr)
        return 2
    ledger = result.data
    print(f"Invoice {ledger.invoice_id}: total {ledger.total_amount}, paid {ledger.total_paid}, "
          f"balance {ledger.balance_due} ({ledger.status.value})")
    for payment in ledger.payments:
        print(f"  {payment.payment_date} {payment.method.value:<14} {payment.amount}")
    return 0


def cmd_settings(app: BillingApplication, args: argparse.Namespace) -> int:
    try:
        if args.prefix is not None:
            app.settings_manager.set_invoice_prefix(args.org, args.prefix)
        if args.start_number is not None:
            app.settings_manager.set_invoice_start_number(args.org, args.start_number)
        if args.tax_rate is not None:
            app.settings_manager.set_default_tax_rate(args.org, args.tax_rate)
    except BillingError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    print(f"Invoice prefix: {app.settings_manager.get_invoice_prefix(args.org)}")
    print(f"Pending start number: {app.settings_manager.get_invoice_start_number(args.org) or '-'}")
    print(f"Default tax rate: {app.settings_manager.get_default_tax_rate(args.org)}%")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="workshop-billing", description="Recurring billing and invoice ledger")
    parser.add_argument("--db", default=DATABASE_PATH, help="Path of the sqlite database file")
    sub = parser.add_subparsers(dest="command", required=True)

    p_init = sub.add_parser("init-db", help="Create the database schema")
    p_init.set_defaults(func=cmd_init_db)

    p_run = sub.add_parser("run-billing", help="Invoice every due recurring agreement")
    p_run.add_argument("--org", help="Only this organization (default: all organizations)")
    p_run.add_argument("--as-of", type=datetime.fromisoformat,
                       help="Run as if it were this moment (YYYY-MM-DDTHH:MM)")
    p_run.set_defaults(func=cmd_run_billing)

    p_ledger = sub.add_parser("ledger", help="Show payments and balance of an invoice")
    p_ledger.add_argument("--org", required=True)
    p_ledger.add_argument("--invoice", required=True, type=int)
    p_ledger.set_defaults(func=cmd_ledger)

    p_settings = sub.add_parser("settings", help="Show or change organization billing settings")
    p_settings.add_argument("--org", required=True)
    p_settings.add_argument("--prefix", help="Invoice number prefix, may contain {year}")
    p_settings.add_argument("--start-number", help="One-time starting invoice number")
    p_settings.add_argument("--tax-rate", help="Default tax rate percent")
    p_settings.set_defaults(func=cmd_settings)
    return parser


def main(argv=None) -> None:
    args = build_parser().parse_args(argv)

    ensure_runtime_dirs()
    os.makedirs(os.path.dirname(os.path.abspath(args.db)), exist_ok=True)
    logging.config.dictConfig(LOGGING_CONFIG)

    try:
        app = BillingApplication(args.db)
    except Exception as e:
        logger.error(f"FATAL: Could not initialize database: {e}", exc_info=True)
        print(f"Cannot open the billing database: {e}", file=sys.stderr)
        sys.exit(2)

    exit_code = args.func(app, args)
    sys.exit(exit_code)


if __name__ == '__main__':
    main()

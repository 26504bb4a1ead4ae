# workshop_billing/business_logic/__init__.py
from .settings_manager import SettingsManager
from .vehicle_manager import VehicleManager
from .invoice_number_sequencer import InvoiceNumberSequencer
from .agreement_manager import AgreementManager
from .invoice_manager import InvoiceManager
from .payment_manager import PaymentManager, LedgerSummary
from .recurring_billing_processor import (
    RecurringBillingProcessor, BillingRunResult, AgreementRunResult, AgreementFailure,
)
from .billing_service import BillingService, ServiceResult
from .authorization import AuthContext, SYSTEM_CONTEXT

# Repositories are not imported here: they import the entities package, and the
# managers only reference them for type checking.

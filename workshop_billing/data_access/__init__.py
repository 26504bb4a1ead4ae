# workshop_billing/data_access/__init__.py

from .database_manager import DatabaseManager
from .base_repository import BaseRepository

from .settings_repository import SettingsRepository
from .vehicles_repository import VehiclesRepository
from .recurring_agreements_repository import RecurringAgreementsRepository
from .recurring_parts_repository import RecurringPartsRepository
from .recurring_labor_repository import RecurringLaborRepository
from .invoices_repository import InvoicesRepository
from .invoice_parts_repository import InvoicePartsRepository
from .invoice_labor_repository import InvoiceLaborRepository
from .payments_repository import PaymentsRepository

ALL_REPOSITORIES = [
    SettingsRepository, VehiclesRepository,
    RecurringAgreementsRepository, RecurringPartsRepository, RecurringLaborRepository,
    InvoicesRepository, InvoicePartsRepository, InvoiceLaborRepository, PaymentsRepository,
]

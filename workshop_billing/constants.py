# workshop_billing/constants.py

from enum import Enum

# General
DATE_FORMAT = "%Y-%m-%d"
DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class Frequency(Enum):
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class DiscountType(Enum):
    NONE = "none"
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class ServiceType(Enum):
    MAINTENANCE = "maintenance"
    REPAIR = "repair"
    UPGRADE = "upgrade"
    INSPECTION = "inspection"


class PaymentMethod(Enum):
    CASH = "cash"
    CHECK = "check"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    BANK_TRANSFER = "bank_transfer"
    OTHER = "other"


class PaymentStatus(Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


class Permission(Enum):
    BILLING_READ = "billing.read"
    BILLING_CREATE = "billing.create"
    BILLING_UPDATE = "billing.update"
    BILLING_DELETE = "billing.delete"


class SettingKey:
    INVOICE_PREFIX = "workshop.invoicePrefix"
    INVOICE_START_NUMBER = "workshop.invoiceStartNumber"
    DEFAULT_TAX_RATE = "workshop.defaultTaxRate"


# Paths handed to the revalidation hook after a commit
BILLING_PATH = "/billing"
RECURRING_BILLING_PATH = "/billing/recurring"
INVOICE_PATH_TEMPLATE = "/invoices/{invoice_id}"

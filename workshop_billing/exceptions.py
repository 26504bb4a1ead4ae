# workshop_billing/exceptions.py


class BillingError(Exception):
    """Base class for every expected failure raised by the billing managers."""
    error_code = "billing_error"


class ValidationError(BillingError, ValueError):
    """Malformed input, rejected before anything is written."""
    error_code = "validation_error"


class NotFoundError(BillingError, LookupError):
    """The record does not exist or belongs to another organization."""
    error_code = "not_found"


class ConflictError(BillingError):
    """An invoice number was taken by a concurrent writer."""
    error_code = "conflict"


class PermissionDeniedError(BillingError):
    error_code = "permission_denied"


class BillingRunError(BillingError):
    """The billing run could not start at all (e.g. the datastore is unreachable)."""
    error_code = "run_failed"

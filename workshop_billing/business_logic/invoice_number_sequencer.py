# workshop_billing/business_logic/invoice_number_sequencer.py

import re
import sqlite3
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional, Union, TYPE_CHECKING

from workshop_billing.config import DEFAULT_INVOICE_PREFIX, DEFAULT_INVOICE_START_NUMBER
from workshop_billing.constants import SettingKey
from .entities.setting_entity import SettingEntity

if TYPE_CHECKING:
    from ..data_access.settings_repository import SettingsRepository
    from ..data_access.invoices_repository import InvoicesRepository

logger = logging.getLogger(__name__)

YEAR_PLACEHOLDER = "{year}"
_TRAILING_DIGITS = re.compile(r"(\d+)$")


@dataclass(frozen=True)
class IssuedNumber:
    invoice_number: str
    sequence: int
    consumed_offset: bool


def resolve_prefix(template: str, today: Union[date, datetime]) -> str:
    """Fills {year} at issuance time, so the prefix rolls over with the calendar."""
    return template.replace(YEAR_PLACEHOLDER, str(today.year))


def parse_trailing_number(invoice_number: Optional[str]) -> Optional[int]:
    if not invoice_number:
        return None
    match = _TRAILING_DIGITS.search(invoice_number.strip())
    return int(match.group(1)) if match else None


def parse_starting_offset(raw_value: Optional[str]) -> Optional[int]:
    """The configured start number, or None when unset, cleared, or unusable."""
    if raw_value is None or not str(raw_value).strip():
        return None
    try:
        offset = int(str(raw_value).strip())
    except ValueError:
        logger.warning(f"Ignoring non-numeric invoice start number setting: {raw_value!r}")
        return None
    return offset if offset > 0 else None


def highest_issued(invoice_numbers: Iterable[Optional[str]]) -> Optional[int]:
    """Largest trailing number among the given invoice numbers, ignoring ones without digits."""
    parsed = [n for n in (parse_trailing_number(number) for number in invoice_numbers) if n is not None]
    return max(parsed) if parsed else None


def next_sequence(starting_offset: Optional[int], invoice_numbers: Iterable[Optional[str]]) -> int:
    base = starting_offset or DEFAULT_INVOICE_START_NUMBER
    last = highest_issued(invoice_numbers)
    if last is None:
        # No prior invoice, or only numbers edited into something without trailing digits
        return base
    return max(base, last + 1)


class InvoiceNumberSequencer:
    """
    Issues invoice numbers per organization.

    issue_next() reads every issued number of the organization and continues
    after the highest one, so a low manual number never pulls the sequence back.
    It must run on a connection inside DatabaseManager.transaction(), with the
    invoice insert following in that same transaction. The transaction's write
    lock is what keeps two issuers from reading the same numbers; the unique
    index on (organization_id, invoice_number) backs it up.
    """

    def __init__(self, settings_repository: 'SettingsRepository', invoices_repository: 'InvoicesRepository'):
        self.settings_repo = settings_repository
        self.invoices_repo = invoices_repository

    def issue_next(self, organization_id: str, conn: sqlite3.Connection,
                   now: Optional[datetime] = None) -> IssuedNumber:
        if not conn.in_transaction:
            raise RuntimeError("Invoice numbers can only be issued inside an open write transaction.")
        now = now or datetime.now()

        settings = self.settings_repo.get_settings(
            organization_id, [SettingKey.INVOICE_PREFIX, SettingKey.INVOICE_START_NUMBER], conn=conn)
        prefix = resolve_prefix(settings.get(SettingKey.INVOICE_PREFIX) or DEFAULT_INVOICE_PREFIX, now)
        starting_offset = parse_starting_offset(settings.get(SettingKey.INVOICE_START_NUMBER))
        issued_numbers = self.invoices_repo.get_invoice_numbers(organization_id, conn=conn)
        last_issued = highest_issued(issued_numbers)

        sequence = next_sequence(starting_offset, issued_numbers)
        consumed_offset = starting_offset is not None and sequence >= starting_offset
        if consumed_offset:
            # One-time offset: clear it so it never overrides later increments
            self.settings_repo.set_setting(
                SettingEntity(organization_id=organization_id, key=SettingKey.INVOICE_START_NUMBER, value=""),
                conn=conn)
            logger.info(f"Invoice start number {starting_offset} consumed for organization {organization_id}.")

        invoice_number = f"{prefix}{sequence}"
        logger.debug(f"Issued invoice number {invoice_number} for organization {organization_id} (highest issued: {last_issued}).")
        return IssuedNumber(invoice_number=invoice_number, sequence=sequence, consumed_offset=consumed_offset)

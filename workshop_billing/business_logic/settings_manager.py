# workshop_billing/business_logic/settings_manager.py

import sqlite3
from decimal import Decimal
from typing import Optional, TYPE_CHECKING
import logging

from workshop_billing.config import DEFAULT_INVOICE_PREFIX, DEFAULT_TAX_RATE
from workshop_billing.constants import SettingKey
from workshop_billing.exceptions import ValidationError
from .entities.setting_entity import SettingEntity
from .validation import to_decimal, to_positive_int, TAX_RATE_MAX

if TYPE_CHECKING:
    from ..data_access.settings_repository import SettingsRepository

logger = logging.getLogger(__name__)


class SettingsManager:
    """Organization-scoped billing settings. An empty stored value counts as unset."""

    def __init__(self, settings_repository: 'SettingsRepository'):
        if settings_repository is None:
            raise ValueError("settings_repository cannot be None")
        self.settings_repository = settings_repository

    def _get_value(self, organization_id: str, key: str, conn: Optional[sqlite3.Connection] = None) -> Optional[str]:
        setting = self.settings_repository.get_setting(organization_id, key, conn=conn)
        if setting is None or setting.value is None or not str(setting.value).strip():
            return None
        return str(setting.value).strip()

    def _set_value(self, organization_id: str, key: str, value: str) -> None:
        self.settings_repository.set_setting(SettingEntity(organization_id=organization_id, key=key, value=value))
        logger.info(f"Setting '{key}' for organization {organization_id} set to {value!r}.")

    def get_invoice_prefix(self, organization_id: str) -> str:
        return self._get_value(organization_id, SettingKey.INVOICE_PREFIX) or DEFAULT_INVOICE_PREFIX

    def set_invoice_prefix(self, organization_id: str, prefix: str) -> None:
        if not isinstance(prefix, str):
            raise ValidationError("Invoice prefix must be text.")
        self._set_value(organization_id, SettingKey.INVOICE_PREFIX, prefix)

    def get_invoice_start_number(self, organization_id: str) -> Optional[int]:
        value = self._get_value(organization_id, SettingKey.INVOICE_START_NUMBER)
        return int(value) if value and value.isdigit() else None

    def set_invoice_start_number(self, organization_id: str, start_number) -> None:
        number = to_positive_int(start_number, "invoice start number")
        self._set_value(organization_id, SettingKey.INVOICE_START_NUMBER, str(number))

    def get_default_tax_rate(self, organization_id: str, conn: Optional[sqlite3.Connection] = None) -> Decimal:
        value = self._get_value(organization_id, SettingKey.DEFAULT_TAX_RATE, conn=conn)
        if value is None:
            return DEFAULT_TAX_RATE
        try:
            return to_decimal(value, "default tax rate", maximum=TAX_RATE_MAX)
        except ValidationError:
            logger.warning(f"Ignoring invalid default tax rate {value!r} for organization {organization_id}.")
            return DEFAULT_TAX_RATE

    def set_default_tax_rate(self, organization_id: str, tax_rate) -> None:
        rate = to_decimal(tax_rate, "default tax rate", maximum=TAX_RATE_MAX)
        self._set_value(organization_id, SettingKey.DEFAULT_TAX_RATE, str(rate))

# workshop_billing/business_logic/entities/__init__.py
from .base_entity import BaseEntity
from .setting_entity import SettingEntity
from .vehicle_entity import VehicleEntity
from .template_line_entities import TemplatePartEntity, TemplateLaborEntity
from .recurring_agreement_entity import RecurringAgreementEntity
from .invoice_line_entities import PartLineEntity, LaborLineEntity
from .invoice_entity import InvoiceEntity
from .payment_entity import PaymentEntity

__all__ = [
    "BaseEntity", "SettingEntity", "VehicleEntity",
    "TemplatePartEntity", "TemplateLaborEntity", "RecurringAgreementEntity",
    "PartLineEntity", "LaborLineEntity", "InvoiceEntity", "PaymentEntity",
]

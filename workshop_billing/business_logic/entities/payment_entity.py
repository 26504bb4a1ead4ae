# workshop_billing/business_logic/entities/payment_entity.py
from dataclasses import dataclass, field
from typing import Optional
from datetime import date, datetime
from decimal import Decimal
from .base_entity import BaseEntity
from workshop_billing.constants import PaymentMethod


@dataclass
class PaymentEntity(BaseEntity):
    invoice_id: int
    amount: Decimal
    payment_date: date
    method: PaymentMethod
    note: Optional[str] = field(default=None)
    created_at: Optional[datetime] = field(default=None)

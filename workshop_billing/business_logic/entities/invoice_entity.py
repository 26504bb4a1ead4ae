# workshop_billing/business_logic/entities/invoice_entity.py
from dataclasses import dataclass, field
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal
from .base_entity import BaseEntity
from .invoice_line_entities import PartLineEntity, LaborLineEntity
from workshop_billing.constants import DiscountType, ServiceType


@dataclass
class InvoiceEntity(BaseEntity):
    organization_id: str
    invoice_number: str
    title: str
    service_date: date
    description: Optional[str] = field(default=None)
    service_type: Optional[ServiceType] = field(default=None)
    vehicle_id: Optional[int] = field(default=None)
    recurring_agreement_id: Optional[int] = field(default=None)  # set when materialized from an agreement

    # Monetary fields are persisted as computed at creation and never recomputed
    cost: Decimal = field(default_factory=lambda: Decimal("0"))
    subtotal: Decimal = field(default_factory=lambda: Decimal("0"))
    discount_type: DiscountType = DiscountType.NONE
    discount_value: Decimal = field(default_factory=lambda: Decimal("0"))
    discount_amount: Decimal = field(default_factory=lambda: Decimal("0"))
    tax_rate: Decimal = field(default_factory=lambda: Decimal("0"))
    tax_amount: Decimal = field(default_factory=lambda: Decimal("0"))
    total_amount: Decimal = field(default_factory=lambda: Decimal("0"))

    invoice_notes: Optional[str] = field(default=None)
    created_at: Optional[datetime] = field(default=None)

    part_lines: List[PartLineEntity] = field(default_factory=list, init=False, compare=False)
    labor_lines: List[LaborLineEntity] = field(default_factory=list, init=False, compare=False)

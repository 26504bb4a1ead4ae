# workshop_billing/business_logic/entities/invoice_line_entities.py
from dataclasses import dataclass, field
from typing import Optional
from decimal import Decimal
from .base_entity import BaseEntity


@dataclass
class PartLineEntity(BaseEntity):
    name: str
    quantity: Decimal
    unit_price: Decimal
    total: Decimal  # quantity x unit_price, frozen at creation
    part_number: Optional[str] = field(default=None)
    invoice_id: Optional[int] = field(default=None)
    position: int = 0


@dataclass
class LaborLineEntity(BaseEntity):
    description: str
    hours: Decimal
    rate: Decimal
    total: Decimal  # hours x rate, frozen at creation
    invoice_id: Optional[int] = field(default=None)
    position: int = 0

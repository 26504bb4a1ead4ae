# workshop_billing/business_logic/entities/template_line_entities.py
from dataclasses import dataclass, field
from typing import Optional
from decimal import Decimal
from .base_entity import BaseEntity


@dataclass
class TemplatePartEntity(BaseEntity):
    name: str
    quantity: int = 1
    unit_price: Decimal = field(default_factory=lambda: Decimal("0"))
    part_number: Optional[str] = field(default=None)
    agreement_id: Optional[int] = field(default=None)
    position: int = 0


@dataclass
class TemplateLaborEntity(BaseEntity):
    description: str
    hours: Decimal = field(default_factory=lambda: Decimal("0"))
    rate: Decimal = field(default_factory=lambda: Decimal("0"))
    agreement_id: Optional[int] = field(default=None)
    position: int = 0

# workshop_billing/business_logic/entities/vehicle_entity.py
from dataclasses import dataclass, field
from typing import Optional
from .base_entity import BaseEntity


@dataclass
class VehicleEntity(BaseEntity):
    organization_id: str
    customer_name: Optional[str] = field(default=None)
    make: Optional[str] = field(default=None)
    model: Optional[str] = field(default=None)
    year: Optional[int] = field(default=None)

    @property
    def display_name(self) -> str:
        parts = [str(p) for p in (self.year, self.make, self.model) if p]
        return " ".join(parts) or f"Vehicle #{self.id}"

# workshop_billing/business_logic/entities/recurring_agreement_entity.py
from dataclasses import dataclass, field
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal
from .base_entity import BaseEntity
from .template_line_entities import TemplatePartEntity, TemplateLaborEntity
from workshop_billing.constants import Frequency, ServiceType


@dataclass
class RecurringAgreementEntity(BaseEntity):
    organization_id: str
    vehicle_id: int
    title: str
    frequency: Frequency
    next_run_date: date
    service_type: ServiceType = ServiceType.MAINTENANCE
    description: Optional[str] = field(default=None)
    end_date: Optional[date] = field(default=None)
    is_active: bool = field(default=True)
    last_run_at: Optional[datetime] = field(default=None)
    run_count: int = 0
    cost: Decimal = field(default_factory=lambda: Decimal("0"))  # flat add-on beyond the line items
    tax_rate: Decimal = field(default_factory=lambda: Decimal("0"))  # percent
    invoice_notes: Optional[str] = field(default=None)
    created_at: Optional[datetime] = field(default=None)

    # Loaded by the manager, not stored in this table
    template_parts: List[TemplatePartEntity] = field(default_factory=list, init=False, compare=False)
    template_labor: List[TemplateLaborEntity] = field(default_factory=list, init=False, compare=False)

    def is_due(self, now: datetime) -> bool:
        if self.end_date is not None and self.next_run_date > self.end_date:
            return False
        return self.is_active and self.next_run_date <= now.date()

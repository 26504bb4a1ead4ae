# workshop_billing/business_logic/entities/setting_entity.py
from dataclasses import dataclass
from typing import Optional


@dataclass
class SettingEntity:  # No BaseEntity: (organization_id, key) is the primary key
    organization_id: str
    key: str
    value: Optional[str]

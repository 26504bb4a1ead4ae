from datetime import datetime

import pytest

from workshop_billing.main_app import BillingApplication
from workshop_billing.constants import Permission
from workshop_billing.business_logic.authorization import AuthContext

ORG = "org-1"
OTHER_ORG = "org-2"
NOW = datetime(2026, 1, 15, 9, 0)


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "billing.db")


@pytest.fixture
def app(db_path):
    return BillingApplication(db_path)


@pytest.fixture
def org():
    return ORG


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def vehicle(app):
    return app.vehicle_manager.add_vehicle(ORG, customer_name="Dana Reyes", make="Toyota", model="Hilux", year=2019)


@pytest.fixture
def other_vehicle(app):
    return app.vehicle_manager.add_vehicle(OTHER_ORG, customer_name="Sam Ortiz", make="Ford", model="Transit")


def agreement_data(vehicle_id, **overrides):
    data = {
        "title": "Monthly fleet service",
        "frequency": "monthly",
        "next_run_date": "2026-01-15",
        "vehicle_id": vehicle_id,
        "cost": "50",
        "tax_rate": "10",
        "template_parts": [{"name": "Oil filter", "part_number": "OF-22", "quantity": 2, "unit_price": "12.50"}],
        "template_labor": [{"description": "Oil change", "hours": "1.5", "rate": "80"}],
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_agreement(app, vehicle):
    """Creates an agreement worth 195.00 before tax (214.50 with 10% tax)."""
    def _make(organization_id=ORG, **overrides):
        overrides.setdefault("vehicle_id", vehicle.id)
        vehicle_id = overrides.pop("vehicle_id")
        return app.agreement_manager.create_agreement(organization_id, agreement_data(vehicle_id, **overrides))
    return _make


@pytest.fixture
def make_invoice(app, vehicle):
    def _make(organization_id=ORG, now=NOW, **overrides):
        data = {"title": "Brake inspection", "vehicle_id": vehicle.id, "service_date": "2026-01-15",
                "cost": "100", "tax_rate": "0"}
        data.update(overrides)
        return app.invoice_manager.create_invoice(organization_id, data, now=now)
    return _make


@pytest.fixture
def full_context():
    return AuthContext(user_id="user-1", organization_id=ORG, permissions=frozenset(Permission))


@pytest.fixture
def read_only_context():
    return AuthContext(user_id="viewer", organization_id=ORG, permissions=frozenset({Permission.BILLING_READ}))

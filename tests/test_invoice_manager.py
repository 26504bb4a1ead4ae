from datetime import date
from decimal import Decimal

import pytest

from workshop_billing.business_logic.money_calculator import derive_tax_and_total
from workshop_billing.constants import DiscountType
from workshop_billing.exceptions import ValidationError, NotFoundError

from conftest import ORG, OTHER_ORG


class TestCreateInvoice:
    def test_totals_are_computed_from_lines(self, app, make_invoice):
        invoice = make_invoice(
            cost="0", tax_rate="8",
            parts=[{"name": "Brake pads", "quantity": "2", "unit_price": "45"}],
            labor=[{"description": "Pad replacement", "hours": "1.5", "rate": "70"}],
            discount={"type": "percentage", "value": "10"},
        )

        assert invoice.subtotal == Decimal("195.00")
        assert invoice.discount_type == DiscountType.PERCENTAGE
        assert invoice.discount_amount == Decimal("19.50")
        assert invoice.tax_amount == Decimal("14.04")
        assert invoice.total_amount == Decimal("189.54")

    def test_fixed_discount_is_capped(self, make_invoice):
        invoice = make_invoice(cost="50", tax_rate="10", discount={"type": "fixed", "value": "80"})
        assert invoice.discount_amount == Decimal("50.00")
        assert invoice.total_amount == Decimal("0.00")

    def test_client_totals_are_not_accepted(self, make_invoice):
        with pytest.raises(ValidationError):
            make_invoice(total_amount="1.00")

    @pytest.mark.parametrize("discount", [{"type": "bogus", "value": "1"}, {"type": "percentage", "value": "101"},
                                          {"type": "fixed", "value": "-3"}])
    def test_bad_discount_is_rejected(self, make_invoice, discount):
        with pytest.raises(ValidationError):
            make_invoice(discount=discount)

    def test_stored_invoice_rederives_its_total(self, app, make_invoice):
        created = make_invoice(cost="0", tax_rate="7.25",
                               parts=[{"name": "Bulb", "quantity": "3", "unit_price": "0.335"}],
                               discount={"type": "percentage", "value": "5"})

        stored = app.invoice_manager.get_invoice(ORG, created.id)
        tax_amount, total_amount = derive_tax_and_total(stored.subtotal, stored.discount_amount, stored.tax_rate)

        assert (tax_amount, total_amount) == (stored.tax_amount, stored.total_amount)

    def test_missing_tax_rate_uses_organization_default(self, app, vehicle):
        app.settings_manager.set_default_tax_rate(ORG, "20")
        invoice = app.invoice_manager.create_invoice(ORG, {"title": "Inspection", "vehicle_id": vehicle.id,
                                                           "service_date": "2026-01-15", "cost": "100"})
        assert invoice.total_amount == Decimal("120.00")


class TestReadAndDelete:
    def test_get_invoice_includes_lines(self, app, make_invoice):
        created = make_invoice(parts=[{"name": "Fuse", "part_number": "F-10", "quantity": "4", "unit_price": "1.25"}],
                               labor=[{"description": "Diagnostics", "hours": "0.5", "rate": "90"}])

        invoice = app.invoice_manager.get_invoice(ORG, created.id)

        assert invoice.service_date == date(2026, 1, 15)
        assert [(p.part_number, p.total) for p in invoice.part_lines] == [("F-10", Decimal("5.00"))]
        assert [l.total for l in invoice.labor_lines] == [Decimal("45.00")]

    def test_other_organization_cannot_read_or_delete(self, app, make_invoice):
        created = make_invoice()
        with pytest.raises(NotFoundError):
            app.invoice_manager.get_invoice(OTHER_ORG, created.id)
        with pytest.raises(NotFoundError):
            app.invoice_manager.delete_invoice(OTHER_ORG, created.id)

    def test_delete_removes_lines(self, app, make_invoice):
        created = make_invoice(parts=[{"name": "Fuse", "quantity": "1", "unit_price": "1"}])
        app.invoice_manager.delete_invoice(ORG, created.id)

        assert app.invoice_manager.list_invoices(ORG) == []
        assert app.invoice_parts_repo.get_by_invoice_id(created.id) == []

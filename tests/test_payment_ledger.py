from datetime import date
from decimal import Decimal

import pytest

from workshop_billing.constants import PaymentStatus, PaymentMethod
from workshop_billing.exceptions import ValidationError, NotFoundError

from conftest import ORG, OTHER_ORG


@pytest.fixture
def invoice(make_invoice):
    """An invoice with a total of exactly 100.00."""
    created = make_invoice(cost="100", tax_rate="0")
    assert created.total_amount == Decimal("100.00")
    return created


def pay(app, invoice_id, amount, method="cash", organization_id=ORG):
    return app.payment_manager.record_payment(organization_id, {
        "invoice_id": invoice_id, "amount": amount, "payment_date": "2026-01-20", "method": method,
    })


class TestLedgerStatus:
    @pytest.mark.parametrize("payments, balance, status", [
        ([], "100.00", PaymentStatus.UNPAID),
        (["40", "40"], "20.00", PaymentStatus.PARTIAL),
        (["100"], "0.00", PaymentStatus.PAID),
        (["120"], "-20.00", PaymentStatus.PAID),
        (["99.99", "0.01"], "0.00", PaymentStatus.PAID),
    ])
    def test_balance_and_status(self, app, invoice, payments, balance, status):
        for amount in payments:
            pay(app, invoice.id, amount)

        ledger = app.payment_manager.get_ledger(ORG, invoice.id)

        assert ledger.total_paid == sum((Decimal(a) for a in payments), Decimal("0"))
        assert ledger.balance_due == Decimal(balance)
        assert ledger.status == status
        assert len(ledger.payments) == len(payments)

    def test_record_payment_returns_updated_ledger(self, app, invoice):
        ledger = pay(app, invoice.id, "40", method="bank_transfer")

        assert ledger.invoice_id == invoice.id
        assert ledger.total_amount == Decimal("100.00")
        assert ledger.total_paid == Decimal("40")
        assert ledger.status == PaymentStatus.PARTIAL
        payment = ledger.payments[0]
        assert payment.method == PaymentMethod.BANK_TRANSFER
        assert payment.payment_date == date(2026, 1, 20)

    def test_delete_payment_returns_updated_ledger(self, app, invoice):
        pay(app, invoice.id, "40")
        second = pay(app, invoice.id, "60")
        assert second.status == PaymentStatus.PAID

        ledger = app.payment_manager.delete_payment(ORG, second.payments[-1].id)

        assert ledger.total_paid == Decimal("40")
        assert ledger.balance_due == Decimal("60.00")
        assert ledger.status == PaymentStatus.PARTIAL


class TestPaymentValidation:
    @pytest.mark.parametrize("amount", ["0", "-5", "abc", None, True])
    def test_amount_must_be_positive_number(self, app, invoice, amount):
        with pytest.raises(ValidationError):
            pay(app, invoice.id, amount)
        assert app.payment_manager.get_ledger(ORG, invoice.id).payments == []

    @pytest.mark.parametrize("amount", ["0.001", "10.005"])
    def test_amount_must_be_whole_cents(self, app, invoice, amount):
        with pytest.raises(ValidationError):
            pay(app, invoice.id, amount)

    def test_trailing_zeros_are_whole_cents(self, app, invoice):
        assert pay(app, invoice.id, "10.500").total_paid == Decimal("10.50")

    def test_unknown_method_is_rejected(self, app, invoice):
        with pytest.raises(ValidationError):
            pay(app, invoice.id, "10", method="bitcoin")

    def test_invoice_of_another_organization_is_not_found(self, app, invoice):
        with pytest.raises(NotFoundError):
            pay(app, invoice.id, "10", organization_id=OTHER_ORG)
        with pytest.raises(NotFoundError):
            app.payment_manager.get_ledger(OTHER_ORG, invoice.id)

    def test_payment_of_another_organization_cannot_be_deleted(self, app, invoice):
        ledger = pay(app, invoice.id, "10")
        with pytest.raises(NotFoundError):
            app.payment_manager.delete_payment(OTHER_ORG, ledger.payments[0].id)

    def test_deleting_the_invoice_removes_its_payments(self, app, invoice):
        ledger = pay(app, invoice.id, "10")
        app.invoice_manager.delete_invoice(ORG, invoice.id)

        assert app.payments_repo.get_by_id(ledger.payments[0].id) is None

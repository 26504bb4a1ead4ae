from decimal import Decimal

import pytest

from workshop_billing.business_logic.money_calculator import (
    NO_DISCOUNT, PercentageDiscount, FixedDiscount, calculate_totals, derive_tax_and_total,
    finalize_for_persistence, round_money,
)
from workshop_billing.business_logic.validation import PartLineInput, TemplateLaborInput


def part(quantity, unit_price):
    return PartLineInput(name="Part", quantity=Decimal(quantity), unit_price=Decimal(unit_price))


def labor(hours, rate):
    return TemplateLaborInput(description="Labor", hours=Decimal(hours), rate=Decimal(rate))


class TestCalculateTotals:
    def test_chain_without_discount(self):
        totals = calculate_totals([part("2", "12.50")], [labor("1.5", "80")], cost=Decimal("50"),
                                  tax_rate=Decimal("10"))

        assert totals.parts_subtotal == Decimal("25.00")
        assert totals.labor_subtotal == Decimal("120.0")
        assert totals.subtotal == Decimal("195.00")
        assert totals.discount_amount == 0
        assert totals.taxable_base == Decimal("195.00")
        assert totals.tax_amount == Decimal("19.5")
        assert totals.total_amount == Decimal("214.50")

    def test_percentage_discount_is_taken_before_tax(self):
        totals = calculate_totals([part("1", "200")], [], discount=PercentageDiscount(Decimal("10")),
                                  tax_rate=Decimal("8"))

        assert totals.discount_amount == Decimal("20")
        assert totals.taxable_base == Decimal("180")
        assert totals.tax_amount == Decimal("14.40")
        assert totals.total_amount == Decimal("194.40")

    def test_fixed_discount_never_exceeds_subtotal(self):
        totals = calculate_totals([part("1", "50")], [], discount=FixedDiscount(Decimal("80")))

        assert totals.discount_amount == Decimal("50")
        assert totals.taxable_base == 0
        assert totals.total_amount == 0

    def test_fixed_discount_below_subtotal(self):
        totals = calculate_totals([part("1", "50")], [], discount=FixedDiscount(Decimal("15")), tax_rate=Decimal("20"))
        assert totals.discount_amount == Decimal("15")
        assert totals.total_amount == Decimal("42")

    def test_empty_invoice_is_zero(self):
        totals = calculate_totals([], [])
        assert totals.subtotal == 0
        assert totals.total_amount == 0

    @pytest.mark.parametrize("discount", [NO_DISCOUNT, PercentageDiscount(Decimal("12.5")), FixedDiscount(Decimal("3.33"))])
    def test_total_identity_holds_exactly(self, discount):
        totals = calculate_totals([part("3", "0.335"), part("7", "19.99")], [labor("0.75", "93.10")],
                                  cost=Decimal("9.99"), discount=discount, tax_rate=Decimal("7.25"))

        assert totals.total_amount == totals.subtotal - totals.discount_amount + totals.tax_amount

    def test_same_inputs_give_same_outputs(self):
        args = ([part("3", "0.335")], [labor("2", "45.555")])
        kwargs = dict(cost=Decimal("1"), discount=PercentageDiscount(Decimal("5")), tax_rate=Decimal("7.25"))
        assert calculate_totals(*args, **kwargs) == calculate_totals(*args, **kwargs)


class TestPersistenceRounding:
    def test_round_money_half_up(self):
        assert round_money(Decimal("0.005")) == Decimal("0.01")
        assert round_money(Decimal("2.675")) == Decimal("2.68")
        assert round_money(Decimal("1.004")) == Decimal("1.00")

    def test_stored_totals_rederive_to_the_same_total(self):
        exact = calculate_totals([part("3", "0.335")], [labor("2", "45.555")], cost=Decimal("1"),
                                 discount=PercentageDiscount(Decimal("5")), tax_rate=Decimal("7.25"))
        stored = finalize_for_persistence(exact)

        tax_amount, total_amount = derive_tax_and_total(stored.subtotal, stored.discount_amount, stored.tax_rate)

        assert tax_amount == stored.tax_amount
        assert total_amount == stored.total_amount
        assert stored.total_amount == stored.subtotal - stored.discount_amount + stored.tax_amount

    def test_finalized_values_are_on_the_money_quantum(self):
        stored = finalize_for_persistence(calculate_totals([part("3", "0.335")], [], tax_rate=Decimal("7.25")))
        for value in (stored.subtotal, stored.discount_amount, stored.tax_amount, stored.total_amount):
            assert value == value.quantize(Decimal("0.01"))

    def test_finalize_keeps_fixed_discount_within_subtotal(self):
        stored = finalize_for_persistence(calculate_totals([part("1", "49.995")], [], discount=FixedDiscount(Decimal("80"))))
        assert stored.discount_amount == stored.subtotal
        assert stored.total_amount == 0

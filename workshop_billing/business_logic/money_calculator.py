# workshop_billing/business_logic/money_calculator.py
"""
Invoice arithmetic.

The chain is always subtotal -> discount -> taxable base -> tax -> total.
calculate_totals() works on exact Decimals and never rounds; rounding
happens once, in finalize_for_persistence(), and the persisted tax and
total are derived from the persisted subtotal and discount through
derive_tax_and_total(). Re-running derive_tax_and_total() on a stored
invoice therefore gives back its stored total exactly.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Tuple, Union, ClassVar

from workshop_billing.config import MONEY_QUANTUM
from workshop_billing.constants import DiscountType

ZERO = Decimal("0")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class NoDiscount:
    kind: ClassVar[DiscountType] = DiscountType.NONE
    value: Decimal = ZERO


@dataclass(frozen=True)
class PercentageDiscount:
    kind: ClassVar[DiscountType] = DiscountType.PERCENTAGE
    value: Decimal


@dataclass(frozen=True)
class FixedDiscount:
    kind: ClassVar[DiscountType] = DiscountType.FIXED
    value: Decimal


Discount = Union[NoDiscount, PercentageDiscount, FixedDiscount]
NO_DISCOUNT = NoDiscount()


@dataclass(frozen=True)
class InvoiceTotals:
    parts_subtotal: Decimal
    labor_subtotal: Decimal
    subtotal: Decimal
    discount_amount: Decimal
    taxable_base: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total_amount: Decimal


def round_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def part_line_total(quantity: Decimal, unit_price: Decimal) -> Decimal:
    return Decimal(quantity) * Decimal(unit_price)


def labor_line_total(hours: Decimal, rate: Decimal) -> Decimal:
    return Decimal(hours) * Decimal(rate)


def discount_amount_for(subtotal: Decimal, discount: Discount) -> Decimal:
    if isinstance(discount, PercentageDiscount):
        return subtotal * discount.value / HUNDRED
    if isinstance(discount, FixedDiscount):
        # A fixed discount never pushes the taxable base below zero
        return min(discount.value, subtotal)
    return ZERO


def calculate_totals(parts: Iterable, labor: Iterable, cost: Decimal = ZERO,
                     discount: Discount = NO_DISCOUNT, tax_rate: Decimal = ZERO) -> InvoiceTotals:
    """
    Computes exact invoice totals.

    parts: objects with quantity and unit_price.
    labor: objects with hours and rate.
    cost: flat amount billed on top of the line items.
    tax_rate: percent applied to the discounted subtotal.
    """
    parts_subtotal = sum((part_line_total(p.quantity, p.unit_price) for p in parts), ZERO)
    labor_subtotal = sum((labor_line_total(l.hours, l.rate) for l in labor), ZERO)
    subtotal = Decimal(cost) + parts_subtotal + labor_subtotal

    discount_amount = discount_amount_for(subtotal, discount)
    taxable_base = subtotal - discount_amount
    tax_rate = Decimal(tax_rate)
    tax_amount = taxable_base * tax_rate / HUNDRED
    total_amount = taxable_base + tax_amount

    return InvoiceTotals(
        parts_subtotal=parts_subtotal,
        labor_subtotal=labor_subtotal,
        subtotal=subtotal,
        discount_amount=discount_amount,
        taxable_base=taxable_base,
        tax_rate=tax_rate,
        tax_amount=tax_amount,
        total_amount=total_amount,
    )


def derive_tax_and_total(subtotal: Decimal, discount_amount: Decimal, tax_rate: Decimal) -> Tuple[Decimal, Decimal]:
    """Tax and total for already-rounded subtotal and discount, as stored on an invoice."""
    taxable_base = subtotal - discount_amount
    tax_amount = round_money(taxable_base * Decimal(tax_rate) / HUNDRED)
    return tax_amount, taxable_base + tax_amount


def finalize_for_persistence(totals: InvoiceTotals) -> InvoiceTotals:
    """Rounds exact totals to the money quantum at the persistence boundary."""
    subtotal = round_money(totals.subtotal)
    discount_amount = min(round_money(totals.discount_amount), subtotal)
    tax_amount, total_amount = derive_tax_and_total(subtotal, discount_amount, totals.tax_rate)
    return InvoiceTotals(
        parts_subtotal=round_money(totals.parts_subtotal),
        labor_subtotal=round_money(totals.labor_subtotal),
        subtotal=subtotal,
        discount_amount=discount_amount,
        taxable_base=subtotal - discount_amount,
        tax_rate=totals.tax_rate,
        tax_amount=tax_amount,
        total_amount=total_amount,
    )

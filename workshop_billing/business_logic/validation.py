# workshop_billing/business_logic/validation.py
"""
Boundary parsing for caller-supplied dicts.

Every mutating operation receives a plain dict and turns it into one of
the frozen input types below before touching the database. Unknown keys,
unknown enum variants, negative money and malformed dates are rejected
here with ValidationError.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Type, TypeVar

from workshop_billing.constants import Frequency, DiscountType, ServiceType, PaymentMethod
from workshop_billing.exceptions import ValidationError
from .money_calculator import Discount, NO_DISCOUNT, PercentageDiscount, FixedDiscount, round_money

E = TypeVar('E', bound=Enum)


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


@dataclass(frozen=True)
class TemplatePartInput:
    name: str
    quantity: int
    unit_price: Decimal
    part_number: Optional[str] = None


@dataclass(frozen=True)
class TemplateLaborInput:
    description: str
    hours: Decimal
    rate: Decimal


@dataclass(frozen=True)
class PartLineInput:
    name: str
    quantity: Decimal
    unit_price: Decimal
    part_number: Optional[str] = None


@dataclass(frozen=True)
class AgreementInput:
    title: str
    frequency: Frequency
    next_run_date: date
    vehicle_id: int
    service_type: ServiceType = ServiceType.MAINTENANCE
    cost: Decimal = Decimal("0")
    tax_rate: Optional[Decimal] = None  # None: use the organization default
    description: Optional[str] = None
    end_date: Optional[date] = None
    invoice_notes: Optional[str] = None
    template_parts: Tuple[TemplatePartInput, ...] = ()
    template_labor: Tuple[TemplateLaborInput, ...] = ()


@dataclass(frozen=True)
class AgreementUpdate:
    """Partial update; fields left UNSET are not touched."""
    agreement_id: int
    title: Any = UNSET
    frequency: Any = UNSET
    next_run_date: Any = UNSET
    vehicle_id: Any = UNSET
    service_type: Any = UNSET
    cost: Any = UNSET
    tax_rate: Any = UNSET
    description: Any = UNSET
    end_date: Any = UNSET
    invoice_notes: Any = UNSET
    template_parts: Any = UNSET
    template_labor: Any = UNSET

    def changed_fields(self) -> Dict[str, Any]:
        return {name: value for name, value in self.__dict__.items()
                if name not in ("agreement_id", "template_parts", "template_labor") and value is not UNSET}


@dataclass(frozen=True)
class InvoiceInput:
    title: str
    vehicle_id: int
    service_date: date
    service_type: ServiceType = ServiceType.MAINTENANCE
    cost: Decimal = Decimal("0")
    tax_rate: Optional[Decimal] = None
    discount: Discount = NO_DISCOUNT
    description: Optional[str] = None
    invoice_notes: Optional[str] = None
    invoice_number: Optional[str] = None
    parts: Tuple[PartLineInput, ...] = ()
    labor: Tuple[TemplateLaborInput, ...] = ()


@dataclass(frozen=True)
class PaymentInput:
    invoice_id: int
    amount: Decimal
    payment_date: date
    method: PaymentMethod
    note: Optional[str] = None


# --- field helpers ---

def _check_keys(data: Dict[str, Any], allowed: set, what: str) -> None:
    if not isinstance(data, dict):
        raise ValidationError(f"{what} must be a mapping.")
    unknown = set(data) - allowed
    if unknown:
        raise ValidationError(f"Unknown field(s) for {what}: {', '.join(sorted(unknown))}")


def require_text(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required.")
    return value.strip()


def optional_text(value: Any, field_name: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be text.")
    return value.strip() or None


def to_decimal(value: Any, field_name: str, minimum: Optional[Decimal] = Decimal("0"),
               maximum: Optional[Decimal] = None) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field_name} must be a number.")
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field_name} must be a number, got {value!r}.")
    if not number.is_finite():
        raise ValidationError(f"{field_name} must be a finite number.")
    if minimum is not None and number < minimum:
        raise ValidationError(f"{field_name} must be at least {minimum}.")
    if maximum is not None and number > maximum:
        raise ValidationError(f"{field_name} must be at most {maximum}.")
    return number


def to_positive_int(value: Any, field_name: str, minimum: int = 1) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a whole number.")
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field_name} must be a whole number, got {value!r}.")
    if not number.is_finite() or number != number.to_integral_value():
        raise ValidationError(f"{field_name} must be a whole number, got {value!r}.")
    if number < minimum:
        raise ValidationError(f"{field_name} must be at least {minimum}.")
    return int(number)


def to_date(value: Any, field_name: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            pass
    raise ValidationError(f"{field_name} must be an ISO date (YYYY-MM-DD), got {value!r}.")


def optional_date(value: Any, field_name: str) -> Optional[date]:
    if value is None or value == "":
        return None
    return to_date(value, field_name)


def to_enum(enum_cls: Type[E], value: Any, field_name: str) -> E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ', '.join(member.value for member in enum_cls)
        raise ValidationError(f"Unknown {field_name} {value!r}; expected one of: {allowed}.")


TAX_RATE_MAX = Decimal("100")


def optional_tax_rate(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return to_decimal(value, "tax_rate", maximum=TAX_RATE_MAX)


# --- line items ---

def parse_template_part(data: Dict[str, Any]) -> TemplatePartInput:
    _check_keys(data, {"name", "part_number", "quantity", "unit_price"}, "template part")
    return TemplatePartInput(
        name=require_text(data.get("name"), "Part name"),
        part_number=optional_text(data.get("part_number"), "part_number"),
        quantity=to_positive_int(data.get("quantity", 1), "quantity"),
        unit_price=to_decimal(data.get("unit_price", 0), "unit_price"),
    )


def parse_labor(data: Dict[str, Any]) -> TemplateLaborInput:
    _check_keys(data, {"description", "hours", "rate"}, "labor line")
    return TemplateLaborInput(
        description=require_text(data.get("description"), "Labor description"),
        hours=to_decimal(data.get("hours", 0), "hours"),
        rate=to_decimal(data.get("rate", 0), "rate"),
    )


def parse_part_line(data: Dict[str, Any]) -> PartLineInput:
    _check_keys(data, {"name", "part_number", "quantity", "unit_price"}, "part line")
    return PartLineInput(
        name=require_text(data.get("name"), "Part name"),
        part_number=optional_text(data.get("part_number"), "part_number"),
        quantity=to_decimal(data.get("quantity", 1), "quantity"),
        unit_price=to_decimal(data.get("unit_price", 0), "unit_price"),
    )


def _parse_list(items: Any, parser, field_name: str) -> tuple:
    if items is None:
        return ()
    if not isinstance(items, (list, tuple)):
        raise ValidationError(f"{field_name} must be a list.")
    return tuple(parser(item) for item in items)


def parse_discount(data: Any) -> Discount:
    """Accepts None, a Discount instance, or {"type": ..., "value": ...}."""
    if data is None:
        return NO_DISCOUNT
    if isinstance(data, (PercentageDiscount, FixedDiscount)) or data is NO_DISCOUNT:
        return data
    _check_keys(data, {"type", "value"}, "discount")
    kind = to_enum(DiscountType, data.get("type", DiscountType.NONE.value), "discount type")
    if kind == DiscountType.NONE:
        return NO_DISCOUNT
    if kind == DiscountType.PERCENTAGE:
        return PercentageDiscount(value=to_decimal(data.get("value", 0), "discount value", maximum=Decimal("100")))
    return FixedDiscount(value=to_decimal(data.get("value", 0), "discount value"))


# --- top level inputs ---

AGREEMENT_FIELDS = {
    "title", "description", "frequency", "next_run_date", "end_date", "vehicle_id", "service_type",
    "cost", "tax_rate", "invoice_notes", "template_parts", "template_labor",
}


def _check_end_after_start(next_run: Optional[date], end: Optional[date]) -> None:
    if next_run is not None and end is not None and end < next_run:
        raise ValidationError("end_date cannot be before next_run_date.")


def parse_agreement_input(data: Dict[str, Any]) -> AgreementInput:
    _check_keys(data, AGREEMENT_FIELDS, "recurring agreement")
    next_run = to_date(data.get("next_run_date"), "next_run_date")
    end = optional_date(data.get("end_date"), "end_date")
    _check_end_after_start(next_run, end)
    return AgreementInput(
        title=require_text(data.get("title"), "Title"),
        description=optional_text(data.get("description"), "description"),
        frequency=to_enum(Frequency, data.get("frequency"), "frequency"),
        next_run_date=next_run,
        end_date=end,
        vehicle_id=to_positive_int(data.get("vehicle_id"), "vehicle_id"),
        service_type=to_enum(ServiceType, data.get("service_type", ServiceType.MAINTENANCE.value), "service type"),
        cost=to_decimal(data.get("cost", 0), "cost"),
        tax_rate=optional_tax_rate(data.get("tax_rate")),
        invoice_notes=optional_text(data.get("invoice_notes"), "invoice_notes"),
        template_parts=_parse_list(data.get("template_parts"), parse_template_part, "template_parts"),
        template_labor=_parse_list(data.get("template_labor"), parse_labor, "template_labor"),
    )


def parse_agreement_update(data: Dict[str, Any]) -> AgreementUpdate:
    _check_keys(data, AGREEMENT_FIELDS | {"id"}, "recurring agreement update")
    values: Dict[str, Any] = {"agreement_id": to_positive_int(data.get("id"), "id")}
    if "title" in data: values["title"] = require_text(data["title"], "Title")
    if "description" in data: values["description"] = optional_text(data["description"], "description")
    if "frequency" in data: values["frequency"] = to_enum(Frequency, data["frequency"], "frequency")
    if "next_run_date" in data: values["next_run_date"] = to_date(data["next_run_date"], "next_run_date")
    if "end_date" in data: values["end_date"] = optional_date(data["end_date"], "end_date")
    if "vehicle_id" in data: values["vehicle_id"] = to_positive_int(data["vehicle_id"], "vehicle_id")
    if "service_type" in data: values["service_type"] = to_enum(ServiceType, data["service_type"], "service type")
    if "cost" in data: values["cost"] = to_decimal(data["cost"], "cost")
    if "tax_rate" in data: values["tax_rate"] = to_decimal(data["tax_rate"], "tax_rate", maximum=TAX_RATE_MAX)
    if "invoice_notes" in data: values["invoice_notes"] = optional_text(data["invoice_notes"], "invoice_notes")
    if "template_parts" in data:
        values["template_parts"] = _parse_list(data["template_parts"], parse_template_part, "template_parts")
    if "template_labor" in data:
        values["template_labor"] = _parse_list(data["template_labor"], parse_labor, "template_labor")
    return AgreementUpdate(**values)


INVOICE_FIELDS = {
    "title", "description", "vehicle_id", "service_date", "service_type", "cost", "tax_rate",
    "discount", "invoice_notes", "invoice_number", "parts", "labor",
}


def parse_invoice_input(data: Dict[str, Any]) -> InvoiceInput:
    _check_keys(data, INVOICE_FIELDS, "invoice")
    service_date = data.get("service_date")
    return InvoiceInput(
        title=require_text(data.get("title"), "Title"),
        description=optional_text(data.get("description"), "description"),
        vehicle_id=to_positive_int(data.get("vehicle_id"), "vehicle_id"),
        service_date=to_date(service_date, "service_date") if service_date is not None else date.today(),
        service_type=to_enum(ServiceType, data.get("service_type", ServiceType.MAINTENANCE.value), "service type"),
        cost=to_decimal(data.get("cost", 0), "cost"),
        tax_rate=optional_tax_rate(data.get("tax_rate")),
        discount=parse_discount(data.get("discount")),
        invoice_notes=optional_text(data.get("invoice_notes"), "invoice_notes"),
        invoice_number=optional_text(data.get("invoice_number"), "invoice_number"),
        parts=_parse_list(data.get("parts"), parse_part_line, "parts"),
        labor=_parse_list(data.get("labor"), parse_labor, "labor"),
    )


def parse_payment_input(data: Dict[str, Any]) -> PaymentInput:
    _check_keys(data, {"invoice_id", "amount", "payment_date", "method", "note"}, "payment")
    amount = to_decimal(data.get("amount"), "amount")
    if amount <= 0:
        raise ValidationError("Payment amount must be greater than zero.")
    if round_money(amount) != amount:
        raise ValidationError("Payment amount cannot have fractions of a cent.")
    payment_date = data.get("payment_date")
    return PaymentInput(
        invoice_id=to_positive_int(data.get("invoice_id"), "invoice_id"),
        amount=round_money(amount),
        payment_date=to_date(payment_date, "payment_date") if payment_date is not None else date.today(),
        method=to_enum(PaymentMethod, data.get("method", PaymentMethod.CASH.value), "payment method"),
        note=optional_text(data.get("note"), "note"),
    )

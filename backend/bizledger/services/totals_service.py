# Overview: Monetary and date aggregates for invoices, recipes, expenses and HR requests.

"""
Totals Service

All amounts are Decimal and every stored figure is rounded half-up to
2 places where it is computed, so a figure read back from storage is
exactly the figure that was derived.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Iterable, Sequence

from ..money_utils import HUNDRED, ZERO, clamp, round_money, to_decimal
from ..validation import ValidationError


DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_FIXED = "fixed"
VALID_DISCOUNT_TYPES = (DISCOUNT_PERCENTAGE, DISCOUNT_FIXED)


@dataclass(frozen=True)
class LineItem:
    """An invoice line as entered (before any derived figures)."""
    description: str
    quantity: Decimal
    unit_price: Decimal
    discount_type: str = DISCOUNT_PERCENTAGE
    discount_percent: Decimal = ZERO
    discount_amount: Decimal = ZERO
    tax_enabled: bool = True


@dataclass(frozen=True)
class LineTotals:
    line_gross: Decimal
    line_discount: Decimal
    price_after_discount: Decimal
    line_subtotal: Decimal
    line_vat: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class InvoiceTotals:
    gross_amount: Decimal
    discount_total: Decimal
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    lines: tuple[LineTotals, ...]


@dataclass(frozen=True)
class MaterialUsage:
    """A recipe line: quantity of a material at its snapshotted unit cost."""
    quantity: Decimal
    cost_per_unit: Decimal

    @property
    def total_cost(self) -> Decimal:
        return round_money(to_decimal(self.quantity) * to_decimal(self.cost_per_unit))


@dataclass(frozen=True)
class RecipeCosts:
    total_material_cost: Decimal
    total_cost: Decimal
    cost_per_unit: Decimal


@dataclass(frozen=True)
class ExpenseAmounts:
    base_amount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total_amount: Decimal


def remaining_amount(total, paid) -> Decimal:
    """max(0, total - paid), rounded."""
    return round_money(max(ZERO, to_decimal(total) - to_decimal(paid)))


def compute_line_totals(line: LineItem, tax_rate_percent) -> LineTotals:
    """
    Derive a line's figures.

    Percentage discounts are clamped to [0, 100] and fixed discounts to
    [0, line_gross], so price_after_discount never goes negative.
    """
    quantity = to_decimal(line.quantity)
    unit_price = to_decimal(line.unit_price)
    if quantity <= 0:
        raise ValidationError("Line quantity must be greater than zero")
    if unit_price < 0:
        raise ValidationError("Line unit price must be >= 0")
    if line.discount_type not in VALID_DISCOUNT_TYPES:
        raise ValidationError(f"Invalid discount type: {line.discount_type}")

    gross = round_money(quantity * unit_price)
    if line.discount_type == DISCOUNT_PERCENTAGE:
        percent = clamp(to_decimal(line.discount_percent), ZERO, HUNDRED)
        discount = round_money(gross * percent / HUNDRED)
    else:
        discount = round_money(clamp(to_decimal(line.discount_amount), ZERO, gross))

    subtotal = gross - discount
    price_after_discount = round_money(subtotal / quantity)
    rate = to_decimal(tax_rate_percent)
    vat = round_money(subtotal * rate / HUNDRED) if line.tax_enabled else ZERO

    return LineTotals(
        line_gross=gross,
        line_discount=discount,
        price_after_discount=price_after_discount,
        line_subtotal=subtotal,
        line_vat=vat,
        line_total=subtotal + vat,
    )


def compute_invoice_totals(lines: Sequence[LineItem], tax_rate_percent) -> InvoiceTotals:
    """Sum the per-line figures; the grand total is exactly the sum of line totals."""
    computed = tuple(compute_line_totals(line, tax_rate_percent) for line in lines)
    return InvoiceTotals(
        gross_amount=sum((t.line_gross for t in computed), ZERO),
        discount_total=sum((t.line_discount for t in computed), ZERO),
        subtotal=sum((t.line_subtotal for t in computed), ZERO),
        tax_amount=sum((t.line_vat for t in computed), ZERO),
        total_amount=sum((t.line_total for t in computed), ZERO),
        lines=computed,
    )


def apply_global_discount(lines: Sequence[LineItem], discount_type: str | None, value) -> list[LineItem]:
    """
    Spread an invoice-level discount onto the lines, replacing line discounts.

    percentage: the same (clamped) percentage on every line.
    fixed: the amount split in proportion to each line's gross, each share
    clamped to that line's gross. A value <= 0 clears all line discounts.
    """
    if discount_type is None:
        return list(lines)
    if discount_type not in VALID_DISCOUNT_TYPES:
        raise ValidationError(f"Invalid discount type: {discount_type}")

    amount = to_decimal(value)
    if amount <= 0:
        return [
            replace(line, discount_type=DISCOUNT_PERCENTAGE, discount_percent=ZERO, discount_amount=ZERO)
            for line in lines
        ]

    if discount_type == DISCOUNT_PERCENTAGE:
        percent = clamp(amount, ZERO, HUNDRED)
        return [
            replace(line, discount_type=DISCOUNT_PERCENTAGE, discount_percent=percent, discount_amount=ZERO)
            for line in lines
        ]

    grosses = [to_decimal(line.quantity) * to_decimal(line.unit_price) for line in lines]
    total_gross = sum(grosses, ZERO)
    result = []
    for line, gross in zip(lines, grosses):
        share = round_money(amount * gross / total_gross) if total_gross > 0 else ZERO
        result.append(
            replace(
                line,
                discount_type=DISCOUNT_FIXED,
                discount_percent=ZERO,
                discount_amount=clamp(share, ZERO, round_money(gross)),
            )
        )
    return result


def compute_recipe_costs(lines: Iterable[MaterialUsage], labor_cost, overhead_cost, output_quantity) -> RecipeCosts:
    output = to_decimal(output_quantity)
    if output <= 0:
        raise ValidationError("output_quantity must be greater than zero")
    labor = to_decimal(labor_cost)
    overhead = to_decimal(overhead_cost)
    if labor < 0 or overhead < 0:
        raise ValidationError("labor_cost and overhead_cost must be >= 0")

    material = round_money(sum((line.total_cost for line in lines), ZERO))
    total = round_money(material + labor + overhead)
    return RecipeCosts(
        total_material_cost=material,
        total_cost=total,
        cost_per_unit=round_money(total / output),
    )


def compute_expense_amounts(base_amount, tax_rate_percent, tax_amount=None) -> ExpenseAmounts:
    """
    tax_amount defaults to base * rate / 100; an explicit tax_amount (e.g. the
    figure printed on a vendor receipt) is kept as given.
    """
    base = round_money(base_amount)
    if base < 0:
        raise ValidationError("base_amount must be >= 0")
    rate = to_decimal(tax_rate_percent)
    if rate < 0 or rate > HUNDRED:
        raise ValidationError("tax_rate must be between 0 and 100")

    if tax_amount is None or tax_amount == "":
        tax = round_money(base * rate / HUNDRED)
    else:
        tax = round_money(tax_amount)
        if tax < 0:
            raise ValidationError("tax_amount must be >= 0")

    return ExpenseAmounts(base_amount=base, tax_rate=rate, tax_amount=tax, total_amount=base + tax)


def leave_days(start: date, end: date) -> int:
    """Inclusive calendar-day count: the same start and end date is one day."""
    if start is None or end is None:
        raise ValidationError("Start and end dates are required")
    if end < start:
        raise ValidationError("End date must be on or after the start date")
    return (end - start).days + 1


def monthly_deduction(amount, repayment_months) -> Decimal | None:
    if amount in (None, "") or repayment_months in (None, ""):
        return None
    months = int(repayment_months)
    if months <= 0:
        return None
    return round_money(to_decimal(amount) / months)

# Overview: Turns raw storage rows into typed, display-ready records.

"""
Row Normalizer

Every normalize_* function takes the dict a model's to_dict() produces (or
any row with the same keys) and returns a frozen record:

- numeric fields are coerced to Decimal, missing or unreadable ones become 0
- enumerated fields fall back to a safe default when the stored value is
  unknown (payment status -> Pending, approval status -> pending,
  leave/request type -> other)
- a missing human identifier is synthesized from the row id (EXP-<ID>)
- nested line collections are parsed strictly and raise ValidationError

The functions are pure: the same row always yields an equal record.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping

from ..money_utils import HUNDRED, ZERO, clamp, money_to_json, round_money, to_decimal
from ..time_utils import parse_iso_date, parse_iso_datetime, to_iso_date, to_utc_z
from ..validation import ValidationError
from . import status_service
from .status_service import resolve_expense_status, derive_payment_status
from .totals_service import (
    DISCOUNT_PERCENTAGE,
    VALID_DISCOUNT_TYPES,
    LineItem,
    remaining_amount,
)


LEAVE_TYPES = ("annual", "sick", "emergency", "unpaid", "other")
REQUEST_TYPES = ("leave", "advance", "loan", "overtime", "other")
# Request types that carry a money amount
MONETARY_REQUEST_TYPES = ("advance", "loan", "overtime")


# =============================================================================
# FIELD COERCION
# =============================================================================

def _num(value: Any) -> Decimal:
    try:
        return to_decimal(value or 0)
    except ValueError:
        return Decimal("0")


def _opt_num(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    return _num(value)


def _int(value: Any, default: int | None = None) -> int | None:
    if value is None or value == "" or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _text(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def _date(value: Any) -> date | None:
    try:
        return parse_iso_date(value)
    except (TypeError, ValueError):
        return None


def _datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return parse_iso_datetime(str(value))
    except ValueError:
        return None


def _bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes"}
    return bool(value)


def _choice(value: Any, allowed: tuple[str, ...], fallback: str) -> str:
    return value if value in allowed else fallback


def display_identifier(prefix: str, number: Any, row_id: Any) -> str | None:
    """Stored code, or PREFIX-<first 8 chars of the id, uppercased>."""
    if number:
        return str(number)
    if row_id is None:
        return None
    return f"{prefix}-{str(row_id)[:8].upper()}"


# =============================================================================
# RECORDS
# =============================================================================

def _json_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return money_to_json(value)
    if isinstance(value, datetime):
        return to_utc_z(value)
    if isinstance(value, date):
        return to_iso_date(value)
    if isinstance(value, _Record):
        return value.to_dict()
    if isinstance(value, tuple):
        return [_json_value(v) for v in value]
    return value


class _Record:
    """JSON rendering shared by every record type."""

    def to_dict(self) -> dict:
        return {f.name: _json_value(getattr(self, f.name)) for f in fields(self)}


@dataclass(frozen=True)
class ExpenseCategoryRecord(_Record):
    id: int | None
    name: str
    color: str
    is_default: bool


@dataclass(frozen=True)
class ExpenseRecord(_Record):
    id: int | None
    expense_number: str | None
    expense_date: date | None
    category: str
    description: str | None
    base_amount: Decimal
    tax_rate: Decimal | None
    tax_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    remaining_amount: Decimal
    payment_method: str | None
    paid_to: str | None
    receipt_number: str | None
    status: str
    notes: str | None
    created_at: datetime | None
    updated_at: datetime | None


@dataclass(frozen=True)
class ExpensePaymentRecord(_Record):
    id: int | None
    expense_id: int | None
    amount: Decimal
    payment_date: date | None
    payment_method: str | None
    reference_number: str | None
    notes: str | None
    created_at: datetime | None


@dataclass(frozen=True)
class InvoiceLineRecord(_Record):
    id: int | None
    position: int
    description: str
    quantity: Decimal
    unit_price: Decimal
    discount_type: str
    discount_percent: Decimal
    discount_amount: Decimal
    entered_discount_type: str
    entered_discount_percent: Decimal
    entered_discount_amount: Decimal
    tax_enabled: bool
    line_gross: Decimal
    line_discount: Decimal
    price_after_discount: Decimal
    line_subtotal: Decimal
    line_vat: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class InvoiceRecord(_Record):
    id: int | None
    invoice_number: str | None
    customer_name: str | None
    customer_vat_number: str | None
    invoice_date: date | None
    due_date: date | None
    tax_rate: Decimal
    discount_type: str | None
    discount_value: Decimal
    gross_amount: Decimal
    discount_total: Decimal
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    remaining_amount: Decimal
    payment_status: str
    notes: str | None
    lines: tuple[InvoiceLineRecord, ...]
    created_at: datetime | None
    updated_at: datetime | None

    def is_overdue(self, as_of: date) -> bool:
        return bool(
            self.due_date
            and self.due_date < as_of
            and self.payment_status != status_service.STATUS_PAID
        )


@dataclass(frozen=True)
class InvoicePaymentRecord(_Record):
    id: int | None
    invoice_id: int | None
    amount: Decimal
    payment_date: date | None
    payment_method: str | None
    reference_number: str | None
    notes: str | None
    created_at: datetime | None


@dataclass(frozen=True)
class EmployeeRecord(_Record):
    id: int | None
    employee_code: str | None
    name_en: str | None
    name_ar: str | None
    department: str | None
    position: str | None
    is_active: bool


@dataclass(frozen=True)
class LeaveRecord(_Record):
    id: int | None
    leave_number: str | None
    employee_id: int | None
    employee_code: str | None
    employee_name: str | None
    department: str | None
    position: str | None
    leave_type: str
    start_date: date | None
    end_date: date | None
    total_days: int
    reason: str | None
    status: str
    applied_date: date | None
    approved_by: str | None
    approved_date: date | None
    notes: str | None
    created_at: datetime | None


@dataclass(frozen=True)
class EmployeeRequestRecord(_Record):
    id: int | None
    request_number: str | None
    employee_id: int | None
    employee_code: str | None
    employee_name: str | None
    department: str | None
    position: str | None
    request_type: str
    amount: Decimal | None
    repayment_months: int | None
    monthly_deduction: Decimal | None
    leave_start_date: date | None
    leave_end_date: date | None
    leave_days: int | None
    description: str | None
    status: str
    requested_date: date | None
    approved_by: str | None
    approved_date: date | None
    notes: str | None
    created_at: datetime | None


@dataclass(frozen=True)
class RawMaterialRecord(_Record):
    id: int | None
    sku: str | None
    name_en: str | None
    name_ar: str | None
    unit: str | None
    cost_per_unit: Decimal
    current_stock: Decimal
    min_stock: Decimal
    category: str | None
    is_low_stock: bool


@dataclass(frozen=True)
class RecipeLineRecord(_Record):
    id: int | None
    material_id: int | None
    material_name: str | None
    unit: str | None
    quantity: Decimal
    cost_per_unit: Decimal
    total_cost: Decimal


@dataclass(frozen=True)
class RecipeRecord(_Record):
    id: int | None
    sku: str | None
    name_en: str | None
    name_ar: str | None
    output_quantity: Decimal
    output_unit: str | None
    labor_cost: Decimal
    overhead_cost: Decimal
    total_material_cost: Decimal
    total_cost: Decimal
    cost_per_unit: Decimal
    notes: str | None
    lines: tuple[RecipeLineRecord, ...]


@dataclass(frozen=True)
class ManufacturingOrderRecord(_Record):
    id: int | None
    order_number: str | None
    recipe_id: int | None
    recipe_sku: str | None
    recipe_name: str | None
    batch_size: Decimal
    produced_quantity: Decimal
    remaining_quantity: Decimal
    unit_cost: Decimal
    total_cost: Decimal
    status: str
    start_date: date | None
    completion_date: date | None
    notes: str | None
    created_by: str | None
    created_at: datetime | None


@dataclass(frozen=True)
class ProductionRunRecord(_Record):
    id: int | None
    order_id: int | None
    quantity: Decimal
    run_date: date | None
    reference: str | None
    notes: str | None
    created_at: datetime | None


# =============================================================================
# STRICT LINE PARSING
# =============================================================================

def _line_list(raw: Any, label: str) -> list:
    if raw is None:
        return []
    if not isinstance(raw, (list, tuple)):
        raise ValidationError(f"{label} must be a list")
    for index, item in enumerate(raw):
        if not isinstance(item, Mapping):
            raise ValidationError(f"{label}[{index}] must be an object")
    return list(raw)


def _strict_num(item: Mapping, key: str, label: str, *, required: bool = True) -> Decimal:
    value = item.get(key)
    if value is None or value == "":
        if required:
            raise ValidationError(f"{label}.{key} is required")
        return ZERO
    try:
        return to_decimal(value)
    except ValueError:
        raise ValidationError(f"{label}.{key} must be a number")


def parse_invoice_lines(raw: Any) -> list[LineItem]:
    """
    Parse invoice line payloads (as submitted) into LineItems.

    Raises ValidationError on a non-list, a non-object item or a missing or
    non-numeric quantity/unit_price. Nothing is silently dropped.
    """
    items = []
    for index, item in enumerate(_line_list(raw, "lines")):
        label = f"lines[{index}]"
        description = item.get("description")
        if not description or not str(description).strip():
            raise ValidationError(f"{label}.description is required")
        discount_type = item.get("discount_type") or DISCOUNT_PERCENTAGE
        if discount_type not in VALID_DISCOUNT_TYPES:
            raise ValidationError(f"{label}.discount_type must be one of {', '.join(VALID_DISCOUNT_TYPES)}")
        quantity = _strict_num(item, "quantity", label)
        unit_price = _strict_num(item, "unit_price", label)
        # stored discounts are the clamped ones that the totals actually apply
        gross = round_money(max(ZERO, quantity * unit_price))
        items.append(
            LineItem(
                description=str(description).strip(),
                quantity=quantity,
                unit_price=unit_price,
                discount_type=discount_type,
                discount_percent=clamp(_strict_num(item, "discount_percent", label, required=False), ZERO, HUNDRED),
                discount_amount=clamp(_strict_num(item, "discount_amount", label, required=False), ZERO, gross),
                tax_enabled=_bool(item.get("tax_enabled"), default=True),
            )
        )
    return items


def parse_recipe_lines(raw: Any) -> list[dict]:
    """Parse [{material_id, quantity}, ...]; quantity must be > 0."""
    parsed = []
    for index, item in enumerate(_line_list(raw, "lines")):
        label = f"lines[{index}]"
        material_id = _int(item.get("material_id"))
        if material_id is None:
            raise ValidationError(f"{label}.material_id is required")
        quantity = _strict_num(item, "quantity", label)
        if quantity <= 0:
            raise ValidationError(f"{label}.quantity must be greater than zero")
        parsed.append({"material_id": material_id, "quantity": quantity})
    return parsed


# =============================================================================
# NORMALIZERS
# =============================================================================

def normalize_expense_category(row: Mapping) -> ExpenseCategoryRecord:
    return ExpenseCategoryRecord(
        id=row.get("id"),
        name=_text(row.get("name")) or "Other",
        color=_text(row.get("color")) or "bg-gray-100 text-gray-700 border-gray-200",
        is_default=_bool(row.get("is_default")),
    )


def normalize_expense(row: Mapping) -> ExpenseRecord:
    total = round_money(_num(row.get("total_amount")))
    paid = round_money(_num(row.get("paid_amount")))
    stored = _choice(row.get("status"), status_service.EXPENSE_STATUSES, status_service.STATUS_PENDING)
    return ExpenseRecord(
        id=row.get("id"),
        expense_number=display_identifier("EXP", row.get("expense_number"), row.get("id")),
        expense_date=_date(row.get("expense_date")),
        category=_text(row.get("category")) or "Other",
        description=_text(row.get("description")),
        base_amount=round_money(_num(row.get("base_amount"))),
        tax_rate=_opt_num(row.get("tax_rate")),
        tax_amount=round_money(_num(row.get("tax_amount"))),
        total_amount=total,
        paid_amount=paid,
        remaining_amount=remaining_amount(total, paid),
        payment_method=_text(row.get("payment_method")),
        paid_to=_text(row.get("paid_to")),
        receipt_number=_text(row.get("receipt_number")),
        status=resolve_expense_status(stored, total, paid),
        notes=_text(row.get("notes")),
        created_at=_datetime(row.get("created_at")),
        updated_at=_datetime(row.get("updated_at")),
    )


def normalize_expense_payment(row: Mapping) -> ExpensePaymentRecord:
    return ExpensePaymentRecord(
        id=row.get("id"),
        expense_id=row.get("expense_id"),
        amount=round_money(_num(row.get("amount"))),
        payment_date=_date(row.get("payment_date")),
        payment_method=_text(row.get("payment_method")),
        reference_number=_text(row.get("reference_number")),
        notes=_text(row.get("notes")),
        created_at=_datetime(row.get("created_at")),
    )


def _normalize_invoice_line(item: Mapping, index: int) -> InvoiceLineRecord:
    label = f"lines[{index}]"
    description = item.get("description")
    if description is None:
        raise ValidationError(f"{label}.description is required")
    return InvoiceLineRecord(
        id=item.get("id"),
        position=_int(item.get("position"), index),
        description=str(description),
        quantity=_strict_num(item, "quantity", label),
        unit_price=_strict_num(item, "unit_price", label),
        discount_type=_choice(item.get("discount_type"), VALID_DISCOUNT_TYPES, DISCOUNT_PERCENTAGE),
        discount_percent=_num(item.get("discount_percent")),
        discount_amount=_num(item.get("discount_amount")),
        entered_discount_type=_choice(
            item.get("entered_discount_type", item.get("discount_type")), VALID_DISCOUNT_TYPES, DISCOUNT_PERCENTAGE
        ),
        entered_discount_percent=_num(item.get("entered_discount_percent", item.get("discount_percent"))),
        entered_discount_amount=_num(item.get("entered_discount_amount", item.get("discount_amount"))),
        tax_enabled=_bool(item.get("tax_enabled"), default=True),
        line_gross=_num(item.get("line_gross")),
        line_discount=_num(item.get("line_discount")),
        price_after_discount=_num(item.get("price_after_discount")),
        line_subtotal=_num(item.get("line_subtotal")),
        line_vat=_num(item.get("line_vat")),
        line_total=_num(item.get("line_total")),
    )


def normalize_invoice(row: Mapping) -> InvoiceRecord:
    total = round_money(_num(row.get("total_amount")))
    paid = round_money(_num(row.get("paid_amount")))
    lines = tuple(
        _normalize_invoice_line(item, index)
        for index, item in enumerate(_line_list(row.get("lines"), "lines"))
    )
    discount_type = row.get("discount_type")
    return InvoiceRecord(
        id=row.get("id"),
        invoice_number=display_identifier("INV", row.get("invoice_number"), row.get("id")),
        customer_name=_text(row.get("customer_name")),
        customer_vat_number=_text(row.get("customer_vat_number")),
        invoice_date=_date(row.get("invoice_date")),
        due_date=_date(row.get("due_date")),
        tax_rate=_num(row.get("tax_rate")),
        discount_type=discount_type if discount_type in VALID_DISCOUNT_TYPES else None,
        discount_value=_num(row.get("discount_value")),
        gross_amount=round_money(_num(row.get("gross_amount"))),
        discount_total=round_money(_num(row.get("discount_total"))),
        subtotal=round_money(_num(row.get("subtotal"))),
        tax_amount=round_money(_num(row.get("tax_amount"))),
        total_amount=total,
        paid_amount=paid,
        remaining_amount=remaining_amount(total, paid),
        payment_status=derive_payment_status(total, paid),
        notes=_text(row.get("notes")),
        lines=lines,
        created_at=_datetime(row.get("created_at")),
        updated_at=_datetime(row.get("updated_at")),
    )


def normalize_invoice_payment(row: Mapping) -> InvoicePaymentRecord:
    return InvoicePaymentRecord(
        id=row.get("id"),
        invoice_id=row.get("invoice_id"),
        amount=round_money(_num(row.get("amount"))),
        payment_date=_date(row.get("payment_date")),
        payment_method=_text(row.get("payment_method")),
        reference_number=_text(row.get("reference_number")),
        notes=_text(row.get("notes")),
        created_at=_datetime(row.get("created_at")),
    )


def normalize_employee(row: Mapping) -> EmployeeRecord:
    return EmployeeRecord(
        id=row.get("id"),
        employee_code=_text(row.get("employee_code")),
        name_en=_text(row.get("name_en")),
        name_ar=_text(row.get("name_ar")),
        department=_text(row.get("department")),
        position=_text(row.get("position")),
        is_active=_bool(row.get("is_active"), default=True),
    )


def normalize_leave(row: Mapping) -> LeaveRecord:
    start = _date(row.get("start_date"))
    end = _date(row.get("end_date"))
    total_days = _int(row.get("total_days"))
    if total_days is None:
        total_days = (end - start).days + 1 if start and end and end >= start else 0
    return LeaveRecord(
        id=row.get("id"),
        leave_number=display_identifier("LV", row.get("leave_number"), row.get("id")),
        employee_id=row.get("employee_id"),
        employee_code=_text(row.get("employee_code")),
        employee_name=_text(row.get("employee_name")),
        department=_text(row.get("department")),
        position=_text(row.get("position")),
        leave_type=_choice(row.get("leave_type"), LEAVE_TYPES, "other"),
        start_date=start,
        end_date=end,
        total_days=total_days,
        reason=_text(row.get("reason")),
        status=_choice(row.get("status"), status_service.APPROVAL_STATUSES, status_service.APPROVAL_PENDING),
        applied_date=_date(row.get("applied_date")),
        approved_by=_text(row.get("approved_by")),
        approved_date=_date(row.get("approved_date")),
        notes=_text(row.get("notes")),
        created_at=_datetime(row.get("created_at")),
    )


def normalize_employee_request(row: Mapping) -> EmployeeRequestRecord:
    return EmployeeRequestRecord(
        id=row.get("id"),
        request_number=display_identifier("REQ", row.get("request_number"), row.get("id")),
        employee_id=row.get("employee_id"),
        employee_code=_text(row.get("employee_code")),
        employee_name=_text(row.get("employee_name")),
        department=_text(row.get("department")),
        position=_text(row.get("position")),
        request_type=_choice(row.get("request_type"), REQUEST_TYPES, "other"),
        amount=_opt_num(row.get("amount")),
        repayment_months=_int(row.get("repayment_months")),
        monthly_deduction=_opt_num(row.get("monthly_deduction")),
        leave_start_date=_date(row.get("leave_start_date")),
        leave_end_date=_date(row.get("leave_end_date")),
        leave_days=_int(row.get("leave_days")),
        description=_text(row.get("description")),
        status=_choice(row.get("status"), status_service.APPROVAL_STATUSES, status_service.APPROVAL_PENDING),
        requested_date=_date(row.get("requested_date")),
        approved_by=_text(row.get("approved_by")),
        approved_date=_date(row.get("approved_date")),
        notes=_text(row.get("notes")),
        created_at=_datetime(row.get("created_at")),
    )


def normalize_raw_material(row: Mapping) -> RawMaterialRecord:
    current_stock = _num(row.get("current_stock"))
    min_stock = _num(row.get("min_stock"))
    return RawMaterialRecord(
        id=row.get("id"),
        sku=_text(row.get("sku")),
        name_en=_text(row.get("name_en")),
        name_ar=_text(row.get("name_ar")),
        unit=_text(row.get("unit")),
        cost_per_unit=round_money(_num(row.get("cost_per_unit"))),
        current_stock=current_stock,
        min_stock=min_stock,
        category=_text(row.get("category")),
        is_low_stock=current_stock <= min_stock,
    )


def _normalize_recipe_line(item: Mapping, index: int) -> RecipeLineRecord:
    label = f"lines[{index}]"
    return RecipeLineRecord(
        id=item.get("id"),
        material_id=_int(item.get("material_id")),
        material_name=_text(item.get("material_name")),
        unit=_text(item.get("unit")),
        quantity=_strict_num(item, "quantity", label),
        cost_per_unit=_strict_num(item, "cost_per_unit", label),
        total_cost=round_money(_num(item.get("total_cost"))),
    )


def normalize_recipe(row: Mapping) -> RecipeRecord:
    lines = tuple(
        _normalize_recipe_line(item, index)
        for index, item in enumerate(_line_list(row.get("lines"), "lines"))
    )
    return RecipeRecord(
        id=row.get("id"),
        sku=_text(row.get("sku")),
        name_en=_text(row.get("name_en")),
        name_ar=_text(row.get("name_ar")),
        output_quantity=_num(row.get("output_quantity")),
        output_unit=_text(row.get("output_unit")),
        labor_cost=round_money(_num(row.get("labor_cost"))),
        overhead_cost=round_money(_num(row.get("overhead_cost"))),
        total_material_cost=round_money(_num(row.get("total_material_cost"))),
        total_cost=round_money(_num(row.get("total_cost"))),
        cost_per_unit=round_money(_num(row.get("cost_per_unit"))),
        notes=_text(row.get("notes")),
        lines=lines,
    )


def normalize_manufacturing_order(row: Mapping) -> ManufacturingOrderRecord:
    batch_size = _num(row.get("batch_size"))
    produced = _num(row.get("produced_quantity"))
    return ManufacturingOrderRecord(
        id=row.get("id"),
        order_number=display_identifier("MO", row.get("order_number"), row.get("id")),
        recipe_id=row.get("recipe_id"),
        recipe_sku=_text(row.get("recipe_sku")),
        recipe_name=_text(row.get("recipe_name")),
        batch_size=batch_size,
        produced_quantity=produced,
        remaining_quantity=max(ZERO, batch_size - produced),
        unit_cost=round_money(_num(row.get("unit_cost"))),
        total_cost=round_money(_num(row.get("total_cost"))),
        status=_choice(row.get("status"), status_service.ORDER_STATUSES, status_service.ORDER_PENDING),
        start_date=_date(row.get("start_date")),
        completion_date=_date(row.get("completion_date")),
        notes=_text(row.get("notes")),
        created_by=_text(row.get("created_by")),
        created_at=_datetime(row.get("created_at")),
    )


def normalize_production_run(row: Mapping) -> ProductionRunRecord:
    return ProductionRunRecord(
        id=row.get("id"),
        order_id=row.get("order_id"),
        quantity=_num(row.get("quantity")),
        run_date=_date(row.get("run_date")),
        reference=_text(row.get("reference")),
        notes=_text(row.get("notes")),
        created_at=_datetime(row.get("created_at")),
    )

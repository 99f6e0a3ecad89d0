# Overview: Spreadsheet export of normalized records (one sheet, fixed columns per entity).

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from io import BytesIO
from typing import Any, Callable, Iterable

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from ..time_utils import today
from ..validation import ValidationError
from . import row_store


XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@dataclass(frozen=True)
class Column:
    header: str
    width: int
    value: Callable[[Any], Any]


def _field(name: str, *, blank_zero: bool = False) -> Callable[[Any], Any]:
    def _get(record):
        value = getattr(record, name)
        if blank_zero and not value:
            return ""
        return value
    return _get


def _col(header: str, width: int, name: str, **kwargs) -> Column:
    return Column(header, width, _field(name, **kwargs))


@dataclass(frozen=True)
class SheetLayout:
    entity_type: str
    sheet_title: str
    columns: tuple[Column, ...]


LAYOUTS: dict[str, SheetLayout] = {
    layout.entity_type: layout
    for layout in (
        SheetLayout("expenses", "Expenses", (
            _col("Expense Number", 18, "expense_number"),
            _col("Date", 12, "expense_date"),
            _col("Category", 15, "category"),
            _col("Description", 30, "description"),
            _col("Base Amount (SAR)", 15, "base_amount"),
            Column("Tax Rate (%)", 12, lambda r: r.tax_rate or 0),
            _col("Tax Amount (SAR)", 15, "tax_amount"),
            _col("Total Amount (SAR)", 18, "total_amount"),
            _col("Paid Amount (SAR)", 15, "paid_amount"),
            _col("Remaining Amount (SAR)", 18, "remaining_amount"),
            _col("Status", 12, "status"),
            _col("Payment Method", 15, "payment_method"),
            _col("Paid To", 20, "paid_to"),
            _col("Receipt Number", 15, "receipt_number"),
            _col("Notes", 30, "notes"),
        )),
        SheetLayout("invoices", "Invoices", (
            _col("Invoice Number", 18, "invoice_number"),
            _col("Date", 12, "invoice_date"),
            _col("Due Date", 12, "due_date"),
            _col("Customer Name", 25, "customer_name"),
            _col("VAT Number", 18, "customer_vat_number"),
            _col("Subtotal (SAR)", 15, "subtotal"),
            _col("VAT (SAR)", 12, "tax_amount"),
            _col("Total Amount (SAR)", 18, "total_amount"),
            _col("Paid Amount (SAR)", 15, "paid_amount"),
            _col("Remaining Amount (SAR)", 18, "remaining_amount"),
            _col("Status", 12, "payment_status"),
        )),
        SheetLayout("leaves", "Leaves", (
            _col("Leave Number", 15, "leave_number"),
            _col("Employee ID", 15, "employee_code"),
            _col("Employee Name", 25, "employee_name"),
            _col("Department", 15, "department"),
            _col("Position", 20, "position"),
            _col("Leave Type", 15, "leave_type"),
            _col("Start Date", 12, "start_date"),
            _col("End Date", 12, "end_date"),
            _col("Total Days", 10, "total_days"),
            _col("Reason", 30, "reason"),
            _col("Status", 12, "status"),
            _col("Applied Date", 12, "applied_date"),
            _col("Approved By", 20, "approved_by"),
            _col("Approved Date", 12, "approved_date"),
            _col("Notes", 30, "notes"),
        )),
        SheetLayout("employee_requests", "Employee Requests", (
            _col("Request Number", 15, "request_number"),
            _col("Employee ID", 15, "employee_code"),
            _col("Employee Name", 25, "employee_name"),
            _col("Department", 15, "department"),
            _col("Position", 20, "position"),
            _col("Request Type", 15, "request_type"),
            _col("Amount (SAR)", 15, "amount", blank_zero=True),
            _col("Repayment Months", 15, "repayment_months", blank_zero=True),
            _col("Monthly Deduction (SAR)", 18, "monthly_deduction", blank_zero=True),
            _col("Leave Start Date", 12, "leave_start_date"),
            _col("Leave End Date", 12, "leave_end_date"),
            _col("Leave Days", 10, "leave_days", blank_zero=True),
            _col("Description", 40, "description"),
            _col("Status", 12, "status"),
            _col("Requested Date", 12, "requested_date"),
            _col("Approved By", 20, "approved_by"),
            _col("Approved Date", 12, "approved_date"),
            _col("Notes", 30, "notes"),
        )),
        SheetLayout("manufacturing_orders", "Manufacturing Orders", (
            _col("Order Number", 20, "order_number"),
            _col("Recipe Name", 25, "recipe_name"),
            _col("Product SKU", 15, "recipe_sku"),
            _col("Batch Size", 12, "batch_size"),
            _col("Produced", 12, "produced_quantity"),
            _col("Status", 15, "status"),
            _col("Start Date", 12, "start_date"),
            _col("Completion Date", 15, "completion_date"),
            _col("Total Cost (SAR)", 18, "total_cost"),
            _col("Notes", 30, "notes"),
        )),
        SheetLayout("recipes", "Recipes", (
            _col("Product Name (EN)", 25, "name_en"),
            _col("Product Name (AR)", 25, "name_ar"),
            _col("Product SKU", 15, "sku"),
            _col("Output Quantity", 15, "output_quantity"),
            _col("Output Unit", 12, "output_unit"),
            _col("Total Material Cost (SAR)", 20, "total_material_cost"),
            _col("Labor Cost (SAR)", 18, "labor_cost"),
            _col("Overhead Cost (SAR)", 18, "overhead_cost"),
            _col("Total Cost (SAR)", 18, "total_cost"),
            _col("Cost Per Unit (SAR)", 18, "cost_per_unit"),
            _col("Notes", 30, "notes"),
        )),
        SheetLayout("raw_materials", "Raw Materials", (
            _col("Name (EN)", 25, "name_en"),
            _col("Name (AR)", 25, "name_ar"),
            _col("SKU", 15, "sku"),
            _col("Category", 15, "category"),
            _col("Unit", 12, "unit"),
            _col("Cost Per Unit (SAR)", 18, "cost_per_unit"),
            _col("Current Stock", 15, "current_stock"),
            _col("Min Stock", 12, "min_stock"),
            Column("Total Value (SAR)", 18, lambda r: r.current_stock * r.cost_per_unit),
        )),
    )
}


def get_layout(entity_type: str) -> SheetLayout:
    layout = LAYOUTS.get(entity_type)
    if layout is None:
        raise ValidationError(
            f"Export not available for {entity_type}. Must be one of {', '.join(sorted(LAYOUTS))}"
        )
    return layout


def _cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


def export_filename(entity_type: str, on: date | None = None) -> str:
    return f"{entity_type}_{(on or today()).isoformat()}.xlsx"


def export_workbook(entity_type: str, records: Iterable[Any]) -> bytes:
    """Render records as a single-sheet .xlsx: bold header row, one row per record."""
    layout = get_layout(entity_type)

    wb = Workbook()
    ws = wb.active
    ws.title = layout.sheet_title

    ws.append([c.header for c in layout.columns])
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for record in records:
        ws.append([_cell(c.value(record)) for c in layout.columns])

    for index, column in enumerate(layout.columns, start=1):
        ws.column_dimensions[get_column_letter(index)].width = column.width

    bio = BytesIO()
    wb.save(bio)
    return bio.getvalue()


def export_entity(entity_type: str) -> tuple[str, bytes]:
    """Fetch every record of an entity type and render it. Returns (filename, content)."""
    get_layout(entity_type)
    records = row_store.fetch_all(entity_type)
    return export_filename(entity_type), export_workbook(entity_type, records)

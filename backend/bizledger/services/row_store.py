# Overview: Generic CRUD boundary over every stored entity; returns normalized records.

"""
Row Store

One registry entry per entity type binds the model, its write policy, its
normalizer and its default ordering. fetch_all / create_one / update_one /
delete_one work for every entity type:

- simple entities (employees, raw materials, categories) are written
  directly from the validated payload
- entities with derived fields (numbers, totals, snapshots) hand the write
  to their workflow function in the owning service
- ledger entries (payments, production runs) always go through the ledger
  service so the parent balance moves in the same transaction

Storage failures surface as RemoteError, unique violations as ConflictError.
"""

from __future__ import annotations

import importlib
from dataclasses import dataclass
from typing import Any, Callable

from ..extensions import db
from ..models import (
    Employee,
    EmployeeRequest,
    Expense,
    ExpenseCategory,
    ExpensePayment,
    Invoice,
    InvoicePayment,
    Leave,
    ManufacturingOrder,
    ProductionRun,
    RawMaterial,
    Recipe,
)
from ..validation import (
    InvalidStateError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    validate_payload,
)
from . import ledger_service, normalizer
from .concurrency import run_in_transaction


@dataclass(frozen=True)
class EntityBinding:
    name: str
    model: Any
    normalize: Callable[[dict], Any]
    policy: ModelValidationPolicy | None = None
    order_by: tuple[str, ...] = ("-id",)
    # "module:function" workflows for entities with derived fields
    create_via: str | None = None
    update_via: str | None = None
    delete_via: str | None = None
    ledger: str | None = None


ENTITIES: dict[str, EntityBinding] = {
    b.name: b
    for b in (
        EntityBinding(
            name="employees",
            model=Employee,
            normalize=normalizer.normalize_employee,
            policy=ModelValidationPolicy(
                writable_fields={"employee_code", "name_en", "name_ar", "department", "position", "is_active"},
                required_on_create={"employee_code", "name_en"},
            ),
            order_by=("employee_code",),
            delete_via="hr_service:delete_employee",
        ),
        EntityBinding(
            name="raw_materials",
            model=RawMaterial,
            normalize=normalizer.normalize_raw_material,
            policy=ModelValidationPolicy(
                writable_fields={
                    "sku", "name_en", "name_ar", "unit", "cost_per_unit",
                    "current_stock", "min_stock", "category",
                },
                required_on_create={"sku", "name_en"},
                non_negative_fields={"cost_per_unit", "current_stock", "min_stock"},
            ),
            order_by=("sku",),
            delete_via="manufacturing_service:delete_raw_material",
        ),
        EntityBinding(
            name="expense_categories",
            model=ExpenseCategory,
            normalize=normalizer.normalize_expense_category,
            policy=ModelValidationPolicy(
                writable_fields={"name", "color"},
                required_on_create={"name"},
            ),
            order_by=("name",),
            create_via="expense_service:create_category",
        ),
        EntityBinding(
            name="expenses",
            model=Expense,
            normalize=normalizer.normalize_expense,
            order_by=("-expense_date", "-id"),
            create_via="expense_service:create_expense",
            update_via="expense_service:update_expense",
        ),
        EntityBinding(
            name="expense_payments",
            model=ExpensePayment,
            normalize=normalizer.normalize_expense_payment,
            ledger="expense_payments",
        ),
        EntityBinding(
            name="invoices",
            model=Invoice,
            normalize=normalizer.normalize_invoice,
            order_by=("-invoice_date", "-id"),
            create_via="invoice_service:create_invoice",
            update_via="invoice_service:update_invoice",
        ),
        EntityBinding(
            name="invoice_payments",
            model=InvoicePayment,
            normalize=normalizer.normalize_invoice_payment,
            ledger="invoice_payments",
        ),
        EntityBinding(
            name="recipes",
            model=Recipe,
            normalize=normalizer.normalize_recipe,
            order_by=("sku",),
            create_via="manufacturing_service:create_recipe",
            update_via="manufacturing_service:update_recipe",
            delete_via="manufacturing_service:delete_recipe",
        ),
        EntityBinding(
            name="manufacturing_orders",
            model=ManufacturingOrder,
            normalize=normalizer.normalize_manufacturing_order,
            create_via="manufacturing_service:create_order",
            update_via="manufacturing_service:update_order",
        ),
        EntityBinding(
            name="production_runs",
            model=ProductionRun,
            normalize=normalizer.normalize_production_run,
            ledger="production_runs",
        ),
        EntityBinding(
            name="leaves",
            model=Leave,
            normalize=normalizer.normalize_leave,
            order_by=("-start_date", "-id"),
            create_via="hr_service:create_leave",
            update_via="hr_service:update_leave",
        ),
        EntityBinding(
            name="employee_requests",
            model=EmployeeRequest,
            normalize=normalizer.normalize_employee_request,
            create_via="hr_service:create_request",
            update_via="hr_service:update_request",
        ),
    )
}


def get_entity(entity_type: str) -> EntityBinding:
    binding = ENTITIES.get(entity_type)
    if binding is None:
        raise ValidationError(f"Unknown entity type: {entity_type}")
    return binding


def _workflow(path: str) -> Callable:
    module_name, func_name = path.split(":")
    module = importlib.import_module(f"{__package__}.{module_name}")
    return getattr(module, func_name)


def _ordering(binding: EntityBinding) -> list:
    clauses = []
    for key in binding.order_by:
        column = getattr(binding.model, key.lstrip("-"))
        clauses.append(column.desc() if key.startswith("-") else column.asc())
    return clauses


def to_record(entity_type: str, row) -> Any:
    return get_entity(entity_type).normalize(row.to_dict())


# =============================================================================
# LOW-LEVEL HELPERS (run inside a caller's transaction)
# =============================================================================

def get_row(entity_type: str, row_id: int, *, lock: bool = False):
    binding = get_entity(entity_type)
    query = db.session.query(binding.model).filter_by(id=row_id)
    if lock:
        query = query.with_for_update()
    row = query.first()
    if not row:
        raise NotFoundError(f"{binding.model.__name__} {row_id} not found")
    return row


def validate(entity_type: str, payload: dict | None, *, partial: bool, policy: ModelValidationPolicy | None = None) -> dict:
    binding = get_entity(entity_type)
    policy = policy or binding.policy
    if policy is None:
        raise ValidationError(f"{entity_type} has no writable fields")
    return validate_payload(model=binding.model, payload=payload, policy=policy, partial=partial)


def query_rows(entity_type: str, **filters) -> list:
    binding = get_entity(entity_type)
    query = db.session.query(binding.model)
    for key, value in filters.items():
        if value is None:
            continue
        column = getattr(binding.model, key, None)
        if column is None:
            raise ValidationError(f"Unknown filter: {key}")
        query = query.filter(column == value)
    return query.order_by(*_ordering(binding)).all()


# =============================================================================
# CRUD
# =============================================================================

def fetch_all(entity_type: str, **filters) -> list:
    """All rows of an entity type as normalized records, in display order."""
    binding = get_entity(entity_type)

    def _op():
        return [binding.normalize(row.to_dict()) for row in query_rows(entity_type, **filters)]

    return run_in_transaction(_op)


def fetch_one(entity_type: str, row_id: int):
    def _op():
        return to_record(entity_type, get_row(entity_type, row_id))

    return run_in_transaction(_op)


def create_one(entity_type: str, payload: dict | None):
    binding = get_entity(entity_type)
    if binding.ledger:
        ledger = ledger_service.BINDINGS[binding.ledger]
        parent_id = (payload or {}).get(ledger.parent_key)
        if parent_id in (None, ""):
            raise ValidationError(f"Missing required fields: {ledger.parent_key}")
        return ledger_service.record_ledger_entry(ledger, parent_id, payload).entry
    if binding.create_via:
        return _workflow(binding.create_via)(payload)

    def _op():
        values = validate(entity_type, payload, partial=False)
        row = binding.model(**values)
        db.session.add(row)
        db.session.commit()
        return binding.normalize(row.to_dict())

    return run_in_transaction(_op)


def update_one(entity_type: str, row_id: int, partial_payload: dict | None):
    binding = get_entity(entity_type)
    if binding.ledger:
        raise InvalidStateError("Ledger entries cannot be edited; delete and re-record instead")
    if binding.update_via:
        return _workflow(binding.update_via)(row_id, partial_payload)

    def _op():
        patch = validate(entity_type, partial_payload, partial=True)
        row = get_row(entity_type, row_id)
        for key, value in patch.items():
            setattr(row, key, value)
        db.session.commit()
        return binding.normalize(row.to_dict())

    return run_in_transaction(_op)


def delete_one(entity_type: str, row_id: int) -> None:
    binding = get_entity(entity_type)
    if binding.ledger:
        ledger_service.delete_ledger_entry(ledger_service.BINDINGS[binding.ledger], row_id)
        return None
    if binding.delete_via:
        _workflow(binding.delete_via)(row_id)
        return None

    def _op():
        row = get_row(entity_type, row_id)
        db.session.delete(row)
        db.session.commit()

    run_in_transaction(_op)
    return None

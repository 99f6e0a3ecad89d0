# Overview: Manufacturing workflows; raw materials, recipe costing, orders and production runs.

"""
Manufacturing Service

Recipes snapshot the cost of every material line when saved, so a later
price change on a raw material does not silently re-cost existing recipes
or orders. Orders snapshot the recipe's cost per unit at creation.

Production runs are ledger entries against an order: produced_quantity is
their running sum, it can never pass batch_size, and reaching batch_size
completes the order.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import ManufacturingOrder, RawMaterial, Recipe, RecipeLine
from ..money_utils import ZERO, round_money, round_quantity, to_decimal
from ..time_utils import today
from ..validation import ConflictError, InvalidStateError, ModelValidationPolicy, NotFoundError, ValidationError
from . import ledger_service, row_store
from .concurrency import run_in_transaction
from .identifier_service import ORDER_PREFIX, allocate_identifier
from .normalizer import parse_recipe_lines
from .status_service import (
    ORDER_CANCELLED,
    ORDER_COMPLETED,
    ORDER_IN_PROGRESS,
    ORDER_PENDING,
    ORDER_STATUSES,
    derive_order_status,
    transition_order,
)
from .totals_service import MaterialUsage, compute_recipe_costs


RECIPE_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "name_en", "name_ar", "output_quantity", "output_unit",
        "labor_cost", "overhead_cost", "notes",
    },
    required_on_create={"sku", "name_en", "output_quantity"},
    non_negative_fields={"labor_cost", "overhead_cost"},
)

ORDER_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"recipe_id", "batch_size", "start_date", "notes", "created_by"},
    required_on_create={"recipe_id", "batch_size"},
)

ORDER_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"batch_size", "start_date", "notes", "created_by"},
)


# =============================================================================
# RAW MATERIALS
# =============================================================================

def delete_raw_material(material_id: int) -> None:
    """Materials still used by a recipe line cannot be removed."""
    def _op():
        material = row_store.get_row("raw_materials", material_id)
        in_use = db.session.query(RecipeLine.id).filter_by(material_id=material_id).first()
        if in_use:
            raise ConflictError(f"Raw material {material.sku} is used by a recipe")
        db.session.delete(material)
        db.session.commit()

    run_in_transaction(_op)


def low_stock_materials() -> list:
    return [m for m in row_store.fetch_all("raw_materials") if m.is_low_stock]


# =============================================================================
# RECIPES
# =============================================================================

def _build_recipe_lines(raw_lines) -> list[RecipeLine]:
    parsed = parse_recipe_lines(raw_lines)
    if not parsed:
        raise ValidationError("A recipe needs at least one material line")

    lines = []
    for item in parsed:
        material = db.session.query(RawMaterial).filter_by(id=item["material_id"]).first()
        if not material:
            raise NotFoundError(f"RawMaterial {item['material_id']} not found")
        quantity = round_quantity(item["quantity"])
        usage = MaterialUsage(quantity=quantity, cost_per_unit=material.cost_per_unit)
        lines.append(
            RecipeLine(
                material_id=material.id,
                material_name=material.name_en,
                unit=material.unit,
                quantity=quantity,
                cost_per_unit=round_money(material.cost_per_unit),
                total_cost=usage.total_cost,
            )
        )
    return lines


def _apply_costs(recipe: Recipe) -> None:
    costs = compute_recipe_costs(
        [MaterialUsage(quantity=line.quantity, cost_per_unit=line.cost_per_unit) for line in recipe.lines],
        recipe.labor_cost or ZERO,
        recipe.overhead_cost or ZERO,
        recipe.output_quantity,
    )
    recipe.total_material_cost = costs.total_material_cost
    recipe.total_cost = costs.total_cost
    recipe.cost_per_unit = costs.cost_per_unit


def create_recipe(payload: dict | None):
    body = dict(payload or {})
    raw_lines = body.pop("lines", None)

    def _op():
        values = row_store.validate("recipes", body, partial=False, policy=RECIPE_POLICY)
        recipe = Recipe(**values)
        if recipe.labor_cost is None:
            recipe.labor_cost = ZERO
        if recipe.overhead_cost is None:
            recipe.overhead_cost = ZERO
        recipe.lines = _build_recipe_lines(raw_lines)
        _apply_costs(recipe)
        db.session.add(recipe)
        db.session.commit()
        return row_store.to_record("recipes", recipe)

    record = run_in_transaction(_op)
    current_app.logger.info("Created recipe %s (cost per unit %s)", record.sku, record.cost_per_unit)
    return record


def update_recipe(recipe_id: int, payload: dict | None):
    """
    Patch a recipe. Supplying lines replaces them and re-snapshots material
    costs; otherwise the existing snapshots are kept and only the
    labor/overhead/output figures are re-applied.
    """
    body = dict(payload or {})
    has_lines = "lines" in body
    raw_lines = body.pop("lines", None)

    def _op():
        patch = row_store.validate("recipes", body, partial=True, policy=RECIPE_POLICY)
        recipe = row_store.get_row("recipes", recipe_id, lock=True)
        for key, value in patch.items():
            setattr(recipe, key, value)
        if has_lines:
            recipe.lines = _build_recipe_lines(raw_lines)
        _apply_costs(recipe)
        db.session.commit()
        return row_store.to_record("recipes", recipe)

    return run_in_transaction(_op)


def delete_recipe(recipe_id: int) -> None:
    def _op():
        recipe = row_store.get_row("recipes", recipe_id)
        if db.session.query(ManufacturingOrder.id).filter_by(recipe_id=recipe_id).first():
            raise ConflictError(f"Recipe {recipe.sku} has manufacturing orders")
        db.session.delete(recipe)
        db.session.commit()

    run_in_transaction(_op)


# =============================================================================
# ORDERS
# =============================================================================

def _positive_batch(value) -> None:
    if value is None or to_decimal(value) <= 0:
        raise ValidationError("batch_size must be greater than zero")


def _scan_order_numbers(year: int):
    def _scan():
        return [
            number
            for (number,) in db.session.query(ManufacturingOrder.order_number)
            .filter(ManufacturingOrder.order_number.ilike(f"{ORDER_PREFIX}-{year}-%"))
            .all()
        ]
    return _scan


def create_order(payload: dict | None):
    """Order a batch of a recipe; cost is the recipe's cost per unit times the batch size."""
    def _op():
        values = row_store.validate("manufacturing_orders", payload, partial=False, policy=ORDER_CREATE_POLICY)
        _positive_batch(values["batch_size"])
        recipe = db.session.query(Recipe).filter_by(id=values["recipe_id"]).first()
        if not recipe:
            raise NotFoundError(f"Recipe {values['recipe_id']} not found")

        batch_size = round_quantity(values["batch_size"])
        year = (values.get("start_date") or today()).year
        number = allocate_identifier(ORDER_PREFIX, year, _scan_order_numbers(year))

        order = ManufacturingOrder(
            order_number=number,
            recipe_id=recipe.id,
            batch_size=batch_size,
            produced_quantity=ZERO,
            unit_cost=round_money(recipe.cost_per_unit),
            total_cost=round_money(to_decimal(recipe.cost_per_unit) * batch_size),
            status=ORDER_PENDING,
            start_date=values.get("start_date"),
            notes=values.get("notes"),
            created_by=values.get("created_by"),
        )
        db.session.add(order)
        db.session.commit()
        return row_store.to_record("manufacturing_orders", order)

    record = run_in_transaction(_op)
    current_app.logger.info("Created manufacturing order %s", record.order_number)
    return record


def update_order(order_id: int, payload: dict | None):
    def _op():
        patch = row_store.validate("manufacturing_orders", payload, partial=True, policy=ORDER_UPDATE_POLICY)
        order = row_store.get_row("manufacturing_orders", order_id, lock=True)
        if order.status in (ORDER_COMPLETED, ORDER_CANCELLED):
            raise InvalidStateError(f"Cannot edit a {order.status} order")

        if "batch_size" in patch:
            _positive_batch(patch["batch_size"])
            batch_size = round_quantity(patch["batch_size"])
            if batch_size < to_decimal(order.produced_quantity):
                raise ValidationError("batch_size cannot be less than the quantity already produced")
            patch["batch_size"] = batch_size
            patch["total_cost"] = round_money(to_decimal(order.unit_cost) * batch_size)

        for key, value in patch.items():
            setattr(order, key, value)
        # shrinking the batch to what is already produced completes the order
        order.status = derive_order_status(order.status, order.batch_size, order.produced_quantity)
        ledger_service.stamp_order_dates(order)
        db.session.commit()
        return row_store.to_record("manufacturing_orders", order)

    return run_in_transaction(_op)


def set_order_status(order_id: int, target: str):
    """Move an order along pending -> in-progress -> completed, or cancel it."""
    if target not in ORDER_STATUSES:
        raise ValidationError(f"Invalid status: {target}. Must be one of {', '.join(ORDER_STATUSES)}")

    def _op():
        order = row_store.get_row("manufacturing_orders", order_id, lock=True)
        order.status = transition_order(order.status, target)
        if target == ORDER_IN_PROGRESS and order.start_date is None:
            order.start_date = today()
        if target == ORDER_COMPLETED:
            order.completion_date = today()
        db.session.commit()
        return row_store.to_record("manufacturing_orders", order)

    record = run_in_transaction(_op)
    current_app.logger.info("Manufacturing order %s is now %s", record.order_number, record.status)
    return record


def record_run(order_id: int, payload: dict | None):
    return ledger_service.record_ledger_entry(ledger_service.PRODUCTION_RUNS, order_id, payload)


def list_runs(order_id: int) -> list:
    return ledger_service.list_entries(ledger_service.PRODUCTION_RUNS, order_id)


def delete_run(run_id: int):
    return ledger_service.delete_ledger_entry(ledger_service.PRODUCTION_RUNS, run_id)


# =============================================================================
# SUMMARY
# =============================================================================

def manufacturing_summary() -> dict:
    materials = row_store.fetch_all("raw_materials")
    orders = row_store.fetch_all("manufacturing_orders")
    stock_value = sum((m.current_stock * m.cost_per_unit for m in materials), ZERO)
    return {
        "materials_count": len(materials),
        "materials_value": float(round_money(stock_value)),
        "low_stock_count": sum(1 for m in materials if m.is_low_stock),
        "orders_by_status": {s: sum(1 for o in orders if o.status == s) for s in ORDER_STATUSES},
    }

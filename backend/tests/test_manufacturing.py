"""
Tests for manufacturing: raw materials, recipe costing and the order lifecycle.
"""

from decimal import Decimal

import pytest

from bizledger.services import manufacturing_service, row_store
from bizledger.validation import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)


def _recipe_payload(flour, sugar, **overrides):
    payload = {
        "sku": "BREAD",
        "name_en": "Bread",
        "output_quantity": 10,
        "output_unit": "loaf",
        "labor_cost": 20,
        "overhead_cost": 10,
        "lines": [
            {"material_id": flour.id, "quantity": 2},
            {"material_id": sugar.id, "quantity": 1},
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def recipe(materials):
    return manufacturing_service.create_recipe(_recipe_payload(*materials))


class TestRawMaterials:

    def test_low_stock(self, materials):
        low = manufacturing_service.low_stock_materials()
        assert [m.sku for m in low] == ["RM-SUGAR"]

    def test_delete_unused(self, materials):
        flour, _ = materials
        manufacturing_service.delete_raw_material(flour.id)
        assert [m.sku for m in row_store.fetch_all("raw_materials")] == ["RM-SUGAR"]

    def test_delete_in_use_conflicts(self, materials, recipe):
        flour, _ = materials
        with pytest.raises(ConflictError, match="used by a recipe"):
            manufacturing_service.delete_raw_material(flour.id)

    def test_summary(self, materials):
        summary = manufacturing_service.manufacturing_summary()
        assert summary["materials_count"] == 2
        assert summary["materials_value"] == 525.0
        assert summary["low_stock_count"] == 1
        assert summary["orders_by_status"]["pending"] == 0


class TestRecipeCosting:

    def test_costs_snapshot_material_prices(self, recipe):
        assert recipe.total_material_cost == Decimal("25.00")
        assert recipe.total_cost == Decimal("55.00")
        assert recipe.cost_per_unit == Decimal("5.50")
        assert [line.material_name for line in recipe.lines] == ["Flour", "Sugar"]

    def test_material_price_change_does_not_move_recipe(self, materials, recipe):
        flour, _ = materials
        row_store.update_one("raw_materials", flour.id, {"cost_per_unit": 99})
        assert row_store.fetch_one("recipes", recipe.id).cost_per_unit == Decimal("5.50")

    def test_update_replaces_lines_and_recosts(self, materials, recipe):
        _, sugar = materials
        updated = manufacturing_service.update_recipe(
            recipe.id, {"output_quantity": 5, "lines": [{"material_id": sugar.id, "quantity": 4}]}
        )
        # 4 * 5.00 + 20 + 10 = 50 over 5 units
        assert updated.total_cost == Decimal("50.00")
        assert updated.cost_per_unit == Decimal("10.00")
        assert len(updated.lines) == 1

    def test_update_without_lines_keeps_snapshots(self, recipe):
        updated = manufacturing_service.update_recipe(recipe.id, {"labor_cost": 0})
        assert updated.total_material_cost == Decimal("25.00")
        assert updated.total_cost == Decimal("35.00")

    def test_needs_lines(self, materials):
        with pytest.raises(ValidationError, match="at least one material"):
            manufacturing_service.create_recipe(_recipe_payload(*materials, lines=[]))

    def test_unknown_material(self, materials):
        with pytest.raises(NotFoundError):
            manufacturing_service.create_recipe(
                _recipe_payload(*materials, lines=[{"material_id": 999, "quantity": 1}])
            )

    def test_zero_output_rejected(self, materials):
        with pytest.raises(ValidationError):
            manufacturing_service.create_recipe(_recipe_payload(*materials, output_quantity=0))

    def test_duplicate_sku_conflicts(self, materials, recipe):
        with pytest.raises(ConflictError):
            manufacturing_service.create_recipe(_recipe_payload(*materials))

    def test_delete_with_orders_conflicts(self, recipe):
        manufacturing_service.create_order({"recipe_id": recipe.id, "batch_size": 5})
        with pytest.raises(ConflictError, match="manufacturing orders"):
            manufacturing_service.delete_recipe(recipe.id)


class TestOrders:

    def test_create_costs_batch(self, recipe):
        order = manufacturing_service.create_order({"recipe_id": recipe.id, "batch_size": 4, "start_date": "2024-06-01"})

        assert order.order_number == "MO-2024-001"
        assert order.unit_cost == Decimal("5.50")
        assert order.total_cost == Decimal("22.00")
        assert order.status == "pending"
        assert order.recipe_sku == "BREAD"

    def test_batch_must_be_positive(self, recipe):
        with pytest.raises(ValidationError, match="batch_size"):
            manufacturing_service.create_order({"recipe_id": recipe.id, "batch_size": 0})

    def test_unknown_recipe(self, db_session):
        with pytest.raises(NotFoundError):
            manufacturing_service.create_order({"recipe_id": 77, "batch_size": 1})

    def test_status_lifecycle(self, recipe):
        order = manufacturing_service.create_order({"recipe_id": recipe.id, "batch_size": 4})

        started = manufacturing_service.set_order_status(order.id, "in-progress")
        assert started.start_date is not None

        done = manufacturing_service.set_order_status(order.id, "completed")
        assert done.status == "completed"
        assert done.completion_date is not None

        with pytest.raises(InvalidStateError):
            manufacturing_service.set_order_status(order.id, "cancelled")

    def test_invalid_status_value(self, recipe):
        order = manufacturing_service.create_order({"recipe_id": recipe.id, "batch_size": 4})
        with pytest.raises(ValidationError, match="Invalid status"):
            manufacturing_service.set_order_status(order.id, "paused")

    def test_batch_resize_recosts(self, recipe):
        order = manufacturing_service.create_order({"recipe_id": recipe.id, "batch_size": 4})
        updated = manufacturing_service.update_order(order.id, {"batch_size": 6})
        assert updated.total_cost == Decimal("33.00")

    def test_batch_cannot_shrink_below_produced(self, recipe):
        order = manufacturing_service.create_order({"recipe_id": recipe.id, "batch_size": 4})
        manufacturing_service.record_run(order.id, {"quantity": 3})

        with pytest.raises(ValidationError, match="already produced"):
            manufacturing_service.update_order(order.id, {"batch_size": 2})

    def test_shrinking_batch_to_produced_completes(self, recipe):
        order = manufacturing_service.create_order({"recipe_id": recipe.id, "batch_size": 10})
        result = manufacturing_service.record_run(order.id, {"quantity": 4})
        assert result.parent.status == "in-progress"

        updated = manufacturing_service.update_order(order.id, {"batch_size": 4})

        assert updated.status == "completed"
        assert updated.completion_date is not None
        assert updated.produced_quantity == Decimal("4.000")
        with pytest.raises(InvalidStateError):
            manufacturing_service.record_run(order.id, {"quantity": 1})

    def test_notes_edit_keeps_pending(self, recipe):
        order = manufacturing_service.create_order({"recipe_id": recipe.id, "batch_size": 4})
        updated = manufacturing_service.update_order(order.id, {"notes": "rush"})

        assert updated.status == "pending"
        assert updated.completion_date is None

    def test_cancelled_order_cannot_be_edited(self, recipe):
        order = manufacturing_service.create_order({"recipe_id": recipe.id, "batch_size": 4})
        manufacturing_service.set_order_status(order.id, "cancelled")

        with pytest.raises(InvalidStateError):
            manufacturing_service.update_order(order.id, {"notes": "late"})

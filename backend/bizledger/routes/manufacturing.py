# Overview: Flask API routes for raw materials, recipes, manufacturing orders and production runs.

# backend/bizledger/routes/manufacturing.py
"""
Manufacturing API Routes

DESIGN:
- Raw materials are plain rows (CRUD through the row store)
- Recipes snapshot material costs; sending "lines" re-costs the recipe
- Orders snapshot the recipe cost per unit at creation
- Production runs are ledger entries: produced_quantity never passes
  batch_size, and reaching it completes the order
"""

from io import BytesIO

from flask import Blueprint, current_app, jsonify, request, send_file

from ..services import export_service, manufacturing_service, row_store
from ..validation import DomainError


manufacturing_bp = Blueprint("manufacturing", __name__, url_prefix="/api/manufacturing")


def _export(entity_type: str):
    filename, content = export_service.export_entity(entity_type)
    return send_file(
        BytesIO(content),
        mimetype=export_service.XLSX_MIMETYPE,
        as_attachment=True,
        download_name=filename,
    )


# =============================================================================
# RAW MATERIALS
# =============================================================================

@manufacturing_bp.get("/raw-materials")
def list_raw_materials_route():
    try:
        records = row_store.fetch_all("raw_materials", category=request.args.get("category"))
        return jsonify({"raw_materials": [r.to_dict() for r in records]}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list raw materials")
        return jsonify({"error": "Internal server error"}), 500


@manufacturing_bp.post("/raw-materials")
def create_raw_material_route():
    """
    Create a raw material.

    Request body:
    {
        "sku": "RM-SUGAR",
        "name_en": "Sugar",
        "name_ar": "...",            (optional)
        "unit": "kg",                (optional)
        "cost_per_unit": 4.50,
        "current_stock": 120,
        "min_stock": 20,
        "category": "Sweeteners"     (optional)
    }

    Returns:
        201: Raw material created
        400: Invalid input
        409: SKU already exists
    """
    try:
        record = row_store.create_one("raw_materials", request.get_json(silent=True))
        return jsonify({"raw_material": record.to_dict()}), 201
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create raw material")
        return jsonify({"error": "Internal server error"}), 500


@manufacturing_bp.get("/raw-materials/low-stock")
def low_stock_route():
    """Materials at or below their minimum stock level."""
    try:
        records = manufacturing_service.low_stock_materials()
        return jsonify({"raw_materials": [r.to_dict() for r in records]}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list low stock materials")
        return jsonify({"error": "Internal server error"}), 500


@manufacturing_bp.get("/raw-materials/<int:material_id>")
def get_raw_material_route(material_id: int):
    try:
        record = row_store.fetch_one("raw_materials", material_id)
        return jsonify({"raw_material": record.to_dict()}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get raw material")
        return jsonify({"error": "Internal server error"}), 500


@manufacturing_bp.put("/raw-materials/<int:material_id>")
def update_raw_material_route(material_id: int):
    try:
        record = row_store.update_one("raw_materials", material_id, request.get_json(silent=True))
        return jsonify({"raw_material": record.to_dict()}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update raw material")
        return jsonify({"error": "Internal server error"}), 500


@manufacturing_bp.delete("/raw-materials/<int:material_id>")
def delete_raw_material_route(material_id: int):
    """Returns 409 while a recipe still uses the material."""
    try:
        row_store.delete_one("raw_materials", material_id)
        return jsonify({"deleted": material_id}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete raw material")
        return jsonify({"error": "Internal server error"}), 500


@manufacturing_bp.get("/raw-materials/export")
def export_raw_materials_route():
    try:
        return _export("raw_materials")
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to export raw materials")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# RECIPES
# =============================================================================

@manufacturing_bp.get("/recipes")
def list_recipes_route():
    try:
        records = row_store.fetch_all("recipes")
        return jsonify({"recipes": [r.to_dict() for r in records]}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list recipes")
        return jsonify({"error": "Internal server error"}), 500


@manufacturing_bp.post("/recipes")
def create_recipe_route():
    """
    Create a recipe.

    Request body:
    {
        "sku": "FG-CAKE",
        "name_en": "Cake",
        "output_quantity": 10,
        "output_unit": "pcs",        (optional)
        "labor_cost": 20,            (optional)
        "overhead_cost": 5,          (optional)
        "lines": [{"material_id": 1, "quantity": 2.5}]
    }

    Returns:
        201: Recipe created with material, total and per-unit cost
        400: Invalid input or no lines
        404: Material not found
    """
    try:
        record = manufacturing_service.create_recipe(request.get_json(silent=True))
        return jsonify({"recipe": record.to_dict()}), 201
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create recipe")
        return jsonify({"error": "Internal server error"}), 500


@manufacturing_bp.get("/recipes/<int:recipe_id>")
def get_recipe_route(recipe_id: int):
    try:
        record = row_store.fetch_one("recipes", recipe_id)
        return jsonify({"recipe": record.to_dict()}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get recipe")
        return jsonify({"error": "Internal server error"}), 500


@manufacturing_bp.put("/recipes/<int:recipe_id>")
def update_recipe_route(recipe_id: int):
    try:
        record = manufacturing_service.update_recipe(recipe_id, request.get_json(silent=True))
        return jsonify({"recipe": record.to_dict()}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update recipe")
        return jsonify({"error": "Internal server error"}), 500


@manufacturing_bp.delete("/recipes/<int:recipe_id>")
def delete_recipe_route(recipe_id: int):
    try:
        row_store.delete_one("recipes", recipe_id)
        return jsonify({"deleted": recipe_id}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete recipe")
        return jsonify({"error": "Internal server error"}), 500


@manufacturing_bp.get("/recipes/export")
def export_recipes_route():
    try:
        return _export("recipes")
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to export recipes")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# ORDERS
# =============================================================================

@manufacturing_bp.get("/orders")
def list_orders_route():
    """Query params: status (pending | in-progress | completed | cancelled)."""
    try:
        records = row_store.fetch_all("manufacturing_orders", status=request.args.get("status"))
        return jsonify({"orders": [r.to_dict() for r in records]}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list manufacturing orders")
        return jsonify({"error": "Internal server error"}), 500


@manufacturing_bp.post("/orders")
def create_order_route():
    """
    Create a manufacturing order.

    Request body:
    {
        "recipe_id": 1,
        "batch_size": 100,
        "start_date": "2024-03-01",   (optional)
        "notes": "...",               (optional)
        "created_by": "..."           (optional)
    }

    Returns:
        201: Order created (status pending, MO-YYYY-NNN number)
        400: Invalid batch size
        404: Recipe not found
    """
    try:
        record = manufacturing_service.create_order(request.get_json(silent=True))
        return jsonify({"order": record.to_dict()}), 201
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create manufacturing order")
        return jsonify({"error": "Internal server error"}), 500


@manufacturing_bp.get("/orders/<int:order_id>")
def get_order_route(order_id: int):
    try:
        record = row_store.fetch_one("manufacturing_orders", order_id)
        return jsonify({"order": record.to_dict()}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get manufacturing order")
        return jsonify({"error": "Internal server error"}), 500


@manufacturing_bp.put("/orders/<int:order_id>")
def update_order_route(order_id: int):
    try:
        record = manufacturing_service.update_order(order_id, request.get_json(silent=True))
        return jsonify({"order": record.to_dict()}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update manufacturing order")
        return jsonify({"error": "Internal server error"}), 500


@manufacturing_bp.delete("/orders/<int:order_id>")
def delete_order_route(order_id: int):
    try:
        row_store.delete_one("manufacturing_orders", order_id)
        return jsonify({"deleted": order_id}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete manufacturing order")
        return jsonify({"error": "Internal server error"}), 500


@manufacturing_bp.post("/orders/<int:order_id>/status")
def set_order_status_route(order_id: int):
    """
    Move an order to a new status.

    Request body:
    {
        "status": "in-progress" | "completed" | "cancelled"
    }

    Returns:
        200: Order updated
        400: Unknown status
        409: Transition not allowed
    """
    try:
        data = request.get_json(silent=True) or {}
        record = manufacturing_service.set_order_status(order_id, data.get("status"))
        return jsonify({"order": record.to_dict()}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to change manufacturing order status")
        return jsonify({"error": "Internal server error"}), 500


@manufacturing_bp.get("/orders/<int:order_id>/runs")
def list_runs_route(order_id: int):
    try:
        runs = manufacturing_service.list_runs(order_id)
        return jsonify({"runs": [r.to_dict() for r in runs]}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list production runs")
        return jsonify({"error": "Internal server error"}), 500


@manufacturing_bp.post("/orders/<int:order_id>/runs")
def add_run_route(order_id: int):
    """
    Record produced quantity against an order.

    Request body:
    {
        "quantity": 25,
        "run_date": "2024-03-02",   (optional, default today)
        "reference": "...",         (optional)
        "notes": "..."              (optional)
    }

    Returns:
        201: {"run": ..., "order": ...}
        400: Quantity invalid or above the remaining batch
        409: Order is completed or cancelled
    """
    try:
        result = manufacturing_service.record_run(order_id, request.get_json(silent=True))
        return jsonify({"run": result.entry.to_dict(), "order": result.parent.to_dict()}), 201
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record production run")
        return jsonify({"error": "Internal server error"}), 500


@manufacturing_bp.delete("/runs/<int:run_id>")
def delete_run_route(run_id: int):
    try:
        order = manufacturing_service.delete_run(run_id)
        return jsonify({"deleted": run_id, "order": order.to_dict()}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete production run")
        return jsonify({"error": "Internal server error"}), 500


@manufacturing_bp.get("/orders/export")
def export_orders_route():
    try:
        return _export("manufacturing_orders")
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to export manufacturing orders")
        return jsonify({"error": "Internal server error"}), 500


@manufacturing_bp.get("/summary")
def manufacturing_summary_route():
    try:
        return jsonify(manufacturing_service.manufacturing_summary()), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build manufacturing summary")
        return jsonify({"error": "Internal server error"}), 500

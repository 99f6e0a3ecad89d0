# Overview: Flask API routes for expenses, their categories and payments; parses input and returns JSON responses.

# backend/bizledger/routes/expenses.py
"""
Expense API Routes

DESIGN:
- Expenses are created with derived tax/total and an EXP-YYYY-NNN number
- Payments go through the ledger so paid amount and status move together
- Approve/reject only while the expense is Pending and unpaid
- Categories are stored rows (seeded with the defaults)
"""

from io import BytesIO

from flask import Blueprint, current_app, jsonify, request, send_file

from ..services import expense_service, export_service, row_store
from ..time_utils import parse_iso_date
from ..validation import DomainError


expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


# =============================================================================
# EXPENSES
# =============================================================================

@expenses_bp.get("")
def list_expenses_route():
    """
    List expenses, newest first.

    Query params:
    - status: Pending | Approved | Rejected | Partial | Paid
    - category: category name
    """
    try:
        records = row_store.fetch_all("expenses", category=request.args.get("category"))
        status = request.args.get("status")
        if status:
            records = [r for r in records if r.status == status]
        return jsonify({"expenses": [r.to_dict() for r in records]}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list expenses")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.post("")
def create_expense_route():
    """
    Create an expense.

    Request body:
    {
        "expense_date": "2024-03-01",
        "category": "Utilities",
        "description": "Electricity bill",
        "base_amount": 100.00,
        "tax_rate": 15,          (optional, default from config)
        "tax_amount": 15.00,     (optional, derived from rate when omitted)
        "payment_method": "Bank Transfer",
        "paid_to": "...", "receipt_number": "...", "notes": "..."
    }

    Returns:
        201: Expense created (status Pending)
        400: Invalid input
        409: Number conflict
    """
    try:
        record = expense_service.create_expense(request.get_json(silent=True))
        return jsonify({"expense": record.to_dict()}), 201
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create expense")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.get("/<int:expense_id>")
def get_expense_route(expense_id: int):
    try:
        record = row_store.fetch_one("expenses", expense_id)
        return jsonify({"expense": record.to_dict()}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get expense")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.put("/<int:expense_id>")
def update_expense_route(expense_id: int):
    """Update writable fields; amount changes re-derive tax and total."""
    try:
        record = expense_service.update_expense(expense_id, request.get_json(silent=True))
        return jsonify({"expense": record.to_dict()}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update expense")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.delete("/<int:expense_id>")
def delete_expense_route(expense_id: int):
    """Delete an expense together with its payments."""
    try:
        row_store.delete_one("expenses", expense_id)
        return jsonify({"deleted": expense_id}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete expense")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.post("/<int:expense_id>/approve")
def approve_expense_route(expense_id: int):
    try:
        record = expense_service.approve_expense(expense_id)
        return jsonify({"expense": record.to_dict()}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to approve expense")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.post("/<int:expense_id>/reject")
def reject_expense_route(expense_id: int):
    try:
        record = expense_service.reject_expense(expense_id)
        return jsonify({"expense": record.to_dict()}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reject expense")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# PAYMENTS
# =============================================================================

@expenses_bp.get("/<int:expense_id>/payments")
def list_expense_payments_route(expense_id: int):
    try:
        payments = expense_service.list_payments(expense_id)
        return jsonify({"payments": [p.to_dict() for p in payments]}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list expense payments")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.post("/<int:expense_id>/payments")
def add_expense_payment_route(expense_id: int):
    """
    Record a payment against an expense.

    Request body:
    {
        "amount": 50.00,
        "reference_number": "TRX-1001",
        "payment_date": "2024-03-02",   (optional, default today)
        "payment_method": "Cash",       (optional)
        "notes": "..."                  (optional)
    }

    Returns:
        201: {"payment": ..., "expense": ...} with updated paid/remaining/status
        400: Invalid amount, missing reference, or amount above remaining
        404: Expense not found
        409: Expense is Rejected
    """
    try:
        result = expense_service.record_payment(expense_id, request.get_json(silent=True))
        return jsonify({
            "payment": result.entry.to_dict(),
            "expense": result.parent.to_dict(),
        }), 201
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add expense payment")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.delete("/payments/<int:payment_id>")
def delete_expense_payment_route(payment_id: int):
    try:
        expense = expense_service.delete_payment(payment_id)
        return jsonify({"deleted": payment_id, "expense": expense.to_dict()}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete expense payment")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# SUMMARY / CATEGORIES / EXPORT
# =============================================================================

@expenses_bp.get("/summary")
def expense_summary_route():
    try:
        as_of = parse_iso_date(request.args.get("as_of"))
        return jsonify(expense_service.expense_summary(as_of=as_of)), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except ValueError:
        return jsonify({"error": "as_of must be an ISO-8601 date"}), 400
    except Exception:
        current_app.logger.exception("Failed to build expense summary")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.get("/categories")
def list_categories_route():
    try:
        return jsonify({"categories": [c.to_dict() for c in expense_service.list_categories()]}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list expense categories")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.post("/categories")
def create_category_route():
    try:
        record = expense_service.create_category(request.get_json(silent=True))
        return jsonify({"category": record.to_dict()}), 201
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create expense category")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.get("/export")
def export_expenses_route():
    try:
        filename, content = export_service.export_entity("expenses")
        return send_file(
            BytesIO(content),
            mimetype=export_service.XLSX_MIMETYPE,
            as_attachment=True,
            download_name=filename,
        )
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to export expenses")
        return jsonify({"error": "Internal server error"}), 500

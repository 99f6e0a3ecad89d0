# Overview: Flask API routes for sales invoices and their payments; parses input and returns JSON responses.

# backend/bizledger/routes/invoices.py
"""
Invoice API Routes

DESIGN:
- Lines are sent inside the invoice body; every total is recomputed server side
- payment_status is always derived from total and paid amounts
- Payments are ledger entries; edits are delete-and-re-record
"""

from io import BytesIO

from flask import Blueprint, current_app, jsonify, request, send_file

from ..services import export_service, invoice_service, row_store
from ..time_utils import parse_iso_date
from ..validation import DomainError


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.get("")
def list_invoices_route():
    """
    List invoices, newest first.

    Query params:
    - status: Pending | Partial | Paid
    - customer: exact customer name
    """
    try:
        records = row_store.fetch_all("invoices", customer_name=request.args.get("customer"))
        status = request.args.get("status")
        if status:
            records = [r for r in records if r.payment_status == status]
        return jsonify({"invoices": [r.to_dict() for r in records]}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list invoices")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.post("")
def create_invoice_route():
    """
    Create an invoice.

    Request body:
    {
        "customer_name": "Acme Trading",
        "customer_vat_number": "300000000000003",   (optional)
        "invoice_date": "2024-03-01",
        "due_date": "2024-03-31",                   (optional)
        "tax_rate": 15,                             (optional, default from config)
        "discount_type": "percentage" | "fixed",    (optional, invoice-level)
        "discount_value": 10,                       (optional)
        "lines": [
            {"description": "Widget", "quantity": 2, "unit_price": 50,
             "discount_type": "percentage", "discount_percent": 5, "tax_enabled": true}
        ]
    }

    Returns:
        201: Invoice created with derived totals and INV-YYYY-NNN number
        400: Invalid input or no lines
    """
    try:
        record = invoice_service.create_invoice(request.get_json(silent=True))
        return jsonify({"invoice": record.to_dict()}), 201
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("/<int:invoice_id>")
def get_invoice_route(invoice_id: int):
    try:
        record = invoice_service.get_invoice(invoice_id)
        return jsonify({"invoice": record.to_dict()}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.put("/<int:invoice_id>")
def update_invoice_route(invoice_id: int):
    """Patch header fields; include "lines" to replace them. Totals are always recomputed."""
    try:
        record = invoice_service.update_invoice(invoice_id, request.get_json(silent=True))
        return jsonify({"invoice": record.to_dict()}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.delete("/<int:invoice_id>")
def delete_invoice_route(invoice_id: int):
    try:
        row_store.delete_one("invoices", invoice_id)
        return jsonify({"deleted": invoice_id}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete invoice")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# PAYMENTS
# =============================================================================

@invoices_bp.get("/<int:invoice_id>/payments")
def list_invoice_payments_route(invoice_id: int):
    try:
        payments = invoice_service.list_payments(invoice_id)
        return jsonify({"payments": [p.to_dict() for p in payments]}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list invoice payments")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.post("/<int:invoice_id>/payments")
def add_invoice_payment_route(invoice_id: int):
    """
    Record a customer payment.

    Request body:
    {
        "amount": 100.00,
        "payment_method": "Bank Transfer",
        "payment_date": "2024-03-05",    (optional, default today)
        "reference_number": "...",       (optional)
        "notes": "..."                   (optional)
    }

    Returns:
        201: {"payment": ..., "invoice": ...}
        400: Invalid amount or amount above remaining
        404: Invoice not found
    """
    try:
        result = invoice_service.record_payment(invoice_id, request.get_json(silent=True))
        return jsonify({
            "payment": result.entry.to_dict(),
            "invoice": result.parent.to_dict(),
        }), 201
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add invoice payment")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.delete("/payments/<int:payment_id>")
def delete_invoice_payment_route(payment_id: int):
    try:
        invoice = invoice_service.delete_payment(payment_id)
        return jsonify({"deleted": payment_id, "invoice": invoice.to_dict()}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete invoice payment")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# SUMMARY / EXPORT
# =============================================================================

@invoices_bp.get("/summary")
def invoice_summary_route():
    """Receivables summary. Optional ?as_of=YYYY-MM-DD for the overdue cut-off."""
    try:
        as_of = parse_iso_date(request.args.get("as_of"))
        return jsonify(invoice_service.invoice_summary(as_of=as_of)), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except ValueError:
        return jsonify({"error": "as_of must be an ISO-8601 date"}), 400
    except Exception:
        current_app.logger.exception("Failed to build invoice summary")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("/export")
def export_invoices_route():
    try:
        filename, content = export_service.export_entity("invoices")
        return send_file(
            BytesIO(content),
            mimetype=export_service.XLSX_MIMETYPE,
            as_attachment=True,
            download_name=filename,
        )
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to export invoices")
        return jsonify({"error": "Internal server error"}), 500

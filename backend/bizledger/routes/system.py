# backend/bizledger/routes/system.py
"""
System health endpoint.

Reports database reachability and row counts for the ledger parents so a
deployment check can tell an empty database from an unreachable one.
"""

import time

from flask import Blueprint, current_app, jsonify

from ..extensions import db
from ..models import Expense, Invoice, ManufacturingOrder
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        details = {
            "expenses": db.session.query(Expense).count(),
            "invoices": db.session.query(Invoice).count(),
            "manufacturing_orders": db.session.query(ManufacturingOrder).count(),
        }
        return {
            "status": "healthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "details": details,
        }
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "error": "Database error",
        }


@system_bp.get("/api/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    return jsonify({
        "status": "ok" if healthy else "degraded",
        "checked_at": to_utc_z(utcnow()),
        "database": database,
    }), 200 if healthy else 503

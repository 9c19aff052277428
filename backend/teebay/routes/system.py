# backend/teebay/routes/system.py
"""Liveness endpoint with a database round trip."""

import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy import func, select

from ..extensions import db
from ..models import Product, Transaction, User

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """Row counts for the core tables plus the time the queries took."""
    started = time.perf_counter()
    try:
        counts = {
            name: db.session.scalar(select(func.count()).select_from(model))
            for name, model in (("users", User), ("products", Product), ("transactions", Transaction))
        }
        status = {"status": "healthy", "details": counts}
    except Exception:
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        status = {"status": "unhealthy", "error": "Database error"}
    status["latency_ms"] = round((time.perf_counter() - started) * 1000, 2)
    return status


@system_bp.get("/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    return jsonify({
        "status": "ok" if healthy else "degraded",
        "database": database,
    }), 200 if healthy else 503

# Overview: Flask API routes for transaction history; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..services.ledger_service import TransactionLedger
from ..decorators import require_auth

transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@transactions_bp.get("")
@require_auth
def history_route():
    """
    Caller's transaction history from one viewpoint, newest first.

    Query params:
    - viewpoint: BOUGHT | SOLD | BORROWED | LENT (anything else returns no items)
    """
    viewpoint = request.args.get("viewpoint")
    try:
        items = TransactionLedger(db.session).history(g.current_user_id, viewpoint)
    except Exception:
        current_app.logger.exception("Failed to load transaction history")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({
        "viewpoint": viewpoint,
        "items": [t.to_dict() for t in items],
        "count": len(items),
    }), 200


@transactions_bp.get("/products/<int:product_id>")
@require_auth
def my_transaction_for_product_route(product_id: int):
    """Caller's most recent transaction on the product, or null."""
    try:
        txn = TransactionLedger(db.session).find_for_user_and_product(g.current_user_id, product_id)
    except Exception:
        current_app.logger.exception("Failed to load transaction for product %s", product_id)
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"transaction": txn.to_dict() if txn else None}), 200

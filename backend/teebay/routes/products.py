# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/teebay/routes/products.py
"""
Product listing, editing and the buy/rent commands.

Reads resolve the caller optionally (anonymous browsing is allowed);
writes need a caller and only the owner may edit or delete.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..errors import MarketplaceError
from ..extensions import db
from ..models import Product
from ..services.catalog_service import ProductCatalog
from ..services.transaction_service import TransactionEngine
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    require_json_object,
)
from ..decorators import require_auth, resolve_identity

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"title", "description", "categories", "price_cents", "rent_price_cents", "rent_type"}),
    required_on_create=frozenset({"title", "description"}),
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _catalog() -> ProductCatalog:
    return ProductCatalog(db.session)


def _engine() -> TransactionEngine:
    return TransactionEngine(db.session)


def _truthy(raw: str | None) -> bool:
    return (raw or "").strip().lower() in {"1", "true", "yes"}


@products_bp.get("")
@resolve_identity
def list_available_route():
    """Marketplace view: unsold products of other users, newest first."""
    try:
        products = _catalog().list_available(g.current_user_id)
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.get("/mine")
@require_auth
def list_mine_route():
    """
    Caller's own listings, newest first.

    Query params:
    - include_sold: bool (optional) - also return sold products
    """
    include_sold = _truthy(request.args.get("include_sold"))
    try:
        products = _catalog().list_owned(g.current_user_id, include_sold=include_sold)
    except Exception:
        current_app.logger.exception("Failed to list own products")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.get("/<int:product_id>")
@resolve_identity
def get_product_route(product_id: int):
    """Product details; counts a view unless the caller owns the product."""
    try:
        product = _catalog().get_by_id(product_id, g.current_user_id)
        return jsonify(product.to_dict()), 200
    except MarketplaceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load product %s", product_id)
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("")
@require_auth
def create_product_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        created = _catalog().create(g.current_user_id, patch)
        return jsonify(created.to_dict()), 201
    except MarketplaceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.route("/<int:product_id>", methods=["PATCH", "PUT"])
@require_auth
def update_product_route(product_id: int):
    """
    Partial update; fields left out of the body keep their current values.
    """
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = _catalog().update(product_id, g.current_user_id, patch)
        return jsonify(updated.to_dict()), 200
    except MarketplaceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    try:
        _catalog().delete(product_id, g.current_user_id)
        return jsonify({"ok": True}), 200
    except MarketplaceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("/<int:product_id>/buy")
@resolve_identity
def buy_product_route(product_id: int):
    try:
        txn = _engine().buy(g.current_user_id, product_id)
        return jsonify({"transaction": txn.to_dict()}), 201
    except MarketplaceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to buy product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("/<int:product_id>/rent")
@resolve_identity
def rent_product_route(product_id: int):
    """
    Body: start_date, end_date (ISO-8601; naive values are taken as UTC)
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        txn = _engine().rent(g.current_user_id, product_id, data.get("start_date"), data.get("end_date"))
        return jsonify({"transaction": txn.to_dict()}), 201
    except MarketplaceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to rent product")
        return jsonify({"error": "Internal server error"}), 500

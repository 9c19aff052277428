# Overview: Product catalog; owns product records, pricing rules, listing queries and view counting.

"""
Product Catalog

State rules owned here:
- Pricing invariants hold after every create/update (see validation.enforce_pricing_invariants)
- Only the owner may edit or delete; sold products cannot be edited
- is_sold is never written here (transaction engine only)
- views increments on every non-owner read, never on owner reads
"""

from __future__ import annotations

import logging
from typing import Callable
from datetime import datetime

from sqlalchemy.orm import Session

from ..errors import AuthenticationError, AuthorizationError, ConflictError, NotFoundError
from ..models import Product
from ..time_utils import utcnow
from ..validation import enforce_pricing_invariants, normalize_categories
from .concurrency import run_atomically
from .rental_service import RentalConflictChecker

logger = logging.getLogger(__name__)

PRODUCT_MUTABLE_FIELDS = {
    "title", "description", "categories", "price_cents", "rent_price_cents", "rent_type",
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


class ProductCatalog:
    """Product reads and owner-driven writes against one store session."""

    def __init__(
        self,
        session: Session,
        *,
        rentals: RentalConflictChecker | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.clock = clock
        self.rentals = rentals or RentalConflictChecker(session)

    def _newest_first(self, query):
        return query.order_by(Product.created_at.desc(), Product.id.desc())

    def list_owned(self, user_id: int | None, *, include_sold: bool = False) -> list[Product]:
        """
        Products owned by user_id, newest first.

        Sold products are left out unless include_sold is set, so the default
        reads as "my active listings".
        """
        if user_id is None:
            raise AuthenticationError()
        q = self.session.query(Product).filter(Product.owner_id == user_id)
        if not include_sold:
            q = q.filter(Product.is_sold.is_(False))
        return self._newest_first(q).all()

    def list_available(self, viewer_id: int | None) -> list[Product]:
        """Unsold products of other users (all unsold products for anonymous viewers)."""
        q = self.session.query(Product).filter(Product.is_sold.is_(False))
        if viewer_id is not None:
            q = q.filter(Product.owner_id != viewer_id)
        return self._newest_first(q).all()

    def get(self, product_id: int) -> Product:
        product = self.session.query(Product).filter(Product.id == product_id).first()
        if product is None:
            raise NotFoundError("Product")
        return product

    def get_by_id(self, product_id: int, viewer_id: int | None) -> Product:
        """
        Load a product for display.

        Non-owner reads (including anonymous) bump the view counter with a
        single atomic UPDATE; the owner's own visits never count.
        """
        product = self.get(product_id)
        if viewer_id is not None and viewer_id == product.owner_id:
            return product

        # Column-level increment, so concurrent viewers never lose a count.
        self.session.query(Product).filter(Product.id == product_id).update(
            {Product.views: Product.views + 1},
            synchronize_session=False,
        )
        self.session.commit()
        self.session.refresh(product)
        return product

    def create(self, owner_id: int | None, fields: dict) -> Product:
        """
        Create a listing owned by owner_id.

        fields is an already-coerced patch (see validation.validate_payload).
        """
        if owner_id is None:
            raise AuthenticationError()

        enforce_pricing_invariants(
            price_cents=fields.get("price_cents"),
            rent_price_cents=fields.get("rent_price_cents"),
            rent_type=fields.get("rent_type"),
        )

        p = Product(owner_id=owner_id, is_sold=False, views=0, rental_count=0)
        apply_product_patch(p, fields)
        p.categories = normalize_categories(fields.get("categories"))

        self.session.add(p)
        self.session.commit()
        logger.info("Product %s listed by user %s", p.id, owner_id)
        return p

    def _load_owned(self, product_id: int, editor_id: int | None) -> Product:
        if editor_id is None:
            raise AuthenticationError()
        product = self.get(product_id)
        if product.owner_id != editor_id:
            logger.warning("User %s denied write access to product %s", editor_id, product_id)
            raise AuthorizationError()
        return product

    def update(self, product_id: int, editor_id: int | None, patch: dict) -> Product:
        """
        Merge patch into the product (fields absent from patch are kept).

        The merged pricing must still satisfy the pricing invariants; on
        failure nothing is written.
        """
        if "categories" in patch:
            patch = {**patch, "categories": normalize_categories(patch["categories"])}

        def _op() -> Product:
            product = self._load_owned(product_id, editor_id)
            if product.is_sold:
                raise ConflictError("Cannot edit a product that is already sold")

            merged = {
                field: patch[field] if field in patch else getattr(product, field)
                for field in ("price_cents", "rent_price_cents", "rent_type")
            }
            enforce_pricing_invariants(**merged)

            apply_product_patch(product, patch)
            self.session.flush()
            return product

        product = run_atomically(
            self.session,
            _op,
            stale_message="Product was modified by another request. Please reload and try again.",
        )
        logger.info("Product %s updated by user %s: %s", product_id, editor_id, ", ".join(sorted(patch.keys())))
        return product

    def delete(self, product_id: int, editor_id: int | None) -> None:
        """
        Delete the product and, by cascade, its transactions.

        Blocked while a rental is active or upcoming so a renter's booked
        window is never silently erased.
        """
        def _op() -> None:
            product = self._load_owned(product_id, editor_id)
            if self.rentals.has_active_rental(product.id, now=self.clock()):
                raise ConflictError("Cannot delete a product while it has an active or upcoming rental")
            self.session.delete(product)
            self.session.flush()

        run_atomically(
            self.session,
            _op,
            stale_message="Product was modified by another request. Please reload and try again.",
        )
        logger.info("Product %s deleted by user %s", product_id, editor_id)

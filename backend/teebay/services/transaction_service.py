# Overview: Transaction engine; buy and rent commands over the catalog, conflict checker and ledger.

"""
Transaction Engine

Product state machine (driven only from here):

    LISTED (is_sold=False) --buy--> SOLD (is_sold=True, terminal)

Rentals never change product state; a LISTED product accumulates any number
of non-overlapping RENT transactions.

ATOMICITY:
Each command is one store transaction (concurrency.run_atomically). The
product row is read with SELECT ... FOR UPDATE and then written through the
versioned mapper, so two concurrent commands on the same product cannot both
commit: the loser gets StaleDataError (or, with row locks, sees the winner's
state on read) and reports Conflict. buy writes is_sold; rent bumps
rental_count, so buy/rent and rent/rent pairs contend on the same row.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session

from ..errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from ..models import Product, Transaction, TransactionKind
from ..time_utils import parse_iso_datetime, to_naive_utc, utcnow
from .concurrency import lock_for_update, run_atomically
from .ledger_service import PriceSnapshot, RentalWindow, TransactionLedger
from .rental_service import RentalConflictChecker

logger = logging.getLogger(__name__)

ALREADY_SOLD = "Product is already sold"
RENTAL_CHANGED = "Product was booked or sold by another request. Please choose a different date range."
RENTED_MEANWHILE = "Product was just rented by another request. Please review its availability and try again."


def parse_rental_timestamp(value) -> datetime:
    """Accept a datetime or an ISO-8601 string; anything else is a Validation failure."""
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if isinstance(value, str):
        try:
            parsed = parse_iso_datetime(value)
        except ValueError:
            parsed = None
        if parsed is not None:
            return parsed
    raise ValidationError("Invalid date format")


class TransactionEngine:
    def __init__(
        self,
        session: Session,
        *,
        ledger: TransactionLedger | None = None,
        rentals: RentalConflictChecker | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.ledger = ledger or TransactionLedger(session)
        self.rentals = rentals or RentalConflictChecker(session)
        self.clock = clock

    def _load_locked(self, product_id: int) -> Product:
        product = lock_for_update(
            self.session.query(Product).filter(Product.id == product_id)
        ).first()
        if product is None:
            raise NotFoundError("Product")
        return product

    def _lost_buy_reason(self, product_id: int) -> str:
        """Name what the winning transaction did to a product this buy lost."""
        sold = self.session.query(Product.is_sold).filter(Product.id == product_id).scalar()
        if sold is None:
            return "Product is no longer available"
        return ALREADY_SOLD if sold else RENTED_MEANWHILE

    def buy(self, buyer_id: int | None, product_id: int) -> Transaction:
        """
        Purchase a product: mark it sold and append a BUY entry, atomically.

        Fails with:
        - Authentication: no buyer
        - NotFound: no such product
        - Conflict: already sold, own product, or an active/upcoming rental
        - Validation: product has no purchase price
        """
        if buyer_id is None:
            raise AuthenticationError()

        def _op() -> Transaction:
            product = self._load_locked(product_id)

            if product.is_sold:
                raise ConflictError(ALREADY_SOLD)
            if product.owner_id == buyer_id:
                raise ConflictError("Cannot buy your own product")
            if product.price_cents is None:
                raise ValidationError("Product does not have a purchase price set")

            # An active or upcoming rental protects the renter's window.
            if self.rentals.has_active_rental(product.id, now=self.clock()):
                raise ConflictError(
                    "Cannot buy product while it is currently rented. "
                    "Please try again after the rental period ends."
                )

            product.is_sold = True
            return self.ledger.append(
                kind=TransactionKind.BUY,
                user_id=buyer_id,
                product_id=product.id,
                snapshot=PriceSnapshot.for_purchase(product),
            )

        try:
            txn = run_atomically(
                self.session, _op, stale_message=lambda: self._lost_buy_reason(product_id),
            )
        except ConflictError as exc:
            logger.info("Buy of product %s by user %s rejected: %s", product_id, buyer_id, exc)
            raise

        logger.info("Product %s bought by user %s for %s cents", product_id, buyer_id, txn.price_cents)
        return txn

    def rent(self, renter_id: int | None, product_id: int, start, end) -> Transaction:
        """
        Book a rental window [start, end] and append a RENT entry.

        start/end may be datetimes or ISO-8601 strings (normalized to UTC).

        Fails with:
        - Authentication: no renter
        - NotFound: no such product
        - Conflict: sold, own product, or window overlaps a booked rental
        - Validation: no rental pricing, unparseable dates, end <= start, start in the past
        """
        if renter_id is None:
            raise AuthenticationError()

        def _op() -> Transaction:
            product = self._load_locked(product_id)

            if product.is_sold:
                raise ConflictError("Cannot rent a product that is already sold")
            if product.owner_id == renter_id:
                raise ConflictError("Cannot rent your own product")
            if product.rent_price_cents is None or product.rent_type is None:
                raise ValidationError("Product does not have rental options configured")

            start_at = parse_rental_timestamp(start)
            end_at = parse_rental_timestamp(end)
            if end_at <= start_at:
                raise ValidationError("End date must be after start date")
            now = self.clock()
            if start_at < now:
                raise ValidationError("Start date cannot be in the past")

            if self.rentals.has_conflict(product.id, start_at, end_at, now=now):
                raise ConflictError(
                    "Product is already rented during this period. Please choose a different date range."
                )

            # Versioned write: a concurrent rent or buy of this product loses here.
            product.rental_count = (product.rental_count or 0) + 1
            return self.ledger.append(
                kind=TransactionKind.RENT,
                user_id=renter_id,
                product_id=product.id,
                snapshot=PriceSnapshot.for_rental(product),
                window=RentalWindow(start_at=start_at, end_at=end_at),
            )

        try:
            txn = run_atomically(self.session, _op, stale_message=RENTAL_CHANGED)
        except (ConflictError, ValidationError) as exc:
            logger.info("Rent of product %s by user %s rejected: %s", product_id, renter_id, exc)
            raise

        logger.info(
            "Product %s rented by user %s from %s to %s",
            product_id, renter_id, txn.start_at, txn.end_at,
        )
        return txn

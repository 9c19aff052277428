# Overview: Rental overlap detection against existing RENT transactions.

from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Session

from ..models import Transaction, TransactionKind


def intervals_overlap(start: datetime, end: datetime, other_start: datetime, other_end: datetime) -> bool:
    """
    Closed-interval intersection: [start, end] meets [other_start, other_end].

    Covers "starts inside", "ends inside" and "encloses" in one test.
    Touching endpoints count as overlapping.
    """
    return start <= other_end and end >= other_start


class RentalConflictChecker:
    """Answers whether a proposed rental window collides with booked ones."""

    def __init__(self, session: Session):
        self.session = session

    def _rentals(self, product_id: int):
        return self.session.query(Transaction).filter(
            Transaction.product_id == product_id,
            Transaction.kind == TransactionKind.RENT.value,
        )

    def conflicting_rentals(
        self,
        product_id: int,
        start: datetime,
        end: datetime,
        *,
        now: datetime | None = None,
    ) -> list[Transaction]:
        """
        RENT transactions on product_id whose window intersects [start, end].

        When now is given, rentals that already ended before now are ignored.
        """
        q = self._rentals(product_id).filter(
            Transaction.start_at <= end,
            Transaction.end_at >= start,
        )
        if now is not None:
            q = q.filter(Transaction.end_at >= now)
        return q.order_by(Transaction.start_at.asc()).all()

    def has_conflict(
        self,
        product_id: int,
        start: datetime,
        end: datetime,
        *,
        now: datetime | None = None,
    ) -> bool:
        return bool(self.conflicting_rentals(product_id, start, end, now=now))

    def has_active_rental(self, product_id: int, *, now: datetime) -> bool:
        """True if any rental on the product ends at or after now (running or upcoming)."""
        return self.session.query(
            self._rentals(product_id).filter(Transaction.end_at >= now).exists()
        ).scalar()

# Overview: Transaction ledger; append-only BUY/RENT records and the four history viewpoints.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session, joinedload

from ..models import HistoryViewpoint, Product, Transaction, TransactionKind

"""
Ledger Invariants (authoritative)

- Append-only: rows are never updated; they disappear only with their product.
- No business logic here. The transaction engine validates before appending
  and appends inside its own store transaction (no commit here).
- The price snapshot is copied in at append time and never re-read from the product.
- History is newest first (created_at, then id, descending).
"""


@dataclass(frozen=True)
class PriceSnapshot:
    """Pricing frozen into a transaction at creation time."""
    price_cents: int | None = None
    rent_price_cents: int | None = None
    rent_type: str | None = None

    @classmethod
    def for_purchase(cls, product: Product) -> "PriceSnapshot":
        return cls(price_cents=product.price_cents)

    @classmethod
    def for_rental(cls, product: Product) -> "PriceSnapshot":
        return cls(rent_price_cents=product.rent_price_cents, rent_type=product.rent_type)


@dataclass(frozen=True)
class RentalWindow:
    start_at: datetime
    end_at: datetime


class TransactionLedger:
    def __init__(self, session: Session):
        self.session = session

    def append(
        self,
        *,
        kind: TransactionKind,
        user_id: int,
        product_id: int,
        snapshot: PriceSnapshot,
        window: RentalWindow | None = None,
    ) -> Transaction:
        """
        Append a transaction row to the current store transaction.

        Only presence of required fields is checked; the caller is trusted
        for everything else. The caller owns the commit.
        """
        kind = TransactionKind(kind)
        if user_id is None or product_id is None:
            raise ValueError("user_id and product_id are required for a ledger entry")
        if kind is TransactionKind.RENT and window is None:
            raise ValueError("RENT ledger entries require a rental window")

        txn = Transaction(
            kind=kind.value,
            user_id=user_id,
            product_id=product_id,
            price_cents=snapshot.price_cents,
            rent_price_cents=snapshot.rent_price_cents,
            rent_type=snapshot.rent_type,
            start_at=window.start_at if window else None,
            end_at=window.end_at if window else None,
        )
        self.session.add(txn)
        self.session.flush()  # ensure txn.id exists before the caller commits
        return txn

    def _base_query(self):
        return (
            self.session.query(Transaction)
            .options(joinedload(Transaction.product).joinedload(Product.owner))
        )

    def history(self, user_id: int, viewpoint: HistoryViewpoint | str | None) -> list[Transaction]:
        """
        Transactions seen from one user's perspective.

        | viewpoint | acting user / product owner | kind |
        | BOUGHT    | user_id acted               | BUY  |
        | SOLD      | user_id owns the product    | BUY  |
        | BORROWED  | user_id acted               | RENT |
        | LENT      | user_id owns the product    | RENT |

        An unrecognized viewpoint yields an empty list rather than an error.
        """
        if not isinstance(viewpoint, HistoryViewpoint):
            viewpoint = HistoryViewpoint.parse(viewpoint)
        if viewpoint is None:
            return []

        kind = {
            HistoryViewpoint.BOUGHT: TransactionKind.BUY,
            HistoryViewpoint.SOLD: TransactionKind.BUY,
            HistoryViewpoint.BORROWED: TransactionKind.RENT,
            HistoryViewpoint.LENT: TransactionKind.RENT,
        }[viewpoint]

        q = self._base_query().filter(Transaction.kind == kind.value)
        if viewpoint in (HistoryViewpoint.BOUGHT, HistoryViewpoint.BORROWED):
            q = q.filter(Transaction.user_id == user_id)
        else:
            q = q.join(Product, Transaction.product_id == Product.id).filter(Product.owner_id == user_id)

        return q.order_by(Transaction.created_at.desc(), Transaction.id.desc()).all()

    def find_for_user_and_product(self, user_id: int, product_id: int) -> Transaction | None:
        """Most recent transaction user_id made on product_id, if any."""
        return (
            self._base_query()
            .filter(Transaction.user_id == user_id, Transaction.product_id == product_id)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .first()
        )

from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Transaction(db.Model):
    """
    Append-only BUY / RENT record.

    The price columns are a snapshot taken when the row is written and are
    never touched afterwards, whatever happens to the product's live prices:
    - BUY: price_cents
    - RENT: rent_price_cents + rent_type, plus the [start_at, end_at] window

    Rows are only removed by the cascade when their product is deleted.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_product_kind_end", "product_id", "kind", "end_at"),
        db.Index("ix_transactions_user_kind", "user_id", "kind"),
        db.CheckConstraint("kind IN ('BUY', 'RENT')", name="ck_transactions_kind"),
        db.CheckConstraint(
            "(kind = 'BUY') OR (start_at IS NOT NULL AND end_at IS NOT NULL AND end_at > start_at)",
            name="ck_transactions_rent_window",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    kind = db.Column(db.String(8), nullable=False)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)

    # Frozen pricing snapshot
    price_cents = db.Column(db.Integer, nullable=True)
    rent_price_cents = db.Column(db.Integer, nullable=True)
    rent_type = db.Column(db.String(16), nullable=True)

    # Rental window (RENT only)
    start_at = db.Column(db.DateTime(timezone=True), nullable=True)
    end_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("transactions", lazy=True))
    product = db.relationship("Product", back_populates="transactions")

    def __repr__(self) -> str:
        return f"<Transaction id={self.id} kind={self.kind} user_id={self.user_id} product_id={self.product_id}>"

    def to_dict(self, *, include_product: bool = True) -> dict:
        data = {
            "id": self.id,
            "kind": self.kind,
            "user_id": self.user_id,
            "product_id": self.product_id,
            "price_cents": self.price_cents,
            "rent_price_cents": self.rent_price_cents,
            "rent_type": self.rent_type,
            "start_at": to_utc_z(self.start_at),
            "end_at": to_utc_z(self.end_at),
            "created_at": to_utc_z(self.created_at),
        }
        if include_product and self.product is not None:
            data["product"] = self.product.to_dict()
        return data

from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Product(db.Model):
    """
    A single-unit listing offered for sale, for rent, or both.

    PRICING INVARIANTS (enforced by ProductCatalog on every create/update):
    - price_cents or rent_price_cents is set (at least one)
    - rent_price_cents set => rent_type set

    STATE:
    - is_sold starts False and only the transaction engine flips it, once.
    - views only ever increments (non-owner reads).
    - rental_count counts RENT transactions; bumping it on every rent is
      what makes two concurrent rents contend on this versioned row.

    CONCURRENCY:
    version_id_col gives optimistic locking: any ORM UPDATE carries
    "WHERE version_id = <seen>" and raises StaleDataError when another
    transaction committed first.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_owner_sold", "owner_id", "is_sold"),
        db.Index("ix_products_sold_created", "is_sold", "created_at"),
        db.CheckConstraint("price_cents IS NULL OR price_cents >= 0", name="ck_products_price_nonneg"),
        db.CheckConstraint("rent_price_cents IS NULL OR rent_price_cents >= 0", name="ck_products_rent_price_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False)
    categories = db.Column(db.JSON, nullable=False, default=list)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=True)
    rent_price_cents = db.Column(db.Integer, nullable=True)
    rent_type = db.Column(db.String(16), nullable=True)

    is_sold = db.Column(db.Boolean, nullable=False, default=False)
    views = db.Column(db.Integer, nullable=False, default=0)
    rental_count = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    owner = db.relationship("User", backref=db.backref("products", lazy=True))
    transactions = db.relationship(
        "Transaction",
        back_populates="product",
        cascade="all, delete-orphan",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} title={self.title!r} owner_id={self.owner_id} sold={self.is_sold}>"

    def to_dict(self, *, include_owner: bool = True) -> dict:
        data = {
            "id": self.id,
            "owner_id": self.owner_id,
            "title": self.title,
            "description": self.description,
            "categories": list(self.categories or []),
            "price_cents": self.price_cents,
            "rent_price_cents": self.rent_price_cents,
            "rent_type": self.rent_type,
            "is_sold": self.is_sold,
            "views": self.views,
            "rental_count": self.rental_count,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_owner and self.owner is not None:
            data["owner"] = self.owner.to_dict()
        return data

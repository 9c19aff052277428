from __future__ import annotations

from enum import Enum


class Category(str, Enum):
    ELECTRONICS = "ELECTRONICS"
    FURNITURE = "FURNITURE"
    HOME_APPLIANCES = "HOME_APPLIANCES"
    SPORTING_GOODS = "SPORTING_GOODS"
    OUTDOOR = "OUTDOOR"
    TOYS = "TOYS"


class RentType(str, Enum):
    PER_HOUR = "PER_HOUR"
    PER_DAY = "PER_DAY"


class TransactionKind(str, Enum):
    BUY = "BUY"
    RENT = "RENT"


class HistoryViewpoint(str, Enum):
    """Perspective on the ledger relative to one user."""

    BOUGHT = "BOUGHT"      # user acted, BUY
    SOLD = "SOLD"          # user owns the product, BUY
    BORROWED = "BORROWED"  # user acted, RENT
    LENT = "LENT"          # user owns the product, RENT

    @classmethod
    def parse(cls, raw: str | None) -> "HistoryViewpoint | None":
        if raw is None:
            return None
        try:
            return cls(raw.strip())
        except ValueError:
            return None

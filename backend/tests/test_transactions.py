"""
Transaction engine tests (buy / rent).

Verifies:
- A product sells once; later buyers get a Conflict
- Owners can neither buy nor rent their own products
- Price snapshots are frozen at purchase time
- Active or upcoming rentals block a sale; ended ones do not
- Rent input validation (dates, rental options)
"""

from datetime import datetime, timedelta

import pytest

from teebay.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from teebay.models import Product, Transaction, TransactionKind
from teebay.services.catalog_service import ProductCatalog
from teebay.services.ledger_service import PriceSnapshot, RentalWindow, TransactionLedger
from teebay.services.transaction_service import TransactionEngine
from teebay.time_utils import utcnow

from conftest import create_product


def _in_days(n: float) -> datetime:
    return utcnow() + timedelta(days=n)


# =============================================================================
# BUY
# =============================================================================


class TestBuy:

    def test_buy_marks_sold_and_records_snapshot(self, db_session, for_sale, bob, carol):
        engine = TransactionEngine(db_session)

        txn = engine.buy(bob.id, for_sale.id)

        assert txn.kind == TransactionKind.BUY.value
        assert txn.user_id == bob.id
        assert txn.product_id == for_sale.id
        assert txn.price_cents == 50
        assert txn.rent_price_cents is None
        assert db_session.get(Product, for_sale.id).is_sold is True

        with pytest.raises(ConflictError, match="Product is already sold"):
            engine.buy(carol.id, for_sale.id)
        assert db_session.query(Transaction).count() == 1

    def test_owner_cannot_buy(self, db_session, for_sale, alice):
        with pytest.raises(ConflictError, match="Cannot buy your own product"):
            TransactionEngine(db_session).buy(alice.id, for_sale.id)
        assert db_session.get(Product, for_sale.id).is_sold is False

    def test_anonymous_cannot_buy(self, db_session, for_sale):
        with pytest.raises(AuthenticationError):
            TransactionEngine(db_session).buy(None, for_sale.id)

    def test_buy_missing_product(self, db_session, bob):
        with pytest.raises(NotFoundError):
            TransactionEngine(db_session).buy(bob.id, 4242)

    def test_rent_only_product_cannot_be_bought(self, db_session, for_rent, bob):
        with pytest.raises(ValidationError, match="does not have a purchase price"):
            TransactionEngine(db_session).buy(bob.id, for_rent.id)
        assert db_session.get(Product, for_rent.id).is_sold is False

    def test_zero_price_can_be_bought(self, db_session, alice, bob):
        freebie = create_product(db_session, alice, price_cents=0)
        txn = TransactionEngine(db_session).buy(bob.id, freebie.id)
        assert txn.price_cents == 0

    def test_snapshot_survives_later_edits(self, db_session, alice, bob, carol):
        """A price edit before purchase is captured; edits never reach old rows."""
        catalog = ProductCatalog(db_session)
        first = create_product(db_session, alice, price_cents=50)
        second = create_product(db_session, alice, price_cents=50)

        bought_first = TransactionEngine(db_session).buy(bob.id, first.id)

        catalog.update(second.id, alice.id, {"price_cents": 75})
        bought_second = TransactionEngine(db_session).buy(carol.id, second.id)

        assert db_session.get(Transaction, bought_first.id).price_cents == 50
        assert db_session.get(Transaction, bought_second.id).price_cents == 75

    def test_upcoming_rental_blocks_sale(self, db_session, sale_or_rent, bob, carol):
        engine = TransactionEngine(db_session)
        engine.rent(bob.id, sale_or_rent.id, _in_days(3), _in_days(4))

        with pytest.raises(ConflictError, match="currently rented"):
            engine.buy(carol.id, sale_or_rent.id)
        assert db_session.get(Product, sale_or_rent.id).is_sold is False

    def test_ended_rental_does_not_block_sale(self, db_session, sale_or_rent, bob, carol):
        TransactionLedger(db_session).append(
            kind=TransactionKind.RENT,
            user_id=bob.id,
            product_id=sale_or_rent.id,
            snapshot=PriceSnapshot.for_rental(sale_or_rent),
            window=RentalWindow(start_at=_in_days(-10), end_at=_in_days(-8)),
        )
        db_session.commit()

        txn = TransactionEngine(db_session).buy(carol.id, sale_or_rent.id)
        assert txn.price_cents == 500


# =============================================================================
# RENT
# =============================================================================


class TestRent:

    def test_rent_records_rental_snapshot(self, db_session, sale_or_rent, bob):
        start, end = _in_days(1), _in_days(2)
        txn = TransactionEngine(db_session).rent(bob.id, sale_or_rent.id, start, end)

        assert txn.kind == TransactionKind.RENT.value
        assert txn.price_cents is None
        assert txn.rent_price_cents == 25
        assert txn.rent_type == "PER_HOUR"
        assert txn.start_at == start
        assert txn.end_at == end

        product = db_session.get(Product, sale_or_rent.id)
        assert product.is_sold is False
        assert product.rental_count == 1

    def test_iso_strings_are_accepted(self, db_session, for_rent, bob):
        start = datetime(2031, 5, 1, 9, 0)
        txn = TransactionEngine(db_session).rent(
            bob.id, for_rent.id, "2031-05-01T09:00:00Z", "2031-05-03T11:00:00+02:00",
        )
        assert txn.start_at == start
        assert txn.end_at == datetime(2031, 5, 3, 9, 0)

    def test_owner_cannot_rent(self, db_session, for_rent, alice):
        with pytest.raises(ConflictError, match="Cannot rent your own product"):
            TransactionEngine(db_session).rent(alice.id, for_rent.id, _in_days(1), _in_days(2))

    def test_sold_product_cannot_be_rented(self, db_session, sale_or_rent, bob, carol):
        engine = TransactionEngine(db_session)
        engine.buy(bob.id, sale_or_rent.id)

        with pytest.raises(ConflictError, match="already sold"):
            engine.rent(carol.id, sale_or_rent.id, _in_days(1), _in_days(2))

    def test_sale_only_product_cannot_be_rented(self, db_session, for_sale, bob):
        with pytest.raises(ValidationError, match="rental options"):
            TransactionEngine(db_session).rent(bob.id, for_sale.id, _in_days(1), _in_days(2))

    def test_anonymous_cannot_rent(self, db_session, for_rent):
        with pytest.raises(AuthenticationError):
            TransactionEngine(db_session).rent(None, for_rent.id, _in_days(1), _in_days(2))

    @pytest.mark.parametrize("start,end", [("not-a-date", "2031-01-01"), (None, "2031-01-01"), (12, 13)])
    def test_unparseable_dates(self, db_session, for_rent, bob, start, end):
        with pytest.raises(ValidationError, match="Invalid date format"):
            TransactionEngine(db_session).rent(bob.id, for_rent.id, start, end)

    def test_end_must_follow_start(self, db_session, for_rent, bob):
        start = _in_days(2)
        engine = TransactionEngine(db_session)
        with pytest.raises(ValidationError, match="End date must be after start date"):
            engine.rent(bob.id, for_rent.id, start, start)
        with pytest.raises(ValidationError, match="End date must be after start date"):
            engine.rent(bob.id, for_rent.id, start, start - timedelta(hours=1))

    def test_start_in_past_rejected(self, db_session, for_rent, bob):
        with pytest.raises(ValidationError, match="Start date cannot be in the past"):
            TransactionEngine(db_session).rent(bob.id, for_rent.id, _in_days(-1), _in_days(1))

    def test_injected_clock_decides_the_past(self, db_session, for_rent, bob):
        engine = TransactionEngine(db_session, clock=lambda: datetime(2040, 1, 1))
        with pytest.raises(ValidationError, match="in the past"):
            engine.rent(bob.id, for_rent.id, datetime(2039, 12, 31), datetime(2040, 1, 2))

    def test_failed_rent_writes_nothing(self, db_session, for_rent, bob):
        with pytest.raises(ValidationError):
            TransactionEngine(db_session).rent(bob.id, for_rent.id, _in_days(3), _in_days(1))
        assert db_session.query(Transaction).count() == 0
        assert db_session.get(Product, for_rent.id).rental_count == 0

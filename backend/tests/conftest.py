"""
Pytest fixtures for teebay backend tests.

Provides an in-memory application, a per-test clean database, user/product
factories and bearer-token helpers.
"""

import pytest

from teebay import create_app
from teebay.extensions import db
from teebay.models import User
from teebay.services.auth_service import hash_password
from teebay.services.catalog_service import ProductCatalog
from teebay.services import session_service

TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='session')
def password_hash():
    """Hash the shared test password once per run."""
    return hash_password(TEST_PASSWORD)


def create_user(session, password_hash, first_name, email=None):
    user = User(
        first_name=first_name,
        last_name="Tester",
        email=email or f"{first_name.lower()}@example.com",
        address="1 Market Street",
        phone_number="555-0100",
        password_hash=password_hash,
    )
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def alice(db_session, password_hash):
    return create_user(db_session, password_hash, "Alice")


@pytest.fixture(scope='function')
def bob(db_session, password_hash):
    return create_user(db_session, password_hash, "Bob")


@pytest.fixture(scope='function')
def carol(db_session, password_hash):
    return create_user(db_session, password_hash, "Carol")


def create_product(session, owner, **fields):
    """List a product through the catalog so pricing rules apply."""
    data = {"title": "Folding bike", "description": "Lightly used", "categories": ["SPORTING_GOODS"]}
    data.update(fields)
    return ProductCatalog(session).create(owner.id, data)


@pytest.fixture(scope='function')
def for_sale(db_session, alice):
    """Alice's product: price 50, no rental option."""
    return create_product(db_session, alice, price_cents=50)


@pytest.fixture(scope='function')
def for_rent(db_session, alice):
    """Alice's product: rent only, 10 per day."""
    return create_product(db_session, alice, rent_price_cents=10, rent_type="PER_DAY")


@pytest.fixture(scope='function')
def sale_or_rent(db_session, alice):
    """Alice's product offered both ways."""
    return create_product(db_session, alice, price_cents=500, rent_price_cents=25, rent_type="PER_HOUR")


def get_auth_token(session, user) -> str:
    """Helper to issue a session token for a user without a login round trip."""
    _, token = session_service.create_session(session, user_id=user.id)
    return token


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def alice_headers(db_session, alice):
    return auth_headers(get_auth_token(db_session, alice))


@pytest.fixture(scope='function')
def bob_headers(db_session, bob):
    return auth_headers(get_auth_token(db_session, bob))

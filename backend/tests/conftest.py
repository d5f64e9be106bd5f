import os
import tempfile
from datetime import date, timedelta
from decimal import Decimal

import pytest

# Settings are read at import time, so the environment must be ready first.
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(tempfile.gettempdir(), 'pharmacy_test_default.db')}")
os.environ.setdefault("RATE_LIMIT_REQUESTS", "100000")
os.environ.setdefault("DB_RETRY_BACKOFF_SECONDS", "0")

from fastapi.testclient import TestClient  # noqa: E402

from pharmacy.api.deps import get_db, get_session_factory  # noqa: E402
from pharmacy.core.security import create_access_token, get_password_hash  # noqa: E402
from pharmacy.db.base import Base  # noqa: E402
from pharmacy.db.session import build_engine, make_session_factory  # noqa: E402
from pharmacy.main import app  # noqa: E402
from pharmacy.models import Customer, Medicine, User  # noqa: E402
from pharmacy.models.user import ROLE_ADMIN, ROLE_STAFF  # noqa: E402

TEST_PASSWORD = "s3cret-pass"


def no_sleep(seconds):
    return None


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'pharmacy.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def _persist(session_factory, obj):
    # Short-lived session so no read transaction is left open between test steps.
    session = session_factory(expire_on_commit=False)
    try:
        session.add(obj)
        session.commit()
        return obj
    finally:
        session.close()


@pytest.fixture
def make_user(session_factory):
    def _make(username="clerk", role=ROLE_STAFF, is_active=True):
        user = User(
            username=username,
            email=f"{username}@pharmacy-shop.com",
            hashed_password=get_password_hash(TEST_PASSWORD),
            role=role,
            is_active=is_active,
        )
        return _persist(session_factory, user)

    return _make


@pytest.fixture
def make_customer(session_factory):
    def _make(name="Asha Patel", is_active=True):
        customer = Customer(name=name, phone="5550100", is_active=is_active)
        return _persist(session_factory, customer)

    return _make


@pytest.fixture
def make_medicine(session_factory):
    def _make(name="Paracetamol 500mg", price="5.00", quantity=10, is_active=True, category="Analgesic"):
        medicine = Medicine(
            name=name,
            description="",
            category=category,
            price=Decimal(price),
            quantity=quantity,
            expiry_date=date.today() + timedelta(days=365),
            is_active=is_active,
        )
        return _persist(session_factory, medicine)

    return _make


@pytest.fixture
def operator(make_user):
    return make_user("clerk", ROLE_STAFF)


@pytest.fixture
def admin(make_user):
    return make_user("boss", ROLE_ADMIN)


@pytest.fixture
def customer(make_customer):
    return make_customer()


def auth_headers(user):
    token = create_access_token(subject=str(user.id), claims={"role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    try:
        # No context manager: the lifespan would initialise the default database.
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def quantity_of(session_factory, medicine_id):
    session = session_factory()
    try:
        return session.get(Medicine, medicine_id).quantity
    finally:
        session.close()

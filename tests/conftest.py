from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from werkzeug.security import generate_password_hash

from cashback_engine.config import Settings, get_settings
from cashback_engine.db import Base, get_db
from cashback_engine.deps.workflow import get_clock, get_geofence, get_notifier
from cashback_engine.main import app
from cashback_engine.models.admin import Admin
from cashback_engine.models.customer import Customer
from cashback_engine.models.ledger_entry import EntryKind, EntryStatus, LedgerEntry
from cashback_engine.services.geofence import ClosestStore
from cashback_engine.services.transaction_workflow import TransactionWorkflow


NOW = datetime(2026, 10, 19, 12, 0, 0)


class FixedClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeGeofence:
    def __init__(self, on_premises: bool = True, closest: ClosestStore | None = None):
        self.on_premises = on_premises
        self.closest = closest or ClosestStore(store_id="store1", name="Loja 1", distance_meters=12.0)
        self.calls = []

    def is_on_premises(self, latitude, longitude) -> bool:
        self.calls.append((latitude, longitude))
        return self.on_premises

    def closest_store(self, latitude, longitude):
        return self.closest


class RecordingNotifier:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    def notify(self, customer_id, event_type, amount=None, cashback_amount=None):
        self.sent.append(
            {
                "customer_id": customer_id,
                "event_type": event_type,
                "amount": amount,
                "cashback_amount": cashback_amount,
            }
        )
        if self.fail:
            raise RuntimeError("gateway down")


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        cashback_rate=Decimal("0.05"),
        min_redemption_amount=Decimal("1.00"),
        cashback_expiry_months=2,
        cashback_timezone="UTC",
        duplicate_window_seconds=120,
        geolocation_timeout_seconds=2.0,
    )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def geofence():
    return FakeGeofence()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def workflow(db, settings, geofence, notifier, clock):
    return TransactionWorkflow(db, settings=settings, geofence=geofence, notifier=notifier, clock=clock)


@pytest.fixture
def customer(db):
    c = Customer(
        name="Maria",
        phone="85999990000",
        email="maria@example.com",
        password_hash=generate_password_hash("segredo123"),
    )
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


@pytest.fixture
def admin(db):
    a = Admin(email="admin@example.com", password_hash=generate_password_hash("admin123"))
    db.add(a)
    db.commit()
    db.refresh(a)
    return a


@pytest.fixture
def add_entry(db, clock):
    """Insert a ledger row directly, bypassing the workflow (fixture data only)."""

    def _add(
        customer,
        *,
        kind=EntryKind.PURCHASE,
        status=EntryStatus.APPROVED,
        amount="100.00",
        cashback_amount=None,
        expires_at=None,
        created_at=None,
    ):
        amount = Decimal(amount)
        if cashback_amount is None:
            cashback_amount = amount * Decimal("0.05") if kind == EntryKind.PURCHASE else -amount
        if kind == EntryKind.PURCHASE and expires_at is None:
            expires_at = clock() + timedelta(days=30)
        created_at = created_at or clock() - timedelta(days=1)

        entry = LedgerEntry(
            customer_id=customer.id,
            amount=amount,
            cashback_amount=Decimal(cashback_amount),
            kind=EntryKind(kind).value,
            status=EntryStatus(status).value,
            expires_at=expires_at,
            created_at=created_at,
            updated_at=created_at,
        )
        db.add(entry)
        db.commit()
        db.refresh(entry)
        return entry

    return _add


@pytest.fixture
def client(db, settings, geofence, notifier, clock):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_geofence] = lambda: geofence
    app.dependency_overrides[get_notifier] = lambda: notifier

    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()

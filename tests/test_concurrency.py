import threading
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from cashback_engine.db import Base
from cashback_engine.errors import CashbackError, InsufficientBalanceError, InvalidTransitionError
from cashback_engine.models.customer import Customer
from cashback_engine.models.ledger_entry import EntryKind, EntryStatus, LedgerEntry
from cashback_engine.services.transaction_workflow import TransactionWorkflow

from conftest import NOW, FakeGeofence, FixedClock, RecordingNotifier


@pytest.fixture
def file_engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False, "timeout": 15},
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def Session(file_engine):
    return sessionmaker(bind=file_engine, autoflush=False, autocommit=False)


@pytest.fixture
def funded_customer(Session):
    db = Session()
    try:
        customer = Customer(name="Ana", phone="85988887777")
        db.add(customer)
        db.commit()
        db.add(
            LedgerEntry(
                customer_id=customer.id,
                amount=Decimal("100.00"),
                cashback_amount=Decimal("5.00"),
                kind=EntryKind.PURCHASE.value,
                status=EntryStatus.APPROVED.value,
                expires_at=NOW + timedelta(days=30),
                created_at=NOW - timedelta(days=1),
                updated_at=NOW - timedelta(days=1),
            )
        )
        db.commit()
        return customer.id
    finally:
        db.close()


def run_concurrently(*targets):
    barrier = threading.Barrier(len(targets))
    results = [None] * len(targets)

    def runner(i, target):
        barrier.wait()
        try:
            results[i] = target()
        except CashbackError as e:
            results[i] = e

    threads = [threading.Thread(target=runner, args=(i, t)) for i, t in enumerate(targets)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return results


class TestConcurrentWrites:
    def test_only_one_of_two_overdrawing_redemptions_succeeds(self, Session, settings, funded_customer):
        notifier = RecordingNotifier()

        def redeem(amount):
            def _run():
                db = Session()
                try:
                    workflow = TransactionWorkflow(
                        db, settings=settings, geofence=FakeGeofence(), notifier=notifier, clock=FixedClock()
                    )
                    return workflow.redeem_cashback(funded_customer, amount).id
                finally:
                    db.close()

            return _run

        results = run_concurrently(redeem("3.00"), redeem("4.00"))

        failures = [r for r in results if isinstance(r, CashbackError)]
        assert len(failures) == 1
        assert isinstance(failures[0], InsufficientBalanceError)

        db = Session()
        try:
            redemptions = db.query(LedgerEntry).filter(LedgerEntry.kind == EntryKind.REDEMPTION.value).all()
            assert len(redemptions) == 1
            workflow = TransactionWorkflow(
                db, settings=settings, geofence=FakeGeofence(), notifier=notifier, clock=FixedClock()
            )
            assert workflow.balance(funded_customer).available_balance >= Decimal("0.00")
        finally:
            db.close()

    def test_concurrent_approvals_notify_once(self, Session, settings, funded_customer):
        notifier = RecordingNotifier()
        db = Session()
        try:
            workflow = TransactionWorkflow(
                db, settings=settings, geofence=FakeGeofence(), notifier=notifier, clock=FixedClock()
            )
            entry_id = workflow.submit_purchase(funded_customer, "80.00", -3.86, -38.63).id
        finally:
            db.close()

        def approve():
            session = Session()
            try:
                wf = TransactionWorkflow(
                    session, settings=settings, geofence=FakeGeofence(), notifier=notifier, clock=FixedClock()
                )
                return wf.approve_or_reject(entry_id, EntryStatus.APPROVED).id
            finally:
                session.close()

        results = run_concurrently(approve, approve, approve)

        assert sum(1 for r in results if r == entry_id) == 1
        assert all(isinstance(r, InvalidTransitionError) for r in results if r != entry_id)
        assert len(notifier.sent) == 1

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from cashback_engine.errors import ValidationError
from cashback_engine.models.customer import Customer
from cashback_engine.models.ledger_entry import EntryKind, EntryStatus
from cashback_engine.services.metrics_service import (
    customer_metrics,
    dashboard_summary,
    outstanding_balance,
    resolve_date_range,
)


NOW = datetime(2026, 10, 19, 12, 0, 0)


class TestCustomerMetrics:
    def test_aggregates_approved_entries(self, db, customer, clock, add_entry):
        entries = [
            add_entry(customer, amount="100.00", created_at=clock() - timedelta(days=5)),
            add_entry(customer, amount="50.00", created_at=clock() - timedelta(days=2)),
            add_entry(customer, amount="10.00", expires_at=clock() - timedelta(days=1)),
            add_entry(customer, amount="70.00", status=EntryStatus.PENDING),
            add_entry(customer, kind=EntryKind.REDEMPTION, amount="2.00"),
        ]

        m = customer_metrics(entries, clock())

        assert m.total_purchases == 3
        assert m.total_spent == Decimal("160.00")
        assert m.average_purchase == Decimal("53.33")
        assert m.total_cashback == Decimal("8.00")
        assert m.redeemed_cashback == Decimal("2.00")
        assert m.expired_cashback == Decimal("0.50")
        assert m.last_purchase == clock() - timedelta(days=1)

    def test_no_purchases(self):
        m = customer_metrics([], NOW)
        assert m.total_purchases == 0
        assert m.average_purchase == Decimal("0.00")
        assert m.last_purchase is None


class TestResolveDateRange:
    def test_today(self):
        start, end = resolve_date_range("today", NOW)
        assert start == datetime(2026, 10, 19)
        assert end == datetime(2026, 10, 19, 23, 59, 59, 999999)

    def test_last_month(self):
        start, end = resolve_date_range("lastMonth", NOW)
        assert start == datetime(2026, 9, 1)
        assert end == datetime(2026, 9, 30, 23, 59, 59, 999999)

    def test_this_month_in_local_time(self):
        start, end = resolve_date_range("thisMonth", NOW, timezone="America/Fortaleza")
        assert start == datetime(2026, 10, 1, 3, 0)
        assert end == datetime(2026, 11, 1, 2, 59, 59, 999999)

    def test_custom(self):
        start, end = resolve_date_range("custom", NOW, start=date(2026, 1, 1), end=date(2026, 1, 31))
        assert start == datetime(2026, 1, 1)
        assert end == datetime(2026, 1, 31, 23, 59, 59, 999999)

    @pytest.mark.parametrize(
        "preset,start,end",
        [("nextYear", None, None), ("custom", None, None), ("custom", date(2026, 2, 1), date(2026, 1, 1))],
    )
    def test_invalid(self, preset, start, end):
        with pytest.raises(ValidationError):
            resolve_date_range(preset, NOW, start=start, end=end)


class TestDashboardSummary:
    def test_summary(self, db, customer, clock, add_entry):
        other = Customer(name="João", phone="85911112222")
        db.add(other)
        db.commit()

        today = clock() - timedelta(hours=2)
        add_entry(customer, amount="100.00", created_at=today)
        add_entry(customer, amount="20.00", status=EntryStatus.PENDING, created_at=today)
        add_entry(other, amount="40.00", status=EntryStatus.REJECTED, created_at=today)
        add_entry(customer, kind=EntryKind.REDEMPTION, amount="1.50", created_at=today)
        add_entry(other, amount="200.00", created_at=clock() - timedelta(days=3))

        start, end = resolve_date_range("today", clock())
        summary = dashboard_summary(db, start=start, end=end, now=clock())

        assert summary["purchases"] == {
            "count": 3,
            "approved": 1,
            "pending": 1,
            "rejected": 1,
            "totalAmount": Decimal("100.00"),
            "totalCashback": Decimal("5.00"),
        }
        assert summary["redemptions"] == {"count": 1, "totalAmount": Decimal("1.50")}
        assert summary["pendingTotal"] == 1
        assert summary["totalCustomers"] == 2
        assert summary["outstandingBalance"] == Decimal("13.50")


class TestOutstandingBalance:
    def test_each_customer_floored_at_zero(self, db, customer, clock, add_entry):
        other = Customer(name="João", phone="85911112222")
        db.add(other)
        db.commit()

        add_entry(customer, amount="100.00")
        add_entry(customer, kind=EntryKind.REDEMPTION, amount="1.00")
        # other redeemed against an accrual that has since expired
        add_entry(other, amount="100.00", expires_at=clock() - timedelta(days=1))
        add_entry(other, amount="20.00")
        add_entry(other, kind=EntryKind.REDEMPTION, amount="4.00")
        add_entry(other, amount="500.00", status=EntryStatus.PENDING)

        assert outstanding_balance(db, clock()) == Decimal("4.00")

    def test_empty_ledger(self, db, clock):
        assert outstanding_balance(db, clock()) == Decimal("0.00")

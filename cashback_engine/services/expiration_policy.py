from __future__ import annotations

import calendar
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from zoneinfo import ZoneInfo


CENTS = Decimal("0.01")


def to_money(value) -> Decimal:
    if isinstance(value, float):
        value = repr(value)
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def compute_cashback(amount, rate) -> Decimal:
    return to_money(to_money(amount) * Decimal(rate))


def _as_utc_aware(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=ZoneInfo("UTC"))
    return dt.astimezone(ZoneInfo("UTC"))


def compute_expires_at(now: datetime, *, months_ahead: int = 2, timezone: str = "UTC") -> datetime:
    """Last instant of the calendar month ``months_ahead`` months after ``now``.

    The calendar is evaluated in ``timezone``; the result is returned as a
    naive UTC datetime, the storage convention for every timestamp column.
    A purchase on 2026-10-19 with the default policy expires at the end of
    2026-12-31 local time.
    """
    tz = ZoneInfo(timezone)
    local = _as_utc_aware(now).astimezone(tz)

    month_index = local.month - 1 + months_ahead
    year = local.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]

    end_local = datetime(year, month, last_day, 23, 59, 59, 999999, tzinfo=tz)
    return end_local.astimezone(ZoneInfo("UTC")).replace(tzinfo=None)

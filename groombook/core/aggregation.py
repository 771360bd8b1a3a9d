"""Income/expense sums and trend buckets over calendar-date ranges."""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable

from dateutil.relativedelta import relativedelta

from .errors import InvalidRangeError

ZERO = Decimal("0")

PERIOD_GRANULARITY = {
    "30days": "day",
    "3months": "week",
    "6months": "week",
    "year": "month",
}
PERIOD_SPANS = {
    "30days": relativedelta(days=30),
    "3months": relativedelta(months=3),
    "6months": relativedelta(months=6),
    "year": relativedelta(years=1),
}

# date.weekday() of the first day of a week bucket (Sunday)
WEEK_START = 6


@dataclass(frozen=True)
class FinancialSummary:
    income: Decimal
    expenses: Decimal
    net: Decimal


@dataclass
class Bucket:
    start: date
    end: date
    label: str
    income: Decimal = ZERO
    expenses: Decimal = ZERO
    appointments_count: int = 0
    expenditures_count: int = 0

    @property
    def profit(self) -> Decimal:
        return self.income - self.expenses

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def _is_calendar_date(value) -> bool:
    return isinstance(value, date) and not isinstance(value, datetime)


def validate_range(start, end) -> None:
    if not _is_calendar_date(start) or not _is_calendar_date(end):
        raise InvalidRangeError("start and end must be calendar dates")
    if start > end:
        raise InvalidRangeError(f"start {start.isoformat()} is after end {end.isoformat()}")


def granularity_for(period: str) -> str:
    try:
        return PERIOD_GRANULARITY[period]
    except (KeyError, TypeError):
        raise InvalidRangeError(
            f"Unknown period {period!r}; expected one of {', '.join(PERIOD_GRANULARITY)}"
        ) from None


def period_range(period: str, today: date) -> tuple[date, date]:
    granularity_for(period)
    return today - PERIOD_SPANS[period], today


def aggregate_period(
    appointments: Iterable, expenditures: Iterable, start: date, end: date
) -> FinancialSummary:
    validate_range(start, end)
    # every status counts towards income, cancelled included
    income = sum(
        (to_decimal(a.price) for a in appointments if start <= a.date <= end), ZERO
    )
    expenses = sum(
        (to_decimal(e.amount) for e in expenditures if start <= e.date <= end), ZERO
    )
    return FinancialSummary(income=income, expenses=expenses, net=income - expenses)


def _unit_start(day: date, granularity: str) -> date:
    if granularity == "week":
        return day - timedelta(days=(day.weekday() - WEEK_START) % 7)
    if granularity == "month":
        return day.replace(day=1)
    return day


def _next_unit_start(unit_start: date, granularity: str) -> date:
    if granularity == "week":
        return unit_start + timedelta(days=7)
    if granularity == "month":
        return unit_start + relativedelta(months=1)
    return unit_start + timedelta(days=1)


def _label(unit_start: date, granularity: str) -> str:
    if granularity == "month":
        return unit_start.strftime("%b %Y")
    return f"{unit_start.strftime('%b')} {unit_start.day}"


def make_buckets(period: str, start: date, end: date) -> list[Bucket]:
    """Consecutive buckets covering ``[start, end]`` exactly.

    The first bucket starts at ``start`` even when that is mid-week or
    mid-month, and the last one is cut off at ``end``. Labels name the
    day, week start or month the bucket belongs to.
    """
    granularity = granularity_for(period)
    validate_range(start, end)

    buckets: list[Bucket] = []
    unit = _unit_start(start, granularity)
    cursor = start
    while cursor <= end:
        following = _next_unit_start(unit, granularity)
        buckets.append(
            Bucket(
                start=cursor,
                end=min(following - timedelta(days=1), end),
                label=_label(unit, granularity),
            )
        )
        unit = cursor = following
    return buckets


def _fold(bucket: Bucket, item) -> None:
    if hasattr(item, "price"):
        bucket.income += to_decimal(item.price)
        bucket.appointments_count += 1
    elif hasattr(item, "amount"):
        bucket.expenses += to_decimal(item.amount)
        bucket.expenditures_count += 1
    else:
        raise TypeError(f"Cannot bucket {type(item).__name__}: no price or amount")


def bucketize(items: Iterable, period: str, start: date, end: date) -> list[Bucket]:
    """Fold appointments (price) and expenditures (amount) into trend buckets.

    Items dated outside ``[start, end]`` match no bucket and are skipped.
    """
    buckets = make_buckets(period, start, end)
    for item in items:
        for bucket in buckets:
            if bucket.contains(item.date):
                _fold(bucket, item)
                break
    return buckets

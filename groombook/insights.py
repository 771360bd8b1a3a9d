"""Dashboard summaries: cadence lists, financial totals and trends."""

from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal

import structlog

from .config import settings
from .core.aggregation import (
    ZERO,
    Bucket,
    FinancialSummary,
    aggregate_period,
    bucketize,
    period_range,
    to_decimal,
    validate_range,
)
from .core.cadence import CadenceStatus, classify_cadence, is_due_soon, is_overdue
from .core.enrichment import ClientView
from .services import build_client_views
from .stores import GroomingStore

logger = structlog.get_logger("groombook.insights")


@dataclass
class ClientCadence:
    view: ClientView
    status: CadenceStatus
    days_since_last: int | None


@dataclass
class FinancialTrend:
    period: str
    start: date
    end: date
    summary: FinancialSummary
    buckets: list[Bucket]


@dataclass
class CategoryTotal:
    category: str
    amount: Decimal
    share: Decimal


@dataclass
class ServiceTotal:
    service_type: str
    appointments: int
    income: Decimal
    average_price: Decimal


@dataclass
class WeekOverview:
    start: date
    end: date
    appointments_count: int
    appointments_by_status: dict[str, int]
    summary: FinancialSummary
    overdue_clients_count: int


def overdue_clients(store: GroomingStore, now: datetime) -> list[ClientView]:
    ceiling = settings.CADENCE_CEILING_DAYS
    return [v for v in build_client_views(store, now) if is_overdue(v, now, ceiling_days=ceiling)]


def due_soon_clients(store: GroomingStore, now: datetime) -> list[ClientView]:
    horizon = settings.DUE_SOON_HORIZON_DAYS
    return [v for v in build_client_views(store, now) if is_due_soon(v, now, horizon_days=horizon)]


def client_cadence(view: ClientView, now: datetime) -> ClientCadence:
    status = classify_cadence(
        view,
        now,
        ceiling_days=settings.CADENCE_CEILING_DAYS,
        horizon_days=settings.DUE_SOON_HORIZON_DAYS,
    )
    last = view.last_appointment
    return ClientCadence(
        view=view,
        status=status,
        days_since_last=(now.date() - last.date).days if last else None,
    )


def client_cadence_report(store: GroomingStore, now: datetime) -> list[ClientCadence]:
    report = [client_cadence(v, now) for v in build_client_views(store, now)]
    logger.info(
        "cadence_report_built",
        clients=len(report),
        overdue=sum(1 for r in report if r.status.overdue),
        due_soon=sum(1 for r in report if r.status.due_soon),
    )
    return report


def suggested_follow_ups(
    store: GroomingStore, now: datetime, stale_days: int | None = None
) -> list[ClientView]:
    """Clients with nothing booked who have never visited or not for a long while."""
    stale_days = settings.FOLLOW_UP_STALE_DAYS if stale_days is None else stale_days
    cutoff = now.date() - timedelta(days=stale_days)
    out = []
    for view in build_client_views(store, now):
        if view.next_appointment is not None:
            continue
        if view.last_appointment is None or view.last_appointment.date < cutoff:
            out.append(view)
    return out


def financial_summary(store: GroomingStore, start: date, end: date) -> FinancialSummary:
    validate_range(start, end)
    return aggregate_period(
        store.list_appointments_in_range(start, end),
        store.list_expenditures_in_range(start, end),
        start,
        end,
    )


def financial_trend(store: GroomingStore, period: str, today: date) -> FinancialTrend:
    start, end = period_range(period, today)
    appointments = store.list_appointments_in_range(start, end)
    expenditures = store.list_expenditures_in_range(start, end)
    return FinancialTrend(
        period=period,
        start=start,
        end=end,
        summary=aggregate_period(appointments, expenditures, start, end),
        buckets=bucketize([*appointments, *expenditures], period, start, end),
    )


def week_overview(store: GroomingStore, now: datetime) -> WeekOverview:
    today = now.date()
    start = today - timedelta(days=today.weekday())
    end = start + timedelta(days=6)
    appointments = store.list_appointments_in_range(start, end)
    expenditures = store.list_expenditures_in_range(start, end)
    return WeekOverview(
        start=start,
        end=end,
        appointments_count=len(appointments),
        appointments_by_status=dict(Counter(a.status for a in appointments)),
        summary=aggregate_period(appointments, expenditures, start, end),
        overdue_clients_count=len(overdue_clients(store, now)),
    )


def expense_breakdown(store: GroomingStore, start: date, end: date) -> list[CategoryTotal]:
    validate_range(start, end)
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for expenditure in store.list_expenditures_in_range(start, end):
        totals[expenditure.category] += to_decimal(expenditure.amount)

    grand_total = sum(totals.values(), ZERO)
    rows = [
        CategoryTotal(
            category=category,
            amount=amount,
            share=(amount / grand_total) if grand_total else ZERO,
        )
        for category, amount in totals.items()
    ]
    return sorted(rows, key=lambda row: (-row.amount, row.category))


def service_breakdown(store: GroomingStore, start: date, end: date) -> list[ServiceTotal]:
    validate_range(start, end)
    counts: Counter = Counter()
    income: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for appointment in store.list_appointments_in_range(start, end):
        counts[appointment.service_type] += 1
        income[appointment.service_type] += to_decimal(appointment.price)

    rows = [
        ServiceTotal(
            service_type=service,
            appointments=counts[service],
            income=income[service],
            average_price=income[service] / counts[service],
        )
        for service in counts
    ]
    return sorted(rows, key=lambda row: (-row.income, row.service_type))

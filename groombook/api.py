from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import List

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

import structlog

from . import insights, services
from .core.aggregation import Bucket, FinancialSummary, to_decimal
from .core.enrichment import AppointmentView, ClientView
from .core.errors import MissingReferenceError, PartialUpdateError
from .db import get_db
from .schemas import (
    AppointmentCreate,
    AppointmentDetailOut,
    AppointmentOut,
    AppointmentUpdate,
    CategoryTotalOut,
    ClientCadenceOut,
    ClientOut,
    ClientSummaryOut,
    ClientUpdate,
    ClientWithDogsCreate,
    DogIn,
    DogOut,
    DogUpdate,
    ExpenditureCreate,
    ExpenditureOut,
    ExpenditureUpdate,
    FinancialSummaryOut,
    FinancialTrendOut,
    ServiceTotalOut,
    TrendBucketOut,
    WeekOverviewOut,
)
from .stores import SqlGroomingStore

logger = structlog.get_logger("groombook.api")

router = APIRouter(prefix="/api")

_CENT = Decimal("0.01")


def get_store(db: Session = Depends(get_db)) -> SqlGroomingStore:
    return SqlGroomingStore(db)


def get_now() -> datetime:
    # appointment dates and times are the salon's local wall clock
    return datetime.now()


def _money(value) -> float:
    return float(to_decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP))


def _to_dog_out(dog) -> DogOut:
    return DogOut(
        id=dog.id,
        client_id=dog.client_id,
        name=dog.name,
        breed=dog.breed,
        size=dog.size,
        hair_length=dog.hair_length,
    )


def _to_appointment_out(a) -> AppointmentOut:
    return AppointmentOut(
        id=a.id,
        client_id=a.client_id,
        date=a.date,
        time=a.time,
        service_type=a.service_type,
        price=_money(a.price),
        status=a.status,
        notes=a.notes,
        created_at=a.created_at,
    )


def _to_client_summary_out(c) -> ClientSummaryOut:
    return ClientSummaryOut(
        id=c.id,
        name=c.name,
        phone=c.phone,
        address=c.address,
        frequency_days=c.frequency_days,
        notes=c.notes,
    )


def _to_client_out(view: ClientView) -> ClientOut:
    c = view.client
    return ClientOut(
        id=c.id,
        name=c.name,
        phone=c.phone,
        address=c.address,
        frequency_days=c.frequency_days,
        notes=c.notes,
        dogs=[_to_dog_out(d) for d in view.dogs],
        last_appointment=_to_appointment_out(view.last_appointment) if view.last_appointment else None,
        next_appointment=_to_appointment_out(view.next_appointment) if view.next_appointment else None,
    )


def _to_appointment_detail_out(view: AppointmentView) -> AppointmentDetailOut:
    base = _to_appointment_out(view.appointment)
    return AppointmentDetailOut(
        **base.model_dump(),
        client=_to_client_summary_out(view.client),
        dogs=[_to_dog_out(d) for d in view.dogs],
    )


def _to_expenditure_out(e) -> ExpenditureOut:
    return ExpenditureOut(
        id=e.id,
        date=e.date,
        amount=_money(e.amount),
        category=e.category,
        notes=e.notes,
    )


def _to_summary_out(summary: FinancialSummary, start: date, end: date) -> FinancialSummaryOut:
    return FinancialSummaryOut(
        start=start,
        end=end,
        income=_money(summary.income),
        expenses=_money(summary.expenses),
        net=_money(summary.net),
    )


def _to_bucket_out(bucket: Bucket) -> TrendBucketOut:
    return TrendBucketOut(
        start=bucket.start,
        end=bucket.end,
        label=bucket.label,
        income=_money(bucket.income),
        expenses=_money(bucket.expenses),
        profit=_money(bucket.profit),
        appointments_count=bucket.appointments_count,
        expenditures_count=bucket.expenditures_count,
    )


def _to_cadence_out(row: insights.ClientCadence) -> ClientCadenceOut:
    view = row.view
    return ClientCadenceOut(
        client_id=view.id,
        name=view.client.name,
        phone=view.client.phone,
        frequency_days=view.frequency_days,
        overdue=row.status.overdue,
        due_soon=row.status.due_soon,
        on_track=row.status.on_track,
        days_since_last=row.days_since_last,
        last_appointment_date=view.last_appointment.date if view.last_appointment else None,
        next_appointment_date=view.next_appointment.date if view.next_appointment else None,
    )


def _bad_request(exc: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _not_found(entity: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{entity} not found")


# clients


@router.get("/clients", response_model=List[ClientOut])
def list_clients(
    store: SqlGroomingStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    return [_to_client_out(v) for v in services.list_client_views(store, now)]


@router.get("/clients/search", response_model=List[ClientOut])
def search_clients(
    term: str = Query(..., min_length=1),
    store: SqlGroomingStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    return [_to_client_out(v) for v in services.search_client_views(store, term, now)]


@router.post("/clients", response_model=ClientOut, status_code=status.HTTP_201_CREATED)
def add_client(
    payload: ClientWithDogsCreate,
    store: SqlGroomingStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    try:
        view = services.create_client(
            store,
            payload.client.model_dump(),
            [d.model_dump() for d in payload.dogs],
            now,
        )
    except ValueError as exc:
        raise _bad_request(exc)
    return _to_client_out(view)


@router.get("/clients/{client_id}", response_model=ClientOut)
def get_client(
    client_id: int,
    store: SqlGroomingStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    view = services.get_client_view(store, client_id, now)
    if not view:
        raise _not_found("Client")
    return _to_client_out(view)


@router.patch("/clients/{client_id}", response_model=ClientOut)
def patch_client(
    client_id: int,
    payload: ClientUpdate,
    store: SqlGroomingStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    changes = payload.model_dump(exclude_unset=True)
    dogs = changes.pop("dogs", None)
    if payload.dogs is not None:
        dogs = [d.model_dump(exclude_unset=True) for d in payload.dogs]
    try:
        view = services.update_client(store, client_id, changes, now, dogs=dogs)
    except ValueError as exc:
        raise _bad_request(exc)
    except PartialUpdateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if not view:
        raise _not_found("Client")
    return _to_client_out(view)


@router.delete("/clients/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_client(client_id: int, store: SqlGroomingStore = Depends(get_store)):
    if not services.delete_client(store, client_id):
        raise _not_found("Client")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/clients/{client_id}/appointments", response_model=List[AppointmentDetailOut])
def list_client_appointments(client_id: int, store: SqlGroomingStore = Depends(get_store)):
    if store.get_client(client_id) is None:
        raise _not_found("Client")
    views = services.list_client_appointment_views(store, client_id)
    return [_to_appointment_detail_out(v) for v in views]


@router.get("/clients/{client_id}/cadence", response_model=ClientCadenceOut)
def get_client_cadence(
    client_id: int,
    store: SqlGroomingStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    view = services.get_client_view(store, client_id, now)
    if not view:
        raise _not_found("Client")
    return _to_cadence_out(insights.client_cadence(view, now))


# dogs


@router.post("/dogs", response_model=DogOut, status_code=status.HTTP_201_CREATED)
def add_dog(payload: DogIn, store: SqlGroomingStore = Depends(get_store)):
    fields = payload.model_dump()
    client_id = fields.pop("client_id")
    try:
        dog = services.create_dog(store, client_id, fields)
    except (ValueError, MissingReferenceError) as exc:
        raise _bad_request(exc)
    return _to_dog_out(dog)


@router.patch("/dogs/{dog_id}", response_model=DogOut)
def patch_dog(dog_id: int, payload: DogUpdate, store: SqlGroomingStore = Depends(get_store)):
    try:
        dog = services.update_dog(store, dog_id, payload.model_dump(exclude_unset=True))
    except ValueError as exc:
        raise _bad_request(exc)
    if not dog:
        raise _not_found("Dog")
    return _to_dog_out(dog)


@router.delete("/dogs/{dog_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_dog(dog_id: int, store: SqlGroomingStore = Depends(get_store)):
    if not services.delete_dog(store, dog_id):
        raise _not_found("Dog")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# appointments


@router.get("/appointments", response_model=List[AppointmentDetailOut])
def list_appointments(store: SqlGroomingStore = Depends(get_store)):
    return [_to_appointment_detail_out(v) for v in services.list_appointment_views(store)]


@router.get("/appointments/range", response_model=List[AppointmentDetailOut])
def list_appointments_in_range(
    start: date = Query(...),
    end: date = Query(...),
    store: SqlGroomingStore = Depends(get_store),
):
    try:
        views = services.list_appointment_views_in_range(store, start, end)
    except ValueError as exc:
        raise _bad_request(exc)
    return [_to_appointment_detail_out(v) for v in views]


@router.get("/appointments/{appointment_id}", response_model=AppointmentDetailOut)
def get_appointment(appointment_id: int, store: SqlGroomingStore = Depends(get_store)):
    view = services.get_appointment_view(store, appointment_id)
    if not view:
        raise _not_found("Appointment")
    return _to_appointment_detail_out(view)


@router.post("/appointments", response_model=AppointmentDetailOut, status_code=status.HTTP_201_CREATED)
def add_appointment(payload: AppointmentCreate, store: SqlGroomingStore = Depends(get_store)):
    try:
        view = services.create_appointment(store, payload.model_dump())
    except (ValueError, MissingReferenceError) as exc:
        raise _bad_request(exc)
    return _to_appointment_detail_out(view)


@router.patch("/appointments/{appointment_id}", response_model=AppointmentDetailOut)
def patch_appointment(
    appointment_id: int,
    payload: AppointmentUpdate,
    store: SqlGroomingStore = Depends(get_store),
):
    try:
        view = services.update_appointment(
            store, appointment_id, payload.model_dump(exclude_unset=True)
        )
    except (ValueError, MissingReferenceError) as exc:
        raise _bad_request(exc)
    if not view:
        raise _not_found("Appointment")
    return _to_appointment_detail_out(view)


@router.delete("/appointments/{appointment_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_appointment(appointment_id: int, store: SqlGroomingStore = Depends(get_store)):
    if not services.delete_appointment(store, appointment_id):
        raise _not_found("Appointment")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# expenditures


@router.get("/expenditures", response_model=List[ExpenditureOut])
def list_expenditures(store: SqlGroomingStore = Depends(get_store)):
    return [_to_expenditure_out(e) for e in services.list_expenditures(store)]


@router.get("/expenditures/range", response_model=List[ExpenditureOut])
def list_expenditures_in_range(
    start: date = Query(...),
    end: date = Query(...),
    store: SqlGroomingStore = Depends(get_store),
):
    try:
        rows = services.list_expenditures_in_range(store, start, end)
    except ValueError as exc:
        raise _bad_request(exc)
    return [_to_expenditure_out(e) for e in rows]


@router.post("/expenditures", response_model=ExpenditureOut, status_code=status.HTTP_201_CREATED)
def add_expenditure(payload: ExpenditureCreate, store: SqlGroomingStore = Depends(get_store)):
    try:
        expenditure = services.create_expenditure(store, payload.model_dump())
    except ValueError as exc:
        raise _bad_request(exc)
    return _to_expenditure_out(expenditure)


@router.patch("/expenditures/{expenditure_id}", response_model=ExpenditureOut)
def patch_expenditure(
    expenditure_id: int,
    payload: ExpenditureUpdate,
    store: SqlGroomingStore = Depends(get_store),
):
    try:
        expenditure = services.update_expenditure(
            store, expenditure_id, payload.model_dump(exclude_unset=True)
        )
    except ValueError as exc:
        raise _bad_request(exc)
    if not expenditure:
        raise _not_found("Expenditure")
    return _to_expenditure_out(expenditure)


@router.delete("/expenditures/{expenditure_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_expenditure(expenditure_id: int, store: SqlGroomingStore = Depends(get_store)):
    if not services.delete_expenditure(store, expenditure_id):
        raise _not_found("Expenditure")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# summaries


@router.get("/summary/overdue-clients", response_model=List[ClientOut])
def get_overdue_clients(
    store: SqlGroomingStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    return [_to_client_out(v) for v in insights.overdue_clients(store, now)]


@router.get("/summary/due-soon", response_model=List[ClientOut])
def get_due_soon_clients(
    store: SqlGroomingStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    return [_to_client_out(v) for v in insights.due_soon_clients(store, now)]


@router.get("/summary/suggested-followups", response_model=List[ClientOut])
def get_suggested_follow_ups(
    store: SqlGroomingStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    return [_to_client_out(v) for v in insights.suggested_follow_ups(store, now)]


@router.get("/summary/cadence", response_model=List[ClientCadenceOut])
def get_cadence_report(
    store: SqlGroomingStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    return [_to_cadence_out(row) for row in insights.client_cadence_report(store, now)]


@router.get("/summary/financials", response_model=FinancialSummaryOut)
def get_financial_summary(
    start: date = Query(...),
    end: date = Query(...),
    store: SqlGroomingStore = Depends(get_store),
):
    try:
        summary = insights.financial_summary(store, start, end)
    except ValueError as exc:
        raise _bad_request(exc)
    return _to_summary_out(summary, start, end)


@router.get("/summary/trend", response_model=FinancialTrendOut)
def get_financial_trend(
    period: str = Query(default="30days"),
    store: SqlGroomingStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    try:
        trend = insights.financial_trend(store, period, now.date())
    except ValueError as exc:
        raise _bad_request(exc)
    return FinancialTrendOut(
        period=trend.period,
        summary=_to_summary_out(trend.summary, trend.start, trend.end),
        buckets=[_to_bucket_out(b) for b in trend.buckets],
    )


@router.get("/summary/week", response_model=WeekOverviewOut)
def get_week_overview(
    store: SqlGroomingStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    week = insights.week_overview(store, now)
    return WeekOverviewOut(
        start=week.start,
        end=week.end,
        appointments_count=week.appointments_count,
        appointments_by_status=week.appointments_by_status,
        summary=_to_summary_out(week.summary, week.start, week.end),
        overdue_clients_count=week.overdue_clients_count,
    )


@router.get("/summary/expense-categories", response_model=List[CategoryTotalOut])
def get_expense_categories(
    start: date = Query(...),
    end: date = Query(...),
    store: SqlGroomingStore = Depends(get_store),
):
    try:
        rows = insights.expense_breakdown(store, start, end)
    except ValueError as exc:
        raise _bad_request(exc)
    return [
        CategoryTotalOut(
            category=row.category,
            amount=_money(row.amount),
            share_pct=_money(row.share * 100),
        )
        for row in rows
    ]


@router.get("/summary/services", response_model=List[ServiceTotalOut])
def get_service_breakdown(
    start: date = Query(...),
    end: date = Query(...),
    store: SqlGroomingStore = Depends(get_store),
):
    try:
        rows = insights.service_breakdown(store, start, end)
    except ValueError as exc:
        raise _bad_request(exc)
    return [
        ServiceTotalOut(
            service_type=row.service_type,
            appointments=row.appointments,
            income=_money(row.income),
            average_price=_money(row.average_price),
        )
        for row in rows
    ]


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(MissingReferenceError)
    async def missing_reference_handler(request: Request, exc: MissingReferenceError):
        logger.error("missing_client_reference", client_id=exc.client_id, source=exc.source)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Stored data references a missing client"},
        )

    @app.exception_handler(PartialUpdateError)
    async def partial_update_handler(request: Request, exc: PartialUpdateError):
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})

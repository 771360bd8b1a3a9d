import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, Field, validator

from .models import APPOINTMENT_STATUSES, DOG_SIZES, HAIR_LENGTHS


def _check_choice(value: str | None, choices: tuple[str, ...], name: str) -> str | None:
    if value is None:
        return value
    if value not in choices:
        raise ValueError(f"{name} must be one of {', '.join(choices)}")
    return value


class DogFields(BaseModel):
    @validator("size", check_fields=False)
    @classmethod
    def validate_size(cls, value):
        return _check_choice(value, DOG_SIZES, "size")

    @validator("hair_length", check_fields=False)
    @classmethod
    def validate_hair_length(cls, value):
        return _check_choice(value, HAIR_LENGTHS, "hair_length")


class DogCreate(DogFields):
    name: str = Field(min_length=1, max_length=120)
    breed: str | None = Field(default=None, max_length=120)
    size: str
    hair_length: str


class DogIn(DogCreate):
    client_id: int


class DogUpdate(DogFields):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    breed: str | None = Field(default=None, max_length=120)
    size: str | None = None
    hair_length: str | None = None


class DogSyncItem(DogUpdate):
    id: int | None = None


class DogOut(BaseModel):
    id: int
    client_id: int
    name: str
    breed: str | None = None
    size: str
    hair_length: str


class ClientCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    phone: str = Field(min_length=3, max_length=40)
    address: str = Field(min_length=1, max_length=300)
    frequency_days: int | None = Field(default=None, ge=0, le=365)
    notes: str | None = Field(default=None, max_length=2000)


class ClientWithDogsCreate(BaseModel):
    client: ClientCreate
    dogs: list[DogCreate] = []


class ClientUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    phone: str | None = Field(default=None, min_length=3, max_length=40)
    address: str | None = Field(default=None, min_length=1, max_length=300)
    frequency_days: int | None = Field(default=None, ge=0, le=365)
    notes: str | None = Field(default=None, max_length=2000)
    dogs: list[DogSyncItem] | None = None


class AppointmentCreate(BaseModel):
    client_id: int
    date: dt.date
    time: dt.time
    service_type: str = Field(min_length=1, max_length=120)
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    status: str = "pending"
    notes: str | None = Field(default=None, max_length=2000)

    @validator("status")
    @classmethod
    def validate_status(cls, value: str) -> str:
        return _check_choice(value.strip().lower(), APPOINTMENT_STATUSES, "status")


class AppointmentUpdate(BaseModel):
    client_id: int | None = None
    date: dt.date | None = None
    time: dt.time | None = None
    service_type: str | None = Field(default=None, min_length=1, max_length=120)
    price: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    status: str | None = None
    notes: str | None = Field(default=None, max_length=2000)

    @validator("status")
    @classmethod
    def validate_status(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return _check_choice(value.strip().lower(), APPOINTMENT_STATUSES, "status")


class AppointmentOut(BaseModel):
    id: int
    client_id: int
    date: dt.date
    time: dt.time
    service_type: str
    price: float
    status: str
    notes: str | None = None
    created_at: dt.datetime


class ClientSummaryOut(BaseModel):
    id: int
    name: str
    phone: str
    address: str
    frequency_days: int | None = None
    notes: str | None = None


class ClientOut(ClientSummaryOut):
    dogs: list[DogOut] = []
    last_appointment: AppointmentOut | None = None
    next_appointment: AppointmentOut | None = None


class AppointmentDetailOut(AppointmentOut):
    client: ClientSummaryOut
    dogs: list[DogOut] = []


class ExpenditureCreate(BaseModel):
    date: dt.date
    amount: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    category: str = Field(min_length=1, max_length=80)
    notes: str | None = Field(default=None, max_length=2000)


class ExpenditureUpdate(BaseModel):
    date: dt.date | None = None
    amount: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    category: str | None = Field(default=None, min_length=1, max_length=80)
    notes: str | None = Field(default=None, max_length=2000)


class ExpenditureOut(BaseModel):
    id: int
    date: dt.date
    amount: float
    category: str
    notes: str | None = None


class ClientCadenceOut(BaseModel):
    client_id: int
    name: str
    phone: str
    frequency_days: int | None = None
    overdue: bool
    due_soon: bool
    on_track: bool
    days_since_last: int | None = None
    last_appointment_date: dt.date | None = None
    next_appointment_date: dt.date | None = None


class FinancialSummaryOut(BaseModel):
    start: dt.date
    end: dt.date
    income: float
    expenses: float
    net: float


class TrendBucketOut(BaseModel):
    start: dt.date
    end: dt.date
    label: str
    income: float
    expenses: float
    profit: float
    appointments_count: int
    expenditures_count: int


class FinancialTrendOut(BaseModel):
    period: str
    summary: FinancialSummaryOut
    buckets: list[TrendBucketOut]


class WeekOverviewOut(BaseModel):
    start: dt.date
    end: dt.date
    appointments_count: int
    appointments_by_status: dict[str, int]
    summary: FinancialSummaryOut
    overdue_clients_count: int


class CategoryTotalOut(BaseModel):
    category: str
    amount: float
    share_pct: float


class ServiceTotalOut(BaseModel):
    service_type: str
    appointments: int
    income: float
    average_price: float

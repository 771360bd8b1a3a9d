import datetime as dt
from decimal import Decimal

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base

DOG_SIZES = ("Small", "Medium", "Large")
HAIR_LENGTHS = ("Short", "Medium", "Long")
APPOINTMENT_STATUSES = ("pending", "confirmed", "completed", "cancelled")


def utc_now_naive() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


class Client(Base):
    __tablename__ = "clients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), index=True)
    phone: Mapped[str] = mapped_column(String(40), index=True)
    address: Mapped[str] = mapped_column(String(300))
    frequency_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    dogs = relationship(
        "Dog",
        back_populates="client",
        cascade="all, delete-orphan",
        order_by="Dog.id",
    )
    appointments = relationship(
        "Appointment",
        back_populates="client",
        cascade="all, delete-orphan",
    )


class Dog(Base):
    __tablename__ = "dogs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    client_id: Mapped[int] = mapped_column(
        ForeignKey("clients.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String(120))
    breed: Mapped[str | None] = mapped_column(String(120), nullable=True)
    size: Mapped[str] = mapped_column(String(16))
    hair_length: Mapped[str] = mapped_column(String(16))

    client = relationship("Client", back_populates="dogs")


class Appointment(Base):
    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    client_id: Mapped[int] = mapped_column(
        ForeignKey("clients.id", ondelete="CASCADE"), index=True
    )
    date: Mapped[dt.date] = mapped_column(Date, index=True)
    time: Mapped[dt.time] = mapped_column(Time)
    service_type: Mapped[str] = mapped_column(String(120))
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    status: Mapped[str] = mapped_column(String(32), default="pending", index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utc_now_naive)

    client = relationship("Client", back_populates="appointments")


class Expenditure(Base):
    __tablename__ = "expenditures"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    date: Mapped[dt.date] = mapped_column(Date, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    category: Mapped[str] = mapped_column(String(80), index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

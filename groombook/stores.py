"""Store contracts used by the service layer and their SQLAlchemy implementation.

Store methods flush but never commit; callers group mutations with
``store.transaction()`` so a client and its dogs are written together or not
at all.
"""

from contextlib import contextmanager
from datetime import date
from typing import Iterator, Protocol

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .models import Appointment, Client, Dog, Expenditure, utc_now_naive

CLIENT_FIELDS = ("name", "phone", "address", "frequency_days", "notes")
DOG_FIELDS = ("name", "breed", "size", "hair_length")
APPOINTMENT_FIELDS = (
    "client_id",
    "date",
    "time",
    "service_type",
    "price",
    "status",
    "notes",
)
EXPENDITURE_FIELDS = ("date", "amount", "category", "notes")


class ClientStore(Protocol):
    def get_client(self, client_id: int) -> Client | None: ...

    def list_clients(self) -> list[Client]: ...

    def search_clients(self, term: str) -> list[Client]: ...

    def create_client(self, fields: dict) -> Client: ...

    def update_client(self, client_id: int, changes: dict) -> Client | None: ...

    def delete_client(self, client_id: int) -> bool: ...


class DogStore(Protocol):
    def get_dog(self, dog_id: int) -> Dog | None: ...

    def list_dogs(self) -> list[Dog]: ...

    def list_dogs_for_client(self, client_id: int) -> list[Dog]: ...

    def create_dog(self, client_id: int, fields: dict) -> Dog: ...

    def update_dog(self, dog_id: int, changes: dict) -> Dog | None: ...

    def delete_dog(self, dog_id: int) -> bool: ...


class AppointmentStore(Protocol):
    def get_appointment(self, appointment_id: int) -> Appointment | None: ...

    def list_appointments(self) -> list[Appointment]: ...

    def list_appointments_for_client(self, client_id: int) -> list[Appointment]: ...

    def list_appointments_in_range(self, start: date, end: date) -> list[Appointment]: ...

    def create_appointment(self, fields: dict) -> Appointment: ...

    def update_appointment(self, appointment_id: int, changes: dict) -> Appointment | None: ...

    def delete_appointment(self, appointment_id: int) -> bool: ...


class ExpenditureStore(Protocol):
    def get_expenditure(self, expenditure_id: int) -> Expenditure | None: ...

    def list_expenditures(self) -> list[Expenditure]: ...

    def list_expenditures_in_range(self, start: date, end: date) -> list[Expenditure]: ...

    def create_expenditure(self, fields: dict) -> Expenditure: ...

    def update_expenditure(self, expenditure_id: int, changes: dict) -> Expenditure | None: ...

    def delete_expenditure(self, expenditure_id: int) -> bool: ...


class GroomingStore(ClientStore, DogStore, AppointmentStore, ExpenditureStore, Protocol):
    def transaction(self): ...


def _pick(fields: dict, allowed: tuple[str, ...]) -> dict:
    return {key: value for key, value in fields.items() if key in allowed}


def _apply(obj, changes: dict, allowed: tuple[str, ...]) -> None:
    for key, value in _pick(changes, allowed).items():
        setattr(obj, key, value)


class SqlGroomingStore:
    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def transaction(self) -> Iterator["SqlGroomingStore"]:
        try:
            yield self
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def _delete(self, obj) -> bool:
        if obj is None:
            return False
        self.db.delete(obj)
        self.db.flush()
        return True

    # clients

    def get_client(self, client_id: int) -> Client | None:
        return self.db.execute(
            select(Client).where(Client.id == client_id)
        ).scalar_one_or_none()

    def list_clients(self) -> list[Client]:
        return list(
            self.db.execute(select(Client).order_by(Client.name.asc(), Client.id.asc()))
            .scalars()
            .all()
        )

    def search_clients(self, term: str) -> list[Client]:
        normalized = (term or "").strip().lower()
        if not normalized:
            return []
        return list(
            self.db.execute(
                select(Client)
                .where(
                    func.lower(Client.name).contains(normalized, autoescape=True)
                    | func.lower(func.coalesce(Client.phone, "")).contains(normalized, autoescape=True)
                )
                .order_by(Client.name.asc(), Client.id.asc())
            )
            .scalars()
            .all()
        )

    def create_client(self, fields: dict) -> Client:
        client = Client(**_pick(fields, CLIENT_FIELDS))
        self.db.add(client)
        self.db.flush()
        return client

    def update_client(self, client_id: int, changes: dict) -> Client | None:
        client = self.get_client(client_id)
        if client is None:
            return None
        _apply(client, changes, CLIENT_FIELDS)
        self.db.flush()
        return client

    def delete_client(self, client_id: int) -> bool:
        client = self.get_client(client_id)
        if client is None:
            return False
        # ORM cascade removes the client's dogs and appointments
        self.db.delete(client)
        self.db.flush()
        return True

    # dogs

    def get_dog(self, dog_id: int) -> Dog | None:
        return self.db.execute(select(Dog).where(Dog.id == dog_id)).scalar_one_or_none()

    def list_dogs(self) -> list[Dog]:
        return list(self.db.execute(select(Dog).order_by(Dog.id.asc())).scalars().all())

    def list_dogs_for_client(self, client_id: int) -> list[Dog]:
        return list(
            self.db.execute(
                select(Dog).where(Dog.client_id == client_id).order_by(Dog.id.asc())
            )
            .scalars()
            .all()
        )

    def create_dog(self, client_id: int, fields: dict) -> Dog:
        dog = Dog(client_id=client_id, **_pick(fields, DOG_FIELDS))
        self.db.add(dog)
        self.db.flush()
        return dog

    def update_dog(self, dog_id: int, changes: dict) -> Dog | None:
        dog = self.get_dog(dog_id)
        if dog is None:
            return None
        _apply(dog, changes, DOG_FIELDS)
        self.db.flush()
        return dog

    def delete_dog(self, dog_id: int) -> bool:
        return self._delete(self.get_dog(dog_id))

    # appointments

    def get_appointment(self, appointment_id: int) -> Appointment | None:
        return self.db.execute(
            select(Appointment).where(Appointment.id == appointment_id)
        ).scalar_one_or_none()

    def list_appointments(self) -> list[Appointment]:
        return list(
            self.db.execute(
                select(Appointment).order_by(
                    Appointment.date.asc(), Appointment.time.asc(), Appointment.id.asc()
                )
            )
            .scalars()
            .all()
        )

    def list_appointments_for_client(self, client_id: int) -> list[Appointment]:
        # id order keeps same-instant bookings in insertion order
        return list(
            self.db.execute(
                select(Appointment)
                .where(Appointment.client_id == client_id)
                .order_by(Appointment.id.asc())
            )
            .scalars()
            .all()
        )

    def list_appointments_in_range(self, start: date, end: date) -> list[Appointment]:
        return list(
            self.db.execute(
                select(Appointment)
                .where(Appointment.date >= start, Appointment.date <= end)
                .order_by(
                    Appointment.date.asc(), Appointment.time.asc(), Appointment.id.asc()
                )
            )
            .scalars()
            .all()
        )

    def create_appointment(self, fields: dict) -> Appointment:
        appointment = Appointment(
            **_pick(fields, APPOINTMENT_FIELDS), created_at=utc_now_naive()
        )
        self.db.add(appointment)
        self.db.flush()
        return appointment

    def update_appointment(self, appointment_id: int, changes: dict) -> Appointment | None:
        appointment = self.get_appointment(appointment_id)
        if appointment is None:
            return None
        _apply(appointment, changes, APPOINTMENT_FIELDS)
        self.db.flush()
        return appointment

    def delete_appointment(self, appointment_id: int) -> bool:
        return self._delete(self.get_appointment(appointment_id))

    # expenditures

    def get_expenditure(self, expenditure_id: int) -> Expenditure | None:
        return self.db.execute(
            select(Expenditure).where(Expenditure.id == expenditure_id)
        ).scalar_one_or_none()

    def list_expenditures(self) -> list[Expenditure]:
        return list(
            self.db.execute(
                select(Expenditure).order_by(Expenditure.date.asc(), Expenditure.id.asc())
            )
            .scalars()
            .all()
        )

    def list_expenditures_in_range(self, start: date, end: date) -> list[Expenditure]:
        return list(
            self.db.execute(
                select(Expenditure)
                .where(Expenditure.date >= start, Expenditure.date <= end)
                .order_by(Expenditure.date.asc(), Expenditure.id.asc())
            )
            .scalars()
            .all()
        )

    def create_expenditure(self, fields: dict) -> Expenditure:
        expenditure = Expenditure(**_pick(fields, EXPENDITURE_FIELDS))
        self.db.add(expenditure)
        self.db.flush()
        return expenditure

    def update_expenditure(self, expenditure_id: int, changes: dict) -> Expenditure | None:
        expenditure = self.get_expenditure(expenditure_id)
        if expenditure is None:
            return None
        _apply(expenditure, changes, EXPENDITURE_FIELDS)
        self.db.flush()
        return expenditure

    def delete_expenditure(self, expenditure_id: int) -> bool:
        return self._delete(self.get_expenditure(expenditure_id))

"""Last/next appointment lookup for clients and client joins for appointments."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Mapping

from .errors import MissingReferenceError


@dataclass
class ClientView:
    client: Any
    dogs: list = field(default_factory=list)
    last_appointment: Any | None = None
    next_appointment: Any | None = None

    @property
    def id(self) -> int:
        return self.client.id

    @property
    def frequency_days(self) -> int | None:
        return self.client.frequency_days


@dataclass
class AppointmentView:
    appointment: Any
    client: Any
    dogs: list = field(default_factory=list)


def appointment_instant(appointment) -> datetime:
    return datetime.combine(appointment.date, appointment.time)


def split_at(appointments: Iterable, now: datetime) -> tuple[list, list]:
    """Sort by (date, time) and split into past (< now) and upcoming (>= now).

    ``sorted`` is stable, so appointments booked for the same instant keep
    the order they were supplied in.
    """
    ordered = sorted(appointments, key=appointment_instant)
    past = [a for a in ordered if appointment_instant(a) < now]
    upcoming = [a for a in ordered if appointment_instant(a) >= now]
    return past, upcoming


def enrich_client(
    client, appointments: Iterable, now: datetime, dogs: Iterable = ()
) -> ClientView:
    own = [a for a in appointments if a.client_id == client.id]
    past, upcoming = split_at(own, now)
    return ClientView(
        client=client,
        dogs=list(dogs),
        last_appointment=past[-1] if past else None,
        next_appointment=upcoming[0] if upcoming else None,
    )


def attach_client(
    appointment,
    clients_by_id: Mapping[int, Any],
    dogs_by_client: Mapping[int, list] | None = None,
) -> AppointmentView:
    client = clients_by_id.get(appointment.client_id)
    if client is None:
        raise MissingReferenceError(appointment.client_id, source=f"appointment {appointment.id}")
    dogs = (dogs_by_client or {}).get(client.id, [])
    return AppointmentView(appointment=appointment, client=client, dogs=list(dogs))

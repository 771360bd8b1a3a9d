from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal

import structlog

from .core.aggregation import validate_range
from .core.enrichment import AppointmentView, ClientView, attach_client, enrich_client
from .core.errors import MissingReferenceError, PartialUpdateError
from .models import APPOINTMENT_STATUSES, DOG_SIZES, HAIR_LENGTHS
from .stores import GroomingStore

logger = structlog.get_logger("groombook.services")

_REQUIRED_CLIENT_FIELDS = ("name", "phone", "address")
_REQUIRED_DOG_FIELDS = ("name", "size", "hair_length")
_REQUIRED_APPOINTMENT_FIELDS = ("client_id", "date", "time", "service_type", "price")
_REQUIRED_EXPENDITURE_FIELDS = ("date", "amount", "category")


def _group_by_client(rows) -> dict[int, list]:
    grouped: dict[int, list] = defaultdict(list)
    for row in rows:
        grouped[row.client_id].append(row)
    return grouped


def _require(fields: dict, names: tuple[str, ...], entity: str) -> None:
    missing = [name for name in names if fields.get(name) in (None, "")]
    if missing:
        raise ValueError(f"{entity} is missing required fields: {', '.join(missing)}")


def _reject_nulls(changes: dict, names: tuple[str, ...], entity: str) -> None:
    nulled = [name for name in names if name in changes and changes[name] is None]
    if nulled:
        raise ValueError(f"{entity} fields cannot be cleared: {', '.join(nulled)}")


def _check_client_fields(fields: dict) -> None:
    frequency = fields.get("frequency_days")
    if frequency is not None and int(frequency) < 0:
        raise ValueError("frequency_days must be a positive number of days, 0 or empty")


def _check_dog_fields(fields: dict) -> None:
    if "size" in fields and fields["size"] not in DOG_SIZES:
        raise ValueError(f"Invalid dog size; expected one of {', '.join(DOG_SIZES)}")
    if "hair_length" in fields and fields["hair_length"] not in HAIR_LENGTHS:
        raise ValueError(f"Invalid hair length; expected one of {', '.join(HAIR_LENGTHS)}")


def _normalize_status(fields: dict) -> dict:
    if "status" not in fields:
        return fields
    status = (fields.get("status") or "pending").strip().lower()
    if status not in APPOINTMENT_STATUSES:
        raise ValueError("Invalid appointment status")
    return {**fields, "status": status}


def _check_amount(fields: dict, name: str) -> None:
    if name in fields and fields[name] is not None and Decimal(fields[name]) < 0:
        raise ValueError(f"{name} must be >= 0")


# clients


def build_client_views(
    store: GroomingStore, now: datetime, clients: list | None = None
) -> list[ClientView]:
    clients = store.list_clients() if clients is None else clients
    dogs = _group_by_client(store.list_dogs())
    appointments = _group_by_client(store.list_appointments())
    return [
        enrich_client(c, appointments.get(c.id, []), now, dogs=dogs.get(c.id, []))
        for c in clients
    ]


def get_client_view(store: GroomingStore, client_id: int, now: datetime) -> ClientView | None:
    client = store.get_client(client_id)
    if client is None:
        return None
    return enrich_client(
        client,
        store.list_appointments_for_client(client_id),
        now,
        dogs=store.list_dogs_for_client(client_id),
    )


def list_client_views(store: GroomingStore, now: datetime) -> list[ClientView]:
    return build_client_views(store, now)


def search_client_views(store: GroomingStore, term: str, now: datetime) -> list[ClientView]:
    matches = store.search_clients(term)
    if not matches:
        return []
    return build_client_views(store, now, clients=matches)


def create_client(
    store: GroomingStore, fields: dict, dogs: list[dict], now: datetime
) -> ClientView:
    _require(fields, _REQUIRED_CLIENT_FIELDS, "Client")
    _check_client_fields(fields)
    for dog in dogs:
        _require(dog, _REQUIRED_DOG_FIELDS, "Dog")
        _check_dog_fields(dog)

    with store.transaction():
        client = store.create_client(fields)
        for dog in dogs:
            store.create_dog(client.id, dog)
        client_id = client.id

    logger.info("client_created", client_id=client_id, dogs=len(dogs), phone=fields.get("phone"))
    return get_client_view(store, client_id, now)


def _validate_dog_sync(store: GroomingStore, client_id: int, dogs: list[dict]) -> None:
    owned = {dog.id for dog in store.list_dogs_for_client(client_id)}
    for item in dogs:
        dog_id = item.get("id")
        if dog_id is None:
            _require(item, _REQUIRED_DOG_FIELDS, "Dog")
        elif dog_id not in owned:
            raise ValueError(f"Dog {dog_id} does not belong to client {client_id}")
        else:
            _reject_nulls(item, _REQUIRED_DOG_FIELDS, "Dog")
        _check_dog_fields(item)


def _sync_dogs(store: GroomingStore, client_id: int, dogs: list[dict]) -> dict:
    existing = {dog.id for dog in store.list_dogs_for_client(client_id)}
    kept: set[int] = set()
    created = 0
    for item in dogs:
        dog_id = item.get("id")
        if dog_id is None:
            store.create_dog(client_id, item)
            created += 1
        else:
            store.update_dog(dog_id, item)
            kept.add(dog_id)

    removed = existing - kept
    for dog_id in sorted(removed):
        store.delete_dog(dog_id)
    return {"created": created, "updated": len(kept), "deleted": len(removed)}


def update_client(
    store: GroomingStore,
    client_id: int,
    changes: dict,
    now: datetime,
    dogs: list[dict] | None = None,
) -> ClientView | None:
    if store.get_client(client_id) is None:
        return None
    _reject_nulls(changes, _REQUIRED_CLIENT_FIELDS, "Client")
    _check_client_fields(changes)
    if dogs is not None:
        _validate_dog_sync(store, client_id, dogs)

    step = "client"
    try:
        with store.transaction():
            store.update_client(client_id, changes)
            if dogs is not None:
                step = "dogs"
                counts = _sync_dogs(store, client_id, dogs)
                logger.info("client_dogs_synced", client_id=client_id, **counts)
    except Exception as exc:
        logger.error("client_update_rolled_back", client_id=client_id, step=step, error=str(exc))
        raise PartialUpdateError(
            f"Updating client {client_id} failed at {step}; no changes were saved", step=step
        ) from exc

    return get_client_view(store, client_id, now)


def delete_client(store: GroomingStore, client_id: int) -> bool:
    with store.transaction():
        deleted = store.delete_client(client_id)
    if deleted:
        logger.info("client_deleted", client_id=client_id)
    return deleted


# dogs


def create_dog(store: GroomingStore, client_id: int, fields: dict):
    _require(fields, _REQUIRED_DOG_FIELDS, "Dog")
    _check_dog_fields(fields)
    if store.get_client(client_id) is None:
        raise MissingReferenceError(client_id, source="dog")
    with store.transaction():
        dog = store.create_dog(client_id, fields)
    return dog


def update_dog(store: GroomingStore, dog_id: int, changes: dict):
    _reject_nulls(changes, _REQUIRED_DOG_FIELDS, "Dog")
    _check_dog_fields(changes)
    with store.transaction():
        dog = store.update_dog(dog_id, changes)
    return dog


def delete_dog(store: GroomingStore, dog_id: int) -> bool:
    with store.transaction():
        return store.delete_dog(dog_id)


# appointments


def _appointment_view(store: GroomingStore, appointment) -> AppointmentView:
    client = store.get_client(appointment.client_id)
    clients_by_id = {client.id: client} if client else {}
    dogs_by_client = {client.id: store.list_dogs_for_client(client.id)} if client else {}
    return attach_client(appointment, clients_by_id, dogs_by_client)


def _appointment_views(store: GroomingStore, appointments: list) -> list[AppointmentView]:
    if not appointments:
        return []
    clients_by_id = {c.id: c for c in store.list_clients()}
    dogs_by_client = _group_by_client(store.list_dogs())
    return [attach_client(a, clients_by_id, dogs_by_client) for a in appointments]


def get_appointment_view(store: GroomingStore, appointment_id: int) -> AppointmentView | None:
    appointment = store.get_appointment(appointment_id)
    if appointment is None:
        return None
    return _appointment_view(store, appointment)


def list_appointment_views(store: GroomingStore) -> list[AppointmentView]:
    return _appointment_views(store, store.list_appointments())


def list_appointment_views_in_range(
    store: GroomingStore, start: date, end: date
) -> list[AppointmentView]:
    validate_range(start, end)
    return _appointment_views(store, store.list_appointments_in_range(start, end))


def list_client_appointment_views(
    store: GroomingStore, client_id: int
) -> list[AppointmentView]:
    return _appointment_views(store, store.list_appointments_for_client(client_id))


def create_appointment(store: GroomingStore, fields: dict) -> AppointmentView:
    _require(fields, _REQUIRED_APPOINTMENT_FIELDS, "Appointment")
    fields = _normalize_status({"status": "pending", **fields})
    _check_amount(fields, "price")
    if store.get_client(fields["client_id"]) is None:
        raise MissingReferenceError(fields["client_id"])

    with store.transaction():
        appointment = store.create_appointment(fields)

    logger.info(
        "appointment_created",
        appointment_id=appointment.id,
        client_id=appointment.client_id,
        date=appointment.date.isoformat(),
    )
    return _appointment_view(store, appointment)


def update_appointment(
    store: GroomingStore, appointment_id: int, changes: dict
) -> AppointmentView | None:
    _reject_nulls(changes, _REQUIRED_APPOINTMENT_FIELDS + ("status",), "Appointment")
    changes = _normalize_status(changes)
    _check_amount(changes, "price")
    if "client_id" in changes and store.get_client(changes["client_id"]) is None:
        raise MissingReferenceError(changes["client_id"])

    with store.transaction():
        appointment = store.update_appointment(appointment_id, changes)
    if appointment is None:
        return None
    return _appointment_view(store, appointment)


def delete_appointment(store: GroomingStore, appointment_id: int) -> bool:
    with store.transaction():
        return store.delete_appointment(appointment_id)


# expenditures


def list_expenditures(store: GroomingStore) -> list:
    return store.list_expenditures()


def list_expenditures_in_range(store: GroomingStore, start: date, end: date) -> list:
    validate_range(start, end)
    return store.list_expenditures_in_range(start, end)


def create_expenditure(store: GroomingStore, fields: dict):
    _require(fields, _REQUIRED_EXPENDITURE_FIELDS, "Expenditure")
    _check_amount(fields, "amount")
    with store.transaction():
        expenditure = store.create_expenditure(fields)
    logger.info("expenditure_created", expenditure_id=expenditure.id, category=expenditure.category)
    return expenditure


def update_expenditure(store: GroomingStore, expenditure_id: int, changes: dict):
    _reject_nulls(changes, _REQUIRED_EXPENDITURE_FIELDS, "Expenditure")
    _check_amount(changes, "amount")
    with store.transaction():
        return store.update_expenditure(expenditure_id, changes)


def delete_expenditure(store: GroomingStore, expenditure_id: int) -> bool:
    with store.transaction():
        return store.delete_expenditure(expenditure_id)

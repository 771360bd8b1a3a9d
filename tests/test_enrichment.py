from datetime import date, datetime, time
from types import SimpleNamespace

import pytest

from groombook.core.enrichment import appointment_instant, attach_client, enrich_client, split_at
from groombook.core.errors import MissingReferenceError

NOW = datetime(2024, 5, 10, 12, 0)


def appt(id, day, at, client_id=1):
    return SimpleNamespace(id=id, client_id=client_id, date=day, time=at)


def test_last_and_next_bracket_now():
    client = SimpleNamespace(id=1, frequency_days=30)
    appointments = [
        appt(1, date(2024, 6, 1), time(9, 0)),
        appt(2, date(2024, 5, 10), time(11, 59)),
        appt(3, date(2024, 4, 2), time(15, 0)),
        appt(4, date(2024, 5, 10), time(12, 30)),
    ]

    view = enrich_client(client, appointments, NOW)

    assert view.last_appointment.id == 2
    assert view.next_appointment.id == 4
    assert appointment_instant(view.last_appointment) <= NOW
    assert NOW <= appointment_instant(view.next_appointment)


def test_appointment_at_now_counts_as_next():
    client = SimpleNamespace(id=1, frequency_days=None)
    view = enrich_client(client, [appt(1, NOW.date(), NOW.time())], NOW)
    assert view.last_appointment is None
    assert view.next_appointment.id == 1


def test_other_clients_appointments_are_ignored():
    client = SimpleNamespace(id=1, frequency_days=14)
    view = enrich_client(client, [appt(1, date(2024, 5, 1), time(9, 0), client_id=2)], NOW)
    assert view.last_appointment is None
    assert view.next_appointment is None


def test_no_appointments_and_no_dogs():
    client = SimpleNamespace(id=7, frequency_days=None)
    view = enrich_client(client, [], NOW)
    assert view.id == 7
    assert view.dogs == []
    assert view.last_appointment is None and view.next_appointment is None


def test_same_instant_keeps_supplied_order():
    slot = (date(2024, 6, 1), time(10, 0))
    first, second = appt(1, *slot), appt(2, *slot)

    past, upcoming = split_at([first, second], NOW)
    assert past == []
    assert [a.id for a in upcoming] == [1, 2]

    client = SimpleNamespace(id=1, frequency_days=None)
    assert enrich_client(client, [first, second], NOW).next_appointment.id == 1


def test_attach_client_joins_dogs():
    client = SimpleNamespace(id=3, name="Ada")
    dog = SimpleNamespace(id=9, client_id=3, name="Biscuit")
    view = attach_client(appt(5, date(2024, 5, 1), time(9, 0), client_id=3), {3: client}, {3: [dog]})
    assert view.client is client
    assert view.dogs == [dog]


def test_attach_client_missing_reference():
    with pytest.raises(MissingReferenceError) as err:
        attach_client(appt(5, date(2024, 5, 1), time(9, 0), client_id=99), {}, {})
    assert err.value.client_id == 99
    assert "99" in str(err.value)

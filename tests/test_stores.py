from datetime import date, datetime, time
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

from groombook import services
from groombook.core.errors import PartialUpdateError
from groombook.db import create_schema, make_engine
from groombook.stores import SqlGroomingStore

NOW = datetime(2024, 2, 1, 10, 0)


def make_store(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'test_groombook.db'}")
    create_schema(bind=engine)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    return SqlGroomingStore(TestingSessionLocal())


def add_client(store, name="Ada Lovelace", phone="555-0101", dogs=()):
    view = services.create_client(
        store,
        {"name": name, "phone": phone, "address": "1 Bark St", "frequency_days": 30},
        list(dogs),
        NOW,
    )
    return view.client


def test_delete_client_cascades_to_dogs_and_appointments(tmp_path):
    store = make_store(tmp_path)
    client = add_client(store, dogs=[{"name": "Biscuit", "size": "Small", "hair_length": "Long"}])
    services.create_appointment(
        store,
        {
            "client_id": client.id,
            "date": date(2024, 1, 15),
            "time": time(9, 30),
            "service_type": "Full Groom",
            "price": Decimal("55.00"),
        },
    )

    assert services.delete_client(store, client.id) is True
    assert store.list_dogs() == []
    assert store.list_appointments() == []
    assert services.delete_client(store, client.id) is False


def test_transaction_rolls_back_on_error(tmp_path):
    store = make_store(tmp_path)
    with pytest.raises(RuntimeError):
        with store.transaction():
            store.create_client({"name": "Ghost", "phone": "555-0000", "address": "Nowhere"})
            raise RuntimeError("boom")
    assert store.list_clients() == []


def test_search_matches_name_or_phone_case_insensitively(tmp_path):
    store = make_store(tmp_path)
    add_client(store, name="Ada Lovelace", phone="555-0101")
    add_client(store, name="Grace Hopper", phone="555-0202")

    assert [c.name for c in store.search_clients("ADA")] == ["Ada Lovelace"]
    assert [c.name for c in store.search_clients("0202")] == ["Grace Hopper"]
    assert store.search_clients("   ") == []


def test_search_treats_like_wildcards_literally(tmp_path):
    store = make_store(tmp_path)
    add_client(store, name="Ada Lovelace", phone="555-0101")
    add_client(store, name="Grace Hopper", phone="555-0202")
    add_client(store, name="Percy 100%", phone="555-0303")

    assert store.search_clients("_") == []
    assert [c.name for c in store.search_clients("%")] == ["Percy 100%"]
    assert [c.name for c in store.search_clients("0%")] == ["Percy 100%"]


def test_range_queries_are_inclusive(tmp_path):
    store = make_store(tmp_path)
    client = add_client(store)
    for day in (date(2024, 1, 1), date(2024, 1, 31), date(2024, 2, 1)):
        store.create_appointment(
            {
                "client_id": client.id,
                "date": day,
                "time": time(10, 0),
                "service_type": "Bath",
                "price": Decimal("20"),
                "status": "completed",
            }
        )
        store.create_expenditure({"date": day, "amount": Decimal("5"), "category": "Supplies"})
    store.db.commit()

    start, end = date(2024, 1, 1), date(2024, 1, 31)
    assert len(store.list_appointments_in_range(start, end)) == 2
    assert len(store.list_expenditures_in_range(start, end)) == 2


class FailingDogStore(SqlGroomingStore):
    def update_dog(self, dog_id, changes):
        raise RuntimeError("disk full")


def test_failed_dog_sync_leaves_client_untouched(tmp_path):
    store = make_store(tmp_path)
    client = add_client(store, dogs=[{"name": "Biscuit", "size": "Small", "hair_length": "Long"}])
    dog_id = store.list_dogs_for_client(client.id)[0].id

    failing = FailingDogStore(store.db)
    with pytest.raises(PartialUpdateError) as err:
        services.update_client(
            failing,
            client.id,
            {"name": "Renamed"},
            NOW,
            dogs=[{"id": dog_id, "name": "Cookie"}, {"name": "Pepper", "size": "Large", "hair_length": "Short"}],
        )

    assert err.value.step == "dogs"
    assert store.get_client(client.id).name == "Ada Lovelace"
    assert [d.name for d in store.list_dogs_for_client(client.id)] == ["Biscuit"]


def test_negative_frequency_is_rejected_by_service(tmp_path):
    store = make_store(tmp_path)
    with pytest.raises(ValueError):
        services.create_client(
            store,
            {"name": "Ada", "phone": "555-0101", "address": "1 Bark St", "frequency_days": -1},
            [],
            NOW,
        )
    assert store.list_clients() == []

from datetime import datetime

from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from groombook.api import get_db, get_now, get_store, register_exception_handlers, router
from groombook.db import create_schema, make_engine
from groombook.stores import SqlGroomingStore

FIXED_NOW = datetime(2024, 2, 1, 10, 0)


def make_client(tmp_path):
    db_path = tmp_path / "test_groombook.db"
    engine = make_engine(f"sqlite:///{db_path}")
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    create_schema(bind=engine)

    app = FastAPI()
    app.include_router(router)
    register_exception_handlers(app)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_now] = lambda: FIXED_NOW
    return TestClient(app)


def seed_client(client):
    res = client.post(
        "/api/clients",
        json={
            "client": {"name": "Ada Lovelace", "phone": "555-0101", "address": "1 Bark St", "frequency_days": 21},
            "dogs": [{"name": "Biscuit", "size": "Small", "hair_length": "Long"}],
        },
    )
    assert res.status_code == 201
    return res.json()["id"]


def appointment_payload(client_id, **overrides):
    payload = {
        "client_id": client_id,
        "date": "2024-02-05",
        "time": "09:30:00",
        "service_type": "Bath & Tidy",
        "price": 42.5,
    }
    payload.update(overrides)
    return payload


def test_create_appointment_defaults_to_pending(tmp_path):
    client = make_client(tmp_path)
    client_id = seed_client(client)

    res = client.post("/api/appointments", json=appointment_payload(client_id))
    assert res.status_code == 201, res.text
    body = res.json()
    assert body["status"] == "pending"
    assert body["price"] == 42.5
    assert body["created_at"]
    assert body["client"]["name"] == "Ada Lovelace"
    assert [d["name"] for d in body["dogs"]] == ["Biscuit"]


def test_create_appointment_for_unknown_client(tmp_path):
    client = make_client(tmp_path)
    res = client.post("/api/appointments", json=appointment_payload(404))
    assert res.status_code == 400
    assert "404" in res.json()["detail"]


def test_create_appointment_validates_status_and_price(tmp_path):
    client = make_client(tmp_path)
    client_id = seed_client(client)

    assert client.post("/api/appointments", json=appointment_payload(client_id, status="lost")).status_code == 422
    assert client.post("/api/appointments", json=appointment_payload(client_id, price=-1)).status_code == 422

    upper = client.post("/api/appointments", json=appointment_payload(client_id, status="Confirmed"))
    assert upper.status_code == 201
    assert upper.json()["status"] == "confirmed"


def test_patch_appointment(tmp_path):
    client = make_client(tmp_path)
    client_id = seed_client(client)
    created = client.post("/api/appointments", json=appointment_payload(client_id)).json()

    res = client.patch(f"/api/appointments/{created['id']}", json={"status": "completed", "price": 50})
    assert res.status_code == 200
    assert res.json()["status"] == "completed"
    assert res.json()["price"] == 50.0
    assert res.json()["service_type"] == "Bath & Tidy"
    assert res.json()["created_at"] == created["created_at"]

    assert client.patch(f"/api/appointments/{created['id']}", json={"price": None}).status_code == 400
    assert client.patch(f"/api/appointments/{created['id']}", json={"client_id": 999}).status_code == 400
    assert client.patch("/api/appointments/999", json={"status": "completed"}).status_code == 404


def test_list_and_range(tmp_path):
    client = make_client(tmp_path)
    client_id = seed_client(client)
    for day in ("2024-01-31", "2024-02-01", "2024-02-29"):
        client.post("/api/appointments", json=appointment_payload(client_id, date=day))

    listed = client.get("/api/appointments")
    assert [a["date"] for a in listed.json()] == ["2024-01-31", "2024-02-01", "2024-02-29"]

    ranged = client.get("/api/appointments/range", params={"start": "2024-02-01", "end": "2024-02-29"})
    assert ranged.status_code == 200
    assert len(ranged.json()) == 2

    backwards = client.get("/api/appointments/range", params={"start": "2024-03-01", "end": "2024-02-01"})
    assert backwards.status_code == 400

    history = client.get(f"/api/clients/{client_id}/appointments")
    assert len(history.json()) == 3


def test_booking_moves_client_between_last_and_next(tmp_path):
    client = make_client(tmp_path)
    client_id = seed_client(client)
    client.post("/api/appointments", json=appointment_payload(client_id, date="2024-02-01", time="09:00"))
    later = client.post("/api/appointments", json=appointment_payload(client_id, date="2024-02-01", time="11:00")).json()

    body = client.get(f"/api/clients/{client_id}").json()
    assert body["last_appointment"]["time"] == "09:00:00"
    assert body["next_appointment"]["id"] == later["id"]

    assert client.delete(f"/api/appointments/{later['id']}").status_code == 204
    assert client.get(f"/api/clients/{client_id}").json()["next_appointment"] is None


class OrphanedAppointmentStore(SqlGroomingStore):
    def get_client(self, client_id):
        return None


def test_stored_appointment_without_client_is_server_error(tmp_path):
    client = make_client(tmp_path)
    client_id = seed_client(client)
    created = client.post("/api/appointments", json=appointment_payload(client_id)).json()

    def orphaned_store(db=Depends(get_db)):
        return OrphanedAppointmentStore(db)

    client.app.dependency_overrides[get_store] = orphaned_store
    res = client.get(f"/api/appointments/{created['id']}")
    assert res.status_code == 500
    assert res.json()["detail"] == "Stored data references a missing client"

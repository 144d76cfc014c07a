import database.db as db
from backend.security import verify_pin


def test_create_worker_hides_pin_hash(client, auth_headers):
    res = client.post(
        "/workers",
        json={"first_name": "Ada", "last_name": "Lovelace", "pin": "1234", "department": "R&D"},
        headers=auth_headers,
    )
    assert res.status_code == 201
    worker = res.json()["data"]
    assert worker["is_active"] is True
    assert worker["department"] == "R&D"
    assert "pin_hash" not in worker
    assert "pin" not in worker

    stored = db.get_workers_with_pin_hashes()
    assert len(stored) == 1
    assert stored[0]["pin_hash"] != "1234"
    assert verify_pin("1234", stored[0]["pin_hash"])


def test_create_worker_rejects_pin_in_use(client, make_worker, auth_headers):
    make_worker(pin="1234")
    res = client.post(
        "/workers",
        json={"first_name": "Bob", "last_name": "Builder", "pin": "1234"},
        headers=auth_headers,
    )
    assert res.status_code == 409
    assert res.json()["error"]["message"] == "PIN already exists"


def test_create_worker_validates_fields(client, auth_headers):
    res = client.post(
        "/workers",
        json={"first_name": "", "last_name": "x" * 101, "pin": "12"},
        headers=auth_headers,
    )
    assert res.status_code == 422
    details = res.json()["error"]["details"]
    assert set(details) == {"first_name", "last_name", "pin"}


def test_create_worker_strips_names(client, auth_headers):
    res = client.post(
        "/workers",
        json={"first_name": "  Ada ", "last_name": "Lovelace  ", "pin": "4444"},
        headers=auth_headers,
    )
    assert res.status_code == 201
    worker = res.json()["data"]
    assert worker["first_name"] == "Ada"
    assert worker["last_name"] == "Lovelace"


def test_blank_names_are_rejected(client, make_worker, auth_headers):
    res = client.post(
        "/workers",
        json={"first_name": "   ", "last_name": "X", "pin": "4444"},
        headers=auth_headers,
    )
    assert res.status_code == 422
    assert "first_name" in res.json()["error"]["details"]

    worker = make_worker()
    res = client.patch(f"/workers/{worker['id']}", json={"last_name": "  "}, headers=auth_headers)
    assert res.status_code == 422
    assert "last_name" in res.json()["error"]["details"]


def test_list_workers_defaults_to_active(client, make_worker, auth_headers):
    ada = make_worker(first_name="Ada", last_name="Zed", pin="1111")
    bob = make_worker(first_name="Bob", last_name="Young", pin="2222")
    client.delete(f"/workers/{bob['id']}", headers=auth_headers)

    res = client.get("/workers", headers=auth_headers)
    assert res.status_code == 200
    data = res.json()["data"]
    assert [w["id"] for w in data["workers"]] == [ada["id"]]
    assert data["pagination"]["total_items"] == 1

    res = client.get("/workers", params={"is_active": False}, headers=auth_headers)
    assert [w["id"] for w in res.json()["data"]["workers"]] == [bob["id"]]


def test_list_workers_search_and_sort(client, make_worker, auth_headers):
    make_worker(first_name="Ada", last_name="Lovelace", pin="1111")
    make_worker(first_name="Alan", last_name="Turing", pin="2222")
    make_worker(first_name="Grace", last_name="Hopper", pin="3333")

    res = client.get("/workers", params={"search": "a"}, headers=auth_headers)
    names = [w["last_name"] for w in res.json()["data"]["workers"]]
    assert names == ["Hopper", "Lovelace", "Turing"]

    res = client.get("/workers", params={"search": "TUR"}, headers=auth_headers)
    assert [w["last_name"] for w in res.json()["data"]["workers"]] == ["Turing"]

    res = client.get("/workers", params={"sort_by": "first_name", "sort_order": "desc"}, headers=auth_headers)
    assert [w["first_name"] for w in res.json()["data"]["workers"]] == ["Grace", "Alan", "Ada"]


def test_get_worker_includes_stats(client, make_worker, auth_headers, insert_registration):
    worker = make_worker()
    insert_registration(worker["id"], check_in="2025-01-20T08:00:00.000Z", check_out="2025-01-20T16:00:00.000Z")
    insert_registration(worker["id"], check_in="2025-01-21T08:00:00.000Z", check_out="2025-01-21T12:00:00.000Z")
    insert_registration(worker["id"], check_in="2025-01-22T08:00:00.000Z")

    res = client.get(f"/workers/{worker['id']}", headers=auth_headers)
    assert res.status_code == 200
    stats = res.json()["data"]["stats"]
    assert stats == {
        "total_registrations": 2,
        "total_hours_worked": 12,
        "average_daily_hours": 6,
    }


def test_get_unknown_worker(client, auth_headers):
    res = client.get("/workers/00000000-0000-4000-8000-000000000000", headers=auth_headers)
    assert res.status_code == 404


def test_update_worker_fields(client, make_worker, auth_headers):
    worker = make_worker()
    res = client.patch(
        f"/workers/{worker['id']}",
        json={"department": None, "last_name": "Byron"},
        headers=auth_headers,
    )
    assert res.status_code == 200
    updated = res.json()["data"]
    assert updated["last_name"] == "Byron"
    assert updated["department"] is None
    assert updated["first_name"] == worker["first_name"]


def test_update_worker_requires_a_field(client, make_worker, auth_headers):
    worker = make_worker()
    res = client.patch(f"/workers/{worker['id']}", json={}, headers=auth_headers)
    assert res.status_code == 422


def test_rotate_pin(client, make_worker, auth_headers):
    worker = make_worker(pin="1234")
    res = client.patch(f"/workers/{worker['id']}/pin", json={"new_pin": "654321"}, headers=auth_headers)
    assert res.status_code == 200

    assert client.post("/time-registrations/toggle", json={"pin": "1234"}).status_code == 401
    assert client.post("/time-registrations/toggle", json={"pin": "654321"}).status_code == 201


def test_rotate_pin_to_own_pin_is_allowed(client, make_worker, auth_headers):
    worker = make_worker(pin="1234")
    res = client.patch(f"/workers/{worker['id']}/pin", json={"new_pin": "1234"}, headers=auth_headers)
    assert res.status_code == 200


def test_rotate_pin_to_other_workers_pin_conflicts(client, make_worker, auth_headers):
    make_worker(first_name="Ada", pin="1234")
    bob = make_worker(first_name="Bob", pin="5678")
    res = client.patch(f"/workers/{bob['id']}/pin", json={"new_pin": "1234"}, headers=auth_headers)
    assert res.status_code == 409
    assert res.json()["error"]["message"] == "PIN already in use"


def test_deactivate_is_soft_delete(client, make_worker, auth_headers):
    worker = make_worker()
    res = client.delete(f"/workers/{worker['id']}", headers=auth_headers)
    assert res.status_code == 200

    stored = db.get_worker_by_id(worker["id"])
    assert stored is not None
    assert stored["is_active"] is False

    res = client.delete("/workers/00000000-0000-4000-8000-000000000000", headers=auth_headers)
    assert res.status_code == 404


def test_active_workers_kiosk_listing(client, make_worker):
    ada = make_worker(first_name="Ada", pin="1111")
    bob = make_worker(first_name="Bob", pin="2222")
    client.post("/time-registrations/toggle", json={"pin": "2222"})

    res = client.get("/workers/active")
    assert res.status_code == 200
    workers = {w["id"]: w for w in res.json()["data"]["workers"]}
    assert workers[ada["id"]]["has_active_registration"] is False
    assert workers[bob["id"]]["has_active_registration"] is True
    assert all("pin_hash" not in w for w in workers.values())


def test_worker_management_requires_admin(client):
    assert client.get("/workers").status_code == 401
    assert client.post("/workers", json={}).status_code == 401

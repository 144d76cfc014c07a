import pytest
from fastapi.testclient import TestClient

import backend.config as config
import backend.main as main
import database.db as db


@pytest.fixture()
def client(tmp_path, monkeypatch):
    test_db = tmp_path / "timetrack_test.db"

    # Point DB to a temp file for isolation.
    monkeypatch.setattr(config, "DB_PATH", test_db)
    monkeypatch.setattr(db, "DB_PATH", test_db)
    # Cheapest bcrypt cost keeps PIN scans fast.
    monkeypatch.setattr(config, "PIN_HASH_ROUNDS", 4)

    db.create_tables()

    with TestClient(main.app) as c:
        yield c


@pytest.fixture()
def auth_headers(client):
    res = client.post(
        "/auth/login",
        json={
            "username": config.ADMIN_USERNAME,
            "password": config.ADMIN_PASSWORD,
        },
    )
    assert res.status_code == 200
    token = res.json()["data"]["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def admin_id(client):
    admin = db.verify_admin_credentials(config.ADMIN_USERNAME, config.ADMIN_PASSWORD)
    return admin["id"]


@pytest.fixture()
def make_worker(client, auth_headers):
    def _make(first_name="Ada", last_name="Lovelace", pin="1234", department="Ops"):
        res = client.post(
            "/workers",
            json={
                "first_name": first_name,
                "last_name": last_name,
                "pin": pin,
                "department": department,
            },
            headers=auth_headers,
        )
        assert res.status_code == 201, res.text
        return res.json()["data"]

    return _make


def _insert_registration(
    worker_id: str,
    *,
    check_in: str,
    check_out: str | None = None,
    manual_intervention: bool = False,
    created_at: str | None = None,
) -> str:
    """Write a registration row directly, bypassing the service rules."""
    conn = db.connect_db()
    cur = conn.cursor()
    reg_id = db._new_id()
    stamp = created_at or check_in
    cur.execute(
        """
        INSERT INTO time_registrations (
            id, worker_id, check_in, check_out, status, manual_intervention,
            created_at, updated_at
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            reg_id,
            worker_id,
            check_in,
            check_out,
            "completed" if check_out else "in_progress",
            1 if manual_intervention else 0,
            stamp,
            stamp,
        ),
    )
    conn.commit()
    conn.close()
    return reg_id


@pytest.fixture()
def insert_registration(client):
    return _insert_registration

from backend.services.dashboard import summarize_registrations

JANUARY = {"date_from": "2025-01-01", "date_to": "2025-01-31"}


def _seed(make_worker, insert_registration):
    ada = make_worker(first_name="Ada", pin="1111")
    bob = make_worker(first_name="Bob", pin="2222")
    make_worker(first_name="Cy", pin="3333")

    insert_registration(ada["id"], check_in="2025-01-10T08:00:00.000Z", check_out="2025-01-10T16:00:00.000Z")
    insert_registration(
        ada["id"],
        check_in="2025-01-11T08:00:00.000Z",
        check_out="2025-01-11T12:00:00.000Z",
        manual_intervention=True,
    )
    insert_registration(
        bob["id"],
        check_in="2025-01-12T08:00:00.000Z",
        check_out="2025-01-12T18:00:00.000Z",
        manual_intervention=True,
    )
    insert_registration(bob["id"], check_in="2025-01-13T08:00:00.000Z")
    # outside the window
    insert_registration(
        ada["id"],
        check_in="2024-12-31T08:00:00.000Z",
        check_out="2024-12-31T09:00:00.000Z",
        manual_intervention=True,
    )
    return ada, bob


def test_dashboard_stats_for_window(client, auth_headers, make_worker, insert_registration):
    _seed(make_worker, insert_registration)

    res = client.get("/admin/dashboard/stats", params=JANUARY, headers=auth_headers)
    assert res.status_code == 200
    stats = res.json()["data"]

    assert stats["time_period"] == {
        "from": "2025-01-01T00:00:00.000Z",
        "to": "2025-01-31T23:59:59.999Z",
    }
    assert stats["registrations"] == {
        "total": 4,
        "completed": 3,
        "in_progress": 1,
        "manual_interventions": 2,
        "manual_intervention_rate": 50,
    }
    assert stats["workers"] == {
        "total": 3,
        "active": 3,
        "inactive": 0,
        "with_active_registration": 1,
    }
    assert stats["work_hours"] == {
        "total_hours": 22,
        "average_per_registration": 7.33,
        "average_per_worker": 7.33,
    }
    assert stats["performance"] == {"successful_registrations_rate": 75}


def test_dashboard_counts_inactive_workers(client, auth_headers, make_worker):
    make_worker(first_name="Ada", pin="1111")
    bob = make_worker(first_name="Bob", pin="2222")
    client.delete(f"/workers/{bob['id']}", headers=auth_headers)

    res = client.get("/admin/dashboard/stats", headers=auth_headers)
    workers = res.json()["data"]["workers"]
    assert workers["total"] == 2
    assert workers["active"] == 1
    assert workers["inactive"] == 1


def test_dashboard_stats_with_no_data(client, auth_headers):
    res = client.get("/admin/dashboard/stats", headers=auth_headers)
    assert res.status_code == 200
    stats = res.json()["data"]
    assert stats["registrations"]["total"] == 0
    assert stats["registrations"]["manual_intervention_rate"] == 0
    assert stats["performance"]["successful_registrations_rate"] == 0
    assert stats["work_hours"] == {
        "total_hours": 0,
        "average_per_registration": 0,
        "average_per_worker": 0,
    }
    assert stats["recent_activity"] == {"today_registrations": 0, "today_hours": 0}


def test_dashboard_today_activity(client, auth_headers, make_worker):
    make_worker(pin="1111")
    client.post("/time-registrations/toggle", json={"pin": "1111"})

    res = client.get("/admin/dashboard/stats", headers=auth_headers)
    stats = res.json()["data"]
    assert stats["registrations"]["in_progress"] == 1
    assert stats["recent_activity"]["today_registrations"] == 1
    assert stats["recent_activity"]["today_hours"] == 0


def test_dashboard_rejects_bad_dates(client, auth_headers):
    res = client.get("/admin/dashboard/stats", params={"date_from": "last week"}, headers=auth_headers)
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "BAD_REQUEST"


def test_recent_entries_newest_first(client, auth_headers, make_worker, insert_registration):
    worker = make_worker()
    insert_registration(
        worker["id"],
        check_in="2025-01-10T08:00:00.000Z",
        check_out="2025-01-10T16:00:00.000Z",
        created_at="2025-01-10T08:00:00.000Z",
    )
    newest = insert_registration(
        worker["id"],
        check_in="2025-01-12T08:00:00.000Z",
        created_at="2025-01-12T08:00:00.000Z",
    )
    middle = insert_registration(
        worker["id"],
        check_in="2025-01-11T08:00:00.000Z",
        check_out="2025-01-11T09:30:00.000Z",
        created_at="2025-01-11T08:00:00.000Z",
    )

    res = client.get("/admin/dashboard/recent-entries", params={"limit": 2}, headers=auth_headers)
    assert res.status_code == 200
    entries = res.json()["data"]["entries"]
    assert [e["id"] for e in entries] == [newest, middle]
    assert entries[0]["duration_hours"] is None
    assert entries[1]["duration_hours"] == 1.5
    assert entries[1]["worker"] == {
        "id": worker["id"],
        "first_name": worker["first_name"],
        "last_name": worker["last_name"],
    }


def test_recent_entries_limit_is_capped(client, auth_headers):
    res = client.get("/admin/dashboard/recent-entries", params={"limit": 51}, headers=auth_headers)
    assert res.status_code == 422


def test_dashboard_requires_admin(client):
    assert client.get("/admin/dashboard/stats").status_code == 401
    assert client.get("/admin/dashboard/recent-entries").status_code == 401


def test_summarize_registrations():
    regs = [
        {"status": "completed", "manual_intervention": False,
         "check_in": "2025-01-10T08:00:00.000Z", "check_out": "2025-01-10T09:00:00.000Z"},
        {"status": "completed", "manual_intervention": True,
         "check_in": "2025-01-11T08:00:00.000Z", "check_out": "2025-01-11T10:00:00.000Z"},
        {"status": "in_progress", "manual_intervention": False,
         "check_in": "2025-01-12T08:00:00.000Z", "check_out": None},
    ]
    summary = summarize_registrations(regs)
    assert summary["total"] == 3
    assert summary["completed"] == 2
    assert summary["in_progress"] == 1
    assert summary["manual_interventions"] == 1
    assert summary["manual_intervention_rate"] == 33.33
    assert summary["successful_registrations_rate"] == 66.67
    assert summary["total_hours"] == 3


def test_summarize_empty():
    summary = summarize_registrations([])
    assert summary["manual_intervention_rate"] == 0
    assert summary["successful_registrations_rate"] == 0
    assert summary["total_hours"] == 0

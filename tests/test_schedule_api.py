from __future__ import annotations

from fastapi.testclient import TestClient

from barbershop.main import app

START = "2026-10-19"


def create_barber(client: TestClient, name: str) -> dict:
    response = client.post("/api/barbers", json={"name": name})
    assert response.status_code == 201
    return response.json()


def generate(client: TestClient, start_date: str = START):
    return client.post("/api/schedules/generate", json={"start_date": start_date})


def test_generate_requires_two_active_barbers():
    client = TestClient(app)
    create_barber(client, "Alex")

    response = generate(client)
    assert response.status_code == 400
    assert "insufficient staff" in response.json()["detail"]


def test_generate_returns_entries_statistics_and_validation():
    client = TestClient(app)
    alex = create_barber(client, "Alex")
    budi = create_barber(client, "Budi")

    response = generate(client)
    assert response.status_code == 200
    body = response.json()

    assert len(body["entries"]) == 14
    assert body["validation"] == {"valid": True, "errors": []}
    first = body["entries"][0]
    assert first == {
        "staff_id": alex["id"],
        "staff_name": "Alex",
        "schedule_date": "2026-10-19",
        "shift": "half",
        "day_of_week": 1,
        "date_display": "19/10",
    }
    stats = {row["staff_id"]: row for row in body["statistics"]}
    assert stats[alex["id"]]["full_shifts"] == 3
    assert stats[budi["id"]]["full_shifts"] == 5
    assert all(row["total_work_days"] + row["days_off"] == 7 for row in body["statistics"])

    # Nothing is persisted until the schedule is applied.
    listed = client.get("/api/schedules", params={"start": START, "end": "2026-10-25"})
    assert listed.json() == []


def test_generate_uses_name_order_and_skips_inactive_barbers():
    client = TestClient(app)
    create_barber(client, "Citra")
    create_barber(client, "Alex")
    budi = create_barber(client, "Budi")
    client.patch(f"/api/barbers/{budi['id']}", json={"is_active": False})

    body = generate(client).json()

    assert [e["staff_name"] for e in body["entries"][:2]] == ["Alex", "Citra"]
    assert budi["id"] not in {e["staff_id"] for e in body["entries"]}


def test_generate_is_deterministic_across_requests():
    client = TestClient(app)
    for name in ("Alex", "Budi", "Citra"):
        create_barber(client, name)

    assert generate(client).json() == generate(client).json()


def test_apply_persists_generated_week_and_upserts_on_reapply():
    client = TestClient(app)
    create_barber(client, "Alex")
    create_barber(client, "Budi")
    create_barber(client, "Citra")
    entries = generate(client).json()["entries"]

    applied = client.post("/api/schedules/apply", json={"entries": entries})
    assert applied.status_code == 200
    assert applied.json() == {"ok": True, "saved": 21}

    again = client.post("/api/schedules/apply", json={"entries": entries})
    assert again.status_code == 200

    listed = client.get("/api/schedules", params={"start": START, "end": "2026-10-25"}).json()
    assert len(listed) == 21
    assert listed[0]["schedule_date"] == START
    assert listed[0]["barber_name"] == "Alex"
    offs = [row for row in listed if row["shift"] == "off"]
    assert len(offs) == 3


def test_apply_rejects_week_with_coverage_gap():
    client = TestClient(app)
    create_barber(client, "Alex")
    create_barber(client, "Budi")
    entries = generate(client).json()["entries"]
    for entry in entries:
        if entry["schedule_date"] == "2026-10-20":
            entry["shift"] = "off"

    response = client.post("/api/schedules/apply", json={"entries": entries})

    assert response.status_code == 422
    assert response.json()["detail"] == {"errors": ["2026-10-20: insufficient coverage (only 0 staff working)"]}
    assert client.get("/api/schedules", params={"start": START, "end": "2026-10-25"}).json() == []


def test_apply_rejects_unknown_barbers():
    client = TestClient(app)
    create_barber(client, "Alex")
    create_barber(client, "Budi")
    entries = generate(client).json()["entries"]
    entries[0]["staff_id"] = "does-not-exist"

    response = client.post("/api/schedules/apply", json={"entries": entries})
    assert response.status_code == 400
    assert "does-not-exist" in response.json()["detail"]


def test_single_schedule_upsert_and_delete():
    client = TestClient(app)
    alex = create_barber(client, "Alex")

    first = client.put("/api/schedules", json={"barber_id": alex["id"], "schedule_date": "2026-10-21", "shift": "full"})
    assert first.status_code == 200
    second = client.put("/api/schedules", json={"barber_id": alex["id"], "schedule_date": "2026-10-21", "shift": "off"})
    assert second.status_code == 200
    assert second.json()["id"] == first.json()["id"]

    listed = client.get("/api/schedules", params={"start": "2026-10-01", "end": "2026-10-31"}).json()
    assert [(row["barber_name"], row["shift"]) for row in listed] == [("Alex", "off")]

    deleted = client.delete(f"/api/schedules/{alex['id']}/2026-10-21")
    assert deleted.status_code == 200
    missing = client.delete(f"/api/schedules/{alex['id']}/2026-10-21")
    assert missing.status_code == 404


def test_schedule_upsert_validates_shift_and_barber():
    client = TestClient(app)
    alex = create_barber(client, "Alex")

    bad_shift = client.put("/api/schedules", json={"barber_id": alex["id"], "schedule_date": "2026-10-21", "shift": "night"})
    assert bad_shift.status_code == 422
    unknown = client.put("/api/schedules", json={"barber_id": "nobody", "schedule_date": "2026-10-21", "shift": "full"})
    assert unknown.status_code == 404


def test_list_schedules_rejects_inverted_range():
    client = TestClient(app)
    response = client.get("/api/schedules", params={"start": "2026-10-25", "end": "2026-10-19"})
    assert response.status_code == 400


def test_deleting_barber_removes_their_schedules():
    client = TestClient(app)
    alex = create_barber(client, "Alex")
    create_barber(client, "Budi")
    entries = generate(client).json()["entries"]
    client.post("/api/schedules/apply", json={"entries": entries})

    assert client.delete(f"/api/barbers/{alex['id']}").status_code == 200

    listed = client.get("/api/schedules", params={"start": START, "end": "2026-10-25"}).json()
    assert len(listed) == 7
    assert {row["barber_name"] for row in listed} == {"Budi"}


def test_export_csv_lists_persisted_rows():
    client = TestClient(app)
    create_barber(client, "Alex")
    create_barber(client, "Budi")
    entries = generate(client).json()["entries"]
    client.post("/api/schedules/apply", json={"entries": entries})

    response = client.get("/api/schedules/export/csv", params={"start": START, "end": START})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    lines = response.text.strip().splitlines()
    assert lines[0] == "schedule_date,barber_id,barber_name,shift"
    assert len(lines) == 3
    assert lines[1].endswith(",Alex,half")

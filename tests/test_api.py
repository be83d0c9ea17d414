from fastapi.testclient import TestClient

from barbershop.main import app


def test_health_reports_environment(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "staging")
    client = TestClient(app)
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True, "env": "staging"}


def test_api_responses_are_not_cached():
    client = TestClient(app)
    r = client.get("/api/barbers")
    assert r.status_code == 200
    assert r.headers["Cache-Control"].startswith("no-store")


def test_barber_crud_flow():
    client = TestClient(app)

    created = client.post("/api/barbers", json={"name": "  Budi "})
    assert created.status_code == 201
    budi = created.json()
    assert budi["name"] == "Budi"
    assert budi["is_active"] is True
    client.post("/api/barbers", json={"name": "Alex"})

    duplicate = client.post("/api/barbers", json={"name": "budi"})
    assert duplicate.status_code == 409
    blank = client.post("/api/barbers", json={"name": "   "})
    assert blank.status_code == 400

    listed = client.get("/api/barbers").json()
    assert [b["name"] for b in listed] == ["Alex", "Budi"]

    patched = client.patch(f"/api/barbers/{budi['id']}", json={"is_active": False})
    assert patched.status_code == 200
    assert patched.json()["is_active"] is False
    active = client.get("/api/barbers", params={"active_only": True}).json()
    assert [b["name"] for b in active] == ["Alex"]

    empty_patch = client.patch(f"/api/barbers/{budi['id']}", json={})
    assert empty_patch.status_code == 400
    clash = client.patch(f"/api/barbers/{budi['id']}", json={"name": "Alex"})
    assert clash.status_code == 409

    assert client.delete(f"/api/barbers/{budi['id']}").status_code == 200
    assert client.delete(f"/api/barbers/{budi['id']}").status_code == 404


def test_service_and_product_crud_flow():
    client = TestClient(app)

    haircut = client.post("/api/services", json={"service_name": "Haircut", "price": 50000})
    assert haircut.status_code == 201
    client.post("/api/services", json={"service_name": "Beard Trim", "price": 30000})
    negative = client.post("/api/services", json={"service_name": "Shave", "price": -1})
    assert negative.status_code == 422

    services = client.get("/api/services").json()
    assert [(s["service_name"], s["price"]) for s in services] == [("Beard Trim", 30000), ("Haircut", 50000)]

    updated = client.patch(f"/api/services/{haircut.json()['id']}", json={"price": 55000})
    assert updated.json()["price"] == 55000
    assert client.delete(f"/api/services/{haircut.json()['id']}").status_code == 200
    assert client.patch(f"/api/services/{haircut.json()['id']}", json={"price": 1}).status_code == 404

    pomade = client.post("/api/products", json={"product_name": "Pomade", "price": 25000})
    assert pomade.status_code == 201
    renamed = client.patch(f"/api/products/{pomade.json()['id']}", json={"product_name": "Matte Pomade"})
    assert renamed.json() == {"id": pomade.json()["id"], "product_name": "Matte Pomade", "price": 25000}
    assert [p["product_name"] for p in client.get("/api/products").json()] == ["Matte Pomade"]
    assert client.delete(f"/api/products/{pomade.json()['id']}").status_code == 200
    assert client.get("/api/products").json() == []

from __future__ import annotations

import inspect

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from reliefops.api import sync as sync_api
from reliefops.api.deps import get_balance_cache, get_session_factory, get_sync_service
from reliefops.api.router import api_router
from reliefops.core.database import get_db
from reliefops.models import Category
from reliefops.services import SyncService

from .conftest import make_engine


@pytest.fixture
def client(session_factory, cache):
    app = FastAPI()
    app.include_router(api_router, prefix="/api")

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_balance_cache] = lambda: cache
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def headers(seed):
    return {"X-User-Id": str(seed.user_id)}


def test_stock_endpoints(client, seed, headers):
    response = client.post("/api/stocks", json={"relief_good_id": seed.good_id, "quantity": 100}, headers=headers)
    assert response.status_code == 201
    stock = response.json()
    assert stock["max_capacity"] == 1000
    assert stock["status"] == "Low"
    assert stock["percent_full"] == 10.0

    response = client.post(f"/api/stocks/{stock['id']}/adjust", json={"delta": -150}, headers=headers)
    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "INSUFFICIENT_STOCK"
    assert body["category"] == "BusinessRule"
    assert body["message"]

    assert client.get(f"/api/stocks/{stock['id']}").json()["quantity"] == 100
    assert client.get("/api/stocks/9999").status_code == 404


def test_missing_good_maps_to_404(client, seed):
    response = client.post("/api/stocks", json={"relief_good_id": 9999, "quantity": 1})
    assert response.status_code == 404
    assert response.json()["error"] == "NOT_FOUND"


def test_budget_endpoints(client, seed, headers):
    response = client.post(
        "/api/budgets", json={"barangay_name": "Lahug", "year": 2025, "total_amount": "5000"}, headers=headers
    )
    assert response.status_code == 201
    budget_id = response.json()["id"]

    item = {"category": "Relief", "description": "Rice", "amount": "4000"}
    assert client.post(f"/api/budgets/{budget_id}/items", json=item, headers=headers).status_code == 201

    item["amount"] = "1500"
    response = client.post(f"/api/budgets/{budget_id}/items", json=item, headers=headers)
    assert response.status_code == 409
    assert response.json()["error"] == "INSUFFICIENT_BUDGET"
    assert response.json()["details"]["available"] == 1000.0

    assert client.get(f"/api/budgets/{budget_id}/balance").json() == {"budget_id": budget_id, "balance": 1000.0}
    assert len(client.get(f"/api/budgets/{budget_id}").json()["items"]) == 1

    response = client.post("/api/budgets", json={"barangay_name": "Lahug", "year": 1999, "total_amount": "1"})
    assert response.status_code == 422
    assert response.json()["category"] == "Validation"

    response = client.post("/api/budgets", json={"barangay_name": "lahug", "year": 2025, "total_amount": "1"})
    assert response.status_code == 409
    assert response.json()["error"] == "DUPLICATE"


def test_allocation_and_distribution_endpoints(client, seed, headers):
    stock = client.post("/api/stocks", json={"relief_good_id": seed.good_id, "quantity": 200}).json()
    payload = {"stock_id": stock["id"], "shelter_id": seed.shelter_id, "quantity": 50}

    response = client.post("/api/allocations", json=payload)
    assert response.status_code == 403
    assert response.json()["error"] == "UNAUTHORIZED"

    assert client.post("/api/allocations", json=payload, headers={"X-User-Id": "9999"}).status_code == 403

    response = client.post("/api/allocations", json=payload, headers=headers)
    assert response.status_code == 201
    allocation = response.json()
    assert client.get(f"/api/stocks/{stock['id']}").json()["quantity"] == 150

    release = {"allocation_id": allocation["id"], "evacuee_id": seed.evacuee_id, "quantity": 30}
    assert client.post("/api/distributions", json=release, headers=headers).status_code == 201
    response = client.post("/api/distributions", json=release, headers=headers)
    assert response.status_code == 409
    assert response.json()["error"] == "EXCEEDS_ALLOCATION"

    assert client.get(f"/api/allocations/{allocation['id']}/remaining").json()["remaining"] == 20
    assert len(client.get(f"/api/distributions/evacuee/{seed.evacuee_id}").json()) == 1
    assert [a["id"] for a in client.get(f"/api/allocations?shelter_id={seed.shelter_id}").json()] == [allocation["id"]]


def test_archive_endpoints(client, db, seed, headers):
    db.add(Category(id=7, name="Medical Supplies"))
    db.commit()

    response = client.post("/api/archives", json={"entity_type": "Category", "entity_id": 7}, headers=headers)
    assert response.status_code == 201

    archives = client.get("/api/archives").json()
    assert len(archives) == 1
    archive_id = archives[0]["id"]
    assert client.get("/api/archives/counts").json() == {"Category": 1}
    assert "Medical Supplies" in client.get(f"/api/archives/{archive_id}").json()["archived_data"]

    response = client.post(f"/api/archives/{archive_id}/restore", json={"expected_type": "Shelter"})
    assert response.status_code == 422
    assert response.json()["error"] == "TYPE_MISMATCH"

    assert client.post(f"/api/archives/{archive_id}/restore", headers=headers).status_code == 200
    assert client.get("/api/archives").json() == []

    logs = client.get("/api/audit/logs", params={"entity_type": "Category"}).json()
    assert [entry["action"] for entry in logs][:2] == ["RESTORE", "RESTORE"]
    assert logs[0]["is_successful"] is True
    assert logs[1]["is_successful"] is False


def test_status_and_health(client):
    assert client.get("/api/status").json()["status"] == "ok"

    from main import app

    assert TestClient(app).get("/health").json()["status"] == "healthy"


def test_sync_endpoints_run_off_the_event_loop():
    for handler in (sync_api.sync_status, sync_api.sync_history, sync_api.trigger_sync):
        assert not inspect.iscoroutinefunction(handler)


def test_sync_endpoints(client, engine, tmp_path, seed):
    remote_engine = make_engine(tmp_path / "remote.db")
    service = SyncService(engine, remote_engine=remote_engine)
    client.app.dependency_overrides[get_sync_service] = lambda: service
    try:
        assert client.get("/api/sync/status").json() == {"is_running": False, "online": True}

        response = client.post("/api/sync/trigger", params={"direction": "push"})
        assert response.status_code == 200
        assert response.json()["stats"]["pushed"]["category"]["inserted"] == 1

        assert client.post("/api/sync/trigger", params={"direction": "sideways"}).status_code == 422

        history = client.get("/api/sync/history").json()
        assert [(run["direction"], run["status"]) for run in history] == [("push", "success")]
    finally:
        remote_engine.dispose()


def test_sync_trigger_offline_maps_to_500(client, engine):
    client.app.dependency_overrides[get_sync_service] = lambda: SyncService(engine)

    response = client.post("/api/sync/trigger")

    assert response.status_code == 500
    assert response.json()["error"] == "REMOTE_OFFLINE"

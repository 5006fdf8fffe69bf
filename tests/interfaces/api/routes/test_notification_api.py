"""Integration tests for the notification HTTP API."""

from __future__ import annotations

from datetime import timedelta

import pytest

pytest.importorskip("fastapi")
from fastapi.testclient import TestClient

from app.utils import now_in_app_timezone
from main import create_app


@pytest.fixture
def client():
    with TestClient(create_app()) as test_client:
        yield test_client


def test_list_and_get_rules(client):
    response = client.get("/notification-rules")

    assert response.status_code == 200
    ids = {rule["id"] for rule in response.json()}
    assert {"invoice_due_soon", "low_stock_alert", "supplier_payment_due"} <= ids

    rule = client.get("/notification-rules/low_stock_alert").json()
    assert rule["condition"] == {"field": "stock", "operator": "less_than", "threshold": 10}
    assert rule["template"]["priority"] == "high"

    assert client.get("/notification-rules/missing").status_code == 404


def test_disable_enable_and_patch_rule(client):
    disabled = client.post("/notification-rules/low_stock_alert/disable")
    assert disabled.status_code == 200
    assert disabled.json()["enabled"] is False

    smart = client.post(
        "/notifications/smart",
        json={"category": "inventory", "type": "low_stock", "user_id": "u1", "data": {"stock": 1}},
    )
    assert smart.json() == {"created": False}

    assert client.post("/notification-rules/low_stock_alert/enable").json()["enabled"] is True

    patched = client.patch(
        "/notification-rules/low_stock_alert",
        json={"condition": {"threshold": 3}},
    )
    assert patched.status_code == 200
    assert patched.json()["condition"]["threshold"] == 3

    assert client.patch("/notification-rules/low_stock_alert", json={}).status_code == 400
    assert (
        client.patch("/notification-rules/low_stock_alert", json={"condition": {"operator": "between"}}).status_code
        == 422
    )
    assert client.post("/notification-rules/missing/enable").status_code == 404


def test_smart_notification_flow(client):
    payload = {
        "category": "inventory",
        "type": "low_stock",
        "user_id": "u1",
        "company_id": "c1",
        "data": {"product_id": 5, "product_name": "Rice", "stock": 2},
    }

    assert client.post("/notifications/smart", json=payload).json() == {"created": True}
    assert client.post("/notifications/smart", json=payload).json() == {"created": False}

    notifications = client.get("/users/u1/notifications").json()
    assert len(notifications) == 1
    notification = notifications[0]
    assert notification["message"] == 'Product "Rice" reached its minimum level (2 units)'
    assert notification["related_entity_id"] == "5"
    assert notification["read_at"] is None

    marked = client.post("/users/u1/notifications/read", json={"ids": [notification["id"]] * 2})
    assert marked.json() == {"updated": 1}
    assert client.get("/users/u1/notifications", params={"unread_only": True}).json() == []


def test_websocket_receives_pending_notifications(client):
    client.post(
        "/notifications/smart",
        json={
            "category": "cash_flow",
            "type": "low_balance",
            "user_id": "u9",
            "data": {"current_balance": 500},
        },
    )

    with client.websocket_connect("/notifications/ws?user_id=u9") as websocket:
        init = websocket.receive_json()
        assert init["type"] == "init"
        assert init["data"][0]["category"] == "cash_flow"

        websocket.send_json({"type": "ping"})
        assert websocket.receive_json() == {"type": "pong"}


def test_scheduled_notification_lifecycle(client):
    due = (now_in_app_timezone() - timedelta(minutes=1)).isoformat()
    created = client.post(
        "/scheduled-notifications",
        json={
            "user_id": "u1",
            "category": "inventory",
            "type": "daily_check",
            "scheduled_for": due,
            "data": {"user_id": "u1"},
            "recurring": True,
            "frequency": "daily",
        },
    )
    assert created.status_code == 201
    job = created.json()
    assert job["executed"] is False
    assert job["frequency"] == "daily"

    listed = client.get("/users/u1/scheduled-notifications").json()
    assert [item["id"] for item in listed] == [job["id"]]

    report = client.post("/scheduled-notifications/run").json()
    assert report["executed"] == [job["id"]]
    assert len(report["enqueued"]) == 1

    status = client.get("/scheduled-notifications/status").json()
    assert status["enabled"] is False
    assert status["running"] is False
    assert status["next_run_at"] is None
    assert status["pending_jobs"] == 1
    assert status["last_report"]["executed"] == [job["id"]]

    successor_id = report["enqueued"][0]
    assert client.delete(f"/scheduled-notifications/{successor_id}").status_code == 204
    assert client.delete(f"/scheduled-notifications/{successor_id}").status_code == 404


def test_recurring_job_without_frequency_is_rejected(client):
    response = client.post(
        "/scheduled-notifications",
        json={
            "user_id": "u1",
            "category": "inventory",
            "type": "daily_check",
            "scheduled_for": now_in_app_timezone().isoformat(),
            "recurring": True,
        },
    )

    assert response.status_code == 422


def test_setup_user_schedule_from_snapshots(client):
    due = now_in_app_timezone() + timedelta(days=10)
    put = client.put(
        "/snapshots/invoices",
        json={
            "records": [
                {"id": "inv-1", "user_id": "u1", "invoice_number": "INV-1", "due_date": due.isoformat()}
            ]
        },
    )
    assert put.status_code == 200
    assert put.json()["count"] == 1
    assert client.get("/snapshots/invoices").json()["records"][0]["id"] == "inv-1"
    assert client.get("/snapshots/unknown").status_code == 404

    setup = client.post("/users/u1/scheduled-notifications/setup", json={"company_id": "c1"})
    assert setup.status_code == 200
    assert len(setup.json()["job_ids"]) == 5

    types = sorted(job["type"] for job in client.get("/users/u1/scheduled-notifications").json())
    assert types == [
        "daily_check",
        "due_reminder",
        "due_today",
        "monthly_report",
        "weekly_overdue_check",
    ]


def test_backup_export_and_restore(client):
    client.put("/snapshots/products", json={"records": [{"id": 1, "stock": 3}]})

    document = client.post("/backups/export", json={"keys": ["products"]}).json()
    assert document["keys"] == ["products"]
    assert document["entry_count"] == 1

    client.put("/snapshots/products", json={"records": []})
    restored = client.post("/backups/restore", json={"document": document})
    assert restored.json() == {"restored_keys": ["products"]}
    assert client.get("/snapshots/products").json()["records"] == [{"id": 1, "stock": 3}]

    tampered = {**document, "sha256": "0" * 64}
    assert client.post("/backups/restore", json={"document": tampered}).status_code == 400


def test_encrypted_backup_needs_the_password(client):
    client.put("/snapshots/products", json={"records": [{"id": 7, "stock": 1}]})

    document = client.post(
        "/backups/export", json={"keys": ["products"], "password": "s3cret"}
    ).json()
    assert document["encryption"]["kdf"] == "PBKDF2-HMAC-SHA256"

    wrong = client.post("/backups/restore", json={"document": document, "password": "nope"})
    assert wrong.status_code == 400
    missing = client.post("/backups/restore", json={"document": document})
    assert missing.status_code == 400

    client.put("/snapshots/products", json={"records": []})
    restored = client.post("/backups/restore", json={"document": document, "password": "s3cret"})
    assert restored.json() == {"restored_keys": ["products"]}
    assert client.get("/snapshots/products").json()["records"] == [{"id": 7, "stock": 1}]


def test_restoring_rule_overrides_resets_later_changes(client):
    client.post("/notification-rules/low_cash_balance/disable")
    document = client.post(
        "/backups/export", json={"keys": ["notification_rule_overrides"]}
    ).json()

    client.post("/notification-rules/low_stock_alert/disable")
    restored = client.post("/backups/restore", json={"document": document})

    assert restored.json() == {"restored_keys": ["notification_rule_overrides"]}
    assert client.get("/notification-rules/low_stock_alert").json()["enabled"] is True
    assert client.get("/notification-rules/low_cash_balance").json()["enabled"] is False

"""Tests for the receiving collector app."""

from __future__ import annotations

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from triostack_audit.collector.app import create_app
from triostack_audit.collector.store import EventStore
from triostack_audit.server import RequestInfo, create_audit_server


@pytest.fixture
def store():
    return EventStore(max_events=10)


@pytest.fixture
def client(store):
    return TestClient(create_app(store))


def test_receive_and_list(client):
    resp = client.post("/audit", json={"route": "/", "userId": "alice", "duration": 1})
    assert resp.status_code == 200
    assert resp.json()["success"] is True

    client.post("/audit-log", json={"route": "/b", "userId": "bob", "duration": 0})
    listing = client.get("/audit").json()
    assert listing["totalEvents"] == 2
    assert [e["route"] for e in listing["events"]] == ["/", "/b"]
    assert "receivedAt" in listing["events"][0]


def test_clear(client):
    client.post("/audit", json={"route": "/"})
    assert client.delete("/audit").json()["success"] is True
    assert client.get("/audit").json()["totalEvents"] == 0


def test_health(client):
    client.post("/audit", json={"route": "/"})
    health = client.get("/health").json()
    assert health["status"] == "healthy"
    assert health["eventsReceived"] == 1
    assert health["uptime"] >= 0


def test_store_is_bounded(client, store):
    for i in range(15):
        client.post("/audit", json={"route": f"/r{i}"})
    assert len(store) == 10
    assert store.list()[0]["route"] == "/r5"


def test_store_persists_jsonl(tmp_path):
    path = tmp_path / "events.jsonl"
    store = EventStore(log_path=path)
    store.add({"route": "/a"})
    record = json.loads(path.read_text().strip())
    assert record["route"] == "/a"
    assert "receivedAt" in record


@pytest.mark.asyncio
async def test_server_engine_delivers_to_collector():
    store = EventStore()
    collector = create_app(store)
    server = create_audit_server(
        db_url="http://collector/audit",
        transport=httpx.ASGITransport(app=collector),
    )
    info = RequestInfo(method="GET", path="/api/users", headers={"x-user-id": "user-001"}, client_host="127.0.0.1")
    event = await server.track(info, status_code=200, duration=1)
    await server.aclose()

    assert event is not None
    assert len(store) == 1
    received = store.list()[0]
    assert received["sessionId"] == server.session_id
    assert received["userId"] == "user-001"
    assert received["statusCode"] == 200

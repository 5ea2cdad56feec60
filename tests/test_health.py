"""
Health Endpoint Tests
=====================
Covers:
    - GET /health reports the worker name, a timestamp and the queue state
"""
from types import SimpleNamespace

from fastapi import FastAPI
from fastapi.testclient import TestClient

from fix_worker.api.health import router as health_router


def _make_app(queue=None) -> FastAPI:
    app = FastAPI()
    app.include_router(health_router)
    app.state.queue = queue
    app.state.worker_name = "fix-worker-test"
    return app


class TestHealth:

    def test_connected(self):
        client = TestClient(_make_app(SimpleNamespace(connected=True)))
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["worker"] == "fix-worker-test"
        assert data["redis"] == "connected"
        assert data["timestamp"]

    def test_disconnected(self):
        client = TestClient(_make_app(SimpleNamespace(connected=False)))
        assert client.get("/health").json()["redis"] == "disconnected"

    def test_no_queue_yet(self):
        client = TestClient(_make_app(None))
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert data["redis"] == "disconnected"

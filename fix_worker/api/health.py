"""
GET /health
Liveness of the worker process plus the last observed queue connection state.
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Request

from fix_worker.core.config import WORKER_NAME

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    queue = getattr(request.app.state, "queue", None)
    connected = bool(queue is not None and queue.connected)
    return {
        "status": "healthy",
        "worker": getattr(request.app.state, "worker_name", WORKER_NAME),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "redis": "connected" if connected else "disconnected",
    }

"""
Job Queue
=========
Redis-backed consumer of the fix-job list.

Producers RPUSH JSON payloads onto FIX_QUEUE_NAME; the worker BLPOPs them one
at a time, so jobs are handled in arrival order.

    pop(timeout) → JobPayload | None
        None        — the blocking pop timed out (a normal polling point)
        JobPayload  — decoded and validated payload
        raises MalformedJobError for undecodable or invalid payloads

``connected`` reflects the last observed state of the connection and backs
the health endpoint.
"""
import json
import logging
from typing import Optional

import redis.asyncio as redis
from pydantic import ValidationError

from fix_worker.core.config import DEQUEUE_TIMEOUT_SECONDS, FIX_QUEUE_NAME, REDIS_URL
from fix_worker.core.errors import MalformedJobError
from fix_worker.models.job import JobPayload

logger = logging.getLogger(__name__)


class RedisJobQueue:
    """Blocking FIFO consumer over a Redis list."""

    def __init__(
        self,
        url: Optional[str] = REDIS_URL,
        queue_name: str = FIX_QUEUE_NAME,
        client: Optional[redis.Redis] = None,
    ) -> None:
        self.url = url
        self.queue_name = queue_name
        self._client = client
        self.connected = False

    async def connect(self) -> None:
        if self._client is None:
            self._client = redis.from_url(self.url, decode_responses=True)
        try:
            await self._client.ping()
            self.connected = True
            logger.info("Connected to Redis queue %s", self.queue_name)
        except redis.RedisError:
            self.connected = False
            raise

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        self.connected = False
        logger.info("Redis connection closed")

    async def pop(self, timeout: int = DEQUEUE_TIMEOUT_SECONDS) -> Optional[JobPayload]:
        """
        Wait up to ``timeout`` seconds for the next job.

        Raises
        ------
        MalformedJobError
            If the payload is not JSON or fails validation.
        redis.RedisError
            On connection problems (``connected`` is cleared first).
        """
        if self._client is None:
            await self.connect()
        try:
            item = await self._client.blpop([self.queue_name], timeout=timeout)
        except redis.RedisError:
            self.connected = False
            raise
        self.connected = True

        if item is None:
            return None

        _, raw = item
        return decode_job(raw)


def decode_job(raw) -> JobPayload:
    """Decode one queue entry into a JobPayload."""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise MalformedJobError(f"Queue payload is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedJobError("Queue payload is not a JSON object")
    try:
        return JobPayload.model_validate(data)
    except ValidationError as e:
        raise MalformedJobError(f"Queue payload failed validation: {e.error_count()} error(s)") from e

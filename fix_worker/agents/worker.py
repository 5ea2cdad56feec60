"""
Fix Worker
==========
Supervisor loop: dequeue one job, run it, repeat.

Loop Iteration:
    1. Blocking pop with a bounded timeout (a timeout is just a polling point)
    2. Job received → JobRunner.run (one job in flight, no cancellation)
    3. Unexpected error (queue down, malformed payload, store write failed)
       → log and sleep for the backoff delay, then continue

Backoff:
    Fixed delay by default. With a cap above the base delay the pause doubles
    after each consecutive error up to the cap; a successful iteration
    resets it.

Shutdown:
    request_stop() stops further dequeues. A job already running finishes
    first; the loop then returns.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from fix_worker.agents.job_runner import JobRunner
from fix_worker.core.config import (
    DEQUEUE_TIMEOUT_SECONDS, ERROR_BACKOFF_MAX_SECONDS, ERROR_BACKOFF_SECONDS,
)

logger = logging.getLogger(__name__)


@dataclass
class BackoffPolicy:
    """Delay after consecutive loop errors."""
    base_seconds: float = ERROR_BACKOFF_SECONDS
    max_seconds: float = ERROR_BACKOFF_MAX_SECONDS

    def delay(self, consecutive_errors: int) -> float:
        if consecutive_errors <= 0:
            return 0.0
        if self.max_seconds <= self.base_seconds:
            return self.base_seconds
        return min(self.base_seconds * (2 ** (consecutive_errors - 1)), self.max_seconds)


class FixWorker:
    """
    Consumes the job queue until asked to stop.

    Parameters
    ----------
    queue : RedisJobQueue
        Job source (``pop(timeout)``).
    runner : JobRunner
        Executes each job.
    backoff : BackoffPolicy
        Delay policy after errors.
    dequeue_timeout : int
        Upper bound of one blocking pop, in seconds.
    """

    def __init__(
        self,
        queue,
        runner: JobRunner,
        backoff: Optional[BackoffPolicy] = None,
        dequeue_timeout: int = DEQUEUE_TIMEOUT_SECONDS,
    ) -> None:
        self.queue = queue
        self.runner = runner
        self.backoff = backoff or BackoffPolicy()
        self.dequeue_timeout = dequeue_timeout
        self.busy = False
        self.consecutive_errors = 0
        self._stopping = asyncio.Event()

    @property
    def stopping(self) -> bool:
        return self._stopping.is_set()

    def request_stop(self) -> None:
        logger.info("Stop requested%s", " (waiting for in-flight job)" if self.busy else "")
        self._stopping.set()

    async def run_once(self) -> bool:
        """
        One supervisor iteration.

        Returns
        -------
        bool
            True if a job was processed, False on a dequeue timeout.
        """
        job = await self.queue.pop(self.dequeue_timeout)
        if job is None:
            return False

        self.busy = True
        try:
            await self.runner.run(job)
        finally:
            self.busy = False
        return True

    async def run_forever(self) -> None:
        logger.info("Worker started, polling every %ss", self.dequeue_timeout)
        while not self.stopping:
            try:
                await self.run_once()
                self.consecutive_errors = 0
            except Exception as e:
                self.consecutive_errors += 1
                delay = self.backoff.delay(self.consecutive_errors)
                logger.error("Worker error (%d in a row): %s; retrying in %.1fs", self.consecutive_errors, e, delay)
                await self._sleep(delay)
        logger.info("Worker stopped")

    async def _sleep(self, seconds: float) -> None:
        """Sleep, but wake early when a stop is requested."""
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

"""
Fix Worker Unit Tests
=====================
Covers:
    - BackoffPolicy: fixed and exponential delays
    - run_once: dequeue timeout vs. job processed, busy flag
    - run_forever: errors are logged and backed off, never fatal
    - Graceful stop, including a stop requested mid-job
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from fix_worker.agents.job_runner import JobRunner
from fix_worker.agents.worker import BackoffPolicy, FixWorker
from fix_worker.core.errors import MalformedJobError
from fix_worker.models.job import JobPayload
from fix_worker.services.job_queue import RedisJobQueue


def _make_job(job_id="job-1") -> JobPayload:
    return JobPayload(job_id=job_id, question="fix")


def _make_worker(pop_side_effect, run_side_effect=None, backoff=None):
    queue = MagicMock(spec=RedisJobQueue)
    queue.pop = AsyncMock(side_effect=pop_side_effect)
    runner = MagicMock(spec=JobRunner)
    runner.run = AsyncMock(side_effect=run_side_effect)
    worker = FixWorker(queue=queue, runner=runner, backoff=backoff or BackoffPolicy(0.0, 0.0), dequeue_timeout=1)
    return worker, queue, runner


def _run(coro):
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# 1. Backoff
# ---------------------------------------------------------------------------
class TestBackoffPolicy:

    def test_fixed_delay(self):
        policy = BackoffPolicy(base_seconds=5, max_seconds=5)
        assert [policy.delay(n) for n in (1, 2, 10)] == [5, 5, 5]

    def test_exponential_with_cap(self):
        policy = BackoffPolicy(base_seconds=1, max_seconds=10)
        assert [policy.delay(n) for n in (1, 2, 3, 4, 5)] == [1, 2, 4, 8, 10]

    def test_no_errors_no_delay(self):
        assert BackoffPolicy(5, 60).delay(0) == 0.0


# ---------------------------------------------------------------------------
# 2. Single iteration
# ---------------------------------------------------------------------------
class TestRunOnce:

    def test_timeout_is_not_a_job(self):
        worker, queue, runner = _make_worker([None])
        assert _run(worker.run_once()) is False
        queue.pop.assert_awaited_once_with(1)
        runner.run.assert_not_awaited()

    def test_job_is_run(self):
        job = _make_job()
        worker, _, runner = _make_worker([job])
        assert _run(worker.run_once()) is True
        runner.run.assert_awaited_once_with(job)
        assert worker.busy is False

    def test_busy_while_running(self):
        seen = []

        async def run(job):
            seen.append(worker.busy)

        worker, _, _ = _make_worker([_make_job()], run_side_effect=run)
        _run(worker.run_once())
        assert seen == [True]
        assert worker.busy is False


# ---------------------------------------------------------------------------
# 3. Supervisor loop
# ---------------------------------------------------------------------------
class TestRunForever:

    def test_errors_do_not_stop_the_loop(self):
        calls = []

        async def pop(timeout):
            calls.append(timeout)
            if len(calls) == 1:
                raise ConnectionError("redis down")
            if len(calls) == 2:
                raise MalformedJobError("bad payload")
            if len(calls) == 3:
                return _make_job()
            worker.request_stop()
            return None

        worker, _, runner = _make_worker(pop)
        _run(asyncio.wait_for(worker.run_forever(), timeout=5))

        assert len(calls) == 4
        runner.run.assert_awaited_once()
        assert worker.consecutive_errors == 0

    def test_backoff_delay_used(self):
        delays = []
        policy = BackoffPolicy(base_seconds=2, max_seconds=2)

        async def pop(timeout):
            if len(delays) >= 2:
                worker.request_stop()
                return None
            raise ConnectionError("down")

        worker, _, _ = _make_worker(pop, backoff=policy)

        async def fake_sleep(seconds):
            delays.append(seconds)

        worker._sleep = fake_sleep
        _run(asyncio.wait_for(worker.run_forever(), timeout=5))
        assert delays == [2, 2]

    def test_stop_wakes_backoff_sleep(self):
        async def scenario():
            worker, _, _ = _make_worker(ConnectionError("down"), backoff=BackoffPolicy(60, 60))
            task = asyncio.create_task(worker.run_forever())
            await asyncio.sleep(0.05)
            worker.request_stop()
            await asyncio.wait_for(task, timeout=2)
            return worker

        worker = _run(scenario())
        assert worker.stopping
        assert worker.consecutive_errors >= 1

    def test_in_flight_job_finishes_after_stop(self):
        finished = []

        async def scenario():
            started = asyncio.Event()

            async def run(job):
                started.set()
                await asyncio.sleep(0.05)
                finished.append(job.job_id)

            worker, queue, _ = _make_worker(None, run_side_effect=run)
            queue.pop = AsyncMock(return_value=_make_job("job-9"))
            task = asyncio.create_task(worker.run_forever())
            await started.wait()
            worker.request_stop()
            await asyncio.wait_for(task, timeout=2)
            return queue

        queue = _run(scenario())
        assert finished == ["job-9"]
        assert queue.pop.await_count == 1


@pytest.mark.parametrize("errors,expected", [(1, 1.0), (3, 4.0), (6, 30.0)])
def test_backoff_schedule(errors, expected):
    assert BackoffPolicy(1.0, 30.0).delay(errors) == expected

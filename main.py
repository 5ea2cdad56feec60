import asyncio
import logging
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

from fix_worker.agents.feature_orchestrator import FeatureOrchestrator
from fix_worker.agents.fix_agent import FixAgent
from fix_worker.agents.job_runner import JobRunner
from fix_worker.agents.worker import FixWorker
from fix_worker.api.health import router as health_router
from fix_worker.core.config import LOG_LEVEL, PORT, WORKER_NAME, validate_settings
from fix_worker.llm.client import LLMClient
from fix_worker.services.github_service import GitHubService
from fix_worker.services.job_queue import RedisJobQueue
from fix_worker.services.job_store import JobStore
from fix_worker.utils.logging_config import setup_logging

setup_logging(level=getattr(logging, LOG_LEVEL, logging.INFO))
logger = logging.getLogger("main")


# ---------------------------------------------------------------------------
# Lifespan: build components, run the worker loop beside the health server
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    validate_settings()

    store = JobStore()
    queue = RedisJobQueue()
    llm = LLMClient()
    github = GitHubService()
    await queue.connect()

    runner = JobRunner(
        store=store,
        fix_agent=FixAgent(client=llm),
        orchestrator=FeatureOrchestrator(client=llm, store=store, github=github),
    )
    worker = FixWorker(queue=queue, runner=runner)

    app.state.queue = queue
    app.state.worker_name = WORKER_NAME
    task = asyncio.create_task(worker.run_forever())
    logger.info("%s started", WORKER_NAME)

    try:
        yield
    finally:
        logger.info("Shutting down %s...", WORKER_NAME)
        worker.request_stop()
        if worker.busy:
            # Let the in-flight job reach a terminal state
            await task
        else:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await queue.close()
        await llm.close()
        await github.close()
        store.close()
        logger.info("Shutdown complete")


app = FastAPI(title="Fix Worker", lifespan=lifespan)


# ---------------------------------------------------------------------------
# Logging Middleware
# ---------------------------------------------------------------------------
class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error("Request failed: %s %s - Error: %s", request.method, request.url.path, e)
            raise
        process_time = (time.time() - start_time) * 1000
        logger.debug(
            "%s %s - Status: %d - Time: %.2fms",
            request.method, request.url.path, response.status_code, process_time,
        )
        return response


app.add_middleware(LoggingMiddleware)
app.include_router(health_router, tags=["Health"])

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=PORT)

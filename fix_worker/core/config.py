"""
Configuration
=============
Loads environment variables from .env file using python-dotenv.

Environment Variables:
    REDIS_URL                 — Queue connection string (required)
    DATABASE_URL              — SQLAlchemy URL of the job store (required)
    ANTHROPIC_API_KEY         — Primary LLM provider API key (required)
    OPENROUTER_API_KEY        — Fallback LLM provider (OpenAI-compatible, optional)
    MODEL_NAME                — Primary model identifier
    FIX_QUEUE_NAME            — Name of the job queue (default: fix-jobs)
    DEQUEUE_TIMEOUT_SECONDS   — Blocking pop bound per attempt (default: 30)
    ERROR_BACKOFF_SECONDS     — Pause after an unexpected loop error (default: 5)
    ERROR_BACKOFF_MAX_SECONDS — Backoff cap; equal to the base → fixed delay
    PORT                      — Health server port (default: 3001)

Prompt Budget:
    MAX_CODE_CHARS bounds the line-numbered rendering sent to the model for a
    single file. Anything past the budget is cut at a line boundary and the
    model is told which lines it cannot see.
"""
import os
from dotenv import load_dotenv

from fix_worker.core.errors import ConfigError

load_dotenv()

REDIS_URL = os.getenv("REDIS_URL")
DATABASE_URL = os.getenv("DATABASE_URL")
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY")

MODEL_NAME = os.getenv("MODEL_NAME", "claude-sonnet-4-20250514")
FALLBACK_MODEL_NAME = os.getenv("FALLBACK_MODEL_NAME", "anthropic/claude-sonnet-4")
MODEL_TEMPERATURE = float(os.getenv("MODEL_TEMPERATURE", 0.1))
MODEL_MAX_TOKENS = int(os.getenv("MODEL_MAX_TOKENS", 40000))
MODEL_TIMEOUT_SECONDS = float(os.getenv("MODEL_TIMEOUT_SECONDS", 300))

# Queue polling
FIX_QUEUE_NAME = os.getenv("FIX_QUEUE_NAME", "fix-jobs")
DEQUEUE_TIMEOUT_SECONDS = int(os.getenv("DEQUEUE_TIMEOUT_SECONDS", 30))

# Supervisor backoff
ERROR_BACKOFF_SECONDS = float(os.getenv("ERROR_BACKOFF_SECONDS", 5))
ERROR_BACKOFF_MAX_SECONDS = float(os.getenv("ERROR_BACKOFF_MAX_SECONDS", ERROR_BACKOFF_SECONDS))

# Prompt budget (characters of line-numbered code)
MAX_CODE_CHARS = int(os.getenv("MAX_CODE_CHARS", 50000))

# Repository context for feature planning
REPO_CONTEXT_FILE_LIMIT = int(os.getenv("REPO_CONTEXT_FILE_LIMIT", 50))
REPO_CONTEXT_DIRECTORY_LIMIT = int(os.getenv("REPO_CONTEXT_DIRECTORY_LIMIT", 20))

# Provider health cooldown
PROVIDER_COOLDOWN_THRESHOLD = int(os.getenv("PROVIDER_COOLDOWN_THRESHOLD", 4))
PROVIDER_COOLDOWN_SKIP_COUNT = int(os.getenv("PROVIDER_COOLDOWN_SKIP_COUNT", 5))

# Health server
PORT = int(os.getenv("PORT", 3001))
WORKER_NAME = os.getenv("WORKER_NAME", "fix-worker")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

_REQUIRED = ("REDIS_URL", "DATABASE_URL", "ANTHROPIC_API_KEY")


def validate_settings() -> None:
    """
    Fail fast when a required variable is missing.

    Raises
    ------
    ConfigError
        Naming every missing variable, so a single restart fixes them all.
    """
    missing = [name for name in _REQUIRED if not globals().get(name)]
    if missing:
        raise ConfigError(
            f"Missing required environment variable(s): {', '.join(missing)}"
        )

"""
LLM Router
==========
Orders the configured model providers for each completion request.

Attempt Order:
    Providers are tried in configuration order (Anthropic, then OpenRouter
    when a key is set). A provider that is cooling down is moved behind the
    available ones rather than removed, so a request always has somewhere to
    go even when every provider is cooling down.

Cooldown:
    - PROVIDER_COOLDOWN_THRESHOLD failed requests in a row put a provider in
      cooldown for the next PROVIDER_COOLDOWN_SKIP_COUNT routing decisions
    - When the cooldown runs out the provider is on probation: one more
      failure sends it straight back
    - A success clears the failure streak
    - The router lives as long as the worker, so state carries across jobs
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from fix_worker.core.config import (
    ANTHROPIC_API_KEY, OPENROUTER_API_KEY, MODEL_NAME, FALLBACK_MODEL_NAME,
    MODEL_TIMEOUT_SECONDS, PROVIDER_COOLDOWN_THRESHOLD, PROVIDER_COOLDOWN_SKIP_COUNT,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderConfig:
    """Connection settings of one model provider."""
    name: str
    api_key: str
    base_url: str
    model: str
    max_retries: int = 2
    timeout_seconds: float = MODEL_TIMEOUT_SECONDS


def default_providers() -> List[ProviderConfig]:
    providers = [
        ProviderConfig(
            name="anthropic",
            api_key=ANTHROPIC_API_KEY or "",
            base_url="https://api.anthropic.com/v1",
            model=MODEL_NAME,
        ),
    ]
    if OPENROUTER_API_KEY:
        providers.append(ProviderConfig(
            name="openrouter",
            api_key=OPENROUTER_API_KEY,
            base_url="https://openrouter.ai/api/v1",
            model=FALLBACK_MODEL_NAME,
            max_retries=1,
        ))
    return providers


# ---------------------------------------------------------------------------
# Per-provider state
# ---------------------------------------------------------------------------
@dataclass
class ProviderState:
    failure_streak: int = 0
    cooldown_left: int = 0
    threshold: int = PROVIDER_COOLDOWN_THRESHOLD
    skip_count: int = PROVIDER_COOLDOWN_SKIP_COUNT

    @property
    def available(self) -> bool:
        return self.cooldown_left == 0

    def failed(self) -> bool:
        """Count a failed request; True when this failure starts a cooldown."""
        self.failure_streak += 1
        if self.available and self.failure_streak >= self.threshold:
            self.cooldown_left = self.skip_count
            return True
        return False

    def succeeded(self) -> None:
        self.failure_streak = 0

    def advance(self) -> bool:
        """One routing decision passed; True when the cooldown just ended."""
        if self.cooldown_left == 0:
            return False
        self.cooldown_left -= 1
        if self.cooldown_left == 0:
            self.failure_streak = max(self.threshold - 1, 0)
            return True
        return False


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------
class LLMRouter:
    """
    Chooses the provider order per request and tracks provider outcomes.

        for provider in router.attempt_order():
            ...
            router.record(provider.name, ok=True)
    """

    def __init__(self, providers: Optional[Sequence[ProviderConfig]] = None) -> None:
        self._providers: List[ProviderConfig] = list(providers or default_providers())
        if not self._providers:
            raise ValueError("LLMRouter needs at least one provider")
        self._states: Dict[str, ProviderState] = {p.name: ProviderState() for p in self._providers}

    @property
    def providers(self) -> List[ProviderConfig]:
        return list(self._providers)

    def attempt_order(self) -> List[ProviderConfig]:
        """
        Providers to try for the next request, best first.

        Each call is one routing decision and moves every cooldown along.
        """
        for name, state in self._states.items():
            if state.advance():
                logger.info("Provider %s back from cooldown (on probation)", name)

        ready = [p for p in self._providers if self._states[p.name].available]
        cooling = [p for p in self._providers if not self._states[p.name].available]
        if not ready:
            logger.warning("Every provider is cooling down, trying them anyway")
        return ready + cooling

    def record(self, provider_name: str, ok: bool) -> None:
        state = self._states.get(provider_name)
        if state is None:
            return
        if ok:
            state.succeeded()
        elif state.failed():
            logger.warning(
                "Provider %s failed %d times in a row, cooling down for %d requests",
                provider_name, state.failure_streak, state.cooldown_left,
            )

    def state(self, provider_name: str) -> Optional[ProviderState]:
        return self._states.get(provider_name)

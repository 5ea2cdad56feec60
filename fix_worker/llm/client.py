"""
LLM Client
==========
Asynchronous text-completion client over httpx.

Contract:
    complete(prompt, temperature, max_tokens) -> raw text

The client never interprets the reply; parsing and repair belong to
fix_worker.parser.response_parser.

Provider Fallback:
    - Providers are tried in the router's attempt order (Anthropic first,
      OpenRouter as the OpenAI-compatible fallback)
    - A provider fails on HTTP error, timeout, rate limit or empty reply
    - Each provider has its own retry budget (max_retries)
    - HTTP 429 skips the remaining retries and moves to the next provider
    - When every provider fails → ModelClientError
"""
import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from fix_worker.core.config import MODEL_MAX_TOKENS, MODEL_TEMPERATURE
from fix_worker.core.errors import ModelClientError
from fix_worker.llm.router import LLMRouter, ProviderConfig

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class LLMClient:
    """
    Async HTTP client for calling LLM providers.

    Usage:
        client = LLMClient()
        text = await client.complete("Fix this code...", temperature=0.1, max_tokens=40000)
        await client.close()
    """

    def __init__(
        self,
        router: Optional[LLMRouter] = None,
        http: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.router = router or LLMRouter()
        self._http = http

    async def _get_http(self) -> httpx.AsyncClient:
        """Lazy-initialise the HTTP client."""
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient()
        return self._http

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http and not self._http.is_closed:
            await self._http.aclose()
            self._http = None

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------
    async def complete(
        self,
        prompt: str,
        temperature: float = MODEL_TEMPERATURE,
        max_tokens: int = MODEL_MAX_TOKENS,
    ) -> str:
        """
        Send ``prompt`` and return the model's raw text.

        Parameters
        ----------
        prompt : str
            Full user prompt.
        temperature : float
            Sampling temperature.
        max_tokens : int
            Maximum output size.

        Returns
        -------
        str
            Non-empty reply text.

        Raises
        ------
        ModelClientError
            If every provider failed.
        """
        tried = []
        for provider in self.router.attempt_order():
            text = await self.call(prompt, provider, temperature, max_tokens)
            self.router.record(provider.name, ok=bool(text))
            if text:
                return text
            tried.append(provider.name)
            logger.warning("Provider %s gave no completion", provider.name)

        raise ModelClientError(f"All model providers failed to return a completion ({', '.join(tried)})")

    async def call(
        self,
        prompt: str,
        provider: ProviderConfig,
        temperature: float,
        max_tokens: int,
    ) -> str:
        """
        Send a prompt to one provider, with retries.

        Returns
        -------
        str
            Reply text, or "" once every retry failed.
        """
        http = await self._get_http()
        url, headers, payload = build_request(provider, prompt, temperature, max_tokens)

        for attempt in range(1, provider.max_retries + 1):
            try:
                resp = await http.post(url, json=payload, headers=headers, timeout=provider.timeout_seconds)
                resp.raise_for_status()
                text = read_reply(provider, resp.json())
            except httpx.TimeoutException:
                logger.warning("Provider %s attempt %d: timeout", provider.name, attempt)
                continue
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                logger.warning("Provider %s attempt %d: HTTP %d", provider.name, attempt, status)
                if status == 429:
                    break
                continue
            except (httpx.HTTPError, ValueError) as e:
                logger.warning("Provider %s attempt %d: %s", provider.name, attempt, e)
                continue

            if text.strip():
                logger.info("Provider %s replied (%d chars, attempt %d)", provider.name, len(text), attempt)
                return text
            logger.warning("Provider %s attempt %d: empty response", provider.name, attempt)

        return ""


# ---------------------------------------------------------------------------
# Wire formats
# ---------------------------------------------------------------------------
def build_request(
    provider: ProviderConfig,
    prompt: str,
    temperature: float,
    max_tokens: int,
) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
    """(url, headers, body) for the Anthropic Messages API or an OpenAI-compatible API."""
    messages = [{"role": "user", "content": prompt}]
    body: Dict[str, Any] = {
        "model": provider.model,
        "max_tokens": max_tokens,
        "temperature": temperature,
        "messages": messages,
    }
    if provider.name == "anthropic":
        headers = {
            "x-api-key": provider.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
        return f"{provider.base_url}/messages", headers, body

    headers = {
        "Authorization": f"Bearer {provider.api_key}",
        "Content-Type": "application/json",
    }
    return f"{provider.base_url}/chat/completions", headers, body


def read_reply(provider: ProviderConfig, data: Any) -> str:
    """Text of a provider reply; "" when the reply carries none."""
    if not isinstance(data, dict):
        return ""
    if provider.name == "anthropic":
        # Only text blocks; tool_use and thinking blocks are skipped
        return "".join(
            block.get("text", "") for block in data.get("content") or []
            if isinstance(block, dict) and block.get("type", "text") == "text"
        )
    choices = data.get("choices") or []
    if not choices:
        return ""
    return (choices[0].get("message") or {}).get("content") or ""

"""
OpenRouter chat-completions client returning schema-validated JSON objects.

Usage::

    client = OpenRouterClient(api_key=settings.OPENROUTER_API_KEY)
    cards = await client.generate_object(
        system="...", user="...", schema=GeneratedFlashcards
    )

Every failure is raised as an ``ai/*`` DomainError. Transient kinds
(rate limit, timeout, provider/service errors) are retried with
exponential backoff; when retries run out ``ai/retry-exhausted`` is raised.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..domain_errors import DomainError
from ..error_catalog import ai_errors
from ..mappers.ai import from_ai_sdk
from ..mappers.validation import flatten_errors

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "openai/gpt-4o-mini"
MAX_SYSTEM_PROMPT_LENGTH = 5_000
MAX_USER_PROMPT_LENGTH = 60_000
MIN_API_KEY_LENGTH = 10

_HEADERS = {
    "HTTP-Referer": "https://10xcards.dev",
    "X-Title": "10xCards",
}

RETRYABLE_CODES = frozenset(
    {
        "ai/rate-limited",
        "ai/timeout",
        "ai/provider-error",
        "ai/service-unavailable",
    }
)

_ai = ai_errors.creators


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 2
    base_delay_ms: int = 300
    max_delay_ms: int = 3000
    jitter: float = 0.1  # fraction of the delay added at random


def backoff_delay_ms(policy: RetryPolicy, attempt: int, rand: Callable[[], float] = random.random) -> float:
    """Delay before retry number ``attempt`` (0-based)."""
    delay = min(policy.base_delay_ms * (2 ** attempt), policy.max_delay_ms)
    return delay + delay * policy.jitter * rand()


def _strip_code_fence(content: str) -> str:
    text = content.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


class OpenRouterClient:
    """Async client for OpenRouter's OpenAI-compatible API.

    ``http_client`` and ``sleep`` are injectable so tests can run without
    network access or real delays.
    """

    def __init__(
        self,
        api_key: Optional[str],
        *,
        base_url: str = DEFAULT_BASE_URL,
        default_model: str = DEFAULT_MODEL,
        timeout_seconds: float = 15.0,
        retry_policy: RetryPolicy | None = None,
        temperature: float = 0.2,
        top_p: float = 0.9,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.default_model = default_model
        self.timeout_seconds = timeout_seconds
        self.retry_policy = retry_policy or RetryPolicy()
        self.temperature = temperature
        self.top_p = top_p
        self._http_client = http_client
        self._sleep = sleep

    def _check_inputs(self, system: str, user: str) -> None:
        if not self.api_key or len(self.api_key) < MIN_API_KEY_LENGTH:
            raise _ai.Unauthorized("OpenRouter API key is missing or invalid")
        if not user.strip():
            raise _ai.InvalidInput("User prompt must not be empty")
        if len(system) > MAX_SYSTEM_PROMPT_LENGTH:
            raise _ai.InvalidInput(
                f"System prompt exceeds {MAX_SYSTEM_PROMPT_LENGTH} characters",
                meta={"length": len(system)},
            )
        if len(user) > MAX_USER_PROMPT_LENGTH:
            raise _ai.InvalidInput(
                f"User prompt exceeds {MAX_USER_PROMPT_LENGTH} characters",
                meta={"length": len(user)},
            )

    async def generate_object(
        self,
        *,
        system: str,
        user: str,
        schema: type[ModelT],
        model: Optional[str] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> ModelT:
        self._check_inputs(system, user)
        model = model or self.default_model

        attempt = 0
        while True:
            try:
                return await self._complete_once(system=system, user=user, schema=schema, model=model, params=params)
            except DomainError as exc:
                if exc.code not in RETRYABLE_CODES:
                    raise
                if attempt >= self.retry_policy.max_retries:
                    logger.error("AI request failed after %s attempts: %s", attempt + 1, exc.code)
                    raise _ai.RetryExhausted(
                        f"AI request failed after {attempt + 1} attempts",
                        meta={"attempts": attempt + 1, "last_code": exc.code},
                        cause=exc,
                    ) from exc
                delay_ms = backoff_delay_ms(self.retry_policy, attempt)
                logger.warning(
                    "AI request attempt %s failed with %s; retrying in %.0f ms",
                    attempt + 1,
                    exc.code,
                    delay_ms,
                )
                await self._sleep(delay_ms / 1000)
                attempt += 1

    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.api_key}", **_HEADERS}
        url = f"{self.base_url}/chat/completions"
        if self._http_client is not None:
            return await self._http_client.post(url, json=payload, headers=headers, timeout=self.timeout_seconds)
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            return await client.post(url, json=payload, headers=headers)

    async def _complete_once(
        self,
        *,
        system: str,
        user: str,
        schema: type[ModelT],
        model: str,
        params: Optional[dict[str, Any]],
    ) -> ModelT:
        payload: dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "temperature": self.temperature,
            "top_p": self.top_p,
            "response_format": {"type": "json_object"},
        }
        if params:
            payload.update(params)

        try:
            response = await self._post(payload)
        except httpx.TimeoutException as exc:
            raise _ai.Timeout("AI provider request timed out", cause=exc) from exc
        except httpx.TransportError as exc:
            raise _ai.ProviderError("AI provider is unreachable", cause=exc) from exc

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code >= 400:
            vendor = dict(body) if isinstance(body, dict) else {}
            vendor["status"] = response.status_code
            raise from_ai_sdk(vendor)
        if not isinstance(body, dict):
            raise _ai.ParseError("AI provider returned a non-JSON response")
        if body.get("error"):
            raise from_ai_sdk(body)

        choices = body.get("choices") or []
        if not choices:
            raise _ai.ParseError("AI provider returned no choices")
        choice = choices[0]
        if choice.get("finish_reason") == "content_filter":
            raise _ai.ContentBlocked(
                "Content was blocked by the model's content policy",
                meta={"provider": body.get("provider")},
            )

        content = (choice.get("message") or {}).get("content")
        if not isinstance(content, str) or not content.strip():
            raise _ai.ParseError("AI response has no content")
        try:
            data = json.loads(_strip_code_fence(content))
        except ValueError as exc:
            raise _ai.ParseError("AI response is not valid JSON", cause=exc) from exc

        try:
            return schema.model_validate(data)
        except ValidationError as exc:
            raise _ai.ValidationFailed(
                "AI response does not match the expected schema",
                meta=flatten_errors(exc.errors()),
                cause=exc,
            ) from exc

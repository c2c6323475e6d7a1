from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from tenxcards.domain_errors import DomainError
from tenxcards.schemas import GeneratedFlashcards
from tenxcards.services.ai_client import OpenRouterClient, RetryPolicy, backoff_delay_ms
from tenxcards.services.flashcard_generator import AIFlashcardGenerator, MockFlashcardGenerator

API_KEY = "sk-or-test-0123456789"

CARDS = {"flashcards": [{"front": " What is HTTP? ", "back": "A protocol. "}]}


def _completion(content: str, finish_reason: str = "stop") -> dict:
    return {
        "id": "gen-1",
        "provider": "OpenAI",
        "choices": [{"message": {"role": "assistant", "content": content}, "finish_reason": finish_reason}],
    }


class _Transport:
    """Replays queued responses and records the requests it saw."""

    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(outcome, Exception):
            raise outcome
        status, body = outcome
        return httpx.Response(status, json=body)


def _client(transport: _Transport, sleeps: list[float] | None = None, api_key: str = API_KEY) -> OpenRouterClient:
    async def _sleep(seconds: float) -> None:
        if sleeps is not None:
            sleeps.append(seconds)

    return OpenRouterClient(
        api_key,
        retry_policy=RetryPolicy(max_retries=2, base_delay_ms=100, max_delay_ms=1000, jitter=0),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(transport)),
        sleep=_sleep,
    )


def _generate(client: OpenRouterClient, user: str = "Source text") -> GeneratedFlashcards:
    return asyncio.run(client.generate_object(system="Make cards", user=user, schema=GeneratedFlashcards))


def test_generate_object_returns_validated_model() -> None:
    transport = _Transport((200, _completion(json.dumps(CARDS))))

    result = _generate(_client(transport))

    assert result.flashcards[0].back == "A protocol. "
    request = transport.requests[0]
    assert request.url == "https://openrouter.ai/api/v1/chat/completions"
    assert request.headers["authorization"] == f"Bearer {API_KEY}"
    assert request.headers["x-title"] == "10xCards"
    payload = json.loads(request.content)
    assert payload["model"] == "openai/gpt-4o-mini"
    assert payload["response_format"] == {"type": "json_object"}
    assert [message["role"] for message in payload["messages"]] == ["system", "user"]


def test_code_fenced_json_is_accepted() -> None:
    transport = _Transport((200, _completion(f"```json\n{json.dumps(CARDS)}\n```")))

    assert len(_generate(_client(transport)).flashcards) == 1


def test_transient_errors_are_retried_with_backoff() -> None:
    sleeps: list[float] = []
    transport = _Transport(
        (429, {"error": {"message": "Rate limit exceeded", "code": 429}}),
        (503, {"error": {"message": "No endpoints available", "code": 503}}),
        (200, _completion(json.dumps(CARDS))),
    )

    result = _generate(_client(transport, sleeps))

    assert len(result.flashcards) == 1
    assert len(transport.requests) == 3
    assert sleeps == [0.1, 0.2]


def test_retry_exhaustion_reports_attempts_and_last_code() -> None:
    transport = _Transport((503, {"error": {"message": "down", "code": 503}}))

    with pytest.raises(DomainError, match="after 3 attempts") as excinfo:
        _generate(_client(transport))

    assert excinfo.value.code == "ai/retry-exhausted"
    assert excinfo.value.meta == {"attempts": 3, "last_code": "ai/service-unavailable"}
    assert len(transport.requests) == 3


def test_timeouts_are_retried() -> None:
    transport = _Transport(httpx.ReadTimeout("timed out"))

    with pytest.raises(DomainError) as excinfo:
        _generate(_client(transport))

    assert excinfo.value.meta["last_code"] == "ai/timeout"


def test_error_inside_a_200_body_is_classified() -> None:
    transport = _Transport(
        (200, {"error": {"message": "Upstream failed", "code": 502}}),
        (200, _completion(json.dumps(CARDS))),
    )

    assert len(_generate(_client(transport)).flashcards) == 1
    assert len(transport.requests) == 2


def test_unauthorized_is_not_retried() -> None:
    transport = _Transport((401, {"error": {"message": "No auth credentials found", "code": 401}}))

    with pytest.raises(DomainError) as excinfo:
        _generate(_client(transport))

    assert excinfo.value.code == "ai/unauthorized"
    assert len(transport.requests) == 1


def test_content_filter_finish_reason_is_content_blocked() -> None:
    transport = _Transport((200, _completion("", finish_reason="content_filter")))

    with pytest.raises(DomainError) as excinfo:
        _generate(_client(transport))

    assert excinfo.value.code == "ai/content-blocked"
    assert excinfo.value.meta == {"provider": "OpenAI"}


def test_invalid_json_is_parse_error() -> None:
    transport = _Transport((200, _completion("Here are your cards!")))

    with pytest.raises(DomainError) as excinfo:
        _generate(_client(transport))

    assert excinfo.value.code == "ai/parse-error"


def test_schema_mismatch_is_validation_failed_with_field_errors() -> None:
    transport = _Transport((200, _completion(json.dumps({"cards": []}))))

    with pytest.raises(DomainError) as excinfo:
        _generate(_client(transport))

    assert excinfo.value.code == "ai/validation-failed"
    assert "flashcards" in excinfo.value.meta["fieldErrors"]


def test_inputs_are_checked_before_any_request() -> None:
    transport = _Transport((200, _completion(json.dumps(CARDS))))

    with pytest.raises(DomainError) as missing_key:
        _generate(_client(transport, api_key="short"))
    with pytest.raises(DomainError) as empty_prompt:
        _generate(_client(transport), user="   ")
    with pytest.raises(DomainError) as long_prompt:
        _generate(_client(transport), user="x" * 60_001)

    assert missing_key.value.code == "ai/unauthorized"
    assert empty_prompt.value.code == "ai/invalid-input"
    assert long_prompt.value.meta == {"length": 60_001}
    assert transport.requests == []


def test_backoff_is_capped_and_jittered() -> None:
    policy = RetryPolicy(base_delay_ms=300, max_delay_ms=1000, jitter=0.1)

    assert backoff_delay_ms(policy, 0, rand=lambda: 0.0) == 300
    assert backoff_delay_ms(policy, 1, rand=lambda: 1.0) == pytest.approx(660)
    assert backoff_delay_ms(policy, 5, rand=lambda: 0.0) == 1000


def test_ai_generator_maps_model_and_strips_text() -> None:
    transport = _Transport((200, _completion(json.dumps(CARDS))))
    generator = AIFlashcardGenerator(_client(transport))

    candidates = asyncio.run(generator.generate("Some long source text", "gpt-4o-mini"))

    assert [(c.front, c.back, c.source) for c in candidates] == [("What is HTTP?", "A protocol.", "ai-full")]
    assert json.loads(transport.requests[0].content)["model"] == "openai/gpt-4o-mini"


def test_mock_generator_scales_with_text_length() -> None:
    generator = MockFlashcardGenerator()
    text = "Photosynthesis turns light into chemical energy. " * 60

    candidates = asyncio.run(generator.generate(text, "gpt-4o-mini"))

    assert MockFlashcardGenerator.candidate_count("x" * 100) == 3
    assert MockFlashcardGenerator.candidate_count("x" * 100_000) == 15
    assert len(candidates) == len(text) // 200
    assert all(c.source == "ai-full" and c.front and c.back for c in candidates)

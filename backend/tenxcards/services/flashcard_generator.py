"""Flashcard candidate generators: the AI-backed one and a deterministic mock."""
from __future__ import annotations

import re
from typing import Protocol

from fastapi import Request

from ..config import Settings
from ..schemas import FlashcardCandidate, GeneratedFlashcards
from .ai_client import OpenRouterClient, RetryPolicy

SYSTEM_PROMPT = (
    "You create study flashcards from the text the user provides. "
    "Answer with a JSON object of the form "
    '{"flashcards": [{"front": "...", "back": "..."}]}. '
    "Each front is a question of at most 200 characters, each back a concise "
    "answer of at most 500 characters. Produce between 3 and 15 cards, "
    "in the language of the source text, covering its key facts."
)

# Public model names accepted by the API mapped to provider model ids.
MODEL_IDS = {"gpt-4o-mini": "openai/gpt-4o-mini"}

_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+")


class FlashcardGenerator(Protocol):
    name: str

    async def generate(self, source_text: str, model: str) -> list[FlashcardCandidate]: ...


class AIFlashcardGenerator:
    name = "openrouter"

    def __init__(self, client: OpenRouterClient) -> None:
        self._client = client

    async def generate(self, source_text: str, model: str) -> list[FlashcardCandidate]:
        result = await self._client.generate_object(
            system=SYSTEM_PROMPT,
            user=f"Source text:\n\n{source_text}",
            schema=GeneratedFlashcards,
            model=MODEL_IDS.get(model, model),
        )
        return [FlashcardCandidate(front=card.front.strip(), back=card.back.strip()) for card in result.flashcards]


class MockFlashcardGenerator:
    """Builds cards from the source sentences; one card per ~200 characters, 3 to 15 cards."""

    name = "mock"

    @staticmethod
    def candidate_count(source_text: str) -> int:
        return min(max(3, len(source_text) // 200), 15)

    async def generate(self, source_text: str, model: str) -> list[FlashcardCandidate]:
        sentences = [s.strip() for s in _SENTENCE_RE.split(source_text) if s.strip()] or [source_text.strip()]
        candidates = []
        for index in range(self.candidate_count(source_text)):
            sentence = sentences[index % len(sentences)]
            candidates.append(
                FlashcardCandidate(
                    front=f"Question {index + 1}: what does the text say about \"{sentence[:60]}\"?",
                    back=sentence[:500],
                )
            )
        return candidates


def build_flashcard_generator(config: Settings) -> FlashcardGenerator:
    if config.AI_PROVIDER.lower() == "mock":
        return MockFlashcardGenerator()
    client = OpenRouterClient(
        config.OPENROUTER_API_KEY,
        base_url=config.OPENROUTER_BASE_URL,
        default_model=config.AI_DEFAULT_MODEL,
        timeout_seconds=config.AI_TIMEOUT_SECONDS,
        retry_policy=RetryPolicy(
            max_retries=config.AI_MAX_RETRIES,
            base_delay_ms=config.AI_BASE_DELAY_MS,
            max_delay_ms=config.AI_MAX_DELAY_MS,
        ),
    )
    return AIFlashcardGenerator(client)


def get_flashcard_generator(request: Request) -> FlashcardGenerator:
    return request.app.state.flashcard_generator

"""AI generation use-case: run the generator and record the session."""
from __future__ import annotations

import hashlib
import logging
import time
from collections.abc import Callable
from typing import Any

from supabase import AsyncClient, PostgrestAPIError

from ..domain_errors import DomainError
from ..error_catalog import generation_errors
from ..mappers.ai import from_ai
from ..schemas import FlashcardCandidate, GenerationCreate
from ..services.flashcard_generator import FlashcardGenerator

logger = logging.getLogger(__name__)

_generation = generation_errors.creators

MAX_FRONT_LENGTH = 200
MAX_BACK_LENGTH = 500
MAX_LOGGED_ERROR_MESSAGE = 1000


def source_text_hash(source_text: str) -> str:
    return hashlib.md5(source_text.encode("utf-8")).hexdigest()


def _is_valid_candidate(candidate: FlashcardCandidate) -> bool:
    return 0 < len(candidate.front) <= MAX_FRONT_LENGTH and 0 < len(candidate.back) <= MAX_BACK_LENGTH


async def _record_failure(
    db: AsyncClient,
    *,
    user_id: str,
    generation_id: int,
    command: GenerationCreate,
    text_hash: str,
    error: DomainError,
) -> None:
    """Write the error log row and mark the generation failed. Failures here are logged only."""
    try:
        await db.table("generation_error_logs").insert(
            {
                "user_id": user_id,
                "model": command.model,
                "source_text_hash": text_hash,
                "source_text_length": len(command.source_text),
                "error_code": error.code,
                "error_message": error.message[:MAX_LOGGED_ERROR_MESSAGE],
                "details": error.meta,
            }
        ).execute()
    except PostgrestAPIError:
        logger.exception("Could not write generation error log for generation %s", generation_id)

    try:
        await db.table("generations").update({"status": "failed"}).eq("id", generation_id).execute()
    except PostgrestAPIError:
        logger.exception("Could not mark generation %s as failed", generation_id)


async def create_generation_use_case(
    *,
    db: AsyncClient,
    user_id: str,
    command: GenerationCreate,
    generator: FlashcardGenerator,
    fallback_generator: FlashcardGenerator | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> dict[str, Any]:
    """Generate flashcard candidates for ``command.source_text``.

    The generation row goes pending -> completed, or pending -> failed with a
    matching ``generation_error_logs`` row. Generator errors are reported as
    ``generation/*`` errors unless a fallback generator is configured.
    """
    text_hash = source_text_hash(command.source_text)
    try:
        inserted = await db.table("generations").insert(
            {
                "user_id": user_id,
                "model": command.model,
                "source_text_hash": text_hash,
                "source_text_length": len(command.source_text),
                "status": "pending",
                "generated_count": 0,
            }
        ).execute()
    except PostgrestAPIError as exc:
        raise _generation.ProviderError("Could not start the generation", cause=exc) from exc
    rows = inserted.data or []
    if not rows:
        raise _generation.ProviderError("Could not start the generation")
    generation_id = rows[0]["id"]

    started = clock()
    try:
        candidates = await generator.generate(command.source_text, command.model)
    except DomainError as exc:
        if fallback_generator is None:
            logger.warning("Generation %s failed: %s", generation_id, exc.code)
            await _record_failure(
                db,
                user_id=user_id,
                generation_id=generation_id,
                command=command,
                text_hash=text_hash,
                error=exc,
            )
            raise from_ai(exc) from exc
        logger.warning(
            "Generation %s failed with %s; using %s generator",
            generation_id,
            exc.code,
            fallback_generator.name,
        )
        candidates = await fallback_generator.generate(command.source_text, command.model)

    valid = [candidate for candidate in candidates if _is_valid_candidate(candidate)]
    if len(valid) != len(candidates):
        logger.info("Dropped %s invalid candidates from generation %s", len(candidates) - len(valid), generation_id)
    duration_ms = int((clock() - started) * 1000)

    try:
        await db.table("generations").update(
            {
                "status": "completed",
                "generated_count": len(valid),
                "generation_duration_ms": duration_ms,
            }
        ).eq("id", generation_id).execute()
    except PostgrestAPIError as exc:
        raise _generation.ProviderError("Could not store the generation result", cause=exc) from exc

    return {
        "generation_id": generation_id,
        "status": "completed",
        "model": command.model,
        "generated_count": len(valid),
        "generation_duration_ms": duration_ms,
        "flashcards_candidates": [candidate.model_dump() for candidate in valid],
        "message": f"Generated {len(valid)} flashcard candidates",
    }

"""Flashcard use-cases: list, bulk save, read, update and delete."""
from __future__ import annotations

import logging
import math
import re
from collections import defaultdict
from typing import Any

from supabase import AsyncClient, PostgrestAPIError

from ..error_catalog import flashcard_errors
from ..mappers.supabase_db import from_supabase, is_no_rows
from ..schemas import FlashcardItemCreate, FlashcardResponse, FlashcardsCreate, FlashcardUpdate, ListFlashcardsQuery
from .collections import ensure_collection_access

logger = logging.getLogger(__name__)

_flashcard = flashcard_errors.creators

# Characters with a meaning in PostgREST ``or`` filters and LIKE patterns.
_SEARCH_RESERVED = re.compile(r"[,()%*\\]")


def _to_dto(row: dict[str, Any]) -> dict[str, Any]:
    return FlashcardResponse.model_validate(row).model_dump()


def _not_found(flashcard_id: int, cause: Any = None):
    return _flashcard.NotFound(
        f"Flashcard {flashcard_id} not found",
        meta={"flashcardId": flashcard_id},
        cause=cause,
    )


async def _fetch_row(db: AsyncClient, user_id: str, flashcard_id: int) -> dict[str, Any]:
    try:
        response = await (
            db.table("flashcards")
            .select("*")
            .eq("id", flashcard_id)
            .eq("user_id", user_id)
            .single()
            .execute()
        )
    except PostgrestAPIError as exc:
        if is_no_rows(exc):
            raise _not_found(flashcard_id, exc) from exc
        raise from_supabase(exc) from exc
    if not response.data:
        raise _not_found(flashcard_id)
    return response.data


async def adjust_generation_counts(
    db: AsyncClient,
    generation_id: int | None,
    *,
    unedited_delta: int = 0,
    edited_delta: int = 0,
) -> None:
    """Shift the acceptance counters of a generation; never below zero.

    Counter maintenance is best effort: failures are logged, the caller's
    operation has already succeeded.
    """
    if not generation_id or (unedited_delta == 0 and edited_delta == 0):
        return
    try:
        response = await (
            db.table("generations")
            .select("accepted_unedited_count, accepted_edited_count")
            .eq("id", generation_id)
            .single()
            .execute()
        )
        current = response.data or {}
        await (
            db.table("generations")
            .update(
                {
                    "accepted_unedited_count": max(0, (current.get("accepted_unedited_count") or 0) + unedited_delta),
                    "accepted_edited_count": max(0, (current.get("accepted_edited_count") or 0) + edited_delta),
                }
            )
            .eq("id", generation_id)
            .execute()
        )
    except PostgrestAPIError:
        logger.exception("Failed to update acceptance counters of generation %s", generation_id)


async def _ensure_generations_owned(db: AsyncClient, user_id: str, generation_ids: list[int]) -> None:
    try:
        response = await db.table("generations").select("id, user_id").in_("id", generation_ids).execute()
    except PostgrestAPIError as exc:
        raise from_supabase(exc) from exc

    owned = {row["id"] for row in response.data or [] if str(row.get("user_id")) == str(user_id)}
    missing = [generation_id for generation_id in generation_ids if generation_id not in owned]
    if missing:
        raise _flashcard.GenerationNotFound(
            f"Generation {missing[0]} not found",
            meta={"generationIds": missing},
        )


def _acceptance_counts(items: list[FlashcardItemCreate]) -> dict[int, dict[str, int]]:
    counts: dict[int, dict[str, int]] = defaultdict(lambda: {"unedited": 0, "edited": 0})
    for item in items:
        if not item.generation_id:
            continue
        if item.source == "ai-full":
            counts[item.generation_id]["unedited"] += 1
        elif item.source == "ai-edited":
            counts[item.generation_id]["edited"] += 1
    return counts


async def list_flashcards_use_case(*, db: AsyncClient, user_id: str, query: ListFlashcardsQuery) -> dict[str, Any]:
    request = db.table("flashcards").select("*", count="exact").eq("user_id", user_id)
    if query.collection_id is not None:
        request = request.eq("collection_id", query.collection_id)
    if query.source:
        request = request.eq("source", query.source)
    if query.search:
        term = _SEARCH_RESERVED.sub(" ", query.search).strip()
        if term:
            request = request.or_(f"front.ilike.%{term}%,back.ilike.%{term}%")

    start = (query.page - 1) * query.per_page
    request = request.order(query.sort, desc=query.order == "desc").range(start, start + query.per_page - 1)
    try:
        response = await request.execute()
    except PostgrestAPIError as exc:
        raise from_supabase(exc) from exc

    total = response.count or 0
    return {
        "flashcards": [_to_dto(row) for row in response.data or []],
        "pagination": {
            "page": query.page,
            "per_page": query.per_page,
            "total": total,
            "total_pages": math.ceil(total / query.per_page),
        },
    }


async def create_flashcards_use_case(*, db: AsyncClient, user_id: str, command: FlashcardsCreate) -> dict[str, Any]:
    """Bulk save manual or accepted AI cards, keeping generation counters consistent."""
    generation_ids = sorted({item.generation_id for item in command.flashcards if item.generation_id})
    if generation_ids:
        await _ensure_generations_owned(db, user_id, generation_ids)
    if command.collection_id:
        await ensure_collection_access(db=db, user_id=user_id, collection_id=command.collection_id)

    rows = [
        {
            "user_id": user_id,
            "front": item.front,
            "back": item.back,
            "source": item.source,
            "generation_id": item.generation_id,
            "collection_id": command.collection_id,
        }
        for item in command.flashcards
    ]
    try:
        response = await db.table("flashcards").insert(rows).execute()
    except PostgrestAPIError as exc:
        raise from_supabase(exc) from exc

    saved = response.data or []
    for generation_id, counts in _acceptance_counts(command.flashcards).items():
        await adjust_generation_counts(
            db,
            generation_id,
            unedited_delta=counts["unedited"],
            edited_delta=counts["edited"],
        )

    logger.info("Saved %s flashcards", len(saved))
    return {
        "saved_count": len(saved),
        "flashcards": [_to_dto(row) for row in saved],
        "collection_id": command.collection_id,
        "message": f"{len(saved)} flashcards saved",
    }


async def get_flashcard_use_case(*, db: AsyncClient, user_id: str, flashcard_id: int) -> dict[str, Any]:
    return _to_dto(await _fetch_row(db, user_id, flashcard_id))


async def update_flashcard_use_case(
    *,
    db: AsyncClient,
    user_id: str,
    flashcard_id: int,
    command: FlashcardUpdate,
) -> dict[str, Any]:
    """Apply a partial update; editing an ``ai-full`` card turns it into ``ai-edited``."""
    changes = command.changes()
    if not changes:
        raise _flashcard.ValidationFailed(
            "Nothing to update",
            meta={"formErrors": ["At least one of front, back, collection_id is required"], "fieldErrors": {}},
        )
    null_fields = [name for name in ("front", "back") if name in changes and changes[name] is None]
    if null_fields:
        raise _flashcard.ValidationFailed(
            "Check the form fields",
            meta={"formErrors": [], "fieldErrors": {name: ["Field cannot be null"] for name in null_fields}},
        )

    existing = await _fetch_row(db, user_id, flashcard_id)
    if changes.get("collection_id") is not None:
        await ensure_collection_access(db=db, user_id=user_id, collection_id=changes["collection_id"])

    content_changed = any(
        name in changes and changes[name] != existing.get(name) for name in ("front", "back")
    )
    reclassified = existing.get("source") == "ai-full" and content_changed
    updates = dict(changes)
    if reclassified:
        updates["source"] = "ai-edited"

    try:
        response = await (
            db.table("flashcards")
            .update(updates)
            .eq("id", flashcard_id)
            .eq("user_id", user_id)
            .execute()
        )
    except PostgrestAPIError as exc:
        raise from_supabase(exc) from exc
    rows = response.data or []
    if not rows:
        raise _not_found(flashcard_id)

    if reclassified:
        await adjust_generation_counts(db, existing.get("generation_id"), unedited_delta=-1, edited_delta=1)

    updated = rows[0]
    return {
        "id": updated["id"],
        "front": updated["front"],
        "back": updated["back"],
        "source": updated["source"],
        "collection_id": updated.get("collection_id"),
        "updated_at": updated.get("updated_at"),
    }


async def delete_flashcard_use_case(*, db: AsyncClient, user_id: str, flashcard_id: int) -> dict[str, Any]:
    existing = await _fetch_row(db, user_id, flashcard_id)
    try:
        response = await (
            db.table("flashcards")
            .delete()
            .eq("id", flashcard_id)
            .eq("user_id", user_id)
            .execute()
        )
    except PostgrestAPIError as exc:
        raise from_supabase(exc) from exc
    if not response.data:
        raise _not_found(flashcard_id)

    source = existing.get("source")
    if source == "ai-full":
        await adjust_generation_counts(db, existing.get("generation_id"), unedited_delta=-1)
    elif source == "ai-edited":
        await adjust_generation_counts(db, existing.get("generation_id"), edited_delta=-1)

    return {"id": flashcard_id, "message": "Flashcard successfully deleted"}

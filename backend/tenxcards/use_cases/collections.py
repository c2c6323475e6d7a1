"""Collection use-cases and the ownership check shared with flashcards."""
from __future__ import annotations

import logging
import math
from typing import Any

from supabase import AsyncClient, PostgrestAPIError

from ..error_catalog import flashcard_errors
from ..mappers.supabase_db import from_supabase, is_no_rows
from ..schemas import CollectionCreate, CollectionResponse, CollectionUpdate, ListCollectionsQuery

logger = logging.getLogger(__name__)

_flashcard = flashcard_errors.creators


def _to_dto(row: dict[str, Any]) -> dict[str, Any]:
    return CollectionResponse.model_validate(row).model_dump()


async def ensure_collection_access(*, db: AsyncClient, user_id: str, collection_id: int) -> dict[str, Any]:
    """Return the collection row, or raise not-found / access-denied."""
    try:
        response = await db.table("collections").select("*").eq("id", collection_id).single().execute()
    except PostgrestAPIError as exc:
        if is_no_rows(exc):
            raise _flashcard.CollectionNotFound(
                f"Collection {collection_id} not found",
                meta={"collectionId": collection_id},
                cause=exc,
            ) from exc
        raise from_supabase(exc) from exc

    row = response.data or {}
    if str(row.get("user_id")) != str(user_id):
        raise _flashcard.CollectionAccessDenied(
            f"Access denied to collection {collection_id}",
            meta={"collectionId": collection_id},
        )
    return row


async def list_collections_use_case(*, db: AsyncClient, user_id: str, query: ListCollectionsQuery) -> dict[str, Any]:
    start = (query.page - 1) * query.per_page
    try:
        response = await (
            db.table("collections")
            .select("*", count="exact")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .range(start, start + query.per_page - 1)
            .execute()
        )
    except PostgrestAPIError as exc:
        raise from_supabase(exc) from exc

    total = response.count or 0
    return {
        "collections": [_to_dto(row) for row in response.data or []],
        "pagination": {
            "page": query.page,
            "per_page": query.per_page,
            "total": total,
            "total_pages": math.ceil(total / query.per_page),
        },
    }


async def create_collection_use_case(*, db: AsyncClient, user_id: str, command: CollectionCreate) -> dict[str, Any]:
    try:
        response = await db.table("collections").insert({"user_id": user_id, "name": command.name}).execute()
    except PostgrestAPIError as exc:
        raise from_supabase(exc) from exc
    rows = response.data or []
    if not rows:
        raise _flashcard.DatabaseError("Collection was not created")
    return _to_dto(rows[0])


async def update_collection_use_case(
    *,
    db: AsyncClient,
    user_id: str,
    collection_id: int,
    command: CollectionUpdate,
) -> dict[str, Any]:
    await ensure_collection_access(db=db, user_id=user_id, collection_id=collection_id)
    try:
        response = await (
            db.table("collections")
            .update({"name": command.name})
            .eq("id", collection_id)
            .eq("user_id", user_id)
            .execute()
        )
    except PostgrestAPIError as exc:
        raise from_supabase(exc) from exc
    rows = response.data or []
    if not rows:
        raise _flashcard.CollectionNotFound(
            f"Collection {collection_id} not found",
            meta={"collectionId": collection_id},
        )
    return _to_dto(rows[0])


async def delete_collection_use_case(*, db: AsyncClient, user_id: str, collection_id: int) -> dict[str, Any]:
    """Delete a collection; its flashcards stay and lose the collection link."""
    await ensure_collection_access(db=db, user_id=user_id, collection_id=collection_id)
    try:
        await (
            db.table("flashcards")
            .update({"collection_id": None})
            .eq("collection_id", collection_id)
            .eq("user_id", user_id)
            .execute()
        )
        response = await (
            db.table("collections")
            .delete()
            .eq("id", collection_id)
            .eq("user_id", user_id)
            .execute()
        )
    except PostgrestAPIError as exc:
        raise from_supabase(exc) from exc
    if not response.data:
        raise _flashcard.CollectionNotFound(
            f"Collection {collection_id} not found",
            meta={"collectionId": collection_id},
        )
    logger.info("Collection %s deleted", collection_id)
    return {"id": collection_id, "message": "Collection successfully deleted"}

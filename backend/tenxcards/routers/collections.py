"""Collection endpoints."""
from fastapi import APIRouter, Depends, Request
from supabase import AsyncClient

from ..auth import CurrentUser, get_current_user
from ..database import get_supabase
from ..features import ensure_feature_enabled
from ..problem_details import with_problem_handling
from ..responses import created_response, success_response
from ..schemas import CollectionCreate, CollectionUpdate, ListCollectionsQuery
from ..use_cases.collections import (
    create_collection_use_case,
    delete_collection_use_case,
    list_collections_use_case,
    update_collection_use_case,
)
from ..validation import validate_body, validate_query
from .flashcards import parse_positive_id

router = APIRouter(prefix="/collections", tags=["collections"])


@router.get("")
@with_problem_handling
async def list_collections(
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    supabase: AsyncClient = Depends(get_supabase),
):
    ensure_feature_enabled(request, "flashcards")
    query = validate_query(request, ListCollectionsQuery)
    result = await list_collections_use_case(db=supabase, user_id=current_user.id, query=query)
    return success_response(result)


@router.post("")
@with_problem_handling
async def create_collection(
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    supabase: AsyncClient = Depends(get_supabase),
):
    ensure_feature_enabled(request, "flashcards")
    command = await validate_body(request, CollectionCreate)
    result = await create_collection_use_case(db=supabase, user_id=current_user.id, command=command)
    return created_response(result, location=f"/api/collections/{result['id']}")


@router.patch("/{collection_id}")
@with_problem_handling
async def update_collection(
    collection_id: str,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    supabase: AsyncClient = Depends(get_supabase),
):
    """Rename a collection owned by the caller."""
    ensure_feature_enabled(request, "flashcards")
    parsed_id = parse_positive_id(collection_id, field="collection_id")
    command = await validate_body(request, CollectionUpdate)
    result = await update_collection_use_case(
        db=supabase,
        user_id=current_user.id,
        collection_id=parsed_id,
        command=command,
    )
    return success_response(result)


@router.delete("/{collection_id}")
@with_problem_handling
async def delete_collection(
    collection_id: str,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    supabase: AsyncClient = Depends(get_supabase),
):
    ensure_feature_enabled(request, "flashcards")
    result = await delete_collection_use_case(
        db=supabase,
        user_id=current_user.id,
        collection_id=parse_positive_id(collection_id, field="collection_id"),
    )
    return success_response(result)

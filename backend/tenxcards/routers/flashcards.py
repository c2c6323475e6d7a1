"""Flashcard endpoints."""
from fastapi import APIRouter, Depends, Request
from supabase import AsyncClient

from ..auth import CurrentUser, get_current_user
from ..database import get_supabase
from ..error_catalog import flashcard_errors
from ..features import ensure_feature_enabled
from ..problem_details import with_problem_handling
from ..responses import created_response, success_response
from ..schemas import FlashcardsCreate, FlashcardUpdate, ListFlashcardsQuery
from ..use_cases.flashcards import (
    create_flashcards_use_case,
    delete_flashcard_use_case,
    get_flashcard_use_case,
    list_flashcards_use_case,
    update_flashcard_use_case,
)
from ..validation import validate_body, validate_query

router = APIRouter(prefix="/flashcards", tags=["flashcards"])


def parse_positive_id(value: str, field: str = "flashcard_id") -> int:
    """Path ids are positive integers; anything else is a validation error."""
    if value.isascii() and value.isdigit() and int(value) > 0:
        return int(value)
    raise flashcard_errors.creators.ValidationFailed(
        "Check the form fields",
        meta={"formErrors": [], "fieldErrors": {field: ["Must be a positive integer"]}},
    )


@router.get("")
@with_problem_handling
async def list_flashcards(
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    supabase: AsyncClient = Depends(get_supabase),
):
    """List the caller's flashcards with filters and pagination."""
    ensure_feature_enabled(request, "flashcards")
    query = validate_query(request, ListFlashcardsQuery)
    result = await list_flashcards_use_case(db=supabase, user_id=current_user.id, query=query)
    return success_response(result)


@router.post("")
@with_problem_handling
async def create_flashcards(
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    supabase: AsyncClient = Depends(get_supabase),
):
    """Save manual cards or accepted AI candidates in bulk."""
    ensure_feature_enabled(request, "flashcards")
    command = await validate_body(request, FlashcardsCreate)
    result = await create_flashcards_use_case(db=supabase, user_id=current_user.id, command=command)
    return created_response(result)


@router.get("/{flashcard_id}")
@with_problem_handling
async def get_flashcard(
    flashcard_id: str,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    supabase: AsyncClient = Depends(get_supabase),
):
    ensure_feature_enabled(request, "flashcards")
    result = await get_flashcard_use_case(
        db=supabase,
        user_id=current_user.id,
        flashcard_id=parse_positive_id(flashcard_id),
    )
    return success_response(result)


@router.patch("/{flashcard_id}")
@with_problem_handling
async def update_flashcard(
    flashcard_id: str,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    supabase: AsyncClient = Depends(get_supabase),
):
    ensure_feature_enabled(request, "flashcards")
    parsed_id = parse_positive_id(flashcard_id)
    command = await validate_body(request, FlashcardUpdate)
    result = await update_flashcard_use_case(
        db=supabase,
        user_id=current_user.id,
        flashcard_id=parsed_id,
        command=command,
    )
    return success_response(result)


@router.delete("/{flashcard_id}")
@with_problem_handling
async def delete_flashcard(
    flashcard_id: str,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    supabase: AsyncClient = Depends(get_supabase),
):
    ensure_feature_enabled(request, "flashcards")
    result = await delete_flashcard_use_case(
        db=supabase,
        user_id=current_user.id,
        flashcard_id=parse_positive_id(flashcard_id),
    )
    return success_response(result)

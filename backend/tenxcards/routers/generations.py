"""AI generation endpoints."""
from fastapi import APIRouter, Depends, Request
from supabase import AsyncClient

from ..auth import CurrentUser, get_current_user
from ..config import app_settings
from ..database import get_supabase
from ..error_catalog import generation_errors
from ..features import ensure_feature_enabled
from ..problem_details import with_problem_handling
from ..rate_limit import RateLimiters, enforce_rate_limit, get_rate_limiters
from ..responses import created_response
from ..schemas import GenerationCreate
from ..services.flashcard_generator import FlashcardGenerator, MockFlashcardGenerator, get_flashcard_generator
from ..use_cases.generations import create_generation_use_case
from ..validation import validate_body

router = APIRouter(prefix="/generations", tags=["generations"])


@router.post("")
@with_problem_handling
async def create_generation(
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    supabase: AsyncClient = Depends(get_supabase),
    limiters: RateLimiters = Depends(get_rate_limiters),
    generator: FlashcardGenerator = Depends(get_flashcard_generator),
):
    """Generate flashcard candidates from a source text (1000 to 50000 characters)."""
    ensure_feature_enabled(request, "generations")
    await enforce_rate_limit(
        limiters.generations,
        f"user:{current_user.id}",
        generation_errors.creators.RateLimited,
        "Too many generation requests. Try again in a minute.",
    )
    command = await validate_body(request, GenerationCreate, errors=generation_errors)

    fallback = None
    if app_settings(request).GENERATION_MOCK_FALLBACK and generator.name != MockFlashcardGenerator.name:
        fallback = MockFlashcardGenerator()

    result = await create_generation_use_case(
        db=supabase,
        user_id=current_user.id,
        command=command,
        generator=generator,
        fallback_generator=fallback,
    )
    return created_response(result)

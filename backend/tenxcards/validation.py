"""Request body / query validation raising ``*/validation-failed`` domain errors."""
from __future__ import annotations

from typing import TypeVar

from fastapi import Request
from pydantic import BaseModel, ValidationError

from .domain_errors import DomainErrors
from .error_catalog import flashcard_errors
from .mappers.validation import from_validation_error

ModelT = TypeVar("ModelT", bound=BaseModel)


async def validate_body(request: Request, model: type[ModelT], errors: DomainErrors = flashcard_errors) -> ModelT:
    """Parse the raw JSON body; malformed JSON fails the same way as a schema mismatch."""
    raw = await request.body()
    try:
        return model.model_validate_json(raw or b"")
    except ValidationError as exc:
        raise from_validation_error(exc, errors=errors) from exc


def validate_query(request: Request, model: type[ModelT], errors: DomainErrors = flashcard_errors) -> ModelT:
    params = {key: value for key, value in request.query_params.items() if value != ""}
    try:
        return model.model_validate(params)
    except ValidationError as exc:
        raise from_validation_error(exc, errors=errors) from exc

"""Validation errors (pydantic / FastAPI request parsing) to ``*/validation-failed``."""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from ..domain_errors import DomainError, DomainErrors
from ..error_catalog import auth_errors, flashcard_errors

VALIDATION_DETAIL = "Check the form fields"
_LOCATION_ROOTS = frozenset({"body", "query", "path", "header", "cookie"})


def _issues(err: Any) -> list[Mapping[str, Any]]:
    errors = getattr(err, "errors", None)
    if not callable(errors):
        return []
    try:
        return [issue for issue in errors() if isinstance(issue, Mapping)]
    except Exception:
        return []


def flatten_errors(issues: Iterable[Mapping[str, Any]]) -> dict[str, Any]:
    """Split issues into form-level messages and per-field messages.

    Field paths are dot-joined and drop the request location prefix, so
    ``("body", "flashcards", 0, "front")`` becomes ``flashcards.0.front``.
    """
    form_errors: list[str] = []
    field_errors: dict[str, list[str]] = {}
    for issue in issues:
        location = [str(part) for part in issue.get("loc", ())]
        if location and location[0] in _LOCATION_ROOTS:
            location = location[1:]
        message = str(issue.get("msg") or "Invalid value")
        if location:
            field_errors.setdefault(".".join(location), []).append(message)
        else:
            form_errors.append(message)
    return {"formErrors": form_errors, "fieldErrors": field_errors}


def from_validation_error(err: Any, errors: DomainErrors = flashcard_errors) -> DomainError:
    """Always ``<domain>/validation-failed`` (400) with the field breakdown in ``meta``."""
    meta = flatten_errors(_issues(err))
    if not meta["formErrors"] and not meta["fieldErrors"]:
        meta["formErrors"].append(str(err) or "Invalid input")
    return errors.creators.ValidationFailed(VALIDATION_DETAIL, meta=meta, cause=err)


def from_validation_error_auth(err: Any) -> DomainError:
    return from_validation_error(err, errors=auth_errors)

"""PostgREST errors to ``flashcard/*`` domain errors."""
from __future__ import annotations

from typing import Any

from ..domain_errors import DomainError
from ..error_catalog import flashcard_errors
from .rules import MappingRule, RuleTable, classify, code_in, status_in

_flashcard = flashcard_errors.creators

# PGRST116: ``.single()`` matched zero (or several) rows.
NO_ROWS_CODE = "PGRST116"

SUPABASE_DB_RULES = RuleTable(
    name="supabase-db",
    codes=(MappingRule(code_in(NO_ROWS_CODE), _flashcard.NotFound, detail="Resource does not exist"),),
    statuses=(
        MappingRule(status_in(404), _flashcard.NotFound, detail="Resource does not exist"),
        MappingRule(status_in(429), _flashcard.RateLimited, detail="Request limit exceeded"),
    ),
    fallback=MappingRule(lambda _vendor: True, _flashcard.DatabaseError, default_detail="Database error"),
)


def from_supabase(err: Any) -> DomainError:
    return classify(err, SUPABASE_DB_RULES)


def is_no_rows(err: Any) -> bool:
    return getattr(err, "code", None) == NO_ROWS_CODE

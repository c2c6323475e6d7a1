"""Error catalogue: every error kind the API can answer with, per domain."""
from __future__ import annotations

from .domain_errors import define_domain

auth_errors = define_domain(
    "auth",
    {
        "Unauthorized": {"code": "auth/unauthorized", "status": 401, "title": "errors.auth.unauthorized"},
        "Forbidden": {"code": "auth/forbidden", "status": 403, "title": "errors.auth.forbidden"},
        "InvalidCredentials": {
            "code": "auth/invalid-credentials",
            "status": 401,
            "title": "errors.auth.invalid_credentials",
        },
        "ValidationFailed": {
            "code": "auth/validation-failed",
            "status": 400,
            "title": "errors.auth.validation_failed",
        },
        "UserExists": {"code": "auth/user-exists", "status": 409, "title": "errors.auth.user_exists"},
        "EmailNotConfirmed": {
            "code": "auth/email-not-confirmed",
            "status": 403,
            "title": "errors.auth.email_not_confirmed",
        },
        "RateLimited": {"code": "auth/rate-limited", "status": 429, "title": "errors.auth.rate_limited"},
        "ProviderError": {"code": "auth/provider-error", "status": 502, "title": "errors.auth.provider_error"},
        "TokenExpired": {"code": "auth/token-expired", "status": 410, "title": "errors.auth.token_expired"},
    },
)

flashcard_errors = define_domain(
    "flashcard",
    {
        "NotFound": {"code": "flashcard/not-found", "status": 404, "title": "errors.flashcard.not_found"},
        "ValidationFailed": {
            "code": "flashcard/validation-failed",
            "status": 400,
            "title": "errors.flashcard.validation_failed",
        },
        "DatabaseError": {
            "code": "flashcard/database-error",
            "status": 500,
            "title": "errors.flashcard.database_error",
        },
        "RateLimited": {
            "code": "flashcard/rate-limited",
            "status": 429,
            "title": "errors.flashcard.rate_limited",
        },
        "GenerationNotFound": {
            "code": "flashcard/generation-not-found",
            "status": 404,
            "title": "errors.flashcard.generation_not_found",
        },
        "CollectionNotFound": {
            "code": "flashcard/collection-not-found",
            "status": 404,
            "title": "errors.flashcard.collection_not_found",
        },
        "CollectionAccessDenied": {
            "code": "flashcard/collection-access-denied",
            "status": 403,
            "title": "errors.flashcard.collection_access_denied",
        },
    },
)

generation_errors = define_domain(
    "generation",
    {
        "ValidationFailed": {
            "code": "generation/validation-failed",
            "status": 400,
            "title": "errors.generation.validation_failed",
        },
        "ContentBlocked": {
            "code": "generation/content-blocked",
            "status": 422,
            "title": "errors.generation.content_blocked",
        },
        "ModelUnavailable": {
            "code": "generation/model-unavailable",
            "status": 503,
            "title": "errors.generation.model_unavailable",
        },
        "ProviderError": {
            "code": "generation/provider-error",
            "status": 502,
            "title": "errors.generation.provider_error",
        },
        "Timeout": {"code": "generation/timeout", "status": 504, "title": "errors.generation.timeout"},
        "RateLimited": {
            "code": "generation/rate-limited",
            "status": 429,
            "title": "errors.generation.rate_limited",
        },
    },
)

ai_errors = define_domain(
    "ai",
    {
        "InvalidInput": {"code": "ai/invalid-input", "status": 400, "title": "errors.ai.invalid_input"},
        "InvalidConfig": {"code": "ai/invalid-config", "status": 400, "title": "errors.ai.invalid_config"},
        "Unauthorized": {"code": "ai/unauthorized", "status": 401, "title": "errors.ai.unauthorized"},
        "Forbidden": {"code": "ai/forbidden", "status": 403, "title": "errors.ai.forbidden"},
        "BadRequest": {"code": "ai/bad-request", "status": 400, "title": "errors.ai.bad_request"},
        "RateLimited": {"code": "ai/rate-limited", "status": 429, "title": "errors.ai.rate_limited"},
        "Timeout": {"code": "ai/timeout", "status": 408, "title": "errors.ai.timeout"},
        "ContentBlocked": {"code": "ai/content-blocked", "status": 422, "title": "errors.ai.content_blocked"},
        "ProviderError": {"code": "ai/provider-error", "status": 502, "title": "errors.ai.provider_error"},
        "ServiceUnavailable": {
            "code": "ai/service-unavailable",
            "status": 503,
            "title": "errors.ai.service_unavailable",
        },
        "SchemaError": {"code": "ai/schema-error", "status": 422, "title": "errors.ai.schema_error"},
        "ValidationFailed": {
            "code": "ai/validation-failed",
            "status": 422,
            "title": "errors.ai.validation_failed",
        },
        "ParseError": {"code": "ai/parse-error", "status": 422, "title": "errors.ai.parse_error"},
        "RetryExhausted": {"code": "ai/retry-exhausted", "status": 503, "title": "errors.ai.retry_exhausted"},
    },
)

system_errors = define_domain(
    "system",
    {
        "Unexpected": {"code": "system/unexpected", "status": 500, "title": "errors.system.unexpected"},
        "FeatureDisabled": {
            "code": "system/feature-disabled",
            "status": 503,
            "title": "errors.system.feature_disabled",
        },
        "NotFound": {"code": "system/not-found", "status": 404, "title": "errors.system.not_found"},
        "ValidationFailed": {
            "code": "system/validation-failed",
            "status": 400,
            "title": "errors.system.validation_failed",
        },
        "MethodNotAllowed": {
            "code": "system/method-not-allowed",
            "status": 405,
            "title": "errors.system.method_not_allowed",
        },
        "BadRequest": {"code": "system/bad-request", "status": 400, "title": "errors.system.bad_request"},
        "Forbidden": {"code": "system/forbidden", "status": 403, "title": "errors.system.forbidden"},
        "Conflict": {"code": "system/conflict", "status": 409, "title": "errors.system.conflict"},
        "PayloadTooLarge": {
            "code": "system/payload-too-large",
            "status": 413,
            "title": "errors.system.payload_too_large",
        },
        "RateLimited": {"code": "system/rate-limited", "status": 429, "title": "errors.system.rate_limited"},
        "ServiceUnavailable": {
            "code": "system/service-unavailable",
            "status": 503,
            "title": "errors.system.service_unavailable",
        },
    },
)

ALL_DOMAINS = (auth_errors, flashcard_errors, generation_errors, ai_errors, system_errors)

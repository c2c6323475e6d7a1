"""AI provider errors to ``ai/*`` and ``generation/*`` domain errors.

``from_ai_sdk`` classifies raw provider failures (HTTP status, error body
codes) for the AI client. ``from_ai`` turns either a raw failure or an
``ai/*`` error into what the generation endpoint reports.
"""
from __future__ import annotations

from typing import Any

from ..domain_errors import DomainError
from ..error_catalog import ai_errors, generation_errors
from .rules import (
    MappingRule,
    RuleTable,
    classify,
    code_in,
    message_contains,
    policy_is,
    status_at_least,
    status_in,
)
from .vendor import VendorError

_ai = ai_errors.creators
_generation = generation_errors.creators


def _status_meta(vendor: VendorError) -> dict[str, Any]:
    return {"code": vendor.code or vendor.name, "status": vendor.status}


def _provider_meta(vendor: VendorError) -> dict[str, Any]:
    return {"provider": vendor.provider}


def _ai_rule(predicate, creator, default_detail: str) -> MappingRule:
    return MappingRule(predicate, creator, default_detail=default_detail, meta=_status_meta)


AI_SDK_RULES = RuleTable(
    name="ai-sdk",
    codes=(
        _ai_rule(code_in("content_blocked", "content_filter"), _ai.ContentBlocked, "Content blocked by policy"),
        _ai_rule(policy_is("blocked"), _ai.ContentBlocked, "Content blocked by policy"),
        _ai_rule(code_in("rate_limit_exceeded", "rate_limited"), _ai.RateLimited, "Rate limit exceeded"),
        _ai_rule(code_in("timeout", "etimedout", "request_timeout"), _ai.Timeout, "Request timeout"),
        _ai_rule(code_in("unauthorized", "invalid_api_key"), _ai.Unauthorized, "Unauthorized"),
        _ai_rule(code_in("forbidden"), _ai.Forbidden, "Forbidden"),
        _ai_rule(code_in("bad_request", "invalid_request_error"), _ai.BadRequest, "Bad request"),
        _ai_rule(
            code_in("model_unavailable", "service_unavailable", "model_not_found"),
            _ai.ServiceUnavailable,
            "Service unavailable",
        ),
        _ai_rule(code_in("provider_error", "server_error"), _ai.ProviderError, "Provider error"),
    ),
    statuses=(
        _ai_rule(status_in(429), _ai.RateLimited, "Rate limit exceeded"),
        _ai_rule(status_in(408), _ai.Timeout, "Request timeout"),
        _ai_rule(status_in(401), _ai.Unauthorized, "Unauthorized"),
        _ai_rule(status_in(402, 403), _ai.Forbidden, "Forbidden"),
        _ai_rule(status_in(400), _ai.BadRequest, "Bad request"),
        _ai_rule(status_in(503), _ai.ServiceUnavailable, "Service unavailable"),
        _ai_rule(status_at_least(500), _ai.ProviderError, "Provider error"),
    ),
    messages=(
        _ai_rule(message_contains("rate limit"), _ai.RateLimited, "Rate limit exceeded"),
        _ai_rule(message_contains("timed out", "timeout"), _ai.Timeout, "Request timeout"),
    ),
    fallback=_ai_rule(lambda _vendor: True, _ai.ValidationFailed, "Unknown AI provider error"),
)

CONTENT_BLOCKED_DETAIL = "Content was rejected by the AI model's content policy"
MODEL_UNAVAILABLE_DETAIL = "The AI model is temporarily unavailable"
RATE_LIMITED_DETAIL = "AI provider rate limit exceeded"
TIMEOUT_DETAIL = "The AI provider did not answer in time"


def _generation_rule(predicate, creator, detail: str) -> MappingRule:
    return MappingRule(predicate, creator, detail=detail, meta=_provider_meta)


AI_GENERATION_RULES = RuleTable(
    name="ai-generation",
    codes=(
        _generation_rule(
            code_in("content_blocked", "content_filter", "ai/content-blocked"),
            _generation.ContentBlocked,
            CONTENT_BLOCKED_DETAIL,
        ),
        _generation_rule(policy_is("blocked"), _generation.ContentBlocked, CONTENT_BLOCKED_DETAIL),
        _generation_rule(
            code_in("model_unavailable", "service_unavailable", "ai/service-unavailable", "ai/retry-exhausted"),
            _generation.ModelUnavailable,
            MODEL_UNAVAILABLE_DETAIL,
        ),
        _generation_rule(
            code_in("rate_limit_exceeded", "ai/rate-limited"),
            _generation.RateLimited,
            RATE_LIMITED_DETAIL,
        ),
        _generation_rule(code_in("timeout", "etimedout", "ai/timeout"), _generation.Timeout, TIMEOUT_DETAIL),
    ),
    statuses=(
        _generation_rule(status_in(429), _generation.RateLimited, RATE_LIMITED_DETAIL),
        _generation_rule(status_in(408, 504), _generation.Timeout, TIMEOUT_DETAIL),
        _generation_rule(status_in(503), _generation.ModelUnavailable, MODEL_UNAVAILABLE_DETAIL),
    ),
    messages=(
        _generation_rule(message_contains("rate limit"), _generation.RateLimited, RATE_LIMITED_DETAIL),
        _generation_rule(message_contains("timed out", "timeout"), _generation.Timeout, TIMEOUT_DETAIL),
    ),
    fallback=MappingRule(
        lambda _vendor: True,
        _generation.ProviderError,
        default_detail="AI service error",
        meta=_provider_meta,
    ),
)


def from_ai_sdk(err: Any) -> DomainError:
    return classify(err, AI_SDK_RULES)


def from_ai(err: Any) -> DomainError:
    return classify(err, AI_GENERATION_RULES)

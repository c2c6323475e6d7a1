"""Supabase Auth errors to ``auth/*`` domain errors."""
from __future__ import annotations

from typing import Any

from ..domain_errors import DomainError
from ..error_catalog import auth_errors
from .rules import MappingRule, RuleTable, classify, code_in, message_contains, status_in

_auth = auth_errors.creators

RATE_LIMITED_DETAIL = "Too many attempts. Try again in a moment."
INVALID_CREDENTIALS_DETAIL = "Invalid e-mail or password"
USER_EXISTS_DETAIL = "An account with this e-mail already exists"
EMAIL_NOT_CONFIRMED_DETAIL = "Account is not activated. Check your inbox."
PROVIDER_ERROR_DETAIL = "Authentication service error. Try again in a moment."
TOKEN_EXPIRED_DETAIL = "The link or code has expired. Request a new one."
INVALID_TOKEN_DETAIL = "The verification code is invalid"


def _rule(predicate, creator, detail: str | None = None, default_detail: str = "") -> MappingRule:
    return MappingRule(predicate, creator, detail=detail, default_detail=default_detail)


SUPABASE_AUTH_RULES = RuleTable(
    name="supabase-auth",
    codes=(
        _rule(
            code_in(
                "rate_limit_exceeded",
                "over_request_rate_limit",
                "over_email_send_rate_limit",
                "over_sms_send_rate_limit",
            ),
            _auth.RateLimited,
            RATE_LIMITED_DETAIL,
        ),
        _rule(code_in("invalid_credentials", "invalid_grant"), _auth.InvalidCredentials, INVALID_CREDENTIALS_DETAIL),
        _rule(
            code_in("user_already_registered", "user_already_exists", "email_exists", "signup_disabled"),
            _auth.UserExists,
            USER_EXISTS_DETAIL,
        ),
        _rule(
            code_in("email_not_confirmed", "email_address_not_authorized"),
            _auth.EmailNotConfirmed,
            EMAIL_NOT_CONFIRMED_DETAIL,
        ),
        _rule(code_in("provider_error", "unexpected_failure"), _auth.ProviderError, PROVIDER_ERROR_DETAIL),
    ),
    statuses=(
        _rule(status_in(429), _auth.RateLimited, RATE_LIMITED_DETAIL),
        _rule(status_in(400), _auth.InvalidCredentials, INVALID_CREDENTIALS_DETAIL),
        _rule(status_in(422), _auth.UserExists, USER_EXISTS_DETAIL),
        _rule(status_in(502, 503), _auth.ProviderError, PROVIDER_ERROR_DETAIL),
    ),
    messages=(
        _rule(message_contains("rate limit"), _auth.RateLimited, RATE_LIMITED_DETAIL),
        _rule(
            message_contains("invalid login", "invalid password", "email not found"),
            _auth.InvalidCredentials,
            INVALID_CREDENTIALS_DETAIL,
        ),
        _rule(message_contains("already registered"), _auth.UserExists, USER_EXISTS_DETAIL),
        _rule(
            message_contains("email not confirmed", "email not verified"),
            _auth.EmailNotConfirmed,
            EMAIL_NOT_CONFIRMED_DETAIL,
        ),
        _rule(message_contains("provider error", "service unavailable"), _auth.ProviderError, PROVIDER_ERROR_DETAIL),
    ),
    fallback=_rule(lambda _vendor: True, _auth.ProviderError, default_detail="Authentication error"),
)

# Token based flows (OTP verification, password update after a recovery link).
SUPABASE_AUTH_TOKEN_RULES = SUPABASE_AUTH_RULES.extended(
    name="supabase-auth-token",
    codes=(
        _rule(
            code_in("otp_expired", "token_expired", "session_expired", "session_not_found", "flow_state_expired"),
            _auth.TokenExpired,
            TOKEN_EXPIRED_DETAIL,
        ),
        _rule(code_in("invalid_token", "otp_invalid", "bad_jwt"), _auth.InvalidCredentials, INVALID_TOKEN_DETAIL),
    ),
    messages=(
        _rule(message_contains("expired"), _auth.TokenExpired, TOKEN_EXPIRED_DETAIL),
        _rule(message_contains("invalid token", "token is invalid"), _auth.InvalidCredentials, INVALID_TOKEN_DETAIL),
    ),
)


def from_supabase_auth(err: Any) -> DomainError:
    return classify(err, SUPABASE_AUTH_RULES)


def from_supabase_auth_token(err: Any) -> DomainError:
    return classify(err, SUPABASE_AUTH_TOKEN_RULES)

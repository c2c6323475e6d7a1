"""Authentication dependencies and session cookie helpers."""
import logging
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Depends, Request, Response
from supabase import AsyncClient, AuthError

from .config import app_settings
from .database import get_supabase
from .error_catalog import auth_errors

logger = logging.getLogger(__name__)

REFRESH_COOKIE_MAX_AGE = 30 * 86400


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: Optional[str]
    access_token: str


def get_access_token(request: Request) -> Optional[str]:
    """Bearer token from the Authorization header, else the session cookie."""
    header = request.headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return request.cookies.get(app_settings(request).AUTH_ACCESS_COOKIE_NAME) or None


def get_refresh_token(request: Request) -> Optional[str]:
    return request.cookies.get(app_settings(request).AUTH_REFRESH_COOKIE_NAME) or None


async def get_current_user(
    request: Request,
    supabase: AsyncClient = Depends(get_supabase),
) -> CurrentUser:
    """Resolve the caller from the access token and scope table queries to it."""
    token = get_access_token(request)
    if not token:
        raise auth_errors.creators.Unauthorized("Authentication required")

    try:
        response = await supabase.auth.get_user(token)
    except AuthError as exc:
        logger.info("Access token rejected: %s", getattr(exc, "code", None))
        raise auth_errors.creators.Unauthorized("Session is invalid or expired", cause=exc) from exc

    user = getattr(response, "user", None)
    if user is None:
        raise auth_errors.creators.Unauthorized("Session is invalid or expired")

    # Row level security policies see the caller, not the anon key.
    supabase.postgrest.auth(token)
    return CurrentUser(id=str(user.id), email=getattr(user, "email", None), access_token=token)


def get_base_url(request: Request) -> str:
    configured = app_settings(request).PUBLIC_SITE_URL
    if configured:
        return configured.rstrip("/")
    return f"{request.url.scheme}://{request.url.netloc}"


def _is_request_https(request: Request) -> bool:
    if app_settings(request).TRUST_PROXY_HEADERS:
        proto = request.headers.get("x-forwarded-proto")
        if proto:
            return proto.split(",")[0].strip().lower() == "https"
    return request.url.scheme == "https"


def set_session_cookies(response: Response, *, request: Request, session: Any) -> None:
    if session is None:
        return
    config = app_settings(request)
    secure = bool(config.AUTH_COOKIE_SECURE or _is_request_https(request))
    response.set_cookie(
        key=config.AUTH_ACCESS_COOKIE_NAME,
        value=session.access_token,
        httponly=True,
        secure=secure,
        samesite=config.AUTH_COOKIE_SAMESITE,
        path="/",
        max_age=int(getattr(session, "expires_in", None) or 3600),
    )
    refresh_token = getattr(session, "refresh_token", None)
    if refresh_token:
        response.set_cookie(
            key=config.AUTH_REFRESH_COOKIE_NAME,
            value=refresh_token,
            httponly=True,
            secure=secure,
            samesite=config.AUTH_COOKIE_SAMESITE,
            path="/",
            max_age=REFRESH_COOKIE_MAX_AGE,
        )


def clear_session_cookies(response: Response, *, request: Request) -> None:
    config = app_settings(request)
    secure = bool(config.AUTH_COOKIE_SECURE or _is_request_https(request))
    for name in (config.AUTH_ACCESS_COOKIE_NAME, config.AUTH_REFRESH_COOKIE_NAME):
        response.delete_cookie(key=name, path="/", secure=secure, samesite=config.AUTH_COOKIE_SAMESITE)

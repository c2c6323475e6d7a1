"""Authentication endpoints backed by Supabase auth."""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from supabase import AsyncClient, AuthError

from ..auth import (
    CurrentUser,
    clear_session_cookies,
    get_access_token,
    get_base_url,
    get_current_user,
    get_refresh_token,
    set_session_cookies,
)
from ..database import get_supabase
from ..error_catalog import auth_errors
from ..features import ensure_feature_enabled
from ..mappers.supabase_auth import from_supabase_auth, from_supabase_auth_token
from ..problem_details import with_problem_handling
from ..rate_limit import RateLimiters, enforce_rate_limit, get_rate_limiters, make_key_ip_email
from ..responses import created_response, no_content_response, success_response
from ..schemas import EmailRequest, LoginRequest, RegisterRequest, UpdatePasswordRequest, VerifyOtpRequest
from ..validation import validate_body

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

_auth = auth_errors.creators

TOO_MANY_ATTEMPTS = "Too many attempts. Try again in a moment."
RESET_PASSWORD_MESSAGE = "If an account exists for this address, we sent a password reset link."
RESEND_MESSAGE = "If an account exists for this address, we sent the activation link again."
CALLBACK_ERROR_REDIRECT = "/auth/login?error=callback"


@router.post("/login")
@with_problem_handling
async def login(
    request: Request,
    supabase: AsyncClient = Depends(get_supabase),
    limiters: RateLimiters = Depends(get_rate_limiters),
):
    """Sign in with e-mail and password; the session is returned as cookies."""
    payload = await validate_body(request, LoginRequest, errors=auth_errors)
    await enforce_rate_limit(
        limiters.login,
        make_key_ip_email(request, payload.email),
        _auth.RateLimited,
        TOO_MANY_ATTEMPTS,
    )

    try:
        result = await supabase.auth.sign_in_with_password({"email": payload.email, "password": payload.password})
    except AuthError as exc:
        raise from_supabase_auth(exc) from exc

    response = success_response({"user_id": result.user.id, "email": result.user.email or ""})
    set_session_cookies(response, request=request, session=result.session)
    logger.info("User %s signed in", result.user.id)
    return response


@router.post("/logout", status_code=204)
@with_problem_handling
async def logout(request: Request, supabase: AsyncClient = Depends(get_supabase)):
    token = get_access_token(request)
    if token:
        try:
            await supabase.auth.admin.sign_out(token)
        except AuthError as exc:
            raise from_supabase_auth(exc) from exc

    response = no_content_response()
    clear_session_cookies(response, request=request)
    return response


@router.post("/register")
@with_problem_handling
async def register(
    request: Request,
    supabase: AsyncClient = Depends(get_supabase),
    limiters: RateLimiters = Depends(get_rate_limiters),
):
    """Create an account.

    Returns 201 with a session when the project signs users in right away,
    200 with a "check your inbox" message when e-mail confirmation is on.
    """
    ensure_feature_enabled(request, "auth")
    payload = await validate_body(request, RegisterRequest, errors=auth_errors)
    await enforce_rate_limit(
        limiters.register,
        make_key_ip_email(request, payload.email),
        _auth.RateLimited,
        TOO_MANY_ATTEMPTS,
    )

    try:
        result = await supabase.auth.sign_up(
            {
                "email": payload.email,
                "password": payload.password,
                "options": {"email_redirect_to": f"{get_base_url(request)}/auth/callback?type=signup"},
            }
        )
    except AuthError as exc:
        raise from_supabase_auth(exc) from exc

    if result.user is None:
        raise _auth.ProviderError("Could not create the account. Try again.")

    if result.session is not None:
        response = created_response(
            {"user_id": result.user.id, "message": "Account created. You are now signed in."}
        )
        set_session_cookies(response, request=request, session=result.session)
        return response
    return success_response({"message": "We sent an activation link to your e-mail address."})


@router.post("/reset-password")
@with_problem_handling
async def reset_password(
    request: Request,
    supabase: AsyncClient = Depends(get_supabase),
    limiters: RateLimiters = Depends(get_rate_limiters),
):
    """Send a recovery link. The answer never reveals whether the account exists."""
    payload = await validate_body(request, EmailRequest, errors=auth_errors)
    await enforce_rate_limit(
        limiters.reset_password,
        make_key_ip_email(request, payload.email),
        _auth.RateLimited,
        TOO_MANY_ATTEMPTS,
    )

    try:
        await supabase.auth.reset_password_for_email(
            payload.email,
            {"redirect_to": f"{get_base_url(request)}/auth/callback?type=recovery"},
        )
    except AuthError as exc:
        raise from_supabase_auth(exc) from exc

    return success_response({"message": RESET_PASSWORD_MESSAGE})


@router.post("/update-password")
@with_problem_handling
async def update_password(
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    supabase: AsyncClient = Depends(get_supabase),
):
    ensure_feature_enabled(request, "auth")
    payload = await validate_body(request, UpdatePasswordRequest, errors=auth_errors)

    try:
        await supabase.auth.set_session(current_user.access_token, get_refresh_token(request) or "")
        await supabase.auth.update_user({"password": payload.password})
    except AuthError as exc:
        raise from_supabase_auth_token(exc) from exc

    logger.info("User %s changed the password", current_user.id)
    return success_response({"message": "Password updated. You can sign in now."})


@router.post("/verify-otp")
@with_problem_handling
async def verify_otp(request: Request, supabase: AsyncClient = Depends(get_supabase)):
    """Confirm a sign-up or recovery with the 6-digit code from the e-mail."""
    payload = await validate_body(request, VerifyOtpRequest, errors=auth_errors)
    otp_type = "email" if payload.type == "signup" else "recovery"

    try:
        result = await supabase.auth.verify_otp({"email": payload.email, "token": payload.token, "type": otp_type})
    except AuthError as exc:
        raise from_supabase_auth_token(exc) from exc

    if result.user is None:
        raise _auth.InvalidCredentials("The verification code is invalid")

    if payload.type == "signup":
        message = "E-mail verified. You are now signed in."
    else:
        message = "Code accepted. You can set a new password now."
    response = success_response({"user_id": result.user.id, "message": message})
    set_session_cookies(response, request=request, session=result.session)
    return response


@router.post("/resend-verification")
@with_problem_handling
async def resend_verification(request: Request, supabase: AsyncClient = Depends(get_supabase)):
    payload = await validate_body(request, EmailRequest, errors=auth_errors)

    try:
        await supabase.auth.resend(
            {
                "type": "signup",
                "email": payload.email,
                "options": {"email_redirect_to": f"{get_base_url(request)}/auth/callback?type=signup"},
            }
        )
    except AuthError as exc:
        # Same answer either way; a distinct error would reveal unknown addresses.
        logger.info("Resend verification failed: %s", from_supabase_auth(exc).code)

    return success_response({"message": RESEND_MESSAGE})


@router.get("/callback")
@with_problem_handling
async def auth_callback(request: Request, supabase: AsyncClient = Depends(get_supabase)):
    """Exchange the e-mail link code for a session and redirect into the app."""
    code = request.query_params.get("code")
    if not code:
        return RedirectResponse(CALLBACK_ERROR_REDIRECT, status_code=303)

    try:
        result = await supabase.auth.exchange_code_for_session({"auth_code": code})
    except AuthError as exc:
        logger.info("Auth callback failed: %s", from_supabase_auth_token(exc).code)
        return RedirectResponse(CALLBACK_ERROR_REDIRECT, status_code=303)

    target = "/auth/new-password" if request.query_params.get("type") == "recovery" else "/generate"
    response = RedirectResponse(target, status_code=303)
    set_session_cookies(response, request=request, session=result.session)
    return response

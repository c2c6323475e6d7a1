"""RFC 7807 Problem Details helpers.

``with_problem_handling`` is the single place where endpoint failures turn
into ``application/problem+json`` responses; ``register_problem_handlers``
covers everything that fails before a wrapped endpoint runs.
"""
from __future__ import annotations

import functools
import inspect
import logging
from collections.abc import Callable
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from .domain_errors import DomainError, ProblemDetails, as_domain_error, problem_type_uri, to_problem
from .error_catalog import auth_errors, system_errors
from .mappers.validation import from_validation_error

logger = logging.getLogger(__name__)

PROBLEM_MEDIA_TYPE = "application/problem+json"
REQUEST_ID_HEADER = "x-request-id"

_HTTP_STATUS_ERRORS = {
    400: system_errors.creators.ValidationFailed,
    401: auth_errors.creators.Unauthorized,
    404: system_errors.creators.NotFound,
    403: system_errors.creators.Forbidden,
    405: system_errors.creators.MethodNotAllowed,
    409: system_errors.creators.Conflict,
    413: system_errors.creators.PayloadTooLarge,
    429: system_errors.creators.RateLimited,
    503: system_errors.creators.ServiceUnavailable,
}


def _http_status_creator(status_code: int):
    """Creator for a framework HTTP error; unlisted 4xx stay client errors."""
    creator = _HTTP_STATUS_ERRORS.get(status_code)
    if creator is not None:
        return creator
    if 400 <= status_code < 500:
        return system_errors.creators.BadRequest
    return system_errors.creators.Unexpected


def request_id(request: Request | None) -> str:
    """Correlation id of ``request``: assigned by middleware, inbound, or new."""
    if request is None:
        return str(uuid4())
    existing = getattr(request.state, "request_id", None)
    if existing:
        return existing
    value = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
    request.state.request_id = value
    return value


def coerce_domain_error(exc: BaseException) -> DomainError:
    """Turn any raised exception into a registered DomainError."""
    error = as_domain_error(exc)
    if error is not None:
        return error
    if isinstance(exc, RequestValidationError):
        return from_validation_error(exc, errors=system_errors)
    if isinstance(exc, StarletteHTTPException):
        return _http_status_creator(exc.status_code)(str(exc.detail), cause=exc)
    return system_errors.creators.Unexpected("Internal server error", cause=exc)


def _fallback_payload(instance: str | None) -> dict[str, Any]:
    definition = system_errors.definitions["Unexpected"]
    return {
        "type": problem_type_uri(definition.code),
        "title": definition.title,
        "status": definition.status,
        "detail": "Internal server error",
        "code": definition.code,
        "instance": instance,
    }


def build_problem_details_response(
    problem: ProblemDetails,
    request_id: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Render a ProblemDetails document; falls back to a minimal 500 body if it cannot be serialized."""
    response_headers = dict(headers or {})
    response_headers[REQUEST_ID_HEADER] = request_id or str(uuid4())
    try:
        return JSONResponse(
            status_code=problem.status,
            content=problem.to_dict(),
            media_type=PROBLEM_MEDIA_TYPE,
            headers=response_headers,
        )
    except (TypeError, ValueError):
        logger.exception("Problem document for %s is not serializable", problem.code)
        return JSONResponse(
            status_code=500,
            content=_fallback_payload(problem.instance),
            media_type=PROBLEM_MEDIA_TYPE,
            headers=response_headers,
        )


def _log_error(error: DomainError, instance: str | None, correlation_id: str) -> None:
    if error.status >= 500:
        cause = error.cause if isinstance(error.cause, BaseException) else None
        exc_info = (type(cause), cause, cause.__traceback__) if cause is not None else None
        logger.error(
            "Request failed: code=%s path=%s request_id=%s detail=%s",
            error.code,
            instance,
            correlation_id,
            error.message,
            exc_info=exc_info,
        )
    else:
        logger.info(
            "Request rejected: code=%s status=%s path=%s request_id=%s",
            error.code,
            error.status,
            instance,
            correlation_id,
        )


def problem_response(exc: BaseException, request: Request | None) -> JSONResponse:
    error = coerce_domain_error(exc)
    instance = request.url.path if request is not None else None
    correlation_id = request_id(request)
    _log_error(error, instance, correlation_id)
    headers = getattr(exc, "headers", None) if isinstance(exc, StarletteHTTPException) else None
    return build_problem_details_response(to_problem(error, instance), correlation_id, headers)


def _find_request(args: tuple[Any, ...], kwargs: dict[str, Any]) -> Request | None:
    for value in (*kwargs.values(), *args):
        if isinstance(value, Request):
            return value
    return None


def _attach_request_id(response: Any, request: Request | None) -> Any:
    if isinstance(response, Response) and REQUEST_ID_HEADER not in response.headers:
        response.headers[REQUEST_ID_HEADER] = request_id(request)
    return response


def with_problem_handling(endpoint: Callable[..., Any]) -> Callable[..., Any]:
    """Wrap an endpoint so every raised error becomes a problem+json response.

    The endpoint keeps its signature, so FastAPI dependency injection is
    unaffected. It should accept ``request: Request`` to get ``instance``
    and correlation id right.
    """
    if inspect.iscoroutinefunction(endpoint):

        @functools.wraps(endpoint)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            request = _find_request(args, kwargs)
            try:
                response = await endpoint(*args, **kwargs)
            except Exception as exc:
                return problem_response(exc, request)
            return _attach_request_id(response, request)

        return async_wrapper

    @functools.wraps(endpoint)
    def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
        request = _find_request(args, kwargs)
        try:
            response = endpoint(*args, **kwargs)
        except Exception as exc:
            return problem_response(exc, request)
        return _attach_request_id(response, request)

    return sync_wrapper


def register_problem_handlers(app: FastAPI) -> None:
    """Register problem+json handlers for errors raised outside wrapped endpoints."""

    @app.exception_handler(DomainError)
    async def _handle_domain_error(request: Request, exc: DomainError) -> JSONResponse:
        return problem_response(exc, request)

    @app.exception_handler(RequestValidationError)
    async def _handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        return problem_response(exc, request)

    @app.exception_handler(StarletteHTTPException)
    async def _handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return problem_response(exc, request)

    @app.exception_handler(Exception)
    async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        return problem_response(exc, request)

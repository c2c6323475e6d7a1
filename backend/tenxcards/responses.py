"""JSON response constructors for the API envelope.

Success bodies are ``{"data": ..., "meta": {"timestamp", "status"}}``.
Caller headers are merged in, but never replace the fixed content type.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi.responses import JSONResponse
from starlette.responses import Response


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _merge_headers(headers: dict[str, str] | None) -> dict[str, str]:
    return {key: value for key, value in (headers or {}).items() if key.lower() != "content-type"}


def success_response(data: Any, status_code: int = 200, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"data": data, "meta": {"timestamp": _timestamp(), "status": "success"}},
        headers=_merge_headers(headers),
    )


def created_response(data: Any, location: str | None = None, headers: dict[str, str] | None = None) -> JSONResponse:
    merged = _merge_headers(headers)
    if location:
        merged["location"] = location
    return success_response(data, status_code=201, headers=merged)


def no_content_response(headers: dict[str, str] | None = None) -> Response:
    """204 with an empty body and no content-type header."""
    return Response(status_code=204, headers=_merge_headers(headers))


def error_response(
    code: str,
    message: str,
    status_code: int,
    *,
    details: Any = None,
    instance: str | None = None,
    hint: str | None = None,
    docs: str | None = None,
    trace_id: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Structured error envelope for clients that do not speak problem+json."""
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": code,
                "message": message,
                "details": details,
                "httpStatus": status_code,
                "instance": instance,
                "hint": hint,
                "docs": docs,
                "traceId": trace_id,
            },
            "meta": {"timestamp": _timestamp(), "status": "error"},
        },
        headers=_merge_headers(headers),
    )

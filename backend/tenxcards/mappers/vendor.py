"""Untrusted vendor error shape.

Upstream SDKs raise or return errors of many shapes (exceptions with
attributes, decoded JSON bodies, nested ``error`` objects). They are read
once into ``VendorError``, whose fields are all optional, and the mappers
only ever look at that.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


def _reader(source: Any):
    if isinstance(source, Mapping):
        return source.get

    def _get(name: str, default: Any = None) -> Any:
        try:
            return getattr(source, name, default)
        except Exception:
            return default

    return _get


def _as_text(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value or None
    if isinstance(value, int):
        return None
    return str(value) or None


def _as_status(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


@dataclass(frozen=True)
class VendorError:
    code: str | None = None
    name: str | None = None
    status: int | None = None
    message: str | None = None
    provider: str | None = None
    policy: str | None = None

    @classmethod
    def from_any(cls, error: Any) -> "VendorError":
        if isinstance(error, VendorError):
            return error
        if error is None:
            return cls()
        if isinstance(error, str):
            return cls(message=error or None)

        get = _reader(error)
        nested = get("error")
        nested_get = _reader(nested) if nested is not None and not isinstance(nested, str) else None

        code = _as_text(get("code"))
        status = _as_status(get("status")) or _as_status(get("statusCode")) or _as_status(get("status_code"))
        message = _as_text(get("message"))
        if nested_get is not None:
            nested_code = nested_get("code")
            code = code or _as_text(nested_code)
            status = status or _as_status(nested_code)
            message = message or _as_text(nested_get("message"))
        elif isinstance(nested, str):
            message = message or _as_text(nested)
        if status is None:
            response = get("response")
            if response is not None:
                status = _as_status(_reader(response)("status_code"))
        if message is None and isinstance(error, BaseException):
            message = _as_text(str(error))

        provider = _as_text(get("provider"))
        meta = get("meta")
        if provider is None and isinstance(meta, Mapping):
            provider = _as_text(meta.get("provider"))

        return cls(
            code=code,
            name=_as_text(get("name")),
            status=status,
            message=message,
            provider=provider,
            policy=_as_text(get("policy")),
        )

    @property
    def identifiers(self) -> tuple[str, ...]:
        """Lower-cased ``code`` and ``name``, the explicit vendor identifiers."""
        return tuple(value.lower() for value in (self.code, self.name) if value)

"""Domain-level exception primitives with stable machine-readable codes.

Every failure the API reports is a ``DomainError`` built by a creator that
belongs to one business domain. The creator fixes ``code``, ``status`` and
``title``; callers only supply the instance data (``detail``, ``meta`` and
the originating ``cause``).
"""
from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from .config import settings


@dataclass(frozen=True)
class ErrorDefinition:
    """Registry row: one error kind of one domain."""

    domain: str
    code: str
    status: int
    title: str

    @property
    def name(self) -> str:
        """Kebab-case part of the code, e.g. ``invalid-credentials``."""
        return self.code.split("/", 1)[1]


_REGISTRY: dict[str, ErrorDefinition] = {}


def register_definition(definition: ErrorDefinition) -> ErrorDefinition:
    """Add a definition to the process-wide code index.

    Registering the same code twice is allowed only with an identical row.
    """
    prefix, sep, name = definition.code.partition("/")
    if not sep or not name or prefix != definition.domain:
        raise ValueError(
            f"Error code {definition.code!r} must look like '{definition.domain}/<name>'"
        )
    existing = _REGISTRY.get(definition.code)
    if existing is not None and existing != definition:
        raise ValueError(f"Error code {definition.code!r} is already registered as {existing!r}")
    _REGISTRY[definition.code] = definition
    return definition


def lookup_definition(code: str) -> ErrorDefinition | None:
    return _REGISTRY.get(code)


class DomainError(Exception):
    """Use-case level error with a registry-backed code and HTTP mapping.

    Instances are immutable. ``cause`` is kept for server-side logging only
    and is never part of ``to_dict()``.
    """

    def __init__(
        self,
        definition: ErrorDefinition,
        message: str = "",
        *,
        meta: dict[str, Any] | None = None,
        cause: BaseException | Any | None = None,
    ) -> None:
        super().__init__(message)
        object.__setattr__(self, "definition", definition)
        object.__setattr__(self, "message", message or "")
        object.__setattr__(self, "meta", meta)
        object.__setattr__(self, "cause", cause)

    def __setattr__(self, name: str, value: Any) -> None:
        # The interpreter and contextlib still need to attach tracebacks and notes.
        if name.startswith("__") and name.endswith("__"):
            super().__setattr__(name, value)
            return
        raise AttributeError(f"{type(self).__name__} is immutable; cannot set {name!r}")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable; cannot delete {name!r}")

    @property
    def domain(self) -> str:
        return self.definition.domain

    @property
    def code(self) -> str:
        return self.definition.code

    @property
    def status(self) -> int:
        return self.definition.status

    @property
    def title(self) -> str:
        return self.definition.title

    @property
    def detail(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        return {
            "domain": self.domain,
            "code": self.code,
            "status": self.status,
            "title": self.title,
            "message": self.message,
            "meta": self.meta,
        }

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, status={self.status}, message={self.message!r})"


def is_domain_error(value: object) -> bool:
    """True for DomainError instances and for objects shaped like one."""
    if isinstance(value, DomainError):
        return True
    return isinstance(getattr(value, "code", None), str) and isinstance(getattr(value, "status", None), int)


def as_domain_error(value: object) -> DomainError | None:
    """Return ``value`` as a registered DomainError, or None when it is not one.

    Duck-typed errors are accepted only when their code is in the registry, so
    the status always comes from the registry row and never from the object.
    """
    if isinstance(value, DomainError):
        return value
    if not is_domain_error(value):
        return None
    definition = lookup_definition(getattr(value, "code"))
    if definition is None:
        return None
    message = getattr(value, "message", None) or getattr(value, "detail", None) or str(value)
    return DomainError(definition, str(message), meta=getattr(value, "meta", None), cause=value)


@dataclass(frozen=True)
class ProblemDetails:
    """RFC 7807 document produced for a single response."""

    type: str
    title: str
    status: int
    detail: str
    code: str
    instance: str | None = None
    meta: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": self.type,
            "title": self.title,
            "status": self.status,
            "detail": self.detail,
            "code": self.code,
            "instance": self.instance,
        }
        if self.meta is not None:
            payload["meta"] = self.meta
        return payload


def problem_type_uri(code: str, base: str | None = None) -> str:
    base = (base or settings.PROBLEM_TYPE_BASE).rstrip("/")
    return f"{base}/{code}"


def to_problem(error: DomainError, instance: str | None = None, *, type_base: str | None = None) -> ProblemDetails:
    return ProblemDetails(
        type=problem_type_uri(error.code, type_base),
        title=error.title,
        status=error.status,
        detail=error.message,
        code=error.code,
        instance=instance,
        meta=error.meta,
    )


class ErrorCreator:
    """Callable building DomainErrors of one fixed kind."""

    def __init__(self, name: str, definition: ErrorDefinition) -> None:
        self.name = name
        self.definition = definition

    @property
    def code(self) -> str:
        return self.definition.code

    @property
    def status(self) -> int:
        return self.definition.status

    def __call__(
        self,
        detail: str = "",
        *,
        meta: dict[str, Any] | None = None,
        cause: BaseException | Any | None = None,
    ) -> DomainError:
        return DomainError(self.definition, detail, meta=meta, cause=cause)

    def matches(self, error: object) -> bool:
        return getattr(error, "code", None) == self.definition.code

    def __repr__(self) -> str:
        return f"ErrorCreator({self.name!r}, code={self.code!r})"


class CreatorSet:
    """Attribute-style access to the creators of one domain."""

    def __init__(self, creators: Mapping[str, ErrorCreator]) -> None:
        self._creators = dict(creators)

    def __getattr__(self, name: str) -> ErrorCreator:
        try:
            return self._creators[name]
        except KeyError:
            raise AttributeError(name) from None

    def __getitem__(self, name: str) -> ErrorCreator:
        return self._creators[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._creators)

    def __len__(self) -> int:
        return len(self._creators)

    def items(self):
        return self._creators.items()


class DomainErrors:
    """Result of ``define_domain``: creators plus the problem converter."""

    def __init__(self, domain: str, definitions: Mapping[str, ErrorDefinition]) -> None:
        self.domain = domain
        self.definitions = dict(definitions)
        self.creators = CreatorSet(
            {name: ErrorCreator(name, definition) for name, definition in self.definitions.items()}
        )

    def to_problem(self, error: DomainError, instance: str | None = None) -> ProblemDetails:
        return to_problem(error, instance)

    def __repr__(self) -> str:
        return f"DomainErrors({self.domain!r}, {sorted(self.definitions)})"


def define_domain(domain: str, entries: Mapping[str, Mapping[str, Any]]) -> DomainErrors:
    """Declare the error kinds of ``domain``.

    ``entries`` maps a creator name to ``{"code", "status", "title"}``.
    """
    definitions: dict[str, ErrorDefinition] = {}
    for name, entry in entries.items():
        definition = ErrorDefinition(
            domain=domain,
            code=str(entry["code"]),
            status=int(entry["status"]),
            title=str(entry["title"]),
        )
        definitions[name] = register_definition(definition)
    return DomainErrors(domain, definitions)

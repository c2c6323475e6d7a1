"""Rule tables for translating vendor errors into domain errors.

A table holds three tiers evaluated in order: explicit vendor codes, then
HTTP status, then case-insensitive message fragments. The first matching
rule wins; when nothing matches the table's fallback rule is used.
"""
from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any

from ..domain_errors import DomainError, ErrorCreator
from .vendor import VendorError

Predicate = Callable[[VendorError], bool]
MetaFactory = Callable[[VendorError], dict[str, Any] | None]


def code_in(*codes: str) -> Predicate:
    wanted = frozenset(code.lower() for code in codes)

    def _predicate(vendor: VendorError) -> bool:
        return any(identifier in wanted for identifier in vendor.identifiers)

    return _predicate


def status_in(*statuses: int) -> Predicate:
    wanted = frozenset(statuses)
    return lambda vendor: vendor.status in wanted


def status_at_least(threshold: int) -> Predicate:
    return lambda vendor: vendor.status is not None and vendor.status >= threshold


def message_contains(*fragments: str) -> Predicate:
    wanted = tuple(fragment.lower() for fragment in fragments)

    def _predicate(vendor: VendorError) -> bool:
        message = (vendor.message or "").lower()
        return any(fragment in message for fragment in wanted)

    return _predicate


def policy_is(value: str) -> Predicate:
    return lambda vendor: (vendor.policy or "").lower() == value.lower()


@dataclass(frozen=True)
class MappingRule:
    """``predicate`` selects the rule; ``creator`` builds the error.

    ``detail`` is used verbatim when set. Otherwise the vendor message is
    used, or ``default_detail`` when the vendor sent none.
    """

    predicate: Predicate
    creator: ErrorCreator
    detail: str | None = None
    default_detail: str = ""
    meta: MetaFactory | None = None

    def build(self, vendor: VendorError, cause: Any = None) -> DomainError:
        detail = self.detail if self.detail is not None else (vendor.message or self.default_detail)
        meta = self.meta(vendor) if self.meta is not None else None
        return self.creator(detail, meta=meta, cause=cause)


@dataclass(frozen=True)
class RuleTable:
    fallback: MappingRule
    codes: tuple[MappingRule, ...] = ()
    statuses: tuple[MappingRule, ...] = ()
    messages: tuple[MappingRule, ...] = ()
    name: str = field(default="rules", compare=False)

    def __iter__(self) -> Iterator[MappingRule]:
        yield from self.codes
        yield from self.statuses
        yield from self.messages

    def first_match(self, vendor: VendorError) -> MappingRule | None:
        for rule in self:
            if rule.predicate(vendor):
                return rule
        return None

    def extended(
        self,
        *,
        codes: tuple[MappingRule, ...] = (),
        statuses: tuple[MappingRule, ...] = (),
        messages: tuple[MappingRule, ...] = (),
        fallback: MappingRule | None = None,
        name: str | None = None,
    ) -> "RuleTable":
        """New table whose tiers are prefixed with the given rules."""
        return RuleTable(
            fallback=fallback or self.fallback,
            codes=codes + self.codes,
            statuses=statuses + self.statuses,
            messages=messages + self.messages,
            name=name or self.name,
        )


def classify(error: Any, table: RuleTable) -> DomainError:
    """Map ``error`` through ``table``; the original is kept as the cause."""
    vendor = VendorError.from_any(error)
    rule = table.first_match(vendor) or table.fallback
    return rule.build(vendor, cause=error)

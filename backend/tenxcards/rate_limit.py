"""Fixed-window rate limiting for sensitive endpoints.

Limiters are plain objects built by ``build_rate_limiters`` when the app is
created and stored on ``app.state``; nothing here is a module-level
singleton. The in-memory limiter is a soft throttle for a single process.
Set ``RATE_LIMIT_BACKEND=redis`` to share counters between instances.
"""
from __future__ import annotations

import ipaddress
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import redis
from fastapi import Request
from redis.exceptions import RedisError
from starlette.concurrency import run_in_threadpool

from .config import Settings, app_settings, settings as default_settings
from .domain_errors import ErrorCreator

logger = logging.getLogger(__name__)

WINDOW_MS = 60_000

Clock = Callable[[], float]


def _now_ms() -> float:
    return time.time() * 1000


@dataclass
class RateLimitEntry:
    count: int
    reset_at: float  # epoch milliseconds


class RateLimiter(Protocol):
    window_ms: int
    max_requests: int
    blocking: bool
    clock: Clock

    def check(self, key: str) -> bool: ...

    def get(self, key: str) -> RateLimitEntry | None: ...

    def reset(self, key: str) -> None: ...


class InMemoryRateLimiter:
    """Per-key counters in a dict owned by this instance."""

    blocking = False

    def __init__(self, window_ms: int = WINDOW_MS, max_requests: int = 5, clock: Clock | None = None) -> None:
        self.window_ms = window_ms
        self.max_requests = max_requests
        self.clock = clock or _now_ms
        self._entries: dict[str, RateLimitEntry] = {}
        self._next_sweep_at = 0.0

    def tracked_keys(self) -> int:
        return len(self._entries)

    def _sweep(self, now: float) -> None:
        # At most once per window; expired entries behave exactly like missing ones.
        if now < self._next_sweep_at:
            return
        self._entries = {key: entry for key, entry in self._entries.items() if now <= entry.reset_at}
        self._next_sweep_at = now + self.window_ms

    def check(self, key: str) -> bool:
        """Count a request for ``key``; False when the window quota is used up."""
        now = self.clock()
        self._sweep(now)
        entry = self._entries.get(key)
        if entry is None or now > entry.reset_at:
            self._entries[key] = RateLimitEntry(count=1, reset_at=now + self.window_ms)
            return True
        if entry.count >= self.max_requests:
            return False
        entry.count += 1
        return True

    def get(self, key: str) -> RateLimitEntry | None:
        """Current entry, or None once its window has passed."""
        entry = self._entries.get(key)
        if entry is None or self.clock() > entry.reset_at:
            return None
        return RateLimitEntry(count=entry.count, reset_at=entry.reset_at)

    def reset(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()


def create_in_memory_rate_limiter(
    window_ms: int = WINDOW_MS,
    max_requests: int = 5,
    clock: Clock | None = None,
) -> InMemoryRateLimiter:
    return InMemoryRateLimiter(window_ms=window_ms, max_requests=max_requests, clock=clock)


class RedisRateLimiter:
    """Same contract on Redis INCR + PEXPIRE. Fails open when Redis is down."""

    blocking = True

    def __init__(
        self,
        client: redis.Redis,
        *,
        window_ms: int = WINDOW_MS,
        max_requests: int = 5,
        prefix: str = "rl",
        clock: Clock | None = None,
    ) -> None:
        self._redis = client
        self.window_ms = window_ms
        self.max_requests = max_requests
        self.prefix = prefix
        self.clock = clock or _now_ms

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    def check(self, key: str) -> bool:
        redis_key = self._key(key)
        try:
            value = int(self._redis.incr(redis_key))
            if value == 1:
                self._redis.pexpire(redis_key, self.window_ms)
        except RedisError:
            logger.exception("Redis error during rate limiting (fail-open)")
            return True
        return value <= self.max_requests

    def get(self, key: str) -> RateLimitEntry | None:
        redis_key = self._key(key)
        try:
            raw = self._redis.get(redis_key)
            ttl_ms = self._redis.pttl(redis_key)
        except RedisError:
            logger.exception("Redis error while reading rate limit entry")
            return None
        if raw is None or ttl_ms is None or ttl_ms < 0:
            return None
        return RateLimitEntry(count=int(raw), reset_at=self.clock() + int(ttl_ms))

    def reset(self, key: str) -> None:
        try:
            self._redis.delete(self._key(key))
        except RedisError:
            logger.exception("Redis error while resetting rate limit entry (ignored)")


@dataclass
class RateLimiters:
    login: RateLimiter
    register: RateLimiter
    reset_password: RateLimiter
    generations: RateLimiter


def build_rate_limiters(config: Settings | None = None, clock: Clock | None = None) -> RateLimiters:
    config = config or default_settings
    limits = {
        "login": config.AUTH_LOGIN_LIMIT_PER_MINUTE,
        "register": config.AUTH_REGISTER_LIMIT_PER_MINUTE,
        "reset_password": config.AUTH_RESET_LIMIT_PER_MINUTE,
        "generations": config.GENERATION_LIMIT_PER_MINUTE,
    }
    if config.RATE_LIMIT_BACKEND.lower() == "redis":
        client = redis.from_url(config.REDIS_URL, decode_responses=True)
        return RateLimiters(
            **{
                name: RedisRateLimiter(client, max_requests=limit, prefix=f"rl:{name}", clock=clock)
                for name, limit in limits.items()
            }
        )
    return RateLimiters(
        **{name: InMemoryRateLimiter(max_requests=limit, clock=clock) for name, limit in limits.items()}
    )


def get_rate_limiters(request: Request) -> RateLimiters:
    return request.app.state.rate_limiters


async def enforce_rate_limit(limiter: RateLimiter, key: str, creator: ErrorCreator, detail: str) -> None:
    """Raise ``creator`` (a rate-limited kind) when ``key`` is over quota."""
    if limiter.blocking:
        allowed = await run_in_threadpool(limiter.check, key)
    else:
        allowed = limiter.check(key)
    if allowed:
        return
    entry = await run_in_threadpool(limiter.get, key) if limiter.blocking else limiter.get(key)
    meta = None
    if entry is not None:
        now = limiter.clock()
        meta = {"retry_after": max(0, int((entry.reset_at - now + 999) // 1000))}
    logger.warning("Rate limit exceeded for %s", creator.code)
    raise creator(detail, meta=meta)


_PROXY_HEADERS = (
    "x-forwarded-for",
    "x-real-ip",
    "cf-connecting-ip",
    "true-client-ip",
    "fastly-client-ip",
    "x-client-ip",
    "x-cluster-client-ip",
)


def _valid_ip(candidate: str) -> str | None:
    candidate = candidate.strip().strip('"')
    try:
        ipaddress.ip_address(candidate)
    except ValueError:
        return None
    return candidate


def _forwarded_for(value: str) -> str | None:
    # Forwarded: for=192.0.2.60;proto=http, for="[2001:db8::1]:4711"
    first = value.split(",")[0]
    for part in first.split(";"):
        name, _, raw = part.strip().partition("=")
        if name.lower() != "for":
            continue
        raw = raw.strip().strip('"')
        if raw.startswith("["):
            raw = raw[1:].split("]", 1)[0]
        elif raw.count(":") == 1:
            raw = raw.split(":", 1)[0]
        return _valid_ip(raw)
    return None


def get_client_ip(request: Request, trust_proxy: bool | None = None) -> str:
    if trust_proxy is None:
        trust_proxy = app_settings(request).TRUST_PROXY_HEADERS
    if trust_proxy:
        for header in _PROXY_HEADERS:
            value = request.headers.get(header)
            if not value:
                continue
            # X-Forwarded-For may contain a list: client, proxy1, proxy2
            ip = _valid_ip(value.split(",")[0])
            if ip:
                return ip
        forwarded = request.headers.get("forwarded")
        if forwarded:
            ip = _forwarded_for(forwarded)
            if ip:
                return ip

    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def make_key_ip(request: Request) -> str:
    return get_client_ip(request)


def make_key_ip_email(request: Request, email: str) -> str:
    return f"{get_client_ip(request)}:{email.strip().lower()}"

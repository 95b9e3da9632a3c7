"""Fixed-window rate limiting over a swappable counter store.

Every store exposes an atomic ``hit(key, window_seconds)`` that increments
the counter for ``key`` and reports the new count together with the seconds
left in the current window. Limiters only ever talk to that interface.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from threading import Lock

import redis

from src.config import settings
from src.domain.errors import RateLimitExceeded
from src.observability import incr_metric, log_event


@dataclass
class RateLimitEntry:
    count: int
    window_start: float
    expires_at: float
    last_access: float


@dataclass(frozen=True)
class HitResult:
    count: int
    retry_after: int


def _clock() -> float:
    return time.monotonic()


class MemoryRateLimitStore:
    """In-process counters with lazy expiry and a soft cap on tracked keys."""

    def __init__(self, name: str, max_entries: int = 50000, eviction_fraction: float = 0.1) -> None:
        self.name = name
        self.max_entries = max_entries
        self.eviction_fraction = eviction_fraction
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _evict_oldest(self) -> None:
        evict_count = max(1, int(len(self._entries) * self.eviction_fraction))
        oldest = sorted(self._entries.items(), key=lambda item: item[1].last_access)[:evict_count]
        for key, _ in oldest:
            del self._entries[key]
        incr_metric("ratelimit.evicted", value=len(oldest), store=self.name)
        log_event(
            "ratelimit_store_evicted",
            level=logging.WARNING,
            store=self.name,
            evicted=len(oldest),
            max_entries=self.max_entries,
        )

    def hit(self, key: str, window_seconds: int) -> HitResult:
        with self._lock:
            now = _clock()
            entry = self._entries.get(key)
            if entry is not None and entry.expires_at <= now:
                del self._entries[key]
                entry = None
            if entry is None:
                if len(self._entries) >= self.max_entries:
                    self._evict_oldest()
                entry = RateLimitEntry(count=0, window_start=now, expires_at=now + window_seconds, last_access=now)
                self._entries[key] = entry
            entry.count += 1
            entry.last_access = now
            return HitResult(count=entry.count, retry_after=max(1, math.ceil(entry.expires_at - now)))

    def peek(self, key: str) -> RateLimitEntry | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.expires_at <= _clock():
                del self._entries[key]
                return None
            return entry

    def reset(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def sweep_expired(self) -> int:
        with self._lock:
            now = _clock()
            expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
            for key in expired:
                del self._entries[key]
            return len(expired)


class RedisRateLimitStore:
    """Shared counters in Redis; one MULTI/EXEC round trip per hit."""

    def __init__(self, client: redis.Redis, name: str) -> None:
        self.client = client
        self.name = name

    def _key(self, key: str) -> str:
        return f"ratelimit:{self.name}:{key}"

    def hit(self, key: str, window_seconds: int) -> HitResult:
        redis_key = self._key(key)
        pipe = self.client.pipeline(transaction=True)
        pipe.set(redis_key, 0, nx=True, px=window_seconds * 1000)
        pipe.incr(redis_key)
        pipe.pttl(redis_key)
        _, count, ttl_ms = pipe.execute()
        if ttl_ms is None or ttl_ms < 0:
            # Key lost its expiry (e.g. persisted by hand); restart the window.
            self.client.pexpire(redis_key, window_seconds * 1000)
            ttl_ms = window_seconds * 1000
        return HitResult(count=int(count), retry_after=max(1, math.ceil(ttl_ms / 1000)))

    def peek(self, key: str) -> RateLimitEntry | None:
        redis_key = self._key(key)
        count = self.client.get(redis_key)
        if count is None:
            return None
        ttl_ms = self.client.pttl(redis_key)
        now = _clock()
        expires_at = now + max(ttl_ms, 0) / 1000
        return RateLimitEntry(count=int(count), window_start=now, expires_at=expires_at, last_access=now)

    def reset(self, key: str) -> None:
        self.client.delete(self._key(key))

    def clear(self) -> None:
        keys = list(self.client.scan_iter(match=self._key("*")))
        if keys:
            self.client.delete(*keys)

    def sweep_expired(self) -> int:
        return 0

    def __len__(self) -> int:
        return sum(1 for _ in self.client.scan_iter(match=self._key("*")))


def create_rate_limit_store(name: str):
    if settings.use_redis_rate_limit and settings.redis_url:
        client = redis.from_url(settings.redis_url, decode_responses=True)
        return RedisRateLimitStore(client, name)
    return MemoryRateLimitStore(name, max_entries=settings.rate_limit_max_entries)


class RateLimiter:
    def __init__(self, store, limit: int, window_seconds: int) -> None:
        self.store = store
        self.limit = limit
        self.window_seconds = window_seconds

    def hit(self, key: str) -> HitResult:
        return self.store.hit(key, self.window_seconds)

    def allow(self, key: str) -> bool:
        return self.hit(key).count <= self.limit

    def check(self, key: str) -> None:
        result = self.hit(key)
        if result.count > self.limit:
            incr_metric("ratelimit.rejected", store=self.store.name)
            raise RateLimitExceeded(retry_after=result.retry_after)

    def reset(self, key: str) -> None:
        self.store.reset(key)


class LoginAttemptTracker:
    """Locks an identity+IP pair out after too many attempts inside the window."""

    def __init__(self, store, max_attempts: int, window_seconds: int) -> None:
        self.limiter = RateLimiter(store, max_attempts, window_seconds)

    @staticmethod
    def key_for(identity: str, ip_address: str | None) -> str:
        return f"{identity.strip().lower()}:{ip_address or 'unknown'}"

    def attempt(self, key: str) -> None:
        result = self.limiter.hit(key)
        if result.count > self.limiter.limit:
            incr_metric("auth.login.locked_out")
            log_event("login_locked_out", level=logging.WARNING, retry_after=result.retry_after)
            raise RateLimitExceeded(
                "Too many login attempts. Please try again later.",
                retry_after=result.retry_after,
            )

    def reset(self, key: str) -> None:
        self.limiter.reset(key)


_stores: dict[str, object] = {}


def get_rate_limit_store(name: str):
    if name not in _stores:
        _stores[name] = create_rate_limit_store(name)
    return _stores[name]


def all_rate_limit_stores() -> list:
    return list(_stores.values())


login_attempts = LoginAttemptTracker(
    get_rate_limit_store("login"),
    max_attempts=settings.login_max_attempts,
    window_seconds=settings.login_lockout_window_seconds,
)

super_admin_login_attempts = LoginAttemptTracker(
    get_rate_limit_store("super_admin_login"),
    max_attempts=settings.login_max_attempts,
    window_seconds=settings.login_lockout_window_seconds,
)

impersonation_limiter = RateLimiter(
    get_rate_limit_store("impersonation"),
    limit=settings.impersonation_rate_limit,
    window_seconds=settings.impersonation_rate_limit_window_seconds,
)


def sweep_rate_limit_stores() -> int:
    removed = sum(store.sweep_expired() for store in all_rate_limit_stores())
    if removed:
        log_event("ratelimit_swept", removed=removed)
    return removed


async def run_periodic_sweep(interval_seconds: int | None = None) -> None:
    interval = interval_seconds or settings.rate_limit_sweep_interval_seconds
    while True:
        await asyncio.sleep(interval)
        sweep_rate_limit_stores()

import threading

import pytest
from fastapi.testclient import TestClient

from src import ratelimit
from src.auth.passwords import hash_password
from src.domain.errors import RateLimitExceeded
from src.main import app
from src.ratelimit import (
    LoginAttemptTracker,
    MemoryRateLimitStore,
    RateLimiter,
    RedisRateLimitStore,
    sweep_rate_limit_stores,
)


@pytest.fixture
def clock(monkeypatch):
    state = {"now": 1000.0}
    monkeypatch.setattr(ratelimit, "_clock", lambda: state["now"])
    return state


def test_hits_count_within_window_and_restart_after_expiry(clock) -> None:
    store = MemoryRateLimitStore("test")

    assert store.hit("k", 60).count == 1
    clock["now"] += 20
    second = store.hit("k", 60)
    assert second.count == 2
    assert second.retry_after == 40

    clock["now"] += 40
    assert store.hit("k", 60).count == 1


def test_peek_drops_expired_entries(clock) -> None:
    store = MemoryRateLimitStore("test")
    store.hit("k", 10)

    assert store.peek("k").count == 1
    clock["now"] += 10
    assert store.peek("k") is None
    assert len(store) == 0


def test_store_evicts_least_recently_used_at_capacity(clock) -> None:
    store = MemoryRateLimitStore("test", max_entries=3)
    for key in ("a", "b", "c"):
        store.hit(key, 600)
        clock["now"] += 1
    store.hit("a", 600)
    clock["now"] += 1

    store.hit("d", 600)

    assert len(store) == 3
    assert store.peek("b") is None
    assert store.peek("a").count == 2


def test_sweep_removes_only_expired_entries(clock) -> None:
    store = ratelimit.get_rate_limit_store("login")
    store.hit("short", 5)
    store.hit("long", 500)
    clock["now"] += 10

    assert sweep_rate_limit_stores() == 1
    assert store.peek("long") is not None


def test_limiter_check_raises_with_retry_after(clock) -> None:
    limiter = RateLimiter(MemoryRateLimitStore("test"), limit=2, window_seconds=300)

    limiter.check("op")
    limiter.check("op")
    with pytest.raises(RateLimitExceeded) as exc_info:
        limiter.check("op")

    assert exc_info.value.status_code == 429
    assert exc_info.value.retry_after == 300
    assert limiter.allow("other") is True


def test_login_tracker_locks_out_then_resets(clock) -> None:
    tracker = LoginAttemptTracker(MemoryRateLimitStore("test"), max_attempts=5, window_seconds=900)
    key = tracker.key_for(" Alice@Example.com ", "10.0.0.1")

    assert key == "alice@example.com:10.0.0.1"
    for _ in range(5):
        tracker.attempt(key)
    with pytest.raises(RateLimitExceeded) as exc_info:
        tracker.attempt(key)
    assert exc_info.value.message == "Too many login attempts. Please try again later."

    tracker.reset(key)
    tracker.attempt(key)


def test_concurrent_hits_are_counted_exactly_once_each() -> None:
    store = MemoryRateLimitStore("test")
    limiter = RateLimiter(store, limit=50, window_seconds=60)
    results = []
    results_lock = threading.Lock()

    def worker():
        for _ in range(20):
            allowed = limiter.allow("shared")
            with results_lock:
                results.append(allowed)

    threads = [threading.Thread(target=worker) for _ in range(10)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert store.peek("shared").count == 200
    assert results.count(True) == 50


class FakePipeline:
    def __init__(self, redis_client: "FakeRedis"):
        self.redis = redis_client
        self.ops = []

    def set(self, key, value, nx=False, px=None):
        self.ops.append(("set", key, value, nx, px))
        return self

    def incr(self, key):
        self.ops.append(("incr", key))
        return self

    def pttl(self, key):
        self.ops.append(("pttl", key))
        return self

    def execute(self):
        results = []
        for op in self.ops:
            if op[0] == "set":
                _, key, value, nx, px = op
                if nx and key in self.redis.values:
                    results.append(None)
                else:
                    self.redis.values[key] = value
                    self.redis.ttls[key] = px
                    results.append(True)
            elif op[0] == "incr":
                self.redis.values[op[1]] = int(self.redis.values.get(op[1], 0)) + 1
                results.append(self.redis.values[op[1]])
            else:
                results.append(self.redis.ttls.get(op[1], -2))
        return results


class FakeRedis:
    def __init__(self):
        self.values = {}
        self.ttls = {}

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    def delete(self, *keys):
        for key in keys:
            self.values.pop(key, None)
            self.ttls.pop(key, None)


def test_redis_store_sets_window_once_and_counts() -> None:
    client = FakeRedis()
    store = RedisRateLimitStore(client, "login")

    first = store.hit("k", 900)
    client.ttls["ratelimit:login:k"] = 450_000
    second = store.hit("k", 900)

    assert first.count == 1
    assert first.retry_after == 900
    assert second.count == 2
    assert second.retry_after == 450
    store.reset("k")
    assert "ratelimit:login:k" not in client.values


# --- HTTP surface ---

def test_login_is_locked_out_after_repeated_failures(seed) -> None:
    seed.organization("org-1")
    seed.user("u-1", orgs=("org-1",), password_hash=hash_password("correct-horse"))
    client = TestClient(app)
    body = {"email": "u-1@example.com", "password": "wrong"}

    statuses = [client.post("/api/auth/login", json=body).status_code for _ in range(5)]
    locked = client.post("/api/auth/login", json={**body, "password": "correct-horse"})

    assert statuses == [401] * 5
    assert locked.status_code == 429
    assert int(locked.headers["Retry-After"]) > 0
    assert locked.json()["detail"] == "Too many login attempts. Please try again later."


def test_successful_login_clears_failed_attempts(seed) -> None:
    seed.organization("org-1")
    seed.user("u-1", orgs=("org-1",), password_hash=hash_password("correct-horse"))
    client = TestClient(app)

    for _ in range(4):
        client.post("/api/auth/login", json={"email": "u-1@example.com", "password": "wrong"})
    ok = client.post("/api/auth/login", json={"email": "u-1@example.com", "password": "correct-horse"})
    after = [
        client.post("/api/auth/login", json={"email": "u-1@example.com", "password": "wrong"}).status_code
        for _ in range(5)
    ]

    assert ok.status_code == 200
    assert after == [401] * 5


def test_impersonation_token_requests_are_rate_limited(seed) -> None:
    seed.organization("org-1")
    seed.super_admin("sa-1")
    seed.support_session("ss-1")
    client = TestClient(app)
    headers = seed.super_admin_headers()
    body = {"sessionId": "ss-1", "organizationId": "org-1"}

    statuses = [
        client.post("/api/support/impersonation/token", json=body, headers=headers).status_code
        for _ in range(11)
    ]

    assert statuses[:10] == [200] * 10
    assert statuses[10] == 429

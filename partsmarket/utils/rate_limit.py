from __future__ import annotations

import math
import os
import threading
import time
from dataclasses import dataclass

import redis
from flask import current_app, has_app_context, request


_EXTENSION_KEY = "partsmarket.rate_limiter"


@dataclass
class RateLimitDecision:
    allowed: bool
    retry_after_seconds: int = 0
    remaining: int = 0


class RateLimiter:
    """consume(key, limit, window) -> allowed or denied with retry-after."""

    name = "unknown"

    def consume(self, key: str, *, limit: int, window_seconds: float) -> RateLimitDecision:
        raise NotImplementedError

    def stats(self) -> dict:
        return {"backend": self.name}


def _retry_after(seconds: float) -> int:
    return int(max(1, math.ceil(max(0.0, seconds))))


class MemoryRateLimiter(RateLimiter):
    """
    Process-local counters. `sliding` keeps one timestamp per hit and forgets a
    hit once `now - ts >= window`; `fixed` anchors the window at the first hit.
    Not shared across processes.
    """

    name = "memory"

    def __init__(self, *, clock=time.monotonic, mode: str = "sliding", sweep_every_seconds: float = 60.0):
        if mode not in ("sliding", "fixed"):
            raise ValueError(f"unknown rate limit mode: {mode}")
        self._clock = clock
        self._mode = mode
        self._lock = threading.Lock()
        self._hits: dict[str, list[float]] = {}
        self._buckets: dict[str, tuple[int, float]] = {}
        self._windows: dict[str, float] = {}
        self._sweep_every = float(sweep_every_seconds)
        self._last_sweep = float(clock())
        self._denied = 0

    def consume(self, key: str, *, limit: int, window_seconds: float) -> RateLimitDecision:
        safe_limit = max(1, int(limit))
        window = max(0.001, float(window_seconds))
        now = float(self._clock())
        with self._lock:
            if now - self._last_sweep >= self._sweep_every:
                self._sweep(now)
            self._windows[key] = window
            if self._mode == "fixed":
                return self._consume_fixed(key, safe_limit, window, now)
            bucket = [ts for ts in self._hits.get(key, []) if now - ts < window]
            if len(bucket) >= safe_limit:
                self._hits[key] = bucket
                self._denied += 1
                return RateLimitDecision(False, _retry_after(window - (now - min(bucket))), 0)
            bucket.append(now)
            self._hits[key] = bucket
            return RateLimitDecision(True, 0, safe_limit - len(bucket))

    def _consume_fixed(self, key: str, limit: int, window: float, now: float) -> RateLimitDecision:
        count, started = self._buckets.get(key, (0, now))
        if count == 0 or now - started >= window:
            self._buckets[key] = (1, now)
            return RateLimitDecision(True, 0, limit - 1)
        if count >= limit:
            self._denied += 1
            return RateLimitDecision(False, _retry_after(started + window - now), 0)
        self._buckets[key] = (count + 1, started)
        return RateLimitDecision(True, 0, limit - count - 1)

    def _sweep(self, now: float) -> None:
        # Drop keys whose newest hit or window start is a full window old.
        for key in list(self._hits):
            hits = self._hits[key]
            if not hits or now - hits[-1] >= self._windows.get(key, 0.0):
                del self._hits[key]
                self._windows.pop(key, None)
        for key in list(self._buckets):
            _, started = self._buckets[key]
            if now - started >= self._windows.get(key, 0.0):
                del self._buckets[key]
                self._windows.pop(key, None)
        self._last_sweep = now

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
            self._buckets.clear()
            self._windows.clear()

    def stats(self) -> dict:
        with self._lock:
            return {"backend": self.name, "mode": self._mode, "keys": len(self._hits) + len(self._buckets), "denied": self._denied}


class RedisRateLimiter(RateLimiter):
    """
    Shared counters: INCR a per-key counter whose TTL is set on the first hit,
    so the window is anchored at that hit. Redis failures fall back to the
    process-local limiter.
    """

    name = "redis"

    def __init__(self, client, *, prefix: str = "rl:v2", fallback: RateLimiter | None = None):
        self._client = client
        self._prefix = prefix
        self._fallback = fallback or MemoryRateLimiter()
        self._lock = threading.Lock()
        self._stats = {"redis_hits": 0, "redis_errors": 0}

    def consume(self, key: str, *, limit: int, window_seconds: float) -> RateLimitDecision:
        safe_limit = max(1, int(limit))
        window_ms = max(1, int(float(window_seconds) * 1000))
        counter_key = f"{self._prefix}:{key}"
        try:
            current = int(self._client.incr(counter_key))
            if current == 1:
                self._client.pexpire(counter_key, window_ms)
            with self._lock:
                self._stats["redis_hits"] += 1
            if current <= safe_limit:
                return RateLimitDecision(True, 0, safe_limit - current)
            ttl_ms = int(self._client.pttl(counter_key))
            if ttl_ms < 0:
                self._client.pexpire(counter_key, window_ms)
                ttl_ms = window_ms
            return RateLimitDecision(False, _retry_after(ttl_ms / 1000.0), 0)
        except redis.RedisError:
            with self._lock:
                self._stats["redis_errors"] += 1
            return self._fallback.consume(key, limit=safe_limit, window_seconds=window_seconds)

    def stats(self) -> dict:
        with self._lock:
            return {"backend": self.name, **self._stats}


def _env_bool(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return bool(default)
    return raw in ("1", "true", "yes", "on")


def rate_limit_enabled(default: bool = True) -> bool:
    return _env_bool("RATE_LIMIT_ENABLED", default)


def trust_proxy_headers(default: bool = False) -> bool:
    return _env_bool("TRUST_PROXY_HEADERS", default)


def _rate_limit_redis_url() -> str:
    return (os.getenv("RATE_LIMIT_REDIS_URL") or os.getenv("REDIS_URL") or "").strip()


def build_rate_limiter(logger=None) -> RateLimiter:
    url = _rate_limit_redis_url()
    if not url:
        return MemoryRateLimiter()
    try:
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=0.75,
            socket_timeout=0.75,
            health_check_interval=30,
        )
        client.ping()
        return RedisRateLimiter(client)
    except (redis.RedisError, ValueError) as e:
        if logger is not None:
            logger.warning("rate_limit_redis_unavailable err=%s", e)
        return MemoryRateLimiter()


def init_rate_limiter(app, limiter: RateLimiter | None = None) -> RateLimiter:
    chosen = limiter or build_rate_limiter(app.logger)
    app.extensions[_EXTENSION_KEY] = chosen
    app.logger.info("rate_limiter_ready backend=%s", chosen.name)
    return chosen


def set_rate_limiter(app, limiter: RateLimiter) -> RateLimiter:
    app.extensions[_EXTENSION_KEY] = limiter
    return limiter


def get_rate_limiter() -> RateLimiter:
    limiter = current_app.extensions.get(_EXTENSION_KEY) if has_app_context() else None
    if limiter is None:
        raise RuntimeError("rate limiter is not initialised for this app")
    return limiter


def check_limit(key: str, *, limit: int, window_seconds: float) -> tuple[bool, int]:
    decision = get_rate_limiter().consume(key, limit=limit, window_seconds=window_seconds)
    return decision.allowed, decision.retry_after_seconds


def resolve_client_ip(req, *, trusted_proxy: bool = True) -> str:
    if trusted_proxy:
        xff = (req.headers.get("X-Forwarded-For") or "").strip()
        if xff:
            first_hop = (xff.split(",")[0] or "").strip()
            if first_hop:
                return first_hop
        x_real_ip = (req.headers.get("X-Real-IP") or "").strip()
        if x_real_ip:
            return x_real_ip
    remote = (req.remote_addr or "").strip()
    if remote:
        return remote
    return "unknown"


def build_rate_limit_subject(*, scope: str, user_id: str | None, request_obj=None, trusted_proxy: bool | None = None) -> str:
    req = request_obj or request
    normalized_scope = (scope or "ip").strip().lower()
    trusted = trust_proxy_headers(False) if trusted_proxy is None else bool(trusted_proxy)
    if normalized_scope == "user" and user_id is not None:
        return f"u:{user_id}"
    return f"ip:{resolve_client_ip(req, trusted_proxy=trusted)}"


def limiter_stats() -> dict:
    stats = get_rate_limiter().stats()
    stats["enabled"] = bool(rate_limit_enabled(True))
    stats["redis_configured"] = bool(_rate_limit_redis_url())
    return stats


__all__ = [
    "RateLimitDecision",
    "RateLimiter",
    "MemoryRateLimiter",
    "RedisRateLimiter",
    "build_rate_limiter",
    "init_rate_limiter",
    "set_rate_limiter",
    "get_rate_limiter",
    "check_limit",
    "rate_limit_enabled",
    "resolve_client_ip",
    "trust_proxy_headers",
    "build_rate_limit_subject",
    "limiter_stats",
]

"""Rate limiting helpers used by the HTTP layer."""

from __future__ import annotations

import asyncio
import math
import time
from collections import defaultdict, deque
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import HTTPException, Request, Response, status
from fastapi_limiter import FastAPILimiter
from fastapi_limiter.depends import RateLimiter
from loguru import logger
from redis.asyncio import Redis

from src.adspace.runtime.config.config_data import RateLimiterConfig

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."

RateLimiterType = Callable[[Request, Response], Awaitable[Any]]


def _too_many_requests(retry_after: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail=RATE_LIMIT_MESSAGE,
        headers={"Retry-After": str(retry_after)},
    )


async def _redis_limit_exceeded(request: Request, response: Response, pexpire: int) -> None:
    raise _too_many_requests(math.ceil(pexpire / 1000))


class LocalRateLimiter:
    """Sliding-window limiter kept in process memory, keyed by client address."""

    def __init__(
        self,
        times: int,
        milliseconds: int,
        per_endpoint: bool = False,
        per_method: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._hits: defaultdict[str, deque[float]] = defaultdict(deque)
        self._lock = asyncio.Lock()
        self._times = times
        self._seconds = milliseconds / 1000
        self._per_endpoint = per_endpoint
        self._per_method = per_method
        self._clock = clock
        self._last_cleanup = clock()
        self._cleanup_interval = 60.0  # seconds

    async def __call__(self, request: Request, response: Response) -> None:
        await self._throttle(self._make_key(request))

    def _make_key(self, request: Request) -> str:
        client_host = request.client.host if request.client else "anonymous"
        parts = [f"ip:{client_host}"]
        if self._per_method:
            parts.append(request.method)
        if self._per_endpoint:
            route = request.scope.get("route")
            template = getattr(route, "path", None)
            parts.append((template or request.url.path).rstrip("/"))
        return ":".join(parts)

    def _cleanup_old_keys(self, now: float) -> None:
        """Drop keys whose hits have all left the window."""
        if now - self._last_cleanup < self._cleanup_interval:
            return
        self._last_cleanup = now
        stale = [
            key
            for key, hits in self._hits.items()
            if not hits or hits[-1] <= now - self._seconds
        ]
        for key in stale:
            del self._hits[key]

    def clear(self) -> None:
        self._hits.clear()

    async def _throttle(self, key: str) -> None:
        async with self._lock:
            now = self._clock()
            self._cleanup_old_keys(now)
            window_start = now - self._seconds
            hits = self._hits[key]
            while hits and hits[0] <= window_start:
                hits.popleft()
            if len(hits) >= self._times:
                retry_after = max(1, math.ceil(self._seconds - (now - hits[0])))
                logger.warning("Rate limit exceeded for {}", key)
                raise _too_many_requests(retry_after)
            hits.append(now)


def build_rate_limiter(
    config: RateLimiterConfig, redis_url: str | None = None
) -> RateLimiterType | None:
    """Pick the limiter for ``config``: None when disabled, Redis-backed when a URL is set."""
    if not config.enabled:
        logger.info("Rate limiting disabled")
        return None
    if redis_url:
        logger.info("Using Redis-backed rate limiter from fastapi-limiter")
        return RateLimiter(
            times=config.requests,
            milliseconds=config.window_ms,
            callback=_redis_limit_exceeded,
        )
    logger.info("Using local in-memory rate limiter")
    return local_rate_limiter(config)


def local_rate_limiter(config: RateLimiterConfig) -> LocalRateLimiter:
    return LocalRateLimiter(
        config.requests,
        config.window_ms,
        per_endpoint=config.per_endpoint,
        per_method=config.per_method,
    )


async def init_redis_rate_limiter(redis_url: str) -> Redis:
    """Connect fastapi-limiter to Redis; must run before a Redis-backed limiter is used."""
    client = Redis.from_url(redis_url, encoding="utf-8", decode_responses=True)
    await FastAPILimiter.init(client)
    logger.info("FastAPI limiter initialized with Redis")
    return client


async def close_rate_limiter(limiter: RateLimiterType | None) -> None:
    if isinstance(limiter, LocalRateLimiter):
        limiter.clear()
    elif isinstance(limiter, RateLimiter) and FastAPILimiter.redis is not None:
        await FastAPILimiter.close()
        logger.info("Closed FastAPILimiter Redis connection")


async def enforce_rate_limit(request: Request, response: Response) -> None:
    """App-wide dependency applying the configured limiter, if any."""
    limiter = request.app.state.app_dependencies.rate_limiter
    if limiter is not None:
        await limiter(request, response)

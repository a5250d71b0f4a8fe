"""Fixed-window rate limiting for parse requests.

The limiter talks to an explicit ``RateLimitStore``. In production the store
is Upstash Redis (REST API); when it is not configured or cannot be reached,
an in-process store takes over. In-process entries expire by timestamp
comparison and are swept lazily on later hits, so no cleanup task is needed.

Upstash REST pipeline API:
https://upstash.com/docs/redis/features/restapi
"""

import logging
import math
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from typing import Any

import httpx
from pydantic import BaseModel

from magic_invoice.shared.config import Settings

logger = logging.getLogger(__name__)


class RateLimitDecision(BaseModel):
    """Outcome of one rate-limit check.

    Attributes:
        allowed: Whether the request may proceed
        remaining: Requests left in the current window
        reset_at: Window end, seconds since the epoch
        retry_after: Whole seconds until the window resets (at least 1)
    """

    allowed: bool
    remaining: int
    reset_at: float
    retry_after: int


class RateLimitState(BaseModel):
    """Counter for one key within its current window."""

    count: int
    reset_at: float


def _seconds_until(reset_at: float, now: float) -> int:
    return max(1, math.ceil(reset_at - now))


class RateLimitStore(ABC):
    """Key -> window counter store."""

    @abstractmethod
    def hit(self, key: str, window_seconds: int, max_requests: int, now: float) -> RateLimitDecision:
        """Count one request for ``key`` and decide whether it is allowed.

        Raises:
            RateLimitStoreError: If the store cannot give a usable answer
        """
        pass


class RateLimitStoreError(Exception):
    """The store could not be reached or returned an unusable reply."""


class InMemoryRateLimitStore(RateLimitStore):
    """Process-local store.

    Expired windows are swept at most once per window, so memory stays
    bounded by the clients seen within roughly one window.
    """

    def __init__(self) -> None:
        self._states: dict[str, RateLimitState] = {}
        self._lock = threading.Lock()
        self._next_sweep = 0.0

    def _sweep(self, window_seconds: int, now: float) -> None:
        if now < self._next_sweep:
            return
        expired = [key for key, state in self._states.items() if now > state.reset_at]
        for key in expired:
            del self._states[key]
        self._next_sweep = now + window_seconds

    def hit(self, key: str, window_seconds: int, max_requests: int, now: float) -> RateLimitDecision:
        with self._lock:
            self._sweep(window_seconds, now)
            existing = self._states.get(key)

            if existing is None or now > existing.reset_at:
                reset_at = now + window_seconds
                self._states[key] = RateLimitState(count=1, reset_at=reset_at)
                return RateLimitDecision(
                    allowed=True,
                    remaining=max_requests - 1,
                    reset_at=reset_at,
                    retry_after=math.ceil(window_seconds),
                )

            if existing.count >= max_requests:
                return RateLimitDecision(
                    allowed=False,
                    remaining=0,
                    reset_at=existing.reset_at,
                    retry_after=_seconds_until(existing.reset_at, now),
                )

            existing.count += 1
            return RateLimitDecision(
                allowed=True,
                remaining=max(0, max_requests - existing.count),
                reset_at=existing.reset_at,
                retry_after=_seconds_until(existing.reset_at, now),
            )


class UpstashRateLimitStore(RateLimitStore):
    """Durable store backed by Upstash Redis (INCR + PTTL, EXPIRE on first hit)."""

    def __init__(self, url: str, token: str, timeout: float = 5.0) -> None:
        self._url = url.rstrip("/")
        self._client = httpx.Client(
            timeout=timeout,
            headers={"Authorization": f"Bearer {token}"},
        )

    def _pipeline(self, commands: list[list[Any]]) -> Any:
        try:
            response = self._client.post(f"{self._url}/pipeline", json=commands)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise RateLimitStoreError(f"Upstash request failed: {e}") from e

    @staticmethod
    def _result(reply: Any, index: int) -> Any:
        if not isinstance(reply, list) or len(reply) <= index:
            return None
        item = reply[index]
        return item.get("result") if isinstance(item, dict) else None

    def hit(self, key: str, window_seconds: int, max_requests: int, now: float) -> RateLimitDecision:
        reply = self._pipeline([["INCR", key], ["PTTL", key]])
        raw_pttl = self._result(reply, 1)
        try:
            count = int(self._result(reply, 0))
            pttl = int(raw_pttl) if raw_pttl is not None else -1
        except (TypeError, ValueError) as e:
            raise RateLimitStoreError(f"Unexpected Upstash reply: {reply!r}") from e

        if pttl > 0:
            reset_at = now + pttl / 1000
        else:
            reset_at = now + window_seconds
            self._pipeline([["EXPIRE", key, math.ceil(window_seconds)]])

        allowed = count <= max_requests
        return RateLimitDecision(
            allowed=allowed,
            remaining=max(0, max_requests - count) if allowed else 0,
            reset_at=reset_at,
            retry_after=_seconds_until(reset_at, now),
        )


class RateLimiter:
    """Checks request keys against a window/max policy.

    Tries the durable store first and falls back to the in-memory store when
    it is missing or failing.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        store: RateLimitStore | None = None,
        fallback_store: RateLimitStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._store = store
        self._fallback_store = fallback_store or InMemoryRateLimitStore()
        self._clock = clock

    def check(self, key: str) -> RateLimitDecision:
        """Count one request for ``key``."""
        now = self._clock()
        if self._store is not None:
            try:
                return self._store.hit(key, self.window_seconds, self.max_requests, now)
            except RateLimitStoreError as e:
                logger.warning(f"Rate-limit store unavailable, using in-memory fallback: {e}")
        return self._fallback_store.hit(key, self.window_seconds, self.max_requests, now)


def create_rate_limiter(settings: Settings) -> RateLimiter:
    """Create the parse rate limiter, durable when Upstash is configured."""
    store: RateLimitStore | None = None
    if settings.upstash_redis_rest_url and settings.upstash_redis_rest_token:
        store = UpstashRateLimitStore(
            settings.upstash_redis_rest_url, settings.upstash_redis_rest_token
        )
        logger.info("Using Upstash rate-limit store")

    return RateLimiter(
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
        store=store,
    )


def get_client_ip(headers: Mapping[str, str], fallback: str | None = None) -> str:
    """Resolve the client IP from proxy headers.

    Precedence: cf-connecting-ip, x-real-ip, first x-forwarded-for entry,
    then ``fallback`` (the socket peer) or "unknown".
    """
    for header in ("cf-connecting-ip", "x-real-ip"):
        value = (headers.get(header) or "").strip()
        if value:
            return value

    forwarded_for = headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip() or "unknown"

    return fallback or "unknown"

"""Sliding-window request and token limits per provider.

Each provider keeps a deque of ``(timestamp, tokens)`` usage entries. Entries
older than the window are pruned on every check and by a periodic sweep.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

__all__ = ["RateLimit", "RateLimiter", "WINDOW_SECONDS"]

WINDOW_SECONDS = 60.0


@dataclass(frozen=True)
class RateLimit:
    requests_per_minute: int
    tokens_per_minute: int


class RateLimiter:
    """Per-provider sliding 60 second window.

    The limiter is shared by concurrent requests; sync routes run in a thread
    pool, so all state changes happen under a lock.
    """

    def __init__(
        self,
        limits: dict[str, RateLimit] | None = None,
        clock: Callable[[], float] = time.monotonic,
        window: float = WINDOW_SECONDS,
    ) -> None:
        self._limits: dict[str, RateLimit] = dict(limits or {})
        self._usage: dict[str, deque[tuple[float, int]]] = {}
        self._clock = clock
        self._window = window
        self._lock = threading.Lock()

    def set_limit(self, provider: str, limit: RateLimit) -> None:
        with self._lock:
            self._limits[provider] = limit

    def _prune(self, provider: str, now: float) -> deque[tuple[float, int]]:
        entries = self._usage.setdefault(provider, deque())
        cutoff = now - self._window
        while entries and entries[0][0] <= cutoff:
            entries.popleft()
        return entries

    def check_rate_limit(self, provider: str, estimated_tokens: int = 0) -> bool:
        """Return True if one more request of ``estimated_tokens`` fits in the window.

        Providers without a registered limit are never throttled.
        """
        with self._lock:
            limit = self._limits.get(provider)
            if limit is None:
                return True
            entries = self._prune(provider, self._clock())
            requests = len(entries)
            tokens = sum(count for _, count in entries)

        allowed = (
            requests < limit.requests_per_minute
            and tokens + estimated_tokens < limit.tokens_per_minute
        )
        if not allowed:
            logger.info(
                "Rate limit reached for %s: %d/%d requests, %d+%d/%d tokens",
                provider,
                requests,
                limit.requests_per_minute,
                tokens,
                estimated_tokens,
                limit.tokens_per_minute,
            )
        return allowed

    def record_usage(self, provider: str, tokens: int) -> None:
        """Record one request that consumed ``tokens`` tokens."""
        with self._lock:
            now = self._clock()
            self._prune(provider, now).append((now, max(int(tokens), 0)))

    def status(self, provider: str) -> dict[str, int | float | None]:
        """Snapshot of the provider's consumption in the current window."""
        with self._lock:
            now = self._clock()
            entries = self._prune(provider, now)
            requests = len(entries)
            tokens = sum(count for _, count in entries)
            oldest = entries[0][0] if entries else None
            limit = self._limits.get(provider)

        resets_in = round(oldest + self._window - now, 3) if oldest is not None else 0.0
        if limit is None:
            return {
                "requests_used": requests,
                "requests_limit": None,
                "requests_remaining": None,
                "tokens_used": tokens,
                "tokens_limit": None,
                "tokens_remaining": None,
                "resets_in_seconds": resets_in,
            }
        return {
            "requests_used": requests,
            "requests_limit": limit.requests_per_minute,
            "requests_remaining": max(limit.requests_per_minute - requests, 0),
            "tokens_used": tokens,
            "tokens_limit": limit.tokens_per_minute,
            "tokens_remaining": max(limit.tokens_per_minute - tokens, 0),
            "resets_in_seconds": resets_in,
        }

    def sweep(self) -> int:
        """Prune expired entries for every provider; return how many were dropped."""
        dropped = 0
        with self._lock:
            now = self._clock()
            for provider, entries in self._usage.items():
                before = len(entries)
                self._prune(provider, now)
                dropped += before - len(entries)
        if dropped:
            logger.debug("Rate limiter sweep dropped %d expired entries", dropped)
        return dropped

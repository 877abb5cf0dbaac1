from __future__ import annotations

import math
import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from threading import Lock
from typing import Callable

from rent_manager.core.config import CLIENT_RATE_LIMIT, CLIENT_RATE_WINDOW_SECONDS


@dataclass
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after_seconds: int = 0


class RateLimiterService(ABC):
    @abstractmethod
    def check(self, *, client_key: str, endpoint: str) -> RateLimitDecision:
        """Decide whether a request from ``client_key`` to ``endpoint`` may proceed."""

    def reset(self) -> None:
        """Forget every recorded hit."""


class InMemoryRateLimiterService(RateLimiterService):
    """Sliding window per (client, endpoint), held in process memory.

    Each worker keeps its own buckets, so the effective limit scales with the
    number of uvicorn workers.
    """

    def __init__(
        self,
        *,
        limit: int = CLIENT_RATE_LIMIT,
        window_seconds: int = CLIENT_RATE_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[tuple[str, str], deque[float]] = {}
        self._lock = Lock()

    def _window(self, key: tuple[str, str], now: float) -> deque[float]:
        hits = self._hits.setdefault(key, deque())
        while hits and now - hits[0] >= self.window_seconds:
            hits.popleft()
        return hits

    def check(self, *, client_key: str, endpoint: str) -> RateLimitDecision:
        now = self._clock()
        with self._lock:
            hits = self._window((client_key, endpoint), now)
            if len(hits) >= self.limit:
                oldest_expires_in = self.window_seconds - (now - hits[0])
                return RateLimitDecision(
                    allowed=False,
                    limit=self.limit,
                    remaining=0,
                    retry_after_seconds=max(1, math.ceil(oldest_expires_in)),
                )
            hits.append(now)
            return RateLimitDecision(allowed=True, limit=self.limit, remaining=self.limit - len(hits))

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Tuple


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    count: int
    remaining: int
    reset_in_seconds: float


class RateLimitStore(ABC):
    """
    Keyed fixed-window counter with TTL.

    Keys are caller-chosen ("user:42", "ip:10.0.0.1"). One instance is built per
    application and injected through app.state; swap in a shared backend when the
    service runs on more than one process.
    """

    @abstractmethod
    def hit(self, key: str, limit: int, window_seconds: float) -> RateDecision:
        raise NotImplementedError

    @abstractmethod
    def reset(self, key: str) -> None:
        raise NotImplementedError


class InMemoryRateLimitStore(RateLimitStore):
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        # key -> (count, window_reset_at)
        self._windows: Dict[str, Tuple[int, float]] = {}

    def _sweep(self, now: float) -> None:
        expired = [k for k, (_, reset_at) in self._windows.items() if reset_at <= now]
        for k in expired:
            del self._windows[k]

    def hit(self, key: str, limit: int, window_seconds: float) -> RateDecision:
        with self._lock:
            now = self._clock()
            self._sweep(now)
            count, reset_at = self._windows.get(key, (0, now + window_seconds))
            count += 1
            self._windows[key] = (count, reset_at)
            return RateDecision(
                allowed=count <= limit,
                count=count,
                remaining=max(0, limit - count),
                reset_in_seconds=max(0.0, reset_at - now),
            )

    def reset(self, key: str) -> None:
        with self._lock:
            self._windows.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

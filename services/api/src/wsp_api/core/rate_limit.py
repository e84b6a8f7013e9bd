"""进程内滑动窗口限流。"""

from collections import defaultdict, deque
from dataclasses import dataclass
from enum import StrEnum
import threading
import time

from wsp_api.core.config import Settings


class RateLimitTier(StrEnum):
    """限流档位。"""

    STANDARD = "standard"
    ADMIN = "admin"
    AUTH = "auth"


@dataclass(frozen=True, slots=True)
class RateLimit:
    max_requests: int
    window_seconds: int


class InMemoryRateLimiter:
    """按任意字符串键计数的滑动窗口限流器。"""

    def __init__(self, *, limit: RateLimit) -> None:
        self.limit = limit
        self._events: defaultdict[str, deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()

    def allow(self, key: str, *, now: float | None = None) -> bool:
        timestamp = now if now is not None else time.monotonic()
        window_start = timestamp - self.limit.window_seconds
        with self._lock:
            events = self._events[key]
            while events and events[0] <= window_start:
                events.popleft()

            if len(events) >= self.limit.max_requests:
                return False

            events.append(timestamp)
            return True

    def reset(self) -> None:
        with self._lock:
            self._events.clear()


def build_rate_limiters(settings: Settings) -> dict[RateLimitTier, InMemoryRateLimiter]:
    """按配置构建各档位限流器。"""
    window = settings.rate_limit_window_seconds
    return {
        RateLimitTier.STANDARD: InMemoryRateLimiter(limit=RateLimit(settings.rate_limit_standard_max, window)),
        RateLimitTier.ADMIN: InMemoryRateLimiter(limit=RateLimit(settings.rate_limit_admin_max, window)),
        RateLimitTier.AUTH: InMemoryRateLimiter(limit=RateLimit(settings.rate_limit_auth_max, window)),
    }


__all__ = ["InMemoryRateLimiter", "RateLimit", "RateLimitTier", "build_rate_limiters"]

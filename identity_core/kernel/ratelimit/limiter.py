"""
In-memory fixed-window rate limiter.

State lives for the process lifetime only. Each (client_key, route_class)
pair has its own counter and its own lock, so contention only happens
between concurrent requests from the same client on the same route class.
For multi-process deployments the counters would have to move to a shared
atomically-incrementable store; this module is the single-process baseline.
"""

import math
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from identity_core.config import Settings, get_settings
from identity_core.logging_config import get_logger

logger = get_logger(__name__)


class RouteClass(str, Enum):
    """Throttled route classes. Each one gets an independent counter."""
    LOGIN = "login"
    REGISTER = "register"
    PASSWORD_RESET_REQUEST = "password_reset_request"
    PASSWORD_RESET_COMPLETE = "password_reset_complete"
    ADMIN_LOGIN = "admin_login"


@dataclass(frozen=True)
class RateLimitConfig:
    window_seconds: float
    max_requests: int
    message: str = "Too many requests"

    @classmethod
    def from_window_ms(cls, window_ms: int, max_requests: int, message: str) -> "RateLimitConfig":
        return cls(window_seconds=window_ms / 1000, max_requests=max_requests, message=message)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after_seconds: Optional[int] = None


class _Window:
    __slots__ = ("lock", "window_start", "count", "window_seconds", "retired")

    def __init__(self, window_start: float, window_seconds: float):
        self.lock = threading.Lock()
        self.window_start = window_start
        self.window_seconds = window_seconds
        self.count = 0
        # Set under ``lock`` when the window leaves the registry
        self.retired = False


class RateLimiter:
    """
    Fixed-window counter keyed by (client_key, route_class).

    All requests in ``[window_start, window_start + window)`` share one
    counter. The first request after the window has elapsed resets the
    counter and starts a new window at the current time.
    """

    def __init__(
        self,
        configs: Optional[dict[RouteClass, RateLimitConfig]] = None,
        clock: Callable[[], float] = time.monotonic,
        max_tracked_keys: int = 10_000,
    ):
        self.configs = dict(configs or {})
        self._clock = clock
        self._max_tracked_keys = max_tracked_keys
        self._windows: dict[tuple[str, str], _Window] = {}
        # Guards only the dict itself (key creation and pruning)
        self._registry_lock = threading.Lock()

    def _get_window(self, key: tuple[str, str], now: float, window_seconds: float) -> _Window:
        window = self._windows.get(key)
        if window is not None:
            return window
        with self._registry_lock:
            window = self._windows.get(key)
            if window is None:
                if len(self._windows) >= self._max_tracked_keys:
                    self._prune_locked(now)
                if len(self._windows) >= self._max_tracked_keys:
                    self._evict_oldest_locked(now)
                window = _Window(now, window_seconds)
                self._windows[key] = window
            return window

    def admit(
        self,
        client_key: str,
        config: RateLimitConfig,
        route_class: str = "default",
    ) -> RateLimitDecision:
        """
        Count one request and decide whether it is allowed.

        The counter is incremented before the comparison, so with
        ``max_requests = N`` the (N+1)-th request in a window is the first
        one denied.
        """
        key = (client_key, str(route_class))
        now = self._clock()

        while True:
            window = self._get_window(key, now, config.window_seconds)
            with window.lock:
                if window.retired:
                    # Pruned between lookup and lock; count in its successor
                    continue
                if now >= window.window_start + window.window_seconds:
                    window.window_start = now
                    window.window_seconds = config.window_seconds
                    window.count = 0
                window.count += 1
                count = window.count
                window_end = window.window_start + window.window_seconds
            break

        if count <= config.max_requests:
            return RateLimitDecision(allowed=True)

        retry_after = max(0, math.ceil(window_end - now))
        logger.info(
            "Rate limit exceeded",
            extra={"route_class": str(route_class), "count": count, "retry_after": retry_after},
        )
        return RateLimitDecision(allowed=False, retry_after_seconds=retry_after)

    def admit_route(self, client_key: str, route_class: RouteClass) -> RateLimitDecision:
        """Admit against the configured limits for a route class."""
        return self.admit(client_key, self.configs[route_class], route_class.value)

    def config_for(self, route_class: RouteClass) -> RateLimitConfig:
        return self.configs[route_class]

    def reset(self) -> None:
        """Forget every window."""
        with self._registry_lock:
            for window in self._windows.values():
                with window.lock:
                    window.retired = True
            self._windows.clear()

    def prune(self) -> int:
        """Remove windows that have fully elapsed. Returns how many were removed."""
        with self._registry_lock:
            return self._prune_locked(self._clock())

    def _retire_locked(
        self,
        key: tuple[str, str],
        window: _Window,
        now: float,
        only_expired: bool = True,
    ) -> bool:
        # A window whose lock is held is in use; skip it
        if not window.lock.acquire(blocking=False):
            return False
        try:
            if only_expired and now < window.window_start + window.window_seconds:
                return False
            window.retired = True
            self._windows.pop(key, None)
            return True
        finally:
            window.lock.release()

    def _prune_locked(self, now: float) -> int:
        removed = 0
        for key, window in list(self._windows.items()):
            if self._retire_locked(key, window, now):
                removed += 1
        return removed

    def _evict_oldest_locked(self, now: float) -> int:
        """Drop the windows closest to expiry until there is room for one more."""
        excess = len(self._windows) - self._max_tracked_keys + 1
        evicted = 0
        by_age = sorted(self._windows.items(), key=lambda item: item[1].window_start)
        for key, window in by_age:
            if evicted >= excess:
                break
            if self._retire_locked(key, window, now, only_expired=False):
                evicted += 1
        if evicted:
            logger.warning(
                "Rate limiter at capacity; evicted live windows",
                extra={"evicted": evicted, "max_tracked_keys": self._max_tracked_keys},
            )
        return evicted

    def __len__(self) -> int:
        return len(self._windows)


def rate_limit_configs(settings: Optional[Settings] = None) -> dict[RouteClass, RateLimitConfig]:
    """Per-route-class limits from settings."""
    s = settings or get_settings()
    return {
        RouteClass.LOGIN: RateLimitConfig.from_window_ms(
            s.rate_limit_login_window_ms,
            s.rate_limit_login_max_requests,
            s.rate_limit_login_message,
        ),
        RouteClass.REGISTER: RateLimitConfig.from_window_ms(
            s.rate_limit_register_window_ms,
            s.rate_limit_register_max_requests,
            s.rate_limit_register_message,
        ),
        RouteClass.PASSWORD_RESET_REQUEST: RateLimitConfig.from_window_ms(
            s.rate_limit_forgot_password_window_ms,
            s.rate_limit_forgot_password_max_requests,
            s.rate_limit_forgot_password_message,
        ),
        RouteClass.PASSWORD_RESET_COMPLETE: RateLimitConfig.from_window_ms(
            s.rate_limit_reset_password_window_ms,
            s.rate_limit_reset_password_max_requests,
            s.rate_limit_reset_password_message,
        ),
        RouteClass.ADMIN_LOGIN: RateLimitConfig.from_window_ms(
            s.rate_limit_admin_login_window_ms,
            s.rate_limit_admin_login_max_requests,
            s.rate_limit_admin_login_message,
        ),
    }

"""Unit tests for the fixed-window rate limiter."""

import threading

import pytest

from identity_core.config import Settings
from identity_core.kernel.ratelimit import (
    RateLimitConfig,
    RateLimiter,
    RouteClass,
    rate_limit_configs,
)

LOGIN = RateLimitConfig(window_seconds=900, max_requests=10, message="Too many login attempts")


class TestRateLimiter:

    def test_allows_up_to_max_then_denies(self, monotonic):
        limiter = RateLimiter(clock=monotonic)

        decisions = [limiter.admit("1.2.3.4", LOGIN, "login") for _ in range(11)]

        assert all(d.allowed for d in decisions[:10])
        assert decisions[10].allowed is False
        assert decisions[10].retry_after_seconds == 900

    def test_retry_after_counts_down_within_window(self, monotonic):
        limiter = RateLimiter(clock=monotonic)
        for _ in range(10):
            limiter.admit("1.2.3.4", LOGIN, "login")

        monotonic.advance(300.4)
        decision = limiter.admit("1.2.3.4", LOGIN, "login")

        assert decision.allowed is False
        # ceil(900 - 300.4)
        assert decision.retry_after_seconds == 600

    def test_window_resets_after_elapsed(self, monotonic):
        limiter = RateLimiter(clock=monotonic)
        for _ in range(11):
            limiter.admit("1.2.3.4", LOGIN, "login")

        monotonic.advance(900)

        assert limiter.admit("1.2.3.4", LOGIN, "login").allowed is True

    def test_denied_requests_do_not_extend_window(self, monotonic):
        limiter = RateLimiter(clock=monotonic)
        for _ in range(10):
            limiter.admit("1.2.3.4", LOGIN, "login")
        for _ in range(50):
            monotonic.advance(10)
            assert limiter.admit("1.2.3.4", LOGIN, "login").allowed is False

        monotonic.advance(400)
        assert limiter.admit("1.2.3.4", LOGIN, "login").allowed is True

    def test_clients_are_independent(self, monotonic):
        limiter = RateLimiter(clock=monotonic)
        for _ in range(11):
            limiter.admit("1.2.3.4", LOGIN, "login")

        assert limiter.admit("5.6.7.8", LOGIN, "login").allowed is True

    def test_route_classes_are_independent(self, monotonic):
        limiter = RateLimiter(rate_limit_configs(Settings()), clock=monotonic)
        for _ in range(11):
            limiter.admit_route("1.2.3.4", RouteClass.LOGIN)

        assert limiter.admit_route("1.2.3.4", RouteClass.LOGIN).allowed is False
        assert limiter.admit_route("1.2.3.4", RouteClass.REGISTER).allowed is True

    def test_prune_removes_elapsed_windows(self, monotonic):
        limiter = RateLimiter(clock=monotonic)
        limiter.admit("a", LOGIN, "login")
        limiter.admit("b", RateLimitConfig(60, 5), "register")
        assert len(limiter) == 2

        monotonic.advance(61)

        assert limiter.prune() == 1
        assert len(limiter) == 1

    def test_prune_skips_windows_in_use(self, monotonic):
        limiter = RateLimiter(clock=monotonic)
        limiter.admit("a", LOGIN, "login")
        window = limiter._windows[("a", "login")]
        monotonic.advance(901)

        with window.lock:
            assert limiter.prune() == 0
        assert len(limiter) == 1
        assert limiter.prune() == 1

    def test_pruned_window_is_not_counted_into(self, monotonic):
        limiter = RateLimiter(clock=monotonic)
        limiter.admit("a", LOGIN, "login")
        stale = limiter._windows[("a", "login")]
        monotonic.advance(901)
        limiter.prune()

        assert stale.retired is True
        limiter.admit("a", LOGIN, "login")
        fresh = limiter._windows[("a", "login")]
        assert fresh is not stale
        assert fresh.count == 1

    def test_stays_within_tracked_key_cap(self, monotonic):
        limiter = RateLimiter(clock=monotonic, max_tracked_keys=3)
        for n in range(5):
            monotonic.advance(1)
            limiter.admit(f"10.0.0.{n}", LOGIN, "login")

        assert len(limiter) == 3
        # The newest windows survive; the oldest went first
        assert ("10.0.0.4", "login") in limiter._windows
        assert ("10.0.0.0", "login") not in limiter._windows

    def test_reset_forgets_everything(self, monotonic):
        limiter = RateLimiter(clock=monotonic)
        for _ in range(11):
            limiter.admit("1.2.3.4", LOGIN, "login")

        limiter.reset()

        assert limiter.admit("1.2.3.4", LOGIN, "login").allowed is True

    def test_concurrent_admissions_never_exceed_limit(self):
        limiter = RateLimiter()
        config = RateLimitConfig(window_seconds=60, max_requests=25)
        allowed = []
        lock = threading.Lock()

        def worker():
            for _ in range(10):
                decision = limiter.admit("9.9.9.9", config, "login")
                with lock:
                    allowed.append(decision.allowed)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sum(allowed) == 25
        assert len(allowed) == 80

    def test_unknown_route_class_raises(self):
        limiter = RateLimiter({})
        with pytest.raises(KeyError):
            limiter.admit_route("1.2.3.4", RouteClass.LOGIN)


def test_default_route_configs():
    configs = rate_limit_configs(Settings())

    assert configs[RouteClass.LOGIN].max_requests == 10
    assert configs[RouteClass.LOGIN].window_seconds == 900
    assert configs[RouteClass.REGISTER].max_requests == 5
    assert configs[RouteClass.PASSWORD_RESET_REQUEST].max_requests == 3
    assert configs[RouteClass.PASSWORD_RESET_COMPLETE].max_requests == 5
    assert configs[RouteClass.ADMIN_LOGIN].max_requests == 5

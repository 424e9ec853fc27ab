"""
Tests for the per-identity fixed-window rate limiter.
"""
import time

import pytest

from contract_analysis.exceptions import RateLimitExceededError
from contract_analysis.rate_limiter import (
    RateLimiter,
    RateLimitPreset,
    RateLimits,
    enforce_rate_limit,
)


@pytest.fixture
def rate_limiter():
    return RateLimiter("memory://")


class TestRateLimiter:

    def test_first_request_allowed(self, rate_limiter):
        before = time.time()
        result = rate_limiter.check("user:1", 3, 60)

        assert result.allowed is True
        assert result.remaining == 2
        assert result.limit == 3
        assert result.reset_time >= before + 59

    def test_n_plus_one_rejected(self, rate_limiter):
        results = [rate_limiter.check("user:1", 3, 60) for _ in range(4)]

        assert [r.allowed for r in results] == [True, True, True, False]
        assert results[-1].remaining == 0

    def test_identities_are_independent(self, rate_limiter):
        for _ in range(2):
            rate_limiter.check("user:1", 2, 60)

        assert rate_limiter.check("user:1", 2, 60).allowed is False
        assert rate_limiter.check("user:2", 2, 60).allowed is True
        assert rate_limiter.check("ip:10.0.0.1", 2, 60).allowed is True

    def test_accepted_again_after_window(self, rate_limiter):
        for _ in range(2):
            assert rate_limiter.check("user:1", 2, 1).allowed is True
        assert rate_limiter.check("user:1", 2, 1).allowed is False

        time.sleep(1.1)

        result = rate_limiter.check("user:1", 2, 1)
        assert result.allowed is True
        assert result.remaining == 1

    def test_rejected_result_has_retry_after(self, rate_limiter):
        rate_limiter.check("user:1", 1, 30)
        result = rate_limiter.check("user:1", 1, 30)

        assert result.allowed is False
        assert 1 <= result.retry_after <= 30

    def test_store_failure_fails_open(self, rate_limiter, monkeypatch):
        def broken_hit(*args, **kwargs):
            raise ConnectionError("store unavailable")

        monkeypatch.setattr(rate_limiter.strategy, "hit", broken_hit)

        result = rate_limiter.check("user:1", 5, 60)
        assert result.allowed is True
        assert result.remaining == 4

    def test_headers(self, rate_limiter):
        result = rate_limiter.check("user:1", 5, 60)
        headers = result.headers()

        assert headers["X-RateLimit-Limit"] == "5"
        assert headers["X-RateLimit-Remaining"] == "4"
        # epoch milliseconds
        assert int(headers["X-RateLimit-Reset"]) > time.time() * 1000


class TestEnforceRateLimit:

    def test_raises_429_with_headers(self, rate_limiter):
        preset = RateLimitPreset(max_requests=1, window_seconds=60)
        enforce_rate_limit(rate_limiter, "user:1", preset)

        with pytest.raises(RateLimitExceededError) as exc_info:
            enforce_rate_limit(rate_limiter, "user:1", preset)

        exc = exc_info.value
        assert exc.status_code == 429
        assert exc.detail["error"] == "rate_limit_exceeded"
        assert exc.detail["retryAfter"] >= 1
        assert exc.headers["Retry-After"] == str(exc.detail["retryAfter"])
        assert exc.headers["X-RateLimit-Remaining"] == "0"

    def test_presets(self):
        assert (RateLimits.ANALYSIS.max_requests, RateLimits.ANALYSIS.window_seconds) == (10, 3600)
        assert (RateLimits.UPLOAD.max_requests, RateLimits.UPLOAD.window_seconds) == (20, 3600)

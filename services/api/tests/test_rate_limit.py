from wsp_api.core.config import Settings
from wsp_api.core.rate_limit import InMemoryRateLimiter, RateLimit, RateLimitTier, build_rate_limiters


def test_limiter_blocks_after_max_requests_in_window():
    limiter = InMemoryRateLimiter(limit=RateLimit(max_requests=2, window_seconds=60))

    assert limiter.allow("10.0.0.1", now=0.0) is True
    assert limiter.allow("10.0.0.1", now=1.0) is True
    assert limiter.allow("10.0.0.1", now=2.0) is False
    # 不同键独立计数。
    assert limiter.allow("10.0.0.2", now=2.0) is True


def test_limiter_window_slides():
    limiter = InMemoryRateLimiter(limit=RateLimit(max_requests=2, window_seconds=60))
    limiter.allow("client", now=0.0)
    limiter.allow("client", now=30.0)

    assert limiter.allow("client", now=59.0) is False
    assert limiter.allow("client", now=60.0) is True
    assert limiter.allow("client", now=61.0) is False
    assert limiter.allow("client", now=90.0) is True


def test_rejected_requests_do_not_extend_the_window():
    limiter = InMemoryRateLimiter(limit=RateLimit(max_requests=1, window_seconds=10))
    assert limiter.allow("client", now=0.0) is True
    for second in range(1, 10):
        assert limiter.allow("client", now=float(second)) is False
    assert limiter.allow("client", now=10.0) is True


def test_reset_clears_counters():
    limiter = InMemoryRateLimiter(limit=RateLimit(max_requests=1, window_seconds=60))
    limiter.allow("client", now=0.0)
    limiter.reset()
    assert limiter.allow("client", now=1.0) is True


def test_build_rate_limiters_uses_tier_settings():
    settings = Settings(
        rate_limit_window_seconds=120,
        rate_limit_standard_max=100,
        rate_limit_admin_max=20,
        rate_limit_auth_max=5,
    )
    limiters = build_rate_limiters(settings)

    assert set(limiters) == set(RateLimitTier)
    assert limiters[RateLimitTier.STANDARD].limit == RateLimit(100, 120)
    assert limiters[RateLimitTier.ADMIN].limit == RateLimit(20, 120)
    assert limiters[RateLimitTier.AUTH].limit == RateLimit(5, 120)

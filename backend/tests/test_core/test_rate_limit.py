"""
Unit tests for the sliding-window rate limiter
"""
from unittest.mock import MagicMock

from marketplace.core.config import settings
from marketplace.core.rate_limit import RateLimiter, RateLimitMiddleware, client_ip


def _request(path="/api/orders", headers=None, cookies=None, host="10.0.0.1"):
    request = MagicMock()
    request.url.path = path
    request.headers = headers or {}
    request.cookies = cookies or {}
    request.client.host = host
    return request


class TestRateLimiter:

    def test_allows_up_to_limit_then_blocks(self):
        limiter = RateLimiter()

        results = [limiter.is_allowed("ip:1", max_requests=3) for _ in range(4)]

        assert [allowed for allowed, _, _ in results] == [True, True, True, False]
        assert results[0][1] == 2
        assert results[3][2] >= 1

    def test_identifiers_are_independent(self):
        limiter = RateLimiter()
        limiter.is_allowed("ip:1", max_requests=1)

        allowed, _, _ = limiter.is_allowed("ip:2", max_requests=1)

        assert allowed

    def test_reset_clears_windows(self):
        limiter = RateLimiter()
        limiter.is_allowed("ip:1", max_requests=1)
        limiter.reset()

        allowed, _, _ = limiter.is_allowed("ip:1", max_requests=1)

        assert allowed


class TestIdentifier:

    def test_login_uses_strict_ip_bucket(self):
        middleware = RateLimitMiddleware(app=MagicMock())

        identifier, limit = middleware._get_identifier_and_limit(_request("/api/auth/login"))

        assert identifier == "auth:10.0.0.1"
        assert limit == settings.RATE_LIMIT_AUTH_ENDPOINTS

    def test_bearer_token_is_hashed(self):
        middleware = RateLimitMiddleware(app=MagicMock())

        identifier, limit = middleware._get_identifier_and_limit(
            _request(headers={"Authorization": "Bearer abc.def.ghi"})
        )

        assert identifier.startswith("jwt:")
        assert "abc" not in identifier
        assert limit == settings.RATE_LIMIT_AUTHENTICATED

    def test_cookie_counts_as_authenticated(self):
        middleware = RateLimitMiddleware(app=MagicMock())

        identifier, _ = middleware._get_identifier_and_limit(
            _request(cookies={settings.AUTH_COOKIE_NAME: "token"})
        )

        assert identifier.startswith("jwt:")

    def test_anonymous_uses_ip(self):
        middleware = RateLimitMiddleware(app=MagicMock())

        identifier, limit = middleware._get_identifier_and_limit(_request())

        assert identifier == "ip:10.0.0.1"
        assert limit == settings.RATE_LIMIT_UNAUTHENTICATED

    def test_client_ip_prefers_forwarded_for(self):
        request = _request(headers={"X-Forwarded-For": "41.58.1.2, 10.0.0.5"})
        assert client_ip(request) == "41.58.1.2"

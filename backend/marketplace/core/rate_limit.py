"""
Rate limiting middleware for the marketplace API
Uses in-memory storage with a sliding window per client
"""
import hashlib
import time
from collections import defaultdict
from typing import Dict, Tuple

from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from marketplace.core.config import settings


class RateLimiter:
    """
    In-memory rate limiter using a sliding window.

    Counts are per process; several workers each keep their own window.
    """

    def __init__(self):
        # {identifier: [timestamp, ...]}
        self._requests: Dict[str, list] = defaultdict(list)
        self._last_cleanup = time.time()
        self._cleanup_interval = 60  # seconds

    def _cleanup_old_entries(self, window_seconds: int = 60):
        now = time.time()
        if now - self._last_cleanup < self._cleanup_interval:
            return

        cutoff = now - window_seconds * 2
        for identifier in list(self._requests.keys()):
            self._requests[identifier] = [ts for ts in self._requests[identifier] if ts > cutoff]
            if not self._requests[identifier]:
                del self._requests[identifier]

        self._last_cleanup = now

    def is_allowed(
        self,
        identifier: str,
        max_requests: int,
        window_seconds: int = 60
    ) -> Tuple[bool, int, int]:
        """
        Check if a request is allowed under the rate limit.

        Returns:
            Tuple of (is_allowed, remaining_requests, retry_after_seconds)
        """
        self._cleanup_old_entries(window_seconds)

        now = time.time()
        window_start = now - window_seconds
        in_window = [ts for ts in self._requests[identifier] if ts > window_start]
        self._requests[identifier] = in_window

        if len(in_window) >= max_requests:
            retry_after = int(min(in_window) + window_seconds - now) + 1 if in_window else 1
            return False, 0, retry_after

        in_window.append(now)
        return True, max_requests - len(in_window), 0

    def reset(self):
        self._requests.clear()


# Global rate limiter instance
rate_limiter = RateLimiter()

# Paths that are exempt from rate limiting
EXEMPT_PATHS = {
    "/",
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
    "/api/payments/webhook/paystack",
}

# Credential endpoints share a stricter per-IP bucket
AUTH_PATHS = {
    "/api/auth/login",
    "/api/auth/register",
}


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Middleware that applies rate limiting based on authentication status.

    Rate limits (per minute, from settings):
    - Login and register: RATE_LIMIT_AUTH_ENDPOINTS per IP
    - Authenticated users (bearer header or auth cookie): RATE_LIMIT_AUTHENTICATED
    - Unauthenticated: RATE_LIMIT_UNAUTHENTICATED per IP

    Headers returned:
    - X-RateLimit-Limit: Maximum requests per window
    - X-RateLimit-Remaining: Remaining requests in current window
    - X-RateLimit-Reset: Seconds until the window resets (when limited)
    """

    async def dispatch(self, request: Request, call_next):
        if request.url.path in EXEMPT_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        identifier, limit = self._get_identifier_and_limit(request)

        is_allowed, remaining, retry_after = rate_limiter.is_allowed(
            identifier=identifier,
            max_requests=limit,
            window_seconds=60
        )

        if not is_allowed:
            # Return JSONResponse instead of raising so the CORS middleware still applies
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"detail": "Rate limit exceeded. Please slow down."},
                headers={
                    "X-RateLimit-Limit": str(limit),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(retry_after),
                    "Retry-After": str(retry_after),
                }
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response

    def _get_identifier_and_limit(self, request: Request) -> Tuple[str, int]:
        """
        Priority:
        1. Login/register paths (per IP, strict)
        2. Access token from Authorization header or cookie
        3. IP address (unauthenticated)
        """
        client_ip = self._get_client_ip(request)

        if request.url.path in AUTH_PATHS:
            return f"auth:{client_ip}", settings.RATE_LIMIT_AUTH_ENDPOINTS

        token = None
        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            token = auth_header[7:]
        elif request.cookies.get(settings.AUTH_COOKIE_NAME):
            token = request.cookies.get(settings.AUTH_COOKIE_NAME)

        if token:
            token_hash = hashlib.sha256(token.encode()).hexdigest()[:32]
            return f"jwt:{token_hash}", settings.RATE_LIMIT_AUTHENTICATED

        return f"ip:{client_ip}", settings.RATE_LIMIT_UNAUTHENTICATED

    def _get_client_ip(self, request: Request) -> str:
        """Get the client IP, considering proxies"""
        return client_ip(request)


def client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"

"""Rate limiting with slowapi.

Extraction calls are expensive (each one is a multi-minute Gemini request),
so they get a much tighter limit than the pure repair endpoint.
"""

import json

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from app.config import get_settings


def get_client_ip(request: Request) -> str:
    """
    Get the client IP address used as the rate limit key.

    X-Forwarded-For is only honoured when the direct peer is one of the
    configured TRUSTED_PROXIES, to prevent spoofing.

    Args:
        request: FastAPI request object

    Returns:
        Client IP address string
    """
    direct_ip: str = get_remote_address(request)

    settings = get_settings()
    if not settings.trusted_proxies:
        return direct_ip

    trusted = {ip.strip() for ip in settings.trusted_proxies.split(",") if ip.strip()}
    if direct_ip in trusted:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

    return direct_ip


# In-memory storage, keyed by client IP
limiter = Limiter(key_func=get_client_ip, default_limits=["200/minute"])


RATE_LIMITS = {
    "extract": "10/minute",  # POST /api/extract - Gemini document call
    "parse": "60/minute",    # POST /api/extract/parse - local repair only
    "exams": "30/minute",    # POST /api/exams - duplicate scan + writes
}


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """
    Return 429 Too Many Requests with Retry-After and X-RateLimit-* headers.

    Args:
        request: FastAPI request object
        exc: RateLimitExceeded exception with limit details

    Returns:
        Response with 429 status code and rate limit headers
    """
    retry_after = getattr(exc, "retry_after", 60)

    error_body = {
        "detail": "Rate limit exceeded",
        "message": f"Too many requests. Please retry after {retry_after} seconds.",
        "retry_after": retry_after,
    }

    response = Response(
        content=json.dumps(error_body),
        status_code=429,
        media_type="application/json",
    )
    response.headers["Retry-After"] = str(retry_after)
    response.headers["X-RateLimit-Remaining"] = "0"

    if getattr(exc, "detail", None):
        response.headers["X-RateLimit-Limit"] = str(exc.detail)

    return response


def get_limiter() -> Limiter:
    """Return the module-level limiter used by route decorators."""
    return limiter

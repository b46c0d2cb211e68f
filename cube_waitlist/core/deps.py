import hmac
import logging
from typing import Optional

from fastapi import Header, HTTPException, Request, status
from redis.exceptions import RedisError

from cube_waitlist.core.config import Settings
from cube_waitlist.services.waitlist_service import WaitlistService
from cube_waitlist.utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_waitlist_service(request: Request) -> WaitlistService:
    """Service built once in create_app and shared by every request"""
    return request.app.state.waitlist_service


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def enforce_rate_limit(request: Request) -> None:
    app_settings = get_settings(request)
    if not app_settings.RATE_LIMIT_ENABLED:
        return

    client_id = request.client.host if request.client else "unknown"
    try:
        allowed = get_rate_limiter(request).allow_for_client(
            "register",
            client_id,
            limit=app_settings.RATE_LIMIT_MAX_REQUESTS,
            window_seconds=app_settings.RATE_LIMIT_WINDOW_SECONDS,
        )
    except RedisError as e:
        # Throttling is best-effort; an unreachable Redis lets the request through
        logger.warning(f"Rate limiter unavailable, allowing request: {e}")
        return

    if not allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests, please try again later",
        )


def require_admin(request: Request, x_admin_token: Optional[str] = Header(default=None)) -> None:
    """Guard listing/deletion when ADMIN_TOKEN is configured"""
    expected = get_settings(request).ADMIN_TOKEN
    if not expected:
        return
    # Compare bytes: header values may carry non-ASCII (latin-1) characters
    if not x_admin_token or not hmac.compare_digest(x_admin_token.encode(), expected.encode()):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin token required",
        )

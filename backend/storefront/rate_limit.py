"""
Rate limiting shared by every router
"""
from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded

from storefront.configuration import get_settings
from storefront.errors import Errors
from storefront.utils.ip_utils import get_client_ip

limiter = Limiter(key_func=get_client_ip, enabled=get_settings().RATE_LIMIT_ENABLED)


async def rate_limit_exceeded_handler(
    request: Request, exc: RateLimitExceeded
) -> JSONResponse:
    """Handle rate limit exceeded errors with a JSON response."""
    error = Errors.rate_limit()
    content = error.to_dict(is_production=True)
    content["error"]["retry_after"] = exc.detail
    return JSONResponse(status_code=429, content=content)

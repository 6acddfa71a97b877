import logging
import sys
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from storefront import __version__
from storefront.configuration import get_settings
from storefront.database import init_db
from storefront.errors import AppError, Errors
from storefront.rate_limit import limiter, rate_limit_exceeded_handler
from storefront.routers import admin, checkout, downloads, purchases, webhooks

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[logging.StreamHandler(sys.stdout)],
)

# Keep SQL statement logging out of the request log
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)
settings = get_settings()

# Disable docs and OpenAPI schema in production
_is_prod = settings.is_production
docs_url = "/docs" if not _is_prod else None
redoc_url = "/redoc" if not _is_prod else None
openapi_url = "/openapi.json" if not _is_prod else None

app = FastAPI(
    title="LiveFX Storefront API",
    version=__version__,
    docs_url=docs_url,
    redoc_url=redoc_url,
    openapi_url=openapi_url,
)


@app.on_event("startup")
async def startup_event():
    """Create tables and report degraded security settings"""
    logger.info("Initializing LiveFX Storefront API...")
    try:
        init_db()
    except Exception as e:
        logger.error(f"Startup error during DB init: {e}", exc_info=True)
        raise

    if not settings.MERCADO_PAGO_WEBHOOK_SECRET:
        log = logger.warning if settings.is_production else logger.info
        log("[Startup] MERCADO_PAGO_WEBHOOK_SECRET not set: /mp-webhook accepts unsigned notifications")
    if not settings.GOOGLE_SERVICE_ACCOUNT_JSON:
        logger.warning("[Startup] GOOGLE_SERVICE_ACCOUNT_JSON not set: Drive downloads will use fallback links")


# Register rate limiter with app state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


# Global AppError handler
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """
    Global error handler for AppError exceptions.
    Provides consistent error response format.
    """
    log = logger.error if exc.status >= 500 else logger.warning
    log(
        f"AppError: code={exc.code} status={exc.status} path={request.url.path} "
        f"request_id={exc.request_id} details={exc.details}"
    )

    return JSONResponse(
        status_code=exc.status,
        content=exc.to_dict(is_production=settings.is_production),
    )


# Field names whose submitted values must never be echoed back
_SENSITIVE_FIELDS = frozenset(
    {
        "password",
        "token",
        "secret",
        "authorization",
        "access_token",
        "private_key",
        "x-signature",
        "email",
        "couponcode",
        "coupon_code",
        "code",
    }
)


def _contains_sensitive_keys(value) -> bool:
    if isinstance(value, dict):
        for k, v in value.items():
            if str(k).lower() in _SENSITIVE_FIELDS:
                return True
            if _contains_sensitive_keys(v):
                return True
        return False
    if isinstance(value, list):
        return any(_contains_sensitive_keys(item) for item in value)
    return False


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """
    Malformed payloads are InvalidInput: 400 with a sanitized envelope that
    drops 'input' for sensitive or body-level errors and
    stringifies non-serializable ctx values.
    """
    safe_details = []
    for err in exc.errors():
        sanitized = {}
        for k, v in err.items():
            if k == "input":
                continue
            if k == "ctx":
                if isinstance(v, dict):
                    sanitized[k] = {
                        ck: cv if isinstance(cv, (str, int, float, bool, type(None))) else str(cv)
                        for ck, cv in v.items()
                    }
                else:
                    sanitized[k] = str(v)
                continue
            sanitized[k] = v

        field_names = {str(loc).lower() for loc in err.get("loc", [])}
        is_sensitive_location = bool(field_names & _SENSITIVE_FIELDS)
        is_body_level_error = "body" in field_names and len(err.get("loc", [])) == 1
        input_has_sensitive_keys = _contains_sensitive_keys(err.get("input"))

        if not is_sensitive_location and not is_body_level_error and not input_has_sensitive_keys:
            if "input" in err and isinstance(err["input"], (str, int, float, bool, type(None))):
                sanitized["input"] = err["input"]

        safe_details.append(sanitized)

    request_id = str(uuid4())
    logger.warning(
        f"ValidationError: request_id={request_id} path={request.url.path} "
        f"errors={len(safe_details)}"
    )

    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Invalid request.",
                "requestId": request_id,
                "details": safe_details,
            },
        },
    )


# Catch-all for unhandled exceptions (no stack traces to clients)
@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    error = Errors.internal()
    logger.error(
        f"UnhandledException: request_id={error.request_id} path={request.url.path} "
        f"error={type(exc).__name__}: {exc}",
        exc_info=True,
    )
    # Never echo internals, even outside production
    return JSONResponse(status_code=error.status, content=error.to_dict(is_production=True))


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log all API requests and responses"""

    async def dispatch(self, request: Request, call_next) -> Response:
        client_ip = request.client.host if request.client else "unknown"
        logger.info(f">>> {request.method} {request.url.path} | IP: {client_ip}")

        try:
            response = await call_next(request)
            logger.info(
                f"<<< {request.method} {request.url.path} | Status: {response.status_code}"
            )
            return response
        except Exception as e:
            logger.error(f"!!! {request.method} {request.url.path} | Error: {str(e)}")
            raise


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Security headers on every response"""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"
        response.headers["Pragma"] = "no-cache"
        response.headers["Permissions-Policy"] = (
            "camera=(), microphone=(), geolocation=(), payment=()"
        )
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = (
                "max-age=63072000; includeSubDomains; preload"
            )
        if "server" in response.headers:
            del response.headers["server"]
        return response


class AuditLoggingMiddleware(BaseHTTPMiddleware):
    """Audit log for processor callbacks and admin endpoints"""
    _AUDIT_PREFIXES = (
        "/mp-webhook",
        "/paypal-webhook",
        "/payt-postback",
        "/admin-users",
        "/admin-coupons",
        "/admin-purchases",
        "/admin-download",
    )

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        needs_audit = any(path.startswith(p) for p in self._AUDIT_PREFIXES)
        if not needs_audit:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        audit_logger = logging.getLogger("audit")
        audit_logger.info(
            f"[AUDIT] {request.method} {path} | IP: {client_ip} | "
            f"Bearer: {'present' if request.headers.get('authorization') else 'absent'} | "
            f"Signature: {'present' if request.headers.get('x-signature') else 'absent'}"
        )

        response = await call_next(request)

        audit_logger.info(
            f"[AUDIT] {request.method} {path} | Status: {response.status_code}"
        )
        return response


# Security headers middleware (added first, executed last)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(AuditLoggingMiddleware)
app.add_middleware(RequestLoggingMiddleware)

_cors_origins = settings.ALLOWED_ORIGINS
if settings.is_production and "*" in _cors_origins:
    logger.warning("CORS: wildcard ignored in production")
    _cors_origins = [origin for origin in _cors_origins if origin != "*"]

allow_credentials = "*" not in _cors_origins and len(_cors_origins) > 0

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=allow_credentials,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=[
        "Authorization",
        "Content-Type",
        "X-Request-ID",
        "X-Signature",
    ],
    expose_headers=["Content-Disposition", "Content-Length", "X-Download-Fallback"],
)


@app.get("/")
async def root():
    return {"status": "ok", "service": "LiveFX Storefront API"}


app.include_router(checkout.router)
app.include_router(webhooks.router)
app.include_router(downloads.router)
app.include_router(purchases.router)
app.include_router(admin.router)


@app.get("/health")
async def health():
    return {"status": "healthy"}

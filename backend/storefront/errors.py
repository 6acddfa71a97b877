"""
Application Error Classes

Centralized error handling with consistent response format.

Usage:
    from storefront.errors import AppError, Errors

    # Refuse a checkout for a product the caller already owns
    raise Errors.already_owned()

    # Surface a payment processor failure without leaking its body
    raise Errors.upstream("paypal", {"status": 502})
"""
from typing import Optional, Any
from uuid import uuid4


# Error code type
ErrorCode = str

_PUBLIC_MESSAGES = {
    "VALIDATION_ERROR": "Invalid request.",
    "AUTH_ERROR": "Authentication required.",
    "FORBIDDEN_ERROR": "You do not have access to this resource.",
    "NOT_FOUND_ERROR": "The requested resource was not found.",
    "CONFLICT_ERROR": "The request conflicts with the current state.",
    "ALREADY_OWNED": "You already purchased this effect!",
    "INVALID_COUPON": "Invalid or already used coupon.",
    "RATE_LIMIT_ERROR": "Too many requests. Please try again later.",
    "UPSTREAM_ERROR": "The payment service is unavailable. Please try again.",
    "INTERNAL_ERROR": "Internal server error.",
}

# Codes whose message is meant for the buyer and is shown in every environment
_USER_FACING_CODES = frozenset({"ALREADY_OWNED", "INVALID_COUPON"})


class AppError(Exception):
    """
    Application error class for consistent error handling.

    Attributes:
        code: Error code (e.g., 'VALIDATION_ERROR', 'ALREADY_OWNED')
        status: HTTP status code
        details: Additional error details (for internal logging)
        request_id: UUID for request tracing
        message: Optional override for the public message
    """

    def __init__(
        self,
        code: ErrorCode,
        status: int,
        details: Optional[Any] = None,
        request_id: Optional[str] = None,
        message: Optional[str] = None,
    ):
        self.code = code
        self.status = status
        self.details = details
        self.request_id = request_id or str(uuid4())
        self.message = message
        super().__init__(code)

    def to_dict(self, is_production: bool = True) -> dict:
        """
        Convert error to JSON-serializable dict.

        Args:
            is_production: If True, hide internal details

        Returns:
            Error response dictionary
        """
        if is_production or self.code in _USER_FACING_CODES:
            message = self.public_message
        else:
            message = self.code

        response = {
            "success": False,
            "error": {
                "code": self.code,
                "message": message,
                "requestId": self.request_id,
            },
        }

        if not is_production and self.details:
            response["error"]["details"] = self.details

        return response

    @property
    def public_message(self) -> str:
        if self.message:
            return self.message
        return _PUBLIC_MESSAGES.get(self.code, _PUBLIC_MESSAGES["INTERNAL_ERROR"])


class Errors:
    """Factory class for creating AppError instances."""

    @staticmethod
    def validation(details: Optional[Any] = None) -> AppError:
        """Create validation error (400)."""
        return AppError("VALIDATION_ERROR", 400, details)

    @staticmethod
    def auth(details: Optional[Any] = None) -> AppError:
        """Create authentication error (401)."""
        return AppError("AUTH_ERROR", 401, details)

    @staticmethod
    def forbidden(details: Optional[Any] = None) -> AppError:
        """Create forbidden error (403)."""
        return AppError("FORBIDDEN_ERROR", 403, details)

    @staticmethod
    def not_found(resource: str, status: int = 404) -> AppError:
        """Create not found error (404 unless the call site says otherwise)."""
        return AppError("NOT_FOUND_ERROR", status, {"resource": resource})

    @staticmethod
    def conflict(details: Optional[Any] = None) -> AppError:
        """Create conflict error (409)."""
        return AppError("CONFLICT_ERROR", 409, details)

    @staticmethod
    def already_owned(message: Optional[str] = None) -> AppError:
        """Create already-owned error (400, buyer-facing)."""
        return AppError("ALREADY_OWNED", 400, message=message)

    @staticmethod
    def invalid_coupon(code: Optional[str] = None) -> AppError:
        """Create invalid coupon error (400)."""
        return AppError("INVALID_COUPON", 400, {"code": code} if code else None)

    @staticmethod
    def rate_limit(retry_after: Optional[int] = None) -> AppError:
        """Create rate limit error (429)."""
        return AppError("RATE_LIMIT_ERROR", 429, {"retryAfter": retry_after})

    @staticmethod
    def upstream(provider: str, details: Optional[Any] = None) -> AppError:
        """Create payment processor error (500)."""
        return AppError("UPSTREAM_ERROR", 500, {"provider": provider, "upstream": details})

    @staticmethod
    def internal(details: Optional[Any] = None) -> AppError:
        """Create internal server error (500)."""
        return AppError("INTERNAL_ERROR", 500, details)

import logging
from decimal import Decimal
from functools import lru_cache
from typing import Union
from urllib.parse import urlparse

from pydantic import field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # Environment (declared first, URL validators read it)
    ENVIRONMENT: str = "development"

    # Database
    # DATABASE_URL wins when set (tests use "sqlite://")
    DATABASE_URL: str = ""
    DB_HOST: str = "127.0.0.1"
    DB_PORT: int = 3306
    DB_USER: str = ""
    DB_PASSWORD: str = ""
    DB_NAME: str = "livefx_store"

    # Identity provider tokens
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: str = ""

    @field_validator("JWT_SECRET_KEY")
    @classmethod
    def validate_jwt_secret(cls, v):
        """JWT secret must be at least 32 characters"""
        if len(v) < 32:
            raise ValueError("JWT_SECRET_KEY must be at least 32 characters")
        return v

    # Storefront
    SITE_URL: str = "http://localhost:5173"
    PUBLIC_API_BASE_URL: str = "http://localhost:8000"
    STORE_BRAND_NAME: str = "LiveFX"

    # Mercado Pago (wallet / redirect preference)
    MERCADO_PAGO_ACCESS_TOKEN: str = ""
    # Empty secret = no signature verification on /mp-webhook
    MERCADO_PAGO_WEBHOOK_SECRET: str = ""
    MERCADO_PAGO_API_URL: str = "https://api.mercadopago.com"
    MERCADO_PAGO_CURRENCY: str = "BRL"
    MERCADO_PAGO_CONVERSION_RATE: Decimal = Decimal("1")

    # PayPal (order / capture)
    PAYPAL_CLIENT_ID: str = ""
    PAYPAL_SECRET: str = ""
    PAYPAL_API_URL: str = "https://api-m.paypal.com"
    PAYPAL_CURRENCY: str = "USD"
    PAYPAL_CONVERSION_RATE: Decimal = Decimal("0.18")

    @field_validator("MERCADO_PAGO_CONVERSION_RATE", "PAYPAL_CONVERSION_RATE")
    @classmethod
    def validate_conversion_rate(cls, v):
        if v <= 0:
            raise ValueError("Conversion rate must be positive")
        return v

    # Asset delivery (Google Drive service account)
    GOOGLE_SERVICE_ACCOUNT_JSON: str = ""
    GOOGLE_TOKEN_URL: str = "https://oauth2.googleapis.com/token"
    DRIVE_API_URL: str = "https://www.googleapis.com/drive/v3"

    # Runtime
    RATE_LIMIT_ENABLED: bool = True
    OUTBOUND_TIMEOUT_SECONDS: int = 30
    TRUSTED_PROXIES: str = "127.0.0.1,::1"

    # CORS - comma-separated list: "https://livefx.app,https://admin.livefx.app"
    ALLOWED_ORIGINS: Union[str, list[str]] = "http://localhost:5173"

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_allowed_origins(cls, v):
        """Parse ALLOWED_ORIGINS from string or list"""
        if isinstance(v, str):
            if v == "*":
                logger.warning("CORS wildcard '*' enabled. Restrict it for the storefront domain.")
                return ["*"]
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("SITE_URL", "PUBLIC_API_BASE_URL")
    @classmethod
    def validate_public_url(cls, v, info):
        v = v.strip().rstrip("/")
        parsed = urlparse(v)
        if not parsed.scheme or not parsed.hostname:
            raise ValueError(f"{info.field_name} must be an absolute URL")
        env = info.data.get("ENVIRONMENT", "development") if info.data else "development"
        if env == "production" and parsed.scheme != "https":
            raise ValueError(f"{info.field_name} must use HTTPS in production")
        return v

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def trusted_proxies(self) -> list[str]:
        return [p.strip() for p in self.TRUSTED_PROXIES.split(",") if p.strip()]

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings() -> Settings:
    return Settings()

import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional
from storefront.configuration import get_settings

settings = get_settings()


def create_access_token(
    user_id: str,
    email: Optional[str] = None,
    role: Optional[str] = None,
    expires_in: timedelta = timedelta(hours=1),
) -> str:
    """
    Issue a token shaped like the identity provider's (local tooling and tests).
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "iat": now,
        "exp": now + expires_in,
    }
    if email:
        payload["email"] = email
    if role:
        payload["role"] = role
    if settings.JWT_AUDIENCE:
        payload["aud"] = settings.JWT_AUDIENCE

    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Decode and validate an identity provider JWT"""
    options = {"require": ["sub", "exp"]}
    try:
        if settings.JWT_AUDIENCE:
            return jwt.decode(
                token,
                settings.JWT_SECRET_KEY,
                algorithms=[settings.JWT_ALGORITHM],
                audience=settings.JWT_AUDIENCE,
                options=options,
            )
        return jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={**options, "verify_aud": False},
        )
    except jwt.ExpiredSignatureError:
        raise ValueError("Token expired")
    except jwt.InvalidTokenError as e:
        raise ValueError(f"Invalid token: {str(e)}")

from datetime import datetime, timedelta, timezone
from typing import Optional, Any
import hmac
import uuid

from jose import JWTError, jwt

from app.config import Settings


def create_access_token(
    settings: Settings,
    subject: str | int,
    expires_delta: Optional[timedelta] = None,
    additional_claims: Optional[dict[str, Any]] = None
) -> str:
    """
    Create a JWT access token.

    Args:
        settings: Application settings holding the signing key
        subject: The subject of the token (user ID)
        expires_delta: Optional custom expiration time
        additional_claims: Optional additional claims to include

    Returns:
        Encoded JWT token string
    """
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {
        "sub": str(subject),
        "exp": expire,
        "iat": datetime.now(timezone.utc),
        "jti": str(uuid.uuid4()),
        "type": "access"
    }

    if additional_claims:
        to_encode.update(additional_claims)

    return jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM
    )


def decode_token(settings: Settings, token: str) -> Optional[dict[str, Any]]:
    """Decode and validate a JWT token. Returns None if invalid or expired."""
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )
    except JWTError:
        return None


def verify_access_token(settings: Settings, token: str) -> Optional[str]:
    """
    Verify an access token and return the subject (user ID).

    Returns:
        User ID string or None if invalid
    """
    payload = decode_token(settings, token)
    if payload is None:
        return None

    if payload.get("type") != "access":
        return None

    return payload.get("sub")


def verify_api_key(settings: Settings, api_key: Optional[str]) -> bool:
    """Constant-time check of the scheduled-task API key. Disabled when unset."""
    if not api_key or not settings.AUTO_DELIVERY_API_KEY:
        return False
    return hmac.compare_digest(
        api_key.encode("utf-8"),
        settings.AUTO_DELIVERY_API_KEY.encode("utf-8"),
    )

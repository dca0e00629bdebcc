# edu_erp/core/security.py

from datetime import datetime, timedelta, timezone
from typing import Optional, Any

import jwt
from jwt import PyJWTError

from ..config import get_settings


def create_access_token(
    subject: str,
    expires_delta: Optional[timedelta] = None,
    additional_claims: Optional[dict[str, Any]] = None,
) -> str:
    """
    Creates a new JWT access token.

    Args:
        subject: The subject of the token (the user ID).
        expires_delta: The lifespan of the token. Defaults to settings.
        additional_claims: Extra data to include in the payload (e.g. role).

    Returns:
        The encoded JWT string.
    """
    settings = get_settings()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode: dict[str, Any] = {
        "sub": subject,
        "exp": datetime.now(timezone.utc) + expires_delta,
    }
    if additional_claims:
        to_encode.update(additional_claims)

    return jwt.encode(
        to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM
    )


def decode_access_token(token: str) -> Optional[dict]:
    """Decodes a JWT access token, returning None if validation fails."""
    settings = get_settings()
    try:
        return jwt.decode(
            token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
        )
    except PyJWTError:
        return None

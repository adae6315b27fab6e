"""
Security Module - JWT generation/validation used to resolve the caller identity
"""

from datetime import timedelta
from typing import Optional
from jose import JWTError, jwt
import logging

from taskledger.core.clock import utcnow
from taskledger.core.config import settings

logger = logging.getLogger(__name__)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed JWT carrying the caller's user id.

    Args:
        data: Claims to encode (typically {"sub": user_id})
        expires_delta: Optional custom lifetime

    Returns:
        Signed JWT string

    Example:
        token = create_access_token({"sub": str(user.id)})
    """
    to_encode = data.copy()  # Don't modify caller's dict

    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    expire = utcnow() + lifetime
    to_encode.update({"exp": expire})  # Expiration claim

    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    logger.debug(f"✅ Created access token expiring at {expire}")
    return encoded_jwt


def verify_token(token: str) -> Optional[dict]:
    """
    Verify signature and expiry of a JWT.

    Returns:
        Decoded payload if valid, None if invalid/expired
    """
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],  # Only accept the configured algorithm
        )
    except JWTError as e:
        # ExpiredSignatureError is a JWTError subclass
        logger.warning(f"⚠️  Invalid token: {str(e)}")
        return None


def decode_token(token: str) -> Optional[str]:
    """Extract the user id ("sub" claim) from a JWT, None if the token is not valid"""
    payload = verify_token(token)
    if payload:
        return payload.get("sub")
    return None

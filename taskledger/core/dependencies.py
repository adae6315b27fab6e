"""
FastAPI Dependencies - Resolve the caller identity for each request
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from uuid import UUID
import logging

from taskledger.database import get_db
from taskledger.core.clock import Clock, utcnow
from taskledger.core.identity import Identity
from taskledger.core.security import decode_token
from taskledger.models import User

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme - expects "Authorization: Bearer <token>" header
security = HTTPBearer()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """
    Load the user named by the bearer token.

    Raises:
        HTTPException 401: Token invalid/expired or user unknown
        HTTPException 403: User account inactive
    """
    user_id = decode_token(credentials.credentials)
    if not user_id:
        logger.warning("⚠️  Invalid or expired token provided")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user_uuid = UUID(str(user_id))
    except ValueError:
        logger.warning(f"⚠️  Token subject is not a user id: {user_id}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = db.get(User, user_uuid)
    if not user:
        logger.warning(f"⚠️  Token valid but user {user_id} not found")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    if not user.is_active:
        logger.warning(f"⚠️  Inactive user {user.email} attempted access")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    logger.debug(f"✅ Authenticated user: {user.email}")
    return user


def get_current_identity(current_user: User = Depends(get_current_user)) -> Identity:
    """(user_id, role) of the authenticated caller - what the core operations consume"""
    return Identity.from_user(current_user)


def get_clock() -> Clock:
    """Clock used by time-dependent operations; overridden in tests"""
    return utcnow

"""
User Model - Callers of the core, identified by id and role
"""

from sqlalchemy import Column, String, Boolean, DateTime, Uuid, Enum as SQLEnum
import uuid
import enum

from taskledger.core.clock import utcnow
from taskledger.database import Base


class UserRole(str, enum.Enum):
    """User role enumeration - defines permission levels"""
    USER = "user"  # Manages own tasks and time logs
    ADMIN = "admin"  # Bypasses ownership checks


class User(Base):
    """
    User table - identity and role only.
    Credential handling lives outside this service.
    """
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    role = Column(SQLEnum(UserRole), default=UserRole.USER, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)  # Deactivate instead of deleting
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"

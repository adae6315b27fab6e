"""
Activity Event Model - Immutable record of every mutating core operation
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, Uuid, Enum as SQLEnum
import enum
import uuid

from taskledger.core.clock import utcnow
from taskledger.database import Base


class EventType(str, enum.Enum):
    """Event types emitted by the core"""
    # Task events
    TASK_CREATED = "TASK_CREATED"
    TASK_UPDATED = "TASK_UPDATED"
    TASK_COMPLETED = "TASK_COMPLETED"
    TASK_DELETED = "TASK_DELETED"

    # Dependency graph events
    DEPENDENCY_CREATED = "DEPENDENCY_CREATED"
    DEPENDENCY_DELETED = "DEPENDENCY_DELETED"

    # Time ledger events
    TIMER_STARTED = "TIMER_STARTED"
    TIMER_STOPPED = "TIMER_STOPPED"  # Explicit stop or implicit stop on a new start
    TIME_LOG_CREATED = "TIME_LOG_CREATED"  # Manual backfill
    TIME_LOG_EDITED = "TIME_LOG_EDITED"
    TIME_LOG_DELETED = "TIME_LOG_DELETED"
    TIME_LOG_APPROVED = "TIME_LOG_APPROVED"


class ActivityEvent(Base):
    """
    Activity event table - what happened, to which record, by whom.

    CRITICAL: This table is append-only - NO updates or deletes allowed.
    """
    __tablename__ = "activity_events"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    timestamp = Column(DateTime, default=utcnow, nullable=False, index=True)

    # Who
    actor_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)

    # What
    event_type = Column(SQLEnum(EventType), nullable=False, index=True)
    resource_type = Column(String(50), nullable=False)  # "task", "task_dependency", "time_log"
    resource_id = Column(Uuid, nullable=False, index=True)
    action = Column(String(255), nullable=False)  # Human-readable description

    # How
    changes = Column(JSON, nullable=True)  # {"field": {"old": X, "new": Y}}
    event_metadata = Column(JSON, nullable=True)  # Additional context

    def __repr__(self):
        return f"<ActivityEvent {self.event_type} on {self.resource_type} {self.resource_id}>"

"""
Time Log Models - Ledger of work intervals and their append-only edit history
"""

from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text, Uuid, true,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
import enum
import uuid

from taskledger.core.clock import utcnow
from taskledger.database import Base


class ApprovalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"


class TimeLog(Base):
    """
    One interval of work.

    Invariant: per user at most one row has is_active = True (enforced by the
    partial unique index below and by the ledger's per-user lock).
    duration is derived from start/end once end_time is set.
    """
    __tablename__ = "time_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    task_id = Column(Uuid, ForeignKey("tasks.id"), nullable=True, index=True)
    project_id = Column(Uuid, nullable=True, index=True)
    description = Column(Text, nullable=False)

    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=True)
    duration = Column(Integer, nullable=True)  # Whole seconds, floor(end - start)

    is_active = Column(Boolean, default=False, nullable=False)
    is_manual_entry = Column(Boolean, default=False, nullable=False)

    # Billing
    approval_status = Column(SQLEnum(ApprovalStatus), default=ApprovalStatus.PENDING, nullable=False)
    approved_by_id = Column(Uuid, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    is_selected_for_invoice = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Oldest first; rows are only ever appended
    edit_history = relationship(
        "TimeLogEdit",
        order_by="TimeLogEdit.sequence",
        back_populates="time_log",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        state = "active" if self.is_active else f"{self.duration}s"
        return f"<TimeLog {self.id} user={self.user_id} ({state})>"


# One active timer per user, enforced by the database itself
Index(
    "uq_time_logs_one_active_per_user",
    TimeLog.user_id,
    unique=True,
    sqlite_where=TimeLog.is_active == true(),
    postgresql_where=TimeLog.is_active == true(),
)


class TimeLogEdit(Base):
    """
    Snapshot of a time log's values taken immediately before an edit.

    CRITICAL: append-only - rows are inserted once and never updated.
    They are only removed together with their time log.
    """
    __tablename__ = "time_log_edits"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    time_log_id = Column(Uuid, ForeignKey("time_logs.id", ondelete="CASCADE"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)  # 1-based position in the history

    edited_by_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    edited_at = Column(DateTime, nullable=False)
    reason = Column(String(255), nullable=False, default="Manual edit")

    # Values before the edit
    previous_start_time = Column(DateTime, nullable=False)
    previous_end_time = Column(DateTime, nullable=True)
    previous_duration = Column(Integer, nullable=True)
    previous_description = Column(Text, nullable=False)

    time_log = relationship("TimeLog", back_populates="edit_history")

    def __repr__(self):
        return f"<TimeLogEdit #{self.sequence} of {self.time_log_id} by {self.edited_by_id}>"

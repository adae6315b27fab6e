"""
Task Models - Work items, their parent/child tree and their dependency edges
"""

from sqlalchemy import (
    Boolean, Column, DateTime, Float, ForeignKey, JSON, Text, UniqueConstraint, Uuid,
    Enum as SQLEnum,
)
import enum
import uuid

from taskledger.core.clock import utcnow
from taskledger.database import Base


class TaskStatus(str, enum.Enum):
    """Task status enumeration"""
    PENDING = "pending"  # Not started
    ACTIVE = "active"  # Being worked on
    HIGH = "high"  # Escalated
    CRITICAL = "critical"  # Needs immediate attention
    COMPLETED = "completed"  # Soft-terminal - record persists


class TaskPriority(str, enum.Enum):
    """Task priority enumeration"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Task(Base):
    """
    Task table - a unit of work.

    parent_task_id forms a tree (one parent per task); dependency edges live in
    task_dependencies and form a separate directed acyclic graph.
    """
    __tablename__ = "tasks"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)

    # Content
    description = Column(Text, nullable=False)
    notes = Column(Text, nullable=True)
    attachments = Column(JSON, default=list, nullable=False)  # Attachment references
    links = Column(JSON, default=list, nullable=False)  # Link references
    progress_notes = Column(JSON, default=list, nullable=False)  # [{id, date, comment, created_at}]

    # State
    status = Column(SQLEnum(TaskStatus), default=TaskStatus.PENDING, nullable=False, index=True)
    priority = Column(SQLEnum(TaskPriority), default=TaskPriority.MEDIUM, nullable=False)
    due_date = Column(DateTime, nullable=True)
    completed = Column(Boolean, default=False, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    # Effort
    estimated_hours = Column(Float, nullable=True)
    actual_hours = Column(Float, nullable=True)

    # Structure
    parent_task_id = Column(Uuid, ForeignKey("tasks.id"), nullable=True, index=True)
    project_id = Column(Uuid, nullable=True, index=True)  # Projects are managed elsewhere

    # Ownership and assignment
    created_by_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    assigned_to_id = Column(Uuid, ForeignKey("users.id"), nullable=True, index=True)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<Task {self.id}: {self.description[:30]} ({self.status})>"


class TaskDependency(Base):
    """
    Directed edge task_id -> depends_on_task_id ("task cannot start until").
    No weight or ordering beyond existence.
    """
    __tablename__ = "task_dependencies"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    task_id = Column(Uuid, ForeignKey("tasks.id"), nullable=False, index=True)  # The dependent task
    depends_on_task_id = Column(Uuid, ForeignKey("tasks.id"), nullable=False, index=True)
    created_by_id = Column(Uuid, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("task_id", "depends_on_task_id", name="uq_task_dependency_pair"),
    )

    def __repr__(self):
        return f"<TaskDependency {self.task_id} -> {self.depends_on_task_id}>"

"""
Models Package - Exports all database models for easy importing
"""

# Import all models to register them with SQLAlchemy Base
# This ensures create_all() knows about all tables
from taskledger.models.user import User, UserRole
from taskledger.models.task import Task, TaskStatus, TaskPriority, TaskDependency
from taskledger.models.time_log import TimeLog, TimeLogEdit, ApprovalStatus
from taskledger.models.activity_event import ActivityEvent, EventType

__all__ = [
    "User",
    "UserRole",
    "Task",
    "TaskStatus",
    "TaskPriority",
    "TaskDependency",
    "TimeLog",
    "TimeLogEdit",
    "ApprovalStatus",
    "ActivityEvent",
    "EventType",
]

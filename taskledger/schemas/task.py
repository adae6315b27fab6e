"""
Task Schemas - Pydantic models for task, subtask and dependency operations
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List
from datetime import datetime
from uuid import UUID

from taskledger.core.clock import to_naive_utc
from taskledger.models.task import TaskStatus, TaskPriority

# DO NOT import from taskledger.schemas here - causes circular import


def _clean_description(v: str) -> str:
    if not v or not v.strip():
        raise ValueError("Task description cannot be empty")
    if len(v.strip()) > 5000:
        raise ValueError("Task description cannot exceed 5000 characters")
    return v.strip()


class TaskBase(BaseModel):
    """Common task fields"""
    description: str
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[datetime] = None
    notes: Optional[str] = None
    attachments: List[str] = Field(default_factory=list)  # Attachment references
    links: List[str] = Field(default_factory=list)  # Link references
    estimated_hours: Optional[float] = Field(default=None, ge=0)
    assigned_to_id: Optional[UUID] = None
    project_id: Optional[UUID] = None

    @field_validator("due_date", mode="after")
    @classmethod
    def due_date_as_utc(cls, v):
        return to_naive_utc(v)


class TaskCreate(TaskBase):
    """Schema for creating a task (or a subtask when parent_task_id is set)"""
    status: TaskStatus = TaskStatus.PENDING
    parent_task_id: Optional[UUID] = None

    @field_validator("description")
    @classmethod
    def validate_description(cls, v):
        return _clean_description(v)


class TaskUpdate(BaseModel):
    """Schema for updating a task - only fields that were sent are applied"""
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None
    completed: Optional[bool] = None
    notes: Optional[str] = None
    attachments: Optional[List[str]] = None
    links: Optional[List[str]] = None
    estimated_hours: Optional[float] = Field(default=None, ge=0)
    actual_hours: Optional[float] = Field(default=None, ge=0)
    assigned_to_id: Optional[UUID] = None
    project_id: Optional[UUID] = None
    parent_task_id: Optional[UUID] = None  # Explicit null detaches from the parent

    @field_validator("description")
    @classmethod
    def validate_description(cls, v):
        if v is not None:
            return _clean_description(v)
        return v

    @field_validator("due_date", mode="after")
    @classmethod
    def due_date_as_utc(cls, v):
        return to_naive_utc(v)


class ProgressNoteCreate(BaseModel):
    comment: str
    date: Optional[datetime] = None  # Day the progress refers to, defaults to now

    @field_validator("date", mode="after")
    @classmethod
    def date_as_utc(cls, v):
        return to_naive_utc(v)

    @field_validator("comment")
    @classmethod
    def validate_comment(cls, v):
        if not v or not v.strip():
            raise ValueError("Progress note cannot be empty")
        return v.strip()


class TaskResponse(TaskBase):
    """Schema for task data in responses"""
    id: UUID
    status: TaskStatus
    completed: bool
    completed_at: Optional[datetime] = None
    actual_hours: Optional[float] = None
    parent_task_id: Optional[UUID] = None
    progress_notes: List[dict] = Field(default_factory=list)
    created_by_id: UUID
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("attachments", "links", "progress_notes", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return [] if v is None else v


class TaskTree(TaskResponse):
    """A task with its subtasks nested underneath"""
    subtasks: List["TaskTree"] = Field(default_factory=list)


TaskTree.model_rebuild()


class DependencyCreate(BaseModel):
    """Edge task_id -> depends_on_task_id"""
    task_id: UUID
    depends_on_task_id: UUID


class DependencyResponse(BaseModel):
    id: UUID
    task_id: UUID
    depends_on_task_id: UUID
    created_by_id: Optional[UUID] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

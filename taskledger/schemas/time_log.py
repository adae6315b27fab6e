"""
Time Log Schemas - Pydantic models for timer and ledger operations
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime
from uuid import UUID

from taskledger.core.clock import to_naive_utc
from taskledger.models.time_log import ApprovalStatus


class TimerStart(BaseModel):
    """Start a timer; any running timer of the caller is stopped first"""
    description: str
    task_id: Optional[UUID] = None
    project_id: Optional[UUID] = None


class TimerStop(BaseModel):
    time_log_id: UUID


class TimeLogCreate(BaseModel):
    """Manual (backfilled) entry - created already closed"""
    description: str
    start_time: datetime
    end_time: datetime
    task_id: Optional[UUID] = None
    project_id: Optional[UUID] = None

    @field_validator("start_time", "end_time", mode="after")
    @classmethod
    def as_utc(cls, v):
        return to_naive_utc(v)

    @model_validator(mode="after")
    def check_interval(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class TimeLogUpdate(BaseModel):
    """Correction of an entry - only fields that were sent are applied"""
    description: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    task_id: Optional[UUID] = None
    project_id: Optional[UUID] = None
    reason: str = Field(default="Manual edit", max_length=255)

    @field_validator("start_time", "end_time", mode="after")
    @classmethod
    def as_utc(cls, v):
        return to_naive_utc(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v):
        if v is not None and not v.strip():
            raise ValueError("Description cannot be empty")
        return v.strip() if v else v


class InvoiceSelection(BaseModel):
    selected: bool


class TimeLogEditResponse(BaseModel):
    """One snapshot of the edit history"""
    id: UUID
    sequence: int
    edited_by_id: UUID
    edited_at: datetime
    reason: str
    previous_start_time: datetime
    previous_end_time: Optional[datetime]
    previous_duration: Optional[int]
    previous_description: str

    model_config = ConfigDict(from_attributes=True)


class TimeLogResponse(BaseModel):
    id: UUID
    user_id: UUID
    task_id: Optional[UUID]
    project_id: Optional[UUID]
    description: str
    start_time: datetime
    end_time: Optional[datetime]
    duration: Optional[int]  # Seconds
    is_active: bool
    is_manual_entry: bool
    approval_status: ApprovalStatus
    approved_by_id: Optional[UUID]
    approved_at: Optional[datetime]
    is_selected_for_invoice: bool
    edit_history: List[TimeLogEditResponse] = []
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

"""
Schemas Package - Exports all Pydantic schemas
"""

from taskledger.schemas.task import (
    TaskCreate,
    TaskUpdate,
    TaskResponse,
    TaskTree,
    ProgressNoteCreate,
    DependencyCreate,
    DependencyResponse,
)
from taskledger.schemas.time_log import (
    TimerStart,
    TimerStop,
    TimeLogCreate,
    TimeLogUpdate,
    InvoiceSelection,
    TimeLogEditResponse,
    TimeLogResponse,
)
from taskledger.schemas.productivity import ProductivityStats, StreaksResponse
from taskledger.schemas.event import ActivityEventResponse, ActivityEventListResponse

__all__ = [
    "TaskCreate",
    "TaskUpdate",
    "TaskResponse",
    "TaskTree",
    "ProgressNoteCreate",
    "DependencyCreate",
    "DependencyResponse",
    "TimerStart",
    "TimerStop",
    "TimeLogCreate",
    "TimeLogUpdate",
    "InvoiceSelection",
    "TimeLogEditResponse",
    "TimeLogResponse",
    "ProductivityStats",
    "StreaksResponse",
    "ActivityEventResponse",
    "ActivityEventListResponse",
]

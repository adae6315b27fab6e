"""
Activity Event Schemas - Pydantic models for event log responses
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Any
from datetime import datetime
from uuid import UUID

from taskledger.models.activity_event import EventType


class ActivityEventResponse(BaseModel):
    id: UUID
    timestamp: datetime
    actor_id: UUID
    event_type: EventType
    resource_type: str
    resource_id: UUID
    action: str
    changes: Optional[dict[str, Any]]
    metadata: Optional[dict[str, Any]] = Field(default=None, validation_alias="event_metadata")

    model_config = ConfigDict(from_attributes=True)


class ActivityEventListResponse(BaseModel):
    """Paginated event list"""
    events: list[ActivityEventResponse]
    total: int
    page: int
    page_size: int

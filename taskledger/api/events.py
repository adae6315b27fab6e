"""
Events API - View the activity event log
"""

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime
from uuid import UUID
import logging

from taskledger.database import get_db
from taskledger.schemas import ActivityEventResponse, ActivityEventListResponse
from taskledger.models import ActivityEvent, EventType
from taskledger.core.dependencies import get_current_identity
from taskledger.core.identity import Identity

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=ActivityEventListResponse)
def get_events(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    actor_id: Optional[UUID] = Query(None, description="Filter by actor (admin only for others)"),
    event_type: Optional[EventType] = Query(None, description="Filter by event type"),
    resource_id: Optional[UUID] = Query(None, description="Filter by affected record"),
    start_date: Optional[datetime] = Query(None, description="Filter from date"),
    end_date: Optional[datetime] = Query(None, description="Filter to date"),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """
    Paginated activity events, newest first.

    Regular users see only their own actions.
    Admins see all actions or filter by actor_id.
    """
    logger.info(f"➡️  Get events request from: {identity.user_id}")

    query = select(ActivityEvent)

    if not identity.is_admin:
        if actor_id and actor_id != identity.user_id:
            logger.warning(f"⚠️  User {identity.user_id} attempted to view other user's events")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You can only view your own events"
            )
        query = query.where(ActivityEvent.actor_id == identity.user_id)
    elif actor_id:
        query = query.where(ActivityEvent.actor_id == actor_id)

    if event_type:
        query = query.where(ActivityEvent.event_type == event_type)
    if resource_id:
        query = query.where(ActivityEvent.resource_id == resource_id)
    if start_date:
        query = query.where(ActivityEvent.timestamp >= start_date)
    if end_date:
        query = query.where(ActivityEvent.timestamp <= end_date)

    total = db.scalar(select(func.count()).select_from(query.subquery()))

    offset = (page - 1) * page_size
    events = db.scalars(
        query.order_by(ActivityEvent.timestamp.desc()).offset(offset).limit(page_size)
    ).all()

    logger.info(f"✅ Returning {len(events)} events (total: {total})")

    return ActivityEventListResponse(
        events=[ActivityEventResponse.model_validate(e) for e in events],
        total=total or 0,
        page=page,
        page_size=page_size
    )
